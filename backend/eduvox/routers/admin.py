"""
Admin Router
Handles admin operations: pathway template management, scraping jobs,
university data maintenance, subscription analytics and performance stats.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Dict, Any

from eduvox.database import get_db
from eduvox.models.models import UserProfile
from eduvox.dependencies.auth import get_admin_user
from eduvox.middleware.performance_monitor import get_performance_stats, get_slow_requests
from eduvox.services.background_tasks import (
    create_scrape_job,
    start_scrape_job,
    get_job,
    get_jobs,
    get_active_job,
    cancel_job,
    job_to_dict,
)
from eduvox.schemas.pathway import PathwayStep
from eduvox.services.cgpa import convert_database_cgpa
from eduvox.services.migrations import migrate_verification_status, check_verification_status
from eduvox.services.pathway_resolver import update_template
from eduvox.services.pathway_scraper import (
    list_templates,
    get_template,
    delete_template,
    get_scraping_stats,
    template_to_summary,
)
from eduvox.services.subscription import get_subscription_analytics
from eduvox.services.university_scraper import merge_duplicate_universities
from eduvox.services.user_pathways import get_all_user_pathways, user_pathway_to_dict

router = APIRouter(prefix="/api/admin", tags=["admin"])


# ==================== Request Models ====================

class PathwayScrapeRequest(BaseModel):
    countries: Optional[List[str]] = None
    courses: Optional[List[str]] = None
    academic_levels: Optional[List[str]] = None
    budget_ranges: Optional[List[str]] = None
    nationalities: Optional[List[str]] = None
    limit: Optional[int] = Field(None, ge=1)


class UniversityScrapeRequest(BaseModel):
    mode: Literal["new", "update"] = "new"
    limit: Optional[int] = Field(None, ge=1)


class DryRunRequest(BaseModel):
    dry_run: bool = False


class TemplateUpdateRequest(BaseModel):
    """Plan fields an admin may edit; omitted fields keep their stored value."""
    steps: Optional[List[PathwayStep]] = None
    timeline: Optional[Any] = None
    costs: Optional[Dict[str, Any]] = None
    universities: Optional[List[Dict[str, Any]]] = None
    scholarships: Optional[List[Dict[str, Any]]] = None
    visa_info: Optional[Dict[str, Any]] = None
    details: Optional[Dict[str, Any]] = None


def _start_job(db: Session, kind: str, admin: UserProfile, options: dict) -> dict:
    if get_active_job(db, kind):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A {kind} scrape is already running"
        )
    job = create_scrape_job(db, kind, requested_by=admin.id, options=options)
    start_scrape_job(job.id)
    return {"job_id": job.id, "status": job.status, "message": f"{kind} scrape started"}


# ==================== Pathway Templates ====================

@router.get("/pathways/templates")
def get_templates(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    templates = list_templates(db, skip=skip, limit=limit)
    return {"templates": [template_to_summary(t) for t in templates], "count": len(templates)}


@router.put("/pathways/templates/{template_id}")
def edit_template(
    template_id: str,
    request: TemplateUpdateRequest,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Edit a stored template's plan. Profile and key stay as they are."""
    template = get_template(db, template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Pathway template not found")

    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No changes provided")

    try:
        template = update_template(db, template, changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"template": template_to_summary(template), "data": template.data}


@router.delete("/pathways/templates/{template_id}")
def remove_template(
    template_id: str,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    if not delete_template(db, template_id):
        raise HTTPException(status_code=404, detail="Pathway template not found")
    return {"message": "Pathway template deleted"}


@router.get("/pathways/stats")
def template_stats(
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return get_scraping_stats(db)


@router.get("/pathways/user-pathways")
def user_pathways(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    records = get_all_user_pathways(db, skip=skip, limit=limit)
    return {"pathways": [user_pathway_to_dict(r) for r in records], "count": len(records)}


# ==================== Scrape Jobs ====================

@router.post("/scrape/pathways", status_code=status.HTTP_202_ACCEPTED)
def start_pathway_scrape(
    request: PathwayScrapeRequest,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Start bulk pathway generation in the background."""
    return _start_job(db, "pathways", admin, request.model_dump(exclude_none=True))


@router.post("/scrape/universities", status_code=status.HTTP_202_ACCEPTED)
def start_university_scrape(
    request: UniversityScrapeRequest,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Add the seed universities, or refresh Places data on existing ones."""
    kind = "universities" if request.mode == "new" else "university_updates"
    options = {"limit": request.limit} if request.limit else {}
    return _start_job(db, kind, admin, options)


@router.get("/scrape/jobs")
def list_jobs(
    kind: Optional[str] = None,
    job_status: Optional[str] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return {"jobs": [job_to_dict(j) for j in get_jobs(db, kind=kind, status=job_status, limit=limit)]}


@router.get("/scrape/jobs/{job_id}")
def job_status(
    job_id: str,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    job = get_job(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job_to_dict(job)


@router.post("/scrape/jobs/{job_id}/cancel")
def cancel_scrape(
    job_id: str,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Stop the job before its next item. The item in flight still finishes."""
    if not get_job(db, job_id):
        raise HTTPException(status_code=404, detail="Job not found")
    if not cancel_job(db, job_id):
        raise HTTPException(status_code=400, detail="Job has already finished")
    return {"message": "Cancellation requested", "job_id": job_id}


# ==================== University Maintenance ====================

@router.post("/universities/merge-duplicates")
def merge_duplicates(
    request: DryRunRequest,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    try:
        return merge_duplicate_universities(db, dry_run=request.dry_run)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error merging duplicates: {str(e)}")


@router.post("/universities/migrate-verification")
def migrate_verification(
    request: DryRunRequest,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return migrate_verification_status(db, dry_run=request.dry_run)


@router.get("/universities/verification-status")
def verification_status(
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return check_verification_status(db)


@router.post("/cgpa/convert")
def convert_cgpa_scale(
    request: DryRunRequest,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Rescale stored 4-point CGPAs to the 10-point scale."""
    try:
        return convert_database_cgpa(db, dry_run=request.dry_run)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error converting CGPA: {str(e)}")


# ==================== Analytics ====================

@router.get("/subscriptions/analytics")
def subscription_analytics(
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return get_subscription_analytics(db)


@router.get("/performance")
def performance(admin: UserProfile = Depends(get_admin_user)):
    return {
        "routes": get_performance_stats(),
        "slow_requests": get_slow_requests()[:50],
    }
