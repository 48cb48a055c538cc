"""
Universities Router

Catalogue search, saved universities, profile matching and admin
maintenance of university records.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional, List

from eduvox.database import get_db
from eduvox.models.models import UserProfile
from eduvox.dependencies.auth import get_current_user, get_admin_user
from eduvox.services.cgpa import convert_cgpa
from eduvox.services import universities as university_service
from eduvox.services.subscription import check_feature_access, record_usage

router = APIRouter(prefix="/api/universities", tags=["universities"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class SaveUniversityRequest(BaseModel):
    university_id: str
    notes: Optional[str] = None


class MatchRequest(BaseModel):
    """Overrides for the stored academic profile."""
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    ielts_score: Optional[float] = Field(None, ge=0, le=9)
    toefl_score: Optional[int] = Field(None, ge=0, le=120)
    gre_score: Optional[int] = None
    budget_max: Optional[float] = Field(None, ge=0)
    preferred_countries: Optional[List[str]] = None
    preferred_fields: Optional[List[str]] = None
    limit: int = Field(50, ge=1, le=200)


class UniversityPayload(BaseModel):
    name: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    city: Optional[str] = None
    state_province: Optional[str] = None
    type: Optional[str] = None
    ranking_overall: Optional[int] = None
    ranking_country: Optional[int] = None
    tuition_min: Optional[float] = None
    tuition_max: Optional[float] = None
    currency: Optional[str] = "USD"
    cgpa_requirement: Optional[float] = None
    ielts_requirement: Optional[float] = None
    toefl_requirement: Optional[int] = None
    gre_requirement: Optional[int] = None
    programs_offered: Optional[List[str]] = None
    description: Optional[str] = None
    website_url: Optional[str] = None
    logo_url: Optional[str] = None
    application_deadline: Optional[str] = None
    acceptance_rate: Optional[float] = None
    student_population: Optional[int] = None
    international_student_percentage: Optional[float] = None


class UniversityUpdate(UniversityPayload):
    name: Optional[str] = None
    country: Optional[str] = None


class CompareRequest(BaseModel):
    university_ids: List[str] = Field(..., min_length=2)


class VerifyRequest(BaseModel):
    approved: bool = True


# =============================================================================
# CATALOGUE
# =============================================================================

@router.get("/")
def list_universities(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    country: Optional[str] = None,
    state: Optional[str] = None,
    type: Optional[str] = None,
    min_ranking: Optional[int] = Query(None, alias="minRanking"),
    max_ranking: Optional[int] = Query(None, alias="maxRanking"),
    min_tuition: Optional[float] = Query(None, alias="minTuition"),
    max_tuition: Optional[float] = Query(None, alias="maxTuition"),
    search: Optional[str] = None,
    verified_only: bool = Query(False, alias="verifiedOnly"),
    db: Session = Depends(get_db)
):
    """Filtered, paginated university list ordered by ranking."""
    try:
        return university_service.search_universities(
            db,
            page=page,
            limit=limit,
            country=country,
            state=state,
            type=type,
            min_ranking=min_ranking,
            max_ranking=max_ranking,
            min_tuition=min_tuition,
            max_tuition=max_tuition,
            search=search,
            verified_only=verified_only,
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch universities: {str(e)}")


def _student_profile(user: UserProfile) -> dict:
    academic = user.academic_profile
    return {
        "cgpa": convert_cgpa(academic.cgpa) if academic else None,
        "ielts_score": academic.ielts_score if academic else None,
        "toefl_score": academic.toefl_score if academic else None,
        "gre_score": academic.gre_score if academic else None,
        "budget_max": academic.budget_max if academic else None,
        "preferred_fields": (academic.preferred_fields if academic else None) or [],
        "preferred_countries": user.preferred_countries or [],
    }


@router.post("/match")
def match(
    request: MatchRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Rank universities against the caller's academic profile."""
    student = _student_profile(current_user)
    student.update(request.model_dump(exclude_unset=True, exclude_none=True, exclude={"limit"}))
    student["cgpa"] = convert_cgpa(student.get("cgpa"))

    try:
        matches = university_service.match_universities(db, student, limit=request.limit)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to match universities: {str(e)}")

    return {"matches": matches, "total": len(matches)}


@router.post("/compare")
def compare(
    request: CompareRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Side-by-side comparison; counts one comparison against the monthly limit."""
    access = check_feature_access(db, current_user.id, "university_comparison")
    if not access["allowed"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Monthly comparison limit reached",
                "upgrade_message": access["upgrade_message"],
                "limit": access["limit"],
                "used": access["used"],
            }
        )

    try:
        result = university_service.compare_universities(db, request.university_ids, _student_profile(current_user))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    record_usage(db, current_user.id, "university_comparison")
    return {**result, "usage": check_feature_access(db, current_user.id, "university_comparison")}


# =============================================================================
# SAVED UNIVERSITIES
# =============================================================================

@router.post("/save", status_code=status.HTTP_201_CREATED)
def save(
    request: SaveUniversityRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        saved = university_service.save_university(db, current_user.id, request.university_id, request.notes)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"message": "University saved successfully", "saved": {"id": saved.id, "university_id": saved.university_id}}


@router.get("/saved/list")
def saved_list(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"saved_universities": university_service.list_saved_universities(db, current_user.id)}


@router.delete("/saved/{saved_id}")
def remove_saved(
    saved_id: str,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not university_service.remove_saved_university(db, current_user.id, saved_id):
        raise HTTPException(status_code=404, detail="Saved university not found")
    return {"message": "University removed from saved list"}


@router.get("/{university_id}")
def get_university(university_id: str, db: Session = Depends(get_db)):
    university = university_service.get_university(db, university_id)
    if not university:
        raise HTTPException(status_code=404, detail="University not found")
    return {"university": university_service.university_to_dict(university)}


# =============================================================================
# ADMIN MAINTENANCE
# =============================================================================

@router.post("/", status_code=status.HTTP_201_CREATED)
def create(
    request: UniversityPayload,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    data = request.model_dump()
    data["cgpa_requirement"] = convert_cgpa(data.get("cgpa_requirement"))
    try:
        university = university_service.create_university(db, data)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to create university: {str(e)}")
    return {"university": university_service.university_to_dict(university)}


@router.put("/{university_id}")
def update(
    university_id: str,
    request: UniversityUpdate,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    university = university_service.get_university(db, university_id)
    if not university:
        raise HTTPException(status_code=404, detail="University not found")

    changes = request.model_dump(exclude_unset=True)
    if "cgpa_requirement" in changes:
        changes["cgpa_requirement"] = convert_cgpa(changes["cgpa_requirement"])
    university = university_service.update_university(db, university, changes)
    return {"university": university_service.university_to_dict(university)}


@router.post("/{university_id}/verify")
def verify(
    university_id: str,
    request: VerifyRequest,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    university = university_service.get_university(db, university_id)
    if not university:
        raise HTTPException(status_code=404, detail="University not found")
    university = university_service.set_verification(db, university, request.approved)
    return {"university": university_service.university_to_dict(university)}


@router.delete("/{university_id}")
def delete(
    university_id: str,
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    university = university_service.get_university(db, university_id)
    if not university:
        raise HTTPException(status_code=404, detail="University not found")
    university_service.delete_university(db, university)
    return {"message": "University deleted"}
