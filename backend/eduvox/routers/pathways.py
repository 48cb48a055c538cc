"""
Pathways Router

UniGuidePro pathway generation and the user's saved study abroad paths.

Generation is gated by the monthly usage limit of the caller's plan. Free
plans receive the limited view of the resolved pathway and cannot keep it in
My Study Path. Detailed analysis is a paid feature.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from eduvox.database import get_db
from eduvox.models.models import UserProfile
from eduvox.dependencies.auth import get_current_user
from eduvox.dependencies.services import get_pathway_generator, get_pathway_resolver
from eduvox.schemas.pathway import PathwayRequest, StepStatus
from eduvox.services.pathway_generator import PathwayGenerator, PathwayGenerationError
from eduvox.services.pathway_resolver import PathwayResolver
from eduvox.services.pathway_scraper import search_templates, template_to_summary
from eduvox.services.subscription import (
    check_feature_access,
    record_usage,
    get_user_plan,
    get_history_limit,
)
from eduvox.services.user_pathways import (
    save_user_pathway,
    get_user_pathways,
    update_step_status,
    user_pathway_to_dict,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pathways", tags=["pathways"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class StepUpdateRequest(BaseModel):
    status: StepStatus
    notes: str = ""


# =============================================================================
# GENERATION
# =============================================================================

@router.post("/generate")
def generate_pathway(
    request: PathwayRequest,
    save: bool = Query(True, description="Store the result as the user's path for this country"),
    current_user: UserProfile = Depends(get_current_user),
    resolver: PathwayResolver = Depends(get_pathway_resolver),
    db: Session = Depends(get_db)
):
    """
    Resolve a pathway for the request profile.

    Counts one pathway generation against the monthly limit.
    """
    access = check_feature_access(db, current_user.id, "pathway_generation")
    if not access["allowed"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Monthly pathway limit reached",
                "upgrade_message": access["upgrade_message"],
                "limit": access["limit"],
                "used": access["used"],
            }
        )

    try:
        request.to_profile()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    plan = get_user_plan(db, current_user.id)
    try:
        pathway = resolver.resolve(request, plan=plan)
    except Exception as e:
        logger.error(f"Pathway resolution failed for {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error generating pathway: {str(e)}")

    record_usage(db, current_user.id, "pathway_generation")

    saved_id = None
    save_message = None
    if save:
        study_path = check_feature_access(db, current_user.id, "my_study_path")
        if study_path["allowed"]:
            saved_id = save_user_pathway(db, current_user.id, pathway).id
        else:
            save_message = study_path["upgrade_message"]

    return {
        "pathway": pathway.model_dump(mode="json"),
        "kind": pathway.kind.value,
        "source": pathway.source,
        "plan": plan,
        "saved_pathway_id": saved_id,
        "save_message": save_message,
        "usage": check_feature_access(db, current_user.id, "pathway_generation"),
    }


@router.post("/analysis")
def detailed_analysis(
    request: PathwayRequest,
    current_user: UserProfile = Depends(get_current_user),
    generator: PathwayGenerator = Depends(get_pathway_generator),
    db: Session = Depends(get_db)
):
    """
    In-depth AI analysis of the caller's chances and next steps.

    Requires a plan with detailed analysis. There is no static fallback: if
    the model fails the caller gets a 502 and can retry.
    """
    access = check_feature_access(db, current_user.id, "pathway_analysis")
    if not access["allowed"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Detailed analysis is not included in your plan",
                "upgrade_message": access["upgrade_message"],
            }
        )

    try:
        request.to_profile()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        analysis = generator.generate_analysis(request)
    except PathwayGenerationError as e:
        logger.warning(f"Detailed analysis failed for {current_user.id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except Exception as e:
        logger.error(f"Detailed analysis failed for {current_user.id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="AI analysis is unavailable, please retry")

    return {"analysis": analysis.model_dump(mode="json")}


@router.get("/search")
def search(
    country: Optional[str] = None,
    course: Optional[str] = None,
    academic_level: Optional[str] = None,
    budget_range: Optional[str] = None,
    nationality: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Find stored pathway templates by profile dimensions."""
    templates = search_templates(
        db,
        country=country,
        course=course,
        academic_level=academic_level,
        budget_range=budget_range,
        nationality=nationality,
        limit=limit,
    )
    return {"pathways": [template_to_summary(t) for t in templates], "total": len(templates)}


# =============================================================================
# MY STUDY PATH
# =============================================================================

@router.get("/mine")
def my_pathways(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The user's saved pathways, newest first, as deep as the plan allows."""
    history_limit = get_history_limit(db, current_user.id)
    records = get_user_pathways(db, current_user.id, limit=history_limit)
    return {
        "pathways": [user_pathway_to_dict(r) for r in records],
        "history_limit": history_limit,
    }


@router.patch("/mine/{pathway_id}/steps/{step_number}")
def update_step(
    pathway_id: str,
    step_number: int,
    request: StepUpdateRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        record = update_step_status(db, current_user.id, pathway_id, step_number, request.status, request.notes)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if record is None:
        raise HTTPException(status_code=404, detail="Pathway not found")

    return {"pathway": user_pathway_to_dict(record)}
