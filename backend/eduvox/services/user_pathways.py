"""
User Pathway Service

A user keeps one working pathway per destination country. Saving a new
pathway for a country already on file refreshes the record in place and
carries the user's progress over by step number; a new country gets a new
record.
"""

import logging
from datetime import datetime
from typing import Dict, Any, List, Optional

from sqlalchemy.orm import Session

from eduvox.models.models import UserPathway
from eduvox.schemas.pathway import PathwayBase, StepStatus

logger = logging.getLogger(__name__)

# Per-step fields owned by the user rather than the template
PROGRESS_FIELDS = ("status", "notes", "completed_at")


def merge_step_progress(old_steps: List[Dict[str, Any]], new_steps: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Take step content from ``new_steps`` and progress from ``old_steps``.

    Progress survives only for step numbers present in both lists.
    """
    progress_by_number = {
        step.get("step"): {field: step.get(field) for field in PROGRESS_FIELDS if field in step}
        for step in old_steps or []
    }

    merged = []
    for step in new_steps:
        combined = dict(step)
        previous = progress_by_number.get(step.get("step"))
        if previous:
            combined.update(previous)
        merged.append(combined)
    return merged


def user_pathway_to_dict(record: UserPathway) -> Dict[str, Any]:
    return {
        "id": record.id,
        "user_id": record.user_id,
        "template_id": record.template_id,
        "country": record.country,
        "course": record.course,
        "academic_level": record.academic_level,
        "kind": record.kind,
        "is_adapted": record.is_adapted,
        "steps": record.steps,
        "data": record.data,
        "progress": calculate_progress(record.steps),
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


def calculate_progress(steps: List[Dict[str, Any]]) -> Dict[str, Any]:
    total = len(steps or [])
    completed = sum(1 for s in steps or [] if s.get("status") == StepStatus.COMPLETED.value)
    return {
        "total_steps": total,
        "completed_steps": completed,
        "percent": round(completed / total * 100, 1) if total else 0.0,
    }


def save_user_pathway(db: Session, user_id: str, pathway: PathwayBase) -> UserPathway:
    """Create or refresh the user's pathway for the pathway's country."""
    payload = pathway.model_dump(mode="json")
    new_steps = payload.pop("steps")
    country = pathway.profile.country

    record = db.query(UserPathway).filter(
        UserPathway.user_id == user_id,
        UserPathway.country == country,
    ).first()

    if record is None:
        record = UserPathway(user_id=user_id, country=country, steps=new_steps)
        db.add(record)
    else:
        logger.info("Refreshing pathway %s for user %s (%s)", record.id, user_id, country)
        record.steps = merge_step_progress(record.steps, new_steps)

    record.template_id = pathway.key
    record.course = pathway.profile.course
    record.academic_level = pathway.profile.academic_level
    record.kind = pathway.kind.value
    record.is_adapted = bool(getattr(pathway, "is_adapted", False))
    record.data = payload
    record.updated_at = datetime.utcnow()

    db.commit()
    db.refresh(record)
    return record


def get_user_pathways(db: Session, user_id: str, limit: Optional[int] = None) -> List[UserPathway]:
    """Newest first. ``limit`` caps history depth; None means no cap."""
    query = db.query(UserPathway).filter(
        UserPathway.user_id == user_id
    ).order_by(UserPathway.updated_at.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_user_pathway(db: Session, user_id: str, pathway_id: str) -> Optional[UserPathway]:
    return db.query(UserPathway).filter(
        UserPathway.id == pathway_id,
        UserPathway.user_id == user_id,
    ).first()


def update_step_status(
    db: Session,
    user_id: str,
    pathway_id: str,
    step_number: int,
    status: StepStatus,
    notes: str = "",
) -> Optional[UserPathway]:
    """
    Set one step's status and notes.

    Returns None if the pathway does not exist for this user.
    Raises LookupError if the step number is not part of the pathway.
    """
    record = get_user_pathway(db, user_id, pathway_id)
    if record is None:
        return None

    found = False
    updated_steps = []
    for step in record.steps:
        if step.get("step") == step_number:
            found = True
            step = {
                **step,
                "status": status.value,
                "completed_at": datetime.utcnow().isoformat() if status == StepStatus.COMPLETED else None,
                "notes": notes,
            }
        updated_steps.append(step)

    if not found:
        raise LookupError(f"Step {step_number} not found in pathway {pathway_id}")

    # Reassign so SQLAlchemy sees the JSON change
    record.steps = updated_steps
    record.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(record)
    return record


def get_all_user_pathways(db: Session, skip: int = 0, limit: int = 100) -> List[UserPathway]:
    """Admin listing across every user, newest first."""
    return db.query(UserPathway).order_by(
        UserPathway.created_at.desc()
    ).offset(skip).limit(limit).all()
