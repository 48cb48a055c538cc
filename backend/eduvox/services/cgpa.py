"""
CGPA Normalisation

University thresholds and student profiles are stored on a 10-point scale.
Anything at or below 4.0 is taken to be a 4-point GPA and rescaled.
"""

import logging
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from eduvox.models.models import University, AcademicProfile

logger = logging.getLogger(__name__)

FOUR_POINT_MAX = 4.0
TEN_POINT_MAX = 10.0


def is_four_point_scale(value: Optional[float]) -> bool:
    return value is not None and 0 < value <= FOUR_POINT_MAX


def convert_cgpa(value: Optional[float]) -> Optional[float]:
    """
    >>> convert_cgpa(3.6)
    9.0
    >>> convert_cgpa(8.5)
    8.5
    """
    if not is_four_point_scale(value):
        return value
    return round(value / FOUR_POINT_MAX * TEN_POINT_MAX, 2)


def _convert_column(db: Session, model, column_name: str, dry_run: bool) -> Dict[str, int]:
    stats = {"total": 0, "converted": 0, "skipped": 0}
    for row in db.query(model).all():
        stats["total"] += 1
        current = getattr(row, column_name)
        if not is_four_point_scale(current):
            stats["skipped"] += 1
            continue
        if not dry_run:
            setattr(row, column_name, convert_cgpa(current))
        stats["converted"] += 1
    return stats


def convert_database_cgpa(db: Session, dry_run: bool = False) -> Dict[str, Any]:
    """
    Rescale every 4-point CGPA in the universities and academic profile tables.

    Safe to run repeatedly: converted values are above 4.0 and are skipped.
    """
    universities = _convert_column(db, University, "cgpa_requirement", dry_run)
    profiles = _convert_column(db, AcademicProfile, "cgpa", dry_run)

    if dry_run:
        db.rollback()
    else:
        db.commit()

    logger.info(
        "CGPA conversion%s: universities %d/%d, profiles %d/%d",
        " (dry run)" if dry_run else "",
        universities["converted"], universities["total"],
        profiles["converted"], profiles["total"],
    )
    return {"universities": universities, "academic_profiles": profiles, "dry_run": dry_run}
