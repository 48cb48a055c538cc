"""
Bulk Pathway Scraper

Pre-generates pathway templates for every combination of country, course,
academic level, budget range and nationality so that UniGuidePro requests
are answered from the ``pathways`` table instead of the model.

Combinations are processed strictly one after another with a fixed delay
after each AI call. Existing keys are skipped. The scraper yields a
ScrapeProgress event after every combination and checks its cancellation
callback between items; an in-flight AI call is never interrupted.
"""

import logging
import os
import time
from itertools import product
from typing import Iterator, Optional, List, Dict, Any, Callable

from sqlalchemy.orm import Session

from eduvox.models.models import PathwayTemplate
from eduvox.schemas.pathway import BUDGET_RANGES, PathwayProfile
from eduvox.schemas.scraping import ScrapeProgress
from eduvox.services.pathway_generator import PathwayGenerator
from eduvox.services.pathway_resolver import save_template

logger = logging.getLogger(__name__)

SCRAPE_DELAY_SECONDS = float(os.getenv("PATHWAY_SCRAPE_DELAY_SECONDS", "2"))


# =============================================================================
# COMBINATION SPACE
# =============================================================================

COUNTRIES = [
    "United States", "Canada", "United Kingdom", "Australia", "Germany",
    "France", "Netherlands", "Sweden", "Norway", "Denmark", "Switzerland",
    "New Zealand", "Ireland", "Italy", "Spain", "Belgium", "Austria",
    "Finland", "Japan", "South Korea", "Singapore",
]

COURSES = [
    "Computer Science", "Data Science", "Artificial Intelligence", "Software Engineering",
    "Business Administration", "Finance", "Marketing", "International Business",
    "Mechanical Engineering", "Electrical Engineering", "Civil Engineering", "Chemical Engineering",
    "Medicine", "Nursing", "Public Health", "Pharmacy",
    "Psychology", "International Relations", "Economics", "Political Science",
    "Environmental Science", "Biotechnology", "Chemistry", "Physics",
    "Architecture", "Design", "Fine Arts", "Media Studies",
    "Education", "Law", "Social Work", "Journalism",
]

ACADEMIC_LEVELS = ["Bachelor", "Master", "PhD"]

NATIONALITIES = [
    "Indian", "Chinese", "Pakistani", "Bangladeshi", "Nigerian", "Brazilian",
    "Mexican", "Turkish", "Egyptian", "Iranian", "Vietnamese", "Indonesian",
    "Malaysian", "Thai", "Filipino", "Sri Lankan", "Nepalese", "Afghan",
]


def estimated_total() -> int:
    return len(COUNTRIES) * len(COURSES) * len(ACADEMIC_LEVELS) * len(BUDGET_RANGES) * len(NATIONALITIES)


def generate_profiles(
    countries: Optional[List[str]] = None,
    courses: Optional[List[str]] = None,
    levels: Optional[List[str]] = None,
    budget_ranges: Optional[List[str]] = None,
    nationalities: Optional[List[str]] = None,
) -> List[PathwayProfile]:
    """Cartesian product of the requested dimensions (defaults: everything)."""
    return [
        PathwayProfile(
            country=country,
            course=course,
            academic_level=level,
            budget_range=budget,
            nationality=nationality,
        )
        for country, course, level, budget, nationality in product(
            countries or COUNTRIES,
            courses or COURSES,
            levels or ACADEMIC_LEVELS,
            budget_ranges or [b.name for b in BUDGET_RANGES],
            nationalities or NATIONALITIES,
        )
    ]


# =============================================================================
# SCRAPING
# =============================================================================

def iter_pathway_scrape(
    db: Session,
    profiles: List[PathwayProfile],
    generator: PathwayGenerator,
    delay_seconds: float = SCRAPE_DELAY_SECONDS,
    should_cancel: Callable[[], bool] = lambda: False,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[ScrapeProgress]:
    """Generate and store a template per profile, yielding progress as it goes."""
    progress = ScrapeProgress(status="started", total=len(profiles))
    yield progress.model_copy()

    for profile in profiles:
        if should_cancel():
            logger.info("Pathway scrape cancelled after %d/%d", progress.completed, progress.total)
            progress.status = "cancelled"
            progress.outcome = None
            yield progress.model_copy(deep=True)
            return

        key = profile.key
        progress.status = "running"
        progress.current_item = key

        exists = db.query(PathwayTemplate.id).filter(PathwayTemplate.id == key).first()
        if exists:
            progress.skipped += 1
            progress.outcome = "skipped"
        else:
            try:
                pathway = generator.generate(profile)
                save_template(db, pathway)
                progress.successful += 1
                progress.outcome = "successful"
                logger.info("Stored pathway %s", key)
            except Exception as e:
                db.rollback()
                progress.failed += 1
                progress.outcome = "failed"
                progress.errors.append({"id": key, "error": str(e)})
                logger.warning("Failed to scrape pathway %s: %s", key, e)

            # Rate limit only after a model call
            if delay_seconds > 0:
                sleep(delay_seconds)

        progress.completed += 1
        yield progress.model_copy(deep=True)

    progress.status = "completed"
    progress.current_item = None
    progress.outcome = None
    progress.message = (
        f"{progress.successful} generated, {progress.failed} failed, {progress.skipped} skipped"
    )
    yield progress.model_copy(deep=True)


def scrape_all_pathways(
    db: Session,
    profiles: List[PathwayProfile],
    generator: PathwayGenerator,
    **kwargs: Any,
) -> Dict[str, Any]:
    """Drain the scrape and return {successful, failed, skipped, errors}."""
    final = None
    for final in iter_pathway_scrape(db, profiles, generator, **kwargs):
        pass
    return {
        "successful": final.successful,
        "failed": final.failed,
        "skipped": final.skipped,
        "errors": final.errors,
        "status": final.status,
    }


# =============================================================================
# TEMPLATE CATALOGUE
# =============================================================================

def template_to_summary(template: PathwayTemplate) -> Dict[str, Any]:
    return {
        "id": template.id,
        "profile": {
            "country": template.country,
            "course": template.course,
            "academic_level": template.academic_level,
            "budget_range": template.budget_range,
            "nationality": template.nationality,
        },
        "kind": template.kind,
        "status": template.status,
        "version": template.version,
        "step_count": len((template.data or {}).get("steps", [])),
        "created_at": template.created_at.isoformat() if template.created_at else None,
        "updated_at": template.updated_at.isoformat() if template.updated_at else None,
    }


def list_templates(db: Session, skip: int = 0, limit: int = 100) -> List[PathwayTemplate]:
    return db.query(PathwayTemplate).order_by(
        PathwayTemplate.created_at.desc()
    ).offset(skip).limit(limit).all()


def get_template(db: Session, template_id: str) -> Optional[PathwayTemplate]:
    return db.query(PathwayTemplate).filter(PathwayTemplate.id == template_id).first()


def delete_template(db: Session, template_id: str) -> bool:
    template = get_template(db, template_id)
    if not template:
        return False
    db.delete(template)
    db.commit()
    return True


def search_templates(
    db: Session,
    country: Optional[str] = None,
    course: Optional[str] = None,
    academic_level: Optional[str] = None,
    budget_range: Optional[str] = None,
    nationality: Optional[str] = None,
    limit: int = 50,
) -> List[PathwayTemplate]:
    """Exact-match filter on any subset of the profile dimensions."""
    query = db.query(PathwayTemplate).filter(PathwayTemplate.status == "active")
    if country:
        query = query.filter(PathwayTemplate.country == country)
    if course:
        query = query.filter(PathwayTemplate.course == course)
    if academic_level:
        query = query.filter(PathwayTemplate.academic_level == academic_level)
    if budget_range:
        query = query.filter(PathwayTemplate.budget_range == budget_range)
    if nationality:
        query = query.filter(PathwayTemplate.nationality == nationality)
    return query.order_by(PathwayTemplate.created_at.desc()).limit(limit).all()


def get_scraping_stats(db: Session) -> Dict[str, Any]:
    rows = db.query(
        PathwayTemplate.country,
        PathwayTemplate.course,
        PathwayTemplate.academic_level,
        PathwayTemplate.nationality,
        PathwayTemplate.kind,
    ).all()

    by_kind: Dict[str, int] = {}
    for row in rows:
        by_kind[row.kind] = by_kind.get(row.kind, 0) + 1

    total = estimated_total()
    return {
        "total_pathways": len(rows),
        "unique_countries": len({r.country for r in rows}),
        "unique_courses": len({r.course for r in rows}),
        "unique_academic_levels": len({r.academic_level for r in rows}),
        "unique_nationalities": len({r.nationality for r in rows}),
        "by_kind": by_kind,
        "estimated_total": total,
        "coverage_percent": round(len(rows) / total * 100, 2) if total else 0.0,
    }
