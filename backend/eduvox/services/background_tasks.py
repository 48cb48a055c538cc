"""
Background Tasks Service for EduVox

Runs admin scraping jobs outside the request cycle:
- Bulk pathway template generation
- Adding new universities from the seed list
- Refreshing Places data on existing universities

Each job is a ScrapeJob row. The worker consumes the scraper's progress
events, mirrors them onto the row, and checks the row's status between
items so an admin can cancel a run in progress.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Callable
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy.orm import Session

from eduvox.database import SessionLocal
from eduvox.models.models import ScrapeJob, generate_uuid
from eduvox.schemas.scraping import ScrapeProgress
from eduvox.services.pathway_generator import PathwayGenerator
from eduvox.services.pathway_scraper import generate_profiles, iter_pathway_scrape
from eduvox.services.university_scraper import iter_scrape_new_universities, iter_update_existing_universities
from eduvox.utils.places_client import PlacesClient

logger = logging.getLogger(__name__)

# Scrapes are rate limited upstream, one worker is enough
_executor = ThreadPoolExecutor(max_workers=1)

JOB_KINDS = ("pathways", "universities", "university_updates")
FINAL_STATUSES = ["completed", "failed", "cancelled"]


# ============================================================================
# JOB MANAGEMENT
# ============================================================================

def get_job(db: Session, job_id: str) -> Optional[ScrapeJob]:
    """Get a scrape job by ID."""
    return db.query(ScrapeJob).filter(ScrapeJob.id == job_id).first()


def create_scrape_job(
    db: Session,
    kind: str,
    requested_by: Optional[str] = None,
    options: Optional[Dict[str, Any]] = None
) -> ScrapeJob:
    """Create a new pending scrape job."""
    if kind not in JOB_KINDS:
        raise ValueError(f"Unknown job kind: {kind}")

    job = ScrapeJob(
        id=generate_uuid(),
        kind=kind,
        requested_by=requested_by,
        status="pending",
        total=0,
        completed=0,
        successful=0,
        failed=0,
        skipped=0,
        errors=[],
        options=options or {}
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def apply_progress(db: Session, job_id: str, progress: ScrapeProgress):
    """Copy a progress event onto the job row."""
    job = get_job(db, job_id)
    if not job:
        return

    # Keep an admin's cancel even if the scraper has already finished its item
    if job.status == "cancelled" and progress.status != "cancelled":
        return

    job.status = "running" if progress.status in ("started", "running") else progress.status
    job.total = progress.total
    job.completed = progress.completed
    job.successful = progress.successful
    job.failed = progress.failed
    job.skipped = progress.skipped
    job.current_item = progress.current_item
    job.errors = list(progress.errors)
    job.updated_at = datetime.utcnow()

    if job.status == "running" and not job.started_at:
        job.started_at = datetime.utcnow()
    elif job.status in FINAL_STATUSES:
        job.completed_at = datetime.utcnow()

    db.commit()


def mark_job_failed(db: Session, job_id: str, error: str):
    job = get_job(db, job_id)
    if not job:
        return
    job.status = "failed"
    job.errors = (job.errors or []) + [{"id": job_id, "error": error}]
    job.completed_at = datetime.utcnow()
    db.commit()


def cancel_job(db: Session, job_id: str) -> bool:
    """Request cancellation; the worker stops before its next item."""
    job = get_job(db, job_id)
    if not job:
        return False

    if job.status in FINAL_STATUSES:
        return False

    job.status = "cancelled"
    job.completed_at = datetime.utcnow()
    job.updated_at = datetime.utcnow()
    db.commit()
    return True


def is_cancelled(db: Session, job_id: str) -> bool:
    status = db.query(ScrapeJob.status).filter(ScrapeJob.id == job_id).scalar()
    return status == "cancelled"


def job_to_dict(job: ScrapeJob) -> Dict[str, Any]:
    return {
        "id": job.id,
        "kind": job.kind,
        "status": job.status,
        "total": job.total,
        "completed": job.completed,
        "successful": job.successful,
        "failed": job.failed,
        "skipped": job.skipped,
        "current_item": job.current_item,
        "progress_percent": round(job.completed / job.total * 100, 1) if job.total else 0.0,
        "errors": job.errors or [],
        "options": job.options or {},
        "started_at": job.started_at.isoformat() if job.started_at else None,
        "completed_at": job.completed_at.isoformat() if job.completed_at else None,
        "created_at": job.created_at.isoformat() if job.created_at else None,
    }


# ============================================================================
# JOB EXECUTION
# ============================================================================

def _build_events(db: Session, job: ScrapeJob, should_cancel: Callable[[], bool],
                  generator: Optional[PathwayGenerator], places: Optional[PlacesClient],
                  sleep: Optional[Callable[[float], None]]):
    options = job.options or {}
    extra = {"sleep": sleep} if sleep else {}

    if job.kind == "pathways":
        profiles = generate_profiles(
            countries=options.get("countries"),
            courses=options.get("courses"),
            levels=options.get("academic_levels"),
            budget_ranges=options.get("budget_ranges"),
            nationalities=options.get("nationalities"),
        )
        if options.get("limit"):
            profiles = profiles[:options["limit"]]
        return iter_pathway_scrape(db, profiles, generator or PathwayGenerator(),
                                   should_cancel=should_cancel, **extra)

    if job.kind == "universities":
        return iter_scrape_new_universities(db, places or PlacesClient(),
                                            should_cancel=should_cancel, **extra)

    return iter_update_existing_universities(db, places or PlacesClient(), limit=options.get("limit"),
                                             should_cancel=should_cancel, **extra)


def run_scrape_job(
    job_id: str,
    generator: Optional[PathwayGenerator] = None,
    places: Optional[PlacesClient] = None,
    session_factory: Callable[[], Session] = SessionLocal,
    sleep: Optional[Callable[[float], None]] = None
):
    """
    Run a scrape job to completion, cancellation or failure.

    Designed to run in a worker thread; opens its own session.
    """
    db = session_factory()
    try:
        job = get_job(db, job_id)
        if not job:
            logger.warning(f"Scrape job {job_id} not found")
            return
        if job.status == "cancelled":
            logger.info(f"Scrape job {job_id} cancelled before start")
            return

        events = _build_events(db, job, lambda: is_cancelled(db, job_id), generator, places, sleep)
        final = None
        for final in events:
            apply_progress(db, job_id, final)

        if final is not None:
            logger.info(
                f"Scrape job {job_id} {final.status}: {final.successful} successful, "
                f"{final.failed} failed, {final.skipped} skipped"
            )

    except Exception as e:
        logger.error(f"Scrape job {job_id} failed with error: {str(e)}")
        db.rollback()
        mark_job_failed(db, job_id, str(e))
    finally:
        db.close()


def start_scrape_job(job_id: str):
    """Schedule a scrape job on the worker thread."""
    _executor.submit(run_scrape_job, job_id)


# ============================================================================
# JOB QUERIES
# ============================================================================

def get_jobs(
    db: Session,
    kind: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 20
) -> List[ScrapeJob]:
    """Recent jobs, optionally filtered by kind and status."""
    query = db.query(ScrapeJob)

    if kind:
        query = query.filter(ScrapeJob.kind == kind)
    if status:
        query = query.filter(ScrapeJob.status == status)

    return query.order_by(ScrapeJob.created_at.desc()).limit(limit).all()


def get_active_job(db: Session, kind: str) -> Optional[ScrapeJob]:
    """The pending or running job of this kind, if any."""
    return db.query(ScrapeJob).filter(
        ScrapeJob.kind == kind,
        ScrapeJob.status.in_(["pending", "running"])
    ).first()


def cleanup_stale_jobs(db: Session, max_age_hours: int = 24) -> int:
    """
    Mark old running jobs as failed.

    Jobs that have been running for too long are likely stuck.
    """
    cutoff = datetime.utcnow() - timedelta(hours=max_age_hours)

    stale_jobs = db.query(ScrapeJob).filter(
        ScrapeJob.status.in_(["pending", "running"]),
        ScrapeJob.created_at < cutoff
    ).all()

    for job in stale_jobs:
        job.status = "failed"
        job.errors = (job.errors or []) + [{"id": job.id, "error": f"Job timed out after {max_age_hours} hours"}]
        job.completed_at = datetime.utcnow()

    if stale_jobs:
        db.commit()
        logger.info(f"Cleaned up {len(stale_jobs)} stale jobs")

    return len(stale_jobs)
