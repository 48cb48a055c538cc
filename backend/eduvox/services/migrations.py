"""
Record Migrations

Versioned data migrations applied at startup after ``create_all``. Each
migration is a named function taking a session and returning a details
dict; applied names are recorded in ``schema_migrations`` and never rerun.
Migrations must be safe to run against rows they have already touched.
"""

import logging
from datetime import datetime
from typing import Dict, Any, List, Callable, Tuple

from sqlalchemy.orm import Session

from eduvox.models.models import University, PathwayTemplate, SchemaMigration
from eduvox.services.pathway_generator import payload_to_pathway, PathwayGenerationError
from eduvox.services.pathway_resolver import (
    TEMPLATE_VERSION,
    template_profile,
    pathway_to_template_data,
)

logger = logging.getLogger(__name__)


# =============================================================================
# UNIVERSITY VERIFICATION
# =============================================================================

def migrate_verification_status(db: Session, dry_run: bool = False) -> Dict[str, Any]:
    """
    Mark every never-reviewed university as verified.

    Rows created before verification existed have ``is_verified`` NULL and
    are approved with method "migration". Reviewed rows are left alone.
    """
    universities = db.query(University).all()
    stats = {"total": len(universities), "updated": 0, "skipped": 0, "errors": 0, "dry_run": dry_run}
    now = datetime.utcnow()

    for university in universities:
        if university.is_verified is not None:
            stats["skipped"] += 1
            continue
        try:
            if not dry_run:
                university.is_verified = True
                university.verification_status = "approved"
                university.verification_method = "migration"
                university.verification_date = now
                db.flush()
            stats["updated"] += 1
        except Exception as e:
            stats["errors"] += 1
            logger.error("Failed to migrate verification for %s: %s", university.id, e)

    if dry_run:
        db.rollback()
    else:
        db.commit()

    logger.info(
        "Verification migration: %d updated, %d skipped, %d errors",
        stats["updated"], stats["skipped"], stats["errors"],
    )
    return stats


def check_verification_status(db: Session) -> Dict[str, int]:
    universities = db.query(University.is_verified, University.verification_status).all()
    return {
        "total": len(universities),
        "verified": sum(1 for u in universities if u.is_verified is True),
        "unverified": sum(1 for u in universities if u.is_verified is False),
        "never_reviewed": sum(1 for u in universities if u.is_verified is None),
        "pending": sum(1 for u in universities if u.verification_status == "pending"),
        "rejected": sum(1 for u in universities if u.verification_status == "rejected"),
    }


# =============================================================================
# PATHWAY TEMPLATES
# =============================================================================

def migrate_pathway_templates(db: Session) -> Dict[str, Any]:
    """
    Bring templates up to the current stored shape.

    Version 1.0 templates hold the model's raw camelCase payload without
    ``steps``; these are normalised through the generator's payload mapping.
    Payloads that cannot be normalised are marked ``invalid`` so the
    resolver stops serving them.
    """
    stats = {"total": 0, "migrated": 0, "invalid": 0, "skipped": 0}

    for template in db.query(PathwayTemplate).all():
        stats["total"] += 1
        if template.version == TEMPLATE_VERSION:
            stats["skipped"] += 1
            continue

        data = template.data or {}
        if isinstance(data.get("steps"), list) and data["steps"]:
            template.version = TEMPLATE_VERSION
            stats["migrated"] += 1
            continue

        try:
            pathway = payload_to_pathway(template_profile(template), data)
        except (PathwayGenerationError, ValueError) as e:
            logger.warning("Template %s cannot be migrated: %s", template.id, e)
            template.status = "invalid"
            stats["invalid"] += 1
            continue

        template.data = pathway_to_template_data(pathway)
        template.kind = pathway.kind.value
        template.version = TEMPLATE_VERSION
        stats["migrated"] += 1

    db.commit()
    return stats


def _verification_migration(db: Session) -> Dict[str, Any]:
    return migrate_verification_status(db)


MIGRATIONS: List[Tuple[str, Callable[[Session], Dict[str, Any]]]] = [
    ("0001_university_verification_status", _verification_migration),
    ("0002_pathway_templates_v2", migrate_pathway_templates),
]


def get_applied_migrations(db: Session) -> List[str]:
    return [row.name for row in db.query(SchemaMigration.name).all()]


def run_pending_migrations(db: Session) -> List[str]:
    """Apply migrations not yet recorded, in order. Returns the names applied."""
    applied = set(get_applied_migrations(db))
    newly_applied = []

    for name, migration in MIGRATIONS:
        if name in applied:
            continue
        logger.info("Applying migration %s", name)
        details = migration(db)
        db.add(SchemaMigration(name=name, details=details, applied_at=datetime.utcnow()))
        db.commit()
        newly_applied.append(name)

    return newly_applied
