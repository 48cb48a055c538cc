"""
University Service

Search, admin maintenance, saved lists and student/university matching.
"""

import logging
import math
from datetime import datetime
from typing import Dict, Any, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from eduvox.models.models import University, SavedUniversity

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name", "country", "city", "state_province", "type",
    "ranking_overall", "ranking_country", "tuition_min", "tuition_max", "currency",
    "cgpa_requirement", "ielts_requirement", "toefl_requirement", "gre_requirement",
    "programs_offered", "description", "website_url", "logo_url", "application_deadline",
    "acceptance_rate", "student_population", "international_student_percentage",
)


def university_to_dict(university: University) -> Dict[str, Any]:
    data = {field: getattr(university, field) for field in EDITABLE_FIELDS}
    data.update({
        "id": university.id,
        "rating": university.rating,
        "reviews_count": university.reviews_count,
        "phone_number": university.phone_number,
        "formatted_address": university.formatted_address,
        "photos": university.photos or [],
        "is_verified": bool(university.is_verified),
        "verification_status": university.verification_status,
        "ai_generated": bool(university.ai_generated),
        "created_at": university.created_at.isoformat() if university.created_at else None,
        "updated_at": university.updated_at.isoformat() if university.updated_at else None,
    })
    return data


# =============================================================================
# SEARCH
# =============================================================================

def search_universities(
    db: Session,
    page: int = 1,
    limit: int = 20,
    country: Optional[str] = None,
    state: Optional[str] = None,
    type: Optional[str] = None,
    min_ranking: Optional[int] = None,
    max_ranking: Optional[int] = None,
    min_tuition: Optional[float] = None,
    max_tuition: Optional[float] = None,
    search: Optional[str] = None,
    verified_only: bool = False,
) -> Dict[str, Any]:
    """Filtered, ranking-ordered page of universities plus pagination info."""
    query = db.query(University)

    if country:
        query = query.filter(University.country.ilike(f"%{country}%"))
    if state:
        query = query.filter(University.state_province.ilike(f"%{state}%"))
    if type:
        query = query.filter(University.type == type)
    if min_ranking is not None:
        query = query.filter(University.ranking_overall >= min_ranking)
    if max_ranking is not None:
        query = query.filter(University.ranking_overall <= max_ranking)
    if min_tuition is not None:
        query = query.filter(University.tuition_min >= min_tuition)
    if max_tuition is not None:
        query = query.filter(University.tuition_max <= max_tuition)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(University.name.ilike(pattern), University.city.ilike(pattern)))
    if verified_only:
        query = query.filter(University.is_verified.is_(True))

    total = query.count()
    universities = query.order_by(
        University.ranking_overall.is_(None),
        University.ranking_overall.asc(),
        University.name.asc(),
    ).offset((page - 1) * limit).limit(limit).all()

    return {
        "universities": [university_to_dict(u) for u in universities],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }


def get_university(db: Session, university_id: str) -> Optional[University]:
    return db.query(University).filter(University.id == university_id).first()


# =============================================================================
# ADMIN MAINTENANCE
# =============================================================================

def create_university(db: Session, data: Dict[str, Any], verified: bool = True) -> University:
    university = University(**{k: v for k, v in data.items() if k in EDITABLE_FIELDS})
    university.admin_approved = True
    university.is_verified = verified
    university.verification_status = "approved" if verified else "pending"
    university.verification_method = "admin"
    university.verification_date = datetime.utcnow() if verified else None
    db.add(university)
    db.commit()
    db.refresh(university)
    return university


def update_university(db: Session, university: University, changes: Dict[str, Any]) -> University:
    for field, value in changes.items():
        if field in EDITABLE_FIELDS:
            setattr(university, field, value)
    university.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(university)
    return university


def set_verification(db: Session, university: University, approved: bool) -> University:
    university.is_verified = approved
    university.verification_status = "approved" if approved else "rejected"
    university.verification_method = "admin"
    university.verification_date = datetime.utcnow()
    db.commit()
    db.refresh(university)
    return university


def delete_university(db: Session, university: University) -> None:
    db.delete(university)
    db.commit()


# =============================================================================
# SAVED UNIVERSITIES
# =============================================================================

def save_university(db: Session, user_id: str, university_id: str, notes: Optional[str] = None) -> SavedUniversity:
    """
    Raises:
        LookupError: university does not exist
        ValueError: already saved by this user
    """
    if not get_university(db, university_id):
        raise LookupError("University not found")

    existing = db.query(SavedUniversity).filter(
        SavedUniversity.user_id == user_id,
        SavedUniversity.university_id == university_id,
    ).first()
    if existing:
        raise ValueError("University already saved")

    saved = SavedUniversity(user_id=user_id, university_id=university_id, notes=notes)
    db.add(saved)
    db.commit()
    db.refresh(saved)
    return saved


def list_saved_universities(db: Session, user_id: str) -> List[Dict[str, Any]]:
    rows = db.query(SavedUniversity).filter(
        SavedUniversity.user_id == user_id
    ).order_by(SavedUniversity.saved_at.desc()).all()
    return [
        {
            "id": row.id,
            "university_id": row.university_id,
            "notes": row.notes,
            "saved_at": row.saved_at.isoformat() if row.saved_at else None,
            "university": university_to_dict(row.university),
        }
        for row in rows
    ]


def remove_saved_university(db: Session, user_id: str, saved_id: str) -> bool:
    saved = db.query(SavedUniversity).filter(
        SavedUniversity.id == saved_id,
        SavedUniversity.user_id == user_id,
    ).first()
    if not saved:
        return False
    db.delete(saved)
    db.commit()
    return True


# =============================================================================
# MATCHING
# =============================================================================

def _ratio_points(value: Optional[float], requirement: Optional[float], bands) -> Optional[int]:
    if not value or not requirement:
        return None
    ratio = value / requirement
    for threshold, points in bands:
        if ratio >= threshold:
            return points
    return 0


def calculate_match_score(student: Dict[str, Any], university: University) -> Dict[str, Any]:
    """
    Weighted fit of a student profile against a university.

    Weights: CGPA 40, English 30, budget 20, GRE 10. Criteria the university
    publishes no threshold for are left out of the denominator, except
    English which always counts.
    """
    score = 0
    max_score = 0

    cgpa_points = _ratio_points(student.get("cgpa"), university.cgpa_requirement, [(1, 40), (0.9, 30), (0.8, 20)])
    if cgpa_points is not None:
        max_score += 40
        score += cgpa_points

    max_score += 30
    english_points = max(
        _ratio_points(student.get("ielts_score"), university.ielts_requirement, [(1, 30), (0.9, 20), (0.8, 10)]) or 0,
        _ratio_points(student.get("toefl_score"), university.toefl_requirement, [(1, 30), (0.9, 20), (0.8, 10)]) or 0,
    )
    score += english_points

    budget_max = student.get("budget_max")
    if budget_max and university.tuition_min:
        max_score += 20
        if budget_max >= (university.tuition_max or university.tuition_min):
            score += 20
        elif budget_max >= university.tuition_min:
            score += 10

    gre_points = _ratio_points(student.get("gre_score"), university.gre_requirement, [(1, 10), (0.9, 5)])
    if gre_points is not None:
        max_score += 10
        score += gre_points

    percentage = score / max_score * 100 if max_score else 0
    if percentage >= 80:
        category = "safety"
    elif percentage >= 60:
        category = "target"
    else:
        category = "ambitious"

    english_match = None
    if university.ielts_requirement and student.get("ielts_score"):
        english_match = student["ielts_score"] >= university.ielts_requirement
    if university.toefl_requirement and student.get("toefl_score"):
        english_match = bool(english_match) or student["toefl_score"] >= university.toefl_requirement

    return {
        "score": round(percentage),
        "category": category,
        "details": {
            "cgpa_match": student["cgpa"] >= university.cgpa_requirement
            if student.get("cgpa") and university.cgpa_requirement else None,
            "english_match": english_match,
            "budget_match": budget_max >= university.tuition_min
            if budget_max and university.tuition_min else None,
            "gre_match": student["gre_score"] >= university.gre_requirement
            if student.get("gre_score") and university.gre_requirement else None,
        },
    }


def _offers_field(university: University, fields: List[str]) -> bool:
    programs = [p.lower() for p in university.programs_offered or []]
    wanted = [f.lower() for f in fields]
    return any(f in p or p in f for p in programs for f in wanted)


def match_universities(db: Session, student: Dict[str, Any], limit: int = 50) -> List[Dict[str, Any]]:
    """Score every university for a student, filter by preferences, best first."""
    query = db.query(University)
    countries = student.get("preferred_countries") or []
    if countries:
        query = query.filter(University.country.in_(countries))

    fields = student.get("preferred_fields") or []
    matches = []
    for university in query.all():
        if fields and not _offers_field(university, fields):
            continue
        matches.append({
            "university": university_to_dict(university),
            "match": calculate_match_score(student, university),
        })

    matches.sort(key=lambda m: m["match"]["score"], reverse=True)
    return matches[:limit]


# =============================================================================
# COMPARISON
# =============================================================================

COMPARISON_FIELDS = (
    "country", "city", "type", "ranking_overall", "tuition_min", "tuition_max", "currency",
    "cgpa_requirement", "ielts_requirement", "toefl_requirement", "gre_requirement",
    "acceptance_rate", "international_student_percentage", "application_deadline", "rating",
)
MAX_COMPARE = 4


def compare_universities(db: Session, university_ids: List[str], student: Dict[str, Any]) -> Dict[str, Any]:
    """
    Side-by-side view of up to MAX_COMPARE universities in request order,
    each with the student's match score.

    Raises ValueError for too few/many ids and LookupError for unknown ones.
    """
    ids = list(dict.fromkeys(university_ids))
    if len(ids) < 2 or len(ids) > MAX_COMPARE:
        raise ValueError(f"Compare between 2 and {MAX_COMPARE} different universities")

    found = {u.id: u for u in db.query(University).filter(University.id.in_(ids)).all()}
    missing = [uid for uid in ids if uid not in found]
    if missing:
        raise LookupError(f"University not found: {', '.join(missing)}")

    ordered = [found[uid] for uid in ids]
    return {
        "universities": [
            {
                "id": u.id,
                "name": u.name,
                "match": calculate_match_score(student, u),
            }
            for u in ordered
        ],
        "comparison": {field: [getattr(u, field) for u in ordered] for field in COMPARISON_FIELDS},
    }
