"""
Row factories shared by fixtures and tests.
"""

from sqlalchemy.orm import Session

from eduvox.models.models import University


def make_university(db: Session, **overrides) -> University:
    """Insert a verified University; defaults describe the University of Toronto."""
    fields = {
        "name": "University of Toronto",
        "country": "Canada",
        "city": "Toronto",
        "state_province": "Ontario",
        "type": "public",
        "ranking_overall": 21,
        "tuition_min": 25000,
        "tuition_max": 35000,
        "currency": "CAD",
        "cgpa_requirement": 9.25,
        "ielts_requirement": 6.5,
        "toefl_requirement": 89,
        "programs_offered": ["Computer Science", "Engineering", "Business"],
        "is_verified": True,
        "verification_status": "approved",
    }
    fields.update(overrides)
    university = University(**fields)
    db.add(university)
    db.commit()
    db.refresh(university)
    return university
