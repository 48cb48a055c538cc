#!/usr/bin/env python3
"""
Seed the university catalogue with a small set of well-known universities.

Existing universities (by duplicate detection) are skipped, so the script
can be rerun safely. CGPA thresholds are given on the 4-point scale and
stored on the 10-point scale.

Usage:
    cd backend
    python scripts/populate_universities.py
    python scripts/populate_universities.py --dry-run
"""

import sys
import argparse
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from eduvox.database import SessionLocal, init_db
from eduvox.models.models import University
from eduvox.services.cgpa import convert_cgpa
from eduvox.services.university_scraper import find_duplicate


SEED_UNIVERSITIES = [
    {
        "name": "Harvard University", "country": "US", "city": "Cambridge", "state_province": "Massachusetts",
        "type": "private", "ranking_overall": 1, "ranking_country": 1,
        "tuition_min": 54000, "tuition_max": 54000, "currency": "USD",
        "cgpa_requirement": 3.9, "ielts_requirement": 7.0, "toefl_requirement": 100, "gre_requirement": 165,
        "programs_offered": ["Computer Science", "Medicine", "Law", "Business", "Engineering"],
        "description": "Harvard University is a private Ivy League research university in Cambridge, Massachusetts.",
        "website_url": "https://www.harvard.edu", "application_deadline": "January 1",
        "acceptance_rate": 3.4, "student_population": 23000, "international_student_percentage": 25,
    },
    {
        "name": "Stanford University", "country": "US", "city": "Stanford", "state_province": "California",
        "type": "private", "ranking_overall": 2, "ranking_country": 2,
        "tuition_min": 56169, "tuition_max": 56169, "currency": "USD",
        "cgpa_requirement": 3.8, "ielts_requirement": 7.0, "toefl_requirement": 100, "gre_requirement": 165,
        "programs_offered": ["Computer Science", "Engineering", "Business", "Medicine"],
        "description": "Stanford University is a private research university in Stanford, California.",
        "website_url": "https://www.stanford.edu", "application_deadline": "January 2",
        "acceptance_rate": 3.9, "student_population": 17000, "international_student_percentage": 23,
    },
    {
        "name": "University of Oxford", "country": "UK", "city": "Oxford", "state_province": "England",
        "type": "public", "ranking_overall": 3, "ranking_country": 1,
        "tuition_min": 30000, "tuition_max": 45000, "currency": "GBP",
        "cgpa_requirement": 3.8, "ielts_requirement": 7.0, "toefl_requirement": 100,
        "programs_offered": ["Medicine", "Law", "Philosophy", "History", "Engineering"],
        "description": "The University of Oxford is the oldest university in the English-speaking world.",
        "website_url": "https://www.ox.ac.uk", "application_deadline": "October 15",
        "acceptance_rate": 17.5, "student_population": 24000, "international_student_percentage": 45,
    },
    {
        "name": "University of Toronto", "country": "Canada", "city": "Toronto", "state_province": "Ontario",
        "type": "public", "ranking_overall": 21, "ranking_country": 1,
        "tuition_min": 25000, "tuition_max": 35000, "currency": "CAD",
        "cgpa_requirement": 3.7, "ielts_requirement": 6.5, "toefl_requirement": 89,
        "programs_offered": ["Engineering", "Medicine", "Business", "Arts & Sciences"],
        "description": "The University of Toronto is a public research university and one of the most prestigious universities in Canada.",
        "website_url": "https://www.utoronto.ca", "application_deadline": "January 13",
        "acceptance_rate": 43.0, "student_population": 97000, "international_student_percentage": 25,
    },
    {
        "name": "University of Melbourne", "country": "Australia", "city": "Melbourne", "state_province": "Victoria",
        "type": "public", "ranking_overall": 33, "ranking_country": 2,
        "tuition_min": 30000, "tuition_max": 40000, "currency": "AUD",
        "cgpa_requirement": 3.4, "ielts_requirement": 6.5, "toefl_requirement": 79,
        "programs_offered": ["Medicine", "Engineering", "Arts", "Sciences", "Business"],
        "description": "The University of Melbourne is a public research university located in Melbourne, Victoria.",
        "website_url": "https://www.unimelb.edu.au", "application_deadline": "October 31",
        "acceptance_rate": 70.0, "student_population": 50000, "international_student_percentage": 45,
    },
]


def populate(dry_run: bool = False) -> dict:
    db = SessionLocal()
    added, skipped = 0, 0
    try:
        for seed in SEED_UNIVERSITIES:
            if find_duplicate(db, seed):
                print(f"  Skipped (exists): {seed['name']}")
                skipped += 1
                continue

            data = dict(seed, cgpa_requirement=convert_cgpa(seed["cgpa_requirement"]))
            if not dry_run:
                db.add(University(
                    **data,
                    admin_approved=True,
                    ai_generated=False,
                    is_verified=True,
                    verification_status="approved",
                    verification_method="admin",
                    verification_date=datetime.utcnow(),
                ))
                db.commit()
            print(f"  Added: {seed['name']}")
            added += 1
    finally:
        db.close()
    return {"added": added, "skipped": skipped}


def main():
    parser = argparse.ArgumentParser(description="Seed the university catalogue")
    parser.add_argument("--dry-run", action="store_true", help="Report what would be added")
    args = parser.parse_args()

    init_db()
    print("Populating universities" + (" (dry run)" if args.dry_run else "") + "...")
    result = populate(dry_run=args.dry_run)
    print(f"Done: {result['added']} added, {result['skipped']} skipped")


if __name__ == "__main__":
    main()
