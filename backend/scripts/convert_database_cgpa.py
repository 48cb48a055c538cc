#!/usr/bin/env python3
"""
Convert stored CGPA values from the 4-point to the 10-point scale.

Touches universities.cgpa_requirement and academic_profiles.cgpa. Values
already above 4.0 are left alone, so the script is safe to rerun.

Usage:
    cd backend
    python scripts/convert_database_cgpa.py --dry-run
    python scripts/convert_database_cgpa.py
"""

import sys
import argparse
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from eduvox.database import SessionLocal, init_db
from eduvox.services.cgpa import convert_database_cgpa


def main():
    parser = argparse.ArgumentParser(description="Convert 4-point CGPAs to the 10-point scale")
    parser.add_argument("--dry-run", action="store_true", help="Count conversions without writing")
    args = parser.parse_args()

    init_db()
    db = SessionLocal()
    try:
        result = convert_database_cgpa(db, dry_run=args.dry_run)
    finally:
        db.close()

    label = "Would convert" if args.dry_run else "Converted"
    for table in ("universities", "academic_profiles"):
        stats = result[table]
        print(f"{table}: {label} {stats['converted']} of {stats['total']} ({stats['skipped']} already 10-point or empty)")


if __name__ == "__main__":
    main()
