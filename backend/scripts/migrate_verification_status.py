#!/usr/bin/env python3
"""
Mark never-reviewed universities as verified.

Universities added before admin verification existed have no verification
state; they are approved with method "migration". Normally applied once at
startup by the record migrations, this script reruns it on demand.

Usage:
    cd backend
    python scripts/migrate_verification_status.py --check
    python scripts/migrate_verification_status.py --dry-run
    python scripts/migrate_verification_status.py
"""

import sys
import argparse
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from eduvox.database import SessionLocal, init_db
from eduvox.services.migrations import migrate_verification_status, check_verification_status


def main():
    parser = argparse.ArgumentParser(description="Migrate university verification status")
    parser.add_argument("--dry-run", action="store_true", help="Count rows without writing")
    parser.add_argument("--check", action="store_true", help="Only print the current status breakdown")
    args = parser.parse_args()

    init_db()
    db = SessionLocal()
    try:
        if not args.check:
            stats = migrate_verification_status(db, dry_run=args.dry_run)
            print(f"Updated: {stats['updated']}  Skipped: {stats['skipped']}  Errors: {stats['errors']}")
        status = check_verification_status(db)
    finally:
        db.close()

    for key, value in status.items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
