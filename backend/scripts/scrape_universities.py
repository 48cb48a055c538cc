#!/usr/bin/env python3
"""
Add seed universities from Google Places, refresh Places data on existing
universities, or merge duplicate records.

Environment Variables:
    GOOGLE_PLACES_API_KEY: Places API key (not needed behind a proxy)
    PLACES_API_BASE_URL: Places API or proxy base URL
    UNIVERSITY_SCRAPE_DELAY_SECONDS: Pause after each lookup (default: 1)

Usage:
    cd backend
    python scripts/scrape_universities.py new
    python scripts/scrape_universities.py update --limit 20
    python scripts/scrape_universities.py dedupe --dry-run
"""

import sys
import argparse
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from eduvox.database import SessionLocal, init_db
from eduvox.services.university_scraper import (
    iter_scrape_new_universities,
    iter_update_existing_universities,
    merge_duplicate_universities,
)
from eduvox.utils.places_client import PlacesClient


def print_progress(events):
    final = None
    for final in events:
        if final.outcome:
            print(f"[{final.completed}/{final.total}] {final.outcome}: {final.current_item}")
    return final


def main():
    parser = argparse.ArgumentParser(description="University scraping and maintenance")
    parser.add_argument("action", choices=["new", "update", "dedupe"])
    parser.add_argument("--limit", type=int, default=None, help="Update at most this many universities")
    parser.add_argument("--dry-run", action="store_true", help="Dedupe only: report without deleting")
    args = parser.parse_args()

    init_db()
    db = SessionLocal()
    try:
        if args.action == "dedupe":
            result = merge_duplicate_universities(db, dry_run=args.dry_run)
            for group in result["groups"]:
                removed = ", ".join(r["name"] for r in group["removed"])
                print(f"Keep {group['kept']['name']}; remove {removed}")
            print(f"{result['groups_found']} duplicate groups, {result['removed']} rows removed")
            return

        places = PlacesClient()
        try:
            if args.action == "new":
                final = print_progress(iter_scrape_new_universities(db, places))
            else:
                final = print_progress(iter_update_existing_universities(db, places, limit=args.limit))
        finally:
            places.close()
    finally:
        db.close()

    print(final.message)
    for error in final.errors:
        print(f"  {error['id']}: {error['error']}")


if __name__ == "__main__":
    main()
