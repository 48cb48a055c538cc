#!/usr/bin/env python3
"""
Pre-generate pathway templates for profile combinations.

With no filters this walks every country x course x level x budget x
nationality combination, which takes days at the default delay. Use the
filters and --limit for partial runs. Existing templates are skipped.

Environment Variables:
    GEMINI_API_KEY: Required for generation
    PATHWAY_SCRAPE_DELAY_SECONDS: Pause after each model call (default: 2)

Usage:
    cd backend
    python scripts/scrape_pathways.py --country Canada --course "Computer Science" --limit 10
    python scripts/scrape_pathways.py --stats
"""

import sys
import argparse
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from eduvox.database import SessionLocal, init_db
from eduvox.services.pathway_generator import PathwayGenerator
from eduvox.services.pathway_scraper import generate_profiles, iter_pathway_scrape, get_scraping_stats


def main():
    parser = argparse.ArgumentParser(description="Bulk pathway template generation")
    parser.add_argument("--country", action="append", help="Repeatable")
    parser.add_argument("--course", action="append", help="Repeatable")
    parser.add_argument("--level", action="append", help="Repeatable")
    parser.add_argument("--budget", action="append", help="Repeatable budget range name")
    parser.add_argument("--nationality", action="append", help="Repeatable")
    parser.add_argument("--limit", type=int, default=None, help="Stop after this many combinations")
    parser.add_argument("--stats", action="store_true", help="Print template coverage and exit")
    args = parser.parse_args()

    init_db()
    db = SessionLocal()
    try:
        if args.stats:
            for key, value in get_scraping_stats(db).items():
                print(f"{key}: {value}")
            return

        profiles = generate_profiles(args.country, args.course, args.level, args.budget, args.nationality)
        if args.limit:
            profiles = profiles[:args.limit]
        print(f"Generating {len(profiles)} pathway combinations...")

        final = None
        for final in iter_pathway_scrape(db, profiles, PathwayGenerator()):
            if final.outcome:
                print(f"[{final.progress_percent:5.1f}%] {final.outcome}: {final.current_item}")
    except KeyboardInterrupt:
        print("\nInterrupted; completed templates are kept")
        return
    finally:
        db.close()

    print(final.message)


if __name__ == "__main__":
    main()
