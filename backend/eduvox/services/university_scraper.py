"""
University Scraper and Duplicate Detection

Adds seed universities enriched with Google Places data, refreshes Places
fields on existing rows, and merges duplicate rows. Scrapes are generators
of ScrapeProgress so the caller controls reporting and cancellation.
"""

import logging
import os
import random
import re
import time
from datetime import datetime
from typing import Iterator, Optional, List, Dict, Any, Callable

from sqlalchemy.orm import Session

from eduvox.models.models import University
from eduvox.schemas.scraping import ScrapeProgress
from eduvox.services.cgpa import convert_cgpa
from eduvox.utils.places_client import PlacesClient, PlacesAPIError

logger = logging.getLogger(__name__)

UNIVERSITY_SCRAPE_DELAY_SECONDS = float(os.getenv("UNIVERSITY_SCRAPE_DELAY_SECONDS", "1"))

DUPLICATE_SIMILARITY_THRESHOLD = 0.85

# Rankings for newly scraped seeds continue after the original catalogue
FIRST_SCRAPED_RANKING = 37

NAME_ABBREVIATIONS = {
    "univ": "university",
    "uni": "university",
    "inst": "institute",
    "tech": "technology",
    "coll": "college",
    "st": "saint",
    "&": "and",
}

ADDITIONAL_UNIVERSITIES = [
    {"name": "Cornell University", "country": "US", "city": "Ithaca", "state": "New York"},
    {"name": "Carnegie Mellon University", "country": "US", "city": "Pittsburgh", "state": "Pennsylvania"},
    {"name": "University of California, Berkeley", "country": "US", "city": "Berkeley", "state": "California"},
    {"name": "University of California, Los Angeles", "country": "US", "city": "Los Angeles", "state": "California"},
    {"name": "Johns Hopkins University", "country": "US", "city": "Baltimore", "state": "Maryland"},
    {"name": "University of Michigan", "country": "US", "city": "Ann Arbor", "state": "Michigan"},
    {"name": "New York University", "country": "US", "city": "New York", "state": "New York"},
    {"name": "Duke University", "country": "US", "city": "Durham", "state": "North Carolina"},
    {"name": "Brown University", "country": "US", "city": "Providence", "state": "Rhode Island"},
    {"name": "Dartmouth College", "country": "US", "city": "Hanover", "state": "New Hampshire"},
    {"name": "University of St Andrews", "country": "UK", "city": "St Andrews", "state": "Scotland"},
    {"name": "University of Bath", "country": "UK", "city": "Bath", "state": "England"},
    {"name": "University of Durham", "country": "UK", "city": "Durham", "state": "England"},
    {"name": "University of Exeter", "country": "UK", "city": "Exeter", "state": "England"},
    {"name": "University of York", "country": "UK", "city": "York", "state": "England"},
    {"name": "University of Glasgow", "country": "UK", "city": "Glasgow", "state": "Scotland"},
    {"name": "University of Southampton", "country": "UK", "city": "Southampton", "state": "England"},
    {"name": "University of Birmingham", "country": "UK", "city": "Birmingham", "state": "England"},
    {"name": "University of Sheffield", "country": "UK", "city": "Sheffield", "state": "England"},
    {"name": "University of Nottingham", "country": "UK", "city": "Nottingham", "state": "England"},
    {"name": "Simon Fraser University", "country": "Canada", "city": "Burnaby", "state": "British Columbia"},
    {"name": "University of Ottawa", "country": "Canada", "city": "Ottawa", "state": "Ontario"},
    {"name": "Western University", "country": "Canada", "city": "London", "state": "Ontario"},
    {"name": "York University", "country": "Canada", "city": "Toronto", "state": "Ontario"},
    {"name": "Concordia University", "country": "Canada", "city": "Montreal", "state": "Quebec"},
    {"name": "University of Victoria", "country": "Canada", "city": "Victoria", "state": "British Columbia"},
    {"name": "Carleton University", "country": "Canada", "city": "Ottawa", "state": "Ontario"},
    {"name": "Dalhousie University", "country": "Canada", "city": "Halifax", "state": "Nova Scotia"},
    {"name": "University of Technology Sydney", "country": "Australia", "city": "Sydney", "state": "New South Wales"},
    {"name": "Macquarie University", "country": "Australia", "city": "Sydney", "state": "New South Wales"},
    {"name": "Griffith University", "country": "Australia", "city": "Brisbane", "state": "Queensland"},
    {"name": "Deakin University", "country": "Australia", "city": "Melbourne", "state": "Victoria"},
    {"name": "Queensland University of Technology", "country": "Australia", "city": "Brisbane", "state": "Queensland"},
    {"name": "University of Wollongong", "country": "Australia", "city": "Wollongong", "state": "New South Wales"},
    {"name": "Curtin University", "country": "Australia", "city": "Perth", "state": "Western Australia"},
    {"name": "University of Tasmania", "country": "Australia", "city": "Hobart", "state": "Tasmania"},
]


# =============================================================================
# DUPLICATE DETECTION
# =============================================================================

def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """1.0 for identical strings, 0.0 for nothing in common."""
    a, b = a.strip().lower(), b.strip().lower()
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - levenshtein_distance(a, b) / longest


def normalize_name(name: str) -> str:
    """
    >>> normalize_name("Harvard Univ.")
    'harvard university'
    """
    tokens = re.findall(r"[a-z0-9&]+", (name or "").lower())
    return " ".join(NAME_ABBREVIATIONS.get(token, token) for token in tokens)


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


def is_duplicate(candidate: Dict[str, Any], existing: Dict[str, Any]) -> bool:
    """
    Exact name match (case-insensitive), or near-identical normalised names
    in the same city and country.
    """
    if _same(candidate.get("name"), existing.get("name")):
        return True
    if not (_same(candidate.get("city"), existing.get("city")) and _same(candidate.get("country"), existing.get("country"))):
        return False
    score = similarity(normalize_name(candidate.get("name")), normalize_name(existing.get("name")))
    return score > DUPLICATE_SIMILARITY_THRESHOLD


def _as_record(university: University) -> Dict[str, Any]:
    return {"name": university.name, "city": university.city, "country": university.country}


def find_duplicate(db: Session, candidate: Dict[str, Any]) -> Optional[University]:
    for university in db.query(University).all():
        if is_duplicate(candidate, _as_record(university)):
            return university
    return None


COMPLETENESS_FIELDS = (
    "city", "state_province", "type", "ranking_overall", "tuition_min", "tuition_max",
    "cgpa_requirement", "ielts_requirement", "toefl_requirement", "gre_requirement",
    "programs_offered", "description", "website_url", "logo_url", "application_deadline",
    "acceptance_rate", "student_population", "international_student_percentage",
    "place_id", "rating", "phone_number", "formatted_address", "photos",
)


def completeness_score(university: University) -> int:
    return sum(1 for field in COMPLETENESS_FIELDS if getattr(university, field) not in (None, "", [], {}))


def _move_saved_entries(db: Session, duplicates: List[University], keeper: University) -> int:
    """
    Point users' saves of the duplicates at the keeper before the duplicates
    are deleted. A user who already saved the keeper keeps that one entry.
    """
    saved_user_ids = {saved.user_id for saved in keeper.saved_by}
    moved = 0
    for duplicate in duplicates:
        for saved in list(duplicate.saved_by):
            if saved.user_id in saved_user_ids:
                continue
            saved.university = keeper
            saved_user_ids.add(saved.user_id)
            moved += 1
    db.flush()
    return moved


def merge_duplicate_universities(db: Session, dry_run: bool = False) -> Dict[str, Any]:
    """
    Group duplicate rows and keep the most complete row of each group.

    Groups are built greedily in creation order: each row joins the first
    group whose keeper it duplicates.
    """
    groups: List[List[University]] = []
    for university in db.query(University).order_by(University.created_at.asc()).all():
        for group in groups:
            if is_duplicate(_as_record(university), _as_record(group[0])):
                group.append(university)
                break
        else:
            groups.append([university])

    merged_groups = []
    removed = 0
    saves_moved = 0
    for group in groups:
        if len(group) < 2:
            continue
        keeper = max(group, key=completeness_score)
        duplicates = [u for u in group if u.id != keeper.id]
        merged_groups.append({
            "kept": {"id": keeper.id, "name": keeper.name},
            "removed": [{"id": u.id, "name": u.name} for u in duplicates],
        })
        removed += len(duplicates)
        if not dry_run:
            saves_moved += _move_saved_entries(db, duplicates, keeper)
            for duplicate in duplicates:
                db.delete(duplicate)

    if not dry_run:
        db.commit()

    logger.info("Duplicate merge%s: %d groups, %d rows removed", " (dry run)" if dry_run else "", len(merged_groups), removed)
    return {
        "groups": merged_groups,
        "groups_found": len(merged_groups),
        "removed": removed,
        "saves_moved": saves_moved,
        "dry_run": dry_run,
    }


# =============================================================================
# GENERATED UNIVERSITY DATA
# =============================================================================

TUITION_RANGES = {
    "US": (35000, 75000),
    "UK": (25000, 50000),
    "Canada": (20000, 45000),
    "Australia": (28000, 55000),
}
COUNTRY_CURRENCIES = {"US": "USD", "UK": "GBP", "Canada": "CAD", "Australia": "AUD"}
COUNTRY_RANKING_FACTORS = {"US": 0.3, "UK": 0.4, "Canada": 0.6, "Australia": 0.7}
INTERNATIONAL_PERCENTAGES = {"US": 15, "UK": 35, "Canada": 25, "Australia": 40}
APPLICATION_DEADLINES = {
    "US": ["January 1", "January 15", "February 1", "March 1"],
    "UK": ["January 15", "January 31", "March 31", "June 30"],
    "Canada": ["January 15", "February 1", "March 1", "April 1"],
    "Australia": ["October 31", "December 1", "February 28", "May 31"],
}
PROGRAMS = [
    "Computer Science", "Engineering", "Business", "Medicine",
    "Law", "Arts & Sciences", "Economics", "Physics",
    "Psychology", "Biology", "Mathematics", "Chemistry",
]
DESCRIPTION_TEMPLATES = [
    "{name} is a prestigious {type} research university located in {city}, {country}.",
    "{name} is a leading {type} university in {city}, {country}, known for its academic excellence.",
    "Established as one of the top {type} institutions, {name} in {city}, {country} offers world-class education.",
    "{name} stands as a premier {type} research university in {city}, {country}.",
]


def _cgpa_four_point(ranking: int, rng: random.Random) -> float:
    if ranking <= 10:
        return 3.8 + rng.random() * 0.2
    if ranking <= 25:
        return 3.6 + rng.random() * 0.3
    if ranking <= 50:
        return 3.4 + rng.random() * 0.3
    return 3.0 + rng.random() * 0.4


def _ielts(ranking: int, rng: random.Random) -> float:
    if ranking <= 25:
        base = 7.0
    elif ranking <= 50:
        base = 6.5
    else:
        base = 6.0
    return round(base + rng.random() * 0.5, 1)


def _toefl(ranking: int, rng: random.Random) -> int:
    if ranking <= 25:
        return 100 + rng.randrange(10)
    if ranking <= 50:
        return 90 + rng.randrange(15)
    return 80 + rng.randrange(15)


def _acceptance_rate(ranking: int, rng: random.Random) -> float:
    if ranking <= 10:
        value = 3 + rng.random() * 7
    elif ranking <= 25:
        value = 8 + rng.random() * 12
    elif ranking <= 50:
        value = 15 + rng.random() * 20
    else:
        value = 25 + rng.random() * 30
    return round(value, 1)


def generate_university_data(
    seed: Dict[str, Any],
    ranking: int,
    details: Optional[Dict[str, Any]] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Build a full University row from a seed (name, country, city, state).

    Figures are estimated from ranking and country; Places ``details`` fill
    in contact data when available.
    """
    rng = rng or random.Random()
    country = seed["country"]
    is_private = rng.random() > 0.6
    kind = "private" if is_private else "public"

    range_min, _ = TUITION_RANGES.get(country, TUITION_RANGES["US"])
    tuition_min = range_min + rng.randrange(15000)
    tuition_max = tuition_min + rng.randrange(20000)

    programs = list(PROGRAMS)
    rng.shuffle(programs)

    slug = re.sub(r"[^a-z0-9]", "", seed["name"].lower())
    logo_slug = re.sub(r"[^a-z0-9]", "-", seed["name"].lower())
    details = details or {}

    return {
        "name": seed["name"],
        "country": country,
        "city": seed.get("city"),
        "state_province": seed.get("state"),
        "type": kind,
        "ranking_overall": ranking,
        "ranking_country": max(1, int(ranking * COUNTRY_RANKING_FACTORS.get(country, 0.5))),
        "tuition_min": tuition_min,
        "tuition_max": tuition_max,
        "currency": COUNTRY_CURRENCIES.get(country, "USD"),
        "cgpa_requirement": convert_cgpa(_cgpa_four_point(ranking, rng)),
        "ielts_requirement": _ielts(ranking, rng),
        "toefl_requirement": _toefl(ranking, rng),
        "gre_requirement": 155 + rng.randrange(15) if ranking <= 30 else None,
        "programs_offered": programs[:5],
        "description": rng.choice(DESCRIPTION_TEMPLATES).format(
            name=seed["name"], type=kind, city=seed.get("city"), country=country
        ),
        "website_url": details.get("website_url") or f"https://www.{slug}.edu",
        "logo_url": f"https://logo.clearbit.com/{logo_slug}.edu",
        "application_deadline": rng.choice(APPLICATION_DEADLINES.get(country, APPLICATION_DEADLINES["US"])),
        "acceptance_rate": _acceptance_rate(ranking, rng),
        "student_population": (15000 + rng.randrange(10000)) if is_private else (35000 + rng.randrange(25000)),
        "international_student_percentage": INTERNATIONAL_PERCENTAGES.get(country, 20) + rng.randrange(15),
        "place_id": details.get("place_id"),
        "rating": details.get("rating"),
        "reviews_count": details.get("reviews_count"),
        "phone_number": details.get("phone_number"),
        "formatted_address": details.get("formatted_address"),
        "photos": details.get("photos") or [],
        "google_data": details or None,
    }


# =============================================================================
# SCRAPING
# =============================================================================

def _lookup_places(places: PlacesClient, name: str, city: Optional[str], country: Optional[str]) -> Optional[Dict[str, Any]]:
    try:
        return places.find_university(name, city, country)
    except PlacesAPIError as e:
        logger.warning("Places lookup failed for %s: %s", name, e)
        return None


def iter_scrape_new_universities(
    db: Session,
    places: PlacesClient,
    seeds: Optional[List[Dict[str, Any]]] = None,
    first_ranking: int = FIRST_SCRAPED_RANKING,
    delay_seconds: float = UNIVERSITY_SCRAPE_DELAY_SECONDS,
    should_cancel: Callable[[], bool] = lambda: False,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[random.Random] = None,
) -> Iterator[ScrapeProgress]:
    """Add each seed that is not already in the catalogue."""
    seeds = ADDITIONAL_UNIVERSITIES if seeds is None else seeds
    rng = rng or random.Random()
    progress = ScrapeProgress(status="started", total=len(seeds))
    yield progress.model_copy()

    for index, seed in enumerate(seeds):
        if should_cancel():
            progress.status = "cancelled"
            progress.outcome = None
            yield progress.model_copy(deep=True)
            return

        progress.status = "running"
        progress.current_item = seed["name"]

        if find_duplicate(db, seed):
            logger.info("Skipping duplicate university %s", seed["name"])
            progress.skipped += 1
            progress.outcome = "skipped"
        else:
            try:
                details = _lookup_places(places, seed["name"], seed.get("city"), seed.get("country"))
                data = generate_university_data(seed, first_ranking + index, details, rng)
                university = University(
                    **data,
                    admin_approved=True,
                    ai_generated=True,
                    is_verified=False,
                    verification_status="pending",
                    verification_method="scraper",
                    scraped_at=datetime.utcnow(),
                )
                db.add(university)
                db.commit()
                progress.successful += 1
                progress.outcome = "successful"
            except Exception as e:
                db.rollback()
                progress.failed += 1
                progress.outcome = "failed"
                progress.errors.append({"id": seed["name"], "error": str(e)})
                logger.warning("Failed to add university %s: %s", seed["name"], e)

            if delay_seconds > 0:
                sleep(delay_seconds)

        progress.completed += 1
        yield progress.model_copy(deep=True)

    progress.status = "completed"
    progress.current_item = None
    progress.outcome = None
    progress.message = f"{progress.successful} added, {progress.failed} failed, {progress.skipped} duplicates skipped"
    yield progress.model_copy(deep=True)


PLACES_FIELDS = ("place_id", "rating", "reviews_count", "phone_number", "formatted_address", "photos")


def iter_update_existing_universities(
    db: Session,
    places: PlacesClient,
    limit: Optional[int] = None,
    delay_seconds: float = UNIVERSITY_SCRAPE_DELAY_SECONDS,
    should_cancel: Callable[[], bool] = lambda: False,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[ScrapeProgress]:
    """Refresh Places fields on every stored university."""
    query = db.query(University).order_by(University.name.asc())
    if limit:
        query = query.limit(limit)
    universities = query.all()

    progress = ScrapeProgress(status="started", total=len(universities))
    yield progress.model_copy()

    for university in universities:
        if should_cancel():
            progress.status = "cancelled"
            progress.outcome = None
            yield progress.model_copy(deep=True)
            return

        progress.status = "running"
        progress.current_item = university.name

        try:
            details = places.find_university(university.name, university.city, university.country)
            if not details:
                logger.warning("No Places data found for %s", university.name)
                progress.skipped += 1
                progress.outcome = "skipped"
            else:
                for field in PLACES_FIELDS:
                    if details.get(field) is not None:
                        setattr(university, field, details[field])
                university.website_url = details.get("website_url") or university.website_url
                university.google_data = details
                university.scraped_at = datetime.utcnow()
                db.commit()
                progress.successful += 1
                progress.outcome = "successful"
        except Exception as e:
            db.rollback()
            progress.failed += 1
            progress.outcome = "failed"
            progress.errors.append({"id": university.id, "error": str(e)})
            logger.warning("Failed to update university %s: %s", university.name, e)

        if delay_seconds > 0:
            sleep(delay_seconds)

        progress.completed += 1
        yield progress.model_copy(deep=True)

    progress.status = "completed"
    progress.current_item = None
    progress.outcome = None
    progress.message = f"{progress.successful} updated, {progress.failed} failed, {progress.skipped} without data"
    yield progress.model_copy(deep=True)


def drain(events: Iterator[ScrapeProgress]) -> ScrapeProgress:
    """Run a scrape to the end and return its final event."""
    final = None
    for final in events:
        pass
    return final
