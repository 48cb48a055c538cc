"""
Service factories for FastAPI dependency injection.

Routers receive service objects through these functions, so tests replace
a collaborator with ``app.dependency_overrides`` instead of patching
module globals.
"""

from typing import Iterator

from fastapi import Depends
from sqlalchemy.orm import Session

from eduvox.database import get_db
from eduvox.services.currency import CurrencyService
from eduvox.services.pathway_generator import PathwayGenerator
from eduvox.services.pathway_resolver import PathwayResolver
from eduvox.utils.places_client import PlacesClient


def get_pathway_generator() -> PathwayGenerator:
    return PathwayGenerator()


def get_pathway_resolver(
    db: Session = Depends(get_db),
    generator: PathwayGenerator = Depends(get_pathway_generator)
) -> PathwayResolver:
    return PathwayResolver(db, generator=generator)


def get_currency_service(db: Session = Depends(get_db)) -> Iterator[CurrencyService]:
    service = CurrencyService(db)
    try:
        yield service
    finally:
        service.close()


def get_places_client() -> Iterator[PlacesClient]:
    client = PlacesClient()
    try:
        yield client
    finally:
        client.close()
