"""
Google Places API (v1) client used by the university scraper.

Requests go to PLACES_API_BASE_URL, which defaults to Google but can point
at a proxy that forwards to Google with the key attached server side.
"""

import os
import logging
from typing import Optional, Dict, Any, List

import httpx

logger = logging.getLogger(__name__)

PLACES_API_BASE_URL = os.getenv("PLACES_API_BASE_URL", "https://places.googleapis.com/v1")

SEARCH_FIELD_MASK = (
    "places.id,places.displayName,places.formattedAddress,places.websiteUri,"
    "places.rating,places.nationalPhoneNumber,places.photos"
)
DETAILS_FIELD_MASK = (
    "id,displayName,formattedAddress,websiteUri,rating,nationalPhoneNumber,"
    "photos,reviews,userRatingCount"
)


class PlacesAPIError(Exception):
    """Raised when the Places API returns an error or cannot be reached."""
    pass


class PlacesClient:
    """Thin wrapper over the two Places endpoints the scraper needs."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = PLACES_API_BASE_URL,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("GOOGLE_PLACES_API_KEY", "")
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.Client(timeout=httpx.Timeout(20.0, connect=5.0))

    def _headers(self, field_mask: str) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "X-Goog-FieldMask": field_mask}
        if self.api_key:
            headers["X-Goog-Api-Key"] = self.api_key
        return headers

    def search_text(self, query: str) -> List[Dict[str, Any]]:
        try:
            response = self._http.post(
                f"{self.base_url}/places:searchText",
                json={"textQuery": query, "languageCode": "en"},
                headers=self._headers(SEARCH_FIELD_MASK),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PlacesAPIError(f"Places search failed for '{query}': {e}") from e
        return response.json().get("places", [])

    def get_details(self, place_id: str) -> Dict[str, Any]:
        try:
            response = self._http.get(
                f"{self.base_url}/places/{place_id}",
                headers=self._headers(DETAILS_FIELD_MASK),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PlacesAPIError(f"Places details failed for {place_id}: {e}") from e
        return response.json()

    def find_university(self, name: str, city: Optional[str], country: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Search for a university and return its details in the flat shape
        stored on University rows, or None when nothing matched.
        """
        query = " ".join(part for part in (name, city, country) if part)
        places = self.search_text(query)
        if not places:
            return None

        details = self.get_details(places[0]["id"])
        return normalize_place_details(details)

    def close(self) -> None:
        self._http.close()


def normalize_place_details(details: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a Places v1 details payload into university columns."""
    photos = [p.get("name") for p in details.get("photos", []) if p.get("name")]
    reviews = details.get("reviews") or []
    return {
        "place_id": details.get("id"),
        "display_name": (details.get("displayName") or {}).get("text"),
        "website_url": details.get("websiteUri"),
        "formatted_address": details.get("formattedAddress"),
        "phone_number": details.get("nationalPhoneNumber"),
        "rating": details.get("rating"),
        "photos": photos,
        "reviews_count": details.get("userRatingCount") or len(reviews),
    }
