"""
Google Places API integration for candidate search, place details and geocoding.
"""

import logging
import time
from typing import Any

import requests

from turnright.core.errors import ProviderUnavailable
from turnright.core.schemas import LatLon, Place

logger = logging.getLogger(__name__)

PLACES_API_BASE = "https://maps.googleapis.com/maps/api/place"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

# Retries while a fresh next_page_token is not yet accepted
MAX_PAGE_TOKEN_RETRIES = 3

DETAILS_FIELDS = (
    "place_id,name,formatted_address,geometry,types,rating,user_ratings_total,"
    "price_level,business_status,opening_hours,photos,editorial_summary"
)


def place_from_result(result: dict[str, Any]) -> Place | None:
    """Convert a Places API result into a Place, or None if it has no location."""
    location = (result.get("geometry") or {}).get("location") or {}
    lat = location.get("lat")
    lng = location.get("lng")
    if lat is None or lng is None or not result.get("name"):
        return None

    summary = result.get("editorial_summary") or {}
    opening = result.get("opening_hours") or {}
    return Place(
        place_id=result.get("place_id"),
        name=result["name"],
        lat=lat,
        lon=lng,
        types=result.get("types", []),
        rating=result.get("rating"),
        review_count=result.get("user_ratings_total") or 0,
        price_level=result.get("price_level"),
        business_status=result.get("business_status"),
        opening_hours=opening.get("weekday_text", []),
        photo_references=[
            photo["photo_reference"]
            for photo in result.get("photos", [])
            if photo.get("photo_reference")
        ],
        editorial_summary=summary.get("overview"),
        address=result.get("formatted_address") or result.get("vicinity"),
        source="primary",
    )


class GooglePlacesService:
    """Service for interacting with Google Places API."""

    name = "google"

    def __init__(self, api_key: str, timeout: float = 10, max_pages: int = 1):
        if not api_key:
            raise ValueError("GOOGLE_PLACES_API_KEY not found in environment variables")
        self.api_key = api_key
        self.timeout = timeout
        self.max_pages = max_pages

    def _get(self, url: str, params: dict[str, Any], operation: str) -> dict[str, Any]:
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.warning(f"[Places] {operation} request failed: {e}")
            raise ProviderUnavailable(self.name, operation, str(e)) from e
        except ValueError as e:
            raise ProviderUnavailable(self.name, operation, "invalid JSON") from e

    def _search(self, url: str, params: dict[str, Any], operation: str) -> list[Place]:
        collected: list[Place] = []
        pages_fetched = 0
        token_retries = 0
        next_token: str | None = None

        while True:
            if next_token:
                # When using next_page_token, only send token + key
                page_params = {"pagetoken": next_token, "key": self.api_key}
            else:
                page_params = {**params, "key": self.api_key}

            data = self._get(url, page_params, operation)
            status = data.get("status")
            if status not in ("OK", "ZERO_RESULTS"):
                # Token not ready yet: Google returns INVALID_REQUEST briefly
                if status == "INVALID_REQUEST" and next_token:
                    if token_retries >= MAX_PAGE_TOKEN_RETRIES:
                        logger.warning(
                            f"[Places] {operation} page token still rejected, "
                            f"keeping {len(collected)} results"
                        )
                        break
                    token_retries += 1
                    time.sleep(2)
                    continue
                raise ProviderUnavailable(self.name, operation, f"status {status}")

            for result in data.get("results", []):
                place = place_from_result(result)
                if place:
                    collected.append(place)

            pages_fetched += 1
            next_token = data.get("next_page_token")
            token_retries = 0
            if not next_token or pages_fetched >= self.max_pages:
                break
            time.sleep(2)

        return collected

    def search_by_category(
        self, lat: float, lon: float, radius_m: int, place_type: str
    ) -> list[Place]:
        """
        Nearby search restricted to one Places type.

        Args:
            lat, lon: Search centre
            radius_m: Search radius in meters (Google caps it at 50 km)
            place_type: Google Places type (e.g. "museum")

        Returns:
            Places in provider order
        """
        params = {
            "location": f"{lat},{lon}",
            "radius": min(int(radius_m), 50000),
            "type": place_type,
        }
        return self._search(f"{PLACES_API_BASE}/nearbysearch/json", params, "nearbysearch")

    def search_by_keyword(
        self, query: str, lat: float, lon: float, radius_m: int
    ) -> list[Place]:
        """Free-text search biased to a circle around (lat, lon)."""
        params = {
            "query": query,
            "location": f"{lat},{lon}",
            "radius": min(int(radius_m), 50000),
        }
        return self._search(f"{PLACES_API_BASE}/textsearch/json", params, "textsearch")

    def get_place_details(self, place_id: str) -> Place | None:
        """
        Get detailed information about a specific place.

        Returns:
            Place with details fields filled, or None when Google no longer
            knows the id
        """
        params = {"place_id": place_id, "fields": DETAILS_FIELDS, "key": self.api_key}
        data = self._get(f"{PLACES_API_BASE}/details/json", params, "details")

        status = data.get("status")
        if status in ("NOT_FOUND", "ZERO_RESULTS"):
            return None
        if status != "OK":
            raise ProviderUnavailable(self.name, "details", f"status {status}")

        result = data.get("result", {})
        result.setdefault("place_id", place_id)
        return place_from_result(result)

    def geocode(self, address: str) -> LatLon | None:
        """
        Geocode an address to coordinates.

        Returns:
            LatLon, or None if the address is unknown
        """
        data = self._get(GEOCODE_URL, {"address": address, "key": self.api_key}, "geocode")

        status = data.get("status")
        if status == "ZERO_RESULTS" or (status == "OK" and not data.get("results")):
            logger.info(f"[Places] Geocoding found nothing for {address}")
            return None
        if status != "OK":
            raise ProviderUnavailable(self.name, "geocode", f"status {status}")

        location = data["results"][0]["geometry"]["location"]
        return LatLon(lat=location["lat"], lon=location["lng"])
