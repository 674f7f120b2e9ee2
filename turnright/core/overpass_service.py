"""
OpenStreetMap Overpass service, the open-data fallback when the primary
provider comes back short for a goal.
"""

import logging
from typing import Any

import requests

from turnright.core.errors import ProviderUnavailable
from turnright.core.schemas import Place

logger = logging.getLogger(__name__)

DEFAULT_OVERPASS_URL = "https://overpass-api.de/api/interpreter"

# OSM key=value -> the Google-style types the category rules understand
OSM_TYPE_MAP: dict[str, list[str]] = {
    "amenity=restaurant": ["restaurant", "food"],
    "amenity=cafe": ["cafe"],
    "amenity=bar": ["bar"],
    "amenity=pub": ["bar"],
    "amenity=nightclub": ["night_club"],
    "amenity=library": ["library"],
    "amenity=place_of_worship": ["place_of_worship"],
    "amenity=coworking_space": ["coworking_space"],
    "office=coworking": ["coworking_space"],
    "tourism=viewpoint": ["scenic_point"],
    "tourism=museum": ["museum"],
    "tourism=gallery": ["art_gallery"],
    "tourism=attraction": ["tourist_attraction"],
    "leisure=park": ["park"],
    "leisure=garden": ["park"],
    "historic=monument": ["monument", "historical_landmark"],
    "historic=castle": ["castle", "historical_landmark"],
    "building=cathedral": ["church", "place_of_worship"],
    "shop=bakery": ["bakery"],
    "shop=pastry": ["bakery"],
}


def build_query(lat: float, lon: float, radius_m: int, tags: list[str], timeout_s: int) -> str:
    """Overpass QL selecting named nodes/ways/relations for any of `tags` around a point."""
    clauses = []
    for tag in tags:
        key, _, value = tag.partition("=")
        selector = f'["{key}"="{value}"]' if value else f'["{key}"]'
        for element in ("node", "way", "relation"):
            clauses.append(f'{element}{selector}["name"](around:{int(radius_m)},{lat},{lon});')
    body = "\n  ".join(clauses)
    return f"[out:json][timeout:{timeout_s}];\n(\n  {body}\n);\nout center tags;"


def place_from_element(element: dict[str, Any]) -> Place | None:
    tags = element.get("tags") or {}
    name = tags.get("name")
    if not name:
        return None

    lat = element.get("lat")
    lon = element.get("lon")
    if lat is None or lon is None:
        center = element.get("center") or {}
        lat = center.get("lat")
        lon = center.get("lon")
    if lat is None or lon is None:
        return None

    types: list[str] = []
    for key, value in tags.items():
        tag = f"{key}={value}"
        for mapped in OSM_TYPE_MAP.get(tag, []):
            if mapped not in types:
                types.append(mapped)
        if tag in OSM_TYPE_MAP:
            types.append(f"osm:{tag}")

    street = tags.get("addr:street")
    number = tags.get("addr:housenumber")
    address = " ".join(part for part in (street, number) if part) or None

    return Place(
        place_id=f"osm:{element.get('type', 'node')}/{element.get('id')}",
        name=name,
        lat=lat,
        lon=lon,
        types=types,
        editorial_summary=tags.get("description"),
        address=address,
        opening_hours=[tags["opening_hours"]] if tags.get("opening_hours") else [],
        source="open_data",
    )


class OverpassService:
    """Service for querying the OpenStreetMap Overpass API."""

    name = "overpass"

    def __init__(self, url: str = DEFAULT_OVERPASS_URL, timeout: float = 10):
        self.url = url or DEFAULT_OVERPASS_URL
        self.timeout = timeout

    def search_by_tags(
        self, lat: float, lon: float, radius_m: int, tags: list[str]
    ) -> list[Place]:
        """
        Search OSM for named elements carrying any of the given tags.

        Args:
            lat, lon: Search centre
            radius_m: Search radius in meters
            tags: "key=value" strings (e.g. "tourism=viewpoint")

        Returns:
            Places with source "open_data" and ids of the form osm:<type>/<id>
        """
        if not tags:
            return []

        query = build_query(lat, lon, radius_m, tags, int(self.timeout))
        try:
            response = requests.post(self.url, data={"data": query}, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.warning(f"[Overpass] Query failed: {e}")
            raise ProviderUnavailable(self.name, "search_by_tags", str(e)) from e
        except ValueError as e:
            raise ProviderUnavailable(self.name, "search_by_tags", "invalid JSON") from e

        places: list[Place] = []
        seen: set[str] = set()
        for element in data.get("elements", []):
            place = place_from_element(element)
            if place and place.place_id not in seen:
                seen.add(place.place_id)
                places.append(place)

        logger.info(f"[Overpass] {len(places)} places for {','.join(tags)} within {radius_m}m")
        return places
