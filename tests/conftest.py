import math
import threading

import pytest

from turnright.core.cache import InMemoryCacheClient
from turnright.core.errors import ProviderUnavailable
from turnright.core.geo_utils import haversine_distance
from turnright.core.schemas import LatLon, Place
from turnright.core.settings import Settings

WARSAW = LatLon(lat=52.23, lon=21.01)


def offset(origin: LatLon, north_m: float = 0, east_m: float = 0) -> tuple[float, float]:
    """Coordinates `north_m` / `east_m` meters away from origin."""
    lat = origin.lat + north_m / 111_195
    lon = origin.lon + east_m / (111_195 * math.cos(math.radians(origin.lat)))
    return lat, lon


class FakePlacesProvider:
    """In-memory stand-in for the Google Places service."""

    name = "google"

    def __init__(self):
        self.by_type: dict[str, list[Place]] = {}
        self.by_keyword: dict[str, list[Place]] = {}
        self.details: dict[str, Place] = {}
        self.geocodes: dict[str, LatLon] = {}
        self.fail_types: set[str] = set()
        self.fail_keywords: set[str] = set()
        self.fail_details: set[str] = set()
        self.calls: list[tuple] = []
        self._lock = threading.Lock()

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def _within(self, places, lat, lon, radius_m):
        return [p for p in places if haversine_distance(lat, lon, p.lat, p.lon) * 1000 <= radius_m]

    def search_by_category(self, lat, lon, radius_m, place_type):
        self._record("category", place_type, radius_m)
        if place_type in self.fail_types:
            raise ProviderUnavailable(self.name, "nearbysearch", "boom")
        return self._within(self.by_type.get(place_type, []), lat, lon, radius_m)

    def search_by_keyword(self, query, lat, lon, radius_m):
        self._record("keyword", query, radius_m)
        if query in self.fail_keywords:
            raise ProviderUnavailable(self.name, "textsearch", "boom")
        return self._within(self.by_keyword.get(query, []), lat, lon, radius_m)

    def get_place_details(self, place_id):
        self._record("details", place_id)
        if place_id in self.fail_details:
            raise ProviderUnavailable(self.name, "details", "boom")
        return self.details.get(place_id)

    def geocode(self, address):
        self._record("geocode", address)
        return self.geocodes.get(address)

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


class FakeOpenDataProvider:
    name = "overpass"

    def __init__(self):
        self.places: list[Place] = []
        self.fail = False
        self.calls: list[tuple] = []

    def search_by_tags(self, lat, lon, radius_m, tags):
        self.calls.append((radius_m, tuple(tags)))
        if self.fail:
            raise ProviderUnavailable(self.name, "search_by_tags", "boom")
        return [
            p
            for p in self.places
            if haversine_distance(lat, lon, p.lat, p.lon) * 1000 <= radius_m
            and any(f"osm:{tag}" in p.types for tag in tags)
        ]


@pytest.fixture
def origin() -> LatLon:
    return WARSAW


@pytest.fixture
def make_place():
    """Factory for places placed relative to Warsaw centre."""

    def _make(
        name: str,
        types: list[str] | None = None,
        north_m: float = 0,
        east_m: float = 0,
        **fields,
    ) -> Place:
        lat, lon = offset(WARSAW, north_m, east_m)
        fields.setdefault("place_id", f"gp_{name.lower().replace(' ', '_')}")
        return Place(name=name, lat=lat, lon=lon, types=types or [], **fields)

    return _make


@pytest.fixture
def places_provider() -> FakePlacesProvider:
    return FakePlacesProvider()


@pytest.fixture
def open_data_provider() -> FakeOpenDataProvider:
    return FakeOpenDataProvider()


@pytest.fixture
def cache() -> InMemoryCacheClient:
    return InMemoryCacheClient()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        google_places_api_key="test-key",
        search_radii_m=[5000, 15000],
        min_per_goal=1,
        target_raw=120,
        keyword_search_limit=3,
        enrich_limit=50,
        max_workers=4,
        collection_timeout_s=5,
        cache_backend="memory",
        max_stops_onsite=8,
        stops_per_day=7,
        planning_day_minutes=480,
        duplicate_distance_m=50,
        extra_min_composite=10,
    )
