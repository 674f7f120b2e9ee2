"""
Capability interfaces for the external place providers.

Implementations raise ProviderUnavailable when a single call fails; callers
are expected to contain it.
"""

from typing import Protocol

from turnright.core.schemas import LatLon, Place


class PlacesProvider(Protocol):
    name: str

    def search_by_category(
        self, lat: float, lon: float, radius_m: int, place_type: str
    ) -> list[Place]: ...

    def search_by_keyword(
        self, query: str, lat: float, lon: float, radius_m: int
    ) -> list[Place]: ...

    def get_place_details(self, place_id: str) -> Place | None: ...

    def geocode(self, address: str) -> LatLon | None: ...


class OpenDataProvider(Protocol):
    name: str

    def search_by_tags(
        self, lat: float, lon: float, radius_m: int, tags: list[str]
    ) -> list[Place]: ...
