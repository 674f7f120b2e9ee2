"""
Search-result and place-details caches.

Two flavours of entry share one interface: search results keyed by
provider|lat|lon|radius|goal (coordinates rounded to 3 decimals) and place
details keyed by place id. Every failure inside a cache is logged and treated
as a miss.
"""

import logging
import math
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from pymongo import MongoClient

from turnright.core.geo_utils import haversine_distance
from turnright.core.schemas import Place

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_TTL_S = 3 * 24 * 3600
DEFAULT_DETAILS_TTL_S = 21 * 24 * 3600


def search_key(lat: float, lon: float, radius_m: int, goal: str, provider: str) -> str:
    return f"{provider}|{round(lat, 3)}|{round(lon, 3)}|{int(radius_m)}|{goal}"


def _as_cached(places: list[Place]) -> list[Place]:
    return [place.model_copy(update={"source": "cache"}) for place in places]


class CacheClient:
    """Interface shared by every cache backend. The base class caches nothing."""

    def get_cached_search(
        self, lat: float, lon: float, radius_m: int, goal: str, provider: str = "google"
    ) -> list[Place] | None:
        return None

    def put_cached_search(
        self,
        lat: float,
        lon: float,
        radius_m: int,
        goal: str,
        places: list[Place],
        provider: str = "google",
    ) -> None:
        return None

    def get_cached_place_details(self, place_id: str) -> Place | None:
        return None

    def put_cached_place_details(self, place: Place) -> None:
        return None

    def find_nearby(self, lat: float, lon: float, radius_m: int, goal: str) -> list[Place]:
        return []


class InMemoryCacheClient(CacheClient):
    """Thread-safe dict cache for a single process."""

    def __init__(
        self,
        search_ttl_s: int = DEFAULT_SEARCH_TTL_S,
        details_ttl_s: int = DEFAULT_DETAILS_TTL_S,
        clock: Callable[[], float] = time.time,
    ):
        self.search_ttl_s = search_ttl_s
        self.details_ttl_s = details_ttl_s
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (expires_at, center_lat, center_lon, goal, places)
        self._searches: dict[str, tuple[float, float, float, str, list[dict]]] = {}
        # place_id -> (expires_at, place)
        self._details: dict[str, tuple[float, dict]] = {}

    def _purge_expired(self, now: float) -> None:
        """Drop every expired entry. Caller holds the lock."""
        for key in [k for k, entry in self._searches.items() if entry[0] <= now]:
            del self._searches[key]
        for place_id in [k for k, entry in self._details.items() if entry[0] <= now]:
            del self._details[place_id]

    def get_cached_search(self, lat, lon, radius_m, goal, provider="google"):
        key = search_key(lat, lon, radius_m, goal, provider)
        with self._lock:
            entry = self._searches.get(key)
            if entry is None:
                return None
            if entry[0] <= self._clock():
                del self._searches[key]
                return None
            payload = entry[4]
        return _as_cached([Place.model_validate(item) for item in payload])

    def put_cached_search(self, lat, lon, radius_m, goal, places, provider="google"):
        key = search_key(lat, lon, radius_m, goal, provider)
        payload = [place.model_dump() for place in places]
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            self._searches[key] = (
                now + self.search_ttl_s,
                round(lat, 3),
                round(lon, 3),
                goal,
                payload,
            )

    def get_cached_place_details(self, place_id):
        with self._lock:
            entry = self._details.get(place_id)
            if entry is None:
                return None
            if entry[0] <= self._clock():
                del self._details[place_id]
                return None
            payload = entry[1]
        return Place.model_validate(payload)

    def put_cached_place_details(self, place):
        if not place.place_id:
            return
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            self._details[place.place_id] = (
                now + self.details_ttl_s,
                place.model_dump(),
            )

    def find_nearby(self, lat, lon, radius_m, goal):
        now = self._clock()
        with self._lock:
            entries = [
                entry
                for entry in self._searches.values()
                if entry[3] == goal
                and entry[0] > now
                and haversine_distance(lat, lon, entry[1], entry[2]) * 1000 <= radius_m
            ]
        seen: set[str] = set()
        places: list[Place] = []
        for entry in entries:
            for item in entry[4]:
                place = Place.model_validate(item)
                key = place.place_id or f"{place.name}|{place.lat}|{place.lon}"
                if key in seen:
                    continue
                seen.add(key)
                places.append(place)
        return _as_cached(places)


class MongoCacheClient(CacheClient):
    """
    MongoDB-backed cache.

    Entries are upserted with an `expires_at` date; a TTL index lets MongoDB
    purge them and reads additionally ignore anything already past expiry.
    """

    def __init__(
        self,
        mongodb_uri: str | None = None,
        database_name: str = "turnright",
        search_ttl_s: int = DEFAULT_SEARCH_TTL_S,
        details_ttl_s: int = DEFAULT_DETAILS_TTL_S,
        db: Any = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        if db is None:
            if not mongodb_uri:
                raise ValueError("MONGODB_URI environment variable is required for mongo cache")
            self.client = MongoClient(
                mongodb_uri,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                socketTimeoutMS=20000,
                retryWrites=True,
                retryReads=True,
            )
            db = self.client[database_name]

        self.db = db
        self.search_ttl_s = search_ttl_s
        self.details_ttl_s = details_ttl_s
        self._clock = clock

        self.search_collection = self.db.search_cache
        self.details_collection = self.db.place_details_cache

        try:
            self.search_collection.create_index("key", unique=True)
            self.search_collection.create_index([("goal", 1), ("lat", 1), ("lon", 1)])
            self.search_collection.create_index("expires_at", expireAfterSeconds=0)
            self.details_collection.create_index("place_id", unique=True)
            self.details_collection.create_index("expires_at", expireAfterSeconds=0)
            logger.info("[Cache] Mongo cache indexes ready")
        except Exception as e:
            logger.warning(f"[Cache] Index creation failed (might already exist): {e}")

    def get_cached_search(self, lat, lon, radius_m, goal, provider="google"):
        key = search_key(lat, lon, radius_m, goal, provider)
        try:
            doc = self.search_collection.find_one(
                {"key": key, "expires_at": {"$gt": self._clock()}}
            )
        except Exception as e:
            logger.warning(f"[Cache] Search lookup failed for {key}: {e}")
            return None
        if not doc:
            return None
        return _as_cached([Place.model_validate(item) for item in doc.get("places", [])])

    def put_cached_search(self, lat, lon, radius_m, goal, places, provider="google"):
        key = search_key(lat, lon, radius_m, goal, provider)
        now = self._clock()
        search_doc = {
            "key": key,
            "provider": provider,
            "goal": goal,
            "lat": round(lat, 3),
            "lon": round(lon, 3),
            "radius_m": int(radius_m),
            "places": [place.model_dump() for place in places],
            "updated_at": now,
            "expires_at": now + timedelta(seconds=self.search_ttl_s),
        }
        try:
            # Upsert: last write wins
            self.search_collection.update_one({"key": key}, {"$set": search_doc}, upsert=True)
        except Exception as e:
            logger.warning(f"[Cache] Search write failed for {key}: {e}")

    def get_cached_place_details(self, place_id):
        try:
            doc = self.details_collection.find_one(
                {"place_id": place_id, "expires_at": {"$gt": self._clock()}}
            )
        except Exception as e:
            logger.warning(f"[Cache] Details lookup failed for {place_id}: {e}")
            return None
        if not doc:
            return None
        return Place.model_validate(doc["place"])

    def put_cached_place_details(self, place):
        if not place.place_id:
            return
        now = self._clock()
        details_doc = {
            "place_id": place.place_id,
            "place": place.model_dump(),
            "updated_at": now,
            "expires_at": now + timedelta(seconds=self.details_ttl_s),
        }
        try:
            self.details_collection.update_one(
                {"place_id": place.place_id}, {"$set": details_doc}, upsert=True
            )
        except Exception as e:
            logger.warning(f"[Cache] Details write failed for {place.place_id}: {e}")

    def find_nearby(self, lat, lon, radius_m, goal):
        # Bounding box in degrees, refined with haversine below
        delta = radius_m / 111_000
        lon_delta = delta / max(math.cos(math.radians(lat)), 0.01)
        query = {
            "goal": goal,
            "lat": {"$gte": lat - delta, "$lte": lat + delta},
            "lon": {"$gte": lon - lon_delta, "$lte": lon + lon_delta},
            "expires_at": {"$gt": self._clock()},
        }
        try:
            docs = list(self.search_collection.find(query))
        except Exception as e:
            logger.warning(f"[Cache] Nearby lookup failed for {goal}: {e}")
            return []

        seen: set[str] = set()
        places: list[Place] = []
        for doc in docs:
            if haversine_distance(lat, lon, doc["lat"], doc["lon"]) * 1000 > radius_m:
                continue
            for item in doc.get("places", []):
                place = Place.model_validate(item)
                key = place.place_id or f"{place.name}|{place.lat}|{place.lon}"
                if key in seen:
                    continue
                seen.add(key)
                places.append(place)
        return _as_cached(places)
