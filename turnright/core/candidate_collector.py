"""
Candidate collection across the radius ladder, the cache and the open-data
fallback.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Callable

from turnright.core.cache import CacheClient
from turnright.core.category_rules import GoalRule, get_goal_rule, matches
from turnright.core.errors import ProviderUnavailable, raise_if_cancelled
from turnright.core.geo_utils import haversine_distance
from turnright.core.providers import OpenDataProvider, PlacesProvider
from turnright.core.schemas import GoalBucket, LatLon, Place
from turnright.core.settings import Settings

logger = logging.getLogger(__name__)

# How often a waiting collector re-checks the cancellation flag
POLL_INTERVAL_S = 0.1


def place_identity(place: Place) -> str:
    """External id, or name + coordinates for id-less places."""
    if place.place_id:
        return place.place_id
    return f"{place.name}|{round(place.lat, 5)}|{round(place.lon, 5)}"


class CandidateCollector:
    """
    Collects raw candidates per goal.

    For each goal the radius ladder is walked until the goal has enough
    matching candidates or the global raw cap is reached. Category and keyword
    searches for one radius run concurrently on a bounded thread pool.
    """

    def __init__(
        self,
        places_provider: PlacesProvider,
        cache: CacheClient,
        open_data_provider: OpenDataProvider | None = None,
        settings: Settings | None = None,
    ):
        self.places_provider = places_provider
        self.cache = cache
        self.open_data_provider = open_data_provider
        self.settings = settings or Settings()

    def collect(
        self,
        origin: LatLon,
        goals: list[str],
        *,
        min_per_goal: int | None = None,
        strict: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> dict[str, GoalBucket]:
        """
        Collect raw candidates for every goal.

        Args:
            origin: Search centre
            goals: Canonical goal names (see category_rules)
            min_per_goal: Matching candidates needed before the ladder stops
            strict: Count only type-matching candidates towards the minimum
            cancel_event: When set, pending searches are abandoned

        Returns:
            Goal name -> GoalBucket whose `places` are the raw candidates
            collected for that goal (matching or not), in discovery order

        Raises:
            RequestCancelled: cancel_event was set
        """
        need = min_per_goal or self.settings.min_per_goal
        seen_raw: set[str] = set()
        buckets: dict[str, GoalBucket] = {}

        for goal in goals:
            raise_if_cancelled(cancel_event)
            rule = get_goal_rule(goal)
            if rule is None:
                logger.warning(f"[Collector] Skipping unknown goal {goal}")
                buckets[goal] = GoalBucket(goal=goal)
                continue
            buckets[goal] = self._collect_goal(
                origin, rule, need, strict, seen_raw, cancel_event
            )
            bucket = buckets[goal]
            logger.info(
                f"[Collector] {goal}: raw={bucket.raw_found} matched={bucket.matched} "
                f"radii={bucket.radii_searched} cache={bucket.from_cache} "
                f"fallback={bucket.used_fallback}"
            )

        return buckets

    def _collect_goal(
        self,
        origin: LatLon,
        rule: GoalRule,
        need: int,
        strict: bool,
        seen_raw: set[str],
        cancel_event: threading.Event | None,
    ) -> GoalBucket:
        bucket = GoalBucket(goal=rule.name)
        collected: dict[str, Place] = {}

        def absorb(places: list[Place]) -> None:
            for place in places:
                key = place_identity(place)
                if key in collected:
                    continue
                collected[key] = place
                seen_raw.add(key)

        def matched_count() -> int:
            return sum(1 for place in collected.values() if matches(place, rule, strict).is_match)

        radii = self.settings.search_radii_m or [5000]

        # An exact cache entry is authoritative; the spatial shortcut only
        # stands in for a search this origin has never run
        exact = self.cache.get_cached_search(
            origin.lat, origin.lon, radii[0], rule.name, provider=self.places_provider.name
        )
        if exact is None:
            nearby = [
                place
                for place in self.cache.find_nearby(origin.lat, origin.lon, radii[0], rule.name)
                if haversine_distance(origin.lat, origin.lon, place.lat, place.lon) * 1000
                <= radii[0]
            ]
            if sum(1 for place in nearby if matches(place, rule, strict).is_match) >= need:
                absorb(nearby)
                bucket.from_cache = True
                bucket.radii_searched.append(radii[0])
                return self._finish(bucket, collected, matched_count())

        for radius in radii:
            raise_if_cancelled(cancel_event)
            bucket.radii_searched.append(radius)

            cached = self.cache.get_cached_search(
                origin.lat, origin.lon, radius, rule.name, provider=self.places_provider.name
            )
            if cached is not None:
                bucket.from_cache = True
                absorb(cached)
            else:
                places, failures = self._search_radius(origin, rule, radius, cancel_event)
                absorb(places)
                # Partial fetches are not cached
                if failures == 0:
                    self.cache.put_cached_search(
                        origin.lat,
                        origin.lon,
                        radius,
                        rule.name,
                        places,
                        provider=self.places_provider.name,
                    )

            if matched_count() >= need:
                break
            if len(seen_raw) >= self.settings.target_raw:
                logger.info(f"[Collector] Raw cap {self.settings.target_raw} reached")
                break

        if matched_count() < need and self.open_data_provider is not None:
            raise_if_cancelled(cancel_event)
            fallback = self._open_data_fallback(origin, rule, radii[-1])
            if fallback:
                bucket.used_fallback = True
                absorb(fallback)

        return self._finish(bucket, collected, matched_count())

    def _finish(self, bucket: GoalBucket, collected: dict[str, Place], matched: int) -> GoalBucket:
        bucket.places = list(collected.values())
        bucket.raw_found = len(bucket.places)
        bucket.matched = matched
        return bucket

    def _search_radius(
        self,
        origin: LatLon,
        rule: GoalRule,
        radius: int,
        cancel_event: threading.Event | None,
    ) -> tuple[list[Place], int]:
        provider = self.places_provider
        calls: list[tuple[str, Callable[[], list[Place]]]] = []
        for place_type in rule.search_types:
            calls.append(
                (
                    f"type={place_type}",
                    lambda t=place_type: provider.search_by_category(
                        origin.lat, origin.lon, radius, t
                    ),
                )
            )
        for keyword in rule.keywords[: self.settings.keyword_search_limit]:
            calls.append(
                (
                    f"keyword={keyword}",
                    lambda k=keyword: provider.search_by_keyword(
                        k, origin.lat, origin.lon, radius
                    ),
                )
            )

        results, failures = self._run_parallel(calls, cancel_event)
        merged: list[Place] = []
        seen: set[str] = set()
        for label, _ in calls:
            for place in results.get(label, []):
                key = place_identity(place)
                if key not in seen:
                    seen.add(key)
                    merged.append(place)
        logger.debug(
            f"[Collector] {rule.name} @ {radius}m: {len(merged)} places, {failures} failed calls"
        )
        return merged, failures

    def _run_parallel(
        self,
        calls: list[tuple[str, Callable[[], list[Place]]]],
        cancel_event: threading.Event | None,
    ) -> tuple[dict[str, list[Place]], int]:
        """
        Run provider calls on a bounded pool.

        Returns:
            Results per call label (failed calls absent) and the failure count
        """
        results: dict[str, list[Place]] = {}
        failures = 0
        executor = ThreadPoolExecutor(max_workers=self.settings.max_workers)
        futures = {executor.submit(fn): label for label, fn in calls}
        pending = set(futures)
        deadline = time.monotonic() + self.settings.collection_timeout_s

        try:
            while pending:
                raise_if_cancelled(cancel_event)
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(f"[Collector] {len(pending)} searches timed out")
                    failures += len(pending)
                    break
                done, pending = wait(
                    pending,
                    timeout=min(remaining, POLL_INTERVAL_S),
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    label = futures[future]
                    try:
                        results[label] = future.result()
                    except ProviderUnavailable as e:
                        logger.warning(f"[Collector] {label} failed: {e}")
                        failures += 1
                    except Exception as e:
                        logger.error(f"[Collector] {label} raised unexpectedly: {e}")
                        failures += 1
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return results, failures

    def _open_data_fallback(self, origin: LatLon, rule: GoalRule, radius: int) -> list[Place]:
        provider = self.open_data_provider
        cached = self.cache.get_cached_search(
            origin.lat, origin.lon, radius, rule.name, provider=provider.name
        )
        if cached is not None:
            return cached

        try:
            places = provider.search_by_tags(
                origin.lat, origin.lon, radius, list(rule.osm_fallback_tags)
            )
        except ProviderUnavailable as e:
            logger.warning(f"[Collector] Open-data fallback failed for {rule.name}: {e}")
            return []
        except Exception as e:
            logger.error(f"[Collector] Open-data fallback raised for {rule.name}: {e}")
            return []

        self.cache.put_cached_search(
            origin.lat, origin.lon, radius, rule.name, places, provider=provider.name
        )
        return places
