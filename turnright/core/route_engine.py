"""
Per-request orchestration: collect, match, score, enrich, select, order and
trim candidates into an itinerary.
"""

import logging
import threading

from turnright.core.cache import CacheClient
from turnright.core.candidate_collector import CandidateCollector, place_identity
from turnright.core.category_rules import MatchResult, get_goal_rule
from turnright.core.deduplicator import collapse_consecutive, dedupe_scored, merge_duplicates
from turnright.core.enricher import PlaceEnricher
from turnright.core.errors import InvalidRouteRequest, ProviderUnavailable, raise_if_cancelled
from turnright.core.geo_utils import parse_lat_lon
from turnright.core.goal_matcher import split_into_buckets
from turnright.core.itinerary_planner import select_stops, split_into_days, trim_to_budget
from turnright.core.providers import OpenDataProvider, PlacesProvider
from turnright.core.route_optimizer import optimize_route, push_nightlife_last
from turnright.core.schemas import (
    GenerationStage,
    GoalBucket,
    InsufficientGoal,
    Itinerary,
    LatLon,
    Place,
    RouteRequest,
    RouteResponse,
    ScoredPlace,
    StopOut,
)
from turnright.core.scorer import rank, score_place
from turnright.core.settings import Settings
from turnright.core.stop_details import describe_place, price_text, walking_map_url

logger = logging.getLogger(__name__)

# Rejected candidates reported per goal in goal_stats
MAX_REJECTED_REPORTED = 25

_STAGE_ORDER = list(GenerationStage)


class _StageTracker:
    """Forward-only stage log for one request."""

    def __init__(self, request_label: str):
        self.label = request_label
        self.stage: GenerationStage | None = None

    def advance(self, stage: GenerationStage) -> None:
        if self.stage is not None and _STAGE_ORDER.index(stage) <= _STAGE_ORDER.index(self.stage):
            raise RuntimeError(f"Stage {stage.value} cannot follow {self.stage.value}")
        self.stage = stage
        logger.info(f"[RouteEngine] {self.label} -> {stage.value}")


def resolve_goals(goals: list[str]) -> list[str]:
    """
    Map requested goal names and aliases onto canonical goal names.

    Raises:
        InvalidRouteRequest: a goal is not in the rule table
    """
    resolved: list[str] = []
    for goal in goals:
        rule = get_goal_rule(goal)
        if rule is None:
            raise InvalidRouteRequest(f"Unknown goal: {goal}")
        if rule.name not in resolved:
            resolved.append(rule.name)
    return resolved


def to_stop_out(stop) -> StopOut:
    scored = stop.place
    place = scored.place
    return StopOut(
        name=place.name,
        lat=place.lat,
        lon=place.lon,
        goal=scored.goal,
        place_id=place.place_id,
        address=place.address,
        rating=place.rating,
        review_count=place.review_count,
        walk_minutes_from_previous=stop.leg.walk_minutes,
        dwell_minutes=stop.leg.dwell_minutes,
        day=stop.day,
        score=scored.composite_score,
        score_breakdown=scored.breakdown,
        description=describe_place(place, scored.goal),
        opening_hours=place.opening_hours,
        price_level=place.price_level,
        price_text=price_text(place, scored.goal),
        photo_references=place.photo_references,
    )


class RouteEngine:
    """Builds walkable itineraries from injected providers and cache."""

    def __init__(
        self,
        places_provider: PlacesProvider,
        cache: CacheClient,
        open_data_provider: OpenDataProvider | None = None,
        settings: Settings | None = None,
    ):
        self.places_provider = places_provider
        self.settings = settings or Settings()
        self.collector = CandidateCollector(
            places_provider, cache, open_data_provider, self.settings
        )
        self.enricher = PlaceEnricher(places_provider, cache, self.settings)

    def resolve_origin(self, request: RouteRequest) -> LatLon | None:
        """
        Origin from explicit coordinates, a "lat,lon" address or geocoding.

        Returns:
            LatLon, or None when geocoding could not place the address

        Raises:
            InvalidRouteRequest: the address is a coordinate pair out of range
        """
        if request.origin_lat_lon is not None:
            return request.origin_lat_lon
        try:
            parsed = parse_lat_lon(request.origin_address)
        except ValueError as e:
            raise InvalidRouteRequest(str(e)) from e
        if parsed is not None:
            return parsed
        try:
            return self.places_provider.geocode(request.origin_address)
        except ProviderUnavailable as e:
            logger.warning(f"[RouteEngine] Geocoding failed: {e}")
            return None

    def generate(
        self, request: RouteRequest, cancel_event: threading.Event | None = None
    ) -> RouteResponse:
        """
        Generate an itinerary for a route request.

        Args:
            request: Validated route request
            cancel_event: Set by the caller to abandon the request

        Returns:
            RouteResponse; success=False with a reason when the origin cannot
            be resolved or nothing matched any goal

        Raises:
            InvalidRouteRequest: unknown goal or malformed location
            RequestCancelled: cancel_event was set
        """
        settings = self.settings
        goals = resolve_goals(request.goals)
        tracker = _StageTracker(",".join(goals))

        origin = self.resolve_origin(request)
        if origin is None:
            return RouteResponse(
                success=False,
                reason="Could not resolve the origin location",
                requested_minutes=request.requested_minutes or 0,
            )

        min_per_goal = request.min_per_goal or settings.min_per_goal
        strict = request.strict_matching

        # Collect
        tracker.advance(GenerationStage.COLLECTING)
        collected = self.collector.collect(
            origin,
            goals,
            min_per_goal=min_per_goal,
            strict=strict,
            cancel_event=cancel_event,
        )
        raw = [place for bucket in collected.values() for place in bucket.places]
        pool = merge_duplicates(raw, settings.duplicate_distance_m)
        collected_for = {
            goal: {place_identity(p) for p in bucket.places} for goal, bucket in collected.items()
        }

        # Match and score
        tracker.advance(GenerationStage.MATCHING_SCORING)
        matched, rejected = split_into_buckets(pool, goals, strict, collected_for)
        scored = self._score(matched, origin)

        # Enrich the best candidates, then re-match and re-score with the new details
        tracker.advance(GenerationStage.ENRICHING)
        raise_if_cancelled(cancel_event)
        pool = self._enrich(pool, scored, cancel_event)
        matched, rejected = split_into_buckets(pool, goals, strict, collected_for)
        scored = self._score(matched, origin)

        stats = self._goal_stats(goals, collected, scored, rejected)

        if not any(scored.values()):
            logger.info(f"[RouteEngine] No candidates matched any of {goals}")
            return RouteResponse(
                success=False,
                reason="No places matched the requested goals",
                requested_minutes=self._requested_minutes(request),
                insufficient_goals=[
                    InsufficientGoal(goal=goal, have=0, need=min_per_goal) for goal in goals
                ],
                goal_stats=list(stats.values()),
            )

        # Select and dedupe
        tracker.advance(GenerationStage.DEDUPLICATING)
        if request.scenario == "planning":
            max_stops = request.days * settings.stops_per_day
        else:
            max_stops = settings.max_stops_onsite
        selected, seeded = select_stops(
            scored,
            goals,
            min_per_goal=min_per_goal,
            max_stops=max_stops,
            extra_min_composite=settings.extra_min_composite,
            threshold_m=settings.duplicate_distance_m,
        )
        if request.scenario == "planning" and len(selected) < max_stops:
            selected, seeded = select_stops(
                scored,
                goals,
                min_per_goal=min_per_goal,
                max_stops=max_stops,
                extra_min_composite=settings.extra_min_composite,
                relaxed=True,
                threshold_m=settings.duplicate_distance_m,
            )
        selected = dedupe_scored(selected, settings.duplicate_distance_m)
        for goal in goals:
            stats[goal].seeded = seeded.get(goal, 0)

        # Order
        tracker.advance(GenerationStage.ORDERING)
        ordered = optimize_route(selected, origin, settings.scoring)
        if request.scenario == "onsite":
            ordered = push_nightlife_last(ordered)
        ordered = collapse_consecutive(ordered, settings.duplicate_distance_m)

        # Trim or split
        tracker.advance(GenerationStage.TRIMMING)
        raise_if_cancelled(cancel_event)
        if request.scenario == "planning":
            itinerary = self._split(ordered, origin, request)
        else:
            itinerary = trim_to_budget(
                ordered,
                origin,
                request.requested_minutes,
                request.destination_policy,
                request.destination,
            )

        tracker.advance(GenerationStage.DONE)
        return self._response(
            itinerary,
            goals,
            scored,
            min_per_goal,
            stats,
            quota=max(1, max_stops // len(goals)),
            map_url=self._map_url(itinerary, origin, request),
        )

    def _score(
        self, matched: dict[str, list[tuple[Place, MatchResult]]], origin: LatLon
    ) -> dict[str, list[ScoredPlace]]:
        scored: dict[str, list[ScoredPlace]] = {}
        for goal, pairs in matched.items():
            rule = get_goal_rule(goal)
            bucket = []
            for place, match in pairs:
                result = score_place(place, rule, origin, self.settings.scoring, match)
                if result is not None:
                    bucket.append(result)
            scored[goal] = rank(bucket)
        return scored

    def _enrich(
        self,
        pool: list[Place],
        scored: dict[str, list[ScoredPlace]],
        cancel_event: threading.Event | None,
    ) -> list[Place]:
        """Enrich matched places and substitute the enriched copies into the pool."""
        matched_ids: set[str] = set()
        matched_places: list[Place] = []
        for bucket in scored.values():
            for candidate in bucket:
                key = place_identity(candidate.place)
                if key not in matched_ids:
                    matched_ids.add(key)
                    matched_places.append(candidate.place)

        enriched = self.enricher.enrich(
            matched_places, limit=self.settings.enrich_limit, cancel_event=cancel_event
        )
        by_identity = {place_identity(p): p for p in enriched}
        return [by_identity.get(place_identity(p), p) for p in pool]

    def _requested_minutes(self, request: RouteRequest) -> int:
        if request.requested_minutes is not None:
            return request.requested_minutes
        if request.scenario == "planning":
            return (request.days or 1) * self.settings.planning_day_minutes
        return 0

    def _split(self, ordered: list[ScoredPlace], origin: LatLon, request: RouteRequest) -> Itinerary:
        requested = self._requested_minutes(request)
        return split_into_days(
            ordered,
            origin,
            request.days,
            per_day=self.settings.stops_per_day,
            requested_minutes=requested,
        )

    def _goal_stats(self, goals, collected, scored, rejected) -> dict[str, GoalBucket]:
        stats: dict[str, GoalBucket] = {}
        for goal in goals:
            source = collected.get(goal) or GoalBucket(goal=goal)
            stats[goal] = GoalBucket(
                goal=goal,
                raw_found=source.raw_found,
                matched=len(scored.get(goal, [])),
                rejected=rejected.get(goal, [])[:MAX_REJECTED_REPORTED],
                radii_searched=source.radii_searched,
                used_fallback=source.used_fallback,
                from_cache=source.from_cache,
            )
        return stats

    def _map_url(
        self, itinerary: Itinerary, origin: LatLon, request: RouteRequest
    ) -> str | None:
        """Walking directions for an on-site route; planning days each start over."""
        if request.scenario == "planning":
            return None
        end = None
        if itinerary.closing_leg is not None:
            end = origin if request.destination_policy == "loop" else request.destination
        return walking_map_url(origin, [stop.place.place for stop in itinerary.stops], end)

    def _response(
        self,
        itinerary: Itinerary,
        goals: list[str],
        scored: dict[str, list[ScoredPlace]],
        min_per_goal: int,
        stats: dict[str, GoalBucket],
        quota: int,
        map_url: str | None = None,
    ) -> RouteResponse:
        in_route = {stop.place.goal for stop in itinerary.stops}
        insufficient: list[InsufficientGoal] = []
        for goal in goals:
            have = len(scored.get(goal, []))
            if have < min_per_goal:
                insufficient.append(InsufficientGoal(goal=goal, have=have, need=min_per_goal))
            elif goal not in in_route:
                insufficient.append(
                    InsufficientGoal(goal=goal, have=0, need=min_per_goal, reason="time_budget")
                )
            elif stats[goal].seeded < min_per_goal:
                # Seeding stops at the per-goal share of the stop cap
                reason = "stop_cap" if quota < min_per_goal else "not_enough_candidates"
                insufficient.append(
                    InsufficientGoal(
                        goal=goal, have=stats[goal].seeded, need=min_per_goal, reason=reason
                    )
                )

        logger.info(
            f"[RouteEngine] {len(itinerary.stops)} stops, {itinerary.total_minutes}/"
            f"{itinerary.requested_minutes} min, insufficient={[g.goal for g in insufficient]}"
        )
        return RouteResponse(
            success=bool(itinerary.stops),
            reason=None if itinerary.stops else "No stops fit the time budget",
            places=[to_stop_out(stop) for stop in itinerary.stops],
            closing_leg_minutes=(
                itinerary.closing_leg.walk_minutes if itinerary.closing_leg else None
            ),
            total_walk_minutes=itinerary.total_walk_minutes,
            total_dwell_minutes=itinerary.total_dwell_minutes,
            total_minutes=itinerary.total_minutes,
            requested_minutes=itinerary.requested_minutes,
            map_url=map_url,
            insufficient_goals=insufficient,
            goal_stats=[stats[goal] for goal in goals],
        )
