"""
Stop selection, time-budget trimming and multi-day splitting.
"""

import logging
from typing import Literal

from turnright.core.deduplicator import DEFAULT_DUPLICATE_DISTANCE_M, is_same_place
from turnright.core.geo_utils import walk_minutes
from turnright.core.route_optimizer import push_nightlife_last
from turnright.core.schemas import Itinerary, ItineraryStop, LatLon, RouteLeg, ScoredPlace
from turnright.core.scorer import rank
from turnright.core.travel_time_utils import estimate_dwell_minutes

logger = logging.getLogger(__name__)

DestinationPolicy = Literal["none", "loop", "fixed"]


def select_stops(
    buckets: dict[str, list[ScoredPlace]],
    goals: list[str],
    min_per_goal: int = 1,
    max_stops: int = 8,
    extra_min_composite: float = 10.0,
    relaxed: bool = False,
    threshold_m: float = DEFAULT_DUPLICATE_DISTANCE_M,
) -> tuple[list[ScoredPlace], dict[str, int]]:
    """
    Choose which scored places become stops.

    Seeding gives every goal its best unused place first, then fills each
    goal up to min(min_per_goal, quota) where quota = max(1, max_stops //
    len(goals)). Extras from any goal follow by composite score while they
    clear `extra_min_composite` (ignored when relaxed), up to `max_stops`.
    A place shared by two goals counts for the first goal that takes it.

    Args:
        buckets: Goal -> ranked scored places
        goals: Goal order, which is also seeding priority

    Returns:
        (selected stops in selection order, seeded count per goal)
    """
    selected: list[ScoredPlace] = []
    seeded = {goal: 0 for goal in goals}

    def is_used(candidate: ScoredPlace) -> bool:
        return any(is_same_place(s.place, candidate.place, threshold_m) for s in selected)

    def take_best(goal: str) -> bool:
        for candidate in buckets.get(goal, []):
            if not is_used(candidate):
                selected.append(candidate)
                seeded[goal] += 1
                return True
        return False

    if not goals:
        return selected, seeded

    quota = max(1, max_stops // len(goals))
    per_goal = min(min_per_goal, quota)

    # Coverage first: every goal with any candidate gets one stop
    for goal in goals:
        take_best(goal)

    for goal in goals:
        while seeded[goal] < per_goal and len(selected) < max_stops:
            if not take_best(goal):
                break

    extras = rank([c for goal in goals for c in buckets.get(goal, [])])
    for candidate in extras:
        if len(selected) >= max_stops:
            break
        if not relaxed and candidate.composite_score < extra_min_composite:
            break
        if not is_used(candidate):
            selected.append(candidate)

    logger.info(
        f"[Planner] Selected {len(selected)} stops (seeded={seeded}, relaxed={relaxed})"
    )
    return selected, seeded


def _leg(previous_ref: str, previous_point, stop: ScoredPlace) -> RouteLeg:
    return RouteLeg(
        from_ref=previous_ref,
        to_ref=stop.canonical_id,
        walk_minutes=walk_minutes(previous_point, stop.place),
        dwell_minutes=estimate_dwell_minutes(stop.goal),
    )


def _walk_within_budget(
    ordered: list[ScoredPlace], origin: LatLon, budget: int | None, day: int | None = None
) -> list[ItineraryStop]:
    """Walk the ordered stops, stopping at the first one that would overflow."""
    stops: list[ItineraryStop] = []
    used = 0
    previous_ref, previous_point = "origin", origin
    for place in ordered:
        leg = _leg(previous_ref, previous_point, place)
        cost = leg.walk_minutes + leg.dwell_minutes
        if budget is not None and used + cost > budget:
            break
        stops.append(ItineraryStop(place=place, leg=leg, day=day))
        used += cost
        previous_ref, previous_point = place.canonical_id, place.place
    return stops


def _cost(stops: list[ItineraryStop]) -> int:
    return sum(s.leg.walk_minutes + s.leg.dwell_minutes for s in stops)


def _build(
    stops: list[ItineraryStop], closing_leg: RouteLeg | None, requested_minutes: int
) -> Itinerary:
    total_walk = sum(s.leg.walk_minutes for s in stops)
    total_dwell = sum(s.leg.dwell_minutes for s in stops)
    if closing_leg is not None:
        total_walk += closing_leg.walk_minutes
    return Itinerary(
        stops=tuple(stops),
        closing_leg=closing_leg,
        total_walk_minutes=total_walk,
        total_dwell_minutes=total_dwell,
        total_minutes=total_walk + total_dwell,
        requested_minutes=requested_minutes,
    )


def trim_to_budget(
    ordered: list[ScoredPlace],
    origin: LatLon,
    requested_minutes: int,
    policy: DestinationPolicy = "none",
    destination: LatLon | None = None,
) -> Itinerary:
    """
    Fit an ordered route into a time budget.

    Stops too long to fit even on their own are skipped; the rest are added
    until the next one would overflow. When that loses every
    stop of some goal, the lowest-scoring stop of a goal holding several
    stops is removed and the walk repeated. For loop and fixed policies the
    closing leg is added, dropping trailing stops until it fits.

    Returns:
        Itinerary with total_minutes <= requested_minutes
    """
    # A stop that does not fit on its own, straight from the origin, is unreachable
    candidates = [
        c
        for c in ordered
        if walk_minutes(origin, c.place) + estimate_dwell_minutes(c.goal) <= requested_minutes
    ]
    goals_present = {c.goal for c in candidates}

    while True:
        stops = _walk_within_budget(candidates, origin, requested_minutes)
        missing = goals_present - {s.place.goal for s in stops}
        if not missing:
            break
        counts: dict[str, int] = {}
        for c in candidates:
            counts[c.goal] = counts.get(c.goal, 0) + 1
        removable = [c for c in candidates if counts[c.goal] > 1]
        if not removable:
            break
        victim = min(removable, key=lambda c: (c.composite_score, c.canonical_id))
        logger.debug(
            f"[Planner] Dropping {victim.place.name} ({victim.goal}) to make room for {missing}"
        )
        candidates.remove(victim)

    closing_leg = None
    if policy in ("loop", "fixed"):
        target = origin if policy == "loop" else destination
        target_ref = "origin" if policy == "loop" else "destination"
        if target is None:
            raise ValueError("destination is required when policy is 'fixed'")
        while True:
            if stops:
                last_ref, last_point = stops[-1].place.canonical_id, stops[-1].place.place
            else:
                last_ref, last_point = "origin", origin
            leg = RouteLeg(
                from_ref=last_ref,
                to_ref=target_ref,
                walk_minutes=walk_minutes(last_point, target),
            )
            if _cost(stops) + leg.walk_minutes <= requested_minutes:
                closing_leg = leg
                break
            if not stops:
                logger.warning("[Planner] Closing leg alone exceeds the time budget")
                break
            stops.pop()

    itinerary = _build(stops, closing_leg, requested_minutes)
    logger.info(
        f"[Planner] Trimmed to {len(itinerary.stops)}/{len(ordered)} stops, "
        f"{itinerary.total_minutes}/{requested_minutes} min"
    )
    return itinerary


def split_into_days(
    ordered: list[ScoredPlace],
    origin: LatLon,
    days: int,
    per_day: int = 7,
    requested_minutes: int | None = None,
) -> Itinerary:
    """
    Partition ordered stops into fixed-size day buckets.

    Day N takes the next `per_day` consecutive stops, so geographically close
    stops share a day and only the last used day may be short. Every day
    starts from the origin and keeps nightlife for the end. There is no time
    trim: every stop up to `days * per_day` is kept, and short inputs give
    fewer days rather than invented stops.
    """
    if requested_minutes is None:
        requested_minutes = 0
    usable = ordered[: days * per_day]
    stops: list[ItineraryStop] = []
    for index in range(days):
        chunk = usable[index * per_day : (index + 1) * per_day]
        if not chunk:
            break
        stops.extend(_walk_within_budget(push_nightlife_last(chunk), origin, None, day=index + 1))

    itinerary = _build(stops, None, requested_minutes)
    logger.info(f"[Planner] Split {len(stops)} stops over {days} days")
    return itinerary
