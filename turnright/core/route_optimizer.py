"""
Greedy, quality-weighted stop ordering.
"""

import math

from turnright.core.category_rules import get_goal_rule
from turnright.core.geo_utils import distance_km
from turnright.core.schemas import LatLon, ScoredPlace
from turnright.core.settings import ScoringWeights


def route_utility(current, candidate: ScoredPlace, weights: ScoringWeights) -> float:
    place = candidate.place
    return (
        weights.route_distance * distance_km(current, place)
        + weights.route_rating * (place.rating or 0)
        + weights.route_review_log * math.log(place.review_count + 1)
    )


def optimize_route(
    places: list[ScoredPlace],
    origin: LatLon,
    weights: ScoringWeights | None = None,
) -> list[ScoredPlace]:
    """
    Order stops by nearest neighbour, weighted towards well-rated places.

    From the current point, repeatedly pick the remaining place with the
    highest -1.5*km + 0.3*rating + 0.2*ln(reviews+1); ties go to the lower
    canonical id. Not an optimal tour.

    Args:
        places: Selected stops, any order
        origin: Starting point

    Returns:
        The same stops in visiting order
    """
    weights = weights or ScoringWeights()
    remaining = list(places)
    ordered: list[ScoredPlace] = []
    current = origin

    while remaining:
        best = min(
            remaining,
            key=lambda c: (-round(route_utility(current, c, weights), 9), c.canonical_id),
        )
        remaining.remove(best)
        ordered.append(best)
        current = best.place

    return ordered


def is_nightlife(goal: str) -> bool:
    rule = get_goal_rule(goal)
    return bool(rule and rule.nightlife)


def push_nightlife_last(ordered: list[ScoredPlace]) -> list[ScoredPlace]:
    """Move nightlife stops (Bars) to the end, keeping relative order in both groups."""
    day = [stop for stop in ordered if not is_nightlife(stop.goal)]
    night = [stop for stop in ordered if is_nightlife(stop.goal)]
    return day + night
