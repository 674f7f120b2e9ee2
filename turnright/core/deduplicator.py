"""
Canonical identity and duplicate merging for places from multiple sources.
"""

import logging
from typing import Any, TypeVar

from turnright.core.category_rules import normalize_text
from turnright.core.geo_utils import haversine_distance
from turnright.core.schemas import Place, ScoredPlace

logger = logging.getLogger(__name__)

DEFAULT_DUPLICATE_DISTANCE_M = 50

# Fields back-filled from the losing duplicate when the winner lacks them
BACKFILL_FIELDS = (
    "rating",
    "price_level",
    "business_status",
    "editorial_summary",
    "address",
)

T = TypeVar("T")


def normalize_name(name: str) -> str:
    """Case, accent and punctuation insensitive form of a place name."""
    return normalize_text(name)


def canonical_id(place: Place) -> str:
    """External id if present, else normalized name + coordinates at 5 decimals."""
    if place.place_id:
        return place.place_id
    return f"{normalize_name(place.name)}|{round(place.lat, 5)},{round(place.lon, 5)}"


def is_same_place(
    a: Place, b: Place, threshold_m: float = DEFAULT_DUPLICATE_DISTANCE_M
) -> bool:
    if canonical_id(a) == canonical_id(b):
        return True
    if normalize_name(a.name) != normalize_name(b.name):
        return False
    return haversine_distance(a.lat, a.lon, b.lat, b.lon) * 1000 <= threshold_m


def _prefer(a: Place, b: Place) -> tuple[Place, Place]:
    """Return (winner, loser): more reviews wins, then higher rating."""
    key_a = (a.review_count, a.rating or 0)
    key_b = (b.review_count, b.rating or 0)
    return (b, a) if key_b > key_a else (a, b)


def merge_pair(a: Place, b: Place) -> Place:
    winner, loser = _prefer(a, b)
    update: dict[str, Any] = {}
    for field in BACKFILL_FIELDS:
        if getattr(winner, field) is None and getattr(loser, field) is not None:
            update[field] = getattr(loser, field)
    if not winner.place_id and loser.place_id:
        update["place_id"] = loser.place_id
    if not winner.opening_hours and loser.opening_hours:
        update["opening_hours"] = loser.opening_hours
    if not winner.photo_references and loser.photo_references:
        update["photo_references"] = loser.photo_references
    extra_types = [t for t in loser.types if t not in winner.types]
    if extra_types:
        update["types"] = winner.types + extra_types
    return winner.model_copy(update=update) if update else winner


def merge_duplicates(
    places: list[Place], threshold_m: float = DEFAULT_DUPLICATE_DISTANCE_M
) -> list[Place]:
    """
    Collapse duplicates in a candidate pool.

    Two places are duplicates when they share a canonical id, or when their
    normalized names are equal and they lie within `threshold_m` meters.
    The merged record sits at the position of the first occurrence.
    """
    merged: list[Place] = []
    for place in places:
        for i, existing in enumerate(merged):
            if is_same_place(existing, place, threshold_m):
                merged[i] = merge_pair(existing, place)
                break
        else:
            merged.append(place)

    if len(merged) != len(places):
        logger.info(f"[Dedup] Merged {len(places) - len(merged)} duplicate places")
    return merged


def dedupe_scored(
    scored: list[ScoredPlace], threshold_m: float = DEFAULT_DUPLICATE_DISTANCE_M
) -> list[ScoredPlace]:
    """Keep the first of every duplicate group, preserving order."""
    kept: list[ScoredPlace] = []
    for candidate in scored:
        if any(is_same_place(k.place, candidate.place, threshold_m) for k in kept):
            continue
        kept.append(candidate)
    return kept


def collapse_consecutive(stops: list[T], threshold_m: float = DEFAULT_DUPLICATE_DISTANCE_M) -> list[T]:
    """
    Drop stops that duplicate the stop right before them.

    Stops are ScoredPlace or anything exposing `.place` as a ScoredPlace.
    """
    collapsed: list[T] = []
    for stop in stops:
        if collapsed and is_same_place(_place_of(collapsed[-1]), _place_of(stop), threshold_m):
            continue
        collapsed.append(stop)
    return collapsed


def _place_of(stop: Any) -> Place:
    inner = stop.place
    return inner.place if isinstance(inner, ScoredPlace) else inner
