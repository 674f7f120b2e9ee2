"""
Composite ("coolness") scoring of candidates against a goal.
"""

import math

from turnright.core.category_rules import (
    CHAIN_BRANDS,
    GoalRule,
    MatchResult,
    find_keywords,
    matches,
    normalize_text,
    place_text,
)
from turnright.core.deduplicator import canonical_id
from turnright.core.geo_utils import distance_km
from turnright.core.schemas import LatLon, Place, ScoreBreakdown, ScoredPlace
from turnright.core.settings import ScoringWeights

POSITIVE_CUES = (
    "rooftop",
    "artisan",
    "artisanal",
    "panoramic",
    "third wave",
    "speakeasy",
    "hidden gem",
    "craft",
    "family run",
    "locals",
    "historic",
    "handmade",
    "natural wine",
    "live music",
    "terrace",
    "garden",
    "specialty",
)

NEGATIVE_CUES = (
    "tourist trap",
    "chain",
    "souvenir",
    "franchise",
    "fast food",
    "overpriced",
    "all you can eat",
    "duty free",
)

BASE_VIBE = 1.0
POSITIVE_CUE_WEIGHT = 0.5
POSITIVE_CUE_CAP = 1.5
NEGATIVE_CUE_WEIGHT = 0.75
CROWD_FAVOURITE_BONUS = 0.5
CHAIN_VIBE_PENALTY = 1.0


def base_score(place: Place, weights: ScoringWeights | None = None) -> float:
    weights = weights or ScoringWeights()
    rating = place.rating or 0
    return weights.rating * rating + weights.review_log * math.log(place.review_count + 1)


def is_chain(place: Place) -> bool:
    return bool(find_keywords(normalize_text(place.name), CHAIN_BRANDS))


def vibe_score(place: Place) -> float:
    """Text heuristic over name + editorial summary, clamped to [0, 3]."""
    text = place_text(place)
    positive = len(find_keywords(text, POSITIVE_CUES)) * POSITIVE_CUE_WEIGHT
    vibe = BASE_VIBE + min(positive, POSITIVE_CUE_CAP)
    vibe -= len(find_keywords(text, NEGATIVE_CUES)) * NEGATIVE_CUE_WEIGHT
    if (place.rating or 0) >= 4.5 and place.review_count >= 200:
        vibe += CROWD_FAVOURITE_BONUS
    if is_chain(place):
        vibe -= CHAIN_VIBE_PENALTY
    return max(0.0, min(3.0, vibe))


def score_place(
    place: Place,
    rule: GoalRule,
    origin: LatLon,
    weights: ScoringWeights | None = None,
    match: MatchResult | None = None,
) -> ScoredPlace | None:
    """
    Score a place for one goal.

    Args:
        place: Candidate
        rule: Goal rule the place is scored against
        origin: Route origin, for the distance penalty
        weights: Score coefficients
        match: Precomputed match result, recomputed when omitted

    Returns:
        ScoredPlace, or None if the place does not match the goal
    """
    weights = weights or ScoringWeights()
    match = match or matches(place, rule)
    if not match.is_match:
        return None

    base = base_score(place, weights)
    vibe = vibe_score(place)
    keyword_bonus = weights.keyword_bonus if match.matched_keywords else 0.0
    chain_penalty = weights.chain_penalty if is_chain(place) else 0.0
    km = distance_km(origin, place)
    distance_penalty = weights.distance_per_km * min(km, weights.distance_cap_km)

    composite = (
        base
        + weights.fit_vibe * (match.fit_score + vibe)
        + keyword_bonus
        - chain_penalty
        - distance_penalty
    )

    return ScoredPlace(
        place=place,
        goal=rule.name,
        canonical_id=canonical_id(place),
        fit_score=match.fit_score,
        vibe_score=vibe,
        composite_score=round(composite, 4),
        matched_keywords=match.matched_keywords,
        breakdown=ScoreBreakdown(
            base=round(base, 4),
            fit=match.fit_score,
            vibe=vibe,
            keyword_bonus=keyword_bonus,
            chain_penalty=chain_penalty,
            distance_penalty=round(distance_penalty, 4),
            distance_km=round(km, 3),
        ),
    )


def rank_key(scored: ScoredPlace) -> tuple[float, float, str]:
    return (-scored.composite_score, -scored.vibe_score, scored.canonical_id)


def rank(scored: list[ScoredPlace]) -> list[ScoredPlace]:
    """Composite desc, then vibe desc, then canonical id."""
    return sorted(scored, key=rank_key)
