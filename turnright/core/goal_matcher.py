"""
Split a merged candidate pool into per-goal buckets.
"""

import logging

from turnright.core.candidate_collector import place_identity
from turnright.core.category_rules import MatchResult, matches
from turnright.core.schemas import Place, RejectedCandidate

logger = logging.getLogger(__name__)


def split_into_buckets(
    pool: list[Place],
    goals: list[str],
    strict: bool = False,
    collected_for: dict[str, set[str]] | None = None,
) -> tuple[dict[str, list[tuple[Place, MatchResult]]], dict[str, list[RejectedCandidate]]]:
    """
    Apply the category rules to every (candidate, goal) pair.

    A candidate collected for one goal may match another; every goal sees the
    whole pool.

    Args:
        pool: Merged, de-duplicated candidates
        goals: Canonical goal names
        strict: Require an allowed type for a match
        collected_for: Goal -> identities collected for it. Only those
            candidates are reported in the goal's rejected list.

    Returns:
        (matched, rejected): goal -> [(place, match)] in pool order, and
        goal -> rejected candidates with reasons
    """
    matched: dict[str, list[tuple[Place, MatchResult]]] = {goal: [] for goal in goals}
    rejected: dict[str, list[RejectedCandidate]] = {goal: [] for goal in goals}

    for goal in goals:
        own = (collected_for or {}).get(goal)
        for place in pool:
            result = matches(place, goal, strict)
            if result.is_match:
                matched[goal].append((place, result))
            elif own is None or place_identity(place) in own:
                rejected[goal].append(
                    RejectedCandidate(
                        place_id=place.place_id, name=place.name, reason=result.reason or ""
                    )
                )
        logger.debug(
            f"[Matcher] {goal}: {len(matched[goal])} matched, {len(rejected[goal])} rejected"
        )

    return matched, rejected
