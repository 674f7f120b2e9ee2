import math

import pytest

from turnright.core.category_rules import get_goal_rule
from turnright.core.scorer import rank, score_place, vibe_score


def test_composite_score_breakdown(make_place, origin):
    museum = make_place("Muzeum Narodowe", ["museum"], rating=4.5, review_count=99)

    scored = score_place(museum, get_goal_rule("Museums"), origin)

    base = 2 * 4.5 + 0.5 * math.log(100)
    assert scored.breakdown.base == pytest.approx(base, abs=1e-3)
    assert scored.fit_score == 3
    assert scored.vibe_score == 1.0
    assert scored.breakdown.keyword_bonus == 2
    assert scored.breakdown.chain_penalty == 0
    assert scored.breakdown.distance_penalty == 0
    assert scored.composite_score == pytest.approx(base + 1.5 * (3 + 1) + 2, abs=1e-3)
    assert scored.canonical_id == museum.place_id


def test_non_matching_place_is_not_scored(make_place, origin):
    assert score_place(make_place("Pub", ["bar"]), get_goal_rule("Museums"), origin) is None


def test_chain_penalty_and_vibe(make_place, origin):
    chain = make_place("Starbucks Marszałkowska", ["cafe"], rating=4.0, review_count=0)

    scored = score_place(chain, get_goal_rule("Cafés"), origin)

    assert scored.breakdown.chain_penalty == 0.8
    assert scored.vibe_score == 0.0


def test_distance_penalty_is_capped(make_place, origin):
    near = make_place("Park Ujazdowski", ["park"], north_m=2000)
    far = make_place("Las Kabacki Park", ["park"], north_m=10_000)
    rule = get_goal_rule("Parks")

    assert score_place(near, rule, origin).breakdown.distance_penalty == pytest.approx(1.0, abs=0.01)
    assert score_place(far, rule, origin).breakdown.distance_penalty == 2.0


def test_vibe_score_cues_and_clamp(make_place):
    gem = make_place(
        "Rooftop Speakeasy",
        editorial_summary="Hidden gem with craft cocktails, live music and a terrace",
        rating=4.8,
        review_count=900,
    )
    trap = make_place("Souvenir Bar", editorial_summary="Tourist trap near the square")

    assert vibe_score(gem) == 3.0
    # Two negative cues push it below zero, clamped
    assert vibe_score(trap) == 0.0


def test_ranking_is_deterministic(make_place, origin):
    rule = get_goal_rule("Bars")
    a = score_place(make_place("Bar A", ["bar"], place_id="b"), rule, origin)
    b = score_place(make_place("Bar A", ["bar"], place_id="a"), rule, origin)
    better = score_place(make_place("Bar A", ["bar"], place_id="c", rating=4.9), rule, origin)

    ranked = rank([a, better, b])

    assert [s.canonical_id for s in ranked] == ["c", "a", "b"]
    assert rank([b, a, better]) == ranked
