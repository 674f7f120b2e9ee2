from turnright.core.route_optimizer import optimize_route, push_nightlife_last
from turnright.core.schemas import ScoreBreakdown, ScoredPlace


def scored(place, goal="Museums", composite=15.0):
    return ScoredPlace(
        place=place,
        goal=goal,
        canonical_id=place.place_id,
        fit_score=2,
        vibe_score=1,
        composite_score=composite,
        breakdown=ScoreBreakdown(
            base=0, fit=2, vibe=1, keyword_bonus=0, chain_penalty=0, distance_penalty=0, distance_km=0
        ),
    )


def test_nearest_neighbour_with_equal_quality(make_place, origin):
    far = scored(make_place("Far", ["museum"], north_m=1500, rating=4.5))
    near = scored(make_place("Near", ["museum"], north_m=500, rating=4.5))
    mid = scored(make_place("Mid", ["museum"], north_m=1000, rating=4.5))

    ordered = optimize_route([far, near, mid], origin)

    assert [s.place.name for s in ordered] == ["Near", "Mid", "Far"]


def test_quality_can_beat_a_slightly_shorter_walk(make_place, origin):
    mediocre = scored(make_place("Mediocre", ["museum"], north_m=500, rating=3.0))
    excellent = scored(make_place("Excellent", ["museum"], north_m=700, rating=5.0))

    # -1.5*0.5 + 0.3*3.0 = 0.15 versus -1.5*0.7 + 0.3*5.0 = 0.45
    ordered = optimize_route([mediocre, excellent], origin)

    assert ordered[0].place.name == "Excellent"


def test_ties_break_by_canonical_id(make_place, origin):
    b = scored(make_place("Twin", ["museum"], place_id="b", north_m=300))
    a = scored(make_place("Twin", ["museum"], place_id="a", north_m=300))

    assert [s.canonical_id for s in optimize_route([b, a], origin)] == ["a", "b"]


def test_optimize_route_keeps_every_stop(make_place, origin):
    stops = [scored(make_place(f"Stop {i}", ["museum"], east_m=i * 250)) for i in range(6)]
    ordered = optimize_route(list(reversed(stops)), origin)
    assert sorted(s.canonical_id for s in ordered) == sorted(s.canonical_id for s in stops)


def test_push_nightlife_last_is_stable(make_place):
    bar1 = scored(make_place("Pub A", ["bar"]), goal="Bars")
    museum = scored(make_place("Muzeum", ["museum"]))
    bar2 = scored(make_place("Pub B", ["bar"]), goal="Bars")
    park = scored(make_place("Park", ["park"]), goal="Parks")

    reordered = push_nightlife_last([bar1, museum, bar2, park])

    assert [s.place.name for s in reordered] == ["Muzeum", "Park", "Pub A", "Pub B"]
