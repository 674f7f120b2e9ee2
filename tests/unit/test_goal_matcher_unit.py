from turnright.core.goal_matcher import split_into_buckets


def test_every_goal_sees_the_whole_pool(make_place):
    narodowe = make_place("Muzeum Narodowe", ["museum"])
    pub = make_place("Pub Lubelska", ["bar"])

    matched, _ = split_into_buckets([narodowe, pub], ["Museums", "Bars"])

    assert [p.name for p, _ in matched["Museums"]] == ["Muzeum Narodowe"]
    assert [p.name for p, _ in matched["Bars"]] == ["Pub Lubelska"]


def test_place_can_match_several_goals(make_place):
    roastery = make_place("Kawa Roasters Cafe", ["cafe"])

    matched, _ = split_into_buckets([roastery], ["Cafés", "Specialty coffee"])

    assert len(matched["Cafés"]) == 1
    assert len(matched["Specialty coffee"]) == 1


def test_rejections_are_reported_for_own_candidates_only(make_place):
    parking = make_place("Central Parking", ["parking"])
    pub = make_place("Pub Lubelska", ["bar"])

    _, rejected = split_into_buckets(
        [parking, pub],
        ["Parks", "Bars"],
        collected_for={"Parks": {parking.place_id}, "Bars": {pub.place_id}},
    )

    assert [r.name for r in rejected["Parks"]] == ["Central Parking"]
    assert rejected["Parks"][0].reason == "parking or amusement park"
    assert rejected["Bars"] == []


def test_strict_mode_drops_keyword_only_matches(make_place):
    terrace = make_place("Taras Widokowy", ["tourist_attraction"])

    relaxed, _ = split_into_buckets([terrace], ["Viewpoints"])
    strict, _ = split_into_buckets([terrace], ["Viewpoints"], strict=True)

    assert len(relaxed["Viewpoints"]) == 1
    assert strict["Viewpoints"] == []
