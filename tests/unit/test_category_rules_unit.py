from turnright.core.category_rules import GOAL_RULES, get_goal_rule, matches, normalize_text
from turnright.core.schemas import Place


def place(name, types=(), **fields):
    return Place(name=name, lat=52.23, lon=21.01, types=list(types), **fields)


def test_every_goal_has_a_rule():
    names = {rule.name for rule in GOAL_RULES}
    assert names == {
        "Restaurants",
        "Cafés",
        "Bars",
        "Viewpoints",
        "Parks",
        "Museums",
        "Architectural landmarks",
        "Coworking",
        "Bakery",
        "Specialty coffee",
    }


def test_aliases_resolve_to_canonical_goals():
    assert get_goal_rule("coffee").name == "Cafés"
    assert get_goal_rule("cafes").name == "Cafés"
    assert get_goal_rule("work").name == "Coworking"
    assert get_goal_rule("monuments").name == "Architectural landmarks"
    assert get_goal_rule("BARS").name == "Bars"
    assert get_goal_rule("karaoke") is None


def test_normalize_text_folds_accents_and_punctuation():
    assert normalize_text("Café Ślimak!") == "cafe slimak"
    assert normalize_text("Third-Wave  Roasters") == "third wave roasters"


def test_type_and_keyword_give_full_fit():
    result = matches(place("Muzeum Narodowe", ["museum"]), "Museums")
    assert result.is_match
    assert result.fit_score == 3
    assert result.matched_keywords == ["muzeum"]


def test_type_only_fit_is_two():
    result = matches(place("Zachęta", ["art_gallery"]), "Museums")
    assert result.is_match
    assert result.fit_score == 2


def test_keyword_only_match_is_rejected_in_strict_mode():
    viewpoint = place("Taras Widokowy PKiN", ["tourist_attraction"])
    assert matches(viewpoint, "Viewpoints").is_match
    assert matches(viewpoint, "Viewpoints").fit_score == 1
    assert not matches(viewpoint, "Viewpoints", strict=True).is_match


def test_keywords_respect_word_boundaries():
    assert not matches(place("Barbershop Kowalski", ["hair_care"]), "Bars").is_match
    assert matches(place("Bar Studio", []), "Bars").is_match


def test_accented_names_match_keywords():
    assert matches(place("Café Ślimak"), "Cafés").is_match


def test_viewpoints_reject_museums_without_viewpoint_cues():
    result = matches(place("National Museum", ["museum", "tourist_attraction"]), "Viewpoints")
    assert not result.is_match
    assert "museum" in result.reason

    rooftop = place("Museum Rooftop Viewpoint", ["museum", "tourist_attraction"])
    assert matches(rooftop, "Viewpoints").is_match


def test_coworking_rejects_libraries_without_coworking_cues():
    assert not matches(place("City Library", ["library"]), "Coworking").is_match
    result = matches(place("City Library Coworking Hub", ["library"]), "Coworking")
    assert result.is_match
    assert result.matched_keywords == ["coworking"]


def test_parks_reject_parking_lots():
    assert not matches(place("Central Parking", ["parking"]), "Parks").is_match
    result = matches(place("Car Park Centrum", ["park"]), "Parks")
    assert not result.is_match
    assert result.reason == "parking lot"
    assert matches(place("Park Łazienkowski", ["park"]), "Parks").is_match


def test_closed_businesses_never_match():
    closed = place("Bistro Nowe", ["restaurant"], business_status="CLOSED_PERMANENTLY")
    result = matches(closed, "Restaurants")
    assert not result.is_match
    assert result.reason == "business closed"


def test_specialty_coffee_rejects_chains_and_generic_cafes():
    assert not matches(place("Starbucks Reserve", ["cafe"]), "Specialty coffee").is_match

    generic = place("Kawiarnia Zwykła", ["cafe"], rating=4.2, review_count=50)
    assert not matches(generic, "Specialty coffee").is_match

    roaster = matches(place("Kawa Roasters", ["cafe"]), "Specialty coffee")
    assert roaster.is_match
    assert roaster.fit_score == 3

    beloved = place("Kawiarnia Zwykła", ["cafe"], rating=4.7, review_count=150)
    assert matches(beloved, "Specialty coffee").fit_score == 2


def test_unknown_goal_is_a_deterministic_non_match():
    result = matches(place("Anything", ["bar"]), "Karaoke")
    assert not result.is_match
    assert result.reason == "unknown goal"
    assert result.fit_score == 0


def test_match_is_pure():
    candidate = place("Muzeum Narodowe", ["museum"])
    assert matches(candidate, "Museums") == matches(candidate, "Museums")
