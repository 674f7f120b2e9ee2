from turnright.core.schemas import LatLon
from turnright.core.stop_details import describe_place, price_text, walking_map_url


def test_description_prefers_editorial_summary(make_place):
    place = make_place(
        "Muzeum POLIN", ["museum"], editorial_summary="History of Polish Jews.", rating=4.8, review_count=25000
    )
    assert describe_place(place, "Museums") == "History of Polish Jews. Rated 4.8/5 by 25,000 visitors."


def test_description_falls_back_to_goal_template(make_place):
    park = make_place("Park Skaryszewski", ["park"])
    assert describe_place(park, "Parks").startswith("A green space")
    assert describe_place(make_place("Biuro", ["coworking_space"]), "Coworking") == (
        "Interesting location that offers a unique local experience."
    )


def test_price_text_by_goal_and_level(make_place):
    assert price_text(make_place("Zachęta", ["art_gallery"], price_level=0), "Museums") == "Free admission"
    assert price_text(make_place("Zoni", ["restaurant"], price_level=3), "Restaurants") == (
        "Upscale dining (€35-60 per meal)"
    )
    assert price_text(make_place("Zamek", ["castle"]), "Architectural landmarks") == (
        "Check for entrance fees"
    )
    assert price_text(make_place("Pub", ["bar"], price_level=2), "Bars") is None


def test_map_url_ends_at_last_stop(make_place, origin):
    first = make_place("A", ["museum"], north_m=100)
    last = make_place("B", ["museum"], north_m=200)

    url = walking_map_url(origin, [first, last])

    assert url == (
        "https://www.google.com/maps/dir/?api=1"
        f"&origin=52.23,21.01&destination={last.lat},{last.lon}"
        f"&waypoints={first.lat},{first.lon}&travelmode=walking"
    )


def test_map_url_for_loop_returns_to_origin(make_place, origin):
    only = make_place("A", ["museum"], north_m=100)

    url = walking_map_url(origin, [only], end=LatLon(lat=52.23, lon=21.01))

    assert "destination=52.23,21.01" in url
    assert f"waypoints={only.lat},{only.lon}" in url


def test_map_url_without_stops(origin):
    assert walking_map_url(origin, []) is None
