"""
Human-facing details for route stops: descriptions, price hints and a
Google Maps walking-directions link for the whole route.
"""

from urllib.parse import urlencode

from turnright.core.schemas import LatLon, Place

MAPS_DIRECTIONS_URL = "https://www.google.com/maps/dir/"

# Goal -> presentation kind used by the description and price tables
GOAL_KINDS: dict[str, str] = {
    "Museums": "museum",
    "Parks": "park",
    "Restaurants": "restaurant",
    "Bars": "bar",
    "Viewpoints": "attraction",
    "Architectural landmarks": "attraction",
}

DESCRIPTION_TEMPLATES: dict[str, str] = {
    "museum": (
        "A cultural institution featuring exhibitions and collections. "
        "Perfect for exploring art, history, and culture."
    ),
    "park": "A green space ideal for relaxation, walking, and enjoying nature in the city.",
    "restaurant": "Local dining experience offering authentic flavors and cuisine.",
    "bar": "Popular spot for drinks and socializing with locals and visitors.",
    "attraction": (
        "Notable landmark and point of interest worth visiting for its unique character."
    ),
}
DEFAULT_DESCRIPTION = "Interesting location that offers a unique local experience."

# Kind -> price text per Google price_level (0-4), plus the text when it is unknown
PRICE_TEXTS: dict[str, tuple[list[str], str]] = {
    "museum": (
        [
            "Free admission",
            "Budget-friendly admission (under €10)",
            "Moderate admission (€10-20)",
            "Higher admission (€20-35)",
            "Premium admission (€35+)",
        ],
        "Check website for current ticket prices",
    ),
    "restaurant": (
        [
            "Very affordable dining",
            "Budget dining (€5-15 per meal)",
            "Mid-range dining (€15-35 per meal)",
            "Upscale dining (€35-60 per meal)",
            "Fine dining (€60+ per meal)",
        ],
        "Price range varies",
    ),
    "attraction": (
        [
            "Free to visit",
            "Low cost attraction",
            "Moderate entrance fee",
            "Higher entrance fee",
            "Premium attraction pricing",
        ],
        "Check for entrance fees",
    ),
}


def describe_place(place: Place, goal: str) -> str:
    """
    Short description of a stop.

    The editorial summary wins when the place has one; otherwise a template
    for the goal's kind is used. A "Rated X/5 by N visitors" note is added
    when both rating and review count are known.
    """
    if place.editorial_summary:
        description = place.editorial_summary
    else:
        description = DESCRIPTION_TEMPLATES.get(GOAL_KINDS.get(goal, ""), DEFAULT_DESCRIPTION)

    if place.rating and place.review_count:
        description += f" Rated {place.rating}/5 by {place.review_count:,} visitors."
    return description


def price_text(place: Place, goal: str) -> str | None:
    """Price hint from price_level, or None for goals where price is not shown."""
    texts = PRICE_TEXTS.get(GOAL_KINDS.get(goal, ""))
    if texts is None:
        return None
    levels, unknown = texts
    if place.price_level is None or not 0 <= place.price_level < len(levels):
        return unknown
    return levels[place.price_level]


def _point(lat: float, lon: float) -> str:
    return f"{lat},{lon}"


def walking_map_url(
    origin: LatLon, stops: list[Place], end: LatLon | None = None
) -> str | None:
    """
    Google Maps walking directions from the origin through every stop.

    Args:
        origin: Route start
        stops: Stops in visiting order
        end: Where the route finishes after the last stop (loop or fixed
            destination); without it the last stop is the destination

    Returns:
        URL, or None for a route with no stops
    """
    if not stops:
        return None

    if end is not None:
        destination = _point(end.lat, end.lon)
        waypoints = stops
    else:
        destination = _point(stops[-1].lat, stops[-1].lon)
        waypoints = stops[:-1]

    params = {
        "api": "1",
        "origin": _point(origin.lat, origin.lon),
        "destination": destination,
    }
    if waypoints:
        params["waypoints"] = "|".join(_point(p.lat, p.lon) for p in waypoints)
    params["travelmode"] = "walking"
    return f"{MAPS_DIRECTIONS_URL}?{urlencode(params, safe=',|')}"
