"""
Quick manual check of route generation against the live Google Places and
Overpass APIs. Needs GOOGLE_PLACES_API_KEY in the environment or .env.
"""

import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from turnright.api.routers.routes import get_route_engine
from turnright.core.schemas import RouteRequest


def try_route_generation():
    engine = get_route_engine()

    print("--- On-site: bars and museums in Warsaw, 3 hours ---")
    response = engine.generate(
        RouteRequest(
            origin_lat_lon={"lat": 52.2297, "lon": 21.0122},
            goals=["Bars", "Museums"],
            requested_minutes=180,
        )
    )
    print(f"Success: {response.success} ({response.reason or 'ok'})")
    for i, stop in enumerate(response.places, 1):
        print(
            f"{i}. {stop.name} [{stop.goal}] walk {stop.walk_minutes_from_previous} min, "
            f"stay {stop.dwell_minutes} min, score {stop.score}"
        )
    print(f"Total: {response.total_minutes}/{response.requested_minutes} min")
    if response.map_url:
        print(f"Map: {response.map_url}")
    for goal in response.insufficient_goals:
        print(f"Short on {goal.goal}: {goal.have}/{goal.need} ({goal.reason})")

    print("\n--- Planning: viewpoints and cafés in Kraków over 2 days ---")
    response = engine.generate(
        RouteRequest(
            origin_address="Rynek Główny, Kraków",
            goals=["Viewpoints", "Cafés"],
            scenario="planning",
            days=2,
        )
    )
    for stop in response.places:
        print(f"Day {stop.day}: {stop.name} [{stop.goal}]")

    print("\n✅ Done!")


if __name__ == "__main__":
    try_route_generation()
