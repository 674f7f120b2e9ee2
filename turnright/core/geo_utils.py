"""
Geographic utilities for distance and walking-time estimation.
"""

import math
import re
from typing import Any

from turnright.core.schemas import LatLon

# ~5 km/h walking pace
WALK_MINUTES_PER_KM = 12

# Crossing the river (or a similar barrier) costs more than the straight line
# suggests. Applied whenever the longitudinal delta exceeds the threshold.
RIVER_CROSSING_LON_DELTA = 0.015
RIVER_CROSSING_PENALTY_MINUTES = 3

_COORD_PATTERN = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lng1: Coordinates of point 1
        lat2, lng2: Coordinates of point 2

    Returns:
        Distance in kilometers
    """
    R = 6371  # Earth's radius in kilometers

    # Convert to radians
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    # Haversine formula
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def distance_km(a: Any, b: Any) -> float:
    """Distance between any two objects exposing `lat` and `lon`."""
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def walk_minutes(a: Any, b: Any) -> int:
    """
    Estimate walking minutes between two points.

    Straight-line distance at a fixed pace, plus a flat penalty when the
    longitudinal delta suggests a river crossing. This is an approximation,
    not a street-network route.
    """
    minutes = round(distance_km(a, b) * WALK_MINUTES_PER_KM)
    if abs(a.lon - b.lon) > RIVER_CROSSING_LON_DELTA:
        minutes += RIVER_CROSSING_PENALTY_MINUTES
    return minutes


def parse_lat_lon(text: str | None) -> LatLon | None:
    """
    Parse a "lat,lon" string.

    Returns:
        LatLon, or None when the text is not a coordinate pair (e.g. an address)

    Raises:
        ValueError: the text is a coordinate pair but out of range
    """
    if not text:
        return None
    match = _COORD_PATTERN.match(text)
    if not match:
        return None
    lat = float(match.group(1))
    lon = float(match.group(2))
    if not -90 <= lat <= 90 or not -180 <= lon <= 180:
        raise ValueError(f"Coordinates out of range: {text}")
    return LatLon(lat=lat, lon=lon)
