"""Great-circle distance between two coordinates."""

import math

from weather_suggest.models.geo import Coordinate

# The mean Earth radius.
EARTH_RADIUS_KM = 6371.009


def great_circle_distance_km(a: Coordinate, b: Coordinate) -> float:
    """Return the great-circle distance between two coordinates in km.

    Uses the spherical law of cosines. That is stable and accurate enough for
    choosing between cities, which is all it is used for.

    Args:
        a: First coordinate in decimal degrees.
        b: Second coordinate in decimal degrees.

    Returns:
        Distance along the Earth's surface in kilometers.

    Raises:
        ValueError: If any latitude or longitude is not finite.
    """
    if not (a.is_finite() and b.is_finite()):
        raise ValueError("Coordinates must be finite")

    a_lat, a_long = math.radians(a.latitude), math.radians(a.longitude)
    b_lat, b_long = math.radians(b.latitude), math.radians(b.longitude)
    cos_angle = math.sin(a_lat) * math.sin(b_lat) + math.cos(a_lat) * math.cos(
        b_lat
    ) * math.cos(abs(a_long - b_long))
    # rounding can push coincident points just past 1
    cos_angle = max(-1.0, min(1.0, cos_angle))
    return EARTH_RADIUS_KM * math.acos(cos_angle)
