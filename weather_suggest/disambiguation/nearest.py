"""Pick the candidate city nearest to the client."""

import math
from typing import Optional, Sequence

from weather_suggest.disambiguation.distance import great_circle_distance_km
from weather_suggest.models.geo import Candidate, GeoContext


def select_nearest(
    geo: Optional[GeoContext], candidates: Sequence[Candidate]
) -> Optional[Candidate]:
    """Return the candidate nearest the client's coordinate.

    Candidates whose distances differ by no more than the accuracy radius are
    treated as equidistant, and the more populous one wins. Every candidate is
    examined since a later, less populous city can still be unambiguously
    closer.

    Args:
        geo: Client geolocation, possibly None or partially populated.
        candidates: Candidates ordered by population, largest first.

    Returns:
        The chosen candidate, or None when the client coordinate (or any
        candidate coordinate) is unknown or not finite.
    """
    if geo is None or geo.coordinate is None or not geo.coordinate.is_finite():
        return None
    if not all(c.coordinate.is_finite() for c in candidates):
        return None

    radius = geo.accuracy_radius_km
    best = None
    d_min = math.inf
    for candidate in candidates:
        d = great_circle_distance_km(geo.coordinate, candidate.coordinate)
        if (
            best is None
            # strictly closer even allowing for the radius
            or d + radius < d_min
            # same distance within the radius, larger population wins
            or (abs(d - d_min) <= radius and best.population < candidate.population)
        ):
            d_min = d
            best = candidate
    return best
