"""Pick a candidate by the client's region and country codes."""

from typing import Optional, Sequence

from weather_suggest.models.geo import Candidate, GeoContext


def select_by_region(
    geo: Optional[GeoContext], candidates: Sequence[Candidate]
) -> Optional[Candidate]:
    """Return the first candidate in the client's region and country.

    Falls back to the first candidate in the client's country. Candidates are
    ordered by population, so the first match of either kind is also the most
    populous one. The input is not re-sorted.

    Args:
        geo: Client geolocation, possibly None or partially populated.
        candidates: Candidates ordered by population, largest first.

    Returns:
        The matching candidate, or None.
    """
    if geo is None:
        return None
    region = geo.region_code.lower() if geo.region_code else None
    country = geo.country_code.lower() if geo.country_code else None
    if not region and not country:
        return None

    same_country = None
    for candidate in candidates:
        in_region = candidate.region_code.lower() == region
        in_country = candidate.country_code.lower() == country
        if in_region and in_country:
            return candidate
        if in_country and same_country is None:
            same_country = candidate
    return same_country
