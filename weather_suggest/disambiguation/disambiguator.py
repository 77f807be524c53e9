"""Narrow several matching cities down to a single candidate."""

from typing import Awaitable, Callable, Optional, Sequence

from weather_suggest.disambiguation.nearest import select_nearest
from weather_suggest.disambiguation.region import select_by_region
from weather_suggest.logging_config import logger
from weather_suggest.models.geo import Candidate, GeoContext

Geolocate = Callable[[], Awaitable[Optional[GeoContext]]]


def disambiguate(
    geo: Optional[GeoContext], candidates: Sequence[Candidate]
) -> Optional[Candidate]:
    """Return exactly one candidate for a non-empty list.

    Tries distance first, then region/country, then the most populous city.
    """
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]
    return (
        select_nearest(geo, candidates)
        or select_by_region(geo, candidates)
        or candidates[0]
    )


async def filter_candidates(
    candidates: Sequence[Candidate], geolocate: Geolocate
) -> Optional[Candidate]:
    """Disambiguate candidates, looking up geolocation only when needed.

    Args:
        candidates: Candidates ordered by population, largest first.
        geolocate: Coroutine function returning the client's GeoContext.

    Returns:
        The chosen candidate, or None for an empty list.
    """
    if len(candidates) <= 1:
        return candidates[0] if candidates else None

    geo = await geolocate()
    chosen = disambiguate(geo, candidates)
    logger.info(
        "CANDIDATE_SELECTED",
        city=chosen.city_name,
        region=chosen.region_code,
        country=chosen.country_code,
        candidates=len(candidates),
        has_coordinate=bool(geo and geo.coordinate),
    )
    return chosen
