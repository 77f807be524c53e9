"""City candidates for a weather query, from the geocoding API."""

import os
from functools import lru_cache
from typing import Optional

import httpx
import pycountry

from weather_suggest.logging_config import logger
from weather_suggest.merino.client import ExternalAPIError, request_with_retry
from weather_suggest.models.geo import Candidate, Coordinate

GEOCODING_URL = os.getenv(
    "GEOCODING_URL", "https://geocoding-api.open-meteo.com/v1/search"
)
GEOCODING_RESULT_COUNT = int(os.getenv("GEOCODING_RESULT_COUNT", "10"))


class CitySourceError(ExternalAPIError):
    """Raised when the geocoding API fails or returns an invalid payload."""
    pass


@lru_cache(maxsize=256)
def _subdivision_codes(country_code: str) -> dict:
    codes = {}
    subdivisions = pycountry.subdivisions.get(country_code=country_code) or []
    # top-level subdivisions first, so a state wins over a same-named county
    for subdivision in sorted(subdivisions, key=lambda s: s.parent_code is not None):
        codes.setdefault(subdivision.name.casefold(), subdivision.code.split("-", 1)[1])
    return codes


def region_code_for(admin1: str, country_code: str) -> str:
    """Return the ISO 3166-2 subdivision code for a region name.

    The geocoding API names regions ("Illinois") while geolocation reports
    codes ("IL"). Unknown names are returned unchanged.
    """
    if not admin1 or not country_code:
        return admin1 or ""
    return _subdivision_codes(country_code.upper()).get(admin1.casefold(), admin1)


def candidate_from_result(data: dict) -> Optional[Candidate]:
    """Convert one geocoding result into a Candidate.

    Args:
        data: A single item of the API's ``results`` list.

    Returns:
        A Candidate, or None when the result has no usable coordinates.

    Raises:
        KeyError, TypeError, ValueError: If a field is missing or malformed.
    """
    latitude = data.get("latitude")
    longitude = data.get("longitude")
    if latitude is None or longitude is None:
        return None
    country_code = data.get("country_code") or ""
    return Candidate(
        city_name=data["name"],
        region_code=region_code_for(data.get("admin1") or "", country_code),
        country_code=country_code,
        population=max(int(data.get("population") or 0), 0),
        coordinate=Coordinate(latitude=latitude, longitude=longitude),
        payload={"id": data.get("id"), "timezone": data.get("timezone")},
    )


class CitySource:
    """Remote source of city candidates for an ambiguous city name."""

    def __init__(
        self,
        *,
        url: str = GEOCODING_URL,
        count: int = GEOCODING_RESULT_COUNT,
        timeout_s: float = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.count = count
        self.timeout_s = timeout_s
        self.transport = transport

    async def search(self, city_name: str) -> list:
        """Return every city matching ``city_name``, most populous first.

        Args:
            city_name: City name typed by the user.

        Returns:
            A list of Candidates, empty when nothing matched.

        Raises:
            CitySourceError: If the lookup fails or the payload is invalid.
        """
        try:
            response = await request_with_retry(
                url=self.url,
                params={"name": city_name, "count": self.count},
                timeout=self.timeout_s,
                event_prefix="CITY_LOOKUP",
                log_context={"city": city_name},
                error_message="City lookup failed",
                transport=self.transport,
            )
        except ExternalAPIError as exc:
            raise CitySourceError(str(exc)) from exc

        try:
            results = response.json().get("results") or []
        except (ValueError, AttributeError) as exc:
            logger.error("CITY_LOOKUP_BAD_PAYLOAD", city=city_name, error=str(exc))
            raise CitySourceError("City lookup failed") from exc
        if not isinstance(results, list):
            logger.error("CITY_LOOKUP_BAD_PAYLOAD", city=city_name, error="results is not a list")
            raise CitySourceError("City lookup failed")

        candidates = []
        for result in results:
            try:
                candidate = candidate_from_result(result)
            except (TypeError, KeyError, ValueError, AttributeError) as exc:
                # one bad result should not hide the good ones
                logger.warning("CITY_LOOKUP_BAD_RESULT", city=city_name, error=str(exc))
                continue
            if candidate is not None:
                candidates.append(candidate)

        # Callers rely on this order to break ties by population.
        candidates.sort(key=lambda c: c.population, reverse=True)
        logger.info("CITY_LOOKUP_RESULTS", city=city_name, count=len(candidates))
        return candidates
