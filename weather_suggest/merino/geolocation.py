"""Client geolocation from the suggestion API's geolocation provider."""

from typing import Optional

from weather_suggest.logging_config import logger
from weather_suggest.merino.client import ExternalAPIError, MerinoClient
from weather_suggest.models.geo import GeoContext

GEOLOCATION_PROVIDER = "geolocation"


class GeolocationProvider:
    """Looks up the client's approximate location.

    Failures are not errors here: an unreachable provider or a malformed
    payload just means the location is unknown.
    """

    def __init__(self, merino: Optional[MerinoClient] = None):
        self.merino = merino or MerinoClient("Geolocation")

    async def geolocate(self) -> Optional[GeoContext]:
        try:
            suggestions = await self.merino.fetch(providers=[GEOLOCATION_PROVIDER])
        except ExternalAPIError as exc:
            logger.warning("GEOLOCATION_UNAVAILABLE", error=str(exc))
            return None
        if not suggestions or not isinstance(suggestions[0], dict):
            logger.info("GEOLOCATION_EMPTY")
            return None

        custom_details = suggestions[0].get("custom_details") or {}
        if not isinstance(custom_details, dict):
            return None
        return GeoContext.from_geolocation(custom_details.get("geolocation"))
