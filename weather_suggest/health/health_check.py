"""Health checks for Redis and the suggestion API."""

import httpx

from weather_suggest.logging_config import logger
from weather_suggest.merino.client import MERINO_URL
from weather_suggest.models.health import ServiceStatus
from weather_suggest.preferences.store import redis_client


def is_redis_available() -> ServiceStatus:
    """Check Redis connectivity.

    Returns:
        ServiceStatus.available when Redis responds, else not_available.
    """
    try:
        redis_client.ping()
        logger.info("REDIS_CONNECTED")
        return ServiceStatus.available
    except Exception as exc:
        logger.error("REDIS_UNAVAILABLE", error=str(exc))
        return ServiceStatus.not_available


async def is_suggest_api_available() -> bool:
    """Check the suggestion API for availability.

    Returns:
        True if the API answers with a suggestions list.
    """
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            response = await client.get(
                MERINO_URL, params={"q": "", "providers": "accuweather"}
            )
            return response.status_code == 200 and isinstance(
                response.json().get("suggestions"), list
            )
    except Exception:
        return False
