"""Suggestion API client with retry/backoff and structured logging."""

import asyncio
import os
from typing import Optional

import httpx

from weather_suggest.logging_config import logger

MERINO_URL = os.getenv(
    "MERINO_URL", "https://merino.services.mozilla.com/api/v1/suggest"
)
MERINO_TIMEOUT_S = float(os.getenv("MERINO_TIMEOUT_S", "5"))

RETRY_ATTEMPTS = 3
RETRY_BASE_DELAY_S = 0.3
RETRY_MAX_DELAY_S = 2.0
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class SuggestServiceError(Exception):
    """Base exception for suggestion service failures."""
    pass


class ExternalAPIError(SuggestServiceError):
    """Raised when an upstream API fails."""
    pass


async def request_with_retry(
    *,
    url: str,
    params: dict,
    timeout: float,
    event_prefix: str,
    log_context: dict,
    error_message: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.Response:
    """Execute an HTTP GET with retry/backoff and consistent logging.

    Args:
        url: The URL to call.
        params: Query parameters to include in the request.
        timeout: Per-attempt timeout in seconds.
        event_prefix: Log event prefix for consistent names.
        log_context: Extra log fields for all events.
        error_message: Error message to wrap in ExternalAPIError.
        transport: Optional httpx transport, used to stub the network.

    Returns:
        The successful HTTP response.

    Raises:
        ExternalAPIError: When the request fails after retries.
    """
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        for attempt in range(1, RETRY_ATTEMPTS + 1):
            try:
                response = await client.get(url, params=params)
                logger.info(
                    f"{event_prefix}_RESPONSE",
                    **log_context,
                    status=response.status_code,
                    attempt=attempt,
                )
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                retryable = status_code in RETRYABLE_STATUS_CODES
                logger.error(
                    f"{event_prefix}_BAD_STATUS",
                    **log_context,
                    status=status_code,
                    attempt=attempt,
                    retryable=retryable,
                )
                if not retryable or attempt == RETRY_ATTEMPTS:
                    raise ExternalAPIError(error_message) from exc
            except httpx.RequestError as exc:
                logger.error(
                    f"{event_prefix}_REQUEST_FAILED",
                    **log_context,
                    error=str(exc),
                    attempt=attempt,
                )
                if attempt == RETRY_ATTEMPTS:
                    raise ExternalAPIError(error_message) from exc

            delay = min(RETRY_BASE_DELAY_S * (2 ** (attempt - 1)), RETRY_MAX_DELAY_S)
            logger.info(
                f"{event_prefix}_RETRY",
                **log_context,
                attempt=attempt + 1,
                delay_s=delay,
            )
            await asyncio.sleep(delay)

    raise ExternalAPIError(error_message)


class MerinoClient:
    """Fetches suggestions for one or more providers from the suggestion API."""

    def __init__(
        self,
        name: str,
        *,
        url: str = MERINO_URL,
        timeout_s: float = MERINO_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.name = name
        self.url = url
        self.timeout_s = timeout_s
        self.transport = transport

    async def fetch(
        self,
        *,
        providers: list,
        query: str = "",
        other_params: Optional[dict] = None,
    ) -> list:
        """Return the ``suggestions`` list for a query.

        Args:
            providers: Provider names to ask for, e.g. ["accuweather"].
            query: Search string forwarded as ``q``.
            other_params: Extra query parameters; None values are dropped so
                they are never sent as the string "None".

        Returns:
            The list of suggestion dicts, possibly empty.

        Raises:
            ExternalAPIError: If the request fails or the payload is invalid.
        """
        params = {"q": query, "providers": ",".join(providers)}
        for key, value in (other_params or {}).items():
            if value is not None and value != "":
                params[key] = value

        response = await request_with_retry(
            url=self.url,
            params=params,
            timeout=self.timeout_s,
            event_prefix="SUGGEST",
            log_context={"client": self.name, "providers": params["providers"]},
            error_message="Suggestion lookup failed",
            transport=self.transport,
        )

        try:
            suggestions = response.json().get("suggestions")
        except (ValueError, AttributeError) as exc:
            logger.error("SUGGEST_BAD_PAYLOAD", client=self.name, error=str(exc))
            raise ExternalAPIError("Suggestion lookup failed") from exc
        if not isinstance(suggestions, list):
            logger.error("SUGGEST_BAD_PAYLOAD", client=self.name, error="no list")
            raise ExternalAPIError("Suggestion lookup failed")
        return suggestions
