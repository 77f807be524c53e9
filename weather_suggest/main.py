"""FastAPI application routes, middleware, and metrics."""

import time
import uuid
from typing import Optional

from fastapi import FastAPI, Header, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from structlog.contextvars import bind_contextvars, clear_contextvars

from weather_suggest.health.health_check import (
    is_redis_available,
    is_suggest_api_available,
)
from weather_suggest.logging_config import logger
from weather_suggest.merino.client import ExternalAPIError, SuggestServiceError
from weather_suggest.models.health import Dependencies, HealthResponse, ServiceStatus
from weather_suggest.models.suggest import PreferencesResponse, SuggestResponse
from weather_suggest.preferences.store import PreferenceError
from weather_suggest.weather_service.suggester import WeatherSuggester, get_suggester

app = FastAPI()

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "path", "status_code"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "HTTP request duration in seconds", ["path"]
)


@app.middleware("http")
async def request_logging(request: Request, call_next):
    """Log request details, attach a request ID, and record metrics.

    Args:
        request: Incoming HTTP request.
        call_next: FastAPI handler for the next middleware/app.

    Returns:
        The response produced by the downstream handler.
    """
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    bind_contextvars(request_id=request_id)
    start = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response
    finally:
        duration_s = time.perf_counter() - start
        duration_ms = round(duration_s * 1000, 2)
        status_code = getattr(response, "status_code", 500)
        logger.info(
            "HTTP_REQUEST",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=duration_ms,
        )
        REQUEST_COUNT.labels(
            method=request.method, path=request.url.path, status_code=status_code
        ).inc()
        REQUEST_LATENCY.labels(path=request.url.path).observe(duration_s)
        clear_contextvars()


@app.exception_handler(PreferenceError)
async def preference_error_handler(request: Request, exc: PreferenceError):
    """Convert invalid preference writes into 400 responses."""
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ExternalAPIError)
async def external_api_error_handler(request: Request, exc: ExternalAPIError):
    """Convert upstream API errors into 502 responses.

    Args:
        request: Incoming HTTP request.
        exc: Raised external API error.

    Returns:
        A JSON response with the error detail.
    """
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(SuggestServiceError)
async def suggest_service_error_handler(request: Request, exc: SuggestServiceError):
    """Convert unexpected suggestion service errors into 500 responses."""
    return JSONResponse(status_code=500, content={"detail": "Unexpected error"})


def _preferences(suggester: WeatherSuggester) -> PreferencesResponse:
    return PreferencesResponse(
        enabled=suggester.should_enable,
        min_keyword_length=suggester.min_keyword_length.resolve(),
        show_less_frequently_count=suggester.show_less_frequently_count,
        can_show_less_frequently=suggester.can_show_less_frequently,
    )


@app.get("/")
async def root():
    """Return a basic liveness response."""
    return {"message": "Hello World"}


@app.get("/suggest")
async def suggest(
    q: str,
    city: Optional[str] = None,
    locale: Optional[str] = None,
    x_client_id: str = Header(default="default"),
) -> SuggestResponse:
    """Return at most one weather suggestion for the query.

    Args:
        q: The weather keyword typed by the user.
        city: Optional city name, possibly matching several cities.
        locale: Client locale used for the temperature unit.
        x_client_id: Identifies the client whose fetches supersede each other.

    Returns:
        The fetch outcome and the suggestion, if any.
    """
    bind_contextvars(client_id=x_client_id)
    return await get_suggester(x_client_id).suggest(q, city=city, locale=locale)


@app.get("/preferences")
async def preferences(
    x_client_id: str = Header(default="default"),
) -> PreferencesResponse:
    """Report the client's weather preferences."""
    return _preferences(get_suggester(x_client_id))


@app.post("/preferences/show-less-frequently")
async def show_less_frequently(
    q: str, x_client_id: str = Header(default="default")
) -> PreferencesResponse:
    """Raise the minimum keyword length past the given query."""
    suggester = get_suggester(x_client_id)
    suggester.show_less_frequently(q)
    return _preferences(suggester)


@app.post("/preferences/dismiss")
async def dismiss(x_client_id: str = Header(default="default")) -> PreferencesResponse:
    """Turn weather suggestions off for the client."""
    suggester = get_suggester(x_client_id)
    suggester.dismiss()
    return _preferences(suggester)


@app.post("/preferences/enable")
async def enable(x_client_id: str = Header(default="default")) -> PreferencesResponse:
    """Turn weather suggestions back on for the client."""
    suggester = get_suggester(x_client_id)
    suggester.set_enabled(True)
    return _preferences(suggester)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Report API health and dependency availability.

    Returns:
        A HealthResponse containing dependency status.
    """
    suggest_api_available = await is_suggest_api_available()
    return HealthResponse(
        status="ok",
        dependencies=Dependencies(
            suggest_api=ServiceStatus.available
            if suggest_api_available
            else ServiceStatus.not_available,
            redis=is_redis_available(),
        ),
    )


@app.get("/metrics")
async def metrics():
    """Expose Prometheus metrics for scraping."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
