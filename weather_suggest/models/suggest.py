"""Response payloads for the suggest and preference routes."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from weather_suggest.models.weather import WeatherSuggestion


class FetchStatus(str, Enum):
    """How a guarded fetch settled."""

    success = "success"
    cached = "cached"
    no_suggestions = "no_suggestions"
    timeout = "timeout"
    error = "error"
    superseded = "superseded"


class FetchOutcome(BaseModel):
    """The single outcome delivered for one guarded fetch."""

    status: FetchStatus
    value: Any = None

    @property
    def has_value(self) -> bool:
        return self.status in (FetchStatus.success, FetchStatus.cached)


class SuggestResponse(BaseModel):
    """Body of the /suggest route."""

    status: FetchStatus
    suggestion: Optional[WeatherSuggestion] = None


class PreferencesResponse(BaseModel):
    """Snapshot of the weather preferences for one client."""

    enabled: bool
    min_keyword_length: int
    show_less_frequently_count: int
    can_show_less_frequently: bool
