"""Weather suggestions for ambiguous city queries, one suggester per client."""

import os
import time
from typing import Callable, Optional

from cachetools import TTLCache
from pydantic import ValidationError

from weather_suggest.cities.source import CitySource
from weather_suggest.disambiguation.disambiguator import filter_candidates
from weather_suggest.logging_config import logger
from weather_suggest.merino.client import MERINO_TIMEOUT_S, MerinoClient
from weather_suggest.merino.geolocation import GeolocationProvider
from weather_suggest.merino.staleness import StalenessGuard
from weather_suggest.models.geo import Candidate
from weather_suggest.models.suggest import FetchStatus, SuggestResponse
from weather_suggest.models.weather import (
    WeatherSuggestion,
    temperature_unit_for_locale,
)
from weather_suggest.preferences.min_keyword_length import (
    MIN_KEYWORD_LENGTH_PREF,
    MinKeywordLengthResolver,
)
from weather_suggest.preferences.store import PreferenceStore, preference_store

MERINO_PROVIDER = "accuweather"
# Kept short so a repeated keystroke reuses the response without it going stale.
WEATHER_CACHE_PERIOD_S = float(os.getenv("WEATHER_CACHE_PERIOD_S", "60"))
SUGGEST_DEFAULT_LOCALE = os.getenv("SUGGEST_DEFAULT_LOCALE", "en-US")
# Bounds on the per-client registry, which is keyed by the x-client-id header.
SUGGEST_MAX_CLIENTS = int(os.getenv("SUGGEST_MAX_CLIENTS", "1024"))
SUGGEST_CLIENT_IDLE_S = float(os.getenv("SUGGEST_CLIENT_IDLE_S", "3600"))

ENABLE_PREFS = ("suggest.quicksuggest.sponsored", "weatherFeatureGate", "suggest.weather")
SHOW_LESS_FREQUENTLY_COUNT_PREF = "weather.showLessFrequentlyCount"
SHOW_LESS_FREQUENTLY_CAP_PREF = "weatherShowLessFrequentlyCap"


def location_params(candidate: Optional[Candidate]) -> dict:
    """Return the non-empty location params for the suggestion API."""
    if candidate is None:
        return {}
    params = {
        "city": candidate.city_name,
        "region": candidate.region_code,
        "country": candidate.country_code,
    }
    return {key: value for key, value in params.items() if value}


class WeatherSuggester:
    """Turns a weather query into at most one weather suggestion.

    Owns the staleness guard for one logical client. Turning the feature off
    disposes the guard, so a fetch that is still in flight is dropped when it
    completes.
    """

    def __init__(
        self,
        client_id: str = "default",
        *,
        prefs: Optional[PreferenceStore] = None,
        city_source: Optional[CitySource] = None,
        geolocation: Optional[GeolocationProvider] = None,
        merino_factory: Optional[Callable[[], MerinoClient]] = None,
        cache_period_s: float = WEATHER_CACHE_PERIOD_S,
        timeout_s: float = MERINO_TIMEOUT_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client_id = client_id
        self.prefs = prefs or preference_store(namespace=client_id)
        self.min_keyword_length = MinKeywordLengthResolver(self.prefs)
        self.city_source = city_source or CitySource()
        self.geolocation = geolocation or GeolocationProvider()
        self._merino_factory = merino_factory or (lambda: MerinoClient("Weather"))
        self.cache_period_s = cache_period_s
        self.timeout_s = timeout_s
        self._clock = clock
        self._merino: Optional[MerinoClient] = None
        self._guard: Optional[StalenessGuard] = None

    @property
    def should_enable(self) -> bool:
        return all(self.prefs.get(name) for name in ENABLE_PREFS)

    @property
    def guard(self) -> Optional[StalenessGuard]:
        return self._guard

    def _ensure_client(self):
        if self._guard is None:
            self._merino = self._merino_factory()
            self._guard = StalenessGuard(
                ttl_s=self.cache_period_s,
                timeout_s=self.timeout_s,
                clock=self._clock,
                name=f"weather:{self.client_id}",
            )
        return self._merino, self._guard

    def reconfigure(self) -> None:
        """Drop the client and guard; pending fetches become stale."""
        if self._guard is not None:
            self._guard.dispose()
            logger.info("SUGGESTER_RECONFIGURED", client=self.client_id)
        self._guard = None
        self._merino = None

    dispose = reconfigure

    def set_enabled(self, enabled: bool) -> None:
        """Persist the user's choice; disabling drops the guard and its cache."""
        self.prefs.set("suggest.weather", enabled)
        if not enabled:
            self.reconfigure()

    def dismiss(self) -> None:
        """Turn weather suggestions off for this client."""
        logger.info("WEATHER_DISMISSED", client=self.client_id)
        self.set_enabled(False)

    @property
    def show_less_frequently_count(self) -> int:
        return max(self.prefs.get(SHOW_LESS_FREQUENTLY_COUNT_PREF) or 0, 0)

    @property
    def can_show_less_frequently(self) -> bool:
        cap = self.prefs.get(SHOW_LESS_FREQUENTLY_CAP_PREF)
        if not cap:
            cap = self.prefs.remote_config().show_less_frequently_cap
        if isinstance(cap, bool) or not isinstance(cap, (int, float)):
            cap = 0
        return not cap or self.show_less_frequently_count < cap

    def increment_show_less_frequently_count(self) -> None:
        if self.can_show_less_frequently:
            self.prefs.set(
                SHOW_LESS_FREQUENTLY_COUNT_PREF, self.show_less_frequently_count + 1
            )

    def show_less_frequently(self, search_string: str) -> None:
        """Require a longer keyword before weather is suggested again."""
        self.increment_show_less_frequently_count()
        self.prefs.set(MIN_KEYWORD_LENGTH_PREF, len(search_string) + 1)

    async def suggest(
        self,
        search_string: str,
        city: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> SuggestResponse:
        """Return the weather suggestion for a query.

        Args:
            search_string: The weather keyword the user typed.
            city: Optional city name; several cities may match it.
            locale: Client locale, used to pick the temperature unit.

        Returns:
            A SuggestResponse; superseded fetches carry no suggestion.

        Raises:
            CitySourceError: If the city lookup fails.
        """
        if not self.should_enable:
            self.reconfigure()
            return SuggestResponse(status=FetchStatus.no_suggestions)

        min_length = self.min_keyword_length.resolve()
        if len(search_string) < min_length:
            logger.info(
                "KEYWORD_TOO_SHORT",
                client=self.client_id,
                length=len(search_string),
                min_length=min_length,
            )
            return SuggestResponse(status=FetchStatus.no_suggestions)

        candidate = None
        if city:
            candidates = await self.city_source.search(city)
            if not candidates:
                return SuggestResponse(status=FetchStatus.no_suggestions)
            candidate = await filter_candidates(candidates, self.geolocation.geolocate)

        merino, guard = self._ensure_client()

        async def fetcher(params: dict) -> list:
            return await merino.fetch(providers=[MERINO_PROVIDER], other_params=params)

        outcome = await guard.fetch(location_params(candidate), fetcher)
        if not outcome.has_value:
            return SuggestResponse(status=outcome.status)

        unit = temperature_unit_for_locale(locale or SUGGEST_DEFAULT_LOCALE)
        try:
            suggestion = WeatherSuggestion.from_api_response(
                outcome.value[0], unit, search_string
            )
        except (KeyError, TypeError, AttributeError, ValidationError) as exc:
            logger.error("WEATHER_BAD_PAYLOAD", client=self.client_id, error=str(exc))
            return SuggestResponse(status=FetchStatus.error)
        return SuggestResponse(status=outcome.status, suggestion=suggestion)


class SuggesterRegistry(TTLCache):
    """Per-client suggesters, bounded in count and idle time.

    A suggester pushed out by the size bound or left idle past the TTL is
    disposed, so its in-flight fetch is dropped and its cache released.
    """

    def __init__(self, maxsize: int, ttl: float, timer: Callable[[], float] = time.monotonic):
        super().__init__(maxsize=maxsize, ttl=ttl, timer=timer)

    def popitem(self):
        client_id, suggester = super().popitem()
        logger.info("SUGGESTER_EVICTED", client=client_id)
        suggester.dispose()
        return client_id, suggester

    def expire(self, time=None):
        expired = super().expire(time)
        for client_id, suggester in expired:
            logger.info("SUGGESTER_EXPIRED", client=client_id)
            suggester.dispose()
        return expired


_suggesters = SuggesterRegistry(maxsize=SUGGEST_MAX_CLIENTS, ttl=SUGGEST_CLIENT_IDLE_S)


def get_suggester(client_id: str = "default") -> WeatherSuggester:
    """Return the suggester for ``client_id``, creating it on first use.

    Each lookup refreshes the client's idle timer.
    """
    suggester = _suggesters.get(client_id)
    if suggester is None:
        suggester = WeatherSuggester(client_id)
    # re-insert so the entry's expiry counts from this request
    _suggesters[client_id] = suggester
    return suggester


def dispose_suggester(client_id: str) -> None:
    """Remove the suggester for ``client_id`` and drop its pending fetches."""
    suggester = _suggesters.pop(client_id, None)
    if suggester is not None:
        suggester.dispose()
