"""Token-based staleness guard with a short-lived response cache.

Every outbound fetch is tagged with a token minted from a strictly increasing
counter. Only the most recently minted token is current. When a fetch
settles, its captured token is compared with the current one and a mismatch
means a newer fetch (or a reconfiguration) has superseded it, so the result is
dropped without being cached or delivered.

The guard runs on a single asyncio event loop. The raced fetch is its only
suspend point, so the currency check and the cache write that follows it
cannot interleave with another completion.
"""

import asyncio
import itertools
import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from cachetools import TTLCache

from weather_suggest.logging_config import logger
from weather_suggest.models.suggest import FetchOutcome, FetchStatus

DEFAULT_TTL_S = 60.0
DEFAULT_TIMEOUT_S = 5.0
DEFAULT_MAX_ENTRIES = 256

Fetcher = Callable[[dict], Awaitable[Any]]


class GuardState(str, Enum):
    """Lifecycle of the most recent fetch: none yet, in flight, or settled."""

    idle = "idle"
    fetching = "fetching"
    settled = "settled"


@dataclass(frozen=True)
class CacheEntry:
    """A cached successful response.

    Entries are only ever replaced whole. ``expires_at`` is informational;
    the cache itself evicts the entry once the clock reaches it.
    """

    key: str
    value: Any
    expires_at: float


def request_fingerprint(params: dict) -> str:
    """Return a stable cache key for a set of request parameters."""
    return json.dumps(params, sort_keys=True, default=str)


def _drop_late_result(task: asyncio.Task) -> None:
    # retrieve the exception so asyncio does not report it as unhandled
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("ABANDONED_FETCH_FAILED", error=str(exc))


class StalenessGuard:
    """Deliver at most one outcome per fetch, and only for the latest fetch."""

    def __init__(
        self,
        *,
        ttl_s: float = DEFAULT_TTL_S,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        name: str = "guard",
    ):
        self.ttl_s = ttl_s
        self.timeout_s = timeout_s
        self.name = name
        self._clock = clock
        self._tokens = itertools.count(1)
        self._current_token: Optional[int] = None
        self._state = GuardState.idle
        self._cache: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_s, timer=clock)
        self._disposed = False

    @property
    def state(self) -> GuardState:
        """State of the latest fetch."""
        return self._state

    @property
    def current_token(self) -> Optional[int]:
        """The only token whose fetch may still deliver, or None before the first."""
        return self._current_token

    @property
    def disposed(self) -> bool:
        """True once ``dispose`` has run; every fetch is then superseded."""
        return self._disposed

    def _mint(self) -> int:
        token = next(self._tokens)
        self._current_token = token
        return token

    def is_current(self, token: int) -> bool:
        """Return True if ``token`` has not been superseded.

        A token stops being current when a newer one is minted by ``fetch``
        or ``supersede``, or when the guard is disposed.
        """
        return not self._disposed and token == self._current_token

    def cached(self, key: str) -> Optional[CacheEntry]:
        """Return the live cache entry for ``key``.

        An entry is live while the clock is before its expiry; expired
        entries are evicted by the cache on its next write.
        """
        return self._cache.get(key)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def supersede(self) -> int:
        """Invalidate any in-flight fetch without starting a new one.

        Returns:
            The newly minted current token.
        """
        token = self._mint()
        self._state = GuardState.idle
        logger.debug("FETCH_SUPERSEDED", guard=self.name, token=token)
        return token

    def dispose(self) -> None:
        """Drop the cache and make every pending and future fetch stale."""
        self.supersede()
        self._cache.clear()
        self._disposed = True

    async def fetch(self, params: dict, fetcher: Fetcher) -> FetchOutcome:
        """Fetch ``params`` through ``fetcher`` unless cached or superseded.

        Args:
            params: Request parameters; also the source of the cache key.
            fetcher: Coroutine function performing the network call. An empty
                result means there are no suggestions.

        Returns:
            The single outcome for this fetch.
        """
        if self._disposed:
            return FetchOutcome(status=FetchStatus.superseded)

        key = request_fingerprint(params)
        entry = self.cached(key)
        if entry is not None:
            logger.info("CACHED_SUGGESTION_HIT", guard=self.name, key=key)
            return FetchOutcome(status=FetchStatus.cached, value=entry.value)

        token = self._mint()
        self._state = GuardState.fetching
        logger.info("CACHED_SUGGESTION_MISS", guard=self.name, key=key, token=token)

        task = asyncio.ensure_future(fetcher(params))
        done, _ = await asyncio.wait({task}, timeout=self.timeout_s)

        if not self.is_current(token):
            if not done:
                task.add_done_callback(_drop_late_result)
            else:
                _drop_late_result(task)
            logger.debug(
                "STALE_FETCH_DROPPED",
                guard=self.name,
                token=token,
                current=self._current_token,
            )
            return FetchOutcome(status=FetchStatus.superseded)

        self._state = GuardState.settled
        if not done:
            task.add_done_callback(_drop_late_result)
            logger.warning(
                "FETCH_TIMEOUT", guard=self.name, token=token, timeout_s=self.timeout_s
            )
            return FetchOutcome(status=FetchStatus.timeout)

        exc = None if task.cancelled() else task.exception()
        if task.cancelled() or exc is not None:
            logger.error("FETCH_FAILED", guard=self.name, token=token, error=str(exc))
            return FetchOutcome(status=FetchStatus.error)

        value = task.result()
        if not value:
            return FetchOutcome(status=FetchStatus.no_suggestions)

        self._cache[key] = CacheEntry(
            key=key, value=value, expires_at=self._clock() + self.ttl_s
        )
        return FetchOutcome(status=FetchStatus.success, value=value)
