"""Effective minimum keyword length for weather queries.

Sources are consulted in order and the first one that yields a value wins:

1. the user's own preference, set when they asked to see weather less often,
2. an experiment override,
3. remote config,
4. the preference default.
"""

import math
import os
from typing import Any, Callable, Optional, Sequence

from weather_suggest.preferences.store import PREF_DEFAULTS, PreferenceStore

MIN_KEYWORD_LENGTH_PREF = "weather.minKeywordLength"
EXPERIMENT_ENV_VAR = "WEATHER_KEYWORDS_MINIMUM_LENGTH"

Lookup = Callable[[], Optional[Any]]


def _numeric(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def experiment_min_keyword_length() -> Optional[int]:
    """Return the experiment override, or None when no experiment sets one."""
    raw = os.getenv(EXPERIMENT_ENV_VAR)
    if raw is None or raw.strip() == "":
        return None
    number = _numeric(raw)
    return None if number is None else int(number)


def resolve_first(lookups: Sequence[Lookup]) -> Optional[Any]:
    """Return the first non-None value produced by ``lookups``."""
    for lookup in lookups:
        value = lookup()
        if value is not None:
            return value
    return None


class MinKeywordLengthResolver:
    """Resolves the minimum keyword length fresh on every call."""

    def __init__(
        self,
        prefs: PreferenceStore,
        experiment: Lookup = experiment_min_keyword_length,
    ):
        self.prefs = prefs
        self.lookups = (
            self._user_value,
            experiment,
            self._remote_config_value,
            self._default_value,
        )

    def _user_value(self) -> Optional[int]:
        if not self.prefs.has_user_value(MIN_KEYWORD_LENGTH_PREF):
            return None
        return self.prefs.get(MIN_KEYWORD_LENGTH_PREF)

    def _remote_config_value(self) -> Optional[float]:
        return _numeric(self.prefs.remote_config().min_keyword_length)

    def _default_value(self) -> int:
        return PREF_DEFAULTS[MIN_KEYWORD_LENGTH_PREF]

    def resolve(self) -> int:
        """Return the effective minimum, clamped to zero.

        Fractional values round up: a query is hidden when its length is below
        the configured value, so 2.5 must hide a two-character query.
        """
        value = resolve_first(self.lookups)
        return max(math.ceil(value), 0)
