"""Redis-backed preference and remote config storage."""

import json
import os
from functools import partial
from typing import Any, Optional

from pydantic import BaseModel, ValidationError
from redis import Redis
from redis.exceptions import RedisError

from weather_suggest.logging_config import logger

redis_client = Redis(
    host=os.getenv("REDIS_HOST", "redis"),
    port=int(os.getenv("REDIS_PORT", "6379")),
    db=int(os.getenv("REDIS_DB", "0")),
    decode_responses=True,
)

REMOTE_CONFIG_KEY = "remote_config:weather"

# Default values; their types are the accepted types for user values.
PREF_DEFAULTS = {
    "suggest.weather": True,
    "suggest.quicksuggest.sponsored": True,
    "weatherFeatureGate": True,
    "weather.minKeywordLength": 0,
    "weather.showLessFrequentlyCount": 0,
    "weatherShowLessFrequentlyCap": 0,
}


class PreferenceError(ValueError):
    """Raised for unknown preference names or values of the wrong type."""
    pass


class RemoteConfig(BaseModel):
    """Weather settings pushed through remote config."""

    min_keyword_length: Optional[Any] = None
    show_less_frequently_cap: Optional[Any] = None


def _check(name: str, value: Any) -> Any:
    if name not in PREF_DEFAULTS:
        raise PreferenceError(f"Unknown preference: {name}")
    expected = type(PREF_DEFAULTS[name])
    # bool is an int subclass, so compare exact types
    if type(value) is not expected:
        raise PreferenceError(
            f"Preference {name} expects {expected.__name__}, got {type(value).__name__}"
        )
    return value


class PreferenceStore:
    """Per-client preferences with defaults for values the user never set."""

    def __init__(self, client, namespace: str = "default"):
        self.redis_client: Redis = client
        self.namespace = namespace

    def _key(self, name: str) -> str:
        return f"pref:{self.namespace}:{name}"

    def _user_value(self, name: str) -> Optional[str]:
        try:
            return self.redis_client.get(self._key(name))
        except RedisError as exc:
            logger.error("REDIS_GET_PREF_FAILED", pref=name, error=str(exc))
            return None

    def has_user_value(self, name: str) -> bool:
        """Return True if the user has explicitly set ``name``."""
        return self._user_value(name) is not None

    def get(self, name: str) -> Any:
        """Return the user value of ``name``, or its default.

        Args:
            name: Preference name.

        Returns:
            The stored value, or the default when unset or unreadable.
        """
        default = PREF_DEFAULTS.get(name)
        raw = self._user_value(name)
        if raw is None:
            return default
        try:
            return _check(name, json.loads(raw))
        except (ValueError, PreferenceError) as exc:
            logger.error("PREF_BAD_VALUE", pref=name, error=str(exc))
            return default

    def set(self, name: str, value: Any) -> None:
        """Store a user value for ``name``.

        Raises:
            PreferenceError: If the name is unknown or the type is wrong.
        """
        _check(name, value)
        try:
            self.redis_client.set(self._key(name), json.dumps(value))
        except RedisError as exc:
            logger.error("REDIS_SAVE_PREF_FAILED", pref=name, error=str(exc))

    def clear_user_value(self, name: str) -> None:
        try:
            self.redis_client.delete(self._key(name))
        except RedisError as exc:
            logger.error("REDIS_DELETE_PREF_FAILED", pref=name, error=str(exc))

    def remote_config(self) -> RemoteConfig:
        """Return the weather remote config, empty when absent or invalid."""
        try:
            raw = self.redis_client.get(REMOTE_CONFIG_KEY)
        except RedisError as exc:
            logger.error("REDIS_GET_REMOTE_CONFIG_FAILED", error=str(exc))
            return RemoteConfig()
        if not raw:
            return RemoteConfig()
        try:
            return RemoteConfig(**json.loads(raw))
        except (ValueError, TypeError, ValidationError) as exc:
            logger.error("REMOTE_CONFIG_BAD_PAYLOAD", error=str(exc))
            return RemoteConfig()

    def save_remote_config(self, config: RemoteConfig) -> None:
        try:
            self.redis_client.set(REMOTE_CONFIG_KEY, config.model_dump_json())
        except RedisError as exc:
            logger.error("REDIS_SAVE_REMOTE_CONFIG_FAILED", error=str(exc))


preference_store = partial(PreferenceStore, client=redis_client)
