"""Database gateway settings sourced from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, Literal, TypedDict, TypeVar, cast

logger = logging.getLogger(__name__)

T = TypeVar("T", int, float)

DatabaseFlagKey = Literal["strict_db_connection"]


class DatabaseFlagValues(TypedDict):
    strict_db_connection: bool


@dataclass(frozen=True)
class FlagDefinition:
    env_var: str
    default: bool


_FLAG_DEFINITIONS: Dict[DatabaseFlagKey, FlagDefinition] = {
    "strict_db_connection": FlagDefinition("STRICT_DB_CONNECTION", False),
}


@dataclass(frozen=True)
class DatabaseSettings:
    """Retry, backoff and timeout policy for the database gateway.

    Durations are seconds. ``operation_retries`` is the total number of
    attempts an operation gets, so the default of 1 means no retry.
    """

    connect_max_retries: int = 5
    reconnect_max_retries: int = 3
    connect_base_delay: float = 1.0
    connect_max_delay: float = 10.0
    connect_jitter: float = 0.5
    operation_timeout: float = 30.0
    operation_retries: int = 1
    operation_base_delay: float = 0.1
    operation_max_delay: float = 1.0
    app_name: str = "online-store-app"


def _normalize_bool(value: str | None, default: bool = False) -> bool:
    """Return normalized boolean from environment-style value."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"", "0", "false", "no", "off"}:
        return False
    if normalized in {"1", "true", "yes", "on"}:
        return True
    return default


def _read_number(env_var: str, default: T, cast_fn: Callable[[str], T], minimum: T) -> T:
    raw = os.getenv(env_var)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast_fn(raw.strip())
    except ValueError:
        logger.warning("settings_invalid_value: env=%s value=%r default=%s", env_var, raw, default)
        return default
    if value < minimum:
        logger.warning("settings_below_minimum: env=%s value=%s minimum=%s", env_var, value, minimum)
        return minimum
    return value


@lru_cache(maxsize=None)
def get_database_flags() -> DatabaseFlagValues:
    """Return the cached flag state sourced from the environment."""
    values: Dict[DatabaseFlagKey, bool] = {}
    for key, definition in _FLAG_DEFINITIONS.items():
        values[key] = _normalize_bool(os.getenv(definition.env_var), default=definition.default)
    return cast(DatabaseFlagValues, values)


def strict_connection_required() -> bool:
    """Fail startup instead of running degraded when the database is unreachable."""
    return get_database_flags()["strict_db_connection"]


@lru_cache(maxsize=None)
def get_database_settings() -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        connect_max_retries=_read_number("DB_CONNECT_MAX_RETRIES", defaults.connect_max_retries, int, 1),
        reconnect_max_retries=_read_number("DB_RECONNECT_MAX_RETRIES", defaults.reconnect_max_retries, int, 1),
        operation_timeout=_read_number("DB_OPERATION_TIMEOUT_SECONDS", defaults.operation_timeout, float, 0.001),
        operation_retries=_read_number("DB_OPERATION_RETRIES", defaults.operation_retries, int, 1),
        app_name=(os.getenv("APP_NAME") or "").strip() or defaults.app_name,
    )


def refresh_settings_cache() -> None:
    """Invalidate cached settings and flags (useful for tests)."""
    get_database_flags.cache_clear()
    get_database_settings.cache_clear()
