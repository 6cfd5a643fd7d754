"""Runtime environment helpers for guarding production-only and debug-only behavior."""

import os
import secrets
from typing import Optional

_PRODUCTION_NAMES = {"production", "prod"}


def get_app_env() -> str:
    """Return the normalized APP_ENV value (defaults to ``development``)."""
    return (os.getenv("APP_ENV") or "development").strip().lower() or "development"


def is_production() -> bool:
    return get_app_env() in _PRODUCTION_NAMES


def debug_bypass_requested() -> bool:
    """Return True when DEBUG_BYPASS_ENABLED is set to a truthy value."""
    return os.getenv("DEBUG_BYPASS_ENABLED", "false").strip().lower() in {"1", "true", "yes", "on"}


def _configured_bypass_token() -> Optional[str]:
    token = (os.getenv("DEBUG_BYPASS_TOKEN") or "").strip()
    return token or None


def debug_bypass_active() -> bool:
    """Return True if the debug bypass is enabled and provisioned; raise if misconfigured.

    The bypass never ships with a built-in credential. Enabling it without an
    externally provisioned DEBUG_BYPASS_TOKEN is a deployment error rather
    than an open door.
    """
    if not debug_bypass_requested():
        return False
    if _configured_bypass_token() is None:
        raise RuntimeError(
            "DEBUG_BYPASS_ENABLED=true requires DEBUG_BYPASS_TOKEN to be provisioned "
            "through the environment or secret store."
        )
    return True


def verify_debug_bypass_token(candidate: Optional[str]) -> bool:
    """Constant-time comparison of a presented token against the provisioned one."""
    expected = _configured_bypass_token()
    if not expected or not candidate:
        return False
    return secrets.compare_digest(candidate.strip().encode("utf-8"), expected.encode("utf-8"))
