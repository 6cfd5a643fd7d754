"""
Connection URL utilities for pooled Postgres deployments.

Some hosting/proxy combinations hand the application a DATABASE_URL whose
scheme marker has been percent-encoded a second time
(``postgresql%3A%2F%2Fuser...``). The helpers here undo that single extra
layer and, for production, rebuild the URL with the pooling parameters the
serverless deployment expects. None of the public helpers raise on malformed
input; they hand back the original string instead.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, Optional
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlsplit

from storefront.utils.runtime import is_production

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "online-store-app"
SESSION_POOLER_PORT = 6543

# Tuned for one connection per serverless instance behind PgBouncer.
POOLING_PARAMS: Dict[str, str] = {
    "pgbouncer": "true",
    "connection_limit": "1",
    "pool_timeout": "30",
    "statement_timeout": "60000",
    "idle_timeout": "60",
    "sslmode": "require",
    "connect_timeout": "10",
}

_ENCODED_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*%3A%2F%2F", re.IGNORECASE)


def has_double_encoded_scheme(raw_url: Optional[str]) -> bool:
    return bool(raw_url) and bool(_ENCODED_SCHEME_RE.match(raw_url.strip()))


def fix_double_encoding(raw_url: str) -> str:
    """Reverse one layer of percent-encoding when the scheme marker is encoded."""
    if not has_double_encoded_scheme(raw_url):
        return raw_url
    fixed = unquote(raw_url.strip())
    logger.info("connection_url_double_encoding_fixed")
    return fixed


def generate_connection_url(database_url: Optional[str], app_name: Optional[str] = None) -> Optional[str]:
    """Rebuild ``database_url`` with an encoded password and pooling parameters.

    Existing query parameters are kept in order, repeated keys included.
    Pooling keys already present are replaced by the fixed values, which are
    appended last, so repeated application yields the same URL.
    """
    if not database_url:
        logger.error("connection_url_missing: DATABASE_URL not provided")
        return database_url

    try:
        parts = urlsplit(database_url)
        if not parts.scheme or not parts.hostname:
            raise ValueError("connection URL must include a scheme and host")
        # Accessing .port validates it (raises ValueError on garbage).
        parts.port

        host = parts.netloc.rpartition("@")[2]
        userinfo = ""
        if parts.username is not None:
            userinfo = parts.username
            if parts.password is not None:
                userinfo += ":" + quote(unquote(parts.password), safe="")
            userinfo += "@"

        managed = set(POOLING_PARAMS) | {"application_name"}
        params = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in managed
        ]
        params.extend(POOLING_PARAMS.items())
        params.append(("application_name", app_name or DEFAULT_APP_NAME))

        enhanced = f"{parts.scheme}://{userinfo}{host}{parts.path}?{urlencode(params)}"
    except Exception as exc:
        logger.error("connection_url_generate_failed: error=%s", exc)
        return database_url

    logger.info("connection_url_generated: pooled=true host=%s", host)
    return enhanced


def normalize_connection_url(
    raw_url: Optional[str],
    *,
    production: Optional[bool] = None,
    app_name: Optional[str] = None,
) -> Optional[str]:
    """Fix double encoding and, in production, apply pooling parameters."""
    if not raw_url:
        return raw_url
    try:
        url = fix_double_encoding(raw_url)
        if production is None:
            production = is_production()
        if production:
            url = generate_connection_url(url, app_name=app_name)
        return url
    except Exception as exc:
        logger.error("connection_url_normalize_failed: error=%s", exc)
        return raw_url


def mask_connection_url(url: Optional[str]) -> str:
    """Return ``url`` with the password replaced, safe for logs."""
    if not url:
        return ""
    try:
        parts = urlsplit(url)
        if parts.password is None:
            return url
        userinfo, _, host = parts.netloc.rpartition("@")
        user = userinfo.split(":", 1)[0]
        return parts._replace(netloc=f"{user}:****@{host}").geturl()
    except Exception:
        return "<unparseable connection url>"


def describe_pool_type(url: Optional[str]) -> str:
    try:
        port = urlsplit(url or "").port
    except ValueError:
        port = None
    return "Session Pooler" if port == SESSION_POOLER_PORT else "Direct Connection"
