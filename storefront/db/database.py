"""
Database engine and session management.

Builds the SQLAlchemy engine from environment configuration: the raw
DATABASE_URL is normalized (double-encoding fix, pooled parameters in
production) and the pooling parameters are translated into engine options,
since the DBAPI itself rejects most of them. Under pytest an in-memory SQLite
database is used unless a test database is configured explicitly.

Creating the engine does not connect; ``DatabaseGateway.initialize()`` does.
"""
import logging
import os
import sys
from typing import Any, Dict, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.utils.connection_url import mask_connection_url, normalize_connection_url
from storefront.utils.settings import get_database_settings

logger = logging.getLogger(__name__)

SQLITE_MEMORY_URL = "sqlite+pysqlite:///:memory:"

# Query parameters understood by the pooler/ORM layer rather than libpq.
_ENGINE_ONLY_PARAMS = ("pgbouncer", "connection_limit", "pool_timeout", "idle_timeout", "statement_timeout")


def _get_database_url() -> str:
    # If DATABASE_URL is explicitly set, use it
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    # Otherwise, generate from individual components (all must be set)
    components = {
        "POSTGRES_USER": os.getenv("POSTGRES_USER"),
        "POSTGRES_PASSWORD": os.getenv("POSTGRES_PASSWORD"),
        "POSTGRES_HOST": os.getenv("POSTGRES_HOST"),
        "POSTGRES_PORT": os.getenv("POSTGRES_PORT"),
        "POSTGRES_DB": os.getenv("POSTGRES_DB"),
    }
    missing = [name for name, value in components.items() if not value]
    if missing:
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return (
        f"postgresql://{components['POSTGRES_USER']}:{components['POSTGRES_PASSWORD']}"
        f"@{components['POSTGRES_HOST']}:{components['POSTGRES_PORT']}/{components['POSTGRES_DB']}"
    )


def get_direct_database_url() -> str:
    """Non-pooled URL for migrations: DIRECT_URL when set, else the primary URL."""
    direct = os.getenv("DIRECT_URL")
    if direct:
        return normalize_connection_url(direct, production=False)
    return normalize_connection_url(_get_database_url(), production=False)


def _is_pytest_runtime() -> bool:
    """Best-effort detection that we're executing under pytest.

    ``PYTEST_CURRENT_TEST`` is only set while a test runs, so module import
    during collection also checks for the pytest package in ``sys.modules``.
    ``PYTEST_RUNNING=1`` forces detection.
    """
    if os.getenv("PYTEST_RUNNING") == "1":
        return True
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True
    return "pytest" in sys.modules


def engine_options_from_url(url: str) -> Tuple[str, Dict[str, Any]]:
    """Split pooling query parameters out of ``url`` into ``create_engine`` kwargs.

    ``connection_limit`` becomes a fixed-size pool, ``pool_timeout`` and
    ``idle_timeout`` map onto the pool's checkout timeout and recycle age,
    and ``statement_timeout`` is forwarded to the server as a session option.
    ``pgbouncer`` only matters to drivers that prepare statements server-side
    and is dropped.
    """
    if url.startswith("sqlite"):
        kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        return url, kwargs

    parsed = make_url(url)
    query = dict(parsed.query)
    kwargs = {"pool_pre_ping": True}

    limit = query.get("connection_limit")
    if limit:
        kwargs["pool_size"] = int(limit)
        kwargs["max_overflow"] = 0
    if query.get("pool_timeout"):
        kwargs["pool_timeout"] = int(query["pool_timeout"])
    if query.get("idle_timeout"):
        kwargs["pool_recycle"] = int(query["idle_timeout"])
    if query.get("statement_timeout"):
        kwargs["connect_args"] = {"options": f"-c statement_timeout={int(query['statement_timeout'])}"}

    cleaned = parsed.difference_update_query(_ENGINE_ONLY_PARAMS)
    return cleaned.render_as_string(hide_password=False), kwargs


def _resolve_engine_config() -> Tuple[str, Dict[str, Any]]:
    # Test override strategy:
    # 1. STOREFRONT_TEST_DB wins.
    # 2. Else TEST_DATABASE_URL (set by e2e fixtures).
    # 3. Else under pytest, in-memory SQLite.
    explicit_test_db = os.getenv("STOREFRONT_TEST_DB")
    explicit_e2e_db = os.getenv("TEST_DATABASE_URL")
    if explicit_test_db:
        return engine_options_from_url(explicit_test_db)
    if explicit_e2e_db:
        return engine_options_from_url(explicit_e2e_db)
    if _is_pytest_runtime():
        return engine_options_from_url(SQLITE_MEMORY_URL)

    settings = get_database_settings()
    url = normalize_connection_url(_get_database_url(), app_name=settings.app_name)
    return engine_options_from_url(url)


DATABASE_URL, _engine_kwargs = _resolve_engine_config()
logger.info("db_engine_configured: url=%s", mask_connection_url(DATABASE_URL))

engine = create_engine(DATABASE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(autoflush=False, bind=engine)


def create_sqlite_schema() -> None:
    """Create tables on SQLite test/dev databases; Postgres uses Alembic."""
    if str(engine.url).startswith("sqlite"):
        from storefront.db import models

        models.Base.metadata.create_all(bind=engine)

