import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Unit tests never reach a real Postgres: without STOREFRONT_TEST_DB the
# engine module falls back to in-memory SQLite under pytest.
os.environ.pop("STOREFRONT_TEST_DB", None)
os.environ.setdefault("APP_ENV", "test")

from storefront.db import models  # noqa: E402
from storefront.db.gateway import DatabaseGateway, set_gateway  # noqa: E402
from storefront.utils.settings import DatabaseSettings, refresh_settings_cache  # noqa: E402

from tests.helpers import SleepRecorder  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings():
    refresh_settings_cache()
    yield
    refresh_settings_cache()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def db_session(sqlite_engine):
    session = sessionmaker(bind=sqlite_engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway(sqlite_engine, sleep_recorder):
    return DatabaseGateway(
        sqlite_engine,
        settings=DatabaseSettings(),
        sleep=sleep_recorder,
        rng=lambda: 0.0,
        production=False,
    )


@pytest.fixture
def installed_gateway(gateway):
    """Install ``gateway`` as the process-wide instance for app/script tests."""
    set_gateway(gateway)
    try:
        yield gateway
    finally:
        set_gateway(None)
