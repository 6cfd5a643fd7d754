import os
from logging.config import fileConfig

from sqlalchemy import create_engine
from sqlalchemy import pool

from alembic import context

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# add your model's MetaData object here
# for 'autogenerate' support
from storefront.db.models import Base
target_metadata = Base.metadata


def _migration_url() -> str:
    """Migrations run over the direct (non-pooled) connection.

    Precedence: TEST_DATABASE_URL (e2e fixtures), then DIRECT_URL, then
    DATABASE_URL / POSTGRES_* as resolved by the application, then the ini.
    """
    if os.getenv("TEST_DATABASE_URL"):
        return os.environ["TEST_DATABASE_URL"]
    if os.getenv("DIRECT_URL") or os.getenv("DATABASE_URL") or os.getenv("POSTGRES_HOST"):
        # Local import: the module builds the application engine on import.
        from storefront.db.database import get_direct_database_url
        return get_direct_database_url()
    return config.get_main_option("sqlalchemy.url")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    Configures the context with just a URL so SQL is emitted to the script
    output without needing a DBAPI.
    """
    context.configure(
        url=_migration_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a NullPool engine."""
    connectable = create_engine(_migration_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection, target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
