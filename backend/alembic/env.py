"""Alembic environment for the Echo schema."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from echo_api.config import get_settings
from echo_api.db.base import Base
from echo_api.db import models  # noqa: F401 - Import models to register them

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """Sync driver URL derived from DATABASE_URL (psycopg2 for PostgreSQL)."""
    url = get_settings().database_url_sync
    if not url:
        raise RuntimeError("DATABASE_URL must be set to run migrations")
    return url


def configure_options(url: str) -> dict:
    # SQLite can't ALTER most constraints in place; batch mode recreates tables
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of executing it (alembic upgrade --sql)."""
    url = get_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **configure_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_url()
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **configure_options(url))

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
