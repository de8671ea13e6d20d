"""
Startup backend selection.

The SQL backend is used when a database URL is configured and a connection
can be opened within the connect timeout. Otherwise the app falls back to
the in-memory backend so it still starts and serves requests.
"""

import asyncio
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from echo_api.config import Settings
from echo_api.db.base import Base
from echo_api.db import models  # noqa: F401 - Import models to register them
from echo_api.db.session import create_engine
from echo_api.storage.base import Storage
from echo_api.storage.memory import build_memory_storage
from echo_api.storage.sql import build_sql_storage

logger = logging.getLogger(__name__)


async def probe_database(engine: AsyncEngine, timeout: float) -> bool:
    """Return True if a connection can be opened and used within `timeout` seconds."""

    async def _ping() -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(_ping(), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        logger.warning("Database connection timed out after %.1fs", timeout)
    except Exception as e:
        logger.warning("Database connection failed: %s", e)
    return False


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def select_storage(settings: Settings) -> Storage:
    """Pick the storage backend for this process."""
    snapshot_options = {"max_attempts": settings.share_slug_max_attempts}

    url = settings.database_url_async
    if not url:
        logger.warning("DATABASE_URL not set, using in-memory storage")
        return build_memory_storage(**snapshot_options)

    engine = create_engine(url, echo=settings.debug)
    if not await probe_database(engine, settings.database_connect_timeout):
        await engine.dispose()
        logger.warning("Server will continue without database, using in-memory storage")
        return build_memory_storage(**snapshot_options)

    if settings.database_auto_create:
        await create_tables(engine)

    logger.info("Connected to database, using SQL storage")
    return build_sql_storage(engine, **snapshot_options)
