"""
Database initialization and connection management.

This module provides functions for:
1. Creating and disposing the global async engine
2. Creating the schema directly or through Alembic migrations
3. Handing out the session factory used by the services
"""

import asyncio
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from learnquest.common.db.session import create_session_factory, get_engine_kwargs
from learnquest.common.logger import app_logger
from learnquest.database.base import metadata

logger = app_logger.getChild("database.init_db")

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "alembic"

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine() -> AsyncEngine:
    """Get the global async engine instance."""
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call initialize_database() first.")
    return _engine


def get_session_factory() -> async_sessionmaker:
    """Get the session factory bound to the global engine."""
    if _session_factory is None:
        raise RuntimeError("Database engine not initialized. Call initialize_database() first.")
    return _session_factory


async def initialize_database(database_url: str, echo: bool = False, pool_size: int = 5) -> AsyncEngine:
    """
    Initialize the async database engine and check that it can connect.

    Args:
        database_url: Async SQLAlchemy URL
        echo: Whether to echo SQL statements
        pool_size: Connection pool size (ignored for SQLite)

    Returns:
        AsyncEngine instance
    """
    global _engine, _session_factory

    logger.info(f"Initializing database with URL: {database_url.split('://')[0]}://...")

    _engine = create_async_engine(database_url, **get_engine_kwargs(database_url, echo, pool_size))
    _session_factory = create_session_factory(_engine)

    async with _engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

    logger.info("Database engine initialized successfully")
    return _engine


async def create_schema(engine: Optional[AsyncEngine] = None) -> None:
    """Create all assessment tables that do not exist yet."""
    # Registers the tables on the shared metadata
    from learnquest.assessments import database_models  # noqa: F401

    target = engine or get_engine()
    async with target.begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.info("Assessment schema created")


def _alembic_config(database_url: str) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", database_url)
    return config


async def run_migrations(database_url: str, revision: str = "head") -> None:
    """
    Upgrade the schema to ``revision`` with Alembic.

    Alembic's env script drives its own event loop, so it runs in a worker
    thread.
    """
    logger.info(f"Running migrations to revision {revision}")
    await asyncio.to_thread(command.upgrade, _alembic_config(database_url), revision)


async def close_database() -> None:
    """Dispose the engine and all pooled connections."""
    global _engine, _session_factory

    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database engine closed successfully")
