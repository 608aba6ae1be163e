#!/usr/bin/env python3
"""
Database initialization script.

Creates the assessment schema, through Alembic migrations when
``DB_RUN_MIGRATIONS`` is set, otherwise directly from the ORM metadata.
"""

import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError

from learnquest.common.config import get_config
from learnquest.common.exceptions import DatabaseError
from learnquest.common.logger import app_logger
from learnquest.database.init_db import close_database, create_schema, initialize_database, run_migrations

logger = app_logger.getChild("scripts.init_db")


async def async_main() -> int:
    """Initialize the database."""
    config = get_config()
    try:
        await initialize_database(config.database.url, echo=config.database.echo,
                                  pool_size=config.database.pool_size)
        if config.database.run_migrations:
            await run_migrations(config.database.url)
        else:
            await create_schema()
        logger.info("Database initialized successfully")
        return 0
    except (SQLAlchemyError, DatabaseError, OSError) as e:
        logger.error(f"Error initializing database: {e}")
        return 1
    finally:
        await close_database()


if __name__ == "__main__":
    sys.exit(asyncio.run(async_main()))
