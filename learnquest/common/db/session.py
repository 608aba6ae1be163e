"""
Database Session Management

Every business operation runs inside one ``session_scope``: the whole unit of
work commits together or is rolled back together. Persistence failures
surface as ``DatabaseError`` so callers never see driver exceptions.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from learnquest.common.exceptions import DatabaseError
from learnquest.common.logger import app_logger

logger = app_logger.getChild("db.session")


def get_engine_kwargs(database_url: str, echo: bool = False, pool_size: int = 5) -> Dict[str, Any]:
    """
    Engine keyword arguments for the given database.

    Only server databases get pool tuning; SQLite pools reject those options.
    """
    kwargs: Dict[str, Any] = {"echo": echo}

    if not database_url.startswith("sqlite"):
        kwargs.update({
            "pool_size": pool_size,
            "pool_pre_ping": True,
            "pool_recycle": 300,
        })

    return kwargs


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to ``engine``; objects stay usable after commit."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope(session_factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    """
    Provide a transactional scope around a series of operations.

    Commits when the block exits normally and rolls back on any exception.
    ``SQLAlchemyError`` is re-raised as ``DatabaseError``; every other
    exception propagates unchanged after the rollback.

    Example:
        async with session_scope(factory) as session:
            session.add(row)
    """
    session = session_factory()
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Database session error: {e}", exc_info=True)
        raise DatabaseError(str(e), original_exception=e) from e
    except BaseException:
        await session.rollback()
        raise
    finally:
        await session.close()
