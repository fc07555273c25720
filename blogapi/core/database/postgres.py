"""Async PostgreSQL engine and session management.

The comment store runs on SQLAlchemy Core over asyncpg. Schema management
(DDL, migrations) lives outside this service; the engine only verifies that
the database answers.
"""

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from blogapi.config import Settings


logger = structlog.get_logger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async database engine.

    Args:
        settings: Application settings with database URL and pool sizes

    Returns:
        Configured async engine
    """
    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the async session factory used by repositories."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_database(
    settings: Settings,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create the engine and session factory and check connectivity.

    Raises:
        sqlalchemy.exc.SQLAlchemyError / OSError: If the database is unreachable
    """
    engine = create_engine(settings)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("database_connection_failed", error=str(e))
        await engine.dispose()
        raise

    logger.info("database_connected", pool_size=settings.database_pool_size)
    return engine, create_session_factory(engine)


async def shutdown_database(engine: AsyncEngine | None) -> None:
    """Dispose the connection pool."""
    if engine is not None:
        await engine.dispose()
        logger.info("database_disconnected")


async def check_database(engine: AsyncEngine) -> bool:
    """Return True when the database answers a trivial query."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:  # noqa: BLE001
        logger.warning("database_health_check_failed", error=str(e))
        return False
    return True
