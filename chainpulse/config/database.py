"""
Database configuration.

Async engine and session maker for the durable analytics backend, plus
schema bootstrap and a connectivity probe.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from chainpulse.config.settings import Settings


def create_engine(settings: Settings, pooled: bool = True) -> AsyncEngine:
    """
    Create async engine for the configured database.

    Args:
        settings: Application settings (database_url must be set)
        pooled: Use a connection pool; worker tasks pass False (NullPool)

    Returns:
        AsyncEngine
    """
    if not settings.database_url:
        raise ValueError("DATABASE_URL is not configured")

    kwargs = {"echo": settings.database_echo}
    if not pooled:
        kwargs["poolclass"] = NullPool
    elif settings.database_url.startswith("postgresql"):
        kwargs.update(pool_size=10, max_overflow=20, pool_pre_ping=True)
    return create_async_engine(settings.database_url, **kwargs)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory bound to engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    One transaction: commit on success, rollback on error.

    Usage:
        async with session_scope(session_maker) as session:
            session.add(row)
    """
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            try:
                await session.rollback()
                logger.debug(f"[Database] Rollback performed due to error: {type(e).__name__}")
            except Exception as rollback_error:
                logger.error(f"[Database] Failed to rollback: {rollback_error}")
            raise


async def init_schema(engine: AsyncEngine) -> None:
    """Create all analytics tables that do not exist yet."""
    from chainpulse.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    logger.info("[Database] Schema ready")


async def health_check(engine: AsyncEngine) -> bool:
    """
    Probe the database with SELECT 1.

    Returns:
        True if the database answered
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.info(f"[Database] Health check failed: {e}")
        return False
