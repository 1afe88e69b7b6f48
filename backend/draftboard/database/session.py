"""
Async engine and session management.

The engine and session factory are built once from settings at process start
(FastAPI lifespan, Celery task, CLI command) and handed to the services.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from draftboard.config import Settings
from draftboard.database.base import Base

logger = logging.getLogger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database URL."""
    url = settings.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    options: dict = {"echo": settings.database_echo}

    if url.startswith("postgresql"):
        options.update(
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    return create_async_engine(url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Open a session, roll back on error and always close.

    Usage:
        async with session_scope(factory) as db:
            result = await db.execute(select(Brief))
            await db.commit()
    """
    session = factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    # Imported for table registration on Base.metadata
    import draftboard.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def check_db_connection(factory: async_sessionmaker[AsyncSession]) -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        async with session_scope(factory) as db:
            await db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
