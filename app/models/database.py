"""Database engine, session factory, and lifecycle helpers.

Only used when ``DATABASE_URL`` is configured; otherwise reviews are kept
in the in-memory store.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
#  Declarative Base
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    """SQLAlchemy 2.0 declarative base for all ORM models."""


# ---------------------------------------------------------------------------
#  Async engine
# ---------------------------------------------------------------------------

_async_engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


async def init_db(database_url: str) -> async_sessionmaker[AsyncSession]:
    """Create the async engine and session factory, and create missing tables."""
    global _async_engine, AsyncSessionLocal  # noqa: PLW0603

    # Register the ORM tables on Base.metadata.
    from app.models import review  # noqa: F401

    _async_engine = create_async_engine(database_url, pool_pre_ping=True, echo=False)
    AsyncSessionLocal = async_sessionmaker(
        _async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with _async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Async database engine initialized")
    return AsyncSessionLocal


async def close_db() -> None:
    """Dispose the async engine.  Called during FastAPI lifespan shutdown."""
    global _async_engine, AsyncSessionLocal  # noqa: PLW0603
    if _async_engine is not None:
        await _async_engine.dispose()
        _async_engine = None
        AsyncSessionLocal = None
        logger.info("Async database engine disposed")
