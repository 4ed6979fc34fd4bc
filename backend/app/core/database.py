"""
Database layer — async SQLAlchemy 2.0 (asyncpg in production).

Provides:
    • Engine and session factory builders
    • Base model for ORM entities
    • Table creation / disposal helpers

Engines are built explicitly and handed to the store that uses them;
nothing is created at import time.

Usage:
    from backend.app.core.database import build_engine, build_session_factory

    engine = build_engine(settings.DATABASE_URL)
    sessions = build_session_factory(engine)
    async with sessions() as session:
        ...
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


# ── ORM Base ──
class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


# ── Engine ──
def build_engine(url: str = settings.DATABASE_URL, **overrides: Any) -> AsyncEngine:
    """Create an async engine; pool sizing is skipped for SQLite."""
    options: Dict[str, Any] = {
        "echo": settings.DATABASE_ECHO,
        "future": True,
    }
    if not url.startswith("sqlite"):
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
        options["pool_pre_ping"] = True
    options.update(overrides)
    return create_async_engine(url, **options)


# ── Session Factory ──
def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# ── Lifecycle ──
async def init_db(engine: AsyncEngine) -> None:
    """Create all tables (dev/test only — use migrations in production)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def close_db(engine: AsyncEngine) -> None:
    """Dispose engine connections."""
    await engine.dispose()
    logger.info("Database connections closed")
