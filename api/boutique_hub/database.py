# boutique_hub/database.py
"""
Database connection for Boutique Hub.

Uses SQLAlchemy 2.0 async: asyncpg against PostgreSQL in production,
aiosqlite when DATABASE_URL points at SQLite (tests, local runs).
"""
from __future__ import annotations
import logging
from typing import Any, AsyncGenerator, Dict, Iterable
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import select, text

from boutique_hub.settings import settings

logger = logging.getLogger(__name__)

# ============================================================================
# Base class for all ORM models
# ============================================================================

class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


# ============================================================================
# Engine and Session Factory
# ============================================================================

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_database_url() -> str:
    """Build async database URL from settings."""
    if settings.DATABASE_URL:
        return settings.DATABASE_URL
    return (
        f"postgresql+asyncpg://"
        f"{settings.DB_USER}:{settings.DB_PASSWORD}@"
        f"{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"
    )


async def init_db(url: str | None = None) -> AsyncEngine:
    """Initialize database engine and session factory."""
    global _engine, _async_session_factory

    if _engine is not None:
        return _engine

    url = url or get_database_url()
    kwargs: Dict[str, Any] = {"echo": settings.DB_ECHO}
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
    _engine = create_async_engine(url, **kwargs)

    _async_session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return _engine


async def close_db() -> None:
    """Close database connections."""
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI - provides database session.

    One session per request: every workflow of the request commits together
    or is rolled back together.
    """
    if _async_session_factory is None:
        await init_db()

    async with _async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database session (for use outside FastAPI).

    Usage:
        async with get_session_context() as db:
            result = await db.execute(...)
    """
    if _async_session_factory is None:
        await init_db()

    async with _async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ============================================================================
# Schema + seed
# ============================================================================

async def create_schema() -> None:
    """Create missing tables (no migrations)."""
    # registers every mapped class on Base.metadata
    from boutique_hub import db_models, db_models_ext  # noqa: F401

    engine = await init_db()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_stores(db: AsyncSession, stores: Iterable[Dict[str, Any]]) -> int:
    """Insert store directory entries that are not present yet (matched by name)."""
    from boutique_hub.db_models import Store

    result = await db.execute(select(Store.name))
    existing = set(result.scalars())
    added = 0
    for s in stores:
        if s["name"] in existing:
            continue
        db.add(Store(
            name=s["name"],
            code=s.get("code") or s["name"][:3].upper(),
            currency=s.get("currency") or settings.CATALOG_CURRENCY,
            vat_percent=s.get("vat_percent") or 0,
            issues_invoices=bool(s.get("issues_invoices", False)),
        ))
        added += 1
    if added:
        await db.flush()
        logger.info("Seeded %d stores", added)
    return added


# ============================================================================
# Health Check
# ============================================================================

async def check_db_health() -> dict:
    """Check database connectivity and return status."""
    try:
        async with get_session_context() as db:
            result = await db.execute(text("SELECT 1"))
            result.scalar()
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return {"status": "unhealthy", "database": "disconnected", "error": str(e)}
