"""
Database connection and session management.

Provides the async SQLAlchemy engine, session factory, and dependency
injection for FastAPI endpoints and the CLI.

The same code path serves a local SQLite file (aiosqlite) and a networked
PostgreSQL server (psycopg); only DATABASE_URL changes.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import event, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from schema_engine.core.config import settings

logger = logging.getLogger(__name__)

_async_engine: AsyncEngine | None = None
_async_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    # SQLite ships with foreign key enforcement off; cascades depend on it.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_fresh_async_engine(url: str | None = None) -> AsyncEngine:
    """Create a fresh async engine without caching.

    Used by tests and the CLI so each caller gets an engine bound to its own
    event loop.

    Args:
        url: Database URL (defaults to settings.database_url)

    Returns:
        Configured async SQLAlchemy engine
    """
    url = url or settings.database_url
    if not url:
        raise RuntimeError("DATABASE_URL is required")

    if url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        database = make_url(url).database
        if not database or database == ":memory:":
            # In-memory databases live inside one connection
            kwargs["poolclass"] = StaticPool
        else:
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        engine = create_async_engine(url, echo=settings.database_echo, **kwargs)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_async_engine(
        url,
        pool_size=10,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,  # Verify connections before use
        echo=settings.database_echo,
    )


def get_async_engine() -> AsyncEngine:
    """
    Create and configure the process-wide async SQLAlchemy engine.

    Returns:
        Configured async SQLAlchemy engine
    """
    global _async_engine

    if _async_engine is not None:
        return _async_engine

    _async_engine = create_fresh_async_engine()
    _instrument_sqlalchemy(_async_engine)
    return _async_engine


def _instrument_sqlalchemy(engine: AsyncEngine) -> None:
    """
    Instrument the engine with OpenTelemetry when tracing is enabled.

    Args:
        engine: Async SQLAlchemy engine instance
    """
    from schema_engine.core.telemetry import instrument_sqlalchemy

    instrument_sqlalchemy(engine.sync_engine)


def get_async_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """
    Get or create the async sessionmaker.

    Returns:
        Async sessionmaker factory
    """
    global _async_sessionmaker
    if _async_sessionmaker is not None:
        return _async_sessionmaker

    _async_sessionmaker = async_sessionmaker(
        bind=get_async_engine(),
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )
    return _async_sessionmaker


async def reset_async_engine() -> None:
    """Reset the async database engine and sessionmaker.

    Useful for tests to ensure fresh connections on new event loops.
    """
    global _async_engine, _async_sessionmaker

    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _async_sessionmaker = None


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet.

    Args:
        engine: Async engine to run DDL against
    """
    from schema_engine.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured", extra={"tables": len(Base.metadata.tables)})


@asynccontextmanager
async def session_scope(
    maker: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """Transactional session scope for scripts and the CLI.

    Commits once on success and rolls back on any error, so a failed
    operation leaves no partial writes behind.

    Usage:
        async with session_scope() as db:
            await field_definition_repo.delete_field(db, field_id)

    Yields:
        Async database session
    """
    session_maker = maker or get_async_sessionmaker()
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
