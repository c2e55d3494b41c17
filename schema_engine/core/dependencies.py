"""
FastAPI dependency injection utilities.

Provides reusable dependencies for database sessions.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from schema_engine.core.db import get_async_sessionmaker


async def get_async_db_session() -> AsyncGenerator[AsyncSession]:
    """
    Async database session dependency for FastAPI endpoints.

    Repositories only flush; routes commit once the whole operation succeeded.
    Anything left uncommitted is rolled back when the session closes.

    Usage:
        @router.get("/fields/{field_id}")
        async def get_field(field_id: int, db: AsyncDbSession):
            return await field_definition_repo.get_field(db, field_id=field_id)

    Yields:
        Async SQLAlchemy database session
    """
    session_maker = get_async_sessionmaker()
    async with session_maker() as session:
        yield session


AsyncDbSession = Annotated[AsyncSession, Depends(get_async_db_session)]
