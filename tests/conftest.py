"""
Pytest configuration and shared fixtures.

Provides:
- A fresh SQLite database per test (file under tmp_path) with the default
  entity types registered
- async_db_session: Async session for repository and service tests
- client: httpx AsyncClient against the FastAPI app, one session per request
- Helpers to define fields directly or through the API

Every test gets its own database file, so commits are real and nothing leaks
between tests.
"""

from __future__ import annotations

import os
import sys
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Set test environment variables before importing the app
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("OBSERVABILITY_STRUCTURED_LOGS", "false")
os.environ.setdefault("METRICS_TOKEN", "test-metrics-token")
os.environ.setdefault("DEFAULT_ENTITY_TYPES", "Customer,Site,Asset,Job,Estimate,Invoice")

import httpx  # noqa: E402 (import after env setup)
import pytest  # noqa: E402 (import after env setup)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402

from schema_engine.api.schemas.field_definition import (  # noqa: E402
    ChoiceCreate,
    FieldDefinitionCreate,
)
from schema_engine.core.config import settings  # noqa: E402
from schema_engine.core.db import (  # noqa: E402
    create_fresh_async_engine,
    create_schema,
    reset_async_engine,
    session_scope,
)
from schema_engine.core.dependencies import get_async_db_session  # noqa: E402
from schema_engine.db.models import FieldDefinition  # noqa: E402
from schema_engine.main import create_app  # noqa: E402
from schema_engine.repos import entity_type_repo, field_definition_repo  # noqa: E402

API = "/api/v1"


# =============================================================================
# AnyIO Backend Configuration
# =============================================================================
# Per AnyIO testing docs: https://anyio.readthedocs.io/en/stable/testing.html
@pytest.fixture
def anyio_backend():
    return "asyncio"


# ============================================================================
# Async SQLAlchemy Fixtures
# ============================================================================


@pytest.fixture
async def async_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """
    Create a fresh SQLite database for one test.

    Tables are created from the ORM models and the default entity types are
    registered, the same way the app bootstraps on startup.
    """
    engine = create_fresh_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'schema_engine.db'}")
    await create_schema(engine)

    maker = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    async with session_scope(maker) as db:
        await entity_type_repo.ensure_entity_types(db, settings.default_entity_types_list)

    yield engine
    await engine.dispose()


@pytest.fixture
def async_session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def async_db_session(
    async_session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Async session for repository and service tests. Tests commit explicitly."""
    async with async_session_maker() as session:
        yield session


# ============================================================================
# API Client Fixtures
# ============================================================================


@pytest.fixture
async def client(
    async_session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[httpx.AsyncClient]:
    """AsyncClient against the app; every request gets its own session."""
    app = create_app(run_lifespan=False)

    async def override_get_async_db():
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_async_db_session] = override_get_async_db

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    # /readyz uses the cached app engine; never reuse it on another event loop
    await reset_async_engine()


# ============================================================================
# Helper Functions
# ============================================================================


async def acreate_field_in_db(
    session: AsyncSession,
    entity_type: str = "Customer",
    choices: list[str] | None = None,
    **kwargs: Any,
) -> FieldDefinition:
    """
    Define a field through the repository and commit.

    Args:
        session: Async session
        entity_type: Owning entity type
        choices: Choice values; display text equals the value
        **kwargs: FieldDefinitionCreate attributes (field_name, field_type, ...)
    """
    defaults: dict[str, Any] = {
        "field_name": "TestField",
        "display_label": "Test Field",
        "field_type": "Text",
    }
    defaults.update(kwargs)
    field = FieldDefinitionCreate(
        **defaults,
        choices=[ChoiceCreate(display_text=value) for value in choices or []],
    )
    db_field = await field_definition_repo.define_field(session, entity_type, field)
    await session.commit()
    return db_field


async def create_field_via_api(
    client: httpx.AsyncClient,
    entity_type: str = "Customer",
    **kwargs: Any,
) -> dict[str, Any]:
    """POST a field definition and return the response body."""
    payload: dict[str, Any] = {
        "field_name": "TestField",
        "display_label": "Test Field",
        "field_type": "Text",
    }
    payload.update(kwargs)
    response = await client.post(f"{API}/entity-types/{entity_type}/fields", json=payload)
    assert response.status_code == 201, response.text
    return response.json()
