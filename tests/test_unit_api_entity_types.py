"""
Tests for entity type, health and metrics endpoints.

Tests cover:
- GET /entity-types (ordering, disabled filter)
- GET /entity-types/field-counts
- Disabled entity types reject schema and value operations
- GET /health and /readyz
- /metrics token protection
- X-Request-ID propagation
"""

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from schema_engine.db.models import EntityType
from schema_engine.repos import entity_type_repo
from tests.conftest import API, create_field_via_api


async def _disable(session: AsyncSession, name: str) -> None:
    entity_type = await session.get(EntityType, name)
    entity_type.is_enabled = False
    await session.commit()


class TestListEntityTypes:
    @pytest.mark.anyio
    async def test_should_list_configured_types_in_order(self, client: httpx.AsyncClient):
        response = await client.get(f"{API}/entity-types")

        assert response.status_code == 200
        assert [e["name"] for e in response.json()] == [
            "Customer",
            "Site",
            "Asset",
            "Job",
            "Estimate",
            "Invoice",
        ]
        assert response.json()[0] == {
            "name": "Customer",
            "display_name": "Customer",
            "sort_order": 1,
            "is_enabled": True,
        }

    @pytest.mark.anyio
    async def test_disabled_types_are_hidden_unless_requested(
        self, client: httpx.AsyncClient, async_db_session: AsyncSession
    ):
        await _disable(async_db_session, "Invoice")

        default = await client.get(f"{API}/entity-types")
        everything = await client.get(f"{API}/entity-types", params={"include_disabled": "true"})

        assert "Invoice" not in {e["name"] for e in default.json()}
        assert "Invoice" in {e["name"] for e in everything.json()}

    @pytest.mark.anyio
    async def test_disabled_type_rejects_field_definitions(
        self, client: httpx.AsyncClient, async_db_session: AsyncSession
    ):
        await _disable(async_db_session, "Estimate")

        response = await client.post(
            f"{API}/entity-types/Estimate/fields",
            json={"field_name": "Total", "display_label": "Total", "field_type": "Decimal"},
        )

        assert response.status_code == 404


class TestFieldCounts:
    @pytest.mark.anyio
    async def test_should_count_per_entity_type(self, client: httpx.AsyncClient):
        await create_field_via_api(client, field_name="A")
        await create_field_via_api(client, field_name="B", is_active=False)
        await create_field_via_api(client, "Job", field_name="C")

        active = await client.get(f"{API}/entity-types/field-counts")
        everything = await client.get(
            f"{API}/entity-types/field-counts", params={"active_only": "false"}
        )

        assert active.json()["Customer"] == 1
        assert active.json()["Job"] == 1
        assert active.json()["Site"] == 0
        assert everything.json()["Customer"] == 2


class TestEnsureEntityTypes:
    @pytest.mark.anyio
    async def test_should_be_idempotent(self, async_db_session: AsyncSession):
        created = await entity_type_repo.ensure_entity_types(
            async_db_session, ["Customer", "Vehicle", "Vehicle"]
        )
        await async_db_session.commit()

        assert created == ["Vehicle"]
        vehicle = await entity_type_repo.get_entity_type(async_db_session, "Vehicle")
        assert vehicle.sort_order == 7


class TestHealth:
    @pytest.mark.anyio
    async def test_health(self, client: httpx.AsyncClient):
        response = await client.get(f"{API}/health")

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    @pytest.mark.anyio
    async def test_readyz(self, client: httpx.AsyncClient):
        response = await client.get(f"{API}/readyz")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "db": "ok"}


class TestMetricsAndCorrelation:
    @pytest.mark.anyio
    async def test_metrics_requires_token(self, client: httpx.AsyncClient):
        response = await client.get("/metrics")

        assert response.status_code == 403
        assert response.json()["error"] == "HTTPException"

    @pytest.mark.anyio
    async def test_metrics_with_token(self, client: httpx.AsyncClient):
        await client.get(f"{API}/health")

        response = await client.get("/metrics", headers={"X-Metrics-Token": "test-metrics-token"})

        assert response.status_code == 200
        assert "http_requests_total" in response.text

    @pytest.mark.anyio
    async def test_request_id_is_echoed(self, client: httpx.AsyncClient):
        response = await client.get(f"{API}/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.anyio
    async def test_request_id_is_generated(self, client: httpx.AsyncClient):
        response = await client.get(f"{API}/health")
        assert response.headers["X-Request-ID"]
