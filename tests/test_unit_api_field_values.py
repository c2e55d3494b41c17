"""
Tests for the field value API endpoints.

Tests cover:
- PUT /entity-types/{entity_type}/instances/{instance_id}/values (all-or-nothing)
- PUT .../values/{field_id} (single value, clearing)
- GET .../values (typed projection keyed by field name)
- DELETE .../values
- 422 error body for rejected values
"""

import httpx
import pytest

from tests.conftest import API, create_field_via_api

VALUES = f"{API}/entity-types/Customer/instances/c-1/values"


class TestSetValues:
    @pytest.mark.anyio
    async def test_should_store_and_return_typed_values(self, client: httpx.AsyncClient):
        services = await create_field_via_api(
            client,
            field_name="Services",
            field_type="MultiSelect",
            choices=[{"display_text": "hvac"}, {"display_text": "plumbing"}],
        )
        due = await create_field_via_api(client, field_name="Due", field_type="Date")
        vip = await create_field_via_api(client, field_name="Vip", field_type="Boolean")
        rate = await create_field_via_api(client, field_name="Rate", field_type="Decimal")

        response = await client.put(
            VALUES,
            json={
                "values": {
                    str(services["id"]): "plumbing, hvac",
                    str(due["id"]): "2026-03-01",
                    str(vip["id"]): "yes",
                    str(rate["id"]): "12.50",
                }
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["entity_type"] == "Customer"
        assert data["entity_instance_id"] == "c-1"
        assert data["values"]["Services"] == ["plumbing", "hvac"]
        assert data["values"]["Due"] == "2026-03-01"
        assert data["values"]["Vip"] is True
        assert data["values"]["Rate"] == "12.50"

    @pytest.mark.anyio
    async def test_rejection_lists_every_violation(self, client: httpx.AsyncClient):
        note = await create_field_via_api(client, field_name="Note")
        po = await create_field_via_api(client, field_name="Po", is_required=True)
        code = await create_field_via_api(
            client, field_name="Code", validation_regex=r"[A-Z]{3}", max_length=3
        )

        response = await client.put(
            VALUES,
            json={"values": {str(note["id"]): "hi", str(po["id"]): "", str(code["id"]): "ab"}},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "RequiredViolation"
        assert body["details"]["field_name"] == "Po"
        kinds = {v["field_name"]: v["kind"] for v in body["details"]["violations"]}
        assert kinds == {"Po": "RequiredViolation", "Code": "PatternViolation"}

        stored = await client.get(VALUES)
        assert stored.json()["values"] == {}

    @pytest.mark.anyio
    async def test_unknown_field_is_not_found(self, client: httpx.AsyncClient):
        response = await client.put(VALUES, json={"values": {"9999": "x"}})
        assert response.status_code == 404


class TestSetValue:
    @pytest.mark.anyio
    async def test_write_then_clear(self, client: httpx.AsyncClient):
        field = await create_field_via_api(client, field_name="Visits", field_type="Number")

        written = await client.put(f"{VALUES}/{field['id']}", json={"value": 3})
        cleared = await client.put(f"{VALUES}/{field['id']}", json={"value": None})

        assert written.json()["values"] == {"Visits": 3}
        assert cleared.status_code == 200
        assert cleared.json()["values"] == {}

    @pytest.mark.anyio
    async def test_type_mismatch(self, client: httpx.AsyncClient):
        field = await create_field_via_api(client, field_name="Visits", field_type="Number")

        response = await client.put(f"{VALUES}/{field['id']}", json={"value": "3.5"})

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "TypeMismatch"
        assert body["details"]["kind"] == "TypeMismatch"
        assert body["details"]["field_id"] == field["id"]

    @pytest.mark.anyio
    async def test_huge_exponent_is_a_type_mismatch(self, client: httpx.AsyncClient):
        field = await create_field_via_api(client, field_name="Visits", field_type="Number")

        response = await client.put(f"{VALUES}/{field['id']}", json={"value": "1e5000"})

        assert response.status_code == 422
        assert response.json()["error"] == "TypeMismatch"

    @pytest.mark.anyio
    async def test_length_violation(self, client: httpx.AsyncClient):
        field = await create_field_via_api(client, field_name="Code", min_length=2, max_length=4)

        response = await client.put(f"{VALUES}/{field['id']}", json={"value": "abcde"})

        assert response.status_code == 422
        assert response.json()["details"]["kind"] == "LengthViolation"

    @pytest.mark.anyio
    async def test_field_on_other_entity_type(self, client: httpx.AsyncClient):
        field = await create_field_via_api(client, "Job", field_name="Crew")

        response = await client.put(f"{VALUES}/{field['id']}", json={"value": "x"})

        assert response.status_code == 404


class TestGetAndDeleteValues:
    @pytest.mark.anyio
    async def test_unknown_entity_type(self, client: httpx.AsyncClient):
        response = await client.get(f"{API}/entity-types/Spaceship/instances/1/values")
        assert response.status_code == 404

    @pytest.mark.anyio
    async def test_changed_definition_does_not_hide_value(self, client: httpx.AsyncClient):
        field = await create_field_via_api(client, field_name="Ref", field_type="Text")
        await client.put(f"{VALUES}/{field['id']}", json={"value": "not-a-date"})

        await client.put(
            f"{API}/fields/{field['id']}",
            json={"field_name": "Ref", "display_label": "Ref", "field_type": "Date"},
        )
        response = await client.get(VALUES)

        assert response.json()["values"] == {"Ref": "not-a-date"}

    @pytest.mark.anyio
    async def test_delete_instance_values(self, client: httpx.AsyncClient):
        field = await create_field_via_api(client, field_name="Note")
        await client.put(f"{VALUES}/{field['id']}", json={"value": "x"})
        await client.put(
            f"{API}/entity-types/Customer/instances/c-2/values/{field['id']}", json={"value": "y"}
        )

        response = await client.delete(VALUES)

        assert response.status_code == 200
        assert response.json() == {"deleted": 1}
        assert (await client.get(VALUES)).json()["values"] == {}
        other = await client.get(f"{API}/entity-types/Customer/instances/c-2/values")
        assert other.json()["values"] == {"Note": "y"}
