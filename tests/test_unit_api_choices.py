"""
Tests for the choice API endpoints.

Tests cover:
- GET/POST /fields/{field_id}/choices
- PUT /fields/{field_id}/choices/order
- PATCH/DELETE /choices/{choice_id}
"""

import httpx
import pytest

from tests.conftest import API, create_field_via_api


async def _technician(client: httpx.AsyncClient) -> dict:
    return await create_field_via_api(
        client,
        field_name="Technician",
        field_type="Radio",
        choices=[{"display_text": "Alice", "value": "alice"}, {"display_text": "bob"}],
    )


class TestAddChoice:
    @pytest.mark.anyio
    async def test_should_append_choice(self, client: httpx.AsyncClient):
        field = await _technician(client)

        response = await client.post(
            f"{API}/fields/{field['id']}/choices",
            json={"display_text": "Carol", "color": "#2E7D32", "icon": "wrench"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["field_definition_id"] == field["id"]
        assert data["value"] == "Carol"
        assert data["sort_order"] == 3
        assert data["color"] == "#2E7D32"

        listed = await client.get(f"{API}/fields/{field['id']}/choices")
        assert [c["value"] for c in listed.json()] == ["alice", "bob", "Carol"]

    @pytest.mark.anyio
    async def test_duplicate_value_is_conflict(self, client: httpx.AsyncClient):
        field = await _technician(client)

        response = await client.post(
            f"{API}/fields/{field['id']}/choices", json={"display_text": "Bob", "value": "bob"}
        )

        assert response.status_code == 409
        assert response.json()["error"] == "DuplicateChoiceValueError"

    @pytest.mark.anyio
    async def test_bad_color_is_rejected(self, client: httpx.AsyncClient):
        field = await _technician(client)

        response = await client.post(
            f"{API}/fields/{field['id']}/choices", json={"display_text": "Dee", "color": "red"}
        )

        assert response.status_code == 422

    @pytest.mark.anyio
    async def test_missing_field(self, client: httpx.AsyncClient):
        response = await client.post(f"{API}/fields/404/choices", json={"display_text": "X"})
        assert response.status_code == 404


class TestEditChoice:
    @pytest.mark.anyio
    async def test_patch_changes_only_given_attributes(self, client: httpx.AsyncClient):
        field = await _technician(client)
        choice = field["choices"][0]

        response = await client.patch(
            f"{API}/choices/{choice['id']}", json={"display_text": "Alice Smith"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["display_text"] == "Alice Smith"
        assert data["value"] == "alice"
        assert data["sort_order"] == choice["sort_order"]

    @pytest.mark.anyio
    async def test_deactivated_choice_rejects_writes(self, client: httpx.AsyncClient):
        field = await _technician(client)
        bob = field["choices"][1]

        await client.patch(f"{API}/choices/{bob['id']}", json={"is_active": False})
        response = await client.put(
            f"{API}/entity-types/Customer/instances/c-1/values/{field['id']}",
            json={"value": "bob"},
        )

        assert response.status_code == 422
        assert response.json()["details"]["kind"] == "InvalidChoice"

    @pytest.mark.anyio
    async def test_delete_keeps_stored_values(self, client: httpx.AsyncClient):
        field = await _technician(client)
        alice = field["choices"][0]
        await client.put(
            f"{API}/entity-types/Customer/instances/c-1/values/{field['id']}",
            json={"value": "alice"},
        )

        response = await client.delete(f"{API}/choices/{alice['id']}")

        assert response.status_code == 204
        assert response.content == b""
        values = await client.get(f"{API}/entity-types/Customer/instances/c-1/values")
        assert values.json()["values"] == {"Technician": "alice"}

    @pytest.mark.anyio
    async def test_delete_missing_choice(self, client: httpx.AsyncClient):
        response = await client.delete(f"{API}/choices/404")
        assert response.status_code == 404


class TestReorderChoices:
    @pytest.mark.anyio
    async def test_should_reorder(self, client: httpx.AsyncClient):
        field = await _technician(client)
        alice, bob = (c["id"] for c in field["choices"])

        response = await client.put(
            f"{API}/fields/{field['id']}/choices/order", json={"choice_ids": [bob, alice]}
        )

        assert response.status_code == 200
        assert [(c["value"], c["sort_order"]) for c in response.json()] == [
            ("bob", 1),
            ("alice", 2),
        ]

    @pytest.mark.anyio
    async def test_foreign_choice_is_bad_request(self, client: httpx.AsyncClient):
        field = await _technician(client)
        other = await create_field_via_api(
            client, field_name="Other", field_type="Dropdown", choices=[{"display_text": "x"}]
        )
        ids = [field["choices"][0]["id"], other["choices"][0]["id"]]

        response = await client.put(
            f"{API}/fields/{field['id']}/choices/order", json={"choice_ids": ids}
        )

        assert response.status_code == 400
