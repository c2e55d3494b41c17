"""
Tests for the field definition repository.

Tests cover:
- define_field (display order, duplicates, inline choices)
- list_fields ordering and active filter
- update_field (rename conflicts, type change, display order)
- reorder_fields
- delete_field cascade to choices and stored values
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schema_engine.api.schemas.field_definition import (
    ChoiceCreate,
    FieldDefinitionCreate,
    FieldDefinitionUpdate,
)
from schema_engine.core.errors import (
    DuplicateChoiceValueError,
    DuplicateFieldNameError,
    NotFoundError,
    ValidationError,
)
from schema_engine.db.models import FieldChoice, FieldValue
from schema_engine.domain.enums import FieldType
from schema_engine.repos import field_definition_repo, field_value_repo
from tests.conftest import acreate_field_in_db


def _update(field, **changes) -> FieldDefinitionUpdate:
    data = {
        "field_name": field.field_name,
        "display_label": field.display_label,
        "field_type": field.field_type,
        "is_required": field.is_required,
        "validation_regex": field.validation_regex,
        "min_value": field.min_value,
        "max_value": field.max_value,
        "min_length": field.min_length,
        "max_length": field.max_length,
    }
    data.update(changes)
    return FieldDefinitionUpdate(**data)


class TestDefineField:
    @pytest.mark.anyio
    async def test_should_append_display_order(self, async_db_session: AsyncSession):
        first = await acreate_field_in_db(async_db_session, field_name="First")
        second = await acreate_field_in_db(async_db_session, field_name="Second")

        assert first.display_order == 1
        assert second.display_order == 2
        assert first.is_active is True
        assert first.is_required is False

    @pytest.mark.anyio
    async def test_should_keep_explicit_display_order(self, async_db_session: AsyncSession):
        field = await acreate_field_in_db(async_db_session, field_name="Pinned", display_order=50)
        nxt = await acreate_field_in_db(async_db_session, field_name="Next")

        assert field.display_order == 50
        assert nxt.display_order == 51

    @pytest.mark.anyio
    async def test_should_reject_duplicate_name(self, async_db_session: AsyncSession):
        await acreate_field_in_db(async_db_session, field_name="GateCode")

        with pytest.raises(DuplicateFieldNameError):
            await acreate_field_in_db(async_db_session, field_name="GateCode")

    @pytest.mark.anyio
    async def test_inactive_field_still_blocks_its_name(self, async_db_session: AsyncSession):
        await acreate_field_in_db(async_db_session, field_name="Legacy", is_active=False)

        with pytest.raises(DuplicateFieldNameError):
            await acreate_field_in_db(async_db_session, field_name="Legacy")

    @pytest.mark.anyio
    async def test_same_name_on_other_entity_type_is_allowed(self, async_db_session: AsyncSession):
        customer = await acreate_field_in_db(async_db_session, "Customer", field_name="Notes")
        job = await acreate_field_in_db(async_db_session, "Job", field_name="Notes")

        assert customer.id != job.id
        assert job.display_order == 1

    @pytest.mark.anyio
    async def test_should_reject_unknown_entity_type(self, async_db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await acreate_field_in_db(async_db_session, "Spaceship", field_name="Warp")

    @pytest.mark.anyio
    async def test_should_create_inline_choices_in_order(self, async_db_session: AsyncSession):
        field = await acreate_field_in_db(
            async_db_session,
            field_name="Technician",
            field_type="Dropdown",
            choices=["alice", "bob", "carol"],
        )

        assert [c.value for c in field.choices] == ["alice", "bob", "carol"]
        assert [c.sort_order for c in field.choices] == [1, 2, 3]
        assert field.active_choice_values == {"alice", "bob", "carol"}

    @pytest.mark.anyio
    async def test_choice_value_defaults_to_display_text(self, async_db_session: AsyncSession):
        field = await field_definition_repo.define_field(
            async_db_session,
            "Customer",
            FieldDefinitionCreate(
                field_name="Tier",
                display_label="Tier",
                field_type=FieldType.RADIO,
                choices=[
                    ChoiceCreate(display_text="  Gold "),
                    ChoiceCreate(display_text="Silver", value="ag"),
                ],
            ),
        )

        assert [(c.value, c.display_text) for c in field.choices] == [
            ("Gold", "  Gold "),
            ("ag", "Silver"),
        ]

    @pytest.mark.anyio
    async def test_should_reject_duplicate_inline_choice(self, async_db_session: AsyncSession):
        with pytest.raises(DuplicateChoiceValueError):
            await acreate_field_in_db(
                async_db_session,
                field_name="Colour",
                field_type="Dropdown",
                choices=["red", "red"],
            )


class TestListFields:
    @pytest.mark.anyio
    async def test_should_order_by_display_order_then_name(self, async_db_session: AsyncSession):
        await acreate_field_in_db(async_db_session, field_name="Zeta", display_order=1)
        await acreate_field_in_db(async_db_session, field_name="Alpha", display_order=1)
        await acreate_field_in_db(async_db_session, field_name="First", display_order=0)

        fields = await field_definition_repo.list_fields(async_db_session, "Customer")

        assert [f.field_name for f in fields] == ["First", "Alpha", "Zeta"]

    @pytest.mark.anyio
    async def test_active_only_excludes_inactive(self, async_db_session: AsyncSession):
        await acreate_field_in_db(async_db_session, field_name="Live")
        await acreate_field_in_db(async_db_session, field_name="Retired", is_active=False)

        all_fields = await field_definition_repo.list_fields(async_db_session, "Customer")
        active = await field_definition_repo.list_fields(
            async_db_session, "Customer", active_only=True
        )

        assert {f.field_name for f in all_fields} == {"Live", "Retired"}
        assert [f.field_name for f in active] == ["Live"]

    @pytest.mark.anyio
    async def test_unknown_entity_type(self, async_db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await field_definition_repo.list_fields(async_db_session, "Nope")


class TestUpdateField:
    @pytest.mark.anyio
    async def test_should_replace_attributes_and_keep_order(self, async_db_session: AsyncSession):
        await acreate_field_in_db(async_db_session, field_name="Other")
        field = await acreate_field_in_db(async_db_session, field_name="Size")

        updated = await field_definition_repo.update_field(
            async_db_session,
            field.id,
            _update(field, display_label="Unit Size", is_required=True),
        )

        assert updated.display_label == "Unit Size"
        assert updated.is_required is True
        assert updated.display_order == 2
        assert updated.entity_type == "Customer"

    @pytest.mark.anyio
    async def test_should_reject_rename_onto_existing(self, async_db_session: AsyncSession):
        await acreate_field_in_db(async_db_session, field_name="Taken")
        field = await acreate_field_in_db(async_db_session, field_name="Free")

        with pytest.raises(DuplicateFieldNameError):
            await field_definition_repo.update_field(
                async_db_session, field.id, _update(field, field_name="Taken")
            )

    @pytest.mark.anyio
    async def test_type_change_keeps_unused_constraints(self, async_db_session: AsyncSession):
        field = await acreate_field_in_db(
            async_db_session,
            field_name="Code",
            field_type="Number",
            min_value=Decimal("1"),
            max_value=Decimal("9"),
        )

        updated = await field_definition_repo.update_field(
            async_db_session, field.id, _update(field, field_type=FieldType.TEXT)
        )

        assert updated.field_type == FieldType.TEXT
        assert updated.min_value == Decimal("1")
        assert updated.max_value == Decimal("9")

    @pytest.mark.anyio
    async def test_missing_field(self, async_db_session: AsyncSession):
        update = FieldDefinitionUpdate(field_name="X", display_label="X", field_type=FieldType.TEXT)
        with pytest.raises(NotFoundError):
            await field_definition_repo.update_field(async_db_session, 999, update)


class TestReorderFields:
    @pytest.mark.anyio
    async def test_should_assign_positions(self, async_db_session: AsyncSession):
        a = await acreate_field_in_db(async_db_session, field_name="A")
        b = await acreate_field_in_db(async_db_session, field_name="B")
        c = await acreate_field_in_db(async_db_session, field_name="C")

        fields = await field_definition_repo.reorder_fields(
            async_db_session, "Customer", [c.id, a.id, b.id]
        )

        assert [(f.field_name, f.display_order) for f in fields] == [("C", 1), ("A", 2), ("B", 3)]

    @pytest.mark.anyio
    @pytest.mark.parametrize("ids", ["missing", "duplicate", "foreign"])
    async def test_should_reject_wrong_id_set(self, async_db_session: AsyncSession, ids: str):
        a = await acreate_field_in_db(async_db_session, field_name="A")
        b = await acreate_field_in_db(async_db_session, field_name="B")
        other = await acreate_field_in_db(async_db_session, "Job", field_name="B")
        order = {
            "missing": [a.id],
            "duplicate": [a.id, b.id, a.id],
            "foreign": [a.id, other.id],
        }[ids]

        with pytest.raises(ValidationError):
            await field_definition_repo.reorder_fields(async_db_session, "Customer", order)


class TestDeleteField:
    @pytest.mark.anyio
    async def test_should_delete_choices_and_values(self, async_db_session: AsyncSession):
        field = await acreate_field_in_db(
            async_db_session, field_name="Tech", field_type="Dropdown", choices=["a", "b"]
        )
        keep = await acreate_field_in_db(async_db_session, field_name="Keep")
        for instance_id in ("c-1", "c-2", "c-3"):
            await field_value_repo.set_value(
                async_db_session, "Customer", instance_id, field.id, "a"
            )
        await field_value_repo.set_value(async_db_session, "Customer", "c-1", keep.id, "kept")
        await async_db_session.commit()

        assert await field_definition_repo.count_values(async_db_session, field.id) == 3

        deleted = await field_definition_repo.delete_field(async_db_session, field.id)
        await async_db_session.commit()

        assert deleted == 3
        with pytest.raises(NotFoundError):
            await field_definition_repo.get_field(async_db_session, field.id)

        choice_count = await async_db_session.scalar(
            select(func.count(FieldChoice.id)).where(FieldChoice.field_definition_id == field.id)
        )
        value_count = await async_db_session.scalar(select(func.count(FieldValue.id)))
        assert choice_count == 0
        assert value_count == 1
        assert await field_definition_repo.count_values(async_db_session, field.id) == 0
        assert await field_value_repo.get_values(async_db_session, "Customer", "c-1") == {
            "Keep": "kept"
        }

    @pytest.mark.anyio
    async def test_delete_frees_the_name(self, async_db_session: AsyncSession):
        field = await acreate_field_in_db(async_db_session, field_name="Reused")
        await field_definition_repo.delete_field(async_db_session, field.id)
        await async_db_session.commit()

        recreated = await acreate_field_in_db(async_db_session, field_name="Reused")
        assert recreated.id != field.id

    @pytest.mark.anyio
    async def test_missing_field(self, async_db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await field_definition_repo.delete_field(async_db_session, 12345)

    @pytest.mark.anyio
    async def test_count_values_missing_field_is_zero(self, async_db_session: AsyncSession):
        assert await field_definition_repo.count_values(async_db_session, 12345) == 0
