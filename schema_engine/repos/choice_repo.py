"""
Repository layer for choice lists of Dropdown, MultiSelect and Radio fields.

Choices are edited through the owning definition's `choices` collection so a
definition already loaded in the session always validates against the
current option list.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from schema_engine.api.schemas.field_definition import ChoiceCreate, ChoiceUpdate
from schema_engine.core.errors import DuplicateChoiceValueError, NotFoundError, ValidationError
from schema_engine.db.models import FieldChoice, FieldDefinition
from schema_engine.repos import field_definition_repo

logger = logging.getLogger(__name__)

_NOT_NULLABLE = frozenset({"display_text", "value", "sort_order", "is_default", "is_active"})


def _choice_order(choice: FieldChoice) -> tuple[int, int]:
    return choice.sort_order, choice.id or 0


def _sorted_choices(field: FieldDefinition) -> list[FieldChoice]:
    return sorted(field.choices, key=_choice_order)


def _resort(field: FieldDefinition) -> None:
    # The loaded collection keeps insertion order; readers of field.choices
    # expect sort_order.
    field.choices.sort(key=_choice_order)


def _check_value_available(
    field: FieldDefinition, value: str, exclude_choice_id: int | None = None
) -> None:
    for choice in field.choices:
        if choice.value == value and choice.id != exclude_choice_id:
            raise DuplicateChoiceValueError(
                f"Choice value '{value}' already exists on field '{field.field_name}'",
                details={"field_id": field.id, "value": value},
            )


async def get_choice(db: AsyncSession, choice_id: int) -> FieldChoice:
    """
    Retrieve a choice by id.

    Raises:
        NotFoundError: If the choice does not exist
    """
    choice = await db.get(FieldChoice, choice_id)
    if choice is None:
        logger.warning(f"Choice not found: id={choice_id}")
        raise NotFoundError(
            f"Choice with id '{choice_id}' not found",
            details={"choice_id": choice_id},
        )
    return choice


async def list_choices(db: AsyncSession, field_id: int) -> list[FieldChoice]:
    """
    List a field's choices by sort_order, then id.

    Raises:
        NotFoundError: If the field does not exist
    """
    field = await field_definition_repo.get_field(db, field_id)
    return _sorted_choices(field)


async def add_choice(db: AsyncSession, field_id: int, choice: ChoiceCreate) -> FieldChoice:
    """
    Append an option to a field's choice list.

    Accepted for any field type; only choice-bearing types consult the list
    during validation.

    Args:
        db: Database session
        field_id: Owning field definition id
        choice: ChoiceCreate schema; value defaults to display_text and
            sort_order to the end of the list

    Returns:
        Created FieldChoice model

    Raises:
        NotFoundError: If the field does not exist
        DuplicateChoiceValueError: If the value is already used on this field
    """
    field = await field_definition_repo.get_field(db, field_id)
    _check_value_available(field, choice.token)

    sort_order = choice.sort_order
    if sort_order is None:
        sort_order = max((c.sort_order for c in field.choices), default=0) + 1

    db_choice = FieldChoice(
        value=choice.token,
        display_text=choice.display_text,
        sort_order=sort_order,
        is_default=choice.is_default,
        is_active=choice.is_active,
        color=choice.color,
        icon=choice.icon,
    )
    field.choices.append(db_choice)
    await db.flush()
    _resort(field)

    logger.info(
        f"Added choice '{db_choice.value}' to field id={field_id}",
        extra={"field_id": field_id, "choice_id": db_choice.id},
    )
    return db_choice


async def update_choice(db: AsyncSession, choice_id: int, updates: ChoiceUpdate) -> FieldChoice:
    """
    Edit a choice (partial update).

    Changing the value does not rewrite stored field values; values holding
    the old token become formerly valid.

    Raises:
        NotFoundError: If the choice does not exist
        DuplicateChoiceValueError: If the new value is already used on this field
    """
    db_choice = await get_choice(db, choice_id)
    field = await field_definition_repo.get_field(db, db_choice.field_definition_id)

    update_data = updates.model_dump(exclude_unset=True)
    if not update_data:
        logger.debug(f"No updates provided for choice: id={choice_id}")
        return db_choice

    new_value = update_data.get("value")
    if new_value is not None and new_value != db_choice.value:
        _check_value_available(field, new_value, exclude_choice_id=choice_id)

    for key, value in update_data.items():
        if value is None and key in _NOT_NULLABLE:
            continue
        setattr(db_choice, key, value)

    await db.flush()
    _resort(field)

    logger.info(
        f"Updated choice: id={choice_id}",
        extra={"choice_id": choice_id, "updated_fields": list(update_data.keys())},
    )
    return db_choice


async def remove_choice(db: AsyncSession, choice_id: int) -> None:
    """
    Delete a choice.

    Stored values are never touched; values that used the token are still
    returned by reads.

    Raises:
        NotFoundError: If the choice does not exist
    """
    db_choice = await get_choice(db, choice_id)
    field = await field_definition_repo.get_field(db, db_choice.field_definition_id)

    field.choices.remove(db_choice)  # delete-orphan removes the row
    await db.flush()

    logger.info(
        f"Removed choice '{db_choice.value}' from field id={field.id}",
        extra={"field_id": field.id, "choice_id": choice_id},
    )


async def reorder_choices(
    db: AsyncSession, field_id: int, ordered_choice_ids: list[int]
) -> list[FieldChoice]:
    """
    Assign sort_order 1..n following the given id order.

    Raises:
        NotFoundError: If the field does not exist
        ValidationError: If the ids are not exactly the field's choices
    """
    field = await field_definition_repo.get_field(db, field_id)
    by_id = {choice.id: choice for choice in field.choices}

    if len(ordered_choice_ids) != len(set(ordered_choice_ids)) or set(ordered_choice_ids) != set(
        by_id
    ):
        raise ValidationError(
            "Choice order must list every choice of the field exactly once",
            details={
                "field_id": field_id,
                "expected": sorted(by_id),
                "received": ordered_choice_ids,
            },
        )

    for position, choice_id in enumerate(ordered_choice_ids, start=1):
        by_id[choice_id].sort_order = position
    await db.flush()
    _resort(field)

    logger.info(
        f"Reordered {len(ordered_choice_ids)} choices on field id={field_id}",
        extra={"field_id": field_id},
    )
    return [by_id[choice_id] for choice_id in ordered_choice_ids]
