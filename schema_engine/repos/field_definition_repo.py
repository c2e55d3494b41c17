"""
Repository layer for field definitions (the schema definition store).

Provides database operations following the repository pattern to separate
data access logic from API endpoint handlers and the import/export service.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
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
from schema_engine.core.observability import metrics
from schema_engine.core.telemetry import traced_operation
from schema_engine.db.models import FieldChoice, FieldDefinition
from schema_engine.repos import entity_type_repo, field_value_repo

logger = logging.getLogger(__name__)

# Attributes replaced by update_field(); entity_type and id are immutable
_MUTABLE_ATTRIBUTES = (
    "field_name",
    "display_label",
    "field_type",
    "is_required",
    "is_read_only",
    "default_value",
    "placeholder",
    "description",
    "group_name",
    "is_active",
    "validation_regex",
    "min_value",
    "max_value",
    "min_length",
    "max_length",
)


# ============================================================================
# Queries
# ============================================================================


async def get_field(db: AsyncSession, field_id: int) -> FieldDefinition:
    """
    Retrieve a field definition with its choices.

    Args:
        db: Database session
        field_id: Field definition id

    Returns:
        FieldDefinition model

    Raises:
        NotFoundError: If the field does not exist
    """
    field = await db.get(FieldDefinition, field_id)
    if field is None:
        logger.warning(f"Field definition not found: id={field_id}")
        raise NotFoundError(
            f"Field definition with id '{field_id}' not found",
            details={"field_id": field_id},
        )
    return field


async def find_field_by_name(
    db: AsyncSession, entity_type: str, field_name: str
) -> FieldDefinition | None:
    """Look up a definition by its machine key, active or not."""
    stmt = select(FieldDefinition).where(
        FieldDefinition.entity_type == entity_type,
        FieldDefinition.field_name == field_name,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_fields(
    db: AsyncSession, entity_type: str, active_only: bool = False
) -> list[FieldDefinition]:
    """
    List an entity type's field definitions by display_order, then field_name.

    Args:
        db: Database session
        entity_type: Owning entity type
        active_only: Exclude inactive definitions

    Returns:
        Ordered list of FieldDefinition models

    Raises:
        NotFoundError: If the entity type is unknown
    """
    await entity_type_repo.get_entity_type(db, entity_type)

    stmt = (
        select(FieldDefinition)
        .where(FieldDefinition.entity_type == entity_type)
        .order_by(FieldDefinition.display_order, FieldDefinition.field_name)
    )
    if active_only:
        stmt = stmt.where(FieldDefinition.is_active.is_(True))

    result = await db.execute(stmt)
    fields = list(result.scalars().all())

    logger.debug(
        f"Retrieved {len(fields)} field definitions for {entity_type}",
        extra={"entity_type": entity_type, "count": len(fields), "active_only": active_only},
    )
    return fields


async def count_values(db: AsyncSession, field_id: int) -> int:
    """
    Count stored values that reference a field.

    Lets callers warn before a destructive delete. An unknown or deleted
    field has no values, so it counts 0.
    """
    return await field_value_repo.count_values_for_field(db, field_id)


# ============================================================================
# Mutations
# ============================================================================


def build_choices(choices: list[ChoiceCreate]) -> list[FieldChoice]:
    """
    Build choice rows for a new definition.

    Missing sort orders continue after the highest one given so far. Rows
    come back in sort_order, matching how the collection loads.

    Raises:
        DuplicateChoiceValueError: If two choices share a value
    """
    rows: list[FieldChoice] = []
    seen: set[str] = set()
    next_order = 1
    for choice in choices:
        value = choice.token
        if value in seen:
            raise DuplicateChoiceValueError(
                f"Choice value '{value}' is used more than once",
                details={"value": value},
            )
        seen.add(value)

        sort_order = choice.sort_order if choice.sort_order is not None else next_order
        next_order = max(next_order, sort_order) + 1
        rows.append(
            FieldChoice(
                value=value,
                display_text=choice.display_text,
                sort_order=sort_order,
                is_default=choice.is_default,
                is_active=choice.is_active,
                color=choice.color,
                icon=choice.icon,
            )
        )
    return sorted(rows, key=lambda row: row.sort_order)


async def _next_display_order(db: AsyncSession, entity_type: str) -> int:
    max_order = await db.scalar(
        select(func.max(FieldDefinition.display_order)).where(
            FieldDefinition.entity_type == entity_type
        )
    )
    return (max_order or 0) + 1


async def define_field(
    db: AsyncSession, entity_type: str, field: FieldDefinitionCreate
) -> FieldDefinition:
    """
    Create a field definition, together with any inline choices.

    Args:
        db: Database session
        entity_type: Owning entity type
        field: FieldDefinitionCreate schema with the definition data

    Returns:
        Created FieldDefinition model

    Raises:
        NotFoundError: If the entity type is unknown
        DuplicateFieldNameError: If field_name is taken in this entity type,
            by an active or inactive definition
        DuplicateChoiceValueError: If the inline choices repeat a value

    Example:
        field = await define_field(
            db,
            "Customer",
            FieldDefinitionCreate(
                field_name="Tier",
                display_label="Tier",
                field_type=FieldType.DROPDOWN,
                choices=[ChoiceCreate(display_text="Gold")],
            ),
        )
    """
    await entity_type_repo.get_entity_type(db, entity_type)

    if await find_field_by_name(db, entity_type, field.field_name) is not None:
        raise DuplicateFieldNameError(
            f"Field '{field.field_name}' already exists on {entity_type}",
            details={"entity_type": entity_type, "field_name": field.field_name},
        )

    display_order = field.display_order
    if display_order is None:
        display_order = await _next_display_order(db, entity_type)

    db_field = FieldDefinition(
        entity_type=entity_type,
        display_order=display_order,
        choices=build_choices(field.choices),
        **field.model_dump(include=set(_MUTABLE_ATTRIBUTES)),
    )

    try:
        db.add(db_field)
        await db.flush()  # Flush to detect conflicts before commit
    except IntegrityError as e:
        await db.rollback()
        logger.warning(
            f"Conflict creating field definition: {entity_type}.{field.field_name}",
            extra={"error": str(e)},
        )
        raise DuplicateFieldNameError(
            f"Field '{field.field_name}' already exists on {entity_type}",
            details={"entity_type": entity_type, "field_name": field.field_name},
        )

    logger.info(
        f"Defined field: {entity_type}.{field.field_name} with id={db_field.id}",
        extra={
            "entity_type": entity_type,
            "field_id": db_field.id,
            "field_type": db_field.field_type.value,
            "choices": len(db_field.choices),
        },
    )
    return db_field


async def update_field(
    db: AsyncSession, field_id: int, updates: FieldDefinitionUpdate
) -> FieldDefinition:
    """
    Replace a field definition's mutable attributes.

    Changing field_type keeps constraint columns that the new type does not
    use. Renaming onto another field's name is rejected.

    Raises:
        NotFoundError: If the field does not exist
        DuplicateFieldNameError: If the new field_name is taken
    """
    db_field = await get_field(db, field_id)

    if updates.field_name != db_field.field_name:
        existing = await find_field_by_name(db, db_field.entity_type, updates.field_name)
        if existing is not None and existing.id != db_field.id:
            raise DuplicateFieldNameError(
                f"Field '{updates.field_name}' already exists on {db_field.entity_type}",
                details={
                    "entity_type": db_field.entity_type,
                    "field_name": updates.field_name,
                },
            )

    update_data = updates.model_dump(include=set(_MUTABLE_ATTRIBUTES))
    for key, value in update_data.items():
        setattr(db_field, key, value)
    if updates.display_order is not None:
        db_field.display_order = updates.display_order

    await db.flush()

    logger.info(
        f"Updated field definition: id={field_id}",
        extra={"field_id": field_id, "entity_type": db_field.entity_type},
    )
    return db_field


async def reorder_fields(
    db: AsyncSession, entity_type: str, ordered_field_ids: list[int]
) -> list[FieldDefinition]:
    """
    Assign display_order 1..n following the given id order.

    Raises:
        NotFoundError: If the entity type is unknown
        ValidationError: If the ids are not exactly the entity type's fields
    """
    fields = await list_fields(db, entity_type)
    by_id = {field.id: field for field in fields}

    if len(ordered_field_ids) != len(set(ordered_field_ids)) or set(ordered_field_ids) != set(
        by_id
    ):
        raise ValidationError(
            "Field order must list every field of the entity type exactly once",
            details={
                "entity_type": entity_type,
                "expected": sorted(by_id),
                "received": ordered_field_ids,
            },
        )

    for position, field_id in enumerate(ordered_field_ids, start=1):
        by_id[field_id].display_order = position
    await db.flush()

    logger.info(
        f"Reordered {len(ordered_field_ids)} fields on {entity_type}",
        extra={"entity_type": entity_type},
    )
    return [by_id[field_id] for field_id in ordered_field_ids]


async def delete_field(db: AsyncSession, field_id: int) -> int:
    """
    Delete a field definition, its choices and every stored value.

    Runs inside the caller's transaction after locking the owning entity
    type, so nothing is visible until commit.

    Args:
        db: Database session
        field_id: Field definition id

    Returns:
        Number of stored values deleted

    Raises:
        NotFoundError: If the field does not exist
    """
    field = await get_field(db, field_id)
    entity_type = field.entity_type
    field_name = field.field_name

    with traced_operation("schema.delete_field", entity_type=entity_type, field_id=field_id):
        await entity_type_repo.lock_entity_type(db, entity_type)

        deleted_values = await field_value_repo.delete_values_for_field(db, field_id)
        await db.delete(field)  # choices cascade through the relationship
        await db.flush()

    if deleted_values:
        metrics.field_values_deleted_total.labels(reason="field_deleted").inc(deleted_values)

    logger.info(
        f"Deleted field definition: {entity_type}.{field_name}",
        extra={
            "entity_type": entity_type,
            "field_id": field_id,
            "deleted_values": deleted_values,
        },
    )
    return deleted_values
