"""
Repository layer for stored custom field values (generic EAV store).

Values are keyed by (entity_type, entity_instance_id, field_definition_id).
Every write goes through the validation engine; reads project stored raw
strings back to typed values without re-validating them.
"""

import logging
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schema_engine.core.errors import NotFoundError
from schema_engine.core.observability import metrics
from schema_engine.db.models import FieldDefinition, FieldValue
from schema_engine.repos import entity_type_repo
from schema_engine.services.validation import (
    Ok,
    Violation,
    project_value,
    raise_for_violation,
    validate_value,
)

logger = logging.getLogger(__name__)


async def _get_field_for_entity_type(
    db: AsyncSession, entity_type: str, field_id: int
) -> FieldDefinition:
    # Import here to avoid circular dependency
    from schema_engine.repos import field_definition_repo

    await entity_type_repo.get_entity_type(db, entity_type)
    field = await field_definition_repo.get_field(db, field_id)
    if field.entity_type != entity_type:
        raise NotFoundError(
            f"Field definition with id '{field_id}' not found on {entity_type}",
            details={"field_id": field_id, "entity_type": entity_type},
        )
    return field


async def _get_stored(
    db: AsyncSession, entity_type: str, entity_instance_id: str, field_id: int
) -> FieldValue | None:
    stmt = select(FieldValue).where(
        FieldValue.entity_type == entity_type,
        FieldValue.entity_instance_id == entity_instance_id,
        FieldValue.field_definition_id == field_id,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _store(
    db: AsyncSession,
    entity_type: str,
    entity_instance_id: str,
    field_id: int,
    raw: str | None,
) -> FieldValue | None:
    """Upsert a validated raw value; None clears the stored row."""
    stored = await _get_stored(db, entity_type, entity_instance_id, field_id)

    if raw is None:
        if stored is not None:
            await db.delete(stored)
        return None

    if stored is None:
        stored = FieldValue(
            entity_type=entity_type,
            entity_instance_id=entity_instance_id,
            field_definition_id=field_id,
            raw_value=raw,
        )
        db.add(stored)
    else:
        stored.raw_value = raw
    return stored


def _record_violation(field: FieldDefinition, violation: Violation) -> None:
    metrics.validation_violations_total.labels(
        kind=violation.kind.value, field_type=field.field_type.value
    ).inc()


async def set_value(
    db: AsyncSession,
    entity_type: str,
    entity_instance_id: str,
    field_id: int,
    value: Any,
) -> Any:
    """
    Validate and store one value for one entity instance.

    An empty value on a non-required field clears the stored row. Nothing
    is written when validation fails.

    Args:
        db: Database session
        entity_type: Entity type of the instance
        entity_instance_id: Identifier of the instance
        field_id: Field definition id (must belong to entity_type)
        value: Candidate value

    Returns:
        The typed value that was stored, or None when cleared

    Raises:
        NotFoundError: If the field does not exist on this entity type
        ValueViolationError: Subclass matching the first failed check
    """
    field = await _get_field_for_entity_type(db, entity_type, field_id)

    outcome = validate_value(field, value)
    if isinstance(outcome, Violation):
        _record_violation(field, outcome)
        raise_for_violation(outcome, field_id=field_id, field_name=field.field_name)

    await _store(db, entity_type, entity_instance_id, field_id, outcome.raw)
    await db.flush()

    logger.debug(
        f"Stored value for {entity_type}/{entity_instance_id} field id={field_id}",
        extra={
            "entity_type": entity_type,
            "entity_instance_id": entity_instance_id,
            "field_id": field_id,
            "cleared": outcome.raw is None,
        },
    )
    return outcome.value


async def set_values(
    db: AsyncSession,
    entity_type: str,
    entity_instance_id: str,
    values: dict[int, Any],
) -> dict[str, Any]:
    """
    Validate and store several values of one instance, all or nothing.

    Every value is validated before anything is written. When any value is
    rejected, the error for the first rejected field (in the given order) is
    raised and carries all violations in its details.

    Returns:
        Stored typed values keyed by field_name

    Raises:
        NotFoundError: If a field does not exist on this entity type
        ValueViolationError: If any value is rejected
    """
    await entity_type_repo.get_entity_type(db, entity_type)

    accepted: list[tuple[FieldDefinition, Ok]] = []
    rejected: list[tuple[FieldDefinition, Violation]] = []

    for field_id, value in values.items():
        field = await _get_field_for_entity_type(db, entity_type, field_id)
        outcome = validate_value(field, value)
        if isinstance(outcome, Violation):
            _record_violation(field, outcome)
            rejected.append((field, outcome))
        else:
            accepted.append((field, outcome))

    if rejected:
        field, violation = rejected[0]
        raise_for_violation(
            violation,
            field_id=field.id,
            field_name=field.field_name,
            violations=[
                {
                    "field_id": f.id,
                    "field_name": f.field_name,
                    "kind": v.kind.value,
                    "detail": v.detail,
                }
                for f, v in rejected
            ],
        )

    stored: dict[str, Any] = {}
    for field, outcome in accepted:
        await _store(db, entity_type, entity_instance_id, field.id, outcome.raw)
        stored[field.field_name] = outcome.value
    await db.flush()

    logger.info(
        f"Saved {len(accepted)} values for {entity_type}/{entity_instance_id}",
        extra={"entity_type": entity_type, "entity_instance_id": entity_instance_id},
    )
    return stored


async def get_values(db: AsyncSession, entity_type: str, entity_instance_id: str) -> dict[str, Any]:
    """
    Read all stored values of one instance keyed by field name.

    Values are joined with the current definitions, active or not, and
    projected to typed values on a best-effort basis. A value that no longer
    satisfies its definition (removed choice, changed type, tightened range)
    is still returned, as the raw string when it cannot be typed.

    Raises:
        NotFoundError: If the entity type is unknown
    """
    await entity_type_repo.get_entity_type(db, entity_type)

    stmt = (
        select(FieldDefinition, FieldValue.raw_value)
        .join(FieldValue, FieldValue.field_definition_id == FieldDefinition.id)
        .where(
            FieldValue.entity_type == entity_type,
            FieldValue.entity_instance_id == entity_instance_id,
        )
        .order_by(FieldDefinition.display_order, FieldDefinition.field_name)
    )
    result = await db.execute(stmt)
    return {field.field_name: project_value(field, raw) for field, raw in result.all()}


async def count_values_for_field(db: AsyncSession, field_id: int) -> int:
    """Count stored values referencing a field definition."""
    count = await db.scalar(
        select(func.count(FieldValue.id)).where(FieldValue.field_definition_id == field_id)
    )
    return count or 0


async def delete_values_for_field(db: AsyncSession, field_id: int) -> int:
    """
    Delete every stored value of a field definition.

    Returns:
        Number of rows deleted
    """
    result = await db.execute(
        delete(FieldValue)
        .where(FieldValue.field_definition_id == field_id)
        .execution_options(synchronize_session="evaluate")
    )
    deleted = result.rowcount or 0
    logger.debug(
        f"Deleted {deleted} values of field id={field_id}",
        extra={"field_id": field_id, "deleted": deleted},
    )
    return deleted


async def delete_values_for_instance(
    db: AsyncSession, entity_type: str, entity_instance_id: str
) -> int:
    """
    Delete every stored value of one entity instance.

    Called when the owning business record is deleted.

    Returns:
        Number of rows deleted

    Raises:
        NotFoundError: If the entity type is unknown
    """
    await entity_type_repo.get_entity_type(db, entity_type)

    result = await db.execute(
        delete(FieldValue)
        .where(
            FieldValue.entity_type == entity_type,
            FieldValue.entity_instance_id == entity_instance_id,
        )
        .execution_options(synchronize_session="evaluate")
    )
    deleted = result.rowcount or 0
    await db.flush()

    if deleted:
        metrics.field_values_deleted_total.labels(reason="instance_deleted").inc(deleted)
    logger.info(
        f"Deleted {deleted} values of {entity_type}/{entity_instance_id}",
        extra={
            "entity_type": entity_type,
            "entity_instance_id": entity_instance_id,
            "deleted": deleted,
        },
    )
    return deleted
