"""
Repository layer for the entity type registry.

Entity types are the fixed business entities (Customer, Job, ...) that may
carry custom fields. They live in a configuration table seeded at startup.
"""

import logging
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schema_engine.core.errors import NotFoundError
from schema_engine.db.models import EntityType, FieldDefinition

logger = logging.getLogger(__name__)


async def list_entity_types(db: AsyncSession, include_disabled: bool = False) -> list[EntityType]:
    """
    List registered entity types ordered by sort_order, then name.

    Args:
        db: Database session
        include_disabled: Include entity types that are switched off

    Returns:
        List of EntityType models
    """
    stmt = select(EntityType).order_by(EntityType.sort_order, EntityType.name)
    if not include_disabled:
        stmt = stmt.where(EntityType.is_enabled.is_(True))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def ensure_entity_types(db: AsyncSession, names: Iterable[str]) -> list[str]:
    """
    Insert entity types that are not registered yet.

    Idempotent; existing rows (including disabled ones) are left untouched.

    Args:
        db: Database session
        names: Entity type names in display order

    Returns:
        Names that were inserted
    """
    names = list(names)
    result = await db.execute(select(EntityType.name))
    existing = set(result.scalars().all())

    max_order = await db.scalar(select(func.max(EntityType.sort_order)))
    next_order = (max_order or 0) + 1

    created: list[str] = []
    for name in names:
        if name in existing or name in created:
            continue
        db.add(EntityType(name=name, display_name=name, sort_order=next_order, is_enabled=True))
        next_order += 1
        created.append(name)

    if created:
        await db.flush()
        logger.info(
            f"Registered {len(created)} entity types",
            extra={"entity_types": created},
        )
    return created


async def get_entity_type(db: AsyncSession, name: str) -> EntityType:
    """
    Retrieve an enabled entity type.

    Raises:
        NotFoundError: If the entity type is unknown or disabled
    """
    entity_type = await db.get(EntityType, name)
    if entity_type is None or not entity_type.is_enabled:
        logger.warning(f"Entity type not found: {name}")
        raise NotFoundError(
            f"Entity type '{name}' not found",
            details={"entity_type": name},
        )
    return entity_type


async def lock_entity_type(db: AsyncSession, name: str) -> EntityType:
    """
    Take a row lock on an entity type for the rest of the transaction.

    Destructive writers (field deletion, replace imports) lock the owning
    entity type first so they serialize per entity type. SQLite has no row
    locks; its single-writer transactions give the same ordering.

    Raises:
        NotFoundError: If the entity type is unknown or disabled
    """
    stmt = (
        select(EntityType)
        .where(EntityType.name == name, EntityType.is_enabled.is_(True))
        .with_for_update()
    )
    result = await db.execute(stmt)
    entity_type = result.scalar_one_or_none()
    if entity_type is None:
        raise NotFoundError(
            f"Entity type '{name}' not found",
            details={"entity_type": name},
        )
    return entity_type


async def count_fields_by_entity_type(db: AsyncSession, active_only: bool = True) -> dict[str, int]:
    """
    Count field definitions per enabled entity type.

    Entity types without fields are reported with 0.

    Args:
        db: Database session
        active_only: Count only active field definitions

    Returns:
        Mapping of entity type name to number of field definitions
    """
    counts = {entity_type.name: 0 for entity_type in await list_entity_types(db)}

    stmt = select(FieldDefinition.entity_type, func.count(FieldDefinition.id)).group_by(
        FieldDefinition.entity_type
    )
    if active_only:
        stmt = stmt.where(FieldDefinition.is_active.is_(True))
    result = await db.execute(stmt)
    for name, count in result.all():
        if name in counts:
            counts[name] = count
    return counts
