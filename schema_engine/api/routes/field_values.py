"""
FastAPI routes for stored custom field values of entity instances.

Writes are validated against the live field definitions; reads are lenient
and return values that no longer satisfy a changed definition.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Path
from sqlalchemy.ext.asyncio import AsyncSession

from schema_engine.api.schemas.field_value import (
    DeletedValuesResponse,
    InstanceValuesResponse,
    SetValueRequest,
    SetValuesRequest,
)
from schema_engine.core.dependencies import AsyncDbSession
from schema_engine.repos import field_value_repo

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/entity-types/{entity_type}/instances/{instance_id}/values",
    tags=["Field Values"],
)

EntityTypePath = Annotated[str, Path(description="Entity type name, e.g. Customer")]
InstanceIdPath = Annotated[
    str, Path(min_length=1, max_length=100, description="Entity instance identifier")
]


async def _instance_values(
    db: AsyncSession, entity_type: str, instance_id: str
) -> InstanceValuesResponse:
    values = await field_value_repo.get_values(db, entity_type, instance_id)
    return InstanceValuesResponse(
        entity_type=entity_type, entity_instance_id=instance_id, values=values
    )


@router.get(
    "",
    response_model=InstanceValuesResponse,
    summary="Read the custom values of an instance",
    description="""
    Stored values keyed by field name, including values of inactive fields.
    Values that no longer satisfy their definition are returned as stored.

    **Errors:**
    - 404 Not Found: If the entity type is unknown
    """,
)
async def get_values(
    entity_type: EntityTypePath,
    instance_id: InstanceIdPath,
    db: AsyncDbSession,
) -> InstanceValuesResponse:
    """Read instance values."""
    return await _instance_values(db, entity_type, instance_id)


@router.put(
    "",
    response_model=InstanceValuesResponse,
    summary="Save several custom values of an instance",
    description="""
    Validate every value first, then store them all; nothing is stored when any
    value is rejected. Empty values clear the stored value.

    **Errors:**
    - 404 Not Found: If the entity type or a field is unknown
    - 422 Unprocessable Entity: If any value is rejected; `details.violations`
      lists every rejected field
    """,
)
async def set_values(
    entity_type: EntityTypePath,
    instance_id: InstanceIdPath,
    request: SetValuesRequest,
    db: AsyncDbSession,
) -> InstanceValuesResponse:
    """Save instance values all-or-nothing."""
    await field_value_repo.set_values(db, entity_type, instance_id, request.values)
    await db.commit()
    return await _instance_values(db, entity_type, instance_id)


@router.put(
    "/{field_id}",
    response_model=InstanceValuesResponse,
    summary="Save one custom value of an instance",
    description="""
    **Errors:**
    - 404 Not Found: If the field does not exist on this entity type
    - 422 Unprocessable Entity: If the value is rejected; `details.kind` names
      the failed check
    """,
)
async def set_value(
    entity_type: EntityTypePath,
    instance_id: InstanceIdPath,
    field_id: Annotated[int, Path(description="Field definition id")],
    request: SetValueRequest,
    db: AsyncDbSession,
) -> InstanceValuesResponse:
    """Save one value."""
    await field_value_repo.set_value(db, entity_type, instance_id, field_id, request.value)
    await db.commit()
    return await _instance_values(db, entity_type, instance_id)


@router.delete(
    "",
    response_model=DeletedValuesResponse,
    summary="Delete the custom values of an instance",
    description="""
    Called when the owning business record is deleted.
    """,
)
async def delete_values(
    entity_type: EntityTypePath,
    instance_id: InstanceIdPath,
    db: AsyncDbSession,
) -> DeletedValuesResponse:
    """Delete instance values."""
    deleted = await field_value_repo.delete_values_for_instance(db, entity_type, instance_id)
    await db.commit()
    return DeletedValuesResponse(deleted=deleted)
