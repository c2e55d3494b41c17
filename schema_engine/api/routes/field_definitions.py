"""
FastAPI routes for field definitions (the schema editor surface).

Provides endpoints to define, edit, reorder and delete the custom fields of
an entity type, and to check a value against a field's current definition.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from schema_engine.api.schemas.field_definition import (
    FieldDefinitionCreate,
    FieldDefinitionResponse,
    FieldDefinitionUpdate,
    FieldOrderUpdate,
    FieldValueCountResponse,
    ValidateValueRequest,
    ValidateValueResponse,
)
from schema_engine.api.schemas.field_value import DeletedValuesResponse
from schema_engine.core.dependencies import AsyncDbSession
from schema_engine.db.models import FieldDefinition
from schema_engine.repos import field_definition_repo
from schema_engine.services.validation import Ok, validate_value

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Field Definitions"])

EntityTypePath = Annotated[str, Path(description="Entity type name, e.g. Customer")]
FieldIdPath = Annotated[int, Path(description="Field definition id")]


@router.get(
    "/entity-types/{entity_type}/fields",
    response_model=list[FieldDefinitionResponse],
    summary="List field definitions of an entity type",
    description="""
    Retrieve an entity type's field definitions ordered by display order, then
    field name. Inactive fields are included unless `active_only` is set.

    **Errors:**
    - 404 Not Found: If the entity type is unknown
    """,
)
async def list_fields(
    entity_type: EntityTypePath,
    db: AsyncDbSession,
    active_only: Annotated[bool, Query(description="Exclude inactive fields")] = False,
) -> list[FieldDefinition]:
    """List field definitions."""
    return await field_definition_repo.list_fields(db, entity_type, active_only=active_only)


@router.post(
    "/entity-types/{entity_type}/fields",
    response_model=FieldDefinitionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Define a new field",
    description="""
    Create a field definition, optionally with its choice list.

    `display_order` defaults to the end of the entity type's list; choice
    `value` defaults to its `display_text`.

    **Errors:**
    - 404 Not Found: If the entity type is unknown
    - 409 Conflict: If the field name is taken (by an active or inactive field),
      or inline choices repeat a value
    """,
)
async def define_field(
    entity_type: EntityTypePath,
    field: FieldDefinitionCreate,
    db: AsyncDbSession,
) -> FieldDefinition:
    """Define a new field."""
    new_field = await field_definition_repo.define_field(db, entity_type, field)
    await db.commit()

    logger.info(
        f"Defined field {entity_type}.{new_field.field_name}",
        extra={"entity_type": entity_type, "field_id": new_field.id},
    )
    return new_field


@router.put(
    "/entity-types/{entity_type}/fields/order",
    response_model=list[FieldDefinitionResponse],
    summary="Reorder the fields of an entity type",
    description="""
    Assign display order 1..n following the given list of field ids.

    **Errors:**
    - 400 Bad Request: If the list is not exactly the entity type's field ids
    - 404 Not Found: If the entity type is unknown
    """,
)
async def reorder_fields(
    entity_type: EntityTypePath,
    order: FieldOrderUpdate,
    db: AsyncDbSession,
) -> list[FieldDefinition]:
    """Reorder fields."""
    fields = await field_definition_repo.reorder_fields(db, entity_type, order.field_ids)
    await db.commit()
    return fields


@router.get(
    "/fields/{field_id}",
    response_model=FieldDefinitionResponse,
    summary="Get a field definition",
)
async def get_field(field_id: FieldIdPath, db: AsyncDbSession) -> FieldDefinition:
    """Get a field definition with its choices."""
    return await field_definition_repo.get_field(db, field_id)


@router.put(
    "/fields/{field_id}",
    response_model=FieldDefinitionResponse,
    summary="Replace a field definition",
    description="""
    Replace every mutable attribute of a field definition. The entity type and
    id never change; `display_order` is kept when omitted.

    Changing `field_type` keeps constraints the new type does not use.
    Stored values are not rewritten; reads return them leniently.

    **Errors:**
    - 404 Not Found: If the field does not exist
    - 409 Conflict: If the new field name is taken
    """,
)
async def update_field(
    field_id: FieldIdPath,
    updates: FieldDefinitionUpdate,
    db: AsyncDbSession,
) -> FieldDefinition:
    """Replace a field definition."""
    field = await field_definition_repo.update_field(db, field_id, updates)
    await db.commit()

    logger.info(
        f"Updated field {field.entity_type}.{field.field_name}",
        extra={"entity_type": field.entity_type, "field_id": field_id},
    )
    return field


@router.delete(
    "/fields/{field_id}",
    response_model=DeletedValuesResponse,
    summary="Delete a field definition",
    description="""
    Delete a field definition together with its choices and every stored
    value, atomically. Irreversible; call `/value-count` first to warn the
    operator.

    **Errors:**
    - 404 Not Found: If the field does not exist
    """,
)
async def delete_field(field_id: FieldIdPath, db: AsyncDbSession) -> DeletedValuesResponse:
    """Delete a field definition and its values."""
    deleted = await field_definition_repo.delete_field(db, field_id)
    await db.commit()
    return DeletedValuesResponse(deleted=deleted)


@router.get(
    "/fields/{field_id}/value-count",
    response_model=FieldValueCountResponse,
    summary="Count stored values of a field",
)
async def count_values(field_id: FieldIdPath, db: AsyncDbSession) -> FieldValueCountResponse:
    """Count stored values referencing a field."""
    count = await field_definition_repo.count_values(db, field_id)
    return FieldValueCountResponse(field_id=field_id, value_count=count)


@router.post(
    "/fields/{field_id}/validate",
    response_model=ValidateValueResponse,
    summary="Validate a value against the current definition",
    description="""
    Run the validation engine against the field's current definition without
    storing anything. Useful to detect stored values that no longer satisfy
    a changed definition.
    """,
)
async def validate_field_value(
    field_id: FieldIdPath,
    request: ValidateValueRequest,
    db: AsyncDbSession,
) -> ValidateValueResponse:
    """Validate a candidate value."""
    field = await field_definition_repo.get_field(db, field_id)
    outcome = validate_value(field, request.value)
    if isinstance(outcome, Ok):
        return ValidateValueResponse(valid=True, value=outcome.value, raw=outcome.raw)
    return ValidateValueResponse(valid=False, kind=outcome.kind.value, detail=outcome.detail)
