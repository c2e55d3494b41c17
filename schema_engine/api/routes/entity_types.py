"""
FastAPI routes for the entity type registry.

Lists the fixed business entities that may carry custom fields.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query

from schema_engine.api.schemas.field_definition import EntityTypeResponse
from schema_engine.core.dependencies import AsyncDbSession
from schema_engine.db.models import EntityType
from schema_engine.repos import entity_type_repo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/entity-types", tags=["Entity Types"])


@router.get(
    "",
    response_model=list[EntityTypeResponse],
    summary="List entity types",
    description="""
    Retrieve the entity types that may carry custom fields, ordered by
    sort order then name.
    """,
)
async def list_entity_types(
    db: AsyncDbSession,
    include_disabled: Annotated[bool, Query(description="Include disabled entity types")] = False,
) -> list[EntityType]:
    """List entity types."""
    return await entity_type_repo.list_entity_types(db, include_disabled=include_disabled)


@router.get(
    "/field-counts",
    response_model=dict[str, int],
    summary="Count field definitions per entity type",
    description="""
    Number of field definitions per enabled entity type. Entity types without
    fields are reported with 0.
    """,
)
async def get_field_counts(
    db: AsyncDbSession,
    active_only: Annotated[bool, Query(description="Count only active fields")] = True,
) -> dict[str, int]:
    """Count field definitions per entity type."""
    return await entity_type_repo.count_fields_by_entity_type(db, active_only=active_only)
