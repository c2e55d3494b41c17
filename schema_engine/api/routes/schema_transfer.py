"""
FastAPI routes for schema document export and import.

Documents carry field definitions and choice lists only; stored values are
never exported or imported.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Path, Query, status
from fastapi.responses import JSONResponse

from schema_engine.api.schemas.schema_document import ImportResult, SchemaDocument
from schema_engine.core.dependencies import AsyncDbSession
from schema_engine.domain.enums import ImportMode
from schema_engine.services import schema_transfer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Schema Transfer"])


@router.get(
    "/entity-types/{entity_type}/schema",
    response_model=SchemaDocument,
    response_model_exclude_none=True,
    summary="Export the schema of an entity type",
    description="""
    Snapshot every field definition (active and inactive) of the entity type
    with its choices, as a portable camelCase JSON document.

    **Errors:**
    - 404 Not Found: If the entity type is unknown
    """,
)
async def export_schema(
    entity_type: Annotated[str, Path(description="Entity type name, e.g. Customer")],
    db: AsyncDbSession,
    exported_by: Annotated[
        str | None, Query(max_length=100, description="Operator recorded in the document")
    ] = None,
    notes: Annotated[
        str | None, Query(max_length=1000, description="Free-text note recorded in the document")
    ] = None,
) -> SchemaDocument:
    """Export a schema document."""
    return await schema_transfer.export_schema(
        db, entity_type, exported_by=exported_by, notes=notes
    )


@router.post(
    "/schema/import",
    response_model=ImportResult,
    summary="Import a schema document",
    description="""
    Apply a schema document to the entity type it names.

    **Modes:**
    - `merge` (default): existing fields with the same name are kept and
      reported in `skippedFields`
    - `replace`: every existing field of the entity type is deleted first,
      together with its choices and stored values

    The document is checked as a whole before anything is written. A
    malformed document returns `success: false` with status 422.

    **Errors:**
    - 404 Not Found: If the document's entity type is unknown
    - 422 Unprocessable Entity: If the document is malformed
    """,
)
async def import_schema(
    document: Annotated[dict[str, Any], Body(description="Schema document (camelCase JSON)")],
    db: AsyncDbSession,
    mode: Annotated[ImportMode, Query(description="Conflict policy")] = ImportMode.MERGE,
) -> Any:
    """Import a schema document."""
    result = await schema_transfer.import_document(db, document, mode)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=result.model_dump(mode="json", by_alias=True),
        )

    await db.commit()
    return result
