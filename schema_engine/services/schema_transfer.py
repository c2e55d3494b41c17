"""
Schema Import/Export Service

Moves one entity type's field definitions, with their choice lists, between
installations as a portable JSON document. Stored values never leave or
enter through this service.

Import modes:
- replace: drop every existing definition of the entity type (cascading to
  choices and stored values), then insert the document's fields
- merge: keep existing definitions; document fields whose name already
  exists are skipped and reported
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from schema_engine.api.schemas.field_definition import ChoiceCreate, FieldDefinitionCreate
from schema_engine.api.schemas.schema_document import (
    CURRENT_SCHEMA_VERSION,
    ImportResult,
    SchemaDocument,
    SchemaDocumentChoice,
    SchemaDocumentField,
)
from schema_engine.core.errors import ImportMalformedError
from schema_engine.core.observability import metrics
from schema_engine.core.telemetry import traced_operation
from schema_engine.db.models import FieldDefinition
from schema_engine.domain.enums import ImportMode
from schema_engine.repos import entity_type_repo, field_definition_repo

logger = logging.getLogger(__name__)


# ============================================================================
# Document <-> model conversion
# ============================================================================


def _document_field(field: FieldDefinition) -> SchemaDocumentField:
    choices = sorted(field.choices, key=lambda c: (c.sort_order, c.id or 0))
    return SchemaDocumentField(
        field_name=field.field_name,
        display_label=field.display_label,
        field_type=field.field_type,
        is_required=field.is_required,
        is_read_only=field.is_read_only,
        default_value=field.default_value,
        placeholder=field.placeholder,
        description=field.description,
        group_name=field.group_name,
        display_order=field.display_order,
        is_active=field.is_active,
        validation_regex=field.validation_regex,
        min_value=field.min_value,
        max_value=field.max_value,
        min_length=field.min_length,
        max_length=field.max_length,
        choices=[
            SchemaDocumentChoice(
                value=choice.value,
                display_text=choice.display_text,
                sort_order=choice.sort_order,
                is_default=choice.is_default,
                is_active=choice.is_active,
                color=choice.color,
                icon=choice.icon,
            )
            for choice in choices
        ],
    )


def _definition_create(field: SchemaDocumentField) -> FieldDefinitionCreate:
    return FieldDefinitionCreate(
        field_name=field.field_name,
        display_label=field.display_label or field.field_name,
        field_type=field.field_type,
        is_required=field.is_required,
        is_read_only=field.is_read_only,
        default_value=field.default_value,
        placeholder=field.placeholder,
        description=field.description,
        group_name=field.group_name,
        display_order=field.display_order,
        is_active=field.is_active,
        validation_regex=field.validation_regex,
        min_value=field.min_value,
        max_value=field.max_value,
        min_length=field.min_length,
        max_length=field.max_length,
        choices=[
            ChoiceCreate(
                value=choice.value,
                display_text=choice.display_text,
                sort_order=choice.sort_order,
                is_default=choice.is_default,
                is_active=choice.is_active,
                color=choice.color,
                icon=choice.icon,
            )
            for choice in field.choices
        ],
    )


def _format_validation_error(error: PydanticValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "document"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


# ============================================================================
# JSON helpers
# ============================================================================


def parse_document(data: str | bytes | dict[str, Any]) -> SchemaDocument:
    """
    Parse and structurally validate a schema document.

    Checks the whole document before anything is written: every field needs
    a fieldName and a known fieldType, fieldNames are unique, and choice
    values are non-empty and unique within their field.

    Args:
        data: JSON text or an already-decoded mapping

    Returns:
        Validated SchemaDocument

    Raises:
        ImportMalformedError: If the document is not valid JSON or fails
            structural validation
    """
    try:
        if isinstance(data, (str, bytes)):
            return SchemaDocument.model_validate_json(data)
        return SchemaDocument.model_validate(data)
    except PydanticValidationError as e:
        message = _format_validation_error(e)
        raise ImportMalformedError(
            f"Malformed schema document: {message}",
            details={"errors": e.errors(include_url=False, include_context=False)},
        )


def dump_document(document: SchemaDocument) -> str:
    """Serialize a document as indented camelCase JSON, omitting nulls."""
    payload = document.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(payload, indent=2, ensure_ascii=False)


def read_document_file(path: str | Path) -> SchemaDocument:
    """
    Load a schema document from disk.

    Raises:
        ImportMalformedError: If the file cannot be read or parsed
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ImportMalformedError(
            f"Cannot read schema document '{path}': {e.strerror}",
            details={"path": str(path)},
        )
    return parse_document(text)


def write_document_file(document: SchemaDocument, path: str | Path) -> Path:
    """Write a schema document to disk, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(dump_document(document) + "\n", encoding="utf-8")
    return target


# ============================================================================
# Export / Import
# ============================================================================


async def export_schema(
    db: AsyncSession,
    entity_type: str,
    exported_by: str | None = None,
    notes: str | None = None,
) -> SchemaDocument:
    """
    Snapshot every definition (active and inactive) of an entity type.

    Args:
        db: Database session
        entity_type: Entity type to export
        exported_by: Optional operator name recorded in the document
        notes: Optional free-text note recorded in the document

    Returns:
        SchemaDocument ordered by display_order, then field_name

    Raises:
        NotFoundError: If the entity type is unknown
    """
    fields = await field_definition_repo.list_fields(db, entity_type)

    document = SchemaDocument(
        entity_type=entity_type,
        schema_version=CURRENT_SCHEMA_VERSION,
        exported_at=datetime.now(UTC),
        exported_by=exported_by,
        notes=notes,
        fields=[_document_field(field) for field in fields],
    )

    metrics.schema_exports_total.labels(entity_type=entity_type).inc()
    logger.info(
        f"Exported {len(document.fields)} field definitions for {entity_type}",
        extra={"entity_type": entity_type, "field_count": len(document.fields)},
    )
    return document


async def import_document(
    db: AsyncSession,
    document: SchemaDocument | str | bytes | dict[str, Any],
    mode: ImportMode | str = ImportMode.MERGE,
) -> ImportResult:
    """
    Apply a schema document to its entity type.

    Structural problems are reported as an unsuccessful ImportResult and
    nothing is written. Everything else runs inside the caller's
    transaction; the caller commits.

    Args:
        db: Database session
        document: Parsed document, JSON text, or decoded mapping
        mode: ImportMode.REPLACE or ImportMode.MERGE

    Returns:
        ImportResult with imported and skipped field names

    Raises:
        NotFoundError: If the document's entity type is unknown
    """
    mode = ImportMode(mode)

    if not isinstance(document, SchemaDocument):
        try:
            document = parse_document(document)
        except ImportMalformedError as e:
            metrics.schema_imports_total.labels(mode=mode.value, outcome="malformed").inc()
            logger.warning(
                "Rejected malformed schema document",
                extra={"mode": mode.value, "error": e.message},
            )
            return ImportResult(success=False, error_message=e.message)

    try:
        definitions = [_definition_create(doc_field) for doc_field in document.fields]
    except PydanticValidationError as e:
        message = f"Malformed schema document: {_format_validation_error(e)}"
        metrics.schema_imports_total.labels(mode=mode.value, outcome="malformed").inc()
        logger.warning(
            "Rejected malformed schema document",
            extra={"mode": mode.value, "error": message},
        )
        return ImportResult(success=False, error_message=message)

    entity_type = document.entity_type
    metrics.schema_import_fields.labels(mode=mode.value).observe(len(document.fields))

    with traced_operation(
        "schema.import",
        entity_type=entity_type,
        mode=mode.value,
        field_count=len(document.fields),
    ):
        await entity_type_repo.lock_entity_type(db, entity_type)

        imported: list[str] = []
        skipped: list[str] = []

        if mode == ImportMode.REPLACE:
            existing = await field_definition_repo.list_fields(db, entity_type)
            for field in existing:
                await field_definition_repo.delete_field(db, field.id)
            existing_names: set[str] = set()
        else:
            existing_names = {
                field.field_name
                for field in await field_definition_repo.list_fields(db, entity_type)
            }

        for definition in definitions:
            if definition.field_name in existing_names:
                skipped.append(definition.field_name)
                continue
            await field_definition_repo.define_field(db, entity_type, definition)
            imported.append(definition.field_name)

    metrics.schema_imports_total.labels(mode=mode.value, outcome="success").inc()
    if skipped:
        logger.info(
            f"Skipped {len(skipped)} existing fields while importing {entity_type}",
            extra={"entity_type": entity_type, "skipped_fields": skipped},
        )
    logger.info(
        f"Imported {len(imported)} field definitions into {entity_type} ({mode.value})",
        extra={
            "entity_type": entity_type,
            "mode": mode.value,
            "imported_fields": imported,
            "schema_version": document.schema_version,
        },
    )
    return ImportResult(success=True, imported_fields=imported, skipped_fields=skipped)
