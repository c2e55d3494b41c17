"""
Pydantic models for the portable schema document.

The document is the unit of schema export/import between installations.
It uses camelCase keys on the wire and carries no stored values.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from schema_engine.api.schemas.field_definition import COLOR_PATTERN, FIELD_NAME_PATTERN
from schema_engine.db.validators import to_jsonable, validate_choice_token
from schema_engine.domain.enums import FieldType

CURRENT_SCHEMA_VERSION = 1


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SchemaDocumentChoice(_CamelModel):
    """One option of a choice-bearing field, as carried in a document."""

    display_text: str = Field(..., min_length=1, max_length=200)
    value: str | None = Field(default=None, max_length=100)
    sort_order: int | None = Field(default=None, ge=0)
    is_default: bool = False
    is_active: bool = True
    color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    icon: str | None = Field(default=None, max_length=50)

    @model_validator(mode="after")
    def resolve_value(self) -> "SchemaDocumentChoice":
        self.value = validate_choice_token(
            "value", self.value if self.value is not None else self.display_text
        )
        return self


class SchemaDocumentField(_CamelModel):
    """One field definition, with its choices inline."""

    field_name: str = Field(..., min_length=1, max_length=100, pattern=FIELD_NAME_PATTERN)
    display_label: str | None = Field(default=None, max_length=200)
    field_type: FieldType
    is_required: bool = False
    is_read_only: bool = False
    default_value: str | None = None
    placeholder: str | None = None
    description: str | None = None
    group_name: str | None = None
    display_order: int | None = Field(default=None, ge=0)
    is_active: bool = True
    validation_regex: str | None = None
    min_value: Decimal | None = None
    max_value: Decimal | None = None
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    choices: list[SchemaDocumentChoice] = Field(default_factory=list)

    @field_validator("choices")
    @classmethod
    def validate_unique_choice_values(
        cls, v: list[SchemaDocumentChoice]
    ) -> list[SchemaDocumentChoice]:
        seen: set[str] = set()
        for choice in v:
            if choice.value in seen:
                raise ValueError(f"Duplicate choice value '{choice.value}'")
            seen.add(choice.value)
        return v

    @field_serializer("min_value", "max_value")
    def serialize_bound(self, v: Decimal | None) -> int | float | None:
        return to_jsonable(v)


class SchemaDocument(_CamelModel):
    """All field definitions of one entity type."""

    entity_type: str = Field(..., min_length=1, max_length=50)
    schema_version: int = Field(default=CURRENT_SCHEMA_VERSION, ge=1)
    exported_at: datetime | None = None
    exported_by: str | None = None
    notes: str | None = None
    fields: list[SchemaDocumentField] = Field(default_factory=list)

    @field_validator("schema_version")
    @classmethod
    def validate_schema_version(cls, v: int) -> int:
        if v > CURRENT_SCHEMA_VERSION:
            raise ValueError(
                f"Unsupported schemaVersion {v}; this installation reads up to "
                f"{CURRENT_SCHEMA_VERSION}"
            )
        return v

    @field_validator("fields")
    @classmethod
    def validate_unique_field_names(
        cls, v: list[SchemaDocumentField]
    ) -> list[SchemaDocumentField]:
        seen: set[str] = set()
        for field in v:
            if field.field_name in seen:
                raise ValueError(f"Duplicate fieldName '{field.field_name}'")
            seen.add(field.field_name)
        return v


class ImportResult(_CamelModel):
    """Outcome of a schema document import."""

    success: bool
    imported_fields: list[str] = Field(default_factory=list)
    skipped_fields: list[str] = Field(default_factory=list)
    error_message: str | None = None
