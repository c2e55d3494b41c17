"""
Pydantic schemas for field definition and choice API operations.

These schemas define the request/response structure for the schema editor
endpoints and are also the input types of the definition and choice repos.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from schema_engine.db.validators import validate_choice_token
from schema_engine.domain.enums import FieldType

FIELD_NAME_PATTERN = r"^[A-Za-z][A-Za-z0-9_]*$"
COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


# ============================================================================
# Choice Schemas
# ============================================================================


class ChoiceCreate(BaseModel):
    """Schema for adding an option to a Dropdown, MultiSelect or Radio field."""

    display_text: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Text shown to users",
        examples=["Alice"],
    )
    value: str | None = Field(
        default=None,
        max_length=100,
        description="Persisted token; defaults to display_text when omitted",
        examples=["alice"],
    )
    sort_order: int | None = Field(
        default=None,
        ge=0,
        description="Position in the list; defaults to the end of the list",
    )
    is_default: bool = Field(default=False, description="Preselected option for new records")
    is_active: bool = Field(default=True, description="Inactive options reject new writes")
    color: str | None = Field(
        default=None,
        pattern=COLOR_PATTERN,
        description="Badge color as #RRGGBB",
        examples=["#2E7D32"],
    )
    icon: str | None = Field(default=None, max_length=50, description="Icon name")

    @field_validator("value")
    @classmethod
    def validate_value_token(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return validate_choice_token("value", v)

    @model_validator(mode="after")
    def default_value_to_display_text(self) -> "ChoiceCreate":
        if self.value is None:
            self.value = validate_choice_token("value", self.display_text)
        return self

    @property
    def token(self) -> str:
        """Persisted value, always set once the model has validated."""
        return self.value if self.value is not None else self.display_text


class ChoiceUpdate(BaseModel):
    """Schema for editing a choice (partial update)."""

    display_text: str | None = Field(default=None, min_length=1, max_length=200)
    value: str | None = Field(default=None, max_length=100)
    sort_order: int | None = Field(default=None, ge=0)
    is_default: bool | None = None
    is_active: bool | None = None
    color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    icon: str | None = Field(default=None, max_length=50)

    @field_validator("value")
    @classmethod
    def validate_value_token(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return validate_choice_token("value", v)


class ChoiceResponse(BaseModel):
    """Schema for choice responses."""

    id: int
    field_definition_id: int
    value: str
    display_text: str
    sort_order: int
    is_default: bool
    is_active: bool
    color: str | None = None
    icon: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ChoiceOrderUpdate(BaseModel):
    """New order for every choice of one field."""

    choice_ids: list[int] = Field(
        ...,
        description="All choice ids of the field, in the desired order",
        examples=[[3, 1, 2]],
    )


# ============================================================================
# Field Definition Schemas
# ============================================================================


class FieldDefinitionBase(BaseModel):
    """Attributes an operator sets on a field definition."""

    field_name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        pattern=FIELD_NAME_PATTERN,
        description="Machine key, unique within the entity type",
        examples=["PreferredTechnician"],
    )
    display_label: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Label shown next to the input widget",
        examples=["Preferred Technician"],
    )
    field_type: FieldType = Field(
        ...,
        description="Data type of the field",
        examples=[FieldType.DROPDOWN],
    )
    is_required: bool = False
    is_read_only: bool = False
    default_value: str | None = Field(default=None, max_length=500)
    placeholder: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=500)
    group_name: str | None = Field(
        default=None,
        max_length=100,
        description="Section the field is rendered in",
        examples=["Scheduling"],
    )
    display_order: int | None = Field(
        default=None,
        ge=0,
        description="Position within the entity type; defaults to the end",
    )
    is_active: bool = True
    validation_regex: str | None = Field(
        default=None,
        max_length=500,
        description="Pattern a Text value must fully match",
    )
    min_value: Decimal | None = Field(default=None, description="Inclusive lower bound")
    max_value: Decimal | None = Field(default=None, description="Inclusive upper bound")
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_bounds(self) -> "FieldDefinitionBase":
        if (
            self.min_value is not None
            and self.max_value is not None
            and self.min_value > self.max_value
        ):
            raise ValueError("min_value cannot be greater than max_value")
        if (
            self.min_length is not None
            and self.max_length is not None
            and self.min_length > self.max_length
        ):
            raise ValueError("min_length cannot be greater than max_length")
        return self


class FieldDefinitionCreate(FieldDefinitionBase):
    """Schema for defining a new field, optionally with its choice list."""

    choices: list[ChoiceCreate] = Field(
        default_factory=list,
        description="Initial options for choice-bearing field types",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "field_name": "PreferredTechnician",
                    "display_label": "Preferred Technician",
                    "field_type": "Dropdown",
                    "group_name": "Scheduling",
                    "choices": [
                        {"display_text": "Alice", "value": "alice"},
                        {"display_text": "Bob", "value": "bob"},
                    ],
                }
            ]
        }
    )


class FieldDefinitionUpdate(FieldDefinitionBase):
    """
    Schema for replacing a field definition's mutable attributes.

    Every attribute is replaced; display_order keeps its current value when
    omitted. entity_type and id never change.
    """

    pass


class FieldDefinitionResponse(BaseModel):
    """Schema for field definition responses."""

    id: int
    entity_type: str
    field_name: str
    display_label: str
    field_type: FieldType
    is_required: bool
    is_read_only: bool
    default_value: str | None = None
    placeholder: str | None = None
    description: str | None = None
    group_name: str | None = None
    display_order: int
    is_active: bool
    validation_regex: str | None = None
    min_value: Decimal | None = None
    max_value: Decimal | None = None
    min_length: int | None = None
    max_length: int | None = None
    choices: list[ChoiceResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FieldOrderUpdate(BaseModel):
    """New order for every field of one entity type."""

    field_ids: list[int] = Field(
        ...,
        description="All field ids of the entity type, in the desired order",
        examples=[[4, 2, 7]],
    )


class FieldValueCountResponse(BaseModel):
    """Number of stored values referencing a field."""

    field_id: int
    value_count: int


# ============================================================================
# Validation Schemas
# ============================================================================


class ValidateValueRequest(BaseModel):
    """Candidate value to check against the current definition."""

    value: Any = Field(default=None, examples=["42"])


class ValidateValueResponse(BaseModel):
    """Outcome of a fresh validation run."""

    valid: bool
    value: Any = None
    raw: str | None = None
    kind: str | None = None
    detail: str | None = None


# ============================================================================
# Entity Type Schemas
# ============================================================================


class EntityTypeResponse(BaseModel):
    """Schema for entity type responses."""

    name: str
    display_name: str
    sort_order: int
    is_enabled: bool

    model_config = ConfigDict(from_attributes=True)
