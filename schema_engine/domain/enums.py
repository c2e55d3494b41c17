"""
Domain enums for the custom field schema engine.

FieldType is a closed variant set. What each variant supports (choices,
numeric range, length, pattern) is looked up in FIELD_TYPE_CAPABILITIES
instead of being branched on by name throughout the code.
"""

from dataclasses import dataclass
from enum import Enum


class FieldType(str, Enum):
    """Data type of a custom field - matches field_definitions.field_type."""

    TEXT = "Text"
    NUMBER = "Number"  # Whole numbers
    DECIMAL = "Decimal"
    DATE = "Date"  # ISO calendar date, no time component
    BOOLEAN = "Boolean"
    DROPDOWN = "Dropdown"
    MULTI_SELECT = "MultiSelect"
    RADIO = "Radio"

    @property
    def capabilities(self) -> "FieldTypeCapabilities":
        return FIELD_TYPE_CAPABILITIES[self]

    @property
    def has_choices(self) -> bool:
        return self.capabilities.has_choices

    @property
    def has_numeric_range(self) -> bool:
        return self.capabilities.has_numeric_range

    @property
    def has_length(self) -> bool:
        return self.capabilities.has_length

    @property
    def has_pattern(self) -> bool:
        return self.capabilities.has_pattern

    @property
    def is_multi_valued(self) -> bool:
        return self.capabilities.is_multi_valued


@dataclass(frozen=True)
class FieldTypeCapabilities:
    """Which constraints and features are meaningful for a field type."""

    has_choices: bool = False
    has_numeric_range: bool = False
    has_length: bool = False
    has_pattern: bool = False
    is_multi_valued: bool = False


FIELD_TYPE_CAPABILITIES: dict[FieldType, FieldTypeCapabilities] = {
    FieldType.TEXT: FieldTypeCapabilities(has_length=True, has_pattern=True),
    FieldType.NUMBER: FieldTypeCapabilities(has_numeric_range=True),
    FieldType.DECIMAL: FieldTypeCapabilities(has_numeric_range=True),
    FieldType.DATE: FieldTypeCapabilities(),
    FieldType.BOOLEAN: FieldTypeCapabilities(),
    FieldType.DROPDOWN: FieldTypeCapabilities(has_choices=True),
    FieldType.MULTI_SELECT: FieldTypeCapabilities(has_choices=True, is_multi_valued=True),
    FieldType.RADIO: FieldTypeCapabilities(has_choices=True),
}

# Separator between selected tokens in a stored MultiSelect value.
MULTI_SELECT_DELIMITER = ","


class ViolationKind(str, Enum):
    """
    Reasons a candidate value can be rejected by the validation engine.

    Checks run in declaration order and stop at the first failure.
    """

    REQUIRED = "RequiredViolation"
    TYPE_MISMATCH = "TypeMismatch"
    RANGE = "RangeViolation"
    LENGTH = "LengthViolation"
    PATTERN = "PatternViolation"
    INVALID_CHOICE = "InvalidChoice"


class ImportMode(str, Enum):
    """
    Conflict policy for schema document imports.

    REPLACE drops the entity type's existing definitions first.
    MERGE keeps existing definitions and skips same-named fields.
    """

    REPLACE = "replace"
    MERGE = "merge"

    @classmethod
    def _missing_(cls, value: object) -> "ImportMode | None":
        # Accept "Replace" / "MERGE" from hand-written documents and CLI flags
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return None
