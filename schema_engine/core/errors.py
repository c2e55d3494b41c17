"""
Domain-specific exceptions for the custom field schema engine.

These exceptions represent business rule violations and are mapped
to appropriate HTTP status codes in the API layer.
"""

from typing import Any

from schema_engine.domain.enums import ViolationKind


class SchemaEngineError(Exception):
    """Base exception for all schema engine domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(SchemaEngineError):
    """
    Raised when operator input is structurally invalid.

    Examples:
    - Reorder list that does not match the current set of ids
    - Field definition with min_length greater than max_length

    HTTP Status: 400 Bad Request
    """

    pass


class NotFoundError(SchemaEngineError):
    """
    Raised when a requested resource does not exist.

    Examples:
    - Field definition id not found
    - Choice id not found
    - Entity type unknown or disabled

    HTTP Status: 404 Not Found
    """

    pass


class ConflictError(SchemaEngineError):
    """
    Raised when an operation conflicts with current state.

    HTTP Status: 409 Conflict
    """

    pass


class DuplicateFieldNameError(ConflictError):
    """Raised when (entity_type, field_name) already exists, active or not."""

    pass


class DuplicateChoiceValueError(ConflictError):
    """Raised when a choice value is already used within the same field."""

    pass


class ValueViolationError(SchemaEngineError):
    """
    Raised when a candidate value fails validation against its field definition.

    Subclasses correspond one-to-one with ViolationKind.

    HTTP Status: 422 Unprocessable Entity
    """

    kind: ViolationKind

    def __init__(self, detail: str, details: dict[str, Any] | None = None):
        self.detail = detail
        super().__init__(detail, {"kind": self.kind.value, **(details or {})})


class RequiredViolation(ValueViolationError):
    kind = ViolationKind.REQUIRED


class TypeMismatch(ValueViolationError):
    kind = ViolationKind.TYPE_MISMATCH


class RangeViolation(ValueViolationError):
    kind = ViolationKind.RANGE


class LengthViolation(ValueViolationError):
    kind = ViolationKind.LENGTH


class PatternViolation(ValueViolationError):
    kind = ViolationKind.PATTERN


class InvalidChoice(ValueViolationError):
    kind = ViolationKind.INVALID_CHOICE


VIOLATION_ERRORS: dict[ViolationKind, type[ValueViolationError]] = {
    ViolationKind.REQUIRED: RequiredViolation,
    ViolationKind.TYPE_MISMATCH: TypeMismatch,
    ViolationKind.RANGE: RangeViolation,
    ViolationKind.LENGTH: LengthViolation,
    ViolationKind.PATTERN: PatternViolation,
    ViolationKind.INVALID_CHOICE: InvalidChoice,
}


class ImportMalformedError(SchemaEngineError):
    """
    Raised when a schema document fails structural validation.

    Examples:
    - Field without fieldName
    - Unknown fieldType
    - Same fieldName twice in one document

    HTTP Status: 422 Unprocessable Entity
    """

    pass


# HTTP Status Code Mapping
ERROR_STATUS_MAP: dict[type[SchemaEngineError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    ValueViolationError: 422,
    ImportMalformedError: 422,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Subclasses resolve to the status of their nearest mapped ancestor,
    so DuplicateFieldNameError maps to 409 like ConflictError.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS_MAP:
            return ERROR_STATUS_MAP[cls]
    return 500
