"""Unit tests for domain errors and their HTTP status mapping."""

import pytest

from schema_engine.core.errors import (
    VIOLATION_ERRORS,
    ConflictError,
    DuplicateChoiceValueError,
    DuplicateFieldNameError,
    ImportMalformedError,
    NotFoundError,
    PatternViolation,
    SchemaEngineError,
    ValidationError,
    ValueViolationError,
    get_status_code,
)
from schema_engine.domain.enums import ViolationKind


class TestGetStatusCode:
    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (ValidationError("bad order"), 400),
            (NotFoundError("missing"), 404),
            (ConflictError("conflict"), 409),
            (DuplicateFieldNameError("taken"), 409),
            (DuplicateChoiceValueError("taken"), 409),
            (PatternViolation("no match"), 422),
            (ImportMalformedError("bad document"), 422),
            (SchemaEngineError("unmapped"), 500),
            (RuntimeError("boom"), 500),
        ],
    )
    def test_status_follows_nearest_mapped_ancestor(self, error: Exception, status: int):
        assert get_status_code(error) == status


class TestValueViolationError:
    def test_details_carry_kind(self):
        error = PatternViolation("'ab' does not match", details={"field_name": "Code"})

        assert error.detail == "'ab' does not match"
        assert error.message == "'ab' does not match"
        assert error.details == {"kind": "PatternViolation", "field_name": "Code"}

    def test_every_kind_has_an_error_class(self):
        assert set(VIOLATION_ERRORS) == set(ViolationKind)
        for kind, error_class in VIOLATION_ERRORS.items():
            assert issubclass(error_class, ValueViolationError)
            assert error_class.kind == kind
            assert error_class.__name__ == kind.value

    def test_details_default_to_empty(self):
        assert NotFoundError("missing").details == {}
