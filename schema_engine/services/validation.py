"""
Validation engine for custom field values.

validate_value() is a pure function of (definition, candidate). It reads the
definition's attributes and its loaded choices, performs no IO, and returns
an Ok or a Violation instead of raising. Checks run in a fixed order and
stop at the first failure:

1. required
2. empty (and not required) -> Ok(None)
3. type coercion
4. numeric range (Number, Decimal)
5. length (Text)
6. pattern (Text)
7. choice membership (Dropdown, Radio, MultiSelect)

Writers turn a Violation into an exception with raise_for_violation().
Readers use project_value(), which never rejects.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, NoReturn

from schema_engine.core.errors import VIOLATION_ERRORS
from schema_engine.db.models import FieldDefinition
from schema_engine.domain.enums import MULTI_SELECT_DELIMITER, FieldType, ViolationKind

_TRUE_TOKENS = frozenset({"true", "yes", "1"})
_FALSE_TOKENS = frozenset({"false", "no", "0"})
_MAX_WHOLE_DIGITS = 18
_MAX_FRACTION_DIGITS = 18


@dataclass(frozen=True)
class Ok:
    """Accepted candidate: typed value plus the canonical string to persist."""

    value: Any
    raw: str | None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Violation:
    """Rejected candidate."""

    kind: ViolationKind
    detail: str

    @property
    def ok(self) -> bool:
        return False


ValidationOutcome = Ok | Violation


class _CoercionError(ValueError):
    pass


# ============================================================================
# Candidate normalization
# ============================================================================


def _to_text(candidate: Any) -> str | None:
    """Canonical string form of a scalar candidate."""
    if candidate is None:
        return None
    if isinstance(candidate, str):
        return candidate
    if isinstance(candidate, bool):
        return "true" if candidate else "false"
    if isinstance(candidate, datetime):
        return candidate.date().isoformat()
    if isinstance(candidate, date):
        return candidate.isoformat()
    if isinstance(candidate, Decimal):
        return format(candidate, "f")
    if isinstance(candidate, (int, float)):
        return str(candidate)
    raise _CoercionError(f"Unsupported value of type {type(candidate).__name__}")


def split_tokens(candidate: Any) -> list[str]:
    """
    Split a MultiSelect candidate into tokens.

    Accepts a delimiter-joined string or a list. Tokens are trimmed, empty
    tokens dropped, and duplicates collapsed keeping first occurrence.
    """
    if candidate is None:
        return []
    if isinstance(candidate, (list, tuple, set, frozenset)):
        parts: Iterable[str] = (_to_text(item) or "" for item in candidate)
    else:
        parts = (_to_text(candidate) or "").split(MULTI_SELECT_DELIMITER)

    tokens: list[str] = []
    for part in parts:
        token = part.strip()
        if token and token not in tokens:
            tokens.append(token)
    return tokens


def _is_empty(candidate: Any, field_type: FieldType) -> bool:
    if candidate is None:
        return True
    if field_type.is_multi_valued:
        return not split_tokens(candidate)
    if isinstance(candidate, str):
        return not candidate.strip()
    if isinstance(candidate, (list, tuple, set, frozenset)):
        return not candidate
    return False


# ============================================================================
# Type coercion
# ============================================================================


def _parse_decimal(text: str) -> Decimal:
    """
    Parse a finite number with at most 18 whole and 18 fractional digits.

    The digit limits are checked on the exponent before any expansion, so an
    input like '1e999999999' is rejected without materializing its digits.
    """
    try:
        number = Decimal(text.strip())
    except InvalidOperation:
        raise _CoercionError(f"'{text}' is not a number")
    if not number.is_finite():
        raise _CoercionError(f"'{text}' is not a finite number")
    exponent = int(number.as_tuple().exponent)
    if number.is_zero() and exponent > 0:
        return Decimal(0)
    if number.adjusted() >= _MAX_WHOLE_DIGITS:
        raise _CoercionError(f"'{text}' is out of range")
    if exponent < -_MAX_FRACTION_DIGITS:
        raise _CoercionError(f"'{text}' has too many decimal places")
    return number


def _coerce(field_type: FieldType, candidate: Any) -> tuple[Any, str]:
    """
    Convert a non-empty candidate to (typed value, canonical raw string).

    Raises:
        _CoercionError: If the candidate cannot represent the field type
    """
    if field_type.is_multi_valued:
        tokens = split_tokens(candidate)
        return tokens, MULTI_SELECT_DELIMITER.join(tokens)

    if isinstance(candidate, (list, tuple, set, frozenset)):
        raise _CoercionError(f"{field_type.value} fields take a single value, not a list")

    text = _to_text(candidate)
    if text is None:
        raise _CoercionError(f"{field_type.value} fields need a value")

    if field_type == FieldType.NUMBER:
        number = _parse_decimal(text)
        if number != number.to_integral_value():
            raise _CoercionError(f"'{text}' is not a whole number")
        value = int(number)
        return value, str(value)

    if field_type == FieldType.DECIMAL:
        number = _parse_decimal(text)
        return number, format(number, "f")

    if field_type == FieldType.DATE:
        try:
            parsed = date.fromisoformat(text.strip())
        except ValueError:
            raise _CoercionError(f"'{text}' is not an ISO date (YYYY-MM-DD)")
        return parsed, parsed.isoformat()

    if field_type == FieldType.BOOLEAN:
        token = text.strip().lower()
        if token in _TRUE_TOKENS:
            return True, "true"
        if token in _FALSE_TOKENS:
            return False, "false"
        raise _CoercionError(f"'{text}' is not a boolean (true/false, yes/no, 1/0)")

    if field_type.has_choices:
        token = text.strip()
        return token, token

    return text, text


# ============================================================================
# Public API
# ============================================================================


def validate_value(definition: FieldDefinition, candidate: Any) -> ValidationOutcome:
    """
    Validate a candidate value against a field definition.

    Constraints that do not apply to the definition's field type are ignored
    even when set.

    Args:
        definition: Field definition with its choices loaded
        candidate: String, None, bool, number, date, or list of tokens

    Returns:
        Ok(typed value, canonical raw) or Violation(kind, detail)
    """
    field_type = FieldType(definition.field_type)
    label = definition.display_label or definition.field_name

    try:
        if _is_empty(candidate, field_type):
            if definition.is_required:
                return Violation(ViolationKind.REQUIRED, f"{label} is required")
            return Ok(None, None)
        value, raw = _coerce(field_type, candidate)
    except _CoercionError as e:
        return Violation(ViolationKind.TYPE_MISMATCH, f"{label}: {e}")

    if field_type.has_numeric_range:
        number = Decimal(value)
        if definition.min_value is not None and number < definition.min_value:
            return Violation(
                ViolationKind.RANGE,
                f"{label} must be at least {_format_bound(definition.min_value)}",
            )
        if definition.max_value is not None and number > definition.max_value:
            return Violation(
                ViolationKind.RANGE,
                f"{label} must be at most {_format_bound(definition.max_value)}",
            )

    if field_type.has_length:
        length = len(value)
        if definition.min_length is not None and length < definition.min_length:
            return Violation(
                ViolationKind.LENGTH,
                f"{label} must be at least {definition.min_length} characters",
            )
        if definition.max_length is not None and length > definition.max_length:
            return Violation(
                ViolationKind.LENGTH,
                f"{label} must be at most {definition.max_length} characters",
            )

    if field_type.has_pattern and definition.validation_regex:
        try:
            matched = re.fullmatch(definition.validation_regex, value) is not None
        except re.error as e:
            return Violation(
                ViolationKind.PATTERN,
                f"{label} has an invalid validation pattern: {e}",
            )
        if not matched:
            return Violation(ViolationKind.PATTERN, f"{label} has an invalid format")

    if field_type.has_choices:
        allowed = definition.active_choice_values
        tokens = value if field_type.is_multi_valued else [value]
        invalid = [token for token in tokens if token not in allowed]
        if invalid:
            return Violation(
                ViolationKind.INVALID_CHOICE,
                f"{label}: not an allowed option: {', '.join(invalid)}",
            )

    return Ok(value, raw)


def project_value(definition: FieldDefinition, raw: str | None) -> Any:
    """
    Best-effort typed projection of a stored raw value.

    Never rejects: a value that no longer parses under the current field
    type is returned as the raw string. Constraints are not re-checked.
    """
    if raw is None:
        return None
    try:
        value, _ = _coerce(FieldType(definition.field_type), raw)
    except _CoercionError:
        return raw
    return value


def raise_for_violation(violation: Violation, **details: Any) -> NoReturn:
    """
    Raise the ValueViolationError subclass matching a violation's kind.

    Args:
        violation: Rejected outcome from validate_value()
        **details: Extra context for the error details (field_id, ...)
    """
    raise VIOLATION_ERRORS[violation.kind](violation.detail, details=details)


def _format_bound(bound: Decimal) -> str:
    if bound == bound.to_integral_value():
        return str(int(bound))
    return format(bound.normalize(), "f")
