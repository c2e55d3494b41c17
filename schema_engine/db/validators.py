"""Reusable SQLAlchemy validators and serialization helpers for the schema engine."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from schema_engine.domain.enums import MULTI_SELECT_DELIMITER

JsonType = dict[str, "JsonType"] | list["JsonType"] | str | int | float | bool | None


def validate_choice_token(_key: str, value: str) -> str:
    """Validate a choice value before it is stored.

    This validator can be used with SQLAlchemy's @validates decorator.
    Choice values are persisted tokens, so they must be non-empty and must
    not contain the MultiSelect delimiter.

    Args:
        _key: The field name being validated (unused, required by SQLAlchemy)
        value: Candidate choice value

    Returns:
        The value with surrounding whitespace removed

    Raises:
        ValueError: If the value is empty or contains the delimiter
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected str, got {type(value).__name__}")

    token = value.strip()
    if not token:
        raise ValueError("Choice value cannot be empty")
    if MULTI_SELECT_DELIMITER in token:
        raise ValueError(f"Choice value cannot contain '{MULTI_SELECT_DELIMITER}': {value!r}")
    return token


def to_jsonable(value: Any) -> JsonType:
    """Convert complex types to JSON-serializable format.

    Handles datetime, date, Decimal, UUID, Enum, dict, and list types.
    Whole-number decimals are emitted as int so exported documents read
    naturally ("minValue": 0 rather than "0.0000").

    Args:
        value: The value to convert

    Returns:
        JSON-serializable value
    """
    if value is None:
        return None

    if isinstance(value, bool):
        return value

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, (str, int, float)):
        return value

    if isinstance(value, (datetime, date)):
        return value.isoformat()

    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value.normalize())

    if isinstance(value, uuid.UUID):
        return str(value)

    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}

    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]

    return str(value)
