"""Pydantic schemas for custom field value API operations."""

from typing import Any

from pydantic import BaseModel, Field


class SetValueRequest(BaseModel):
    """One candidate value; null or empty clears the stored value."""

    value: Any = Field(default=None, examples=["alice"])


class SetValuesRequest(BaseModel):
    """Candidate values for several fields of one instance, saved all-or-nothing."""

    values: dict[int, Any] = Field(
        ...,
        description="Candidate value per field definition id",
        examples=[{"12": "alice", "13": "2026-03-01"}],
    )


class InstanceValuesResponse(BaseModel):
    """Stored custom values of one entity instance, keyed by field name."""

    entity_type: str
    entity_instance_id: str
    values: dict[str, Any]


class DeletedValuesResponse(BaseModel):
    """Number of stored values removed."""

    deleted: int
