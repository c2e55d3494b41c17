"""
SQLAlchemy 2.x ORM models for the custom field schema engine.

Definitions, choices and values follow the EAV pattern: custom attributes are
rows keyed by (entity type, entity instance id, field definition id) rather
than columns on the fixed business tables.
Models use the Mapped[] type annotation syntax and mapped_column.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from schema_engine.db.validators import validate_choice_token
from schema_engine.domain.enums import FieldType


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class EntityType(Base):
    """
    Fixed business entity that may carry custom fields (Customer, Job, ...).

    Rows are seeded from configuration on startup and replace hard-coded
    entity type constants.
    """

    __tablename__ = "entity_types"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<EntityType(name={self.name}, enabled={self.is_enabled})>"


class FieldDefinition(Base):
    """
    One extra attribute attachable to instances of a fixed entity type.

    Constraint columns (regex, min/max value, min/max length) are kept even
    when the current field_type does not use them; validation ignores the
    ones that do not apply.
    """

    __tablename__ = "field_definitions"
    __table_args__ = (
        UniqueConstraint("entity_type", "field_name", name="uq_field_definitions_entity_name"),
        CheckConstraint("length(field_name) > 0", name="chk_field_definitions_field_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("entity_types.name", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    field_name: Mapped[str] = mapped_column(String(100), nullable=False)
    display_label: Mapped[str] = mapped_column(String(200), nullable=False)
    field_type: Mapped[FieldType] = mapped_column(
        Enum(
            FieldType,
            name="field_type",
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
    )
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_read_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    default_value: Mapped[str | None] = mapped_column(String(500), nullable=True)
    placeholder: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    group_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    validation_regex: Mapped[str | None] = mapped_column(String(500), nullable=True)
    min_value: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    max_value: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    min_length: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_length: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False, default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    # Choices are always loaded with the definition so validation never
    # triggers lazy IO on an async session.
    choices: Mapped[list[FieldChoice]] = relationship(
        "FieldChoice",
        back_populates="field",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by=lambda: (FieldChoice.sort_order, FieldChoice.id),
    )

    @property
    def active_choice_values(self) -> set[str]:
        return {c.value for c in self.choices if c.is_active}

    def __repr__(self) -> str:
        return (
            f"<FieldDefinition(id={self.id}, entity_type={self.entity_type}, "
            f"field_name={self.field_name}, field_type={self.field_type})>"
        )


class FieldChoice(Base):
    """
    One allowed option for a Dropdown, MultiSelect or Radio field.

    `value` is the persisted token; `display_text` is what the UI shows.
    """

    __tablename__ = "field_choices"
    __table_args__ = (
        UniqueConstraint("field_definition_id", "value", name="uq_field_choices_field_value"),
        CheckConstraint("length(value) > 0", name="chk_field_choices_value"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    field_definition_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("field_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    value: Mapped[str] = mapped_column(String(100), nullable=False)
    display_text: Mapped[str] = mapped_column(String(200), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)

    # Relationships
    field: Mapped[FieldDefinition] = relationship("FieldDefinition", back_populates="choices")

    @validates("value")
    def _validate_value(self, key: str, value: str) -> str:
        return validate_choice_token(key, value)

    def __repr__(self) -> str:
        return (
            f"<FieldChoice(id={self.id}, field_definition_id={self.field_definition_id}, "
            f"value={self.value})>"
        )


class FieldValue(Base):
    """
    One stored custom attribute value for one entity instance.

    raw_value is the canonical string form produced by validation at write
    time. Reads project it back to a typed value without re-validating.
    """

    __tablename__ = "field_values"
    __table_args__ = (
        UniqueConstraint(
            "entity_type",
            "entity_instance_id",
            "field_definition_id",
            name="uq_field_values_instance_field",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_instance_id: Mapped[str] = mapped_column(String(100), nullable=False)
    field_definition_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("field_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    raw_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<FieldValue(entity_type={self.entity_type}, "
            f"entity_instance_id={self.entity_instance_id}, "
            f"field_definition_id={self.field_definition_id})>"
        )
