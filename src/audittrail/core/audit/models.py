"""Audit trail database models.

Stores one ``EntityChange`` per audited entity per save, with one
``EntityChangeProperty`` per changed, tracked column.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from audittrail.core.constants import (
    MAX_COLUMN_NAME_LENGTH,
    MAX_CORRELATION_ID_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_ENTITY_ID_LENGTH,
    MAX_ENTITY_NAME_LENGTH,
    MAX_PROPERTY_NAME_LENGTH,
    MAX_TABLE_NAME_LENGTH,
)
from audittrail.core.database.base import Base, IntIdMixin


class EntityChangeOperation(str, Enum):
    """Kind of change recorded for an entity."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EntityChange(Base, IntIdMixin):
    """Audit header describing one entity's change in one save.

    Attributes:
        transaction_id: Shared by every header written by one save call
        correlation_id: Caller-supplied id that may span saves (request id)
        entity_name: Class name of the audited entity
        table_name: Table the audited entity is mapped to
        entity_id: Primary key of the audited row, as text
        operation: Create, update or delete (soft deletes included)
        changed_at: When the save happened (UTC)
        changed_by: The acting user, if one was known
        description: Optional description supplied by the entity
        parent_entity_name: Optional parent entity for grouping
        parent_entity_id: Optional parent key for grouping
        properties: Per-column before/after values
    """

    __tablename__ = "entity_changes"
    __table_args__ = (
        Index("ix_entity_changes_transaction_id", "transaction_id"),
        Index("ix_entity_changes_entity_name_entity_id", "entity_name", "entity_id"),
        Index("ix_entity_changes_changed_at", "changed_at"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        nullable=False,
    )
    correlation_id: Mapped[str | None] = mapped_column(
        String(MAX_CORRELATION_ID_LENGTH),
        nullable=True,
    )

    # What changed
    table_name: Mapped[str] = mapped_column(
        String(MAX_TABLE_NAME_LENGTH),
        nullable=False,
    )
    entity_name: Mapped[str] = mapped_column(
        String(MAX_ENTITY_NAME_LENGTH),
        nullable=False,
    )
    entity_id: Mapped[str | None] = mapped_column(
        String(MAX_ENTITY_ID_LENGTH),
        nullable=True,
    )
    operation: Mapped[EntityChangeOperation] = mapped_column(
        SAEnum(
            EntityChangeOperation,
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
    )

    # Who and when
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    changed_by: Mapped[UUID | None] = mapped_column(
        nullable=True,
        index=True,
    )

    # Display grouping
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )
    parent_entity_name: Mapped[str | None] = mapped_column(
        String(MAX_ENTITY_NAME_LENGTH),
        nullable=True,
    )
    parent_entity_id: Mapped[str | None] = mapped_column(
        String(MAX_ENTITY_ID_LENGTH),
        nullable=True,
    )

    properties: Mapped[list["EntityChangeProperty"]] = relationship(
        back_populates="entity_change",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="EntityChangeProperty.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<EntityChange(id={self.id}, operation={self.operation}, "
            f"entity_name={self.entity_name}, entity_id={self.entity_id})>"
        )


class EntityChangeProperty(Base, IntIdMixin):
    """Before/after values of one tracked column within an EntityChange.

    Attributes:
        entity_change_id: The owning header
        property_name: Mapped attribute name
        column_name: Database column name
        original_value: Value before the save, as text
        new_value: Value after the save, as text
        values_hidden: True when both values are the redaction token
    """

    __tablename__ = "entity_change_properties"

    entity_change_id: Mapped[int] = mapped_column(
        ForeignKey("entity_changes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_name: Mapped[str] = mapped_column(
        String(MAX_PROPERTY_NAME_LENGTH),
        nullable=False,
    )
    column_name: Mapped[str | None] = mapped_column(
        String(MAX_COLUMN_NAME_LENGTH),
        nullable=True,
    )
    original_value: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    new_value: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    values_hidden: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    entity_change: Mapped["EntityChange"] = relationship(
        back_populates="properties",
    )

    def __repr__(self) -> str:
        return (
            f"<EntityChangeProperty(property_name={self.property_name}, "
            f"values_hidden={self.values_hidden})>"
        )


# Types that are never subject to change capture
AUDIT_ENTITY_TYPES: tuple[type[Base], ...] = (EntityChange, EntityChangeProperty)
