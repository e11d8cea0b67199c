"""SQLAlchemy declarative base and capability mixins.

An entity opts into a category of automatic behaviour by inheriting
the matching mixin:

- ``TimestampMixin``: created/updated instants
- ``AuditableMixin``: actor columns and the soft-delete flag
- ``EntityChangeAuditableMixin``: property-level change capture
- ``TenantMixin``: tenant identifier and tenant row filtering
"""

from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class IntIdMixin:
    """Mixin that adds a database-generated integer primary key."""

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
    )


class UUIDMixin:
    """Mixin that adds a UUID primary key."""

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
        index=True,
    )


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps.

    Both are stamped by the audited save pipeline; the server defaults
    cover rows written through a plain session.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class AuditableMixin(TimestampMixin):
    """Mixin that adds actor tracking and soft delete.

    ``is_deleted`` is the dedicated deletion flag: flipping it to True
    is recorded as a delete, and the default row filter hides the row.
    """

    created_by: Mapped[UUID | None] = mapped_column(
        nullable=True,
    )
    modified_by: Mapped[UUID | None] = mapped_column(
        nullable=True,
    )
    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    deleted_by: Mapped[UUID | None] = mapped_column(
        nullable=True,
    )


class EntityChangeAuditableMixin(AuditableMixin):
    """Marker mixin to enable property-level change capture.

    Models that inherit from this mixin get an ``EntityChange`` record
    for every save that creates, updates or deletes them. Only columns
    marked with ``auditable()`` are diffed.

    Override the ``audit_*`` properties to group changes under a parent
    entity or to attach a human-readable description.

    Example:
        class Invoice(Base, IntIdMixin, EntityChangeAuditableMixin):
            __tablename__ = "invoices"
            total: Mapped[Decimal] = mapped_column(info=auditable())

            @property
            def audit_parent_entity_name(self) -> str | None:
                return "Customer"

            @property
            def audit_parent_entity_id(self) -> str | None:
                return str(self.customer_id)
    """

    # Marker attribute checked by the capture engine
    __audit__: ClassVar[bool] = True

    @property
    def audit_parent_entity_name(self) -> str | None:
        return None

    @property
    def audit_parent_entity_id(self) -> Any | None:
        return None

    @property
    def audit_description(self) -> str | None:
        return None


class TenantMixin:
    """Mixin that adds tenant_id for multi-tenancy support.

    All tenant-scoped models should inherit from this mixin. The
    tenant row filter restricts queries to the current tenant.
    """

    tenant_id: Mapped[UUID] = mapped_column(
        index=True,
        nullable=False,
    )
