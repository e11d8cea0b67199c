"""Database layer - base models, mixins, row filters and sessions."""

from audittrail.core.database.base import (
    AuditableMixin,
    Base,
    EntityChangeAuditableMixin,
    IntIdMixin,
    TenantMixin,
    TimestampMixin,
    UUIDMixin,
)
from audittrail.core.database.filters import (
    RowFilter,
    configure_row_filters,
    disable_filter,
    enable_filter,
    filters_disabled,
    is_filter_enabled,
    remove_row_filters,
)


__all__ = [
    "AuditableMixin",
    "Base",
    "EntityChangeAuditableMixin",
    "IntIdMixin",
    "RowFilter",
    "TenantMixin",
    "TimestampMixin",
    "UUIDMixin",
    "configure_row_filters",
    "disable_filter",
    "enable_filter",
    "filters_disabled",
    "is_filter_enabled",
    "remove_row_filters",
]
