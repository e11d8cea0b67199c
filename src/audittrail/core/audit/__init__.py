"""Property-level change capture and the audited save pipeline."""

from audittrail.core.audit.context import (
    AuditContextProvider,
    ContextVarAuditContext,
    StaticAuditContext,
    clear_audit_context,
    get_audit_context,
    set_audit_context,
)
from audittrail.core.audit.markers import auditable, ignore_audit
from audittrail.core.audit.metadata import PropertyRegistry, PropertySpec, property_registry
from audittrail.core.audit.models import (
    EntityChange,
    EntityChangeOperation,
    EntityChangeProperty,
)
from audittrail.core.audit.queries import (
    change_history,
    change_history_for,
    changes_by_transaction,
    group_by_transaction,
    recent_changes,
    transaction_changes,
)
from audittrail.core.audit.repos import EntityChangeRepository
from audittrail.core.audit.session import AsyncAuditedSession, AuditedSession, SaveResult
from audittrail.core.audit.soft_delete import restore, soft_delete


__all__ = [
    "AsyncAuditedSession",
    "AuditContextProvider",
    "AuditedSession",
    "ContextVarAuditContext",
    "EntityChange",
    "EntityChangeOperation",
    "EntityChangeProperty",
    "EntityChangeRepository",
    "PropertyRegistry",
    "PropertySpec",
    "SaveResult",
    "StaticAuditContext",
    "auditable",
    "change_history",
    "change_history_for",
    "changes_by_transaction",
    "clear_audit_context",
    "get_audit_context",
    "group_by_transaction",
    "ignore_audit",
    "property_registry",
    "recent_changes",
    "restore",
    "set_audit_context",
    "soft_delete",
    "transaction_changes",
]
