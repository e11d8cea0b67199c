"""Soft delete and restore helpers.

Both change the instance only. The audited save stamps
``deleted_at``/``deleted_by`` and the modifier columns again, and
records a soft delete as a DELETE change and a restore as an UPDATE.

Example:
    soft_delete(customer)
    session.save_changes()

    with filters_disabled(session, RowFilter.SOFT_DELETE):
        customer = session.get(Customer, customer_id)
    restore(customer, session.audit_context)
    session.save_changes()
"""

from datetime import UTC, datetime

import structlog

from audittrail.core.audit.capture import current_actor
from audittrail.core.audit.context import AuditContextProvider
from audittrail.core.database.base import AuditableMixin
from audittrail.core.errors import EntityStateError


log = structlog.get_logger()


def soft_delete(entity: AuditableMixin) -> None:
    """Mark an entity as deleted without removing its row.

    Args:
        entity: A live auditable entity

    Raises:
        EntityStateError: If the entity is already soft-deleted
    """
    _require_auditable(entity)
    if entity.is_deleted:
        raise EntityStateError(
            f"Cannot soft-delete {type(entity).__name__}: entity is already soft-deleted",
            details={"entity": type(entity).__name__},
        )
    entity.is_deleted = True


def restore(entity: AuditableMixin, context: AuditContextProvider | None = None) -> None:
    """Bring a soft-deleted entity back.

    Clears the deletion flag and the deletion metadata and stamps the
    updated timestamp. When a context with an authenticated actor is
    given, that actor becomes the modifier right away; otherwise the
    save stamps it.

    Args:
        entity: A soft-deleted auditable entity
        context: Optional actor context

    Raises:
        EntityStateError: If the entity is not soft-deleted
    """
    _require_auditable(entity)
    if not entity.is_deleted:
        raise EntityStateError(
            f"Cannot restore {type(entity).__name__}: entity is not soft-deleted",
            details={"entity": type(entity).__name__},
        )

    entity.is_deleted = False
    entity.deleted_at = None
    entity.deleted_by = None
    entity.updated_at = datetime.now(UTC)

    user_id = current_actor(context)
    if user_id is not None:
        entity.modified_by = user_id

    log.debug("entity_restored", entity=type(entity).__name__, user_id=str(user_id))


def _require_auditable(entity: object) -> None:
    if not isinstance(entity, AuditableMixin):
        raise TypeError(f"{type(entity).__name__} does not support soft delete")
