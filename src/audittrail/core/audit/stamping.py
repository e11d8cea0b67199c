"""Population of timestamp, actor, soft-delete and tenant columns.

Runs after capture (so stamps never show up as diffs) and before the
business write.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from audittrail.core.audit.capture import context_value, current_actor
from audittrail.core.audit.context import AuditContextProvider
from audittrail.core.constants import DELETION_FLAG
from audittrail.core.database.base import AuditableMixin, TenantMixin, TimestampMixin


def stamp_audit_fields(
    session: Session,
    context: AuditContextProvider | None,
    now: datetime,
) -> None:
    """Stamp audit columns on every new and modified entity in the session.

    New entities get created/updated timestamps, creator and modifier,
    and the context tenant when they have none. Modified entities get
    the updated timestamp and modifier; a soft delete stamps the deleted
    columns and a restore clears them.

    Args:
        session: Session whose unit of work has not been flushed yet
        context: Actor context provider
        now: Timestamp to stamp
    """
    user_id = current_actor(context)
    tenant_id = context_value(context, "tenant_id")

    with session.no_autoflush:
        for obj in list(session.new):
            _stamp_new(obj, now, user_id, tenant_id)

        for obj in list(session.dirty):
            if session.is_modified(obj, include_collections=False):
                _stamp_modified(obj, now, user_id)


def _stamp_new(
    obj: Any,
    now: datetime,
    user_id: Any | None,
    tenant_id: Any | None,
) -> None:
    if isinstance(obj, TimestampMixin):
        obj.created_at = now
        obj.updated_at = now

    if isinstance(obj, AuditableMixin) and user_id is not None:
        obj.created_by = user_id
        obj.modified_by = user_id

    # Never overwrite an explicit tenant
    if isinstance(obj, TenantMixin) and obj.tenant_id is None and tenant_id is not None:
        obj.tenant_id = tenant_id


def _stamp_modified(
    obj: Any,
    now: datetime,
    user_id: Any | None,
) -> None:
    if isinstance(obj, TimestampMixin):
        obj.updated_at = now

    if not isinstance(obj, AuditableMixin):
        return

    if user_id is not None:
        obj.modified_by = user_id

    history = inspect(obj).attrs[DELETION_FLAG].history
    if not history.added:
        return
    was_deleted = bool(history.deleted[0]) if history.deleted else False
    is_deleted = bool(history.added[0])

    if not was_deleted and is_deleted:
        obj.deleted_at = now
        if user_id is not None:
            obj.deleted_by = user_id
    elif was_deleted and not is_deleted:
        obj.deleted_at = None
        obj.deleted_by = None
