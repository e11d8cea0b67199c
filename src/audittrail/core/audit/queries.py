"""Read-only statements over the audit trail.

Each function returns a ``Select`` that the caller may refine further
(``.limit()``, extra ``.where()``) before executing it on any session.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, inspect, select

from audittrail.core.audit.capture import format_identity
from audittrail.core.audit.formatting import format_value
from audittrail.core.audit.models import EntityChange


def change_history(entity_name: str, entity_id: Any) -> Select[tuple[EntityChange]]:
    """Changes recorded for one entity, most recent first.

    Args:
        entity_name: Class name of the audited entity (e.g. "Customer")
        entity_id: Primary key of the audited row (a tuple for composite
            keys); non-text keys are formatted the way they were recorded

    Returns:
        Select statement for EntityChange rows
    """
    return (
        select(EntityChange)
        .where(
            EntityChange.entity_name == entity_name,
            EntityChange.entity_id == _key_text(entity_id),
        )
        .order_by(EntityChange.changed_at.desc(), EntityChange.id.desc())
    )


def change_history_for(entity: Any) -> Select[tuple[EntityChange]] | None:
    """Changes recorded for an entity instance.

    Returns None when the instance has no primary key yet (never saved).
    """
    entity_id = format_identity(inspect(entity).identity)
    if entity_id is None:
        return None
    return change_history(type(entity).__name__, entity_id)


def changes_by_transaction(entity_name: str, entity_id: Any) -> Select[tuple[EntityChange]]:
    """Changes for one entity, ordered so that saves stay together.

    Pass the result rows to ``group_by_transaction`` to get one group
    per save.
    """
    return (
        select(EntityChange)
        .where(
            EntityChange.entity_name == entity_name,
            EntityChange.entity_id == _key_text(entity_id),
        )
        .order_by(EntityChange.changed_at, EntityChange.id)
    )


def transaction_changes(transaction_id: UUID) -> Select[tuple[EntityChange]]:
    """Every change written by one save, ordered by entity."""
    return (
        select(EntityChange)
        .where(EntityChange.transaction_id == transaction_id)
        .order_by(EntityChange.entity_name, EntityChange.entity_id, EntityChange.id)
    )


def recent_changes(
    changed_by: UUID | None = None,
    since: datetime | None = None,
) -> Select[tuple[EntityChange]]:
    """Changes across all entities, most recent first.

    Args:
        changed_by: Only changes made by this user
        since: Only changes made at or after this instant

    Returns:
        Select statement for EntityChange rows
    """
    stmt = select(EntityChange)
    if changed_by is not None:
        stmt = stmt.where(EntityChange.changed_by == changed_by)
    if since is not None:
        stmt = stmt.where(EntityChange.changed_at >= since)
    return stmt.order_by(EntityChange.changed_at.desc(), EntityChange.id.desc())


def group_by_transaction(
    changes: Iterable[EntityChange],
) -> dict[UUID, list[EntityChange]]:
    """Group changes by the save that wrote them.

    Groups and the changes within them keep their input order.
    """
    groups: dict[UUID, list[EntityChange]] = {}
    for change in changes:
        groups.setdefault(change.transaction_id, []).append(change)
    return groups


def _key_text(entity_id: Any) -> str | None:
    if isinstance(entity_id, str):
        return entity_id
    if isinstance(entity_id, tuple):
        return format_identity(entity_id)
    return format_value(entity_id)
