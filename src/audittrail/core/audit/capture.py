"""Change capture engine.

Walks the session's pending unit of work and builds in-memory audit
records for every change-auditable entity. Must run before the write:
once the session flushes, attribute history (the original values) is
reset.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import inspect
from sqlalchemy.orm import InstanceState, Session
from sqlalchemy.orm.attributes import History

from audittrail.core.audit.classifier import classify
from audittrail.core.audit.context import AuditContextProvider
from audittrail.core.audit.formatting import format_value
from audittrail.core.audit.metadata import PropertyRegistry, PropertySpec
from audittrail.core.audit.models import (
    AUDIT_ENTITY_TYPES,
    EntityChange,
    EntityChangeOperation,
    EntityChangeProperty,
)
from audittrail.core.constants import COMPOSITE_KEY_SEPARATOR
from audittrail.core.database.base import EntityChangeAuditableMixin, TenantMixin
from audittrail.core.errors import AuditContextUnavailableError


log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class PendingChange:
    """A captured header and the entity it describes.

    The entity reference only lives in memory; it is how the key
    resolver finds database-generated keys after the write. Create
    diffs that are not masked are listed with their property so their
    new values can be re-read once column defaults have been applied.
    """

    header: EntityChange
    entity: Any
    created_properties: tuple[tuple[EntityChangeProperty, PropertySpec], ...] = ()


def current_actor(context: AuditContextProvider | None) -> UUID | None:
    """Read the acting user, degrading to None when it cannot be determined.

    Args:
        context: The session's audit context provider

    Returns:
        User ID, or None for anonymous/system saves
    """
    if context is None:
        return None
    try:
        if not context.is_authenticated:
            return None
        return context.user_id
    except AuditContextUnavailableError as e:
        log.warning("audit_actor_unavailable", error=e.message)
        return None


def context_value(context: AuditContextProvider | None, name: str) -> Any | None:
    """Read a non-actor context attribute, degrading to None."""
    if context is None:
        return None
    try:
        return getattr(context, name)
    except AuditContextUnavailableError as e:
        log.warning("audit_context_unavailable", attribute=name, error=e.message)
        return None


def format_identity(identity: tuple[Any, ...] | None) -> str | None:
    """Render a primary key identity tuple as text.

    Returns None when the key, or any part of it, is not known yet.
    """
    if not identity or any(part is None for part in identity):
        return None
    return COMPOSITE_KEY_SEPARATOR.join(
        format_value(part) or "" for part in identity
    )


def capture_changes(
    session: Session,
    transaction_id: UUID,
    context: AuditContextProvider | None,
    now: datetime,
    registry: PropertyRegistry,
    hidden_value: str,
) -> list[PendingChange]:
    """Capture audit records for every pending change-auditable entity.

    Args:
        session: Session whose unit of work has not been flushed yet
        transaction_id: Identifier shared by all headers of this save
        context: Actor context provider
        now: Timestamp recorded on every header
        registry: Property metadata registry
        hidden_value: Redaction token for masked properties

    Returns:
        One PendingChange per audited entity, in no particular order
    """
    changed_by = current_actor(context)
    correlation_id = context_value(context, "correlation_id")
    context_tenant = context_value(context, "tenant_id")

    pending: list[PendingChange] = []
    with session.no_autoflush:
        for obj, operation in _tracked_entities(session):
            state = inspect(obj)
            header = EntityChange(
                transaction_id=transaction_id,
                correlation_id=str(correlation_id) if correlation_id else None,
                table_name=_table_name(state),
                entity_name=type(obj).__name__,
                operation=operation,
                entity_id=(
                    None
                    if operation is EntityChangeOperation.CREATE
                    else format_identity(state.identity)
                ),
                changed_at=now,
                changed_by=changed_by,
                description=obj.audit_description,
                parent_entity_name=obj.audit_parent_entity_name,
                parent_entity_id=format_value(obj.audit_parent_entity_id),
            )

            _warn_on_tenant_mismatch(obj, context_tenant)

            specs = registry.resolve(type(obj))
            diffs = _capture_properties(state, operation, specs, hidden_value)
            flag_spec = _implicit_deletion_flag(state, specs, registry.deletion_flag)
            if flag_spec is not None and operation is EntityChangeOperation.UPDATE:
                diffs.extend(
                    _capture_properties(state, operation, (flag_spec,), hidden_value)
                )

            header, diffs = classify(header, diffs, registry.deletion_flag)

            if flag_spec is not None:
                # Only considered for classification; never recorded
                diffs = [d for d in diffs if d.property_name != flag_spec.name]

            header.properties = diffs
            pending.append(
                PendingChange(
                    header=header,
                    entity=obj,
                    created_properties=_created_properties(operation, diffs, specs),
                )
            )

    if pending:
        log.debug(
            "audit_changes_captured",
            transaction_id=str(transaction_id),
            count=len(pending),
        )
    return pending


def _tracked_entities(session: Session) -> list[tuple[Any, EntityChangeOperation]]:
    """List auditable entities in the unit of work with their operation.

    Audit records themselves are excluded so that persisting them can
    never trigger another round of capture.
    """

    def auditable(obj: Any) -> bool:
        return isinstance(obj, EntityChangeAuditableMixin) and not isinstance(
            obj, AUDIT_ENTITY_TYPES
        )

    # Materialize before iterating: capture must not observe later mutations
    entries: list[tuple[Any, EntityChangeOperation]] = []
    entries.extend(
        (obj, EntityChangeOperation.CREATE) for obj in list(session.new) if auditable(obj)
    )
    entries.extend(
        (obj, EntityChangeOperation.UPDATE)
        for obj in list(session.dirty)
        if auditable(obj) and session.is_modified(obj, include_collections=False)
    )
    entries.extend(
        (obj, EntityChangeOperation.DELETE)
        for obj in list(session.deleted)
        if auditable(obj)
    )
    return entries


def _capture_properties(
    state: InstanceState[Any],
    operation: EntityChangeOperation,
    specs: tuple[PropertySpec, ...],
    hidden_value: str,
) -> list[EntityChangeProperty]:
    diffs: list[EntityChangeProperty] = []
    for spec in specs:
        history = state.attrs[spec.name].history
        original: Any
        new: Any

        if operation is EntityChangeOperation.CREATE:
            original, new = None, state.attrs[spec.name].value
        elif operation is EntityChangeOperation.DELETE:
            original, new = _original_value(state, spec.name, history), None
        else:
            if not history.has_changes():
                continue
            original = history.deleted[0] if history.deleted else None
            new = history.added[0] if history.added else None
            if original == new:
                continue

        if spec.values_hidden:
            original_text = new_text = hidden_value
        else:
            original_text = (
                None
                if operation is EntityChangeOperation.CREATE
                else format_value(original, spec.display_format)
            )
            new_text = (
                None
                if operation is EntityChangeOperation.DELETE
                else format_value(new, spec.display_format)
            )

        diffs.append(
            EntityChangeProperty(
                property_name=spec.name,
                column_name=spec.column_name,
                original_value=original_text,
                new_value=new_text,
                values_hidden=spec.values_hidden,
            )
        )
    return diffs


def _created_properties(
    operation: EntityChangeOperation,
    diffs: list[EntityChangeProperty],
    specs: tuple[PropertySpec, ...],
) -> tuple[tuple[EntityChangeProperty, PropertySpec], ...]:
    if operation is not EntityChangeOperation.CREATE:
        return ()
    by_name = {spec.name: spec for spec in specs}
    return tuple(
        (diff, by_name[diff.property_name]) for diff in diffs if not diff.values_hidden
    )


def _original_value(state: InstanceState[Any], key: str, history: History) -> Any:
    """Value of an attribute as it was loaded from the database."""
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    # Expired attribute: load it (autoflush is already disabled)
    return getattr(state.obj(), key)


def _implicit_deletion_flag(
    state: InstanceState[Any],
    specs: tuple[PropertySpec, ...],
    deletion_flag: str,
) -> PropertySpec | None:
    """Spec for the deletion flag when the entity does not opt it in."""
    if any(spec.name == deletion_flag for spec in specs):
        return None
    prop = state.mapper.column_attrs.get(deletion_flag)
    if prop is None:
        return None
    return PropertySpec(name=deletion_flag, column_name=prop.columns[0].name)


def _table_name(state: InstanceState[Any]) -> str:
    table = state.mapper.local_table
    return getattr(table, "name", None) or state.class_.__name__


def _warn_on_tenant_mismatch(obj: Any, context_tenant: Any | None) -> None:
    """Log, but never reconcile, an entity tenant that differs from the context."""
    if not isinstance(obj, TenantMixin) or context_tenant is None:
        return
    entity_tenant = obj.tenant_id
    if entity_tenant is not None and entity_tenant != context_tenant:
        log.warning(
            "audit_tenant_mismatch",
            entity=type(obj).__name__,
            entity_tenant_id=str(entity_tenant),
            context_tenant_id=str(context_tenant),
        )
