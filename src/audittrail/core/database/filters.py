"""Default row filters for soft-deleted and tenant-mismatched rows.

Two named filters are applied to every ORM SELECT issued by a
configured session class:

- ``RowFilter.SOFT_DELETE`` hides rows of ``AuditableMixin`` types whose
  deletion flag is set.
- ``RowFilter.TENANT`` hides rows of ``TenantMixin`` types that belong
  to another tenant than the current one.

Both are on by default and can be switched off independently, per
session or per statement:

    disable_filter(session, RowFilter.SOFT_DELETE)

    with filters_disabled(session, RowFilter.TENANT):
        ...

    session.execute(
        select(Customer).execution_options(disabled_filters={RowFilter.TENANT})
    )
"""

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import ORMExecuteState, Session, sessionmaker, with_loader_criteria

from audittrail.core.constants import SESSION_FILTERS_INFO_KEY
from audittrail.core.database.base import AuditableMixin, TenantMixin


log = structlog.get_logger()

TenantAccessor = Callable[[], UUID | None]
FilterTarget = type[Session] | type[AsyncSession] | sessionmaker[Any]


class RowFilter(str, Enum):
    """Names of the default row filters."""

    SOFT_DELETE = "soft_delete"
    TENANT = "tenant"


class RowFilterRegistry:
    """Listeners installed per session class or factory.

    Uses a class attribute to manage module-level state without
    global statements.
    """

    listeners: dict[Any, Callable[[ORMExecuteState], None]] = {}


def configure_row_filters(target: FilterTarget, tenant_accessor: TenantAccessor) -> None:
    """Register the soft-delete and tenant filters for a session class.

    Run once per session class (or sessionmaker) at startup; calling it
    again replaces the previous registration.

    Args:
        target: Session subclass, AsyncSession subclass or sessionmaker
        tenant_accessor: Returns the current tenant ID (None when unknown)
    """
    target = _event_target(target)
    remove_row_filters(target)

    def apply_row_filters(execute_state: ORMExecuteState) -> None:
        if (
            not execute_state.is_select
            or execute_state.is_column_load
            or execute_state.is_relationship_load
        ):
            return

        disabled = _disabled_for(execute_state)
        options = []

        if RowFilter.SOFT_DELETE not in disabled:
            options.append(
                with_loader_criteria(
                    AuditableMixin,
                    lambda cls: ~cls.is_deleted,
                    include_aliases=True,
                )
            )

        if RowFilter.TENANT not in disabled:
            tenant_id = tenant_accessor()
            if tenant_id is None:
                # No current tenant: fail closed
                criteria = with_loader_criteria(
                    TenantMixin,
                    lambda cls: cls.tenant_id.is_(None),
                    include_aliases=True,
                )
            else:
                criteria = with_loader_criteria(
                    TenantMixin,
                    lambda cls: cls.tenant_id == tenant_id,
                    include_aliases=True,
                )
            options.append(criteria)

        if options:
            execute_state.statement = execute_state.statement.options(*options)

    event.listen(target, "do_orm_execute", apply_row_filters)
    RowFilterRegistry.listeners[target] = apply_row_filters
    log.info("row_filters_configured", target=getattr(target, "__name__", repr(target)))


def remove_row_filters(target: FilterTarget) -> None:
    """Remove filters previously registered with ``configure_row_filters``."""
    target = _event_target(target)
    listener = RowFilterRegistry.listeners.pop(target, None)
    if listener is not None:
        event.remove(target, "do_orm_execute", listener)


def disable_filter(session: Session | AsyncSession, row_filter: RowFilter) -> None:
    """Switch a row filter off for the rest of the session's life."""
    _session_disabled(session).add(RowFilter(row_filter))


def enable_filter(session: Session | AsyncSession, row_filter: RowFilter) -> None:
    """Switch a row filter back on for the session."""
    _session_disabled(session).discard(RowFilter(row_filter))


def is_filter_enabled(session: Session | AsyncSession, row_filter: RowFilter) -> bool:
    """Check whether a row filter is active for the session."""
    return RowFilter(row_filter) not in _session_disabled(session)


@contextmanager
def filters_disabled(
    session: Session | AsyncSession,
    *row_filters: RowFilter,
) -> Iterator[None]:
    """Temporarily switch off the given row filters.

    Filters not named keep their current state.

    Args:
        session: The session to affect
        *row_filters: Filters to switch off inside the block
    """
    disabled = _session_disabled(session)
    previous = set(disabled)
    disabled.update(RowFilter(f) for f in row_filters)
    try:
        yield
    finally:
        disabled.clear()
        disabled.update(previous)


def _session_disabled(session: Session | AsyncSession) -> set[RowFilter]:
    disabled: set[RowFilter] = session.info.setdefault(SESSION_FILTERS_INFO_KEY, set())
    return disabled


def _disabled_for(execute_state: ORMExecuteState) -> set[RowFilter]:
    disabled = set(execute_state.session.info.get(SESSION_FILTERS_INFO_KEY, ()))
    per_statement: Iterable[Any] = execute_state.execution_options.get(
        "disabled_filters", ()
    )
    disabled.update(RowFilter(f) for f in per_statement)
    return disabled


def _event_target(target: FilterTarget) -> Any:
    """Session events must be attached to the synchronous session class."""
    if isinstance(target, type) and issubclass(target, AsyncSession):
        return target.sync_session_class
    return target
