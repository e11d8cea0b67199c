"""Actor context for audited saves.

The save pipeline never reaches for global state directly: an
``AuditContextProvider`` is handed to the session. Two providers ship
with the package:

- ``ContextVarAuditContext`` reads the request-scoped context that
  ``AuditContextMiddleware`` (or any caller) sets with
  ``set_audit_context``.
- ``StaticAuditContext`` holds fixed values, for jobs, scripts and tests.
"""

from contextvars import ContextVar
from typing import Any, Protocol, runtime_checkable
from uuid import UUID


# ContextVar for async-safe audit context storage
# Each async task/request gets its own isolated context
_audit_context: ContextVar[dict[str, Any] | None] = ContextVar(
    "audit_context", default=None
)


@runtime_checkable
class AuditContextProvider(Protocol):
    """Source of the current actor, tenant and correlation id.

    Reads must be synchronous and free of I/O. A provider that cannot
    determine the actor may raise ``AuditContextUnavailableError``.
    """

    @property
    def user_id(self) -> UUID | None: ...

    @property
    def tenant_id(self) -> UUID | None: ...

    @property
    def correlation_id(self) -> str | None: ...

    @property
    def is_authenticated(self) -> bool: ...


class StaticAuditContext:
    """Audit context with fixed values."""

    def __init__(
        self,
        user_id: UUID | None = None,
        tenant_id: UUID | None = None,
        correlation_id: str | None = None,
    ) -> None:
        """Initialize audit context.

        Args:
            user_id: Acting user ID (None for system actions)
            tenant_id: Current tenant ID
            correlation_id: Request or job correlation ID
        """
        self.user_id = user_id
        self.tenant_id = tenant_id
        self.correlation_id = correlation_id

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def __repr__(self) -> str:
        return (
            f"<StaticAuditContext(user_id={self.user_id}, "
            f"tenant_id={self.tenant_id}, correlation_id={self.correlation_id})>"
        )


class ContextVarAuditContext:
    """Audit context backed by the request-scoped ContextVar.

    Every attribute is None while no context is set.
    """

    @property
    def user_id(self) -> UUID | None:
        return get_audit_context().get("user_id")

    @property
    def tenant_id(self) -> UUID | None:
        return get_audit_context().get("tenant_id")

    @property
    def correlation_id(self) -> str | None:
        return get_audit_context().get("correlation_id")

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


def set_audit_context(
    user_id: UUID | None = None,
    tenant_id: UUID | None = None,
    correlation_id: str | None = None,
) -> None:
    """Set the audit context for the current request or task.

    Creates a new dict to ensure isolation between concurrent requests.

    Args:
        user_id: Current user ID
        tenant_id: Current tenant ID
        correlation_id: Request correlation ID
    """
    _audit_context.set(
        {
            "user_id": user_id,
            "tenant_id": tenant_id,
            "correlation_id": correlation_id,
        }
    )


def clear_audit_context() -> None:
    """Clear the audit context after the request completes."""
    _audit_context.set(None)


def get_audit_context() -> dict[str, Any]:
    """Get the current audit context.

    Returns:
        Shallow copy of current audit context dict, or empty dict if not set
    """
    ctx = _audit_context.get()
    if ctx is None:
        return {}
    return ctx.copy()
