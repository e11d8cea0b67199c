"""Exceptions raised by the audit engine.

Business-write failures are never wrapped: they surface as the
underlying SQLAlchemy errors. Everything below is audit-specific so that
callers can tell "your save failed" apart from "your data is safe,
your audit trail is not".
"""

from typing import Any


class AuditException(Exception):
    """Base exception for all audit engine errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional error details
    """

    message: str = "An unexpected audit error occurred"
    error_code: str = "audit_error"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class MetadataError(AuditException):
    """Raised when entity audit configuration is invalid.

    Detected while validating the model at startup; it is fatal and
    should prevent the application from starting.

    Example:
        raise MetadataError(
            "Customer has no auditable properties",
            details={"entity": "Customer"},
        )
    """

    message = "Invalid audit metadata"
    error_code = "audit_metadata_error"

    def __init__(
        self,
        message: str | None = None,
        entity: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if entity:
            details["entity"] = entity
        super().__init__(message=message, details=details, **kwargs)


class AuditContextUnavailableError(AuditException):
    """Raised by a context provider that cannot determine the current actor.

    Capture treats this as "no actor" and carries on.
    """

    message = "Audit context is not available"
    error_code = "audit_context_unavailable"


class KeyResolutionError(AuditException):
    """Raised when an audited entity has no primary key after the business write.

    This is an integrity fault of the audit trail only; the business
    write has already been committed and is not rolled back.

    Example:
        raise KeyResolutionError(
            "Primary key unavailable", details={"entity": "Invoice"}
        )
    """

    message = "Owning entity key could not be resolved"
    error_code = "audit_key_resolution_failed"


class AuditCommitError(AuditException):
    """Raised when the second (audit) write fails.

    The original driver error is available as ``__cause__``.
    """

    message = "Audit records could not be persisted"
    error_code = "audit_commit_failed"


class EntityStateError(AuditException):
    """Raised when a soft delete or restore is requested in the wrong state.

    Example:
        raise EntityStateError("Customer is not soft-deleted")
    """

    message = "Invalid entity state for this operation"
    error_code = "invalid_entity_state"
