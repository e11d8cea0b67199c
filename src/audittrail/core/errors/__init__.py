"""Error handling module for the audit engine."""

from audittrail.core.errors.exceptions import (
    AuditCommitError,
    AuditContextUnavailableError,
    AuditException,
    EntityStateError,
    KeyResolutionError,
    MetadataError,
)


__all__ = [
    "AuditCommitError",
    "AuditContextUnavailableError",
    "AuditException",
    "EntityStateError",
    "KeyResolutionError",
    "MetadataError",
]
