"""Audited save pipeline.

``save_changes()`` runs the two-phase save:

1. capture audit records while original values are still readable
2. stamp timestamp/actor/soft-delete/tenant columns
3. commit the business write (generates primary keys)
4. back-fill generated keys and column defaults into the captured creates
5. commit the audit records as a second, separate write

Steps 4 and 5 can fail without touching the committed business data.
Such failures are raised as audit exceptions in strict mode and
otherwise logged and reported on the returned ``SaveResult``.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from audittrail.config import settings
from audittrail.core.audit.capture import capture_changes
from audittrail.core.audit.committer import commit_changes
from audittrail.core.audit.context import AuditContextProvider
from audittrail.core.audit.keys import resolve_created_values, resolve_keys
from audittrail.core.audit.metadata import PropertyRegistry, property_registry
from audittrail.core.audit.stamping import stamp_audit_fields
from audittrail.core.errors import AuditCommitError, AuditException, KeyResolutionError


log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class SaveResult:
    """Outcome of an audited save.

    Attributes:
        rows: Number of business entities written
        transaction_id: Identifier shared by this save's audit headers
        audit_records: Number of audit headers persisted
        audit_error: Audit failure swallowed in non-strict mode
    """

    rows: int
    transaction_id: UUID
    audit_records: int = 0
    audit_error: AuditException | None = None

    @property
    def audited(self) -> bool:
        """Whether the audit trail for this save is complete."""
        return self.audit_error is None


class AuditedSession(Session):
    """Session with an audited ``save_changes()``.

    Plain ``commit()`` is left untouched and records nothing; it is what
    the audit write itself uses.

    Usage:
        factory = sessionmaker(
            bind=engine,
            class_=AuditedSession,
            audit_context=StaticAuditContext(user_id=user.id),
        )
        with factory() as session:
            session.add(customer)
            result = session.save_changes()
    """

    def __init__(
        self,
        *args: Any,
        audit_context: AuditContextProvider | None = None,
        audit_registry: PropertyRegistry | None = None,
        audit_strict: bool | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the session.

        Args:
            *args: Positional arguments for ``Session``
            audit_context: Provider of the acting user, tenant and correlation id
            audit_registry: Property metadata registry (defaults to the global one)
            audit_strict: Raise audit failures instead of logging them
                (defaults to ``settings.audit_strict``)
            **kwargs: Keyword arguments for ``Session``
        """
        super().__init__(*args, **kwargs)
        self.audit_context = audit_context
        self.audit_registry = audit_registry or property_registry
        self.audit_strict = settings.audit_strict if audit_strict is None else audit_strict
        self.audit_hidden_value = settings.audit_hidden_value

    def save_changes(self) -> SaveResult:
        """Commit pending changes and record them in the audit trail.

        Returns:
            SaveResult describing the business write and the audit write

        Raises:
            SQLAlchemyError: If the business write fails (nothing is audited)
            KeyResolutionError: Strict mode, a generated key was unavailable
            AuditCommitError: Strict mode, the audit write failed
        """
        transaction_id = uuid4()
        now = datetime.now(UTC)

        pending = capture_changes(
            self,
            transaction_id,
            self.audit_context,
            now,
            self.audit_registry,
            self.audit_hidden_value,
        )
        stamp_audit_fields(self, self.audit_context, now)
        rows = self._count_pending_rows()

        try:
            self.commit()
        except Exception:
            self.rollback()
            raise

        if not pending:
            return SaveResult(rows=rows, transaction_id=transaction_id)

        try:
            resolve_keys(pending)
            resolve_created_values(pending)
            written = commit_changes(self, pending)
        except KeyResolutionError as e:
            self.rollback()
            log.exception(
                "audit_key_resolution_failed",
                transaction_id=str(transaction_id),
                error=e.message,
                details=e.details,
            )
            if self.audit_strict:
                raise
            return SaveResult(rows=rows, transaction_id=transaction_id, audit_error=e)
        except SQLAlchemyError as e:
            self.rollback()
            log.exception(
                "audit_commit_failed",
                transaction_id=str(transaction_id),
                count=len(pending),
                error=str(e),
            )
            error = AuditCommitError(
                details={"transaction_id": str(transaction_id), "count": len(pending)}
            )
            if self.audit_strict:
                raise error from e
            error.__cause__ = e
            return SaveResult(rows=rows, transaction_id=transaction_id, audit_error=error)

        return SaveResult(rows=rows, transaction_id=transaction_id, audit_records=written)

    def _count_pending_rows(self) -> int:
        modified = sum(
            1 for obj in self.dirty if self.is_modified(obj, include_collections=False)
        )
        return len(self.new) + modified + len(self.deleted)


class AsyncAuditedSession(AsyncSession):
    """AsyncSession whose ``save_changes()`` runs the audited pipeline.

    The whole pipeline runs inside ``run_sync``, so the business write is
    fully committed before key resolution starts, and key resolution is
    complete before the audit write starts.

    Usage:
        factory = async_sessionmaker(
            bind=engine,
            class_=AsyncAuditedSession,
            expire_on_commit=False,
            audit_context=ContextVarAuditContext(),
        )
    """

    sync_session_class = AuditedSession

    @property
    def audit_context(self) -> AuditContextProvider | None:
        return self.sync_session.audit_context  # type: ignore[attr-defined, no-any-return]

    async def save_changes(self) -> SaveResult:
        """Commit pending changes and record them in the audit trail.

        Returns:
            SaveResult describing the business write and the audit write
        """
        return await self.run_sync(AuditedSession.save_changes)
