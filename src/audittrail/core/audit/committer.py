"""Audit persistence committer.

Writes the resolved audit records as a second, separate write. The
capture engine skips audit types, so this write never produces audit
records of its own.
"""

from collections.abc import Sequence

import structlog
from sqlalchemy.orm import Session

from audittrail.core.audit.capture import PendingChange
from audittrail.core.errors import KeyResolutionError


log = structlog.get_logger()


def commit_changes(session: Session, pending: Sequence[PendingChange]) -> int:
    """Persist audit headers (and, by cascade, their property diffs).

    Args:
        session: The session that performed the business write
        pending: Changes whose keys have been resolved

    Returns:
        Number of headers written

    Raises:
        KeyResolutionError: If a header still has no owning entity key
    """
    if not pending:
        return 0

    unresolved = [c.header.entity_name for c in pending if c.header.entity_id is None]
    if unresolved:
        raise KeyResolutionError(
            "Refusing to persist audit records without an owning entity key",
            details={"entities": unresolved},
        )

    session.add_all([change.header for change in pending])
    session.commit()

    log.info(
        "audit_changes_committed",
        transaction_id=str(pending[0].header.transaction_id),
        count=len(pending),
    )
    return len(pending)
