"""Post-write resolution of captured creates.

Database-generated keys (identity columns, sequences) and column
defaults only exist once the business write has run. Headers and
diffs captured for new entities are back-filled here, before the
audit records are persisted.
"""

from collections.abc import Iterable

import structlog
from sqlalchemy import inspect

from audittrail.core.audit.capture import PendingChange, format_identity
from audittrail.core.audit.formatting import format_value
from audittrail.core.errors import KeyResolutionError


log = structlog.get_logger()


def resolve_keys(pending: Iterable[PendingChange]) -> None:
    """Assign materialized primary keys to headers that still lack one.

    Must be called after the business write completed successfully.
    Reads the identity recorded by the session, so it works on expired
    and detached instances without emitting SQL.

    Args:
        pending: Captured changes; headers are mutated in place

    Raises:
        KeyResolutionError: If an entity still has no primary key
    """
    for change in pending:
        header = change.header
        if header.entity_id is not None:
            continue

        entity_id = format_identity(inspect(change.entity).identity)
        if entity_id is None:
            raise KeyResolutionError(
                f"Primary key of {header.entity_name} is unavailable after the write",
                details={
                    "entity": header.entity_name,
                    "transaction_id": str(header.transaction_id),
                },
            )

        header.entity_id = entity_id
        log.debug(
            "audit_key_resolved",
            entity=header.entity_name,
            entity_id=entity_id,
        )


def resolve_created_values(pending: Iterable[PendingChange]) -> None:
    """Replace captured create values with the values actually written.

    Column defaults are applied during the write, so a property left
    unset on a new entity is only known afterwards. Masked properties
    keep the redaction token. Expired attributes are refreshed from the
    database.

    Args:
        pending: Captured changes; create diffs are mutated in place
    """
    for change in pending:
        for diff, spec in change.created_properties:
            diff.new_value = format_value(
                getattr(change.entity, spec.name), spec.display_format
            )
