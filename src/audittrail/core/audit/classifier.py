"""Soft-delete classification of captured changes."""

from audittrail.core.audit.models import (
    EntityChange,
    EntityChangeOperation,
    EntityChangeProperty,
)
from audittrail.core.constants import TRUTHY_FLAG_VALUES


def is_flag_set(value: str | None) -> bool:
    """Interpret a formatted flag value; None and unknown text count as unset."""
    if value is None:
        return False
    return value.strip().lower() in TRUTHY_FLAG_VALUES


def classify(
    header: EntityChange,
    diffs: list[EntityChangeProperty],
    deletion_flag_name: str,
) -> tuple[EntityChange, list[EntityChangeProperty]]:
    """Relabel a soft delete captured as an update.

    When the deletion flag goes from unset to set, the header becomes a
    DELETE and the flag's own diff is dropped (the delete implies it).
    Every other diff is kept, so a soft delete saved together with other
    edits still shows those edits. A restore (set to unset) is left as
    an ordinary update. Creates and hard deletes pass through untouched.

    Args:
        header: The captured header, mutated in place
        diffs: The captured property diffs
        deletion_flag_name: Attribute name of the deletion flag

    Returns:
        The header and the (possibly shortened) diff list
    """
    if header.operation is not EntityChangeOperation.UPDATE:
        return header, diffs

    flag_diff = next(
        (diff for diff in diffs if diff.property_name == deletion_flag_name),
        None,
    )
    if flag_diff is None:
        return header, diffs

    if not is_flag_set(flag_diff.original_value) and is_flag_set(flag_diff.new_value):
        header.operation = EntityChangeOperation.DELETE
        diffs = [diff for diff in diffs if diff is not flag_diff]

    return header, diffs
