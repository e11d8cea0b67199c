"""Declarative per-column audit markers.

Markers live in ``Column.info`` so they travel with the mapping and can
be looked up without touching instances.

Example:
    class Customer(Base, IntIdMixin, EntityChangeAuditableMixin):
        __tablename__ = "customers"

        name: Mapped[str] = mapped_column(String(255), info=auditable())
        password_hash: Mapped[str] = mapped_column(
            Text, info=auditable(hide_values=True)
        )
        balance: Mapped[Decimal] = mapped_column(
            info=auditable(display_format="{:.2f}")
        )
        search_vector: Mapped[str] = mapped_column(
            Text, info=ignore_audit("derived column")
        )
"""

from dataclasses import dataclass
from typing import Any

from audittrail.core.constants import AUDIT_INFO_KEY, IGNORE_AUDIT_INFO_KEY


@dataclass(frozen=True, slots=True)
class AuditableMarker:
    """Opt-in marker for property-level change capture.

    Attributes:
        hide_values: Replace original and new values with the redaction token
        display_format: ``str.format`` template applied to non-null values
    """

    hide_values: bool = False
    display_format: str | None = None


@dataclass(frozen=True, slots=True)
class IgnoreAuditMarker:
    """Opt-out marker; wins over an ``AuditableMarker`` on the same column."""

    reason: str | None = None


def auditable(
    hide_values: bool = False,
    display_format: str | None = None,
    **info: Any,
) -> dict[str, Any]:
    """Build a ``Column.info`` dict that opts a column into change capture.

    Args:
        hide_values: Mask values in the audit trail (passwords, tokens)
        display_format: Optional ``str.format`` template, e.g. ``"{:.2f}"``
        **info: Extra ``info`` entries to keep alongside the marker

    Returns:
        Dictionary suitable for ``mapped_column(info=...)``
    """
    return {
        **info,
        AUDIT_INFO_KEY: AuditableMarker(
            hide_values=hide_values,
            display_format=display_format,
        ),
    }


def ignore_audit(reason: str | None = None, **info: Any) -> dict[str, Any]:
    """Build a ``Column.info`` dict that excludes a column from change capture.

    Args:
        reason: Why the column is excluded, for documentation
        **info: Extra ``info`` entries to keep alongside the marker

    Returns:
        Dictionary suitable for ``mapped_column(info=...)``
    """
    return {**info, IGNORE_AUDIT_INFO_KEY: IgnoreAuditMarker(reason=reason)}


def get_auditable_marker(info: dict[str, Any]) -> AuditableMarker | None:
    """Return the effective opt-in marker for a column's ``info`` dict."""
    if IGNORE_AUDIT_INFO_KEY in info:
        return None
    marker = info.get(AUDIT_INFO_KEY)
    if isinstance(marker, AuditableMarker):
        return marker
    return None
