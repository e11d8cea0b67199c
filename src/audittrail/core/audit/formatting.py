"""Text formatting of property values for the audit trail.

The audit schema is type-agnostic: every captured value is stored as
text so that one column can hold any property's history.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

import structlog


log = structlog.get_logger()


def format_value(value: Any, display_format: str | None = None) -> str | None:
    """Format a property value as text for audit logging.

    Args:
        value: The raw attribute value
        display_format: Optional ``str.format`` template; ignored (with a
            debug log) when it does not apply to the value

    Returns:
        Formatted string, or None for a null value
    """
    if value is None:
        return None

    if display_format is not None:
        try:
            return display_format.format(value)
        except (ValueError, TypeError, KeyError, IndexError, AttributeError) as e:
            log.debug(
                "audit_display_format_ignored",
                display_format=display_format,
                error=str(e),
            )

    result: str
    if isinstance(value, Enum):
        result = str(value.value)
    elif isinstance(value, str):
        result = value
    elif isinstance(value, datetime):
        result = value.isoformat()
    elif isinstance(value, date):
        result = value.strftime("%Y-%m-%d")
    elif isinstance(value, time):
        result = value.strftime("%H:%M:%S")
    elif isinstance(value, UUID | Decimal | float):
        result = str(value)
    else:
        # Fallback: bool, int and anything else
        result = str(value)

    return result
