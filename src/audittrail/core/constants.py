"""Library-wide constants.

This module defines constants used throughout the package
to avoid magic numbers and ensure consistency.
"""

# Redaction token written in place of masked property values
HIDDEN_VALUE_PLACEHOLDER = "[HIDDEN]"

# Soft-delete flag column defined by AuditableMixin
DELETION_FLAG = "is_deleted"

# Marker keys stored in Column.info
AUDIT_INFO_KEY = "audit"
IGNORE_AUDIT_INFO_KEY = "audit_ignore"

# String field lengths
MAX_ENTITY_NAME_LENGTH = 256
MAX_TABLE_NAME_LENGTH = 256
MAX_PROPERTY_NAME_LENGTH = 256
MAX_COLUMN_NAME_LENGTH = 256
MAX_ENTITY_ID_LENGTH = 255
MAX_CORRELATION_ID_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 500

# Separator for composite primary keys in entity_change.entity_id
COMPOSITE_KEY_SEPARATOR = ","

# Textual values the soft-delete classifier treats as "set"
TRUTHY_FLAG_VALUES = frozenset({"true", "1"})

# Keys used in Session.info
SESSION_FILTERS_INFO_KEY = "audittrail_disabled_filters"

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
