"""Logging module with structured logging configuration."""

from audittrail.core.logging.setup import configure_logging


__all__ = [
    "configure_logging",
]
