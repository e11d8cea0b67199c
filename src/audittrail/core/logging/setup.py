"""Structured logging configuration via structlog."""

import logging

import structlog

from audittrail.config import Settings, settings as default_settings


def configure_logging(config: Settings | None = None) -> None:
    """Configure structlog for the host application.

    Renders JSON in production and a console format everywhere else.
    Safe to call more than once; the last call wins.

    Args:
        config: Settings to read the environment and log level from
    """
    config = config or default_settings

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if config.is_production
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[config.log_level]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
