"""Structured logging configuration.

Outputs either console format (development) or JSON (production), selected
by LOG_FORMAT. Modules get their logger with ``get_logger(__name__)`` and log
snake_case event names with key/value context:

    logger = get_logger(__name__)
    logger.info("projects_synced", count=42)
"""

import logging
import sys
from typing import Literal

import structlog

from core.config import LOG_FORMAT, LOG_LEVEL


def setup_logging(
    log_format: Literal["json", "console"] | None = None,
    log_level: str | None = None,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        log_format: "json" or "console". Falls back to LOG_FORMAT.
        log_level: DEBUG, INFO, WARNING or ERROR. Falls back to LOG_LEVEL.
    """
    log_format = log_format or LOG_FORMAT
    log_level = log_level or LOG_LEVEL
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
        force=True,
    )

    processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=False),
        structlog.contextvars.merge_contextvars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=False))
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.get_logger().info(
        "logging_initialized", log_format=log_format, log_level=log_level
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)
