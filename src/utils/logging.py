"""Shared logging utilities for structured logging across the pipeline.

Every module obtains its logger through ``get_logger(__name__)``. Log lines are
JSON objects carrying the event name plus any bound keyword context, which makes
a single video's journey through the job steps easy to follow in aggregated logs.
"""

import logging
import os
import sys

import structlog

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Configure structlog and the standard library root logger.

    Safe to call repeatedly; only the first call (or a call with an explicit
    level) changes the configuration.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL environment variable,
            falling back to INFO.
    """
    global _configured
    if _configured and level is None:
        return

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    logging.getLogger().setLevel(log_level)
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured structured logger instance.

    Args:
        name: Logger name (typically __name__ from the calling module).

    Returns:
        Configured structlog logger instance ready for use.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("video_status_updated", video_id="abc", status="READY")
        >>> logger.exception("index_push_failed", path="abc-chunk0")
    """
    configure_logging()
    return structlog.get_logger(name)
