"""structlog configuration for schemasync."""

from __future__ import annotations

import logging
import sys

import structlog

from schemasync.config import is_debug


def configure_logging(level: int | None = None) -> None:
    """Configure structlog processors.

    Logs go to stderr so command output on stdout stays parseable. Debug
    level is enabled by ``SCHEMASYNC_DEBUG``.
    """
    if level is None:
        level = logging.DEBUG if is_debug() else logging.WARNING

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
