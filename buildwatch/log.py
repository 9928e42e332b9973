"""Logging setup for buildwatch.

All modules log through ``structlog.get_logger(__name__)`` with event-style
messages. The CLI calls :func:`configure` once at startup; library users
that never call it get structlog's default console output.
"""

import logging
import sys

import structlog


def configure(verbose: bool = False) -> None:
    """Configure structlog for console output.

    Args:
        verbose: Emit debug events (task start/finish) when True
    """
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
