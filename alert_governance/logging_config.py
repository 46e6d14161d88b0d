"""
Structured logging setup.

Every module logs through structlog.get_logger(__name__) with snake_case
event names and keyword context. setup_logging() wires structlog to the
standard library so levels are honoured, rendering JSON for machines or
a console format for people.
"""

import logging
import os
import sys
from typing import Optional

import structlog


def setup_logging(level: Optional[str] = None, fmt: str = "json") -> None:
    """
    Configure structlog and standard logging.

    Args:
        level: Log level name; defaults to LOG_LEVEL or INFO.
        fmt: "json" for JSON lines, "text" for console output.
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Logs go to stderr so command output on stdout stays parseable.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level, logging.INFO),
        force=True,
    )
