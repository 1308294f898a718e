"""
Logging setup.

Everything in tickbar logs through ``structlog.get_logger()``. stdout is
reserved for the bar protocol, so log entries go to stderr or to syslog.
Only warnings and errors are shown unless ``verbose`` is set.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from typing import TextIO

import structlog

SYSLOG_ADDRESS = "/dev/log"


def configure_logging(
    stream: TextIO | None = None,
    *,
    syslog: bool = False,
    verbose: bool = False,
    program: str = "tickbar",
) -> None:
    """
    Route structlog output to ``stream`` (default stderr) or to syslog.

    Raises:
        OSError: if the syslog socket cannot be opened
    """
    level = logging.DEBUG if verbose else logging.WARNING

    if syslog:
        handler = logging.handlers.SysLogHandler(address=SYSLOG_ADDRESS)
        handler.ident = f"{program}: "
        root = logging.getLogger(program)
        root.handlers[:] = [handler]
        root.setLevel(level)
        root.propagate = False

        structlog.configure(
            processors=[
                structlog.processors.add_log_level,
                structlog.processors.format_exc_info,
                structlog.processors.KeyValueRenderer(key_order=["level", "event"]),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            logger_factory=lambda *args: logging.getLogger(program),
            cache_logger_on_first_use=False,
        )
        return

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=False,
    )
