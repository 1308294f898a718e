"""
Observability - log sink configuration.

Modules:
    logging     - structlog setup for stderr or syslog
"""

from tickbar.observability.logging import configure_logging

__all__ = ["configure_logging"]
