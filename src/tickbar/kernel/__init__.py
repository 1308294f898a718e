"""
Kernel - scheduling core of the bar.

Modules:
    jitter      - Shared random source for start-up delays
    signals     - Reload signal slots and fan-out hub
    scheduler   - Per-cell worker loops and result fan-in
    runner      - Top-level run loop and process entry point
"""

from tickbar.kernel.scheduler import PLACEHOLDER, Result, Scheduler, bootstrap
from tickbar.kernel.signals import (
    BROADCAST_SIGNAL,
    RELOAD_SIGNAL_MAX,
    RELOAD_SIGNAL_MIN,
    SignalHub,
    reload_signal,
)

__all__ = [
    "PLACEHOLDER",
    "Result",
    "Scheduler",
    "bootstrap",
    "BROADCAST_SIGNAL",
    "RELOAD_SIGNAL_MIN",
    "RELOAD_SIGNAL_MAX",
    "SignalHub",
    "reload_signal",
]
