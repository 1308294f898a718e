"""
Reload signals.

SIGUSR1 reloads every cell. Each cell also owns a real-time signal derived
from its index, so ``pkill -RTMIN+N tickbar`` style bindings can refresh a
single block right after the user changed something.

The per-cell space is cyclic: with more cells than slots, several cells
share one signal and reload together.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Iterable

import structlog

logger = structlog.get_logger()

BROADCAST_SIGNAL = signal.SIGUSR1
RELOAD_SIGNAL_MIN = 0x22
RELOAD_SIGNAL_MAX = 0x40


def reload_signal(
    index: int,
    lo: int = RELOAD_SIGNAL_MIN,
    hi: int = RELOAD_SIGNAL_MAX,
) -> int:
    """Signal number that reloads the cell at ``index``."""
    return lo + ((index + 1) % (hi - lo))


class SignalHub:
    """
    Fan signals out to subscriber queues.

    The event loop only allows one handler per signal, while several
    workers listen to SIGUSR1 (and possibly to an aliased reload signal).
    The hub owns the loop handlers and copies each delivery into every
    subscribed queue. A full queue drops the delivery: a pending reload
    already covers it.

    With ``install=False`` no OS handler is registered and deliveries only
    come from ``deliver()``.
    """

    def __init__(self, install: bool = True) -> None:
        self.install = install
        self._subscribers: dict[int, set[asyncio.Queue[int]]] = {}
        self._installed: set[int] = set()

    def subscribe(self, queue: asyncio.Queue[int], signums: Iterable[int]) -> None:
        for signum in signums:
            self._subscribers.setdefault(signum, set()).add(queue)
            if self.install and signum not in self._installed:
                self._install(signum)

    def unsubscribe(self, queue: asyncio.Queue[int]) -> None:
        for signum in list(self._subscribers):
            queues = self._subscribers[signum]
            queues.discard(queue)
            if not queues:
                del self._subscribers[signum]
                self._uninstall(signum)

    def deliver(self, signum: int) -> None:
        for queue in list(self._subscribers.get(signum, ())):
            try:
                queue.put_nowait(signum)
            except asyncio.QueueFull:
                pass

    def close(self) -> None:
        for signum in list(self._installed):
            self._uninstall(signum)
        self._subscribers.clear()

    def _install(self, signum: int) -> None:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signum, self.deliver, signum)
        except (NotImplementedError, RuntimeError, ValueError, OSError) as e:
            logger.warning("Cannot listen to reload signal", signal=signum, error=str(e))
            return
        self._installed.add(signum)

    def _uninstall(self, signum: int) -> None:
        if signum not in self._installed:
            return
        self._installed.discard(signum)
        try:
            asyncio.get_running_loop().remove_signal_handler(signum)
        except RuntimeError:
            # Loop already gone; nothing left to detach from.
            pass
