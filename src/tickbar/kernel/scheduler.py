"""
Scheduler - per-cell update loops fanned in to one result queue.

Each cell gets its own worker coroutine so every module can refresh at
its own rate. Workers only talk to the consumer through a bounded queue;
the queue is closed once the last worker has exited.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import AsyncIterator
from dataclasses import dataclass

import structlog

from tickbar.kernel.signals import BROADCAST_SIGNAL, SignalHub, reload_signal
from tickbar.modules.base import Module, ModuleError

logger = structlog.get_logger()

PLACEHOLDER = "..."

# The ticker starts this much later than the jitter timer, so first paint
# always comes from the timer.
TICKER_HEAD_START = 0.001


@dataclass(frozen=True)
class Result:
    """Outcome of one module update."""

    index: int
    text: str
    error: BaseException | None = None


class _Closed:
    """Queue sentinel marking the end of the result stream."""


_CLOSED = _Closed()


class _Ticker:
    """Periodic deadline on the event loop clock. Missed ticks are dropped."""

    def __init__(self, loop: asyncio.AbstractEventLoop, period: float) -> None:
        if period <= 0:
            raise ValueError(f"ticker period must be positive, got {period!r}")
        self._loop = loop
        self._period = period
        self.deadline = loop.time() + period

    def reset(self, period: float) -> None:
        if period <= 0:
            raise ValueError(f"ticker period must be positive, got {period!r}")
        self._period = period
        self.deadline = self._loop.time() + period

    def fired(self) -> bool:
        now = self._loop.time()
        if now < self.deadline:
            return False
        # Skip every missed tick in one step.
        self.deadline += (math.floor((now - self.deadline) / self._period) + 1) * self._period
        if self.deadline <= now:
            # Period below the clock resolution at this magnitude.
            self.deadline = math.nextafter(now, math.inf)
        return True


class Scheduler:
    """
    Coordinates the asynchronous updates of every cell.

    Use ``bootstrap()`` to create one from inside a running event loop,
    start ``update()`` once per cell and consume ``results()``.
    """

    def __init__(self, size: int, signals: SignalHub) -> None:
        self.size = size
        self.signals = signals
        self._out: asyncio.Queue[Result | _Closed] = asyncio.Queue(maxsize=max(size, 1))
        self._pending = size
        self._all_done = asyncio.Event()
        if size == 0:
            self._all_done.set()
        self._closer = asyncio.create_task(self._close_when_done(), name="scheduler-closer")

    async def _close_when_done(self) -> None:
        await self._all_done.wait()
        await self._out.put(_CLOSED)
        logger.debug("Result stream closed", cells=self.size)

    def _worker_done(self) -> None:
        self._pending -= 1
        if self._pending == 0:
            self._all_done.set()

    def abandon(self) -> None:
        """Stop waiting to close the stream (consumer went away)."""
        self._closer.cancel()

    async def results(self) -> AsyncIterator[Result]:
        """Yield results until every worker has exited."""
        while True:
            item = await self._out.get()
            if isinstance(item, _Closed):
                return
            yield item

    async def update(
        self,
        stop: asyncio.Event,
        index: int,
        module: Module,
        interval: float,
        delay: float,
    ) -> None:
        """
        Worker loop for the cell at ``index``.

        Performs a first update delayed by ``delay`` (the jitter), then
        refreshes every ``interval`` seconds, on SIGUSR1 (all cells, after
        a placeholder and the same delay) and on the cell's own reload
        signal (immediately). Returns once ``stop`` is set.
        """
        try:
            await self.wait(index)
            await self._loop(stop, index, module, interval, delay)
        finally:
            self._worker_done()

    async def _loop(
        self,
        stop: asyncio.Event,
        index: int,
        module: Module,
        interval: float,
        delay: float,
    ) -> None:
        loop = asyncio.get_running_loop()
        jitter_at: float | None = loop.time() + delay
        ticker = _Ticker(loop, delay + TICKER_HEAD_START)

        individual = reload_signal(index)
        inbox: asyncio.Queue[int] = asyncio.Queue(maxsize=1)
        self.signals.subscribe(inbox, (BROADCAST_SIGNAL, individual))

        stopped = asyncio.ensure_future(stop.wait())
        received: asyncio.Future[int] | None = None

        logger.debug("Worker started", index=index, interval=interval, delay=delay, signal=individual)

        try:
            while True:
                if received is None:
                    received = asyncio.ensure_future(inbox.get())

                deadline = ticker.deadline if jitter_at is None else min(jitter_at, ticker.deadline)
                timeout = max(deadline - loop.time(), 0)

                done, _ = await asyncio.wait(
                    {stopped, received},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if stopped in done:
                    return

                if received in done:
                    signum = received.result()
                    received = None
                    if signum == BROADCAST_SIGNAL:
                        # Spread a global reload over the jitter window and show
                        # that it was received in the meantime.
                        await self.wait(index)
                        await asyncio.sleep(delay)
                        ticker.reset(interval)
                elif jitter_at is not None and loop.time() >= jitter_at:
                    # Offset future ticks by the jitter so cells sharing an
                    # interval do not refresh at the same instant.
                    jitter_at = None
                    ticker.reset(interval)
                elif not ticker.fired():
                    continue

                await self.do(index, module)
        finally:
            self.signals.unsubscribe(inbox)
            stopped.cancel()
            if received is not None:
                received.cancel()
            logger.debug("Worker stopped", index=index)

    async def do(self, index: int, module: Module) -> None:
        """Run the module and send its result to the output queue."""
        error: BaseException | None = None
        try:
            text = await module.full_text()
        except ModuleError as e:
            text, error = e.text, e
        except Exception as e:
            text, error = "", e
        else:
            if not isinstance(text, str):
                text, error = "", ModuleError(f"module returned {type(text).__name__}, expected str")
        await self._out.put(Result(index, text, error))

    async def wait(self, index: int) -> None:
        """Display the placeholder to show a refresh is on its way."""
        await self._out.put(Result(index, PLACEHOLDER))


def bootstrap(size: int, signals: SignalHub | None = None) -> Scheduler:
    """Create a scheduler for ``size`` cells. Must run inside an event loop."""
    return Scheduler(size, signals if signals is not None else SignalHub())
