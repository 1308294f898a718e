"""
Bar Runner - wires configuration, scheduler and stream writer together.

Flow:
1. Write the protocol header (fatal on failure, nothing started yet)
2. Start one worker per cell
3. Apply every result to the block array and emit the body
4. Return once all workers stopped and the result stream closed
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import TextIO

import structlog

from tickbar.config import BarConfig
from tickbar.kernel.jitter import jitter
from tickbar.kernel.scheduler import bootstrap
from tickbar.kernel.signals import SignalHub
from tickbar.protocol import StreamWriter

logger = structlog.get_logger()

TERMINATION_SIGNALS = (signal.SIGHUP, signal.SIGINT, signal.SIGTERM, signal.SIGQUIT)


async def run(
    stop: asyncio.Event,
    config: BarConfig,
    *,
    output: TextIO | None = None,
    signals: SignalHub | None = None,
) -> None:
    """
    Emit the infinite bar array until ``stop`` is set.

    Args:
        stop: Cancellation signal observed by every worker
        config: Cells, jitter and header
        output: Protocol output (defaults to stdout)
        signals: Reload signal hub (defaults to one bound to OS signals)

    Raises:
        OSError: if the header cannot be written
    """
    writer = StreamWriter(output or sys.stdout, len(config.cells), config.header)

    # Fail before starting any worker so nothing is left running without
    # a consumer.
    writer.write_header()

    hub = signals if signals is not None else SignalHub()
    scheduler = bootstrap(len(config.cells), hub)

    tasks = [
        asyncio.create_task(
            scheduler.update(stop, i, cell.module, cell.interval, jitter(config.jitter_ms)),
            name=f"cell-{i}",
        )
        for i, cell in enumerate(config.cells)
    ]

    logger.info("Bar started", cells=len(tasks), jitter_ms=config.jitter_ms)

    try:
        async for result in scheduler.results():
            writer.apply(result)
    finally:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        scheduler.abandon()
        if signals is None:
            hub.close()

    logger.info("Bar stopped")


class BarRunner:
    """
    Process-level entry point.

    Translates hang-up, interrupt, terminate and quit signals into the
    cancellation event consumed by ``run``.
    """

    def __init__(self, config: BarConfig, output: TextIO | None = None) -> None:
        self.config = config
        self.output = output

    def run(self) -> None:
        """Run the bar (synchronous entry point)."""
        asyncio.run(self.run_async())

    async def run_async(self) -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()

        installed: list[int] = []
        for sig in TERMINATION_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._request_stop, stop, sig)
            except (NotImplementedError, RuntimeError) as e:
                logger.warning("Cannot handle termination signal", signal=int(sig), error=str(e))
                continue
            installed.append(sig)

        try:
            await run(stop, self.config, output=self.output)
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    @staticmethod
    def _request_stop(stop: asyncio.Event, sig: signal.Signals) -> None:
        logger.info("Received signal, stopping", signal=sig.name)
        stop.set()
