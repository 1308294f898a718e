"""
Unit tests for the scheduler: worker loop events and result fan-in.

Tests:
- First paint (placeholder, then jitter-driven update)
- Ticker refresh
- Broadcast and individual reload signals
- Cancellation and stream closing
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator

import pytest

from tickbar.config import Cell, ConfigError, parse_duration
from tickbar.kernel.scheduler import PLACEHOLDER, Result, Scheduler, _Ticker, bootstrap
from tickbar.kernel.signals import BROADCAST_SIGNAL, SignalHub, reload_signal
from tickbar.modules import FunctionModule, ModuleError

LONG = 36000.0


class Counter:
    """Module returning an increasing counter."""

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        return f"{self.prefix}{self.calls}"


async def next_result(results: AsyncIterator[Result], timeout: float = 2.0) -> Result:
    return await asyncio.wait_for(anext(results), timeout=timeout)


@pytest.fixture
def hub() -> SignalHub:
    return SignalHub(install=False)


async def _start(
    scheduler: Scheduler,
    stop: asyncio.Event,
    module: FunctionModule,
    index: int = 0,
    interval: float = LONG,
    delay: float = 0.0,
) -> asyncio.Task[None]:
    return asyncio.create_task(scheduler.update(stop, index, module, interval, delay))


@pytest.mark.asyncio
async def test_first_paint(hub: SignalHub) -> None:
    stop = asyncio.Event()
    scheduler = bootstrap(1, hub)
    counter = Counter()
    task = await _start(scheduler, stop, FunctionModule(counter))
    results = scheduler.results()

    assert await next_result(results) == Result(0, PLACEHOLDER)
    assert await next_result(results) == Result(0, "1")

    stop.set()
    await asyncio.wait_for(task, timeout=2)
    with pytest.raises(StopAsyncIteration):
        await next_result(results)
    assert counter.calls == 1


@pytest.mark.asyncio
async def test_jitter_delays_first_update(hub: SignalHub) -> None:
    stop = asyncio.Event()
    scheduler = bootstrap(1, hub)
    loop = asyncio.get_running_loop()
    task = await _start(scheduler, stop, FunctionModule(Counter()), delay=0.2)
    results = scheduler.results()

    await next_result(results)
    started = loop.time()
    assert await next_result(results) == Result(0, "1")
    assert loop.time() - started >= 0.15

    stop.set()
    await task


@pytest.mark.asyncio
async def test_ticker_refreshes(hub: SignalHub) -> None:
    stop = asyncio.Event()
    scheduler = bootstrap(1, hub)
    task = await _start(scheduler, stop, FunctionModule(Counter()), interval=0.02)
    results = scheduler.results()

    texts = [(await next_result(results)).text for _ in range(4)]

    assert texts == [PLACEHOLDER, "1", "2", "3"]
    stop.set()
    await task


@pytest.mark.asyncio
async def test_individual_reload_is_immediate(hub: SignalHub) -> None:
    stop = asyncio.Event()
    scheduler = bootstrap(2, hub)
    first, second = Counter("a"), Counter("b")
    tasks = [
        await _start(scheduler, stop, FunctionModule(first), index=0),
        await _start(scheduler, stop, FunctionModule(second), index=1),
    ]
    results = scheduler.results()
    initial = {await next_result(results) for _ in range(4)}
    assert initial == {
        Result(0, PLACEHOLDER),
        Result(1, PLACEHOLDER),
        Result(0, "a1"),
        Result(1, "b1"),
    }

    hub.deliver(reload_signal(1))

    assert await next_result(results) == Result(1, "b2")
    assert first.calls == 1

    stop.set()
    await asyncio.gather(*tasks)


@pytest.mark.asyncio
async def test_broadcast_reload_shows_placeholder(hub: SignalHub) -> None:
    stop = asyncio.Event()
    scheduler = bootstrap(2, hub)
    tasks = [
        await _start(scheduler, stop, FunctionModule(Counter("a")), index=0),
        await _start(scheduler, stop, FunctionModule(Counter("b")), index=1),
    ]
    results = scheduler.results()
    for _ in range(4):
        await next_result(results)

    hub.deliver(BROADCAST_SIGNAL)

    seen: dict[int, list[str]] = {0: [], 1: []}
    for _ in range(4):
        result = await next_result(results)
        seen[result.index].append(result.text)

    assert seen == {0: [PLACEHOLDER, "a2"], 1: [PLACEHOLDER, "b2"]}

    stop.set()
    await asyncio.gather(*tasks)


@pytest.mark.asyncio
async def test_module_errors_become_results(hub: SignalHub) -> None:
    def broken() -> str:
        raise RuntimeError("boom")

    def partial() -> str:
        raise ModuleError("degraded", text="?")

    stop = asyncio.Event()
    scheduler = bootstrap(2, hub)
    tasks = [
        await _start(scheduler, stop, FunctionModule(broken), index=0),
        await _start(scheduler, stop, FunctionModule(partial), index=1),
    ]
    results = scheduler.results()

    updates = {}
    for _ in range(4):
        result = await next_result(results)
        if result.text != PLACEHOLDER:
            updates[result.index] = result

    assert updates[0].text == ""
    assert str(updates[0].error) == "boom"
    assert updates[1].text == "?"
    assert isinstance(updates[1].error, ModuleError)

    stop.set()
    await asyncio.gather(*tasks)


@pytest.mark.asyncio
async def test_stream_closes_only_after_every_worker(hub: SignalHub) -> None:
    stop = asyncio.Event()
    scheduler = bootstrap(3, hub)
    tasks = [await _start(scheduler, stop, FunctionModule(Counter()), index=i) for i in range(3)]

    stop.set()
    received = [result async for result in scheduler.results()]

    assert all(task.done() for task in tasks)
    # Every placeholder sent before exit is delivered.
    assert sorted(r.index for r in received if r.text == PLACEHOLDER) == [0, 1, 2]


@pytest.mark.asyncio
async def test_empty_scheduler_closes_immediately(hub: SignalHub) -> None:
    scheduler = bootstrap(0, hub)

    received = await asyncio.wait_for(
        _collect(scheduler.results()),
        timeout=2,
    )

    assert received == []


@pytest.mark.asyncio
async def test_worker_unsubscribes_on_exit(hub: SignalHub) -> None:
    stop = asyncio.Event()
    scheduler = bootstrap(1, hub)
    task = await _start(scheduler, stop, FunctionModule(Counter()))
    results = scheduler.results()
    await next_result(results)
    await next_result(results)

    stop.set()
    await task

    assert hub._subscribers == {}


async def _collect(results: AsyncIterator[Result]) -> list[Result]:
    return [result async for result in results]


class FakeLoop:
    """Event loop stand-in with a settable clock."""

    def __init__(self, now: float) -> None:
        self.now = now

    def time(self) -> float:
        return self.now


def _fired_within(ticker: _Ticker, timeout: float = 3.0) -> bool:
    outcome: list[bool] = []
    thread = threading.Thread(target=lambda: outcome.append(ticker.fired()), daemon=True)
    thread.start()
    thread.join(timeout)
    assert outcome, "fired() did not return"
    return outcome[0]


class TestTicker:
    def test_skips_missed_ticks_in_one_step(self) -> None:
        loop = FakeLoop(1000.0)
        ticker = _Ticker(loop, 1.0)

        loop.now = 1010.5
        assert _fired_within(ticker) is True
        assert ticker.deadline == pytest.approx(1011.0)
        assert _fired_within(ticker) is False

    def test_tiny_period_late_clock(self) -> None:
        loop = FakeLoop(float(2**25))
        ticker = _Ticker(loop, parse_duration("1ns"))

        loop.now += 0.01
        assert _fired_within(ticker) is True
        assert ticker.deadline > loop.now

    def test_rejects_non_positive_period(self) -> None:
        loop = FakeLoop(1000.0)
        with pytest.raises(ValueError):
            _Ticker(loop, 0.0)
        ticker = _Ticker(loop, 1.0)
        with pytest.raises(ValueError):
            ticker.reset(0.0)


def test_cell_rejects_non_positive_interval() -> None:
    with pytest.raises(ConfigError):
        Cell(FunctionModule(lambda: "x"), 0)
    with pytest.raises(ConfigError):
        Cell(FunctionModule(lambda: "x"), -1.0)


@pytest.mark.asyncio
async def test_non_text_result_becomes_module_error(hub: SignalHub) -> None:
    stop = asyncio.Event()
    scheduler = bootstrap(1, hub)
    task = await _start(scheduler, stop, FunctionModule(lambda: b"bytes"))
    results = scheduler.results()

    await next_result(results)
    result = await next_result(results)

    assert result.text == ""
    assert isinstance(result.error, ModuleError)
    assert "bytes" in str(result.error)

    stop.set()
    await task
