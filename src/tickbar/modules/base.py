"""
Base module interface for bar cells.

A module produces the text of one block. Every implementation exposes a
single coroutine, ``full_text()``, that either returns the text or raises.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Union


class ModuleError(Exception):
    """
    A module failed to produce its text.

    ``text`` is what the cell should display anyway (empty by default).
    """

    def __init__(self, message: str, text: str = "") -> None:
        super().__init__(message)
        self.text = text


class Module(ABC):
    """
    Base class for bar modules.

    Implementations may block for a while (e.g. waiting on an external
    process); the scheduler only ever runs one call per cell at a time.
    """

    @abstractmethod
    async def full_text(self) -> str:
        """
        Produce the content of the block.

        Returns:
            Text to display

        Raises:
            ModuleError: when the content could not be produced
        """
        ...


ModuleCallable = Callable[[], Union[str, Awaitable[str]]]


class FunctionModule(Module):
    """Module backed by a zero-argument function (sync or async)."""

    def __init__(self, func: ModuleCallable) -> None:
        self.func = func

    async def full_text(self) -> str:
        if inspect.iscoroutinefunction(self.func):
            return await self.func()
        # Keep slow synchronous calls off the event loop.
        value = await asyncio.to_thread(self.func)
        if inspect.isawaitable(value):
            return await value
        return value

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", repr(self.func))
        return f"FunctionModule({name})"
