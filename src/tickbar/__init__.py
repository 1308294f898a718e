"""
tickbar - status command for sway/i3bar.

Every module refreshes on its own interval, on SIGUSR1 (all modules) or on
its own real-time signal, and the bar body is streamed as swaybar-protocol(7).

Usage:
    import asyncio
    from tickbar import BarConfig, run

    config = BarConfig(jitter_ms=500)
    config.add_function(lambda: "hello", 60)

    stop = asyncio.Event()
    asyncio.run(run(stop, config))
"""

from tickbar.config import BarConfig, Cell, CellConfig, ConfigError, parse_duration
from tickbar.kernel.runner import BarRunner, run
from tickbar.modules import CommandModule, FunctionModule, Module, ModuleError
from tickbar.protocol import Block, Header

__version__ = "0.1.0"

__all__ = [
    "BarConfig",
    "BarRunner",
    "Block",
    "Cell",
    "CellConfig",
    "CommandModule",
    "ConfigError",
    "FunctionModule",
    "Header",
    "Module",
    "ModuleError",
    "parse_duration",
    "run",
]
