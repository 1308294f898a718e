"""
Bar modules.

Usage:
    from tickbar.modules import CommandModule, FunctionModule

    clock = FunctionModule(lambda: time.strftime("%H:%M"))
    volume = CommandModule(["pamixer", "--get-volume-human"])
"""

from tickbar.modules.base import FunctionModule, Module, ModuleCallable, ModuleError
from tickbar.modules.command import CommandError, CommandModule

__all__ = [
    "Module",
    "ModuleCallable",
    "ModuleError",
    "FunctionModule",
    "CommandModule",
    "CommandError",
]
