"""
Command module - displays the first output line of an external process.
"""

from __future__ import annotations

import asyncio
import shlex

import structlog

from tickbar.modules.base import Module, ModuleError

logger = structlog.get_logger()


class CommandError(ModuleError):
    """The command could not be started or exited with a non-zero status."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


def first_line(data: bytes) -> str:
    """Decode output and return the text up to the first newline."""
    text = data.decode("utf-8", errors="replace")
    return text.split("\n", 1)[0]


def pad(value: str) -> str:
    """Pad non-empty text with one space on each side for readability."""
    clean = value.strip()
    if not clean:
        return ""
    return f" {clean} "


def verbose(message: str, info: str) -> str:
    """Append diagnostic text to an error message, only if there is any."""
    clean = info.strip()
    if not clean:
        return message
    return f"{message}: {clean}"


class CommandModule(Module):
    """
    Run a command on every update.

    stdout and stderr are buffered; a failing command reports its exit
    status together with the first line it wrote to stderr.
    """

    def __init__(self, argv: list[str]) -> None:
        if not argv:
            raise ValueError("command must not be empty")
        self.argv = list(argv)

    async def full_text(self) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CommandError(f"{self.argv[0]}: {e.strerror or e}") from e

        stdout, stderr = await process.communicate()

        if process.returncode != 0:
            err_line = first_line(stderr)
            logger.debug(
                "Command exited with error",
                command=self.command,
                returncode=process.returncode,
            )
            raise CommandError(
                verbose(f"exit status {process.returncode}", err_line),
                returncode=process.returncode,
                stderr=err_line.strip(),
            )

        return pad(first_line(stdout))

    @property
    def command(self) -> str:
        return shlex.join(self.argv)

    def __repr__(self) -> str:
        return f"CommandModule({self.command!r})"
