"""
Bar protocol - header and body serialization (see swaybar-protocol(7)).

The output is a header object on the first line, followed by an infinite
JSON array whose elements are arrays of blocks. The outer array is never
closed; consumers parse one element at a time.
"""

from __future__ import annotations

import json
import signal
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TextIO

import structlog

if TYPE_CHECKING:
    from tickbar.kernel.scheduler import Result

logger = structlog.get_logger()

HEADER_GLUE = "\n["
BODY_GLUE = ","


@dataclass(frozen=True)
class Header:
    """Bar header, written once at startup."""

    version: int = 1
    click_events: bool = False
    cont_signal: int = int(signal.SIGCONT)
    stop_signal: int = int(signal.SIGSTOP)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "click_events": self.click_events,
            "cont_signal": self.cont_signal,
            "stop_signal": self.stop_signal,
        }


@dataclass
class Block:
    """One entry of the bar body. Only the required field is supported."""

    full_text: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"full_text": self.full_text}


def _encode(value: Any) -> Any:
    if isinstance(value, (Header, Block)):
        return value.to_dict()
    if isinstance(value, list):
        return [_encode(item) for item in value]
    return value


def write(out: TextIO, value: Any, glue: str) -> None:
    """Serialize ``value`` as compact JSON, append ``glue`` and flush."""
    data = json.dumps(_encode(value), separators=(",", ":"), ensure_ascii=False)
    out.write(data + glue)
    out.flush()


class StreamWriter:
    """
    Owner of the block array.

    Results are applied in the order they are consumed; each one rewrites
    the block for its index and emits the whole array.
    """

    def __init__(self, out: TextIO, size: int, header: Header | None = None) -> None:
        self.out = out
        self.header = header or Header()
        self.blocks = [Block() for _ in range(size)]

    def write_header(self) -> None:
        """Emit the header and open the infinite array. Errors propagate."""
        write(self.out, self.header, HEADER_GLUE)

    def apply(self, result: Result) -> None:
        """Store a module result and emit the updated body."""
        self.blocks[result.index].full_text = result.text

        if result.error is not None:
            logger.error("Module update failed", index=result.index, error=str(result.error))

        # One broken write must not stop the other cells from updating.
        try:
            write(self.out, self.blocks, BODY_GLUE)
        except (OSError, ValueError) as e:
            logger.error("Failed to write bar body", error=str(e))
