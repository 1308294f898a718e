"""
Bar Configuration - cells, jitter and protocol header.

Loaded from a YAML file (plain JSON works too). Two layouts are accepted:

    # list of entries
    - command: [date, "+%H:%M"]
      interval: 1m

    # mapping with global settings
    jitter: 500
    modules:
      - command: [date, "+%H:%M"]
        interval: 1m

Entry order is display order and fixes each cell's reload signal.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft7Validator

from tickbar.modules.base import FunctionModule, Module, ModuleCallable
from tickbar.modules.command import CommandModule
from tickbar.protocol import Header


class ConfigError(ValueError):
    """Invalid bar configuration."""


_ENTRY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "command": {
            "type": "array",
            "items": {"type": "string"},
            "minItems": 1,
        },
        "interval": {"type": "string", "minLength": 1},
    },
    "required": ["command", "interval"],
}

LIST_SCHEMA: dict[str, Any] = {"type": "array", "items": _ENTRY_SCHEMA}

MAPPING_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "jitter": {"type": "integer", "minimum": 0},
        "modules": LIST_SCHEMA,
    },
    "required": ["modules"],
}


# Seconds per unit, following Go's time.ParseDuration grammar.
_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """
    Parse a duration string such as "300ms", "1.5h" or "2h45m" into seconds.

    Raises:
        ConfigError: if the string is not a valid duration
    """
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ConfigError(f"invalid duration {value!r}")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            if text[pos].isdigit() or text[pos] == ".":
                raise ConfigError(f"missing or unknown unit in duration {value!r}")
            raise ConfigError(f"invalid duration {value!r}")
        number, unit = match.groups()
        total += float(number) * _UNITS[unit]
        pos = match.end()

    if pos == 0:
        raise ConfigError(f"invalid duration {value!r}")

    return sign * total


@dataclass(frozen=True)
class Cell:
    """A module and the interval (seconds) at which it refreshes."""

    module: Module
    interval: float

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ConfigError(f"interval must be positive, got {self.interval!r}")


@dataclass
class CellConfig:
    """One entry of the configuration file."""

    command: list[str]
    interval: str

    @property
    def interval_seconds(self) -> float:
        seconds = parse_duration(self.interval)
        if seconds <= 0:
            raise ConfigError(f"interval must be positive, got {self.interval!r}")
        return seconds

    def to_cell(self) -> Cell:
        return Cell(CommandModule(self.command), self.interval_seconds)

    def to_dict(self) -> dict[str, Any]:
        return {"command": list(self.command), "interval": self.interval}


@dataclass
class BarConfig:
    """Main bar configuration."""

    cells: list[Cell] = field(default_factory=list)
    jitter_ms: int = 0  # Upper bound of the random start-up delay
    header: Header = field(default_factory=Header)

    # Entries the cells were built from, when loaded from a file
    entries: list[CellConfig] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.jitter_ms < 0:
            raise ConfigError(f"jitter must not be negative, got {self.jitter_ms}")

    def add_module(self, module: Module, interval: float) -> BarConfig:
        """Append a cell. Cells are displayed in insertion order."""
        if interval <= 0:
            raise ConfigError(f"interval must be positive, got {interval!r}")
        self.cells.append(Cell(module, interval))
        return self

    def add_function(self, func: ModuleCallable, interval: float) -> BarConfig:
        """Append a cell backed by a plain function."""
        return self.add_module(FunctionModule(func), interval)

    @classmethod
    def load(cls, config_path: Path) -> BarConfig:
        """Load configuration from a YAML or JSON file."""
        config_path = Path(config_path)
        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"cannot read {config_path}: {e.strerror or e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"cannot parse {config_path}: {e}") from e
        return cls.from_dict(data if data is not None else [])

    @classmethod
    def from_dict(cls, data: Any) -> BarConfig:
        """Create config from parsed file contents (list or mapping)."""
        schema = LIST_SCHEMA if isinstance(data, list) else MAPPING_SCHEMA
        errors = [
            f"{'.'.join(str(p) for p in error.absolute_path) or 'root'}: {error.message}"
            for error in Draft7Validator(schema).iter_errors(data)
        ]
        if errors:
            raise ConfigError("invalid configuration: " + "; ".join(errors))

        if isinstance(data, list):
            raw_entries, jitter_ms = data, 0
        else:
            raw_entries, jitter_ms = data["modules"], int(data.get("jitter", 0))

        entries = [CellConfig(command=list(e["command"]), interval=e["interval"]) for e in raw_entries]
        cells = []
        for i, entry in enumerate(entries):
            try:
                cells.append(entry.to_cell())
            except ConfigError as e:
                raise ConfigError(f"module {i}: {e}") from e

        return cls(cells=cells, jitter_ms=jitter_ms, entries=entries)

    def to_dict(self) -> dict[str, Any]:
        """Serialize file-backed settings (function cells are not representable)."""
        return {
            "jitter": self.jitter_ms,
            "modules": [entry.to_dict() for entry in self.entries],
        }
