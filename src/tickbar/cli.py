"""
tickbar CLI - run the bar, inspect or create a configuration.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.table import Table

from tickbar import __version__
from tickbar.config import BarConfig, ConfigError

console = Console()
err_console = Console(stderr=True)

EXAMPLE_CONFIG = [
    {"command": ["date", "+%a %d %b %H:%M"], "interval": "1m"},
    {"command": ["sh", "-c", "cut -d' ' -f1-3 /proc/loadavg"], "interval": "5s"},
    {"command": ["uname", "-r"], "interval": "24h"},
]


def _load(config_path: Path) -> BarConfig:
    try:
        return BarConfig.load(config_path)
    except ConfigError as e:
        err_console.print(f"[red]✗[/red] {e}")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """tickbar - status command for sway/i3bar."""


@main.command()
@click.argument("config_path", type=click.Path(path_type=Path))
@click.option("--jitter", type=click.IntRange(min=0), help="Override max start-up jitter (ms)")
@click.option("--syslog", is_flag=True, help="Send log entries to syslog instead of stderr")
@click.option("--verbose", "-v", is_flag=True, help="Log debug entries")
def run(config_path: Path, jitter: int | None, syslog: bool, verbose: bool) -> None:
    """Stream the bar for CONFIG_PATH until terminated."""
    from tickbar.kernel.runner import BarRunner
    from tickbar.observability import configure_logging

    config = _load(config_path)
    if jitter is not None:
        config.jitter_ms = jitter

    try:
        configure_logging(syslog=syslog, verbose=verbose)
    except OSError as e:
        err_console.print(f"[red]✗[/red] cannot open syslog: {e}")
        sys.exit(1)

    try:
        BarRunner(config).run()
    except OSError as e:
        err_console.print(f"[red]✗[/red] {e}")
        sys.exit(1)


@main.command()
@click.argument("config_path", type=click.Path(path_type=Path))
def check(config_path: Path) -> None:
    """Validate CONFIG_PATH and list its cells."""
    from tickbar.kernel.signals import RELOAD_SIGNAL_MIN, reload_signal

    config = _load(config_path)

    table = Table(title=f"{len(config.entries)} module(s), jitter {config.jitter_ms}ms")
    table.add_column("#", justify="right")
    table.add_column("Command")
    table.add_column("Interval")
    table.add_column("Signal", justify="right")

    for i, entry in enumerate(config.entries):
        signum = reload_signal(i)
        table.add_row(str(i), " ".join(entry.command), entry.interval, f"{signum} (RTMIN+{signum - RELOAD_SIGNAL_MIN})")

    console.print(table)
    console.print("[green]✓[/green] Configuration is valid")


@main.command()
@click.argument("config_path", type=click.Path(path_type=Path))
def init(config_path: Path) -> None:
    """Write an example configuration to CONFIG_PATH."""
    if config_path.exists():
        err_console.print(f"[red]✗[/red] {config_path} already exists")
        sys.exit(1)

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(
            {"jitter": 500, "modules": EXAMPLE_CONFIG},
            f,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
    console.print(f"  Created [cyan]{config_path}[/cyan]")
    console.print(f"[dim]Run:[/dim] tickbar run {config_path}")


if __name__ == "__main__":
    main()
