"""Console output — timestamped, colorized lines on a rich console.

Markers other tools depend on (the readiness line and the ``updated`` line)
are printed without wrapping so they always land on a single line.
"""

from __future__ import annotations

from datetime import datetime

from rich.console import Console
from rich.markup import escape

console = Console(highlight=False, emoji=False, soft_wrap=True)
err_console = Console(stderr=True, highlight=False, emoji=False, soft_wrap=True)


def _stamp() -> str:
    return f"[grey50]\\[{datetime.now().strftime('%H:%M:%S')}][/]"


def debug(message: str) -> None:
    console.print(f"{_stamp()} [grey50]{escape(message)}[/]")


def info(message: str) -> None:
    console.print(f"{_stamp()} [blue]{escape(message)}[/]")


def success(message: str) -> None:
    console.print(f"{_stamp()} [green]{escape(message)}[/]")


def warn(message: str) -> None:
    err_console.print(f"{_stamp()} [red]{escape(message)}[/]")


def log(message: str) -> None:
    """Print a line verbatim: no timestamp, no markup."""
    console.print(message, markup=False)


def indent(lines: list[str], level: int = 2) -> list[str]:
    return [" " * level + line for line in lines]
