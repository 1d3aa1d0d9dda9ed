"""Terminal output helpers for the CLI."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.table import Table

_out = Console(highlight=False, soft_wrap=True)
_err = Console(stderr=True, highlight=False, soft_wrap=True)


def header(text: str) -> None:
    _out.print(escape(text), style="bold cyan")
    _out.print("=" * len(text), style="dim")


def subheader(text: str) -> None:
    _out.print(escape(text), style="bold")


def key_value(key: str, value: object, indent: int = 0) -> None:
    _out.print(
        f"{' ' * indent}[dim]{escape(key)}:[/dim] {escape(str(value))}"
    )


def dim(text: str) -> None:
    _out.print(escape(text), style="dim")


def info(text: str) -> None:
    _out.print(escape(text))


def success(text: str) -> None:
    _out.print(escape(text), style="green")


def warning(text: str) -> None:
    _err.print(f"warning: {escape(text)}", style="yellow")


def error(text: str) -> None:
    _err.print(f"error: {escape(text)}", style="red")


def table(title: str, columns: list[str], rows: list[list[object]]) -> None:
    t = Table(title=title)
    for i, column in enumerate(columns):
        t.add_column(column, style="cyan" if i == 0 else None)
    for row in rows:
        t.add_row(*(escape(str(v)) for v in row))
    _out.print(t)
