"""
CLI utility helpers: store construction, argument parsing, output.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from chronoledger.core.errors import LedgerError
from chronoledger.core.settings import LedgerSettings
from chronoledger.core.store import TemporalVersionStore

console = Console()
err_console = Console(stderr=True)


# ── Store helper ─────────────────────────────────────────────────────────


@contextmanager
def open_store(database: str | None = None) -> Iterator[TemporalVersionStore]:
    """Open the SQLite-backed store for one command, closing it afterwards.

    Defaults to ``LedgerSettings().database``.
    """
    settings = LedgerSettings(backend="sqlite")
    if database:
        settings = settings.model_copy(update={"database": database})
    with TemporalVersionStore.from_settings(settings) as store:
        yield store


# ── Argument parsing ─────────────────────────────────────────────────────


def parse_instant(text: str | None) -> datetime | None:
    """Parse an ISO 8601 instant; naive input is read as UTC. ``None``/"now" → None."""
    if text is None or text.lower() == "now":
        return None
    try:
        dt = datetime.fromisoformat(text)
    except ValueError as e:
        raise typer.BadParameter(f"Not an ISO 8601 timestamp: {text!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def parse_value(text: str) -> Any:
    """JSON if it parses (``100``, ``{"tier": "gold"}``), else the raw string."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


@contextmanager
def ledger_errors() -> Iterator[None]:
    """Print ledger errors in red and exit with code 1."""
    try:
        yield
    except LedgerError as e:
        err_console.print(f"[bold red]Error[/bold red] ({type(e).__name__}): {escape(e.message)}")
        raise typer.Exit(code=1) from e


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> Any:
    return obj.to_dict() if hasattr(obj, "to_dict") else obj


def output(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a record, a list of records, or a scalar."""
    if as_json:
        payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        _print_table([_to_dict(d) for d in data], title=title)
    elif isinstance(data, dict) or hasattr(data, "to_dict"):
        _print_dict(_to_dict(data), title=title)
    else:
        console.print(escape(json.dumps(data, default=str)) if data is not None else "[dim]null[/dim]")


def _print_table(items: list[dict[str, Any]], *, title: str = "") -> None:
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in items[0]:
        table.add_column(col, overflow="fold")
    for item in items:
        table.add_row(*(_cell(v) for v in item.values()))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {_cell(v)}")


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, dict | list):
        return escape(json.dumps(value, default=str))
    return escape(str(value))
