"""
Root Typer application for the chrono-ledger CLI.

Every command opens the SQLite ledger named by ``--database`` (default
``CHRONOLEDGER_DATABASE`` or ``~/.chronoledger/ledger.db``). Instants are
ISO 8601; naive ones are read as UTC; omitted ones mean "now".

    $ chronoledger create product-1 100 --at 2026-01-15T00:00:00Z
    $ chronoledger set product-1 250 --at 2026-01-15T01:00:00Z
    $ chronoledger get product-1 --at 2026-01-15T00:30:00Z
    100
"""

from __future__ import annotations

import typer
from typer import Typer

from chronoledger.cli.utils import (
    console,
    ledger_errors,
    open_store,
    output,
    parse_instant,
    parse_value,
)
from chronoledger.core.logging import configure_from_settings
from chronoledger.core.models import MutationResult
from chronoledger.core.settings import LedgerSettings

app = Typer(
    name="chronoledger",
    help="chrono-ledger: bitemporal, append-only version store.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from chronoledger import __version__

        typer.echo(f"chrono-ledger {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log ledger writes."),
) -> None:
    """chrono-ledger CLI: record and query time-bounded entity values."""
    configure_from_settings(LedgerSettings(), level="INFO" if verbose else None)


def _result_dict(result: MutationResult) -> dict:
    return {
        "action": result.action.value,
        "created": result.created.to_dict() if result.created else None,
        "closed": result.closed.to_dict() if result.closed else None,
        "superseded": result.superseded.to_dict() if result.superseded else None,
    }


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="Database path"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Create the ledger database and schema."""
    with ledger_errors(), open_store(database) as store:
        output(
            {"database": store.settings.database, "entities": len(store.entity_ids())},
            as_json=json_out,
            title="Ledger Init",
        )


@app.command()
def create(
    entity_id: str = typer.Argument(..., help="Entity id"),
    value: str = typer.Argument(..., help="Value (JSON or plain string)"),
    at: str | None = typer.Option(None, "--at", help="valid_from (default now)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Create the first version of an entity."""
    valid_from = parse_instant(at)
    with ledger_errors(), open_store(database) as store:
        version = store.create(entity_id, parse_value(value), valid_from)
    output(version, as_json=json_out, title="Created")


@app.command("set")
def set_value(
    entity_id: str = typer.Argument(..., help="Entity id"),
    value: str = typer.Argument(..., help="Value (JSON or plain string)"),
    at: str | None = typer.Option(None, "--at", help="Effective instant (default now)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Change an entity's value from an instant on."""
    effective_at = parse_instant(at)
    with ledger_errors(), open_store(database) as store:
        result = store.mutate(entity_id, parse_value(value), effective_at)
    output(_result_dict(result), as_json=json_out, title="Mutation")


@app.command()
def retire(
    entity_id: str = typer.Argument(..., help="Entity id"),
    at: str | None = typer.Option(None, "--at", help="Effective instant (default now)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """End an entity's value with no successor."""
    effective_at = parse_instant(at)
    with ledger_errors(), open_store(database) as store:
        result = store.retire(entity_id, effective_at)
    output(_result_dict(result), as_json=json_out, title="Retirement")


@app.command()
def get(
    entity_id: str = typer.Argument(..., help="Entity id"),
    at: str | None = typer.Option(None, "--at", help="Valid-time instant (default now)"),
    known_at: str | None = typer.Option(
        None, "--known-at", help="Answer as the ledger recorded it at this transaction time"
    ),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Print an entity's value at an instant."""
    instant = parse_instant(at)
    recorded_at = parse_instant(known_at)
    with ledger_errors(), open_store(database) as store:
        instant = instant or store.clock.now()
        if recorded_at is not None:
            value = store.known_as_of(entity_id, instant, recorded_at)
        else:
            value = store.as_of(entity_id, instant)
    output(value, as_json=json_out)


@app.command()
def history(
    entity_id: str = typer.Argument(..., help="Entity id"),
    include_superseded: bool = typer.Option(
        False, "--all", help="Include superseded scheduled versions"
    ),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List an entity's versions, oldest first."""
    with ledger_errors(), open_store(database) as store:
        versions = store.get_all(entity_id, include_superseded=include_superseded)
    output(versions, as_json=json_out, title=f"History: {entity_id}")


@app.command()
def diff(
    entity_id: str = typer.Argument(..., help="Entity id"),
    start: str = typer.Argument(..., help="Window start (inclusive)"),
    end: str = typer.Argument(..., help="Window end (exclusive)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List versions whose interval intersects [start, end)."""
    window_start = parse_instant(start)
    window_end = parse_instant(end)
    with ledger_errors(), open_store(database) as store:
        now = store.clock.now()
        changes = store.diff(entity_id, window_start or now, window_end or now)
    rows = [
        {
            "version_id": c.version_id,
            "valid_from": c.interval.valid_from.isoformat(),
            "valid_to": None if c.interval.is_open else c.interval.valid_to.isoformat(),
            "value": c.value,
            "previous_value": c.previous_value,
        }
        for c in changes
    ]
    output(rows, as_json=json_out, title=f"Changes: {entity_id}")


@app.command()
def verify(
    entity_id: str | None = typer.Option(None, "--entity", "-e", help="Check one entity"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Check ledger invariants; exit 1 if any are violated."""
    with ledger_errors(), open_store(database) as store:
        violations = store.verify(entity_id)
    rows = [
        {
            "kind": v.kind.value,
            "entity_id": v.entity_id,
            "version_ids": list(v.version_ids),
            "detail": v.detail,
        }
        for v in violations
    ]
    if not rows and not json_out:
        console.print("[green]OK[/green]: no invariant violations")
        return
    output(rows, as_json=json_out, title="Invariant Violations")
    if rows:
        raise typer.Exit(code=1)
