"""
SQL dialect abstraction for portable ledger SQL.

The ledger's SQL is the same on every database except for a handful of
fragments: placeholder style, how a write transaction starts, whether the
open-row read can take a row lock, and how a bounded lock wait is set.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                      Dialect (Protocol)                       │
        │  placeholder(i) / placeholders(n)                             │
        │  begin_write()        → BEGIN IMMEDIATE | BEGIN               │
        │  lock_timeout(ms)     → None | SET LOCAL lock_timeout = '…ms' │
        │  for_update()         → ''   | ' FOR UPDATE'                  │
        │  table_exists_query() → catalogue lookup                      │
        └──────────────────────────────────────────────────────────────┘
              │                             │
        SQLiteDialect                PostgreSQLDialect
        (?, BEGIN IMMEDIATE)         (%s, FOR UPDATE, lock_timeout)

Examples:
    >>> d = get_dialect("postgresql")
    >>> f"SELECT * FROM ledger_versions WHERE entity_id = {d.placeholder(0)}{d.for_update()}"
    'SELECT * FROM ledger_versions WHERE entity_id = %s FOR UPDATE'

Tags:
    dialect, sql, portability, locking
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract. Every method returns a SQL fragment."""

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    def begin_write(self) -> str:
        """Statement that opens a transaction intending to write."""
        ...

    def lock_timeout(self, milliseconds: int) -> str | None:
        """Statement bounding lock waits inside the current transaction, if supported."""
        ...

    def for_update(self) -> str:
        """Row-lock suffix for a SELECT, or ``''``."""
        ...

    def table_exists_query(self) -> str:
        """Query with one placeholder (table name) returning rows if it exists."""
        ...


class SQLiteDialect:
    """SQLite dialect: ``?`` placeholders, database-level write lock."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def begin_write(self) -> str:
        # Takes the RESERVED lock up front so read-then-write cannot interleave.
        return "BEGIN IMMEDIATE"

    def lock_timeout(self, milliseconds: int) -> str | None:  # noqa: ARG002
        # Bounded by the connection's busy timeout instead.
        return None

    def for_update(self) -> str:
        return ""

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type='table' AND name=?"


class PostgreSQLDialect:
    """PostgreSQL dialect: ``%s`` placeholders, row locks, ``lock_timeout``.

    Compatible with ``psycopg`` (v3) and ``psycopg2`` (format paramstyle).
    """

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def begin_write(self) -> str:
        return "BEGIN"

    def lock_timeout(self, milliseconds: int) -> str | None:
        return f"SET LOCAL lock_timeout = '{int(milliseconds)}ms'"

    def for_update(self) -> str:
        return " FOR UPDATE"

    def table_exists_query(self) -> str:
        return (
            "SELECT tablename FROM pg_tables "
            "WHERE schemaname = 'public' AND tablename = %s"
        )


_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Look up a dialect by name (case-insensitive).

    Raises:
        ValueError: for an unknown dialect name.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}"
        )
    return _DIALECTS[key]


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "get_dialect",
]
