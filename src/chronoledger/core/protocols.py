"""
Canonical protocol definitions for chrono-ledger.

Architecture:
    ::

        protocols.py
        ├── Connection     : sync DB-API shape (sqlite3, psycopg, SA bridge)
        └── LedgerBackend  : versioned-row storage used by the ledger

    Implementations:
        Connection    → sqlite3.Connection, orm.session.SAConnectionBridge
        LedgerBackend → backends.memory.InMemoryBackend,
                        backends.sql.SqlLedgerBackend

Guardrails:
    ❌ DON'T: Let a backend decide ledger policy
    ✅ DO: Keep backends to storage, atomicity and conditional writes;
           planning and invariant checks live in the ledger

    ❌ DON'T: Update value, valid_from or entity_id of a stored row
    ✅ DO: Only ``close`` (valid_to OPEN → finite) and ``supersede``
           (superseded_at NULL → set), each at most once per row
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from chronoledger.core.models import Version


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNCHRONOUS connection interface for database operations.

    Examples:
        >>> def count_versions(conn: Connection) -> int:
        ...     return conn.execute("SELECT COUNT(*) FROM ledger_versions").fetchone()[0]
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters. SYNC."""
        ...

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        """Execute SQL statement for multiple parameter sets. SYNC."""
        ...

    def commit(self) -> None:
        """Commit current transaction. SYNC."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction. SYNC."""
        ...


@runtime_checkable
class LedgerBackend(Protocol):
    """
    Storage contract for versioned rows.

    ``transaction()`` is re-entrant: nested blocks join the outermost one,
    which commits on success and rolls back on any exception, so a two-row
    close-and-insert is never partially visible.

    ``close`` and ``supersede`` are conditional writes: they return
    ``False`` (and change nothing) when the row is not in the expected state,
    which is how a lost double-close is detected.
    """

    def transaction(self) -> AbstractContextManager[None]:
        ...

    def insert(self, version: Version) -> None:
        ...

    def close(self, version_id: str, valid_to: datetime, closed_at: datetime) -> bool:
        ...

    def supersede(self, version_id: str, superseded_at: datetime) -> bool:
        ...

    def fetch(self, version_id: str) -> Version | None:
        ...

    def fetch_open(self, entity_id: str, *, for_update: bool = False) -> Version | None:
        ...

    def fetch_all(self, entity_id: str, *, include_superseded: bool = False) -> list[Version]:
        """Versions of *entity_id* ordered by ``valid_from`` then ``created_at``."""
        ...

    def entity_ids(self) -> Iterator[str]:
        ...


__all__ = ["Connection", "LedgerBackend"]
