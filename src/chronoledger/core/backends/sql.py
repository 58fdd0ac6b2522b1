"""
Relational ledger backend.

Stores versions in the ``ledger_versions`` table through a DB-API style
:class:`~chronoledger.core.protocols.Connection`, using the
:class:`~chronoledger.core.dialect.Dialect` for the few fragments that
differ between databases.

Transactions:
    The outermost ``transaction()`` opens a write transaction
    (``BEGIN IMMEDIATE`` on SQLite, ``BEGIN`` + ``SET LOCAL lock_timeout`` on
    PostgreSQL), commits on success and rolls back on any exception, including
    a failed ``BEGIN`` or ``COMMIT``. Nested blocks join it.
    ``fetch_open(for_update=True)`` adds ``FOR UPDATE`` where the dialect
    supports row locks.

Driver errors:
    Lock contention ("database is locked", lock timeouts) becomes
    :class:`LockTimeoutError`; every other driver failure becomes
    :class:`StorageUnavailableError`. The driver exception is kept as
    ``cause``.

Example::

    conn = sqlite3.connect("ledger.db", timeout=5.0, check_same_thread=False)
    backend = SqlLedgerBackend(conn)
    backend.ensure_schema()

    with Session(engine) as session:
        backend = SqlLedgerBackend.from_session(session)
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from chronoledger.core.dialect import Dialect, get_dialect
from chronoledger.core.errors import (
    ErrorContext,
    LedgerError,
    LockTimeoutError,
    StorageUnavailableError,
    ValidationError,
)
from chronoledger.core.interval import OPEN
from chronoledger.core.models import Version
from chronoledger.core.protocols import Connection
from chronoledger.core.repository import BaseRepository
from chronoledger.core.schema import TABLE_NAME, create_schema, table_exists
from chronoledger.core.timestamps import from_iso8601, to_iso8601

_DRIVER_ERRORS: tuple[type[Exception], ...] = (sqlite3.Error, SQLAlchemyError)

_LOCK_MARKERS = ("database is locked", "database table is locked", "lock timeout", "could not obtain lock")

_COLUMNS = (
    "id",
    "entity_id",
    "value",
    "valid_from",
    "valid_to",
    "created_at",
    "closed_at",
    "superseded_at",
)


def _translate(exc: Exception) -> Exception:
    text = str(exc).lower()
    if any(marker in text for marker in _LOCK_MARKERS):
        return LockTimeoutError(f"Storage lock not acquired: {exc}", cause=exc)
    return StorageUnavailableError(f"Storage operation failed: {exc}", cause=exc)


class SqlLedgerBackend(BaseRepository):
    """SQL :class:`~chronoledger.core.protocols.LedgerBackend`.

    Parameters:
        conn: DB-API connection or :class:`SAConnectionBridge`.
        dialect: SQL dialect; defaults to SQLite.
        lock_timeout_seconds: bound for lock waits where the dialect supports it.
        begin_transactions: issue ``begin_write()`` at transaction start. Off
            when the connection manages its own transactions (SQLAlchemy sessions).
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        *,
        lock_timeout_seconds: float = 5.0,
        begin_transactions: bool = True,
    ) -> None:
        super().__init__(conn, dialect)
        self.lock_timeout_seconds = lock_timeout_seconds
        self._begin_transactions = begin_transactions
        self._lock = threading.RLock()
        self._depth = 0

    @classmethod
    def from_session(cls, session: Any, **kwargs: Any) -> SqlLedgerBackend:
        """Back the ledger with a SQLAlchemy ORM session.

        The dialect is taken from the session's bind unless given.
        """
        from chronoledger.core.orm.session import SAConnectionBridge

        dialect = kwargs.pop("dialect", None) or get_dialect(session.get_bind().dialect.name)
        return cls(SAConnectionBridge(session), dialect, begin_transactions=False, **kwargs)

    # -- Schema ------------------------------------------------------------

    def ensure_schema(self) -> None:
        with self._lock, self._storage_errors():
            if not table_exists(self.conn, self.dialect):
                create_schema(self.conn)

    # -- Transactions ------------------------------------------------------

    @contextmanager
    def _storage_errors(self) -> Iterator[None]:
        try:
            yield
        except _DRIVER_ERRORS as exc:
            raise _translate(exc) from exc

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth == 0:
                self._begin()
            self._depth += 1
            try:
                yield
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    self._rollback()
                raise
            self._depth -= 1
            if self._depth == 0:
                self._commit()

    def _begin(self) -> None:
        try:
            with self._storage_errors():
                if self._begin_transactions:
                    self.execute(self.dialect.begin_write())
                statement = self.dialect.lock_timeout(int(self.lock_timeout_seconds * 1000))
                if statement:
                    self.execute(statement)
        except LedgerError:
            self._rollback()
            raise

    def _commit(self) -> None:
        # A failed commit leaves the driver inside the transaction.
        try:
            with self._storage_errors():
                self.commit()
        except LedgerError:
            self._rollback()
            raise

    def _rollback(self) -> None:
        with self._storage_errors():
            self.rollback()

    def disconnect(self) -> None:
        """Close the underlying connection, if it can be closed."""
        closer = getattr(self.conn, "close", None)
        if closer is not None:
            with self._lock, self._storage_errors():
                closer()

    # -- Writes ------------------------------------------------------------

    def insert(self, version: Version) -> None:
        try:
            payload = json.dumps(version.value, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                f"Value for entity {version.entity_id!r} is not JSON-serializable",
                context=ErrorContext(entity_id=version.entity_id, version_id=version.id),
                cause=exc,
            ) from exc
        row = {
            "id": version.id,
            "entity_id": version.entity_id,
            "value": payload,
            "valid_from": to_iso8601(version.valid_from),
            "valid_to": to_iso8601(version.valid_to),
            "created_at": to_iso8601(version.created_at),
            "closed_at": to_iso8601(version.closed_at),
            "superseded_at": to_iso8601(version.superseded_at),
        }
        with self._lock, self._storage_errors():
            super().insert(TABLE_NAME, row)

    def close(self, version_id: str, valid_to: datetime, closed_at: datetime) -> bool:
        p = self.dialect.placeholder
        sql = (
            f"UPDATE {TABLE_NAME} SET valid_to = {p(0)}, closed_at = {p(1)} "
            f"WHERE id = {p(2)} AND valid_to = {p(3)} AND superseded_at IS NULL"
        )
        params = (to_iso8601(valid_to), to_iso8601(closed_at), version_id, to_iso8601(OPEN))
        with self._lock, self._storage_errors():
            cursor = self.execute(sql, params)
            return cursor.rowcount == 1

    def supersede(self, version_id: str, superseded_at: datetime) -> bool:
        p = self.dialect.placeholder
        sql = (
            f"UPDATE {TABLE_NAME} SET superseded_at = {p(0)} "
            f"WHERE id = {p(1)} AND superseded_at IS NULL"
        )
        with self._lock, self._storage_errors():
            cursor = self.execute(sql, (to_iso8601(superseded_at), version_id))
            return cursor.rowcount == 1

    # -- Reads -------------------------------------------------------------

    def _select(self) -> str:
        return f"SELECT {', '.join(_COLUMNS)} FROM {TABLE_NAME}"

    def fetch(self, version_id: str) -> Version | None:
        sql = f"{self._select()} WHERE id = {self.dialect.placeholder(0)}"
        with self._lock, self._storage_errors():
            row = self.query_one(sql, (version_id,))
        return _to_version(row) if row else None

    def fetch_open(self, entity_id: str, *, for_update: bool = False) -> Version | None:
        p = self.dialect.placeholder
        sql = (
            f"{self._select()} WHERE entity_id = {p(0)} AND valid_to = {p(1)} "
            f"AND superseded_at IS NULL"
        )
        if for_update:
            sql += self.dialect.for_update()
        with self._lock, self._storage_errors():
            row = self.query_one(sql, (entity_id, to_iso8601(OPEN)))
        return _to_version(row) if row else None

    def fetch_all(self, entity_id: str, *, include_superseded: bool = False) -> list[Version]:
        sql = f"{self._select()} WHERE entity_id = {self.dialect.placeholder(0)}"
        if not include_superseded:
            sql += " AND superseded_at IS NULL"
        sql += " ORDER BY valid_from, created_at"
        with self._lock, self._storage_errors():
            rows = self.query(sql, (entity_id,))
        return [_to_version(row) for row in rows]

    def entity_ids(self) -> Iterator[str]:
        with self._lock, self._storage_errors():
            rows = self.query(f"SELECT DISTINCT entity_id FROM {TABLE_NAME} ORDER BY entity_id")
        for row in rows:
            yield row["entity_id"]


def _to_version(row: dict[str, Any]) -> Version:
    return Version(
        id=row["id"],
        entity_id=row["entity_id"],
        value=json.loads(row["value"]),
        valid_from=from_iso8601(row["valid_from"]),
        valid_to=from_iso8601(row["valid_to"]),
        created_at=from_iso8601(row["created_at"]),
        closed_at=from_iso8601(row["closed_at"]),
        superseded_at=from_iso8601(row["superseded_at"]),
    )


__all__ = ["SqlLedgerBackend"]
