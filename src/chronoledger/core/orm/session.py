"""SQLAlchemy engine factory, session factory, and Connection bridge.

This module provides:

* ``create_ledger_engine``   -- Create a SA engine from a URL.
* ``LedgerSession``          -- Session with ``expire_on_commit=False``.
* ``ledger_session_factory`` -- ``sessionmaker`` producing ``LedgerSession``.
* ``SAConnectionBridge``     -- Wraps a SA ``Session`` to satisfy the
  ``chronoledger.core.protocols.Connection`` protocol, so the SQL ledger
  backend runs unchanged over an ORM session.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

# qmark (SQLite) and format (PostgreSQL) placeholders
_PLACEHOLDER = re.compile(r"\?|%s")


def create_ledger_engine(
    url: str = "sqlite:///ledger.db",
    *,
    echo: bool = False,
    busy_timeout_seconds: float = 5.0,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with ledger defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql+psycopg://…``).
    echo:
        If ``True``, log all SQL.
    busy_timeout_seconds:
        SQLite only: how long a writer waits on the database lock before
        the driver reports "database is locked".
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    if not url.startswith("sqlite"):
        return _sa_create_engine(url, echo=echo, **kwargs)

    connect_args = kwargs.pop("connect_args", {})
    connect_args.setdefault("check_same_thread", False)
    connect_args.setdefault("timeout", busy_timeout_seconds)
    engine = _sa_create_engine(url, echo=echo, connect_args=connect_args, **kwargs)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


class LedgerSession(Session):
    """Pre-configured session with ``expire_on_commit=False``."""

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def ledger_session_factory(engine: Engine) -> sessionmaker[LedgerSession]:
    """Return a ``sessionmaker`` bound to *engine* that produces ``LedgerSession`` instances."""
    return sessionmaker(bind=engine, class_=LedgerSession)


class SAConnectionBridge:
    """Adapter that makes a SQLAlchemy ``Session`` look like a DB-API connection.

    Positional placeholders (``?`` or ``%s``) are rewritten to ``:p0, :p1, …``
    for ``text()``. Implements ``execute``, ``executemany``, ``fetchone``,
    ``fetchall``, ``rowcount``, ``description``, ``commit``, ``rollback``.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._last_result: Any = None

    def execute(self, sql: str, parameters: Sequence[Any] | None = None) -> SAConnectionBridge:
        if parameters:
            counter = iter(range(len(parameters)))
            rewritten = _PLACEHOLDER.sub(lambda _m: f":p{next(counter)}", sql)
            mapping = {f"p{i}": v for i, v in enumerate(parameters)}
            self._last_result = self._session.execute(text(rewritten), mapping)
        else:
            self._last_result = self._session.execute(text(sql))
        return self

    def executemany(self, sql: str, seq_of_parameters: Sequence[Sequence[Any]]) -> None:
        for params in seq_of_parameters:
            self.execute(sql, params)

    def fetchone(self) -> tuple[Any, ...] | None:
        if self._last_result is None or not self._last_result.returns_rows:
            return None
        row = self._last_result.fetchone()
        return tuple(row) if row is not None else None

    def fetchall(self) -> list[tuple[Any, ...]]:
        if self._last_result is None or not self._last_result.returns_rows:
            return []
        return [tuple(r) for r in self._last_result.fetchall()]

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()

    @property
    def rowcount(self) -> int:
        if self._last_result is None:
            return -1
        return self._last_result.rowcount

    @property
    def description(self) -> list[tuple[str, ...]] | None:
        """DB-API 2.0 style description; only the column name is filled in."""
        if self._last_result is None or not self._last_result.returns_rows:
            return None
        return [(k, None, None, None, None, None, None) for k in self._last_result.keys()]

    @property
    def session(self) -> Session:
        """The underlying SA session, for ORM queries."""
        return self._session
