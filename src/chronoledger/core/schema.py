"""DDL for the version ledger table.

Row layout::

    ledger_versions(
      id            TEXT  PRIMARY KEY      -- ULID
      entity_id     TEXT  NOT NULL
      value         TEXT  NOT NULL         -- JSON payload
      valid_from    TEXT  NOT NULL         -- UTC ISO-8601, inclusive
      valid_to      TEXT  NOT NULL         -- UTC ISO-8601, exclusive; OPEN sentinel
      created_at    TEXT  NOT NULL
      closed_at     TEXT                   -- set once, with valid_to
      superseded_at TEXT                   -- set once
    )

Timestamps are fixed-width UTC text (see ``timestamps.to_iso8601``), so the
``(entity_id, valid_from)`` index orders chronologically, and the open row is
``valid_to = <OPEN sentinel>`` rather than ``NULL`` so it can be indexed.
"""

from __future__ import annotations

from chronoledger.core.dialect import Dialect, SQLiteDialect
from chronoledger.core.protocols import Connection

TABLE_NAME = "ledger_versions"

_STATEMENTS: tuple[str, ...] = (
    f"""
    CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
        id            TEXT PRIMARY KEY,
        entity_id     TEXT NOT NULL,
        value         TEXT NOT NULL,
        valid_from    TEXT NOT NULL,
        valid_to      TEXT NOT NULL,
        created_at    TEXT NOT NULL,
        closed_at     TEXT,
        superseded_at TEXT
    )
    """,
    f"""
    CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_entity_from
        ON {TABLE_NAME} (entity_id, valid_from)
    """,
    f"""
    CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_entity_to
        ON {TABLE_NAME} (entity_id, valid_to)
    """,
)


def create_schema(conn: Connection) -> None:
    """Create the ledger table and indexes if missing, then commit.

    The DDL is portable across the supported dialects.
    """
    for statement in _STATEMENTS:
        conn.execute(statement)
    conn.commit()


def table_exists(conn: Connection, dialect: Dialect | None = None) -> bool:
    dialect = dialect or SQLiteDialect()
    cursor = conn.execute(dialect.table_exists_query(), (TABLE_NAME,))
    return bool(cursor.fetchall())


__all__ = ["TABLE_NAME", "create_schema", "table_exists"]
