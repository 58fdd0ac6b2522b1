"""Tests for the BaseRepository class."""

from __future__ import annotations

import sqlite3

import pytest

from chronoledger.core.dialect import SQLiteDialect
from chronoledger.core.repository import BaseRepository


@pytest.fixture
def conn() -> sqlite3.Connection:
    """In-memory SQLite connection with a test table."""
    c = sqlite3.connect(":memory:")
    c.execute(
        """
        CREATE TABLE items (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            value INTEGER
        )
    """
    )
    c.commit()
    return c


@pytest.fixture
def repo(conn: sqlite3.Connection) -> BaseRepository:
    return BaseRepository(conn, SQLiteDialect())


class TestPh:
    def test_single(self, repo: BaseRepository) -> None:
        assert repo.ph(1) == "?"

    def test_multiple(self, repo: BaseRepository) -> None:
        assert repo.ph(3) == "?, ?, ?"


class TestQuery:
    def test_query_returns_dicts(self, repo: BaseRepository) -> None:
        repo.insert("items", {"id": "1", "name": "a", "value": 10})
        repo.insert("items", {"id": "2", "name": "b", "value": 20})
        repo.commit()

        rows = repo.query("SELECT * FROM items ORDER BY id")
        assert rows == [
            {"id": "1", "name": "a", "value": 10},
            {"id": "2", "name": "b", "value": 20},
        ]

    def test_query_empty(self, repo: BaseRepository) -> None:
        assert repo.query("SELECT * FROM items") == []

    def test_query_one(self, repo: BaseRepository) -> None:
        repo.insert("items", {"id": "1", "name": "a", "value": 10})
        assert repo.query_one("SELECT name FROM items WHERE id = ?", ("1",)) == {"name": "a"}
        assert repo.query_one("SELECT name FROM items WHERE id = ?", ("9",)) is None

    def test_rollback(self, repo: BaseRepository) -> None:
        repo.insert("items", {"id": "1", "name": "a", "value": 10})
        repo.rollback()
        assert repo.query("SELECT * FROM items") == []

    def test_default_dialect_is_sqlite(self, conn: sqlite3.Connection) -> None:
        assert BaseRepository(conn).dialect.name == "sqlite"
