"""
Shared pytest fixtures for chrono-ledger tests.

This module provides:
- A deterministic ManualClock pinned to a fixed base time
- Stores over the in-memory and SQLite backends
- Location-based auto-marking (unit / integration)

Usage:
    def test_something(store, clock):
        store.create("product-1", 100)
        clock.advance(hours=1)
"""

import sqlite3
import sys
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import structlog

# Ensure chronoledger package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from chronoledger.core.backends import InMemoryBackend, SqlLedgerBackend
from chronoledger.core.clock import ManualClock
from chronoledger.core.settings import LedgerSettings
from chronoledger.core.store import TemporalVersionStore

T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path) or "concurrency" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def _reset_structlog() -> Generator[None, None, None]:
    """Undo any configure_logging() a test (or CLI invocation) performed."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def clock() -> ManualClock:
    """Manual clock starting at T0 (2026-01-15 12:00 UTC)."""
    return ManualClock(T0)


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings(_env_file=None, lock_timeout_seconds=1.0)


@pytest.fixture
def memory_store(clock, settings) -> TemporalVersionStore:
    return TemporalVersionStore(backend=InMemoryBackend(), clock=clock, settings=settings)


@pytest.fixture
def sqlite_conn() -> Generator[sqlite3.Connection, None, None]:
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    yield conn
    conn.close()


@pytest.fixture
def sql_backend(sqlite_conn) -> SqlLedgerBackend:
    backend = SqlLedgerBackend(sqlite_conn)
    backend.ensure_schema()
    return backend


@pytest.fixture(params=["memory", "sqlite"])
def store(request, clock, settings, sqlite_conn) -> TemporalVersionStore:
    """Store over each backend; tests using it run once per backend."""
    if request.param == "sqlite":
        backend = SqlLedgerBackend(sqlite_conn)
        backend.ensure_schema()
    else:
        backend = InMemoryBackend()
    return TemporalVersionStore(backend=backend, clock=clock, settings=settings)
