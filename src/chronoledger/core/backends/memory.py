"""In-process ledger backend.

Rows live in a dict; a transaction takes the backend lock, snapshots the
row maps, and restores the snapshot if the block raises. Readers take the
same lock, so they observe the state before or after a write, never a
half-applied close-and-insert.
"""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from chronoledger.core.interval import OPEN
from chronoledger.core.models import Version


class InMemoryBackend:
    """Dict-backed :class:`~chronoledger.core.protocols.LedgerBackend`."""

    def __init__(self) -> None:
        self._rows: dict[str, Version] = {}
        self._by_entity: dict[str, list[str]] = {}
        self._lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = None
            if self._depth == 0:
                snapshot = (dict(self._rows), {k: list(v) for k, v in self._by_entity.items()})
            self._depth += 1
            try:
                yield
            except BaseException:
                if snapshot is not None:
                    self._rows, self._by_entity = snapshot
                raise
            finally:
                self._depth -= 1

    def insert(self, version: Version) -> None:
        with self._lock:
            if version.id in self._rows:
                raise KeyError(f"Duplicate version id {version.id!r}")
            self._rows[version.id] = version
            self._by_entity.setdefault(version.entity_id, []).append(version.id)

    def close(self, version_id: str, valid_to: datetime, closed_at: datetime) -> bool:
        with self._lock:
            row = self._rows.get(version_id)
            if row is None or row.valid_to != OPEN or row.is_superseded:
                return False
            self._rows[version_id] = dataclasses.replace(row, valid_to=valid_to, closed_at=closed_at)
            return True

    def supersede(self, version_id: str, superseded_at: datetime) -> bool:
        with self._lock:
            row = self._rows.get(version_id)
            if row is None or row.is_superseded:
                return False
            self._rows[version_id] = dataclasses.replace(row, superseded_at=superseded_at)
            return True

    def fetch(self, version_id: str) -> Version | None:
        with self._lock:
            return self._rows.get(version_id)

    def fetch_open(self, entity_id: str, *, for_update: bool = False) -> Version | None:
        # for_update: the backend lock already serialises writers.
        for version in self.fetch_all(entity_id):
            if version.is_open:
                return version
        return None

    def fetch_all(self, entity_id: str, *, include_superseded: bool = False) -> list[Version]:
        with self._lock:
            rows = [self._rows[vid] for vid in self._by_entity.get(entity_id, [])]
        if not include_superseded:
            rows = [v for v in rows if not v.is_superseded]
        return sorted(rows, key=lambda v: (v.valid_from, v.created_at))

    def entity_ids(self) -> Iterator[str]:
        with self._lock:
            ids = sorted(self._by_entity)
        yield from ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)


__all__ = ["InMemoryBackend"]
