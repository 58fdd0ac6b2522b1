"""Point-in-Time Query Engine.

Read-only projections over the ledger. Nothing here writes, and nothing
here needs the entity lock: each call reads one committed snapshot of an
entity's versions through the ledger.

Valid time vs transaction time::

    as_of(e, t)                  value valid at t, per what the ledger says now
    known_as_of(e, t, recorded)  value valid at t, per what the ledger said at
                                 transaction time `recorded`

A version scheduled for the future is already in the ledger but is not
``current()`` until the clock reaches its ``valid_from``.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from typing import Any

from chronoledger.core.clock import Clock
from chronoledger.core.interval import Interval
from chronoledger.core.ledger import VersionLedger
from chronoledger.core.models import HistoryEntry, Version, VersionChange
from chronoledger.core.timestamps import ensure_utc


class VersionHistory:
    """Lazy, restartable history of one entity.

    Each iteration reads the ledger afresh, so iterating again after a write
    reflects the write.
    """

    def __init__(self, ledger: VersionLedger, entity_id: str) -> None:
        self._ledger = ledger
        self.entity_id = entity_id

    def __iter__(self) -> Iterator[HistoryEntry]:
        for version in self._ledger.get_all(self.entity_id):
            yield HistoryEntry(interval=version.interval, value=version.value, version_id=version.id)

    def __len__(self) -> int:
        return len(self._ledger.get_all(self.entity_id))

    def __repr__(self) -> str:
        return f"VersionHistory({self.entity_id!r})"


class PointInTimeQuery:
    """Answers "what was true when" for entities in a :class:`VersionLedger`."""

    def __init__(self, ledger: VersionLedger, clock: Clock) -> None:
        self.ledger = ledger
        self.clock = clock

    def version_at(self, entity_id: str, instant: datetime) -> Version | None:
        """The live version whose interval contains *instant*, if any."""
        instant = ensure_utc(instant)
        for version in self.ledger.get_all(entity_id):
            if version.valid_from > instant:
                break
            if version.interval.contains(instant):
                return version
        return None

    def as_of(self, entity_id: str, instant: datetime) -> Any | None:
        """Value at *instant*; ``None`` before the entity existed or in a gap."""
        version = self.version_at(entity_id, instant)
        return version.value if version is not None else None

    def current_version(self, entity_id: str) -> Version | None:
        return self.version_at(entity_id, self.clock.now())

    def current(self, entity_id: str) -> Any | None:
        return self.as_of(entity_id, self.clock.now())

    def history(self, entity_id: str) -> VersionHistory:
        return VersionHistory(self.ledger, entity_id)

    def diff(self, entity_id: str, start: datetime, end: datetime) -> list[VersionChange]:
        """Versions whose interval intersects ``[start, end)``, oldest first.

        Raises:
            InvalidIntervalError: if ``start >= end``.
        """
        window = Interval(ensure_utc(start), ensure_utc(end))
        changes: list[VersionChange] = []
        previous: Version | None = None
        for version in self.ledger.get_all(entity_id):
            if window.overlaps(version.interval):
                adjacent = previous is not None and previous.valid_to == version.valid_from
                changes.append(
                    VersionChange(
                        entity_id=entity_id,
                        version_id=version.id,
                        interval=version.interval,
                        value=version.value,
                        previous_value=previous.value if adjacent else None,
                    )
                )
            previous = version
        return changes

    def known_as_of(self, entity_id: str, instant: datetime, recorded_at: datetime) -> Any | None:
        """Value at *instant* as the ledger recorded it at transaction time *recorded_at*.

        Rows created after *recorded_at* are ignored, rows superseded by then
        are ignored, and a close recorded after *recorded_at* is read as still
        open.
        """
        instant = ensure_utc(instant)
        recorded_at = ensure_utc(recorded_at)
        for version in self.ledger.get_all(entity_id, include_superseded=True):
            if not version.known_at(recorded_at):
                continue
            if version.valid_from <= instant < version.valid_to_known_at(recorded_at):
                return version.value
        return None


__all__ = ["PointInTimeQuery", "VersionHistory"]
