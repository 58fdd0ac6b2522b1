"""
Ledger record types.

``Version`` is the persisted row. Valid time is ``[valid_from, valid_to)``;
transaction time is tracked by three write-once stamps:

- ``created_at``   : row inserted
- ``closed_at``    : ``valid_to`` transitioned from OPEN to a finite value
- ``superseded_at`` : a not-yet-effective scheduled version was replaced

A superseded version never answers a valid-time query, but stays in storage
so bitemporal reads ("what did we believe at time R?") remain answerable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from chronoledger.core.interval import OPEN, Interval
from chronoledger.core.timestamps import to_iso8601


@dataclass(frozen=True, slots=True)
class Version:
    """A time-bounded, immutable snapshot of one entity's value.

    Attributes:
        id: Surrogate key (ULID), immutable.
        entity_id: Entity this version belongs to.
        value: Opaque payload valid during the interval.
        valid_from: Inclusive start (business time).
        valid_to: Exclusive end, or ``OPEN``.
        created_at: Transaction time of insert.
        closed_at: Transaction time ``valid_to`` was set, if closed.
        superseded_at: Transaction time of replacement, if superseded.
    """

    id: str
    entity_id: str
    value: Any
    valid_from: datetime
    valid_to: datetime
    created_at: datetime
    closed_at: datetime | None = None
    superseded_at: datetime | None = None

    @property
    def interval(self) -> Interval:
        return Interval(self.valid_from, self.valid_to)

    @property
    def is_open(self) -> bool:
        return self.valid_to == OPEN

    @property
    def is_superseded(self) -> bool:
        return self.superseded_at is not None

    def is_effective(self, now: datetime) -> bool:
        """Has this version's valid time started by *now*?"""
        return self.valid_from <= now

    def known_at(self, recorded_at: datetime) -> bool:
        """Was this row part of the ledger's belief at transaction time *recorded_at*?"""
        if self.created_at > recorded_at:
            return False
        return self.superseded_at is None or self.superseded_at > recorded_at

    def valid_to_known_at(self, recorded_at: datetime) -> datetime:
        """``valid_to`` as it stood at transaction time *recorded_at*."""
        if self.closed_at is not None and self.closed_at <= recorded_at:
            return self.valid_to
        return OPEN

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "value": self.value,
            "valid_from": to_iso8601(self.valid_from),
            "valid_to": None if self.is_open else to_iso8601(self.valid_to),
            "created_at": to_iso8601(self.created_at),
            "closed_at": to_iso8601(self.closed_at),
            "superseded_at": to_iso8601(self.superseded_at),
        }


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """One step of an entity's history."""

    interval: Interval
    value: Any
    version_id: str


@dataclass(frozen=True, slots=True)
class VersionChange:
    """A version whose interval intersects a reporting window.

    ``previous_value`` is the value of the immediately preceding adjacent
    version, or ``None`` when the entity had no value just before.
    """

    entity_id: str
    version_id: str
    interval: Interval
    value: Any
    previous_value: Any = None

    @property
    def effective_at(self) -> datetime:
        return self.interval.valid_from


class PlanAction(str, Enum):
    """What a mutation does to the ledger."""

    APPEND = "append"
    CLOSE_AND_APPEND = "close_and_append"
    REPLACE_SCHEDULED = "replace_scheduled"
    CLOSE = "close"
    CANCEL_SCHEDULED = "cancel_scheduled"


@dataclass(frozen=True, slots=True)
class MutationResult:
    """Rows touched by one successful store write."""

    action: PlanAction
    created: Version | None = None
    closed: Version | None = None
    superseded: Version | None = None


__all__ = [
    "Version",
    "HistoryEntry",
    "VersionChange",
    "PlanAction",
    "MutationResult",
]
