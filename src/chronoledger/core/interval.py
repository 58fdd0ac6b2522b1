"""
Half-open valid-time intervals.

An ``Interval`` is ``[valid_from, valid_to)``. An open-ended interval uses
the ``OPEN`` end marker, a well-known maximum UTC timestamp, rather than
``None`` so that every comparison stays an ordinary datetime comparison.

Architecture:
    ::

        a:  [────────────)                     overlaps(a, b)  → True
        b:          [────────────)

        a:  [────────)                         adjacent(a, b)  → True
        b:           [────────)

        a:  [────────────────────────── OPEN   contains(a, t)  → t >= a.valid_from

Examples:
    >>> from datetime import UTC, datetime
    >>> t0 = datetime(2026, 1, 15, tzinfo=UTC)
    >>> t1 = datetime(2026, 1, 16, tzinfo=UTC)
    >>> overlaps(Interval(t0, t1), Interval(t1))
    False
    >>> adjacent(Interval(t0, t1), Interval(t1))
    True

All functions are pure.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from chronoledger.core.errors import ErrorContext, InvalidIntervalError
from chronoledger.core.timestamps import ensure_utc

OPEN: datetime = datetime.max.replace(tzinfo=UTC)
"""End marker for intervals that are still current."""


@dataclass(frozen=True, slots=True)
class Interval:
    """Half-open interval ``[valid_from, valid_to)`` over UTC instants.

    Raises:
        InvalidIntervalError: if ``valid_from >= valid_to``.
        InvalidTimestampError: if either bound is naive.
    """

    valid_from: datetime
    valid_to: datetime = OPEN

    def __post_init__(self) -> None:
        start = ensure_utc(self.valid_from)
        end = ensure_utc(self.valid_to)
        if start >= end:
            raise InvalidIntervalError(
                f"Interval start {start.isoformat()} is not before end {end.isoformat()}",
                context=ErrorContext(valid_from=start, valid_to=end),
            )
        object.__setattr__(self, "valid_from", start)
        object.__setattr__(self, "valid_to", end)

    @property
    def is_open(self) -> bool:
        return self.valid_to == OPEN

    def contains(self, instant: datetime) -> bool:
        return contains(self, instant)

    def overlaps(self, other: Interval) -> bool:
        return overlaps(self, other)

    def intersection(self, other: Interval) -> Interval | None:
        """The shared sub-interval, or ``None`` when disjoint."""
        if not overlaps(self, other):
            return None
        return Interval(max(self.valid_from, other.valid_from), min(self.valid_to, other.valid_to))

    def closed_at(self, instant: datetime) -> Interval:
        """Copy of this interval ending at *instant*."""
        return Interval(self.valid_from, instant)

    def __str__(self) -> str:
        end = "OPEN" if self.is_open else self.valid_to.isoformat()
        return f"[{self.valid_from.isoformat()}, {end})"


def overlaps(a: Interval, b: Interval) -> bool:
    """True if *a* and *b* share any instant."""
    return a.valid_from < b.valid_to and b.valid_from < a.valid_to


def adjacent(a: Interval, b: Interval) -> bool:
    """True if one interval ends exactly where the other starts."""
    return a.valid_to == b.valid_from or b.valid_to == a.valid_from


def contains(a: Interval, instant: datetime) -> bool:
    """True if ``a.valid_from <= instant < a.valid_to``."""
    instant = ensure_utc(instant)
    return a.valid_from <= instant < a.valid_to


__all__ = ["OPEN", "Interval", "overlaps", "adjacent", "contains"]
