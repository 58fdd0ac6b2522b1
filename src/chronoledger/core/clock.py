"""
Injectable clock abstraction.

Nothing in the ledger reads wall-clock time directly: "now" comes from a
``Clock`` so that scheduled (future-dated) versions can be tested by
advancing a ``ManualClock`` instead of sleeping.

Examples:
    >>> from datetime import UTC, datetime
    >>> clock = ManualClock(datetime(2026, 1, 15, 12, 0, tzinfo=UTC))
    >>> clock.advance(hours=2)
    datetime.datetime(2026, 1, 15, 14, 0, tzinfo=datetime.timezone.utc)
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable

from chronoledger.core.timestamps import ensure_utc, utc_now


@runtime_checkable
class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        """Current UTC time."""
        ...


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return utc_now()

    def __repr__(self) -> str:
        return "SystemClock()"


class ManualClock:
    """Deterministic clock that only moves when told to.

    Thread-safe; time never moves backwards.
    """

    def __init__(self, start: datetime) -> None:
        self._now = ensure_utc(start)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, when: datetime) -> datetime:
        """Jump to *when*. Raises ``ValueError`` if that is in the past."""
        when = ensure_utc(when)
        with self._lock:
            if when < self._now:
                raise ValueError(
                    f"ManualClock cannot move backwards: {when.isoformat()} < {self._now.isoformat()}"
                )
            self._now = when
            return self._now

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        """Move forward by *delta* or by ``timedelta(**kwargs)``."""
        step = delta if delta is not None else timedelta(**kwargs)
        if step < timedelta(0):
            raise ValueError("ManualClock cannot advance by a negative delta")
        with self._lock:
            self._now = self._now + step
            return self._now

    def __repr__(self) -> str:
        return f"ManualClock({self._now.isoformat()})"


__all__ = ["Clock", "SystemClock", "ManualClock"]
