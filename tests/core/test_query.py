"""
Tests for chronoledger.core.query.

Tests cover:
- as_of / version_at at interval boundaries and in gaps
- current() follows the injected clock, never wall time
- history() is lazy and restartable
- diff() over a reporting window
- known_as_of() transaction-time reads
"""

from datetime import UTC, datetime, timedelta

import pytest

from chronoledger.core.errors import InvalidIntervalError
from chronoledger.core.interval import OPEN, Interval
from chronoledger.core.models import HistoryEntry
from chronoledger.core.query import VersionHistory


def _ts(offset_hours: int = 0) -> datetime:
    base = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)
    return base + timedelta(hours=offset_hours)


class TestAsOf:
    def test_before_entity_exists(self, store):
        store.create("product-1", 100, _ts(0))
        assert store.as_of("product-1", _ts(-1)) is None

    def test_unknown_entity(self, store):
        assert store.as_of("ghost", _ts(0)) is None

    def test_boundaries(self, store):
        store.create("product-1", 100, _ts(0))
        store.mutate("product-1", 250, _ts(1))
        assert store.as_of("product-1", _ts(0)) == 100
        assert store.as_of("product-1", _ts(1) - timedelta(microseconds=1)) == 100
        assert store.as_of("product-1", _ts(1)) == 250

    def test_gap_after_retirement(self, store):
        store.create("product-1", 100, _ts(0))
        store.retire("product-1", _ts(2))
        store.mutate("product-1", 300, _ts(5))
        assert store.as_of("product-1", _ts(3)) is None
        assert store.as_of("product-1", _ts(5)) == 300

    def test_version_at(self, store):
        v = store.create("product-1", 100, _ts(0))
        assert store.version_at("product-1", _ts(10)).id == v.id


class TestCurrent:
    def test_scheduled_not_current_until_clock_reaches_it(self, store, clock):
        store.create("product-1", 100, _ts(0))
        store.mutate("product-1", 300, _ts(24))
        assert store.current("product-1") == 100
        clock.set(_ts(24))
        assert store.current("product-1") == 300

    def test_current_version(self, store):
        v = store.create("product-1", 100, _ts(0))
        assert store.current_version("product-1").id == v.id

    def test_retired_has_no_current(self, store, clock):
        store.create("product-1", 100, _ts(0))
        store.retire("product-1", _ts(1))
        clock.advance(hours=2)
        assert store.current("product-1") is None


class TestHistory:
    def test_entries(self, store):
        store.create("product-1", 100, _ts(0))
        store.mutate("product-1", 250, _ts(1))
        entries = list(store.history("product-1"))
        assert all(isinstance(e, HistoryEntry) for e in entries)
        assert [e.interval for e in entries] == [Interval(_ts(0), _ts(1)), Interval(_ts(1))]
        assert [e.value for e in entries] == [100, 250]

    def test_restartable_and_live(self, store):
        store.create("product-1", 100, _ts(0))
        history = store.history("product-1")
        assert isinstance(history, VersionHistory)
        assert len(list(history)) == 1
        assert len(list(history)) == 1
        store.mutate("product-1", 250, _ts(1))
        assert len(history) == 2

    def test_empty(self, store):
        assert list(store.history("ghost")) == []


class TestDiff:
    @pytest.fixture
    def priced(self, store):
        store.create("product-1", 100, _ts(0))
        store.mutate("product-1", 250, _ts(10))
        store.mutate("product-1", 300, _ts(20))
        return store

    def test_window_inside_one_version(self, priced):
        changes = priced.diff("product-1", _ts(1), _ts(2))
        assert [c.value for c in changes] == [100]
        assert changes[0].previous_value is None

    def test_window_spanning_changes(self, priced):
        changes = priced.diff("product-1", _ts(5), _ts(25))
        assert [c.value for c in changes] == [100, 250, 300]
        assert [c.previous_value for c in changes] == [None, 100, 250]
        assert changes[1].effective_at == _ts(10)

    def test_window_end_exclusive(self, priced):
        changes = priced.diff("product-1", _ts(0), _ts(10))
        assert [c.value for c in changes] == [100]

    def test_invalid_window(self, priced):
        with pytest.raises(InvalidIntervalError):
            priced.diff("product-1", _ts(5), _ts(5))

    def test_previous_value_none_after_gap(self, store):
        store.create("product-1", 100, _ts(0))
        store.retire("product-1", _ts(2))
        store.mutate("product-1", 300, _ts(5))
        changes = store.diff("product-1", _ts(0), _ts(6))
        assert [c.previous_value for c in changes] == [None, None]


class TestKnownAsOf:
    def test_before_close_was_recorded(self, store, clock):
        store.create("product-1", 100, _ts(0))
        recorded_before = clock.now()
        clock.advance(hours=1)
        store.mutate("product-1", 250, _ts(1))
        # At recorded_before the ledger still believed 100 ran open-ended.
        assert store.known_as_of("product-1", _ts(5), recorded_before) == 100
        assert store.known_as_of("product-1", _ts(5), clock.now()) == 250

    def test_superseded_schedule_visible_in_the_past(self, store, clock):
        store.create("product-1", 100, _ts(0))
        clock.advance(hours=1)
        store.mutate("product-1", 300, _ts(24))
        scheduled_at = clock.now()
        clock.advance(hours=1)
        store.mutate("product-1", 350, _ts(24))
        assert store.known_as_of("product-1", _ts(30), scheduled_at) == 300
        assert store.known_as_of("product-1", _ts(30), clock.now()) == 350
        assert store.as_of("product-1", _ts(30)) == 350

    def test_before_entity_recorded(self, store, clock):
        before = clock.now() - timedelta(seconds=1)
        store.create("product-1", 100, _ts(0))
        assert store.known_as_of("product-1", _ts(0), before) is None

    def test_open_marker_not_confused(self, store):
        v = store.create("product-1", 100, _ts(0))
        assert v.valid_to == OPEN
        assert store.known_as_of("product-1", _ts(1000), v.created_at) == 100
