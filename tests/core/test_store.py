"""
Tests for chronoledger.core.store.TemporalVersionStore.

Tests cover:
- The end-to-end product price scenarios (create, mutate, schedule,
  backdate, history tiling)
- Scheduled replacement and cancellation through mutate/retire
- Reopen after retirement and strict continuity
- verify() and from_settings()
- mutation_rejected logging
"""

from datetime import UTC, datetime, timedelta

import pytest
from structlog.testing import capture_logs

from chronoledger.core.backends import InMemoryBackend, SqlLedgerBackend
from chronoledger.core.errors import (
    BackdatedBeforeCurrentVersionError,
    ContinuityViolationError,
    EntityAlreadyExistsError,
    EntityNotFoundError,
    InvalidTimestampError,
    NoOpOrUseCorrectionPathError,
    StorageUnavailableError,
)
from chronoledger.core.interval import OPEN, adjacent
from chronoledger.core.models import PlanAction
from chronoledger.core.settings import LedgerSettings
from chronoledger.core.store import TemporalVersionStore

T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)


class TestProductPriceScenario:
    """Price of product-1 over a day, step by step."""

    def test_create_then_current(self, store):
        store.create("product-1", 100, T0)
        assert store.current("product-1") == 100

    def test_mutation_splits_time(self, store):
        store.create("product-1", 100, T0)
        result = store.mutate("product-1", 250, T0 + timedelta(hours=1))
        assert result.action is PlanAction.CLOSE_AND_APPEND
        assert result.closed.valid_to == result.created.valid_from
        assert store.as_of("product-1", T0 + timedelta(minutes=30)) == 100
        assert store.as_of("product-1", T0 + timedelta(hours=2)) == 250

    def test_scheduled_mutation(self, store, clock):
        store.create("product-1", 100, T0)
        store.mutate("product-1", 250, T0 + timedelta(hours=1))
        clock.set(T0 + timedelta(hours=2))
        store.mutate("product-1", 300, T0 + timedelta(days=1))
        assert store.current("product-1") == 250
        clock.advance(days=1)
        assert store.current("product-1") == 300

    def test_backdated_before_first_version(self, store):
        store.create("product-1", 100, T0)
        with pytest.raises(BackdatedBeforeCurrentVersionError):
            store.mutate("product-1", 90, T0 - timedelta(minutes=1))
        assert [v.value for v in store.get_all("product-1")] == [100]

    def test_history_tiles_from_first_start_to_open(self, store, clock):
        store.create("product-1", 100, T0)
        store.mutate("product-1", 250, T0 + timedelta(hours=1))
        clock.set(T0 + timedelta(hours=2))
        store.mutate("product-1", 300, T0 + timedelta(days=1))

        entries = list(store.history("product-1"))
        assert len(entries) == 3
        assert entries[0].interval.valid_from == T0
        assert entries[-1].interval.valid_to == OPEN
        for prev, nxt in zip(entries, entries[1:]):
            assert adjacent(prev.interval, nxt.interval)
            assert prev.interval.valid_to == nxt.interval.valid_from
        assert store.verify("product-1") == []


class TestCreate:
    def test_defaults_to_now(self, store, clock):
        v = store.create("product-1", 100)
        assert v.valid_from == clock.now()

    def test_existing_entity_rejected(self, store):
        store.create("product-1", 100, T0)
        with pytest.raises(EntityAlreadyExistsError):
            store.create("product-1", 200, T0 + timedelta(hours=5))

    def test_retired_entity_cannot_be_created_again(self, store):
        store.create("product-1", 100, T0)
        store.retire("product-1", T0 + timedelta(hours=1))
        with pytest.raises(EntityAlreadyExistsError):
            store.create("product-1", 200, T0 + timedelta(hours=5))

    def test_naive_timestamp_rejected(self, store):
        with pytest.raises(InvalidTimestampError):
            store.create("product-1", 100, datetime(2026, 1, 15))

    def test_structured_values(self, store):
        store.create("policy-9", {"tier": "gold", "limits": [1, 2]}, T0)
        assert store.current("policy-9") == {"tier": "gold", "limits": [1, 2]}


class TestMutate:
    def test_unknown_entity_gets_first_version(self, store):
        result = store.mutate("product-1", 100, T0)
        assert result.action is PlanAction.APPEND
        assert store.current("product-1") == 100

    def test_same_instant_as_started_version(self, store):
        store.create("product-1", 100, T0)
        with pytest.raises(NoOpOrUseCorrectionPathError):
            store.mutate("product-1", 101, T0)

    def test_defaults_to_now(self, store, clock):
        store.create("product-1", 100, T0)
        clock.advance(minutes=5)
        result = store.mutate("product-1", 250)
        assert result.created.valid_from == T0 + timedelta(minutes=5)

    def test_repeated_schedule_replaces_pending_version(self, store):
        store.create("product-1", 100, T0)
        future = T0 + timedelta(days=1)
        first = store.mutate("product-1", 300, future)
        second = store.mutate("product-1", 350, future)
        assert second.action is PlanAction.REPLACE_SCHEDULED
        assert second.superseded.id == first.created.id
        assert [v.value for v in store.get_all("product-1")] == [100, 350]
        assert len(store.get_all("product-1", include_superseded=True)) == 3
        assert store.as_of("product-1", future) == 350

    def test_schedule_cannot_be_replaced_once_started(self, store, clock):
        store.create("product-1", 100, T0)
        future = T0 + timedelta(days=1)
        store.mutate("product-1", 300, future)
        clock.set(future)
        with pytest.raises(NoOpOrUseCorrectionPathError):
            store.mutate("product-1", 350, future)

    def test_reopen_after_retirement(self, store):
        store.create("product-1", 100, T0)
        store.retire("product-1", T0 + timedelta(hours=1))
        result = store.mutate("product-1", 200, T0 + timedelta(hours=3))
        assert result.action is PlanAction.APPEND
        assert store.as_of("product-1", T0 + timedelta(hours=2)) is None
        assert store.as_of("product-1", T0 + timedelta(hours=3)) == 200

    def test_inside_scheduled_retirement_overlaps(self, store, clock):
        store.create("product-1", 100, T0)
        clock.advance(hours=2)
        store.retire("product-1", T0 + timedelta(days=1))
        with pytest.raises(EntityAlreadyExistsError) as exc_info:
            store.mutate("product-1", 200, T0 + timedelta(hours=5))
        assert exc_info.value.context.valid_to == T0 + timedelta(days=1)
        assert [v.value for v in store.get_all("product-1")] == [100]

    def test_strict_continuity_refuses_gap(self, clock):
        settings = LedgerSettings(_env_file=None, strict_continuity=True)
        store = TemporalVersionStore(clock=clock, settings=settings)
        store.create("product-1", 100, T0)
        store.retire("product-1", T0 + timedelta(hours=1))
        with pytest.raises(ContinuityViolationError):
            store.mutate("product-1", 200, T0 + timedelta(hours=3))
        store.mutate("product-1", 200, T0 + timedelta(hours=1))
        assert store.verify() == []


class TestRetire:
    def test_close(self, store):
        store.create("product-1", 100, T0)
        result = store.retire("product-1", T0 + timedelta(hours=1))
        assert result.action is PlanAction.CLOSE
        assert result.closed.valid_to == T0 + timedelta(hours=1)
        assert store.get_open("product-1") is None

    def test_cancel_pending_schedule(self, store):
        store.create("product-1", 100, T0)
        future = T0 + timedelta(days=1)
        store.mutate("product-1", 300, future)
        result = store.retire("product-1", future)
        assert result.action is PlanAction.CANCEL_SCHEDULED
        assert store.as_of("product-1", future) is None
        assert store.as_of("product-1", T0) == 100

    def test_nothing_to_retire(self, store):
        with pytest.raises(EntityNotFoundError):
            store.retire("ghost")
        store.create("product-1", 100, T0)
        store.retire("product-1", T0 + timedelta(hours=1))
        with pytest.raises(EntityNotFoundError):
            store.retire("product-1", T0 + timedelta(hours=2))


class TestVerify:
    def test_clean_ledger(self, store):
        store.create("a", 1, T0)
        store.create("b", 2, T0)
        store.mutate("a", 3, T0 + timedelta(hours=1))
        assert store.verify() == []
        assert store.entity_ids() == ["a", "b"]


class TestLogging:
    def test_rejection_logged_with_context(self, store):
        store.create("product-1", 100, T0)
        with capture_logs() as logs:
            with pytest.raises(BackdatedBeforeCurrentVersionError):
                store.mutate("product-1", 90, T0 - timedelta(hours=1))
        rejected = [e for e in logs if e["event"] == "mutation_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["log_level"] == "warning"
        assert rejected[0]["entity_id"] == "product-1"
        assert rejected[0]["error_type"] == "BackdatedBeforeCurrentVersionError"
        assert rejected[0]["category"] == "POLICY"

    def test_writes_logged(self, store):
        with capture_logs() as logs:
            store.create("product-1", 100, T0)
            store.mutate("product-1", 250, T0 + timedelta(hours=1))
        events = [e["event"] for e in logs]
        assert events.count("version_created") == 2
        assert events.count("version_closed") == 1


class TestFromSettings:
    def test_memory(self, clock):
        store = TemporalVersionStore.from_settings(LedgerSettings(_env_file=None), clock=clock)
        assert isinstance(store.backend, InMemoryBackend)

    def test_sqlite_file_persists(self, tmp_path, clock):
        settings = LedgerSettings(
            _env_file=None, backend="sqlite", database=str(tmp_path / "nested" / "ledger.db")
        )
        with TemporalVersionStore.from_settings(settings, clock=clock) as store:
            assert isinstance(store.backend, SqlLedgerBackend)
            store.create("product-1", 100, T0)

        with TemporalVersionStore.from_settings(settings, clock=clock) as reopened:
            assert reopened.current("product-1") == 100

    def test_close_releases_connection(self, tmp_path, clock):
        settings = LedgerSettings(_env_file=None, backend="sqlite", database=str(tmp_path / "l.db"))
        store = TemporalVersionStore.from_settings(settings, clock=clock)
        store.close()
        with pytest.raises(StorageUnavailableError):
            store.current("product-1")

    def test_close_memory_is_noop(self, clock):
        with TemporalVersionStore(clock=clock) as store:
            store.create("product-1", 100, T0)
        assert store.current("product-1") == 100

    def test_lock_settings_applied(self, clock):
        settings = LedgerSettings(_env_file=None, lock_timeout_seconds=0.25)
        store = TemporalVersionStore(clock=clock, settings=settings)
        assert store.locks.timeout == 0.25
