"""
TemporalVersionStore - the public facade over ledger, planner and queries.

Write path (one entity at a time)::

    create / mutate / retire
        │
        ├── EntityLockManager.hold(entity_id)       bounded wait → LockTimeoutError
        │     └── backend.transaction()             BEGIN IMMEDIATE / BEGIN ... FOR UPDATE
        │           ├── ledger.get_latest()         state read under the lock
        │           ├── planner.plan_*()            pure decision or policy error
        │           └── ledger.<transition>()       rows written, invariants re-checked
        │
        └── commit, or rollback + ``mutation_rejected`` log on any LedgerError

Reads (``as_of``, ``current``, ``history``, ``diff``, ``known_as_of``) take
no entity lock.

Example:
    >>> from datetime import UTC, datetime, timedelta
    >>> clock = ManualClock(datetime(2026, 1, 15, tzinfo=UTC))
    >>> store = TemporalVersionStore(clock=clock)
    >>> _ = store.create("product-1", 100)
    >>> _ = store.mutate("product-1", 250, effective_at=clock.now() + timedelta(hours=1))
    >>> store.current("product-1")
    100
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from chronoledger.core.backends import InMemoryBackend, SqlLedgerBackend
from chronoledger.core.clock import Clock, SystemClock
from chronoledger.core.errors import EntityAlreadyExistsError, ErrorContext, LedgerError
from chronoledger.core.invariants import InvariantViolation, check_versions
from chronoledger.core.ledger import VersionLedger
from chronoledger.core.locks import EntityLockManager
from chronoledger.core.logging import get_logger
from chronoledger.core.models import MutationResult, PlanAction, Version, VersionChange
from chronoledger.core.planner import MutationPlan, MutationPlanner
from chronoledger.core.protocols import LedgerBackend
from chronoledger.core.query import PointInTimeQuery, VersionHistory
from chronoledger.core.settings import LedgerSettings
from chronoledger.core.timestamps import ensure_utc

logger = get_logger(__name__)


class TemporalVersionStore:
    """Bitemporal, append-only version store.

    Args:
        backend: Row storage; defaults to :class:`InMemoryBackend`.
        clock: Source of "now"; defaults to :class:`SystemClock`.
        settings: Policy and lock settings; defaults to ``LedgerSettings()``.
        locks: Per-entity lock manager; defaults to one built from *settings*.
    """

    def __init__(
        self,
        backend: LedgerBackend | None = None,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        locks: EntityLockManager | None = None,
    ) -> None:
        self.settings = settings or LedgerSettings()
        self.backend = backend if backend is not None else InMemoryBackend()
        self.clock = clock or SystemClock()
        self.locks = locks or EntityLockManager(
            timeout=self.settings.lock_timeout_seconds,
            stripes=self.settings.lock_stripes,
        )
        strict = self.settings.strict_continuity
        self.ledger = VersionLedger(self.backend, self.clock, strict_continuity=strict)
        self.planner = MutationPlanner(strict_continuity=strict)
        self.query = PointInTimeQuery(self.ledger, self.clock)

    @classmethod
    def from_settings(
        cls,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ) -> TemporalVersionStore:
        """Build a store with the backend *settings* name.

        For ``sqlite`` the database file (and its parent directory) is created
        if missing and the schema is ensured.
        """
        settings = settings or LedgerSettings()
        backend: LedgerBackend
        if settings.backend == "sqlite":
            database = settings.database
            if database != ":memory:":
                path = Path(database).expanduser()
                path.parent.mkdir(parents=True, exist_ok=True)
                database = str(path)
            conn = sqlite3.connect(
                database,
                timeout=settings.lock_timeout_seconds,
                check_same_thread=False,
            )
            sql_backend = SqlLedgerBackend(conn, lock_timeout_seconds=settings.lock_timeout_seconds)
            sql_backend.ensure_schema()
            backend = sql_backend
        else:
            backend = InMemoryBackend()
        return cls(backend=backend, clock=clock, settings=settings)

    # =========================================================================
    # WRITES
    # =========================================================================

    def create(self, entity_id: str, value: Any, valid_from: datetime | None = None) -> Version:
        """Create the first version of *entity_id*, ``[valid_from, OPEN)``.

        ``valid_from`` defaults to now.

        Raises:
            EntityAlreadyExistsError: the entity already has versions.
        """
        valid_from = self._instant(valid_from)
        with self._write("create", entity_id):
            latest = self.ledger.get_latest(entity_id)
            if latest is not None:
                raise EntityAlreadyExistsError(
                    f"Entity {entity_id!r} already exists; use mutate()",
                    context=ErrorContext(
                        entity_id=entity_id,
                        version_id=latest.id,
                        valid_from=latest.valid_from,
                        valid_to=latest.valid_to,
                        effective_at=valid_from,
                    ),
                )
            return self.ledger.append(entity_id, value, valid_from)

    def mutate(
        self, entity_id: str, value: Any, effective_at: datetime | None = None
    ) -> MutationResult:
        """Set *entity_id* to *value* from *effective_at* (default now) on."""
        effective_at = self._instant(effective_at)
        with self._write("mutate", entity_id):
            plan = self.planner.plan_mutation(
                self.ledger.get_latest(entity_id),
                entity_id,
                value,
                effective_at,
                now=self.clock.now(),
            )
            return self._apply(plan)

    def retire(self, entity_id: str, effective_at: datetime | None = None) -> MutationResult:
        """End *entity_id*'s value at *effective_at* (default now) with no successor."""
        effective_at = self._instant(effective_at)
        with self._write("retire", entity_id):
            plan = self.planner.plan_retirement(
                self.ledger.get_latest(entity_id),
                entity_id,
                effective_at,
                now=self.clock.now(),
            )
            return self._apply(plan)

    def _apply(self, plan: MutationPlan) -> MutationResult:
        action = plan.action
        if action is PlanAction.APPEND:
            created = self.ledger.append(plan.entity_id, plan.value, plan.effective_at)
            return MutationResult(action, created=created)
        if action is PlanAction.CLOSE_AND_APPEND:
            closed, created = self.ledger.close_and_append(
                plan.entity_id, plan.value, plan.effective_at
            )
            return MutationResult(action, created=created, closed=closed)
        if action is PlanAction.REPLACE_SCHEDULED:
            superseded, created = self.ledger.replace_scheduled(plan.target, plan.value)
            return MutationResult(action, created=created, superseded=superseded)
        if action is PlanAction.CLOSE:
            closed = self.ledger.close(plan.entity_id, plan.effective_at)
            return MutationResult(action, closed=closed)
        if action is PlanAction.CANCEL_SCHEDULED:
            superseded = self.ledger.cancel_scheduled(plan.target)
            return MutationResult(action, superseded=superseded)
        raise ValueError(f"Unknown plan action: {action!r}")

    @contextmanager
    def _write(self, operation: str, entity_id: str) -> Iterator[None]:
        try:
            with self.locks.hold(entity_id), self.backend.transaction():
                yield
        except LedgerError as e:
            logger.warning("mutation_rejected", operation=operation, entity_id=entity_id, **e.to_dict())
            raise

    def _instant(self, when: datetime | None) -> datetime:
        return self.clock.now() if when is None else ensure_utc(when)

    # =========================================================================
    # READS
    # =========================================================================

    def as_of(self, entity_id: str, instant: datetime) -> Any | None:
        return self.query.as_of(entity_id, instant)

    def version_at(self, entity_id: str, instant: datetime) -> Version | None:
        return self.query.version_at(entity_id, instant)

    def current(self, entity_id: str) -> Any | None:
        return self.query.current(entity_id)

    def current_version(self, entity_id: str) -> Version | None:
        return self.query.current_version(entity_id)

    def history(self, entity_id: str) -> VersionHistory:
        return self.query.history(entity_id)

    def diff(self, entity_id: str, start: datetime, end: datetime) -> list[VersionChange]:
        return self.query.diff(entity_id, start, end)

    def known_as_of(self, entity_id: str, instant: datetime, recorded_at: datetime) -> Any | None:
        return self.query.known_as_of(entity_id, instant, recorded_at)

    def get_open(self, entity_id: str) -> Version | None:
        return self.ledger.get_open(entity_id)

    def get_all(self, entity_id: str, *, include_superseded: bool = False) -> list[Version]:
        return self.ledger.get_all(entity_id, include_superseded=include_superseded)

    def entity_ids(self) -> list[str]:
        return list(self.ledger.entity_ids())

    def close(self) -> None:
        """Release the backend's connection, if it holds one."""
        disconnect = getattr(self.backend, "disconnect", None)
        if disconnect is not None:
            disconnect()

    def __enter__(self) -> TemporalVersionStore:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def verify(self, entity_id: str | None = None) -> list[InvariantViolation]:
        """Invariant violations for one entity, or across the whole ledger."""
        entity_ids = [entity_id] if entity_id is not None else self.entity_ids()
        violations: list[InvariantViolation] = []
        for eid in entity_ids:
            violations.extend(
                check_versions(
                    self.ledger.get_all(eid),
                    strict_continuity=self.settings.strict_continuity,
                )
            )
        return violations


__all__ = ["TemporalVersionStore"]
