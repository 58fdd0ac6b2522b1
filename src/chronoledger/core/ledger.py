"""Version Ledger - append-mostly storage of versions with write-time invariants.

Every successful write appends at most one row. The only changes ever made
to an existing row are write-once transitions:

- ``valid_to``: OPEN → finite (with ``closed_at``), via ``close``
- ``superseded_at``: NULL → set, via ``replace_scheduled`` / ``cancel_scheduled``

``value``, ``valid_from`` and ``entity_id`` are never updated. Each write
runs inside ``backend.transaction()`` and re-checks the entity's invariants
before the transaction ends; a violation raises and the transaction rolls
back, so a broken ledger state is never committed.

Example:
    ledger = VersionLedger(InMemoryBackend(), clock)
    first = ledger.append("product-1", 100, t0)
    closed, new = ledger.close_and_append("product-1", 250, t0 + timedelta(hours=1))
    assert closed.valid_to == new.valid_from
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator
from datetime import datetime
from typing import Any

from chronoledger.core.clock import Clock
from chronoledger.core.errors import (
    BackdatedBeforeCurrentVersionError,
    EntityAlreadyExistsError,
    EntityNotFoundError,
    ErrorContext,
    ImmutableVersionError,
    NoOpOrUseCorrectionPathError,
    VersionAlreadyClosedError,
)
from chronoledger.core.interval import OPEN, Interval, overlaps
from chronoledger.core.invariants import assert_valid
from chronoledger.core.logging import get_logger
from chronoledger.core.models import Version
from chronoledger.core.protocols import LedgerBackend
from chronoledger.core.timestamps import ensure_utc, generate_ulid

logger = get_logger(__name__)


class VersionLedger:
    """Invariant-enforcing writes and ordered reads over a :class:`LedgerBackend`.

    The ledger applies row transitions; it does not decide which transition
    a request needs (that is :class:`~chronoledger.core.planner.MutationPlanner`).
    """

    def __init__(
        self,
        backend: LedgerBackend,
        clock: Clock,
        *,
        strict_continuity: bool = False,
    ) -> None:
        self.backend = backend
        self.clock = clock
        self.strict_continuity = strict_continuity

    # =========================================================================
    # WRITES
    # =========================================================================

    def append(self, entity_id: str, value: Any, valid_from: datetime) -> Version:
        """Insert ``[valid_from, OPEN)`` for an entity with no open or overlapping version.

        Used for the first version of an entity and to reopen a retired one.

        Raises:
            EntityAlreadyExistsError: an open version exists, or a live version
                overlaps ``[valid_from, OPEN)``.
        """
        interval = Interval(ensure_utc(valid_from))
        with self.backend.transaction():
            for existing in self.backend.fetch_all(entity_id):
                if existing.is_open or overlaps(existing.interval, interval):
                    raise EntityAlreadyExistsError(
                        f"Entity {entity_id!r} already has version {existing.id} "
                        f"covering {existing.interval}",
                        context=ErrorContext(
                            entity_id=entity_id,
                            version_id=existing.id,
                            valid_from=existing.valid_from,
                            valid_to=existing.valid_to,
                            effective_at=interval.valid_from,
                        ),
                    )
            version = self._insert(entity_id, value, interval)
            self._validate(entity_id)
        return version

    def close_and_append(
        self, entity_id: str, new_value: Any, effective_at: datetime
    ) -> tuple[Version, Version]:
        """Close the open version at *effective_at* and open its successor there.

        Returns:
            ``(closed, new)`` with ``closed.valid_to == new.valid_from``.

        Raises:
            EntityNotFoundError: the entity has no open version.
            NoOpOrUseCorrectionPathError: *effective_at* is the open version's start.
            BackdatedBeforeCurrentVersionError: *effective_at* precedes that start.
            VersionAlreadyClosedError: the open version was closed concurrently.
        """
        effective_at = ensure_utc(effective_at)
        with self.backend.transaction():
            current = self._require_open(entity_id, effective_at)
            self._require_forward(current, effective_at)
            closed = self._close(current, effective_at)
            new = self._insert(entity_id, new_value, Interval(effective_at))
            self._validate(entity_id)
        return closed, new

    def close(self, entity_id: str, effective_at: datetime) -> Version:
        """Close the open version at *effective_at* with no successor (retirement)."""
        effective_at = ensure_utc(effective_at)
        with self.backend.transaction():
            current = self._require_open(entity_id, effective_at)
            self._require_forward(current, effective_at)
            closed = self._close(current, effective_at)
            self._validate(entity_id)
        return closed

    def close_version(self, version_id: str, valid_to: datetime) -> Version:
        """Close a specific version.

        Raises:
            EntityNotFoundError: no such version.
            VersionAlreadyClosedError: the version is closed or superseded;
                nothing is changed.
        """
        valid_to = ensure_utc(valid_to)
        with self.backend.transaction():
            current = self.backend.fetch(version_id)
            if current is None:
                raise EntityNotFoundError(
                    f"Version {version_id!r} does not exist",
                    context=ErrorContext(version_id=version_id),
                )
            closed = self._close(current, valid_to)
            self._validate(current.entity_id)
        return closed

    def replace_scheduled(self, version: Version, value: Any) -> tuple[Version, Version]:
        """Supersede a not-yet-effective version with one holding *value*.

        The replacement covers the same interval.

        Returns:
            ``(superseded, replacement)``.

        Raises:
            ImmutableVersionError: the version has started or is already superseded.
        """
        with self.backend.transaction():
            current = self._require_scheduled(version.id)
            superseded = self._supersede(current)
            replacement = self._insert(
                current.entity_id, value, Interval(current.valid_from, current.valid_to)
            )
            self._validate(current.entity_id)
        return superseded, replacement

    def cancel_scheduled(self, version: Version) -> Version:
        """Supersede a not-yet-effective version without replacement."""
        with self.backend.transaction():
            current = self._require_scheduled(version.id)
            superseded = self._supersede(current)
            self._validate(current.entity_id)
        return superseded

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, version_id: str) -> Version | None:
        return self.backend.fetch(version_id)

    def get_open(self, entity_id: str) -> Version | None:
        """The entity's open version, if any.

        May be scheduled (``valid_from`` in the future); "current" relative to
        the clock is the query engine's concern.
        """
        return self.backend.fetch_open(entity_id)

    def get_all(self, entity_id: str, *, include_superseded: bool = False) -> list[Version]:
        """All versions of *entity_id*, oldest ``valid_from`` first."""
        return self.backend.fetch_all(entity_id, include_superseded=include_superseded)

    def get_latest(self, entity_id: str) -> Version | None:
        """The live version with the greatest ``valid_from``, open or not."""
        versions = self.get_all(entity_id)
        return versions[-1] if versions else None

    def entity_ids(self) -> Iterator[str]:
        return self.backend.entity_ids()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _insert(self, entity_id: str, value: Any, interval: Interval) -> Version:
        now = self.clock.now()
        version = Version(
            id=generate_ulid(),
            entity_id=entity_id,
            value=value,
            valid_from=interval.valid_from,
            valid_to=interval.valid_to,
            created_at=now,
            closed_at=None if interval.is_open else now,
        )
        self.backend.insert(version)
        logger.info(
            "version_created",
            entity_id=entity_id,
            version_id=version.id,
            interval=interval,
        )
        return version

    def _require_open(self, entity_id: str, effective_at: datetime) -> Version:
        current = self.backend.fetch_open(entity_id, for_update=True)
        if current is None:
            raise EntityNotFoundError(
                f"Entity {entity_id!r} has no open version",
                context=ErrorContext(entity_id=entity_id, effective_at=effective_at),
            )
        return current

    def _require_forward(self, current: Version, effective_at: datetime) -> None:
        if effective_at > current.valid_from:
            return
        context = ErrorContext(
            entity_id=current.entity_id,
            version_id=current.id,
            valid_from=current.valid_from,
            valid_to=current.valid_to,
            effective_at=effective_at,
        )
        if effective_at == current.valid_from:
            raise NoOpOrUseCorrectionPathError(
                f"Version {current.id} of {current.entity_id!r} already starts at "
                f"{effective_at.isoformat()}; changing it is a correction",
                context=context,
            )
        raise BackdatedBeforeCurrentVersionError(
            f"Change to {current.entity_id!r} at {effective_at.isoformat()} precedes "
            f"version {current.id} starting {current.valid_from.isoformat()}",
            context=context,
        )

    def _require_scheduled(self, version_id: str) -> Version:
        current = self.backend.fetch(version_id)
        now = self.clock.now()
        if current is None or current.is_superseded or current.is_effective(now):
            context = ErrorContext(version_id=version_id)
            if current is not None:
                context = ErrorContext(
                    entity_id=current.entity_id,
                    version_id=version_id,
                    valid_from=current.valid_from,
                    valid_to=current.valid_to,
                )
            raise ImmutableVersionError(
                f"Version {version_id!r} is not a pending scheduled version",
                context=context,
            )
        return current

    def _close(self, current: Version, valid_to: datetime) -> Version:
        context = ErrorContext(
            entity_id=current.entity_id,
            version_id=current.id,
            valid_from=current.valid_from,
            valid_to=current.valid_to,
            effective_at=valid_to,
        )
        if not current.is_open or current.is_superseded:
            raise VersionAlreadyClosedError(
                f"Version {current.id} of {current.entity_id!r} is already closed",
                context=context,
            )
        # Raises InvalidIntervalError unless valid_to > valid_from.
        current.interval.closed_at(valid_to)

        now = self.clock.now()
        if not self.backend.close(current.id, valid_to, now):
            raise VersionAlreadyClosedError(
                f"Version {current.id} of {current.entity_id!r} was closed concurrently",
                context=context,
            )
        logger.info(
            "version_closed",
            entity_id=current.entity_id,
            version_id=current.id,
            valid_to=valid_to,
        )
        return dataclasses.replace(current, valid_to=valid_to, closed_at=now)

    def _supersede(self, current: Version) -> Version:
        now = self.clock.now()
        if not self.backend.supersede(current.id, now):
            raise ImmutableVersionError(
                f"Version {current.id} of {current.entity_id!r} was superseded concurrently",
                context=ErrorContext(entity_id=current.entity_id, version_id=current.id),
            )
        logger.info(
            "version_superseded",
            entity_id=current.entity_id,
            version_id=current.id,
            valid_from=current.valid_from,
        )
        return dataclasses.replace(current, superseded_at=now)

    def _validate(self, entity_id: str) -> None:
        assert_valid(self.backend.fetch_all(entity_id), strict_continuity=self.strict_continuity)


__all__ = ["VersionLedger"]
