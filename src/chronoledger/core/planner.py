"""Mutation Planner - decide which ledger transition a request needs.

Given the entity's latest live version ``L`` and a request effective at
``T``, the planner returns a :class:`MutationPlan` or raises a policy error.
It reads nothing and writes nothing; the store feeds it state read under
the entity lock and applies the plan through the ledger.

Mutation (new value effective at ``T``)::

    no L                                → APPEND
    L open,   T <  L.valid_from         → BackdatedBeforeCurrentVersionError
    L open,   T == L.valid_from
              and L not yet effective   → REPLACE_SCHEDULED
              and L already effective   → NoOpOrUseCorrectionPathError
    L open,   T >  L.valid_from         → CLOSE_AND_APPEND
    L closed, T >= L.valid_to           → APPEND (reopen; a gap is refused
                                          in strict-continuity mode)
    L closed, T == L.valid_from and L not yet effective → REPLACE_SCHEDULED
    L closed, T == L.valid_from, already effective → NoOpOrUseCorrectionPathError
    L closed, L.valid_from < T < L.valid_to → EntityAlreadyExistsError (overlap)
    L closed, T <  L.valid_from         → BackdatedBeforeCurrentVersionError

Retirement (no value from ``T`` on)::

    no open version                     → EntityNotFoundError
    T >  L.valid_from                   → CLOSE
    T == L.valid_from, not yet effective → CANCEL_SCHEDULED
    T == L.valid_from, already effective → NoOpOrUseCorrectionPathError
    T <  L.valid_from                   → BackdatedBeforeCurrentVersionError

Applying the checks to the latest version whether or not it has started
means repeated requests for the same future instant replace the pending
version instead of stacking a second one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from chronoledger.core.errors import (
    BackdatedBeforeCurrentVersionError,
    ContinuityViolationError,
    EntityAlreadyExistsError,
    EntityNotFoundError,
    ErrorContext,
    NoOpOrUseCorrectionPathError,
)
from chronoledger.core.models import PlanAction, Version
from chronoledger.core.timestamps import ensure_utc


@dataclass(frozen=True, slots=True)
class MutationPlan:
    """A decided ledger transition.

    ``target`` is the existing version the action operates on (closed,
    superseded) or ``None`` for a plain append.
    """

    action: PlanAction
    entity_id: str
    effective_at: datetime
    value: Any = None
    target: Version | None = None


def _context(entity_id: str, latest: Version | None, effective_at: datetime) -> ErrorContext:
    if latest is None:
        return ErrorContext(entity_id=entity_id, effective_at=effective_at)
    return ErrorContext(
        entity_id=entity_id,
        version_id=latest.id,
        valid_from=latest.valid_from,
        valid_to=latest.valid_to,
        effective_at=effective_at,
    )


class MutationPlanner:
    """Pure decision logic for mutations and retirements."""

    def __init__(self, strict_continuity: bool = False) -> None:
        self.strict_continuity = strict_continuity

    def plan_mutation(
        self,
        latest: Version | None,
        entity_id: str,
        value: Any,
        effective_at: datetime,
        now: datetime,
    ) -> MutationPlan:
        """Plan setting *entity_id* to *value* from *effective_at* on.

        Args:
            latest: The entity's latest live (non-superseded) version.
            now: Current instant, to tell scheduled versions from started ones.
        """
        effective_at = ensure_utc(effective_at)
        now = ensure_utc(now)

        if latest is None:
            return MutationPlan(PlanAction.APPEND, entity_id, effective_at, value)

        if latest.is_open:
            if effective_at > latest.valid_from:
                return MutationPlan(
                    PlanAction.CLOSE_AND_APPEND, entity_id, effective_at, value, latest
                )
            if effective_at == latest.valid_from:
                return self._replace_or_refuse(latest, entity_id, value, effective_at, now)
            raise self._backdated(latest, entity_id, effective_at)

        # Retired: no open version.
        if effective_at >= latest.valid_to:
            if self.strict_continuity and effective_at > latest.valid_to:
                raise ContinuityViolationError(
                    f"Reopening {entity_id!r} at {effective_at.isoformat()} would leave a gap "
                    f"after {latest.valid_to.isoformat()}",
                    context=_context(entity_id, latest, effective_at),
                )
            return MutationPlan(PlanAction.APPEND, entity_id, effective_at, value)
        if effective_at == latest.valid_from:
            return self._replace_or_refuse(latest, entity_id, value, effective_at, now)
        if effective_at > latest.valid_from:
            raise EntityAlreadyExistsError(
                f"Entity {entity_id!r} already has version {latest.id} covering "
                f"{latest.interval}; a version from {effective_at.isoformat()} would overlap it",
                context=_context(entity_id, latest, effective_at),
            )
        raise self._backdated(latest, entity_id, effective_at)

    def plan_retirement(
        self,
        latest: Version | None,
        entity_id: str,
        effective_at: datetime,
        now: datetime,
    ) -> MutationPlan:
        """Plan ending *entity_id*'s value at *effective_at* with no successor."""
        effective_at = ensure_utc(effective_at)
        now = ensure_utc(now)

        if latest is None or not latest.is_open:
            raise EntityNotFoundError(
                f"Entity {entity_id!r} has no open version to retire",
                context=_context(entity_id, latest, effective_at),
            )
        if effective_at > latest.valid_from:
            return MutationPlan(PlanAction.CLOSE, entity_id, effective_at, target=latest)
        if effective_at == latest.valid_from:
            if not latest.is_effective(now):
                return MutationPlan(
                    PlanAction.CANCEL_SCHEDULED, entity_id, effective_at, target=latest
                )
            raise NoOpOrUseCorrectionPathError(
                f"Retiring {entity_id!r} at the start of its current version erases it; "
                f"use a correction",
                context=_context(entity_id, latest, effective_at),
            )
        raise self._backdated(latest, entity_id, effective_at)

    def _replace_or_refuse(
        self,
        latest: Version,
        entity_id: str,
        value: Any,
        effective_at: datetime,
        now: datetime,
    ) -> MutationPlan:
        if not latest.is_effective(now):
            return MutationPlan(
                PlanAction.REPLACE_SCHEDULED, entity_id, effective_at, value, latest
            )
        raise NoOpOrUseCorrectionPathError(
            f"Version {latest.id} of {entity_id!r} already starts at "
            f"{effective_at.isoformat()}; changing its value is a correction",
            context=_context(entity_id, latest, effective_at),
        )

    def _backdated(
        self, latest: Version, entity_id: str, effective_at: datetime
    ) -> BackdatedBeforeCurrentVersionError:
        return BackdatedBeforeCurrentVersionError(
            f"Change to {entity_id!r} at {effective_at.isoformat()} precedes "
            f"version {latest.id} starting {latest.valid_from.isoformat()}",
            context=_context(entity_id, latest, effective_at),
        )


__all__ = ["MutationPlan", "MutationPlanner"]
