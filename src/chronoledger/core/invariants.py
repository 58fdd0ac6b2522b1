"""Ledger invariant checks.

Applied to the live (non-superseded) versions of one entity:

- OVERLAP        no two intervals share an instant
- MULTIPLE_OPEN  at most one version has ``valid_to == OPEN``
- GAP            consecutive versions are adjacent (strict continuity only)

The ledger calls :func:`assert_valid` inside every write transaction; the
store exposes :func:`check_versions` read-only through ``verify()``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from chronoledger.core.errors import (
    ContinuityViolationError,
    ErrorContext,
    LedgerError,
    MultipleOpenVersionsError,
    OverlappingVersionError,
)
from chronoledger.core.interval import overlaps
from chronoledger.core.models import Version


class ViolationKind(str, Enum):
    OVERLAP = "overlap"
    MULTIPLE_OPEN = "multiple_open"
    GAP = "gap"


@dataclass(frozen=True, slots=True)
class InvariantViolation:
    kind: ViolationKind
    entity_id: str
    version_ids: tuple[str, ...]
    detail: str


def check_versions(
    versions: Iterable[Version],
    *,
    strict_continuity: bool = False,
) -> list[InvariantViolation]:
    """Return every invariant violation among *versions* (one entity)."""
    live = sorted(
        (v for v in versions if not v.is_superseded),
        key=lambda v: (v.valid_from, v.created_at),
    )
    violations: list[InvariantViolation] = []

    open_versions = [v for v in live if v.is_open]
    if len(open_versions) > 1:
        violations.append(
            InvariantViolation(
                kind=ViolationKind.MULTIPLE_OPEN,
                entity_id=open_versions[0].entity_id,
                version_ids=tuple(v.id for v in open_versions),
                detail=f"{len(open_versions)} open versions",
            )
        )

    # Sorted by start, so any overlap shows up between neighbours.
    for prev, nxt in zip(live, live[1:], strict=False):
        if overlaps(prev.interval, nxt.interval):
            violations.append(
                InvariantViolation(
                    kind=ViolationKind.OVERLAP,
                    entity_id=prev.entity_id,
                    version_ids=(prev.id, nxt.id),
                    detail=f"{prev.interval} overlaps {nxt.interval}",
                )
            )
        elif strict_continuity and prev.valid_to != nxt.valid_from:
            violations.append(
                InvariantViolation(
                    kind=ViolationKind.GAP,
                    entity_id=prev.entity_id,
                    version_ids=(prev.id, nxt.id),
                    detail=f"gap between {prev.interval} and {nxt.interval}",
                )
            )

    return violations


_ERRORS: dict[ViolationKind, type[LedgerError]] = {
    ViolationKind.OVERLAP: OverlappingVersionError,
    ViolationKind.MULTIPLE_OPEN: MultipleOpenVersionsError,
    ViolationKind.GAP: ContinuityViolationError,
}


def assert_valid(versions: Iterable[Version], *, strict_continuity: bool = False) -> None:
    """Raise the typed error for the first violation found, if any."""
    violations = check_versions(versions, strict_continuity=strict_continuity)
    if not violations:
        return
    first = violations[0]
    raise _ERRORS[first.kind](
        f"Invariant violated for entity {first.entity_id!r}: {first.detail}",
        context=ErrorContext(
            entity_id=first.entity_id,
            metadata={"version_ids": list(first.version_ids), "violation": first.kind.value},
        ),
    )


__all__ = ["ViolationKind", "InvariantViolation", "check_versions", "assert_valid"]
