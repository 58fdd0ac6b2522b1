"""chrono-ledger core -- temporal version store primitives.

Architecture::

    Layer 1 -- Types & Errors
        errors.py        Structured error hierarchy (LedgerError, ...)
        timestamps.py    ULID generation + UTC helpers
        clock.py         Injectable Clock (SystemClock, ManualClock)
        interval.py      Half-open Interval, OPEN marker, predicates
        models.py        Version, HistoryEntry, VersionChange, MutationResult

    Layer 2 -- Storage
        protocols.py     Connection + LedgerBackend protocols
        dialect.py       SQLite / PostgreSQL SQL fragments
        repository.py    BaseRepository with dialect-aware helpers
        schema.py        ledger_versions DDL
        backends/        InMemoryBackend, SqlLedgerBackend
        orm/             Optional SQLAlchemy mapping + session bridge

    Layer 3 -- Ledger
        invariants.py    Non-overlap / single-open / continuity checks
        ledger.py        VersionLedger (write-once transitions)
        planner.py       MutationPlanner (which transition a request needs)
        query.py         PointInTimeQuery (as_of, history, diff, known_as_of)
        locks.py         EntityLockManager (striped per-entity locks)

    Layer 4 -- Facade & Ambient
        store.py         TemporalVersionStore
        settings.py      LedgerSettings (pydantic-settings)
        logging.py       structlog configuration
"""

from chronoledger.core.backends import InMemoryBackend, SqlLedgerBackend
from chronoledger.core.clock import Clock, ManualClock, SystemClock
from chronoledger.core.errors import (
    BackdatedBeforeCurrentVersionError,
    ContinuityViolationError,
    EntityAlreadyExistsError,
    EntityNotFoundError,
    ErrorCategory,
    ErrorContext,
    ImmutableVersionError,
    IntegrityError,
    InvalidIntervalError,
    InvalidTimestampError,
    LedgerError,
    LockTimeoutError,
    MultipleOpenVersionsError,
    NoOpOrUseCorrectionPathError,
    OverlappingVersionError,
    PolicyError,
    StorageUnavailableError,
    ValidationError,
    VersionAlreadyClosedError,
    is_retryable,
)
from chronoledger.core.interval import OPEN, Interval, adjacent, contains, overlaps
from chronoledger.core.invariants import InvariantViolation, ViolationKind, check_versions
from chronoledger.core.ledger import VersionLedger
from chronoledger.core.locks import EntityLockManager
from chronoledger.core.models import (
    HistoryEntry,
    MutationResult,
    PlanAction,
    Version,
    VersionChange,
)
from chronoledger.core.planner import MutationPlan, MutationPlanner
from chronoledger.core.query import PointInTimeQuery, VersionHistory
from chronoledger.core.settings import LedgerSettings
from chronoledger.core.store import TemporalVersionStore

__all__ = [
    # errors
    "LedgerError",
    "ErrorCategory",
    "ErrorContext",
    "ValidationError",
    "InvalidIntervalError",
    "InvalidTimestampError",
    "EntityAlreadyExistsError",
    "PolicyError",
    "BackdatedBeforeCurrentVersionError",
    "NoOpOrUseCorrectionPathError",
    "ContinuityViolationError",
    "IntegrityError",
    "OverlappingVersionError",
    "MultipleOpenVersionsError",
    "ImmutableVersionError",
    "VersionAlreadyClosedError",
    "EntityNotFoundError",
    "LockTimeoutError",
    "StorageUnavailableError",
    "is_retryable",
    # time
    "Clock",
    "SystemClock",
    "ManualClock",
    "OPEN",
    "Interval",
    "overlaps",
    "adjacent",
    "contains",
    # records
    "Version",
    "HistoryEntry",
    "VersionChange",
    "PlanAction",
    "MutationResult",
    # storage
    "InMemoryBackend",
    "SqlLedgerBackend",
    # ledger
    "InvariantViolation",
    "ViolationKind",
    "check_versions",
    "VersionLedger",
    "MutationPlan",
    "MutationPlanner",
    "PointInTimeQuery",
    "VersionHistory",
    "EntityLockManager",
    # facade
    "LedgerSettings",
    "TemporalVersionStore",
]
