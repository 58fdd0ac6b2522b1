"""
Structured error types for the chrono-ledger version store.

Every failure the store can report is a typed ``LedgerError`` carrying the
metadata a caller needs to decide what to do next: a category for routing,
an explicit retry flag, and an ``ErrorContext`` naming the entity, version
and interval involved.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        LedgerError                               │
        │  (category, retryable, retry_after, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │  ValidationError         PolicyError             IntegrityError  │
        │  (VALIDATION)            (POLICY)                (INTEGRITY)     │
        │      │                       │                       │           │
        │  InvalidIntervalError    BackdatedBefore...      OverlappingVer..│
        │  InvalidTimestampError   NoOpOrUseCorrection...  MultipleOpen... │
        │  EntityAlreadyExists..   ContinuityViolation...  ImmutableVersion│
        │                                                  VersionAlready..│
        │  LockTimeoutError        StorageUnavailableError EntityNotFound..│
        │  (CONCURRENCY, retry)    (STORAGE)               (NOT_FOUND)     │
        └─────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Raise bare ValueError for ledger rule violations
    ✅ DO: Raise the matching LedgerError subclass with context

    ❌ DON'T: Retry policy or integrity errors
    ✅ DO: Retry only what ``is_retryable`` reports (LockTimeoutError)

    ❌ DON'T: Swallow driver exceptions
    ✅ DO: Pass them as ``cause=`` when translating to StorageUnavailableError

Usage:
    from chronoledger.core.errors import LockTimeoutError, is_retryable

    try:
        store.mutate("product-1", 250, effective_at=t)
    except LedgerError as e:
        if is_retryable(e):
            schedule_retry(after=e.retry_after)
        raise
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        VALIDATION: Malformed input (bad interval bounds, naive timestamps)
        POLICY: Well-formed request refused by a ledger rule
        INTEGRITY: A write would break non-overlap / single-open / immutability
        CONCURRENCY: Contention on the same entity
        STORAGE: Durable store failed
        NOT_FOUND: Entity or version does not exist
        INTERNAL: Bugs, unexpected state
    """

    VALIDATION = "VALIDATION"
    POLICY = "POLICY"
    INTEGRITY = "INTEGRITY"
    CONCURRENCY = "CONCURRENCY"
    STORAGE = "STORAGE"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to a ledger error.

    Only fields that are set are emitted by ``to_dict()``, so the result can
    be passed straight into a structured log call.
    """

    entity_id: str | None = None
    version_id: str | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    effective_at: datetime | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["entity_id", "version_id", "valid_from", "valid_to", "effective_at"]:
            value = getattr(self, key)
            if value is None:
                continue
            result[key] = value.isoformat() if isinstance(value, datetime) else value
        if self.metadata:
            result.update(self.metadata)
        return result


class LedgerError(Exception):
    """
    Base exception for all chrono-ledger errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override either per instance.

    Args:
        message: Human-readable error message
        category: Error category (defaults to class default)
        retryable: Whether the operation can be retried (defaults to class default)
        retry_after: Seconds to wait before retry (optional)
        context: Structured error context
        cause: Underlying exception (for chaining)
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: float | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> LedgerError:
        """Add context fields; unknown keys go to ``metadata``. Returns self for chaining."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for logging or an API response."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS (caller bugs, never retryable)
# =============================================================================


class ValidationError(LedgerError):
    """Malformed input rejected before anything touches storage."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class InvalidIntervalError(ValidationError):
    """Interval bounds are not ordered (``valid_from >= valid_to``)."""


class InvalidTimestampError(ValidationError):
    """Timestamp is naive or otherwise unusable."""


class EntityAlreadyExistsError(ValidationError):
    """First-append attempted on an entity that already has a live or overlapping version."""


# =============================================================================
# POLICY ERRORS (refused mutations, never retryable)
# =============================================================================


class PolicyError(LedgerError):
    """A well-formed request refused by a ledger rule."""

    default_category = ErrorCategory.POLICY
    default_retryable = False


class BackdatedBeforeCurrentVersionError(PolicyError):
    """Mutation would retroactively split or rewrite already-recorded history."""


class NoOpOrUseCorrectionPathError(PolicyError):
    """Mutation is effective exactly at the start of an already-effective version.

    Changing that version's value is a correction, which needs a separate,
    audited operation; the forward mutation path refuses it.
    """


class ContinuityViolationError(PolicyError):
    """Strict-continuity mode refused a write that would leave a temporal gap."""


# =============================================================================
# INTEGRITY ERRORS
# =============================================================================


class IntegrityError(LedgerError):
    """A write would break a ledger invariant; the transaction is aborted."""

    default_category = ErrorCategory.INTEGRITY
    default_retryable = False


class OverlappingVersionError(IntegrityError):
    """Two versions of one entity would share an instant."""


class MultipleOpenVersionsError(IntegrityError):
    """More than one version of one entity would be open."""


class ImmutableVersionError(IntegrityError):
    """Attempt to alter a version whose history is fixed."""


class VersionAlreadyClosedError(ImmutableVersionError):
    """Attempt to close a version whose ``valid_to`` is already finite."""


# =============================================================================
# NOT FOUND / CONCURRENCY / STORAGE
# =============================================================================


class EntityNotFoundError(LedgerError):
    """Entity has no version the operation can act on."""

    default_category = ErrorCategory.NOT_FOUND
    default_retryable = False


class LockTimeoutError(LedgerError):
    """Per-entity lock could not be acquired within the bounded wait.

    The only retryable ledger error; callers retry with backoff.
    """

    default_category = ErrorCategory.CONCURRENCY
    default_retryable = True


class StorageUnavailableError(LedgerError):
    """Underlying durable store failed. Fatal to the current operation."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


# =============================================================================
# HELPERS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable. Non-ledger errors are not."""
    if isinstance(error, LedgerError):
        return error.retryable
    return False


def get_retry_after(error: Exception) -> float | None:
    """Get retry delay from error if available."""
    if isinstance(error, LedgerError):
        return error.retry_after
    return None


def categorize_error(error: Exception) -> ErrorCategory:
    """Categorize any exception; unknown exceptions are INTERNAL."""
    if isinstance(error, LedgerError):
        return error.category
    return ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "LedgerError",
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
    "get_retry_after",
    "categorize_error",
]
