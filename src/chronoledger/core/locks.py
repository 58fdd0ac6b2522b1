"""Per-entity locking for the read-plan-write sequence.

Two mutations of the same entity must not both read the same open version
and both close it. ``EntityLockManager`` serialises them in-process with a
fixed pool of striped mutexes keyed by ``entity_id``; storage-level locking
(``BEGIN IMMEDIATE`` / ``FOR UPDATE``) covers other processes.

Example::

    locks = EntityLockManager(timeout=2.0)
    with locks.hold("product-1"):
        ...  # read open version, close it, insert successor

Waiting longer than ``timeout`` raises :class:`LockTimeoutError`, which is
retryable.
"""

from __future__ import annotations

import threading
import zlib
from collections.abc import Iterator
from contextlib import contextmanager

from chronoledger.core.errors import ErrorContext, LockTimeoutError
from chronoledger.core.logging import get_logger

logger = get_logger(__name__)


class EntityLockManager:
    """Striped re-entrant locks keyed by entity id.

    Distinct entities may share a stripe; that only costs contention, never
    correctness. Locks are re-entrant so a holder may call back into the
    ledger for the same entity.
    """

    def __init__(self, timeout: float = 5.0, stripes: int = 64) -> None:
        if stripes < 1:
            raise ValueError("stripes must be >= 1")
        if timeout < 0:
            raise ValueError("timeout must be >= 0")
        self.timeout = timeout
        self._stripes = [threading.RLock() for _ in range(stripes)]

    def _stripe(self, entity_id: str) -> threading.RLock:
        # crc32: stable across processes.
        return self._stripes[zlib.crc32(entity_id.encode("utf-8")) % len(self._stripes)]

    @contextmanager
    def hold(self, entity_id: str, timeout: float | None = None) -> Iterator[None]:
        """Hold the lock for *entity_id* for the duration of the block."""
        wait = self.timeout if timeout is None else timeout
        lock = self._stripe(entity_id)
        if not lock.acquire(timeout=wait):
            logger.warning("lock_timeout", entity_id=entity_id, wait_seconds=wait)
            raise LockTimeoutError(
                f"Could not lock entity {entity_id!r} within {wait}s",
                retry_after=wait,
                context=ErrorContext(entity_id=entity_id),
            )
        try:
            yield
        finally:
            lock.release()


__all__ = ["EntityLockManager"]
