"""Storage backends for the version ledger.

Both implement :class:`~chronoledger.core.protocols.LedgerBackend`:

* :class:`InMemoryBackend`  -- dict-backed, for tests and single-process use
* :class:`SqlLedgerBackend` -- SQLite / PostgreSQL via a DB-API connection or
  a SQLAlchemy session
"""

from chronoledger.core.backends.memory import InMemoryBackend
from chronoledger.core.backends.sql import SqlLedgerBackend

__all__ = ["InMemoryBackend", "SqlLedgerBackend"]
