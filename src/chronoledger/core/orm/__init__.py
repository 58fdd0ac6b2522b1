"""SQLAlchemy integration for the version ledger.

Usage::

    from chronoledger.core.orm import (
        LedgerBase, VersionTable, create_ledger_engine, ledger_session_factory,
    )

    engine = create_ledger_engine("sqlite:///ledger.db")
    LedgerBase.metadata.create_all(engine)
    with ledger_session_factory(engine)() as session:
        backend = SqlLedgerBackend.from_session(session)
"""

from chronoledger.core.orm.base import LedgerBase
from chronoledger.core.orm.session import (
    LedgerSession,
    SAConnectionBridge,
    create_ledger_engine,
    ledger_session_factory,
)
from chronoledger.core.orm.tables import VersionTable

__all__ = [
    "LedgerBase",
    "LedgerSession",
    "SAConnectionBridge",
    "VersionTable",
    "create_ledger_engine",
    "ledger_session_factory",
]
