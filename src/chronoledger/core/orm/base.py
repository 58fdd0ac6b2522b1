"""Declarative base for the ledger's ORM models.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``.
Timestamps map to ``Text`` rather than ``DateTime``: the ledger stores
fixed-width UTC ISO text (see ``chronoledger.core.timestamps``) so the ORM
and raw-SQL paths read and write identical rows on every dialect.
"""

from __future__ import annotations

from sqlalchemy import Text
from sqlalchemy.orm import DeclarativeBase


class LedgerBase(DeclarativeBase):
    """Shared declarative base for chrono-ledger tables.

    * ``str`` → ``Text``
    """

    type_annotation_map = {
        str: Text,
    }
