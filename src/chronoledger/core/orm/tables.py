"""ORM mapping of the ``ledger_versions`` table.

Mirrors the DDL in :mod:`chronoledger.core.schema` column for column, so
``LedgerBase.metadata.create_all(engine)`` and ``create_schema(conn)``
produce interchangeable tables.
"""

from __future__ import annotations

import json

from sqlalchemy import Index
from sqlalchemy.orm import Mapped, mapped_column

from chronoledger.core.models import Version
from chronoledger.core.orm.base import LedgerBase
from chronoledger.core.schema import TABLE_NAME
from chronoledger.core.timestamps import from_iso8601


class VersionTable(LedgerBase):
    """One persisted version row."""

    __tablename__ = TABLE_NAME

    id: Mapped[str] = mapped_column(primary_key=True)
    entity_id: Mapped[str] = mapped_column(nullable=False)
    value: Mapped[str] = mapped_column(nullable=False)
    valid_from: Mapped[str] = mapped_column(nullable=False)
    valid_to: Mapped[str] = mapped_column(nullable=False)
    created_at: Mapped[str] = mapped_column(nullable=False)
    closed_at: Mapped[str | None] = mapped_column(nullable=True)
    superseded_at: Mapped[str | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index(f"idx_{TABLE_NAME}_entity_from", "entity_id", "valid_from"),
        Index(f"idx_{TABLE_NAME}_entity_to", "entity_id", "valid_to"),
    )

    def to_version(self) -> Version:
        return Version(
            id=self.id,
            entity_id=self.entity_id,
            value=json.loads(self.value),
            valid_from=from_iso8601(self.valid_from),
            valid_to=from_iso8601(self.valid_to),
            created_at=from_iso8601(self.created_at),
            closed_at=from_iso8601(self.closed_at),
            superseded_at=from_iso8601(self.superseded_at),
        )

    def __repr__(self) -> str:
        return f"<VersionTable {self.id} {self.entity_id} [{self.valid_from}, {self.valid_to})>"
