"""Ledger settings.

``LedgerSettings`` reads ``CHRONOLEDGER_*`` environment variables (and a
``.env`` file) through pydantic-settings, so a deployment chooses backend,
continuity mode and lock budget without code changes.

Examples:
    >>> from chronoledger.core.settings import LedgerSettings
    >>> LedgerSettings(strict_continuity=True).lock_timeout_seconds
    5.0

    $ CHRONOLEDGER_BACKEND=sqlite CHRONOLEDGER_DATABASE=/var/lib/ledger.db chronoledger init
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Configuration for a :class:`~chronoledger.core.store.TemporalVersionStore`.

    Fields
    ──────
    backend              : ``memory`` (process-local) or ``sqlite`` (durable file)
    database             : SQLite path, or ``:memory:``
    strict_continuity    : refuse writes that leave gaps between versions
    lock_timeout_seconds : bounded wait for the per-entity lock
    lock_stripes         : number of striped in-process mutexes
    log_level            : structlog log level (row writes log at INFO)
    log_json             : force JSON (True) / console (False); None = auto
    """

    model_config = SettingsConfigDict(
        env_prefix="CHRONOLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    backend: Literal["memory", "sqlite"] = "memory"
    database: str = Field(
        default_factory=lambda: str(Path.home() / ".chronoledger" / "ledger.db"),
        description="SQLite database path (or ':memory:')",
    )

    # ── Ledger policy ────────────────────────────────────────────
    strict_continuity: bool = False

    # ── Concurrency ──────────────────────────────────────────────
    lock_timeout_seconds: float = Field(default=5.0, ge=0)
    lock_stripes: int = Field(default=64, ge=1)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "WARNING"
    log_json: bool | None = None


__all__ = ["LedgerSettings"]
