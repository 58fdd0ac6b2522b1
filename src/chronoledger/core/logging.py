"""
Structured logging for chrono-ledger.

The ledger logs one event per row transition (``version_created``,
``version_closed``, ``version_superseded``); the store logs refused
mutations as ``mutation_rejected`` with the error's context, and the lock
manager logs ``lock_timeout``. Ledger code passes instants as ``datetime``
and intervals as :class:`~chronoledger.core.interval.Interval`; the
processor chain renders them, so call sites never format timestamps.

Architecture:
    ::

        configure_from_settings(LedgerSettings())      CHRONOLEDGER_LOG_LEVEL / _LOG_JSON
            ↓
        configure_logging(level, json_format, service)
            ↓
        structlog processor chain:
          1. TimeStamper(iso)
          2. merge_contextvars
          3. add_log_level / add_logger_name
          4. add_service_metadata
          5. render_ledger_values (datetime → ISO, OPEN → null, Interval → text)
          6. elasticsearch_compatible (JSON only)
          7. JSONRenderer (or ConsoleRenderer for a tty)

Examples:
    >>> from chronoledger.core.logging import configure_from_settings, get_logger
    >>> configure_from_settings(LedgerSettings(log_level="INFO", log_json=True))
    >>> get_logger(__name__).info("version_closed", entity_id="product-1", valid_to=t1)
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from chronoledger.core.interval import OPEN, Interval
from chronoledger.core.timestamps import to_iso8601

if TYPE_CHECKING:
    from chronoledger.core.settings import LedgerSettings

_SERVICE_NAME = "chrono-ledger"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _render_ledger_values(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Render instants and intervals; the OPEN bound becomes ``None``."""
    for key, value in event_dict.items():
        if isinstance(value, datetime):
            event_dict[key] = None if value == OPEN else to_iso8601(value)
        elif isinstance(value, Interval):
            event_dict[key] = str(value)
    return event_dict


def _elasticsearch_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """ECS field names for ``timestamp`` and ``level``."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def configure_logging(
    level: str = "WARNING",
    json_format: bool | None = None,
    service: str = "chrono-ledger",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Row transitions log
            at INFO, refusals and lock timeouts at WARNING.
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
        _render_ledger_values,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors.append(_elasticsearch_compatible)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    numeric_level = getattr(logging, level.upper())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def configure_from_settings(settings: LedgerSettings, *, level: str | None = None) -> None:
    """Configure logging from ``settings.log_level`` / ``settings.log_json``.

    *level*, when given, overrides ``settings.log_level`` (the CLI's ``-v``).
    """
    configure_logging(level=level or settings.log_level, json_format=settings.log_json)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Scope context to a block, e.g. every event of one bulk import.

    Example:
        with LogContext(entity_id="product-1", operation="mutate"):
            logger.info("version_created")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
