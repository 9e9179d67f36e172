"""
Structured logging for the order engine.

Keyword arguments passed to a logger become structured fields:

    logger.info("Item added", order_id=12, menu_item_id=4, quantity=2)

Fields bound with `bind_log_context` (restaurant, staff, session) are
attached to every record emitted from the same request or task.
Production writes one JSON object per line; development writes a
coloured single line.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Mapping

from shared.config.settings import settings

_log_context: ContextVar[Mapping[str, Any]] = ContextVar("log_context", default={})

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "aiosqlite")


def bind_log_context(**fields: Any) -> None:
    """Attach fields to every record logged from the current context."""
    merged = dict(_log_context.get())
    merged.update({k: v for k, v in fields.items() if v is not None})
    _log_context.set(merged)


def clear_log_context() -> None:
    _log_context.set({})


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Bound context first, then the call's own fields."""
    fields = dict(getattr(record, "context", None) or {})
    fields.update(getattr(record, "extra_data", None) or {})
    return fields


class ContextFilter(logging.Filter):
    """Copies the bound context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = _log_context.get()
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields = record_fields(record)
        if fields:
            entry["data"] = fields
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            entry["source"] = f"{record.filename}:{record.lineno}"
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Coloured single-line output for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}{stamp} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        fields = record_fields(record)
        if fields:
            line += "  " + " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """Logger whose unknown keyword arguments are stored as `extra_data`."""

    def _log(  # type: ignore[override]
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: Mapping[str, object] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **fields: Any,
    ) -> None:
        extra = dict(extra or {})
        extra["extra_data"] = fields or None
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Call once at startup."""
    level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ContextFilter())
    handler.setFormatter(
        StructuredFormatter() if settings.environment == "production" else DevelopmentFormatter()
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.error("Receipt dispatch failed", order_id=7, exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


rest_api_logger = get_logger("rest_api")
orders_logger = get_logger("rest_api.orders")
kitchen_logger = get_logger("rest_api.kitchen")
billing_logger = get_logger("rest_api.billing")
tables_logger = get_logger("rest_api.tables")
realtime_logger = get_logger("rest_api.realtime")
