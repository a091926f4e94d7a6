"""
Structured JSON logging for the lifecycle kernel.

Every record under the ``lifecycle_kernel`` logger is written as one JSON
line.  Fields passed through ``extra=`` become top-level keys, and the
request fields bound in LogContext (correlation id, acting identity, the
unit and visit being worked on) are merged into every record emitted while
they are bound.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

_LOGGER_PREFIX = "lifecycle_kernel"

_CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "holder_code",
    "serial_number",
    "visit_id",
)

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"lifecycle_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """Request-scoped log fields, held in context variables."""

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set context fields.  None leaves a field unchanged."""
        for name, value in fields.items():
            if value is not None:
                _context[name].set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: var.get() for name, var in _context.items() if var.get() is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a block, then restore the previous values."""
        tokens = [
            (_context[name], _context[name].set(str(value)))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield LogContext
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attributes every LogRecord carries; anything else on a record came from extra=
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        # Kernel errors carry a code and their structured attributes
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger under the lifecycle_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach the JSON handler to the lifecycle_kernel logger.  Only the first call has effect."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)


def reset_logging() -> None:
    """Undo configure_logging.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
