"""
Structured JSON logging for the job-work kernel.

Every record is one JSON object per line:

    {"ts": ..., "level": "INFO", "logger": "jobwork_kernel.services.return",
     "message": "return_submitted", "operation": "submit_return",
     "actor_id": ..., "assignment_id": ..., "cleared": 7, ...}

The message is a snake_case event key.  Request-scoped identifiers (who is
acting, on which tenant, inside which unit of work, against which product,
assignment, return request or dispatch) come from ``LogContext`` and are
merged into every record emitted while they are bound.  Per-event data is
passed with ``extra=``.  Kernel errors logged with ``exc_info`` are rendered
as a nested ``error`` object carrying their code and structured fields.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping
from uuid import UUID

ROOT_LOGGER = "jobwork_kernel"

CONTEXT_FIELDS = (
    "correlation_id",
    "operation",
    "actor_id",
    "tenant_id",
    "product_id",
    "assignment_id",
    "request_id",
    "dispatch_no",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("jobwork_log_context", default=_EMPTY)


class LogContext:
    """Request-scoped identifiers merged into every log record."""

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """
        Add fields for the duration of a ``with`` block.

        None values and names outside CONTEXT_FIELDS are ignored; values
        are stored as strings.  Inner bindings shadow outer ones and the
        previous context is restored on exit.
        """
        merged = dict(_context.get())
        merged.update(
            (name, str(value))
            for name, value in fields.items()
            if name in CONTEXT_FIELDS and value is not None
        )
        token = _context.set(MappingProxyType(merged))
        try:
            yield
        finally:
            _context.reset(token)

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return repr(value)


def _describe_error(exc: BaseException) -> dict[str, Any]:
    if hasattr(exc, "to_dict"):
        error = dict(exc.to_dict())
        error["retryable"] = getattr(exc, "retryable", False)
    else:
        error = {"message": str(exc)}
    error["type"] = type(exc).__name__
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            error.setdefault(name, value)
    return error


class StructuredFormatter(logging.Formatter):
    """Render a record as one JSON line: envelope, context, extras, error."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload["error"] = _describe_error(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


# ---------------------------------------------------------------------------
# Loggers
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the jobwork_kernel namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def _installed_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if getattr(h, "_jobwork_installed", False)]


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the jobwork_kernel logger.

    Idempotent: once a handler has been installed, later calls change
    nothing until reset_logging().  Records do not propagate to the root
    logger, so host applications see kernel output exactly once.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if _installed_handlers(root):
        return

    installed = handler or logging.StreamHandler(stream or sys.stderr)
    installed.setFormatter(StructuredFormatter())
    installed._jobwork_installed = True
    root.addHandler(installed)
    root.setLevel(level)
    root.propagate = False


def reset_logging() -> None:
    """Remove installed handlers. FOR TESTING ONLY."""
    root = logging.getLogger(ROOT_LOGGER)
    for installed in _installed_handlers(root):
        root.removeHandler(installed)
    root.setLevel(logging.WARNING)
