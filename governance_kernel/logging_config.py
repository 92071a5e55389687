"""
Structured JSON logging for the governance kernel.

Every line is one JSON object carrying the bound decision context (tenant,
actor, document, action).  Denials are logged with ``error=<exception>``;
the formatter expands a ``GovernanceKernelError`` into the same
``error_code`` / ``rule_code`` envelope the audit records carry.
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
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator

from governance_kernel.exceptions import GovernanceKernelError

# ---------------------------------------------------------------------------
# Decision context
# ---------------------------------------------------------------------------


class LogContext:
    """Context-local fields describing the decision being made."""

    FIELDS = ("tenant_id", "actor_id", "document_id", "action")

    _vars: dict[str, ContextVar[str | None]] = {
        name: ContextVar(f"governance_log_{name}", default=None) for name in FIELDS
    }

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Bound fields that are currently set."""
        return {
            name: value
            for name, var in cls._vars.items()
            if (value := var.get()) is not None
        }

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[None]:
        """Bind fields for the duration of a ``with`` block, then restore them."""
        unknown = set(fields) - set(cls.FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        tokens = [
            (cls._vars[name], cls._vars[name].set(value))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}

ERROR_KEY = "error"


class _JSONEncoder(json.JSONEncoder):
    """Amounts stay exact: Decimals are written as strings, never floats."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        return str(obj)


def _error_envelope(error: GovernanceKernelError) -> dict[str, Any]:
    envelope: dict[str, Any] = {"error_code": error.code}
    rule_code = getattr(error, "rule_code", None)
    if rule_code is not None:
        envelope["rule_code"] = rule_code
    envelope[ERROR_KEY] = error.to_dict()
    return envelope


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        error = None
        for key, val in vars(record).items():
            if key == ERROR_KEY and isinstance(val, GovernanceKernelError):
                error = val
            elif key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            payload["traceback"] = self.formatException(record.exc_info)
            if error is None and isinstance(exc, GovernanceKernelError):
                error = exc

        if error is not None:
            for key, val in _error_envelope(error).items():
                payload.setdefault(key, val)

        return json.dumps(payload, cls=_JSONEncoder)


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "governance_kernel"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the governance_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Configure the governance_kernel logger hierarchy (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Reset logging configuration. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
