"""
Module: billing_kernel.logging_config
Responsibility: One-line JSON logs for generation and reminder runs, with the
    tenant / run / schedule / rule being processed attached automatically.
Architecture position: Kernel.  Imported by every billing module; imports
    nothing from the billing packages.

Usage:
    logger = get_logger("batch.generation")
    with LogContext.bind(tenant_id=tenant.tenant_id, run_id=run_id):
        logger.info("generation_run_started", extra={"due": 3})

Every record carries ``ts``, ``level``, ``logger`` and ``message``, the bound
context fields, any ``extra`` keys, and for exceptions the type, message,
``code`` and public attributes of the exception (``exc_<name>``).
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
from uuid import UUID

_LOGGER_PREFIX = "billing_kernel"

# Fields a run can bind; order is the order they appear in a record.
_CONTEXT_FIELDS = (
    "correlation_id",
    "tenant_id",
    "run_id",
    "actor_id",
    "schedule_id",
    "rule_id",
)

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"billing_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


class LogContext:
    """Run-scoped fields stamped onto every record of the current context.

    Values are stored as strings; unknown field names are ignored.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        """Set fields for the rest of the context.  ``None`` leaves a field as is."""
        for name, value in fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                var.set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: value
            for name in _CONTEXT_FIELDS
            if (value := _context_vars[name].get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the ``with`` block and restore the previous values after."""
        tokens = [
            (_context_vars[name], _context_vars[name].set(str(value)))
            for name, value in fields.items()
            if name in _context_vars and value is not None
        ]
        try:
            yield LogContext
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # Public attributes carry the ids and stages set by BillingKernelError subclasses.
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Renders a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RESERVED:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``billing_kernel`` namespace (``billing_kernel.<name>``)."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_setup_lock = threading.Lock()
_handler_installed = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the JSON handler on the billing namespace once per process.

    Later calls are no-ops until ``reset_logging()``.
    """
    global _handler_installed
    with _setup_lock:
        if _handler_installed:
            return
        _handler_installed = True

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())

    namespace = logging.getLogger(_LOGGER_PREFIX)
    namespace.setLevel(level)
    namespace.propagate = False
    namespace.addHandler(target)


def reset_logging() -> None:
    """Remove the handler and allow ``configure_logging`` again.  Tests only."""
    global _handler_installed
    with _setup_lock:
        _handler_installed = False
    namespace = logging.getLogger(_LOGGER_PREFIX)
    namespace.handlers.clear()
    namespace.setLevel(logging.WARNING)
