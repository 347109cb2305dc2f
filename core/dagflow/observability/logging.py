"""
Logging setup with run/node correlation.

Code inside dagflow (and inside executors) logs through plain
``logging.getLogger(__name__)``. The current ``run_id`` and ``node_id`` live
in a ContextVar, so every record emitted while a node runs can be tied back
to it without passing ids around:

    ExecutionScheduler.start_execution()  sets run_id (restored on return)
    ExecutionScheduler._execute_single()  sets node_id (restored on return)
    executor: logger.info("...")          record carries both

Two renderings share that context: one JSON object per line for log
shippers, or a colored single line for terminals.
"""

import json
import logging
import os
import re
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from typing import Any

from dagflow.config import get_log_format, get_log_level

trace_context: ContextVar[dict[str, Any] | None] = ContextVar("trace_context", default=None)

_ANSI = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi_codes(text: str) -> str:
    return _ANSI.sub("", text)


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys: timestamp, level, logger, message, then the trace context, then any
    of EXTRA_FIELDS passed through ``extra=``, then ``exception`` if present.
    """

    EXTRA_FIELDS = ("event", "node_id", "duration_ms", "status")

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": strip_ansi_codes(record.getMessage()),
            **get_trace_context(),
        }

        # extra= wins over the ambient context
        for name in self.EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = strip_ansi_codes(value) if isinstance(value, str) else value

        if record.exc_info:
            payload["exception"] = strip_ansi_codes(self.formatException(record.exc_info))

        return json.dumps(payload, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``[LEVEL   ] [run:<last 8> | node:<id>] message [event]``, level colored."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    @staticmethod
    def correlation_prefix(record: logging.LogRecord) -> str:
        context = get_trace_context()
        parts = []
        if context.get("run_id"):
            parts.append(f"run:{context['run_id'][-8:]}")
        node_id = getattr(record, "node_id", None) or context.get("node_id")
        if node_id:
            parts.append(f"node:{node_id}")
        return f"[{' | '.join(parts)}] " if parts else ""

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        line = (
            f"{color}[{record.levelname:<8}]{self.RESET} "
            f"{self.correlation_prefix(record)}{record.getMessage()}"
        )
        event = getattr(record, "event", None)
        if event is not None:
            line += f" [{event}]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _resolve_format(format: str) -> str:
    if format != "auto":
        return format
    wants_json = os.getenv("LOG_FORMAT", "").lower() == "json"
    in_production = os.getenv("ENV", "development").lower() == "production"
    return "json" if wants_json or in_production else "human"


def configure_logging(
    level: str | None = None,
    format: str | None = None,
) -> None:
    """
    Install a single root handler with the chosen formatter.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL. Defaults to LOG_LEVEL,
            then the configuration file, then INFO.
        format: "json", "human" or "auto" (JSON when LOG_FORMAT=json or
            ENV=production). Defaults to the configuration file, then "auto".
    """
    format = _resolve_format(format or get_log_format())

    if format == "json":
        formatter: logging.Formatter = StructuredFormatter()
        os.environ["NO_COLOR"] = "1"
    else:
        formatter = HumanReadableFormatter()

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel((level or get_log_level()).upper())


def set_trace_context(**kwargs: Any) -> Token:
    """
    Merge ``kwargs`` into the trace context of the current task.

    asyncio tasks copy the context when created, so ids set inside a task
    never leak into its siblings or its parent.

    Returns:
        Token for reset_trace_context()
    """
    return trace_context.set({**get_trace_context(), **kwargs})


def reset_trace_context(token: Token) -> None:
    """Restore the trace context that was current before ``set_trace_context``."""
    trace_context.reset(token)


def get_trace_context() -> dict:
    """Copy of the current trace context ({} when unset)."""
    return dict(trace_context.get() or {})


def clear_trace_context() -> None:
    trace_context.set(None)
