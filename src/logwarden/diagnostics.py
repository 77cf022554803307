"""
Internal diagnostics channel.

Failures inside the engine (a sink that raised, a merge that was rolled back,
retries that ran out) are never raised to the caller. They are reported here,
through structlog, so that logging stays a side channel of the application.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

import structlog
from structlog.typing import EventDict, WrappedLogger

from .formatters import ConsoleFormatter, orjson_dumps

_stream: TextIO | None = None
_fmt: str = "console"


def get_diagnostic_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for engine diagnostics."""
    return structlog.get_logger(_name=name or "logwarden")


# =============================================================================
# Structlog Processors
# =============================================================================


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add ISO 8601 timestamp to diagnostic event."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def add_logger_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["logger"] = event_dict.get("_name", "logwarden")
    event_dict.pop("_name", None)
    return event_dict


def rename_event_key(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


def stream_renderer(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> str:
    """Write the event to the diagnostics stream. Returns empty to suppress default output."""
    stream = _stream or sys.stderr
    try:
        if _fmt == "json":
            output = orjson_dumps(event_dict)
        else:
            use_color = bool(getattr(stream, "isatty", lambda: False)())
            output = ConsoleFormatter.format(event_dict, use_color=use_color)
        stream.write(output + "\n")
        stream.flush()
    except Exception:
        pass  # Diagnostics must never break the caller
    return ""


class _NopFile:
    def write(self, s: str) -> None:
        pass

    def flush(self) -> None:
        pass


_NOP_FILE = _NopFile()


class SilentPrintLoggerFactory:
    """Logger factory that returns a logger writing to nowhere."""

    def __call__(self, *args: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=_NOP_FILE)


# =============================================================================
# Configuration
# =============================================================================


def configure_diagnostics(
    *,
    level: str = "WARNING",
    stream: TextIO | None = None,
    fmt: str = "console",
) -> None:
    """
    Configure the diagnostics channel.

    Args:
        level: Minimum diagnostic level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Output stream (default: stderr)
        fmt: "console" (aligned, coloured on a TTY) or "json"
    """
    global _stream, _fmt
    _stream = stream
    _fmt = "json" if fmt.lower() == "json" else "console"

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            add_timestamp,
            add_logger_name,
            rename_event_key,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            stream_renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.WARNING)
        ),
        context_class=dict,
        logger_factory=SilentPrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def ensure_diagnostics(level: str = "WARNING") -> None:
    """Configure diagnostics unless the application already configured structlog."""
    if not structlog.is_configured():
        configure_diagnostics(level=level)
