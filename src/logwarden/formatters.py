"""
Record formatting, JSON serialization and console colour utilities.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping

import orjson
from structlog.typing import EventDict

from .levels import Severity
from .records import LogRecord

# =============================================================================
# JSON Serialization
# =============================================================================


def orjson_dumps(v: Any, *, default: Any = str) -> str:
    """Fast JSON serialization using orjson."""
    return orjson.dumps(v, default=default, option=orjson.OPT_UTC_Z | orjson.OPT_NAIVE_UTC).decode()


# =============================================================================
# Colours
# =============================================================================

COLORS = {
    "reset": "\033[0m",
    "dim": "\033[2m",
    "timestamp": "\033[90m",
    "logger": "\033[35m",
    "key": "\033[34m",
}

LEVEL_COLORS = {
    Severity.CRITICAL: "\033[1;31m",  # Bold Red
    Severity.ERROR: "\033[31m",  # Red
    Severity.WARNING: "\033[33m",  # Yellow
    Severity.SUCCESS: "\033[1;32m",  # Bold Green
    Severity.INFO: "\033[32m",  # Green
    Severity.DEBUG: "\033[36m",  # Cyan
}


def colorize(text: str, color: str) -> str:
    """Apply ANSI color to text."""
    return f"{COLORS.get(color, '')}{text}{COLORS['reset']}"


def colorize_level(text: str, level: Severity) -> str:
    return f"{LEVEL_COLORS[level]}{text}{COLORS['reset']}"


# =============================================================================
# Record Formatter
# =============================================================================


class LogFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


RESERVED_KEYS = ("timestamp", "level", "message", "correlationId")


class RecordFormatter:
    """Turns a ``LogRecord`` into one line of text or JSON.

    Text lines look like ``[<timestamp>][<LEVEL>] <message>``, with a
    ``[CID:<id>]`` block when a correlation id is set and scoped properties
    appended as ``key=value`` pairs. ``no_info`` drops the prefix entirely.

    JSON lines carry ``timestamp`` (ISO 8601), ``level``, ``message``, an
    optional ``correlationId``, then properties and enrichment fields. Reserved
    keys are never overwritten.
    """

    def __init__(
        self,
        fmt: LogFormat | str = LogFormat.TEXT,
        *,
        timestamp_format: str = "%Y-%m-%d %H:%M:%S",
        no_info: bool = False,
    ) -> None:
        self.fmt = LogFormat(fmt)
        self.timestamp_format = timestamp_format
        self.no_info = no_info

    def format(self, record: LogRecord) -> str:
        if self.fmt is LogFormat.JSON:
            return self.format_json(record)
        return self.format_text(record)

    def format_text(self, record: LogRecord) -> str:
        message = record.message
        if record.properties:
            pairs = " ".join(f"{k}={v}" for k, v in record.properties.items())
            message = f"{message} {pairs}" if message else pairs
        if self.no_info:
            return message

        prefix = f"[{record.timestamp.strftime(self.timestamp_format)}][{record.level.name}]"
        if record.correlation_id:
            prefix += f"[CID:{record.correlation_id}]"
        return f"{prefix} {message}"

    def format_json(self, record: LogRecord) -> str:
        if self.no_info:
            payload: dict[str, Any] = {"message": record.message}
        else:
            payload = {
                "timestamp": record.timestamp.isoformat(),
                "level": record.level.name,
                "message": record.message,
            }
            if record.correlation_id:
                payload["correlationId"] = record.correlation_id
        _merge_unreserved(payload, record.properties)
        _merge_unreserved(payload, record.enrichment)
        return orjson_dumps(payload)


def _merge_unreserved(payload: dict[str, Any], values: Mapping[str, Any]) -> None:
    for key, value in values.items():
        if key not in RESERVED_KEYS:
            payload[key] = value


def parse_json_line(line: str) -> LogRecord:
    """Rebuild a ``LogRecord`` from one JSON line written by ``RecordFormatter``.

    Fields other than the reserved ones come back as properties. Lines written
    with ``no_info`` carry only the message and cannot be rebuilt.
    """
    data = orjson.loads(line)
    missing = [key for key in ("timestamp", "level", "message") if key not in data]
    if missing:
        raise ValueError(f"not a full JSON log line, missing: {', '.join(missing)}")
    timestamp = datetime.fromisoformat(data.pop("timestamp").replace("Z", "+00:00"))
    level = Severity.coerce(data.pop("level"))
    message = data.pop("message")
    correlation_id = data.pop("correlationId", None)
    return LogRecord(
        timestamp=timestamp,
        level=level,
        message=message,
        correlation_id=correlation_id,
        properties=data,
    )


# =============================================================================
# Console Formatter (diagnostic events)
# =============================================================================


class ConsoleFormatter:
    """Renders structlog event dicts as aligned, optionally coloured lines."""

    EXCLUDED_KEYS = {"level", "message", "event", "logger", "timestamp", "_name"}
    TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
    TIMESTAMP_WIDTH = 19
    LEVEL_WIDTH = 8
    LOGGER_WIDTH = 28
    SEPARATOR = " | "

    _LEVEL_COLORS = {
        "DEBUG": LEVEL_COLORS[Severity.DEBUG],
        "INFO": LEVEL_COLORS[Severity.INFO],
        "WARNING": LEVEL_COLORS[Severity.WARNING],
        "ERROR": LEVEL_COLORS[Severity.ERROR],
        "CRITICAL": LEVEL_COLORS[Severity.CRITICAL],
    }

    @staticmethod
    def _fit_right(text: str, width: int) -> str:
        if len(text) > width:
            text = "..." + text[-(width - 3) :] if width > 3 else text[-width:]
        return f"{text:>{width}}"

    @classmethod
    def _format_timestamp(cls, raw_timestamp: str | None) -> str:
        if raw_timestamp:
            try:
                dt = datetime.fromisoformat(raw_timestamp.replace("Z", "+00:00"))
                return dt.astimezone().strftime(cls.TIMESTAMP_FORMAT)
            except (ValueError, TypeError):
                pass
        return datetime.now().strftime(cls.TIMESTAMP_FORMAT)

    @classmethod
    def format(cls, event_dict: EventDict, *, use_color: bool = True) -> str:
        """Format an event dict into an aligned string."""
        level_upper = str(event_dict.get("level", "info")).upper()
        message = str(event_dict.get("message", event_dict.get("event", "")))
        logger_name = str(event_dict.get("logger", "logwarden"))

        extras = []
        for k, v in event_dict.items():
            if k in cls.EXCLUDED_KEYS:
                continue
            if use_color:
                extras.append(f"{colorize(k, 'key')}={colorize(str(v), 'dim')}")
            else:
                extras.append(f"{k}={v}")
        if extras:
            message = f"{message} " + " ".join(extras)

        timestamp = cls._fit_right(cls._format_timestamp(event_dict.get("timestamp")), cls.TIMESTAMP_WIDTH)
        level_text = cls._fit_right(level_upper, cls.LEVEL_WIDTH)
        logger_text = cls._fit_right(logger_name, cls.LOGGER_WIDTH)
        if use_color:
            timestamp = colorize(timestamp, "timestamp")
            color = cls._LEVEL_COLORS.get(level_upper)
            if color:
                level_text = f"{color}{level_text}{COLORS['reset']}"
            logger_text = colorize(logger_text, "logger")

        return cls.SEPARATOR.join([timestamp, level_text, logger_text, message])
