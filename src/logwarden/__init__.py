"""
logwarden: structured logging engine for scripts and processes.

Records flow through sampling, level gating, filters, enrichment and
formatting, then fan out to file, console, OS event log or custom sinks.
The file sink rotates by size, age or calendar and can fold old files into a
zip archive without ever losing data.

Library: structlog for internal diagnostics, orjson for JSON lines,
pydantic-settings for configuration.
"""

from .config import LoggerSettings
from .core import configure_logging, get_logger, shutdown_logging
from .levels import Severity
from .logger import Logger
from .records import LogRecord

__all__ = [
    "Logger",
    "LoggerSettings",
    "LogRecord",
    "Severity",
    "configure_logging",
    "get_logger",
    "shutdown_logging",
]
