"""
Process-wide default logger.

There is no implicit creation on first use: ``configure_logging`` builds the
logger, ``get_logger`` returns it (or raises), ``shutdown_logging`` closes it.
"""

from __future__ import annotations

import atexit
from typing import Any, Optional

from .config.logging import LoggerSettings
from .exceptions import LoggerNotInitializedError
from .logger import Logger

# =============================================================================
# Global State
# =============================================================================

_default: Optional[Logger] = None
_atexit_registered = False


def configure_logging(settings: Optional[LoggerSettings] = None, **kwargs: Any) -> Logger:
    """
    Create the process-wide logger, replacing (and closing) any previous one.

    Args:
        settings: Logger configuration; defaults are read from ``LW_LOG_*``.
        **kwargs: Passed to ``Logger`` (sinks, filters, enrichers, formatter...).
    """
    global _default, _atexit_registered

    # Build first so a failed reconfiguration leaves the current logger in place.
    logger = Logger(settings, **kwargs)
    previous, _default = _default, logger
    if previous is not None:
        previous.close()

    # Buffered lines are flushed on interpreter exit as a last resort.
    if not _atexit_registered:
        atexit.register(shutdown_logging)
        _atexit_registered = True
    return _default


def get_logger() -> Logger:
    """Return the process-wide logger.

    Raises:
        LoggerNotInitializedError: if ``configure_logging`` has not been called.
    """
    if _default is None:
        raise LoggerNotInitializedError()
    return _default


def is_configured() -> bool:
    return _default is not None


def shutdown_logging() -> None:
    """Flush and close the process-wide logger."""
    global _default
    if _default is not None:
        _default.close()
        _default = None
