"""
Unified exception hierarchy for logwarden.

Errors are split along the failure domains of the write pipeline:
configuration, transient I/O, permanent I/O, rotation and destinations.
None of them escape a logging call; the logger reports them instead.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LogwardenError(Exception):
    """Root of all logwarden errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


# ================================
# Configuration
# ================================


class ConfigurationError(LogwardenError, ValueError):
    """Invalid configuration value (rotation spec, log name, severity...).

    Also a ``ValueError`` so pydantic field validators surface it as a
    ``ValidationError`` when settings are constructed.
    """

    def __init__(self, message: str, *, field: str, value: Any = None) -> None:
        super().__init__(
            message,
            code="INVALID_CONFIGURATION",
            details={"field": field, "value": value},
        )


class LoggerNotInitializedError(LogwardenError):
    """The process-wide logger was requested before it was configured."""

    def __init__(self) -> None:
        super().__init__(
            "Default logger is not configured; call configure_logging() first",
            code="LOGGER_NOT_INITIALIZED",
        )


# ================================
# I/O
# ================================


class IOTransientError(LogwardenError):
    """A write kept failing with a transient error until retries ran out."""

    def __init__(self, *, path: str, attempts: int, reason: str) -> None:
        super().__init__(
            f"Write to '{path}' failed after {attempts} attempt(s): {reason}",
            code="IO_RETRIES_EXHAUSTED",
            details={"path": path, "attempts": attempts, "reason": reason},
        )


class IOPermanentError(LogwardenError):
    """A write that cannot succeed by retrying (disk full, read-only...)."""

    def __init__(self, *, path: str, reason: str, code: str = "IO_PERMANENT") -> None:
        super().__init__(
            f"Write to '{path}' abandoned: {reason}",
            code=code,
            details={"path": path, "reason": reason},
        )


class InsufficientSpaceError(IOPermanentError):
    """Free-space pre-check failed before writing."""

    def __init__(self, *, path: str, free_bytes: int, required_bytes: int) -> None:
        super().__init__(
            path=path,
            reason=f"only {free_bytes} bytes free, {required_bytes} required",
            code="INSUFFICIENT_SPACE",
        )
        self.details.update(free_bytes=free_bytes, required_bytes=required_bytes)


# ================================
# Rotation
# ================================


class RotationError(LogwardenError):
    """Rotation of the active log file could not be completed."""

    def __init__(self, message: str, *, path: str, code: str = "ROTATION_FAILED") -> None:
        super().__init__(message, code=code, details={"path": path})


class ArchiveMergeError(RotationError):
    """Folding rotated files into the zip archive failed.

    The original archive and the rotated files are left in place.
    """

    def __init__(self, *, archive: str, pending: list[str], reason: str) -> None:
        super().__init__(
            f"Could not merge {len(pending)} file(s) into '{archive}': {reason}",
            path=archive,
            code="ARCHIVE_MERGE_FAILED",
        )
        self.details.update(pending=pending, reason=reason)


# ================================
# Destinations
# ================================


class DestinationError(LogwardenError):
    """A single sink failed to emit a record."""

    def __init__(self, *, sink: str, reason: str) -> None:
        super().__init__(
            f"Sink '{sink}' failed: {reason}",
            code="DESTINATION_FAILED",
            details={"sink": sink, "reason": reason},
        )


class BufferOverflowError(LogwardenError):
    """Buffered lines were dropped because the queue reached capacity."""

    def __init__(self, *, sink: str, dropped: int, capacity: int) -> None:
        super().__init__(
            f"Sink '{sink}' buffer full: dropped {dropped} oldest line(s)",
            code="BUFFER_OVERFLOW",
            details={"sink": sink, "dropped": dropped, "capacity": capacity},
        )
