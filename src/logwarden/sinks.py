"""
Log sink abstractions and concrete implementations.
"""

from __future__ import annotations

import errno
import logging
import logging.handlers
import os
import shutil
import sys
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, List, Optional, Protocol, TextIO, Tuple

from .buffer import WriteBuffer
from .diagnostics import get_diagnostic_logger
from .exceptions import (
    ArchiveMergeError,
    BufferOverflowError,
    DestinationError,
    InsufficientSpaceError,
    IOPermanentError,
    IOTransientError,
    LogwardenError,
    RotationError,
)
from .formatters import colorize_level
from .levels import Severity
from .rotation import Archiver, FileMeta, RotationPolicy

logger = get_diagnostic_logger("logwarden.sinks")

Entry = Tuple[str, Severity]
Reporter = Callable[[LogwardenError], None]

STARTED_MARKER = "Logging started"
ROTATED_MARKER = "Log file rotated"


def _log_error(error: LogwardenError) -> None:
    logger.warning("sink_error", code=error.code, error=str(error))


# =============================================================================
# Sink Abstraction (Strategy Pattern)
# =============================================================================


class BaseSink(ABC):
    """Abstract base class for log sinks.

    Every sink has its own minimum severity, checked independently of the
    logger's minimum.
    """

    def __init__(self, name: str, min_level: Severity | str = Severity.DEBUG) -> None:
        self.name = name
        self.min_level = Severity.coerce(min_level)
        self._reporter: Reporter = _log_error

    def accepts(self, level: Severity) -> bool:
        return level.passes(self.min_level)

    def bind_reporter(self, reporter: Reporter) -> None:
        """Route errors the sink recovers from on its own (e.g. a failed rotation)."""
        self._reporter = reporter

    def _report(self, error: LogwardenError) -> None:
        self._reporter(error)

    @abstractmethod
    def emit(self, text: str, level: Severity) -> None:
        """Emit one formatted record."""
        ...

    def emit_batch(self, entries: List[Entry]) -> None:
        for text, level in entries:
            self.emit(text, level)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, min_level={self.min_level.name})"


# =============================================================================
# File
# =============================================================================

_PERMANENT_ERRNOS = {errno.ENOSPC, errno.EROFS, getattr(errno, "EDQUOT", errno.ENOSPC)}


def _is_permanent(exc: OSError) -> bool:
    if isinstance(exc, (IsADirectoryError, NotADirectoryError)):
        return True
    return exc.errno in _PERMANENT_ERRNOS


class FileSink(BaseSink):
    """Append-mode file sink with rotation, archival and write retries.

    The file is opened for each write rather than held open, so rotation
    state is always read from the filesystem.
    """

    def __init__(
        self,
        directory: str | os.PathLike[str],
        log_name: str,
        *,
        min_level: Severity | str = Severity.DEBUG,
        rotation: Optional[RotationPolicy] = None,
        log_count_max: int = 5,
        compress: bool = False,
        retry_count: int = 3,
        retry_delay: float = 0.5,
        encoding: str = "utf-8",
        min_free_space: int = 0,
        marker: Optional[Callable[[str], str]] = None,
        opener: Callable[..., Any] = open,
        name: str = "file",
    ) -> None:
        super().__init__(name, min_level)
        self.archiver = Archiver(directory, log_name, log_count_max=log_count_max, compress=compress)
        self.rotation = rotation
        self.retry_count = retry_count
        self.retry_delay = retry_delay
        self.encoding = encoding
        self.min_free_space = min_free_space
        self._marker = marker
        self._opener = opener

    @property
    def path(self) -> Path:
        return self.archiver.active_path

    def emit(self, text: str, level: Severity) -> None:
        self._write([text])

    def emit_batch(self, entries: List[Entry]) -> None:
        if entries:
            self._write([text for text, _ in entries])

    def _write(self, lines: List[str]) -> None:
        directory = self.archiver.directory
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IOPermanentError(path=str(directory), reason=str(exc)) from exc
        self._check_free_space(directory)

        rotated = self._rotate_if_due()
        if self._marker is not None and not self.path.exists():
            lines = [self._marker(ROTATED_MARKER if rotated else STARTED_MARKER), *lines]
        self._append_with_retry("".join(f"{line}\n" for line in lines))

    def _check_free_space(self, directory: Path) -> None:
        if not self.min_free_space:
            return
        free = shutil.disk_usage(directory).free
        if free < self.min_free_space:
            raise InsufficientSpaceError(path=str(self.path), free_bytes=free, required_bytes=self.min_free_space)

    def _rotate_if_due(self) -> bool:
        if self.rotation is None or not self.path.exists():
            return False
        try:
            if not self.rotation.should_rotate(FileMeta.from_path(self.path)):
                return False
            return self.archiver.rotate()
        except ArchiveMergeError as exc:
            # The active file did roll over; only archiving is deferred.
            self._report(exc)
            return True
        except RotationError as exc:
            self._report(exc)
            return False
        except OSError as exc:
            self._report(RotationError(f"Could not inspect '{self.path}': {exc}", path=str(self.path)))
            return False

    def _append_with_retry(self, payload: str) -> None:
        attempts = self.retry_count + 1
        last_exc: Optional[OSError] = None
        for attempt in range(1, attempts + 1):
            try:
                with self._opener(self.path, "a", encoding=self.encoding) as fh:
                    fh.write(payload)
                return
            except OSError as exc:
                if _is_permanent(exc):
                    raise IOPermanentError(path=str(self.path), reason=str(exc)) from exc
                last_exc = exc
                logger.debug("file_write_retry", path=str(self.path), attempt=attempt, max_attempts=attempts, error=str(exc))
            if attempt < attempts and self.retry_delay > 0:
                time.sleep(self.retry_delay)

        raise IOTransientError(path=str(self.path), attempts=attempts, reason=str(last_exc)) from last_exc


# =============================================================================
# Console
# =============================================================================


class ConsoleSink(BaseSink):
    """Console sink with level-to-colour mapping.

    Args:
        stream: Output stream (default: stdout, resolved at write time)
        use_color: Force colour on or off; by default only on a TTY
    """

    def __init__(
        self,
        *,
        stream: Optional[TextIO] = None,
        min_level: Severity | str = Severity.DEBUG,
        use_color: Optional[bool] = None,
        name: str = "console",
    ) -> None:
        super().__init__(name, min_level)
        self._stream = stream
        self._use_color = use_color

    def _color_enabled(self, stream: TextIO) -> bool:
        if self._use_color is not None:
            return self._use_color
        return bool(getattr(stream, "isatty", lambda: False)())

    def emit(self, text: str, level: Severity) -> None:
        stream = self._stream or sys.stdout
        output = colorize_level(text, level) if self._color_enabled(stream) else text
        stream.write(output + "\n")
        stream.flush()

    def emit_batch(self, entries: List[Entry]) -> None:
        stream = self._stream or sys.stdout
        color = self._color_enabled(stream)
        stream.write("".join((colorize_level(t, lv) if color else t) + "\n" for t, lv in entries))
        stream.flush()


# =============================================================================
# OS Event Log
# =============================================================================


class EventLogBackend(Protocol):
    def write(self, message: str, level: Severity) -> None: ...

    def close(self) -> None: ...


class StdlibEventLogBackend:
    """Writes through a stdlib handler bound to the OS event log."""

    def __init__(self, handler: logging.Handler, source: str) -> None:
        self.handler = handler
        self.source = source

    def write(self, message: str, level: Severity) -> None:
        record = logging.LogRecord(self.source, level.stdlib_level, self.source, 0, message, None, None)
        self.handler.emit(record)

    def close(self) -> None:
        self.handler.close()


_SYSLOG_SOCKETS = ("/dev/log", "/var/run/syslog")


def default_event_log_backend(source: str, channel: str) -> StdlibEventLogBackend:
    """Event log of the current OS: Windows Event Log, or the local syslog socket."""
    if sys.platform == "win32":
        handler: logging.Handler = logging.handlers.NTEventLogHandler(source, logtype=channel)
    else:
        address = next((p for p in _SYSLOG_SOCKETS if os.path.exists(p)), None)
        if address is None:
            raise IOPermanentError(path=_SYSLOG_SOCKETS[0], reason="no local syslog socket")
        handler = logging.handlers.SysLogHandler(address=address)
        handler.ident = f"{source}: "
    return StdlibEventLogBackend(handler, source)


class EventLogSink(BaseSink):
    """OS event log sink. Defaults to ERROR and above.

    If the backend cannot be created the sink is reported unavailable once and
    then drops records.
    """

    def __init__(
        self,
        source: str = "logwarden",
        *,
        channel: str = "Application",
        min_level: Severity | str = Severity.ERROR,
        backend: Optional[EventLogBackend] = None,
        name: str = "eventlog",
    ) -> None:
        super().__init__(name, min_level)
        self.source = source
        self.channel = channel
        if backend is None:
            try:
                backend = default_event_log_backend(source, channel)
            except Exception as exc:
                logger.warning("event_log_unavailable", source=source, channel=channel, error=str(exc))
        self._backend = backend

    @property
    def available(self) -> bool:
        return self._backend is not None

    def emit(self, text: str, level: Severity) -> None:
        if self._backend is None:
            return
        self._backend.write(text, level)

    def close(self) -> None:
        if self._backend is not None:
            self._backend.close()


# =============================================================================
# Null / Callable
# =============================================================================


class NullSink(BaseSink):
    def __init__(self, *, min_level: Severity | str = Severity.DEBUG, name: str = "null") -> None:
        super().__init__(name, min_level)

    def emit(self, text: str, level: Severity) -> None:
        pass


class CallableSink(BaseSink):
    """Custom sink backed by a function ``(text, level) -> None``."""

    def __init__(
        self,
        func: Callable[[str, Severity], None],
        *,
        min_level: Severity | str = Severity.DEBUG,
        name: str = "callable",
    ) -> None:
        super().__init__(name, min_level)
        self._func = func

    def emit(self, text: str, level: Severity) -> None:
        self._func(text, level)


# =============================================================================
# Buffering
# =============================================================================


class BufferedSink(BaseSink):
    """Queues lines for an inner sink and writes them in batches.

    One buffer per sink, so a failing sink keeps its own backlog without
    replaying lines to healthy ones.
    """

    def __init__(
        self,
        inner: BaseSink,
        *,
        max_entries: int,
        flush_interval: float = 5.0,
        capacity: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(inner.name, inner.min_level)
        self.inner = inner
        self.buffer: WriteBuffer[Entry] = WriteBuffer(
            max_entries, flush_interval=flush_interval, capacity=capacity, clock=clock
        )

    def accepts(self, level: Severity) -> bool:
        return self.inner.accepts(level)

    def bind_reporter(self, reporter: Reporter) -> None:
        super().bind_reporter(reporter)
        self.inner.bind_reporter(reporter)

    def emit(self, text: str, level: Severity) -> None:
        dropped = self.buffer.append((text, level))
        if dropped:
            self._report(BufferOverflowError(sink=self.name, dropped=dropped, capacity=self.buffer.capacity))
        if self.buffer.due:
            self.flush()

    def flush(self) -> None:
        self.buffer.flush(self.inner.emit_batch)
        self.inner.flush()

    def close(self) -> None:
        try:
            self.flush()
        finally:
            self.inner.close()


# =============================================================================
# Destination Set
# =============================================================================


class DestinationSet:
    """Sinks in registration order; one failing sink never blocks the others."""

    def __init__(self, sinks: Iterable[BaseSink] = ()) -> None:
        self._sinks: List[BaseSink] = list(sinks)

    def __iter__(self) -> Iterator[BaseSink]:
        return iter(self._sinks)

    def __len__(self) -> int:
        return len(self._sinks)

    def add(self, sink: BaseSink) -> None:
        self._sinks.append(sink)

    def get(self, name: str) -> Optional[BaseSink]:
        return next((s for s in self._sinks if s.name == name), None)

    def remove(self, name: str) -> Optional[BaseSink]:
        sink = self.get(name)
        if sink is not None:
            self._sinks.remove(sink)
        return sink

    def accepts_any(self, level: Severity) -> bool:
        return any(sink.accepts(level) for sink in self._sinks)

    def dispatch(self, text: str, level: Severity) -> List[LogwardenError]:
        errors: List[LogwardenError] = []
        for sink in self._sinks:
            if not sink.accepts(level):
                continue
            try:
                sink.emit(text, level)
            except Exception as exc:
                errors.append(_wrap(sink, exc))
        return errors

    def flush(self) -> List[LogwardenError]:
        return self._each(lambda sink: sink.flush())

    def close(self) -> List[LogwardenError]:
        return self._each(lambda sink: sink.close())

    def _each(self, action: Callable[[BaseSink], None]) -> List[LogwardenError]:
        errors: List[LogwardenError] = []
        for sink in self._sinks:
            try:
                action(sink)
            except Exception as exc:
                errors.append(_wrap(sink, exc))
        return errors


def _wrap(sink: BaseSink, exc: Exception) -> LogwardenError:
    """Keep the specific error when the sink already raised one of ours."""
    if isinstance(exc, LogwardenError):
        exc.details.setdefault("sink", sink.name)
        return exc
    error = DestinationError(sink=sink.name, reason=str(exc) or type(exc).__name__)
    error.__cause__ = exc
    return error
