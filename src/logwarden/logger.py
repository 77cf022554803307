"""
Logger orchestrator.

Drives each record through the pipeline:

    Sampler -> level gate -> filter chain -> enrichment + formatting
            -> destinations (file rotation happens inside the file sink)

Anything expensive (enrichment, formatting, disk I/O) runs only for records
that will actually be emitted. No exception ever leaves ``log``; failures are
collected in ``errors``, passed to ``on_error`` and written to the diagnostics
channel.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, Iterable, Optional, Protocol

from .config.logging import LoggerSettings
from .context import ScopedPropertyStack, ScopeHandle
from .diagnostics import ensure_diagnostics, get_diagnostic_logger
from .enrichers import BaseEnricher, EnrichmentChain
from .exceptions import DestinationError, LogwardenError
from .filters import BaseFilter, FilterChain
from .formatters import RecordFormatter
from .levels import Severity
from .records import LogRecord
from .sampling import Sampler
from .sinks import BaseSink, BufferedSink, ConsoleSink, DestinationSet, EventLogSink, FileSink

logger = get_diagnostic_logger("logwarden.logger")

ErrorCallback = Callable[[LogwardenError], None]


class Formatter(Protocol):
    def format(self, record: LogRecord) -> str: ...


def _local_now() -> datetime:
    return datetime.now().astimezone()


class Logger:
    """A configured logging pipeline.

    Args:
        settings: Logger configuration; defaults are read from ``LW_LOG_*``.
        sinks: Destinations to use instead of the ones derived from settings.
        filters: Initial filter chain.
        enrichers: Initial enrichment chain.
        formatter: Anything with ``format(record) -> str``.
        on_error: Called with every reported error.
        clock: Source of record timestamps.
    """

    MAX_REPORTED_ERRORS = 100

    def __init__(
        self,
        settings: Optional[LoggerSettings] = None,
        *,
        sinks: Optional[Iterable[BaseSink]] = None,
        filters: Iterable[BaseFilter] = (),
        enrichers: Iterable[BaseEnricher] = (),
        formatter: Optional[Formatter] = None,
        on_error: Optional[ErrorCallback] = None,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self.settings = settings or LoggerSettings()
        ensure_diagnostics(self.settings.diagnostics_level)

        self.level = Severity.coerce(self.settings.level.value)
        self.correlation_id = self.settings.correlation_id
        self.formatter: Formatter = formatter or RecordFormatter(
            self.settings.format,
            timestamp_format=self.settings.timestamp_format,
            no_info=self.settings.no_info,
        )
        self.sampler = Sampler(self.settings.sample_rate)
        self.filters = FilterChain(filters)
        self.enrichers = EnrichmentChain(enrichers)
        self.properties = ScopedPropertyStack()
        self.errors: Deque[LogwardenError] = deque(maxlen=self.MAX_REPORTED_ERRORS)
        self.on_error = on_error
        self._clock = clock
        self._closed = False

        self.destinations = DestinationSet()
        for sink in self._default_sinks() if sinks is None else sinks:
            self.add_sink(sink)

    # =========================================================================
    # Configuration
    # =========================================================================

    def _default_sinks(self) -> list[BaseSink]:
        cfg = self.settings
        sinks: list[BaseSink] = []
        if cfg.file_enabled:
            sinks.append(
                FileSink(
                    cfg.path,
                    cfg.name,
                    rotation=cfg.rotation_policy(),
                    log_count_max=cfg.log_count_max,
                    compress=cfg.compress,
                    retry_count=cfg.retry_count,
                    retry_delay=cfg.retry_delay,
                    encoding=cfg.encoding,
                    min_free_space=cfg.min_free_space,
                    marker=self._format_marker if cfg.start_marker else None,
                )
            )
        if cfg.console:
            level = cfg.console_level.value if cfg.console_level else Severity.DEBUG
            sinks.append(ConsoleSink(min_level=level))
        if cfg.event_log:
            sinks.append(
                EventLogSink(
                    cfg.event_log_source,
                    channel=cfg.event_log_channel,
                    min_level=cfg.event_log_level.value,
                )
            )
        return sinks

    def add_sink(self, sink: BaseSink) -> BaseSink:
        """Register a destination, wrapping it in a buffer when buffering is enabled."""
        if self.settings.buffer_size and not isinstance(sink, BufferedSink):
            sink = BufferedSink(
                sink,
                max_entries=self.settings.buffer_size,
                flush_interval=self.settings.flush_interval,
                capacity=self.settings.buffer_capacity,
            )
        sink.bind_reporter(self._report)
        self.destinations.add(sink)
        return sink

    def remove_sink(self, name: str) -> Optional[BaseSink]:
        sink = self.destinations.remove(name)
        if sink is not None:
            self._report_all(DestinationSet([sink]).close())
        return sink

    def add_filter(self, record_filter: BaseFilter) -> None:
        self.filters.add(record_filter)

    def add_enricher(self, enricher: BaseEnricher) -> None:
        self.enrichers.add(enricher)

    # =========================================================================
    # Scoped properties
    # =========================================================================

    def push_property(self, key: str, value: Any) -> ScopeHandle:
        return self.properties.push(key, value)

    def scope(self, **properties: Any) -> ScopeHandle:
        """Attach properties to every record logged inside the ``with`` block."""
        return self.properties.scope(**properties)

    # =========================================================================
    # Logging
    # =========================================================================

    def log(
        self,
        message: str,
        level: Severity | str | int = Severity.INFO,
        *,
        correlation_id: Optional[str] = None,
        **properties: Any,
    ) -> bool:
        """Log one record. Returns True if it reached the destinations."""
        if self._closed:
            return False
        try:
            severity = Severity.coerce(level)
            if not self.sampler.should_sample():
                return False
            if not severity.passes(self.level) or not self.destinations.accepts_any(severity):
                return False

            record = LogRecord(
                timestamp=self._clock(),
                level=severity,
                message=str(message),
                correlation_id=correlation_id or self.correlation_id,
                properties={**self.properties.snapshot(), **properties},
            )
            if not self.filters.accepts(record):
                return False

            record = self.enrichers.apply(record)
            text = self.formatter.format(record)
        except LogwardenError as exc:
            self._report(exc)
            return False
        except Exception as exc:
            self._report(DestinationError(sink="pipeline", reason=str(exc) or type(exc).__name__))
            return False

        self._report_all(self.destinations.dispatch(text, severity))
        return True

    def critical(self, message: str, **kwargs: Any) -> bool:
        return self.log(message, Severity.CRITICAL, **kwargs)

    def error(self, message: str, **kwargs: Any) -> bool:
        return self.log(message, Severity.ERROR, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> bool:
        return self.log(message, Severity.WARNING, **kwargs)

    def success(self, message: str, **kwargs: Any) -> bool:
        return self.log(message, Severity.SUCCESS, **kwargs)

    def info(self, message: str, **kwargs: Any) -> bool:
        return self.log(message, Severity.INFO, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> bool:
        return self.log(message, Severity.DEBUG, **kwargs)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def closed(self) -> bool:
        return self._closed

    def flush(self) -> None:
        self._report_all(self.destinations.flush())

    def close(self) -> None:
        """Flush buffers and release every destination. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._report_all(self.destinations.close())
        self.properties.clear()

    def __enter__(self) -> "Logger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # =========================================================================
    # Internals
    # =========================================================================

    def _format_marker(self, message: str) -> str:
        return self.formatter.format(LogRecord(timestamp=self._clock(), level=Severity.INFO, message=message))

    def _report_all(self, errors: Iterable[LogwardenError]) -> None:
        for error in errors:
            self._report(error)

    def _report(self, error: LogwardenError) -> None:
        self.errors.append(error)
        logger.error("logging_failure", code=error.code, error=str(error), **error.details)
        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception as exc:
                logger.warning("error_callback_failed", error=str(exc))
