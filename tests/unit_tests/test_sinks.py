"""
Sink tests: file writes with retry and rotation, console colouring, event log
degradation and fan-out isolation in DestinationSet.
"""

from __future__ import annotations

import errno
import io
import shutil
from pathlib import Path
from types import SimpleNamespace

import pytest
from structlog.testing import capture_logs

from logwarden.exceptions import (
    ArchiveMergeError,
    DestinationError,
    InsufficientSpaceError,
    IOPermanentError,
    IOTransientError,
)
from logwarden.levels import Severity
from logwarden.rotation import Archiver, RotationPolicy, SizeThreshold
from logwarden.sinks import (
    ROTATED_MARKER,
    STARTED_MARKER,
    CallableSink,
    ConsoleSink,
    DestinationSet,
    EventLogSink,
    FileSink,
    NullSink,
)


def _marker(text: str) -> str:
    return f"[marker] {text}"


class _FlakyOpener:
    """Fails the first ``failures`` opens with the given errno, then opens for real."""

    def __init__(self, failures: int, err: int = errno.EIO) -> None:
        self.failures = failures
        self.err = err
        self.calls = 0

    def __call__(self, path, mode, encoding=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise OSError(self.err, "simulated failure")
        return open(path, mode, encoding=encoding)


class TestFileSink:
    def test_creates_directory_and_appends(self, tmp_path) -> None:
        sink = FileSink(tmp_path / "nested" / "logs", "app")
        sink.emit("one", Severity.INFO)
        sink.emit("two", Severity.INFO)
        assert sink.path.read_text().splitlines() == ["one", "two"]

    def test_start_marker_on_new_file_only(self, tmp_path) -> None:
        sink = FileSink(tmp_path, "app", marker=_marker)
        sink.emit("one", Severity.INFO)
        sink.emit("two", Severity.INFO)
        assert sink.path.read_text().splitlines() == [f"[marker] {STARTED_MARKER}", "one", "two"]

    def test_batch_is_written_in_one_append(self, tmp_path) -> None:
        opener = _FlakyOpener(0)
        sink = FileSink(tmp_path, "app", opener=opener)
        sink.emit_batch([("a", Severity.INFO), ("b", Severity.ERROR)])
        assert opener.calls == 1
        assert sink.path.read_text() == "a\nb\n"

    def test_transient_failure_is_retried(self, tmp_path) -> None:
        opener = _FlakyOpener(2)
        sink = FileSink(tmp_path, "app", retry_count=3, retry_delay=0, opener=opener)
        sink.emit("survived", Severity.INFO)
        assert opener.calls == 3
        assert sink.path.read_text() == "survived\n"

    def test_retries_exhausted(self, tmp_path) -> None:
        opener = _FlakyOpener(100)
        sink = FileSink(tmp_path, "app", retry_count=2, retry_delay=0, opener=opener)
        with pytest.raises(IOTransientError) as excinfo:
            sink.emit("lost", Severity.INFO)
        assert opener.calls == 3
        assert excinfo.value.details["attempts"] == 3

    def test_disk_full_is_not_retried(self, tmp_path) -> None:
        opener = _FlakyOpener(100, err=errno.ENOSPC)
        sink = FileSink(tmp_path, "app", retry_count=5, retry_delay=0, opener=opener)
        with pytest.raises(IOPermanentError):
            sink.emit("lost", Severity.INFO)
        assert opener.calls == 1

    def test_unusable_directory_is_permanent(self, tmp_path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        sink = FileSink(blocker / "logs", "app")
        with pytest.raises(IOPermanentError):
            sink.emit("lost", Severity.INFO)

    def test_free_space_check(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(shutil, "disk_usage", lambda path: SimpleNamespace(total=100, used=90, free=10))
        sink = FileSink(tmp_path, "app", min_free_space=1024)
        with pytest.raises(InsufficientSpaceError) as excinfo:
            sink.emit("lost", Severity.INFO)
        assert excinfo.value.details["free_bytes"] == 10
        assert not sink.path.exists()

    def test_rotates_before_write_with_marker(self, tmp_path) -> None:
        sink = FileSink(
            tmp_path,
            "app",
            rotation=RotationPolicy(SizeThreshold(10)),
            marker=_marker,
        )
        sink.emit("first line is long", Severity.INFO)
        sink.emit("second", Severity.INFO)

        assert (tmp_path / "app.1.log").read_text().splitlines() == [
            f"[marker] {STARTED_MARKER}",
            "first line is long",
        ]
        assert sink.path.read_text().splitlines() == [f"[marker] {ROTATED_MARKER}", "second"]

    def test_archive_failure_is_reported_and_write_continues(self, tmp_path, monkeypatch) -> None:
        reported = []
        sink = FileSink(tmp_path, "app", rotation=RotationPolicy(SizeThreshold(1)))
        sink.bind_reporter(reported.append)
        sink.emit("seed", Severity.INFO)

        def failing_rotate(self):
            self.active_path.rename(self.directory / self.backup_name(1))
            raise ArchiveMergeError(archive=str(self.archive_path), pending=["app.1.log"], reason="boom")

        monkeypatch.setattr(Archiver, "rotate", failing_rotate)
        sink.emit("after", Severity.INFO)

        assert [type(e) for e in reported] == [ArchiveMergeError]
        assert sink.path.read_text() == "after\n"

    def test_leftover_after_archiving_still_counts_as_rotation(self, tmp_path, monkeypatch) -> None:
        reported = []
        sink = FileSink(tmp_path, "app", rotation=RotationPolicy(SizeThreshold(1)), compress=True, marker=_marker)
        sink.bind_reporter(reported.append)
        sink.emit("first", Severity.INFO)

        real_unlink = Path.unlink

        def locked_backup(self, *args, **kwargs):
            if self.name == "app.1.log":
                raise PermissionError("locked")
            return real_unlink(self, *args, **kwargs)

        monkeypatch.setattr(Path, "unlink", locked_backup)
        with capture_logs() as logs:
            sink.emit("second", Severity.INFO)

        assert reported == []
        assert sink.path.read_text().splitlines() == [f"[marker] {ROTATED_MARKER}", "second"]
        assert sink.archiver.archive_members() == ["app.1.log"]
        assert any(e["event"] == "archived_file_not_removed" for e in logs)


class TestConsoleSink:
    def test_plain_output_when_not_a_tty(self) -> None:
        stream = io.StringIO()
        ConsoleSink(stream=stream).emit("hello", Severity.ERROR)
        assert stream.getvalue() == "hello\n"

    def test_forced_colour(self) -> None:
        stream = io.StringIO()
        ConsoleSink(stream=stream, use_color=True).emit("hello", Severity.ERROR)
        assert stream.getvalue().startswith("\x1b[")
        assert "hello" in stream.getvalue()

    def test_writes_to_current_stdout(self, capsys) -> None:
        ConsoleSink().emit("to stdout", Severity.INFO)
        assert capsys.readouterr().out == "to stdout\n"


class _FakeBackend:
    def __init__(self) -> None:
        self.written = []
        self.closed = False

    def write(self, message, level) -> None:
        self.written.append((message, level))

    def close(self) -> None:
        self.closed = True


class TestEventLogSink:
    def test_defaults_to_error_and_above(self) -> None:
        sink = EventLogSink(backend=_FakeBackend())
        assert sink.accepts(Severity.CRITICAL)
        assert sink.accepts(Severity.ERROR)
        assert not sink.accepts(Severity.WARNING)

    def test_writes_through_backend(self) -> None:
        backend = _FakeBackend()
        sink = EventLogSink("billing", backend=backend)
        sink.emit("failed charge", Severity.ERROR)
        sink.close()
        assert backend.written == [("failed charge", Severity.ERROR)]
        assert backend.closed

    def test_unavailable_backend_degrades_to_noop(self, monkeypatch) -> None:
        def no_backend(source, channel):
            raise IOPermanentError(path="/dev/log", reason="no local syslog socket")

        monkeypatch.setattr("logwarden.sinks.default_event_log_backend", no_backend)
        with capture_logs() as logs:
            sink = EventLogSink("billing")
        assert not sink.available
        sink.emit("dropped", Severity.CRITICAL)
        sink.close()
        assert any(e["event"] == "event_log_unavailable" for e in logs)


class TestDestinationSet:
    def test_failing_sink_does_not_block_others(self, collecting_sink, collector) -> None:
        def explode(text, level):
            raise RuntimeError("sink down")

        destinations = DestinationSet([CallableSink(explode, name="broken"), collecting_sink])
        errors = destinations.dispatch("line", Severity.INFO)

        assert collector.texts == ["line"]
        assert len(errors) == 1
        assert isinstance(errors[0], DestinationError)
        assert errors[0].details["sink"] == "broken"

    def test_own_errors_are_kept_with_sink_name(self, tmp_path) -> None:
        sink = FileSink(tmp_path, "app", retry_count=0, opener=_FlakyOpener(10), name="disk")
        errors = DestinationSet([sink]).dispatch("line", Severity.INFO)
        assert isinstance(errors[0], IOTransientError)
        assert errors[0].details["sink"] == "disk"

    def test_per_sink_levels(self, collector) -> None:
        errors_only = CallableSink(collector, min_level=Severity.ERROR, name="errors")
        destinations = DestinationSet([errors_only, NullSink(min_level=Severity.WARNING)])

        destinations.dispatch("info", Severity.INFO)
        destinations.dispatch("bad", Severity.ERROR)

        assert collector.texts == ["bad"]
        assert destinations.accepts_any(Severity.WARNING)
        assert not destinations.accepts_any(Severity.INFO)

    def test_get_and_remove(self, collecting_sink) -> None:
        destinations = DestinationSet([collecting_sink])
        assert destinations.get("collector") is collecting_sink
        assert destinations.remove("collector") is collecting_sink
        assert destinations.get("collector") is None
        assert len(destinations) == 0

    def test_close_reports_each_failure(self, collecting_sink) -> None:
        class BadClose(NullSink):
            def close(self) -> None:
                raise OSError("handle lost")

        errors = DestinationSet([BadClose(name="bad"), collecting_sink]).close()
        assert [e.details["sink"] for e in errors] == ["bad"]
