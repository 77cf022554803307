import os
import typing as t
from datetime import datetime, timezone

import pytest

from logwarden.config import LoggerSettings
from logwarden.core import shutdown_logging
from logwarden.levels import Severity
from logwarden.records import LogRecord
from logwarden.sinks import CallableSink


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Keep LW_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("LW_"):
            monkeypatch.delenv(key, raising=False)
    yield
    shutdown_logging()


@pytest.fixture
def make_settings(tmp_path) -> t.Callable[..., LoggerSettings]:
    """Settings pointing at a temporary directory, without retry delays."""

    def factory(**overrides: t.Any) -> LoggerSettings:
        values: dict[str, t.Any] = {"name": "app", "path": str(tmp_path), "retry_delay": 0}
        values.update(overrides)
        return LoggerSettings(**values)

    return factory


@pytest.fixture
def make_record() -> t.Callable[..., LogRecord]:
    def factory(message: str = "hello", level: Severity = Severity.INFO, **kwargs: t.Any) -> LogRecord:
        kwargs.setdefault("timestamp", datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc))
        return LogRecord(level=level, message=message, **kwargs)

    return factory


class Collector:
    """Sink target that remembers what it was given."""

    def __init__(self) -> None:
        self.lines: list[tuple[str, Severity]] = []

    def __call__(self, text: str, level: Severity) -> None:
        self.lines.append((text, level))

    @property
    def texts(self) -> list[str]:
        return [text for text, _ in self.lines]


@pytest.fixture
def collector() -> Collector:
    return Collector()


@pytest.fixture
def collecting_sink(collector) -> CallableSink:
    return CallableSink(collector, name="collector")
