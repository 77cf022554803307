"""
Conditional filters.

A record is emitted only if every registered filter accepts it. Filters run
before formatting, so they only see the raw record: timestamp, level, message,
correlation id and scoped properties.
"""

from __future__ import annotations

import getpass
import re
from abc import ABC, abstractmethod
from datetime import time
from typing import Callable, Iterable, Iterator, List, Optional

from .records import LogRecord


class BaseFilter(ABC):
    """Abstract base class for record filters."""

    name: str = "filter"

    @abstractmethod
    def accepts(self, record: LogRecord) -> bool:
        """Return True to let the record through."""
        ...


class FunctionFilter(BaseFilter):
    """Wraps an arbitrary predicate."""

    def __init__(self, predicate: Callable[[LogRecord], bool], name: str = "function") -> None:
        self._predicate = predicate
        self.name = name

    def accepts(self, record: LogRecord) -> bool:
        return bool(self._predicate(record))


class TimeFilter(BaseFilter):
    """Accepts records whose local time of day falls in ``[start, end)``.

    A window with ``start > end`` wraps around midnight (e.g. 22:00-06:00).
    ``weekdays`` optionally restricts the filter to ``datetime.weekday()``
    values (Monday is 0).
    """

    name = "time"

    def __init__(self, start: time, end: time, weekdays: Optional[Iterable[int]] = None) -> None:
        self.start = start
        self.end = end
        self.weekdays = frozenset(weekdays) if weekdays is not None else None

    def accepts(self, record: LogRecord) -> bool:
        if self.weekdays is not None and record.timestamp.weekday() not in self.weekdays:
            return False
        now = record.timestamp.time().replace(tzinfo=None)
        if self.start <= self.end:
            return self.start <= now < self.end
        return now >= self.start or now < self.end


class UserFilter(BaseFilter):
    """Accepts records depending on the account running the process."""

    name = "user"

    def __init__(
        self,
        allowed: Iterable[str] = (),
        denied: Iterable[str] = (),
        *,
        current_user: Callable[[], str] = getpass.getuser,
    ) -> None:
        self.allowed = {u.lower() for u in allowed}
        self.denied = {u.lower() for u in denied}
        self._current_user = current_user

    def accepts(self, record: LogRecord) -> bool:
        user = self._current_user().lower()
        if user in self.denied:
            return False
        return not self.allowed or user in self.allowed


class PatternFilter(BaseFilter):
    """Accepts messages matching a regular expression (or rejects them with ``exclude``)."""

    name = "pattern"

    def __init__(self, pattern: str | re.Pattern[str], *, exclude: bool = False) -> None:
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self.exclude = exclude

    def accepts(self, record: LogRecord) -> bool:
        matched = self.pattern.search(record.message) is not None
        return not matched if self.exclude else matched


class FilterChain:
    """Ordered AND over registered filters, short-circuiting on the first rejection."""

    def __init__(self, filters: Iterable[BaseFilter] = ()) -> None:
        self._filters: List[BaseFilter] = list(filters)

    def __len__(self) -> int:
        return len(self._filters)

    def __iter__(self) -> Iterator[BaseFilter]:
        return iter(self._filters)

    def add(self, record_filter: BaseFilter) -> None:
        self._filters.append(record_filter)

    def remove(self, record_filter: BaseFilter) -> None:
        self._filters.remove(record_filter)

    def accepts(self, record: LogRecord) -> bool:
        return all(f.accepts(record) for f in self._filters)
