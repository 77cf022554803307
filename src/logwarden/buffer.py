from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque, Generic, List, TypeVar

T = TypeVar("T")


class WriteBuffer(Generic[T]):
    """Bounded in-memory queue flushed in batches.

    A flush is due once ``max_entries`` items are queued or ``flush_interval``
    seconds have passed since the last flush. There is no background thread:
    callers check ``due`` after each append.

    ``flush`` hands every pending item to the writer in one call and clears
    them only when the writer returns; if it raises, the items stay queued for
    the next attempt and the exception propagates.
    """

    def __init__(
        self,
        max_entries: int,
        *,
        flush_interval: float = 5.0,
        capacity: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.flush_interval = flush_interval
        self.capacity = max(capacity, max_entries)
        self._clock = clock
        self._items: Deque[T] = deque()
        self._last_flush = clock()

    def __len__(self) -> int:
        return len(self._items)

    @property
    def pending(self) -> List[T]:
        return list(self._items)

    @property
    def due(self) -> bool:
        if not self._items:
            return False
        if len(self._items) >= self.max_entries:
            return True
        return self._clock() - self._last_flush >= self.flush_interval

    def append(self, item: T) -> int:
        """Queue an item. Returns how many of the oldest items were dropped to make room."""
        dropped = 0
        while len(self._items) >= self.capacity:
            self._items.popleft()
            dropped += 1
        self._items.append(item)
        return dropped

    def flush(self, writer: Callable[[List[T]], None]) -> int:
        if not self._items:
            self._last_flush = self._clock()
            return 0
        batch = list(self._items)
        writer(batch)
        self._items.clear()
        self._last_flush = self._clock()
        return len(batch)

    def discard(self) -> List[T]:
        """Drop everything queued and return it."""
        dropped = list(self._items)
        self._items.clear()
        return dropped
