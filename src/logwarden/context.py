"""
Scoped properties.

A property pushed onto the stack is attached to every record logged until its
handle is released. Pushing a key that already exists shadows it; releasing
the handle brings the previous value (or its absence) back. Handles are meant
to be used with ``with`` so release also happens on error paths.
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional, Tuple


class ScopeHandle:
    """Release token returned by ``ScopedPropertyStack.push``."""

    def __init__(self, stack: "ScopedPropertyStack", frame_ids: Tuple[int, ...]) -> None:
        self._stack = stack
        self._frame_ids = frame_ids
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Remove this handle's frames. Calling it twice is a no-op."""
        if self._released:
            return
        self._released = True
        self._stack._remove(self._frame_ids)

    def __enter__(self) -> "ScopeHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class ScopedPropertyStack:
    def __init__(self) -> None:
        self._frames: List[Tuple[int, str, Any]] = []
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._frames)

    def push(self, key: str, value: Any) -> ScopeHandle:
        frame_id = next(self._ids)
        self._frames.append((frame_id, key, value))
        return ScopeHandle(self, (frame_id,))

    def scope(self, **properties: Any) -> ScopeHandle:
        """Push several properties that are released together."""
        frame_ids = []
        for key, value in properties.items():
            frame_id = next(self._ids)
            self._frames.append((frame_id, key, value))
            frame_ids.append(frame_id)
        return ScopeHandle(self, tuple(frame_ids))

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        for _, frame_key, value in reversed(self._frames):
            if frame_key == key:
                return value
        return default

    def snapshot(self) -> Dict[str, Any]:
        """Effective properties, innermost scope winning."""
        result: Dict[str, Any] = {}
        for _, key, value in self._frames:
            result[key] = value
        return result

    def clear(self) -> None:
        self._frames.clear()

    def _remove(self, frame_ids: Tuple[int, ...]) -> None:
        # Frames are removed by identity, so out-of-order release still
        # leaves every other scope's view intact.
        doomed = set(frame_ids)
        self._frames = [frame for frame in self._frames if frame[0] not in doomed]
