"""
Rotation policies.

One policy is active per logger. It is parsed once from a single string and
evaluated right before each write, against the active file's size and
last-write time.

Recognised forms (case-insensitive):
- ``<int>K``, ``<int>M``, ``<int>G``: size threshold (binary multiples)
- ``<int>``: age threshold in days
- ``daily``, ``weekly``, ``monthly``, ``<int>d``, ``<int>w``, ``<int>mo``: calendar
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Union

from ..exceptions import ConfigurationError

_SIZE_UNITS = {"K": 1024, "M": 1024**2, "G": 1024**3}

_MONTHS_RE = re.compile(r"^(\d+)mo$", re.IGNORECASE)
_SIZE_RE = re.compile(r"^(\d+)([KMG])$", re.IGNORECASE)
_CALENDAR_RE = re.compile(r"^(\d+)([DW])$", re.IGNORECASE)
_AGE_RE = re.compile(r"^(\d+)$")


@dataclass(frozen=True)
class FileMeta:
    """What a policy needs to know about the active file."""

    size: int
    last_write: datetime

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> "FileMeta":
        stat = Path(path).stat()
        return cls(size=stat.st_size, last_write=datetime.fromtimestamp(stat.st_mtime))


@dataclass(frozen=True)
class SizeThreshold:
    max_bytes: int

    def should_rotate(self, meta: FileMeta, now: datetime) -> bool:
        return meta.size > self.max_bytes


@dataclass(frozen=True)
class AgeThreshold:
    days: int

    def should_rotate(self, meta: FileMeta, now: datetime) -> bool:
        # Last write rather than creation: an idle file is not rotated early.
        return (now - meta.last_write).days > self.days


class CalendarUnit(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class CalendarPattern:
    unit: CalendarUnit
    every: int = 1

    def should_rotate(self, meta: FileMeta, now: datetime) -> bool:
        last = meta.last_write
        if self.unit is CalendarUnit.MONTH:
            months = (now.year - last.year) * 12 + (now.month - last.month)
            return months >= self.every
        days = (now.date() - last.date()).days
        if self.unit is CalendarUnit.WEEK:
            return days >= 7 * self.every
        return days >= self.every


RotationSpec = Union[SizeThreshold, AgeThreshold, CalendarPattern]

_NAMED_PATTERNS = {
    "daily": CalendarPattern(CalendarUnit.DAY),
    "weekly": CalendarPattern(CalendarUnit.WEEK),
    "monthly": CalendarPattern(CalendarUnit.MONTH),
}


def _positive(amount: str, raw: str) -> int:
    value = int(amount)
    if value < 1:
        raise ConfigurationError(f"Rotation amount must be positive: {raw!r}", field="rotation", value=raw)
    return value


def parse_rotation_spec(value: str) -> RotationSpec:
    """Parse a rotation string into exactly one policy variant.

    Raises:
        ConfigurationError: for anything that is not a recognised form.
    """
    if not isinstance(value, str):
        raise ConfigurationError(f"Rotation spec must be a string, got {value!r}", field="rotation", value=value)
    text = value.strip()

    named = _NAMED_PATTERNS.get(text.lower())
    if named is not None:
        return named

    # Months first, so "3mo" is not read as "3M" followed by garbage.
    match = _MONTHS_RE.match(text)
    if match:
        return CalendarPattern(CalendarUnit.MONTH, _positive(match.group(1), value))

    match = _SIZE_RE.match(text)
    if match:
        return SizeThreshold(_positive(match.group(1), value) * _SIZE_UNITS[match.group(2).upper()])

    match = _CALENDAR_RE.match(text)
    if match:
        unit = CalendarUnit.DAY if match.group(2).upper() == "D" else CalendarUnit.WEEK
        return CalendarPattern(unit, _positive(match.group(1), value))

    match = _AGE_RE.match(text)
    if match:
        return AgeThreshold(_positive(match.group(1), value))

    raise ConfigurationError(f"Unrecognised rotation spec: {value!r}", field="rotation", value=value)


class RotationPolicy:
    """Decides whether the active file must roll over before the next write."""

    def __init__(self, spec: RotationSpec, *, now: Callable[[], datetime] = datetime.now) -> None:
        self.spec = spec
        self._now = now

    @classmethod
    def parse(cls, value: str, *, now: Callable[[], datetime] = datetime.now) -> "RotationPolicy":
        return cls(parse_rotation_spec(value), now=now)

    def should_rotate(self, meta: FileMeta) -> bool:
        return self.spec.should_rotate(meta, self._now())

    def __repr__(self) -> str:
        return f"RotationPolicy({self.spec!r})"
