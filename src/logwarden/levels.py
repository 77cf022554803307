"""
Severity levels.

Lower numeric value means higher priority; a record passes a gate when its
value is less than or equal to the gate's value.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Union

from .exceptions import ConfigurationError


class Severity(IntEnum):
    CRITICAL = 1
    ERROR = 2
    WARNING = 3
    SUCCESS = 4
    INFO = 5
    DEBUG = 6

    def passes(self, minimum: "Severity") -> bool:
        """Whether a record at this level gets through a gate set to ``minimum``."""
        return self.value <= minimum.value

    @property
    def stdlib_level(self) -> int:
        return _STDLIB_LEVELS[self]

    @classmethod
    def coerce(cls, value: Union["Severity", str, int]) -> "Severity":
        """Accept a member, a (case-insensitive) name or an integer value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper()
            name = _ALIASES.get(name, name)
            try:
                return cls[name]
            except KeyError:
                pass
        elif isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                pass
        raise ConfigurationError(f"Unknown severity: {value!r}", field="level", value=value)

    @classmethod
    def from_stdlib(cls, levelno: int) -> "Severity":
        """Map a stdlib ``logging`` level number to the nearest severity."""
        if levelno >= logging.CRITICAL:
            return cls.CRITICAL
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARNING
        if levelno >= SUCCESS_LEVELNO:
            return cls.SUCCESS
        if levelno >= logging.INFO:
            return cls.INFO
        return cls.DEBUG


SUCCESS_LEVELNO = 25

_STDLIB_LEVELS = {
    Severity.CRITICAL: logging.CRITICAL,
    Severity.ERROR: logging.ERROR,
    Severity.WARNING: logging.WARNING,
    Severity.SUCCESS: SUCCESS_LEVELNO,
    Severity.INFO: logging.INFO,
    Severity.DEBUG: logging.DEBUG,
}

_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL", "ERR": "ERROR"}
