"""
Rotation and archival of the active log file.
"""

from .archiver import Archiver
from .policy import (
    AgeThreshold,
    CalendarPattern,
    CalendarUnit,
    FileMeta,
    RotationPolicy,
    RotationSpec,
    SizeThreshold,
    parse_rotation_spec,
)

__all__ = [
    "AgeThreshold",
    "Archiver",
    "CalendarPattern",
    "CalendarUnit",
    "FileMeta",
    "RotationPolicy",
    "RotationSpec",
    "SizeThreshold",
    "parse_rotation_spec",
]
