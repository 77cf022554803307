"""
Logger Configuration.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import ConfigurationError
from ..formatters import LogFormat
from ..rotation.policy import RotationPolicy, parse_rotation_spec


class LogLevel(str, Enum):
    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    SUCCESS = "SUCCESS"
    INFO = "INFO"
    DEBUG = "DEBUG"


_RESERVED_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_RESERVED_NAMES = {"CON", "PRN", "AUX", "NUL"} | {f"COM{i}" for i in range(1, 10)} | {f"LPT{i}" for i in range(1, 10)}


def validate_log_name(name: str) -> str:
    """Reject names that cannot be used as a file name on common filesystems."""
    if not name or not name.strip():
        raise ConfigurationError("Log name must not be empty", field="name", value=name)
    if _RESERVED_CHARS.search(name):
        raise ConfigurationError(f"Log name contains reserved characters: {name!r}", field="name", value=name)
    if name in {".", ".."} or name.endswith((".", " ")):
        raise ConfigurationError(f"Log name must not end with a dot or space: {name!r}", field="name", value=name)
    if name.split(".")[0].upper() in _RESERVED_NAMES:
        raise ConfigurationError(f"Log name is a reserved device name: {name!r}", field="name", value=name)
    return name


class LoggerSettings(BaseSettings):
    """Configuration of a single ``Logger`` and its destinations."""

    model_config = SettingsConfigDict(
        env_prefix="LW_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # File destination
    name: str = Field(default="logwarden", description="Log file base name ({name}.log)")
    path: str = Field(default="logs", description="Directory holding the log files")
    file_enabled: bool = Field(default=True, description="Write to {path}/{name}.log")
    encoding: str = Field(default="utf-8", description="File encoding")
    start_marker: bool = Field(default=True, description="Write a marker line when a file is started")
    min_free_space: int = Field(default=0, ge=0, description="Bytes that must be free before writing (0 disables)")

    # Formatting
    level: LogLevel = Field(default=LogLevel.INFO, description="Minimum severity")
    format: LogFormat = Field(default=LogFormat.TEXT, description="Output format (text, json)")
    no_info: bool = Field(default=False, description="Emit the bare message without timestamp and level")
    timestamp_format: str = Field(default="%Y-%m-%d %H:%M:%S", description="strftime format for text lines")
    correlation_id: Optional[str] = Field(default=None, description="Correlation id attached to every record")

    # Rotation
    rotation: Optional[str] = Field(default=None, description="Rotation spec: 10M, 7, daily, 2w, 3mo...")
    log_count_max: int = Field(default=5, ge=1, description="Numbered backups to keep")
    compress: bool = Field(default=False, description="Fold rotated files into {name}-archive.zip")

    # Reliability
    retry_count: int = Field(default=3, ge=0, description="Retries for a failed file write")
    retry_delay: float = Field(default=0.5, ge=0, description="Seconds between retries")

    # Buffering and sampling
    buffer_size: int = Field(default=0, ge=0, description="Lines per batched flush (0 disables buffering)")
    flush_interval: float = Field(default=5.0, gt=0, description="Seconds before a partial buffer is flushed")
    buffer_capacity: int = Field(default=10_000, ge=1, description="Maximum queued lines per destination")
    sample_rate: int = Field(default=1, ge=1, description="Keep one record in N")

    # Other destinations
    console: bool = Field(default=False, description="Also write to stdout")
    console_level: Optional[LogLevel] = Field(default=None, description="Console minimum severity")
    event_log: bool = Field(default=False, description="Also write to the OS event log")
    event_log_source: str = Field(default="logwarden", description="Event log source name")
    event_log_channel: str = Field(default="Application", description="Event log channel")
    event_log_level: LogLevel = Field(default=LogLevel.ERROR, description="Event log minimum severity")

    diagnostics_level: str = Field(default="WARNING", description="Level of the engine's own diagnostics")

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return validate_log_name(value)

    @field_validator("rotation")
    @classmethod
    def _check_rotation(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        parse_rotation_spec(value)
        return value.strip()

    def rotation_policy(self) -> Optional[RotationPolicy]:
        if self.rotation is None:
            return None
        return RotationPolicy.parse(self.rotation)
