"""
logwarden configuration.

One settings model per concern, each with its own environment prefix:

    LW_ENV       deployment environment (development, testing, staging, production)
    LW_LOG_*     logger and destination settings

``settings`` only holds configuration; building a logger from it is explicit::

    from logwarden import configure_logging
    from logwarden.config import settings

    configure_logging(settings.logging)
"""

from functools import cached_property

from pydantic_settings import BaseSettings, SettingsConfigDict

from .environment import EnvironmentSettings, current_env_files, env_files_for
from .logging import LoggerSettings, LogLevel, validate_log_name


class Settings(BaseSettings):
    """Composite of the per-concern settings, each loaded on first access."""

    model_config = SettingsConfigDict(
        env_file=current_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @cached_property
    def environment(self) -> EnvironmentSettings:
        return EnvironmentSettings(_env_file=self.environment_files)

    @cached_property
    def logging(self) -> LoggerSettings:
        return LoggerSettings(_env_file=self.environment_files)

    @property
    def environment_files(self) -> tuple[str, ...]:
        return current_env_files()


settings = Settings()

__all__ = [
    "Settings",
    "settings",
    "EnvironmentSettings",
    "LoggerSettings",
    "LogLevel",
    "env_files_for",
    "validate_log_name",
]
