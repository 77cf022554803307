"""
Deployment environment.

Read from ``LW_ENV``. It is reported on records by ``EnvironmentEnricher`` and
selects which ``.env.{env}`` files the composite settings load.
"""

import os
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "testing", "staging", "production"]

ENV_VARIABLE = "LW_ENV"


def env_files_for(env: str) -> tuple[str, ...]:
    """``.env`` files for ``env``; later files override earlier ones."""
    return (".env", ".env.local", f".env.{env}", f".env.{env}.local")


def current_env_files() -> tuple[str, ...]:
    return env_files_for(os.getenv(ENV_VARIABLE, "development"))


class EnvironmentSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LW_", extra="ignore")

    env: Environment = Field(default="development", description="Deployment environment name")

    @property
    def env_files(self) -> tuple[str, ...]:
        return env_files_for(self.env)
