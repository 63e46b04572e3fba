"""Library configuration loaded from environment variables."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the connection workflow.

    Values come from ``CARE_CONNECTIONS_*`` environment variables or a local
    ``.env`` file. When neither ``database_url`` nor ``sqlite_path`` is set the
    engine falls back to in-memory SQLite.
    """

    model_config = SettingsConfigDict(
        env_prefix="CARE_CONNECTIONS_",
        env_file=".env",
        extra="ignore",
    )

    database_url: str | None = None
    sqlite_path: Path | None = None
    echo: bool = False
    log_level: str = "INFO"

    message_min_length: int = Field(default=10, ge=0)
    message_max_length: int = Field(default=1000, ge=1)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level {value!r}.")
        return level

    @model_validator(mode="after")
    def _check_consistency(self) -> "Settings":
        if self.database_url and self.sqlite_path is not None:
            raise ValueError("Provide either 'database_url' or 'sqlite_path', not both.")
        if self.message_min_length > self.message_max_length:
            raise ValueError("message_min_length cannot exceed message_max_length.")
        return self


def get_settings() -> Settings:
    """Return settings read from the current environment."""
    return Settings()


__all__ = ["Settings", "get_settings"]
