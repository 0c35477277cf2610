# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
Configuration for the confstore logging system.

Settings are loaded from environment variables prefixed with
``CONFSTORE_LOGGING_``.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from confstore.logging.level import LogLevel


class LoggingSettings(BaseSettings):
    """Configuration settings for confstore logging."""

    model_config = SettingsConfigDict(
        env_prefix="CONFSTORE_LOGGING_",
        extra="ignore",
        case_sensitive=False,
    )

    level: str = Field(default=LogLevel.INFO.value, description="Log level")
    json_format: bool = Field(default=False, description="Enable JSON log format")
    include_timestamp: bool = Field(
        default=True, description="Include timestamp in logs"
    )
    include_level: bool = Field(default=True, description="Include log level in logs")
    console_enabled: bool = Field(default=True, description="Enable console logging")
    file_enabled: bool = Field(default=False, description="Enable file logging")
    file_path: str | None = Field(default=None, description="Path to log file")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: Any) -> str:
        """Validate that the level is a valid log level."""
        if not isinstance(v, str):
            raise ValueError(f"Log level must be a string, got {type(v).__name__}")
        return LogLevel.from_string(v).value

    @classmethod
    def load(cls) -> LoggingSettings:
        """Load logging settings from environment variables or defaults."""
        return cls()
