"""Configuration for the PostgreSQL configuration store."""

from datetime import timedelta

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationStoreSettings(BaseSettings):
    """Process-wide defaults for the configuration store.

    Settings can be configured via environment variables with the
    `CONFSTORE_POSTGRES_` prefix. Per-store values (connection string, table,
    idle time) come from the component metadata passed to ``init``.
    """

    # Used when the metadata carries no connMaxIdleTime
    default_max_idle_time: timedelta = timedelta(minutes=30)

    pool_min_size: int = 1
    pool_max_size: int = 10
    application_name: str = "confstore"

    @model_validator(mode="after")
    def validate_pool_settings(self) -> "ConfigurationStoreSettings":
        """Validate pool and timeout settings."""
        if self.pool_min_size < 0 or self.pool_max_size < 1:
            raise ValueError("Pool sizes must be positive integers")

        if self.pool_min_size > self.pool_max_size:
            raise ValueError(
                "Minimum pool size cannot be greater than maximum pool size"
            )

        if self.default_max_idle_time <= timedelta(0):
            raise ValueError("Default max idle time must be positive")

        return self

    model_config = SettingsConfigDict(
        env_prefix="CONFSTORE_POSTGRES_",
        case_sensitive=False,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )


# Default settings instance
default_settings = ConfigurationStoreSettings()
