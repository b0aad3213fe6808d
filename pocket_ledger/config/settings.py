"""
Configuration Management for Pocket Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here so that the storage location,
logging behaviour and money handling are validated once at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Local SQLite storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    path: str = Field(
        default="data/ledger.db",
        description="Path to the SQLite database file"
    )
    url: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides path when set"
    )
    busy_timeout_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="How long SQLite waits on a locked database"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts made to open the database before giving up"
    )
    echo_sql: bool = Field(
        default=False,
        description="Log every SQL statement (debugging only)"
    )

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Only SQLite URLs are supported by the schema manager."""
        if v is not None and not v.startswith("sqlite"):
            raise ValueError(f"Unsupported database URL: {v}. Only sqlite URLs are supported")
        return v

    @property
    def database_url(self) -> str:
        """Get the SQLAlchemy URL for the configured database."""
        if self.url:
            return self.url
        return f"sqlite+pysqlite:///{Path(self.path).expanduser()}"


class LoggingSettings(BaseSettings):
    """structlog configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    json_output: bool = Field(
        default=True,
        description="Render logs as JSON lines (console rendering otherwise)"
    )

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {sorted(allowed)}")
        return v.upper()


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )

    # Money handling
    currency_code: str = Field(
        default="INR",
        min_length=3,
        max_length=3,
        description="ISO currency code used for display"
    )
    minor_unit_exponent: int = Field(
        default=2,
        ge=0,
        le=4,
        description="Digits after the decimal point stored as integer minor units"
    )

    # Read models
    unknown_label: str = Field(
        default="Unknown",
        description="Label used when a referenced row no longer exists"
    )
    seed_defaults: bool = Field(
        default=True,
        description="Insert starter categories on a user's first run"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an ``<name>_error``
    entry describing each failure. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("database", "logging", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
