"""Configuration package."""

from pocket_ledger.config.settings import (
    AppSettings,
    DatabaseSettings,
    LoggingSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
