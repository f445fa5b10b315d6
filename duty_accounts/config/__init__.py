"""Configuration package."""

from duty_accounts.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    IFSCLookupSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "IFSCLookupSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
