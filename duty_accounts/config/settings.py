"""
Configuration Management for Duty Accounts

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Worksheet names within the spreadsheet
    blo_sheet_name: str = Field(
        default="BLO_Accounts",
        description="Worksheet holding field officer accounts"
    )
    avihit_sheet_name: str = Field(
        default="AVIHIT_Accounts",
        description="Worksheet holding assistant officer accounts"
    )
    supervisor_sheet_name: str = Field(
        default="Supervisor_Accounts",
        description="Worksheet holding supervisor accounts"
    )
    banks_sheet_name: str = Field(default="Banks")
    branches_sheet_name: str = Field(default="Branches")
    users_sheet_name: str = Field(default="Users")
    departments_sheet_name: str = Field(default="Departments")
    designations_sheet_name: str = Field(default="Designations")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class IFSCLookupSettings(BaseSettings):
    """External routing-code (IFSC) directory configuration."""

    model_config = SettingsConfigDict(
        env_prefix="IFSC_LOOKUP_",
        extra="ignore"
    )

    base_url: str = Field(
        default="https://ifsc.razorpay.com",
        description="Base URL of the IFSC directory service"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=60,
        description="Per-request timeout"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=5,
        description="Attempts per lookup on transport errors"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Directory identifiers
    routing_code_length: int = Field(
        default=11,
        description="Exact length of a routing (IFSC) code"
    )
    bank_id_prefix: str = Field(
        default="B",
        description="Prefix of allocated bank identifiers"
    )
    branch_id_prefix: str = Field(
        default="BR",
        description="Prefix of allocated branch identifiers"
    )

    # Personnel self-service access
    default_pin: str = Field(
        default="123456",
        description="PIN assigned to every imported personnel record"
    )
    min_pin_length: int = Field(
        default=4,
        ge=4,
        le=12,
        description="Minimum length of a personnel PIN"
    )

    mandatory_fields: str = Field(
        default="account_number,routing_code,proof_document",
        description="Comma-separated fields required before a save"
    )

    @property
    def mandatory_fields_list(self) -> list[str]:
        """Get mandatory fields as a list."""
        return [f.strip() for f in self.mandatory_fields.split(",") if f.strip()]


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def ifsc_lookup(self) -> IFSCLookupSettings:
        return IFSCLookupSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("google_sheets", "ifsc_lookup", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
