"""
Configuration Management for NomadFinance

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here so the external dependencies
(Google Sheets, local demo storage, host container) are visible in one place.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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

    # One worksheet per collection
    users_sheet_name: str = Field(default="users")
    expenses_sheet_name: str = Field(default="expenses")
    incomes_sheet_name: str = Field(default="incomes")
    assets_sheet_name: str = Field(default="assets")
    settings_sheet_name: str = Field(default="settings")
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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Storage
    storage_backend: str = Field(
        default="sheets",
        pattern="^(sheets|local)$",
        description="'sheets' for Google Sheets, 'local' for the offline demo file"
    )
    local_data_path: str = Field(
        default="data/nomad_finance.json",
        description="JSON file used by the offline demo backend"
    )

    # Host container / local development
    dev_hostnames: str = Field(
        default="localhost,127.0.0.1",
        description="Comma-separated hostnames where the mock identity is allowed"
    )
    mock_user_id: int = Field(default=123456789)
    mock_username: str = Field(default="local_dev")
    mock_first_name: str = Field(default="Local")
    mock_last_name: str = Field(default="Developer")

    # Currency
    default_exchange_rate: float = Field(
        default=180.0,
        gt=0,
        description="ETB per USD used for new settings rows"
    )
    legacy_exchange_rates: str = Field(
        default="120.0",
        description="Comma-separated stale rates replaced by the default on load"
    )

    @property
    def dev_hostnames_list(self) -> list[str]:
        """Get development hostnames as a list."""
        return [host.strip().lower() for host in self.dev_hostnames.split(",") if host.strip()]

    @property
    def legacy_exchange_rates_list(self) -> list[float]:
        """Get legacy exchange rates as floats."""
        return [float(rate) for rate in self.legacy_exchange_rates.split(",") if rate.strip()]


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries describing failures. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
