"""
Configuration Management for SalesBook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every component also accepts its settings object explicitly, so tests
and embedding applications never depend on process-wide state.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local record store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SALESBOOK_STORAGE_",
        extra="ignore"
    )

    database_path: str = Field(
        default="salesbook.db",
        description="Path of the SQLite database file"
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging only)"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times to try opening the database"
    )
    connect_backoff_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Base delay for exponential backoff between open attempts"
    )

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the configured database file."""
        return f"sqlite+pysqlite:///{Path(self.database_path)}"


class SecuritySettings(BaseSettings):
    """PIN lockout and session configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SALESBOOK_SECURITY_",
        extra="ignore"
    )

    max_attempts: int = Field(
        default=5,
        ge=1,
        description="Failed PIN attempts before the account locks"
    )
    lockout_minutes: int = Field(
        default=5,
        ge=1,
        description="How long a lockout lasts"
    )
    session_timeout_minutes: int = Field(
        default=30,
        ge=1,
        description="Minutes before an authenticated session expires"
    )
    default_pin: str = Field(
        default="4321",
        description="PIN installed on first use"
    )

    @field_validator('default_pin')
    @classmethod
    def validate_default_pin(cls, v: str) -> str:
        """The default PIN must itself be a valid 4-digit PIN."""
        if len(v) != 4 or not v.isdigit():
            raise ValueError("default_pin must be exactly 4 digits")
        return v


class AppSettings(BaseSettings):
    """General application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SALESBOOK_",
        extra="ignore"
    )

    currency: str = Field(
        default="GHS",
        min_length=1,
        max_length=8,
        description="Currency label used in rendered amounts"
    )

    # Validation thresholds
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future a transaction may be dated without a warning"
    )
    max_transaction_amount: float = Field(
        default=1_000_000.0,
        gt=0,
        description="Amounts above this are flagged for review"
    )

    recent_activity_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of transactions shown as recent activity"
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
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def security(self) -> SecuritySettings:
        return SecuritySettings()

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

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "security", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
