"""
Configuration Management for Personal Ledger

Uses pydantic-settings for type-safe configuration from environment variables
and an optional .env file.

Every tunable of the ledger lives here: where snapshots go and in which
format, the reconciliation tolerance, report defaults and logging.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_FORMAT_TOKENS = ("csv", "json", "yaml", "yml")


class StorageSettings(BaseSettings):
    """Snapshot (autosave) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    snapshot_path: str = Field(
        default="data/autosave.yaml",
        description="File (json/yaml) or directory (csv) the snapshot is written to"
    )
    snapshot_format: Optional[str] = Field(
        default=None,
        description="Snapshot format; inferred from snapshot_path when unset"
    )
    autosave: bool = Field(
        default=True,
        description="Write a snapshot after every mutation"
    )
    write_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a snapshot write before giving up"
    )

    @field_validator('snapshot_format')
    @classmethod
    def validate_snapshot_format(cls, v: Optional[str]) -> Optional[str]:
        """Only formats the ledger can write are accepted."""
        if v is None or not v.strip():
            return None
        token = v.strip().lower()
        if token not in SUPPORTED_FORMAT_TOKENS:
            raise ValueError(
                f"Unsupported snapshot format: {v}. Allowed: {', '.join(SUPPORTED_FORMAT_TOKENS)}"
            )
        return token


class AnalyticsSettings(BaseSettings):
    """Report and reconciliation defaults."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_ANALYTICS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    reconcile_epsilon: float = Field(
        default=1e-9,
        gt=0.0,
        description="Declared and computed balances closer than this are considered equal"
    )
    top_expenses_limit: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Default number of rows in the top expenses report"
    )


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
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Standard library logging level for the ledger loggers"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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
    def analytics(self) -> AnalyticsSettings:
        return AnalyticsSettings()

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
    Validate all settings groups.

    Returns a dict of {group_name: is_valid}, plus "<group>_error" entries
    carrying the message for groups that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "analytics", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
