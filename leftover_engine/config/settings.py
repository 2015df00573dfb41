"""
Configuration Management for the Leftover Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Everything the engine can be tuned with is visible in one place and
validated at startup.
"""

from datetime import date
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """JSON file storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BUDGET_STORAGE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("data"),
        description="Root directory holding entities/ and months/"
    )
    debounce_ms: int = Field(
        default=500,
        ge=0,
        le=60000,
        description="Delay before a queued write hits disk (0 = write through)"
    )

    @property
    def entities_dir(self) -> Path:
        return self.data_dir / "entities"

    @property
    def months_dir(self) -> Path:
        return self.data_dir / "months"


class EngineSettings(BaseSettings):
    """Budget calculation engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BUDGET_ENGINE_",
        extra="ignore"
    )

    persist_undo: bool = Field(
        default=False,
        description="Keep the undo stack across restarts (default: reset on restart)"
    )
    biweekly_epoch: date = Field(
        default=date(2024, 1, 1),
        description="Fixed anchor date for bi-weekly cadences without their own start date"
    )
    currency_symbol: str = Field(
        default="$",
        min_length=1,
        max_length=5,
        description="Symbol used when formatting cents for display"
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
        description="Minimum level for engine logs"
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
    def engine(self) -> EngineSettings:
        return EngineSettings()

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

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for anything that failed.
    """
    results = {}
    settings = get_settings()

    for name in ("storage", "engine", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
