"""Configuration package."""

from leftover_engine.config.settings import (
    AppSettings,
    EngineSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "EngineSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
