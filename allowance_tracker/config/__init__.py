"""Configuration package."""

from allowance_tracker.config.settings import (
    AppSettings,
    ProjectionSettings,
    Settings,
    StorageSettings,
    VersioningSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ProjectionSettings",
    "Settings",
    "StorageSettings",
    "VersioningSettings",
    "get_settings",
    "validate_all_settings",
]
