"""
Configuration Management for Allowance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The data directory is resolved once per process and treated as read-only
afterwards; every other component receives it from here or as an explicit
argument.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """File storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ALLOWANCE_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("data"),
        description="Base directory holding global_config.csv and one directory per child"
    )
    legacy_utc_offset_minutes: int = Field(
        default=-300,
        ge=-14 * 60,
        le=14 * 60,
        description="UTC offset applied to legacy date-only timestamps (default UTC-05:00)"
    )

    @field_validator('data_dir')
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        """Expand '~' so the directory is stable for the life of the process."""
        return v.expanduser()


class VersioningSettings(BaseSettings):
    """Git versioning of child directories."""

    model_config = SettingsConfigDict(
        env_prefix="ALLOWANCE_VERSIONING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Commit every data file change to the child's git repository"
    )
    git_executable: str = Field(
        default="git",
        description="Name or path of the git binary"
    )
    author_name: str = Field(
        default="Allowance Tracker",
        description="Author name recorded on commits"
    )
    author_email: str = Field(
        default="allowance@tracker.local",
        description="Author email recorded on commits"
    )
    command_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Timeout for a single git command"
    )
    lock_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts made when the git index is locked"
    )


class ProjectionSettings(BaseSettings):
    """Goal projection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ALLOWANCE_PROJECTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    horizon_days: int = Field(
        default=365,
        ge=1,
        le=3650,
        description="Projections further out than this are flagged as exceeding the horizon"
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

    # Environment
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
        description="Level for the stdlib logging backend"
    )

    # Clock
    default_utc_offset_minutes: int = Field(
        default=-300,
        ge=-14 * 60,
        le=14 * 60,
        description="UTC offset used when a command does not supply a timestamp"
    )

    # Validation limits
    max_description_length: int = Field(
        default=256,
        ge=1,
        le=1000,
        description="Maximum length of transaction and goal descriptions"
    )
    max_transaction_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Largest absolute transaction amount accepted"
    )
    max_goal_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Largest goal target accepted"
    )

    # Parental control
    parental_control_answer: str = Field(
        default="ice cold",
        min_length=1,
        description="Answer that unlocks parental settings (compared case-insensitively)"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept level names in any case."""
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
    def versioning(self) -> VersioningSettings:
        return VersioningSettings()

    @property
    def projection(self) -> ProjectionSettings:
        return ProjectionSettings()

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

    Returns a dict of {setting_name: is_valid}, with an
    "<name>_error" entry for every group that failed to load.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "versioning", "projection", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
