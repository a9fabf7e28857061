"""Configuration management for the permadeath progression engine.

This module provides centralized configuration using pydantic-settings,
supporting environment variables, .env files and runtime overrides. Every
tunable number in the economy and progression formulas lives here so game
designers can rebalance without code changes.

Example:
    >>> from permadeath_engine.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.economy.crafting_floor
    0.2

Environment Variables:
    PERMADEATH_DATABASE_PATH: Path to the SQLite database file
    PERMADEATH_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    PERMADEATH_ECONOMY_CRAFTING_BASE: Base crafting success chance
    PERMADEATH_RATE_LIMIT_MAX_ACTIONS: Actions allowed per window
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from permadeath_engine.core.exceptions import ConfigurationError


class StorageSettings(BaseSettings):
    """Configuration for persistence.

    Attributes:
        database_path: Path to the SQLite database file.
        busy_timeout_seconds: How long a writer waits for the database lock.
    """

    model_config = SettingsConfigDict(
        env_prefix="PERMADEATH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_path: Path = Field(
        default=Path("data/permadeath.db"),
        description="Path to SQLite database",
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=120,
        description="Seconds a writer waits for the database lock",
    )

    @field_validator("database_path", mode="after")
    @classmethod
    def ensure_parent_exists(cls, value: Path) -> Path:
        """Ensure the database directory exists, creating it if necessary."""
        value.parent.mkdir(parents=True, exist_ok=True)
        return value


class ProgressionSettings(BaseSettings):
    """Configuration for the XP curves.

    Attributes:
        job_max_level: Level cap of the bounded linear (job) curve.
        job_xp_per_level: Linear multiplier; level n -> n+1 costs this * n.
        skill_max_level: Level cap of the exponential (skill) curve.
        skill_base_xp: XP needed to reach level 2 on the exponential curve.
        skill_curve_base: Growth factor of the exponential curve.
        combat_track_id: Progression track credited with battle XP.
    """

    model_config = SettingsConfigDict(
        env_prefix="PERMADEATH_PROGRESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    job_max_level: int = Field(default=10, ge=1, le=1000)
    job_xp_per_level: int = Field(default=100, ge=1)
    skill_max_level: int = Field(default=99, ge=1, le=1000)
    skill_base_xp: int = Field(default=100, ge=1)
    skill_curve_base: float = Field(default=1.15, ge=1.0, le=10.0)
    combat_track_id: str = Field(default="combat", min_length=1)


class RegenSettings(BaseSettings):
    """Configuration for real-time regeneration.

    Attributes:
        tick_seconds: Length of one regeneration tick.
    """

    model_config = SettingsConfigDict(
        env_prefix="PERMADEATH_REGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    tick_seconds: int = Field(default=60, ge=1, le=3600)


class EconomySettings(BaseSettings):
    """Configuration for crafting and gathering outcome formulas.

    chance = clamp(floor, ceiling, base + (level - difficulty) * slope)

    Attributes:
        crafting_base: Crafting chance when level equals difficulty.
        crafting_slope: Chance gained per level above difficulty.
        crafting_floor: Minimum crafting chance.
        crafting_ceiling: Maximum crafting chance.
        gathering_base: Gathering chance when level equals danger tier.
        gathering_slope: Chance gained per level above danger tier.
        gathering_floor: Minimum gathering chance.
        gathering_ceiling: Maximum gathering chance.
        craft_xp_success_base: Flat XP on a successful craft.
        craft_xp_success_per_difficulty: XP per difficulty point on success.
        craft_xp_failure_base: Flat XP on a failed craft.
        craft_xp_failure_per_difficulty: XP per difficulty point on failure.
        gather_xp_success_base: Flat XP on a successful gather.
        gather_xp_success_per_tier: XP per danger tier on success.
        gather_xp_failure_base: Flat XP on a failed gather.
        gather_xp_failure_per_tier: XP per danger tier on failure.
        history_limit: Default number of attempts returned by history queries.
    """

    model_config = SettingsConfigDict(
        env_prefix="PERMADEATH_ECONOMY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    crafting_base: float = Field(default=0.55, ge=0, le=1)
    crafting_slope: float = Field(default=0.07, ge=0, le=1)
    crafting_floor: float = Field(default=0.20, ge=0, le=1)
    crafting_ceiling: float = Field(default=0.95, ge=0, le=1)

    gathering_base: float = Field(default=0.65, ge=0, le=1)
    gathering_slope: float = Field(default=0.06, ge=0, le=1)
    gathering_floor: float = Field(default=0.30, ge=0, le=1)
    gathering_ceiling: float = Field(default=0.98, ge=0, le=1)

    craft_xp_success_base: int = Field(default=15, ge=0)
    craft_xp_success_per_difficulty: int = Field(default=5, ge=0)
    craft_xp_failure_base: int = Field(default=5, ge=0)
    craft_xp_failure_per_difficulty: int = Field(default=2, ge=0)

    gather_xp_success_base: int = Field(default=8, ge=0)
    gather_xp_success_per_tier: int = Field(default=3, ge=0)
    gather_xp_failure_base: int = Field(default=3, ge=0)
    gather_xp_failure_per_tier: int = Field(default=1, ge=0)

    history_limit: int = Field(default=50, ge=1, le=100)

    @model_validator(mode="after")
    def validate_bounds(self) -> "EconomySettings":
        """Ensure every floor is at most its ceiling.

        Raises:
            ConfigurationError: If a floor exceeds its ceiling.
        """
        if self.crafting_floor > self.crafting_ceiling:
            raise ConfigurationError(
                f"crafting_floor ({self.crafting_floor}) must not exceed "
                f"crafting_ceiling ({self.crafting_ceiling})",
                config_key="crafting_floor",
            )
        if self.gathering_floor > self.gathering_ceiling:
            raise ConfigurationError(
                f"gathering_floor ({self.gathering_floor}) must not exceed "
                f"gathering_ceiling ({self.gathering_ceiling})",
                config_key="gathering_floor",
            )
        return self


class CombatSettings(BaseSettings):
    """Configuration for battle aftermath.

    Attributes:
        permadeath_threshold: Deaths after which an actor is gone for good.
        revive_fraction: Fraction of max HP/SP restored on revival.
    """

    model_config = SettingsConfigDict(
        env_prefix="PERMADEATH_COMBAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    permadeath_threshold: int = Field(default=5, ge=1)
    revive_fraction: float = Field(default=0.5, gt=0, le=1)


class RateLimitSettings(BaseSettings):
    """Configuration for the sliding-window action rate limiter.

    Attributes:
        enabled: Whether the limiter is wired into the outcome engine.
        max_actions: Actions allowed per window.
        window_seconds: Window length.
        backend: Where hit timestamps are stored.
    """

    model_config = SettingsConfigDict(
        env_prefix="PERMADEATH_RATE_LIMIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=True)
    max_actions: int = Field(default=30, ge=1)
    window_seconds: float = Field(default=60.0, gt=0)
    backend: Literal["memory", "sqlite"] = Field(default="memory")


class RetrySettings(BaseSettings):
    """Configuration for retrying whole attempts on concurrency conflicts.

    Attributes:
        max_attempts: Total tries including the first.
        wait_min_seconds: Minimum backoff.
        wait_max_seconds: Maximum backoff.
    """

    model_config = SettingsConfigDict(
        env_prefix="PERMADEATH_RETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_attempts: int = Field(default=3, ge=1, le=10)
    wait_min_seconds: float = Field(default=0.01, ge=0)
    wait_max_seconds: float = Field(default=0.5, ge=0)

    @model_validator(mode="after")
    def validate_wait_window(self) -> "RetrySettings":
        """Ensure the backoff window is ordered."""
        if self.wait_min_seconds > self.wait_max_seconds:
            raise ConfigurationError(
                "wait_min_seconds must not exceed wait_max_seconds",
                config_key="wait_min_seconds",
            )
        return self


class Settings(BaseSettings):
    """Main engine settings aggregating all configuration domains.

    Attributes:
        app_name: Application name.
        app_version: Application version string.
        debug: Enable debug mode.
        log_level: Engine logging level.
        json_logs: Render logs as JSON instead of console output.
        storage: Persistence settings.
        progression: XP curve settings.
        regen: Regeneration settings.
        economy: Crafting/gathering formula settings.
        combat: Battle aftermath settings.
        rate_limit: Rate limiter settings.
        retry: Conflict retry settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="PERMADEATH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    app_name: str = Field(default="Permadeath Engine", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(default=False, description="Emit JSON logs")

    storage: StorageSettings = Field(default_factory=StorageSettings)
    progression: ProgressionSettings = Field(default_factory=ProgressionSettings)
    regen: RegenSettings = Field(default_factory=RegenSettings)
    economy: EconomySettings = Field(default_factory=EconomySettings)
    combat: CombatSettings = Field(default_factory=CombatSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the engine settings singleton.

    Returns:
        The cached Settings instance.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    try:
        return Settings()
    except ConfigurationError:
        raise
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to load engine settings: {exc}",
            details={"original_error": str(exc)},
        ) from exc


def clear_settings_cache() -> None:
    """Clear the settings cache, forcing a reload on next access.

    Primarily useful for testing or when environment variables have
    changed at runtime.
    """
    get_settings.cache_clear()


__all__ = [
    "StorageSettings",
    "ProgressionSettings",
    "RegenSettings",
    "EconomySettings",
    "CombatSettings",
    "RateLimitSettings",
    "RetrySettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
]
