"""Core module providing configuration, logging, and base exceptions.

Exports:
    Exceptions:
        PermadeathError: Base exception for all engine errors.
        GameRuleError: Business errors reported to the player.
        InvariantViolationError: Programmer errors.

    Configuration:
        Settings: Main engine settings class.
        get_settings: Get the settings singleton.
        clear_settings_cache: Force settings reload.

    Logging:
        configure_logging: Set up engine logging.
        get_logger: Get a configured logger instance.
        bind_context: Add context to log entries.
        clear_context: Clear logging context.
        actor_context: Bind an actor id for one block.
"""

from __future__ import annotations

from permadeath_engine.core.config import (
    CombatSettings,
    EconomySettings,
    ProgressionSettings,
    RateLimitSettings,
    RegenSettings,
    RetrySettings,
    Settings,
    StorageSettings,
    clear_settings_cache,
    get_settings,
)
from permadeath_engine.core.exceptions import (
    ActionInactiveError,
    ActionLockedError,
    ActionNotFoundError,
    ActorDeadError,
    ActorNotFoundError,
    BattleInProgressError,
    BattleNotFoundError,
    BattleTerminalError,
    ConcurrencyConflictError,
    ConcurrencyError,
    ConfigurationError,
    GameRuleError,
    InsufficientMaterialsError,
    InvalidArgumentError,
    InvalidSlotError,
    InvariantViolationError,
    ItemNotFoundError,
    MonsterNotFoundError,
    SkillNotFoundError,
    NotFoundError,
    PermadeathError,
    RateLimitExceededError,
    SkillNotLearnedError,
    InsufficientStaminaError,
    SlotEmptyError,
    StackConfigurationError,
    StaleStateError,
    StorageError,
    TransactionAbortedError,
    ValidationError,
)
from permadeath_engine.core.logging import (
    actor_context,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


__all__ = [
    # Base exception
    "PermadeathError",
    # Game rule exceptions
    "GameRuleError",
    "NotFoundError",
    "ActorNotFoundError",
    "ActionNotFoundError",
    "ItemNotFoundError",
    "BattleNotFoundError",
    "MonsterNotFoundError",
    "SkillNotFoundError",
    "ActionInactiveError",
    "ActionLockedError",
    "InsufficientMaterialsError",
    "InvalidSlotError",
    "SlotEmptyError",
    "SkillNotLearnedError",
    "InsufficientStaminaError",
    "BattleTerminalError",
    "BattleInProgressError",
    "ActorDeadError",
    "RateLimitExceededError",
    # Invariant violations
    "InvariantViolationError",
    "InvalidArgumentError",
    "StackConfigurationError",
    # Storage and concurrency
    "StorageError",
    "TransactionAbortedError",
    "ConcurrencyError",
    "ConcurrencyConflictError",
    "StaleStateError",
    # Configuration
    "ConfigurationError",
    "ValidationError",
    "Settings",
    "StorageSettings",
    "ProgressionSettings",
    "RegenSettings",
    "EconomySettings",
    "CombatSettings",
    "RateLimitSettings",
    "RetrySettings",
    "get_settings",
    "clear_settings_cache",
    # Logging
    "actor_context",
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
