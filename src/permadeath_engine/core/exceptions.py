"""Custom exception hierarchy for the permadeath progression engine.

This module defines the exception hierarchy used across the engine. All
exceptions inherit from PermadeathError, so callers at the API boundary can
handle every engine failure in one place while still reacting to the
specific family:

- GameRuleError: business errors reported to the player, never mutate state.
- InvariantViolationError: programmer errors, input rejected outright.
- StorageError: the backing store aborted; the transaction was rolled back.
- ConcurrencyError: optimistic-lock or stale-state conflicts.

Example:
    >>> from permadeath_engine.core.exceptions import InsufficientMaterialsError
    >>> raise InsufficientMaterialsError("Not enough ore", item_id="iron_ore", required=3, available=1)
"""

from __future__ import annotations

from typing import Any


class PermadeathError(Exception):
    """Base exception for all engine errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    retryable: bool = False

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        """Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional details.

        Returns:
            Formatted error message including any provided details.
        """
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def __repr__(self) -> str:
        """Return a detailed string representation of the exception."""
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# =============================================================================
# Game Rule (Business) Exceptions
# =============================================================================


class GameRuleError(PermadeathError):
    """Base exception for business errors reported back to the player.

    Raising one of these guarantees that no state was mutated.
    """

    def __init__(
        self,
        message: str,
        *,
        actor_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize game rule error with actor context.

        Args:
            message: Human-readable error description.
            actor_id: The actor whose request was rejected.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if actor_id:
            combined_details["actor_id"] = actor_id
        super().__init__(message, details=combined_details)


class NotFoundError(GameRuleError):
    """Raised when a referenced entity does not exist."""

    entity: str = "entity"

    def __init__(
        self,
        message: str | None = None,
        *,
        entity_id: str | None = None,
        actor_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if entity_id:
            combined_details[f"{self.entity}_id"] = entity_id
        super().__init__(
            message or f"{self.entity.capitalize()} not found",
            actor_id=actor_id,
            details=combined_details,
        )


class ActorNotFoundError(NotFoundError):
    """Raised when an actor does not exist."""

    entity = "actor"


class ActionNotFoundError(NotFoundError):
    """Raised when an action definition (recipe or node) does not exist."""

    entity = "action"


class ItemNotFoundError(NotFoundError):
    """Raised when an item definition does not exist."""

    entity = "item"


class BattleNotFoundError(NotFoundError):
    """Raised when a battle session does not exist."""

    entity = "battle"


class MonsterNotFoundError(NotFoundError):
    """Raised when a monster template does not exist."""

    entity = "monster"


class SkillNotFoundError(NotFoundError):
    """Raised when a skill definition does not exist."""

    entity = "skill"


class ActionInactiveError(GameRuleError):
    """Raised when an action definition exists but is not active."""


class ActionLockedError(GameRuleError):
    """Raised when an action or job has not been unlocked for the actor.

    This covers both a missing progression track and an actor level below
    the action's required level.
    """

    def __init__(
        self,
        message: str,
        *,
        action_id: str | None = None,
        required_level: int | None = None,
        actor_level: int | None = None,
        actor_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if action_id:
            combined_details["action_id"] = action_id
        if required_level is not None:
            combined_details["required_level"] = required_level
        if actor_level is not None:
            combined_details["actor_level"] = actor_level
        super().__init__(message, actor_id=actor_id, details=combined_details)


class InsufficientMaterialsError(GameRuleError):
    """Raised when the actor lacks the inputs required by a recipe."""

    def __init__(
        self,
        message: str,
        *,
        item_id: str | None = None,
        required: int | None = None,
        available: int | None = None,
        actor_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the missing item context.

        Args:
            message: Human-readable error description.
            item_id: The item that is short.
            required: Quantity the recipe needs.
            available: Quantity the actor holds.
            actor_id: The actor attempting the craft.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if item_id:
            combined_details["item_id"] = item_id
        if required is not None:
            combined_details["required"] = required
        if available is not None:
            combined_details["available"] = available
        super().__init__(message, actor_id=actor_id, details=combined_details)


class InvalidSlotError(GameRuleError):
    """Raised when a skill slot index is outside the loadout bar."""

    def __init__(
        self,
        message: str,
        *,
        slot_index: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if slot_index is not None:
            combined_details["slot_index"] = slot_index
        super().__init__(message, details=combined_details)


class SlotEmptyError(InvalidSlotError):
    """Raised when unequipping or using a slot that holds no skill."""


class SkillNotLearnedError(GameRuleError):
    """Raised when equipping or using a skill the actor has not learned."""


class InsufficientStaminaError(GameRuleError):
    """Raised when a skill costs more SP than the actor has left in battle."""

    def __init__(
        self,
        message: str,
        *,
        required: int | None = None,
        available: int | None = None,
        actor_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if required is not None:
            combined_details["required_sp"] = required
        if available is not None:
            combined_details["available_sp"] = available
        super().__init__(message, actor_id=actor_id, details=combined_details)


class BattleTerminalError(GameRuleError):
    """Raised when acting on a battle that already ended."""

    def __init__(
        self,
        message: str,
        *,
        battle_id: str | None = None,
        status: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if battle_id:
            combined_details["battle_id"] = battle_id
        if status:
            combined_details["status"] = status
        super().__init__(message, details=combined_details)


class BattleInProgressError(GameRuleError):
    """Raised when an actor tries to start a second active battle."""


class ActorDeadError(GameRuleError):
    """Raised when a permanently dead actor tries to act."""


class RateLimitExceededError(GameRuleError):
    """Raised when an actor exceeds the action rate limit."""

    def __init__(
        self,
        message: str,
        *,
        retry_after_seconds: float | None = None,
        actor_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if retry_after_seconds is not None:
            combined_details["retry_after_seconds"] = retry_after_seconds
        super().__init__(message, actor_id=actor_id, details=combined_details)


# =============================================================================
# Invariant Violations (Programmer Errors)
# =============================================================================


class InvariantViolationError(PermadeathError):
    """Base exception for programmer errors.

    The input is rejected; no partial recovery is attempted.
    """


class InvalidArgumentError(InvariantViolationError):
    """Raised when an argument violates a precondition (e.g. negative XP)."""

    def __init__(
        self,
        message: str,
        *,
        argument: str | None = None,
        value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if argument:
            combined_details["argument"] = argument
        if value is not None:
            combined_details["value"] = value
        super().__init__(message, details=combined_details)


class StackConfigurationError(InvariantViolationError):
    """Raised when an item is configured with a stack cap below 1."""

    def __init__(
        self,
        message: str,
        *,
        item_id: str | None = None,
        stack_cap: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if item_id:
            combined_details["item_id"] = item_id
        if stack_cap is not None:
            combined_details["stack_cap"] = stack_cap
        super().__init__(message, details=combined_details)


# =============================================================================
# Storage & Concurrency Exceptions
# =============================================================================


class StorageError(PermadeathError):
    """Base exception for persistence failures."""


class TransactionAbortedError(StorageError):
    """Raised when the store aborted mid-write and the unit of work rolled back."""


class ConcurrencyError(PermadeathError):
    """Base exception for concurrent-modification conflicts."""


class ConcurrencyConflictError(ConcurrencyError):
    """Raised when an optimistic version check fails on an actor's rows.

    Retryable: callers must retry the whole attempt from scratch, never
    a part of it, so the success roll is re-evaluated against fresh state.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        actor_id: str | None = None,
        expected_version: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if actor_id:
            combined_details["actor_id"] = actor_id
        if expected_version is not None:
            combined_details["expected_version"] = expected_version
        super().__init__(message, details=combined_details)


class StaleStateError(ConcurrencyError):
    """Raised when a battle exchange is applied against an outdated session."""

    def __init__(
        self,
        message: str,
        *,
        battle_id: str | None = None,
        expected: int | None = None,
        actual: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if battle_id:
            combined_details["battle_id"] = battle_id
        if expected is not None:
            combined_details["expected"] = expected
        if actual is not None:
            combined_details["actual"] = actual
        super().__init__(message, details=combined_details)


# =============================================================================
# Configuration & Validation Exceptions
# =============================================================================


class ConfigurationError(PermadeathError):
    """Raised when engine configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error with config key context.

        Args:
            message: Human-readable error description.
            config_key: The configuration key that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if config_key:
            combined_details["config_key"] = config_key
        super().__init__(message, details=combined_details)


class ValidationError(PermadeathError):
    """Raised when authored content fails validation."""

    def __init__(
        self,
        message: str,
        *,
        field_name: str | None = None,
        invalid_value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if field_name:
            combined_details["field_name"] = field_name
        if invalid_value is not None:
            combined_details["invalid_value"] = invalid_value
        super().__init__(message, details=combined_details)


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
]
