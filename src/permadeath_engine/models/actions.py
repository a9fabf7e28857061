"""Pydantic V2 schemas for economy actions (recipes and gathering nodes).

ActionDefinition is external content: authored elsewhere, read-only here.
ActionAttempt is the immutable audit record written once per attempt, and
Outcome is what the engine hands back to the caller.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from permadeath_engine.core.constants import GUARANTEED_YIELD_WEIGHT
from permadeath_engine.core.exceptions import ValidationError
from permadeath_engine.models.enums import ActionFamily
from permadeath_engine.models.inventory import ItemQuantity
from permadeath_engine.models.progression import XpProgress


Probability = Annotated[float, Field(ge=0.0, le=1.0)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class YieldEntry(BaseModel):
    """One row of an output or yield table.

    Attributes:
        item_id: Item produced.
        min_qty: Minimum quantity produced.
        max_qty: Maximum quantity produced (inclusive).
        weight: Drop chance out of 100. Only gathering rolls it; recipe
            outputs are always granted on success.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    item_id: str = Field(min_length=1)
    min_qty: int = Field(default=1, ge=1)
    max_qty: int = Field(default=1, ge=1)
    weight: float = Field(default=GUARANTEED_YIELD_WEIGHT, ge=0)

    @model_validator(mode="after")
    def validate_range(self) -> "YieldEntry":
        """Ensure the quantity range is ordered."""
        if self.min_qty > self.max_qty:
            raise ValidationError(
                f"min_qty ({self.min_qty}) exceeds max_qty ({self.max_qty})",
                field_name="min_qty",
                invalid_value=self.min_qty,
            )
        return self


class ActionDefinition(BaseModel):
    """A recipe (crafting) or a gathering node.

    Attributes:
        action_id: Unique key.
        name: Display name.
        family: Crafting or gathering.
        track_id: Job/skill whose level drives the chance and receives XP.
        difficulty: Recipe difficulty or node danger tier.
        required_level: Minimum track level to attempt the action.
        inputs: Items consumed by a craft.
        outputs: Recipe outputs or node yield table.
        is_active: Inactive definitions are found but cannot be attempted.
        success_rate_override: Fixed success chance replacing the formula.
        xp_override: Fixed XP replacing the formula when positive.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    action_id: str = Field(min_length=1)
    name: str = Field(default="", max_length=200)
    family: ActionFamily
    track_id: str = Field(min_length=1)
    difficulty: int = Field(default=1, ge=0)
    required_level: int = Field(default=1, ge=1)
    inputs: tuple[ItemQuantity, ...] = Field(default=())
    outputs: tuple[YieldEntry, ...] = Field(default=())
    is_active: bool = Field(default=True)
    success_rate_override: Probability | None = Field(default=None)
    xp_override: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_shape(self) -> "ActionDefinition":
        """Check family-specific structure.

        Gathering nodes have no inputs; every action needs at least one
        output row.
        """
        if self.family is ActionFamily.GATHERING and self.inputs:
            raise ValidationError(
                f"Gathering node {self.action_id!r} cannot declare inputs",
                field_name="inputs",
            )
        if not self.outputs:
            raise ValidationError(
                f"Action {self.action_id!r} has no outputs configured",
                field_name="outputs",
            )
        return self


class ActionAttempt(BaseModel):
    """Immutable audit record of one craft or gather attempt."""

    model_config = ConfigDict(frozen=True)

    attempt_id: str = Field(default_factory=lambda: str(uuid4()))
    actor_id: str
    action_id: str
    family: ActionFamily
    success: bool
    xp_gained: int = Field(ge=0)
    created_at: datetime = Field(default_factory=_utcnow)


class Outcome(BaseModel):
    """Structured result returned by the outcome engine.

    Attributes:
        attempt_id: Id of the audit record written for this attempt.
        action_id: Action attempted.
        success: Whether the roll succeeded.
        chance: Success probability that was rolled against.
        xp_gained: XP applied to the track (before capping).
        outputs: Items granted (empty on failure).
        consumed: Items spent (crafting only, success or not).
        leveled_up: Whether the track gained a level.
        level: Track level after the attempt.
        progress: Progress within the new level.
    """

    model_config = ConfigDict(frozen=True)

    attempt_id: str
    action_id: str
    success: bool
    chance: Probability
    xp_gained: int
    outputs: tuple[ItemQuantity, ...] = ()
    consumed: tuple[ItemQuantity, ...] = ()
    leveled_up: bool = False
    level: int = 1
    progress: XpProgress


__all__ = [
    "YieldEntry",
    "ActionDefinition",
    "ActionAttempt",
    "Outcome",
]
