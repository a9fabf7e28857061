"""Pydantic V2 schemas for HP/SP resource pools.

A ResourcePool is owned by the actor aggregate. It is only ever changed by
regeneration (engine.regen) and by damage/heal effects, so the helpers below
return new pools instead of mutating in place.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from permadeath_engine.core.exceptions import InvalidArgumentError, ValidationError


class ResourcePool(BaseModel):
    """Current and maximum HP/SP plus the regeneration watermark.

    Attributes:
        current_hp: Current hit points.
        max_hp: Maximum hit points.
        current_sp: Current stamina points.
        max_sp: Maximum stamina points.
        hp_regen_per_minute: HP restored per regeneration tick.
        sp_regen_per_minute: SP restored per regeneration tick.
        last_regen_at: Timestamp up to which regeneration was applied.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    current_hp: int = Field(ge=0, description="Current HP")
    max_hp: int = Field(ge=1, description="Maximum HP")
    current_sp: int = Field(ge=0, description="Current SP")
    max_sp: int = Field(ge=0, description="Maximum SP")
    hp_regen_per_minute: int = Field(default=0, ge=0, description="HP per tick")
    sp_regen_per_minute: int = Field(default=0, ge=0, description="SP per tick")
    last_regen_at: datetime = Field(description="Regeneration watermark")

    @model_validator(mode="after")
    def validate_current_within_max(self) -> "ResourcePool":
        """Ensure 0 <= current <= max for both pools."""
        if self.current_hp > self.max_hp:
            raise ValidationError(
                f"current_hp ({self.current_hp}) exceeds max_hp ({self.max_hp})",
                field_name="current_hp",
                invalid_value=self.current_hp,
            )
        if self.current_sp > self.max_sp:
            raise ValidationError(
                f"current_sp ({self.current_sp}) exceeds max_sp ({self.max_sp})",
                field_name="current_sp",
                invalid_value=self.current_sp,
            )
        return self

    @property
    def is_depleted(self) -> bool:
        """Check whether HP has reached zero."""
        return self.current_hp == 0

    def with_damage(self, amount: int) -> ResourcePool:
        """Return a copy with HP reduced by ``amount``, floored at 0."""
        if amount < 0:
            raise InvalidArgumentError("Damage must be non-negative", argument="amount", value=amount)
        return self.model_copy(update={"current_hp": max(0, self.current_hp - amount)})

    def with_heal(self, hp: int = 0, sp: int = 0) -> ResourcePool:
        """Return a copy with HP/SP restored, capped at their maximums."""
        if hp < 0 or sp < 0:
            raise InvalidArgumentError(
                "Heal amounts must be non-negative",
                details={"hp": hp, "sp": sp},
            )
        return self.model_copy(
            update={
                "current_hp": min(self.max_hp, self.current_hp + hp),
                "current_sp": min(self.max_sp, self.current_sp + sp),
            }
        )

    def with_current(self, hp: int, sp: int) -> ResourcePool:
        """Return a copy with HP/SP set directly, clamped into range."""
        return self.model_copy(
            update={
                "current_hp": max(0, min(self.max_hp, hp)),
                "current_sp": max(0, min(self.max_sp, sp)),
            }
        )


class RegenResult(BaseModel):
    """Result of applying regeneration to a pool.

    Attributes:
        hp: HP after regeneration.
        sp: SP after regeneration.
        last_regen_at: New watermark (advanced by whole ticks only).
        did_update: False when no full tick had elapsed.
        ticks: Number of ticks consumed.
    """

    model_config = ConfigDict(frozen=True)

    hp: int
    sp: int
    last_regen_at: datetime
    did_update: bool
    ticks: int = 0

    def apply_to(self, pool: ResourcePool) -> ResourcePool:
        """Return ``pool`` with this result's HP, SP and watermark."""
        return pool.model_copy(
            update={
                "current_hp": self.hp,
                "current_sp": self.sp,
                "last_regen_at": self.last_regen_at,
            }
        )


__all__ = [
    "ResourcePool",
    "RegenResult",
]
