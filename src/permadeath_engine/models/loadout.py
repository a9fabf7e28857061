"""Pydantic V2 schemas for combat skills and the 8-slot skill bar.

Slots are a fixed-size tuple addressed by a 1-based index, so assigning a
skill never goes through a computed attribute name.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from permadeath_engine.core.constants import SKILL_SLOT_COUNT
from permadeath_engine.core.exceptions import (
    InvalidSlotError,
    SkillNotLearnedError,
    SlotEmptyError,
    ValidationError,
)
from permadeath_engine.models.enums import ScalingStat


class SkillDefinition(BaseModel):
    """Authored combat skill.

    Damage per hit is ``base_power + stat * scaling_ratio + flat_bonus``,
    floored and never negative, then multiplied by ``hits``.

    Attributes:
        skill_id: Unique key.
        name: Display name used in battle narration.
        sp_cost: SP spent each time the skill is used.
        base_power: Damage before scaling.
        scaling_stat: Stat the damage scales with, if any.
        scaling_ratio: Multiplier applied to the scaling stat.
        flat_bonus: Flat damage added per hit; may be negative.
        hits: Number of hits per use.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    skill_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=100)
    sp_cost: int = Field(default=0, ge=0)
    base_power: int = Field(default=0, ge=0)
    scaling_stat: ScalingStat | None = None
    scaling_ratio: float = Field(default=0.0, ge=0.0)
    flat_bonus: int = 0
    hits: int = Field(default=1, ge=1)


def _empty_slots() -> tuple[str | None, ...]:
    return (None,) * SKILL_SLOT_COUNT


class SkillLoadout(BaseModel):
    """An actor's equipped skills.

    Attributes:
        actor_id: Owning actor.
        slots: Exactly SKILL_SLOT_COUNT entries, each a skill id or None.
    """

    model_config = ConfigDict(frozen=True)

    actor_id: str = Field(min_length=1)
    slots: tuple[str | None, ...] = Field(default_factory=_empty_slots)

    @field_validator("slots", mode="after")
    @classmethod
    def validate_slot_count(cls, value: tuple[str | None, ...]) -> tuple[str | None, ...]:
        """Ensure the bar has exactly SKILL_SLOT_COUNT slots."""
        if len(value) != SKILL_SLOT_COUNT:
            raise ValidationError(
                f"Loadout must have exactly {SKILL_SLOT_COUNT} slots, got {len(value)}",
                field_name="slots",
                invalid_value=len(value),
            )
        return value

    @staticmethod
    def _position(slot_index: int) -> int:
        if not 1 <= slot_index <= SKILL_SLOT_COUNT:
            raise InvalidSlotError(
                f"Slot index must be between 1 and {SKILL_SLOT_COUNT}",
                slot_index=slot_index,
            )
        return slot_index - 1

    def skill_at(self, slot_index: int) -> str | None:
        """Return the skill in a slot (1-based), or None if empty."""
        return self.slots[self._position(slot_index)]

    def require_skill_at(self, slot_index: int) -> str:
        """Return the skill in a slot, refusing empty slots.

        Raises:
            InvalidSlotError: Slot outside 1..SKILL_SLOT_COUNT.
            SlotEmptyError: No skill is equipped there.
        """
        skill_id = self.skill_at(slot_index)
        if skill_id is None:
            raise SlotEmptyError("No skill equipped in that slot", slot_index=slot_index)
        return skill_id

    def equip(self, slot_index: int, skill_id: str, learned: Iterable[str]) -> SkillLoadout:
        """Return a loadout with ``skill_id`` in ``slot_index``.

        An occupied slot is simply replaced.

        Raises:
            InvalidSlotError: Slot outside 1..SKILL_SLOT_COUNT.
            SkillNotLearnedError: The actor has not learned the skill.
        """
        position = self._position(slot_index)
        if skill_id not in set(learned):
            raise SkillNotLearnedError(
                "Skill not learned",
                actor_id=self.actor_id,
                details={"skill_id": skill_id},
            )
        slots = list(self.slots)
        slots[position] = skill_id
        return self.model_copy(update={"slots": tuple(slots)})

    def unequip(self, slot_index: int) -> SkillLoadout:
        """Return a loadout with ``slot_index`` cleared.

        Raises:
            InvalidSlotError: Slot outside 1..SKILL_SLOT_COUNT.
            SlotEmptyError: The slot is already empty.
        """
        position = self._position(slot_index)
        if self.slots[position] is None:
            raise SlotEmptyError("Slot is already empty", slot_index=slot_index)
        slots = list(self.slots)
        slots[position] = None
        return self.model_copy(update={"slots": tuple(slots)})


__all__ = ["SkillDefinition", "SkillLoadout"]
