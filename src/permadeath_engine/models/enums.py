"""Enumeration types for the permadeath progression engine."""

from __future__ import annotations

from enum import StrEnum


class CurveKind(StrEnum):
    """XP curve strategy attached to a progression track.

    Jobs use the bounded linear curve, trainable skills the exponential one.
    """

    BOUNDED_LINEAR = "bounded_linear"
    EXPONENTIAL = "exponential"


class ActionFamily(StrEnum):
    """Families of economy actions, each with its own outcome formula."""

    CRAFTING = "crafting"
    GATHERING = "gathering"

    @property
    def consumes_inputs(self) -> bool:
        """Whether attempts of this family spend their inputs.

        Crafting spends inputs whether or not the roll succeeds; gathering
        has no inputs to spend.
        """
        return self is ActionFamily.CRAFTING


class BattleStatus(StrEnum):
    """Battle session lifecycle. Only ACTIVE is non-terminal."""

    ACTIVE = "active"
    WON = "won"
    LOST = "lost"
    FLED = "fled"

    @property
    def is_terminal(self) -> bool:
        """Check whether no further transitions are allowed."""
        return self is not BattleStatus.ACTIVE


class ScalingStat(StrEnum):
    """Combat stat a skill's damage scales with.

    Values match the CombatStats field names.
    """

    STRENGTH = "strength"
    VITALITY = "vitality"


class BattleEventKind(StrEnum):
    """Narrative event types emitted by the battle resolver."""

    BATTLE_START = "battle_start"
    PLAYER_ATTACK = "player_attack"
    PLAYER_SKILL = "player_skill"
    MONSTER_ATTACK = "monster_attack"
    FLED = "fled"
    REWARD = "reward"


__all__ = [
    "CurveKind",
    "ActionFamily",
    "BattleStatus",
    "ScalingStat",
    "BattleEventKind",
]
