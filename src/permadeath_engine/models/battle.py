"""Pydantic V2 schemas for turn-based battles.

This module defines combat stats, monster templates, narrative events and
the battle session aggregate. Sessions are frozen; the resolver returns an
updated copy for every transition.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from permadeath_engine.models.enums import BattleEventKind, BattleStatus


class CombatStats(BaseModel):
    """Attack and defense stats used by the damage formula.

    Attributes:
        strength: Base damage dealt per hit.
        vitality: Half of it (floored) is subtracted from incoming damage.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    strength: int = Field(default=5, ge=0)
    vitality: int = Field(default=5, ge=0)


class MonsterTemplate(BaseModel):
    """Authored monster content.

    Attributes:
        monster_id: Unique key.
        name: Display name used in battle narration.
        level: Monster level.
        stats: Strength and vitality.
        max_hp: Starting HP of every battle against this monster.
        xp_reward: XP granted to the combat track on victory.
        gold_reward: Gold granted on victory.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    monster_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=100)
    level: int = Field(default=1, ge=1)
    stats: CombatStats = Field(default_factory=CombatStats)
    max_hp: int = Field(ge=1)
    xp_reward: int = Field(default=0, ge=0)
    gold_reward: int = Field(default=0, ge=0)


class BattleEvent(BaseModel):
    """One narrative line of the battle log.

    Attributes:
        kind: What happened.
        message: Player-facing text.
        turn_number: Turn the event belongs to.
        damage: Damage dealt, for attack events.
        lethal: True when this event ended the battle.
    """

    model_config = ConfigDict(frozen=True)

    kind: BattleEventKind
    message: str
    turn_number: int = Field(ge=0)
    damage: int | None = Field(default=None, ge=0)
    lethal: bool = False


class BattleSession(BaseModel):
    """State of one battle between an actor and a monster.

    Attributes:
        battle_id: Unique session id.
        actor_id: The fighting actor.
        monster: Snapshot of the monster template.
        player_hp: Player HP inside the battle.
        player_sp: Player SP inside the battle.
        monster_hp: Monster HP remaining.
        turn_number: Next turn to resolve; increases per exchange.
        status: Lifecycle status; terminal once not ACTIVE.
        log: Ordered narrative events.
        version: Optimistic concurrency version for persistence.
    """

    model_config = ConfigDict(frozen=True)

    battle_id: str = Field(default_factory=lambda: str(uuid4()))
    actor_id: str
    monster: MonsterTemplate
    player_hp: int = Field(ge=0)
    player_sp: int = Field(ge=0)
    monster_hp: int = Field(ge=0)
    turn_number: int = Field(default=1, ge=1)
    status: BattleStatus = BattleStatus.ACTIVE
    log: tuple[BattleEvent, ...] = ()
    version: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ExchangeResult(BaseModel):
    """Result of resolving one exchange or a flee.

    Attributes:
        session: Updated session (log already extended).
        events: Events produced by this call only, in order.
    """

    model_config = ConfigDict(frozen=True)

    session: BattleSession
    events: tuple[BattleEvent, ...]

    @property
    def status(self) -> BattleStatus:
        """Status after the exchange."""
        return self.session.status


__all__ = [
    "CombatStats",
    "MonsterTemplate",
    "BattleEvent",
    "BattleSession",
    "ExchangeResult",
]
