"""Pydantic V2 schema for the actor aggregate."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from permadeath_engine.models.battle import CombatStats
from permadeath_engine.models.resources import ResourcePool


class ActorProfile(BaseModel):
    """A player character as seen by the engine.

    Attributes:
        actor_id: Unique actor id.
        name: Character name.
        pool: HP/SP and regeneration state.
        stats: Combat stats.
        gold: Currency held.
        death_count: Battles lost so far.
        is_dead: Permanently dead; the actor can no longer act.
        version: Optimistic concurrency version of the actor row.
    """

    model_config = ConfigDict(frozen=True)

    actor_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=100)
    pool: ResourcePool
    stats: CombatStats = Field(default_factory=CombatStats)
    gold: int = Field(default=0, ge=0)
    death_count: int = Field(default=0, ge=0)
    is_dead: bool = False
    version: int = Field(default=0, ge=0)


__all__ = ["ActorProfile"]
