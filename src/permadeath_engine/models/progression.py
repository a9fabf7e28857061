"""Pydantic V2 schemas for progression tracks and XP results.

One ProgressionTrack exists per (actor, job-or-skill) pair. The stored
``level`` is a cache of ``curve.level_from_xp(total_xp)`` and is rewritten
every time XP changes; it is never edited on its own.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from permadeath_engine.models.enums import CurveKind


class ProgressionTrack(BaseModel):
    """Leveling state for one actor on one job or skill.

    Attributes:
        actor_id: Owning actor.
        track_id: Job or skill key (e.g. 'blacksmith', 'mining', 'combat').
        curve_kind: Which XP curve the track follows.
        level: Level derived from total_xp.
        total_xp: Accumulated XP, monotonically non-decreasing.
        version: Optimistic concurrency version, bumped on every write.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    actor_id: str = Field(min_length=1)
    track_id: str = Field(min_length=1)
    curve_kind: CurveKind = Field(default=CurveKind.BOUNDED_LINEAR)
    level: int = Field(default=1, ge=1)
    total_xp: int = Field(default=0, ge=0)
    version: int = Field(default=0, ge=0)


class XpProgress(BaseModel):
    """Progress inside the current level, for progress bars.

    Attributes:
        xp_in_level: XP earned since the current level was reached.
        xp_to_next: XP span of the current level (0 at max level).
        pct: Percentage of the span completed, 0..100.
    """

    model_config = ConfigDict(frozen=True)

    xp_in_level: int = Field(ge=0)
    xp_to_next: int = Field(ge=0)
    pct: float = Field(ge=0, le=100)


class XpApplication(BaseModel):
    """Result of adding XP to a track.

    Attributes:
        new_level: Level after the XP was applied.
        new_xp: Total XP after capping at the curve's maximum.
        leveled_up: Whether the level increased.
        progress: Progress within the new level.
    """

    model_config = ConfigDict(frozen=True)

    new_level: int = Field(ge=1)
    new_xp: int = Field(ge=0)
    leveled_up: bool
    progress: XpProgress


__all__ = [
    "ProgressionTrack",
    "XpProgress",
    "XpApplication",
]
