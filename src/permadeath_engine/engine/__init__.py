"""Simulation engine for progression, economy and combat.

Pure components (safe to call concurrently, no storage):
    level_curve: XP curves and apply_xp
    regen: Watermark-based HP/SP regeneration
    rng: Injectable random sources
    battle.BattleResolver: Battle state machine

Components working inside a unit of work:
    inventory: Stack-aware inventory ledger
    outcomes: Craft/gather outcome engine
    battle.BattleService: Persisted battles, rewards and perma-death
    actors: Actor creation, regeneration, damage/heal, tracks
    loadout: Skill bar
    rate_limit: Sliding-window rate limiter

Example:
    >>> from permadeath_engine.engine import ActionOutcomeEngine, SeededRandom
    >>> engine = ActionOutcomeEngine(database, rng=SeededRandom(seed=3))
    >>> outcome = engine.attempt("actor-1", "copper_vein")
"""

from __future__ import annotations

# =============================================================================
# Pure Components
# =============================================================================
from permadeath_engine.engine.level_curve import (
    BoundedLinearCurve,
    Curve,
    ExponentialCurve,
    apply_xp,
    curve_for,
    level_from_xp,
    progress,
    xp_for_level,
)
from permadeath_engine.engine.regen import apply_regen
from permadeath_engine.engine.rng import RandomSource, SeededRandom

# =============================================================================
# Inventory, Economy and Combat
# =============================================================================
from permadeath_engine.engine.inventory import InventoryLedger, InventoryStore
from permadeath_engine.engine.outcomes import (
    ActionOutcomeEngine,
    crafting_chance,
    gathering_chance,
    select_yields,
    success_chance,
    xp_for,
)
from permadeath_engine.engine.battle import BattleResolver, BattleService, roll_damage, skill_damage

# =============================================================================
# Services
# =============================================================================
from permadeath_engine.engine.actors import ActorService
from permadeath_engine.engine.loadout import LoadoutService
from permadeath_engine.engine.rate_limit import (
    MemoryRateLimitStore,
    SlidingWindowRateLimiter,
    SqliteRateLimitStore,
)


__all__ = [
    # Curves
    "Curve",
    "BoundedLinearCurve",
    "ExponentialCurve",
    "curve_for",
    "level_from_xp",
    "xp_for_level",
    "progress",
    "apply_xp",
    # Regeneration and RNG
    "apply_regen",
    "RandomSource",
    "SeededRandom",
    # Inventory and economy
    "InventoryLedger",
    "InventoryStore",
    "ActionOutcomeEngine",
    "crafting_chance",
    "gathering_chance",
    "success_chance",
    "xp_for",
    "select_yields",
    # Combat
    "roll_damage",
    "skill_damage",
    "BattleResolver",
    "BattleService",
    # Services
    "ActorService",
    "LoadoutService",
    "SlidingWindowRateLimiter",
    "MemoryRateLimitStore",
    "SqliteRateLimitStore",
]
