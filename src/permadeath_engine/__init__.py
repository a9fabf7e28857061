"""Permadeath Engine - progression and economy simulation for a perma-death RPG.

A modular monolith turning player actions (attack, gather, craft, idle
time) into authoritative state changes: HP/SP, inventory, XP and levels,
and battle outcomes.

DETERMINISTIC CORE:
- Every random draw goes through an injected RandomSource
- Curves and regeneration are pure functions
- Economy and battle mutations commit as one SQLite transaction or not at all

Example:
    >>> from permadeath_engine import ActionOutcomeEngine, ActorService, Database, SeededRandom
    >>>
    >>> db = Database("data/permadeath.db")
    >>> actor = ActorService(db).create_actor(name="Ayla")
    >>> engine = ActionOutcomeEngine(db, rng=SeededRandom(seed=42))
    >>> outcome = engine.attempt(actor.actor_id, "copper_vein")
    >>> print(outcome.success, outcome.xp_gained)

Modules:
    core: Configuration, logging, and base exceptions.
    models: Pydantic V2 schemas.
    engine: Curves, regeneration, inventory, outcomes, battles and services.
    storage: SQLite database, unit of work and repositories.
"""

from __future__ import annotations

# Core
from permadeath_engine.core.config import Settings, get_settings
from permadeath_engine.core.exceptions import PermadeathError
from permadeath_engine.core.logging import configure_logging, get_logger

# Engine
from permadeath_engine.engine import (
    ActionOutcomeEngine,
    ActorService,
    BattleResolver,
    BattleService,
    InventoryLedger,
    LoadoutService,
    SeededRandom,
    SlidingWindowRateLimiter,
    apply_regen,
    apply_xp,
    curve_for,
)

# Storage
from permadeath_engine.storage import Database, UnitOfWork, get_database


__version__ = "0.1.0"
__all__ = [
    # Version info
    "__version__",
    # Core
    "PermadeathError",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    # Engine
    "ActionOutcomeEngine",
    "ActorService",
    "BattleResolver",
    "BattleService",
    "InventoryLedger",
    "LoadoutService",
    "SeededRandom",
    "SlidingWindowRateLimiter",
    "apply_regen",
    "apply_xp",
    "curve_for",
    # Storage
    "Database",
    "UnitOfWork",
    "get_database",
]
