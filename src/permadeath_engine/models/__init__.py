"""Pydantic V2 schemas for the permadeath progression engine.

This module provides the data model layer: resource pools, progression
tracks, inventory, economy actions, battles, actors and skill loadouts.
All models are frozen; engine code returns updated copies.

Submodules:
    enums: Enumeration types (CurveKind, ActionFamily, BattleStatus, ...)
    resources: HP/SP pools and regeneration results
    progression: Progression tracks and XP results
    inventory: Item definitions and inventory stacks
    actions: Recipes, gathering nodes, attempts and outcomes
    battle: Combat stats, monsters, events and battle sessions
    actors: The actor aggregate
    loadout: Skill definitions and the 8-slot skill bar

Example:
    >>> from permadeath_engine.models import ResourcePool, CurveKind
    >>> pool = ResourcePool(current_hp=50, max_hp=100, current_sp=0, max_sp=50,
    ...                     hp_regen_per_minute=5, last_regen_at=now)
"""

from __future__ import annotations

# =============================================================================
# Enumerations
# =============================================================================
from permadeath_engine.models.enums import (
    ActionFamily,
    BattleEventKind,
    BattleStatus,
    CurveKind,
    ScalingStat,
)

# =============================================================================
# Resources and Progression
# =============================================================================
from permadeath_engine.models.resources import RegenResult, ResourcePool
from permadeath_engine.models.progression import (
    ProgressionTrack,
    XpApplication,
    XpProgress,
)

# =============================================================================
# Inventory and Actions
# =============================================================================
from permadeath_engine.models.inventory import (
    InventoryStack,
    ItemDefinition,
    ItemQuantity,
)
from permadeath_engine.models.actions import (
    ActionAttempt,
    ActionDefinition,
    Outcome,
    YieldEntry,
)

# =============================================================================
# Battle, Actors and Loadout
# =============================================================================
from permadeath_engine.models.battle import (
    BattleEvent,
    BattleSession,
    CombatStats,
    ExchangeResult,
    MonsterTemplate,
)
from permadeath_engine.models.actors import ActorProfile
from permadeath_engine.models.loadout import SkillDefinition, SkillLoadout


__all__ = [
    # Enums
    "ActionFamily",
    "BattleEventKind",
    "BattleStatus",
    "CurveKind",
    "ScalingStat",
    # Resources and progression
    "ResourcePool",
    "RegenResult",
    "ProgressionTrack",
    "XpProgress",
    "XpApplication",
    # Inventory and actions
    "ItemDefinition",
    "InventoryStack",
    "ItemQuantity",
    "YieldEntry",
    "ActionDefinition",
    "ActionAttempt",
    "Outcome",
    # Battle, actors and loadout
    "CombatStats",
    "MonsterTemplate",
    "BattleEvent",
    "BattleSession",
    "ExchangeResult",
    "ActorProfile",
    "SkillDefinition",
    "SkillLoadout",
]
