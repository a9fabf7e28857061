"""Storage module for engine persistence.

Provides SQLite-based storage with a transactional unit of work over:
- Authored content (items, actions, monsters)
- Actors, progression tracks, inventories and skill bars
- Battle sessions and attempt history
"""

from permadeath_engine.storage.database import (
    Database,
    get_database,
    reset_database,
)
from permadeath_engine.storage.repositories import (
    ActionRepository,
    ActorRepository,
    AttemptRepository,
    BattleRepository,
    InventoryRepository,
    ItemRepository,
    LoadoutRepository,
    MonsterRepository,
    ProgressionRepository,
    SkillRepository,
)
from permadeath_engine.storage.unit_of_work import UnitOfWork

__all__ = [
    "Database",
    "UnitOfWork",
    "get_database",
    "reset_database",
    "ActionRepository",
    "ActorRepository",
    "AttemptRepository",
    "BattleRepository",
    "InventoryRepository",
    "ItemRepository",
    "LoadoutRepository",
    "MonsterRepository",
    "ProgressionRepository",
    "SkillRepository",
]
