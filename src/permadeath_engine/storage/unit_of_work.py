"""Unit of Work over one SQLite transaction.

A UnitOfWork groups the repositories that share a single connection. The
Database opens it with ``BEGIN IMMEDIATE`` so the write lock is taken up
front: two attempts for the same actor can never interleave their reads
and writes. Nothing done through a UnitOfWork is visible to other
connections until the enclosing ``Database.unit_of_work()`` block exits
cleanly.
"""

from __future__ import annotations

import sqlite3

from permadeath_engine.storage.repositories import (
    ActionRepository,
    ActorRepository,
    AttemptRepository,
    BattleRepository,
    InventoryRepository,
    ItemRepository,
    LoadoutRepository,
    MonsterRepository,
    SkillRepository,
    ProgressionRepository,
)


class UnitOfWork:
    """Repositories bound to the connection of one open transaction.

    Attributes:
        items: Item definitions.
        actions: Recipe and gathering node definitions.
        monsters: Monster templates.
        skills: Combat skill definitions.
        inventory: Inventory rows (an InventoryStore).
        actors: Actor aggregates.
        progression: Progression tracks.
        attempts: Attempt history.
        battles: Battle sessions.
        loadouts: Learned skills and skill bars.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.connection = conn
        self.items = ItemRepository(conn)
        self.actions = ActionRepository(conn)
        self.monsters = MonsterRepository(conn)
        self.skills = SkillRepository(conn)
        self.inventory = InventoryRepository(conn)
        self.actors = ActorRepository(conn)
        self.progression = ProgressionRepository(conn)
        self.attempts = AttemptRepository(conn)
        self.battles = BattleRepository(conn)
        self.loadouts = LoadoutRepository(conn)


__all__ = ["UnitOfWork"]
