"""SQLite repositories bound to one unit-of-work connection.

Each repository reads and writes a single aggregate through the connection
of the enclosing UnitOfWork; none of them commit. Versioned aggregates
(actors, progression tracks, battles) are saved with a compare-and-set on
their ``version`` column.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Any

from permadeath_engine.core.exceptions import ConcurrencyConflictError, StaleStateError
from permadeath_engine.models.actions import ActionAttempt, ActionDefinition
from permadeath_engine.models.actors import ActorProfile
from permadeath_engine.models.battle import BattleSession, CombatStats, MonsterTemplate
from permadeath_engine.models.enums import ActionFamily, BattleStatus, CurveKind
from permadeath_engine.models.inventory import InventoryStack, ItemDefinition
from permadeath_engine.models.loadout import SkillDefinition, SkillLoadout
from permadeath_engine.models.progression import ProgressionTrack
from permadeath_engine.models.resources import ResourcePool


class _Repository:
    """Base repository holding the unit-of-work connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _one(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        return self._conn.execute(sql, params).fetchone()

    def _all(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        return self._conn.execute(sql, params).fetchall()


# =============================================================================
# Content (read-mostly)
# =============================================================================


class ItemRepository(_Repository):
    """Item definitions."""

    def get(self, item_id: str) -> ItemDefinition | None:
        row = self._one(
            "SELECT item_id, name, stackable, stack_cap FROM items WHERE item_id = ?",
            (item_id,),
        )
        if row is None:
            return None
        return ItemDefinition(
            item_id=row["item_id"],
            name=row["name"],
            stackable=bool(row["stackable"]),
            stack_cap=row["stack_cap"],
        )

    def upsert(self, item: ItemDefinition) -> None:
        self._conn.execute(
            """
            INSERT INTO items (item_id, name, stackable, stack_cap) VALUES (?, ?, ?, ?)
            ON CONFLICT(item_id) DO UPDATE SET
                name = excluded.name,
                stackable = excluded.stackable,
                stack_cap = excluded.stack_cap
            """,
            (item.item_id, item.name, int(item.stackable), item.stack_cap),
        )


class ActionRepository(_Repository):
    """Recipes and gathering nodes.

    ``get`` returns inactive definitions too, so callers can tell
    "not found" apart from "found but inactive".
    """

    def get(self, action_id: str) -> ActionDefinition | None:
        row = self._one(
            "SELECT definition_json FROM action_definitions WHERE action_id = ?",
            (action_id,),
        )
        if row is None:
            return None
        return ActionDefinition.model_validate_json(row["definition_json"])

    def list_all(self, family: ActionFamily | None = None, *, active_only: bool = True) -> list[ActionDefinition]:
        sql = "SELECT definition_json FROM action_definitions WHERE 1 = 1"
        params: list[Any] = []
        if family is not None:
            sql += " AND family = ?"
            params.append(family.value)
        if active_only:
            sql += " AND is_active = 1"
        sql += " ORDER BY action_id"
        return [
            ActionDefinition.model_validate_json(row["definition_json"])
            for row in self._all(sql, tuple(params))
        ]

    def upsert(self, action: ActionDefinition) -> None:
        self._conn.execute(
            """
            INSERT INTO action_definitions (action_id, family, is_active, definition_json)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(action_id) DO UPDATE SET
                family = excluded.family,
                is_active = excluded.is_active,
                definition_json = excluded.definition_json
            """,
            (action.action_id, action.family.value, int(action.is_active), action.model_dump_json()),
        )


class MonsterRepository(_Repository):
    """Monster templates."""

    def get(self, monster_id: str) -> MonsterTemplate | None:
        row = self._one("SELECT template_json FROM monsters WHERE monster_id = ?", (monster_id,))
        if row is None:
            return None
        return MonsterTemplate.model_validate_json(row["template_json"])

    def upsert(self, monster: MonsterTemplate) -> None:
        self._conn.execute(
            """
            INSERT INTO monsters (monster_id, template_json) VALUES (?, ?)
            ON CONFLICT(monster_id) DO UPDATE SET template_json = excluded.template_json
            """,
            (monster.monster_id, monster.model_dump_json()),
        )


class SkillRepository(_Repository):
    """Combat skill definitions."""

    def get(self, skill_id: str) -> SkillDefinition | None:
        row = self._one("SELECT definition_json FROM skills WHERE skill_id = ?", (skill_id,))
        if row is None:
            return None
        return SkillDefinition.model_validate_json(row["definition_json"])

    def upsert(self, skill: SkillDefinition) -> None:
        self._conn.execute(
            """
            INSERT INTO skills (skill_id, definition_json) VALUES (?, ?)
            ON CONFLICT(skill_id) DO UPDATE SET definition_json = excluded.definition_json
            """,
            (skill.skill_id, skill.model_dump_json()),
        )


# =============================================================================
# Inventory
# =============================================================================


class InventoryRepository(_Repository):
    """Inventory rows. Implements the ledger's InventoryStore protocol."""

    def get_item(self, item_id: str) -> ItemDefinition | None:
        return ItemRepository(self._conn).get(item_id)

    def list_stacks(self, holder_id: str, item_id: str) -> list[InventoryStack]:
        rows = self._all(
            """
            SELECT stack_id, holder_id, item_id, quantity FROM inventory_stacks
            WHERE holder_id = ? AND item_id = ?
            ORDER BY stack_id ASC
            """,
            (holder_id, item_id),
        )
        return [InventoryStack(**dict(row)) for row in rows]

    def list_for_holder(self, holder_id: str) -> list[InventoryStack]:
        rows = self._all(
            """
            SELECT stack_id, holder_id, item_id, quantity FROM inventory_stacks
            WHERE holder_id = ? ORDER BY item_id, stack_id
            """,
            (holder_id,),
        )
        return [InventoryStack(**dict(row)) for row in rows]

    def insert_stack(self, holder_id: str, item_id: str, quantity: int) -> int:
        cursor = self._conn.execute(
            "INSERT INTO inventory_stacks (holder_id, item_id, quantity) VALUES (?, ?, ?)",
            (holder_id, item_id, quantity),
        )
        return int(cursor.lastrowid)

    def update_stack(self, stack_id: int, quantity: int) -> None:
        self._conn.execute(
            "UPDATE inventory_stacks SET quantity = ? WHERE stack_id = ?",
            (quantity, stack_id),
        )

    def delete_stack(self, stack_id: int) -> None:
        self._conn.execute("DELETE FROM inventory_stacks WHERE stack_id = ?", (stack_id,))


# =============================================================================
# Actors and Progression
# =============================================================================


def _actor_from_row(row: sqlite3.Row) -> ActorProfile:
    return ActorProfile(
        actor_id=row["actor_id"],
        name=row["name"],
        pool=ResourcePool(
            current_hp=row["current_hp"],
            max_hp=row["max_hp"],
            current_sp=row["current_sp"],
            max_sp=row["max_sp"],
            hp_regen_per_minute=row["hp_regen_per_minute"],
            sp_regen_per_minute=row["sp_regen_per_minute"],
            last_regen_at=datetime.fromisoformat(row["last_regen_at"]),
        ),
        stats=CombatStats(strength=row["strength"], vitality=row["vitality"]),
        gold=row["gold"],
        death_count=row["death_count"],
        is_dead=bool(row["is_dead"]),
        version=row["version"],
    )


class ActorRepository(_Repository):
    """Actor aggregate: profile, resource pool, stats, gold and death state."""

    def get(self, actor_id: str) -> ActorProfile | None:
        row = self._one("SELECT * FROM actors WHERE actor_id = ?", (actor_id,))
        return _actor_from_row(row) if row else None

    def create(self, actor: ActorProfile) -> None:
        pool = actor.pool
        self._conn.execute(
            """
            INSERT INTO actors (
                actor_id, name, current_hp, max_hp, current_sp, max_sp,
                hp_regen_per_minute, sp_regen_per_minute, last_regen_at,
                strength, vitality, gold, death_count, is_dead, version
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                actor.actor_id, actor.name, pool.current_hp, pool.max_hp,
                pool.current_sp, pool.max_sp, pool.hp_regen_per_minute,
                pool.sp_regen_per_minute, pool.last_regen_at.isoformat(),
                actor.stats.strength, actor.stats.vitality, actor.gold,
                actor.death_count, int(actor.is_dead), actor.version,
            ),
        )

    def save(self, actor: ActorProfile) -> ActorProfile:
        """Write the actor if its version is unchanged; return the bumped copy.

        Raises:
            ConcurrencyConflictError: If the stored version moved on.
        """
        pool = actor.pool
        cursor = self._conn.execute(
            """
            UPDATE actors SET
                name = ?, current_hp = ?, max_hp = ?, current_sp = ?, max_sp = ?,
                hp_regen_per_minute = ?, sp_regen_per_minute = ?, last_regen_at = ?,
                strength = ?, vitality = ?, gold = ?, death_count = ?, is_dead = ?,
                version = version + 1
            WHERE actor_id = ? AND version = ?
            """,
            (
                actor.name, pool.current_hp, pool.max_hp, pool.current_sp,
                pool.max_sp, pool.hp_regen_per_minute, pool.sp_regen_per_minute,
                pool.last_regen_at.isoformat(), actor.stats.strength,
                actor.stats.vitality, actor.gold, actor.death_count,
                int(actor.is_dead), actor.actor_id, actor.version,
            ),
        )
        if cursor.rowcount == 0:
            raise ConcurrencyConflictError(
                "Actor was modified concurrently",
                actor_id=actor.actor_id,
                expected_version=actor.version,
            )
        return actor.model_copy(update={"version": actor.version + 1})

    def list_fallen(self, limit: int = 50) -> list[ActorProfile]:
        """Actors who died at least once, most deaths first."""
        rows = self._all(
            """
            SELECT * FROM actors WHERE death_count > 0
            ORDER BY death_count DESC, actor_id ASC LIMIT ?
            """,
            (limit,),
        )
        return [_actor_from_row(row) for row in rows]


def _track_from_row(row: sqlite3.Row) -> ProgressionTrack:
    return ProgressionTrack(
        actor_id=row["actor_id"],
        track_id=row["track_id"],
        curve_kind=CurveKind(row["curve_kind"]),
        level=row["level"],
        total_xp=row["total_xp"],
        version=row["version"],
    )


class ProgressionRepository(_Repository):
    """Per-(actor, track) leveling state."""

    def get(self, actor_id: str, track_id: str) -> ProgressionTrack | None:
        row = self._one(
            "SELECT * FROM progression_tracks WHERE actor_id = ? AND track_id = ?",
            (actor_id, track_id),
        )
        return _track_from_row(row) if row else None

    def list_for_actor(self, actor_id: str) -> list[ProgressionTrack]:
        rows = self._all(
            "SELECT * FROM progression_tracks WHERE actor_id = ? ORDER BY track_id",
            (actor_id,),
        )
        return [_track_from_row(row) for row in rows]

    def create(self, track: ProgressionTrack) -> None:
        self._conn.execute(
            """
            INSERT INTO progression_tracks (actor_id, track_id, curve_kind, level, total_xp, version)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                track.actor_id, track.track_id, track.curve_kind.value,
                track.level, track.total_xp, track.version,
            ),
        )

    def save(self, track: ProgressionTrack) -> ProgressionTrack:
        """Compare-and-set the track on its version; return the bumped copy.

        Raises:
            ConcurrencyConflictError: If the stored version moved on.
        """
        cursor = self._conn.execute(
            """
            UPDATE progression_tracks
            SET level = ?, total_xp = ?, version = version + 1
            WHERE actor_id = ? AND track_id = ? AND version = ?
            """,
            (track.level, track.total_xp, track.actor_id, track.track_id, track.version),
        )
        if cursor.rowcount == 0:
            raise ConcurrencyConflictError(
                "Progression track was modified concurrently",
                actor_id=track.actor_id,
                expected_version=track.version,
                details={"track_id": track.track_id},
            )
        return track.model_copy(update={"version": track.version + 1})


# =============================================================================
# Attempts
# =============================================================================


class AttemptRepository(_Repository):
    """Append-only craft/gather history."""

    def record(self, attempt: ActionAttempt) -> None:
        self._conn.execute(
            """
            INSERT INTO action_attempts
                (attempt_id, actor_id, action_id, family, success, xp_gained, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                attempt.attempt_id, attempt.actor_id, attempt.action_id,
                attempt.family.value, int(attempt.success), attempt.xp_gained,
                attempt.created_at.isoformat(),
            ),
        )

    def recent(
        self,
        actor_id: str,
        limit: int = 50,
        family: ActionFamily | None = None,
    ) -> list[ActionAttempt]:
        sql = "SELECT * FROM action_attempts WHERE actor_id = ?"
        params: list[Any] = [actor_id]
        if family is not None:
            sql += " AND family = ?"
            params.append(family.value)
        sql += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
        params.append(limit)
        return [
            ActionAttempt(
                attempt_id=row["attempt_id"],
                actor_id=row["actor_id"],
                action_id=row["action_id"],
                family=ActionFamily(row["family"]),
                success=bool(row["success"]),
                xp_gained=row["xp_gained"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in self._all(sql, tuple(params))
        ]


# =============================================================================
# Battles
# =============================================================================


class BattleRepository(_Repository):
    """Battle sessions, versioned per battle id."""

    def get(self, battle_id: str) -> BattleSession | None:
        row = self._one("SELECT session_json FROM battles WHERE battle_id = ?", (battle_id,))
        if row is None:
            return None
        return BattleSession.model_validate_json(row["session_json"])

    def get_active_for_actor(self, actor_id: str) -> BattleSession | None:
        row = self._one(
            "SELECT session_json FROM battles WHERE actor_id = ? AND status = ?",
            (actor_id, BattleStatus.ACTIVE.value),
        )
        if row is None:
            return None
        return BattleSession.model_validate_json(row["session_json"])

    def create(self, session: BattleSession) -> None:
        self._conn.execute(
            """
            INSERT INTO battles (battle_id, actor_id, status, turn_number, version, session_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session.battle_id, session.actor_id, session.status.value,
                session.turn_number, session.version, session.model_dump_json(),
                session.created_at.isoformat(),
            ),
        )

    def save(self, session: BattleSession, expected_version: int) -> BattleSession:
        """Compare-and-set the session on its version.

        Args:
            session: New session state; its version is rewritten.
            expected_version: Version the caller loaded.

        Returns:
            The stored session with its new version.

        Raises:
            StaleStateError: If another exchange was persisted first.
        """
        stored = session.model_copy(update={"version": expected_version + 1})
        cursor = self._conn.execute(
            """
            UPDATE battles
            SET status = ?, turn_number = ?, version = ?, session_json = ?
            WHERE battle_id = ? AND version = ?
            """,
            (
                stored.status.value, stored.turn_number, stored.version,
                stored.model_dump_json(), stored.battle_id, expected_version,
            ),
        )
        if cursor.rowcount == 0:
            current = self._one("SELECT version FROM battles WHERE battle_id = ?", (session.battle_id,))
            raise StaleStateError(
                "Battle session was updated by another exchange",
                battle_id=session.battle_id,
                expected=expected_version,
                actual=current["version"] if current else None,
            )
        return stored


# =============================================================================
# Skills
# =============================================================================


class LoadoutRepository(_Repository):
    """Learned skills and the 8-slot skill bar."""

    def learned(self, actor_id: str) -> set[str]:
        rows = self._all("SELECT skill_id FROM learned_skills WHERE actor_id = ?", (actor_id,))
        return {row["skill_id"] for row in rows}

    def learn(self, actor_id: str, skill_id: str) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO learned_skills (actor_id, skill_id) VALUES (?, ?)",
            (actor_id, skill_id),
        )

    def get(self, actor_id: str) -> SkillLoadout:
        row = self._one("SELECT slots_json FROM skill_loadouts WHERE actor_id = ?", (actor_id,))
        if row is None:
            return SkillLoadout(actor_id=actor_id)
        return SkillLoadout(actor_id=actor_id, slots=tuple(json.loads(row["slots_json"])))

    def save(self, loadout: SkillLoadout) -> None:
        self._conn.execute(
            """
            INSERT INTO skill_loadouts (actor_id, slots_json) VALUES (?, ?)
            ON CONFLICT(actor_id) DO UPDATE SET slots_json = excluded.slots_json
            """,
            (loadout.actor_id, json.dumps(list(loadout.slots))),
        )


__all__ = [
    "ItemRepository",
    "ActionRepository",
    "MonsterRepository",
    "SkillRepository",
    "InventoryRepository",
    "ActorRepository",
    "ProgressionRepository",
    "AttemptRepository",
    "BattleRepository",
    "LoadoutRepository",
]
