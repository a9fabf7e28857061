"""SQLite persistence layer for the permadeath engine.

Provides persistent storage for:
- Authored content (items, recipes and gathering nodes, monsters, skills)
- Actors, their progression tracks, inventories and skill bars
- Battle sessions and craft/gather history
- Rate-limiter hits for multi-process deployments

Storage location: ``settings.storage.database_path`` (data/permadeath.db).
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterable

from permadeath_engine.core.config import get_settings
from permadeath_engine.core.exceptions import TransactionAbortedError
from permadeath_engine.core.logging import get_logger
from permadeath_engine.models.actions import ActionDefinition
from permadeath_engine.models.battle import MonsterTemplate
from permadeath_engine.models.inventory import ItemDefinition
from permadeath_engine.models.loadout import SkillDefinition
from permadeath_engine.storage.unit_of_work import UnitOfWork


logger = get_logger(__name__)


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS items (
        item_id TEXT PRIMARY KEY,
        name TEXT NOT NULL DEFAULT '',
        stackable INTEGER NOT NULL,
        stack_cap INTEGER NOT NULL CHECK (stack_cap >= 1)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS inventory_stacks (
        stack_id INTEGER PRIMARY KEY AUTOINCREMENT,
        holder_id TEXT NOT NULL,
        item_id TEXT NOT NULL,
        quantity INTEGER NOT NULL CHECK (quantity >= 1)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_inventory_holder_item
    ON inventory_stacks(holder_id, item_id, stack_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS actors (
        actor_id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        current_hp INTEGER NOT NULL,
        max_hp INTEGER NOT NULL,
        current_sp INTEGER NOT NULL,
        max_sp INTEGER NOT NULL,
        hp_regen_per_minute INTEGER NOT NULL DEFAULT 0,
        sp_regen_per_minute INTEGER NOT NULL DEFAULT 0,
        last_regen_at TEXT NOT NULL,
        strength INTEGER NOT NULL,
        vitality INTEGER NOT NULL,
        gold INTEGER NOT NULL DEFAULT 0,
        death_count INTEGER NOT NULL DEFAULT 0,
        is_dead INTEGER NOT NULL DEFAULT 0,
        version INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS progression_tracks (
        actor_id TEXT NOT NULL,
        track_id TEXT NOT NULL,
        curve_kind TEXT NOT NULL,
        level INTEGER NOT NULL,
        total_xp INTEGER NOT NULL CHECK (total_xp >= 0),
        version INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (actor_id, track_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS action_definitions (
        action_id TEXT PRIMARY KEY,
        family TEXT NOT NULL,
        is_active INTEGER NOT NULL,
        definition_json TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS action_attempts (
        attempt_id TEXT PRIMARY KEY,
        actor_id TEXT NOT NULL,
        action_id TEXT NOT NULL,
        family TEXT NOT NULL,
        success INTEGER NOT NULL,
        xp_gained INTEGER NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_attempts_actor_created
    ON action_attempts(actor_id, created_at DESC)
    """,
    """
    CREATE TABLE IF NOT EXISTS monsters (
        monster_id TEXT PRIMARY KEY,
        template_json TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS battles (
        battle_id TEXT PRIMARY KEY,
        actor_id TEXT NOT NULL,
        status TEXT NOT NULL,
        turn_number INTEGER NOT NULL,
        version INTEGER NOT NULL DEFAULT 0,
        session_json TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_battles_actor_status
    ON battles(actor_id, status)
    """,
    """
    CREATE TABLE IF NOT EXISTS skills (
        skill_id TEXT PRIMARY KEY,
        definition_json TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS learned_skills (
        actor_id TEXT NOT NULL,
        skill_id TEXT NOT NULL,
        PRIMARY KEY (actor_id, skill_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS skill_loadouts (
        actor_id TEXT PRIMARY KEY,
        slots_json TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS rate_limit_hits (
        hit_id INTEGER PRIMARY KEY AUTOINCREMENT,
        limit_key TEXT NOT NULL,
        hit_at REAL NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_rate_limit_key_time
    ON rate_limit_hits(limit_key, hit_at)
    """,
)


# =============================================================================
# Database Class
# =============================================================================


class Database:
    """SQLite database for engine persistence.

    Connections run in autocommit mode and transactions are opened
    explicitly, so every unit of work starts with ``BEGIN IMMEDIATE``
    and holds the write lock for its whole read-mutate-write sequence.
    """

    SCHEMA_VERSION = 2

    def __init__(self, db_path: str | Path | None = None, *, busy_timeout: float | None = None) -> None:
        """Initialize database.

        Args:
            db_path: Path to database file. If None, uses the configured path.
            busy_timeout: Seconds to wait for the write lock. If None, uses
                the configured timeout.
        """
        storage = get_settings().storage
        self.db_path = Path(db_path) if db_path is not None else storage.database_path
        self.busy_timeout = busy_timeout if busy_timeout is not None else storage.busy_timeout_seconds

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

        logger.info("Database initialized", path=str(self.db_path))

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=self.busy_timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection inside a deferred transaction."""
        conn = self._connect()
        try:
            conn.execute("BEGIN")
            yield conn
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                (self.SCHEMA_VERSION,),
            )

    @contextmanager
    def unit_of_work(self) -> Generator[UnitOfWork, None, None]:
        """Open one atomic read-mutate-write transaction.

        Everything done through the yielded UnitOfWork commits together
        when the block exits, or is rolled back together when it raises.

        Raises:
            TransactionAbortedError: If SQLite failed; the transaction was
                rolled back before this is raised.
        """
        conn = self._connect()
        try:
            try:
                conn.execute("BEGIN IMMEDIATE")
                yield UnitOfWork(conn)
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                logger.warning("Transaction aborted", error=str(exc))
                raise TransactionAbortedError(
                    "Storage aborted the transaction; all changes were rolled back",
                    details={"error": str(exc)},
                ) from exc
            except Exception:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
        finally:
            conn.close()

    # =========================================================================
    # Content Seeding
    # =========================================================================

    def add_items(self, items: Iterable[ItemDefinition]) -> None:
        """Insert or replace item definitions."""
        with self.unit_of_work() as uow:
            for item in items:
                uow.items.upsert(item)

    def add_actions(self, actions: Iterable[ActionDefinition]) -> None:
        """Insert or replace recipe and gathering node definitions."""
        with self.unit_of_work() as uow:
            for action in actions:
                uow.actions.upsert(action)

    def add_monsters(self, monsters: Iterable[MonsterTemplate]) -> None:
        """Insert or replace monster templates."""
        with self.unit_of_work() as uow:
            for monster in monsters:
                uow.monsters.upsert(monster)

    def add_skills(self, skills: Iterable[SkillDefinition]) -> None:
        """Insert or replace combat skill definitions."""
        with self.unit_of_work() as uow:
            for skill in skills:
                uow.skills.upsert(skill)

    # =========================================================================
    # Rate Limiter Hits
    # =========================================================================

    def prune_and_count_hits(self, key: str, window_start: float) -> tuple[int, float | None]:
        """Drop hits older than ``window_start`` and count the rest.

        Returns:
            Hit count inside the window and the oldest hit timestamp.
        """
        with self._get_connection() as conn:
            conn.execute(
                "DELETE FROM rate_limit_hits WHERE limit_key = ? AND hit_at <= ?",
                (key, window_start),
            )
            row = conn.execute(
                "SELECT COUNT(*) AS n, MIN(hit_at) AS oldest FROM rate_limit_hits WHERE limit_key = ?",
                (key,),
            ).fetchone()
            return int(row["n"]), row["oldest"]

    def record_hit_if_below(self, key: str, now: float, window_start: float, limit: int) -> bool:
        """Atomically record a hit when fewer than ``limit`` are in the window."""
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute(
                "DELETE FROM rate_limit_hits WHERE limit_key = ? AND hit_at <= ?",
                (key, window_start),
            )
            count = conn.execute(
                "SELECT COUNT(*) FROM rate_limit_hits WHERE limit_key = ?",
                (key,),
            ).fetchone()[0]
            allowed = count < limit
            if allowed:
                conn.execute(
                    "INSERT INTO rate_limit_hits (limit_key, hit_at) VALUES (?, ?)",
                    (key, now),
                )
            conn.execute("COMMIT")
            return allowed
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def clear_hits(self, key: str) -> None:
        """Forget every recorded hit for ``key``."""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM rate_limit_hits WHERE limit_key = ?", (key,))


# =============================================================================
# Singleton Instance
# =============================================================================


_database_instance: Database | None = None


def get_database() -> Database:
    """Get the global database instance.

    Returns:
        Database singleton instance.
    """
    global _database_instance

    if _database_instance is None:
        _database_instance = Database()

    return _database_instance


def reset_database() -> None:
    """Drop the global instance so the next call re-reads settings."""
    global _database_instance
    _database_instance = None


__all__ = [
    "Database",
    "get_database",
    "reset_database",
]
