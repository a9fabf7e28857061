"""Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the permadeath engine test suite.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from permadeath_engine.core.config import Settings, clear_settings_cache, get_settings
from permadeath_engine.engine.actors import ActorService
from permadeath_engine.models.actions import ActionDefinition, YieldEntry
from permadeath_engine.models.actors import ActorProfile
from permadeath_engine.models.battle import CombatStats, MonsterTemplate
from permadeath_engine.models.enums import ActionFamily, CurveKind, ScalingStat
from permadeath_engine.models.inventory import InventoryStack, ItemDefinition, ItemQuantity
from permadeath_engine.models.loadout import SkillDefinition
from permadeath_engine.storage.database import Database, reset_database


if TYPE_CHECKING:
    from collections.abc import Generator


NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Test Doubles
# =============================================================================


class ScriptedRandom:
    """RandomSource returning pre-scripted values in order.

    Args:
        floats: Values returned by ``random()``.
        ints: Values returned by ``randint()``; each must be in range.
    """

    def __init__(self, floats: Iterable[float] = (), ints: Iterable[int] = ()) -> None:
        self.floats = list(floats)
        self.ints = list(ints)

    def random(self) -> float:
        if not self.floats:
            raise AssertionError("ScriptedRandom ran out of floats")
        return self.floats.pop(0)

    def randint(self, a: int, b: int) -> int:
        if not self.ints:
            raise AssertionError("ScriptedRandom ran out of ints")
        value = self.ints.pop(0)
        assert a <= value <= b, f"scripted {value} outside [{a}, {b}]"
        return value


class MemoryInventoryStore:
    """In-memory InventoryStore for ledger unit tests."""

    def __init__(self, items: Iterable[ItemDefinition]) -> None:
        self.items = {item.item_id: item for item in items}
        self.rows: dict[int, InventoryStack] = {}
        self._next_id = 1

    def get_item(self, item_id: str) -> ItemDefinition | None:
        return self.items.get(item_id)

    def list_stacks(self, holder_id: str, item_id: str) -> list[InventoryStack]:
        return [
            row
            for _, row in sorted(self.rows.items())
            if row.holder_id == holder_id and row.item_id == item_id
        ]

    def insert_stack(self, holder_id: str, item_id: str, quantity: int) -> int:
        stack_id = self._next_id
        self._next_id += 1
        self.rows[stack_id] = InventoryStack(
            stack_id=stack_id, holder_id=holder_id, item_id=item_id, quantity=quantity
        )
        return stack_id

    def update_stack(self, stack_id: int, quantity: int) -> None:
        self.rows[stack_id] = self.rows[stack_id].model_copy(update={"quantity": quantity})

    def delete_stack(self, stack_id: int) -> None:
        del self.rows[stack_id]

    def quantities(self, holder_id: str, item_id: str) -> list[int]:
        return [row.quantity for row in self.list_stacks(holder_id, item_id)]


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Point storage at a temp dir and reset cached settings and database."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PERMADEATH_DATABASE_PATH", str(tmp_path / "default.db"))
    clear_settings_cache()
    reset_database()
    yield
    clear_settings_cache()
    reset_database()


@pytest.fixture
def settings() -> Settings:
    """Engine settings with defaults."""
    return get_settings()


# =============================================================================
# Content Fixtures
# =============================================================================


@pytest.fixture
def items() -> list[ItemDefinition]:
    """Item catalogue used across tests."""
    return [
        ItemDefinition(item_id="iron_ore", name="Iron Ore", stack_cap=10),
        ItemDefinition(item_id="coal", name="Coal", stack_cap=99),
        ItemDefinition(item_id="copper_ore", name="Copper Ore", stack_cap=50),
        ItemDefinition(item_id="gem", name="Rough Gem", stack_cap=20),
        ItemDefinition(item_id="iron_sword", name="Iron Sword", stackable=False),
    ]


@pytest.fixture
def actions() -> list[ActionDefinition]:
    """Recipes and gathering nodes used across tests."""
    return [
        ActionDefinition(
            action_id="iron_sword",
            name="Forge Iron Sword",
            family=ActionFamily.CRAFTING,
            track_id="blacksmith",
            difficulty=5,
            inputs=(ItemQuantity(item_id="iron_ore", qty=3), ItemQuantity(item_id="coal", qty=1)),
            outputs=(YieldEntry(item_id="iron_sword"),),
        ),
        ActionDefinition(
            action_id="masterwork_blade",
            name="Forge Masterwork Blade",
            family=ActionFamily.CRAFTING,
            track_id="blacksmith",
            difficulty=8,
            required_level=5,
            inputs=(ItemQuantity(item_id="iron_ore", qty=5),),
            outputs=(YieldEntry(item_id="iron_sword"),),
        ),
        ActionDefinition(
            action_id="retired_recipe",
            name="Retired Recipe",
            family=ActionFamily.CRAFTING,
            track_id="blacksmith",
            inputs=(ItemQuantity(item_id="coal", qty=1),),
            outputs=(YieldEntry(item_id="iron_sword"),),
            is_active=False,
        ),
        ActionDefinition(
            action_id="copper_vein",
            name="Copper Vein",
            family=ActionFamily.GATHERING,
            track_id="mining",
            difficulty=1,
            outputs=(
                YieldEntry(item_id="copper_ore", min_qty=1, max_qty=3, weight=100),
                YieldEntry(item_id="gem", weight=10),
            ),
        ),
    ]


@pytest.fixture
def monsters() -> list[MonsterTemplate]:
    """Monster templates used across tests."""
    return [
        MonsterTemplate(
            monster_id="goblin",
            name="Goblin",
            level=2,
            stats=CombatStats(strength=8, vitality=4),
            max_hp=20,
            xp_reward=30,
            gold_reward=5,
        ),
        MonsterTemplate(
            monster_id="ogre",
            name="Ogre",
            level=9,
            stats=CombatStats(strength=60, vitality=20),
            max_hp=500,
            xp_reward=400,
            gold_reward=100,
        ),
    ]


@pytest.fixture
def skills() -> list[SkillDefinition]:
    """Skill definitions used across tests."""
    return [
        SkillDefinition(
            skill_id="fireball",
            name="Fireball",
            sp_cost=20,
            base_power=10,
            scaling_stat=ScalingStat.STRENGTH,
            scaling_ratio=0.5,
            flat_bonus=2,
        ),
        SkillDefinition(skill_id="heal", name="Heal", sp_cost=10),
        SkillDefinition(
            skill_id="power_strike",
            name="Power Strike",
            sp_cost=60,
            base_power=4,
            scaling_stat=ScalingStat.STRENGTH,
            scaling_ratio=1.0,
            hits=3,
        ),
    ]


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def database(tmp_path: Path) -> Database:
    """Empty database in a temp directory."""
    return Database(tmp_path / "engine.db")


@pytest.fixture
def seeded_database(
    database: Database,
    items: list[ItemDefinition],
    actions: list[ActionDefinition],
    monsters: list[MonsterTemplate],
    skills: list[SkillDefinition],
) -> Database:
    """Database with the test content catalogue."""
    database.add_items(items)
    database.add_actions(actions)
    database.add_monsters(monsters)
    database.add_skills(skills)
    return database


@pytest.fixture
def actor_service(seeded_database: Database, settings: Settings) -> ActorService:
    """ActorService bound to the seeded database."""
    return ActorService(seeded_database, settings)


@pytest.fixture
def actor(actor_service: ActorService) -> ActorProfile:
    """A fresh actor with blacksmith and mining unlocked at level 1."""
    return actor_service.create_actor(
        actor_id="actor-1",
        name="Ayla",
        max_hp=100,
        max_sp=50,
        strength=10,
        vitality=6,
        tracks={"blacksmith": CurveKind.BOUNDED_LINEAR, "mining": CurveKind.BOUNDED_LINEAR},
        now=NOW,
    )


# =============================================================================
# Test Double Fixtures
# =============================================================================


@pytest.fixture
def scripted_rng() -> type[ScriptedRandom]:
    """The ScriptedRandom class, for building RNGs with per-test scripts."""
    return ScriptedRandom


@pytest.fixture
def memory_store(items: list[ItemDefinition]) -> MemoryInventoryStore:
    """Empty in-memory inventory store knowing the test catalogue."""
    return MemoryInventoryStore(items)
