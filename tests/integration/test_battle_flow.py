"""Integration tests for persisted battles, rewards and perma-death."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from permadeath_engine.core.config import Settings
from permadeath_engine.core.exceptions import (
    ActorDeadError,
    BattleInProgressError,
    BattleNotFoundError,
    BattleTerminalError,
    InsufficientStaminaError,
    InvalidArgumentError,
    InvalidSlotError,
    MonsterNotFoundError,
    SkillNotFoundError,
    SkillNotLearnedError,
    SlotEmptyError,
    StaleStateError,
)
from permadeath_engine.engine.actors import ActorService
from permadeath_engine.engine.battle import BattleService
from permadeath_engine.engine.loadout import LoadoutService
from permadeath_engine.models.actors import ActorProfile
from permadeath_engine.models.enums import BattleEventKind, BattleStatus
from permadeath_engine.models.loadout import SkillLoadout
from permadeath_engine.storage.database import Database


ACTOR = "actor-1"
NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_service(database: Database, rng: Any, settings: Settings) -> BattleService:
    return BattleService(database, rng=rng, settings=settings)


class TestStartBattle:
    """Opening battles."""

    def test_start(self, seeded_database: Database, actor: ActorProfile, settings: Settings) -> None:
        """A new battle is stored ACTIVE with full monster HP."""
        service = make_service(seeded_database, None, settings)

        session = service.start_battle(ACTOR, "goblin", now=NOW)

        assert session.status is BattleStatus.ACTIVE
        assert session.monster_hp == 20
        assert session.player_hp == 100
        assert service.get_active_battle(ACTOR) == session
        assert service.get_battle(ACTOR, session.battle_id).log == session.log

    def test_one_active_battle(self, seeded_database: Database, actor: ActorProfile, settings: Settings) -> None:
        """A second battle cannot start while one is active."""
        service = make_service(seeded_database, None, settings)
        service.start_battle(ACTOR, "goblin", now=NOW)

        with pytest.raises(BattleInProgressError):
            service.start_battle(ACTOR, "ogre", now=NOW)

    def test_unknown_monster(self, seeded_database: Database, actor: ActorProfile, settings: Settings) -> None:
        """Monsters must exist."""
        with pytest.raises(MonsterNotFoundError):
            make_service(seeded_database, None, settings).start_battle(ACTOR, "dragon", now=NOW)

    def test_regen_applied_first(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        actor_service: ActorService,
        settings: Settings,
    ) -> None:
        """Pending regeneration lands before the battle snapshot."""
        actor_service.apply_damage(ACTOR, 40)

        session = make_service(seeded_database, None, settings).start_battle(
            ACTOR, "goblin", now=NOW.replace(minute=10)
        )

        assert session.player_hp == 70
        assert actor_service.get_actor(ACTOR).pool.current_hp == 70


class TestAttack:
    """Exchanges through the service."""

    def test_victory_grants_rewards(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        actor_service: ActorService,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Winning grants gold and combat XP and closes the battle."""
        service = make_service(seeded_database, scripted_rng(ints=[2, 0, 2]), settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)

        first = service.attack(ACTOR, battle.battle_id, expected_turn=1)
        assert first.status is BattleStatus.ACTIVE
        assert first.session.player_hp == 95
        assert actor_service.get_actor(ACTOR).pool.current_hp == 95

        final = service.attack(ACTOR, battle.battle_id, expected_turn=2)

        assert final.status is BattleStatus.WON
        assert [event.kind for event in final.events] == [BattleEventKind.PLAYER_ATTACK, BattleEventKind.REWARD]
        assert final.events[0].lethal is True
        assert final.events[1].message == "You gained 30 XP and 5 gold!"
        assert final.session.version == 2

        profile = actor_service.get_actor(ACTOR)
        assert profile.gold == 5
        assert profile.pool.current_hp == 95
        combat = next(track for track in actor_service.get_tracks(ACTOR) if track.track_id == "combat")
        assert combat.total_xp == 30
        assert service.get_active_battle(ACTOR) is None

        with pytest.raises(BattleTerminalError):
            service.attack(ACTOR, battle.battle_id, expected_turn=3)

    def test_defeat_revives_at_half(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        actor_service: ActorService,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Losing costs a life and revives the actor at half HP/SP."""
        service = make_service(seeded_database, scripted_rng(ints=[0, 0, 0, 0]), settings)
        battle = service.start_battle(ACTOR, "ogre", now=NOW)

        service.attack(ACTOR, battle.battle_id, expected_turn=1)
        result = service.attack(ACTOR, battle.battle_id, expected_turn=2)

        assert result.status is BattleStatus.LOST
        assert result.events[-1].lethal is True
        profile = actor_service.get_actor(ACTOR)
        assert profile.death_count == 1
        assert profile.is_dead is False
        assert profile.pool.current_hp == 50
        assert profile.pool.current_sp == 25

    def test_permadeath_after_five_deaths(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        actor_service: ActorService,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """The fifth defeat kills the actor for good."""
        service = make_service(seeded_database, scripted_rng(ints=[0] * 12), settings)

        for _ in range(5):
            battle = service.start_battle(ACTOR, "ogre", now=NOW)
            current = battle
            while current.status is BattleStatus.ACTIVE:
                current = service.attack(ACTOR, battle.battle_id, expected_version=current.version).session
            assert current.status is BattleStatus.LOST

        profile = actor_service.get_actor(ACTOR)
        assert profile.death_count == 5
        assert profile.is_dead is True
        assert profile.pool.current_hp == 0

        with pytest.raises(ActorDeadError):
            service.start_battle(ACTOR, "goblin", now=NOW)

    def test_stale_version_rejected(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        actor_service: ActorService,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Two exchanges against the same snapshot cannot both land."""
        service = make_service(seeded_database, scripted_rng(ints=[0, 0, 0, 0]), settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)

        service.attack(ACTOR, battle.battle_id, expected_version=battle.version)
        with pytest.raises(StaleStateError):
            service.attack(ACTOR, battle.battle_id, expected_version=battle.version)

        stored = service.get_battle(ACTOR, battle.battle_id)
        assert stored.turn_number == 2
        assert stored.version == 1
        assert actor_service.get_actor(ACTOR).pool.current_hp == 95

    def test_stale_turn_rejected(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """An exchange aimed at an old turn is refused."""
        service = make_service(seeded_database, scripted_rng(ints=[0, 0]), settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)
        service.attack(ACTOR, battle.battle_id, expected_turn=1)

        with pytest.raises(StaleStateError):
            service.attack(ACTOR, battle.battle_id, expected_turn=1)

    def test_other_actors_battle_hidden(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        actor_service: ActorService,
        settings: Settings,
    ) -> None:
        """Actors cannot act on battles they do not own."""
        actor_service.create_actor(actor_id="rival", name="Rival", now=NOW)
        service = make_service(seeded_database, None, settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)

        with pytest.raises(BattleNotFoundError):
            service.attack("rival", battle.battle_id, expected_turn=1)

    def test_guard_required(self, seeded_database: Database, actor: ActorProfile, settings: Settings) -> None:
        """An exchange without a turn or version guard is refused."""
        service = make_service(seeded_database, None, settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)

        with pytest.raises(InvalidArgumentError) as exc_info:
            service.attack(ACTOR, battle.battle_id)

        assert exc_info.value.details["argument"] == "expected_turn"
        assert service.get_battle(ACTOR, battle.battle_id).turn_number == 1


class TestUseSkill:
    """Skill exchanges through the service."""

    @staticmethod
    def equip(database: Database, skill_id: str, slot_index: int = 1) -> None:
        loadouts = LoadoutService(database)
        loadouts.learn_skill(ACTOR, skill_id)
        loadouts.equip(ACTOR, slot_index, skill_id)

    def test_skill_spends_sp(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        actor_service: ActorService,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Fireball deals 10 + 10 * 0.5 + 2 = 17 and costs 20 SP."""
        self.equip(seeded_database, "fireball")
        service = make_service(seeded_database, scripted_rng(ints=[0]), settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)

        result = service.use_skill(ACTOR, battle.battle_id, 1, expected_turn=1)

        assert result.status is BattleStatus.ACTIVE
        assert [event.kind for event in result.events] == [
            BattleEventKind.PLAYER_SKILL,
            BattleEventKind.MONSTER_ATTACK,
        ]
        assert result.events[0].message == "You use Fireball on Goblin for 17 damage!"
        assert result.session.monster_hp == 3
        assert result.session.player_sp == 30
        assert result.session.player_hp == 95

        profile = actor_service.get_actor(ACTOR)
        assert profile.pool.current_sp == 30
        assert profile.pool.current_hp == 95

    def test_skill_victory(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        actor_service: ActorService,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """A killing skill grants the usual rewards and keeps the SP spent."""
        self.equip(seeded_database, "fireball")
        service = make_service(seeded_database, scripted_rng(ints=[0]), settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)
        first = service.use_skill(ACTOR, battle.battle_id, 1, expected_version=battle.version)

        final = service.use_skill(ACTOR, battle.battle_id, 1, expected_version=first.session.version)

        assert final.status is BattleStatus.WON
        assert [event.kind for event in final.events] == [BattleEventKind.PLAYER_SKILL, BattleEventKind.REWARD]
        assert final.events[0].lethal is True
        assert final.events[0].message == "You use Fireball on Goblin for 17 damage and defeat it!"
        profile = actor_service.get_actor(ACTOR)
        assert profile.gold == 5
        assert profile.pool.current_sp == 10

    def test_empty_slot(self, seeded_database: Database, actor: ActorProfile, settings: Settings) -> None:
        """Using an empty or out-of-range slot changes nothing."""
        service = make_service(seeded_database, None, settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)

        with pytest.raises(SlotEmptyError):
            service.use_skill(ACTOR, battle.battle_id, 2, expected_turn=1)
        with pytest.raises(InvalidSlotError):
            service.use_skill(ACTOR, battle.battle_id, 9, expected_turn=1)

        stored = service.get_battle(ACTOR, battle.battle_id)
        assert stored.turn_number == 1
        assert stored.version == 0

    def test_not_enough_sp(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        actor_service: ActorService,
        settings: Settings,
    ) -> None:
        """Power Strike costs 60 SP; the actor has 50."""
        self.equip(seeded_database, "power_strike", slot_index=3)
        service = make_service(seeded_database, None, settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)

        with pytest.raises(InsufficientStaminaError) as exc_info:
            service.use_skill(ACTOR, battle.battle_id, 3, expected_turn=1)

        assert exc_info.value.details["required_sp"] == 60
        assert exc_info.value.details["available_sp"] == 50
        assert service.get_battle(ACTOR, battle.battle_id).monster_hp == 20
        assert actor_service.get_actor(ACTOR).pool.current_sp == 50

    def test_equipped_skill_must_be_learned_and_defined(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        settings: Settings,
    ) -> None:
        """A slot holding an unlearned or undefined skill cannot be used."""
        service = make_service(seeded_database, None, settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)
        with seeded_database.unit_of_work() as uow:
            uow.loadouts.save(SkillLoadout(actor_id=ACTOR, slots=("fireball", "meteor") + (None,) * 6))
            uow.loadouts.learn(ACTOR, "meteor")

        with pytest.raises(SkillNotLearnedError):
            service.use_skill(ACTOR, battle.battle_id, 1, expected_turn=1)
        with pytest.raises(SkillNotFoundError):
            service.use_skill(ACTOR, battle.battle_id, 2, expected_turn=1)

    def test_guard_required(self, seeded_database: Database, actor: ActorProfile, settings: Settings) -> None:
        """Skills need the same turn or version guard as attacks."""
        self.equip(seeded_database, "fireball")
        service = make_service(seeded_database, None, settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)

        with pytest.raises(InvalidArgumentError):
            service.use_skill(ACTOR, battle.battle_id, 1)


class TestFlee:
    """Fleeing through the service."""

    def test_flee_then_new_battle(
        self,
        seeded_database: Database,
        actor: ActorProfile,
        settings: Settings,
    ) -> None:
        """Fleeing closes the battle and frees the actor for another."""
        service = make_service(seeded_database, None, settings)
        battle = service.start_battle(ACTOR, "goblin", now=NOW)

        result = service.flee(ACTOR, battle.battle_id)

        assert result.status is BattleStatus.FLED
        assert service.get_active_battle(ACTOR) is None
        with pytest.raises(BattleTerminalError):
            service.flee(ACTOR, battle.battle_id)
        assert service.start_battle(ACTOR, "goblin", now=NOW).status is BattleStatus.ACTIVE
