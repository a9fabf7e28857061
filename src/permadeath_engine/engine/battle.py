"""Turn-based battle resolution.

BattleResolver is the pure state machine:

    ACTIVE --resolve_exchange / use_skill--> ACTIVE | WON | LOST
    ACTIVE --flee----------------------------> FLED

One exchange is the player's move (a basic attack or an equipped skill)
followed, unless the monster died, by the monster's counter-attack. Each
sub-action emits exactly one event; the killing blow's event is flagged
``lethal``.

BattleService persists sessions, grants victory rewards and applies death
and perma-death to the actor.
"""

from __future__ import annotations

import math
from datetime import datetime

from permadeath_engine.core.config import Settings, get_settings
from permadeath_engine.core.constants import DAMAGE_FLOOR, DAMAGE_VARIANCE_MAX
from permadeath_engine.core.exceptions import (
    BattleInProgressError,
    BattleNotFoundError,
    BattleTerminalError,
    InsufficientStaminaError,
    InvalidArgumentError,
    MonsterNotFoundError,
    SkillNotFoundError,
    SkillNotLearnedError,
    StaleStateError,
)
from permadeath_engine.core.logging import get_logger
from permadeath_engine.engine.actors import award_xp, ensure_track, load_actor, regenerate, utcnow
from permadeath_engine.engine.rng import RandomSource, SeededRandom
from permadeath_engine.models.actors import ActorProfile
from permadeath_engine.models.battle import (
    BattleEvent,
    BattleSession,
    CombatStats,
    ExchangeResult,
    MonsterTemplate,
)
from permadeath_engine.models.enums import BattleEventKind, BattleStatus, CurveKind
from permadeath_engine.models.loadout import SkillDefinition, SkillLoadout
from permadeath_engine.models.resources import ResourcePool
from permadeath_engine.storage.database import Database, get_database
from permadeath_engine.storage.unit_of_work import UnitOfWork


logger = get_logger(__name__)


def roll_damage(attacker: CombatStats, defender: CombatStats, rng: RandomSource) -> int:
    """Damage of one hit.

    ``max(1, strength - vitality // 2 + randint(0, 2))``; never below 1.
    """
    variance = rng.randint(0, DAMAGE_VARIANCE_MAX)
    return max(DAMAGE_FLOOR, attacker.strength - defender.vitality // 2 + variance)


def skill_damage(skill: SkillDefinition, attacker: CombatStats) -> int:
    """Total damage of one skill use.

    ``max(0, floor(base_power + stat * scaling_ratio + flat_bonus)) * hits``.
    Deterministic: no roll and no defender mitigation.
    """
    per_hit: float = skill.base_power + skill.flat_bonus
    if skill.scaling_stat is not None:
        per_hit += getattr(attacker, skill.scaling_stat.value) * skill.scaling_ratio
    return max(0, math.floor(per_hit)) * skill.hits


class BattleResolver:
    """Pure battle state machine.

    Example:
        >>> resolver = BattleResolver(SeededRandom(seed=7))
        >>> session = resolver.start("actor-1", pool, goblin)
        >>> result = resolver.resolve_exchange(session, CombatStats(strength=12, vitality=8))
        >>> result.status
        <BattleStatus.ACTIVE: 'active'>
    """

    def __init__(self, rng: RandomSource | None = None) -> None:
        self.rng = rng or SeededRandom()

    def start(self, actor_id: str, pool: ResourcePool, monster: MonsterTemplate) -> BattleSession:
        """Open an ACTIVE session at turn 1 with the opening log entry."""
        opening = BattleEvent(
            kind=BattleEventKind.BATTLE_START,
            message=f"Battle begins! You face a level {monster.level} {monster.name}.",
            turn_number=0,
        )
        return BattleSession(
            actor_id=actor_id,
            monster=monster,
            player_hp=pool.current_hp,
            player_sp=pool.current_sp,
            monster_hp=monster.max_hp,
            log=(opening,),
        )

    @staticmethod
    def check_playable(session: BattleSession, expected_turn: int | None = None) -> None:
        """Refuse moves on ended sessions or against an outdated turn.

        Raises:
            BattleTerminalError: If the session already ended.
            StaleStateError: If expected_turn does not match.
        """
        if session.status.is_terminal:
            raise BattleTerminalError(
                "Battle is not active",
                battle_id=session.battle_id,
                status=session.status.value,
            )
        if expected_turn is not None and expected_turn != session.turn_number:
            raise StaleStateError(
                "Exchange submitted against an outdated turn",
                battle_id=session.battle_id,
                expected=expected_turn,
                actual=session.turn_number,
            )

    def resolve_exchange(
        self,
        session: BattleSession,
        player_stats: CombatStats,
        monster: MonsterTemplate | None = None,
        *,
        expected_turn: int | None = None,
    ) -> ExchangeResult:
        """Resolve one player attack and, if the monster survives, its counter.

        Args:
            session: Current session.
            player_stats: Player strength and vitality.
            monster: Monster template; defaults to the session's snapshot.
            expected_turn: Turn the caller believes is next. A mismatch means
                the caller acted on an outdated session.

        Returns:
            The advanced session and this exchange's events.

        Raises:
            BattleTerminalError: If the session already ended.
            StaleStateError: If expected_turn does not match.
        """
        self.check_playable(session, expected_turn)
        monster = monster or session.monster
        damage = roll_damage(player_stats, monster.stats, self.rng)
        return self._exchange(
            session,
            player_stats,
            monster,
            damage=damage,
            kind=BattleEventKind.PLAYER_ATTACK,
            move=f"You attack {monster.name}",
            player_sp=session.player_sp,
        )

    def use_skill(
        self,
        session: BattleSession,
        player_stats: CombatStats,
        loadout: SkillLoadout,
        slot_index: int,
        skill: SkillDefinition,
        monster: MonsterTemplate | None = None,
        *,
        expected_turn: int | None = None,
    ) -> ExchangeResult:
        """Use the skill equipped in ``slot_index``, then take the counter.

        Args:
            session: Current session.
            player_stats: Stats the skill scales with.
            loadout: The actor's skill bar.
            slot_index: 1-based slot holding the skill.
            skill: Definition of the equipped skill.
            monster: Monster template; defaults to the session's snapshot.
            expected_turn: Turn the caller believes is next.

        Returns:
            The advanced session (SP already spent) and this exchange's events.

        Raises:
            BattleTerminalError: If the session already ended.
            StaleStateError: If expected_turn does not match.
            InvalidSlotError: Slot outside the skill bar.
            SlotEmptyError: Nothing equipped in the slot.
            InsufficientStaminaError: Not enough SP left in this battle.
            InvalidArgumentError: ``skill`` is not the one equipped there.
        """
        self.check_playable(session, expected_turn)
        equipped = loadout.require_skill_at(slot_index)
        if equipped != skill.skill_id:
            raise InvalidArgumentError(
                "Skill definition does not match the equipped skill",
                argument="skill",
                value=skill.skill_id,
                details={"slot_index": slot_index, "equipped": equipped},
            )
        if session.player_sp < skill.sp_cost:
            raise InsufficientStaminaError(
                f"Not enough SP to use {skill.name}. Need {skill.sp_cost}, have {session.player_sp}.",
                required=skill.sp_cost,
                available=session.player_sp,
                actor_id=session.actor_id,
            )

        monster = monster or session.monster
        return self._exchange(
            session,
            player_stats,
            monster,
            damage=skill_damage(skill, player_stats),
            kind=BattleEventKind.PLAYER_SKILL,
            move=f"You use {skill.name} on {monster.name}",
            player_sp=session.player_sp - skill.sp_cost,
        )

    def _exchange(
        self,
        session: BattleSession,
        player_stats: CombatStats,
        monster: MonsterTemplate,
        *,
        damage: int,
        kind: BattleEventKind,
        move: str,
        player_sp: int,
    ) -> ExchangeResult:
        turn = session.turn_number
        player_hp = session.player_hp
        events: list[BattleEvent] = []

        monster_hp = max(0, session.monster_hp - damage)
        if monster_hp == 0:
            status = BattleStatus.WON
            events.append(
                BattleEvent(
                    kind=kind,
                    message=f"{move} for {damage} damage and defeat it!",
                    turn_number=turn,
                    damage=damage,
                    lethal=True,
                )
            )
        else:
            events.append(
                BattleEvent(kind=kind, message=f"{move} for {damage} damage!", turn_number=turn, damage=damage)
            )
            monster_damage = roll_damage(monster.stats, player_stats, self.rng)
            player_hp = max(0, player_hp - monster_damage)
            if player_hp == 0:
                status = BattleStatus.LOST
                message = f"{monster.name} attacks you for {monster_damage} damage. You have been defeated!"
            else:
                status = BattleStatus.ACTIVE
                message = f"{monster.name} attacks you for {monster_damage} damage!"
            events.append(
                BattleEvent(
                    kind=BattleEventKind.MONSTER_ATTACK,
                    message=message,
                    turn_number=turn,
                    damage=monster_damage,
                    lethal=status is BattleStatus.LOST,
                )
            )

        updated = session.model_copy(
            update={
                "player_hp": player_hp,
                "player_sp": player_sp,
                "monster_hp": monster_hp,
                "turn_number": turn + 1,
                "status": status,
                "log": session.log + tuple(events),
            }
        )
        logger.debug(
            "Exchange resolved",
            battle_id=session.battle_id,
            turn=turn,
            move=kind.value,
            status=status.value,
            player_hp=player_hp,
            player_sp=player_sp,
            monster_hp=monster_hp,
        )
        return ExchangeResult(session=updated, events=tuple(events))

    def flee(self, session: BattleSession) -> ExchangeResult:
        """Leave the battle; the session becomes FLED.

        Raises:
            BattleTerminalError: If the session already ended.
        """
        self.check_playable(session)
        event = BattleEvent(
            kind=BattleEventKind.FLED,
            message="You fled from the battle!",
            turn_number=session.turn_number,
        )
        updated = session.model_copy(
            update={"status": BattleStatus.FLED, "log": session.log + (event,)}
        )
        return ExchangeResult(session=updated, events=(event,))


# =============================================================================
# Battle Service
# =============================================================================


class BattleService:
    """Persisted battles with rewards, death and perma-death.

    Each call runs in one unit of work. Sessions are saved with a version
    compare-and-set, so two exchanges applied to the same loaded session
    cannot both land. Exchanges require the caller to say which turn or
    version they acted on.
    """

    def __init__(
        self,
        database: Database | None = None,
        rng: RandomSource | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.database = database or get_database()
        self.settings = settings or get_settings()
        self.resolver = BattleResolver(rng)

    def _load_owned(self, uow: UnitOfWork, actor_id: str, battle_id: str) -> BattleSession:
        session = uow.battles.get(battle_id)
        if session is None or session.actor_id != actor_id:
            raise BattleNotFoundError(entity_id=battle_id, actor_id=actor_id)
        return session

    @staticmethod
    def _require_guard(expected_turn: int | None, expected_version: int | None) -> None:
        if expected_turn is None and expected_version is None:
            raise InvalidArgumentError(
                "An exchange needs expected_turn or expected_version",
                argument="expected_turn",
                value=None,
            )

    def _load_for_exchange(
        self,
        uow: UnitOfWork,
        actor_id: str,
        battle_id: str,
        expected_version: int | None,
    ) -> BattleSession:
        session = self._load_owned(uow, actor_id, battle_id)
        self.resolver.check_playable(session)
        if expected_version is not None and expected_version != session.version:
            raise StaleStateError(
                "Battle changed since it was loaded",
                battle_id=battle_id,
                expected=expected_version,
                actual=session.version,
            )
        return session

    def start_battle(self, actor_id: str, monster_id: str, now: datetime | None = None) -> BattleSession:
        """Start a battle against a monster.

        Pending regeneration is applied first so the battle opens with the
        actor's up-to-date HP/SP.

        Raises:
            ActorNotFoundError: Unknown actor.
            ActorDeadError: The actor is permanently dead.
            BattleInProgressError: The actor already has an active battle.
            MonsterNotFoundError: Unknown monster.
        """
        with self.database.unit_of_work() as uow:
            actor = load_actor(uow, actor_id)
            if uow.battles.get_active_for_actor(actor_id) is not None:
                raise BattleInProgressError("You already have an active battle", actor_id=actor_id)
            monster = uow.monsters.get(monster_id)
            if monster is None:
                raise MonsterNotFoundError(entity_id=monster_id)

            actor, regen = regenerate(actor, now or utcnow(), self.settings)
            if regen.did_update:
                uow.actors.save(actor)

            session = self.resolver.start(actor_id, actor.pool, monster)
            uow.battles.create(session)

        logger.info("Battle started", actor_id=actor_id, battle_id=session.battle_id, monster_id=monster_id)
        return session

    def attack(
        self,
        actor_id: str,
        battle_id: str,
        *,
        expected_turn: int | None = None,
        expected_version: int | None = None,
    ) -> ExchangeResult:
        """Resolve and persist one basic-attack exchange.

        At least one of ``expected_turn`` and ``expected_version`` is
        required; a retried request carrying an old guard is rejected
        instead of resolving a second exchange.

        Args:
            actor_id: Acting actor; must own the battle.
            battle_id: Battle to advance.
            expected_turn: Turn the caller saw last.
            expected_version: Session version the caller saw last.

        Returns:
            The stored session and this exchange's events, including the
            reward event on victory.

        Raises:
            InvalidArgumentError: Neither guard was given.
            BattleNotFoundError: Unknown battle or not owned by the actor.
            BattleTerminalError: The battle already ended.
            StaleStateError: The session moved on since the caller loaded it.
        """
        self._require_guard(expected_turn, expected_version)
        with self.database.unit_of_work() as uow:
            session = self._load_for_exchange(uow, actor_id, battle_id, expected_version)
            actor = load_actor(uow, actor_id)
            result = self.resolver.resolve_exchange(session, actor.stats, expected_turn=expected_turn)
            stored, events = self._persist_exchange(uow, actor, session, result)

        logger.info(
            "Battle exchange persisted",
            actor_id=actor_id,
            battle_id=battle_id,
            turn=session.turn_number,
            status=stored.status.value,
        )
        return ExchangeResult(session=stored, events=events)

    def use_skill(
        self,
        actor_id: str,
        battle_id: str,
        slot_index: int,
        *,
        expected_turn: int | None = None,
        expected_version: int | None = None,
    ) -> ExchangeResult:
        """Use the skill in ``slot_index`` and persist the exchange.

        The SP cost comes out of the battle's SP and is written back to
        the actor's pool with the rest of the exchange.

        Raises:
            InvalidArgumentError: Neither guard was given.
            BattleNotFoundError: Unknown battle or not owned by the actor.
            BattleTerminalError: The battle already ended.
            StaleStateError: The session moved on since the caller loaded it.
            InvalidSlotError: Slot outside the skill bar.
            SlotEmptyError: Nothing equipped in the slot.
            SkillNotLearnedError: The equipped skill is no longer learned.
            SkillNotFoundError: The equipped skill has no definition.
            InsufficientStaminaError: Not enough SP for the skill.
        """
        self._require_guard(expected_turn, expected_version)
        with self.database.unit_of_work() as uow:
            session = self._load_for_exchange(uow, actor_id, battle_id, expected_version)
            actor = load_actor(uow, actor_id)

            loadout = uow.loadouts.get(actor_id)
            skill_id = loadout.require_skill_at(slot_index)
            if skill_id not in uow.loadouts.learned(actor_id):
                raise SkillNotLearnedError(
                    "Skill not learned",
                    actor_id=actor_id,
                    details={"skill_id": skill_id},
                )
            skill = uow.skills.get(skill_id)
            if skill is None:
                raise SkillNotFoundError(entity_id=skill_id)

            result = self.resolver.use_skill(
                session,
                actor.stats,
                loadout,
                slot_index,
                skill,
                expected_turn=expected_turn,
            )
            stored, events = self._persist_exchange(uow, actor, session, result)

        logger.info(
            "Skill used",
            actor_id=actor_id,
            battle_id=battle_id,
            skill_id=skill_id,
            sp_cost=skill.sp_cost,
            turn=session.turn_number,
            status=stored.status.value,
        )
        return ExchangeResult(session=stored, events=events)

    def flee(self, actor_id: str, battle_id: str) -> ExchangeResult:
        """Flee from a battle and persist the FLED session.

        Raises:
            BattleNotFoundError: Unknown battle or not owned by the actor.
            BattleTerminalError: The battle already ended.
        """
        with self.database.unit_of_work() as uow:
            session = self._load_owned(uow, actor_id, battle_id)
            result = self.resolver.flee(session)
            stored = uow.battles.save(result.session, expected_version=session.version)

        logger.info("Battle fled", actor_id=actor_id, battle_id=battle_id)
        return ExchangeResult(session=stored, events=result.events)

    def get_battle(self, actor_id: str, battle_id: str) -> BattleSession:
        """Load a battle owned by the actor."""
        with self.database.unit_of_work() as uow:
            return self._load_owned(uow, actor_id, battle_id)

    def get_active_battle(self, actor_id: str) -> BattleSession | None:
        """The actor's active battle, if any."""
        with self.database.unit_of_work() as uow:
            return uow.battles.get_active_for_actor(actor_id)

    # =========================================================================
    # Aftermath
    # =========================================================================

    def _persist_exchange(
        self,
        uow: UnitOfWork,
        actor: ActorProfile,
        session: BattleSession,
        result: ExchangeResult,
    ) -> tuple[BattleSession, tuple[BattleEvent, ...]]:
        updated = result.session
        events = list(result.events)

        if updated.status is BattleStatus.WON:
            reward = self._grant_victory(uow, actor, updated)
            events.append(reward)
            updated = updated.model_copy(update={"log": updated.log + (reward,)})
        elif updated.status is BattleStatus.LOST:
            self._handle_defeat(uow, actor)
        else:
            self._sync_pool(uow, actor, updated)

        stored = uow.battles.save(updated, expected_version=session.version)
        return stored, tuple(events)

    def _sync_pool(self, uow: UnitOfWork, actor: ActorProfile, session: BattleSession) -> ActorProfile:
        pool = actor.pool.with_current(session.player_hp, session.player_sp)
        return uow.actors.save(actor.model_copy(update={"pool": pool}))

    def _grant_victory(self, uow: UnitOfWork, actor: ActorProfile, session: BattleSession) -> BattleEvent:
        monster = session.monster
        actor = actor.model_copy(update={"gold": actor.gold + monster.gold_reward})
        self._sync_pool(uow, actor, session)

        if monster.xp_reward > 0:
            track = ensure_track(
                uow,
                actor.actor_id,
                self.settings.progression.combat_track_id,
                CurveKind.EXPONENTIAL,
            )
            award_xp(uow, track, monster.xp_reward, self.settings)

        logger.info(
            "Battle won",
            actor_id=actor.actor_id,
            battle_id=session.battle_id,
            xp=monster.xp_reward,
            gold=monster.gold_reward,
        )
        return BattleEvent(
            kind=BattleEventKind.REWARD,
            message=f"You gained {monster.xp_reward} XP and {monster.gold_reward} gold!",
            turn_number=session.turn_number,
        )

    def _handle_defeat(self, uow: UnitOfWork, actor: ActorProfile) -> ActorProfile:
        combat = self.settings.combat
        deaths = actor.death_count + 1
        if deaths >= combat.permadeath_threshold:
            updated = actor.model_copy(
                update={
                    "death_count": deaths,
                    "is_dead": True,
                    "pool": actor.pool.with_current(0, actor.pool.current_sp),
                }
            )
            logger.warning("Actor permanently dead", actor_id=actor.actor_id, deaths=deaths)
        else:
            pool = actor.pool.with_current(
                int(actor.pool.max_hp * combat.revive_fraction),
                int(actor.pool.max_sp * combat.revive_fraction),
            )
            updated = actor.model_copy(update={"death_count": deaths, "pool": pool})
            logger.info("Actor revived", actor_id=actor.actor_id, deaths=deaths, hp=pool.current_hp)
        return uow.actors.save(updated)


__all__ = [
    "roll_damage",
    "skill_damage",
    "BattleResolver",
    "BattleService",
]
