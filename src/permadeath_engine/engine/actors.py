"""Actor lifecycle and resource services.

ActorService creates actors, persists regeneration and damage/heal effects,
grants progression tracks and items. The module-level helpers are shared
with the battle and outcome engines so every service loads actors and
awards XP the same way inside its own unit of work.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from permadeath_engine.core.config import Settings, get_settings
from permadeath_engine.core.exceptions import (
    ActionLockedError,
    ActorDeadError,
    ActorNotFoundError,
)
from permadeath_engine.core.logging import get_logger
from permadeath_engine.engine.inventory import InventoryLedger
from permadeath_engine.engine.level_curve import apply_xp, curve_for
from permadeath_engine.engine.regen import apply_regen
from permadeath_engine.models.actors import ActorProfile
from permadeath_engine.models.battle import CombatStats
from permadeath_engine.models.enums import CurveKind
from permadeath_engine.models.inventory import InventoryStack
from permadeath_engine.models.progression import ProgressionTrack, XpApplication
from permadeath_engine.models.resources import RegenResult, ResourcePool
from permadeath_engine.storage.database import Database, get_database
from permadeath_engine.storage.unit_of_work import UnitOfWork


logger = get_logger(__name__)


def utcnow() -> datetime:
    """Timezone-aware current time used for watermarks and audit records."""
    return datetime.now(timezone.utc)


# =============================================================================
# Unit-of-work helpers
# =============================================================================


def load_actor(uow: UnitOfWork, actor_id: str, *, require_alive: bool = True) -> ActorProfile:
    """Load an actor inside a unit of work.

    Raises:
        ActorNotFoundError: If the actor does not exist.
        ActorDeadError: If the actor is permanently dead and require_alive is set.
    """
    actor = uow.actors.get(actor_id)
    if actor is None:
        raise ActorNotFoundError(entity_id=actor_id)
    if require_alive and actor.is_dead:
        raise ActorDeadError("This character has perished", actor_id=actor_id)
    return actor


def award_xp(
    uow: UnitOfWork,
    track: ProgressionTrack,
    delta: int,
    settings: Settings,
) -> tuple[ProgressionTrack, XpApplication]:
    """Apply XP to a track and persist it with a version check.

    Returns:
        The saved track and the XP application result.

    Raises:
        InvalidArgumentError: If delta is negative.
        ConcurrencyConflictError: If the track changed since it was loaded.
    """
    curve = curve_for(track.curve_kind, settings.progression)
    applied = apply_xp(track.level, track.total_xp, delta, curve)
    saved = uow.progression.save(
        track.model_copy(update={"level": applied.new_level, "total_xp": applied.new_xp})
    )
    if applied.leveled_up:
        logger.info(
            "Track leveled up",
            actor_id=track.actor_id,
            track_id=track.track_id,
            level=applied.new_level,
        )
    return saved, applied


def track_level(track: ProgressionTrack, settings: Settings) -> int:
    """Level recomputed from the track's total XP; the stored level is a cache."""
    return curve_for(track.curve_kind, settings.progression).level_from_xp(track.total_xp)


def ensure_track(uow: UnitOfWork, actor_id: str, track_id: str, curve_kind: CurveKind) -> ProgressionTrack:
    """Return the actor's track, creating it at level 1 if missing."""
    track = uow.progression.get(actor_id, track_id)
    if track is None:
        track = ProgressionTrack(actor_id=actor_id, track_id=track_id, curve_kind=curve_kind)
        uow.progression.create(track)
    return track


def regenerate(actor: ActorProfile, now: datetime, settings: Settings) -> tuple[ActorProfile, RegenResult]:
    """Apply pending regeneration to an in-memory actor."""
    result = apply_regen(now, actor.pool, timedelta(seconds=settings.regen.tick_seconds))
    if not result.did_update:
        return actor, result
    return actor.model_copy(update={"pool": result.apply_to(actor.pool)}), result


# =============================================================================
# Actor Service
# =============================================================================


class ActorService:
    """Persisted operations on actors.

    Example:
        >>> service = ActorService(database)
        >>> actor = service.create_actor(name="Ayla", max_hp=100, max_sp=50)
        >>> service.refresh_resources(actor.actor_id).did_update
        False
    """

    def __init__(self, database: Database | None = None, settings: Settings | None = None) -> None:
        self.database = database or get_database()
        self.settings = settings or get_settings()

    def create_actor(
        self,
        *,
        name: str,
        max_hp: int = 100,
        max_sp: int = 50,
        hp_regen_per_minute: int = 1,
        sp_regen_per_minute: int = 1,
        strength: int = 5,
        vitality: int = 5,
        gold: int = 0,
        tracks: Mapping[str, CurveKind] | None = None,
        actor_id: str | None = None,
        now: datetime | None = None,
    ) -> ActorProfile:
        """Create an actor at full HP/SP with its starting tracks.

        The combat track is always granted; ``tracks`` adds jobs and skills.
        """
        actor = ActorProfile(
            actor_id=actor_id or str(uuid4()),
            name=name,
            pool=ResourcePool(
                current_hp=max_hp,
                max_hp=max_hp,
                current_sp=max_sp,
                max_sp=max_sp,
                hp_regen_per_minute=hp_regen_per_minute,
                sp_regen_per_minute=sp_regen_per_minute,
                last_regen_at=now or utcnow(),
            ),
            stats=CombatStats(strength=strength, vitality=vitality),
            gold=gold,
        )
        starting = {self.settings.progression.combat_track_id: CurveKind.EXPONENTIAL}
        starting.update(tracks or {})

        with self.database.unit_of_work() as uow:
            uow.actors.create(actor)
            for track_id, kind in starting.items():
                uow.progression.create(ProgressionTrack(actor_id=actor.actor_id, track_id=track_id, curve_kind=kind))

        logger.info("Actor created", actor_id=actor.actor_id, tracks=sorted(starting))
        return actor

    def hall_of_the_dead(self, limit: int = 50) -> list[ActorProfile]:
        """Actors who have died at least once, most deaths first.

        Permanently dead actors are included; their ``is_dead`` flag is set.
        """
        with self.database.unit_of_work() as uow:
            return uow.actors.list_fallen(limit)

    def get_actor(self, actor_id: str) -> ActorProfile:
        """Load an actor, dead or alive.

        Raises:
            ActorNotFoundError: If the actor does not exist.
        """
        with self.database.unit_of_work() as uow:
            return load_actor(uow, actor_id, require_alive=False)

    def refresh_resources(self, actor_id: str, now: datetime | None = None) -> RegenResult:
        """Apply and persist pending regeneration.

        The watermark is only written when at least one tick elapsed.
        """
        with self.database.unit_of_work() as uow:
            actor = load_actor(uow, actor_id, require_alive=False)
            updated, result = regenerate(actor, now or utcnow(), self.settings)
            if result.did_update:
                uow.actors.save(updated)
                logger.debug("Regeneration applied", actor_id=actor_id, ticks=result.ticks)
        return result

    def apply_damage(self, actor_id: str, amount: int) -> ResourcePool:
        """Reduce HP outside battle (traps, hazards), floored at 0."""
        with self.database.unit_of_work() as uow:
            actor = load_actor(uow, actor_id)
            pool = actor.pool.with_damage(amount)
            uow.actors.save(actor.model_copy(update={"pool": pool}))
        return pool

    def heal(self, actor_id: str, *, hp: int = 0, sp: int = 0) -> ResourcePool:
        """Restore HP/SP, capped at the maximums."""
        with self.database.unit_of_work() as uow:
            actor = load_actor(uow, actor_id)
            pool = actor.pool.with_heal(hp=hp, sp=sp)
            uow.actors.save(actor.model_copy(update={"pool": pool}))
        return pool

    def grant_track(
        self,
        actor_id: str,
        track_id: str,
        curve_kind: CurveKind = CurveKind.BOUNDED_LINEAR,
    ) -> ProgressionTrack:
        """Unlock a job or skill for the actor (idempotent)."""
        with self.database.unit_of_work() as uow:
            load_actor(uow, actor_id)
            return ensure_track(uow, actor_id, track_id, curve_kind)

    def get_tracks(self, actor_id: str) -> list[ProgressionTrack]:
        """All progression tracks of the actor."""
        with self.database.unit_of_work() as uow:
            load_actor(uow, actor_id, require_alive=False)
            return uow.progression.list_for_actor(actor_id)

    def add_xp(self, actor_id: str, track_id: str, delta: int) -> XpApplication:
        """Add XP to an unlocked track (quest rewards, trainers).

        Raises:
            ActorNotFoundError: If the actor does not exist.
            ActionLockedError: If the track is not unlocked.
            InvalidArgumentError: If delta is negative.
        """
        with self.database.unit_of_work() as uow:
            load_actor(uow, actor_id)
            track = uow.progression.get(actor_id, track_id)
            if track is None:
                raise ActionLockedError(
                    "Track is not unlocked for this actor",
                    actor_id=actor_id,
                    details={"track_id": track_id},
                )
            _, applied = award_xp(uow, track, delta, self.settings)
        return applied

    def grant_items(self, actor_id: str, item_id: str, qty: int) -> None:
        """Put items into the actor's inventory."""
        with self.database.unit_of_work() as uow:
            load_actor(uow, actor_id)
            InventoryLedger(uow.inventory).add(actor_id, item_id, qty)

    def get_inventory(self, actor_id: str) -> list[InventoryStack]:
        """All inventory rows of the actor, grouped by item, oldest first."""
        with self.database.unit_of_work() as uow:
            return uow.inventory.list_for_holder(actor_id)

    def count_item(self, actor_id: str, item_id: str) -> int:
        """Units of an item held across all stacks."""
        with self.database.unit_of_work() as uow:
            return InventoryLedger(uow.inventory).total(actor_id, item_id)


__all__ = [
    "ActorService",
    "award_xp",
    "ensure_track",
    "load_actor",
    "regenerate",
    "track_level",
    "utcnow",
]
