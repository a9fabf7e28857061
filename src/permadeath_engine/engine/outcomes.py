"""Craft and gather outcome resolution.

The pipeline for one attempt, all inside a single unit of work:

1. Look up the action (not found / inactive) and the actor (missing / dead).
2. Check the actor's track is unlocked and meets the required level.
3. Crafting: verify every input, then consume them, before rolling.
4. Roll success against the clamped chance.
5. On success grant outputs (recipe outputs, or independently selected
   gathering yields).
6. Apply XP (awarded on failure too) and write the attempt record.

Any exception rolls the whole attempt back, so no partial mutation is
ever visible.

Example:
    >>> engine = ActionOutcomeEngine(database, rng=SeededRandom(seed=1))
    >>> outcome = engine.attempt("actor-1", "iron_sword")
    >>> outcome.success, outcome.xp_gained
    (True, 40)
"""

from __future__ import annotations

from collections.abc import Sequence

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from permadeath_engine.core.config import EconomySettings, Settings, get_settings
from permadeath_engine.core.exceptions import (
    ActionInactiveError,
    ActionLockedError,
    ActionNotFoundError,
    ConcurrencyConflictError,
    InsufficientMaterialsError,
)
from permadeath_engine.core.logging import actor_context, get_logger
from permadeath_engine.engine.actors import award_xp, load_actor, track_level
from permadeath_engine.engine.inventory import InventoryLedger
from permadeath_engine.engine.rate_limit import SlidingWindowRateLimiter
from permadeath_engine.engine.rng import RandomSource, SeededRandom
from permadeath_engine.models.actions import ActionAttempt, ActionDefinition, Outcome, YieldEntry
from permadeath_engine.models.enums import ActionFamily
from permadeath_engine.models.inventory import ItemQuantity
from permadeath_engine.storage.database import Database, get_database


logger = get_logger(__name__)


# =============================================================================
# Formulas
# =============================================================================


def _clamp(value: float, floor: float, ceiling: float) -> float:
    return max(floor, min(ceiling, value))


def crafting_chance(level: int, difficulty: int, economy: EconomySettings | None = None) -> float:
    """``clamp(0.20, 0.95, 0.55 + (level - difficulty) * 0.07)`` with configured constants."""
    economy = economy or get_settings().economy
    raw = economy.crafting_base + (level - difficulty) * economy.crafting_slope
    return _clamp(raw, economy.crafting_floor, economy.crafting_ceiling)


def gathering_chance(level: int, danger_tier: int, economy: EconomySettings | None = None) -> float:
    """``clamp(0.30, 0.98, 0.65 + (level - danger_tier) * 0.06)`` with configured constants."""
    economy = economy or get_settings().economy
    raw = economy.gathering_base + (level - danger_tier) * economy.gathering_slope
    return _clamp(raw, economy.gathering_floor, economy.gathering_ceiling)


def success_chance(action: ActionDefinition, level: int, economy: EconomySettings | None = None) -> float:
    """Chance for ``action`` at ``level``; a definition override wins."""
    if action.success_rate_override is not None:
        return _clamp(action.success_rate_override, 0.0, 1.0)
    if action.family is ActionFamily.CRAFTING:
        return crafting_chance(level, action.difficulty, economy)
    return gathering_chance(level, action.difficulty, economy)


def xp_for(
    family: ActionFamily,
    success: bool,
    difficulty: int,
    economy: EconomySettings | None = None,
) -> int:
    """XP for an outcome. Failures still grant the smaller amount.

    Crafting: ``15 + 5d`` on success, ``5 + 2d`` on failure.
    Gathering: ``8 + 3t`` on success, ``3 + t`` on failure.
    """
    economy = economy or get_settings().economy
    if family is ActionFamily.CRAFTING:
        if success:
            return economy.craft_xp_success_base + difficulty * economy.craft_xp_success_per_difficulty
        return economy.craft_xp_failure_base + difficulty * economy.craft_xp_failure_per_difficulty
    if success:
        return economy.gather_xp_success_base + difficulty * economy.gather_xp_success_per_tier
    return economy.gather_xp_failure_base + difficulty * economy.gather_xp_failure_per_tier


def _roll_quantity(entry: YieldEntry, rng: RandomSource) -> int:
    if entry.min_qty == entry.max_qty:
        return entry.min_qty
    return rng.randint(entry.min_qty, entry.max_qty)


def select_yields(yields: Sequence[YieldEntry], rng: RandomSource) -> list[ItemQuantity]:
    """Pick gathering yields, each row rolled independently.

    A row drops when ``rng.random() * 100 < weight``; weight 100 always drops.
    """
    selected: list[ItemQuantity] = []
    for entry in yields:
        if rng.random() * 100 < entry.weight:
            selected.append(ItemQuantity(item_id=entry.item_id, qty=_roll_quantity(entry, rng)))
    return selected


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "Retrying attempt after concurrency conflict",
        attempt=retry_state.attempt_number,
        args=retry_state.args,
    )


# =============================================================================
# Outcome Engine
# =============================================================================


class ActionOutcomeEngine:
    """Resolves craft and gather attempts atomically.

    Attributes:
        database: Store providing the unit of work.
        rng: Source of every roll.
        settings: Engine settings.
        rate_limiter: Limiter checked before anything is read. When none is
            given it is built from ``settings.rate_limit`` unless disabled.
    """

    def __init__(
        self,
        database: Database | None = None,
        rng: RandomSource | None = None,
        settings: Settings | None = None,
        rate_limiter: SlidingWindowRateLimiter | None = None,
    ) -> None:
        self.database = database or get_database()
        self.rng = rng or SeededRandom()
        self.settings = settings or get_settings()
        if rate_limiter is None and self.settings.rate_limit.enabled:
            rate_limiter = SlidingWindowRateLimiter.from_settings(self.settings.rate_limit, self.database)
        self.rate_limiter = rate_limiter

    def attempt(self, actor_id: str, action_id: str) -> Outcome:
        """Attempt a recipe or gathering node.

        Args:
            actor_id: Acting actor.
            action_id: Recipe or gathering node id.

        Returns:
            The structured outcome.

        Raises:
            RateLimitExceededError: Too many attempts in the window.
            ActionNotFoundError: Unknown action.
            ActionInactiveError: The action exists but is disabled.
            ActorNotFoundError: Unknown actor.
            ActorDeadError: The actor is permanently dead.
            ActionLockedError: Track not unlocked or level too low.
            InsufficientMaterialsError: Missing recipe inputs.
            ConcurrencyConflictError: The track changed concurrently (retryable).
            TransactionAbortedError: Storage failed; nothing was applied.
        """
        self._enforce_rate_limit(actor_id)
        return self._attempt_once(actor_id, action_id)

    def _enforce_rate_limit(self, actor_id: str) -> None:
        if self.rate_limiter is not None:
            self.rate_limiter.enforce(actor_id)

    def _attempt_once(self, actor_id: str, action_id: str) -> Outcome:
        with self.database.unit_of_work() as uow:
            action = uow.actions.get(action_id)
            if action is None:
                raise ActionNotFoundError(entity_id=action_id, actor_id=actor_id)
            if not action.is_active:
                raise ActionInactiveError(
                    f"{action.family.value.capitalize()} action is not active",
                    actor_id=actor_id,
                    details={"action_id": action_id},
                )

            load_actor(uow, actor_id)
            track = uow.progression.get(actor_id, action.track_id)
            if track is None:
                raise ActionLockedError(
                    "You don't have this job unlocked",
                    action_id=action_id,
                    required_level=action.required_level,
                    actor_id=actor_id,
                    details={"track_id": action.track_id},
                )
            level = track_level(track, self.settings)
            if level < action.required_level:
                raise ActionLockedError(
                    f"This action requires level {action.required_level}. You are level {level}.",
                    action_id=action_id,
                    required_level=action.required_level,
                    actor_level=level,
                    actor_id=actor_id,
                )

            ledger = InventoryLedger(uow.inventory)
            consumed: tuple[ItemQuantity, ...] = ()
            if action.family.consumes_inputs:
                consumed = self._consume_inputs(ledger, actor_id, action)

            chance = success_chance(action, level, self.settings.economy)
            roll = self.rng.random()
            success = roll < chance
            logger.debug("Outcome rolled", actor_id=actor_id, action_id=action_id, roll=roll, chance=chance)

            outputs: list[ItemQuantity] = []
            if success:
                if action.family is ActionFamily.GATHERING:
                    outputs = select_yields(action.outputs, self.rng)
                else:
                    outputs = [
                        ItemQuantity(item_id=entry.item_id, qty=_roll_quantity(entry, self.rng))
                        for entry in action.outputs
                    ]
                for item in outputs:
                    ledger.add(actor_id, item.item_id, item.qty)

            xp_gained = (
                action.xp_override
                if action.xp_override > 0
                else xp_for(action.family, success, action.difficulty, self.settings.economy)
            )
            _, applied = award_xp(uow, track, xp_gained, self.settings)

            record = ActionAttempt(
                actor_id=actor_id,
                action_id=action_id,
                family=action.family,
                success=success,
                xp_gained=xp_gained,
            )
            uow.attempts.record(record)

        logger.info(
            "Action attempted",
            actor_id=actor_id,
            action_id=action_id,
            family=action.family.value,
            success=success,
            xp=xp_gained,
            level=applied.new_level,
        )
        return Outcome(
            attempt_id=record.attempt_id,
            action_id=action_id,
            success=success,
            chance=chance,
            xp_gained=xp_gained,
            outputs=tuple(outputs),
            consumed=consumed,
            leveled_up=applied.leveled_up,
            level=applied.new_level,
            progress=applied.progress,
        )

    @staticmethod
    def _consume_inputs(
        ledger: InventoryLedger,
        actor_id: str,
        action: ActionDefinition,
    ) -> tuple[ItemQuantity, ...]:
        for required in action.inputs:
            if not ledger.has(actor_id, required.item_id, required.qty):
                raise InsufficientMaterialsError(
                    f"Insufficient {required.item_id}. Need {required.qty}.",
                    item_id=required.item_id,
                    required=required.qty,
                    available=ledger.total(actor_id, required.item_id),
                    actor_id=actor_id,
                )
        for required in action.inputs:
            if not ledger.remove(actor_id, required.item_id, required.qty):
                raise InsufficientMaterialsError(
                    f"Failed to remove {required.item_id}",
                    item_id=required.item_id,
                    required=required.qty,
                    actor_id=actor_id,
                )
        return tuple(action.inputs)

    def attempt_with_retry(self, actor_id: str, action_id: str) -> Outcome:
        """Run ``attempt`` and retry the whole attempt on concurrency conflicts.

        The rate limit is charged once for the whole call. Each retry starts
        from scratch, re-reading state and re-rolling. The last conflict is
        re-raised once attempts are exhausted.
        """
        self._enforce_rate_limit(actor_id)
        retry = self.settings.retry
        retrying = Retrying(
            retry=retry_if_exception_type(ConcurrencyConflictError),
            stop=stop_after_attempt(retry.max_attempts),
            wait=wait_exponential(min=retry.wait_min_seconds, max=retry.wait_max_seconds),
            before_sleep=_log_retry,
            reraise=True,
        )
        with actor_context(actor_id, action_id=action_id):
            return retrying(self._attempt_once, actor_id, action_id)

    def history(
        self,
        actor_id: str,
        limit: int | None = None,
        family: ActionFamily | None = None,
    ) -> list[ActionAttempt]:
        """Recent attempts of the actor, newest first."""
        with self.database.unit_of_work() as uow:
            load_actor(uow, actor_id, require_alive=False)
            return uow.attempts.recent(
                actor_id,
                limit or self.settings.economy.history_limit,
                family=family,
            )


__all__ = [
    "crafting_chance",
    "gathering_chance",
    "success_chance",
    "xp_for",
    "select_yields",
    "ActionOutcomeEngine",
]
