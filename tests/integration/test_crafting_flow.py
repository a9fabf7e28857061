"""Integration tests for crafting and gathering attempts against SQLite."""

from __future__ import annotations

import sqlite3
import threading
from typing import Any

import pytest

from permadeath_engine.core.config import RetrySettings, Settings
from permadeath_engine.core.exceptions import (
    ActionInactiveError,
    ActionLockedError,
    ActionNotFoundError,
    ActorDeadError,
    ActorNotFoundError,
    ConcurrencyConflictError,
    InsufficientMaterialsError,
    RateLimitExceededError,
    TransactionAbortedError,
)
from permadeath_engine.engine.actors import ActorService
from permadeath_engine.engine.outcomes import ActionOutcomeEngine
from permadeath_engine.engine.rate_limit import SlidingWindowRateLimiter
from permadeath_engine.models.actors import ActorProfile
from permadeath_engine.models.enums import ActionFamily
from permadeath_engine.models.inventory import ItemQuantity
from permadeath_engine.storage.database import Database
from permadeath_engine.storage.repositories import AttemptRepository, ProgressionRepository


ACTOR = "actor-1"


@pytest.fixture
def stocked_actor(actor: ActorProfile, actor_service: ActorService) -> ActorProfile:
    """The test actor holding enough for one iron sword plus spares."""
    actor_service.grant_items(ACTOR, "iron_ore", 5)
    actor_service.grant_items(ACTOR, "coal", 2)
    return actor


def track_xp(service: ActorService, track_id: str) -> int:
    return next(track.total_xp for track in service.get_tracks(ACTOR) if track.track_id == track_id)


def make_engine(database: Database, rng: Any, settings: Settings, **kwargs: Any) -> ActionOutcomeEngine:
    return ActionOutcomeEngine(database, rng=rng, settings=settings, **kwargs)


class TestCrafting:
    """Crafting attempts."""

    def test_success(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        stocked_actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """A successful craft consumes inputs, grants outputs and XP."""
        engine = make_engine(seeded_database, scripted_rng(floats=[0.0]), settings)

        outcome = engine.attempt(ACTOR, "iron_sword")

        assert outcome.success is True
        assert outcome.chance == pytest.approx(0.27)
        assert outcome.xp_gained == 40
        assert outcome.outputs == (ItemQuantity(item_id="iron_sword", qty=1),)
        assert outcome.consumed == (
            ItemQuantity(item_id="iron_ore", qty=3),
            ItemQuantity(item_id="coal", qty=1),
        )
        assert actor_service.count_item(ACTOR, "iron_ore") == 2
        assert actor_service.count_item(ACTOR, "coal") == 1
        assert actor_service.count_item(ACTOR, "iron_sword") == 1
        assert track_xp(actor_service, "blacksmith") == 40

    def test_failure_still_consumes_inputs(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        stocked_actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """A failed craft spends its inputs and grants the smaller XP."""
        engine = make_engine(seeded_database, scripted_rng(floats=[0.99]), settings)

        outcome = engine.attempt(ACTOR, "iron_sword")

        assert outcome.success is False
        assert outcome.xp_gained == 15
        assert outcome.outputs == ()
        assert actor_service.count_item(ACTOR, "iron_ore") == 2
        assert actor_service.count_item(ACTOR, "coal") == 1
        assert actor_service.count_item(ACTOR, "iron_sword") == 0
        assert track_xp(actor_service, "blacksmith") == 15

    def test_level_equal_to_difficulty(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        stocked_actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """At level 5 a difficulty 5 recipe succeeds 55 percent of the time."""
        actor_service.add_xp(ACTOR, "blacksmith", 1000)
        engine = make_engine(seeded_database, scripted_rng(floats=[0.54]), settings)

        outcome = engine.attempt(ACTOR, "iron_sword")

        assert outcome.chance == pytest.approx(0.55)
        assert outcome.success is True
        assert outcome.level == 5

    def test_level_up_reported(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        stocked_actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Crossing a threshold is reported with progress in the new level."""
        actor_service.add_xp(ACTOR, "blacksmith", 90)
        engine = make_engine(seeded_database, scripted_rng(floats=[0.0]), settings)

        outcome = engine.attempt(ACTOR, "iron_sword")

        assert outcome.leveled_up is True
        assert outcome.level == 2
        assert outcome.progress.xp_in_level == 30
        assert outcome.progress.xp_to_next == 200

    def test_insufficient_materials_changes_nothing(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """A missing input aborts before any input is spent or any roll made."""
        actor_service.grant_items(ACTOR, "iron_ore", 5)
        engine = make_engine(seeded_database, scripted_rng(), settings)

        with pytest.raises(InsufficientMaterialsError) as exc_info:
            engine.attempt(ACTOR, "iron_sword")

        assert exc_info.value.details["item_id"] == "coal"
        assert exc_info.value.details["available"] == 0
        assert actor_service.count_item(ACTOR, "iron_ore") == 5
        assert track_xp(actor_service, "blacksmith") == 0
        assert engine.history(ACTOR) == []

    def test_required_level(
        self,
        seeded_database: Database,
        stocked_actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Recipes above the actor's level are locked."""
        engine = make_engine(seeded_database, scripted_rng(), settings)

        with pytest.raises(ActionLockedError) as exc_info:
            engine.attempt(ACTOR, "masterwork_blade")

        assert exc_info.value.details["required_level"] == 5
        assert exc_info.value.details["actor_level"] == 1

    def test_level_recomputed_from_xp(
        self,
        seeded_database: Database,
        stocked_actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """A stale cached level does not lock recipes the XP has earned."""
        with seeded_database.unit_of_work() as uow:
            track = uow.progression.get(ACTOR, "blacksmith")
            assert track is not None
            uow.progression.save(track.model_copy(update={"level": 1, "total_xp": 1000}))
        engine = make_engine(seeded_database, scripted_rng(floats=[0.54]), settings)

        outcome = engine.attempt(ACTOR, "iron_sword")

        assert outcome.chance == pytest.approx(0.55)
        assert outcome.success is True
        assert outcome.level == 5

    def test_job_not_unlocked(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """An actor without the track cannot attempt its actions."""
        actor_service.create_actor(actor_id="novice", name="Novice")
        engine = make_engine(seeded_database, scripted_rng(), settings)

        with pytest.raises(ActionLockedError) as exc_info:
            engine.attempt("novice", "iron_sword")

        assert exc_info.value.message == "You don't have this job unlocked"

    def test_inactive_and_unknown_actions(
        self,
        seeded_database: Database,
        stocked_actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Inactive and missing definitions are rejected distinctly."""
        engine = make_engine(seeded_database, scripted_rng(), settings)

        with pytest.raises(ActionInactiveError):
            engine.attempt(ACTOR, "retired_recipe")
        with pytest.raises(ActionNotFoundError):
            engine.attempt(ACTOR, "mithril_crown")

    def test_unknown_and_dead_actors(
        self,
        seeded_database: Database,
        stocked_actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Only living, existing actors can act."""
        engine = make_engine(seeded_database, scripted_rng(), settings)

        with pytest.raises(ActorNotFoundError):
            engine.attempt("ghost", "iron_sword")

        with seeded_database.unit_of_work() as uow:
            current = uow.actors.get(ACTOR)
            assert current is not None
            uow.actors.save(current.model_copy(update={"is_dead": True}))

        with pytest.raises(ActorDeadError):
            engine.attempt(ACTOR, "iron_sword")

    def test_storage_failure_rolls_back(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        stocked_actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failure on the last write undoes every earlier write."""

        def broken_record(self: AttemptRepository, attempt: Any) -> None:
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(AttemptRepository, "record", broken_record)
        engine = make_engine(seeded_database, scripted_rng(floats=[0.0]), settings)

        with pytest.raises(TransactionAbortedError):
            engine.attempt(ACTOR, "iron_sword")

        assert actor_service.count_item(ACTOR, "iron_ore") == 5
        assert actor_service.count_item(ACTOR, "coal") == 2
        assert actor_service.count_item(ACTOR, "iron_sword") == 0
        assert track_xp(actor_service, "blacksmith") == 0


class TestGathering:
    """Gathering attempts."""

    def test_success_rolls_each_yield(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Successful gathers grant independently rolled yields."""
        engine = make_engine(seeded_database, scripted_rng(floats=[0.1, 0.5, 0.05], ints=[3]), settings)

        outcome = engine.attempt(ACTOR, "copper_vein")

        assert outcome.success is True
        assert outcome.chance == pytest.approx(0.65)
        assert outcome.consumed == ()
        assert outcome.outputs == (
            ItemQuantity(item_id="copper_ore", qty=3),
            ItemQuantity(item_id="gem", qty=1),
        )
        assert outcome.xp_gained == 11
        assert actor_service.count_item(ACTOR, "copper_ore") == 3
        assert actor_service.count_item(ACTOR, "gem") == 1
        assert track_xp(actor_service, "mining") == 11

    def test_failure(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Failed gathers grant nothing but the failure XP."""
        engine = make_engine(seeded_database, scripted_rng(floats=[0.9]), settings)

        outcome = engine.attempt(ACTOR, "copper_vein")

        assert outcome.success is False
        assert outcome.outputs == ()
        assert outcome.xp_gained == 4
        assert actor_service.count_item(ACTOR, "copper_ore") == 0


class TestHistory:
    """Attempt history."""

    def test_newest_first_with_filter(
        self,
        seeded_database: Database,
        stocked_actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """History is newest first and filterable by family."""
        engine = make_engine(seeded_database, scripted_rng(floats=[0.99, 0.9, 0.9]), settings)
        engine.attempt(ACTOR, "iron_sword")
        engine.attempt(ACTOR, "copper_vein")
        engine.attempt(ACTOR, "copper_vein")

        history = engine.history(ACTOR)
        assert [attempt.action_id for attempt in history] == ["copper_vein", "copper_vein", "iron_sword"]
        assert len(engine.history(ACTOR, limit=1)) == 1

        crafting = engine.history(ACTOR, family=ActionFamily.CRAFTING)
        assert len(crafting) == 1
        assert crafting[0].success is False
        assert crafting[0].xp_gained == 15

    def test_unknown_actor(self, seeded_database: Database, settings: Settings, scripted_rng: Any) -> None:
        """History of a missing actor is an error, not an empty list."""
        with pytest.raises(ActorNotFoundError):
            make_engine(seeded_database, scripted_rng(), settings).history("ghost")


class TestRetryAndRateLimit:
    """Conflict retries and rate limiting around attempts."""

    @pytest.fixture
    def fast_settings(self) -> Settings:
        return Settings(retry=RetrySettings(max_attempts=3, wait_min_seconds=0, wait_max_seconds=0))

    def test_conflict_retried_from_scratch(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        stocked_actor: ActorProfile,
        fast_settings: Settings,
        scripted_rng: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A conflict rolls back the attempt and the retry re-rolls."""
        original_save = ProgressionRepository.save
        calls = {"n": 0}

        def flaky_save(self: ProgressionRepository, track: Any) -> Any:
            calls["n"] += 1
            if calls["n"] == 1:
                raise ConcurrencyConflictError("conflict", actor_id=track.actor_id)
            return original_save(self, track)

        monkeypatch.setattr(ProgressionRepository, "save", flaky_save)
        rng = scripted_rng(floats=[0.99, 0.0])
        engine = make_engine(seeded_database, rng, fast_settings)

        outcome = engine.attempt_with_retry(ACTOR, "iron_sword")

        assert outcome.success is True
        assert calls["n"] == 2
        assert rng.floats == []
        assert actor_service.count_item(ACTOR, "iron_ore") == 2
        assert len(engine.history(ACTOR)) == 1

    def test_retry_charged_once(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        stocked_actor: ActorProfile,
        fast_settings: Settings,
        scripted_rng: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Retrying after a conflict spends one rate-limit slot, not one per try."""
        original_save = ProgressionRepository.save
        calls = {"n": 0}

        def flaky_save(self: ProgressionRepository, track: Any) -> Any:
            calls["n"] += 1
            if calls["n"] == 1:
                raise ConcurrencyConflictError("conflict", actor_id=track.actor_id)
            return original_save(self, track)

        monkeypatch.setattr(ProgressionRepository, "save", flaky_save)
        limiter = SlidingWindowRateLimiter(max_actions=1, window_seconds=60)
        engine = make_engine(
            seeded_database,
            scripted_rng(floats=[0.0, 0.0]),
            fast_settings,
            rate_limiter=limiter,
        )

        outcome = engine.attempt_with_retry(ACTOR, "iron_sword")

        assert outcome.success is True
        assert calls["n"] == 2
        with pytest.raises(RateLimitExceededError):
            engine.attempt(ACTOR, "iron_sword")
        assert len(engine.history(ACTOR)) == 1

    def test_conflict_exhausted(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        stocked_actor: ActorProfile,
        fast_settings: Settings,
        scripted_rng: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """The last conflict surfaces once attempts run out."""

        def always_conflict(self: ProgressionRepository, track: Any) -> Any:
            raise ConcurrencyConflictError("conflict", actor_id=track.actor_id)

        monkeypatch.setattr(ProgressionRepository, "save", always_conflict)
        engine = make_engine(seeded_database, scripted_rng(floats=[0.5, 0.5, 0.5]), fast_settings)

        with pytest.raises(ConcurrencyConflictError):
            engine.attempt_with_retry(ACTOR, "iron_sword")

        assert actor_service.count_item(ACTOR, "iron_ore") == 5

    def test_rate_limited_before_reading(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        stocked_actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Attempts over the limit are refused without touching state."""
        limiter = SlidingWindowRateLimiter(max_actions=1, window_seconds=60)
        engine = make_engine(seeded_database, scripted_rng(floats=[0.0]), settings, rate_limiter=limiter)
        engine.attempt(ACTOR, "iron_sword")

        with pytest.raises(RateLimitExceededError):
            engine.attempt(ACTOR, "iron_sword")

        assert actor_service.count_item(ACTOR, "iron_ore") == 2
        assert len(engine.history(ACTOR)) == 1


class TestConcurrentAttempts:
    """Parallel attempts racing for the same materials."""

    def test_only_one_craft_lands(
        self,
        seeded_database: Database,
        actor_service: ActorService,
        actor: ActorProfile,
        settings: Settings,
        scripted_rng: Any,
    ) -> None:
        """Eight threads share materials for one sword; exactly one succeeds."""
        actor_service.grant_items(ACTOR, "iron_ore", 3)
        actor_service.grant_items(ACTOR, "coal", 1)
        workers = 8
        engines = [
            make_engine(
                Database(seeded_database.db_path, busy_timeout=30),
                scripted_rng(floats=[0.0]),
                settings,
            )
            for _ in range(workers)
        ]
        barrier = threading.Barrier(workers)
        results: list[Any] = []
        lock = threading.Lock()

        def run(engine: ActionOutcomeEngine) -> None:
            barrier.wait()
            try:
                result: Any = engine.attempt(ACTOR, "iron_sword")
            except InsufficientMaterialsError as exc:
                result = exc
            with lock:
                results.append(result)

        threads = [threading.Thread(target=run, args=(engine,)) for engine in engines]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert len(results) == workers
        successes = [result for result in results if not isinstance(result, InsufficientMaterialsError)]
        failures = [result for result in results if isinstance(result, InsufficientMaterialsError)]
        assert len(successes) == 1
        assert successes[0].success is True
        assert len(failures) == workers - 1
        assert actor_service.count_item(ACTOR, "iron_ore") == 0
        assert actor_service.count_item(ACTOR, "coal") == 0
        assert actor_service.count_item(ACTOR, "iron_sword") == 1
        assert len(engines[0].history(ACTOR)) == 1
