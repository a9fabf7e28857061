"""Skill learning and the persisted 8-slot skill bar."""

from __future__ import annotations

from permadeath_engine.core.exceptions import SkillNotFoundError
from permadeath_engine.core.logging import get_logger
from permadeath_engine.engine.actors import load_actor
from permadeath_engine.models.loadout import SkillLoadout
from permadeath_engine.storage.database import Database, get_database


logger = get_logger(__name__)


class LoadoutService:
    """Equip and unequip skills on an actor's skill bar."""

    def __init__(self, database: Database | None = None) -> None:
        self.database = database or get_database()

    def learn_skill(self, actor_id: str, skill_id: str) -> None:
        """Mark a skill as learned (idempotent).

        Raises:
            SkillNotFoundError: No skill with that id is defined.
        """
        with self.database.unit_of_work() as uow:
            load_actor(uow, actor_id)
            if uow.skills.get(skill_id) is None:
                raise SkillNotFoundError(entity_id=skill_id)
            uow.loadouts.learn(actor_id, skill_id)
        logger.info("Skill learned", actor_id=actor_id, skill_id=skill_id)

    def get_loadout(self, actor_id: str) -> SkillLoadout:
        """Current skill bar; empty slots are None."""
        with self.database.unit_of_work() as uow:
            load_actor(uow, actor_id, require_alive=False)
            return uow.loadouts.get(actor_id)

    def equip(self, actor_id: str, slot_index: int, skill_id: str) -> SkillLoadout:
        """Put a learned skill into slot ``slot_index`` (1-based).

        Raises:
            InvalidSlotError: Slot outside 1..8.
            SkillNotLearnedError: The actor has not learned the skill.
        """
        with self.database.unit_of_work() as uow:
            load_actor(uow, actor_id)
            loadout = uow.loadouts.get(actor_id).equip(slot_index, skill_id, uow.loadouts.learned(actor_id))
            uow.loadouts.save(loadout)
        logger.info("Skill equipped", actor_id=actor_id, slot=slot_index, skill_id=skill_id)
        return loadout

    def unequip(self, actor_id: str, slot_index: int) -> SkillLoadout:
        """Clear slot ``slot_index`` (1-based).

        Raises:
            InvalidSlotError: Slot outside 1..8.
            SlotEmptyError: The slot is already empty.
        """
        with self.database.unit_of_work() as uow:
            load_actor(uow, actor_id)
            loadout = uow.loadouts.get(actor_id).unequip(slot_index)
            uow.loadouts.save(loadout)
        logger.info("Skill unequipped", actor_id=actor_id, slot=slot_index)
        return loadout


__all__ = ["LoadoutService"]
