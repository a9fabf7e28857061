"""Stack-aware inventory ledger.

The ledger owns the stacking rules; persistence is delegated to an
InventoryStore (the SQLite repository in production). Rows are always
visited oldest-first, so additions top up the oldest partial stack and
removals drain the oldest stack before touching newer ones.

Example:
    >>> ledger = InventoryLedger(uow.inventory)
    >>> ledger.add("actor-1", "iron_ore", 5)
    >>> ledger.has("actor-1", "iron_ore", 3)
    True
"""

from __future__ import annotations

from typing import Protocol, Sequence

from permadeath_engine.core.exceptions import InvalidArgumentError, ItemNotFoundError
from permadeath_engine.core.logging import get_logger
from permadeath_engine.models.inventory import InventoryStack, ItemDefinition


logger = get_logger(__name__)


class InventoryStore(Protocol):
    """Transactional storage for inventory rows keyed by (holder, item)."""

    def get_item(self, item_id: str) -> ItemDefinition | None:
        """Return the item definition, or None if unknown."""
        ...

    def list_stacks(self, holder_id: str, item_id: str) -> Sequence[InventoryStack]:
        """Return the holder's rows of an item, oldest first."""
        ...

    def insert_stack(self, holder_id: str, item_id: str, quantity: int) -> int:
        """Create a row and return its stack id."""
        ...

    def update_stack(self, stack_id: int, quantity: int) -> None:
        """Set a row's quantity."""
        ...

    def delete_stack(self, stack_id: int) -> None:
        """Delete a row."""
        ...


class InventoryLedger:
    """Applies add/remove/has over an InventoryStore.

    Attributes:
        store: Backing store, normally bound to the current unit of work.
    """

    def __init__(self, store: InventoryStore) -> None:
        self.store = store

    def _item(self, item_id: str) -> ItemDefinition:
        item = self.store.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(entity_id=item_id)
        return item

    @staticmethod
    def _require_positive(qty: int) -> None:
        if qty <= 0:
            raise InvalidArgumentError("Quantity must be positive", argument="qty", value=qty)

    def total(self, holder_id: str, item_id: str) -> int:
        """Sum of quantities across all of the holder's rows of an item."""
        return sum(stack.quantity for stack in self.store.list_stacks(holder_id, item_id))

    def has(self, holder_id: str, item_id: str, qty: int) -> bool:
        """Check whether the holder owns at least ``qty`` units."""
        self._require_positive(qty)
        return self.total(holder_id, item_id) >= qty

    def add(self, holder_id: str, item_id: str, qty: int) -> None:
        """Add units, filling partial stacks before creating new ones.

        Non-stackable items get one row per unit.

        Raises:
            InvalidArgumentError: If qty is not positive.
            ItemNotFoundError: If the item is not defined.
        """
        self._require_positive(qty)
        item = self._item(item_id)
        cap = item.effective_cap
        remaining = qty

        if item.stackable:
            for stack in self.store.list_stacks(holder_id, item_id):
                if remaining == 0:
                    break
                room = cap - stack.quantity
                if room <= 0:
                    continue
                moved = min(room, remaining)
                self.store.update_stack(stack.stack_id, stack.quantity + moved)
                remaining -= moved

        created = 0
        while remaining > 0:
            chunk = min(cap, remaining)
            self.store.insert_stack(holder_id, item_id, chunk)
            remaining -= chunk
            created += 1

        logger.debug(
            "Inventory added",
            holder_id=holder_id,
            item_id=item_id,
            qty=qty,
            new_stacks=created,
        )

    def remove(self, holder_id: str, item_id: str, qty: int) -> bool:
        """Remove units oldest-first, all or nothing.

        Returns:
            False without touching any row if the holder owns fewer than
            ``qty`` units, True otherwise.

        Raises:
            InvalidArgumentError: If qty is not positive.
        """
        self._require_positive(qty)
        stacks = self.store.list_stacks(holder_id, item_id)
        available = sum(stack.quantity for stack in stacks)
        if available < qty:
            logger.debug(
                "Inventory remove refused",
                holder_id=holder_id,
                item_id=item_id,
                qty=qty,
                available=available,
            )
            return False

        remaining = qty
        for stack in stacks:
            if remaining == 0:
                break
            if stack.quantity <= remaining:
                self.store.delete_stack(stack.stack_id)
                remaining -= stack.quantity
            else:
                self.store.update_stack(stack.stack_id, stack.quantity - remaining)
                remaining = 0

        logger.debug("Inventory removed", holder_id=holder_id, item_id=item_id, qty=qty)
        return True


__all__ = [
    "InventoryStore",
    "InventoryLedger",
]
