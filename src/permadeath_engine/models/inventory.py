"""Pydantic V2 schemas for item definitions and inventory stacks."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from permadeath_engine.core.exceptions import StackConfigurationError


class ItemDefinition(BaseModel):
    """Authored item content consumed read-only by the ledger.

    Attributes:
        item_id: Unique item key.
        name: Display name.
        stackable: Whether units share stack rows.
        stack_cap: Maximum quantity per stack row (1 for non-stackables).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    item_id: str = Field(min_length=1)
    name: str = Field(default="", max_length=200)
    stackable: bool = Field(default=True)
    stack_cap: int = Field(default=99)

    @model_validator(mode="after")
    def validate_stack_cap(self) -> "ItemDefinition":
        """Reject stack caps below 1.

        Raises:
            StackConfigurationError: If stack_cap < 1.
        """
        if self.stack_cap < 1:
            raise StackConfigurationError(
                f"Item {self.item_id!r} has stack_cap {self.stack_cap}; must be >= 1",
                item_id=self.item_id,
                stack_cap=self.stack_cap,
            )
        return self

    @property
    def effective_cap(self) -> int:
        """Per-row cap actually enforced (always 1 for non-stackables)."""
        return self.stack_cap if self.stackable else 1


class InventoryStack(BaseModel):
    """One inventory row.

    Attributes:
        stack_id: Row identifier; lower ids are older.
        holder_id: Owning actor.
        item_id: Item held.
        quantity: Units in this row.
    """

    model_config = ConfigDict(frozen=True)

    stack_id: int
    holder_id: str
    item_id: str
    quantity: int = Field(ge=1)


class ItemQuantity(BaseModel):
    """An (item, quantity) pair used for recipe inputs and granted outputs."""

    model_config = ConfigDict(frozen=True)

    item_id: str = Field(min_length=1)
    qty: int = Field(ge=1)


__all__ = [
    "ItemDefinition",
    "InventoryStack",
    "ItemQuantity",
]
