"""Injectable random sources.

Every random draw in the engine (success rolls, yield selection, damage
variance) goes through a RandomSource so that tests and replays can supply
a seeded or scripted generator.
"""

from __future__ import annotations

import random
from typing import Protocol, runtime_checkable

from permadeath_engine.core.exceptions import InvalidArgumentError
from permadeath_engine.core.logging import get_logger


logger = get_logger(__name__)


@runtime_checkable
class RandomSource(Protocol):
    """Minimal RNG interface used by the engine."""

    def random(self) -> float:
        """Return a float uniformly drawn from [0, 1)."""
        ...

    def randint(self, a: int, b: int) -> int:
        """Return an integer uniformly drawn from [a, b], inclusive."""
        ...


class SeededRandom:
    """RandomSource backed by a private ``random.Random`` instance.

    Unlike seeding the module-level generator, each instance owns its
    state, so two engines never interfere with each other's sequence.

    Example:
        >>> rng = SeededRandom(seed=42)
        >>> 0 <= rng.random() < 1
        True
    """

    def __init__(self, *, seed: int | None = None) -> None:
        """Initialize the generator.

        Args:
            seed: Optional seed for reproducible sequences.
        """
        self._seed = seed
        self._random = random.Random(seed)
        logger.debug("SeededRandom initialized", seed=seed)

    @property
    def seed(self) -> int | None:
        """Seed the generator was created with."""
        return self._seed

    def random(self) -> float:
        return self._random.random()

    def randint(self, a: int, b: int) -> int:
        if a > b:
            raise InvalidArgumentError(
                "randint lower bound exceeds upper bound",
                details={"a": a, "b": b},
            )
        return self._random.randint(a, b)


__all__ = [
    "RandomSource",
    "SeededRandom",
]
