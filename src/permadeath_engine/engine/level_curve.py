"""XP curves mapping accumulated experience to levels.

Two strategies share one Curve interface:

- BoundedLinearCurve: jobs. Level n -> n+1 costs ``xp_per_level * n``.
- ExponentialCurve: trainable skills. Stepping into level i (i >= 2) costs
  ``floor(curve_base ** (i - 2) * base_xp)``.

Both cap total XP at the threshold of their max level, so applying XP
never produces a level beyond the cap and never errors on overflow.
Everything here is pure and safe to call concurrently.

Example:
    >>> curve = BoundedLinearCurve()
    >>> curve.level_from_xp(300)
    3
    >>> apply_xp(1, 0, 100, curve).leveled_up
    True
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from bisect import bisect_right

from permadeath_engine.core.config import ProgressionSettings, get_settings
from permadeath_engine.core.constants import MIN_LEVEL
from permadeath_engine.core.exceptions import InvalidArgumentError
from permadeath_engine.models.enums import CurveKind
from permadeath_engine.models.progression import XpApplication, XpProgress


class Curve(ABC):
    """Abstract XP curve.

    Subclasses only describe the cost of each level step; thresholds are
    precomputed once into a prefix-sum table.
    """

    kind: CurveKind

    def __init__(self, max_level: int) -> None:
        if max_level < MIN_LEVEL:
            raise InvalidArgumentError("max_level must be >= 1", argument="max_level", value=max_level)
        self.max_level = max_level
        # _thresholds[i] is the total XP needed to reach level i + 1
        thresholds = [0]
        for level in range(MIN_LEVEL + 1, max_level + 1):
            thresholds.append(thresholds[-1] + self.step_cost(level))
        self._thresholds = tuple(thresholds)

    @abstractmethod
    def step_cost(self, level: int) -> int:
        """XP needed to go from ``level - 1`` to ``level``."""

    @property
    def max_xp(self) -> int:
        """Total XP at which the curve is capped."""
        return self._thresholds[-1]

    def xp_for_level(self, level: int) -> int:
        """Total XP needed to reach ``level``.

        Raises:
            InvalidArgumentError: If level is outside 1..max_level.
        """
        if not MIN_LEVEL <= level <= self.max_level:
            raise InvalidArgumentError(
                f"Level must be between {MIN_LEVEL} and {self.max_level}",
                argument="level",
                value=level,
            )
        return self._thresholds[level - 1]

    def level_from_xp(self, total_xp: int) -> int:
        """Highest level whose threshold is at most ``total_xp``."""
        if total_xp < 0:
            raise InvalidArgumentError("total_xp must be non-negative", argument="total_xp", value=total_xp)
        return bisect_right(self._thresholds, total_xp)

    def progress(self, level: int, total_xp: int) -> XpProgress:
        """Progress inside ``level``.

        ``xp_to_next`` is the span of the level; at max level it is 0 and
        ``pct`` is 100.
        """
        start = self.xp_for_level(level)
        xp_in_level = max(0, total_xp - start)
        if level >= self.max_level:
            return XpProgress(xp_in_level=xp_in_level, xp_to_next=0, pct=100.0)
        span = self.xp_for_level(level + 1) - start
        pct = min(100.0, xp_in_level / span * 100) if span > 0 else 100.0
        return XpProgress(xp_in_level=xp_in_level, xp_to_next=span, pct=pct)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(max_level={self.max_level})"


class BoundedLinearCurve(Curve):
    """Job curve: level n -> n+1 costs ``xp_per_level * n``, capped at max_level."""

    kind = CurveKind.BOUNDED_LINEAR

    def __init__(self, max_level: int = 10, xp_per_level: int = 100) -> None:
        self.xp_per_level = xp_per_level
        super().__init__(max_level)

    def step_cost(self, level: int) -> int:
        return self.xp_per_level * (level - 1)


class ExponentialCurve(Curve):
    """Melvor-style skill curve.

    Level 2 needs exactly ``base_xp``; each later step is ``curve_base``
    times larger than the previous one before flooring.
    """

    kind = CurveKind.EXPONENTIAL

    def __init__(self, max_level: int = 99, base_xp: int = 100, curve_base: float = 1.15) -> None:
        self.base_xp = base_xp
        self.curve_base = curve_base
        super().__init__(max_level)

    def step_cost(self, level: int) -> int:
        return math.floor(self.curve_base ** (level - 2) * self.base_xp)


def curve_for(kind: CurveKind, settings: ProgressionSettings | None = None) -> Curve:
    """Build the curve for a track's curve kind from configuration.

    Args:
        kind: Curve strategy attached to the track.
        settings: Curve parameters. Defaults to the global settings.

    Returns:
        A curve instance.
    """
    settings = settings or get_settings().progression
    if kind is CurveKind.EXPONENTIAL:
        return ExponentialCurve(
            max_level=settings.skill_max_level,
            base_xp=settings.skill_base_xp,
            curve_base=settings.skill_curve_base,
        )
    return BoundedLinearCurve(
        max_level=settings.job_max_level,
        xp_per_level=settings.job_xp_per_level,
    )


# =============================================================================
# Functional API
# =============================================================================


def level_from_xp(total_xp: int, curve: Curve) -> int:
    """Level for ``total_xp`` on ``curve``."""
    return curve.level_from_xp(total_xp)


def xp_for_level(level: int, curve: Curve) -> int:
    """XP threshold of ``level`` on ``curve``."""
    return curve.xp_for_level(level)


def progress(level: int, total_xp: int, curve: Curve) -> XpProgress:
    """Progress within ``level`` on ``curve``."""
    return curve.progress(level, total_xp)


def apply_xp(current_level: int, current_xp: int, delta: int, curve: Curve) -> XpApplication:
    """Add XP and recompute the level.

    The old level is recomputed from ``current_xp`` rather than trusted,
    so a stale cached level never produces a spurious level-up. XP beyond
    the curve's cap is silently truncated, but a total already above the
    cap (left over from a lowered cap) is kept rather than reduced.

    Args:
        current_level: Cached level of the track (informational).
        current_xp: Total XP before the delta.
        delta: XP to add.
        curve: Curve of the track.

    Returns:
        New level, new total XP, level-up flag and progress.

    Raises:
        InvalidArgumentError: If delta or current_xp is negative.
    """
    if delta < 0:
        raise InvalidArgumentError(f"Cannot add negative XP: {delta}", argument="delta", value=delta)
    if current_xp < 0:
        raise InvalidArgumentError("current_xp must be non-negative", argument="current_xp", value=current_xp)

    old_level = curve.level_from_xp(min(current_xp, curve.max_xp))
    new_xp = max(current_xp, min(current_xp + delta, curve.max_xp))
    new_level = curve.level_from_xp(new_xp)
    return XpApplication(
        new_level=new_level,
        new_xp=new_xp,
        leveled_up=new_level > old_level,
        progress=curve.progress(new_level, new_xp),
    )


__all__ = [
    "Curve",
    "BoundedLinearCurve",
    "ExponentialCurve",
    "curve_for",
    "level_from_xp",
    "xp_for_level",
    "progress",
    "apply_xp",
]
