"""Real-time HP/SP regeneration.

Regeneration is computed lazily from a watermark instead of by a
scheduler. Only whole ticks are consumed and the watermark advances by the
consumed ticks, never to ``now``, so the sub-tick remainder carries over
to the next call no matter how often it is polled.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from permadeath_engine.core.constants import REGEN_TICK
from permadeath_engine.core.exceptions import InvalidArgumentError
from permadeath_engine.models.resources import RegenResult, ResourcePool


def apply_regen(now: datetime, pool: ResourcePool, tick: timedelta = REGEN_TICK) -> RegenResult:
    """Apply regeneration accrued since ``pool.last_regen_at``.

    Args:
        now: Current time. Must be comparable with the watermark
            (both naive or both aware).
        pool: Resource pool to regenerate.
        tick: Length of one regeneration tick.

    Returns:
        New HP, SP and watermark. ``did_update`` is False and the pool is
        reported unchanged when less than one tick has elapsed, including
        when ``now`` is before the watermark.

    Example:
        >>> result = apply_regen(now, pool)
        >>> if result.did_update:
        ...     pool = result.apply_to(pool)
    """
    if tick <= timedelta(0):
        raise InvalidArgumentError("Regeneration tick must be positive", argument="tick", value=tick)

    ticks = (now - pool.last_regen_at) // tick
    if ticks <= 0:
        return RegenResult(
            hp=pool.current_hp,
            sp=pool.current_sp,
            last_regen_at=pool.last_regen_at,
            did_update=False,
        )

    return RegenResult(
        hp=min(pool.max_hp, pool.current_hp + ticks * pool.hp_regen_per_minute),
        sp=min(pool.max_sp, pool.current_sp + ticks * pool.sp_regen_per_minute),
        last_regen_at=pool.last_regen_at + ticks * tick,
        did_update=True,
        ticks=ticks,
    )


__all__ = ["apply_regen"]
