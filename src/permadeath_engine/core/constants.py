"""Engine-wide constants for the permadeath progression engine.

Tunable balance numbers live in core.config; the values here are structural
and changing them changes the data model.
"""

from __future__ import annotations

from datetime import timedelta

# =============================================================================
# Regeneration
# =============================================================================

REGEN_TICK = timedelta(minutes=1)
"""Default regeneration tick. Partial ticks are never consumed."""

# =============================================================================
# Progression
# =============================================================================

MIN_LEVEL = 1
"""Every progression track starts here."""

# =============================================================================
# Combat
# =============================================================================

DAMAGE_FLOOR = 1
"""Every hit deals at least this much damage."""

DAMAGE_VARIANCE_MAX = 2
"""Random bonus added to each hit is drawn from 0..DAMAGE_VARIANCE_MAX."""

# =============================================================================
# Gathering
# =============================================================================

GUARANTEED_YIELD_WEIGHT = 100
"""A yield with this weight (or more) always drops on a successful gather."""

# =============================================================================
# Skill Loadout
# =============================================================================

SKILL_SLOT_COUNT = 8
"""Number of slots on the skill bar, indexed 1..SKILL_SLOT_COUNT."""
