"""
Progression data models.

Immutable views over a player's XP standing on one track.
"""

from dataclasses import dataclass
from typing import Optional

from lexirank.constants import Tier


@dataclass(frozen=True)
class TierProgressInfo:
    """Where an XP total sits inside its tier."""
    tier: Tier
    next_tier: Optional[Tier]
    progress: int  # 0-100, percent of the way to next_tier
    xp_to_next: int  # 0 at the top tier


@dataclass(frozen=True)
class ProgressSummary:
    """Header summary for one player on one track."""
    tier: Tier
    tier_label: str
    xp_in_tier: int
    total_xp: int
    xp_for_next_tier: int
    position: int
    total_players: int

    def to_dict(self) -> dict:
        return {
            "tier": self.tier.value,
            "tierLabel": self.tier_label,
            "xp": self.xp_in_tier,
            "totalXp": self.total_xp,
            "xpForNextTier": self.xp_for_next_tier,
            "position": self.position,
            "totalPlayers": self.total_players,
        }
