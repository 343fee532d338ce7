"""
Profile data models

Immutable views over a player's account and per-track standing.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ProfileResult:
    """Outcome of profile completion."""
    player_id: str
    username: str
    avatar_id: int
    created: bool
    placement_applied: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "user": {"id": self.player_id, "username": self.username, "avatarId": self.avatar_id},
            "placementApplied": self.placement_applied,
        }


@dataclass(frozen=True)
class TrackStanding:
    """XP and hidden rating on one track."""
    track: str
    xp: int
    tier: str
    tier_label: str
    rating: Optional[float] = None
    rating_deviation: Optional[float] = None
    games_played: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "track": self.track,
            "xp": self.xp,
            "tier": self.tier,
            "tierLabel": self.tier_label,
            "rating": round(self.rating) if self.rating is not None else None,
            "ratingDeviation": round(self.rating_deviation) if self.rating_deviation is not None else None,
            "gamesPlayed": self.games_played,
        }


@dataclass(frozen=True)
class PlayerStatus:
    """Everything the client needs after sign-in."""
    player_id: str
    username: str
    avatar_id: int
    birth_year: Optional[int]
    standings: List[TrackStanding] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": {
                "id": self.player_id,
                "username": self.username,
                "avatarId": self.avatar_id,
                "birthYear": self.birth_year,
            },
            "ranks": [standing.to_dict() for standing in self.standings],
        }
