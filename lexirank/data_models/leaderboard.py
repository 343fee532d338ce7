"""
Leaderboard data models

Provides immutable data transfer objects for leaderboard pages.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from lexirank.constants import Track


@dataclass(frozen=True)
class LeaderboardEntry:
    """Single leaderboard row."""
    rank: int
    player_id: str
    username: str
    avatar_id: int
    tier: str
    tier_label: str
    xp: int
    accuracy: int  # percent, 0-100
    best_round: int
    best_streak: int
    games_played: int
    is_current_user: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "id": self.player_id,
            "username": self.username,
            "avatarId": self.avatar_id,
            "tier": self.tier,
            "tierLabel": self.tier_label,
            "xp": self.xp,
            "accuracy": self.accuracy,
            "bestRound": self.best_round,
            "bestStreak": self.best_streak,
            "gamesPlayed": self.games_played,
            "isCurrentUser": self.is_current_user,
        }


@dataclass(frozen=True)
class LeaderboardPage:
    """Paginated leaderboard data."""
    entries: List[LeaderboardEntry]
    current_page: int
    page_size: int
    total_pages: int
    total_players: int
    track: Track
    search: Optional[str] = None
    current_user_position: Optional[int] = None
    current_user: Optional[LeaderboardEntry] = None

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "players": [entry.to_dict() for entry in self.entries],
            "totalPlayers": self.total_players,
            "page": self.current_page,
            "totalPages": self.total_pages,
        }
        if self.current_user_position is not None:
            body["currentUserPosition"] = self.current_user_position
        if self.current_user is not None:
            body["currentUser"] = self.current_user.to_dict()
        return body
