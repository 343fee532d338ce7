"""
Game data models

Inputs and outputs of game creation and finalization.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class RoundSubmission:
    """One client-submitted round. Correctness is re-verified on the server."""
    round_number: int
    word_id: str
    answer: str
    is_correct: bool
    time_taken: float


@dataclass(frozen=True)
class CreatedGame:
    game_id: str
    game_player_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"gameId": self.game_id, "gamePlayerId": self.game_player_id}


@dataclass(frozen=True)
class FinalizeResult:
    """Authoritative outcome of a finished game."""
    game_id: str
    xp_earned: int
    correct_count: int
    wrong_count: int
    verified_score: int
    longest_streak: int
    total_xp: int
    tier: str
    rating: Optional[float] = None
    rating_change: Optional[float] = None
    client_xp_mismatch: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "xpEarned": self.xp_earned}


@dataclass(frozen=True)
class GameHistoryEntry:
    game_id: str
    mode: str
    input_method: str
    rounds_completed: int
    correct_answers: int
    wrong_answers: int
    accuracy: int
    longest_streak: int
    xp_earned: int
    ended_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.game_id,
            "mode": self.mode,
            "inputMethod": self.input_method,
            "roundsCompleted": self.rounds_completed,
            "correctAnswers": self.correct_answers,
            "wrongAnswers": self.wrong_answers,
            "accuracy": self.accuracy,
            "longestStreak": self.longest_streak,
            "xpEarned": self.xp_earned,
            "endedAt": self.ended_at.isoformat() if self.ended_at else None,
        }


@dataclass(frozen=True)
class GameStats:
    total_games: int
    total_rounds: int
    total_correct: int
    total_xp: int
    average_accuracy: int
    best_round: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalGames": self.total_games,
            "totalRounds": self.total_rounds,
            "totalCorrect": self.total_correct,
            "totalXp": self.total_xp,
            "averageAccuracy": self.average_accuracy,
            "bestRound": self.best_round,
        }


@dataclass(frozen=True)
class GameHistory:
    games: List[GameHistoryEntry]
    stats: GameStats

    def to_dict(self) -> Dict[str, Any]:
        return {"games": [game.to_dict() for game in self.games], "stats": self.stats.to_dict()}
