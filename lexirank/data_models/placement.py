"""
Placement data models.

PlacementState is an immutable value advanced by the pure transition
functions in lexirank.operations.placement. PlacementRecord is the one-time
output handed to the profile guard at account creation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from lexirank.constants import PlacementConstants


class PlacementPhase(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    CHECKING = "checking"
    FEEDBACK = "feedback"
    COMPLETE = "complete"


@dataclass(frozen=True)
class PlacementWord:
    """A word drawn for one placement round."""
    id: str
    word: str
    tier: int


@dataclass(frozen=True)
class PlacementAnswer:
    """One answered round."""
    round_number: int
    word_id: str
    tier: int
    answer: str
    is_correct: bool
    time_taken: float


@dataclass(frozen=True)
class PlacementState:
    """Snapshot of one placement run."""
    phase: PlacementPhase = PlacementPhase.IDLE
    total_rounds: int = PlacementConstants.TOTAL_ROUNDS
    current_round: int = 0
    current_tier: int = PlacementConstants.STARTING_TIER
    current_word: Optional[PlacementWord] = None
    pending_answer: Optional[PlacementAnswer] = None
    answers: Tuple[PlacementAnswer, ...] = ()
    used_word_ids: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def correct_count(self) -> int:
        return sum(1 for answer in self.answers if answer.is_correct)

    @property
    def rounds_answered(self) -> int:
        return len(self.answers)

    @property
    def is_complete(self) -> bool:
        return self.phase == PlacementPhase.COMPLETE


@dataclass(frozen=True)
class PlacementRecord:
    """Initial tier/rating estimate produced by a placement run."""
    derived_tier: int
    rating: int
    rating_deviation: int
    accuracy: int  # percent, 0-100
    correct_count: int
    total_rounds: int
    timestamp: int  # ms since epoch
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "derivedTier": self.derived_tier,
            "rating": self.rating,
            "ratingDeviation": self.rating_deviation,
            "accuracy": self.accuracy,
            "correctCount": self.correct_count,
            "totalRounds": self.total_rounds,
            "timestamp": self.timestamp,
            "error": self.error,
        }


@dataclass(frozen=True)
class GuardDecision:
    """Outcome of validating a client-supplied placement record."""
    accepted: bool
    derived_tier: Optional[int] = None
    rating: Optional[float] = None
    rating_deviation: Optional[float] = None
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
