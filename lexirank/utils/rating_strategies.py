"""
Rating Strategy Pattern for hidden skill updates

The rating math is pluggable: the game service only depends on the
RatingStrategy interface. Any strategy must keep two promises:
- the tier is derivable from the returned rating
- better-than-expected performance never lowers the rating
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable
import logging

from lexirank.utils.glicko import Glicko2Calculator
from lexirank.utils.progression import ProgressionCalculator

logger = logging.getLogger(__name__)

@dataclass
class SkillSnapshot:
    """A player's skill estimate on one track before the update"""
    rating: float
    rating_deviation: float
    volatility: float
    games_played: int = 0

@dataclass
class GameOutcome:
    """Verified outcome of one game"""
    correct: int
    wrong: int
    average_word_tier: float

@dataclass
class RatingUpdate:
    """Result of a rating calculation"""
    rating: float
    rating_deviation: float
    volatility: float
    derived_tier: int
    rating_change: float

class RatingStrategy(ABC):
    """
    Abstract base class for rating strategies.
    
    Each strategy turns one verified game outcome into a new skill estimate.
    """
    
    @abstractmethod
    def calculate(self, current: SkillSnapshot, outcome: GameOutcome) -> RatingUpdate:
        """
        Calculate the new skill estimate after a game.
        
        Args:
            current: Skill estimate before the game
            outcome: Verified correct/wrong counts and word difficulty
            
        Returns:
            RatingUpdate with the new values and derived tier
        """
        pass
    
    @abstractmethod
    def get_strategy_name(self) -> str:
        """Return human-readable strategy name"""
        pass

class Glicko2Strategy(RatingStrategy):
    """
    Glicko-2 with each answered word treated as an opponent.
    
    Correct answer = win, wrong answer = loss. The opponent rating is the
    rating-band midpoint of the average word tier faced in the game.
    """
    
    def calculate(self, current: SkillSnapshot, outcome: GameOutcome) -> RatingUpdate:
        opponent_rating = ProgressionCalculator.tier_opponent_rating(outcome.average_word_tier)
        rating, rd, volatility = Glicko2Calculator.calculate_update(
            current.rating,
            current.rating_deviation,
            current.volatility,
            outcome.correct,
            outcome.wrong,
            opponent_rating
        )
        
        logger.debug(
            f"Glicko-2 update: {current.rating:.1f} -> {rating:.1f} "
            f"(rd {current.rating_deviation:.1f} -> {rd:.1f}, "
            f"{outcome.correct}/{outcome.correct + outcome.wrong} vs {opponent_rating:.0f})"
        )
        
        return RatingUpdate(
            rating=rating,
            rating_deviation=rd,
            volatility=volatility,
            derived_tier=ProgressionCalculator.rating_to_tier(rating),
            rating_change=rating - current.rating
        )
    
    def get_strategy_name(self) -> str:
        return "Glicko-2"

def get_rating_strategy(name: str = "glicko2") -> RatingStrategy:
    """Factory for rating strategies by config name"""
    strategies: dict[str, Callable[[], RatingStrategy]] = {
        "glicko2": Glicko2Strategy,
    }
    if name not in strategies:
        raise ValueError(f"Unknown rating strategy: {name}")
    return strategies[name]()
