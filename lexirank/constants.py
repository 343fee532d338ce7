"""
Engine-wide constants for LexiRank.

This module contains the progression tables (tiers, XP thresholds, rating
bands), the game-balance numbers and the tunables used by placement, the
profile guard and the leaderboard.
"""

from enum import Enum


class GameMode(Enum):
    ENDLESS = "endless"
    BLITZ = "blitz"


class InputMethod(Enum):
    VOICE = "voice"
    KEYBOARD = "keyboard"


class Track(Enum):
    """A (game mode, input method) pair with its own leaderboard and XP ledger."""
    ENDLESS_VOICE = "endless_voice"
    ENDLESS_KEYBOARD = "endless_keyboard"
    BLITZ_VOICE = "blitz_voice"
    BLITZ_KEYBOARD = "blitz_keyboard"

    @classmethod
    def from_parts(cls, mode: GameMode, input_method: InputMethod) -> "Track":
        return cls(f"{mode.value}_{input_method.value}")

    @property
    def mode(self) -> GameMode:
        return GameMode(self.value.split("_")[0])

    @property
    def input_method(self) -> InputMethod:
        return InputMethod(self.value.split("_")[1])


class Tier(Enum):
    """Visible progression tiers, lowest first."""
    NEW_BEE = "new_bee"
    BUMBLE_BEE = "bumble_bee"
    BUSY_BEE = "busy_bee"
    HONEY_BEE = "honey_bee"
    WORKER_BEE = "worker_bee"
    ROYAL_BEE = "royal_bee"
    BEE_KEEPER = "bee_keeper"


# Ordered lowest to highest; position + 1 is the tier number (1-7)
TIER_ORDER = [
    Tier.NEW_BEE,
    Tier.BUMBLE_BEE,
    Tier.BUSY_BEE,
    Tier.HONEY_BEE,
    Tier.WORKER_BEE,
    Tier.ROYAL_BEE,
    Tier.BEE_KEEPER,
]

TIER_LABELS = {
    Tier.NEW_BEE: "New Bee",
    Tier.BUMBLE_BEE: "Bumble Bee",
    Tier.BUSY_BEE: "Busy Bee",
    Tier.HONEY_BEE: "Honey Bee",
    Tier.WORKER_BEE: "Worker Bee",
    Tier.ROYAL_BEE: "Royal Bee",
    Tier.BEE_KEEPER: "Bee Keeper",
}


class ProgressionConstants:
    """XP thresholds and XP award formulas."""
    
    # Cumulative XP needed to reach each tier (strictly increasing)
    XP_THRESHOLDS = {
        Tier.NEW_BEE: 0,
        Tier.BUMBLE_BEE: 100,
        Tier.BUSY_BEE: 300,
        Tier.HONEY_BEE: 600,
        Tier.WORKER_BEE: 1000,
        Tier.ROYAL_BEE: 1500,
        Tier.BEE_KEEPER: 2100,
    }
    
    # Endless: XP per correct answer
    XP_PER_CORRECT_ENDLESS = 5
    
    # Blitz: XP = blitz score x multiplier
    XP_MULTIPLIER_BLITZ = 2
    
    # Span shown as "XP for next tier" once the top tier is reached
    MAX_TIER_DISPLAY_SPAN = 100


class GlickoConstants:
    """Hidden skill rating constants (Glicko-2)."""
    
    INITIAL_RATING = 1500
    INITIAL_RD = 350
    INITIAL_VOLATILITY = 0.06
    MIN_RD = 30
    TAU = 0.5
    
    # Glicko-2 internal scale factor
    SCALE = 173.7178
    
    # Words act as opponents with a well-known difficulty
    WORD_OPPONENT_RD = 50
    
    # Ratings are clamped to this range after each update
    MIN_RATING = 1000
    MAX_RATING = 2000
    
    # Volatility iteration
    CONVERGENCE_TOLERANCE = 0.000001
    MAX_ITERATIONS = 20
    
    # Half-open rating band per tier number; the top tier is open-ended
    TIER_RATING_RANGES = {
        1: (1000, 1150),
        2: (1150, 1300),
        3: (1300, 1450),
        4: (1450, 1600),
        5: (1600, 1750),
        6: (1750, 1900),
        7: (1900, None),
    }


class GameConstants:
    """Game-balance numbers shared by the game service."""
    
    ENDLESS_STARTING_HEARTS = 3
    
    # Hard cap on rounds accepted in one finish request
    MAX_ROUNDS_PER_GAME = 500
    
    DEFAULT_HISTORY_LIMIT = 20
    MAX_HISTORY_LIMIT = 100


class PlacementConstants:
    """Adaptive placement test tuning."""
    
    TOTAL_ROUNDS = 10
    STARTING_TIER = 3
    
    # derived rating = BASE_RATING + round(accuracy x RATING_SPAN)
    BASE_RATING = 1000
    RATING_SPAN = 1000
    
    # Partial confidence after placement (MIN_RD < PLACED_RD < INITIAL_RD)
    PLACED_RD = 200
    
    # Feedback display delay between rounds (seconds)
    FEEDBACK_DELAY = 0.6


class GuardConstants:
    """Profile guard limits for client-supplied placement records."""
    
    # Rating upper bound is the top tier's band floor plus this slack
    RATING_SLACK = 200
    
    # Allowed distance outside the declared tier's rating band
    BAND_TOLERANCE = 50


class ProfileConstants:
    """Profile completion limits."""
    
    USERNAME_MIN_LENGTH = 3
    USERNAME_MAX_LENGTH = 20
    AVATAR_IDS = (1, 2, 3)
    DEFAULT_AVATAR_ID = 1
    MIN_BIRTH_YEAR = 1900


class PaginationConstants:
    """Constants for paginated leaderboards."""
    
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100
