"""
Progression calculations: tier from XP, XP awards and rating bands.

This is the single place tiers are derived from XP. Every caller that needs a
tier label or an anti-cheat decision goes through ``tier_for_xp``.
"""

import math
from bisect import bisect_right
from typing import Optional, Tuple, Union

from lexirank.constants import (
    TIER_LABELS, TIER_ORDER, GameMode, GlickoConstants, ProgressionConstants,
    Tier, Track
)
from lexirank.data_models.progress import TierProgressInfo

_THRESHOLDS = [ProgressionConstants.XP_THRESHOLDS[tier] for tier in TIER_ORDER]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))


class ProgressionCalculator:
    """Pure lookups over the progression tables"""
    
    @staticmethod
    def tier_for_xp(xp: int) -> Tier:
        """
        Get the tier for a cumulative XP total
        
        Args:
            xp: Cumulative XP on one track
            
        Returns:
            The highest tier whose threshold is <= xp
        """
        if xp < 0:
            raise ValueError("xp must not be negative")
        return TIER_ORDER[bisect_right(_THRESHOLDS, xp) - 1]
    
    @staticmethod
    def xp_threshold(tier: Tier) -> int:
        return ProgressionConstants.XP_THRESHOLDS[tier]
    
    @staticmethod
    def next_tier(tier: Tier) -> Optional[Tier]:
        index = TIER_ORDER.index(tier)
        if index + 1 >= len(TIER_ORDER):
            return None
        return TIER_ORDER[index + 1]
    
    @staticmethod
    def tier_progress(xp: int) -> TierProgressInfo:
        """
        Get progress towards the next tier
        
        Args:
            xp: Cumulative XP on one track
            
        Returns:
            TierProgressInfo; at the top tier progress is 100 and xp_to_next 0
        """
        tier = ProgressionCalculator.tier_for_xp(xp)
        next_tier = ProgressionCalculator.next_tier(tier)
        if next_tier is None:
            return TierProgressInfo(tier=tier, next_tier=None, progress=100, xp_to_next=0)
        
        current_threshold = ProgressionCalculator.xp_threshold(tier)
        next_threshold = ProgressionCalculator.xp_threshold(next_tier)
        span = next_threshold - current_threshold
        progress = round_half_up((xp - current_threshold) / span * 100)
        return TierProgressInfo(
            tier=tier,
            next_tier=next_tier,
            progress=progress,
            xp_to_next=next_threshold - xp
        )
    
    @staticmethod
    def xp_for_game(track: Union[Track, GameMode, str], correct_count: int, mode_score: int = 0) -> int:
        """
        Calculate the XP award for a finished game
        
        Args:
            track: Track, GameMode or their string values
            correct_count: Verified correct answers
            mode_score: Mode-specific score (blitz score)
            
        Returns:
            Non-negative XP award; zero is a valid result
        """
        if correct_count < 0 or mode_score < 0:
            raise ValueError("correct_count and mode_score must not be negative")
        
        mode = ProgressionCalculator.resolve_mode(track)
        if mode == GameMode.BLITZ:
            return mode_score * ProgressionConstants.XP_MULTIPLIER_BLITZ
        return correct_count * ProgressionConstants.XP_PER_CORRECT_ENDLESS
    
    @staticmethod
    def resolve_mode(track: Union[Track, GameMode, str]) -> GameMode:
        if isinstance(track, Track):
            return track.mode
        if isinstance(track, GameMode):
            return track
        try:
            return Track(track).mode
        except ValueError:
            return GameMode(track)
    
    @staticmethod
    def tier_number(tier: Tier) -> int:
        return TIER_ORDER.index(tier) + 1
    
    @staticmethod
    def tier_from_number(number: int) -> Tier:
        if not ProgressionCalculator.is_valid_tier_number(number):
            raise ValueError(f"tier number must be 1-{len(TIER_ORDER)}, got {number!r}")
        return TIER_ORDER[int(number) - 1]
    
    @staticmethod
    def is_valid_tier_number(value) -> bool:
        """Whole numbers 1-7, including floats such as 4.0 from JSON clients."""
        # bool is an int subclass; True must not pass as tier 1
        if isinstance(value, bool):
            return False
        if isinstance(value, float):
            if not value.is_integer():
                return False
        elif not isinstance(value, int):
            return False
        return 1 <= value <= len(TIER_ORDER)
    
    @staticmethod
    def tier_label(tier: Tier) -> str:
        return TIER_LABELS[tier]
    
    @staticmethod
    def rating_band(tier_number: int) -> Tuple[int, Optional[int]]:
        """Half-open rating band for a tier number; the upper bound is None for the top tier."""
        return GlickoConstants.TIER_RATING_RANGES[tier_number]
    
    @staticmethod
    def rating_to_tier(rating: float) -> int:
        """
        Map a hidden rating to its tier number
        
        Ratings below the lowest band map to tier 1.
        """
        for number in range(len(TIER_ORDER), 0, -1):
            low, _ = GlickoConstants.TIER_RATING_RANGES[number]
            if rating >= low:
                return number
        return 1
    
    @staticmethod
    def tier_opponent_rating(tier_number: float) -> float:
        """
        Rating of a word of the given tier when treated as an opponent
        
        Uses the band midpoint, capping the open top band at MAX_RATING.
        Fractional tiers are rounded to the nearest band.
        """
        number = max(1, min(len(TIER_ORDER), round_half_up(tier_number)))
        low, high = GlickoConstants.TIER_RATING_RANGES[number]
        high = GlickoConstants.MAX_RATING if high is None else min(high, GlickoConstants.MAX_RATING)
        return (low + high) / 2
