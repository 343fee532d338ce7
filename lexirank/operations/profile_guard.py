"""
Profile Guard - placement validation at account creation

A placement record arrives from the client and is untrusted. Validation runs
in a fixed order:

1. derivedTier is an integer tier number (1-7)          -> ValidationError
2. rating is a finite number                            -> ValidationError
3. ratingDeviation is within [MIN_RD, INITIAL_RD]       -> ValidationError
4. rating is within [lowest band floor, top band floor + slack] and inside
   the declared tier's band +/- tolerance               -> soft discard

Structurally malformed records fail loudly. Well-formed but inconsistent
records are discarded and the player starts from defaults, so probing the
boundary only ever yields "no placement credit".
"""

import math
from typing import Any, Mapping, Optional, Union

from lexirank.constants import TIER_ORDER, GlickoConstants, GuardConstants
from lexirank.data_models.placement import GuardDecision, PlacementRecord
from lexirank.utils.exceptions import ValidationError
from lexirank.utils.logger import setup_logger
from lexirank.utils.progression import ProgressionCalculator

logger = setup_logger(__name__)

_FIELD_ALIASES = {
    "derived_tier": ("derivedTier", "derived_tier"),
    "rating": ("rating",),
    "rating_deviation": ("ratingDeviation", "rating_deviation"),
}


def _read_field(payload: Union[Mapping[str, Any], PlacementRecord], name: str) -> Any:
    if isinstance(payload, PlacementRecord):
        return getattr(payload, name)
    for key in _FIELD_ALIASES[name]:
        if key in payload:
            return payload[key]
    return None


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def rating_bounds() -> tuple:
    """Structural rating range: lowest band floor to top band floor plus slack."""
    low, _ = GlickoConstants.TIER_RATING_RANGES[1]
    top_low, _ = GlickoConstants.TIER_RATING_RANGES[len(TIER_ORDER)]
    return low, top_low + GuardConstants.RATING_SLACK


def rating_matches_tier(rating: float, tier_number: int) -> bool:
    """True when rating falls inside the tier's band widened by the tolerance."""
    low, high = ProgressionCalculator.rating_band(tier_number)
    tolerance = GuardConstants.BAND_TOLERANCE
    if rating < low - tolerance:
        return False
    return high is None or rating < high + tolerance


def validate_placement(payload: Union[Mapping[str, Any], PlacementRecord, None]) -> Optional[GuardDecision]:
    """
    Validate a client-supplied placement record.
    
    Args:
        payload: PlacementRecord or mapping with derivedTier/rating/ratingDeviation
        
    Returns:
        None when no placement was supplied, otherwise a GuardDecision. A
        rejected-but-plausible record comes back with accepted=False.
        
    Raises:
        ValidationError: If the record is structurally invalid
    """
    if payload is None:
        return None
    if not isinstance(payload, (Mapping, PlacementRecord)):
        raise ValidationError("placement must be an object", "Invalid placement data")
    
    derived_tier = _read_field(payload, "derived_tier")
    rating = _read_field(payload, "rating")
    rating_deviation = _read_field(payload, "rating_deviation")
    
    if not ProgressionCalculator.is_valid_tier_number(derived_tier):
        raise ValidationError(
            f"Invalid placement tier: {derived_tier!r}",
            f"Invalid placement tier (must be 1-{len(TIER_ORDER)})",
            {"field": "derivedTier"}
        )
    derived_tier = int(derived_tier)
    
    if not _is_finite_number(rating):
        raise ValidationError(
            f"Invalid placement rating: {rating!r}",
            "Invalid placement rating",
            {"field": "rating"}
        )
    
    if not _is_finite_number(rating_deviation) or not (
        GlickoConstants.MIN_RD <= rating_deviation <= GlickoConstants.INITIAL_RD
    ):
        raise ValidationError(
            f"Invalid placement rating deviation: {rating_deviation!r}",
            f"Invalid rating deviation (must be {GlickoConstants.MIN_RD}-{GlickoConstants.INITIAL_RD})",
            {"field": "ratingDeviation"}
        )
    
    low, high = rating_bounds()
    if not (low <= rating <= high):
        return _discard(derived_tier, rating, rating_deviation, "rating_out_of_range")
    
    if not rating_matches_tier(rating, derived_tier):
        return _discard(derived_tier, rating, rating_deviation, "rating_tier_mismatch")
    
    return GuardDecision(
        accepted=True,
        derived_tier=derived_tier,
        rating=float(rating),
        rating_deviation=float(rating_deviation)
    )


def _discard(derived_tier: int, rating: float, rating_deviation: float, reason: str) -> GuardDecision:
    band = ProgressionCalculator.rating_band(derived_tier)
    logger.warning(
        f"Discarding placement: {reason} (tier {derived_tier}, rating {rating}, band {band})"
    )
    return GuardDecision(
        accepted=False,
        reason=reason,
        details={
            "derivedTier": derived_tier,
            "rating": rating,
            "ratingDeviation": rating_deviation,
            "band": [band[0], band[1]],
        }
    )
