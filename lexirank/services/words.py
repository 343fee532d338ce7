"""
Word bank service

Random word selection by difficulty tier for placement and games, and word
lookups used to re-verify submitted answers.
"""

import logging
from typing import Dict, Iterable, Optional, Sequence

from sqlalchemy import select, func

from lexirank.data_models.placement import PlacementWord
from lexirank.database.models import Word
from lexirank.services.base import BaseService
from lexirank.utils.exceptions import ValidationError
from lexirank.utils.progression import ProgressionCalculator

logger = logging.getLogger(__name__)


class WordService(BaseService):
    """Service for word bank access."""
    
    async def fetch_random_word(self, tier: int, exclude_ids: Sequence[str] = ()) -> Optional[Word]:
        """
        Pick a random word of the given tier that is not in exclude_ids.
        
        Returns:
            Word, or None when the tier has no unused words left
        """
        if not ProgressionCalculator.is_valid_tier_number(tier):
            raise ValidationError(f"Invalid word tier {tier!r}", "Tier must be between 1 and 7", {"field": "tier"})
        
        query = select(Word).where(Word.difficulty_tier == tier)
        if exclude_ids:
            query = query.where(Word.id.not_in(list(exclude_ids)))
        async with self.get_session() as session:
            word = await session.scalar(query.order_by(func.random()).limit(1))
        
        if word is None:
            logger.info(f"No unused words left at tier {tier} ({len(exclude_ids)} excluded)")
        return word
    
    async def fetch_placement_word(self, tier: int, exclude_ids: Sequence[str]) -> Optional[PlacementWord]:
        """WordFetcher for PlacementSession."""
        word = await self.fetch_random_word(tier, exclude_ids)
        if word is None:
            return None
        return PlacementWord(id=word.id, word=word.word, tier=word.difficulty_tier)
    
    async def get_words(self, word_ids: Iterable[str], session=None) -> Dict[str, Word]:
        """Look up words by id; unknown ids are simply absent from the result."""
        word_ids = list(set(word_ids))
        if not word_ids:
            return {}
        query = select(Word).where(Word.id.in_(word_ids))
        if session is not None:
            return {word.id: word for word in (await session.scalars(query)).all()}
        async with self.get_session() as new_session:
            return {word.id: word for word in (await new_session.scalars(query)).all()}
