# GET /api/words/random → a random word of a tier, excluding ids already used

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from lexirank.routers.deps import get_word_service
from lexirank.services.words import WordService
from lexirank.utils.exceptions import NotFoundError

router = APIRouter(prefix="/api/words", tags=["words"])


@router.get("/random")
async def get_random_word(
    tier: int = Query(3),
    exclude: str = Query(""),
    service: WordService = Depends(get_word_service),
) -> Dict[str, Any]:
    exclude_ids = [word_id.strip() for word_id in exclude.split(",") if word_id.strip()]
    word = await service.fetch_random_word(tier, exclude_ids)
    if word is None:
        raise NotFoundError("Word")
    return {
        "id": word.id,
        "word": word.word,
        "tier": word.difficulty_tier,
        "definition": word.definition,
        "exampleSentence": word.example_sentence,
        "partOfSpeech": word.part_of_speech,
    }
