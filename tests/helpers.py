"""Shared setup for service-level tests."""

from sqlalchemy import select, update

from lexirank.constants import Track
from lexirank.database.models import TierProgress, Word
from lexirank.services.profile import ProfileService


WORD_BANK = [
    ("w-cat", "cat", 1),
    ("w-dog", "dog", 1),
    ("w-house", "house", 2),
    ("w-garden", "garden", 3),
    ("w-rhythm", "rhythm", 5),
    ("w-onomatopoeia", "onomatopoeia", 7),
]


def fresh_words():
    return [Word(id=word_id, word=word, difficulty_tier=tier) for word_id, word, tier in WORD_BANK]


async def make_player(db, player_id, username=None, placement=None):
    service = ProfileService(db.session_factory)
    return await service.complete_profile(
        player_id, username or player_id.replace("-", "_"), placement=placement
    )


async def set_xp(db, player_id, xp, track=Track.ENDLESS_VOICE):
    async with db.transaction() as session:
        await session.execute(
            update(TierProgress)
            .where(TierProgress.player_id == player_id, TierProgress.track == track)
            .values(xp=xp)
        )


async def get_xp(db, player_id, track=Track.ENDLESS_VOICE):
    async with db.get_session() as session:
        return await session.scalar(
            select(TierProgress.xp).where(
                TierProgress.player_id == player_id, TierProgress.track == track
            )
        )


def rounds(correct, total):
    """Round payloads over the word bank with the first `correct` rounds spelled right."""
    bank = [(word_id, word) for word_id, word, _ in WORD_BANK]
    return [
        {
            "roundNumber": i + 1,
            "wordId": bank[i % len(bank)][0],
            "answer": bank[i % len(bank)][1] if i < correct else "wrong",
            "isCorrect": i < correct,
            "timeTaken": 3.5,
        }
        for i in range(total)
    ]
