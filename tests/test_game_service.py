import asyncio

import pytest
from sqlalchemy import select

from lexirank.constants import GlickoConstants, Track
from lexirank.database.models import AuditAction, AuditLog, GamePlayer, GameRound, SkillEstimate
from lexirank.data_models.game import FinalizeResult
from lexirank.services.game import GameService, longest_streak, parse_rounds
from lexirank.services.leaderboard import LeaderboardService
from lexirank.utils.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError

from helpers import fresh_words, get_xp, make_player, rounds


async def audit_actions(db, player_id):
    async with db.get_session() as session:
        return (await session.scalars(
            select(AuditLog.action).where(AuditLog.player_id == player_id)
        )).all()


async def skill(db, player_id, track):
    async with db.get_session() as session:
        return await session.scalar(
            select(SkillEstimate).where(SkillEstimate.player_id == player_id, SkillEstimate.track == track)
        )


class TestParseRounds:
    def test_sorted_by_round_number(self):
        parsed = parse_rounds(list(reversed(rounds(2, 3))))
        assert [r.round_number for r in parsed] == [1, 2, 3]

    def test_snake_case_keys(self):
        parsed = parse_rounds([{
            "round_number": 1, "word_id": "w", "answer": "a", "is_correct": True, "time_taken": 0,
        }])
        assert parsed[0].is_correct is True

    @pytest.mark.parametrize("field,value", [
        ("roundNumber", 0),
        ("roundNumber", "1"),
        ("wordId", ""),
        ("answer", None),
        ("isCorrect", "yes"),
        ("timeTaken", -1),
    ])
    def test_malformed_round(self, field, value):
        payload = rounds(1, 1)
        payload[0][field] = value
        with pytest.raises(ValidationError) as exc_info:
            parse_rounds(payload)
        assert field in exc_info.value.details["fields"]

    def test_duplicate_round_numbers(self):
        payload = rounds(2, 2)
        payload[1]["roundNumber"] = 1
        with pytest.raises(ValidationError):
            parse_rounds(payload)


def test_longest_streak():
    assert longest_streak([True, True, False, True, True, True, False]) == 3
    assert longest_streak([]) == 0


def test_endless_xp_is_server_computed(run_db):
    async def scenario(db):
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        game = await service.create_game("player-1", "endless", "voice")
        result = await service.finalize_game(
            "player-1", game.game_id, rounds(7, 10), hearts_remaining=0, client_xp=1000
        )
        return result, await get_xp(db, "player-1"), await audit_actions(db, "player-1")

    result, xp, actions = run_db(scenario, word_bank=True)
    assert result.xp_earned == 35
    assert result.to_dict() == {"success": True, "xpEarned": 35}
    assert result.client_xp_mismatch is True
    assert xp == 35
    assert actions == [AuditAction.XP_MISMATCH]


def test_matching_client_xp_is_not_audited(run_db):
    async def scenario(db):
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        game = await service.create_game("player-1", "endless", "keyboard")
        result = await service.finalize_game("player-1", game.game_id, rounds(4, 6), 1, client_xp=20)
        return result, await get_xp(db, "player-1", Track.ENDLESS_KEYBOARD), await audit_actions(db, "player-1")

    result, xp, actions = run_db(scenario, word_bank=True)
    assert result.client_xp_mismatch is False
    assert xp == 20
    assert actions == []


def test_blitz_xp_uses_verified_score(run_db):
    async def scenario(db):
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        game = await service.create_game("player-1", "blitz", "keyboard")
        result = await service.finalize_game(
            "player-1", game.game_id, rounds(6, 8), 0, client_score=50, client_xp=100
        )
        return result, await get_xp(db, "player-1", Track.BLITZ_KEYBOARD)

    result, xp = run_db(scenario, word_bank=True)
    assert result.verified_score == 6
    assert result.xp_earned == 12
    assert result.client_xp_mismatch is True
    assert xp == 12


def test_answers_are_reverified_against_word_bank(run_db):
    submitted = [
        {"roundNumber": 1, "wordId": "w-cat", "answer": "cat", "isCorrect": True, "timeTaken": 1.0},
        {"roundNumber": 2, "wordId": "w-cat", "answer": "dog", "isCorrect": True, "timeTaken": 1.0},
        {"roundNumber": 3, "wordId": "w-rhythm", "answer": "Rhythm", "isCorrect": True, "timeTaken": 1.0},
        {"roundNumber": 4, "wordId": "w-garden", "answer": "garden", "isCorrect": False, "timeTaken": 1.0},
        {"roundNumber": 5, "wordId": "w-house", "answer": "  ", "isCorrect": True, "timeTaken": 1.0},
    ]

    async def scenario(db):
        await db.seed_words(fresh_words())
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        game = await service.create_game("player-1", "endless", "voice")
        result = await service.finalize_game("player-1", game.game_id, submitted, 2)
        async with db.get_session() as session:
            stored = (await session.scalars(
                select(GameRound).where(GameRound.game_id == game.game_id).order_by(GameRound.round_number)
            )).all()
        return result, stored

    result, stored = run_db(scenario)
    assert result.correct_count == 2
    assert result.xp_earned == 10
    assert [r.is_correct for r in stored] == [True, False, True, False, False]
    assert [r.client_is_correct for r in stored] == [True, True, True, False, True]


def test_game_player_row_is_updated(run_db):
    async def scenario(db):
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        game = await service.create_game("player-1", "endless", "voice")
        await service.finalize_game("player-1", game.game_id, rounds(3, 5), 0)
        async with db.get_session() as session:
            return await session.scalar(select(GamePlayer).where(GamePlayer.game_id == game.game_id))

    game_player = run_db(scenario, word_bank=True)
    assert game_player.rounds_completed == 5
    assert game_player.correct_answers == 3
    assert game_player.wrong_answers == 2
    assert game_player.longest_streak == 3
    assert game_player.is_eliminated is True
    assert game_player.xp_earned == 15


def test_rating_moves_with_performance(run_db):
    async def scenario(db):
        await make_player(db, "strong")
        await make_player(db, "weak_1")
        service = GameService(db.session_factory)
        good = await service.create_game("strong", "endless", "voice")
        bad = await service.create_game("weak_1", "endless", "voice")
        await service.finalize_game("strong", good.game_id, rounds(10, 10), 3)
        await service.finalize_game("weak_1", bad.game_id, rounds(0, 10), 0)
        return await skill(db, "strong", Track.ENDLESS_VOICE), await skill(db, "weak_1", Track.ENDLESS_VOICE)

    strong, weak = run_db(scenario, word_bank=True)
    assert strong.rating > GlickoConstants.INITIAL_RATING > weak.rating
    assert strong.rating_deviation < GlickoConstants.INITIAL_RD
    assert strong.games_played == 1
    assert strong.season_highest_rating == strong.rating
    assert strong.last_played_at is not None


def test_empty_game_awards_nothing(run_db):
    async def scenario(db):
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        game = await service.create_game("player-1", "blitz", "voice")
        result = await service.finalize_game("player-1", game.game_id, [], 0)
        return result, await skill(db, "player-1", Track.BLITZ_VOICE)

    result, estimate = run_db(scenario)
    assert result.xp_earned == 0
    assert estimate.rating == GlickoConstants.INITIAL_RATING


def test_finalize_errors(run_db):
    async def scenario(db):
        await make_player(db, "owner")
        await make_player(db, "intruder")
        service = GameService(db.session_factory)
        game = await service.create_game("owner", "endless", "voice")

        with pytest.raises(NotFoundError):
            await service.finalize_game("owner", "no-such-game", rounds(1, 1), 3)
        with pytest.raises(ForbiddenError):
            await service.finalize_game("intruder", game.game_id, rounds(1, 1), 3)
        with pytest.raises(ValidationError) as exc_info:
            await service.finalize_game("ghost", game.game_id, rounds(1, 1), 3)
        assert exc_info.value.details == {"needsProfile": True}

        await service.finalize_game("owner", game.game_id, rounds(2, 2), 3)
        with pytest.raises(ConflictError):
            await service.finalize_game("owner", game.game_id, rounds(2, 2), 3)
        return await get_xp(db, "owner")

    # The second finish awards nothing
    assert run_db(scenario, word_bank=True) == 10


def test_malformed_rounds_write_nothing(run_db):
    async def scenario(db):
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        game = await service.create_game("player-1", "endless", "voice")
        payload = rounds(2, 2)
        payload[1]["isCorrect"] = "true"
        with pytest.raises(ValidationError):
            await service.finalize_game("player-1", game.game_id, payload, 3)
        # The game is still open afterwards
        result = await service.finalize_game("player-1", game.game_id, rounds(2, 2), 3)
        return result, await get_xp(db, "player-1")

    result, xp = run_db(scenario, word_bank=True)
    assert result.xp_earned == 10
    assert xp == 10


def test_create_game_requires_profile(run_db):
    async def scenario(db):
        service = GameService(db.session_factory)
        with pytest.raises(ValidationError) as exc_info:
            await service.create_game("ghost", "endless", "voice")
        return exc_info.value.details

    assert run_db(scenario) == {"needsProfile": True}


def test_finalize_invalidates_leaderboard_cache(run_db):
    async def scenario(db):
        await make_player(db, "player-1")
        leaderboard = LeaderboardService(db.session_factory, cache_ttl=300)
        service = GameService(db.session_factory, leaderboard_service=leaderboard)
        before = await leaderboard.get_page("endless", "voice")
        game = await service.create_game("player-1", "endless", "voice")
        await service.finalize_game("player-1", game.game_id, rounds(5, 5), 3)
        after = await leaderboard.get_page("endless", "voice")
        return before, after

    before, after = run_db(scenario, word_bank=True)
    assert before.entries[0].xp == 0
    assert after.entries[0].xp == 25


def test_history_and_stats(run_db):
    async def scenario(db):
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        for correct, total in ((3, 5), (5, 5)):
            game = await service.create_game("player-1", "endless", "voice")
            await service.finalize_game("player-1", game.game_id, rounds(correct, total), 0)
        other = await service.create_game("player-1", "blitz", "voice")
        await service.finalize_game("player-1", other.game_id, rounds(1, 1), 0)
        await service.create_game("player-1", "endless", "voice")  # never finished
        return await service.get_history("player-1", "endless", "voice")

    history = run_db(scenario, word_bank=True)
    assert len(history.games) == 2
    assert history.stats.total_games == 2
    assert history.stats.total_correct == 8
    assert history.stats.total_xp == 40
    assert history.stats.average_accuracy == 80
    assert history.stats.best_round == 5


def test_stats_for_track_without_games(run_db):
    async def scenario(db):
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        game = await service.create_game("player-1", "endless", "voice")
        await service.finalize_game("player-1", game.game_id, rounds(2, 4), 0)
        return (
            await service.get_stats("player-1", "endless", "voice"),
            await service.get_stats("player-1", "blitz", "keyboard"),
        )

    played, untouched = run_db(scenario, word_bank=True)
    assert played.to_dict() == {
        "totalGames": 1, "totalRounds": 4, "totalCorrect": 2,
        "totalXp": 10, "averageAccuracy": 50, "bestRound": 4,
    }
    assert untouched.total_games == 0
    assert untouched.average_accuracy == 0


def test_unknown_word_ids_earn_nothing(run_db):
    invented = [
        {"roundNumber": i + 1, "wordId": f"made-up-{i}", "answer": "x", "isCorrect": True, "timeTaken": 0.5}
        for i in range(500)
    ]

    async def scenario(db):
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        game = await service.create_game("player-1", "endless", "voice")
        result = await service.finalize_game("player-1", game.game_id, invented, 3)
        async with db.get_session() as session:
            stored = (await session.scalars(
                select(GameRound.is_correct).where(GameRound.game_id == game.game_id)
            )).all()
        return result, await get_xp(db, "player-1"), stored

    result, xp, stored = run_db(scenario, word_bank=True)
    assert result.xp_earned == 0
    assert result.correct_count == 0
    assert xp == 0
    assert len(stored) == 500
    assert not any(stored)


def test_concurrent_finishes_for_one_player_all_count(run_db):
    async def scenario(db):
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        games = [await service.create_game("player-1", "endless", "voice") for _ in range(4)]
        results = await asyncio.gather(*[
            service.finalize_game("player-1", game.game_id, rounds(1, 1), 3) for game in games
        ])
        return results, await get_xp(db, "player-1"), await skill(db, "player-1", Track.ENDLESS_VOICE)

    results, xp, estimate = run_db(scenario, word_bank=True)
    assert [r.xp_earned for r in results] == [5, 5, 5, 5]
    assert xp == 20
    assert estimate.games_played == 4


def test_concurrent_finishes_of_one_game_award_once(run_db):
    async def scenario(db):
        await make_player(db, "player-1")
        service = GameService(db.session_factory)
        game = await service.create_game("player-1", "endless", "voice")
        outcomes = await asyncio.gather(
            service.finalize_game("player-1", game.game_id, rounds(3, 3), 3),
            service.finalize_game("player-1", game.game_id, rounds(3, 3), 3),
            return_exceptions=True
        )
        return outcomes, await get_xp(db, "player-1")

    outcomes, xp = run_db(scenario, word_bank=True)
    assert sum(isinstance(o, FinalizeResult) for o in outcomes) == 1
    assert sum(isinstance(o, ConflictError) for o in outcomes) == 1
    assert xp == 15
