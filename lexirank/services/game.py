"""
Game service

Game creation and finalization. Finalization is the anti-cheat boundary:
correctness is re-verified against the word bank, XP is recomputed from the
verified rounds, and any client-submitted reward is only compared and logged.

Finalization is one transaction: the game is claimed with a conditional
status update, rounds are appended, XP is added with an in-database
increment and the skill estimate is updated. Either all of it commits or
none of it does.
"""

import logging
import math
import uuid
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import select, update, func

from lexirank.config import Config
from lexirank.constants import GameConstants, GameMode, Track
from lexirank.data_models.game import (
    CreatedGame, FinalizeResult, GameHistory, GameHistoryEntry, GameStats, RoundSubmission
)
from lexirank.database.models import (
    AuditAction, AuditLog, Game, GamePlayer, GameRound, GameStatus, Player,
    SkillEstimate, TierProgress
)
from lexirank.services.base import BaseService
from lexirank.services.words import WordService
from lexirank.utils.answers import check_spelling
from lexirank.utils.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from lexirank.utils.progression import ProgressionCalculator
from lexirank.utils.ranking import RankingUtility
from lexirank.utils.rating_strategies import GameOutcome, RatingStrategy, SkillSnapshot, get_rating_strategy
from lexirank.utils.validation import parse_track

logger = logging.getLogger(__name__)

RoundInput = Union[RoundSubmission, Mapping[str, Any]]

_ROUND_FIELDS = {
    "round_number": ("roundNumber", "round_number"),
    "word_id": ("wordId", "word_id"),
    "answer": ("answer",),
    "is_correct": ("isCorrect", "is_correct"),
    "time_taken": ("timeTaken", "time_taken"),
}


def _is_number(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float)) and math.isfinite(value)


def _round_field(raw: Mapping[str, Any], name: str) -> Any:
    for key in _ROUND_FIELDS[name]:
        if key in raw:
            return raw[key]
    return None


def parse_rounds(rounds: Sequence[RoundInput]) -> List[RoundSubmission]:
    """
    Validate the submitted round list.
    
    Raises:
        ValidationError: On the first malformed round, before anything is written
    """
    if not isinstance(rounds, (list, tuple)):
        raise ValidationError("rounds must be a list", "Invalid round list")
    if len(rounds) > GameConstants.MAX_ROUNDS_PER_GAME:
        raise ValidationError(
            f"{len(rounds)} rounds exceeds the limit of {GameConstants.MAX_ROUNDS_PER_GAME}",
            "Too many rounds"
        )
    
    parsed = []
    seen_numbers = set()
    for index, raw in enumerate(rounds):
        if isinstance(raw, RoundSubmission):
            values = {name: getattr(raw, name) for name in _ROUND_FIELDS}
        elif isinstance(raw, Mapping):
            values = {name: _round_field(raw, name) for name in _ROUND_FIELDS}
        else:
            raise ValidationError(f"Round {index} is not an object", "Invalid round list", {"round": index})
        
        number = values["round_number"]
        problems = []
        if isinstance(number, bool) or not isinstance(number, int) or number < 1:
            problems.append("roundNumber")
        if not isinstance(values["word_id"], str) or not values["word_id"].strip():
            problems.append("wordId")
        if not isinstance(values["answer"], str):
            problems.append("answer")
        if not isinstance(values["is_correct"], bool):
            problems.append("isCorrect")
        if not _is_number(values["time_taken"]) or values["time_taken"] < 0:
            problems.append("timeTaken")
        if problems:
            raise ValidationError(
                f"Round {index} has invalid fields: {', '.join(problems)}",
                "Invalid round list",
                {"round": index, "fields": problems}
            )
        if number in seen_numbers:
            raise ValidationError(
                f"Duplicate round number {number}",
                "Invalid round list",
                {"round": index, "fields": ["roundNumber"]}
            )
        seen_numbers.add(number)
        parsed.append(RoundSubmission(
            round_number=number,
            word_id=values["word_id"],
            answer=values["answer"],
            is_correct=values["is_correct"],
            time_taken=float(values["time_taken"])
        ))
    
    return sorted(parsed, key=lambda r: r.round_number)


def longest_streak(flags: Sequence[bool]) -> int:
    best = current = 0
    for flag in flags:
        current = current + 1 if flag else 0
        best = max(best, current)
    return best


class GameService(BaseService):
    """Service for game lifecycle and authoritative rewards."""
    
    def __init__(self, session_factory, leaderboard_service=None, rating_strategy: Optional[RatingStrategy] = None):
        super().__init__(session_factory)
        self.leaderboard_service = leaderboard_service  # Optional, for cache invalidation
        self.rating_strategy = rating_strategy or get_rating_strategy()
        self.word_service = WordService(session_factory)
    
    async def _require_profile(self, session, player_id: str):
        player = await session.get(Player, player_id)
        if player is None:
            raise ValidationError(
                f"Player {player_id} has no completed profile",
                "Profile incomplete. Please complete onboarding first.",
                {"needsProfile": True}
            )
        return player
    
    async def create_game(self, player_id: str, mode, input_method) -> CreatedGame:
        """
        Start a single-player game on a track.
        
        Raises:
            ValidationError: Invalid track, or the player has no profile (needsProfile)
        """
        track = parse_track(mode, input_method)
        game_id = str(uuid.uuid4())
        game_player_id = str(uuid.uuid4())
        
        async with self.get_session() as session:
            await self._require_profile(session, player_id)
            session.add(Game(
                id=game_id,
                mode=track.mode,
                input_method=track.input_method,
                status=GameStatus.IN_PROGRESS,
                host_id=player_id
            ))
            session.add(GamePlayer(
                id=game_player_id,
                game_id=game_id,
                player_id=player_id,
                hearts=GameConstants.ENDLESS_STARTING_HEARTS if track.mode == GameMode.ENDLESS else 0
            ))
        
        logger.info(f"Created game {game_id} on {track.value} for {player_id}")
        return CreatedGame(game_id=game_id, game_player_id=game_player_id)
    
    async def finalize_game(
        self,
        player_id: str,
        game_id: str,
        rounds: Sequence[RoundInput],
        hearts_remaining: int,
        client_score: Optional[int] = None,
        client_xp: Optional[int] = None
    ) -> FinalizeResult:
        """
        Finalize a game with server-computed rewards.
        
        Args:
            player_id: Authenticated caller
            game_id: Game to finalize
            rounds: Client-submitted rounds (correctness is re-verified)
            hearts_remaining: Hearts left (endless)
            client_score: Client blitz score, compared and logged only
            client_xp: Client XP, compared and logged only
            
        Returns:
            FinalizeResult with the authoritative xp_earned
            
        Raises:
            ValidationError: Malformed rounds, or no profile (needsProfile)
            NotFoundError: Game does not exist
            ForbiddenError: Caller is not the game's host
            ConflictError: Game was already finalized
            TransactionError: The database stayed busy across every retry
        """
        submissions = parse_rounds(rounds)
        if not _is_number(hearts_remaining) or hearts_remaining < 0:
            raise ValidationError(f"Invalid heartsRemaining {hearts_remaining!r}", "Invalid heartsRemaining")

        async def finalize():
            return await self._finalize_attempt(
                player_id, game_id, submissions, int(hearts_remaining), client_score, client_xp
            )

        track, result = await self.execute_with_retry(finalize, f"finalize game {game_id}")

        if self.leaderboard_service is not None:
            await self.leaderboard_service.invalidate_track(track)

        logger.info(
            f"Finalized game {game_id} for {player_id} on {track.value}: "
            f"{result.correct_count}/{len(submissions)} correct, "
            f"+{result.xp_earned} XP (total {result.total_xp})"
        )
        return result

    async def _finalize_attempt(self, player_id: str, game_id: str, submissions: List[RoundSubmission],
                                hearts_remaining: int, client_score: Optional[int],
                                client_xp: Optional[int]) -> Tuple[Track, FinalizeResult]:
        """One finalization transaction. Nothing is visible until it commits."""
        async with self.get_session() as session:
            await self._require_profile(session, player_id)
            
            game = await session.get(Game, game_id)
            if game is None:
                raise NotFoundError("Game", game_id)
            if game.host_id != player_id:
                raise ForbiddenError(f"Player {player_id} tried to finish game {game_id} hosted by {game.host_id}")
            if game.status == GameStatus.FINISHED:
                raise ConflictError(f"Game {game_id} is already finished", "This game has already been finished")
            
            # Claim the game; a concurrent finalization loses here
            claim = await session.execute(
                update(Game)
                .where(Game.id == game_id, Game.status != GameStatus.FINISHED)
                .values(status=GameStatus.FINISHED, ended_at=func.now())
                .execution_options(synchronize_session=False)
            )
            if claim.rowcount != 1:
                raise ConflictError(f"Game {game_id} was finished concurrently", "This game has already been finished")
            
            track = Track.from_parts(game.mode, game.input_method)
            words = await self.word_service.get_words([r.word_id for r in submissions], session=session)
            verified = [self._verify_round(r, words.get(r.word_id)) for r in submissions]
            unknown = sorted({r.word_id for r in submissions if r.word_id not in words})
            if unknown:
                logger.warning(f"Game {game_id} names {len(unknown)} unknown word ids, those rounds count as wrong: {unknown[:5]}")
            
            correct_count = sum(verified)
            wrong_count = len(verified) - correct_count
            verified_score = correct_count if track.mode == GameMode.BLITZ else 0
            xp_earned = ProgressionCalculator.xp_for_game(track, correct_count, verified_score)
            streak = longest_streak(verified)
            
            mismatch = self._check_client_values(
                session, player_id, game_id, track, xp_earned, verified_score, client_xp, client_score
            )
            
            for submission, is_correct in zip(submissions, verified):
                session.add(GameRound(
                    game_id=game_id,
                    player_id=player_id,
                    round_number=submission.round_number,
                    word_id=submission.word_id,
                    answer=submission.answer,
                    is_correct=is_correct,
                    client_is_correct=submission.is_correct,
                    time_taken=submission.time_taken
                ))
            
            await self._record_game_player(
                session, game_id, player_id, track, hearts_remaining, len(submissions),
                correct_count, wrong_count, streak, correct_count, xp_earned
            )
            total_xp = await self._add_xp(session, player_id, track, xp_earned)
            
            known_tiers = [words[r.word_id].difficulty_tier for r in submissions if r.word_id in words]
            average_tier = sum(known_tiers) / len(known_tiers) if known_tiers else Config.DEFAULT_WORD_TIER
            rating_update = await self._update_skill(
                session, player_id, track, GameOutcome(correct_count, wrong_count, average_tier)
            )

        return track, FinalizeResult(
            game_id=game_id,
            xp_earned=xp_earned,
            correct_count=correct_count,
            wrong_count=wrong_count,
            verified_score=verified_score,
            longest_streak=streak,
            total_xp=total_xp,
            tier=ProgressionCalculator.tier_for_xp(total_xp).value,
            rating=rating_update.rating if rating_update else None,
            rating_change=rating_update.rating_change if rating_update else None,
            client_xp_mismatch=mismatch
        )
    
    def _verify_round(self, submission: RoundSubmission, word) -> bool:
        """A round counts only if the client claims it and the answer spells a word-bank word."""
        if not submission.is_correct or not submission.answer.strip():
            return False
        if word is None:
            return False
        return check_spelling(submission.answer, word.word)
    
    def _check_client_values(self, session, player_id: str, game_id: str, track: Track,
                             xp_earned: int, verified_score: int,
                             client_xp: Optional[int], client_score: Optional[int]) -> bool:
        """Log and audit client reward values that disagree with the server's."""
        xp_differs = client_xp is not None and client_xp != xp_earned
        score_differs = track.mode == GameMode.BLITZ and client_score is not None and client_score != verified_score
        if not (xp_differs or score_differs):
            return False
        
        logger.warning(
            f"XP mismatch for game {game_id}: client xp={client_xp} score={client_score}, "
            f"server xp={xp_earned} score={verified_score} (track={track.value})"
        )
        session.add(AuditLog(
            player_id=player_id,
            action=AuditAction.XP_MISMATCH,
            details={
                "gameId": game_id,
                "track": track.value,
                "clientXp": client_xp,
                "serverXp": xp_earned,
                "clientScore": client_score,
                "serverScore": verified_score,
            }
        ))
        return True
    
    async def _record_game_player(self, session, game_id: str, player_id: str, track: Track,
                                  hearts: int, rounds_completed: int, correct: int, wrong: int,
                                  streak: int, score: int, xp_earned: int):
        game_player = await session.scalar(
            select(GamePlayer).where(GamePlayer.game_id == game_id, GamePlayer.player_id == player_id)
        )
        if game_player is None:
            game_player = GamePlayer(id=str(uuid.uuid4()), game_id=game_id, player_id=player_id)
            session.add(game_player)
        
        if track.mode == GameMode.ENDLESS:
            hearts = min(hearts, GameConstants.ENDLESS_STARTING_HEARTS)
            game_player.is_eliminated = hearts == 0
        else:
            hearts = 0
            game_player.is_eliminated = False
        game_player.hearts = hearts
        game_player.rounds_completed = rounds_completed
        game_player.correct_answers = correct
        game_player.wrong_answers = wrong
        game_player.longest_streak = streak
        game_player.score = score
        game_player.xp_earned = xp_earned
    
    async def _add_xp(self, session, player_id: str, track: Track, xp_earned: int) -> int:
        """Additive XP increment in the database; concurrent finishes never overwrite each other."""
        result = await session.execute(
            update(TierProgress)
            .where(TierProgress.player_id == player_id, TierProgress.track == track)
            .values(xp=TierProgress.xp + xp_earned, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(f"No progress row for {player_id} on {track.value}, creating one")
            session.add(TierProgress(player_id=player_id, track=track, xp=xp_earned))
            await session.flush()
        
        return await session.scalar(
            select(TierProgress.xp).where(TierProgress.player_id == player_id, TierProgress.track == track)
        )
    
    async def _update_skill(self, session, player_id: str, track: Track, outcome: GameOutcome):
        skill = await session.scalar(
            select(SkillEstimate).where(SkillEstimate.player_id == player_id, SkillEstimate.track == track)
        )
        if skill is None:
            logger.warning(f"No skill estimate for {player_id} on {track.value}, skipping rating update")
            return None
        
        rating_update = self.rating_strategy.calculate(
            SkillSnapshot(skill.rating, skill.rating_deviation, skill.volatility, skill.games_played),
            outcome
        )
        skill.rating = rating_update.rating
        skill.rating_deviation = rating_update.rating_deviation
        skill.volatility = rating_update.volatility
        skill.games_played = skill.games_played + 1
        skill.last_played_at = datetime.now()
        skill.season_highest_rating = max(skill.season_highest_rating or rating_update.rating, rating_update.rating)
        return rating_update
    
    def _finished_on_track(self, player_id: str, track: Track) -> tuple:
        return (
            GamePlayer.player_id == player_id,
            Game.status == GameStatus.FINISHED,
            Game.mode == track.mode,
            Game.input_method == track.input_method,
        )
    
    async def _load_stats(self, session, player_id: str, track: Track) -> GameStats:
        totals = (await session.execute(
            select(
                func.count(GamePlayer.id).label('total_games'),
                func.coalesce(func.sum(GamePlayer.rounds_completed), 0).label('total_rounds'),
                func.coalesce(func.sum(GamePlayer.correct_answers), 0).label('total_correct'),
                func.coalesce(func.sum(GamePlayer.wrong_answers), 0).label('total_wrong'),
                func.coalesce(func.sum(GamePlayer.xp_earned), 0).label('total_xp'),
                func.coalesce(func.max(GamePlayer.rounds_completed), 0).label('best_round'),
            )
            .join(Game, Game.id == GamePlayer.game_id)
            .where(*self._finished_on_track(player_id, track))
        )).one()
        return GameStats(
            total_games=totals.total_games,
            total_rounds=totals.total_rounds,
            total_correct=totals.total_correct,
            total_xp=totals.total_xp,
            average_accuracy=RankingUtility.accuracy_percent(totals.total_correct, totals.total_wrong),
            best_round=totals.best_round
        )
    
    async def get_stats(self, player_id: str, mode, input_method) -> GameStats:
        """Lifetime aggregates over the player's finished games on a track."""
        track = parse_track(mode, input_method)
        async with self.get_session() as session:
            return await self._load_stats(session, player_id, track)
    
    async def get_history(self, player_id: str, mode, input_method,
                          limit: int = GameConstants.DEFAULT_HISTORY_LIMIT) -> GameHistory:
        """
        Recent finished games on a track plus lifetime stats for that track.
        
        Raises:
            ValidationError: Invalid track or limit
        """
        track = parse_track(mode, input_method)
        if isinstance(limit, bool) or not isinstance(limit, int) or not (1 <= limit <= GameConstants.MAX_HISTORY_LIMIT):
            raise ValidationError(
                f"Invalid history limit {limit!r}",
                f"Limit must be between 1 and {GameConstants.MAX_HISTORY_LIMIT}"
            )
        
        async with self.get_session() as session:
            rows = (await session.execute(
                select(Game, GamePlayer)
                .join(GamePlayer, GamePlayer.game_id == Game.id)
                .where(*self._finished_on_track(player_id, track))
                .order_by(Game.ended_at.desc(), Game.id.desc())
                .limit(limit)
            )).all()
            stats = await self._load_stats(session, player_id, track)
        
        games = [
            GameHistoryEntry(
                game_id=game.id,
                mode=game.mode.value,
                input_method=game.input_method.value,
                rounds_completed=gp.rounds_completed,
                correct_answers=gp.correct_answers,
                wrong_answers=gp.wrong_answers,
                accuracy=RankingUtility.accuracy_percent(gp.correct_answers, gp.wrong_answers),
                longest_streak=gp.longest_streak,
                xp_earned=gp.xp_earned,
                ended_at=game.ended_at
            )
            for game, gp in rows
        ]
        return GameHistory(games=games, stats=stats)
