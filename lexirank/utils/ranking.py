"""
Shared ranking utilities for LeaderboardService and ProfileService.

All leaderboard queries order by XP descending with the player id as the
stable tie key, and apply the username search before counting or paging so
totals always describe the filtered result set.
"""

from typing import Iterable, List, Optional, Sequence
from sqlalchemy import select, func, and_
from sqlalchemy.sql import Select

from lexirank.constants import Track
from lexirank.database.models import Game, GamePlayer, GameStatus, Player, TierProgress


class RankingUtility:
    """Shared ranking logic for consistent query construction."""
    
    @staticmethod
    def escape_like(text: str) -> str:
        """Escape LIKE wildcards so user search text matches literally."""
        return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    
    @staticmethod
    def normalize_search(search: Optional[str]) -> Optional[str]:
        if search is None:
            return None
        search = search.strip().lower()
        return search or None
    
    @staticmethod
    def track_population_filter(track: Track, search: Optional[str] = None):
        """WHERE clause selecting the (optionally filtered) players on a track."""
        conditions = [TierProgress.track == track, Player.is_active.is_(True)]
        search = RankingUtility.normalize_search(search)
        if search:
            pattern = f"%{RankingUtility.escape_like(search)}%"
            conditions.append(func.lower(Player.username).like(pattern, escape="\\"))
        return and_(*conditions)
    
    @staticmethod
    def create_track_ranking_query(track: Track, search: Optional[str] = None) -> Select:
        """
        Ordered projection of one track's population.
        
        Ties on XP are broken by player id so paging is deterministic.
        """
        return (
            select(
                Player.id.label('player_id'),
                Player.username,
                Player.avatar_id,
                TierProgress.xp,
            )
            .join(TierProgress, TierProgress.player_id == Player.id)
            .where(RankingUtility.track_population_filter(track, search))
            .order_by(TierProgress.xp.desc(), Player.id.asc())
        )
    
    @staticmethod
    def create_count_query(track: Track, search: Optional[str] = None) -> Select:
        return (
            select(func.count())
            .select_from(Player)
            .join(TierProgress, TierProgress.player_id == Player.id)
            .where(RankingUtility.track_population_filter(track, search))
        )
    
    @staticmethod
    def create_position_query(track: Track, xp: int, search: Optional[str] = None) -> Select:
        """
        Count of players on the track with strictly more XP.
        
        Position is this count + 1. Players with equal XP share a position.
        """
        return (
            select(func.count())
            .select_from(Player)
            .join(TierProgress, TierProgress.player_id == Player.id)
            .where(
                RankingUtility.track_population_filter(track, search),
                TierProgress.xp > xp
            )
        )
    
    @staticmethod
    def create_stats_query(track: Track, player_ids: Iterable[str]) -> Select:
        """Aggregate finished-game stats on a track for exactly the given players."""
        return (
            select(
                GamePlayer.player_id,
                func.count(GamePlayer.id).label('games_played'),
                func.coalesce(func.sum(GamePlayer.correct_answers), 0).label('total_correct'),
                func.coalesce(func.sum(GamePlayer.wrong_answers), 0).label('total_wrong'),
                func.coalesce(func.max(GamePlayer.rounds_completed), 0).label('best_round'),
                func.coalesce(func.max(GamePlayer.longest_streak), 0).label('best_streak'),
            )
            .join(Game, Game.id == GamePlayer.game_id)
            .where(
                GamePlayer.player_id.in_(list(player_ids)),
                Game.status == GameStatus.FINISHED,
                Game.mode == track.mode,
                Game.input_method == track.input_method,
            )
            .group_by(GamePlayer.player_id)
        )
    
    @staticmethod
    def competition_ranks(xps: Sequence[int], offset: int, first_rank: int) -> List[int]:
        """
        Ranks for one XP-descending page starting at row offset + 1.
        
        Equal XP shares a rank; the next lower XP resumes at its row number
        (1, 1, 3). first_rank comes from the position query, since the first
        row may tie with the end of the previous page.
        """
        ranks = []
        for index, xp in enumerate(xps):
            if index == 0:
                ranks.append(first_rank)
            elif xp == xps[index - 1]:
                ranks.append(ranks[-1])
            else:
                ranks.append(offset + index + 1)
        return ranks
    
    @staticmethod
    def accuracy_percent(correct: int, wrong: int) -> int:
        total = (correct or 0) + (wrong or 0)
        if total == 0:
            return 0
        return int(100 * correct / total + 0.5)
