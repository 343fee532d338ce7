"""
Leaderboard service

Provides paginated per-track leaderboards with caching, the requesting
player's position, and the per-track progress summary.

Reads are best-effort snapshots: a position computed while other games are
finishing may already be stale, and cached pages live for
Config.LEADERBOARD_CACHE_TTL seconds unless their track is invalidated.
"""

from dataclasses import replace
from typing import Dict, List, Optional, Tuple
import asyncio
import time
import logging

from sqlalchemy import select

from lexirank.config import Config
from lexirank.constants import PaginationConstants, ProgressionConstants, Track
from lexirank.services.base import BaseService
from lexirank.data_models.leaderboard import LeaderboardEntry, LeaderboardPage
from lexirank.data_models.progress import ProgressSummary
from lexirank.database.models import Player, TierProgress
from lexirank.utils.exceptions import NotFoundError, ValidationError
from lexirank.utils.progression import ProgressionCalculator
from lexirank.utils.ranking import RankingUtility
from lexirank.utils.validation import parse_track

logger = logging.getLogger(__name__)


class LeaderboardService(BaseService):
    """Service for leaderboard queries and ranking with caching."""
    
    def __init__(self, session_factory, cache_ttl: Optional[float] = None):
        super().__init__(session_factory)
        # TTL cache for leaderboard pages
        self._cache: Dict[str, LeaderboardPage] = {}
        self._cache_timestamps: Dict[str, float] = {}
        self._cache_ttl = Config.LEADERBOARD_CACHE_TTL if cache_ttl is None else cache_ttl
        self._cache_max_size = Config.LEADERBOARD_CACHE_MAX_SIZE
        self._cache_lock = asyncio.Lock()
    
    async def _get_cached(self, key: str) -> Optional[LeaderboardPage]:
        """Return a cached page if it is still valid."""
        async with self._cache_lock:
            timestamp = self._cache_timestamps.get(key)
            if timestamp is None or time.time() - timestamp >= self._cache_ttl:
                return None
            return self._cache.get(key)
    
    async def _store_cached(self, key: str, page: LeaderboardPage):
        if self._cache_ttl <= 0:
            return
        async with self._cache_lock:
            self._cache[key] = page
            self._cache_timestamps[key] = time.time()
    
    async def _cleanup_cache(self):
        """Remove expired entries and enforce size limits."""
        async with self._cache_lock:
            current_time = time.time()
            expired_keys = [
                key for key, timestamp in self._cache_timestamps.items()
                if current_time - timestamp >= self._cache_ttl
            ]
            for key in expired_keys:
                self._cache.pop(key, None)
                self._cache_timestamps.pop(key, None)
            
            # Enforce size limit by removing oldest entries
            if len(self._cache) > self._cache_max_size:
                sorted_keys = sorted(self._cache_timestamps.items(), key=lambda x: x[1])
                for key, _ in sorted_keys[:len(self._cache) - self._cache_max_size]:
                    self._cache.pop(key, None)
                    self._cache_timestamps.pop(key, None)
    
    async def invalidate_track(self, track: Track):
        """Drop every cached page of one track."""
        prefix = f"leaderboard:{track.value}:"
        async with self._cache_lock:
            for key in [key for key in self._cache if key.startswith(prefix)]:
                self._cache.pop(key, None)
                self._cache_timestamps.pop(key, None)
        logger.debug(f"Leaderboard cache invalidated for {track.value}")
    
    async def clear_cache(self):
        """Clears the entire leaderboard cache."""
        async with self._cache_lock:
            self._cache.clear()
            self._cache_timestamps.clear()
        logger.info("Leaderboard cache cleared.")
    
    async def get_page(
        self,
        mode,
        input_method,
        page: int = 1,
        page_size: int = PaginationConstants.DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
        current_player_id: Optional[str] = None
    ) -> LeaderboardPage:
        """
        Get one leaderboard page for a track.
        
        Args:
            mode: Game mode ("endless" / "blitz")
            input_method: Input method ("voice" / "keyboard")
            page: 1-based page number; pages past the end are empty
            page_size: Rows per page (1 - MAX_PAGE_SIZE)
            search: Case-insensitive username substring
            current_player_id: Requesting player, for position reporting
            
        Returns:
            LeaderboardPage ordered by XP descending, player id ascending
            
        Raises:
            ValidationError: If the track or paging parameters are invalid
        """
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValidationError("page must be a positive integer", "Page must be a positive integer")
        if isinstance(page_size, bool) or not isinstance(page_size, int) or not (
            1 <= page_size <= PaginationConstants.MAX_PAGE_SIZE
        ):
            raise ValidationError(
                f"page_size must be between 1 and {PaginationConstants.MAX_PAGE_SIZE}",
                f"Limit must be between 1 and {PaginationConstants.MAX_PAGE_SIZE}"
            )
        track = parse_track(mode, input_method)
        search = RankingUtility.normalize_search(search)
        
        cache_key = f"leaderboard:{track.value}:{page}:{page_size}:{search or ''}"
        base_page = await self._get_cached(cache_key)
        if base_page is None:
            await self._cleanup_cache()
            base_page = await self._load_page(track, page, page_size, search)
            await self._store_cached(cache_key, base_page)
        
        if current_player_id is None:
            return base_page
        return await self._with_current_player(base_page, current_player_id)
    
    async def _load_page(self, track: Track, page: int, page_size: int, search: Optional[str]) -> LeaderboardPage:
        async with self.get_session() as session:
            total_count = await session.scalar(RankingUtility.create_count_query(track, search)) or 0
            
            offset = (page - 1) * page_size
            result = await session.execute(
                RankingUtility.create_track_ranking_query(track, search).limit(page_size).offset(offset)
            )
            rows = result.all()
            stats = await self._load_stats(session, track, [row.player_id for row in rows])
            
            first_rank = await self._position_for_xp(session, track, rows[0].xp, search) if rows else 0
            ranks = RankingUtility.competition_ranks([row.xp for row in rows], offset, first_rank)
            entries = [
                self._build_entry(rank, row.player_id, row.username, row.avatar_id, row.xp, stats)
                for rank, row in zip(ranks, rows)
            ]
        
        return LeaderboardPage(
            entries=entries,
            current_page=page,
            page_size=page_size,
            total_pages=(total_count + page_size - 1) // page_size,
            total_players=total_count,
            track=track,
            search=search
        )
    
    async def _with_current_player(self, base_page: LeaderboardPage, player_id: str) -> LeaderboardPage:
        """Mark the requesting player's row, or look up their off-page position."""
        for entry in base_page.entries:
            if entry.player_id == player_id:
                current = replace(entry, is_current_user=True)
                entries = [current if e.player_id == player_id else e for e in base_page.entries]
                position = entry.rank
                if base_page.search:
                    # Filtered ranks count only matching players; report the global one
                    async with self.get_session() as session:
                        position = await self._position_for_xp(session, base_page.track, entry.xp)
                return replace(base_page, entries=entries, current_user=current,
                               current_user_position=position)
        
        async with self.get_session() as session:
            row = (await session.execute(
                select(Player.id, Player.username, Player.avatar_id, TierProgress.xp)
                .join(TierProgress, TierProgress.player_id == Player.id)
                .where(Player.id == player_id, TierProgress.track == base_page.track)
            )).first()
            if row is None:
                return base_page
            
            position = await self._position_for_xp(session, base_page.track, row.xp)
            stats = await self._load_stats(session, base_page.track, [player_id])
        
        current = self._build_entry(position, row.id, row.username, row.avatar_id, row.xp, stats, True)
        return replace(base_page, current_user=current, current_user_position=position)
    
    async def _position_for_xp(self, session, track: Track, xp: int, search: Optional[str] = None) -> int:
        greater = await session.scalar(RankingUtility.create_position_query(track, xp, search)) or 0
        return greater + 1
    
    async def _load_stats(self, session, track: Track, player_ids: List[str]) -> Dict[str, Tuple]:
        """Aggregate stats for only the given players."""
        if not player_ids:
            return {}
        result = await session.execute(RankingUtility.create_stats_query(track, player_ids))
        return {
            row.player_id: (
                RankingUtility.accuracy_percent(row.total_correct, row.total_wrong),
                row.best_round,
                row.best_streak,
                row.games_played,
            )
            for row in result
        }
    
    def _build_entry(self, rank: int, player_id: str, username: str, avatar_id: int, xp: int,
                     stats: Dict[str, Tuple], is_current_user: bool = False) -> LeaderboardEntry:
        accuracy, best_round, best_streak, games_played = stats.get(player_id, (0, 0, 0, 0))
        tier = ProgressionCalculator.tier_for_xp(xp)
        return LeaderboardEntry(
            rank=rank,
            player_id=player_id,
            username=username,
            avatar_id=avatar_id,
            tier=tier.value,
            tier_label=ProgressionCalculator.tier_label(tier),
            xp=xp,
            accuracy=accuracy,
            best_round=best_round,
            best_streak=best_streak,
            games_played=games_played,
            is_current_user=is_current_user
        )
    
    async def get_progress_summary(self, player_id: str, mode, input_method) -> ProgressSummary:
        """
        Get a player's tier, XP within tier and position on one track.
        
        Raises:
            NotFoundError: If the player has no progress row on the track
        """
        track = parse_track(mode, input_method)
        async with self.get_session() as session:
            progress = await session.scalar(
                select(TierProgress).where(
                    TierProgress.player_id == player_id,
                    TierProgress.track == track
                )
            )
            if progress is None:
                raise NotFoundError("Progress", player_id)
            
            position = await self._position_for_xp(session, track, progress.xp)
            total_players = await session.scalar(RankingUtility.create_count_query(track)) or 0
        
        tier = ProgressionCalculator.tier_for_xp(progress.xp)
        threshold = ProgressionCalculator.xp_threshold(tier)
        next_tier = ProgressionCalculator.next_tier(tier)
        if next_tier is None:
            span = ProgressionConstants.MAX_TIER_DISPLAY_SPAN
        else:
            span = ProgressionCalculator.xp_threshold(next_tier) - threshold
        
        return ProgressSummary(
            tier=tier,
            tier_label=ProgressionCalculator.tier_label(tier),
            xp_in_tier=progress.xp - threshold,
            total_xp=progress.xp,
            xp_for_next_tier=span,
            position=position,
            total_players=total_players
        )
