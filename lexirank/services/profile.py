"""
Profile service

Account creation with placement seeding, username availability and the
signed-in player's status. Seeding runs at most once per player: a retried
completion returns the existing profile without touching its ratings.
"""

import logging
from typing import Any, Mapping, Optional, Tuple, Union

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from lexirank.constants import GlickoConstants, Track
from lexirank.data_models.placement import GuardDecision, PlacementRecord
from lexirank.data_models.profile import PlayerStatus, ProfileResult, TrackStanding
from lexirank.database.models import AuditAction, AuditLog, Player, SkillEstimate, TierProgress
from lexirank.operations.profile_guard import validate_placement
from lexirank.services.base import BaseService
from lexirank.utils.exceptions import ConflictError, NotFoundError
from lexirank.utils.progression import ProgressionCalculator
from lexirank.utils.validation import (
    username_format_error, validate_avatar_id, validate_birth_year, validate_username
)

logger = logging.getLogger(__name__)


class ProfileService(BaseService):
    """Service for profile completion and player status."""
    
    async def get_player(self, player_id: str) -> Optional[Player]:
        async with self.get_session() as session:
            return await session.get(Player, player_id)
    
    async def is_username_available(self, username: str) -> Tuple[bool, Optional[str]]:
        """
        Check format and case-insensitive availability.
        
        Returns:
            (available, error message or None)
        """
        error = username_format_error(username)
        if error:
            return False, error
        async with self.get_session() as session:
            taken = await self._username_owner(session, username.strip())
        if taken is not None:
            return False, "Username is already taken"
        return True, None
    
    async def _username_owner(self, session, username: str) -> Optional[str]:
        return await session.scalar(
            select(Player.id).where(func.lower(Player.username) == username.lower())
        )
    
    async def complete_profile(
        self,
        player_id: str,
        username: str,
        email: Optional[str] = None,
        birth_year: Optional[int] = None,
        avatar_id: Optional[int] = None,
        placement: Union[Mapping[str, Any], PlacementRecord, None] = None
    ) -> ProfileResult:
        """
        Create the player and seed every track.
        
        All input, placement included, is validated before anything is
        written. Player, progress rows, skill estimates and any audit row
        commit together.
        
        Raises:
            ValidationError: Malformed username, avatar, birth year or placement
            ConflictError: Username already taken by another player
        """
        username = validate_username(username)
        avatar_id = validate_avatar_id(avatar_id)
        birth_year = validate_birth_year(birth_year)
        decision = validate_placement(placement)
        
        async def create():
            return await self._create_profile(player_id, username, email, birth_year, avatar_id, decision)

        try:
            return await self.execute_with_retry(create, f"complete profile {player_id}")
        except IntegrityError as e:
            # Lost a race: this player was created concurrently or the name was claimed
            logger.warning(f"Profile creation race for {player_id}: {e.orig if hasattr(e, 'orig') else e}")
            existing = await self.get_player(player_id)
            if existing is not None:
                return self._existing_result(existing)
            raise ConflictError(f"Username '{username}' taken during creation", "Username is already taken")
    
    async def _create_profile(self, player_id: str, username: str, email: Optional[str],
                              birth_year: Optional[int], avatar_id: int,
                              decision: Optional[GuardDecision]) -> ProfileResult:
        async with self.get_session() as session:
            existing = await session.get(Player, player_id)
            if existing is not None:
                logger.info(f"Profile already complete for {player_id}, skipping seeding")
                return self._existing_result(existing)
            
            owner = await self._username_owner(session, username)
            if owner is not None:
                raise ConflictError(f"Username '{username}' already taken by {owner}", "Username is already taken")
            
            session.add(Player(
                id=player_id,
                email=email,
                username=username,
                avatar_id=avatar_id,
                birth_year=birth_year
            ))
            await session.flush()
            
            placement_applied = decision is not None and decision.accepted
            self._seed_tracks(session, player_id, decision if placement_applied else None)
            
            if decision is not None and not decision.accepted:
                session.add(AuditLog(
                    player_id=player_id,
                    action=AuditAction.PLACEMENT_DISCARDED,
                    details={"reason": decision.reason, **decision.details}
                ))
            
            await session.flush()
        
        logger.info(
            f"Created profile {player_id} ('{username}'), "
            f"placement {'applied at tier ' + str(decision.derived_tier) if placement_applied else 'not applied'}"
        )
        return ProfileResult(
            player_id=player_id,
            username=username,
            avatar_id=avatar_id,
            created=True,
            placement_applied=placement_applied
        )
    
    def _seed_tracks(self, session, player_id: str, decision: Optional[GuardDecision]):
        """Add progress and skill rows for every track, from placement or defaults."""
        if decision is not None:
            tier = ProgressionCalculator.tier_from_number(decision.derived_tier)
            xp = ProgressionCalculator.xp_threshold(tier)
            rating = decision.rating
            rating_deviation = decision.rating_deviation
        else:
            xp = 0
            rating = GlickoConstants.INITIAL_RATING
            rating_deviation = GlickoConstants.INITIAL_RD
        
        for track in Track:
            session.add(TierProgress(player_id=player_id, track=track, xp=xp))
            session.add(SkillEstimate(
                player_id=player_id,
                track=track,
                rating=rating,
                rating_deviation=rating_deviation,
                volatility=GlickoConstants.INITIAL_VOLATILITY,
                season_highest_rating=rating
            ))
    
    def _existing_result(self, player: Player) -> ProfileResult:
        return ProfileResult(
            player_id=player.id,
            username=player.username,
            avatar_id=player.avatar_id,
            created=False,
            placement_applied=False
        )
    
    async def get_player_status(self, player_id: str) -> PlayerStatus:
        """
        Get the player's profile with per-track XP and ratings.
        
        Raises:
            NotFoundError: If the player has not completed a profile
        """
        async with self.get_session() as session:
            player = await session.get(Player, player_id)
            if player is None:
                raise NotFoundError("Profile", player_id, {"needsProfile": True})
            
            progress_rows = (await session.scalars(
                select(TierProgress).where(TierProgress.player_id == player_id)
            )).all()
            skill_rows = {
                row.track: row for row in (await session.scalars(
                    select(SkillEstimate).where(SkillEstimate.player_id == player_id)
                )).all()
            }
        
        standings = []
        for progress in sorted(progress_rows, key=lambda row: list(Track).index(row.track)):
            tier = ProgressionCalculator.tier_for_xp(progress.xp)
            skill = skill_rows.get(progress.track)
            standings.append(TrackStanding(
                track=progress.track.value,
                xp=progress.xp,
                tier=tier.value,
                tier_label=ProgressionCalculator.tier_label(tier),
                rating=skill.rating if skill else None,
                rating_deviation=skill.rating_deviation if skill else None,
                games_played=skill.games_played if skill else 0
            ))
        
        return PlayerStatus(
            player_id=player.id,
            username=player.username,
            avatar_id=player.avatar_id,
            birth_year=player.birth_year,
            standings=standings
        )
