import pytest
from sqlalchemy import select

from lexirank.constants import GlickoConstants, Track
from lexirank.database.models import AuditAction, AuditLog, SkillEstimate, TierProgress
from lexirank.services.profile import ProfileService
from lexirank.utils.exceptions import ConflictError, NotFoundError, ValidationError


async def track_rows(db, player_id):
    async with db.get_session() as session:
        progress = (await session.scalars(
            select(TierProgress).where(TierProgress.player_id == player_id)
        )).all()
        skills = (await session.scalars(
            select(SkillEstimate).where(SkillEstimate.player_id == player_id)
        )).all()
        audits = (await session.scalars(
            select(AuditLog).where(AuditLog.player_id == player_id)
        )).all()
    return progress, skills, audits


def test_profile_without_placement_seeds_defaults(run_db):
    async def scenario(db):
        service = ProfileService(db.session_factory)
        result = await service.complete_profile("user-1", "honey_b", email="h@example.com", avatar_id=2)
        return result, await track_rows(db, "user-1")

    result, (progress, skills, audits) = run_db(scenario)
    assert result.created is True
    assert result.placement_applied is False
    assert result.to_dict()["user"] == {"id": "user-1", "username": "honey_b", "avatarId": 2}
    assert {row.track for row in progress} == set(Track)
    assert all(row.xp == 0 for row in progress)
    assert all(row.rating == GlickoConstants.INITIAL_RATING for row in skills)
    assert all(row.rating_deviation == GlickoConstants.INITIAL_RD for row in skills)
    assert audits == []


def test_accepted_placement_seeds_every_track(run_db):
    placement = {"derivedTier": 5, "rating": 1700, "ratingDeviation": 200}

    async def scenario(db):
        service = ProfileService(db.session_factory)
        result = await service.complete_profile("user-2", "placed", placement=placement)
        return result, await track_rows(db, "user-2")

    result, (progress, skills, _) = run_db(scenario)
    assert result.placement_applied is True
    assert len(progress) == 4
    # Tier 5 (Worker Bee) starts at its XP threshold on every track
    assert all(row.xp == 1000 for row in progress)
    assert all(row.rating == 1700 and row.rating_deviation == 200 for row in skills)


def test_discarded_placement_uses_defaults_and_audits(run_db):
    placement = {"derivedTier": 4, "rating": 50, "ratingDeviation": 200}

    async def scenario(db):
        service = ProfileService(db.session_factory)
        result = await service.complete_profile("user-3", "prober", placement=placement)
        return result, await track_rows(db, "user-3")

    result, (progress, skills, audits) = run_db(scenario)
    assert result.created is True
    assert result.placement_applied is False
    assert all(row.xp == 0 for row in progress)
    assert all(row.rating == GlickoConstants.INITIAL_RATING for row in skills)
    assert len(audits) == 1
    assert audits[0].action == AuditAction.PLACEMENT_DISCARDED
    assert audits[0].details["reason"] == "rating_out_of_range"


def test_invalid_placement_writes_nothing(run_db):
    async def scenario(db):
        service = ProfileService(db.session_factory)
        with pytest.raises(ValidationError):
            await service.complete_profile(
                "user-4", "tier_nine", placement={"derivedTier": 9, "rating": 1500, "ratingDeviation": 200}
            )
        return await service.get_player("user-4"), await track_rows(db, "user-4")

    player, (progress, skills, audits) = run_db(scenario)
    assert player is None
    assert progress == [] and skills == [] and audits == []


def test_seeding_is_idempotent(run_db):
    async def scenario(db):
        service = ProfileService(db.session_factory)
        first = await service.complete_profile("user-5", "repeat")
        second = await service.complete_profile(
            "user-5", "repeat", placement={"derivedTier": 7, "rating": 1950, "ratingDeviation": 100}
        )
        return first, second, await track_rows(db, "user-5")

    first, second, (progress, skills, _) = run_db(scenario)
    assert first.created is True
    assert second.created is False
    assert len(progress) == 4 and len(skills) == 4
    assert all(row.xp == 0 for row in progress)
    assert all(row.rating == GlickoConstants.INITIAL_RATING for row in skills)


def test_username_uniqueness_is_case_insensitive(run_db):
    async def scenario(db):
        service = ProfileService(db.session_factory)
        await service.complete_profile("user-6", "SpellingBee")
        with pytest.raises(ConflictError):
            await service.complete_profile("user-7", "spellingbee")
        return (
            await service.is_username_available("SPELLINGBEE"),
            await service.is_username_available("other_bee"),
            await service.is_username_available("x"),
        )

    taken, free, malformed = run_db(scenario)
    assert taken == (False, "Username is already taken")
    assert free == (True, None)
    assert malformed[0] is False and malformed[1]


def test_player_status(run_db):
    async def scenario(db):
        service = ProfileService(db.session_factory)
        with pytest.raises(NotFoundError) as exc_info:
            await service.get_player_status("nobody")
        assert exc_info.value.details == {"needsProfile": True}
        await service.complete_profile("user-8", "status_bee", birth_year=2012)
        return await service.get_player_status("user-8")

    status = run_db(scenario)
    body = status.to_dict()
    assert body["user"]["birthYear"] == 2012
    assert [rank["track"] for rank in body["ranks"]] == [track.value for track in Track]
    assert body["ranks"][0]["tier"] == "new_bee"
    assert body["ranks"][0]["rating"] == 1500
