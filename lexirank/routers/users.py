# GET  /api/users/me                → my profile with per-track ranks
# GET  /api/users/check-username    → format + availability check
# POST /api/users/complete-profile  → create my player and seed every track

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from lexirank.routers.auth import require_auth, require_player_id
from lexirank.routers.deps import get_profile_service
from lexirank.services.profile import ProfileService

router = APIRouter(prefix="/api/users", tags=["users"])


# ======= Request Models =======

class CompleteProfileRequest(BaseModel):
    username: str = Field(max_length=64)
    birthYear: Optional[int] = None
    avatarId: Optional[int] = None
    # Checked by the profile guard, not by the request model
    placement: Optional[Dict[str, Any]] = None


# ======= Routes =======

@router.get("/me")
async def get_me(
    player_id: str = Depends(require_player_id),
    service: ProfileService = Depends(get_profile_service),
) -> Dict[str, Any]:
    status = await service.get_player_status(player_id)
    return status.to_dict()


@router.get("/check-username")
async def check_username(
    username: str = Query(""),
    service: ProfileService = Depends(get_profile_service),
) -> Dict[str, Any]:
    available, error = await service.is_username_available(username)
    body: Dict[str, Any] = {"available": available}
    if error:
        body["error"] = error
    return body


@router.post("/complete-profile", status_code=201)
async def complete_profile(
    body: CompleteProfileRequest,
    identity: dict = Depends(require_auth),
    service: ProfileService = Depends(get_profile_service),
) -> Dict[str, Any]:
    result = await service.complete_profile(
        identity["player_id"],
        body.username,
        email=identity.get("email"),
        birth_year=body.birthYear,
        avatar_id=body.avatarId,
        placement=body.placement,
    )
    return result.to_dict()
