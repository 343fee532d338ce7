# GET /api/leaderboard          → one page of a track's leaderboard (optional auth)
# GET /api/users/me/progress    → the caller's tier/XP/position header on a track

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from lexirank.constants import PaginationConstants
from lexirank.routers.auth import optional_player_id, require_player_id
from lexirank.routers.deps import get_leaderboard_service
from lexirank.services.leaderboard import LeaderboardService
from lexirank.utils.exceptions import NotFoundError

router = APIRouter(prefix="/api", tags=["leaderboard"])


@router.get("/leaderboard")
async def get_leaderboard(
    mode: str = Query("endless"),
    input_method: str = Query("voice", alias="inputMethod"),
    page: int = Query(1),
    limit: int = Query(PaginationConstants.DEFAULT_PAGE_SIZE),
    search: Optional[str] = Query(None),
    player_id: Optional[str] = Depends(optional_player_id),
    service: LeaderboardService = Depends(get_leaderboard_service),
) -> Dict[str, Any]:
    leaderboard_page = await service.get_page(
        mode, input_method, page=page, page_size=limit, search=search, current_player_id=player_id
    )
    body = leaderboard_page.to_dict()
    
    if player_id is not None:
        try:
            summary = await service.get_progress_summary(player_id, mode, input_method)
            body["userRank"] = summary.to_dict()
        except NotFoundError:
            # Signed in but never played this track
            pass
    return body


@router.get("/users/me/progress")
async def get_my_progress(
    mode: str = Query("endless"),
    input_method: str = Query("voice", alias="inputMethod"),
    player_id: str = Depends(require_player_id),
    service: LeaderboardService = Depends(get_leaderboard_service),
) -> Dict[str, Any]:
    summary = await service.get_progress_summary(player_id, mode, input_method)
    return summary.to_dict()
