# POST /api/games                  → start a game on a track
# POST /api/games/{game_id}/finish → finalize with server-computed XP
# GET  /api/games/history          → recent games + stats on a track

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, StrictBool

from lexirank.constants import GameConstants
from lexirank.data_models.game import RoundSubmission
from lexirank.routers.auth import require_player_id
from lexirank.routers.deps import get_game_service
from lexirank.services.game import GameService

router = APIRouter(prefix="/api/games", tags=["games"])


# ======= Request Models =======

class CreateGameRequest(BaseModel):
    mode: str
    inputMethod: str


class RoundResult(BaseModel):
    roundNumber: int
    wordId: str
    answer: str
    isCorrect: StrictBool
    timeTaken: float


class FinishGameRequest(BaseModel):
    rounds: List[RoundResult]
    heartsRemaining: int
    blitzScore: Optional[int] = None
    xpEarned: Optional[int] = None  # Client estimate; logged, never trusted


# ======= Routes =======

@router.post("", status_code=201)
async def create_game(
    body: CreateGameRequest,
    player_id: str = Depends(require_player_id),
    service: GameService = Depends(get_game_service),
) -> Dict[str, Any]:
    created = await service.create_game(player_id, body.mode, body.inputMethod)
    return created.to_dict()


@router.get("/history")
async def get_history(
    mode: str = Query("endless"),
    input_method: str = Query("voice", alias="inputMethod"),
    limit: int = Query(GameConstants.DEFAULT_HISTORY_LIMIT),
    player_id: str = Depends(require_player_id),
    service: GameService = Depends(get_game_service),
) -> Dict[str, Any]:
    history = await service.get_history(player_id, mode, input_method, limit=limit)
    return history.to_dict()


@router.post("/{game_id}/finish")
async def finish_game(
    game_id: str,
    body: FinishGameRequest,
    player_id: str = Depends(require_player_id),
    service: GameService = Depends(get_game_service),
) -> Dict[str, Any]:
    rounds = [
        RoundSubmission(
            round_number=r.roundNumber,
            word_id=r.wordId,
            answer=r.answer,
            is_correct=r.isCorrect,
            time_taken=r.timeTaken,
        )
        for r in body.rounds
    ]
    result = await service.finalize_game(
        player_id,
        game_id,
        rounds,
        body.heartsRemaining,
        client_score=body.blitzScore,
        client_xp=body.xpEarned,
    )
    return result.to_dict()
