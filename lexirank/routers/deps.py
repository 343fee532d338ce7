"""Service lookups for route handlers. Services are built once in the app lifespan."""

from fastapi import Request

from lexirank.services.game import GameService
from lexirank.services.leaderboard import LeaderboardService
from lexirank.services.profile import ProfileService
from lexirank.services.words import WordService


def get_leaderboard_service(request: Request) -> LeaderboardService:
    return request.app.state.leaderboard_service


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def get_game_service(request: Request) -> GameService:
    return request.app.state.game_service


def get_word_service(request: Request) -> WordService:
    return request.app.state.word_service
