from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lexirank.config import Config
from lexirank.database.database import Database
from lexirank.routers import games, leaderboard, users, words
from lexirank.services.game import GameService
from lexirank.services.leaderboard import LeaderboardService
from lexirank.services.profile import ProfileService
from lexirank.services.words import WordService
from lexirank.utils.exceptions import LexiRankException
from lexirank.utils.logger import setup_logger

logger = setup_logger('lexirank')


def build_services(app: FastAPI, db: Database):
    """Wire the services onto app.state once the database is ready"""
    session_factory = db.session_factory
    app.state.db = db
    app.state.leaderboard_service = LeaderboardService(session_factory)
    app.state.profile_service = ProfileService(session_factory)
    app.state.word_service = WordService(session_factory)
    app.state.game_service = GameService(session_factory, leaderboard_service=app.state.leaderboard_service)


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Create the API application. A pre-built Database may be passed in (tests)."""
    
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting LexiRank API...")
        db = database or Database()
        if db.session_factory is None:
            await db.initialize()
        build_services(app, db)
        logger.info("LexiRank API ready")
        try:
            yield
        finally:
            logger.info("Shutting down LexiRank API...")
            await app.state.leaderboard_service.clear_cache()
            await db.close()
    
    app = FastAPI(title="LexiRank API", lifespan=lifespan)
    
    origins = Config.get_cors_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    
    @app.exception_handler(LexiRankException)
    async def handle_engine_error(request: Request, exc: LexiRankException):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
    
    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        fields = [".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "code": "VALIDATION_ERROR", "details": {"fields": fields}},
        )
    
    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "An unexpected error occurred", "code": "INTERNAL_ERROR"},
        )
    
    @app.get("/health", include_in_schema=False)
    async def health():
        return {"status": "ok"}
    
    app.include_router(leaderboard.router)
    app.include_router(users.router)
    app.include_router(games.router)
    app.include_router(words.router)
    return app


def main():
    """Main entry point"""
    Config.validate()
    uvicorn.run(create_app(), host=Config.HOST, port=Config.PORT, log_level="debug" if Config.DEBUG else "info")


if __name__ == "__main__":
    main()
