"""
Bearer-token authentication for the API.

Tokens are HS256 JWTs issued by the auth provider; ``sub`` is the player id.
Sign-in flows themselves live outside this service.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from fastapi import Header
from jose import JWTError, jwt

from lexirank.config import Config
from lexirank.utils.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


def create_access_token(player_id: str, email: Optional[str] = None,
                        expires_delta: Optional[timedelta] = None) -> str:
    to_encode = {"sub": player_id}
    if email:
        to_encode["email"] = email
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=Config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, Config.JWT_SECRET_KEY, algorithm=Config.JWT_ALGORITHM)


def _extract_bearer_token(authorization_header: Optional[str]) -> Optional[str]:
    """Return the token from "Bearer <token>", or None if missing/malformed."""
    if not authorization_header:
        return None
    parts = authorization_header.strip().split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, Config.JWT_SECRET_KEY, algorithms=[Config.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        raise UnauthorizedError("invalid or expired token")
    if not payload.get("sub"):
        raise UnauthorizedError("token has no subject")
    return payload


async def require_auth(authorization: Optional[str] = Header(None)) -> dict:
    """Dependency returning {"player_id", "email"} or failing with 401."""
    token = _extract_bearer_token(authorization)
    if not token:
        raise UnauthorizedError("missing Authorization header")
    payload = decode_token(token)
    return {"player_id": payload["sub"], "email": payload.get("email")}


async def require_player_id(authorization: Optional[str] = Header(None)) -> str:
    """Dependency returning the verified player id."""
    identity = await require_auth(authorization)
    return identity["player_id"]


async def optional_player_id(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Dependency for public routes: the player id if a valid token is present."""
    token = _extract_bearer_token(authorization)
    if not token:
        return None
    try:
        return decode_token(token)["sub"]
    except UnauthorizedError:
        return None
