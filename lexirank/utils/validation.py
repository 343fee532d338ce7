"""
Input validation shared by services and routers.

Functions return normalized values or raise ValidationError with a message
that is safe to show to the player.
"""

import re
from datetime import datetime
from typing import Optional

from lexirank.constants import GameMode, InputMethod, ProfileConstants, Track
from lexirank.utils.exceptions import ValidationError

_ALLOWED_USERNAME = re.compile(r"^[A-Za-z0-9_]+$")


def username_format_error(username: Optional[str]) -> Optional[str]:
    """Return the first rule the username breaks, or None when it is valid."""
    trimmed = (username or "").strip()
    if not trimmed:
        return "Username is required"
    if len(trimmed) < ProfileConstants.USERNAME_MIN_LENGTH:
        return f"Username must be at least {ProfileConstants.USERNAME_MIN_LENGTH} characters"
    if len(trimmed) > ProfileConstants.USERNAME_MAX_LENGTH:
        return f"Username must be {ProfileConstants.USERNAME_MAX_LENGTH} characters or less"
    if not _ALLOWED_USERNAME.match(trimmed):
        return "Username can only contain letters, numbers, and underscores"
    if trimmed.startswith("_"):
        return "Username cannot start with an underscore"
    if trimmed.endswith("_"):
        return "Username cannot end with an underscore"
    if "__" in trimmed:
        return "Username cannot contain consecutive underscores"
    return None


def validate_username(username: Optional[str]) -> str:
    error = username_format_error(username)
    if error:
        raise ValidationError(f"Invalid username {username!r}: {error}", error, {"field": "username"})
    return username.strip()


def validate_avatar_id(avatar_id: Optional[int]) -> int:
    if avatar_id is None:
        return ProfileConstants.DEFAULT_AVATAR_ID
    if isinstance(avatar_id, bool) or avatar_id not in ProfileConstants.AVATAR_IDS:
        raise ValidationError(
            f"Invalid avatar id {avatar_id!r}",
            "Invalid avatar selection",
            {"field": "avatarId"}
        )
    return avatar_id


def validate_birth_year(birth_year: Optional[int]) -> Optional[int]:
    if birth_year is None:
        return None
    current_year = datetime.now().year
    if isinstance(birth_year, bool) or not isinstance(birth_year, int) or not (
        ProfileConstants.MIN_BIRTH_YEAR <= birth_year <= current_year
    ):
        raise ValidationError(
            f"Invalid birth year {birth_year!r}",
            "Invalid birth year",
            {"field": "birthYear"}
        )
    return birth_year


def parse_track(mode, input_method) -> Track:
    """Build a Track from mode / input method values, rejecting unknown ones."""
    try:
        mode = mode if isinstance(mode, GameMode) else GameMode(mode)
    except ValueError:
        raise ValidationError(
            f"Invalid mode {mode!r}",
            "Invalid mode. Must be 'endless' or 'blitz'",
            {"field": "mode"}
        )
    try:
        input_method = input_method if isinstance(input_method, InputMethod) else InputMethod(input_method)
    except ValueError:
        raise ValidationError(
            f"Invalid input method {input_method!r}",
            "Invalid inputMethod. Must be 'voice' or 'keyboard'",
            {"field": "inputMethod"}
        )
    return Track.from_parts(mode, input_method)
