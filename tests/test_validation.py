import pytest

from lexirank.constants import Track
from lexirank.utils.answers import check_spelling, normalize_answer
from lexirank.utils.exceptions import ValidationError
from lexirank.utils.validation import (
    parse_track, username_format_error, validate_avatar_id, validate_birth_year, validate_username
)


class TestAnswers:
    def test_normalization(self):
        assert normalize_answer(" C-A T. ") == "cat"
        assert normalize_answer(None) == ""

    def test_spelling(self):
        assert check_spelling("Rhythm", "rhythm")
        assert not check_spelling("rythm", "rhythm")
        assert not check_spelling("", "")
        assert not check_spelling("...", "cat")


class TestUsername:
    @pytest.mark.parametrize("username", ["bee", "Spelling_Bee", "a1b2c3", "x" * 20])
    def test_valid(self, username):
        assert username_format_error(username) is None

    @pytest.mark.parametrize("username", [
        "", "ab", "x" * 21, "bad name", "_lead", "trail_", "dou__ble", "dash-es",
    ])
    def test_invalid(self, username):
        assert username_format_error(username) is not None

    def test_validate_strips(self):
        assert validate_username("  honey  ") == "honey"

    def test_validate_raises_with_field(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_username("no")
        assert exc_info.value.details == {"field": "username"}


class TestProfileFields:
    def test_avatar_defaults(self):
        assert validate_avatar_id(None) == 1
        assert validate_avatar_id(3) == 3

    @pytest.mark.parametrize("avatar_id", [0, 4, True])
    def test_avatar_invalid(self, avatar_id):
        with pytest.raises(ValidationError):
            validate_avatar_id(avatar_id)

    def test_birth_year(self):
        assert validate_birth_year(None) is None
        assert validate_birth_year(2010) == 2010
        with pytest.raises(ValidationError):
            validate_birth_year(1800)
        with pytest.raises(ValidationError):
            validate_birth_year(9999)


class TestParseTrack:
    def test_valid(self):
        assert parse_track("blitz", "keyboard") == Track.BLITZ_KEYBOARD

    def test_invalid_mode(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_track("marathon", "voice")
        assert exc_info.value.details == {"field": "mode"}

    def test_invalid_input_method(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_track("endless", "telepathy")
        assert exc_info.value.details == {"field": "inputMethod"}
