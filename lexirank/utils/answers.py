"""Answer normalization shared by placement and game finalization."""

import re

_NON_LETTERS = re.compile(r"[^a-z]")


def normalize_answer(text: str) -> str:
    """Lowercase and keep letters only, so "C A T." and "cat" compare equal."""
    return _NON_LETTERS.sub("", (text or "").lower())


def check_spelling(answer: str, word: str) -> bool:
    """True when the answer spells the word. Empty answers (timeouts) never match."""
    normalized = normalize_answer(answer)
    return bool(normalized) and normalized == normalize_answer(word)
