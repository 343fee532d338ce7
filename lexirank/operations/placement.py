"""
Placement Operations Module

Adaptive placement test run before a player has an account. The run is an
immutable PlacementState advanced by pure transition functions; the
PlacementSession driver adds the two suspension points (word fetch and
feedback delay) on top.

Key functionality:
- create_initial_state() / start_loading() / word_loaded() / begin_round()
  / submit_answer() / process_answer(): phase transitions
- Adaptive difficulty: correct -> tier + 1 (max 7), wrong or timeout -> tier - 1 (min 1)
- summarize(): final estimate from full-session accuracy, not the last adaptive tier
- word_unavailable(): fetch failure ends the run in COMPLETE with an error flag

Phases:
    idle -> loading -> ready -> playing -> checking -> feedback -> loading ...
                                                    \\-> complete (after the last round)
"""

import asyncio
import time
from dataclasses import replace
from typing import Awaitable, Callable, Optional, Sequence, Tuple

from lexirank.constants import TIER_ORDER, PlacementConstants
from lexirank.data_models.placement import (
    PlacementAnswer, PlacementPhase, PlacementRecord, PlacementState, PlacementWord
)
from lexirank.utils.answers import check_spelling
from lexirank.utils.logger import setup_logger
from lexirank.utils.progression import round_half_up

logger = setup_logger(__name__)

MIN_TIER = 1
MAX_TIER = len(TIER_ORDER)

# (tier, used word ids) -> word, or None when the pool is exhausted
WordFetcher = Callable[[int, Sequence[str]], Awaitable[Optional[PlacementWord]]]


class PlacementStateError(Exception):
    """Raised when a transition is applied in the wrong phase"""
    pass


def _require_phase(state: PlacementState, *phases: PlacementPhase) -> None:
    if state.phase not in phases:
        expected = ", ".join(phase.value for phase in phases)
        raise PlacementStateError(f"Expected phase {expected}, placement is in {state.phase.value}")


def create_initial_state(total_rounds: int = PlacementConstants.TOTAL_ROUNDS) -> PlacementState:
    if total_rounds < 1:
        raise ValueError("total_rounds must be at least 1")
    return PlacementState(total_rounds=total_rounds)


def start_loading(state: PlacementState) -> PlacementState:
    _require_phase(state, PlacementPhase.IDLE, PlacementPhase.FEEDBACK)
    return replace(state, phase=PlacementPhase.LOADING, current_word=None)


def word_loaded(state: PlacementState, word: PlacementWord) -> PlacementState:
    _require_phase(state, PlacementPhase.LOADING)
    if word.id in state.used_word_ids:
        raise PlacementStateError(f"Word {word.id} was already used in this placement")
    return replace(
        state,
        phase=PlacementPhase.READY,
        current_word=word,
        used_word_ids=state.used_word_ids + (word.id,)
    )


def word_unavailable(state: PlacementState, error: str) -> PlacementState:
    """End the run immediately; the rounds answered so far are still summarized."""
    _require_phase(state, PlacementPhase.LOADING)
    return replace(state, phase=PlacementPhase.COMPLETE, current_word=None, error=error)


def begin_round(state: PlacementState) -> PlacementState:
    _require_phase(state, PlacementPhase.READY)
    return replace(state, phase=PlacementPhase.PLAYING, current_round=state.current_round + 1)


def submit_answer(state: PlacementState, answer: str, is_correct: bool, time_taken: float) -> PlacementState:
    """Record the answer for the current word. Blank answers (timeouts) are always wrong."""
    _require_phase(state, PlacementPhase.PLAYING)
    answer = (answer or "").strip()
    pending = PlacementAnswer(
        round_number=state.current_round,
        word_id=state.current_word.id,
        tier=state.current_tier,
        answer=answer,
        is_correct=bool(is_correct) and bool(answer),
        time_taken=max(0.0, float(time_taken))
    )
    return replace(state, phase=PlacementPhase.CHECKING, pending_answer=pending)


def next_tier(current_tier: int, was_correct: bool) -> int:
    """Adaptive step, bounded to [1, 7]."""
    if was_correct:
        return min(MAX_TIER, current_tier + 1)
    return max(MIN_TIER, current_tier - 1)


def process_answer(state: PlacementState) -> PlacementState:
    _require_phase(state, PlacementPhase.CHECKING)
    pending = state.pending_answer
    finished = state.current_round >= state.total_rounds
    return replace(
        state,
        phase=PlacementPhase.COMPLETE if finished else PlacementPhase.FEEDBACK,
        answers=state.answers + (pending,),
        pending_answer=None,
        current_tier=next_tier(state.current_tier, pending.is_correct)
    )


def estimate_from_accuracy(accuracy: float) -> Tuple[int, int]:
    """
    Map full-session accuracy (0.0-1.0) to (derived_tier, rating).
    
    derived_tier = clamp(1 + round(accuracy x 6), 1, 7)
    rating = BASE_RATING + round(accuracy x RATING_SPAN)
    """
    derived_tier = max(MIN_TIER, min(MAX_TIER, 1 + round_half_up(accuracy * (MAX_TIER - 1))))
    rating = PlacementConstants.BASE_RATING + round_half_up(accuracy * PlacementConstants.RATING_SPAN)
    return derived_tier, rating


def summarize(state: PlacementState, now: Optional[float] = None) -> PlacementRecord:
    """Build the placement record from every answered round, complete or not."""
    answered = state.rounds_answered
    correct = state.correct_count
    accuracy = correct / answered if answered else 0.0
    derived_tier, rating = estimate_from_accuracy(accuracy)
    timestamp = now if now is not None else time.time()
    return PlacementRecord(
        derived_tier=derived_tier,
        rating=rating,
        rating_deviation=PlacementConstants.PLACED_RD,
        accuracy=round_half_up(accuracy * 100),
        correct_count=correct,
        total_rounds=answered,
        timestamp=int(timestamp * 1000),
        error=state.error
    )


class PlacementSession:
    """
    Drives one placement run against a word source.
    
    Owned by a single caller. Cancelling a pending load_next_word() or
    answer() leaves the run incomplete; nothing is persisted either way.
    """
    
    def __init__(self, fetch_word: WordFetcher,
                 total_rounds: int = PlacementConstants.TOTAL_ROUNDS,
                 feedback_delay: float = PlacementConstants.FEEDBACK_DELAY):
        self.fetch_word = fetch_word
        self.feedback_delay = feedback_delay
        self.state = create_initial_state(total_rounds)
    
    async def load_next_word(self) -> Optional[PlacementWord]:
        """Fetch the next word and start its round. Returns None when the run ended instead."""
        self.state = start_loading(self.state)
        tier = self.state.current_tier
        try:
            word = await self.fetch_word(tier, self.state.used_word_ids)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Placement word fetch failed at tier {tier}: {e}")
            self.state = word_unavailable(self.state, f"Failed to load word: {e}")
            return None
        
        if word is None:
            logger.warning(f"No placement words left at tier {tier}")
            self.state = word_unavailable(self.state, f"No words available for tier {tier}")
            return None
        
        self.state = begin_round(word_loaded(self.state, word))
        return word
    
    async def answer(self, answer: str, time_taken: float) -> bool:
        """Check the answer, apply the adaptive step and wait out the feedback delay."""
        word = self.state.current_word
        if word is None:
            raise PlacementStateError("No word is in play")
        is_correct = check_spelling(answer, word.word)
        self.state = process_answer(submit_answer(self.state, answer, is_correct, time_taken))
        if not self.state.is_complete and self.feedback_delay > 0:
            await asyncio.sleep(self.feedback_delay)
        return is_correct
    
    async def run(self, respond: Callable[[PlacementWord], Awaitable[Tuple[str, float]]]) -> PlacementRecord:
        """
        Play the whole run.
        
        Args:
            respond: Async callable returning (answer, seconds taken) for a word
            
        Returns:
            PlacementRecord summarizing the answered rounds
        """
        while not self.state.is_complete:
            word = await self.load_next_word()
            if word is None:
                break
            answer, time_taken = await respond(word)
            await self.answer(answer, time_taken)
        return self.result()
    
    def result(self) -> PlacementRecord:
        if not self.state.is_complete:
            raise PlacementStateError("Placement is not complete")
        return summarize(self.state)
