"""SM-2 spaced repetition engine.

A small variant of SuperMemo-2 used to schedule coding-trivia cards.
Reference: https://super-memory.com/english/ol/sm2.htm

Key concepts:
- Interval: days until the card is shown again.
- Ease factor: multiplier controlling interval growth, floored at 1.3.
- Repetitions: consecutive successful recalls since the last lapse.
- Quality: 0-5 recall rating (0 = blackout, 5 = instant recall). Ratings
  below 3 count as a failure and restart the schedule.

Everything in this module is pure; callers pass the current time in.
"""

import math
from dataclasses import dataclass
from enum import Enum

from backend.config import DAY_MS

MIN_EASE = 1.3
DEFAULT_EASE = 2.5
PASSING_QUALITY = 3
MAX_QUALITY = 5

# Repetitions at which the repetition component of mastery saturates
MASTERY_REPETITIONS_CAP = 10
MASTERY_EASE_WEIGHT = 0.4
MASTERY_REPETITION_WEIGHT = 0.6

LEARNING_THRESHOLD = 50
MASTERED_THRESHOLD = 80


class CardStatus(Enum):
    """Lifecycle stage of a card."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    MASTERED = "mastered"


@dataclass(frozen=True)
class SRSState:
    """The SM-2 scheduling state of a card."""

    interval: int  # Days until next review
    ease_factor: float
    repetitions: int


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (``round`` would bank to even)."""
    return math.floor(value + 0.5)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def initial_state() -> SRSState:
    """State given to every card the moment it is created."""
    return SRSState(interval=1, ease_factor=DEFAULT_EASE, repetitions=0)


def next_state(current: SRSState, quality: int) -> SRSState:
    """Apply one review of the given quality and return the new state.

    Args:
        current: State before the review.
        quality: Recall quality 0-5. Out-of-range values are clamped.

    Returns:
        The state after the review. A failed recall (quality < 3) resets
        the interval to 1 day and repetitions to 0 regardless of history.
    """
    q = int(_clamp(quality, 0, MAX_QUALITY))

    ease = current.ease_factor + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
    ease = max(MIN_EASE, ease)

    if q < PASSING_QUALITY:
        return SRSState(interval=1, ease_factor=ease, repetitions=0)

    if current.repetitions <= 0:
        interval = 1
    elif current.repetitions == 1:
        interval = 6
    else:
        interval = round_half_up(current.interval * ease)

    return SRSState(
        interval=max(1, interval),
        ease_factor=ease,
        repetitions=current.repetitions + 1,
    )


def next_review_timestamp(interval: int, now: int) -> int:
    """Return the epoch-millisecond timestamp ``interval`` days after ``now``."""
    return now + max(1, interval) * DAY_MS


def mastery_score(state: SRSState) -> int:
    """Derived 0-100 display score: 40% ease, 60% repetitions (capped at 10)."""
    ease_part = _clamp((state.ease_factor - MIN_EASE) / (DEFAULT_EASE - MIN_EASE), 0.0, 1.0)
    rep_part = _clamp(state.repetitions / MASTERY_REPETITIONS_CAP, 0.0, 1.0)
    score = 100 * (MASTERY_EASE_WEIGHT * ease_part + MASTERY_REPETITION_WEIGHT * rep_part)
    return int(_clamp(round_half_up(score), 0, 100))


def lifecycle_status(state: SRSState) -> CardStatus:
    """Map a state to its lifecycle stage using the mastery thresholds."""
    if state.repetitions == 0:
        return CardStatus.NEW
    mastery = mastery_score(state)
    if mastery < LEARNING_THRESHOLD:
        return CardStatus.LEARNING
    if mastery < MASTERED_THRESHOLD:
        return CardStatus.REVIEW
    return CardStatus.MASTERED
