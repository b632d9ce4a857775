"""Maps a binary swipe outcome and its latency onto the SM-2 quality scale.

This is the only place where gameplay input becomes algorithm input, so the
thresholds can be recalibrated without touching the engine.
"""

from dataclasses import dataclass

FAST_RESPONSE_MS = 3000
MEDIUM_RESPONSE_MS = 7000

QUALITY_FAILED = 0
QUALITY_BARELY = 3
QUALITY_GOOD = 4
QUALITY_PERFECT = 5


@dataclass(frozen=True)
class ReviewOutcome:
    """A single swipe result as reported by gameplay."""

    correct: bool
    response_time_ms: int | None = None


def classify(correct: bool, response_time_ms: int | None = None) -> int:
    """Return the 0-5 quality rating for a swipe.

    A wrong answer is always 0. A correct answer with no timing is assumed
    to be a good recall (4). Correct answers never score below 3, however
    slow they are.
    """
    if not correct:
        return QUALITY_FAILED
    if response_time_ms is None:
        return QUALITY_GOOD
    if response_time_ms < FAST_RESPONSE_MS:
        return QUALITY_PERFECT
    if response_time_ms < MEDIUM_RESPONSE_MS:
        return QUALITY_GOOD
    return QUALITY_BARELY


def classify_outcome(outcome: ReviewOutcome) -> int:
    """Classify a ReviewOutcome value."""
    return classify(outcome.correct, outcome.response_time_ms)
