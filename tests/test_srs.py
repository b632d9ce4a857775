"""Tests for the SRS engine: SM-2 algorithm, swipe classifier, and session queue."""

import random

import pytest

from backend.config import DAY_MS
from backend.srs import sm2
from backend.srs.classifier import ReviewOutcome, classify, classify_outcome
from backend.srs.queue import SessionQueue
from backend.srs.sm2 import CardStatus, SRSState
from factories import T0, make_card

# --- SM-2 Algorithm ---


class TestSM2:
    def test_initial_state(self) -> None:
        state = sm2.initial_state()
        assert state == SRSState(interval=1, ease_factor=2.5, repetitions=0)

    def test_first_review_fast_correct(self) -> None:
        state = sm2.next_state(sm2.initial_state(), quality=5)
        assert state.repetitions == 1
        assert state.interval == 1
        assert state.ease_factor == pytest.approx(2.6)
        assert sm2.mastery_score(state) == 46
        assert sm2.lifecycle_status(state) == CardStatus.LEARNING

    def test_second_review_interval_six(self) -> None:
        state = sm2.next_state(sm2.initial_state(), quality=5)
        state = sm2.next_state(state, quality=4)
        assert state.repetitions == 2
        assert state.interval == 6
        # q=4 leaves ease unchanged
        assert state.ease_factor == pytest.approx(2.6)

    def test_third_review_multiplies_interval(self) -> None:
        state = SRSState(interval=6, ease_factor=2.6, repetitions=2)
        result = sm2.next_state(state, quality=5)
        assert result.ease_factor == pytest.approx(2.7)
        assert result.interval == 16  # round(6 * 2.7 = 16.2)
        assert result.repetitions == 3

    def test_failure_resets_schedule(self) -> None:
        state = SRSState(interval=6, ease_factor=2.6, repetitions=2)
        result = sm2.next_state(state, quality=0)
        assert result.interval == 1
        assert result.repetitions == 0
        assert result.ease_factor == pytest.approx(1.8)

    def test_quality_three_is_passing(self) -> None:
        state = SRSState(interval=6, ease_factor=2.5, repetitions=2)
        result = sm2.next_state(state, quality=3)
        assert result.repetitions == 3
        assert result.ease_factor == pytest.approx(2.36)
        assert result.interval == 14  # round(6 * 2.36 = 14.16)

    def test_quality_two_is_failure(self) -> None:
        state = SRSState(interval=30, ease_factor=2.5, repetitions=5)
        result = sm2.next_state(state, quality=2)
        assert result.interval == 1
        assert result.repetitions == 0

    def test_round_half_up(self) -> None:
        assert sm2.round_half_up(2.5) == 3
        assert sm2.round_half_up(3.5) == 4
        assert sm2.round_half_up(2.49) == 2

    def test_quality_clamped(self) -> None:
        state = sm2.initial_state()
        assert sm2.next_state(state, 9) == sm2.next_state(state, 5)
        assert sm2.next_state(state, -4) == sm2.next_state(state, 0)

    def test_ease_floor(self) -> None:
        rng = random.Random(42)
        for _ in range(200):
            state = sm2.initial_state()
            for _ in range(30):
                state = sm2.next_state(state, rng.randint(0, 5))
                assert state.ease_factor >= sm2.MIN_EASE

    def test_ease_floor_repeated_failures(self) -> None:
        state = sm2.initial_state()
        for _ in range(10):
            state = sm2.next_state(state, 0)
        assert state.ease_factor == pytest.approx(1.3)

    def test_failure_resets_from_any_state(self) -> None:
        for interval in (1, 6, 40, 365):
            for reps in (0, 1, 2, 12):
                for quality in (0, 1, 2):
                    state = SRSState(interval=interval, ease_factor=2.2, repetitions=reps)
                    result = sm2.next_state(state, quality)
                    assert result.interval == 1
                    assert result.repetitions == 0

    def test_success_growth(self) -> None:
        for interval in (1, 6, 15, 100):
            for ease in (1.3, 1.9, 2.5, 3.1):
                for quality in (3, 4, 5):
                    state = SRSState(interval=interval, ease_factor=ease, repetitions=3)
                    result = sm2.next_state(state, quality)
                    assert result.interval == sm2.round_half_up(interval * result.ease_factor)
                    assert result.interval >= interval

    def test_next_review_timestamp(self) -> None:
        assert sm2.next_review_timestamp(6, T0) == T0 + 6 * DAY_MS
        assert sm2.next_review_timestamp(0, T0) == T0 + DAY_MS


class TestMastery:
    def test_initial_mastery(self) -> None:
        assert sm2.mastery_score(sm2.initial_state()) == 40

    def test_mastery_bounds(self) -> None:
        for ease in (1.3, 1.5, 2.0, 2.5, 3.5):
            for reps in (0, 1, 5, 10, 50):
                score = sm2.mastery_score(SRSState(interval=1, ease_factor=ease, repetitions=reps))
                assert 0 <= score <= 100

    def test_mastery_extremes(self) -> None:
        assert sm2.mastery_score(SRSState(interval=1, ease_factor=1.3, repetitions=0)) == 0
        assert sm2.mastery_score(SRSState(interval=90, ease_factor=2.8, repetitions=12)) == 100

    def test_new_until_first_success(self) -> None:
        state = SRSState(interval=1, ease_factor=3.0, repetitions=0)
        assert sm2.lifecycle_status(state) == CardStatus.NEW

    def test_lifecycle_thresholds(self) -> None:
        assert sm2.lifecycle_status(SRSState(1, 1.3, 2)) == CardStatus.LEARNING  # 12
        assert sm2.lifecycle_status(SRSState(16, 2.7, 3)) == CardStatus.REVIEW  # 58
        assert sm2.lifecycle_status(SRSState(40, 2.5, 7)) == CardStatus.MASTERED  # 82

    def test_lifecycle_boundaries(self) -> None:
        # ease 1.3 contributes nothing, so mastery = 6 * reps
        assert sm2.mastery_score(SRSState(1, 1.3, 8)) == 48
        assert sm2.lifecycle_status(SRSState(1, 1.3, 8)) == CardStatus.LEARNING
        # ease 2.5 contributes 40: 40 + 6 * reps
        assert sm2.mastery_score(SRSState(1, 2.5, 7)) == 82
        assert sm2.mastery_score(SRSState(1, 2.5, 6)) == 76
        assert sm2.lifecycle_status(SRSState(1, 2.5, 6)) == CardStatus.REVIEW

    def test_lifecycle_is_pure(self) -> None:
        state = SRSState(interval=6, ease_factor=2.6, repetitions=2)
        assert sm2.lifecycle_status(state) == sm2.lifecycle_status(state)


# --- Swipe classifier ---


class TestClassifier:
    def test_wrong_is_zero(self) -> None:
        assert classify(False) == 0
        assert classify(False, 500) == 0

    def test_no_timing_is_good(self) -> None:
        assert classify(True) == 4

    def test_latency_bands(self) -> None:
        assert classify(True, 0) == 5
        assert classify(True, 2999) == 5
        assert classify(True, 3000) == 4
        assert classify(True, 6999) == 4
        assert classify(True, 7000) == 3
        assert classify(True, 60_000) == 3

    def test_faster_never_scores_lower(self) -> None:
        times = list(range(0, 20_000, 250))
        for t1, t2 in zip(times, times[1:]):
            assert classify(True, t1) >= classify(True, t2)

    def test_correct_never_fails(self) -> None:
        for t in (0, 1000, 5000, 10_000, 100_000):
            assert classify(True, t) >= 3

    def test_classify_outcome(self) -> None:
        assert classify_outcome(ReviewOutcome(correct=True, response_time_ms=2000)) == 5
        assert classify_outcome(ReviewOutcome(correct=False)) == 0


# --- Session Queue ---


class TestSessionQueue:
    def _cards(self, n: int, prefix: str = "card") -> list:
        return [make_card(f"{prefix}_{i}") for i in range(n)]

    def test_consume_in_order(self) -> None:
        queue = SessionQueue()
        queue.set_queue(self._cards(3))
        assert [queue.consume().id for _ in range(3)] == ["card_0", "card_1", "card_2"]
        assert queue.consume() is None
        assert queue.is_empty

    def test_empty_queue(self) -> None:
        queue = SessionQueue()
        assert queue.consume() is None
        assert queue.remaining == 0
        assert queue.needs_refill()

    def test_set_queue_rewinds(self) -> None:
        queue = SessionQueue()
        queue.set_queue(self._cards(4))
        queue.consume()
        queue.consume()
        queue.set_queue(self._cards(2, "other"))
        assert queue.cursor == 0
        assert queue.consume().id == "other_0"

    def test_needs_refill_at_low_water_mark(self) -> None:
        queue = SessionQueue(low_water_mark=3)
        queue.set_queue(self._cards(12))
        for _ in range(8):
            queue.consume()
        assert queue.remaining == 4
        assert not queue.needs_refill()
        queue.consume()
        assert queue.cursor == 9
        assert queue.remaining == 3
        assert queue.needs_refill()

    def test_add_cards_keeps_cursor(self) -> None:
        queue = SessionQueue(low_water_mark=3)
        queue.set_queue(self._cards(12))
        for _ in range(9):
            queue.consume()
        queue.add_cards(self._cards(5, "extra"))
        assert len(queue.cards) == 17
        assert queue.cursor == 9
        assert queue.remaining == 8
        assert not queue.needs_refill()

    def test_set_queue_copies_input(self) -> None:
        cards = self._cards(2)
        queue = SessionQueue()
        queue.set_queue(cards)
        queue.add_cards(self._cards(1, "extra"))
        assert len(cards) == 2
