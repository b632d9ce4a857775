"""Review store adapter: due/overdue selection and review recording.

All scheduling state on a CardRecord is written here, and only from the
outputs of the SM-2 engine in ``backend.srs.sm2``.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.config import DAY_MS, Clock, now_ms, settings
from backend.database import store_session
from backend.deck.cards import Card, CardSource
from backend.errors import CardNotFoundError
from backend.models.card import CardRecord
from backend.srs import sm2
from backend.srs.classifier import ReviewOutcome, classify_outcome

logger = logging.getLogger(__name__)


@dataclass
class ReviewResult:
    """The outcome of recording one review."""

    card_id: str
    quality: int
    state: sm2.SRSState
    next_review: int
    mastery_score: int
    status: sm2.CardStatus


@dataclass
class ReviewStats:
    """Dashboard counts; not used for any scheduling decision."""

    due_today: int
    overdue: int
    learning: int
    mastered: int


def running_average(prev_avg: int | None, prev_count: int, sample: int) -> int:
    """Incremental mean of response times, rounded to whole milliseconds."""
    prev = prev_avg or 0
    return sm2.round_half_up((prev * prev_count + sample) / (prev_count + 1))


class ReviewScheduler:
    """Reads and updates card review state in the record store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = now_ms,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def get_due_cards(self, limit: int | None = None) -> list[Card]:
        """Cards due now: past their review time, never scheduled, or still new."""
        if limit is None:
            limit = settings.review_batch_size
        if limit <= 0:
            return []
        now = self._clock()
        stmt = (
            select(CardRecord)
            .where(
                or_(
                    CardRecord.next_review <= now,
                    CardRecord.next_review.is_(None),
                    CardRecord.status == sm2.CardStatus.NEW.value,
                )
            )
            .limit(limit)
        )
        async with store_session(self._session_factory) as db:
            records = (await db.execute(stmt)).scalars().all()
        return [Card.from_record(r) for r in records]

    async def get_overdue_cards(self, limit: int | None = None) -> list[Card]:
        """Cards more than a day past their review time, most overdue first."""
        if limit is None:
            limit = settings.overdue_batch_size
        if limit <= 0:
            return []
        cutoff = self._clock() - DAY_MS
        stmt = (
            select(CardRecord)
            .where(CardRecord.next_review <= cutoff)
            .order_by(CardRecord.next_review.asc())
            .limit(limit)
        )
        async with store_session(self._session_factory) as db:
            records = (await db.execute(stmt)).scalars().all()
        return [Card.from_record(r) for r in records]

    async def record_review(
        self,
        card_id: str,
        correct: bool,
        response_time_ms: int | None = None,
    ) -> ReviewResult:
        """Apply a swipe result to a stored card.

        Args:
            card_id: Id of an existing card.
            correct: Whether the player answered correctly.
            response_time_ms: Optional answer latency.

        Returns:
            The new scheduling values that were persisted.

        Raises:
            CardNotFoundError: if no card with this id exists.
        """
        async with store_session(self._session_factory) as db:
            record = await db.get(CardRecord, card_id)
            if record is None:
                raise CardNotFoundError(card_id)
            result = self._apply_review(
                record, ReviewOutcome(correct=correct, response_time_ms=response_time_ms)
            )
            await db.commit()

        logger.debug(
            "Recorded review for %s: q=%d interval=%d ease=%.2f reps=%d status=%s",
            card_id,
            result.quality,
            result.state.interval,
            result.state.ease_factor,
            result.state.repetitions,
            result.status.value,
        )
        return result

    def _apply_review(self, record: CardRecord, outcome: ReviewOutcome) -> ReviewResult:
        now = self._clock()
        quality = classify_outcome(outcome)
        state = sm2.next_state(record.srs_state(), quality)
        next_review = sm2.next_review_timestamp(state.interval, now)
        mastery = sm2.mastery_score(state)
        status = sm2.lifecycle_status(state)

        prev_seen = record.times_seen or 0
        if outcome.response_time_ms is not None:
            record.avg_response_time = running_average(
                record.avg_response_time, prev_seen, outcome.response_time_ms
            )
        record.times_seen = prev_seen + 1
        if outcome.correct:
            record.times_correct = (record.times_correct or 0) + 1
        else:
            record.times_wrong = (record.times_wrong or 0) + 1

        record.interval_days = state.interval
        record.ease_factor = state.ease_factor
        record.repetitions = state.repetitions
        record.next_review = next_review
        record.mastery_score = mastery
        record.status = status.value

        return ReviewResult(
            card_id=record.id,
            quality=quality,
            state=state,
            next_review=next_review,
            mastery_score=mastery,
            status=status,
        )

    async def add_to_review_deck(self, card: Card) -> ReviewResult | None:
        """Schedule a card the player just missed.

        A card already in the store gets a failed review recorded. An unknown
        card (e.g. one generated only for this session) is inserted in the
        learning state with one wrong answer on its counters.

        Returns:
            The ReviewResult for an existing card, or None for a new insert.
        """
        async with store_session(self._session_factory) as db:
            record = await db.get(CardRecord, card.id)
            if record is not None:
                result = self._apply_review(record, ReviewOutcome(correct=False))
                await db.commit()
                logger.info("Re-failed card %s in review deck", card.id)
                return result

            now = self._clock()
            state = sm2.initial_state()
            db.add(
                CardRecord(
                    id=card.id,
                    type=card.type,
                    lang=card.lang,
                    difficulty=card.difficulty,
                    question=card.question,
                    answer=card.answer,
                    explanation=card.explanation,
                    taunt=card.taunt or "",
                    topic=card.topic,
                    source=CardSource.SESSION_ADDED.value,
                    created_at=now,
                    status=sm2.CardStatus.LEARNING.value,
                    mastery_score=sm2.mastery_score(state),
                    next_review=sm2.next_review_timestamp(state.interval, now),
                    interval_days=state.interval,
                    ease_factor=state.ease_factor,
                    repetitions=state.repetitions,
                    times_seen=1,
                    times_correct=0,
                    times_wrong=1,
                )
            )
            await db.commit()

        logger.info("Added card %s to review deck", card.id)
        return None

    async def get_review_stats(self) -> ReviewStats:
        """Return due/overdue/learning/mastered counts."""
        now = self._clock()
        predicates = {
            "due_today": CardRecord.next_review <= now,
            "overdue": CardRecord.next_review <= now - DAY_MS,
            "learning": CardRecord.status == sm2.CardStatus.LEARNING.value,
            "mastered": CardRecord.status == sm2.CardStatus.MASTERED.value,
        }
        counts: dict[str, int] = {}
        async with store_session(self._session_factory) as db:
            for name, predicate in predicates.items():
                stmt = select(func.count(CardRecord.id)).where(predicate)
                counts[name] = (await db.execute(stmt)).scalar() or 0
        return ReviewStats(**counts)
