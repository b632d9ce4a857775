"""Game session driver.

Coordinates the session queue, the deck service and the review scheduler
into the gameplay loop: serve a card, record the swipe, keep the queue fed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from backend.deck.cards import Card, Loadout
from backend.deck.service import DeckService, PrefetchResult
from backend.errors import StoreError
from backend.srs.queue import SessionQueue
from backend.srs.scheduler import ReviewResult, ReviewScheduler

logger = logging.getLogger(__name__)


@dataclass
class SessionStats:
    """Statistics for a game session."""

    cards_served: int = 0
    correct: int = 0
    wrong: int = 0
    cards_prefetched: int = 0
    failed_prefetches: int = 0
    average_time_ms: float = 0.0
    total_time_ms: int = 0
    timed_answers: int = 0


@dataclass
class GameSession:
    """An active game session for one loadout."""

    loadout: Loadout
    deck: DeckService
    scheduler: ReviewScheduler
    queue: SessionQueue = field(default_factory=SessionQueue)
    stats: SessionStats = field(default_factory=SessionStats)
    _prefetch_task: asyncio.Task | None = field(default=None, init=False, repr=False)

    @property
    def remaining(self) -> int:
        return self.queue.remaining

    @property
    def is_complete(self) -> bool:
        """True once every queued card has been served."""
        return self.queue.is_empty

    @property
    def is_prefetching(self) -> bool:
        return self._prefetch_task is not None and not self._prefetch_task.done()

    async def start(self) -> int:
        """Fill the queue with the initial batch and return its size."""
        cards = await self.deck.fetch_cards(self.loadout, self.loadout.session_length)
        self.queue.set_queue(cards)
        logger.info(
            "Started %s/%s session with %d cards",
            self.loadout.language,
            self.loadout.difficulty,
            len(cards),
        )
        return len(cards)

    def next_card(self) -> Card | None:
        """Serve the next card; trigger a background prefetch when running low.

        Returns None when the queue is exhausted. A prefetch may still be in
        flight then; callers can await ``wait_for_prefetch`` and ask again.
        """
        card = self.queue.consume()
        if card is None:
            return None
        self.stats.cards_served += 1
        if self.queue.needs_refill():
            self._schedule_prefetch()
        return card

    def _schedule_prefetch(self) -> None:
        if self.is_prefetching:
            return
        self._prefetch_task = asyncio.create_task(self._prefetch())

    async def _prefetch(self) -> PrefetchResult:
        result = await self.deck.prefetch_cards(self.loadout)
        if result.ok:
            self.queue.add_cards(result.cards)
            self.stats.cards_prefetched += len(result.cards)
            logger.info("Prefetch added %d cards (%d remaining)", len(result.cards), self.remaining)
        elif result.skipped:
            logger.debug("Prefetch skipped: another prefetch is in flight")
        else:
            self.stats.failed_prefetches += 1
            logger.warning("Prefetch failed: %s", result.error)
        return result

    async def wait_for_prefetch(self) -> PrefetchResult | None:
        """Await the in-flight prefetch, if any."""
        if self._prefetch_task is None:
            return None
        return await self._prefetch_task

    async def record_answer(
        self,
        card: Card,
        correct: bool,
        response_time_ms: int | None = None,
    ) -> ReviewResult | None:
        """Record a swipe against the review store.

        Correct answers update the card's schedule; wrong answers put the
        card into the review deck (inserting it if it was never stored).
        """
        if correct:
            self.stats.correct += 1
        else:
            self.stats.wrong += 1
        if response_time_ms is not None:
            self.stats.timed_answers += 1
            self.stats.total_time_ms += response_time_ms
            self.stats.average_time_ms = self.stats.total_time_ms / self.stats.timed_answers

        if correct:
            return await self.scheduler.record_review(card.id, True, response_time_ms)
        return await self.scheduler.add_to_review_deck(card)

    async def end(self) -> SessionStats:
        """Finish the session and run the cache eviction sweep.

        An outstanding prefetch is left to finish; its cards stay cached for
        future sessions.
        """
        try:
            await self.deck.clear_old_cache()
        except StoreError:
            logger.exception("Failed to clear old cache")
        logger.info(
            "Session ended: %d served, %d correct, %d wrong",
            self.stats.cards_served,
            self.stats.correct,
            self.stats.wrong,
        )
        return self.stats
