"""In-memory card queues for game and review sessions.

The session queue is consumed one card at a time by gameplay and reports when
it is running low so a prefetch can top it up. The review queue builder
assembles the "boss rush" of overdue cards for a review session.
"""

import logging
from dataclasses import dataclass, field

from backend.config import settings
from backend.deck.cards import Card
from backend.srs.scheduler import ReviewScheduler

logger = logging.getLogger(__name__)


@dataclass
class SessionQueue:
    """Ordered cards plus a cursor pointing at the next card to serve."""

    cards: list[Card] = field(default_factory=list)
    cursor: int = 0
    low_water_mark: int = settings.low_water_mark

    @property
    def remaining(self) -> int:
        """Return the number of cards not yet served."""
        return len(self.cards) - self.cursor

    @property
    def is_empty(self) -> bool:
        return self.cursor >= len(self.cards)

    def set_queue(self, cards: list[Card]) -> None:
        """Replace the queue contents and rewind the cursor."""
        self.cards = list(cards)
        self.cursor = 0

    def consume(self) -> Card | None:
        """Return the next card and advance, or None when the queue is exhausted."""
        if self.cursor >= len(self.cards):
            return None
        card = self.cards[self.cursor]
        self.cursor += 1
        return card

    def needs_refill(self) -> bool:
        """True once the remaining count has dropped to the low-water mark."""
        return self.remaining <= self.low_water_mark

    def add_cards(self, cards: list[Card]) -> None:
        """Append cards to the tail without moving the cursor."""
        self.cards.extend(cards)


async def build_review_queue(
    scheduler: ReviewScheduler,
    limit: int | None = None,
) -> SessionQueue:
    """Build a review queue: overdue cards first, topped up with due cards.

    Args:
        scheduler: Review store adapter to query.
        limit: Maximum number of cards (defaults to the review batch size).

    Returns:
        A SessionQueue with no duplicate card ids.
    """
    if limit is None:
        limit = settings.review_batch_size
    overdue = await scheduler.get_overdue_cards(limit)
    cards = list(overdue)
    if len(cards) < limit:
        seen = {c.id for c in cards}
        for card in await scheduler.get_due_cards(limit):
            if len(cards) >= limit:
                break
            if card.id not in seen:
                cards.append(card)
                seen.add(card.id)

    logger.info(
        "Built review queue: %d overdue + %d due = %d total",
        len(overdue),
        len(cards) - len(overdue),
        len(cards),
    )
    queue = SessionQueue()
    queue.set_queue(cards)
    return queue
