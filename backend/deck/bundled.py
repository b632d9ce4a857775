"""Loading the static bundled deck used when card generation is unavailable."""

import json
import logging
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.config import Clock, now_ms
from backend.database import store_session
from backend.deck.cards import CardSource
from backend.deck.validators import validate_cards
from backend.models.card import CardRecord
from backend.srs import sm2

logger = logging.getLogger(__name__)

DEFAULT_BUNDLE_PATH = Path(__file__).resolve().parent / "bundled_cards.json"


async def load_bundled_cards(
    session_factory: async_sessionmaker[AsyncSession],
    path: Path = DEFAULT_BUNDLE_PATH,
    clock: Clock = now_ms,
) -> int:
    """Insert the cards from a bundle file as ``bundled`` records.

    The file holds ``{"cards": [...]}`` in the generator's format, each with
    a stable ``id``. Invalid entries and ids already stored are skipped.

    Returns:
        The number of records inserted.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    entries = data.get("cards", []) if isinstance(data, dict) else data
    cards = validate_cards(entries)
    if len(cards) < len(entries):
        logger.warning("Skipped %d invalid bundled cards", len(entries) - len(cards))

    now = clock()
    state = sm2.initial_state()
    inserted = 0
    async with store_session(session_factory) as db:
        existing = set((await db.execute(select(CardRecord.id))).scalars())
        for card in cards:
            if card.id in existing:
                logger.debug("Skipping already loaded bundled card %s", card.id)
                continue
            db.add(
                CardRecord(
                    id=card.id,
                    type=card.type,
                    lang=card.lang,
                    difficulty=card.difficulty,
                    question=card.question,
                    answer=card.answer,
                    explanation=card.explanation,
                    taunt=card.taunt,
                    topic=card.topic,
                    source=CardSource.BUNDLED.value,
                    created_at=now,
                    status=sm2.CardStatus.NEW.value,
                    mastery_score=sm2.mastery_score(state),
                    interval_days=state.interval,
                    ease_factor=state.ease_factor,
                    repetitions=state.repetitions,
                )
            )
            existing.add(card.id)
            inserted += 1
        await db.commit()

    logger.info("Loaded %d bundled cards from %s", inserted, path.name)
    return inserted
