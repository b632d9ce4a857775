"""Card supply pipeline: cache, then live generation, then the bundled deck.

``fetch_cards`` never fails because of the generator: when generation is
unavailable it degrades to bundled cards. ``prefetch_cards`` grows the cache
in the background and reports its outcome as a value instead of raising.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from sqlalchemy import case, delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.config import DAY_MS, Clock, now_ms, settings
from backend.database import store_session
from backend.deck.cards import Card, CardSource, Loadout
from backend.deck.generator import CardGenerator
from backend.deck.validators import validate_cards
from backend.errors import GeneratorError, StoreError
from backend.models.card import CardRecord
from backend.srs import sm2

logger = logging.getLogger(__name__)


@dataclass
class PrefetchResult:
    """Outcome of a background prefetch."""

    ok: bool
    cards: list[Card] = field(default_factory=list)
    error: str | None = None
    skipped: bool = False


class DeckService:
    """Supplies cards for game sessions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        generator: CardGenerator,
        clock: Clock = now_ms,
        generator_timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._generator = generator
        self._clock = clock
        self._generator_timeout = (
            settings.generator_timeout_seconds if generator_timeout is None else generator_timeout
        )
        self._prefetching: set[tuple] = set()

    async def fetch_cards(self, loadout: Loadout, count: int | None = None) -> list[Card]:
        """Return up to ``count`` cards for a session.

        Priority: fresh cached cards, then newly generated cards, then the
        bundled deck if generation fails.
        """
        if count is None:
            count = loadout.session_length or settings.default_session_length
        if count <= 0:
            return []

        cached = await self._get_cached_cards(loadout, count)
        if len(cached) >= count:
            logger.debug("Using %d cached cards", count)
            return cached[:count]

        needed = count - len(cached)
        previous_topics = sorted({c.topic for c in cached if c.topic})
        logger.debug("Generating %d new cards (%d cached)", needed, len(cached))
        try:
            generated = await self._generate(loadout, needed, previous_topics)
        except GeneratorError as exc:
            logger.warning("Card generation failed, using bundled deck: %s", exc)
            return await self._get_bundled_cards(loadout, count)

        try:
            await self._save_to_cache(generated)
        except StoreError:
            logger.exception("Failed to save %d generated cards to cache", len(generated))

        return (cached + generated)[:count]

    async def prefetch_cards(self, loadout: Loadout, count: int | None = None) -> PrefetchResult:
        """Generate and cache more cards without any cache-sufficiency check.

        Never raises; failures are described in the returned PrefetchResult.
        A prefetch already running for the same loadout causes this call to
        be skipped.
        """
        if count is None:
            count = settings.prefetch_count
        if count <= 0:
            return PrefetchResult(ok=True)
        key = loadout.key
        if key in self._prefetching:
            logger.debug("Prefetch already in flight for %s/%s", loadout.language, loadout.difficulty)
            return PrefetchResult(ok=False, skipped=True)

        self._prefetching.add(key)
        try:
            cards = await self._generate(loadout, count, [])
            await self._save_to_cache(cards)
        except (GeneratorError, StoreError) as exc:
            return PrefetchResult(ok=False, error=str(exc))
        finally:
            self._prefetching.discard(key)

        logger.debug("Prefetched %d cards", len(cards))
        return PrefetchResult(ok=True, cards=cards)

    async def clear_old_cache(self) -> int:
        """Delete generated cards older than the eviction window. Returns the count."""
        cutoff = self._clock() - settings.cache_eviction_days * DAY_MS
        stmt = delete(CardRecord).where(
            CardRecord.source == CardSource.GENERATED.value,
            CardRecord.created_at < cutoff,
        )
        async with store_session(self._session_factory) as db:
            result = await db.execute(stmt)
            await db.commit()
        deleted = result.rowcount or 0
        logger.info("Cleared %d cached cards older than %d days", deleted, settings.cache_eviction_days)
        return deleted

    async def _generate(
        self,
        loadout: Loadout,
        count: int,
        previous_topics: list[str],
    ) -> list[Card]:
        """Call the generator under a timeout and validate its output.

        Raises:
            GeneratorError: on generator failure, timeout, or no valid cards.
        """
        try:
            candidates = await asyncio.wait_for(
                self._generator.generate(
                    language=loadout.language,
                    topics=loadout.topics,
                    difficulty=loadout.difficulty,
                    count=count,
                    previous_topics=previous_topics,
                ),
                timeout=self._generator_timeout,
            )
        except TimeoutError as exc:
            raise GeneratorError(f"Generator timed out after {self._generator_timeout}s") from exc

        if not candidates:
            raise GeneratorError("Generator returned no cards")
        cards = validate_cards(candidates)
        if not cards:
            raise GeneratorError(f"No valid cards in {len(candidates)} generated")
        if len(cards) < len(candidates):
            logger.info("Dropped %d invalid generated cards", len(candidates) - len(cards))
        return cards[:count]

    async def _get_cached_cards(self, loadout: Loadout, limit: int) -> list[Card]:
        fresh_after = self._clock() - settings.cache_expiry_days * DAY_MS
        stmt = (
            select(CardRecord)
            .where(
                CardRecord.lang == loadout.language,
                CardRecord.difficulty == loadout.difficulty,
                CardRecord.source == CardSource.GENERATED.value,
                CardRecord.created_at >= fresh_after,
            )
            .limit(limit)
        )
        async with store_session(self._session_factory) as db:
            records = (await db.execute(stmt)).scalars().all()
        return [Card.from_record(r) for r in records]

    async def _get_bundled_cards(self, loadout: Loadout, limit: int) -> list[Card]:
        """Bundled cards for the language, matching difficulty first."""
        stmt = (
            select(CardRecord)
            .where(
                CardRecord.lang == loadout.language,
                CardRecord.source == CardSource.BUNDLED.value,
            )
            .order_by(
                case((CardRecord.difficulty == loadout.difficulty, 0), else_=1),
                CardRecord.id,
            )
            .limit(limit)
        )
        async with store_session(self._session_factory) as db:
            records = (await db.execute(stmt)).scalars().all()
        logger.info("Serving %d bundled %s cards", len(records), loadout.language)
        return [Card.from_record(r) for r in records]

    async def _save_to_cache(self, cards: list[Card]) -> None:
        """Insert generated cards as new records; ids already stored are skipped."""
        if not cards:
            return
        now = self._clock()
        state = sm2.initial_state()
        async with store_session(self._session_factory) as db:
            existing = set(
                (
                    await db.execute(
                        select(CardRecord.id).where(CardRecord.id.in_([c.id for c in cards]))
                    )
                ).scalars()
            )
            for card in cards:
                if card.id in existing:
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
                        source=CardSource.GENERATED.value,
                        ai_model=getattr(self._generator, "model_name", None),
                        created_at=now,
                        status=sm2.CardStatus.NEW.value,
                        mastery_score=sm2.mastery_score(state),
                        next_review=None,
                        interval_days=state.interval,
                        ease_factor=state.ease_factor,
                        repetitions=state.repetitions,
                    )
                )
            await db.commit()
        logger.debug("Saved %d cards to cache", len(cards) - len(existing))
