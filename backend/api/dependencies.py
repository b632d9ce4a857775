"""FastAPI dependency providers for the SRS services."""

from backend.database import async_session
from backend.deck.generator import LLMCardGenerator
from backend.deck.service import DeckService
from backend.llm_client import LLMClient
from backend.srs.scheduler import ReviewScheduler

# Shared across requests so the in-flight prefetch guard sees every prefetch.
_deck_service: DeckService | None = None


def get_scheduler() -> ReviewScheduler:
    """Return a review scheduler bound to the application database."""
    return ReviewScheduler(async_session)


def get_deck_service() -> DeckService:
    """Return the shared DeckService, creating it on first call."""
    global _deck_service
    if _deck_service is None:
        _deck_service = DeckService(async_session, LLMCardGenerator(LLMClient()))
    return _deck_service
