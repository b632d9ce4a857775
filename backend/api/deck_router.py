"""API routes for the card supply pipeline."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from backend.api.dependencies import get_deck_service
from backend.api.schemas import (
    CardsResponse,
    FetchCardsRequest,
    LoadoutRequest,
    PrefetchResponse,
)
from backend.config import settings
from backend.deck.cards import Loadout
from backend.deck.service import DeckService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/deck", tags=["deck"])


def _to_loadout(request: LoadoutRequest) -> Loadout:
    return Loadout(
        language=request.language,
        difficulty=request.difficulty,
        topics=list(request.topics),
        session_length=request.session_length,
    )


@router.post("/fetch", response_model=CardsResponse)
async def fetch_cards(
    request: FetchCardsRequest,
    deck: DeckService = Depends(get_deck_service),
) -> CardsResponse:
    """Fetch cards for a session: cache, then generation, then the bundled deck."""
    cards = await deck.fetch_cards(_to_loadout(request.loadout), request.count)
    return CardsResponse(cards=cards, count=len(cards))


async def _run_prefetch(deck: DeckService, loadout: Loadout, count: int) -> None:
    result = await deck.prefetch_cards(loadout, count)
    if result.ok:
        logger.info("Background prefetch cached %d cards", len(result.cards))
    elif not result.skipped:
        logger.warning("Background prefetch failed: %s", result.error)


@router.post("/prefetch", response_model=PrefetchResponse, status_code=202)
async def prefetch_cards(
    request: LoadoutRequest,
    background_tasks: BackgroundTasks,
    count: int = Query(default=settings.prefetch_count, ge=1, le=50),
    deck: DeckService = Depends(get_deck_service),
) -> PrefetchResponse:
    """Schedule a background prefetch and return immediately."""
    background_tasks.add_task(_run_prefetch, deck, _to_loadout(request), count)
    return PrefetchResponse(status="scheduled", count=count)
