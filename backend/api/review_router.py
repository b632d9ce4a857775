"""API routes for review scheduling and the review dashboard."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.api.dependencies import get_scheduler
from backend.api.schemas import (
    AddToDeckResponse,
    CardsResponse,
    ReviewRequest,
    ReviewResponse,
    ReviewStatsResponse,
)
from backend.deck.cards import Card
from backend.errors import CardNotFoundError
from backend.srs.scheduler import ReviewResult, ReviewScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/review", tags=["review"])


def _to_response(result: ReviewResult) -> ReviewResponse:
    return ReviewResponse(
        card_id=result.card_id,
        quality=result.quality,
        interval_days=result.state.interval,
        ease_factor=result.state.ease_factor,
        repetitions=result.state.repetitions,
        next_review=result.next_review,
        mastery_score=result.mastery_score,
        status=result.status.value,
    )


@router.get("/due", response_model=CardsResponse)
async def due_cards(
    limit: int = Query(default=20, ge=1, le=100),
    scheduler: ReviewScheduler = Depends(get_scheduler),
) -> CardsResponse:
    """Cards due for review now, including never-scheduled and new cards."""
    cards = await scheduler.get_due_cards(limit)
    return CardsResponse(cards=cards, count=len(cards))


@router.get("/overdue", response_model=CardsResponse)
async def overdue_cards(
    limit: int = Query(default=50, ge=1, le=200),
    scheduler: ReviewScheduler = Depends(get_scheduler),
) -> CardsResponse:
    """Cards more than a day past due."""
    cards = await scheduler.get_overdue_cards(limit)
    return CardsResponse(cards=cards, count=len(cards))


@router.get("/stats", response_model=ReviewStatsResponse)
async def review_stats(
    scheduler: ReviewScheduler = Depends(get_scheduler),
) -> ReviewStatsResponse:
    """Due, overdue, learning and mastered counts for the dashboard."""
    stats = await scheduler.get_review_stats()
    return ReviewStatsResponse(
        due_today=stats.due_today,
        overdue=stats.overdue,
        learning=stats.learning,
        mastered=stats.mastered,
    )


@router.post("/deck", response_model=AddToDeckResponse)
async def add_to_review_deck(
    card: Card,
    scheduler: ReviewScheduler = Depends(get_scheduler),
) -> AddToDeckResponse:
    """Add a missed card to the review deck (or re-fail it if already stored)."""
    result = await scheduler.add_to_review_deck(card)
    return AddToDeckResponse(
        card_id=card.id,
        inserted=result is None,
        review=_to_response(result) if result is not None else None,
    )


@router.post("/{card_id}", response_model=ReviewResponse)
async def record_review(
    card_id: str,
    request: ReviewRequest,
    scheduler: ReviewScheduler = Depends(get_scheduler),
) -> ReviewResponse:
    """Record a swipe result for a stored card."""
    try:
        result = await scheduler.record_review(card_id, request.correct, request.response_time_ms)
    except CardNotFoundError:
        logger.warning("Review recorded for unknown card %s", card_id)
        raise HTTPException(status_code=404, detail="Card not found") from None
    return _to_response(result)
