"""Pydantic schemas for API request/response models."""

from pydantic import BaseModel, Field

from backend.deck.cards import Card

# --- Deck ---


class LoadoutRequest(BaseModel):
    """Session configuration sent by the client."""

    language: str
    difficulty: str
    topics: list[str] = Field(default_factory=list)
    session_length: int = Field(default=10, ge=1, le=50)


class FetchCardsRequest(BaseModel):
    """Request a batch of cards for a loadout."""

    loadout: LoadoutRequest
    count: int | None = Field(default=None, ge=1, le=50)


class CardsResponse(BaseModel):
    """A list of cards (content only)."""

    cards: list[Card]
    count: int


class PrefetchResponse(BaseModel):
    """Acknowledgement that a background prefetch was scheduled."""

    status: str
    count: int


# --- Review ---


class ReviewRequest(BaseModel):
    """A swipe result for a stored card."""

    correct: bool
    response_time_ms: int | None = Field(default=None, ge=0)


class ReviewResponse(BaseModel):
    """Scheduling values persisted after a review."""

    card_id: str
    quality: int
    interval_days: int
    ease_factor: float
    repetitions: int
    next_review: int
    mastery_score: int
    status: str


class AddToDeckResponse(BaseModel):
    """Result of adding a missed card to the review deck."""

    card_id: str
    inserted: bool
    review: ReviewResponse | None = None


class ReviewStatsResponse(BaseModel):
    """Review dashboard counts."""

    due_today: int
    overdue: int
    learning: int
    mastered: int
