"""Flashcard record with its SM-2 scheduling state."""

from sqlalchemy import BigInteger, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base
from backend.srs.sm2 import SRSState


class CardRecord(Base):
    """A coding-trivia card plus the review state owned by the scheduler.

    Timestamps are Unix-epoch milliseconds. ``next_review`` of ``None``
    means the card is due now.
    """

    __tablename__ = "cards"
    __table_args__ = (
        Index("ix_cards_status", "status"),
        Index("ix_cards_next_review", "next_review"),
        Index("ix_cards_lang_difficulty_source", "lang", "difficulty", "source"),
        Index("ix_cards_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    type: Mapped[str] = mapped_column(String(20), nullable=False)  # snippet, quiz, trivia
    lang: Mapped[str] = mapped_column(String(20), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)  # easy, medium, hard, god
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False)
    taunt: Mapped[str] = mapped_column(Text, nullable=False, default="")

    source: Mapped[str] = mapped_column(
        String(20), nullable=False, default="generated"
    )  # generated, bundled, session-added
    ai_model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    topic: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="new"
    )  # new, learning, review, mastered
    mastery_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_review: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    times_seen: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    times_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    times_wrong: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_response_time: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def srs_state(self) -> SRSState:
        """Return the stored scheduling state, falling back to SM-2 defaults."""
        return SRSState(
            interval=self.interval_days or 1,
            ease_factor=self.ease_factor or 2.5,
            repetitions=self.repetitions or 0,
        )
