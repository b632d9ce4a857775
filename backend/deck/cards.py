"""Card content and session configuration types."""

import uuid
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from backend.models.card import CardRecord

CARD_TYPES = ("snippet", "quiz", "trivia")
DIFFICULTIES = ("easy", "medium", "hard", "god")

MAX_QUESTION_LENGTH = 500
MAX_ANSWER_LENGTH = 200
MAX_EXPLANATION_LENGTH = 400


class CardSource(Enum):
    """Where a card record came from."""

    GENERATED = "generated"
    BUNDLED = "bundled"
    SESSION_ADDED = "session-added"


def new_card_id() -> str:
    return f"card_{uuid.uuid4().hex[:16]}"


class Card(BaseModel):
    """The content of a flashcard, without scheduling state."""

    model_config = {"str_strip_whitespace": True}

    id: str = Field(default_factory=new_card_id)
    type: str
    lang: str
    difficulty: str
    question: str = Field(min_length=1, max_length=MAX_QUESTION_LENGTH)
    answer: str = Field(min_length=1, max_length=MAX_ANSWER_LENGTH)
    explanation: str = Field(min_length=1, max_length=MAX_EXPLANATION_LENGTH)
    taunt: str = ""
    topic: str | None = None

    @classmethod
    def from_record(cls, record: CardRecord) -> "Card":
        """Build the content view of a stored record without re-validating it."""
        return cls.model_construct(
            id=record.id,
            type=record.type,
            lang=record.lang,
            difficulty=record.difficulty,
            question=record.question,
            answer=record.answer,
            explanation=record.explanation,
            taunt=record.taunt or "",
            topic=record.topic,
        )


@dataclass
class Loadout:
    """Session configuration chosen by the player."""

    language: str
    difficulty: str
    topics: list[str] = field(default_factory=list)
    session_length: int = 10

    @property
    def key(self) -> tuple[str, str, tuple[str, ...]]:
        """Identity used to coalesce concurrent prefetches."""
        return (self.language, self.difficulty, tuple(sorted(self.topics)))
