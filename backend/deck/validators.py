"""Validation of generator output before it is cached or served.

Cards failing validation are dropped individually with a warning; the caller
decides whether an all-invalid batch is an error.
"""

import logging
import re
from collections.abc import Iterable

from pydantic import ValidationError

from backend.config import settings
from backend.deck.cards import CARD_TYPES, DIFFICULTIES, Card

logger = logging.getLogger(__name__)

PROFANITY_LIST = ["fuck", "shit", "damn", "bitch", "ass", "bastard", "crap"]
NEUTRAL_TAUNT = "That's not quite right. Let's try again."

MAX_SNIPPET_LENGTH = 1000


def contains_profanity(text: str) -> bool:
    return any(re.search(rf"\b{word}\b", text, re.IGNORECASE) for word in PROFANITY_LIST)


def check_snippet_syntax(code: str, lang: str) -> bool:
    """Cheap structural sanity check for code snippets.

    - JS/TS: opening and closing brackets are balanced in count
    - Python: no line is indented by an odd number of spaces
    - anything else: non-empty and shorter than 1000 characters
    """
    if lang in ("JS", "TS"):
        opens = len(re.findall(r"[{\[(]", code))
        closes = len(re.findall(r"[}\])]", code))
        return opens == closes

    if lang == "Python":
        indents = [len(line) - len(line.lstrip(" ")) for line in code.split("\n") if line.strip()]
        return all(indent % 2 == 0 for indent in indents)

    return 0 < len(code) < MAX_SNIPPET_LENGTH


def validate_card(data: object) -> Card | None:
    """Validate one candidate card.

    Args:
        data: A raw candidate, normally a dict decoded from generator JSON.

    Returns:
        The validated Card, or None if the candidate is rejected.
    """
    if not isinstance(data, dict):
        logger.warning("Rejected card: expected an object, got %s", type(data).__name__)
        return None

    card_type = data.get("type")
    if card_type not in CARD_TYPES:
        logger.warning("Rejected card: invalid type %r", card_type)
        return None
    lang = data.get("lang")
    if lang not in settings.supported_languages:
        logger.warning("Rejected card: invalid language %r", lang)
        return None
    difficulty = data.get("difficulty")
    if difficulty not in DIFFICULTIES:
        logger.warning("Rejected card: invalid difficulty %r", difficulty)
        return None

    fields = {
        key: data[key]
        for key in ("id", "type", "lang", "difficulty", "question", "answer", "explanation", "topic")
        if data.get(key) is not None
    }
    fields["taunt"] = data.get("taunt") or data.get("roast") or ""
    try:
        card = Card(**fields)
    except ValidationError as exc:
        logger.warning("Rejected card: %s", exc.errors()[0].get("msg", "invalid fields"))
        return None

    if contains_profanity(card.taunt):
        logger.warning("Profanity detected in taunt; replacing it")
        card.taunt = NEUTRAL_TAUNT

    if card.type == "snippet" and not check_snippet_syntax(card.question, card.lang):
        logger.warning("Rejected card: snippet failed %s syntax check", card.lang)
        return None

    return card


def validate_cards(candidates: Iterable[object]) -> list[Card]:
    """Validate a batch, keeping only the cards that pass."""
    return [card for card in (validate_card(c) for c in candidates) if card is not None]
