"""Card generation via the LLM.

The deck service only depends on the ``CardGenerator`` protocol, so tests and
alternative backends can supply their own generator. Every failure mode of a
generator (network, auth, rate limit, malformed output) is reported as a
single ``GeneratorError``.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol

import anthropic

from backend.errors import GeneratorError
from backend.llm_client import LLMClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a witty, slightly sarcastic senior software engineer who loves teaching \
through interactive code challenges.

Personality:
- Encouraging but brutally honest about mistakes
- Use humor to make learning memorable
- Reference real-world developer pain points
- Keep explanations concise (2-3 sentences max)
- When users are wrong, roast them gently but constructively

Content guidelines:
- Generate syntactically correct, runnable code
- Use realistic variable names (not foo/bar)
- Include edge cases and gotchas
- Make "taunt" messages funny but educational
- Ensure diversity in topics within the same language

Respond with ONLY valid JSON, no markdown and no preamble, in this structure:
{"cards": [{"type": "snippet" | "quiz" | "trivia", "lang": "JS" | "TS" | "Python" | "Go", \
"difficulty": "easy" | "medium" | "hard" | "god", "topic": "short topic tag", \
"question": "code or question text", "answer": "correct answer", \
"explanation": "why this is correct", "taunt": "sarcastic but helpful comment for wrong answers"}]}"""

USER_PROMPT = """\
Generate {count} unique coding challenge cards for {language}.

Requirements:
- Difficulty level: {difficulty}
- {topics_line}
{avoid_line}
Card type distribution:
- 50% snippet (show code, ask for output/behavior)
- 30% quiz (multiple choice conceptual questions)
- 20% trivia (interesting language facts)

Length limits: question 500 characters, answer 200, explanation 400."""


class CardGenerator(Protocol):
    """Anything that can produce candidate cards for a loadout."""

    model_name: str | None

    async def generate(
        self,
        language: str,
        topics: list[str] | None,
        difficulty: str,
        count: int,
        previous_topics: list[str] | None = None,
    ) -> list[dict]:
        """Return raw candidate cards; raise GeneratorError on any failure."""
        ...


def build_user_prompt(
    language: str,
    topics: list[str] | None,
    difficulty: str,
    count: int,
    previous_topics: list[str] | None = None,
) -> str:
    topics_line = (
        f"Focus on these topics: {', '.join(topics)}"
        if topics
        else "Choose diverse fundamental topics"
    )
    avoid_line = (
        f"- Avoid these recently covered topics: {', '.join(previous_topics)}\n"
        if previous_topics
        else ""
    )
    return USER_PROMPT.format(
        count=count,
        language=language,
        difficulty=difficulty,
        topics_line=topics_line,
        avoid_line=avoid_line,
    )


def parse_cards_response(response: str) -> list[dict]:
    """Extract the ``cards`` array from an LLM response.

    Handles bare JSON and JSON wrapped in a markdown code fence.

    Raises:
        GeneratorError: if the response is empty, not JSON, or has no cards array.
    """
    text = response.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()

    if not text:
        raise GeneratorError("Received empty response from the generator")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.debug("Response was: %s", text[:500])
        raise GeneratorError("Generator response is not valid JSON") from exc

    cards = data.get("cards") if isinstance(data, dict) else None
    if not isinstance(cards, list):
        raise GeneratorError("Generator response has no cards array")
    return cards


class LLMCardGenerator:
    """Generates cards by prompting the Anthropic model."""

    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm
        self.model_name: str | None = llm.model

    async def generate(
        self,
        language: str,
        topics: list[str] | None,
        difficulty: str,
        count: int,
        previous_topics: list[str] | None = None,
    ) -> list[dict]:
        prompt = build_user_prompt(language, topics, difficulty, count, previous_topics)
        try:
            response = await self.llm.create_message(prompt=prompt, system=SYSTEM_PROMPT)
        except anthropic.AnthropicError as exc:
            raise GeneratorError(f"LLM request failed: {exc}") from exc

        cards = parse_cards_response(response)
        logger.info("Generated %d candidate %s/%s cards", len(cards), language, difficulty)
        return cards
