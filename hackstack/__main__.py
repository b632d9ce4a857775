"""CLI interface for HackStack.

Usage:
    python -m hackstack seed [path]          Load the bundled fallback deck
    python -m hackstack due                  Show how many cards are due
    python -m hackstack stats                Show review statistics
    python -m hackstack play JS easy         Play a session, prefetching as the queue runs low
    python -m hackstack review               Review due cards in the terminal
    python -m hackstack sweep                Delete generated cards older than 30 days
"""

import argparse
import asyncio
import logging
import time
from pathlib import Path

from backend.config import settings
from backend.database import async_session, engine
from backend.deck.bundled import DEFAULT_BUNDLE_PATH, load_bundled_cards
from backend.deck.cards import DIFFICULTIES, Loadout
from backend.deck.generator import LLMCardGenerator
from backend.deck.service import DeckService
from backend.errors import GeneratorError
from backend.llm_client import LLMClient
from backend.models import Base
from backend.srs.queue import build_review_queue
from backend.srs.scheduler import ReviewScheduler
from backend.srs.session import GameSession


class _NoGenerator:
    """Stand-in generator for maintenance commands and for play without an API key."""

    model_name = None

    async def generate(self, *args, **kwargs) -> list[dict]:
        raise GeneratorError("Card generation is not available from the CLI")


async def ensure_db() -> None:
    """Create tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def cmd_seed(args: argparse.Namespace) -> None:
    """Load a bundled deck file into the database."""
    await ensure_db()
    path = Path(args.path) if args.path else DEFAULT_BUNDLE_PATH
    inserted = await load_bundled_cards(async_session, path)
    print(f"  Loaded {inserted} bundled cards from {path.name}")


async def cmd_due(args: argparse.Namespace) -> None:
    """Show how many cards are due."""
    await ensure_db()
    scheduler = ReviewScheduler(async_session)
    due = await scheduler.get_due_cards(args.limit)
    overdue = await scheduler.get_overdue_cards(args.limit)
    print(f"  {len(due)} cards due, {len(overdue)} overdue (showing up to {args.limit})")


async def cmd_stats(args: argparse.Namespace) -> None:
    """Show review statistics."""
    await ensure_db()
    stats = await ReviewScheduler(async_session).get_review_stats()

    print(f"\n  {settings.app_name} Review Statistics")
    print(f"  {'Due today:':<20} {stats.due_today}")
    print(f"  {'Overdue:':<20} {stats.overdue}")
    print(f"  {'Learning:':<20} {stats.learning}")
    print(f"  {'Mastered:':<20} {stats.mastered}")
    print()


async def cmd_sweep(args: argparse.Namespace) -> None:
    """Run the cache eviction sweep."""
    await ensure_db()
    deck = DeckService(async_session, _NoGenerator())
    deleted = await deck.clear_old_cache()
    print(f"  Deleted {deleted} cached cards older than {settings.cache_eviction_days} days")


async def cmd_review(args: argparse.Namespace) -> None:
    """Run an interactive review session: overdue cards first, then due cards."""
    await ensure_db()
    scheduler = ReviewScheduler(async_session)
    queue = await build_review_queue(scheduler, args.max_cards)

    if queue.remaining == 0:
        print("\nNo cards due for review. You're all caught up!")
        return

    total = queue.remaining
    print("\n  Review Session")
    print(f"  {total} cards\n")
    print("  Answer in your head, press enter to reveal, then y/n")
    print("  Type 'q' to quit\n")

    correct = 0
    reviewed = 0

    while (card := queue.consume()) is not None:
        print(f"  [{queue.cursor}/{total}] {card.lang} {card.difficulty} {card.type}")
        print(f"  {card.question}")

        start_time = time.time()
        if input("\n  (enter to reveal) ").strip().lower() == "q":
            print("\n  Session ended early.")
            break
        time_ms = int((time.time() - start_time) * 1000)

        print(f"  Answer: {card.answer}")
        print(f"  {card.explanation}")
        response = input("  Did you get it? [y/n]: ").strip().lower()
        if response == "q":
            print("\n  Session ended early.")
            break

        got_it = response.startswith("y")
        if got_it:
            correct += 1
        elif card.taunt:
            print(f"  {card.taunt}")

        result = await scheduler.record_review(card.id, got_it, time_ms)
        reviewed += 1
        print(f"  Next review in {result.state.interval} days ({result.status.value})\n")

    # Summary
    accuracy = correct / reviewed * 100 if reviewed else 0
    print("\n  Session Complete!")
    print(f"  Reviewed: {reviewed}  Correct: {correct}  Accuracy: {accuracy:.0f}%\n")


def _make_generator():
    if not settings.anthropic_api_key:
        return _NoGenerator()
    return LLMCardGenerator(LLMClient())


async def _ask(prompt: str) -> str:
    # Read input off the event loop so a background prefetch keeps running
    return (await asyncio.to_thread(input, prompt)).strip().lower()


async def cmd_play(args: argparse.Namespace) -> None:
    """Play a game session; the queue is topped up in the background as it runs low.

    Without an Anthropic API key the session is served from the bundled deck.
    """
    await ensure_db()
    await load_bundled_cards(async_session)

    loadout = Loadout(
        language=args.language,
        difficulty=args.difficulty,
        topics=args.topics or [],
        session_length=args.length,
    )
    session = GameSession(
        loadout=loadout,
        deck=DeckService(async_session, _make_generator()),
        scheduler=ReviewScheduler(async_session),
    )
    if await session.start() == 0:
        print(f"\nNo {args.language} cards available.")
        return

    print(f"\n  {settings.app_name}: {args.language} / {args.difficulty}")
    print("  Answer in your head, press enter to reveal, then y/n")
    print("  Type 'q' to quit\n")

    while True:
        card = session.next_card()
        if card is None and session.is_prefetching:
            await session.wait_for_prefetch()
            card = session.next_card()
        if card is None:
            break

        print(f"  [{session.stats.cards_served}] {card.type}: {card.question}")
        start_time = time.time()
        if await _ask("\n  (enter to reveal) ") == "q":
            print("\n  Session ended early.")
            break
        time_ms = int((time.time() - start_time) * 1000)

        print(f"  Answer: {card.answer}")
        print(f"  {card.explanation}")
        response = await _ask("  Did you get it? [y/n]: ")
        if response == "q":
            print("\n  Session ended early.")
            break

        got_it = response.startswith("y")
        if not got_it and card.taunt:
            print(f"  {card.taunt}")
        await session.record_answer(card, got_it, time_ms)
        print()

    stats = await session.end()
    answered = stats.correct + stats.wrong
    accuracy = stats.correct / answered * 100 if answered else 0
    print("\n  Session Complete!")
    print(f"  Served: {stats.cards_served}  Correct: {stats.correct}  Accuracy: {accuracy:.0f}%")
    if stats.failed_prefetches:
        print(f"  ({stats.failed_prefetches} background refills failed)")
    print()


def main() -> None:
    """Entry point for the HackStack CLI."""
    parser = argparse.ArgumentParser(
        prog="hackstack",
        description="HackStack spaced repetition tools",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    seed_parser = subparsers.add_parser("seed", help="Load the bundled fallback deck")
    seed_parser.add_argument("path", nargs="?", default=None, help="Bundle JSON file")

    due_parser = subparsers.add_parser("due", help="Show cards due for review")
    due_parser.add_argument("--limit", type=int, default=settings.review_batch_size)

    subparsers.add_parser("stats", help="Show review statistics")

    play_parser = subparsers.add_parser("play", help="Play a game session")
    play_parser.add_argument("language", choices=settings.supported_languages)
    play_parser.add_argument("difficulty", choices=DIFFICULTIES)
    play_parser.add_argument("--topic", dest="topics", action="append", help="Focus topic (repeatable)")
    play_parser.add_argument(
        "--length", type=int, default=settings.default_session_length, help="Initial session size"
    )

    review_parser = subparsers.add_parser("review", help="Review due cards")
    review_parser.add_argument(
        "--max-cards", type=int, default=settings.review_batch_size, help="Max cards per session"
    )

    subparsers.add_parser("sweep", help="Delete stale generated cards")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if not args.command:
        parser.print_help()
        return

    cmd_map = {
        "seed": cmd_seed,
        "due": cmd_due,
        "stats": cmd_stats,
        "play": cmd_play,
        "review": cmd_review,
        "sweep": cmd_sweep,
    }

    asyncio.run(cmd_map[args.command](args))


if __name__ == "__main__":
    main()
