"""Tests for the deck and review HTTP endpoints."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backend.api.dependencies import get_deck_service, get_scheduler
from backend.config import DAY_MS
from backend.database import async_session
from backend.deck.service import DeckService
from backend.main import app, lifespan
from backend.srs.scheduler import ReviewScheduler
from factories import T0, FailingGenerator, FakeGenerator, add_records, get_record, make_candidate, make_record


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator([make_candidate(question=f"API question {i}?") for i in range(10)])


@pytest_asyncio.fixture
async def client(session_factory, clock, generator):
    deck = DeckService(session_factory, generator, clock=clock)
    app.dependency_overrides[get_scheduler] = lambda: ReviewScheduler(session_factory, clock=clock)
    app.dependency_overrides[get_deck_service] = lambda: deck
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class TestDeckEndpoints:
    @pytest.mark.asyncio
    async def test_fetch(self, client, generator) -> None:
        response = await client.post(
            "/api/deck/fetch",
            json={"loadout": {"language": "JS", "difficulty": "easy"}, "count": 3},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 3
        assert data["cards"][0]["question"] == "API question 0?"
        assert "ease_factor" not in data["cards"][0]
        assert generator.calls[0]["count"] == 3

    @pytest.mark.asyncio
    async def test_fetch_defaults_to_session_length(self, client) -> None:
        response = await client.post(
            "/api/deck/fetch",
            json={"loadout": {"language": "JS", "difficulty": "easy", "session_length": 4}},
        )
        assert response.json()["count"] == 4

    @pytest.mark.asyncio
    async def test_fetch_rejects_bad_count(self, client) -> None:
        response = await client.post(
            "/api/deck/fetch",
            json={"loadout": {"language": "JS", "difficulty": "easy"}, "count": 0},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_prefetch_runs_in_background(self, client, generator, session_factory) -> None:
        response = await client.post(
            "/api/deck/prefetch?count=2",
            json={"language": "JS", "difficulty": "easy", "topics": ["closures"]},
        )
        assert response.status_code == 202
        assert response.json() == {"status": "scheduled", "count": 2}
        assert generator.calls[0]["topics"] == ["closures"]
        assert generator.calls[0]["count"] == 2


class TestReviewEndpoints:
    @pytest.mark.asyncio
    async def test_record_review(self, client, session_factory) -> None:
        await add_records(session_factory, make_record("c1"))
        response = await client.post("/api/review/c1", json={"correct": True, "response_time_ms": 2000})

        assert response.status_code == 200
        data = response.json()
        assert data["quality"] == 5
        assert data["interval_days"] == 1
        assert data["repetitions"] == 1
        assert data["next_review"] == T0 + DAY_MS
        assert data["mastery_score"] == 46
        assert data["status"] == "learning"

    @pytest.mark.asyncio
    async def test_record_review_unknown_card(self, client) -> None:
        response = await client.post("/api/review/missing", json={"correct": True})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_add_to_review_deck(self, client, session_factory) -> None:
        card = make_candidate(id="missed_1", topic="types")
        response = await client.post("/api/review/deck", json=card)

        assert response.status_code == 200
        assert response.json() == {"card_id": "missed_1", "inserted": True, "review": None}
        record = await get_record(session_factory, "missed_1")
        assert record.status == "learning"
        assert record.times_wrong == 1

        again = await client.post("/api/review/deck", json=card)
        data = again.json()
        assert data["inserted"] is False
        assert data["review"]["quality"] == 0

    @pytest.mark.asyncio
    async def test_due_and_overdue(self, client, session_factory) -> None:
        await add_records(
            session_factory,
            make_record("overdue", status="review", next_review=T0 - 3 * DAY_MS),
            make_record("due", status="review", next_review=T0 - 1000),
            make_record("later", status="review", next_review=T0 + DAY_MS),
        )
        due = (await client.get("/api/review/due")).json()
        overdue = (await client.get("/api/review/overdue")).json()

        assert {c["id"] for c in due["cards"]} == {"overdue", "due"}
        assert [c["id"] for c in overdue["cards"]] == ["overdue"]

    @pytest.mark.asyncio
    async def test_stats(self, client, session_factory) -> None:
        await add_records(
            session_factory,
            make_record("m1", status="mastered", next_review=T0 + 20 * DAY_MS),
            make_record("l1", status="learning", next_review=T0 - 2 * DAY_MS),
        )
        response = await client.get("/api/review/stats")
        assert response.json() == {"due_today": 1, "overdue": 1, "learning": 1, "mastered": 1}


class TestStoreUnavailable:
    @pytest.mark.asyncio
    async def test_store_error_is_503(self, clock) -> None:
        engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
        broken = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        app.dependency_overrides[get_scheduler] = lambda: ReviewScheduler(broken, clock=clock)
        try:
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                response = await client.get("/api/review/stats")
        finally:
            app.dependency_overrides.clear()
            await engine.dispose()
        assert response.status_code == 503


class TestQueryValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url",
        ["/api/review/due?limit=0", "/api/review/overdue?limit=-1", "/api/review/overdue?limit=1000"],
    )
    async def test_limit_bounds(self, client, url: str) -> None:
        response = await client.get(url)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_prefetch_count_bounds(self, client, generator) -> None:
        response = await client.post(
            "/api/deck/prefetch?count=0", json={"language": "JS", "difficulty": "easy"}
        )
        assert response.status_code == 422
        assert generator.calls == []


class TestStartup:
    @pytest.mark.asyncio
    async def test_bundled_deck_served_when_generator_down(self) -> None:
        app.dependency_overrides[get_deck_service] = lambda: DeckService(
            async_session, FailingGenerator()
        )
        try:
            async with lifespan(app):
                transport = ASGITransport(app=app)
                async with AsyncClient(transport=transport, base_url="http://test") as client:
                    response = await client.post(
                        "/api/deck/fetch",
                        json={"loadout": {"language": "JS", "difficulty": "easy"}},
                    )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 5
        assert all(card["lang"] == "JS" for card in data["cards"])
        assert [card["difficulty"] for card in data["cards"][:3]] == ["easy", "easy", "easy"]
