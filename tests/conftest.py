"""Shared fixtures: an isolated database per test and a fixed clock."""

import os
import tempfile
from pathlib import Path

# Point the app at a throwaway database before backend.config is imported.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="hackstack-tests-"))
os.environ.setdefault("HACKSTACK_DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from backend.models import Base  # noqa: E402
from factories import FakeClock  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database with the schema created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()
