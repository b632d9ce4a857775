import time
from collections.abc import Callable
from pathlib import Path

from pydantic_settings import BaseSettings

DAY_MS = 24 * 60 * 60 * 1000

# Returns the current time as integer epoch milliseconds.
Clock = Callable[[], int]


def now_ms() -> int:
    """Return the current time in Unix-epoch milliseconds.

    Every persisted timestamp (``created_at``, ``next_review``) uses this
    unit, so the default clock injected into the scheduler and deck service
    is this function.
    """
    return int(time.time() * 1000)


class Settings(BaseSettings):
    app_name: str = "HackStack"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'hackstack.db'}"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_max_retries: int = 3
    anthropic_rate_limit_rpm: int = 50
    generator_timeout_seconds: float = 10.0
    supported_languages: list[str] = ["JS", "TS", "Python", "Go"]
    cache_expiry_days: int = 7
    cache_eviction_days: int = 30
    review_batch_size: int = 20
    overdue_batch_size: int = 50
    default_session_length: int = 10
    prefetch_count: int = 5
    low_water_mark: int = 3
    debug: bool = False

    model_config = {"env_prefix": "HACKSTACK_", "env_file": ".env"}


settings = Settings()
