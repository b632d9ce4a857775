"""Async Anthropic LLM client with rate limiting and retries."""

import asyncio
import logging
import time
from collections import deque

import anthropic
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from backend.config import settings

logger = logging.getLogger(__name__)

# Transient failures worth retrying; auth and bad-request errors are not.
RETRYABLE_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


class LLMClient:
    """Wrapper around the async Anthropic API with rate limiting and retry logic."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_rpm: int | None = None,
    ) -> None:
        """Initialize the client; unset arguments fall back to settings."""
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key if api_key is not None else settings.anthropic_api_key,
            max_retries=0,
        )
        self.model = model or settings.anthropic_model
        self.max_rpm = max_rpm or settings.anthropic_rate_limit_rpm
        self._request_timestamps: deque[float] = deque()
        self.total_input_tokens = 0
        self.total_output_tokens = 0

    async def _enforce_rate_limit(self) -> None:
        now = time.monotonic()
        # Remove timestamps older than 60 seconds
        while self._request_timestamps and now - self._request_timestamps[0] > 60:
            self._request_timestamps.popleft()
        if len(self._request_timestamps) >= self.max_rpm:
            sleep_time = 60 - (now - self._request_timestamps[0])
            if sleep_time > 0:
                logger.info("Rate limit reached, sleeping %.1fs", sleep_time)
                await asyncio.sleep(sleep_time)
        self._request_timestamps.append(time.monotonic())

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(settings.anthropic_max_retries),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def create_message(
        self,
        prompt: str,
        system: str = "",
        max_tokens: int = 8192,
        temperature: float = 0.8,
    ) -> str:
        """Send a message to the LLM and return the response text."""
        await self._enforce_rate_limit()
        kwargs: dict = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        response = await self.client.messages.create(**kwargs)
        self.total_input_tokens += response.usage.input_tokens
        self.total_output_tokens += response.usage.output_tokens
        logger.debug(
            "Tokens used: %d in, %d out",
            response.usage.input_tokens,
            response.usage.output_tokens,
        )
        return "".join(block.text for block in response.content if block.type == "text")
