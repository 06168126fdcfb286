"""Async token bucket rate limiter for provider API calls."""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class AsyncRateLimiter:
    """
    Token bucket rate limiter for async context.

    Usage:
        limiter = AsyncRateLimiter(rate=5.0, burst=5, name="polygon")
        async with limiter:
            data = await request_json(url)
    """

    def __init__(self, rate: float, burst: int = 1, name: str = "default"):
        """
        Args:
            rate: Tokens per second (QPS)
            burst: Max burst capacity (bucket size)
            name: Label used in log messages
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.name = name
        self._rate = rate
        self._burst = burst
        self._tokens = float(burst)
        self._last_update = time.monotonic()
        self._lock = asyncio.Lock()

    @classmethod
    def per_minute(cls, calls: int, name: str = "default") -> "AsyncRateLimiter":
        """Build a limiter from a calls-per-minute quota (burst equals the quota)."""
        return cls(rate=calls / 60.0, burst=max(1, calls), name=name)

    @property
    def available_tokens(self) -> float:
        elapsed = time.monotonic() - self._last_update
        return min(self._burst, self._tokens + elapsed * self._rate)

    async def acquire(self) -> None:
        """Acquire a token, waiting if necessary."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_update
            self._tokens = min(self._burst, self._tokens + elapsed * self._rate)
            self._last_update = now

            if self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self._rate
                logger.debug(f"[{self.name}] Rate limited, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
                self._tokens = 0.0
                self._last_update = time.monotonic()
            else:
                self._tokens -= 1.0

    async def __aenter__(self) -> "AsyncRateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None
