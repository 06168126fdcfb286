"""Infrastructure module - HTTP client and rate limiting utilities."""

from trade_analyst.infrastructure.http_client import (
    aiohttp_session_manager,
    get_aiohttp_session,
    request_json,
    request_text,
)
from trade_analyst.infrastructure.rate_limiter import AsyncRateLimiter

__all__ = [
    "aiohttp_session_manager",
    "get_aiohttp_session",
    "request_json",
    "request_text",
    "AsyncRateLimiter",
]
