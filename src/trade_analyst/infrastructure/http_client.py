"""Shared aiohttp ClientSession and JSON/text request helpers for provider clients."""

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

import aiohttp
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from trade_analyst.exceptions import DataFetchError, DataSourceUnavailableError, RateLimitError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "TradeAnalyst/0.1 (+https://github.com/trade-analyst)"

_session: aiohttp.ClientSession | None = None

# Transport-level failures worth retrying; HTTP status errors are not
RETRYABLE_ERRORS = (aiohttp.ClientConnectionError, asyncio.TimeoutError)


def get_aiohttp_session() -> aiohttp.ClientSession:
    """Get the shared aiohttp session (only valid inside aiohttp_session_manager)."""
    if _session is None:
        raise RuntimeError("aiohttp session not initialized. Use aiohttp_session_manager().")
    return _session


@asynccontextmanager
async def aiohttp_session_manager(
    timeout: float = 30.0,
    limit: int = 20,
    limit_per_host: int = 5,
) -> AsyncIterator[aiohttp.ClientSession]:
    """Process-lifetime aiohttp session shared by every provider client."""
    global _session

    _session = aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout),
        connector=aiohttp.TCPConnector(limit=limit, limit_per_host=limit_per_host),
        headers={"User-Agent": DEFAULT_USER_AGENT},
    )

    try:
        yield _session
    finally:
        await _session.close()
        _session = None


async def _raise_for_status(response: aiohttp.ClientResponse, source: str) -> None:
    if response.status < 400:
        return
    body = (await response.text())[:200]
    if response.status == 429:
        raise RateLimitError(f"{source} API error: 429 - rate limit exceeded")
    if response.status >= 500:
        raise DataSourceUnavailableError(f"{source} API error: {response.status} - {body}")
    raise DataFetchError(f"{source} API error: {response.status} - {body}")


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(RETRYABLE_ERRORS),
    before_sleep=before_sleep_log(logger, logging.WARNING),  # type: ignore[arg-type]
    reraise=True,
)
async def request_json(
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    source: str = "HTTP",
    timeout: float | None = None,
) -> Any:
    """GET a URL and decode the JSON body.

    Raises:
        RateLimitError: on HTTP 429
        DataSourceUnavailableError: on HTTP 5xx
        DataFetchError: on any other non-2xx status
    """
    session = get_aiohttp_session()
    request_timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
    clean_params = {k: str(v) for k, v in (params or {}).items() if v is not None}

    async with session.get(url, params=clean_params, headers=headers, timeout=request_timeout) as response:
        await _raise_for_status(response, source)
        return await response.json(content_type=None)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(RETRYABLE_ERRORS),
    before_sleep=before_sleep_log(logger, logging.WARNING),  # type: ignore[arg-type]
    reraise=True,
)
async def request_text(
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    source: str = "HTTP",
    timeout: float | None = None,
) -> str:
    """GET a URL and return the body as text (HTML pages, Atom feeds)."""
    session = get_aiohttp_session()
    request_timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
    clean_params = {k: str(v) for k, v in (params or {}).items() if v is not None}

    async with session.get(url, params=clean_params, headers=headers, timeout=request_timeout) as response:
        await _raise_for_status(response, source)
        return await response.text()
