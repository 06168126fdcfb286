"""
Provider client base class.

Design Pattern: Strategy Pattern
- BaseProvider: shared API-key check, rate limiting and JSON GET helper
- Each subclass maps one vendor's JSON into the market data models
"""

import logging
from abc import ABC
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from trade_analyst.exceptions import ConfigurationError, DataFetchError
from trade_analyst.infrastructure.http_client import request_json, request_text
from trade_analyst.infrastructure.rate_limiter import AsyncRateLimiter

logger = logging.getLogger(__name__)


def to_float(value: Any, default: float | None = None) -> float | None:
    """Coerce vendor numbers (often strings) to float."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def today_str() -> str:
    return datetime.now().strftime("%Y-%m-%d")


def consensus_from_counts(strong_buy: int, buy: int, hold: int, sell: int, strong_sell: int = 0) -> str:
    """Map rating counts to a consensus label (70%/50% bullish or bearish share)."""
    total = strong_buy + buy + hold + sell + strong_sell
    if total <= 0:
        return "hold"
    bullish = (strong_buy + buy) / total
    bearish = (strong_sell + sell) / total
    if bullish >= 0.7:
        return "strong_buy"
    if bullish >= 0.5:
        return "buy"
    if bearish >= 0.7:
        return "strong_sell"
    if bearish >= 0.5:
        return "sell"
    return "hold"


def summarize_targets(targets: list[float]) -> tuple[float | None, float | None, float | None]:
    """Return (average, high, low) of the given price targets."""
    if not targets:
        return None, None, None
    return sum(targets) / len(targets), max(targets), min(targets)


class BaseProvider(ABC):
    """
    Abstract base class for market data provider clients (async).

    Responsibilities:
    1. Fail fast with ConfigurationError when the API key is missing
    2. Throttle calls through an optional rate limiter
    3. Wrap HTTP calls so every failure surfaces as a DataFetchError subclass
    """

    name: str = "BaseProvider"
    base_url: str = ""
    api_key_env: str | None = None

    def __init__(self, api_key: str | None = None, rate_limiter: AsyncRateLimiter | None = None):
        self._api_key = api_key
        self._rate_limiter = rate_limiter

    @property
    def is_configured(self) -> bool:
        return self.api_key_env is None or bool(self._api_key)

    def _require_api_key(self) -> str:
        if not self._api_key:
            raise ConfigurationError(f"{self.api_key_env} not configured")
        return self._api_key

    async def _enforce_rate_limit(self) -> None:
        if self._rate_limiter:
            await self._rate_limiter.acquire()

    async def _get(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """GET ``base_url + path`` and return decoded JSON."""
        await self._enforce_rate_limit()
        logger.debug(f"[{self.name}] GET {path}")
        try:
            return await request_json(f"{self.base_url}{path}", params=params, headers=headers, source=self.name)
        except DataFetchError:
            raise
        except Exception as e:
            logger.error(f"[{self.name}] Request to {path} failed: {e}")
            raise DataFetchError(f"{self.name} request failed: {e}") from e

    async def _get_text(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        await self._enforce_rate_limit()
        logger.debug(f"[{self.name}] GET {url}")
        try:
            return await request_text(url, params=params, headers=headers, source=self.name)
        except DataFetchError:
            raise
        except Exception as e:
            logger.error(f"[{self.name}] Request to {url} failed: {e}")
            raise DataFetchError(f"{self.name} request failed: {e}") from e
