"""
Multi-source resolution for earnings and analyst data.

Sources are tried in order (Benzinga, Finnhub, FMP, Yahoo Finance) and the
first non-empty answer wins. Every attempt is recorded so callers can tell
which provider answered and why the others did not.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from trade_analyst.models import AnalystConsensus, EarningsCalendar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Strategy = tuple[str, Callable[[], Awaitable[T]]]


@dataclass(slots=True)
class SourceAttempt:
    name: str
    status: str
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "status": self.status}
        if self.error:
            data["error"] = self.error
        return data


@dataclass(slots=True)
class UnifiedResult(Generic[T]):
    """Resolved data plus the trace of sources tried."""

    data: T
    sources: list[SourceAttempt] = field(default_factory=list)
    primary_source: str = "None"

    def meta(self) -> dict[str, Any]:
        return {"source": self.primary_source, "sources_tried": [s.to_dict() for s in self.sources]}


async def resolve_with_fallback(
    strategies: Sequence[Strategy],
    is_empty: Callable[[T], bool],
    default: T,
) -> UnifiedResult[T]:
    """
    Run strategies in order until one returns non-empty data.

    Never raises: a failing strategy is recorded as ``failed`` and an empty
    answer as ``success`` with "No data returned" before moving on.
    """
    attempts: list[SourceAttempt] = []
    for name, fetch in strategies:
        try:
            data = await fetch()
        except Exception as e:
            logger.warning(f"[Unified] {name} failed: {e}")
            attempts.append(SourceAttempt(name=name, status="failed", error=str(e) or type(e).__name__))
            continue

        if is_empty(data):
            logger.debug(f"[Unified] {name} returned no data")
            attempts.append(SourceAttempt(name=name, status="success", error="No data returned"))
            continue

        attempts.append(SourceAttempt(name=name, status="success"))
        return UnifiedResult(data=data, sources=attempts, primary_source=name)

    return UnifiedResult(data=default, sources=attempts, primary_source="None")


class UnifiedDataResolver:
    """Earnings and analyst-rating lookups across all configured providers."""

    def __init__(self, benzinga, finnhub, fmp, yahoo):
        self.benzinga = benzinga
        self.finnhub = finnhub
        self.fmp = fmp
        self.yahoo = yahoo

    async def get_unified_earnings(self, symbol: str) -> UnifiedResult[EarningsCalendar]:
        upper = symbol.upper()
        return await resolve_with_fallback(
            [
                ("Benzinga", lambda: self.benzinga.get_earnings_calendar(upper)),
                ("Finnhub", lambda: self.finnhub.get_earnings(upper)),
                ("Financial Modeling Prep", lambda: self.fmp.get_earnings(upper)),
                ("Yahoo Finance", lambda: self.yahoo.get_earnings(upper)),
            ],
            is_empty=EarningsCalendar.is_empty,
            default=EarningsCalendar(symbol=upper),
        )

    async def get_unified_analyst_ratings(self, symbol: str) -> UnifiedResult[AnalystConsensus]:
        upper = symbol.upper()
        return await resolve_with_fallback(
            [
                ("Benzinga", lambda: self.benzinga.get_analyst_ratings(upper)),
                ("Finnhub", lambda: self.finnhub.get_recommendations(upper)),
                ("Financial Modeling Prep", lambda: self.fmp.get_analyst_ratings(upper)),
                ("Yahoo Finance", lambda: self.yahoo.get_analyst_ratings(upper)),
            ],
            is_empty=AnalystConsensus.is_empty,
            default=AnalystConsensus(symbol=upper),
        )

    async def get_yahoo_fundamentals(self, symbol: str) -> dict[str, Any]:
        stats = await self.yahoo.get_key_stats(symbol)
        profile = await self.yahoo.get_profile(symbol)
        return {"symbol": symbol.upper(), **profile, **stats}
