"""Financial Modeling Prep client: earnings history, price targets, ratings and profile."""

import asyncio
import logging
from datetime import datetime
from typing import Any

from trade_analyst.exceptions import DataFetchError
from trade_analyst.models import AnalystConsensus, AnalystRating, EarningsCalendar, EarningsEvent
from trade_analyst.providers.base import BaseProvider, summarize_targets, today_str

logger = logging.getLogger(__name__)

_REPORT_TIMES = {"bmo": "before_market", "amc": "after_market"}

# ratingRecommendation -> (consensus, buy, hold, sell)
_RATING_COUNTS = {
    "strong_buy": ("strong_buy", 5, 0, 0),
    "buy": ("buy", 4, 1, 0),
    "strong_sell": ("strong_sell", 0, 1, 4),
    "sell": ("sell", 0, 1, 4),
    "hold": ("hold", 1, 3, 1),
}


def _rating_key(recommendation: str) -> str:
    rec = recommendation.lower()
    if "strong buy" in rec:
        return "strong_buy"
    if "buy" in rec:
        return "buy"
    if "sell" in rec:
        return "strong_sell" if "strong" in rec else "sell"
    return "hold"


class FMPProvider(BaseProvider):
    name = "FMP"
    base_url = "https://financialmodelingprep.com/api/v3"
    api_key_env = "FMP_API_KEY"

    async def _fmp_get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        query = {"apikey": self._require_api_key(), **(params or {})}
        return await self._get(path, params=query)

    async def _fmp_list_or_empty(self, path: str) -> list[dict[str, Any]]:
        try:
            return await self._fmp_get(path) or []
        except DataFetchError as e:
            logger.debug(f"[{self.name}] {path} unavailable: {e}")
            return []

    async def get_earnings(self, symbol: str) -> EarningsCalendar:
        """Up to 5 upcoming and 8 most recent reports."""
        upper = symbol.upper()
        historical, upcoming = await asyncio.gather(
            self._fmp_get(f"/historical/earning_calendar/{upper}"),
            self._fmp_get("/earning_calendar", {"symbol": upper}),
        )
        today = today_str()

        upcoming_events = [self._map_earning(e) for e in upcoming or [] if e.get("date", "") >= today][:5]
        past = sorted((e for e in historical or [] if e.get("date", "") < today), key=lambda e: e["date"], reverse=True)
        return EarningsCalendar(
            symbol=upper,
            upcoming=upcoming_events,
            recent=[self._map_earning(e) for e in past][:8],
        )

    @staticmethod
    def _map_earning(item: dict[str, Any]) -> EarningsEvent:
        quarter = None
        year = None
        fiscal = item.get("fiscalDateEnding")
        if fiscal:
            try:
                fiscal_date = datetime.strptime(fiscal[:10], "%Y-%m-%d")
                quarter = f"Q{(fiscal_date.month - 1) // 3 + 1}"
                year = fiscal_date.year
            except ValueError:
                logger.debug(f"Unparseable fiscalDateEnding: {fiscal}")

        eps, eps_est = item.get("eps"), item.get("epsEstimated")
        revenue, revenue_est = item.get("revenue"), item.get("revenueEstimated")
        return EarningsEvent(
            symbol=item.get("symbol", ""),
            report_date=item.get("date", ""),
            fiscal_quarter=quarter,
            fiscal_year=year,
            eps_estimate=eps_est,
            eps_actual=eps,
            eps_surprise=eps - eps_est if eps and eps_est else None,
            revenue_estimate=revenue_est,
            revenue_actual=revenue,
            revenue_surprise=revenue - revenue_est if revenue and revenue_est else None,
            time=_REPORT_TIMES.get(item.get("time", "")),
        )

    async def get_analyst_ratings(self, symbol: str) -> AnalystConsensus:
        """
        Price targets plus FMP's own rating.

        FMP has no per-analyst tally, so the latest rating recommendation is
        mapped to representative buy/hold/sell counts.
        """
        upper = symbol.upper()
        price_targets, ratings = await asyncio.gather(
            self._fmp_list_or_empty(f"/price-target/{upper}"),
            self._fmp_list_or_empty(f"/rating/{upper}"),
        )

        recent_targets = price_targets[:20]
        targets = [t["priceTarget"] for t in recent_targets if (t.get("priceTarget") or 0) > 0]
        avg, high, low = summarize_targets(targets)

        consensus, buy, hold, sell = "hold", 0, 0, 0
        if ratings:
            consensus, buy, hold, sell = _RATING_COUNTS[_rating_key(ratings[0].get("ratingRecommendation") or "")]

        return AnalystConsensus(
            symbol=upper,
            ratings=[
                AnalystRating(
                    symbol=upper,
                    analyst=t.get("analystName") or "Unknown",
                    firm=t.get("analystCompany") or t.get("newsPublisher") or "Unknown",
                    rating="Price Target",
                    price_target=t.get("priceTarget"),
                    action="maintain",
                    date=t.get("publishedDate", ""),
                )
                for t in recent_targets[:10]
            ],
            buy_count=buy,
            hold_count=hold,
            sell_count=sell,
            avg_price_target=avg,
            high_price_target=high,
            low_price_target=low,
            consensus=consensus,
        )

    async def get_profile(self, symbol: str) -> dict[str, Any]:
        profiles = await self._fmp_get(f"/profile/{symbol.upper()}")
        profile = profiles[0] if profiles else {}
        return {
            "company_name": profile.get("companyName"),
            "sector": profile.get("sector"),
            "industry": profile.get("industry"),
            "description": profile.get("description"),
            "website": profile.get("website"),
            "market_cap": profile.get("mktCap"),
            "beta": profile.get("beta"),
        }
