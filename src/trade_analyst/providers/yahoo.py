"""
Yahoo Finance quoteSummary client.

Keyless last-resort source for earnings, analyst trends, key statistics
and company profile. Yahoo frequently blocks anonymous clients, so any
401/403 or exhausted retry yields an empty summary instead of an error.
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Any

from trade_analyst.exceptions import DataFetchError
from trade_analyst.models import AnalystConsensus, EarningsCalendar, EarningsEvent
from trade_analyst.providers.base import BaseProvider, consensus_from_counts

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.2 Safari/605.1.15",
]


def _raw(node: dict[str, Any] | None) -> Any:
    return (node or {}).get("raw")


def _epoch_to_date(epoch: float) -> str:
    return datetime.fromtimestamp(epoch).strftime("%Y-%m-%d")


class YahooProvider(BaseProvider):
    name = "Yahoo Finance"
    base_url = "https://query1.finance.yahoo.com/v6/finance"

    def __init__(self, rate_limiter=None, retries: int = 2):
        super().__init__(api_key=None, rate_limiter=rate_limiter)
        self._retries = retries

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": random.choice(USER_AGENTS),
            "Accept": "application/json,text/html,application/xhtml+xml",
            "Accept-Language": "en-US,en;q=0.5",
        }

    async def _quote_summary(self, symbol: str, modules: list[str]) -> dict[str, Any]:
        """Return the first quoteSummary result, or {} when Yahoo refuses or keeps failing."""
        path = f"/quoteSummary/{symbol.upper()}"
        for attempt in range(self._retries):
            if attempt > 0:
                await asyncio.sleep(0.5 * attempt)
            try:
                data = await self._get(path, params={"modules": ",".join(modules)}, headers=self._headers())
                results = ((data or {}).get("quoteSummary") or {}).get("result") or []
                return results[0] if results else {}
            except DataFetchError as e:
                if " 401 " in f" {e} " or " 403 " in f" {e} ":
                    logger.info(f"[{self.name}] Auth error for {symbol}, API may be blocked")
                    return {}
                logger.warning(f"[{self.name}] Attempt {attempt + 1} failed for {symbol}: {e}")
        return {}

    async def get_earnings(self, symbol: str) -> EarningsCalendar:
        upper = symbol.upper()
        result = await self._quote_summary(upper, ["calendarEvents", "earnings"])
        upcoming: list[EarningsEvent] = []
        recent: list[EarningsEvent] = []

        calendar = (result.get("calendarEvents") or {}).get("earnings") or {}
        dates = calendar.get("earningsDate") or []
        if dates:
            now = datetime.now()
            upcoming.append(
                EarningsEvent(
                    symbol=upper,
                    report_date=_epoch_to_date(dates[0]["raw"]),
                    fiscal_quarter=f"Q{(now.month - 1) // 3 + 1}",
                    fiscal_year=now.year,
                    eps_estimate=_raw(calendar.get("earningsAverage")),
                    revenue_estimate=_raw(calendar.get("revenueAverage")),
                )
            )

        chart = (result.get("earnings") or {}).get("earningsChart") or {}
        for quarter in chart.get("quarterly") or []:
            label = quarter.get("date", "")
            actual, estimate = _raw(quarter.get("actual")), _raw(quarter.get("estimate"))
            year = label[-4:]
            recent.append(
                EarningsEvent(
                    symbol=upper,
                    report_date=label,
                    fiscal_quarter=label,
                    fiscal_year=int(year) if year.isdigit() else datetime.now().year,
                    eps_estimate=estimate,
                    eps_actual=actual,
                    eps_surprise=actual - estimate if actual and estimate else None,
                )
            )

        return EarningsCalendar(symbol=upper, upcoming=upcoming, recent=recent)

    async def get_analyst_ratings(self, symbol: str) -> AnalystConsensus:
        """Current-month recommendation trend and price targets."""
        upper = symbol.upper()
        result = await self._quote_summary(upper, ["recommendationTrend", "financialData"])

        trends = (result.get("recommendationTrend") or {}).get("trend") or []
        current = next((t for t in trends if t.get("period") == "0m"), trends[0] if trends else {})
        buy = (current.get("strongBuy") or 0) + (current.get("buy") or 0)
        hold = current.get("hold") or 0
        sell = (current.get("sell") or 0) + (current.get("strongSell") or 0)

        financial = result.get("financialData") or {}
        avg_target = _raw(financial.get("targetMeanPrice"))
        if avg_target is None:
            avg_target = _raw(financial.get("targetMedianPrice"))

        return AnalystConsensus(
            symbol=upper,
            buy_count=buy,
            hold_count=hold,
            sell_count=sell,
            avg_price_target=avg_target,
            high_price_target=_raw(financial.get("targetHighPrice")),
            low_price_target=_raw(financial.get("targetLowPrice")),
            consensus=consensus_from_counts(0, buy, hold, sell),
        )

    async def get_key_stats(self, symbol: str) -> dict[str, Any]:
        result = await self._quote_summary(symbol, ["summaryDetail", "calendarEvents"])
        detail = result.get("summaryDetail") or {}
        dividend = _raw(detail.get("dividendYield"))
        dates = ((result.get("calendarEvents") or {}).get("earnings") or {}).get("earningsDate") or []

        return {
            "market_cap": _raw(detail.get("marketCap")),
            "pe_ratio": _raw(detail.get("trailingPE")),
            "forward_pe": _raw(detail.get("forwardPE")),
            "beta": _raw(detail.get("beta")),
            "week_52_high": _raw(detail.get("fiftyTwoWeekHigh")),
            "week_52_low": _raw(detail.get("fiftyTwoWeekLow")),
            "dividend_yield": dividend * 100 if dividend else None,
            "next_earnings_date": _epoch_to_date(dates[0]["raw"]) if dates else None,
        }

    async def get_profile(self, symbol: str) -> dict[str, Any]:
        result = await self._quote_summary(symbol, ["summaryProfile", "price"])
        price = result.get("price") or {}
        profile = result.get("summaryProfile") or {}
        return {
            "company_name": price.get("longName") or price.get("shortName"),
            "sector": profile.get("sector"),
            "industry": profile.get("industry"),
            "full_time_employees": profile.get("fullTimeEmployees"),
            "description": profile.get("longBusinessSummary"),
            "website": profile.get("website"),
        }
