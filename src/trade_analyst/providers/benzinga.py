"""Benzinga client: earnings calendar and analyst rating actions."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any

from trade_analyst.models import AnalystConsensus, AnalystRating, EarningsCalendar, EarningsEvent
from trade_analyst.providers.base import BaseProvider, consensus_from_counts, summarize_targets, to_float

logger = logging.getLogger(__name__)

_REPORT_TIMES = {
    "Before Open": "before_market",
    "After Close": "after_market",
    "During Market": "during_market",
}

_BUY_WORDS = ("buy", "outperform", "overweight")
_SELL_WORDS = ("sell", "underperform", "underweight")


def _rating_action(action_company: str) -> str:
    lowered = (action_company or "").lower()
    if "upgrade" in lowered:
        return "upgrade"
    if "downgrade" in lowered:
        return "downgrade"
    if "initiate" in lowered or "start" in lowered:
        return "initiate"
    return "maintain"


class BenzingaProvider(BaseProvider):
    name = "Benzinga"
    base_url = "https://api.benzinga.com/api/v2.1"
    api_key_env = "BENZINGA_API_KEY"

    async def _benzinga_get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        headers = {"Accept": "application/json", "X-BENZ-API-KEY": self._require_api_key()}
        return await self._get(path, params=params, headers=headers) or {}

    async def get_earnings_calendar(self, symbol: str) -> EarningsCalendar:
        """Earnings within 90 days either side of today."""
        upper = symbol.upper()
        now = datetime.now()
        today = now.strftime("%Y-%m-%d")

        upcoming_resp, recent_resp = await asyncio.gather(
            self._benzinga_get(
                "/calendar/earnings",
                {"tickers": upper, "date_from": today, "date_to": (now + timedelta(days=90)).strftime("%Y-%m-%d")},
            ),
            self._benzinga_get(
                "/calendar/earnings",
                {"tickers": upper, "date_from": (now - timedelta(days=90)).strftime("%Y-%m-%d"), "date_to": today},
            ),
        )

        return EarningsCalendar(
            symbol=upper,
            upcoming=[self._map_earning(e) for e in upcoming_resp.get("earnings") or []],
            recent=[self._map_earning(e) for e in recent_resp.get("earnings") or []],
        )

    @staticmethod
    def _map_earning(item: dict[str, Any]) -> EarningsEvent:
        return EarningsEvent(
            symbol=item.get("ticker", ""),
            report_date=item.get("date", ""),
            fiscal_quarter=item.get("period"),
            fiscal_year=item.get("period_year"),
            eps_estimate=to_float(item.get("eps_est")),
            eps_actual=to_float(item.get("eps_actual")),
            eps_surprise=to_float(item.get("eps_surprise")),
            revenue_estimate=to_float(item.get("revenue_est")),
            revenue_actual=to_float(item.get("revenue_actual")),
            revenue_surprise=to_float(item.get("revenue_surprise")),
            time=_REPORT_TIMES.get(item.get("time", "")),
        )

    async def get_analyst_ratings(self, symbol: str, limit: int = 10) -> AnalystConsensus:
        """Recent rating actions with a buy/hold/sell tally derived from the rating text."""
        upper = symbol.upper()
        response = await self._benzinga_get("/calendar/ratings", {"tickers": upper, "pagesize": limit})

        ratings = [
            AnalystRating(
                symbol=r.get("ticker", upper),
                analyst=r.get("analyst_name"),
                firm=r.get("analyst", ""),
                rating=r.get("rating_current") or "",
                rating_prior=r.get("rating_prior"),
                price_target=to_float(r.get("pt_current")),
                price_target_prior=to_float(r.get("pt_prior")),
                action=_rating_action(r.get("action_company", "")),
                date=r.get("date", ""),
            )
            for r in response.get("ratings") or []
        ]

        buy = hold = sell = 0
        for rating in ratings:
            lowered = rating.rating.lower()
            if any(word in lowered for word in _BUY_WORDS):
                buy += 1
            elif any(word in lowered for word in _SELL_WORDS):
                sell += 1
            else:
                hold += 1

        avg, high, low = summarize_targets([r.price_target for r in ratings if r.price_target])
        return AnalystConsensus(
            symbol=upper,
            ratings=ratings,
            buy_count=buy,
            hold_count=hold,
            sell_count=sell,
            avg_price_target=avg,
            high_price_target=high,
            low_price_target=low,
            consensus=consensus_from_counts(0, buy, hold, sell),
        )
