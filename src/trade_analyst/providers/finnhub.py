"""Finnhub client: options chains, earnings calendar and analyst recommendations."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any

from trade_analyst.exceptions import DataFetchError
from trade_analyst.models import (
    AnalystConsensus,
    EarningsCalendar,
    EarningsEvent,
    OptionContract,
    OptionsChain,
)
from trade_analyst.providers.base import BaseProvider, consensus_from_counts, today_str

logger = logging.getLogger(__name__)


class FinnhubProvider(BaseProvider):
    name = "Finnhub"
    base_url = "https://finnhub.io/api/v1"
    api_key_env = "FINNHUB_API_KEY"

    async def _finnhub_get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        query = {"token": self._require_api_key(), **(params or {})}
        return await self._get(path, params=query)

    async def get_quote_price(self, symbol: str) -> float:
        response = await self._finnhub_get("/quote", {"symbol": symbol.upper()})
        return float(response.get("c") or 0.0)

    async def get_options_chain(self, symbol: str, expiration_date: str | None = None) -> OptionsChain:
        """
        Fetch the options chain for the nearest expiration, or ``expiration_date`` when listed.

        Args:
            symbol: Underlying ticker
            expiration_date: Optional YYYY-MM-DD expiration filter

        Returns:
            OptionsChain with calls/puts for the selected expiration and all available dates
        """
        upper = symbol.upper()
        underlying_price = await self.get_quote_price(upper)
        response = await self._finnhub_get("/stock/option-chain", {"symbol": upper})

        data = response.get("data") or []
        if not data:
            return OptionsChain(symbol=upper, underlying_price=underlying_price, timestamp=datetime.now().isoformat())

        selected = data[0]
        if expiration_date:
            selected = next((d for d in data if d.get("expirationDate") == expiration_date), selected)

        options = selected.get("options") or {}
        return OptionsChain(
            symbol=upper,
            underlying_price=underlying_price,
            expiration_dates=[d.get("expirationDate", "") for d in data],
            calls=[self._map_option(o, upper, "call") for o in options.get("CALL") or []],
            puts=[self._map_option(o, upper, "put") for o in options.get("PUT") or []],
            timestamp=datetime.now().isoformat(),
        )

    @staticmethod
    def _map_option(opt: dict[str, Any], underlying: str, option_type: str) -> OptionContract:
        return OptionContract(
            symbol=opt.get("contractName", ""),
            underlying=underlying,
            expiration=opt.get("expirationDate", ""),
            strike=opt.get("strike", 0.0),
            option_type=option_type,
            bid=opt.get("bid") or 0.0,
            ask=opt.get("ask") or 0.0,
            last=opt.get("lastPrice") or 0.0,
            volume=opt.get("volume") or 0,
            open_interest=opt.get("openInterest") or 0,
            implied_volatility=opt.get("impliedVolatility"),
            delta=opt.get("delta"),
            gamma=opt.get("gamma"),
            theta=opt.get("theta"),
            vega=opt.get("vega"),
            in_the_money=bool(opt.get("inTheMoney")),
        )

    async def get_earnings(self, symbol: str) -> EarningsCalendar:
        """Earnings from six months back to three months ahead, split around today."""
        upper = symbol.upper()
        now = datetime.now()
        response = await self._finnhub_get(
            "/calendar/earnings",
            {
                "symbol": upper,
                "from": (now - timedelta(days=182)).strftime("%Y-%m-%d"),
                "to": (now + timedelta(days=91)).strftime("%Y-%m-%d"),
            },
        )
        today = today_str()
        upcoming: list[EarningsEvent] = []
        recent: list[EarningsEvent] = []

        for item in (response or {}).get("earningsCalendar") or []:
            date = item.get("date", "")
            quarter = f"Q{item['quarter']}" if item.get("quarter") else None
            if date >= today:
                upcoming.append(
                    EarningsEvent(
                        symbol=upper,
                        report_date=date,
                        fiscal_quarter=quarter,
                        fiscal_year=item.get("year"),
                        eps_estimate=item.get("epsEstimate"),
                        revenue_estimate=item.get("revenueEstimate"),
                    )
                )
            else:
                actual, estimate = item.get("epsActual"), item.get("epsEstimate")
                recent.append(
                    EarningsEvent(
                        symbol=upper,
                        report_date=date,
                        fiscal_quarter=quarter,
                        fiscal_year=item.get("year"),
                        eps_estimate=estimate,
                        eps_actual=actual,
                        eps_surprise=actual - estimate if actual and estimate else None,
                    )
                )

        recent.sort(key=lambda e: e.report_date, reverse=True)
        return EarningsCalendar(symbol=upper, upcoming=upcoming, recent=recent)

    async def get_recommendations(self, symbol: str) -> AnalystConsensus:
        """Latest recommendation-trend period plus price targets (targets are optional)."""
        upper = symbol.upper()
        recommendations, price_target = await asyncio.gather(
            self._finnhub_get("/stock/recommendation", {"symbol": upper}),
            self._price_target(upper),
        )

        latest = recommendations[0] if recommendations else None
        if not latest:
            return AnalystConsensus(symbol=upper)

        strong_buy = latest.get("strongBuy", 0)
        strong_sell = latest.get("strongSell", 0)
        buy, hold, sell = latest.get("buy", 0), latest.get("hold", 0), latest.get("sell", 0)
        target = price_target or {}

        return AnalystConsensus(
            symbol=upper,
            buy_count=buy + strong_buy,
            hold_count=hold,
            sell_count=sell + strong_sell,
            avg_price_target=target.get("targetMean") or None,
            high_price_target=target.get("targetHigh") or None,
            low_price_target=target.get("targetLow") or None,
            consensus=consensus_from_counts(strong_buy, buy, hold, sell, strong_sell),
        )

    async def _price_target(self, symbol: str) -> dict[str, Any] | None:
        try:
            return await self._finnhub_get("/stock/price-target", {"symbol": symbol})
        except DataFetchError as e:
            logger.debug(f"[{self.name}] Price target unavailable for {symbol}: {e}")
            return None
