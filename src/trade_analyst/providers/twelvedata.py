"""Twelve Data client: forex quotes, time series, indicators and exchange rates."""

import logging
from datetime import datetime
from typing import Any

from trade_analyst.exceptions import DataFetchError
from trade_analyst.models import ForexQuote, OHLCVBar
from trade_analyst.providers.base import BaseProvider, to_float

logger = logging.getLogger(__name__)

# Assumed fixed spread; Twelve Data quotes only carry a close price
TYPICAL_SPREAD = 0.0001


def format_pair(pair: str) -> str:
    """Normalize "EURUSD" or "eur/usd" to "EUR/USD"."""
    upper = pair.upper().strip()
    return upper if "/" in upper else f"{upper[:3]}/{upper[3:]}"


class TwelveDataProvider(BaseProvider):
    name = "Twelve Data"
    base_url = "https://api.twelvedata.com"
    api_key_env = "TWELVEDATA_API_KEY"

    async def _td_get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        data = await self._get(path, params={"apikey": self._require_api_key(), **params})
        # API-level errors come back as HTTP 200
        if isinstance(data, dict) and data.get("status") == "error":
            raise DataFetchError(f"Twelve Data API error: {data.get('message')}")
        return data

    async def get_forex_quote(self, pair: str) -> ForexQuote:
        formatted = format_pair(pair)
        data = await self._td_get("/quote", {"symbol": formatted})
        price = to_float(data.get("close"), 0.0)
        timestamp = data.get("timestamp")

        return ForexQuote(
            pair=formatted.replace("/", ""),
            bid=price - TYPICAL_SPREAD / 2,
            ask=price + TYPICAL_SPREAD / 2,
            mid=price,
            spread=TYPICAL_SPREAD,
            timestamp=datetime.fromtimestamp(timestamp).isoformat() if timestamp else datetime.now().isoformat(),
        )

    async def get_exchange_rate(self, from_currency: str, to_currency: str) -> dict[str, Any]:
        data = await self._td_get("/exchange_rate", {"symbol": f"{from_currency.upper()}/{to_currency.upper()}"})
        timestamp = data.get("timestamp")
        return {
            "symbol": data.get("symbol", f"{from_currency}/{to_currency}"),
            "rate": to_float(data.get("rate")),
            "timestamp": datetime.fromtimestamp(timestamp).isoformat() if timestamp else None,
        }

    async def get_forex_historical(self, pair: str, interval: str = "1day", output_size: int = 100) -> list[OHLCVBar]:
        """OHLC bars in chronological order (Twelve Data returns newest first)."""
        data = await self._td_get(
            "/time_series",
            {"symbol": format_pair(pair), "interval": interval, "outputsize": output_size},
        )
        bars = [
            OHLCVBar(
                timestamp=bar.get("datetime", ""),
                open=to_float(bar.get("open"), 0.0),
                high=to_float(bar.get("high"), 0.0),
                low=to_float(bar.get("low"), 0.0),
                close=to_float(bar.get("close"), 0.0),
                volume=to_float(bar.get("volume"), 0.0),
            )
            for bar in data.get("values") or []
        ]
        bars.reverse()
        return bars

    async def get_forex_indicator(
        self,
        pair: str,
        indicator: str,
        interval: str = "1day",
        time_period: int = 14,
        output_size: int = 30,
    ) -> list[dict[str, Any]]:
        """
        Server-side technical indicator series, oldest first.

        MACD and Bollinger Bands yield a dict of components per point;
        single-line indicators (sma, ema, rsi, atr) yield a float.
        """
        data = await self._td_get(
            f"/{indicator}",
            {
                "symbol": format_pair(pair),
                "interval": interval,
                "time_period": time_period,
                "outputsize": output_size,
            },
        )

        results: list[dict[str, Any]] = []
        for item in data.get("values") or []:
            values = {k: v for k, v in item.items() if k != "datetime"}
            if indicator == "macd":
                value: Any = {k: to_float(values.get(k), 0.0) for k in ("macd", "macd_signal", "macd_hist")}
            elif indicator == "bbands":
                value = {k: to_float(values.get(k), 0.0) for k in ("upper_band", "middle_band", "lower_band")}
            else:
                first = next(iter(values.values()), None)
                value = to_float(first, 0.0)
            results.append({"datetime": item.get("datetime", ""), "value": value})

        results.reverse()
        return results
