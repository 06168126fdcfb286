"""Polygon.io client: snapshot quotes, aggregate bars and news with sentiment."""

import logging
from datetime import datetime, timedelta
from typing import Any

from trade_analyst.models import NewsArticle, NewsSentiment, OHLCVBar, StockQuote
from trade_analyst.providers.base import BaseProvider

logger = logging.getLogger(__name__)

TIMEFRAME_DAYS = {"1d": 1, "1w": 7, "1m": 30, "3m": 90, "6m": 180, "1y": 365}

# interval -> (multiplier, timespan)
INTERVAL_SPANS = {
    "1min": (1, "minute"),
    "5min": (5, "minute"),
    "15min": (15, "minute"),
    "1hour": (1, "hour"),
    "1day": (1, "day"),
}

_INSIGHT_SCORES = {"positive": 0.5, "negative": -0.5}


class PolygonProvider(BaseProvider):
    name = "Polygon"
    base_url = "https://api.polygon.io"
    api_key_env = "POLYGON_API_KEY"

    async def _polygon_get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        query = {"apiKey": self._require_api_key(), **(params or {})}
        return await self._get(path, params=query)

    async def get_stock_quote(self, symbol: str, include_extended: bool = True) -> StockQuote:
        """Latest snapshot price; the last minute bar covers pre/post market, the day bar does not."""
        upper = symbol.upper()
        snapshot = await self._polygon_get(f"/v2/snapshot/locale/us/markets/stocks/tickers/{upper}")
        ticker = snapshot.get("ticker") or {}
        day = ticker.get("day") or {}
        minute = ticker.get("min") or {}
        prev_day = ticker.get("prevDay") or {}

        if include_extended:
            price = minute.get("c") or day.get("c") or 0.0
        else:
            price = day.get("c") or minute.get("c") or 0.0

        return StockQuote(
            symbol=upper,
            price=price,
            change=ticker.get("todaysChange") or 0.0,
            change_percent=ticker.get("todaysChangePerc") or 0.0,
            volume=day.get("v") or 0,
            avg_volume=prev_day.get("v") or 0,
            timestamp=datetime.now().isoformat(),
        )

    async def get_historical_data(
        self,
        symbol: str,
        timeframe: str = "3m",
        interval: str = "1day",
    ) -> list[OHLCVBar]:
        """Fetch adjusted OHLCV bars covering ``timeframe`` at ``interval`` granularity."""
        upper = symbol.upper()
        end = datetime.now()
        start = end - timedelta(days=TIMEFRAME_DAYS.get(timeframe, 90))
        multiplier, timespan = INTERVAL_SPANS.get(interval, (1, "day"))

        path = (
            f"/v2/aggs/ticker/{upper}/range/{multiplier}/{timespan}/"
            f"{start.strftime('%Y-%m-%d')}/{end.strftime('%Y-%m-%d')}"
        )
        response = await self._polygon_get(path, {"adjusted": "true", "sort": "asc", "limit": 5000})

        bars = []
        for bar in response.get("results") or []:
            bars.append(
                OHLCVBar(
                    timestamp=datetime.fromtimestamp(bar["t"] / 1000).isoformat(),
                    open=bar["o"],
                    high=bar["h"],
                    low=bar["l"],
                    close=bar["c"],
                    volume=bar.get("v", 0),
                    vwap=bar.get("vw"),
                    transactions=bar.get("n"),
                )
            )
        logger.debug(f"[{self.name}] {upper} {timeframe}/{interval}: {len(bars)} bars")
        return bars

    async def get_stock_news(self, symbol: str, days: int = 7) -> list[NewsArticle]:
        upper = symbol.upper()
        published_after = (datetime.now() - timedelta(days=days)).strftime("%Y-%m-%d")
        response = await self._polygon_get(
            "/v2/reference/news",
            {"ticker": upper, "published_utc.gte": published_after, "order": "desc", "limit": 50},
        )

        articles = []
        for item in response.get("results") or []:
            sentiment = None
            score = None
            insights = item.get("insights") or []
            if insights:
                raw = insights[0].get("sentiment")
                sentiment = raw if raw in _INSIGHT_SCORES else "neutral"
                score = _INSIGHT_SCORES.get(raw, 0.0)

            articles.append(
                NewsArticle(
                    id=item.get("id", ""),
                    title=item.get("title", ""),
                    summary=item.get("description") or "",
                    url=item.get("article_url", ""),
                    source=(item.get("publisher") or {}).get("name", ""),
                    published_at=item.get("published_utc", ""),
                    symbols=item.get("tickers") or [],
                    sentiment=sentiment,
                    sentiment_score=score,
                )
            )
        return articles

    async def get_news_sentiment(self, symbol: str, days: int = 7) -> NewsSentiment:
        """Average per-article sentiment; above 0.2 is bullish, below -0.2 bearish."""
        articles = await self.get_stock_news(symbol, days)

        scores = [a.sentiment_score for a in articles if a.sentiment_score is not None]
        avg_score = sum(scores) / len(scores) if scores else 0.0

        if avg_score > 0.2:
            overall = "bullish"
        elif avg_score < -0.2:
            overall = "bearish"
        else:
            overall = "neutral"

        return NewsSentiment(
            symbol=symbol.upper(),
            articles=articles,
            overall_sentiment=overall,
            sentiment_score=avg_score,
            article_count=len(articles),
            period=f"{days} days",
        )
