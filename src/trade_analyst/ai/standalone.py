"""
Standalone analyses: one data lookup plus a short AI summary.

No tool loop and no trading call. Technical, fundamentals, earnings, news
and smart-money lookups each return a StandaloneResult; a data failure is
reported in ``error`` instead of raising.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from trade_analyst.ai.clients import LLMClient
from trade_analyst.ai.prompts import STANDALONE_SUMMARY_PROMPTS
from trade_analyst.analysis.indicators import technical_snapshot
from trade_analyst.exceptions import LLMError, TradeAnalystError
from trade_analyst.models import AnalysisType
from trade_analyst.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

FOREX_CURRENCIES = ("EUR", "USD", "GBP", "JPY", "AUD", "NZD", "CAD", "CHF")
SUMMARY_UNAVAILABLE = "Summary unavailable."


@dataclass(slots=True)
class StandaloneResult:
    symbol: str
    type: AnalysisType
    data: dict[str, Any] = field(default_factory=dict)
    summary: str = ""
    error: str | None = None
    generated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "type": self.type.value,
            "data": self.data,
            "summary": self.summary,
            "error": self.error,
            "generated_at": self.generated_at,
        }


def is_forex_pair(symbol: str) -> bool:
    """``EUR/USD`` style, or six letters made of two known currency codes."""
    if "/" in symbol:
        return True
    upper = symbol.upper()
    return len(upper) == 6 and upper[:3] in FOREX_CURRENCIES and upper[3:] in FOREX_CURRENCIES


def _days_until(report_date: str, today: date) -> int | None:
    try:
        target = date.fromisoformat(report_date[:10])
    except ValueError:
        return None
    return (target - today).days


class StandaloneAnalyzer:
    """
    Usage:
        analyzer = StandaloneAnalyzer(providers, llm)
        result = await analyzer.run("AAPL", AnalysisType.EARNINGS)
    """

    def __init__(self, providers: ProviderRegistry, llm: LLMClient):
        self.providers = providers
        self.llm = llm
        self._fetchers = {
            AnalysisType.TECHNICAL: self._technical,
            AnalysisType.FUNDAMENTALS: self._fundamentals,
            AnalysisType.EARNINGS: self._earnings,
            AnalysisType.NEWS: self._news,
            AnalysisType.SMART_MONEY: self._smart_money,
        }

    async def run(self, symbol: str, kind: AnalysisType) -> StandaloneResult:
        if kind not in self._fetchers:
            raise ValueError(f"{kind.value} is not a standalone analysis type")

        display = symbol.strip().upper()

        try:
            data = await self._fetchers[kind](display)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"[Standalone] {kind.value} data fetch failed for {display}: {message}")
            return StandaloneResult(
                symbol=display,
                type=kind,
                summary=f"Failed to fetch {kind.value} data: {message}",
                error=message,
            )

        summary = await self.summarize(kind, display, data)
        return StandaloneResult(symbol=display, type=kind, data=data, summary=summary)

    async def summarize(self, kind: AnalysisType, symbol: str, data: dict[str, Any]) -> str:
        messages = [
            {"role": "system", "content": STANDALONE_SUMMARY_PROMPTS[kind]},
            {"role": "user", "content": f"Here is the data:\n{json.dumps(data, indent=2, default=str)}"},
        ]
        try:
            response = await self.llm.chat_completion(messages, task_type="analysis", max_tokens=1024)
        except LLMError as e:
            logger.warning(f"[Standalone] Summary failed for {symbol} ({kind.value}): {e}")
            return f"Failed to generate summary: {e}"

        choice = response.first
        return (choice.message.content if choice else None) or SUMMARY_UNAVAILABLE

    async def _technical(self, symbol: str) -> dict[str, Any]:
        if is_forex_pair(symbol):
            bars = await self.providers.twelvedata.get_forex_historical(symbol, "1day", 50)
            current = None
            try:
                quote = await self.providers.twelvedata.get_forex_quote(symbol)
                current = quote.mid or None
            except TradeAnalystError as e:
                logger.debug(f"[Standalone] Forex quote unavailable for {symbol}, using last close: {e}")
            return technical_snapshot(symbol, bars, current_price=current, is_forex=True)

        bars = await self.providers.polygon.get_historical_data(symbol, "1m", "1day")
        return technical_snapshot(symbol, bars)

    async def _fundamentals(self, symbol: str) -> dict[str, Any]:
        try:
            ratings = await self.providers.benzinga.get_analyst_ratings(symbol, 15)
            data = {
                "symbol": symbol,
                "analyst_count": len(ratings.ratings),
                "consensus": ratings.consensus,
                "average_target": ratings.avg_price_target,
                "high_target": ratings.high_price_target,
                "low_target": ratings.low_price_target,
                "recent_ratings": [
                    {"analyst": r.analyst or r.firm, "rating": r.rating, "target": r.price_target, "date": r.date}
                    for r in ratings.ratings[:5]
                ],
                "source": "Benzinga",
            }
        except TradeAnalystError as primary_error:
            logger.info(f"[Standalone] Benzinga ratings failed for {symbol}, trying Finnhub: {primary_error}")
            try:
                consensus = await self.providers.finnhub.get_recommendations(symbol)
            except TradeAnalystError:
                raise primary_error from None
            data = {
                "symbol": symbol,
                "analyst_count": consensus.buy_count + consensus.hold_count + consensus.sell_count,
                "consensus": consensus.consensus,
                "average_target": consensus.avg_price_target,
                "high_target": consensus.high_price_target,
                "low_target": consensus.low_price_target,
                "buy_count": consensus.buy_count,
                "hold_count": consensus.hold_count,
                "sell_count": consensus.sell_count,
                "source": "Finnhub",
            }

        # Company profile and valuation stats are optional context
        try:
            data["company"] = await self.providers.unified.get_yahoo_fundamentals(symbol)
        except TradeAnalystError as e:
            logger.debug(f"[Standalone] Yahoo fundamentals unavailable for {symbol}: {e}")
            data["company"] = None
        return data

    async def _earnings(self, symbol: str) -> dict[str, Any]:
        source = "Benzinga"
        try:
            calendar = await self.providers.benzinga.get_earnings_calendar(symbol)
        except TradeAnalystError as primary_error:
            logger.info(f"[Standalone] Benzinga earnings failed for {symbol}, trying Finnhub: {primary_error}")
            try:
                calendar = await self.providers.finnhub.get_earnings(symbol)
            except TradeAnalystError:
                raise primary_error from None
            source = "Finnhub"

        today = date.today()
        upcoming = [e for e in calendar.upcoming if (_days_until(e.report_date, today) or 0) >= 0]
        nxt = upcoming[0] if upcoming else None
        return {
            "symbol": symbol,
            "next_earnings_date": nxt.report_date if nxt else None,
            "days_until_earnings": _days_until(nxt.report_date, today) if nxt else None,
            "eps_estimate": nxt.eps_estimate if nxt else None,
            "revenue_estimate": nxt.revenue_estimate if nxt else None,
            "recent_history": [
                {
                    "date": e.report_date,
                    "eps_actual": e.eps_actual,
                    "eps_estimate": e.eps_estimate,
                    "surprise": e.eps_surprise,
                }
                for e in calendar.recent[:4]
            ],
            "source": source,
        }

    async def _news(self, symbol: str) -> dict[str, Any]:
        news = await self.providers.polygon.get_news_sentiment(symbol, 7)
        counts = {"positive": 0, "negative": 0, "neutral": 0}
        for article in news.articles:
            if article.sentiment in counts:
                counts[article.sentiment] += 1

        return {
            "symbol": symbol,
            "article_count": len(news.articles),
            "overall_sentiment": news.overall_sentiment,
            "sentiment_score": news.sentiment_score,
            "bullish_count": counts["positive"],
            "bearish_count": counts["negative"],
            "neutral_count": counts["neutral"],
            "top_headlines": [
                {
                    "title": a.title,
                    "source": a.source,
                    "sentiment": a.sentiment,
                    "date": a.published_at,
                    "url": a.url,
                }
                for a in news.articles[:5]
            ],
        }

    async def _smart_money(self, symbol: str) -> dict[str, Any]:
        """Options flow when available; SEC filings always, as supplement or fallback."""
        data: dict[str, Any] = {"symbol": symbol}

        flow = None
        flow_error = None
        try:
            flow = await self.providers.unusual_whales.get_unusual_options_flow(symbol)
        except TradeAnalystError as e:
            flow_error = str(e) or "Unusual Whales unavailable"
            logger.info(f"[Standalone] Options flow unavailable for {symbol}: {flow_error}")

        data["unusual_whales_available"] = flow is not None
        data["unusual_whales_error"] = flow_error
        if flow is not None:
            data["options_flow"] = {
                "total_call_premium": flow.total_call_premium,
                "total_put_premium": flow.total_put_premium,
                "call_put_ratio": flow.call_put_ratio,
                "overall_sentiment": flow.overall_sentiment,
                "notable_strikes": flow.notable_strikes,
                "flow_count": len(flow.flows),
            }

        insider = await self.providers.sec.get_insider_trades(symbol)
        data["insider_trading"] = {
            "total_buys": insider.total_buys,
            "total_sells": insider.total_sells,
            "sentiment": insider.sentiment,
            "recent_trades": [t.to_dict() for t in insider.trades[:5]],
        }

        institutional = await self.providers.sec.get_institutional_holdings(symbol)
        data["institutional"] = {
            "total_institutions": institutional.total_institutions,
            "sentiment": institutional.sentiment,
        }

        if flow_error:
            data["error"] = flow_error
        return data


async def run_standalone_analysis(
    symbol: str,
    kind: AnalysisType,
    *,
    providers: ProviderRegistry | None = None,
    llm: LLMClient | None = None,
) -> StandaloneResult:
    from trade_analyst import dependencies

    analyzer = StandaloneAnalyzer(providers or dependencies.get_providers(), llm or dependencies.get_llm())
    return await analyzer.run(symbol, kind)
