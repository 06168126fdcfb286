"""Tests for standalone analyses."""

from unittest.mock import AsyncMock

import pytest

from trade_analyst.ai.standalone import StandaloneAnalyzer, is_forex_pair
from trade_analyst.exceptions import ConfigurationError, DataFetchError, LLMError
from trade_analyst.models import (
    AnalysisType,
    AnalystConsensus,
    AnalystRating,
    EarningsCalendar,
    EarningsEvent,
    InsiderActivity,
    InstitutionalActivity,
    NewsArticle,
    NewsSentiment,
    OHLCVBar,
)


def _bars(n: int = 30) -> list[OHLCVBar]:
    return [
        OHLCVBar(timestamp=str(i), open=100 + i, high=101 + i, low=99 + i, close=100 + i, volume=1000) for i in range(n)
    ]


@pytest.fixture
def analyzer(mock_providers, mock_llm, text_response):
    mock_llm.chat_completion.return_value = text_response("Summary of the data.")
    return StandaloneAnalyzer(mock_providers, mock_llm)


def test_is_forex_pair():
    """Pairs and majors are recognized; tickers are not."""
    assert is_forex_pair("EUR/USD")
    assert is_forex_pair("gbpjpy")
    assert not is_forex_pair("AAPL")
    assert not is_forex_pair("NVDAXX")


class TestStandaloneAnalyzer:
    """Tests for each standalone lookup."""

    @pytest.mark.asyncio
    async def test_technical_stock(self, analyzer, mock_providers, mock_llm):
        """Technical lookup for a stock uses history and the live quote."""
        mock_providers.polygon.get_historical_data = AsyncMock(return_value=_bars())

        result = await analyzer.run("aapl", AnalysisType.TECHNICAL)

        mock_providers.polygon.get_historical_data.assert_awaited_once_with("AAPL", "1m", "1day")
        assert result.symbol == "AAPL"
        assert result.error is None
        assert result.data["candle_count"] == 30
        assert result.summary == "Summary of the data."
        system_prompt = mock_llm.chat_completion.await_args.args[0][0]["content"]
        assert "Do NOT provide trading recommendations" in system_prompt

    @pytest.mark.asyncio
    async def test_technical_forex_falls_back_to_last_close(self, analyzer, mock_providers):
        """Without a forex quote the last close is the current price."""
        mock_providers.twelvedata.get_forex_historical = AsyncMock(return_value=_bars())
        mock_providers.twelvedata.get_forex_quote = AsyncMock(side_effect=DataFetchError("quote down"))

        result = await analyzer.run("EUR/USD", AnalysisType.TECHNICAL)

        assert result.data["asset_type"] == "forex"
        assert result.data["current_price"] == 129.0

    @pytest.mark.asyncio
    async def test_fundamentals_fall_back_to_finnhub(self, analyzer, mock_providers):
        """Fundamentals come from Finnhub when Benzinga is empty."""
        mock_providers.benzinga.get_analyst_ratings = AsyncMock(side_effect=ConfigurationError("no key"))
        mock_providers.finnhub.get_recommendations = AsyncMock(
            return_value=AnalystConsensus(symbol="AAPL", buy_count=20, hold_count=8, sell_count=2, consensus="buy")
        )
        mock_providers.unified.get_yahoo_fundamentals = AsyncMock(
            side_effect=DataFetchError("Yahoo Finance API error: 401")
        )

        result = await analyzer.run("AAPL", AnalysisType.FUNDAMENTALS)

        assert result.data["source"] == "Finnhub"
        assert result.data["analyst_count"] == 30
        assert result.data["company"] is None

    @pytest.mark.asyncio
    async def test_fundamentals_from_benzinga(self, analyzer, mock_providers):
        """Benzinga fundamentals are used first."""
        ratings = [AnalystRating(symbol="AAPL", firm=f"F{i}", rating="buy", price_target=200.0) for i in range(7)]
        mock_providers.benzinga.get_analyst_ratings = AsyncMock(
            return_value=AnalystConsensus(symbol="AAPL", ratings=ratings, avg_price_target=200.0)
        )
        mock_providers.unified.get_yahoo_fundamentals = AsyncMock(
            return_value={"symbol": "AAPL", "sector": "Technology", "pe_ratio": 31.2}
        )

        result = await analyzer.run("AAPL", AnalysisType.FUNDAMENTALS)

        assert result.data["source"] == "Benzinga"
        assert len(result.data["recent_ratings"]) == 5
        assert result.data["recent_ratings"][0]["analyst"] == "F0"
        assert result.data["company"]["sector"] == "Technology"

    @pytest.mark.asyncio
    async def test_earnings_both_sources_fail(self, analyzer, mock_providers, mock_llm):
        """Earnings failures are reported in the result."""
        mock_providers.benzinga.get_earnings_calendar = AsyncMock(side_effect=DataFetchError("Benzinga API error"))
        mock_providers.finnhub.get_earnings = AsyncMock(side_effect=DataFetchError("Finnhub API error"))

        result = await analyzer.run("AAPL", AnalysisType.EARNINGS)

        assert result.error == "Benzinga API error"
        assert result.summary == "Failed to fetch earnings data: Benzinga API error"
        mock_llm.chat_completion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_earnings_next_date(self, analyzer, mock_providers):
        """The next upcoming earnings date is picked."""
        calendar = EarningsCalendar(
            symbol="AAPL",
            upcoming=[EarningsEvent(symbol="AAPL", report_date="2099-01-30", eps_estimate=2.1)],
            recent=[EarningsEvent(symbol="AAPL", report_date="2024-10-30", eps_actual=1.6, eps_estimate=1.5)],
        )
        mock_providers.benzinga.get_earnings_calendar = AsyncMock(return_value=calendar)

        result = await analyzer.run("AAPL", AnalysisType.EARNINGS)

        assert result.data["next_earnings_date"] == "2099-01-30"
        assert result.data["days_until_earnings"] > 0
        assert result.data["recent_history"][0]["eps_actual"] == 1.6

    @pytest.mark.asyncio
    async def test_news_counts(self, analyzer, mock_providers):
        """Articles are counted by sentiment."""
        articles = [
            NewsArticle(id=str(i), title=f"t{i}", summary="", url="", source="Reuters", published_at="", sentiment=s)
            for i, s in enumerate(["positive", "positive", "negative", "neutral", None])
        ]
        mock_providers.polygon.get_news_sentiment = AsyncMock(
            return_value=NewsSentiment(symbol="AAPL", articles=articles, overall_sentiment="bullish")
        )

        result = await analyzer.run("AAPL", AnalysisType.NEWS)

        assert result.data["article_count"] == 5
        assert result.data["bullish_count"] == 2
        assert result.data["bearish_count"] == 1
        assert result.data["neutral_count"] == 1

    @pytest.mark.asyncio
    async def test_smart_money_without_options_flow(self, analyzer, mock_providers):
        """Smart money still reports insider and institutional data without options flow."""
        mock_providers.unusual_whales.get_unusual_options_flow = AsyncMock(
            side_effect=ConfigurationError("Unusual Whales API key not configured")
        )
        mock_providers.sec.get_insider_trades = AsyncMock(
            return_value=InsiderActivity(symbol="AAPL", total_buys=2, total_sells=5, sentiment="bearish")
        )
        mock_providers.sec.get_institutional_holdings = AsyncMock(
            return_value=InstitutionalActivity(symbol="AAPL", total_institutions=12)
        )

        result = await analyzer.run("AAPL", AnalysisType.SMART_MONEY)

        assert result.error is None
        assert result.data["unusual_whales_available"] is False
        assert result.data["error"] == "Unusual Whales API key not configured"
        assert result.data["insider_trading"]["total_sells"] == 5
        assert result.data["institutional"]["total_institutions"] == 12

    @pytest.mark.asyncio
    async def test_summary_failure_is_reported_in_summary(self, analyzer, mock_providers, mock_llm):
        """A failed summary call is explained in the summary text."""
        mock_providers.polygon.get_historical_data = AsyncMock(return_value=_bars())
        mock_llm.chat_completion.side_effect = LLMError("AI down")

        result = await analyzer.run("AAPL", AnalysisType.TECHNICAL)

        assert result.error is None
        assert result.summary == "Failed to generate summary: AI down"

    @pytest.mark.asyncio
    async def test_full_types_are_rejected(self, analyzer):
        """Stock and forex are not standalone types."""
        with pytest.raises(ValueError):
            await analyzer.run("AAPL", AnalysisType.STOCK)
