"""Tests for service diagnostics."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from trade_analyst.config import AIConfig
from trade_analyst.diagnostics import CheckStatus, check_providers
from trade_analyst.exceptions import ConfigurationError, DataFetchError, LLMError, RateLimitError
from trade_analyst.models import ForexQuote, StockQuote
from trade_analyst.storage.database import Database


@pytest.fixture
def llm(text_response):
    client = MagicMock()
    client.config = AIConfig(OPENROUTER_API_KEY="or-key", OPENAI_API_KEY="oa-key")
    client.is_available.return_value = True
    client.chat_completion = AsyncMock(return_value=text_response("OK"))
    return client


@pytest.fixture
def providers(mock_providers):
    """Every service answers with data and the knowledge base holds documents."""
    mock_providers.polygon.get_stock_quote = AsyncMock(return_value=StockQuote(symbol="AAPL", price=190.5))
    mock_providers.finnhub.get_quote_price = AsyncMock(return_value=190.4)
    mock_providers.benzinga.get_earnings_calendar = AsyncMock(return_value=MagicMock())
    mock_providers.unusual_whales.get_unusual_options_flow = AsyncMock(return_value=MagicMock())
    mock_providers.twelvedata.get_forex_quote = AsyncMock(
        return_value=ForexQuote(pair="EUR/USD", bid=1.0849, ask=1.0851, mid=1.085, spread=0.0002)
    )
    mock_providers.knowledge = MagicMock()
    mock_providers.knowledge.count_documents.return_value = 12
    return mock_providers


@pytest.fixture
def database():
    return Database("sqlite://")


def _by_name(report):
    return {r.name: r for r in report.results}


class TestCheckProviders:
    """check_providers reports one result per service and never raises."""

    @pytest.mark.asyncio
    async def test_all_healthy(self, providers, llm, database):
        """Every service answering with data gives a healthy report in a fixed order."""
        report = await check_providers(providers, llm, database)

        assert [r.name for r in report.results] == [
            "AI service",
            "OpenAI fallback",
            "Polygon.io",
            "Finnhub",
            "Benzinga",
            "Unusual Whales",
            "Twelve Data",
            "Database / knowledge base",
        ]
        assert all(r.status == CheckStatus.OK for r in report.results)
        assert report.overall == "healthy"
        assert _by_name(report)["AI service"].details == "anthropic/claude-3.7-sonnet"
        llm.chat_completion.assert_awaited_once()
        providers.polygon.get_stock_quote.assert_awaited_once_with("AAPL")
        providers.twelvedata.get_forex_quote.assert_awaited_once_with("EUR/USD")

    @pytest.mark.asyncio
    async def test_unconfigured_provider_is_not_called(self, providers, llm, database):
        """A provider without its key is reported without issuing a request."""
        providers.polygon.is_configured = False
        providers.polygon.api_key_env = "POLYGON_API_KEY"

        report = await check_providers(providers, llm, database)

        polygon = _by_name(report)["Polygon.io"]
        assert polygon.status == CheckStatus.ERROR
        assert polygon.message == "API key not configured"
        assert polygon.details == "Set POLYGON_API_KEY"
        providers.polygon.get_stock_quote.assert_not_awaited()
        assert report.overall == "degraded"

    @pytest.mark.asyncio
    async def test_http_errors_are_classified(self, providers, llm, database):
        """403 is a limited key, 401 an invalid one, other failures are errors."""
        providers.finnhub.get_quote_price.side_effect = DataFetchError("Finnhub API error: 403 - plan limit")
        providers.benzinga.get_earnings_calendar.side_effect = DataFetchError("Benzinga API error: 401 - bad token")
        providers.unusual_whales.get_unusual_options_flow.side_effect = DataFetchError("Unusual Whales API error: 500")
        providers.twelvedata.get_forex_quote.side_effect = DataFetchError("Twelve Data request failed: reset")

        results = _by_name(await check_providers(providers, llm, database))

        assert results["Finnhub"].status == CheckStatus.WARNING
        assert results["Finnhub"].message == "API key valid but limited"
        assert results["Benzinga"].status == CheckStatus.ERROR
        assert results["Benzinga"].message == "API key invalid or expired"
        assert results["Unusual Whales"].message == "API error: 500"
        assert results["Twelve Data"].message == "Connection failed"

    @pytest.mark.asyncio
    async def test_rate_limit_and_missing_key_errors(self, providers, llm, database):
        """A rate limit is a warning, a ConfigurationError from the call is an error."""
        providers.polygon.get_stock_quote.side_effect = RateLimitError()
        providers.finnhub.get_quote_price.side_effect = ConfigurationError("FINNHUB_API_KEY not configured")

        results = _by_name(await check_providers(providers, llm, database))

        assert results["Polygon.io"].status == CheckStatus.WARNING
        assert results["Finnhub"].status == CheckStatus.ERROR
        assert results["Finnhub"].details == "FINNHUB_API_KEY not configured"

    @pytest.mark.asyncio
    async def test_empty_data_is_a_warning(self, providers, llm, database):
        """A zero price means the service answered without usable data."""
        providers.polygon.get_stock_quote.return_value = StockQuote(symbol="AAPL", price=0.0)

        report = await check_providers(providers, llm, database)

        assert _by_name(report)["Polygon.io"].message == "Connected but no data returned"
        assert report.overall == "partial"

    @pytest.mark.asyncio
    async def test_slow_service_times_out(self, providers, llm, database):
        """A check that does not answer in time is an error rather than a hang."""

        async def never_answers(symbol):
            await asyncio.sleep(10)

        providers.benzinga.get_earnings_calendar = never_answers
        with patch("trade_analyst.diagnostics.CHECK_TIMEOUT_SECONDS", 0.01):
            results = _by_name(await check_providers(providers, llm, database))

        assert results["Benzinga"].status == CheckStatus.ERROR
        assert results["Benzinga"].message.startswith("No response within")

    @pytest.mark.asyncio
    async def test_llm_failures(self, providers, llm, database):
        """A failing completion is an error and OpenAI alone leaves no fallback."""
        llm.config = AIConfig(OPENROUTER_API_KEY=None, OPENAI_API_KEY="oa-key")
        llm.chat_completion.side_effect = LLMError("AI service temporarily unavailable")

        results = _by_name(await check_providers(providers, llm, database))

        assert results["AI service"].status == CheckStatus.ERROR
        assert results["AI service"].message == "Check failed"
        assert results["OpenAI fallback"].status == CheckStatus.WARNING
        assert results["OpenAI fallback"].message == "Used as primary - no fallback available"

    @pytest.mark.asyncio
    async def test_llm_not_configured(self, providers, llm, database):
        """Without any LLM key no completion is attempted."""
        llm.is_available.return_value = False

        results = _by_name(await check_providers(providers, llm, database))

        assert results["AI service"].message == "API key not configured"
        llm.chat_completion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_knowledge_base(self, providers, llm, database):
        """The database answering with no documents is a warning."""
        providers.knowledge.count_documents.return_value = 0

        report = await check_providers(providers, llm, database)

        storage = _by_name(report)["Database / knowledge base"]
        assert storage.status == CheckStatus.WARNING
        assert report.to_dict()["summary"] == {"ok": 7, "warnings": 1, "errors": 0}
        assert report.to_dict()["overall"] == "partial"
