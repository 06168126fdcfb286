"""Tests for the Unusual Whales smart-money breakdown."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from trade_analyst.exceptions import ConfigurationError, DataFetchError
from trade_analyst.providers.unusual_whales import UnusualWhalesProvider, analyze_whale_activity, overall_sentiment

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def _payloads(now: datetime):
    alerts = [
        {
            "type": "call",
            "strike": 200,
            "total_premium": "500000",
            "has_sweep": True,
            "created_at": _iso(now - timedelta(days=1)),
            "expiry": (now + timedelta(days=30)).strftime("%Y-%m-%d"),
        },
        {
            "type": "put",
            "strike": 150,
            "total_premium": "100000",
            "has_sweep": False,
            "created_at": _iso(now - timedelta(days=4)),
            "expiry": (now + timedelta(days=50)).strftime("%Y-%m-%d"),
        },
        {
            "type": "call",
            "strike": 250,
            "total_premium": "900000",
            "created_at": _iso(now - timedelta(days=15)),
            "expiry": (now + timedelta(days=30)).strftime("%Y-%m-%d"),
        },
    ]
    whales = [
        {
            "type": "call",
            "strike": 210,
            "premium": 2_000_000,
            "is_sweep": True,
            "date": _iso(now - timedelta(days=1)),
            "expiry": (now + timedelta(days=70)).strftime("%Y-%m-%d"),
        }
    ]
    dark_pool = [{"size": 1_500_000, "premium": "3000000"}]
    return alerts, dark_pool, whales


def test_overall_sentiment():
    """Call/put ratio and whale bias combine into one label."""
    assert overall_sentiment(4.0, "BULLISH") == "STRONGLY_BULLISH"
    assert overall_sentiment(2.0, "NEUTRAL") == "BULLISH"
    assert overall_sentiment(0.2, "BEARISH") == "STRONGLY_BEARISH"
    assert overall_sentiment(0.5, "NEUTRAL") == "BEARISH"
    assert overall_sentiment(1.0, "NEUTRAL") == "NEUTRAL"


class TestAnalyzeWhaleActivity:
    """Window filtering, buckets and the verdict."""

    def test_breakdown(self):
        """Flow, dark pool and whale trades are filtered and totalled."""
        alerts, dark_pool, whales = _payloads(NOW)

        data = analyze_whale_activity("AAPL", alerts, dark_pool, whales, NOW)

        flow = data["flowAlerts"]
        assert flow["count"] == 2
        assert flow["totalBeforeFilter"] == 3
        assert flow["callPremium"] == 500000
        assert flow["putPremium"] == 100000
        assert flow["topStrikes"] == ["CALL $200", "PUT $150"]
        assert data["tradeAgeBuckets"] == {"days1_2": 1, "days3_5": 1, "days6_10": 0}
        assert data["expirationBuckets"] == {"week3_5": 1, "week6_9": 1, "week10_13": 0}
        assert data["whaleTrades"]["sentiment"] == "BULLISH"
        assert data["whaleTrades"]["topTrades"][0]["tradeAgeDays"] == 1
        assert data["darkPool"]["sentiment"] == "ACCUMULATION"
        assert data["tradeWindowStart"] == "2026-10-08"
        assert data["expirationMax"] == "2027-01-17"

    def test_signals_and_confidence(self):
        """Strong flow produces key signals and high confidence."""
        alerts, dark_pool, whales = _payloads(NOW)

        signals = analyze_whale_activity("AAPL", alerts, dark_pool, whales, NOW)["signals"]

        assert signals["overallSentiment"] == "STRONGLY_BULLISH"
        assert "STRONGLY BULLISH FLOW: 25.0:1 call/put premium ratio" in signals["keySignals"]
        assert "HEAVY INSTITUTIONAL: 1.5M shares in dark pools" in signals["keySignals"]
        assert signals["warnings"] == ["LOW DATA: Limited unusual activity detected - use caution"]
        assert signals["confidenceScore"] == 65

    def test_summary_text(self):
        """The summary lists the headline numbers."""
        alerts, dark_pool, whales = _payloads(NOW)

        summary = analyze_whale_activity("AAPL", alerts, dark_pool, whales, NOW)["summary"]

        assert summary.startswith("UNUSUAL WHALES SMART MONEY ANALYSIS: AAPL")
        assert "OVERALL SMART MONEY VERDICT: STRONGLY BULLISH" in summary
        assert "1. $2.00M CALL $210 | 1d ago -> exp in 69d [SWEEP]" in summary

    def test_empty_inputs(self):
        """No data gives a neutral, zero-confidence result."""
        data = analyze_whale_activity("AAPL", [], [], [], NOW)

        assert data["flowAlerts"]["callPutRatio"] == 1.0
        assert data["signals"]["overallSentiment"] == "NEUTRAL"
        assert "- No strong signals detected" in data["summary"]


class TestUnusualWhalesProvider:
    @pytest.mark.asyncio
    async def test_requires_api_key(self):
        """Calls need the Unusual Whales key."""
        with pytest.raises(ConfigurationError, match="UNUSUAL_WHALES_API_KEY"):
            await UnusualWhalesProvider().get_unusual_options_flow("AAPL")

    @pytest.mark.asyncio
    async def test_failed_endpoint_contributes_nothing(self):
        """One failing endpoint does not sink the others."""
        alerts, _, whales = _payloads(datetime.now(UTC))

        async def fake_get(path, params=None, headers=None):
            assert headers["Authorization"] == "Bearer uw-key"
            if path.endswith("/flow-alerts"):
                return {"data": alerts}
            if path.startswith("/darkpool/"):
                raise DataFetchError("Unusual Whales API error: 500")
            if path == "/option-trade/full-tape":
                return {"data": whales}
            return {"data": []}

        provider = UnusualWhalesProvider("uw-key")
        provider._get = AsyncMock(side_effect=fake_get)

        summary = await provider.get_unusual_options_flow("aapl")

        assert provider._get.await_count == 4
        assert summary.symbol == "AAPL"
        assert summary.overall_sentiment == "bullish"
        assert summary.notable_strikes == [200.0, 150.0]
        assert summary.total_call_premium == 2_500_000
        assert summary.enhanced_whale_data["darkPool"]["tradeCount"] == 0
