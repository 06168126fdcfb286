"""Tests for technical indicator calculations."""

import pandas as pd
import pytest

from trade_analyst.analysis.indicators import (
    calculate_macd,
    calculate_rsi,
    calculate_sma,
    classify_trend,
    technical_snapshot,
)
from trade_analyst.models import OHLCVBar


def _bars(closes: list[float]) -> list[OHLCVBar]:
    return [
        OHLCVBar(timestamp=f"2026-01-{i + 1:02d}", open=c, high=c + 1, low=c - 1, close=c, volume=1000)
        for i, c in enumerate(closes)
    ]


class TestIndicators:
    def test_rsi_needs_enough_data(self):
        """Short series give a neutral RSI."""
        assert calculate_rsi(pd.Series([1.0, 2.0, 3.0])) == 50.0

    def test_rsi_only_gains_is_100(self):
        """A series of gains has RSI 100."""
        assert calculate_rsi(pd.Series([float(i) for i in range(30)])) == 100.0

    def test_rsi_mixed_is_between_bounds(self):
        """Mixed moves stay strictly between 0 and 100."""
        closes = pd.Series([10, 11, 10.5, 11.5, 11, 12, 11.2, 12.5, 12, 13, 12.4, 13.1, 12.8, 13.5, 13, 14.0])

        assert 0 < calculate_rsi(closes) < 100

    def test_sma(self):
        """SMA over the window, or over everything when the series is short."""
        closes = pd.Series([1.0, 2.0, 3.0, 4.0])

        assert calculate_sma(closes, 2) == 3.5
        assert calculate_sma(closes, 10) == 4.0

    def test_macd_short_series(self):
        """Too little data gives a zero MACD."""
        assert calculate_macd(pd.Series([1.0] * 10)) == {"macd": 0.0, "signal": 0.0, "histogram": 0.0}

    def test_trend(self):
        """Trend from price against the moving averages."""
        assert classify_trend(110, 105, 100) == "uptrend"
        assert classify_trend(90, 95, 100) == "downtrend"
        assert classify_trend(100, 105, 95) == "sideways"


class TestTechnicalSnapshot:
    def test_uptrend_stock(self):
        """Snapshot of a steadily rising stock."""
        snapshot = technical_snapshot("AAPL", _bars([100 + i for i in range(60)]))

        assert snapshot["current_price"] == 159
        assert snapshot["trend"] == "uptrend"
        assert snapshot["price_vs_sma20"] == "above"
        assert snapshot["support_level"] == 139
        assert snapshot["resistance_level"] == 160
        assert snapshot["candle_count"] == 60

    def test_forex_uses_quote_and_five_decimals(self):
        """Forex snapshots use the live quote rounded to five decimals."""
        snapshot = technical_snapshot(
            "EUR/USD", _bars([1.08 + i * 0.0001 for i in range(30)]), current_price=1.0834567, is_forex=True
        )

        assert snapshot["asset_type"] == "forex"
        assert snapshot["current_price"] == 1.08346

    def test_empty_bars(self):
        """No bars raises ValueError."""
        with pytest.raises(ValueError, match="No historical data"):
            technical_snapshot("AAPL", [])
