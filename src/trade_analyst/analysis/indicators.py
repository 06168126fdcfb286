"""
Technical indicators over OHLC bars.

Computes the snapshot used by the standalone technical lookup:
- RSI (Wilder smoothing via EMA)
- SMA 20 / SMA 50
- MACD (12, 26, 9)
- Support / resistance from the last 20 bars
- Trend classification from price vs. moving averages
"""

import logging
from typing import Any

import numpy as np
import pandas as pd

from trade_analyst.models import OHLCVBar

logger = logging.getLogger(__name__)

SUPPORT_RESISTANCE_LOOKBACK = 20


def bars_to_frame(bars: list[OHLCVBar]) -> pd.DataFrame:
    return pd.DataFrame([b.to_dict() for b in bars], columns=["timestamp", "open", "high", "low", "close", "volume"])


def calculate_rsi(close: pd.Series, period: int = 14) -> float:
    """
    RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    Returns 50.0 when there are fewer than period + 1 closes.
    """
    if len(close) < period + 1:
        return 50.0

    delta = close.diff()
    gains = delta.clip(lower=0.0)
    losses = (-delta).clip(lower=0.0)

    avg_gain = gains.ewm(com=period - 1, min_periods=period).mean().iloc[-1]
    avg_loss = losses.ewm(com=period - 1, min_periods=period).mean().iloc[-1]
    if avg_loss == 0 or np.isnan(avg_loss):
        return 100.0
    rs = avg_gain / avg_loss
    return round(float(100 - 100 / (1 + rs)), 2)


def calculate_sma(close: pd.Series, period: int) -> float:
    """Simple moving average of the last ``period`` closes (latest close when too short)."""
    if close.empty:
        return 0.0
    if len(close) < period:
        return float(close.iloc[-1])
    return float(close.tail(period).mean())


def calculate_macd(close: pd.Series, fast: int = 12, slow: int = 26, signal: int = 9) -> dict[str, float]:
    if len(close) < slow:
        return {"macd": 0.0, "signal": 0.0, "histogram": 0.0}

    macd_line = close.ewm(span=fast, adjust=False).mean() - close.ewm(span=slow, adjust=False).mean()
    signal_line = macd_line.ewm(span=signal, adjust=False).mean()
    macd, sig = float(macd_line.iloc[-1]), float(signal_line.iloc[-1])
    return {"macd": round(macd, 4), "signal": round(sig, 4), "histogram": round(macd - sig, 4)}


def support_resistance(df: pd.DataFrame, lookback: int = SUPPORT_RESISTANCE_LOOKBACK) -> tuple[float, float]:
    recent = df.tail(lookback)
    return float(recent["low"].min()), float(recent["high"].max())


def classify_trend(price: float, sma20: float, sma50: float) -> str:
    if price > sma20 > sma50:
        return "uptrend"
    if price < sma20 < sma50:
        return "downtrend"
    return "sideways"


def price_decimals(symbol: str, is_forex: bool) -> int:
    if not is_forex:
        return 2
    return 3 if "JPY" in symbol.upper() else 5


def technical_snapshot(
    symbol: str,
    bars: list[OHLCVBar],
    current_price: float | None = None,
    is_forex: bool = False,
) -> dict[str, Any]:
    """Indicator snapshot for the latest bar, with prices rounded for the asset class."""
    if not bars:
        raise ValueError("No historical data available")

    df = bars_to_frame(bars)
    close = df["close"].astype(float)
    price = current_price if current_price else float(close.iloc[-1])
    decimals = price_decimals(symbol, is_forex)

    sma20 = calculate_sma(close, 20)
    sma50 = calculate_sma(close, min(50, len(close)))
    support, resistance = support_resistance(df)

    return {
        "symbol": symbol,
        "asset_type": "forex" if is_forex else "stock",
        "current_price": round(price, decimals),
        "rsi_14": calculate_rsi(close, 14),
        "sma_20": round(sma20, decimals),
        "sma_50": round(sma50, decimals),
        "macd": calculate_macd(close),
        "support_level": round(support, decimals),
        "resistance_level": round(resistance, decimals),
        "price_vs_sma20": "above" if price > sma20 else "below",
        "price_vs_sma50": "above" if price > sma50 else "below",
        "trend": classify_trend(price, sma20, sma50),
        "candle_count": len(close),
    }
