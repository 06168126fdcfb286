"""
Backtest models.

A Prediction is the stored form of one actionable TradeRecommendation:
direction, entry, stop and target plus the date by which it must resolve.
PredictionOutcome is the result of scoring it against a later price, and
BacktestStats aggregates many predictions.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from trade_analyst.models.recommendation import Recommendation


class Direction(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"

    @classmethod
    def from_recommendation(cls, recommendation: Recommendation) -> "Direction":
        if recommendation in (Recommendation.STRONG_BUY, Recommendation.BUY):
            return cls.BULLISH
        if recommendation in (Recommendation.STRONG_SELL, Recommendation.SELL):
            return cls.BEARISH
        return cls.NEUTRAL


class PredictionStatus(str, Enum):
    """pending until the target, the stop or the expiry date resolves it; partial means TP1 was reached."""

    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    PARTIAL = "partial"

    @classmethod
    def from_string(cls, value: str | None) -> "PredictionStatus":
        mapping = {m.value: m for m in cls}
        return mapping.get(str(value or "").strip().lower(), cls.PENDING)

    @property
    def is_win(self) -> bool:
        return self in (PredictionStatus.WON, PredictionStatus.PARTIAL)


@dataclass(slots=True)
class PredictionOutcome:
    status: PredictionStatus
    exit_price: float
    pnl_percent: float
    hit_target: bool = False
    hit_stop: bool = False
    hit_tp1: bool = False
    hit_tp2: bool = False
    hit_tp3: bool = False


@dataclass(slots=True)
class Prediction:
    job_id: str
    symbol: str
    analysis_type: str
    direction: Direction
    entry_price: float
    target_price: float
    stop_loss: float
    confidence: int
    timeframe: str
    prediction_date: datetime
    expiry_date: datetime
    user_id: str = "local"
    id: int | None = None
    status: PredictionStatus = PredictionStatus.PENDING
    tp1_price: float | None = None
    tp2_price: float | None = None
    tp3_price: float | None = None
    options_strategy: str | None = None
    exit_price: float | None = None
    exit_date: datetime | None = None
    pnl_percent: float | None = None
    hit_target: bool = False
    hit_stop: bool = False
    hit_tp1: bool = False
    hit_tp2: bool = False
    hit_tp3: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["direction"] = self.direction.value
        data["status"] = self.status.value
        for key in ("prediction_date", "expiry_date", "exit_date"):
            data[key] = data[key].isoformat() if data[key] else None
        return data


@dataclass(slots=True)
class BacktestStats:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    pending_trades: int = 0
    win_rate: float = 0.0
    avg_win_percent: float = 0.0
    avg_loss_percent: float = 0.0
    profit_factor: float = 0.0
    bullish_trades: int = 0
    bullish_wins: int = 0
    bearish_trades: int = 0
    bearish_wins: int = 0
    high_confidence_trades: int = 0
    high_confidence_wins: int = 0
    low_confidence_trades: int = 0
    low_confidence_wins: int = 0
    avg_trade_duration_days: float = 0.0
    last_10_trades_win_rate: float = 0.0
    last_30_days_win_rate: float = 0.0
    best_trade_percent: float = 0.0
    worst_trade_percent: float = 0.0
    best_symbol: str = "N/A"
    worst_symbol: str = "N/A"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
