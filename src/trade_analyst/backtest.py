"""
Backtesting of completed trade calls.

``save_prediction`` stores an actionable recommendation together with the
entry, stop and target it will be judged against. ``check_pending_predictions``
scores every pending prediction against a fresh quote: the target wins, the
stop loses, a forex TP1 counts as a partial win, and at expiry the sign of
the P&L decides. ``get_backtest_stats`` aggregates the scored history.
Hold and wait calls are never stored.
"""

import logging
import re
from collections import defaultdict
from datetime import datetime, timedelta

import pandas as pd

from trade_analyst.exceptions import TradeAnalystError
from trade_analyst.models import (
    AnalysisType,
    BacktestStats,
    Direction,
    Prediction,
    PredictionOutcome,
    PredictionStatus,
    TradeRecommendation,
)
from trade_analyst.providers.registry import ProviderRegistry
from trade_analyst.storage import PredictionStore

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 28
DEFAULT_STOP_FRACTION = 0.05
DEFAULT_TARGET_FRACTION = 0.10
HIGH_CONFIDENCE = 70
MIN_TRADES_PER_SYMBOL = 3

_TIMEFRAME = re.compile(r"(\d+)\s*(day|week|month)", re.IGNORECASE)


def expiry_from_timeframe(timeframe: str | None, start: datetime) -> datetime:
    """``"2-4 weeks"`` resolves to start + 4 weeks; anything unrecognized to four weeks."""
    match = _TIMEFRAME.search(timeframe or "")
    if not match:
        return start + timedelta(days=DEFAULT_HORIZON_DAYS)
    count, unit = int(match.group(1)), match.group(2).lower()
    offset = pd.DateOffset(**{f"{unit}s": count})
    return (pd.Timestamp(start) + offset).to_pydatetime()


def prediction_levels(rec: TradeRecommendation, direction: Direction) -> tuple[float, float, float] | None:
    """
    Entry, stop and target for a recommendation, or None without any usable entry.

    Top-level prices win; forex trades fall back to their setup (TP3 as the
    target), options to the first breakeven. A missing stop or target is
    set 5% against or 10% in favor of the entry.
    """
    trade = rec.forex_setup.trade if rec.forex_setup else None
    breakeven = rec.options_strategy.breakeven if rec.options_strategy else ()

    entry = rec.entry_price or (trade.entry_price if trade else None) or rec.current_price
    if not entry and breakeven:
        entry = breakeven[0]
    if not entry:
        return None

    stop = rec.stop_loss or (trade.stop_loss if trade else None)
    target = rec.price_target
    if not target and trade:
        target = trade.take_profit_3 or trade.take_profit_2 or trade.take_profit_1
    if not target and breakeven:
        target = breakeven[0]

    bullish = direction == Direction.BULLISH
    if not stop:
        stop = entry * (1 - DEFAULT_STOP_FRACTION if bullish else 1 + DEFAULT_STOP_FRACTION)
    if not target:
        target = entry * (1 + DEFAULT_TARGET_FRACTION if bullish else 1 - DEFAULT_TARGET_FRACTION)
    return entry, stop, target


def save_prediction(
    store: PredictionStore,
    job_id: str,
    rec: TradeRecommendation,
    user_id: str = "local",
    now: datetime | None = None,
) -> Prediction | None:
    """Store an actionable recommendation for later scoring; returns None when it is skipped."""
    direction = Direction.from_recommendation(rec.recommendation)
    if direction == Direction.NEUTRAL:
        logger.info(f"[Backtest] Skipping {rec.symbol}: {rec.recommendation.value} is not a directional call")
        return None

    levels = prediction_levels(rec, direction)
    if levels is None:
        logger.warning(f"[Backtest] Skipping {rec.symbol}: no entry or current price to measure against")
        return None
    entry, stop, target = levels

    now = now or datetime.now()
    trade = rec.forex_setup.trade if rec.forex_setup else None
    prediction = store.add(
        Prediction(
            job_id=job_id,
            user_id=user_id,
            symbol=rec.symbol,
            analysis_type=rec.analysis_type,
            direction=direction,
            entry_price=entry,
            target_price=target,
            stop_loss=stop,
            confidence=rec.confidence,
            timeframe=rec.timeframe,
            prediction_date=now,
            expiry_date=expiry_from_timeframe(rec.timeframe, now),
            tp1_price=trade.take_profit_1 if trade else None,
            tp2_price=trade.take_profit_2 if trade else None,
            tp3_price=trade.take_profit_3 if trade else None,
            options_strategy=rec.options_strategy.strategy_type if rec.options_strategy else None,
        )
    )
    logger.info(
        f"[Backtest] Saved {prediction.direction.value} prediction for {prediction.symbol}: "
        f"entry {prediction.entry_price}, target {prediction.target_price}, stop {prediction.stop_loss}"
    )
    return prediction


def _reached(price: float, level: float | None, bullish: bool) -> bool:
    if level is None:
        return False
    return price >= level if bullish else price <= level


def evaluate_prediction(prediction: Prediction, price: float, now: datetime) -> PredictionOutcome | None:
    """Score a prediction against ``price``; None while it is still open."""
    entry, target, stop = prediction.entry_price, prediction.target_price, prediction.stop_loss
    if entry <= 0 or target <= 0 or stop <= 0:
        logger.warning(f"[Backtest] Invalid levels for {prediction.symbol}: {entry=}, {target=}, {stop=}")
        return None

    bullish = prediction.direction == Direction.BULLISH
    pnl = (price - entry) / entry * 100 if bullish else (entry - price) / entry * 100
    hit_target = _reached(price, target, bullish)
    hit_stop = _reached(price, stop, not bullish)

    forex = prediction.analysis_type == AnalysisType.FOREX.value
    hit_tp1 = forex and _reached(price, prediction.tp1_price, bullish)
    hit_tp2 = forex and _reached(price, prediction.tp2_price, bullish)
    hit_tp3 = forex and _reached(price, prediction.tp3_price, bullish)

    if hit_target:
        status = PredictionStatus.WON
    elif hit_stop:
        status = PredictionStatus.LOST
    elif hit_tp1:
        status = PredictionStatus.PARTIAL
    elif now > prediction.expiry_date:
        status = PredictionStatus.WON if pnl > 0 else PredictionStatus.LOST
    else:
        return None

    return PredictionOutcome(
        status=status,
        exit_price=price,
        pnl_percent=round(pnl, 4),
        hit_target=hit_target,
        hit_stop=hit_stop,
        hit_tp1=hit_tp1,
        hit_tp2=hit_tp2,
        hit_tp3=hit_tp3,
    )


async def _current_price(providers: ProviderRegistry, symbol: str, analysis_type: str) -> float | None:
    try:
        if analysis_type == AnalysisType.FOREX.value:
            return (await providers.twelvedata.get_forex_quote(symbol)).mid
        return (await providers.polygon.get_stock_quote(symbol)).price
    except TradeAnalystError as e:
        logger.warning(f"[Backtest] No price for {symbol}: {e.message}")
        return None


async def check_pending_predictions(
    store: PredictionStore,
    providers: ProviderRegistry,
    now: datetime | None = None,
) -> int:
    """Score every pending prediction against the current price; returns how many resolved."""
    now = now or datetime.now()
    pending = store.list_predictions(status=PredictionStatus.PENDING)
    logger.info(f"[Backtest] Checking {len(pending)} pending predictions")

    prices: dict[tuple[str, str], float | None] = {}
    resolved = 0
    for prediction in pending:
        key = (prediction.symbol, prediction.analysis_type)
        if key not in prices:
            prices[key] = await _current_price(providers, *key)
        price = prices[key]
        if not price:
            continue

        outcome = evaluate_prediction(prediction, price, now)
        if outcome is None:
            continue
        if store.record_outcome(prediction.id, outcome, now):
            resolved += 1
            logger.info(
                f"[Backtest] {prediction.symbol} {prediction.direction.value} -> {outcome.status.value} "
                f"at {price} ({outcome.pnl_percent:+.2f}%)"
            )
    return resolved


def _win_rate(predictions: list[Prediction]) -> float:
    if not predictions:
        return 0.0
    return sum(1 for p in predictions if p.status.is_win) / len(predictions) * 100


def compute_backtest_stats(predictions: list[Prediction], now: datetime | None = None) -> BacktestStats:
    """Aggregate predictions given newest first."""
    now = now or datetime.now()
    completed = [p for p in predictions if p.status != PredictionStatus.PENDING]
    wins = [p for p in completed if p.status.is_win]
    losses = [p for p in completed if p.status == PredictionStatus.LOST]

    total_win = sum(p.pnl_percent or 0.0 for p in wins)
    total_loss = abs(sum(p.pnl_percent or 0.0 for p in losses))
    durations = [(p.exit_date - p.prediction_date).total_seconds() / 86400 for p in completed if p.exit_date]
    pnls = [p.pnl_percent or 0.0 for p in completed]

    by_symbol: dict[str, list[Prediction]] = defaultdict(list)
    for p in completed:
        by_symbol[p.symbol].append(p)
    symbol_rates = sorted(
        ((symbol, _win_rate(trades)) for symbol, trades in by_symbol.items() if len(trades) >= MIN_TRADES_PER_SYMBOL),
        key=lambda item: item[1],
        reverse=True,
    )

    bullish = [p for p in predictions if p.direction == Direction.BULLISH]
    bearish = [p for p in predictions if p.direction == Direction.BEARISH]
    high_conf = [p for p in predictions if p.confidence >= HIGH_CONFIDENCE]
    low_conf = [p for p in predictions if p.confidence < HIGH_CONFIDENCE]
    last_30 = [p for p in completed if p.prediction_date >= now - timedelta(days=30)]

    return BacktestStats(
        total_trades=len(predictions),
        winning_trades=len(wins),
        losing_trades=len(losses),
        pending_trades=len(predictions) - len(completed),
        win_rate=_win_rate(completed),
        avg_win_percent=total_win / len(wins) if wins else 0.0,
        avg_loss_percent=total_loss / len(losses) if losses else 0.0,
        profit_factor=total_win / total_loss if total_loss > 0 else total_win,
        bullish_trades=len(bullish),
        bullish_wins=sum(1 for p in bullish if p.status.is_win),
        bearish_trades=len(bearish),
        bearish_wins=sum(1 for p in bearish if p.status.is_win),
        high_confidence_trades=len(high_conf),
        high_confidence_wins=sum(1 for p in high_conf if p.status.is_win),
        low_confidence_trades=len(low_conf),
        low_confidence_wins=sum(1 for p in low_conf if p.status.is_win),
        avg_trade_duration_days=sum(durations) / len(durations) if durations else 0.0,
        last_10_trades_win_rate=_win_rate(completed[:10]),
        last_30_days_win_rate=_win_rate(last_30),
        best_trade_percent=max(pnls, default=0.0),
        worst_trade_percent=min(pnls, default=0.0),
        best_symbol=symbol_rates[0][0] if symbol_rates else "N/A",
        worst_symbol=symbol_rates[-1][0] if symbol_rates else "N/A",
    )


def get_backtest_stats(
    store: PredictionStore,
    days: int | None = None,
    analysis_type: str | None = None,
    symbol: str | None = None,
    user_id: str | None = None,
) -> BacktestStats:
    """Statistics over the stored predictions matching the filters."""
    predictions = store.list_predictions(days=days, analysis_type=analysis_type, symbol=symbol, user_id=user_id)
    return compute_backtest_stats(predictions)
