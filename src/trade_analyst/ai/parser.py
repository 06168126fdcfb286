"""
Recommendation parser and trade-quality validator.

Turns the model's final text into a TradeRecommendation:

1. extract_json finds the JSON object (code fence, balanced span, repair)
2. RawRecommendation decodes it with explicit defaults
3. forex setups are normalized to pip-based ForexSetup
4. missing prices are back-filled from the forex setup or stock_result
5. the quality gate rewrites weak trades to "wait"

parse_recommendation never raises; unusable text becomes a conservative
"hold".
"""

import json
import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

import json_repair
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from trade_analyst.models import (
    ForexIndicators,
    ForexLevels,
    ForexSetup,
    ForexTiming,
    ForexTrade,
    KeyFactor,
    OptionGreeks,
    OptionLeg,
    OptionsStrategy,
    Recommendation,
    Sentiment,
    TradeRecommendation,
)

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 60
MIN_REWARD_RISK = 2.0
MIN_FOREX_TP2_RATIO = 2.0
FAILED_PARSE_CONFIDENCE = 30
FAILED_PARSE_RISK = "Analysis parsing failed - review manually"

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)```")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_LINE_COMMENT_RE = re.compile(r"//[^\n]*")
_PRICE_RE = re.compile(r"\$?([\d.]+)")


# =============================================================================
# JSON extraction
# =============================================================================


def _loads_dict(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def _balanced_object(content: str) -> str | None:
    """First balanced ``{...}`` span, ignoring braces inside strings."""
    start = content.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(content)):
        ch = content[i]
        if escape:
            escape = False
            continue
        if ch == "\\" and in_string:
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return content[start : i + 1]
    return None


def _clean(text: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", _LINE_COMMENT_RE.sub("", text))


def extract_json(content: str) -> dict[str, Any] | None:
    """Extract the recommendation object from model output, or None."""
    if not content:
        return None

    fence = _FENCE_RE.search(content)
    if fence:
        parsed = _loads_dict(fence.group(1).strip())
        if parsed is not None:
            return parsed

    span = _balanced_object(content)
    if span is not None:
        parsed = _loads_dict(span) or _loads_dict(_clean(span))
        if parsed is not None:
            return parsed

    # Truncated or sloppy JSON: let json_repair have the widest candidate
    start = content.find("{")
    if start == -1:
        return None
    repaired = json_repair.repair_json(content[start:], return_objects=True)
    if isinstance(repaired, dict) and repaired:
        return repaired
    return None


# =============================================================================
# Decoding
# =============================================================================


def _to_number(value: Any) -> Any:
    """Accept "185.50", "$185.50", "75%" and "1,250" where a number is expected."""
    if isinstance(value, str):
        cleaned = value.strip().replace(",", "").replace("$", "").rstrip("%").strip()
        if not cleaned:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return value
    return value


class _RawModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # explicit nulls fall back to the field defaults
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class RawGreeks(_RawModel):
    delta: float | None = Field(default=None, validation_alias=AliasChoices("delta", "net_delta"))
    gamma: float | None = Field(default=None, validation_alias=AliasChoices("gamma", "net_gamma"))
    theta: float | None = Field(default=None, validation_alias=AliasChoices("theta", "net_theta"))
    vega: float | None = Field(default=None, validation_alias=AliasChoices("vega", "net_vega"))
    rho: float | None = None
    implied_volatility: float | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _numbers(cls, v: Any) -> Any:
        v = _to_number(v)
        return None if isinstance(v, str) else v

    def to_greeks(self) -> OptionGreeks:
        return OptionGreeks(**self.model_dump())


class RawOptionLeg(_RawModel):
    action: str = "buy"
    option_type: str = Field(default="call", validation_alias=AliasChoices("option_type", "type"))
    strike: float = 0.0
    expiration: str = ""
    quantity: int = 1
    premium: float | None = None
    greeks: RawGreeks | None = None
    contract_name: str | None = Field(default=None, validation_alias=AliasChoices("contract_name", "contract"))

    @field_validator("strike", "premium", "quantity", mode="before")
    @classmethod
    def _numbers(cls, v: Any) -> Any:
        v = _to_number(v)
        return int(v) if isinstance(v, float) and v.is_integer() else v


class RawOptionsStrategy(_RawModel):
    strategy_type: str = ""
    strategy_description: str = ""
    legs: list[RawOptionLeg] = Field(default_factory=list)
    position_greeks: RawGreeks | None = None
    max_profit: float | None = None
    max_loss: float | None = None
    breakeven: list[float] = Field(default_factory=list)
    probability_of_profit: float | None = None
    days_to_expiration: int = 0
    risk_reward_ratio: float | None = None
    net_debit_credit: float | None = None
    implied_volatility: float | None = None
    iv_rank: float | None = None
    execution_notes: str | None = None

    @field_validator(
        "max_profit",
        "max_loss",
        "probability_of_profit",
        "risk_reward_ratio",
        "net_debit_credit",
        "implied_volatility",
        "iv_rank",
        mode="before",
    )
    @classmethod
    def _numbers(cls, v: Any) -> Any:
        # "UNLIMITED" max profit and friends carry no number
        v = _to_number(v)
        return None if isinstance(v, str) else v

    @field_validator("breakeven", mode="before")
    @classmethod
    def _breakeven_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if not isinstance(v, list):
            v = [v]
        return [n for n in (_to_number(x) for x in v) if isinstance(n, int | float)]

    @field_validator("days_to_expiration", mode="before")
    @classmethod
    def _days(cls, v: Any) -> Any:
        v = _to_number(v)
        return int(v) if isinstance(v, float) else (v or 0)


class RawKeyFactor(_RawModel):
    factor: str = ""
    sentiment: str = "neutral"
    weight: int = 50
    source: str = ""

    @field_validator("weight", mode="before")
    @classmethod
    def _weight(cls, v: Any) -> Any:
        v = _to_number(v)
        if isinstance(v, str):
            return 50
        return round(v) if isinstance(v, float) else v


class RawRecommendation(_RawModel):
    """The model's final JSON object, before normalization."""

    symbol: str | None = None
    analysis_type: str | None = None
    recommendation: str = "hold"
    confidence: float | None = None
    current_price: float | None = Field(default=None, validation_alias=AliasChoices("current_price", "currentPrice"))
    entry_price: float | None = None
    stop_loss: float | None = None
    price_target: float | None = None
    timeframe: str | None = None
    reasoning: str | None = None
    key_factors: list[RawKeyFactor] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    options_strategy: RawOptionsStrategy | None = None
    forex_setup: dict[str, Any] | None = None
    stock_result: dict[str, Any] | None = None
    smart_money_analysis: dict[str, Any] | None = None
    data_sources: list[str] = Field(default_factory=list)

    @field_validator("confidence", "current_price", "entry_price", "stop_loss", "price_target", mode="before")
    @classmethod
    def _numbers(cls, v: Any) -> Any:
        return _to_number(v)

    @field_validator("recommendation", mode="before")
    @classmethod
    def _recommendation(cls, v: Any) -> Any:
        return v or "hold"

    @field_validator("key_factors", mode="before")
    @classmethod
    def _factors(cls, v: Any) -> Any:
        return [kf for kf in v if isinstance(kf, dict)] if isinstance(v, list) else []

    @field_validator("risks", "data_sources", mode="before")
    @classmethod
    def _strings(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return [str(x) for x in v] if isinstance(v, list) else []


@dataclass(frozen=True)
class ParseSuccess:
    recommendation: TradeRecommendation


@dataclass(frozen=True)
class ParseFailure:
    reason: str


ParseOutcome = ParseSuccess | ParseFailure


# =============================================================================
# Dates
# =============================================================================


def _same_day_in_year(d: date, year: int) -> date:
    try:
        return d.replace(year=year)
    except ValueError:
        # Feb 29 into a non-leap year
        return d.replace(year=year, day=28)


def fix_past_dates(date_str: str, today: date | None = None) -> str:
    """
    Move a past expiration to the next occurrence of its month/day, then
    forward to the following Friday. Unparseable and future dates pass
    through unchanged.
    """
    today = today or date.today()
    try:
        parsed = date.fromisoformat(date_str.strip()[:10])
    except (ValueError, AttributeError):
        return date_str
    if parsed >= today:
        return date_str

    future = _same_day_in_year(parsed, today.year)
    if future <= today:
        future = _same_day_in_year(parsed, today.year + 1)
    future += timedelta(days=(4 - future.weekday()) % 7)
    return future.isoformat()


# =============================================================================
# Validation
# =============================================================================


def reward_risk_ratio(entry: float, stop: float, target: float) -> float:
    risk = abs(entry - stop)
    return abs(target - entry) / risk if risk > 0 else 0.0


def validate_trade_quality(
    recommendation: Recommendation,
    entry_price: float | None,
    stop_loss: float | None,
    price_target: float | None,
    confidence: int,
    analysis_type: str,
) -> tuple[bool, str]:
    """
    Quality gate for actionable calls.

    Returns:
        (is_valid, reason)
    """
    if recommendation in (Recommendation.WAIT, Recommendation.HOLD):
        return True, "Wait/hold recommendation"

    if confidence < MIN_CONFIDENCE:
        return False, f"Low confidence ({confidence}%) is below the {MIN_CONFIDENCE}% minimum - should be wait"

    if analysis_type == "stock" and entry_price and stop_loss and price_target:
        ratio = reward_risk_ratio(entry_price, stop_loss, price_target)
        logger.info(
            f"[Parser] R:R check - entry: {entry_price}, stop: {stop_loss}, target: {price_target}, "
            f"ratio: {ratio:.2f}"
        )
        if ratio < MIN_REWARD_RISK:
            return False, f"R:R ratio {ratio:.1f}:1 is below minimum 2:1 - reward does not justify the risk"

    return True, "Trade meets quality requirements"


# =============================================================================
# Forex setup
# =============================================================================


@dataclass(frozen=True)
class PipProfile:
    """Pip size and sane-price floor for one instrument class."""

    multiplier: float
    min_price: float
    default_sl: int
    default_tp: tuple[int, int, int]


_STANDARD = PipProfile(10000, 0.1, 25, (25, 50, 75))
_JPY = PipProfile(100, 50, 25, (25, 50, 75))
_GOLD = PipProfile(10, 1000, 50, (50, 100, 150))
_SILVER = PipProfile(100, 10, 50, (50, 100, 150))
_OIL = PipProfile(100, 30, 50, (50, 100, 150))


def pip_profile(symbol: str) -> PipProfile:
    upper = symbol.upper()
    if "XAU" in upper:
        return _GOLD
    if "XAG" in upper:
        return _SILVER
    if any(s in upper for s in ("XTI", "XBR", "OIL")):
        return _OIL
    if "JPY" in upper:
        return _JPY
    return _STANDARD


def _num(value: Any) -> float:
    """Price from a number, a numeric string or a ``{"price": ...}`` object; 0 when absent."""
    if isinstance(value, dict):
        value = value.get("price")
    value = _to_number(value)
    if isinstance(value, int | float) and math.isfinite(value):
        return float(value)
    return 0.0


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key)
    return value if isinstance(value, dict) else {}


def _nth(values: Any, n: int) -> float:
    if isinstance(values, list) and len(values) > n:
        return _num(values[n])
    return 0.0


def parse_forex_setup(raw: dict[str, Any], symbol: str) -> ForexSetup | None:
    """
    Normalize the nested forex_setup shape into a ForexSetup.

    Returns None when entry, stop or TP1 is missing or implausible for the
    instrument; no levels are invented for an incomplete setup. Stops and
    targets on the wrong side of entry are replaced by default pip distances.
    """
    trade = _section(raw, "trade")
    levels = _section(raw, "levels")
    indicators = _section(raw, "indicators")
    timing = _section(raw, "timing")
    news = _section(raw, "news_warning")

    profile = pip_profile(symbol)
    mult = profile.multiplier

    entry = _num(trade.get("entry_price") or raw.get("entry_price"))
    raw_sl = _num(levels.get("stop_loss") or trade.get("stop_loss") or raw.get("stop_loss_price"))
    raw_tp1 = _num(levels.get("take_profit_1") or trade.get("take_profit_1") or raw.get("take_profit_price"))
    raw_tp2 = _num(levels.get("take_profit_2") or trade.get("take_profit_2"))
    raw_tp3 = _num(levels.get("take_profit_3") or trade.get("take_profit_3"))
    raw_current = _num(raw.get("current_price") or trade.get("current_price"))
    current = raw_current if raw_current >= profile.min_price else 0.0

    if entry < profile.min_price:
        logger.info(f"[Parser] Forex entry {entry} is not a valid price for {symbol}; no setup")
        return None
    if raw_sl < profile.min_price or raw_tp1 < profile.min_price:
        logger.info(f"[Parser] Forex SL ({raw_sl}) or TP1 ({raw_tp1}) missing for {symbol}; no setup")
        return None

    direction = str(trade.get("direction") or raw.get("direction") or "").strip().lower()
    if direction in ("long", "buy", "bullish"):
        is_long = True
    elif direction in ("short", "sell", "bearish"):
        is_long = False
    else:
        is_long = raw_tp1 > entry

    sign = 1 if is_long else -1

    def target(raw_price: float, default_pips: int) -> float:
        if raw_price > 0 and (raw_price - entry) * sign > 0:
            return raw_price
        return entry + sign * default_pips / mult

    stop = raw_sl if (entry - raw_sl) * sign > 0 else entry - sign * profile.default_sl / mult
    tp1 = target(raw_tp1, profile.default_tp[0])
    tp2 = target(raw_tp2, profile.default_tp[1])
    tp3 = target(raw_tp3, profile.default_tp[2])

    sl_pips = abs(entry - stop) * mult
    tp_pips = [abs(tp - entry) * mult for tp in (tp1, tp2, tp3)]

    reference = current if current > 0 else entry
    if is_long:
        order_type = "BUY_LIMIT" if entry < reference else "BUY_STOP" if entry > reference else "MARKET"
    else:
        order_type = "SELL_LIMIT" if entry > reference else "SELL_STOP" if entry < reference else "MARKET"

    risks = raw.get("risks")
    return ForexSetup(
        pair=str(trade.get("pair") or raw.get("pair") or symbol),
        current_price=reference,
        direction="BULLISH" if is_long else "BEARISH",
        trade=ForexTrade(
            action="BUY" if is_long else "SELL",
            order_type=order_type,
            entry_price=entry,
            stop_loss=stop,
            take_profit_1=tp1,
            take_profit_2=tp2,
            take_profit_3=tp3,
            stop_loss_pips=round(sl_pips),
            take_profit_1_pips=round(tp_pips[0]),
            take_profit_2_pips=round(tp_pips[1]),
            take_profit_3_pips=round(tp_pips[2]),
            risk_reward_ratio=f"1:{tp_pips[0] / sl_pips:.1f}" if sl_pips > 0 else "1:2",
        ),
        levels=ForexLevels(
            support1=_nth(levels.get("key_support"), 0),
            support2=_nth(levels.get("key_support"), 1),
            resistance1=_nth(levels.get("key_resistance"), 0),
            resistance2=_nth(levels.get("key_resistance"), 1),
            daily_pivot=entry,
            atr=sl_pips,
        ),
        indicators=ForexIndicators(
            rsi=_num(indicators.get("rsi")) or 50.0,
            trend=str(indicators.get("trend") or "Neutral"),
            macd=str(indicators.get("macd") or "Neutral"),
            moving_averages=str(indicators.get("moving_averages") or "Mixed"),
        ),
        timing=ForexTiming(
            current_session=str(timing.get("best_session") or "London"),
            optimal_entry=str(timing.get("best_session") or "During London session"),
            news_warnings=tuple(str(e) for e in news.get("high_impact_events") or ()),
            expiry_time=str(timing.get("valid_until") or "24 hours"),
        ),
        position_sizing=str(
            trade.get("position_size_suggestion") or raw.get("position_size_suggestion") or "Risk 1% of account"
        ),
        risk_factors=tuple(str(r) for r in risks) if isinstance(risks, list) else (),
    )


# =============================================================================
# Assembly
# =============================================================================


def _price_from_text(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, int | float):
        return float(value)
    match = _PRICE_RE.search(str(value))
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def _options_strategy(raw: RawOptionsStrategy, today: date | None) -> OptionsStrategy:
    return OptionsStrategy(
        strategy_type=raw.strategy_type,
        strategy_description=raw.strategy_description,
        legs=tuple(
            OptionLeg(
                action=leg.action,
                option_type=leg.option_type,
                strike=leg.strike,
                expiration=fix_past_dates(leg.expiration, today) if leg.expiration else leg.expiration,
                quantity=leg.quantity,
                premium=leg.premium,
                greeks=leg.greeks.to_greeks() if leg.greeks else None,
                contract=leg.contract_name,
            )
            for leg in raw.legs
        ),
        position_greeks=raw.position_greeks.to_greeks() if raw.position_greeks else None,
        max_profit=raw.max_profit,
        max_loss=raw.max_loss,
        breakeven=tuple(raw.breakeven),
        probability_of_profit=raw.probability_of_profit,
        days_to_expiration=raw.days_to_expiration,
        risk_reward_ratio=raw.risk_reward_ratio,
        net_debit_credit=raw.net_debit_credit,
        implied_volatility=raw.implied_volatility,
        iv_rank=raw.iv_rank,
        execution_notes=raw.execution_notes,
    )


def _clamp_confidence(value: float | None) -> int:
    if value is None:
        return 50
    return max(0, min(100, round(value)))


def parse_recommendation_json(
    text: str,
    symbol: str,
    analysis_type: str,
    today: date | None = None,
) -> ParseOutcome:
    """Decode and normalize the model's final answer; no fallback recommendation."""
    data = extract_json(text)
    if data is None:
        return ParseFailure("No JSON found in response")

    try:
        raw = RawRecommendation.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(p) for p in first["loc"])
        return ParseFailure(f"Recommendation JSON failed validation at {location}: {first['msg']}")

    recommendation = Recommendation.from_string(raw.recommendation)
    confidence = _clamp_confidence(raw.confidence)
    reasoning = raw.reasoning or "Analysis complete"

    forex_setup = parse_forex_setup(raw.forex_setup, symbol) if raw.forex_setup else None
    if forex_setup is not None:
        tp2_ratio = forex_setup.trade.tp2_reward_risk
        logger.info(
            f"[Parser] Forex R:R - SL: {forex_setup.trade.stop_loss_pips} pips, "
            f"TP2: {forex_setup.trade.take_profit_2_pips} pips, ratio: {tp2_ratio:.2f}"
        )
        if tp2_ratio < MIN_FOREX_TP2_RATIO and recommendation.is_actionable():
            recommendation = Recommendation.WAIT
            reasoning = (
                f"Original setup had R:R of {tp2_ratio:.1f}:1 which is below minimum 2:1. "
                f"Wait for better entry. Original analysis: {reasoning}"
            )

    stock_result = raw.stock_result or {}
    current_price = raw.current_price
    if not current_price and forex_setup is not None:
        current_price = forex_setup.current_price
    if not current_price:
        current_price = _price_from_text(stock_result.get("currentPrice"))

    entry_price = raw.entry_price
    stop_loss = raw.stop_loss
    price_target = raw.price_target

    if forex_setup is not None:
        fx = forex_setup.trade
        entry_price = entry_price or fx.entry_price
        stop_loss = stop_loss or fx.stop_loss
        price_target = price_target or fx.take_profit_3 or fx.take_profit_2 or fx.take_profit_1

    execution = stock_result.get("execution")
    if isinstance(execution, dict):
        entry_price = entry_price or _price_from_text(execution.get("entryPrice"))
        stop_loss = stop_loss or _price_from_text(execution.get("stopLoss"))
        price_target = price_target or _price_from_text(execution.get("profitTarget"))
        risk_reward = stock_result.get("riskReward")
        if not price_target and isinstance(risk_reward, dict):
            price_target = _price_from_text(risk_reward.get("breakeven"))

    options_strategy = _options_strategy(raw.options_strategy, today) if raw.options_strategy else None
    if not entry_price and options_strategy is not None and options_strategy.legs and current_price:
        entry_price = current_price

    is_valid, reason = validate_trade_quality(
        recommendation, entry_price, stop_loss, price_target, confidence, analysis_type
    )
    if not is_valid:
        logger.info(f"[Parser] Trade validation failed: {reason}")
        recommendation = Recommendation.WAIT
        reasoning = f"{reason}. Original analysis: {raw.reasoning or 'See analysis above'}"

    return ParseSuccess(
        TradeRecommendation(
            symbol=raw.symbol or symbol.upper(),
            analysis_type=raw.analysis_type or analysis_type,
            recommendation=recommendation,
            confidence=confidence,
            generated_at=datetime.now().isoformat(),
            current_price=current_price or None,
            entry_price=entry_price or None,
            price_target=price_target or None,
            stop_loss=stop_loss or None,
            timeframe=raw.timeframe or "Unknown",
            reasoning=reasoning,
            key_factors=tuple(
                KeyFactor(
                    factor=kf.factor,
                    sentiment=Sentiment.from_string(kf.sentiment),
                    weight=max(0, min(100, kf.weight)),
                    source=kf.source,
                )
                for kf in raw.key_factors
            ),
            risks=tuple(raw.risks),
            options_strategy=options_strategy,
            forex_setup=forex_setup,
            stock_result=raw.stock_result,
            smart_money=raw.smart_money_analysis,
            data_sources=tuple(raw.data_sources),
        )
    )


def failed_parse_recommendation(text: str, symbol: str, analysis_type: str) -> TradeRecommendation:
    return TradeRecommendation(
        symbol=symbol.upper(),
        analysis_type=analysis_type,
        recommendation=Recommendation.HOLD,
        confidence=FAILED_PARSE_CONFIDENCE,
        generated_at=datetime.now().isoformat(),
        reasoning=text[:500],
        risks=(FAILED_PARSE_RISK,),
    )


def parse_recommendation(
    text: str,
    symbol: str,
    analysis_type: str,
    today: date | None = None,
) -> TradeRecommendation:
    """Always returns a recommendation; unparseable text becomes a low-confidence hold."""
    outcome = parse_recommendation_json(text, symbol, analysis_type, today)
    if isinstance(outcome, ParseSuccess):
        return outcome.recommendation

    logger.error(f"[Parser] Failed to parse recommendation: {outcome.reason}")
    logger.debug(f"[Parser] Content preview: {text[:500]}")
    return failed_parse_recommendation(text, symbol, analysis_type)
