"""
Trade recommendation models.

Contains the Recommendation and Sentiment enumerations and the immutable
TradeRecommendation value object with its options/forex sub-structures.
"""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any


class Recommendation(str, Enum):
    """Final trading call."""

    STRONG_BUY = "strong_buy"
    BUY = "buy"
    HOLD = "hold"
    SELL = "sell"
    STRONG_SELL = "strong_sell"
    WAIT = "wait"

    @classmethod
    def from_string(cls, value: str | None) -> "Recommendation":
        """Create recommendation from string, falling back to HOLD."""
        if not value:
            return cls.HOLD
        normalized = str(value).strip().lower().replace(" ", "_").replace("-", "_")
        for member in cls:
            if member.value == normalized:
                return member
        return cls.HOLD

    def is_actionable(self) -> bool:
        """Whether the call asks the user to open a position."""
        return self not in (Recommendation.HOLD, Recommendation.WAIT)


class Sentiment(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"

    @classmethod
    def from_string(cls, value: str | None) -> "Sentiment":
        mapping = {m.value: m for m in cls}
        return mapping.get(str(value or "").strip().lower(), cls.NEUTRAL)


@dataclass(frozen=True)
class KeyFactor:
    """One weighted driver behind a recommendation."""

    factor: str
    sentiment: Sentiment = Sentiment.NEUTRAL
    weight: int = 50
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "factor": self.factor,
            "sentiment": self.sentiment.value,
            "weight": self.weight,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeyFactor":
        return cls(
            factor=data.get("factor", ""),
            sentiment=Sentiment.from_string(data.get("sentiment")),
            weight=data.get("weight", 50),
            source=data.get("source", ""),
        )


@dataclass(frozen=True)
class OptionGreeks:
    delta: float | None = None
    gamma: float | None = None
    theta: float | None = None
    vega: float | None = None
    rho: float | None = None
    implied_volatility: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "OptionGreeks | None":
        if not data:
            return None
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class OptionLeg:
    """One leg of a multi-leg options position."""

    action: str
    option_type: str
    strike: float
    expiration: str
    quantity: int = 1
    premium: float | None = None
    greeks: OptionGreeks | None = None
    contract: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "option_type": self.option_type,
            "strike": self.strike,
            "expiration": self.expiration,
            "quantity": self.quantity,
            "premium": self.premium,
            "greeks": self.greeks.to_dict() if self.greeks else None,
            "contract": self.contract,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OptionLeg":
        return cls(
            action=data.get("action", "buy"),
            option_type=data.get("option_type", "call"),
            strike=data.get("strike", 0.0),
            expiration=data.get("expiration", ""),
            quantity=data.get("quantity", 1),
            premium=data.get("premium"),
            greeks=OptionGreeks.from_dict(data.get("greeks")),
            contract=data.get("contract"),
        )


@dataclass(frozen=True)
class OptionsStrategy:
    """
    Options strategy with per-leg and position-level Greeks.

    ``net_debit_credit`` is positive for a debit and negative for a credit.
    """

    strategy_type: str
    strategy_description: str = ""
    legs: tuple[OptionLeg, ...] = ()
    position_greeks: OptionGreeks | None = None
    max_profit: float | None = None
    max_loss: float | None = None
    breakeven: tuple[float, ...] = ()
    probability_of_profit: float | None = None
    days_to_expiration: int = 0
    risk_reward_ratio: float | None = None
    net_debit_credit: float | None = None
    implied_volatility: float | None = None
    iv_rank: float | None = None
    execution_notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy_type": self.strategy_type,
            "strategy_description": self.strategy_description,
            "legs": [leg.to_dict() for leg in self.legs],
            "position_greeks": self.position_greeks.to_dict() if self.position_greeks else None,
            "max_profit": self.max_profit,
            "max_loss": self.max_loss,
            "breakeven": list(self.breakeven),
            "probability_of_profit": self.probability_of_profit,
            "days_to_expiration": self.days_to_expiration,
            "risk_reward_ratio": self.risk_reward_ratio,
            "net_debit_credit": self.net_debit_credit,
            "implied_volatility": self.implied_volatility,
            "iv_rank": self.iv_rank,
            "execution_notes": self.execution_notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OptionsStrategy":
        return cls(
            strategy_type=data.get("strategy_type", ""),
            strategy_description=data.get("strategy_description", ""),
            legs=tuple(OptionLeg.from_dict(leg) for leg in data.get("legs") or []),
            position_greeks=OptionGreeks.from_dict(data.get("position_greeks")),
            max_profit=data.get("max_profit"),
            max_loss=data.get("max_loss"),
            breakeven=tuple(data.get("breakeven") or ()),
            probability_of_profit=data.get("probability_of_profit"),
            days_to_expiration=data.get("days_to_expiration", 0),
            risk_reward_ratio=data.get("risk_reward_ratio"),
            net_debit_credit=data.get("net_debit_credit"),
            implied_volatility=data.get("implied_volatility"),
            iv_rank=data.get("iv_rank"),
            execution_notes=data.get("execution_notes"),
        )


@dataclass(frozen=True)
class ForexTrade:
    """Entry, stop and three take-profit levels in price and pips."""

    action: str
    order_type: str
    entry_price: float
    stop_loss: float
    take_profit_1: float
    take_profit_2: float
    take_profit_3: float
    stop_loss_pips: int
    take_profit_1_pips: int
    take_profit_2_pips: int
    take_profit_3_pips: int
    risk_reward_ratio: str

    @property
    def tp2_reward_risk(self) -> float:
        return self.take_profit_2_pips / self.stop_loss_pips if self.stop_loss_pips > 0 else 0.0


@dataclass(frozen=True)
class ForexLevels:
    support1: float = 0.0
    support2: float = 0.0
    resistance1: float = 0.0
    resistance2: float = 0.0
    daily_pivot: float = 0.0
    atr: float = 0.0


@dataclass(frozen=True)
class ForexIndicators:
    rsi: float = 50.0
    trend: str = "Neutral"
    macd: str = "Neutral"
    moving_averages: str = "Mixed"


@dataclass(frozen=True)
class ForexTiming:
    current_session: str = "London"
    optimal_entry: str = "During London session"
    news_warnings: tuple[str, ...] = ()
    expiry_time: str = "24 hours"


@dataclass(frozen=True)
class ForexSetup:
    """Normalized forex trade setup."""

    pair: str
    current_price: float
    direction: str
    trade: ForexTrade
    levels: ForexLevels = field(default_factory=ForexLevels)
    indicators: ForexIndicators = field(default_factory=ForexIndicators)
    timing: ForexTiming = field(default_factory=ForexTiming)
    position_sizing: str = "Risk 1% of account"
    management_rules: tuple[str, ...] = (
        "Move SL to breakeven after TP1 is hit",
        "Close 50% at TP1, 30% at TP2, 20% at TP3",
    )
    risk_factors: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timing"]["news_warnings"] = list(self.timing.news_warnings)
        data["management_rules"] = list(self.management_rules)
        data["risk_factors"] = list(self.risk_factors)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ForexSetup":
        timing = dict(data.get("timing") or {})
        timing["news_warnings"] = tuple(timing.get("news_warnings") or ())
        return cls(
            pair=data["pair"],
            current_price=data.get("current_price", 0.0),
            direction=data.get("direction", "NEUTRAL"),
            trade=ForexTrade(**data["trade"]),
            levels=ForexLevels(**(data.get("levels") or {})),
            indicators=ForexIndicators(**(data.get("indicators") or {})),
            timing=ForexTiming(**timing),
            position_sizing=data.get("position_sizing", "Risk 1% of account"),
            management_rules=tuple(data.get("management_rules") or ()),
            risk_factors=tuple(data.get("risk_factors") or ()),
        )


@dataclass(frozen=True)
class TradeRecommendation:
    """
    Final structured recommendation produced by one analysis run.

    Immutable: a new run produces a new object. Use ``with_changes`` to
    derive a modified copy.
    """

    symbol: str
    analysis_type: str
    recommendation: Recommendation
    confidence: int
    generated_at: str
    current_price: float | None = None
    entry_price: float | None = None
    price_target: float | None = None
    stop_loss: float | None = None
    timeframe: str = "Unknown"
    reasoning: str = ""
    key_factors: tuple[KeyFactor, ...] = ()
    risks: tuple[str, ...] = ()
    options_strategy: OptionsStrategy | None = None
    forex_setup: ForexSetup | None = None
    stock_result: dict[str, Any] | None = None
    smart_money: dict[str, Any] | None = None
    data_sources: tuple[str, ...] = ()

    def with_changes(self, **changes: Any) -> "TradeRecommendation":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "symbol": self.symbol,
            "analysis_type": self.analysis_type,
            "recommendation": self.recommendation.value,
            "confidence": self.confidence,
            "current_price": self.current_price,
            "entry_price": self.entry_price,
            "price_target": self.price_target,
            "stop_loss": self.stop_loss,
            "timeframe": self.timeframe,
            "reasoning": self.reasoning,
            "key_factors": [kf.to_dict() for kf in self.key_factors],
            "risks": list(self.risks),
            "options_strategy": self.options_strategy.to_dict() if self.options_strategy else None,
            "forex_setup": self.forex_setup.to_dict() if self.forex_setup else None,
            "stock_result": self.stock_result,
            "smart_money": self.smart_money,
            "data_sources": list(self.data_sources),
            "generated_at": self.generated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TradeRecommendation":
        """Create from a dictionary previously produced by ``to_dict``."""
        options = data.get("options_strategy")
        forex = data.get("forex_setup")
        return cls(
            symbol=data["symbol"],
            analysis_type=data.get("analysis_type", "stock"),
            recommendation=Recommendation.from_string(data.get("recommendation")),
            confidence=data.get("confidence", 50),
            generated_at=data.get("generated_at", ""),
            current_price=data.get("current_price"),
            entry_price=data.get("entry_price"),
            price_target=data.get("price_target"),
            stop_loss=data.get("stop_loss"),
            timeframe=data.get("timeframe", "Unknown"),
            reasoning=data.get("reasoning", ""),
            key_factors=tuple(KeyFactor.from_dict(kf) for kf in data.get("key_factors") or []),
            risks=tuple(data.get("risks") or ()),
            options_strategy=OptionsStrategy.from_dict(options) if options else None,
            forex_setup=ForexSetup.from_dict(forex) if forex else None,
            stock_result=data.get("stock_result"),
            smart_money=data.get("smart_money"),
            data_sources=tuple(data.get("data_sources") or ()),
        )
