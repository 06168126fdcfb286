"""
Market data models returned by provider clients.

Every provider maps its own JSON into these shapes; the tool executor
serializes them back to plain dicts with ``to_dict()`` before handing
them to the LLM.
"""

from dataclasses import asdict, dataclass, field
from typing import Any


def _to_dict(obj: Any) -> dict[str, Any]:
    return asdict(obj)


@dataclass(slots=True)
class StockQuote:
    """Latest quote for a stock symbol."""

    symbol: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = 0
    avg_volume: int | None = None
    market_cap: float | None = None
    high_52w: float | None = None
    low_52w: float | None = None
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class OHLCVBar:
    """A single OHLCV candle."""

    timestamp: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    vwap: float | None = None
    transactions: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class OptionContract:
    symbol: str
    underlying: str
    expiration: str
    strike: float
    option_type: str
    bid: float = 0.0
    ask: float = 0.0
    last: float = 0.0
    volume: int = 0
    open_interest: int = 0
    implied_volatility: float | None = None
    delta: float | None = None
    gamma: float | None = None
    theta: float | None = None
    vega: float | None = None
    in_the_money: bool = False

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class OptionsChain:
    symbol: str
    underlying_price: float
    expiration_dates: list[str] = field(default_factory=list)
    calls: list[OptionContract] = field(default_factory=list)
    puts: list[OptionContract] = field(default_factory=list)
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class NewsArticle:
    id: str
    title: str
    summary: str
    url: str
    source: str
    published_at: str
    symbols: list[str] = field(default_factory=list)
    sentiment: str | None = None
    sentiment_score: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class NewsSentiment:
    """Aggregated news sentiment over a look-back window."""

    symbol: str
    articles: list[NewsArticle] = field(default_factory=list)
    overall_sentiment: str = "neutral"
    sentiment_score: float = 0.0
    article_count: int = 0
    period: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class EarningsEvent:
    symbol: str
    report_date: str
    fiscal_quarter: str | None = None
    fiscal_year: int | None = None
    eps_estimate: float | None = None
    eps_actual: float | None = None
    eps_surprise: float | None = None
    revenue_estimate: float | None = None
    revenue_actual: float | None = None
    revenue_surprise: float | None = None
    time: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class EarningsCalendar:
    """Upcoming and recent earnings reports for one symbol."""

    symbol: str
    upcoming: list[EarningsEvent] = field(default_factory=list)
    recent: list[EarningsEvent] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.upcoming and not self.recent

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class AnalystRating:
    symbol: str
    analyst: str | None = None
    firm: str = ""
    rating: str = ""
    rating_prior: str | None = None
    price_target: float | None = None
    price_target_prior: float | None = None
    action: str = ""
    date: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class AnalystConsensus:
    """Analyst ratings plus buy/hold/sell counts and price-target range."""

    symbol: str
    ratings: list[AnalystRating] = field(default_factory=list)
    buy_count: int = 0
    hold_count: int = 0
    sell_count: int = 0
    avg_price_target: float | None = None
    high_price_target: float | None = None
    low_price_target: float | None = None
    consensus: str = "hold"

    def is_empty(self) -> bool:
        return not self.ratings and self.buy_count + self.hold_count + self.sell_count == 0

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class UnusualFlowSummary:
    """
    Unusual options activity summary.

    ``enhanced_whale_data`` carries the full breakdown (whale trades,
    premium buckets, dark pool activity, key signals) for the LLM.
    """

    symbol: str
    flows: list[dict[str, Any]] = field(default_factory=list)
    total_call_premium: float = 0.0
    total_put_premium: float = 0.0
    call_put_ratio: float = 1.0
    overall_sentiment: str = "neutral"
    notable_strikes: list[float] = field(default_factory=list)
    enhanced_whale_data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class ForexQuote:
    pair: str
    bid: float
    ask: float
    mid: float
    spread: float
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class InsiderTrade:
    symbol: str
    insider_name: str
    insider_title: str
    transaction_date: str
    transaction_type: str
    shares: float = 0.0
    price: float | None = None
    value: float | None = None
    shares_owned_after: float | None = None
    filing_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class InsiderActivity:
    """Recent Form 4 filings with a buy/sell summary."""

    symbol: str
    trades: list[InsiderTrade] = field(default_factory=list)
    total_buys: int = 0
    total_sells: int = 0
    net_shares: float = 0.0
    buy_value: float = 0.0
    sell_value: float = 0.0
    sentiment: str = "neutral"

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "trades": [t.to_dict() for t in self.trades],
            "summary": {
                "total_buys": self.total_buys,
                "total_sells": self.total_sells,
                "net_shares": self.net_shares,
                "buy_value": self.buy_value,
                "sell_value": self.sell_value,
                "sentiment": self.sentiment,
            },
        }


@dataclass(slots=True)
class InstitutionalHolding:
    symbol: str
    institution_name: str
    shares: float = 0.0
    value: float = 0.0
    percent_of_portfolio: float | None = None
    percent_of_shares_outstanding: float | None = None
    change_in_shares: float | None = None
    change_percent: float | None = None
    filing_date: str = ""
    quarter: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class InstitutionalActivity:
    """13F filings with an accumulation/distribution summary."""

    symbol: str
    holders: list[InstitutionalHolding] = field(default_factory=list)
    total_institutions: int = 0
    total_shares_held: float = 0.0
    increased_positions: int = 0
    decreased_positions: int = 0
    new_positions: int = 0
    sentiment: str = "neutral"

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "holders": [h.to_dict() for h in self.holders],
            "summary": {
                "total_institutions": self.total_institutions,
                "total_shares_held": self.total_shares_held,
                "increased_positions": self.increased_positions,
                "decreased_positions": self.decreased_positions,
                "new_positions": self.new_positions,
                "sentiment": self.sentiment,
            },
        }


@dataclass(slots=True)
class EconomicEvent:
    """One row of the economic calendar."""

    date: str
    time: str
    currency: str
    impact: str
    event: str
    actual: str | None = None
    forecast: str | None = None
    previous: str | None = None
    timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class EconomicCalendar:
    """
    Economic calendar filtered to the currencies of one pair, with trading guidance.

    ``risk_level`` is one of High, Elevated, Moderate, Normal.
    """

    ticker: str
    currencies: list[str]
    current_date: str
    today_events: list[EconomicEvent] = field(default_factory=list)
    high_impact: list[EconomicEvent] = field(default_factory=list)
    medium_impact: list[EconomicEvent] = field(default_factory=list)
    low_impact: list[EconomicEvent] = field(default_factory=list)
    total_relevant_events: int = 0
    risk_level: str = "Normal"
    recommendation: str = "Normal trading conditions"
    warnings: list[str] = field(default_factory=list)
    avoid_trading_around: list[dict[str, str]] = field(default_factory=list)

    @property
    def today_high_impact(self) -> list[EconomicEvent]:
        return [e for e in self.today_events if e.impact == "high"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "currencies": self.currencies,
            "current_date": self.current_date,
            "summary": {
                "total_relevant_events": self.total_relevant_events,
                "high_impact": len(self.high_impact),
                "medium_impact": len(self.medium_impact),
                "low_impact": len(self.low_impact),
                "today_high_impact": len(self.today_high_impact),
            },
            "trading_guidance": {
                "risk_level": self.risk_level,
                "recommendation": self.recommendation,
                "warnings": self.warnings,
                "avoid_trading_around": self.avoid_trading_around,
            },
            "today_events": [e.to_dict() for e in self.today_events],
            "upcoming_important": [e.to_dict() for e in self.high_impact[:5]],
            "all_events_by_impact": {
                "high": [e.to_dict() for e in self.high_impact],
                "medium": [e.to_dict() for e in self.medium_impact],
                "low": [e.to_dict() for e in self.low_impact],
            },
        }


@dataclass(slots=True)
class KnowledgeChunk:
    """A knowledge base document ranked against a query."""

    id: int
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    similarity: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(slots=True)
class KnowledgeContext:
    query: str
    chunks: list[KnowledgeChunk] = field(default_factory=list)
    total_tokens: int = 0

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)
