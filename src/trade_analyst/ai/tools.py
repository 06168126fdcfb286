"""
Tool registry: argument models, function-calling schemas and per-analysis tool sets.

Argument models are pydantic; the JSON schema sent to the LLM is derived
from them.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from trade_analyst.models import AnalysisType


class ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SymbolArgs(ToolArgs):
    symbol: str = Field(description="The stock ticker symbol (e.g., AAPL, MSFT)", min_length=1)

    @field_validator("symbol")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()


class GetStockPriceArgs(SymbolArgs):
    include_extended: bool | None = Field(default=None, description="Include extended hours data")


class GetHistoricalDataArgs(SymbolArgs):
    timeframe: Literal["1d", "1w", "1m", "3m", "6m", "1y"] = Field(description="Time period for historical data")
    interval: Literal["1min", "5min", "15min", "1hour", "1day"] = Field(default="1day", description="Data interval")


class GetOptionsChainArgs(SymbolArgs):
    expiration_date: str | None = Field(default=None, description="Filter by specific expiration date (YYYY-MM-DD)")


class GetNewsSentimentArgs(SymbolArgs):
    days: int = Field(default=7, ge=1, le=90, description="Number of days of news to analyze")


class GetAnalystRatingsArgs(SymbolArgs):
    limit: int = Field(default=10, ge=1, le=100, description="Maximum number of ratings to return")


class SearchKnowledgeArgs(ToolArgs):
    query: str = Field(description="The search query for the knowledge base", min_length=1)
    kb_type: Literal["stock", "forex"] = Field(default="stock", description="Which knowledge base to search")
    limit: int = Field(default=5, ge=1, le=20, description="Maximum number of results")


class PairArgs(ToolArgs):
    pair: str = Field(description="The forex pair (e.g., EUR/USD, GBP/JPY, USD/CAD)", min_length=6)


class GetForexHistoricalArgs(PairArgs):
    interval: Literal["1min", "5min", "15min", "30min", "1h", "4h", "1day", "1week"] = Field(
        default="1day", description="Data interval"
    )
    output_size: int = Field(
        default=100, ge=1, le=5000, alias="outputSize", description="Number of data points to return"
    )


class GetForexIndicatorArgs(PairArgs):
    indicator: Literal["sma", "ema", "rsi", "macd", "bbands", "atr"] = Field(
        description="Technical indicator to calculate"
    )
    interval: Literal["1min", "5min", "15min", "30min", "1h", "4h", "1day"] = Field(
        default="1day", description="Data interval"
    )
    time_period: int = Field(
        default=14, ge=1, le=500, alias="timePeriod", description="Time period for the indicator (e.g., 14 for RSI)"
    )


class GetExchangeRateArgs(ToolArgs):
    from_currency: str = Field(alias="fromCurrency", description="Source currency code (e.g., USD, EUR, GBP)")
    to_currency: str = Field(alias="toCurrency", description="Target currency code (e.g., JPY, CHF, AUD)")


# name -> (description, argument model)
TOOL_DEFINITIONS: dict[str, tuple[str, type[ToolArgs]]] = {
    "get_stock_price": (
        "Get the current stock price, daily change, and volume for a given ticker symbol",
        GetStockPriceArgs,
    ),
    "get_historical_data": (
        "Get historical OHLCV (open, high, low, close, volume) data for technical analysis",
        GetHistoricalDataArgs,
    ),
    "get_options_chain": (
        "Get the options chain including calls and puts with Greeks, volume, and open interest",
        GetOptionsChainArgs,
    ),
    "get_news_sentiment": ("Get recent news articles and sentiment analysis for a stock", GetNewsSentimentArgs),
    "get_earnings_calendar": ("Get upcoming and recent earnings dates with estimates and actuals", SymbolArgs),
    "get_analyst_ratings": (
        "Get analyst ratings, price targets, and consensus recommendation",
        GetAnalystRatingsArgs,
    ),
    "get_unusual_options_flow": (
        "Get unusual options activity and smart money flow data from Unusual Whales (requires subscription)",
        SymbolArgs,
    ),
    "get_insider_trades": (
        "Get recent insider trading activity (SEC Form 4 filings) - shows executive buys/sells "
        "which indicate smart money sentiment",
        SymbolArgs,
    ),
    "get_institutional_holdings": (
        "Get institutional holdings data (SEC 13F filings) - shows hedge fund and institutional investor positions",
        SymbolArgs,
    ),
    "search_trading_knowledge": (
        "Search the trading knowledge base for relevant strategies, patterns, and educational content",
        SearchKnowledgeArgs,
    ),
    "get_forex_quote": ("Get real-time forex quote with bid/ask prices for a currency pair", PairArgs),
    "get_forex_historical": (
        "Get historical OHLCV data for a forex pair for technical analysis",
        GetForexHistoricalArgs,
    ),
    "get_forex_indicator": (
        "Calculate technical indicators (SMA, EMA, RSI, MACD, Bollinger Bands, ATR) for a forex pair",
        GetForexIndicatorArgs,
    ),
    "get_exchange_rate": ("Get the current exchange rate between two currencies", GetExchangeRateArgs),
    "get_economic_calendar": (
        "Get economic calendar events (Forex Factory) that could impact a currency pair. "
        "CRITICAL: Always check this before forex trades to avoid high-impact news.",
        PairArgs,
    ),
}

STOCK_TOOL_NAMES = (
    "get_stock_price",
    "get_historical_data",
    "get_options_chain",
    "get_news_sentiment",
    "get_earnings_calendar",
    "get_analyst_ratings",
    "get_unusual_options_flow",
    "get_insider_trades",
    "get_institutional_holdings",
    "search_trading_knowledge",
)

FOREX_TOOL_NAMES = (
    "get_forex_quote",
    "get_forex_historical",
    "get_forex_indicator",
    "get_exchange_rate",
    "get_economic_calendar",
)


def _clean_schema(node: Any) -> Any:
    """Strip pydantic titles and collapse ``X | None`` to ``X`` for LLM-facing schemas."""
    if isinstance(node, dict):
        options = node.get("anyOf")
        if options and any(o.get("type") == "null" for o in options):
            non_null = [o for o in options if o.get("type") != "null"]
            if len(non_null) == 1:
                merged = {k: v for k, v in node.items() if k != "anyOf"}
                merged.update(non_null[0])
                node = merged
        return {k: _clean_schema(v) for k, v in node.items() if k != "title"}
    if isinstance(node, list):
        return [_clean_schema(v) for v in node]
    return node


def tool_schema(name: str) -> dict[str, Any]:
    """OpenAI function-calling schema for one tool."""
    description, model = TOOL_DEFINITIONS[name]
    parameters = _clean_schema(model.model_json_schema(by_alias=True))
    parameters.pop("default", None)
    return {
        "type": "function",
        "function": {"name": name, "description": description, "parameters": parameters},
    }


STOCK_TOOLS: list[dict[str, Any]] = [tool_schema(n) for n in STOCK_TOOL_NAMES]
FOREX_TOOLS: list[dict[str, Any]] = [tool_schema(n) for n in FOREX_TOOL_NAMES]
ALL_TOOLS: list[dict[str, Any]] = STOCK_TOOLS + FOREX_TOOLS
KNOWLEDGE_TOOL = next(t for t in STOCK_TOOLS if t["function"]["name"] == "search_trading_knowledge")


def tools_for(analysis_type: AnalysisType) -> list[dict[str, Any]]:
    """Forex gets forex tools plus knowledge search; stock gets stock tools; anything else gets all."""
    if analysis_type == AnalysisType.FOREX:
        return [*FOREX_TOOLS, KNOWLEDGE_TOOL]
    if analysis_type == AnalysisType.STOCK:
        return STOCK_TOOLS
    return ALL_TOOLS


def validate_tool_args(name: str, args: dict[str, Any]) -> ToolArgs:
    """
    Validate raw arguments against the tool's model.

    Raises:
        KeyError: unknown tool
        pydantic.ValidationError: invalid arguments
    """
    _, model = TOOL_DEFINITIONS[name]
    return model.model_validate(args)
