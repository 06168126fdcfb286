"""Tests for the tool registry."""

import pydantic
import pytest

from trade_analyst.ai.tools import (
    ALL_TOOLS,
    FOREX_TOOL_NAMES,
    STOCK_TOOL_NAMES,
    TOOL_DEFINITIONS,
    tool_schema,
    tools_for,
    validate_tool_args,
)
from trade_analyst.models import AnalysisType


def _names(tools):
    return [t["function"]["name"] for t in tools]


class TestToolsFor:
    def test_stock(self):
        """Stock runs get the stock tools."""
        assert _names(tools_for(AnalysisType.STOCK)) == list(STOCK_TOOL_NAMES)

    def test_forex_adds_knowledge_search(self):
        """Forex runs get the forex tools plus knowledge search."""
        assert _names(tools_for(AnalysisType.FOREX)) == [*FOREX_TOOL_NAMES, "search_trading_knowledge"]

    def test_other_types_get_everything(self):
        """Other types see every tool."""
        assert tools_for(AnalysisType.TECHNICAL) == ALL_TOOLS
        assert set(_names(ALL_TOOLS)) == set(TOOL_DEFINITIONS)


class TestToolSchema:
    """LLM-facing schemas are derived from the argument models."""

    def test_required_and_optional_fields(self):
        """Required fields, enums and no titles in the generated schema."""
        params = tool_schema("get_historical_data")["function"]["parameters"]

        assert params["type"] == "object"
        assert params["required"] == ["symbol", "timeframe"]
        assert params["properties"]["interval"]["enum"] == ["1min", "5min", "15min", "1hour", "1day"]
        assert "title" not in params
        assert "title" not in params["properties"]["symbol"]

    def test_nullable_fields_are_collapsed(self):
        """Optional fields are plain types, not anyOf."""
        props = tool_schema("get_options_chain")["function"]["parameters"]["properties"]

        assert props["expiration_date"]["type"] == "string"
        assert "anyOf" not in props["expiration_date"]

    def test_aliases_are_exposed(self):
        """Aliased fields are published under their alias."""
        props = tool_schema("get_exchange_rate")["function"]["parameters"]["properties"]

        assert set(props) == {"fromCurrency", "toCurrency"}


class TestValidateToolArgs:
    def test_symbol_is_normalized(self):
        """Symbols are stripped and upper-cased."""
        assert validate_tool_args("get_stock_price", {"symbol": " nvda "}).symbol == "NVDA"

    def test_defaults_applied(self):
        """Omitted arguments take their defaults."""
        args = validate_tool_args("get_news_sentiment", {"symbol": "AAPL"})

        assert args.days == 7

    def test_range_is_enforced(self):
        """Out-of-range values are rejected."""
        with pytest.raises(pydantic.ValidationError):
            validate_tool_args("get_news_sentiment", {"symbol": "AAPL", "days": 365})

    def test_alias_or_field_name(self):
        """Alias and field name validate to the same value."""
        by_alias = validate_tool_args("get_forex_indicator", {"pair": "EUR/USD", "indicator": "rsi", "timePeriod": 21})
        by_name = validate_tool_args("get_forex_indicator", {"pair": "EUR/USD", "indicator": "rsi", "time_period": 21})

        assert by_alias.time_period == by_name.time_period == 21

    def test_unknown_tool_raises_key_error(self):
        """Unknown tools raise KeyError."""
        with pytest.raises(KeyError):
            validate_tool_args("place_order", {})
