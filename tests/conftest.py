"""Shared fixtures for trade_analyst tests."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from trade_analyst.ai.clients import ChatChoice, ChatMessage, ChatResponse
from trade_analyst.config import AgentConfig
from trade_analyst.storage import Database, JobStore


def _text_response(content: str | None, finish_reason: str = "stop") -> ChatResponse:
    """A completion that answers with plain content."""
    return ChatResponse(
        choices=[ChatChoice(message=ChatMessage(role="assistant", content=content), finish_reason=finish_reason)]
    )


def _tool_response(*calls: tuple[str, dict | str], id_prefix: str = "call") -> ChatResponse:
    """A completion requesting tool calls; string args are passed through raw."""
    tool_calls = [
        {
            "id": f"{id_prefix}_{i}",
            "type": "function",
            "function": {"name": name, "arguments": args if isinstance(args, str) else json.dumps(args)},
        }
        for i, (name, args) in enumerate(calls)
    ]
    return ChatResponse(
        choices=[
            ChatChoice(
                message=ChatMessage(role="assistant", content=None, tool_calls=tool_calls),
                finish_reason="tool_calls",
            )
        ]
    )


@pytest.fixture
def mock_llm():
    """LLMClient stand-in; set ``chat_completion.side_effect`` to script the conversation."""
    llm = MagicMock()
    llm.chat_completion = AsyncMock()
    return llm


@pytest.fixture
def agent_config():
    return AgentConfig(
        MAX_TOOL_CALLS=15,
        MAX_ITERATIONS=10,
        FORCE_ANALYSIS_AFTER_TOOLS=8,
        TOOL_TIMEOUT_SECONDS=15.0,
        REFLECTION_MAX_ITERATIONS=2,
    )


@pytest.fixture
def job_store():
    """JobStore over a fresh in-memory SQLite database."""
    return JobStore(Database("sqlite://"))


@pytest.fixture
def mock_providers():
    """ProviderRegistry stand-in with every client mocked and no knowledge base."""
    providers = MagicMock()
    for name in (
        "polygon",
        "finnhub",
        "benzinga",
        "fmp",
        "yahoo",
        "twelvedata",
        "unusual_whales",
        "sec",
        "forex_factory",
        "unified",
    ):
        setattr(providers, name, MagicMock())
    providers.knowledge = None
    return providers


@pytest.fixture
def stock_recommendation_json():
    """A well-formed, quality-passing stock recommendation as the model would return it."""
    return {
        "recommendation": "buy",
        "confidence": 78,
        "current_price": 100.0,
        "entry_price": 100.0,
        "price_target": 115.0,
        "stop_loss": 95.0,
        "timeframe": "2-4 weeks",
        "reasoning": "Breakout above resistance on rising volume with analyst upgrades.",
        "key_factors": [
            {"factor": "Breakout above $98 resistance", "sentiment": "bullish", "weight": 80, "source": "technical"},
            {"factor": "Earnings in 3 weeks", "sentiment": "neutral", "weight": 40, "source": "earnings"},
        ],
        "risks": ["Market-wide pullback"],
        "data_sources": ["Polygon", "Benzinga"],
    }


@pytest.fixture
def text_response():
    return _text_response


@pytest.fixture
def tool_response():
    return _tool_response
