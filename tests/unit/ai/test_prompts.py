"""Tests for prompt construction."""

from datetime import date, datetime

from trade_analyst.ai.prompts import (
    FOREX_ANALYSIS_SYSTEM_PROMPT,
    STANDALONE_SUMMARY_PROMPTS,
    STOCK_ANALYSIS_SYSTEM_PROMPT,
    build_final_message,
    build_user_prompt,
    get_final_recommendation_prompt,
    get_system_prompt,
)
from trade_analyst.models import AnalysisType


def test_system_prompt_by_type():
    """Each analysis type gets its own system prompt."""
    assert get_system_prompt(AnalysisType.FOREX) == FOREX_ANALYSIS_SYSTEM_PROMPT
    assert get_system_prompt(AnalysisType.STOCK) == STOCK_ANALYSIS_SYSTEM_PROMPT


def test_user_prompt_carries_date_context_and_timeframe():
    """The user prompt includes the date, extra context and timeframe."""
    prompt = build_user_prompt(
        "aapl",
        AnalysisType.STOCK,
        additional_context="Focus on options",
        trading_timeframe="swing",
        now=datetime(2026, 10, 18, 9, 30),
    )

    assert "Today's date is 2026-10-18" in prompt
    assert "Please analyze AAPL" in prompt
    assert "Preferred trading timeframe: swing" in prompt
    assert "Focus on options" in prompt


def test_final_prompt_anchors_expirations():
    """Expiration anchors are computed from the given date."""
    prompt = get_final_recommendation_prompt(date(2026, 10, 18))

    assert "Current year is: 2026" in prompt
    assert "2-week out: 2026-11-01" in prompt
    assert "12-week MAX: 2027-01-10" in prompt


def test_final_message_includes_analysis():
    """The final request embeds the analysis text."""
    message = build_final_message("My refined analysis", today=date(2026, 10, 18))

    assert "My refined analysis" in message
    assert "2026-11-15" in message


def test_every_standalone_type_has_a_summary_prompt():
    """Every standalone type has a summary prompt."""
    for kind in AnalysisType:
        if kind.is_standalone:
            assert "Do NOT provide trading recommendations" in STANDALONE_SUMMARY_PROMPTS[kind]
