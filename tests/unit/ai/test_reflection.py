"""Tests for critique and refinement."""

import json

import pytest

from trade_analyst.ai.reflection import critique_from_dict, perform_reflection, summarize_data
from trade_analyst.exceptions import LLMError


def _critique(confidence: int, should_refine: bool) -> str:
    return json.dumps(
        {
            "strengths": ["Uses price data"],
            "weaknesses": ["No options data"],
            "missing_data": ["IV rank"],
            "confidence_assessment": confidence,
            "recommendations": ["Check options chain"],
            "should_refine": should_refine,
        }
    )


class TestSummarizeData:
    def test_shapes(self):
        """Dicts, lists and long strings are summarized; None is skipped."""
        data = {
            "get_stock_price": {"a": 1, "b": 2, "c": 3, "d": 4, "e": 5, "f": 6},
            "get_news_sentiment": [1, 2, 3],
            "note": "x" * 150,
            "missing": None,
        }

        lines = summarize_data(data).splitlines()

        assert lines[0] == "get_stock_price: {a, b, c, d, e...}"
        assert lines[1] == "get_news_sentiment: [3 items]"
        assert lines[2] == "note: " + "x" * 100
        assert len(lines) == 3


class TestCritiqueFromDict:
    def test_tolerates_missing_and_malformed_fields(self):
        """Bad fields fall back to defaults."""
        critique = critique_from_dict({"confidence_assessment": "high", "strengths": "not a list"})

        assert critique.confidence_assessment == 50
        assert critique.strengths == []
        assert critique.should_refine is False
        assert critique.should_be_wait is None

    def test_clamps_confidence_and_serializes_checks(self):
        """Confidence is clamped and check dicts become JSON."""
        critique = critique_from_dict(
            {"confidence_assessment": 140, "risk_reward_check": {"ratio": 1.5}, "should_be_wait": True}
        )

        assert critique.confidence_assessment == 100
        assert critique.risk_reward_check == '{"ratio": 1.5}'
        assert critique.should_be_wait is True


class TestPerformReflection:
    """Tests for the critique/refine loop."""

    @pytest.mark.asyncio
    async def test_stops_when_no_refinement_requested(self, mock_llm, text_response):
        """One critique is enough when no refinement is asked for."""
        mock_llm.chat_completion.side_effect = [text_response(_critique(70, False))]

        result = await perform_reflection(mock_llm, "draft", {"get_stock_price": {"price": 1}})

        assert result.iterations == 1
        assert result.refined_analysis is None
        assert result.critique.confidence_assessment == 70
        assert mock_llm.chat_completion.await_count == 1

    @pytest.mark.asyncio
    async def test_stops_at_high_confidence_even_if_refine_requested(self, mock_llm, text_response):
        """High confidence ends the loop regardless of should_refine."""
        mock_llm.chat_completion.side_effect = [text_response(_critique(80, True))]

        result = await perform_reflection(mock_llm, "draft", {})

        assert result.iterations == 1
        assert mock_llm.chat_completion.await_count == 1

    @pytest.mark.asyncio
    async def test_refines_then_critiques_again(self, mock_llm, text_response):
        """A refinement is critiqued again."""
        mock_llm.chat_completion.side_effect = [
            text_response(_critique(55, True)),
            text_response("refined draft"),
            text_response(_critique(75, True)),
            text_response("refined twice"),
        ]

        result = await perform_reflection(mock_llm, "draft", {}, max_iterations=2)

        assert result.iterations == 2
        assert result.refined_analysis == "refined twice"
        assert result.critique.confidence_assessment == 75
        second_critique = mock_llm.chat_completion.await_args_list[2].args[0][1]["content"]
        assert "refined draft" in second_critique

    @pytest.mark.asyncio
    async def test_unparseable_critique_uses_default(self, mock_llm, text_response):
        """An unparseable critique falls back to the default one."""
        mock_llm.chat_completion.side_effect = [text_response("I think it's fine.")]

        result = await perform_reflection(mock_llm, "draft", {})

        assert result.critique.weaknesses == ["Critique parsing failed"]
        assert result.critique.confidence_assessment == 50

    @pytest.mark.asyncio
    async def test_llm_errors_keep_the_draft(self, mock_llm, text_response):
        """LLM errors leave the draft analysis in place."""
        mock_llm.chat_completion.side_effect = [
            text_response(_critique(40, True)),
            LLMError("down"),
            LLMError("down"),
        ]

        result = await perform_reflection(mock_llm, "draft", {}, max_iterations=2)

        assert result.iterations == 2
        assert result.refined_analysis == "draft"
        assert result.critique.recommendations == ["Re-run analysis"]
