"""Tests for the job runner."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from trade_analyst.config import Config
from trade_analyst.exceptions import LLMError, StorageError
from trade_analyst.jobs import run_analysis_job, submit_analysis
from trade_analyst.models import AnalysisType, Direction, JobStatus, PredictionStatus, Recommendation
from trade_analyst.storage import PredictionStore

CRITIQUE = json.dumps({"confidence_assessment": 82, "should_refine": False, "strengths": ["Levels"]})


@pytest.fixture
def config(agent_config):
    return Config(agent=agent_config)


@pytest.fixture
def executor():
    return MagicMock(execute=AsyncMock())


class TestRunAnalysisJob:
    @pytest.mark.asyncio
    async def test_completed_job_stores_result(
        self, job_store, mock_llm, executor, config, text_response, stock_recommendation_json
    ):
        """A successful run stores the result and reports progress."""
        mock_llm.chat_completion.side_effect = [
            text_response("AAPL draft."),
            text_response(CRITIQUE),
            text_response(json.dumps(stock_recommendation_json)),
        ]
        job = job_store.create_job("AAPL", AnalysisType.STOCK)
        job_store.update_job_status = MagicMock(wraps=job_store.update_job_status)

        result = await run_analysis_job(
            job_store, job.id, "AAPL", AnalysisType.STOCK, llm=mock_llm, executor=executor, config=config
        )

        assert result.success
        stored = job_store.get_job(job.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.progress == 100
        assert stored.current_step == "Completed"
        assert stored.initial_analysis == "AAPL draft."
        assert json.loads(stored.critique)["confidence_assessment"] == 82
        assert stored.final_result.recommendation == Recommendation.BUY
        assert stored.error is None

        first = job_store.update_job_status.call_args_list[0]
        assert first.kwargs == {"status": JobStatus.RUNNING, "progress": 5, "current_step": "Starting analysis"}
        progress = [c.kwargs["progress"] for c in job_store.update_job_status.call_args_list]
        assert 60 in progress and 85 in progress

    @pytest.mark.asyncio
    async def test_agent_error_fails_job(self, job_store, mock_llm, executor, config):
        """An agent error marks the job failed with its message."""
        mock_llm.chat_completion.side_effect = LLMError("Our AI service is temporarily down.")
        job = job_store.create_job("AAPL", AnalysisType.STOCK)

        result = await run_analysis_job(
            job_store, job.id, "AAPL", AnalysisType.STOCK, llm=mock_llm, executor=executor, config=config
        )

        assert result.error == "Our AI service is temporarily down."
        stored = job_store.get_job(job.id)
        assert stored.status == JobStatus.FAILED
        assert stored.error == "Our AI service is temporarily down."
        assert stored.current_step == "Failed"
        assert stored.final_result is None

    @pytest.mark.asyncio
    async def test_crash_outside_agent_is_recorded(self, job_store, config):
        """Unexpected exceptions still fail the job."""
        job = job_store.create_job("EUR/USD", AnalysisType.FOREX)

        with patch("trade_analyst.jobs.run_analysis_agent", new_callable=AsyncMock, side_effect=RuntimeError("boom")):
            result = await run_analysis_job(job_store, job.id, "EUR/USD", AnalysisType.FOREX, config=config)

        assert result is None
        stored = job_store.get_job(job.id)
        assert stored.status == JobStatus.FAILED
        assert stored.error == "boom"

    @pytest.mark.asyncio
    async def test_completed_call_is_recorded_for_backtesting(
        self, job_store, mock_llm, executor, config, text_response, stock_recommendation_json
    ):
        """A completed buy call is stored as a pending prediction keyed by the job."""
        mock_llm.chat_completion.side_effect = [
            text_response("AAPL draft."),
            text_response(CRITIQUE),
            text_response(json.dumps(stock_recommendation_json)),
        ]
        predictions = PredictionStore(job_store.db)
        job = job_store.create_job("AAPL", AnalysisType.STOCK)

        await run_analysis_job(
            job_store,
            job.id,
            "AAPL",
            AnalysisType.STOCK,
            llm=mock_llm,
            executor=executor,
            config=config,
            predictions=predictions,
        )

        prediction = predictions.get_by_job(job.id)
        assert prediction.symbol == "AAPL"
        assert prediction.direction == Direction.BULLISH
        assert (prediction.entry_price, prediction.stop_loss, prediction.target_price) == (100.0, 95.0, 115.0)
        assert prediction.status == PredictionStatus.PENDING

    @pytest.mark.asyncio
    async def test_prediction_storage_failure_keeps_job_completed(
        self, job_store, mock_llm, executor, config, text_response, stock_recommendation_json
    ):
        """Backtest bookkeeping errors are logged without failing the job."""
        mock_llm.chat_completion.side_effect = [
            text_response("AAPL draft."),
            text_response(CRITIQUE),
            text_response(json.dumps(stock_recommendation_json)),
        ]
        predictions = MagicMock(spec=PredictionStore)
        predictions.add.side_effect = StorageError("disk full")
        job = job_store.create_job("AAPL", AnalysisType.STOCK)

        result = await run_analysis_job(
            job_store,
            job.id,
            "AAPL",
            AnalysisType.STOCK,
            llm=mock_llm,
            executor=executor,
            config=config,
            predictions=predictions,
        )

        assert result.success
        predictions.add.assert_called_once()
        assert job_store.get_job(job.id).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_submit_analysis_returns_final_state(
    job_store, mock_llm, executor, config, text_response, stock_recommendation_json
):
    """submit_analysis creates, runs and reloads the job."""
    mock_llm.chat_completion.side_effect = [
        text_response("Draft."),
        text_response(CRITIQUE),
        text_response(json.dumps(stock_recommendation_json)),
    ]

    job = await submit_analysis(
        job_store,
        "aapl",
        AnalysisType.STOCK,
        "Earnings next week",
        "swing",
        llm=mock_llm,
        executor=executor,
        config=config,
    )

    assert job.symbol == "AAPL"
    assert job.status == JobStatus.COMPLETED
    user_prompt = mock_llm.chat_completion.await_args_list[0].args[0][1]["content"]
    assert "Earnings next week" in user_prompt
    assert [j.id for j in job_store.list_jobs()] == [job.id]
