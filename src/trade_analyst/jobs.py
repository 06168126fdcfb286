"""
Job runner: drives one persisted analysis job through the agent.

The job row is the only state shared with the outside world. Progress,
tool calls and the final outcome are written through JobStore; the run
itself never raises.
"""

import logging

from trade_analyst.ai.agent import run_analysis_agent
from trade_analyst.ai.clients import LLMClient
from trade_analyst.ai.executor import ToolExecutor
from trade_analyst.backtest import save_prediction
from trade_analyst.config import Config
from trade_analyst.exceptions import StorageError
from trade_analyst.models import AgentResult, AnalysisJob, AnalysisType, JobStatus, ProgressUpdate, TradeRecommendation
from trade_analyst.storage import JobStore, PredictionStore

logger = logging.getLogger(__name__)


async def run_analysis_job(
    store: JobStore,
    job_id: str,
    symbol: str,
    analysis_type: AnalysisType,
    additional_context: str | None = None,
    trading_timeframe: str | None = None,
    *,
    llm: LLMClient | None = None,
    executor: ToolExecutor | None = None,
    config: Config | None = None,
    predictions: PredictionStore | None = None,
) -> AgentResult | None:
    """
    Run the agent for an existing job and record the outcome.

    With ``predictions``, a completed buy or sell call is also stored for
    backtesting. Returns the AgentResult, or None when the run crashed
    outside the agent.
    """

    async def on_progress(update: ProgressUpdate) -> None:
        store.update_job_status(
            job_id,
            progress=update.progress,
            current_step=update.step,
            tools_called=update.tool_calls,
        )

    try:
        store.update_job_status(job_id, status=JobStatus.RUNNING, progress=5, current_step="Starting analysis")

        result = await run_analysis_agent(
            symbol,
            analysis_type,
            additional_context,
            trading_timeframe,
            on_progress,
            llm=llm,
            executor=executor,
            config=config,
        )

        if result.error or result.recommendation is None:
            logger.error(f"[Job {job_id}] {symbol} failed: {result.error}")
            store.update_job_status(
                job_id,
                status=JobStatus.FAILED,
                error=result.error or "No recommendation produced",
                progress=100,
                current_step="Failed",
                tools_called=result.tool_calls,
            )
        else:
            logger.info(
                f"[Job {job_id}] {symbol} completed: {result.recommendation.recommendation.value} "
                f"({result.recommendation.confidence}%)"
            )
            store.update_job_status(
                job_id,
                status=JobStatus.COMPLETED,
                progress=100,
                current_step="Completed",
                tools_called=result.tool_calls,
                initial_analysis=result.initial_analysis,
                critique=result.critique,
                final_result=result.recommendation,
            )
            if predictions is not None:
                _record_prediction(predictions, job_id, result.recommendation)
        return result

    except Exception as e:
        logger.exception(f"[Job {job_id}] Unexpected error running {symbol}: {e}")
        store.update_job_status(
            job_id,
            status=JobStatus.FAILED,
            error=str(e) or type(e).__name__,
            progress=100,
            current_step="Failed",
        )
        return None


async def submit_analysis(
    store: JobStore,
    symbol: str,
    analysis_type: AnalysisType,
    additional_context: str | None = None,
    trading_timeframe: str | None = None,
    **kwargs,
) -> AnalysisJob:
    """Create a job, run it to completion, and return its final persisted state."""
    job = store.create_job(symbol, analysis_type)
    logger.info(f"[Job {job.id}] Created {analysis_type.value} analysis for {job.symbol}")
    await run_analysis_job(store, job.id, job.symbol, analysis_type, additional_context, trading_timeframe, **kwargs)
    return store.get_job(job.id)


def _record_prediction(predictions: PredictionStore, job_id: str, rec: TradeRecommendation) -> None:
    """Backtest bookkeeping must not fail a completed job."""
    try:
        save_prediction(predictions, job_id, rec)
    except StorageError as e:
        logger.warning(f"[Job {job_id}] Prediction not saved: {e.message}")
