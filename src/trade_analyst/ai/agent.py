"""
Analysis agent: the LLM tool-calling loop as an explicit state machine.

Phases and legal transitions are listed in TRANSITIONS. Each phase has a
handler that does its work and returns the next phase:

    gathering ──> gathering (tool round)
              ──> analyzing ──> reflecting ──> finalizing ──> done
              ──> done (content returned on an unexpected finish)
              ──> forced_finalization ──> done

Any exception moves the run to failed and is reported in AgentResult.error;
run_analysis_agent itself does not raise.
"""

import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from trade_analyst.ai.clients import LLMClient
from trade_analyst.ai.executor import ToolExecutor
from trade_analyst.ai.parser import parse_recommendation
from trade_analyst.ai.prompts import (
    FALLBACK_ANALYSIS_MESSAGE,
    FORCE_ANALYSIS_MESSAGE,
    build_final_message,
    build_user_prompt,
    get_system_prompt,
)
from trade_analyst.ai.reflection import perform_reflection
from trade_analyst.ai.tools import tools_for
from trade_analyst.config import AgentConfig, Config, get_config
from trade_analyst.exceptions import AnalysisError
from trade_analyst.models import (
    AgentPhase,
    AgentResult,
    AgentState,
    AnalysisType,
    ProgressUpdate,
    ToolCall,
    TradeRecommendation,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressUpdate], Awaitable[None] | None]

FINAL_MAX_TOKENS = 8192
UNEXPECTED_FINISH_MIN_CONTENT = 100

TRANSITIONS: dict[AgentPhase, frozenset[AgentPhase]] = {
    AgentPhase.GATHERING: frozenset(
        {
            AgentPhase.GATHERING,
            AgentPhase.ANALYZING,
            AgentPhase.FORCED_FINALIZATION,
            AgentPhase.DONE,
            AgentPhase.FAILED,
        }
    ),
    AgentPhase.ANALYZING: frozenset({AgentPhase.REFLECTING, AgentPhase.FAILED}),
    AgentPhase.REFLECTING: frozenset({AgentPhase.FINALIZING, AgentPhase.FAILED}),
    AgentPhase.FINALIZING: frozenset({AgentPhase.DONE, AgentPhase.FAILED}),
    AgentPhase.FORCED_FINALIZATION: frozenset({AgentPhase.DONE, AgentPhase.FAILED}),
    AgentPhase.DONE: frozenset(),
    AgentPhase.FAILED: frozenset(),
}


def check_transition(current: AgentPhase, target: AgentPhase) -> None:
    """Raise AnalysisError unless ``current -> target`` is a legal transition."""
    if target not in TRANSITIONS[current]:
        raise AnalysisError(f"Illegal agent transition: {current.value} -> {target.value}")


@dataclass
class _Run:
    """Everything one run accumulates besides the conversation state."""

    symbol: str
    analysis_type: AnalysisType
    tools: list[dict[str, Any]]
    callback: ProgressCallback | None
    state: AgentState
    tool_calls: list[ToolCall] = field(default_factory=list)
    draft: str | None = None
    initial_analysis: str | None = None
    final_analysis: str | None = None
    critique: str | None = None
    recommendation: TradeRecommendation | None = None


class AnalysisAgent:
    """
    Drives one symbol through data gathering, reflection and a structured
    final recommendation.

    Usage:
        agent = AnalysisAgent(llm, executor, config.agent)
        result = await agent.run("AAPL", AnalysisType.STOCK)
    """

    def __init__(self, llm: LLMClient, executor: ToolExecutor, config: AgentConfig | None = None):
        self.llm = llm
        self.executor = executor
        self.config = config or AgentConfig()
        self._handlers: dict[AgentPhase, Callable[[_Run], Awaitable[AgentPhase]]] = {
            AgentPhase.GATHERING: self._gather,
            AgentPhase.ANALYZING: self._analyze,
            AgentPhase.REFLECTING: self._reflect,
            AgentPhase.FINALIZING: self._finalize,
            AgentPhase.FORCED_FINALIZATION: self._force_finalize,
        }

    async def run(
        self,
        symbol: str,
        analysis_type: AnalysisType,
        additional_context: str | None = None,
        trading_timeframe: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> AgentResult:
        state = AgentState(max_tool_calls=self.config.max_tool_calls)
        run = _Run(
            symbol=symbol,
            analysis_type=analysis_type,
            tools=tools_for(analysis_type),
            callback=progress_callback,
            state=state,
        )

        try:
            state.add_message("system", get_system_prompt(analysis_type))
            state.add_message(
                "user", build_user_prompt(symbol, analysis_type, additional_context, trading_timeframe)
            )
            await self._emit(run, 5, "Starting data collection")
            logger.info(
                f"[Agent] {symbol.upper()} ({analysis_type.value}): "
                f"{len(run.tools)} tools: {[t['function']['name'] for t in run.tools]}"
            )

            while state.current_phase not in (AgentPhase.DONE, AgentPhase.FAILED):
                handler = self._handlers[state.current_phase]
                next_phase = await handler(run)
                check_transition(state.current_phase, next_phase)
                state.current_phase = next_phase

            await self._emit(run, 100, "Analysis complete")
            return AgentResult(
                recommendation=run.recommendation,
                tool_calls=run.tool_calls,
                initial_analysis=run.initial_analysis,
                critique=run.critique,
            )

        except Exception as e:
            state.current_phase = AgentPhase.FAILED
            logger.error(f"[Agent] {symbol.upper()} analysis failed: {e}")
            return AgentResult(recommendation=None, tool_calls=run.tool_calls, error=str(e) or type(e).__name__)

    async def _emit(self, run: _Run, progress: int, step: str) -> None:
        if run.callback is None:
            return
        update = ProgressUpdate(
            progress=progress,
            step=step,
            phase=run.state.current_phase.value,
            tool_calls=list(run.tool_calls),
        )
        try:
            result = run.callback(update)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"[Agent] Progress callback failed at {progress}%: {e}")

    async def _gather(self, run: _Run) -> AgentPhase:
        """One LLM turn while data gathering is still allowed."""
        state = run.state
        if state.iteration >= self.config.max_iterations or state.tool_calls_made >= state.max_tool_calls:
            logger.info(
                f"[Agent] Budget exhausted - iterations: {state.iteration}/{self.config.max_iterations}, "
                f"tool calls: {state.tool_calls_made}/{state.max_tool_calls}"
            )
            return AgentPhase.FORCED_FINALIZATION

        state.iteration += 1
        force = state.tool_calls_made >= self.config.force_analysis_after_tools
        logger.debug(
            f"[Agent] Iteration {state.iteration}/{self.config.max_iterations}, "
            f"tool calls: {state.tool_calls_made}/{state.max_tool_calls}"
        )
        if force and not state.force_prompt_sent:
            logger.info(f"[Agent] Forcing analysis after {state.tool_calls_made} tool calls")
            state.add_message("user", FORCE_ANALYSIS_MESSAGE)
            state.force_prompt_sent = True

        response = await self.llm.chat_completion(
            state.messages,
            tools=None if force else run.tools,
            task_type="analysis",
            max_tokens=4096,
        )
        choice = response.first
        if choice is None:
            raise AnalysisError("No response from AI")

        message = choice.message
        state.messages.append(message.to_dict())

        if choice.finish_reason == "tool_calls" and message.tool_calls:
            await self._run_tools(run, message.tool_calls)
            return AgentPhase.GATHERING

        if choice.finish_reason != "tool_calls" and message.content:
            run.draft = message.content
            return AgentPhase.ANALYZING

        logger.error(
            f"[Agent] Unexpected finish_reason: {choice.finish_reason}, content: {(message.content or '')[:200]}"
        )
        if message.content and len(message.content) > UNEXPECTED_FINISH_MIN_CONTENT:
            logger.info("[Agent] Using content from unexpected finish reason")
            run.initial_analysis = message.content
            run.recommendation = parse_recommendation(message.content, run.symbol, run.analysis_type.value)
            return AgentPhase.DONE
        return AgentPhase.FORCED_FINALIZATION

    async def _run_tools(self, run: _Run, requests: list[dict[str, Any]]) -> None:
        state = run.state
        await self._emit(run, min(10 + state.iteration * 8, 50), f"Executing {len(requests)} tool(s)")

        execution = await self.executor.execute(requests)
        run.tool_calls.extend(execution.tool_calls)
        state.tool_calls_made += len(execution.tool_calls)
        for tc in execution.tool_calls:
            if tc.succeeded:
                state.gathered_data[tc.name] = tc.result
        state.messages.extend(execution.tool_results)
        for error in execution.errors:
            logger.warning(f"[Agent] Tool error - {error}")

        await self._emit(
            run, min(15 + state.iteration * 8, 55), f"Processed {len(execution.tool_calls)} tool results"
        )

    async def _analyze(self, run: _Run) -> AgentPhase:
        run.initial_analysis = run.draft
        await self._emit(run, 60, "Initial analysis complete")
        return AgentPhase.REFLECTING

    async def _reflect(self, run: _Run) -> AgentPhase:
        await self._emit(run, 70, "Critiquing analysis")
        reflection = await perform_reflection(
            self.llm,
            run.initial_analysis or "",
            run.state.gathered_data,
            max_iterations=self.config.reflection_max_iterations,
        )
        run.critique = json.dumps(reflection.critique.to_dict())
        run.final_analysis = reflection.refined_analysis or run.initial_analysis
        await self._emit(run, 80, "Reflection complete")
        return AgentPhase.FINALIZING

    async def _finalize(self, run: _Run) -> AgentPhase:
        await self._emit(run, 85, "Generating final recommendation")
        run.state.add_message("user", build_final_message(run.final_analysis or ""))

        content = await self._recommendation_call(run)
        if not content:
            raise AnalysisError("No final recommendation generated")
        run.recommendation = parse_recommendation(content, run.symbol, run.analysis_type.value)
        logger.info(
            f"[Agent] {run.recommendation.symbol}: {run.recommendation.recommendation.value} "
            f"({run.recommendation.confidence}%)"
        )
        return AgentPhase.DONE

    async def _force_finalize(self, run: _Run) -> AgentPhase:
        """Budget ran out without an analysis: demand one, then the structured answer."""
        state = run.state
        await self._emit(run, 85, "Generating final recommendation (fallback)")
        state.add_message("user", FALLBACK_ANALYSIS_MESSAGE)

        fallback = await self._recommendation_call(run)
        if fallback:
            state.add_message("assistant", fallback)
            state.add_message("user", build_final_message())
            structured = await self._recommendation_call(run)
            if structured:
                run.initial_analysis = fallback
                run.recommendation = parse_recommendation(structured, run.symbol, run.analysis_type.value)
                return AgentPhase.DONE

        raise AnalysisError(
            f"Analysis loop ended without producing a result "
            f"(iterations: {state.iteration}, tool_calls: {state.tool_calls_made})"
        )

    async def _recommendation_call(self, run: _Run) -> str | None:
        response = await self.llm.chat_completion(
            run.state.messages, task_type="recommendation", max_tokens=FINAL_MAX_TOKENS
        )
        choice = response.first
        if choice is None:
            return None
        logger.debug(f"[Agent] Final response finish_reason: {choice.finish_reason}")
        return choice.message.content


async def run_analysis_agent(
    symbol: str,
    analysis_type: AnalysisType,
    additional_context: str | None = None,
    trading_timeframe: str | None = None,
    progress_callback: ProgressCallback | None = None,
    *,
    llm: LLMClient | None = None,
    executor: ToolExecutor | None = None,
    config: Config | None = None,
) -> AgentResult:
    """
    Run one analysis end to end.

    Collaborators default to the process-wide instances from
    trade_analyst.dependencies.
    """
    from trade_analyst import dependencies

    config = config or get_config()
    agent = AnalysisAgent(
        llm=llm or LLMClient(config.ai),
        executor=executor or dependencies.get_tool_executor(),
        config=config.agent,
    )
    return await agent.run(symbol, analysis_type, additional_context, trading_timeframe, progress_callback)
