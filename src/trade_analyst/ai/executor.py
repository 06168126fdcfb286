"""
Tool executor: runs the LLM's tool-call requests against the providers.

Each request is handled independently and concurrently under its own
timeout. A bad argument string, an unknown tool, a validation error, a
provider exception or a timeout only fails that one call.
"""

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import pydantic

from trade_analyst.ai.tools import TOOL_DEFINITIONS, ToolArgs, validate_tool_args
from trade_analyst.exceptions import ConfigurationError
from trade_analyst.models import ToolCall
from trade_analyst.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT_SECONDS = 15.0


@dataclass(slots=True)
class ToolExecutionResult:
    """Tool messages for the conversation, audit records, and ``name: error`` strings."""

    tool_results: list[dict[str, Any]] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class _Outcome:
    call_id: str
    name: str
    args: dict[str, Any]
    result: Any = None
    error: str | None = None
    duration_ms: int = 0


def to_jsonable(value: Any) -> Any:
    """Convert provider results (dataclasses with to_dict, lists of them) into plain JSON data."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list | tuple):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


def _validation_message(error: pydantic.ValidationError) -> str:
    details = "; ".join(f"{'.'.join(str(p) for p in e['loc']) or 'args'}: {e['msg']}" for e in error.errors())
    return f"Invalid arguments: {details}"


class ToolExecutor:
    def __init__(self, providers: ProviderRegistry, timeout_seconds: float = DEFAULT_TOOL_TIMEOUT_SECONDS):
        self.providers = providers
        self.timeout_seconds = timeout_seconds
        self._handlers: dict[str, Callable[[Any], Awaitable[Any]]] = {
            "get_stock_price": lambda a: providers.polygon.get_stock_quote(
                a.symbol, include_extended=a.include_extended is not False
            ),
            "get_historical_data": lambda a: providers.polygon.get_historical_data(a.symbol, a.timeframe, a.interval),
            "get_options_chain": lambda a: providers.finnhub.get_options_chain(a.symbol, a.expiration_date),
            "get_news_sentiment": lambda a: providers.polygon.get_news_sentiment(a.symbol, a.days),
            "get_earnings_calendar": self._earnings,
            "get_analyst_ratings": self._analyst_ratings,
            "get_unusual_options_flow": lambda a: providers.unusual_whales.get_unusual_options_flow(a.symbol),
            "get_insider_trades": lambda a: providers.sec.get_insider_trades(a.symbol),
            "get_institutional_holdings": lambda a: providers.sec.get_institutional_holdings(a.symbol),
            "search_trading_knowledge": self._search_knowledge,
            "get_forex_quote": lambda a: providers.twelvedata.get_forex_quote(a.pair),
            "get_forex_historical": lambda a: providers.twelvedata.get_forex_historical(
                a.pair, a.interval, a.output_size
            ),
            "get_forex_indicator": lambda a: providers.twelvedata.get_forex_indicator(
                a.pair, a.indicator, a.interval, a.time_period
            ),
            "get_exchange_rate": lambda a: providers.twelvedata.get_exchange_rate(a.from_currency, a.to_currency),
            "get_economic_calendar": lambda a: providers.forex_factory.get_forex_calendar(a.pair),
        }

    async def _earnings(self, args: ToolArgs) -> dict[str, Any]:
        unified = await self.providers.unified.get_unified_earnings(args.symbol)
        return {**unified.data.to_dict(), "_meta": unified.meta()}

    async def _analyst_ratings(self, args: ToolArgs) -> dict[str, Any]:
        unified = await self.providers.unified.get_unified_analyst_ratings(args.symbol)
        data = unified.data.to_dict()
        data["ratings"] = data["ratings"][: args.limit]
        return {**data, "_meta": unified.meta()}

    async def _search_knowledge(self, args: ToolArgs) -> Any:
        if self.providers.knowledge is None:
            raise ConfigurationError("Knowledge base not configured")
        return await self.providers.knowledge.search(args.query, args.kb_type, args.limit)

    async def _run_one(self, request: dict[str, Any]) -> _Outcome:
        call_id = request.get("id", "")
        function = request.get("function")
        if not isinstance(function, dict):
            return _Outcome(call_id, "", {}, error=f"Invalid JSON arguments: {function}")
        name = str(function.get("name") or "")
        raw_args = function.get("arguments") or "{}"

        # json.loads raises TypeError for payloads that are not str/bytes
        try:
            args = json.loads(raw_args)
            if not isinstance(args, dict):
                raise ValueError("arguments must be a JSON object")
        except (TypeError, ValueError):
            return _Outcome(call_id, name, {}, error=f"Invalid JSON arguments: {raw_args}")

        handler = self._handlers.get(name)
        if handler is None or name not in TOOL_DEFINITIONS:
            return _Outcome(call_id, name, args, error=f"Unknown tool: {name}")

        start = time.monotonic()
        try:
            params = validate_tool_args(name, args)
            result = await asyncio.wait_for(handler(params), timeout=self.timeout_seconds)
            return _Outcome(call_id, name, args, result=to_jsonable(result), duration_ms=_elapsed_ms(start))
        except TimeoutError:
            timeout_ms = int(self.timeout_seconds * 1000)
            logger.error(f"[Executor] Tool {name} timed out after {timeout_ms}ms")
            return _Outcome(
                call_id, name, args, error=f"Tool timed out after {timeout_ms}ms", duration_ms=_elapsed_ms(start)
            )
        except pydantic.ValidationError as e:
            return _Outcome(call_id, name, args, error=_validation_message(e), duration_ms=_elapsed_ms(start))
        except Exception as e:
            logger.error(f"[Executor] Tool execution error ({name}): {e}")
            return _Outcome(call_id, name, args, error=str(e) or type(e).__name__, duration_ms=_elapsed_ms(start))

    async def execute(self, tool_calls: list[dict[str, Any]]) -> ToolExecutionResult:
        """Run every requested tool call in parallel; results keep request order."""
        outcomes = await asyncio.gather(*(self._run_one(tc) for tc in tool_calls))

        execution = ToolExecutionResult()
        for outcome in outcomes:
            payload = {"error": outcome.error} if outcome.error else outcome.result
            execution.tool_results.append(
                {
                    "tool_call_id": outcome.call_id,
                    "role": "tool",
                    "content": json.dumps(payload, default=str),
                }
            )
            execution.tool_calls.append(
                ToolCall(name=outcome.name, args=outcome.args, result=payload, duration_ms=outcome.duration_ms)
            )
            if outcome.error:
                execution.errors.append(f"{outcome.name}: {outcome.error}")

        if execution.errors:
            logger.warning(f"[Executor] {len(execution.errors)}/{len(tool_calls)} tool calls failed")
        return execution


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
