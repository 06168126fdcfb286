"""
Provider diagnostics.

``check_providers`` issues one light request per external service, all
concurrently, and reports each as ok, warning or error. A check never
raises: a missing key, an HTTP error or a timeout becomes its result.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from trade_analyst.ai.clients import LLMClient
from trade_analyst.exceptions import (
    ConfigurationError,
    DataFetchError,
    DataSourceUnavailableError,
    RateLimitError,
    StorageError,
    TradeAnalystError,
)
from trade_analyst.providers.registry import ProviderRegistry
from trade_analyst.storage.database import Database

logger = logging.getLogger(__name__)

CHECK_SYMBOL = "AAPL"
CHECK_PAIR = "EUR/USD"
CHECK_TIMEOUT_SECONDS = 20.0

_HTTP_STATUS = re.compile(r"API error: (\d{3})")


class CheckStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True)
class CheckResult:
    name: str
    status: CheckStatus
    message: str
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "status": self.status.value}


@dataclass(slots=True)
class DiagnosticsReport:
    results: list[CheckResult]

    def count(self, status: CheckStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def overall(self) -> str:
        """healthy when every check passed, degraded on any error, partial otherwise."""
        if self.count(CheckStatus.ERROR):
            return "degraded"
        if self.count(CheckStatus.WARNING):
            return "partial"
        return "healthy"

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "results": [r.to_dict() for r in self.results],
            "summary": {
                "ok": self.count(CheckStatus.OK),
                "warnings": self.count(CheckStatus.WARNING),
                "errors": self.count(CheckStatus.ERROR),
            },
        }


def _fetch_error_result(name: str, error: DataFetchError) -> CheckResult:
    match = _HTTP_STATUS.search(error.message)
    status_code = int(match.group(1)) if match else None
    if status_code == 403:
        return CheckResult(name, CheckStatus.WARNING, "API key valid but limited", error.message)
    if status_code == 401:
        return CheckResult(name, CheckStatus.ERROR, "API key invalid or expired", error.message)
    if status_code:
        return CheckResult(name, CheckStatus.ERROR, f"API error: {status_code}", error.message)
    return CheckResult(name, CheckStatus.ERROR, "Connection failed", error.message)


async def _run_check(
    name: str,
    call: Callable[[], Awaitable[Any]],
    ok_message: str,
    has_data: Callable[[Any], bool] = lambda _: True,
) -> CheckResult:
    try:
        result = await asyncio.wait_for(call(), timeout=CHECK_TIMEOUT_SECONDS)
    except ConfigurationError as e:
        return CheckResult(name, CheckStatus.ERROR, "API key not configured", e.message)
    except RateLimitError as e:
        return CheckResult(name, CheckStatus.WARNING, "Rate limited, try again shortly", e.message)
    except DataSourceUnavailableError as e:
        return CheckResult(name, CheckStatus.ERROR, "Service unavailable", e.message)
    except DataFetchError as e:
        return _fetch_error_result(name, e)
    except TimeoutError:
        return CheckResult(name, CheckStatus.ERROR, f"No response within {CHECK_TIMEOUT_SECONDS:.0f}s")
    except TradeAnalystError as e:
        return CheckResult(name, CheckStatus.ERROR, "Check failed", e.message)

    if not has_data(result):
        return CheckResult(name, CheckStatus.WARNING, "Connected but no data returned")
    return CheckResult(name, CheckStatus.OK, ok_message)


async def _check_provider(
    name: str,
    provider: Any,
    call: Callable[[], Awaitable[Any]],
    ok_message: str,
    has_data: Callable[[Any], bool] = lambda _: True,
) -> CheckResult:
    if not provider.is_configured:
        return CheckResult(name, CheckStatus.ERROR, "API key not configured", f"Set {provider.api_key_env}")
    return await _run_check(name, call, ok_message, has_data)


async def _check_llm(llm: LLMClient) -> CheckResult:
    name = "AI service"
    if not llm.is_available():
        return CheckResult(
            name, CheckStatus.ERROR, "API key not configured", "Set OPENROUTER_API_KEY or OPENAI_API_KEY"
        )
    messages = [{"role": "user", "content": 'Say "OK" only.'}]
    result = await _run_check(
        name,
        lambda: llm.chat_completion(messages, task_type="chat", max_tokens=10),
        "Connected - completions working",
        lambda response: response.first is not None,
    )
    if result.status == CheckStatus.OK:
        result.details = llm.config.primary_model if llm.config.openrouter_api_key else llm.config.fallback_model
    return result


def _check_fallback(llm: LLMClient) -> CheckResult:
    name = "OpenAI fallback"
    if not llm.config.openai_api_key:
        return CheckResult(name, CheckStatus.WARNING, "API key not configured - no fallback available")
    if not llm.config.openrouter_api_key:
        return CheckResult(name, CheckStatus.WARNING, "Used as primary - no fallback available")
    return CheckResult(name, CheckStatus.OK, "Configured as fallback")


async def _check_storage(database: Database, providers: ProviderRegistry) -> CheckResult:
    name = "Database / knowledge base"
    try:
        database.ping()
        documents = providers.knowledge.count_documents() if providers.knowledge is not None else 0
    except StorageError as e:
        return CheckResult(name, CheckStatus.ERROR, "Database error", e.message)
    if not documents:
        return CheckResult(name, CheckStatus.WARNING, "Connected but knowledge base is empty")
    return CheckResult(name, CheckStatus.OK, f"Connected - {documents} documents in knowledge base")


async def check_providers(providers: ProviderRegistry, llm: LLMClient, database: Database) -> DiagnosticsReport:
    """Run every service check concurrently and collect the results in a fixed order."""
    checks = [
        _check_llm(llm),
        _check_provider(
            "Polygon.io",
            providers.polygon,
            lambda: providers.polygon.get_stock_quote(CHECK_SYMBOL),
            "Connected - quotes, history and news available",
            lambda quote: quote.price > 0,
        ),
        _check_provider(
            "Finnhub",
            providers.finnhub,
            lambda: providers.finnhub.get_quote_price(CHECK_SYMBOL),
            "Connected - options chain and recommendations available",
            lambda price: price > 0,
        ),
        _check_provider(
            "Benzinga",
            providers.benzinga,
            lambda: providers.benzinga.get_earnings_calendar(CHECK_SYMBOL),
            "Connected - earnings and analyst data available",
        ),
        _check_provider(
            "Unusual Whales",
            providers.unusual_whales,
            lambda: providers.unusual_whales.get_unusual_options_flow(CHECK_SYMBOL),
            "Connected - smart money flow available",
        ),
        _check_provider(
            "Twelve Data",
            providers.twelvedata,
            lambda: providers.twelvedata.get_forex_quote(CHECK_PAIR),
            "Connected - forex quotes and indicators available",
            lambda quote: quote.mid > 0,
        ),
        _check_storage(database, providers),
    ]
    results = list(await asyncio.gather(*checks))
    results.insert(1, _check_fallback(llm))

    report = DiagnosticsReport(results)
    logger.info(
        f"[Diagnostics] {report.overall}: {report.count(CheckStatus.OK)} ok, "
        f"{report.count(CheckStatus.WARNING)} warnings, {report.count(CheckStatus.ERROR)} errors"
    )
    return report
