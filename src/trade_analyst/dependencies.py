"""
Dependency container - cached factories for the process-wide services.

Everything is built from the one Config returned by get_config(), so a
process shares a single database, provider registry and LLM client.
"""

from __future__ import annotations

from functools import cache
from typing import TYPE_CHECKING

from trade_analyst.config import get_config

if TYPE_CHECKING:
    from trade_analyst.ai.clients import LLMClient
    from trade_analyst.ai.executor import ToolExecutor
    from trade_analyst.providers.registry import ProviderRegistry
    from trade_analyst.storage import Database, JobStore, PredictionStore


@cache
def get_database() -> Database:
    from trade_analyst.storage import Database

    return Database(get_config().get_db_url())


@cache
def get_job_store() -> JobStore:
    from trade_analyst.storage import JobStore

    return JobStore(get_database())


@cache
def get_providers() -> ProviderRegistry:
    """Provider clients plus the knowledge base backed by the shared database."""
    from trade_analyst.providers.registry import ProviderRegistry

    return ProviderRegistry(get_config(), database=get_database())


@cache
def get_tool_executor() -> ToolExecutor:
    from trade_analyst.ai.executor import ToolExecutor

    return ToolExecutor(get_providers(), timeout_seconds=get_config().agent.tool_timeout_seconds)


@cache
def get_llm() -> LLMClient:
    """
    LLM client for the configured providers.

    Calls raise LLMError when neither OPENROUTER_API_KEY nor OPENAI_API_KEY is set.
    """
    from trade_analyst.ai.clients import LLMClient

    return LLMClient(get_config().ai)


@cache
def get_prediction_store() -> PredictionStore:
    from trade_analyst.storage import PredictionStore

    return PredictionStore(get_database())
