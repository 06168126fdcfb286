"""AI layer: LLM client, tool registry and executor, analysis agent and parser."""

from trade_analyst.ai.agent import AnalysisAgent, run_analysis_agent
from trade_analyst.ai.clients import ChatResponse, LLMClient
from trade_analyst.ai.executor import ToolExecutionResult, ToolExecutor
from trade_analyst.ai.parser import parse_recommendation, parse_recommendation_json, validate_trade_quality
from trade_analyst.ai.reflection import perform_reflection
from trade_analyst.ai.standalone import StandaloneAnalyzer, StandaloneResult, run_standalone_analysis
from trade_analyst.ai.tools import TOOL_DEFINITIONS, tools_for

__all__ = [
    # Agent
    "AnalysisAgent",
    "run_analysis_agent",
    "perform_reflection",
    # LLM client
    "ChatResponse",
    "LLMClient",
    # Tools
    "TOOL_DEFINITIONS",
    "ToolExecutionResult",
    "ToolExecutor",
    "tools_for",
    # Parsing
    "parse_recommendation",
    "parse_recommendation_json",
    "validate_trade_quality",
    # Standalone
    "StandaloneAnalyzer",
    "StandaloneResult",
    "run_standalone_analysis",
]
