"""
Trade Analyst: agentic AI analysis for stocks, options and forex.

An LLM gathers market data through tools, reflects on its own draft and
returns a validated TradeRecommendation persisted as an analysis job.
"""

__version__ = "0.1.0"
