"""
Data models for trade analyst.
"""

from trade_analyst.models.agent import (
    AgentPhase,
    AgentResult,
    AgentState,
    AnalysisCritique,
    ProgressUpdate,
    ReflectionResult,
)
from trade_analyst.models.backtest import BacktestStats, Direction, Prediction, PredictionOutcome, PredictionStatus
from trade_analyst.models.job import AnalysisJob, AnalysisType, JobStatus, ToolCall
from trade_analyst.models.market_data import (
    AnalystConsensus,
    AnalystRating,
    EarningsCalendar,
    EarningsEvent,
    EconomicCalendar,
    EconomicEvent,
    ForexQuote,
    InsiderActivity,
    InsiderTrade,
    InstitutionalActivity,
    InstitutionalHolding,
    KnowledgeChunk,
    KnowledgeContext,
    NewsArticle,
    NewsSentiment,
    OHLCVBar,
    OptionContract,
    OptionsChain,
    StockQuote,
    UnusualFlowSummary,
)
from trade_analyst.models.recommendation import (
    ForexIndicators,
    ForexLevels,
    ForexSetup,
    ForexTiming,
    ForexTrade,
    KeyFactor,
    OptionGreeks,
    OptionLeg,
    OptionsStrategy,
    Recommendation,
    Sentiment,
    TradeRecommendation,
)

__all__ = [
    "AgentPhase",
    "AgentResult",
    "AgentState",
    "AnalysisCritique",
    "ProgressUpdate",
    "ReflectionResult",
    "BacktestStats",
    "Direction",
    "Prediction",
    "PredictionOutcome",
    "PredictionStatus",
    "AnalysisJob",
    "AnalysisType",
    "JobStatus",
    "ToolCall",
    "AnalystConsensus",
    "AnalystRating",
    "EarningsCalendar",
    "EarningsEvent",
    "EconomicCalendar",
    "EconomicEvent",
    "ForexQuote",
    "InsiderActivity",
    "InsiderTrade",
    "InstitutionalActivity",
    "InstitutionalHolding",
    "KnowledgeChunk",
    "KnowledgeContext",
    "NewsArticle",
    "NewsSentiment",
    "OHLCVBar",
    "OptionContract",
    "OptionsChain",
    "StockQuote",
    "UnusualFlowSummary",
    "ForexIndicators",
    "ForexLevels",
    "ForexSetup",
    "ForexTiming",
    "ForexTrade",
    "KeyFactor",
    "OptionGreeks",
    "OptionLeg",
    "OptionsStrategy",
    "Recommendation",
    "Sentiment",
    "TradeRecommendation",
]
