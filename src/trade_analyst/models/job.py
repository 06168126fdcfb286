"""
Analysis job models.

Contains AnalysisType and JobStatus enumerations plus the AnalysisJob and
ToolCall records persisted by the job store.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from trade_analyst.models.recommendation import TradeRecommendation


class AnalysisType(str, Enum):
    """Full agentic analyses (stock, forex) and standalone quick lookups."""

    STOCK = "stock"
    FOREX = "forex"
    TECHNICAL = "technical"
    FUNDAMENTALS = "fundamentals"
    EARNINGS = "earnings"
    NEWS = "news"
    SMART_MONEY = "smart_money"

    @classmethod
    def from_string(cls, value: str | None) -> "AnalysisType":
        mapping = {m.value: m for m in cls}
        return mapping.get(str(value or "").strip().lower(), cls.STOCK)

    @property
    def is_standalone(self) -> bool:
        return self not in (AnalysisType.STOCK, AnalysisType.FOREX)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def from_string(cls, value: str | None) -> "JobStatus":
        mapping = {m.value: m for m in cls}
        return mapping.get(str(value or "").strip().lower(), cls.PENDING)

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)

    @property
    def is_cancellable(self) -> bool:
        return self in (JobStatus.PENDING, JobStatus.RUNNING)


@dataclass(slots=True)
class ToolCall:
    """Audit record of one executed tool call."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    result: Any = None
    duration_ms: int | None = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def succeeded(self) -> bool:
        return self.result is not None and not (isinstance(self.result, dict) and "error" in self.result)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "args": self.args,
            "result": self.result,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        return cls(
            name=data["name"],
            args=data.get("args") or {},
            result=data.get("result"),
            duration_ms=data.get("duration_ms"),
            timestamp=data.get("timestamp", ""),
        )


@dataclass(slots=True)
class AnalysisJob:
    """
    A requested analysis and its live progress.

    Status only moves forward: pending -> running -> completed/failed/cancelled.
    """

    id: str
    symbol: str
    analysis_type: AnalysisType
    user_id: str = "local"
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    current_step: str | None = None
    tools_called: list[ToolCall] = field(default_factory=list)
    initial_analysis: str | None = None
    critique: str | None = None
    final_result: TradeRecommendation | None = None
    error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "symbol": self.symbol,
            "analysis_type": self.analysis_type.value,
            "status": self.status.value,
            "progress": self.progress,
            "current_step": self.current_step,
            "tools_called": [tc.to_dict() for tc in self.tools_called],
            "initial_analysis": self.initial_analysis,
            "critique": self.critique,
            "final_result": self.final_result.to_dict() if self.final_result else None,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
