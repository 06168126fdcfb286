"""
Agent run models.

Contains AgentPhase, the orchestrator-local AgentState, progress updates
and reflection results.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from trade_analyst.models.job import ToolCall
from trade_analyst.models.recommendation import TradeRecommendation


class AgentPhase(str, Enum):
    """States of the analysis state machine."""

    GATHERING = "gathering"
    ANALYZING = "analyzing"
    REFLECTING = "reflecting"
    FINALIZING = "finalizing"
    FORCED_FINALIZATION = "forced_finalization"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class AgentState:
    """
    Per-run working state of the orchestrator.

    Created at the start of one run and discarded at the end.
    """

    messages: list[dict[str, Any]] = field(default_factory=list)
    tool_calls_made: int = 0
    max_tool_calls: int = 15
    current_phase: AgentPhase = AgentPhase.GATHERING
    gathered_data: dict[str, Any] = field(default_factory=dict)
    iteration: int = 0
    force_prompt_sent: bool = False

    def add_message(self, role: str, content: str | None, **extra: Any) -> None:
        message: dict[str, Any] = {"role": role, "content": content}
        message.update(extra)
        self.messages.append(message)


@dataclass(slots=True)
class ProgressUpdate:
    progress: int
    step: str
    phase: str
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass(slots=True)
class AnalysisCritique:
    """Structured critique of a draft analysis."""

    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    missing_data: list[str] = field(default_factory=list)
    confidence_assessment: int = 50
    recommendations: list[str] = field(default_factory=list)
    should_refine: bool = False
    risk_reward_check: str | None = None
    entry_quality_check: str | None = None
    should_be_wait: bool | None = None

    @classmethod
    def default(cls) -> "AnalysisCritique":
        """Conservative critique used when the model's critique is unusable."""
        return cls(
            strengths=["Analysis was generated"],
            weaknesses=["Critique parsing failed"],
            missing_data=[],
            confidence_assessment=50,
            recommendations=["Re-run analysis"],
            should_refine=False,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ReflectionResult:
    initial_analysis: str
    critique: AnalysisCritique
    refined_analysis: str | None = None
    iterations: int = 0


@dataclass(slots=True)
class AgentResult:
    """Outcome of one orchestrator run; ``recommendation`` is None on failure."""

    recommendation: TradeRecommendation | None
    tool_calls: list[ToolCall] = field(default_factory=list)
    initial_analysis: str | None = None
    critique: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.recommendation is not None and self.error is None
