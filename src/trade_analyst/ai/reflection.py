"""
Self-critique and refinement of a draft analysis.

Reflection is advisory: a failed critique call or an unparseable critique
falls back to AnalysisCritique.default(), and a failed refinement keeps the
previous text. Nothing here raises into the orchestrator.
"""

import json
import logging
from typing import Any

from trade_analyst.ai.clients import LLMClient
from trade_analyst.ai.parser import extract_json
from trade_analyst.ai.prompts import (
    CRITIQUE_SYSTEM_PROMPT,
    CRITIQUE_USER_PROMPT_TEMPLATE,
    REFINEMENT_SYSTEM_PROMPT,
    REFINEMENT_USER_PROMPT_TEMPLATE,
)
from trade_analyst.exceptions import LLMError
from trade_analyst.models import AnalysisCritique, ReflectionResult

logger = logging.getLogger(__name__)

CONFIDENCE_STOP_THRESHOLD = 80


def summarize_data(data: dict[str, Any]) -> str:
    """One line per gathered tool result: object keys (first 5) or a truncated scalar."""
    lines = []
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, dict):
            keys = list(value)
            more = "..." if len(keys) > 5 else ""
            lines.append(f"{key}: {{{', '.join(keys[:5])}{more}}}")
        elif isinstance(value, list):
            lines.append(f"{key}: [{len(value)} items]")
        else:
            lines.append(f"{key}: {str(value)[:100]}")
    return "\n".join(lines)


def _check_text(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value)


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def critique_from_dict(data: dict[str, Any]) -> AnalysisCritique:
    """Build a critique from the model's JSON, tolerating missing keys."""
    try:
        confidence = int(float(data.get("confidence_assessment", 50)))
    except (TypeError, ValueError):
        confidence = 50
    should_be_wait = data.get("should_be_wait")
    return AnalysisCritique(
        strengths=_str_list(data.get("strengths")),
        weaknesses=_str_list(data.get("weaknesses")),
        missing_data=_str_list(data.get("missing_data")),
        confidence_assessment=max(0, min(100, confidence)),
        recommendations=_str_list(data.get("recommendations")),
        should_refine=bool(data.get("should_refine", False)),
        risk_reward_check=_check_text(data.get("risk_reward_check")),
        entry_quality_check=_check_text(data.get("entry_quality_check")),
        should_be_wait=bool(should_be_wait) if should_be_wait is not None else None,
    )


async def critique_analysis(llm: LLMClient, analysis: str, gathered_data: dict[str, Any]) -> AnalysisCritique:
    messages = [
        {"role": "system", "content": CRITIQUE_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": CRITIQUE_USER_PROMPT_TEMPLATE.format(
                analysis=analysis,
                sources=", ".join(gathered_data),
                data_summary=summarize_data(gathered_data),
            ),
        },
    ]

    try:
        response = await llm.chat_completion(messages, task_type="reflection", max_tokens=2048)
    except LLMError as e:
        logger.warning(f"[Reflection] Critique call failed, using default critique: {e}")
        return AnalysisCritique.default()

    choice = response.first
    content = choice.message.content if choice else None
    parsed = extract_json(content or "")
    if parsed is None:
        logger.warning("[Reflection] Failed to parse critique, using default critique")
        return AnalysisCritique.default()
    return critique_from_dict(parsed)


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


async def refine_analysis(
    llm: LLMClient,
    analysis: str,
    critique: AnalysisCritique,
    gathered_data: dict[str, Any],
) -> str:
    messages = [
        {"role": "system", "content": REFINEMENT_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": REFINEMENT_USER_PROMPT_TEMPLATE.format(
                analysis=analysis,
                strengths=_bullets(critique.strengths),
                weaknesses=_bullets(critique.weaknesses),
                missing_data=_bullets(critique.missing_data),
                recommendations=_bullets(critique.recommendations),
                confidence=critique.confidence_assessment,
                data_summary=summarize_data(gathered_data),
            ),
        },
    ]

    try:
        response = await llm.chat_completion(messages, task_type="reflection", max_tokens=4096)
    except LLMError as e:
        logger.warning(f"[Reflection] Refinement call failed, keeping previous analysis: {e}")
        return analysis

    choice = response.first
    return (choice.message.content if choice else None) or analysis


async def perform_reflection(
    llm: LLMClient,
    initial_analysis: str,
    gathered_data: dict[str, Any],
    max_iterations: int = 2,
) -> ReflectionResult:
    """
    Critique, and refine while the critique asks for it.

    Stops after ``max_iterations`` critiques, when the critique does not
    ask for refinement, or when its confidence reaches 80.
    """
    current = initial_analysis
    critique = AnalysisCritique.default()
    iterations = 0

    while iterations < max_iterations:
        critique = await critique_analysis(llm, current, gathered_data)
        iterations += 1
        logger.info(
            f"[Reflection] Iteration {iterations}: confidence={critique.confidence_assessment}, "
            f"should_refine={critique.should_refine}"
        )

        if not critique.should_refine or critique.confidence_assessment >= CONFIDENCE_STOP_THRESHOLD:
            break

        current = await refine_analysis(llm, current, critique, gathered_data)

    return ReflectionResult(
        initial_analysis=initial_analysis,
        critique=critique,
        refined_analysis=current if iterations > 1 else None,
        iterations=iterations,
    )
