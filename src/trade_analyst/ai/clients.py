"""
LLM client built on litellm.

OpenRouter is the primary provider and OpenAI the fallback. Each call
tries the primary once and, on any error, the fallback once; there is no
further retry. Responses are normalized into ChatResponse so the rest of
the system never touches litellm types.
"""

import logging
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Literal

import litellm
from litellm import acompletion

from trade_analyst.config import AIConfig
from trade_analyst.exceptions import LLMError

logger = logging.getLogger(__name__)

os.environ.setdefault("LITELLM_LOG", "WARNING")
litellm.set_verbose = False
litellm.drop_params = True

TaskType = Literal["analysis", "reflection", "chat", "recommendation"]

FINISH_REASONS = ("stop", "tool_calls", "length", "content_filter")

NOT_CONFIGURED_MESSAGE = "We're having trouble connecting to our AI service. Please try again later."


@dataclass(slots=True)
class ChatMessage:
    role: str
    content: str | None = None
    tool_calls: list[dict[str, Any]] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = self.tool_calls
        return data


@dataclass(slots=True)
class ChatChoice:
    message: ChatMessage
    finish_reason: str = "stop"
    index: int = 0


@dataclass(slots=True)
class ChatResponse:
    """Provider-independent completion result."""

    choices: list[ChatChoice] = field(default_factory=list)
    model: str = ""
    id: str = ""
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def first(self) -> ChatChoice | None:
        return self.choices[0] if self.choices else None


@dataclass(frozen=True, slots=True)
class TaskSettings:
    primary: str
    fallback: str
    temperature: float


@dataclass(frozen=True, slots=True)
class _Route:
    label: str
    model: str
    api_key: str
    api_base: str
    extra_headers: dict[str, str] | None = None


def friendly_error(error: Exception) -> str:
    """Map a provider error to a message safe to show end users."""
    message = str(error).lower()
    status = getattr(error, "status_code", None)

    if status == 401 or any(s in message for s in ("api key", "unauthorized", "authentication")):
        return (
            "We're having trouble connecting to our AI service. Our team has been notified "
            "and is working on it. Please try again in a few minutes."
        )
    if status == 429 or "rate limit" in message or "too many requests" in message:
        return "Our AI is experiencing high demand right now. Please wait a moment and try again."
    if any(s in message for s in ("quota", "billing", "insufficient")):
        return "We're experiencing a temporary service issue. Our team has been notified. Please try again later."
    if any(s in message for s in ("timeout", "timed out", "network", "connection refused", "econnrefused")):
        return "Unable to connect to our AI service. Please check your internet connection and try again."
    if "model" in message and ("not found" in message or "does not exist" in message):
        return "The AI service is temporarily unavailable. Please try again in a moment."
    if isinstance(status, int) and status >= 500:
        return "Our AI service is temporarily down. Please try again in a few minutes."
    return "Something went wrong with the analysis. Please try again. If the problem persists, try again later."


def _normalize(response: Any) -> ChatResponse:
    choices = []
    for i, choice in enumerate(response.choices or []):
        message = choice.message
        tool_calls = None
        if getattr(message, "tool_calls", None):
            tool_calls = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.function.name or "", "arguments": tc.function.arguments or "{}"},
                }
                for tc in message.tool_calls
            ]
        finish = choice.finish_reason if choice.finish_reason in FINISH_REASONS else "stop"
        choices.append(
            ChatChoice(
                message=ChatMessage(role="assistant", content=message.content, tool_calls=tool_calls),
                finish_reason=finish,
                index=getattr(choice, "index", i),
            )
        )

    usage = getattr(response, "usage", None)
    return ChatResponse(
        choices=choices,
        model=getattr(response, "model", "") or "",
        id=getattr(response, "id", "") or "",
        usage={
            "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
            "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
            "total_tokens": getattr(usage, "total_tokens", 0) or 0,
        },
    )


class LLMClient:
    """
    Chat completion with per-task model selection and a primary -> fallback hop.

    Usage:
        client = LLMClient(config.ai)
        response = await client.chat_completion(messages, tools=tools, task_type="analysis")
    """

    def __init__(self, config: AIConfig):
        self.config = config
        self.task_settings: dict[str, TaskSettings] = {
            "analysis": TaskSettings(config.primary_model, config.fallback_model, config.analysis_temperature),
            "reflection": TaskSettings(config.primary_model, config.fallback_model, config.analysis_temperature),
            "chat": TaskSettings(config.primary_model, config.chat_fallback_model, config.chat_temperature),
            "recommendation": TaskSettings(config.primary_model, config.fallback_model, config.analysis_temperature),
        }

    def is_available(self) -> bool:
        return bool(self.config.openrouter_api_key or self.config.openai_api_key)

    def _routes(self, settings: TaskSettings) -> list[_Route]:
        routes = []
        if self.config.openrouter_api_key:
            routes.append(
                _Route(
                    label="OpenRouter",
                    model=f"openrouter/{settings.primary}",
                    api_key=self.config.openrouter_api_key,
                    api_base=self.config.openrouter_base_url,
                    extra_headers={"HTTP-Referer": self.config.app_url, "X-Title": self.config.app_title},
                )
            )
        if self.config.openai_api_key:
            routes.append(
                _Route(
                    label="OpenAI",
                    model=f"openai/{settings.fallback}",
                    api_key=self.config.openai_api_key,
                    api_base=self.config.openai_base_url,
                )
            )
        return routes

    def _kwargs(
        self,
        route: _Route,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": route.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "api_key": route.api_key,
            "api_base": route.api_base,
            "timeout": self.config.llm_timeout,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        if route.extra_headers:
            kwargs["extra_headers"] = route.extra_headers
        return kwargs

    async def chat_completion(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        task_type: TaskType = "analysis",
        max_tokens: int = 4096,
        temperature: float | None = None,
    ) -> ChatResponse:
        """
        Run one completion, falling back from OpenRouter to OpenAI on error.

        Raises:
            LLMError: when no provider is configured or every configured provider failed
        """
        settings = self.task_settings[task_type]
        temp = settings.temperature if temperature is None else temperature
        routes = self._routes(settings)
        if not routes:
            raise LLMError(f"{NOT_CONFIGURED_MESSAGE} (neither OPENROUTER_API_KEY nor OPENAI_API_KEY is set)")

        last_error: Exception | None = None
        for route in routes:
            try:
                logger.info(
                    f"[{route.label}] {route.model} (task: {task_type}, temp: {temp}, tools: {len(tools or [])})"
                )
                response = await acompletion(**self._kwargs(route, messages, tools, temp, max_tokens))
                result = _normalize(response)
                choice = result.first
                logger.debug(
                    f"[{route.label}] finish_reason={choice.finish_reason if choice else None}, "
                    f"has_content={bool(choice and choice.message.content)}, "
                    f"tool_calls={len(choice.message.tool_calls or []) if choice else 0}"
                )
                return result
            except Exception as e:
                last_error = e
                logger.warning(f"[{route.label}] {route.model} failed: {e}")

        raise LLMError(f"{friendly_error(last_error)} ({routes[-1].label}: {last_error})") from last_error

    async def stream_chat(
        self,
        messages: list[dict[str, Any]],
        task_type: TaskType = "chat",
        max_tokens: int = 4096,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """Yield content deltas from the first configured provider."""
        settings = self.task_settings[task_type]
        temp = settings.temperature if temperature is None else temperature
        routes = self._routes(settings)
        if not routes:
            raise LLMError(NOT_CONFIGURED_MESSAGE)

        route = routes[0]
        try:
            stream = await acompletion(**self._kwargs(route, messages, None, temp, max_tokens), stream=True)
        except Exception as e:
            raise LLMError(friendly_error(e)) from e

        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            content = getattr(delta, "content", None)
            if content:
                yield content
