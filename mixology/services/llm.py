"""Language-model port: one uniform capability over the vendor chat models.

The vendor (OpenAI, Google, Anthropic or xAI) is chosen once at startup by
``build_language_model()``.  Everything downstream talks to
``LanguageModelPort``, which answers every open-ended call with exactly one
of two variants:

  - ``FinalAnswer``      — a plain assistant message, the turn can end
  - ``ToolCallRequest``  — one or more tool calls the model wants executed

Structured calls return a validated pydantic object or raise
``SchemaValidationError``.  Any provider failure raises
``ModelInvocationError``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, ToolCall, message_chunk_to_message
from langchain_core.tools import BaseTool
from pydantic import BaseModel, ValidationError

from mixology import config
from mixology.errors import ConfigurationError, ModelInvocationError, SchemaValidationError
from mixology.services.metrics import metrics

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-5-mini",
    "google": "gemini-3-pro-preview",
    "anthropic": "claude-sonnet-4-5",
    "grok": "grok-4-1-fast-reasoning",
}


def message_text(message: BaseMessage) -> str:
    """Return the plain text of *message*, flattening content blocks."""
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


# ── Response variants ────────────────────────────────────────────────


@dataclass(frozen=True)
class FinalAnswer:
    message: AIMessage

    @property
    def text(self) -> str:
        return message_text(self.message)


@dataclass(frozen=True)
class ToolCallRequest:
    message: AIMessage

    @property
    def calls(self) -> list[ToolCall]:
        return list(self.message.tool_calls)


ModelResponse = FinalAnswer | ToolCallRequest


def classify_response(message: BaseMessage) -> ModelResponse:
    """Decide whether *message* ends the turn or asks for tools."""
    if not isinstance(message, AIMessage):
        message = AIMessage(content=message_text(message))
    if message.tool_calls:
        return ToolCallRequest(message)
    return FinalAnswer(message)


# ── Port ─────────────────────────────────────────────────────────────


class LanguageModelPort:
    """Uniform access to one configured chat model.

    Safe for concurrent use: binding tools or a structured-output schema
    creates a new runnable per call and never mutates the wrapped model.
    """

    def __init__(self, model: BaseChatModel, provider: str = "custom") -> None:
        self._model = model
        self.provider = provider

    def _runnable(self, tools: Sequence[BaseTool] | None):
        return self._model.bind_tools(list(tools)) if tools else self._model

    def invoke(
        self,
        history: Sequence[BaseMessage],
        tools: Sequence[BaseTool] | None = None,
    ) -> ModelResponse:
        """Run one open-ended generation over *history*."""
        t0 = time.perf_counter()
        try:
            response = self._runnable(tools).invoke(list(history))
        except Exception as exc:
            self._record_failure("invoke", exc, t0)
            raise ModelInvocationError(f"{self.provider} call failed: {type(exc).__name__}") from exc
        metrics.record_success(self.provider, "invoke", latency_ms=(time.perf_counter() - t0) * 1000)
        return classify_response(response)

    def stream(
        self,
        history: Sequence[BaseMessage],
        tools: Sequence[BaseTool] | None = None,
        on_token: Callable[[str], None] | None = None,
    ) -> ModelResponse:
        """Like ``invoke`` but relays text deltas to *on_token* as they arrive."""
        t0 = time.perf_counter()
        aggregate = None
        try:
            for chunk in self._runnable(tools).stream(list(history)):
                aggregate = chunk if aggregate is None else aggregate + chunk
                delta = message_text(chunk)
                if delta and on_token is not None:
                    on_token(delta)
        except Exception as exc:
            self._record_failure("stream", exc, t0)
            raise ModelInvocationError(f"{self.provider} stream failed: {type(exc).__name__}") from exc

        if aggregate is None:
            raise ModelInvocationError(f"{self.provider} stream produced no output")
        metrics.record_success(self.provider, "stream", latency_ms=(time.perf_counter() - t0) * 1000)
        return classify_response(message_chunk_to_message(aggregate))

    def invoke_structured(self, history: Sequence[BaseMessage], schema: type[T]) -> T:
        """Generate an object conforming to *schema*.

        Raises ``SchemaValidationError`` when the output cannot be parsed or
        fails the schema's validators; never coerces silently.
        """
        structured = self._model.with_structured_output(schema, include_raw=True)
        t0 = time.perf_counter()
        try:
            result = structured.invoke(list(history))
        except Exception as exc:
            self._record_failure("invoke_structured", exc, t0)
            raise ModelInvocationError(f"{self.provider} structured call failed: {type(exc).__name__}") from exc
        metrics.record_success(self.provider, "invoke_structured", latency_ms=(time.perf_counter() - t0) * 1000)

        if result.get("parsing_error") is not None:
            raise SchemaValidationError(f"Output does not fit {schema.__name__}: {result['parsing_error']}")
        parsed = result.get("parsed")
        if parsed is None:
            raise SchemaValidationError(f"Model returned no {schema.__name__} object")
        if isinstance(parsed, schema):
            return parsed
        try:
            return schema.model_validate(parsed)
        except ValidationError as exc:
            raise SchemaValidationError(f"Output does not fit {schema.__name__}: {exc}") from exc

    def _record_failure(self, operation: str, exc: Exception, t0: float) -> None:
        metrics.record_failure(
            self.provider, operation,
            error_type=type(exc).__name__,
            latency_ms=(time.perf_counter() - t0) * 1000,
        )
        logger.warning("%s %s failed: %s", self.provider, operation, exc)


# ── Vendor selection ────────────────────────────────────────────────


def build_chat_model(
    provider: str,
    *,
    api_key: str,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    timeout: float | None = None,
) -> BaseChatModel:
    """Construct the LangChain chat model for *provider*.

    Vendor packages are imported lazily so only the selected one needs to
    load at startup.
    """
    if provider not in DEFAULT_MODELS:
        raise ConfigurationError(f"Unsupported assistant provider: {provider}")

    model_name = model or DEFAULT_MODELS[provider]
    extra: dict = {}
    if temperature is not None:
        extra["temperature"] = temperature
    logger.debug("%s provider selected with model: %s", provider, model_name)

    if provider == "openai":
        from langchain_openai import ChatOpenAI  # noqa: PLC0415

        return ChatOpenAI(model=model_name, api_key=api_key, max_tokens=max_tokens, timeout=timeout, **extra)
    if provider == "google":
        from langchain_google_genai import ChatGoogleGenerativeAI  # noqa: PLC0415

        return ChatGoogleGenerativeAI(
            model=model_name, google_api_key=api_key,
            max_output_tokens=max_tokens, timeout=timeout, **extra,
        )
    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic  # noqa: PLC0415

        return ChatAnthropic(model=model_name, api_key=api_key, max_tokens=max_tokens, timeout=timeout, **extra)

    from langchain_xai import ChatXAI  # noqa: PLC0415

    return ChatXAI(model=model_name, api_key=api_key, max_tokens=max_tokens, timeout=timeout, **extra)


def build_language_model() -> LanguageModelPort:
    """Build the deployment's single ``LanguageModelPort`` from configuration."""
    provider = config.PROVIDER
    if provider not in config.API_KEY_ENV:
        raise ConfigurationError(f"Unsupported assistant provider: {provider}")
    chat_model = build_chat_model(
        provider,
        api_key=config.require_env(config.API_KEY_ENV[provider]),
        model=config.MODEL_NAME,
        temperature=config.TEMPERATURE,
        max_tokens=config.MAX_TOKENS,
        timeout=config.MODEL_TIMEOUT_SECONDS,
    )
    logger.info("Language model ready: %s:%s", provider, config.MODEL_NAME or DEFAULT_MODELS[provider])
    return LanguageModelPort(chat_model, provider=provider)
