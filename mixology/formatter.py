"""Channel-aware output formatting.

A small LangGraph StateGraph re-renders the agent's raw answer for the
channel the user is on:

    START → route_formatting_request → {sms | web | whatsapp} → END

Every channel node asks the model for a structured ``messages`` array.  The
SMS schema rejects any segment longer than 160 characters, and each node
carries a retry policy that re-runs it when the output does not fit its
schema.  ``format()`` reports ``FormattingError`` once the attempts are used
up; ``format_response()`` never fails and falls back to the raw text.
"""

from __future__ import annotations

import logging
import re

from langchain_core.messages import HumanMessage, SystemMessage
from langgraph.graph import END, START, StateGraph
from langgraph.types import RetryPolicy
from pydantic import BaseModel, Field, ValidationError, field_validator
from typing_extensions import TypedDict

from mixology import config
from mixology.errors import FormattingError, ModelInvocationError, SchemaValidationError
from mixology.models import ChannelTag
from mixology.prompts import SMS_FORMAT_PROMPT, SMS_MAX_CHARS, WEB_FORMAT_PROMPT, WHATSAPP_FORMAT_PROMPT
from mixology.services.llm import LanguageModelPort

logger = logging.getLogger(__name__)

_SEGMENT_PREFIX = re.compile(r"^\s*\d+\s*/\s*\d+\s*[:.)\-]")


# ── Output schemas ───────────────────────────────────────────────────


class FormattedOutput(BaseModel):
    """Formatted reply for web or WhatsApp: one logical message."""

    messages: list[str] = Field(
        ...,
        min_length=1,
        description="The formatted message. A single element unless told otherwise.",
    )


class SMSFormattedOutput(BaseModel):
    """Formatted reply for SMS: one or more segments of at most 160 characters."""

    messages: list[str] = Field(
        ...,
        min_length=1,
        description=f"SMS segments in order, each at most {SMS_MAX_CHARS} characters.",
    )

    @field_validator("messages")
    @classmethod
    def _segments_fit(cls, value: list[str]) -> list[str]:
        for index, segment in enumerate(value, start=1):
            if not segment.strip():
                raise ValueError(f"segment {index} is empty")
            if len(segment) > SMS_MAX_CHARS:
                raise ValueError(
                    f"segment {index} has {len(segment)} characters (max {SMS_MAX_CHARS})"
                )
        return value


def number_segments(segments: list[str]) -> list[str]:
    """Label multi-part SMS segments ``i/n:``, replacing any labels the model wrote.

    A single segment is returned unchanged.
    """
    if len(segments) < 2:
        return segments
    bodies = [_SEGMENT_PREFIX.sub("", segment, count=1).strip() for segment in segments]
    bodies = [body for body in bodies if body]
    if len(bodies) < 2:
        return bodies
    total = len(bodies)
    return [f"{index}/{total}: {body}" for index, body in enumerate(bodies, start=1)]


# ── Graph ────────────────────────────────────────────────────────────


class FormatterState(TypedDict, total=False):
    input: str
    channel: ChannelTag
    output: list[str]


def route_formatting_request(state: FormatterState) -> str:
    """Pick the formatting node; a pure function of the channel."""
    return ChannelTag(state["channel"]).value


class OutputFormatter:
    """Formats a final answer for one of the supported channels."""

    def __init__(
        self,
        model: LanguageModelPort,
        *,
        max_attempts: int = config.FORMAT_MAX_ATTEMPTS,
        retry_interval: float = config.FORMAT_RETRY_INTERVAL_SECONDS,
    ) -> None:
        self._model = model
        self.max_attempts = max_attempts
        retry = RetryPolicy(
            max_attempts=max_attempts,
            initial_interval=retry_interval,
            backoff_factor=2.0,
            jitter=False,
            retry_on=SchemaValidationError,
        )

        graph = StateGraph(FormatterState)
        graph.add_node(ChannelTag.SMS.value, self._format_for_sms, retry_policy=retry)
        graph.add_node(ChannelTag.WEB.value, self._format_for_web, retry_policy=retry)
        graph.add_node(ChannelTag.WHATSAPP.value, self._format_for_whatsapp, retry_policy=retry)
        graph.add_conditional_edges(START, route_formatting_request, [tag.value for tag in ChannelTag])
        for tag in ChannelTag:
            graph.add_edge(tag.value, END)
        self._graph = graph.compile()

    # ── Nodes ────────────────────────────────────────────────────────

    def _structured(self, prompt: str, text: str, schema: type[BaseModel]) -> list[str]:
        result = self._model.invoke_structured([SystemMessage(content=prompt), HumanMessage(content=text)], schema)
        return result.messages

    def _format_for_web(self, state: FormatterState) -> dict:
        logger.debug("Formatting for web...")
        return {"output": self._structured(WEB_FORMAT_PROMPT, state["input"], FormattedOutput)}

    def _format_for_whatsapp(self, state: FormatterState) -> dict:
        logger.debug("Formatting for WhatsApp...")
        return {"output": self._structured(WHATSAPP_FORMAT_PROMPT, state["input"], FormattedOutput)}

    def _format_for_sms(self, state: FormatterState) -> dict:
        logger.debug("Formatting for SMS...")
        segments = [s.strip() for s in self._structured(SMS_FORMAT_PROMPT, state["input"], SMSFormattedOutput)]
        try:
            checked = SMSFormattedOutput(messages=number_segments([s for s in segments if s]))
        except ValidationError as exc:
            logger.info("SMS segments no longer fit after numbering; retrying")
            raise SchemaValidationError(str(exc)) from exc
        return {"output": checked.messages}

    # ── Public API ───────────────────────────────────────────────────

    def format(self, text: str, channel: ChannelTag | str) -> list[str]:
        """Format *text* for *channel*.

        Raises ``FormattingError`` when the model output still does not fit
        the channel schema after ``max_attempts`` attempts, and
        ``ModelInvocationError`` when the model call itself fails.
        """
        tag = ChannelTag(channel)
        try:
            state = self._graph.invoke({"input": text, "channel": tag})
        except SchemaValidationError as exc:
            raise FormattingError(
                f"Could not format for {tag.value} after {self.max_attempts} attempts: {exc}"
            ) from exc
        return state["output"]

    def format_response(self, text: str, channel: ChannelTag | str) -> list[str]:
        """Format *text*, degrading to ``[text]`` on any failure."""
        try:
            return self.format(text, channel)
        except (FormattingError, ModelInvocationError) as exc:
            logger.warning("Formatting for %s failed, sending raw text: %s", channel, exc)
        except Exception:
            logger.exception("Unexpected formatting failure for %s, sending raw text", channel)
        return [text]
