"""Inbound operations: send a message, stream a reply, read history.

``ConversationService`` composes the agent (reasoning + checkpointing) with
the output formatter.  It is constructed once at startup and shared by all
request handlers.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterator
from typing import Any

from mixology.agent import MixologyAgent
from mixology.errors import ModelInvocationError
from mixology.formatter import OutputFormatter
from mixology.models import DEFAULT_THREAD, ChannelTag, Message, Role, SendMessageResult
from mixology.services.checkpoints import CheckpointStore, build_checkpoint_store
from mixology.services.llm import LanguageModelPort, build_language_model
from mixology.tools.cocktails import ToolRegistry, build_tool_registry

logger = logging.getLogger(__name__)

_STREAM_END = object()


class ConversationService:
    def __init__(self, agent: MixologyAgent, formatter: OutputFormatter) -> None:
        self.agent = agent
        self.formatter = formatter

    def send_message(
        self,
        content: str,
        *,
        thread: str = DEFAULT_THREAD,
        user: str = "anonymous",
        channel: ChannelTag | str = ChannelTag.WEB,
        system_prompt: str | None = None,
    ) -> SendMessageResult:
        """Run one agent turn and format the answer for *channel*.

        Formatting happens after the thread lock is released and degrades to
        the raw answer on failure.  ``ModelInvocationError`` from the agent
        propagates.
        """
        tag = ChannelTag(channel)
        logger.debug("send_message thread=%s user=%s channel=%s", thread, user, tag.value)
        reply = self.agent.run_turn(content, thread, system_prompt=system_prompt)
        formatted = self.formatter.format_response(reply.content, tag)
        return SendMessageResult(
            thread=thread,
            user=user,
            channel=tag,
            messages=[Message(role=Role.ASSISTANT, content=text, thread=thread) for text in formatted],
        )

    def stream_message(self, content: str, thread: str = DEFAULT_THREAD) -> Iterator[dict[str, Any]]:
        """Yield ``{"chunk": ...}`` events, then ``{"done": True, "fullResponse": ...}``.

        Chunks carry only the final answer and concatenate to ``fullResponse``.

        A failed turn ends the stream with a single ``{"error": ...}`` event.
        The turn runs on a worker thread: if the consumer stops iterating
        (client disconnect) only the relay stops, and the turn still
        completes and checkpoints normally.
        """
        events: queue.Queue = queue.Queue()

        def _worker() -> None:
            try:
                reply = self.agent.run_turn(content, thread, on_token=lambda text: events.put({"chunk": text}))
                events.put({"done": True, "fullResponse": reply.content})
            except ModelInvocationError as exc:
                logger.warning("Streaming turn on thread %s failed: %s", thread, exc)
                events.put({"error": "The language model is unavailable. Please try again."})
            except Exception:
                logger.exception("Streaming turn on thread %s failed", thread)
                events.put({"error": "An internal error occurred. Please try again."})
            finally:
                events.put(_STREAM_END)

        worker = threading.Thread(target=_worker, name=f"stream-{thread}", daemon=True)
        worker.start()
        return self._relay(events, thread)

    @staticmethod
    def _relay(events: queue.Queue, thread: str) -> Iterator[dict[str, Any]]:
        try:
            while True:
                event = events.get()
                if event is _STREAM_END:
                    return
                yield event
        except GeneratorExit:
            logger.info("Stream consumer for thread %s went away; turn continues in background", thread)
            raise

    def get_history(self, thread: str = DEFAULT_THREAD) -> list[Message]:
        return self.agent.get_history(thread)


def build_conversation_service(
    model: LanguageModelPort | None = None,
    registry: ToolRegistry | None = None,
    store: CheckpointStore | None = None,
) -> ConversationService:
    """Wire the service from configuration; any part can be injected."""
    model = model or build_language_model()
    agent = MixologyAgent(model, registry or build_tool_registry(), store or build_checkpoint_store())
    return ConversationService(agent, OutputFormatter(model))
