"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from mixology.models import DEFAULT_THREAD, ChannelTag, Message


class ChatRequest(BaseModel):
    """Incoming chat message."""

    content: str = Field(..., min_length=1, max_length=4000, description="The user's message")
    thread: str = Field(
        DEFAULT_THREAD,
        min_length=1,
        max_length=100,
        description="Conversation thread identifier for continuity across requests",
    )
    user: str = Field("anonymous", min_length=1, max_length=100, description="Caller-supplied user id")
    channel: ChannelTag = Field(ChannelTag.WEB, description="Delivery channel used to format the reply")
    system_prompt: str | None = Field(
        None,
        max_length=2000,
        description="Extra instructions applied to this reply only",
    )


class ChatResponse(BaseModel):
    """Formatted reply plus the echoed request context."""

    thread: str
    user: str
    channel: ChannelTag
    messages: list[Message]


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str = "mixology-agent"
