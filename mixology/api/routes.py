"""FastAPI route definitions for the Mixology agent API."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterator
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from mixology.api.schemas import ChatRequest, ChatResponse, HealthResponse
from mixology.conversation import ConversationService
from mixology.errors import CocktailDBError, ModelInvocationError
from mixology.models import DEFAULT_THREAD, Cocktail, Message
from mixology.services.cocktaildb_client import CocktailDBClient

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(request: Request) -> ConversationService:
    """Retrieve the conversation service built during the FastAPI lifespan."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(
            status_code=503,
            detail="The agent is still starting up. Please try again in a moment.",
        )
    return service


def _get_cocktaildb(request: Request) -> CocktailDBClient:
    client = getattr(request.app.state, "cocktaildb", None)
    if client is None:
        raise HTTPException(status_code=503, detail="The cocktail database is not ready yet.")
    return client


def _sse(events: Iterator[dict[str, Any]]) -> Iterator[str]:
    for event in events:
        yield f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Send a message to the agent and get the reply formatted for its channel.

    The agent talks to the model provider and TheCocktailDB with blocking
    clients, so the turn runs on the default thread pool via
    ``asyncio.to_thread`` and the event loop stays responsive.
    """
    service = _get_service(http_request)
    request_id = getattr(http_request.state, "request_id", "?")

    try:
        result = await asyncio.to_thread(
            service.send_message,
            request.content,
            thread=request.thread,
            user=request.user,
            channel=request.channel,
            system_prompt=request.system_prompt,
        )
    except ModelInvocationError as e:
        logger.error("[%s] Model call failed on thread %s: %s", request_id, request.thread, e)
        raise HTTPException(
            status_code=502,
            detail="The language model is unavailable. Please try again.",
        ) from e
    except Exception as e:
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        ) from e

    return ChatResponse(
        thread=result.thread,
        user=result.user,
        channel=result.channel,
        messages=result.messages,
    )


@router.get("/chat/stream")
async def chat_stream(
    http_request: Request,
    message: str = Query(..., min_length=1, max_length=4000),
    thread: str = Query(DEFAULT_THREAD, min_length=1, max_length=100),
):
    """Server-sent events: ``{"chunk": ...}`` frames, then ``{"done": true, "fullResponse": ...}``."""
    service = _get_service(http_request)
    logger.info("[%s] Streaming turn on thread %s", getattr(http_request.state, "request_id", "?"), thread)
    return StreamingResponse(
        _sse(service.stream_message(message, thread)),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/chat/history/{thread}", response_model=list[Message])
async def chat_history(thread: str, http_request: Request):
    """Return the user/assistant messages of a thread (empty for unknown threads)."""
    service = _get_service(http_request)
    return await asyncio.to_thread(service.get_history, thread)


@router.get("/cocktails/search", response_model=list[Cocktail])
async def search_cocktails(http_request: Request, name: str = Query(..., min_length=1, max_length=100)):
    """Search TheCocktailDB by drink name, bypassing the agent."""
    client = _get_cocktaildb(http_request)
    try:
        return await asyncio.to_thread(client.search_cocktails_by_name, name)
    except CocktailDBError as e:
        logger.error("Cocktail search for %r failed: %s", name, e)
        raise HTTPException(status_code=502, detail="The cocktail database is unavailable.") from e
