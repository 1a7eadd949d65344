"""FastAPI server for the Mixology agent.

Run with:
    uvicorn mixology.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from mixology.api.routes import router
from mixology.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from mixology.conversation import build_conversation_service
from mixology.services.cocktaildb_client import get_cocktaildb_client
from mixology.services.metrics import metrics
from mixology.tools.cocktails import build_tool_registry

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Start-up: build the model, tools, checkpoint store and services once
    and keep them on ``app.state``.
    """
    logger.info("Building Mixology agent…")
    cocktaildb = get_cocktaildb_client()
    service = build_conversation_service(registry=build_tool_registry(cocktaildb))
    application.state.cocktaildb = cocktaildb
    application.state.service = service
    logger.info("Agent ready.")
    yield
    service.agent.store.close()
    cocktaildb.close()
    metrics.flush()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Mixology Agent",
    description="Chat about cocktails with a tool-using assistant; replies are formatted for web, SMS or WhatsApp.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID (``X-Request-ID``) to every request for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Mixology Agent",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


if __name__ == "__main__":
    logger.info("Starting Mixology API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "mixology.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
