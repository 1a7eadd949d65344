"""Mixology — a tool-using cocktail assistant with channel-aware replies.

Architecture Overview
=====================

1. **Agent loop** (``mixology.agent``) — a LangGraph state machine that
   alternates between the language model and the cocktail tools until the
   model produces a final answer, bounded by a tool round-trip budget.

2. **Checkpoint store** (``mixology.services.checkpoints``) — the
   append-only per-thread transcript that gives the agent memory.  Turns on
   one thread are serialized with a keyed lock (``mixology.locks``).

3. **Output formatter** (``mixology.formatter``) — a second small state
   machine that re-renders the answer for web (Markdown), WhatsApp or SMS
   (segments of at most 160 characters), with bounded retries and a
   raw-text fallback.

Key Design Decisions
--------------------
- **LLM**: one LangChain chat model (OpenAI, Google, Anthropic or xAI),
  chosen at startup from ``MIXOLOGY_PROVIDER`` and wrapped by
  ``LanguageModelPort``.
- **Data source**: TheCocktailDB over httpx, single attempt per call with a
  timeout; failures become "No cocktail found." for the model.
- **Persistence**: explicit ``CheckpointStore`` port (SQLite or in-memory)
  written once per completed turn, never on failure.
- **Dual Interface**: FastAPI server + CLI chat loop.

Package Structure
-----------------
- ``mixology/agent.py`` — agent StateGraph and turn runner
- ``mixology/formatter.py`` — channel formatting StateGraph
- ``mixology/conversation.py`` — send / stream / history operations
- ``mixology/config.py`` — configuration from environment variables
- ``mixology/prompts.py`` — system prompts
- ``mixology/server.py`` — FastAPI application
- ``mixology/main.py`` — CLI chat interface
- ``mixology/services/`` — model port, TheCocktailDB client, checkpoints, cache, metrics
- ``mixology/tools/`` — LangChain tools and the tool registry
- ``mixology/api/`` — FastAPI routes and Pydantic schemas
"""
