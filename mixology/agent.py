"""LangGraph-based tool-using agent for cocktail conversations.

Architecture:
  The agent loop is a LangGraph StateGraph with three nodes:

    1. **agent**             — calls the language model with the transcript
                               and the cocktail tools bound
    2. **tools**             — executes every tool call of the last model
                               response, in issue order
    3. **budget_exhausted**  — ends a turn whose model keeps asking for tools

  Routing:
    agent → (tool calls, budget left?)  → tools → agent (loop)
          → (tool calls, budget spent?) → budget_exhausted → END
          → (final answer?)             → END

  Memory:
    The graph is compiled *without* a checkpointer.  ``MixologyAgent`` loads
    the thread transcript from the ``CheckpointStore``, runs the graph, and
    appends the turn's messages in one atomic append only once the graph
    reaches END.  A failed model call therefore leaves the thread untouched.
    Turns on the same thread are serialized with a per-thread lock.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Annotated

from langchain_core.messages import AIMessage, AnyMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from typing_extensions import TypedDict

from mixology import config
from mixology.errors import TurnBudgetExceeded
from mixology.locks import ThreadLocks
from mixology.models import DEFAULT_THREAD, Message, Role
from mixology.prompts import UNABLE_TO_COMPLETE, get_system_prompt
from mixology.services.checkpoints import CheckpointStore
from mixology.services.llm import FinalAnswer, LanguageModelPort, message_text
from mixology.tools.cocktails import ToolRegistry

logger = logging.getLogger(__name__)

MAX_PARALLEL_TOOL_CALLS = 4
BUDGET_SKIPPED = "Skipped: the tool-call budget for this turn is exhausted."


# ── State schema ─────────────────────────────────────────────────────


class AgentState(TypedDict):
    """The state that flows through the graph.

    ``messages`` holds the prior transcript followed by this turn's
    messages; ``turn_start`` is the index of this turn's user message.
    ``tool_rounds`` counts executed tool rounds in this turn.
    ``system_prompt`` is prepended to every model call and never persisted.
    """

    messages: Annotated[list[AnyMessage], add_messages]
    turn_start: int
    tool_rounds: int
    system_prompt: str


# ── Nodes ────────────────────────────────────────────────────────────


def _make_agent_node(model: LanguageModelPort, registry: ToolRegistry):
    """Create the node that asks the model for the next step.

    When the run config carries an ``on_token`` callback the model is
    streamed.  A step's text deltas are held until the step turns out to be
    the final answer; text written next to tool calls is never relayed.
    """

    def agent_node(state: AgentState, config: RunnableConfig) -> dict:
        history = [SystemMessage(content=state["system_prompt"])] + state["messages"]
        on_token = (config.get("configurable") or {}).get("on_token")
        if on_token is not None:
            held: list[str] = []
            response = model.stream(history, registry.tools, on_token=held.append)
            if isinstance(response, FinalAnswer):
                for delta in held:
                    on_token(delta)
            elif held:
                logger.debug("agent node: dropped %d delta(s) written next to tool calls", len(held))
        else:
            response = model.invoke(history, registry.tools)

        if isinstance(response, FinalAnswer):
            logger.debug("agent node: final answer (%d chars)", len(response.text))
        else:
            logger.debug(
                "agent node: model requested %s",
                ", ".join(call["name"] for call in response.calls),
            )
        return {"messages": [response.message]}

    return agent_node


def _make_tools_node(registry: ToolRegistry):
    """Create the node that runs the requested tools.

    Calls run independently (in parallel when there are several); results
    are appended in the order the calls were issued.  The registry turns
    every failure into an error ``ToolMessage``, so this node never raises.
    """

    def tools_node(state: AgentState) -> dict:
        calls = state["messages"][-1].tool_calls
        if len(calls) == 1:
            results = [registry.execute(calls[0])]
        else:
            with ThreadPoolExecutor(max_workers=min(len(calls), MAX_PARALLEL_TOOL_CALLS)) as pool:
                results = list(pool.map(registry.execute, calls))
        rounds = state.get("tool_rounds", 0) + 1
        logger.debug("tools node: round %d executed %d call(s)", rounds, len(results))
        return {"messages": results, "tool_rounds": rounds}

    return tools_node


def _best_partial_answer(turn_messages: list[AnyMessage]) -> str:
    for msg in reversed(turn_messages):
        if isinstance(msg, AIMessage):
            text = message_text(msg).strip()
            if text:
                return text
    return UNABLE_TO_COMPLETE


def _make_budget_node(max_tool_rounds: int):
    """Create the node that closes a turn after the round-trip budget.

    Each pending tool call gets a "skipped" result so the persisted
    transcript keeps every call paired with a result.
    """

    def budget_node(state: AgentState) -> dict:
        logger.warning("%s; ending turn with best partial answer", TurnBudgetExceeded(max_tool_rounds))
        pending = state["messages"][-1].tool_calls
        skipped = [
            ToolMessage(content=BUDGET_SKIPPED, tool_call_id=call.get("id") or "", name=call["name"], status="error")
            for call in pending
        ]
        answer = _best_partial_answer(state["messages"][state["turn_start"]:])
        return {"messages": skipped + [AIMessage(content=answer)]}

    return budget_node


# ── Conditional edge ────────────────────────────────────────────────


def make_should_continue(max_tool_rounds: int) -> Callable[[AgentState], str]:
    def should_continue(state: AgentState) -> str:
        last_message = state["messages"][-1]
        if not getattr(last_message, "tool_calls", None):
            return END
        if state.get("tool_rounds", 0) >= max_tool_rounds:
            return "budget_exhausted"
        return "tools"

    return should_continue


# ── Graph assembly ───────────────────────────────────────────────────


def create_agent_graph(
    model: LanguageModelPort,
    registry: ToolRegistry,
    max_tool_rounds: int = config.MAX_TOOL_ROUNDS,
):
    """Build and compile the agent StateGraph (no checkpointer)."""
    graph = StateGraph(AgentState)

    graph.add_node("agent", _make_agent_node(model, registry))
    graph.add_node("tools", _make_tools_node(registry))
    graph.add_node("budget_exhausted", _make_budget_node(max_tool_rounds))

    graph.set_entry_point("agent")
    graph.add_conditional_edges(
        "agent",
        make_should_continue(max_tool_rounds),
        {"tools": "tools", "budget_exhausted": "budget_exhausted", END: END},
    )
    graph.add_edge("tools", "agent")
    graph.add_edge("budget_exhausted", END)

    compiled = graph.compile()
    logger.debug(
        "Mixology agent compiled — provider: %s, tools: %d, max rounds: %d",
        model.provider, len(registry.tools), max_tool_rounds,
    )
    return compiled


class MixologyAgent:
    """Runs turns against the graph and owns their persistence."""

    def __init__(
        self,
        model: LanguageModelPort,
        registry: ToolRegistry,
        store: CheckpointStore,
        *,
        max_tool_rounds: int = config.MAX_TOOL_ROUNDS,
        locks: ThreadLocks | None = None,
    ) -> None:
        self._graph = create_agent_graph(model, registry, max_tool_rounds)
        self._store = store
        self._locks = locks or ThreadLocks()
        # agent + tools per round, plus the final agent / budget steps
        self._recursion_limit = 2 * max_tool_rounds + 5

    @property
    def store(self) -> CheckpointStore:
        return self._store

    def run_turn(
        self,
        content: str,
        thread: str = DEFAULT_THREAD,
        *,
        system_prompt: str | None = None,
        on_token: Callable[[str], None] | None = None,
    ) -> Message:
        """Run one complete turn and return the final assistant message.

        Raises ``ModelInvocationError`` if the model call fails; in that case
        nothing is written to the thread's checkpoint.
        """
        with self._locks.hold(thread):
            history = self._store.transcript(thread)
            logger.debug("Thread %s: starting turn with %d prior messages", thread, len(history))

            state = self._graph.invoke(
                {
                    "messages": history + [HumanMessage(content=content)],
                    "turn_start": len(history),
                    "tool_rounds": 0,
                    "system_prompt": get_system_prompt(system_prompt),
                },
                config={
                    "configurable": {"on_token": on_token},
                    "recursion_limit": self._recursion_limit,
                },
            )

            turn_messages = state["messages"][len(history):]
            checkpoint = self._store.append(thread, turn_messages)

        reply = message_text(turn_messages[-1])
        logger.info(
            "Thread %s: turn complete (%d tool rounds, checkpoint v%d)",
            thread, state.get("tool_rounds", 0), checkpoint.version,
        )
        return Message(role=Role.ASSISTANT, content=reply, thread=thread)

    def get_history(self, thread: str) -> list[Message]:
        """Return the user/assistant messages of *thread* in creation order.

        Tool calls and tool results are internal and excluded; an unknown
        thread yields an empty list.
        """
        history: list[Message] = []
        for msg in self._store.transcript(thread):
            if isinstance(msg, HumanMessage):
                history.append(Message(role=Role.USER, content=message_text(msg), thread=thread))
            elif isinstance(msg, AIMessage) and not msg.tool_calls:
                text = message_text(msg)
                if text:
                    history.append(Message(role=Role.ASSISTANT, content=text, thread=thread))
        return history
