"""Error taxonomy for the Mixology agent.

Recovered inside the agent loop (never reach the caller):
  - ``ToolArgumentError``   — the model sent arguments that fail a tool schema
  - ``ToolExecutionError``  — a tool blew up while talking to its data source

Fatal to a single turn:
  - ``ModelInvocationError`` — the provider call failed; nothing is checkpointed

Contained by the output formatter:
  - ``SchemaValidationError`` — structured output did not fit its schema
  - ``FormattingError``       — retries exhausted; callers fall back to raw text

Logged only:
  - ``TurnBudgetExceeded`` — the tool round-trip bound was hit
"""

from __future__ import annotations


class MixologyError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(MixologyError):
    """Raised for an unsupported provider or a missing secret."""


class CocktailDBError(MixologyError):
    """Raised when a TheCocktailDB call fails (timeout, non-2xx, bad payload)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ToolArgumentError(MixologyError):
    """The model asked for an unknown tool or passed invalid arguments."""

    def __init__(self, tool_name: str, detail: str):
        self.tool_name = tool_name
        self.detail = detail
        super().__init__(f"Invalid call to {tool_name}: {detail}")


class ToolExecutionError(MixologyError):
    """A tool failed for a reason other than its arguments."""

    def __init__(self, tool_name: str, detail: str):
        self.tool_name = tool_name
        self.detail = detail
        super().__init__(f"Tool {tool_name} failed: {detail}")


class ModelInvocationError(MixologyError):
    """The language-model provider call failed (network, timeout, API error)."""


class SchemaValidationError(MixologyError):
    """The model's structured output could not be parsed into the target schema."""


class FormattingError(MixologyError):
    """Channel formatting failed after the retry bound."""


class TurnBudgetExceeded(MixologyError):
    """The agent loop reached its maximum number of tool round-trips."""

    def __init__(self, rounds: int):
        self.rounds = rounds
        super().__init__(f"Tool round-trip budget of {rounds} exhausted")
