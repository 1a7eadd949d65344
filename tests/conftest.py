"""Shared test fixtures for the Mixology test suite."""

from __future__ import annotations

import os
import re
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

# Test environment variables must be set before mixology.config is imported,
# which happens as soon as this module imports the model port below.
os.environ.setdefault("MIXOLOGY_PROVIDER", "openai")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key-123")
os.environ.setdefault("CHECKPOINT_BACKEND", "memory")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("FORMAT_RETRY_INTERVAL_SECONDS", "0")

import pytest  # noqa: E402
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage  # noqa: E402
from pydantic import ValidationError  # noqa: E402

from mixology.errors import SchemaValidationError  # noqa: E402
from mixology.services.llm import LanguageModelPort, classify_response, message_text  # noqa: E402


# ── Sample TheCocktailDB payloads ────────────────────────────────────

MARGARITA_RAW: dict[str, Any] = {
    "idDrink": "11007",
    "strDrink": "Margarita",
    "strCategory": "Ordinary Drink",
    "strAlcoholic": "Alcoholic",
    "strGlass": "Cocktail glass",
    "strDrinkThumb": "https://www.thecocktaildb.com/images/media/drink/5noda61589575158.jpg",
    "strTags": "IBA,ContemporaryClassic",
    "strInstructions": "Rub the rim of the glass with the lime slice to make the salt stick to it.",
    "strInstructionsES": "Frote el borde del vaso con la rodaja de lima.",
    "strInstructionsDE": None,
    "strInstructionsFR": None,
    "strInstructionsIT": "",
    "strIngredient1": "Tequila",
    "strIngredient2": "Triple sec",
    "strIngredient3": "Lime juice",
    "strIngredient4": "Salt",
    "strIngredient5": None,
    "strMeasure1": "1 1/2 oz ",
    "strMeasure2": "1/2 oz ",
    "strMeasure3": "1 oz ",
    "strMeasure4": None,
    "strMeasure5": None,
}

VODKA_RAW: dict[str, Any] = {
    "idIngredient": "1",
    "strIngredient": "Vodka",
    "strDescription": "Vodka is a distilled beverage.\r\nIt is composed primarily of water and ethanol.",
    "strType": "Vodka",
    "strAlcohol": "Yes",
    "strABV": "40",
}


# ── Message helpers ──────────────────────────────────────────────────


def ai(text: str) -> AIMessage:
    return AIMessage(content=text)


def tool_call(name: str, args: dict | None = None, call_id: str = "call_1") -> AIMessage:
    return AIMessage(content="", tool_calls=[{"name": name, "args": args or {}, "id": call_id}])


def last_human(history: list[BaseMessage]) -> str:
    for msg in reversed(history):
        if isinstance(msg, HumanMessage):
            return msg.content
    return ""


# ── Scripted language model ──────────────────────────────────────────

class ScriptedModel(LanguageModelPort):
    """A ``LanguageModelPort`` that plays back scripted replies.

    ``replies`` items are AIMessages, exceptions (raised), or callables
    taking the history and returning an AIMessage.  When the script runs
    out, ``default`` (a callable) is used.  ``structured`` items are lists
    of strings validated against the requested schema, or exceptions.
    """

    def __init__(
        self,
        replies: list | None = None,
        *,
        default: Callable[[list[BaseMessage]], AIMessage] | None = None,
        structured: list | None = None,
        structured_default: Callable[[list[BaseMessage]], list[str]] | None = None,
    ) -> None:
        super().__init__(model=MagicMock(), provider="fake")
        self.replies = list(replies or [])
        self.default = default
        self.structured = list(structured or [])
        self.structured_default = structured_default
        self.calls: list[list[BaseMessage]] = []
        self.tool_names: list[list[str]] = []
        self.structured_calls: list[list[BaseMessage]] = []

    def _next(self, history, tools):
        self.calls.append(list(history))
        self.tool_names.append([t.name for t in tools or []])
        if self.replies:
            reply = self.replies.pop(0)
        elif self.default is not None:
            reply = self.default
        else:
            raise AssertionError("ScriptedModel ran out of replies")
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(list(history))
        return classify_response(reply)

    def invoke(self, history, tools=None):
        return self._next(history, tools)

    def stream(self, history, tools=None, on_token=None):
        response = self._next(history, tools)
        if on_token is not None:
            for piece in re.findall(r"\S+\s*", message_text(response.message)):
                on_token(piece)
        return response

    def invoke_structured(self, history, schema):
        self.structured_calls.append(list(history))
        if self.structured:
            value = self.structured.pop(0)
        elif self.structured_default is not None:
            value = self.structured_default(list(history))
        else:
            raise AssertionError("ScriptedModel ran out of structured replies")
        if isinstance(value, Exception):
            raise value
        try:
            return schema.model_validate({"messages": value})
        except ValidationError as exc:
            raise SchemaValidationError(str(exc)) from exc


@pytest.fixture
def cocktaildb():
    """A mock TheCocktailDB client; every lookup finds nothing by default."""
    from mixology.services.cocktaildb_client import CocktailDBClient

    client = MagicMock(spec=CocktailDBClient)
    client.search_cocktails_by_name.return_value = []
    client.get_cocktail_by_id.return_value = None
    client.get_random_cocktail.return_value = None
    client.filter_cocktails.return_value = []
    client.search_ingredient.return_value = None
    client.list_categories.return_value = ["Ordinary Drink", "Cocktail", "Shot"]
    client.list_ingredients.return_value = ["Vodka", "Gin", "Tequila"]
    client.list_glasses.return_value = ["Highball glass", "Cocktail glass"]
    return client


@pytest.fixture
def registry(cocktaildb):
    from mixology.tools.cocktails import build_tool_registry

    return build_tool_registry(cocktaildb)


@pytest.fixture
def store():
    from mixology.services.checkpoints import InMemoryCheckpointStore

    return InMemoryCheckpointStore()
