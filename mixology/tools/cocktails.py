"""LangChain tools over TheCocktailDB, and the registry that runs them.

Each tool wraps one ``CocktailDBClient`` method and returns plain text (a
comma-separated list or JSON-encoded records) that the model reads as
ordinary conversation content.  A data-source failure never escapes a tool:
it is logged and answered with a negative result such as
"No cocktail found." so the agent loop can always continue.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any, Literal

from langchain_core.messages import ToolCall, ToolMessage
from langchain_core.tools import BaseTool, tool
from pydantic import BaseModel, Field, ValidationError, model_validator

from mixology.errors import CocktailDBError, ToolArgumentError, ToolExecutionError
from mixology.models import CocktailFilter
from mixology.services.cocktaildb_client import CocktailDBClient, get_cocktaildb_client

logger = logging.getLogger(__name__)

NO_COCKTAIL = "No cocktail found."
NO_RESULTS = "No results found."
NO_INGREDIENT = "No ingredient found."


# ── Argument schemas ─────────────────────────────────────────────────


class CocktailNameInput(BaseModel):
    name: str = Field(..., min_length=1, description="The name of the cocktail to retrieve.")


class CocktailIdInput(BaseModel):
    drink_id: str = Field(..., min_length=1, description="The unique ID of the cocktail to retrieve.")


class IngredientNameInput(BaseModel):
    name: str = Field(..., min_length=1, description="The name of the ingredient, e.g. \"Vodka\".")


class FilterCocktailsInput(BaseModel):
    category: str | None = Field(None, description='The category of the cocktail (e.g., "Ordinary Drink", "Cocktail").')
    glass: str | None = Field(None, description="The type of glass used to serve the cocktail.")
    ingredient: str | None = Field(None, description="The main ingredient of the cocktail.")
    type: Literal["Alcoholic", "Non_Alcoholic"] | None = Field(None, description="The type of the cocktail.")

    @model_validator(mode="after")
    def _at_least_one(self) -> FilterCocktailsInput:
        if not any([self.category, self.glass, self.ingredient, self.type]):
            raise ValueError("provide at least one of category, glass, ingredient or type")
        return self


def _to_json(value: Any) -> str:
    if isinstance(value, list):
        return json.dumps([item.model_dump() for item in value], ensure_ascii=False)
    return json.dumps(value.model_dump(), ensure_ascii=False)


# ── Tool catalog ─────────────────────────────────────────────────────


def build_cocktail_tools(client: CocktailDBClient) -> list[BaseTool]:
    """Create the fixed tool catalog bound to *client*."""

    @tool("list_ingredients")
    def list_ingredients() -> str:
        """Use this tool to list all ingredients to create a cocktail."""
        try:
            names = client.list_ingredients()
        except CocktailDBError as e:
            logger.error("list_ingredients failed: %s", e)
            return NO_RESULTS
        logger.debug("list_ingredients returned %d ingredients", len(names))
        return ", ".join(names) if names else NO_RESULTS

    @tool("list_categories")
    def list_categories() -> str:
        """Use this tool to list all cocktail categories to create a cocktail."""
        try:
            names = client.list_categories()
        except CocktailDBError as e:
            logger.error("list_categories failed: %s", e)
            return NO_RESULTS
        logger.debug("list_categories returned %d categories", len(names))
        return ", ".join(names) if names else NO_RESULTS

    @tool("list_glasses")
    def list_glasses() -> str:
        """Use this tool to list every glass type a cocktail can be served in."""
        try:
            names = client.list_glasses()
        except CocktailDBError as e:
            logger.error("list_glasses failed: %s", e)
            return NO_RESULTS
        return ", ".join(names) if names else NO_RESULTS

    @tool("get_cocktail_by_name", args_schema=CocktailNameInput)
    def get_cocktail_by_name(name: str) -> str:
        """Use this tool to search cocktails by name."""
        try:
            found = client.search_cocktails_by_name(name)
        except CocktailDBError as e:
            logger.error("get_cocktail_by_name(%r) failed: %s", name, e)
            return NO_COCKTAIL
        logger.debug("get_cocktail_by_name(%r) returned %d items", name, len(found))
        return _to_json(found) if found else NO_COCKTAIL

    @tool("get_random_cocktail")
    def get_random_cocktail() -> str:
        """Use this tool to retrieve a random cocktail."""
        try:
            cocktail = client.get_random_cocktail()
        except CocktailDBError as e:
            logger.error("get_random_cocktail failed: %s", e)
            return NO_COCKTAIL
        return _to_json(cocktail) if cocktail else NO_COCKTAIL

    @tool("get_cocktail_by_id", args_schema=CocktailIdInput)
    def get_cocktail_by_id(drink_id: str) -> str:
        """Use this tool to get a cocktail by its unique ID."""
        try:
            cocktail = client.get_cocktail_by_id(drink_id)
        except CocktailDBError as e:
            logger.error("get_cocktail_by_id(%r) failed: %s", drink_id, e)
            return NO_COCKTAIL
        return _to_json(cocktail) if cocktail else NO_COCKTAIL

    @tool("filter_cocktails", args_schema=FilterCocktailsInput)
    def filter_cocktails(
        category: str | None = None,
        glass: str | None = None,
        ingredient: str | None = None,
        type: str | None = None,
    ) -> str:
        """Use this tool to filter cocktails by various criteria."""
        criteria = CocktailFilter(category=category, glass=glass, ingredient=ingredient, type=type)
        try:
            found = client.filter_cocktails(criteria)
        except CocktailDBError as e:
            logger.error("filter_cocktails(%s) failed: %s", criteria.model_dump(exclude_none=True), e)
            return NO_RESULTS
        logger.debug("filter_cocktails returned %d items", len(found))
        return _to_json(found) if found else NO_RESULTS

    @tool("search_ingredient", args_schema=IngredientNameInput)
    def search_ingredient(name: str) -> str:
        """Use this tool to look up an ingredient's description, type and alcohol content."""
        try:
            ingredient = client.search_ingredient(name)
        except CocktailDBError as e:
            logger.error("search_ingredient(%r) failed: %s", name, e)
            return NO_INGREDIENT
        return _to_json(ingredient) if ingredient else NO_INGREDIENT

    return [
        list_ingredients,
        list_categories,
        list_glasses,
        get_cocktail_by_name,
        get_random_cocktail,
        get_cocktail_by_id,
        filter_cocktails,
        search_ingredient,
    ]


# ── Registry ─────────────────────────────────────────────────────────


def _describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        where = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        problems.append(f"{where}: {err.get('msg')}")
    return "; ".join(problems)


class ToolRegistry:
    """Name-indexed catalog of tools the agent may call.

    ``execute`` is the only entry point used by the agent loop and it never
    raises: bad arguments and tool failures come back as error-status
    ``ToolMessage`` objects the model can read and react to.
    """

    def __init__(self, tools: Sequence[BaseTool]) -> None:
        self._tools: dict[str, BaseTool] = {t.name: t for t in tools}

    @property
    def tools(self) -> list[BaseTool]:
        return list(self._tools.values())

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def run(self, name: str, args: dict[str, Any] | None) -> str:
        """Run one tool.  Raises ``ToolArgumentError`` / ``ToolExecutionError``."""
        selected = self._tools.get(name)
        if selected is None:
            raise ToolArgumentError(name, f"unknown tool, available tools are {', '.join(self._tools)}")
        try:
            result = selected.invoke(args or {})
        except ValidationError as exc:
            raise ToolArgumentError(name, _describe_validation_error(exc)) from exc
        except Exception as exc:
            raise ToolExecutionError(name, f"{type(exc).__name__}: {exc}") from exc
        return result if isinstance(result, str) else json.dumps(result, default=str)

    def execute(self, call: ToolCall) -> ToolMessage:
        """Run *call* and wrap the outcome as a ``ToolMessage`` paired by id."""
        name = call["name"]
        logger.debug("Tool call %s(%s)", name, call.get("args"))
        status = "success"
        try:
            content = self.run(name, call.get("args"))
        except ToolArgumentError as exc:
            logger.warning("Rejected tool call: %s", exc)
            content = f"Error: {exc}. Fix the arguments and try again."
            status = "error"
        except ToolExecutionError as exc:
            logger.error("Tool execution failed: %s", exc)
            content = f"Error: {exc}. No results available."
            status = "error"
        return ToolMessage(content=content, tool_call_id=call.get("id") or "", name=name, status=status)


def build_tool_registry(client: CocktailDBClient | None = None) -> ToolRegistry:
    return ToolRegistry(build_cocktail_tools(client or get_cocktaildb_client()))
