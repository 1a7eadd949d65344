"""Domain types shared across the agent, formatter and API layers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from langchain_core.messages import BaseMessage
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_THREAD = "default"

_MAX_INGREDIENT_SLOTS = 15


# ── Conversation ─────────────────────────────────────────────────────


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChannelTag(str, Enum):
    """Delivery medium that constrains output formatting."""

    WEB = "web"
    SMS = "sms"
    WHATSAPP = "whatsapp"


class Message(BaseModel):
    """One user-visible conversation message.  Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    thread: str = DEFAULT_THREAD


@dataclass(frozen=True)
class Checkpoint:
    """Persisted state of one thread.

    ``messages`` is the full transcript (including tool calls and tool
    results) in append order.  ``checkpoint_id`` is an opaque continuation
    marker regenerated on every append; ``version`` counts appends.
    """

    thread: str
    messages: tuple[BaseMessage, ...]
    checkpoint_id: str
    version: int


@dataclass
class SendMessageResult:
    """Formatted reply to one ``send_message`` call plus the echoed context."""

    thread: str
    user: str
    channel: ChannelTag
    messages: list[Message] = field(default_factory=list)


# ── TheCocktailDB records ────────────────────────────────────────────


class CocktailIngredient(BaseModel):
    name: str
    measure: str | None = None


class Translations(BaseModel):
    es: str | None = None
    de: str | None = None
    fr: str | None = None
    it: str | None = None


CocktailType = Literal["Alcoholic", "Non_Alcoholic", "Optional_Alcohol", "Unknown"]

_ALCOHOLIC_MAP: dict[str, CocktailType] = {
    "Alcoholic": "Alcoholic",
    "Non alcoholic": "Non_Alcoholic",
    "Optional alcohol": "Optional_Alcohol",
}


class Cocktail(BaseModel):
    """A full drink record, cleaned up from the raw ``drinks[]`` payload."""

    id: str
    name: str
    category: str
    type: CocktailType
    glass: str
    image: str | None = None
    tags: list[str] = Field(default_factory=list)
    instructions: str
    translations: Translations = Field(default_factory=Translations)
    ingredients: list[CocktailIngredient] = Field(default_factory=list)

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> Cocktail:
        """Map a raw TheCocktailDB drink dict onto a ``Cocktail``.

        ``strIngredientN`` / ``strMeasureN`` pairs (N = 1..15) are folded into
        ``ingredients``; blank slots are skipped.
        """
        ingredients: list[CocktailIngredient] = []
        for i in range(1, _MAX_INGREDIENT_SLOTS + 1):
            name = raw.get(f"strIngredient{i}")
            measure = raw.get(f"strMeasure{i}")
            if isinstance(name, str) and name.strip():
                ingredients.append(
                    CocktailIngredient(
                        name=name.strip(),
                        measure=measure.strip() if isinstance(measure, str) and measure.strip() else None,
                    )
                )

        tags = raw.get("strTags")
        return cls(
            id=raw["idDrink"],
            name=raw["strDrink"],
            category=raw.get("strCategory") or "Unknown",
            type=_ALCOHOLIC_MAP.get(raw.get("strAlcoholic") or "", "Unknown"),
            glass=raw.get("strGlass") or "Standard Glass",
            image=raw.get("strDrinkThumb"),
            tags=[t.strip() for t in tags.split(",") if t.strip()] if tags else [],
            instructions=raw.get("strInstructions") or "No instructions provided.",
            translations=Translations(
                es=raw.get("strInstructionsES") or None,
                de=raw.get("strInstructionsDE") or None,
                fr=raw.get("strInstructionsFR") or None,
                it=raw.get("strInstructionsIT") or None,
            ),
            ingredients=ingredients,
        )


class CocktailPreview(BaseModel):
    """The light-weight record returned by ``filter.php``."""

    id: str
    name: str
    image: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> CocktailPreview:
        return cls(id=raw["idDrink"], name=raw["strDrink"], image=raw.get("strDrinkThumb"))


class Ingredient(BaseModel):
    id: str
    name: str
    description: str | None = None
    type: str | None = None
    is_alcoholic: bool = False
    abv: float | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> Ingredient:
        abv: float | None = None
        if raw.get("strABV"):
            try:
                abv = float(raw["strABV"])
            except (TypeError, ValueError):
                abv = None

        description = raw.get("strDescription")
        if description:
            description = re.sub(r"(\r\n|\n|\r)", " ", description).strip()

        return cls(
            id=raw["idIngredient"],
            name=raw["strIngredient"],
            description=description or None,
            type=raw.get("strType") or None,
            is_alcoholic=(raw.get("strAlcohol") or "").lower() == "yes",
            abv=abv,
        )


class CocktailFilter(BaseModel):
    """Criteria accepted by ``filter.php`` (all optional)."""

    category: str | None = None
    glass: str | None = None
    ingredient: str | None = None
    type: Literal["Alcoholic", "Non_Alcoholic"] | None = None
