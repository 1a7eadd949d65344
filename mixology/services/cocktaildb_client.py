"""HTTP client for TheCocktailDB JSON API (v1).

API docs: https://www.thecocktaildb.com/api.php

Every call carries its own timeout and is attempted exactly once: a failed
lookup raises ``CocktailDBError`` and the tool layer turns that into a
negative answer for the model.  Reference lists and lookups by id are kept
in a TTL cache.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

import httpx
from pydantic import ValidationError

from mixology.config import (
    COCKTAILDB_BASE_URL,
    COCKTAILDB_CACHE_TTL_SECONDS,
    COCKTAILDB_TIMEOUT_SECONDS,
)
from mixology.errors import CocktailDBError
from mixology.models import Cocktail, CocktailFilter, CocktailPreview, Ingredient
from mixology.services.cache import TTLCache
from mixology.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Cache keys ──────────────────────────────────────────────────────
_CK_CATEGORIES = "list:categories"
_CK_INGREDIENTS = "list:ingredients"
_CK_GLASSES = "list:glasses"
_CK_DRINK = "drink:"


class CocktailDBClient:
    """Thin wrapper around TheCocktailDB with per-call timeouts and a cache
    for slow-changing data.

    Methods return cleaned-up pydantic records (see ``mixology.models``).
    "Nothing found" is a normal result (``[]`` / ``None``); only transport
    or payload failures raise.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        cache: TTLCache | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self._base_url = base_url or COCKTAILDB_BASE_URL
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=timeout if timeout is not None else COCKTAILDB_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._cache = cache or TTLCache(ttl_seconds=COCKTAILDB_CACHE_TTL_SECONDS)

    def close(self) -> None:
        self._client.close()

    # ── Internal helpers ─────────────────────────────────────────────

    def _get(self, path: str, params: dict[str, str | None] | None = None) -> dict[str, Any]:
        """Execute one GET and return the decoded JSON object.  No retries."""
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        with metrics.timed("cocktaildb", f"GET {path}"):
            try:
                response = self._client.get(path, params=clean)
            except httpx.TimeoutException as exc:
                raise CocktailDBError(f"Timed out calling {path}") from exc
            except httpx.HTTPError as exc:
                raise CocktailDBError(f"Could not reach TheCocktailDB ({type(exc).__name__})") from exc

            if response.status_code >= 400:
                raise CocktailDBError(
                    f"TheCocktailDB returned {response.status_code} for {path}",
                    status_code=response.status_code,
                )
            try:
                data = response.json()
            except ValueError as exc:
                raise CocktailDBError(f"TheCocktailDB returned invalid JSON for {path}") from exc

        if not isinstance(data, dict):
            raise CocktailDBError(f"Unexpected payload shape from {path}")
        return data

    @staticmethod
    def _rows(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
        """Return ``data[key]`` when it is a list of objects.

        The API answers "nothing found" with ``null`` or with a string such
        as ``"None Found"``; both become ``[]``.
        """
        rows = data.get(key)
        if not isinstance(rows, list):
            return []
        return [row for row in rows if isinstance(row, dict)]

    @staticmethod
    def _map(rows: list[dict[str, Any]], factory) -> list:
        mapped = []
        for row in rows:
            try:
                mapped.append(factory(row))
            except (KeyError, ValidationError) as exc:
                logger.warning("Skipping malformed record %r: %s", row.get("idDrink") or row.get("idIngredient"), exc)
        return mapped

    def _list_names(self, list_key: str, field: str) -> list[str]:
        data = self._get("/list.php", params={list_key: "list"})
        names = [row[field] for row in self._rows(data, "drinks") if isinstance(row.get(field), str)]
        if not names:
            logger.warning("No %s values found in list.php response", field)
        return names

    # ── Public API ───────────────────────────────────────────────────

    def search_cocktails_by_name(self, name: str) -> list[Cocktail]:
        logger.debug("Searching cocktails named %r", name)
        data = self._get("/search.php", params={"s": name})
        return self._map(self._rows(data, "drinks"), Cocktail.from_api)

    def get_cocktail_by_id(self, drink_id: str) -> Cocktail | None:
        def _load() -> dict[str, Any] | None:
            data = self._get("/lookup.php", params={"i": drink_id})
            rows = self._rows(data, "drinks")
            return rows[0] if rows else None

        raw = self._cache.get_or_load(f"{_CK_DRINK}{drink_id}", _load)
        if raw is None:
            return None
        found = self._map([raw], Cocktail.from_api)
        return found[0] if found else None

    def get_random_cocktail(self) -> Cocktail | None:
        data = self._get("/random.php")
        found = self._map(self._rows(data, "drinks"), Cocktail.from_api)
        return found[0] if found else None

    def filter_cocktails(self, criteria: CocktailFilter) -> list[CocktailPreview]:
        logger.debug("Filtering cocktails with %s", criteria.model_dump(exclude_none=True))
        data = self._get(
            "/filter.php",
            params={
                "i": criteria.ingredient,
                "a": criteria.type,
                "g": criteria.glass,
                "c": criteria.category,
            },
        )
        return self._map(self._rows(data, "drinks"), CocktailPreview.from_api)

    def search_ingredient(self, name: str) -> Ingredient | None:
        data = self._get("/search.php", params={"i": name})
        found = self._map(self._rows(data, "ingredients"), Ingredient.from_api)
        return found[0] if found else None

    def list_categories(self) -> list[str]:
        return self._cache.get_or_load(_CK_CATEGORIES, lambda: self._list_names("c", "strCategory"))

    def list_ingredients(self) -> list[str]:
        return self._cache.get_or_load(_CK_INGREDIENTS, lambda: self._list_names("i", "strIngredient1"))

    def list_glasses(self) -> list[str]:
        return self._cache.get_or_load(_CK_GLASSES, lambda: self._list_names("g", "strGlass"))


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: CocktailDBClient | None = None
_client_lock = threading.Lock()


def get_cocktaildb_client() -> CocktailDBClient:
    """Return a module-level CocktailDBClient singleton (double-checked locking)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = CocktailDBClient()
    return _client
