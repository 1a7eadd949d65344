"""Tests for the TheCocktailDB client."""

from __future__ import annotations

import httpx
import pytest
from conftest import MARGARITA_RAW, VODKA_RAW

from mixology.errors import CocktailDBError
from mixology.models import CocktailFilter
from mixology.services.cache import TTLCache
from mixology.services.cocktaildb_client import CocktailDBClient

# ── Helpers ──────────────────────────────────────────────────────────


class _Recorder:
    """httpx MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)


def _client(handler: _Recorder) -> CocktailDBClient:
    return CocktailDBClient(
        "https://cocktails.test/api/json/v1/1",
        timeout=1,
        cache=TTLCache(ttl_seconds=60),
        transport=httpx.MockTransport(handler),
    )


# ── Lookups ──────────────────────────────────────────────────────────


class TestSearchCocktails:
    def test_maps_drinks(self):
        handler = _Recorder({"drinks": [MARGARITA_RAW]})

        found = _client(handler).search_cocktails_by_name("Margarita")

        assert [c.name for c in found] == ["Margarita"]
        assert handler.requests[0].url.path.endswith("/search.php")
        assert handler.requests[0].url.params["s"] == "Margarita"

    @pytest.mark.parametrize("payload", [{"drinks": None}, {"drinks": "None Found"}, {}])
    def test_nothing_found_is_empty(self, payload):
        assert _client(_Recorder(payload)).search_cocktails_by_name("Nope") == []

    def test_skips_malformed_rows(self):
        handler = _Recorder({"drinks": [{"strDrink": "No id"}, MARGARITA_RAW]})
        assert [c.id for c in _client(handler).search_cocktails_by_name("x")] == ["11007"]


class TestLookupById:
    def test_found_and_cached(self):
        handler = _Recorder({"drinks": [MARGARITA_RAW]})
        client = _client(handler)

        first = client.get_cocktail_by_id("11007")
        second = client.get_cocktail_by_id("11007")

        assert first.name == second.name == "Margarita"
        assert len(handler.requests) == 1
        assert handler.requests[0].url.params["i"] == "11007"

    def test_not_found(self):
        assert _client(_Recorder({"drinks": None})).get_cocktail_by_id("0") is None


class TestRandomCocktail:
    def test_returns_one(self):
        assert _client(_Recorder({"drinks": [MARGARITA_RAW]})).get_random_cocktail().id == "11007"

    def test_timeout_is_not_retried(self):
        handler = _Recorder(httpx.ReadTimeout("too slow"))

        with pytest.raises(CocktailDBError, match="Timed out"):
            _client(handler).get_random_cocktail()

        assert len(handler.requests) == 1


class TestFilterAndIngredients:
    def test_filter_sends_only_given_criteria(self):
        handler = _Recorder({"drinks": [{"idDrink": "1", "strDrink": "Mojito", "strDrinkThumb": None}]})

        found = _client(handler).filter_cocktails(CocktailFilter(ingredient="Rum", type="Alcoholic"))

        assert [p.name for p in found] == ["Mojito"]
        assert dict(handler.requests[0].url.params) == {"i": "Rum", "a": "Alcoholic"}

    def test_search_ingredient(self):
        handler = _Recorder({"ingredients": [VODKA_RAW]})

        ingredient = _client(handler).search_ingredient("Vodka")

        assert ingredient.name == "Vodka"
        assert ingredient.abv == 40.0
        assert ingredient.description == (
            "Vodka is a distilled beverage. It is composed primarily of water and ethanol."
        )

    def test_search_ingredient_not_found(self):
        assert _client(_Recorder({"ingredients": None})).search_ingredient("Nope") is None


class TestReferenceLists:
    def test_lists_are_cached(self):
        handler = _Recorder({"drinks": [{"strCategory": "Cocktail"}, {"strCategory": "Shot"}]})
        client = _client(handler)

        assert client.list_categories() == ["Cocktail", "Shot"]
        assert client.list_categories() == ["Cocktail", "Shot"]
        assert len(handler.requests) == 1
        assert handler.requests[0].url.params["c"] == "list"

    def test_failures_are_not_cached(self):
        handler = _Recorder(
            httpx.Response(503, text="maintenance"),
            {"drinks": [{"strGlass": "Highball glass"}]},
        )
        client = _client(handler)

        with pytest.raises(CocktailDBError) as exc_info:
            client.list_glasses()
        assert exc_info.value.status_code == 503

        assert client.list_glasses() == ["Highball glass"]
        assert len(handler.requests) == 2

    def test_ingredient_list_uses_first_ingredient_field(self):
        handler = _Recorder({"drinks": [{"strIngredient1": "Vodka"}, {"strIngredient1": "Gin"}]})
        assert _client(handler).list_ingredients() == ["Vodka", "Gin"]


class TestTransportErrors:
    def test_invalid_json(self):
        handler = _Recorder(httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(CocktailDBError, match="invalid JSON"):
            _client(handler).search_cocktails_by_name("x")

    def test_connection_error(self):
        handler = _Recorder(httpx.ConnectError("refused"))
        with pytest.raises(CocktailDBError, match="ConnectError"):
            _client(handler).search_cocktails_by_name("x")

    def test_non_object_payload(self):
        with pytest.raises(CocktailDBError, match="Unexpected payload"):
            _client(_Recorder([1, 2, 3])).search_cocktails_by_name("x")
