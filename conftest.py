"""Shared test doubles.

FakeShopify answers the GraphQL documents in connectors.shopify.shopify_queries
from in-memory state, so discovery, level reads and adjustments can be
exercised end to end without a network. ScriptedClient replays canned
responses in order.
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

import pytest

from connectors.shopify.shopify_client import ShopifyApiConfig, ShopifyGraphQLClient
from connectors.shopify.shopify_queries import (
    INVENTORY_ADJUST_MUTATION,
    INVENTORY_LEVELS_QUERY,
    METAFIELDS_SET_MUTATION,
    SHOP_ID_QUERY,
    SHOP_METAFIELD_QUERY,
    VARIANT_BY_ID_QUERY,
    VARIANT_SEARCH_QUERY,
    VARIANT_TITLES_QUERY,
)
from core.observability.metrics import SyncMetrics
from core.security import StaticCredentials
from reconciliation.models import LocationRef

TEST_SHOP = "test-shop.myshopify.com"
TEST_LOCATION = LocationRef.parse("gid://shopify/Location/1")

_SEARCH_PATTERN = re.compile(r"sku:\*(\S+) AND product_title:\*(\S+)\* AND NOT sku:(\S+)")


class RecordingClient(ShopifyGraphQLClient):
    """Platform client whose execute() is answered in-process."""

    def __init__(self):
        super().__init__(StaticCredentials("shpat_test"), ShopifyApiConfig(shop=TEST_SHOP))
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        variables = dict(variables or {})
        self.calls.append((query, variables))
        return self.respond(query, variables)

    def respond(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def calls_for(self, query: str) -> List[Dict[str, Any]]:
        return [v for q, v in self.calls if q == query]


class ScriptedClient(RecordingClient):
    """Returns the given responses in order; exceptions are raised."""

    def __init__(self, responses: List[Any]):
        super().__init__()
        self.responses = list(responses)

    def respond(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        if not self.responses:
            raise AssertionError(f"Unexpected call: {query.split('(')[0].strip()}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeShopify(RecordingClient):
    """In-memory shop with variants, inventory levels at one location and a metafield."""

    def __init__(self, relations: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.shop_id = "gid://shopify/Shop/1"
        self.metafield_value: Optional[str] = json.dumps(relations) if relations is not None else None
        self.variants: Dict[str, Dict[str, Any]] = {}
        self.levels: Dict[str, int] = {}
        self.adjustments: List[List[Dict[str, Any]]] = []
        self.adjust_user_errors: List[Dict[str, Any]] = []
        self.metafield_user_errors: List[Dict[str, Any]] = []
        self._next_id = 1

    # -- setup -------------------------------------------------------------

    def add_variant(
        self,
        sku: str,
        product_title: str,
        available: Optional[int] = None,
        title: str = "Default Title",
    ) -> Dict[str, Any]:
        n = self._next_id
        self._next_id += 1
        variant = {
            "id": f"gid://shopify/ProductVariant/{n}",
            "sku": sku,
            "title": title,
            "inventoryItem": {"id": f"gid://shopify/InventoryItem/{n}"},
            "product": {"title": product_title},
        }
        self.variants[variant["id"]] = variant
        if available is not None:
            self.levels[variant["inventoryItem"]["id"]] = available
        return variant

    def item_of(self, variant: Dict[str, Any]) -> str:
        return variant["inventoryItem"]["id"]

    def level_of(self, variant: Dict[str, Any]) -> int:
        return self.levels.get(self.item_of(variant), 0)

    # -- GraphQL -----------------------------------------------------------

    def respond(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        if query == SHOP_METAFIELD_QUERY:
            metafield = {"value": self.metafield_value} if self.metafield_value is not None else None
            return {"shop": {"metafield": metafield}}
        if query == SHOP_ID_QUERY:
            return {"shop": {"id": self.shop_id}}
        if query == METAFIELDS_SET_MUTATION:
            return self._set_metafields(variables)
        if query == VARIANT_SEARCH_QUERY:
            return self._search(variables)
        if query == VARIANT_BY_ID_QUERY:
            return {"node": self.variants.get(variables["id"])}
        if query == VARIANT_TITLES_QUERY:
            return {"nodes": [self.variants.get(i) for i in variables["ids"]]}
        if query == INVENTORY_LEVELS_QUERY:
            return {"nodes": [self._item_node(i) for i in variables["ids"]]}
        if query == INVENTORY_ADJUST_MUTATION:
            return self._adjust(variables["input"])
        raise AssertionError("Unknown GraphQL document")

    def _set_metafields(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        if self.metafield_user_errors:
            return {"metafieldsSet": {"metafields": [], "userErrors": self.metafield_user_errors}}
        metafield = variables["metafields"][0]
        self.metafield_value = metafield["value"]
        return {"metafieldsSet": {"metafields": [metafield], "userErrors": []}}

    def _search(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        match = _SEARCH_PATTERN.fullmatch(variables["query"])
        assert match, variables["query"]
        code, marker, excluded_sku = match.groups()
        marker_words = marker.lower().split("-")

        hits = [
            v for v in self.variants.values()
            if code.upper() in (v["sku"] or "").upper()
            and (v["sku"] or "") != excluded_sku
            and all(w in v["product"]["title"].lower() for w in marker_words)
        ]

        start = int(variables.get("cursor") or 0)
        end = start + variables["first"]
        page = hits[start:end]
        return {
            "productVariants": {
                "nodes": [
                    {k: v[k] for k in ("id", "sku", "inventoryItem", "product")}
                    for v in page
                ],
                "pageInfo": {
                    "hasNextPage": end < len(hits),
                    "endCursor": str(end) if page else None,
                },
            }
        }

    def _known_items(self) -> set:
        return {v["inventoryItem"]["id"] for v in self.variants.values()} | set(self.levels)

    def _item_node(self, item_id: str) -> Optional[Dict[str, Any]]:
        if item_id not in self._known_items():
            return None
        if item_id not in self.levels:
            return {"id": item_id, "inventoryLevel": None}
        return {
            "id": item_id,
            "inventoryLevel": {"quantities": [{"name": "available", "quantity": self.levels[item_id]}]},
        }

    def _adjust(self, input_: Dict[str, Any]) -> Dict[str, Any]:
        if self.adjust_user_errors:
            return {"inventoryAdjustQuantities": {
                "inventoryAdjustmentGroup": None,
                "userErrors": self.adjust_user_errors,
            }}
        assert input_["reason"] == "correction"
        assert input_["name"] == "available"
        changes = input_["changes"]
        for change in changes:
            item_id = change["inventoryItemId"]
            self.levels[item_id] = self.levels.get(item_id, 0) + change["delta"]
        self.adjustments.append(changes)
        return {"inventoryAdjustQuantities": {
            "inventoryAdjustmentGroup": {"id": f"gid://shopify/InventoryAdjustmentGroup/{len(self.adjustments)}"},
            "userErrors": [],
        }}


class FakeTokenResponse:
    """Response to the OAuth access_token POST."""

    def __init__(self, status: int, body: Dict[str, Any]):
        self.status = status
        self._body = body

    async def json(self):
        return self._body

    async def text(self):
        return json.dumps(self._body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeTokenSession:
    def __init__(self, response: Optional[FakeTokenResponse]):
        self.response = response
        self.posts: List[Tuple[str, Dict[str, Any]]] = []

    def post(self, url, json=None, headers=None):
        self.posts.append((url, json))
        return self.response


@pytest.fixture(autouse=True)
def reset_metrics():
    """Each test starts with fresh in-process counters."""
    SyncMetrics.instance().reset()
    yield


@pytest.fixture
def shop():
    return FakeShopify()


@pytest.fixture
def location():
    return TEST_LOCATION
