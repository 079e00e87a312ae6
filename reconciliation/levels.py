"""Inventory level reader.

Bulk reads of the "available" quantity at one location, plus resolution of a
variant reference to the inventory item that tracks its stock.
"""

from typing import Dict, Iterable, List, Optional

from connectors.shopify.shopify_client import ShopifyGraphQLClient, TransportError
from connectors.shopify.shopify_models import ShopifyInventoryItem, ShopifyVariant
from connectors.shopify.shopify_queries import (
    INVENTORY_LEVELS_QUERY,
    VARIANT_BY_ID_QUERY,
    VARIANT_TITLES_QUERY,
)
from reconciliation.models import LocationRef

# nodes(ids:) accepts at most 250 ids per call
MAX_IDS_PER_QUERY = 250


def _chunks(items: List[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class InventoryLevelReader:
    """Reads inventory state from the platform."""

    def __init__(self, client: ShopifyGraphQLClient, batch_size: int = MAX_IDS_PER_QUERY):
        self.client = client
        self.batch_size = batch_size

    async def resolve_variant(self, variant_id: str) -> Optional[ShopifyVariant]:
        """Fetch a variant by GID; None if it does not exist."""
        data = await self.client.execute(VARIANT_BY_ID_QUERY, {"id": variant_id})
        node = data.get("node")
        if not node or not node.get("id"):
            return None
        return ShopifyVariant.model_validate(node)

    async def resolve_inventory_item(self, variant_id: str) -> Optional[str]:
        """Inventory item id behind a variant; None if the variant is unknown."""
        variant = await self.resolve_variant(variant_id)
        if variant is None:
            return None
        return variant.inventory_item_id

    async def resolve_variants(self, variant_ids: Iterable[str]) -> Dict[str, ShopifyVariant]:
        """Variants (with titles) for the ids that exist; unknown ids are left out."""
        ids = list(dict.fromkeys(variant_ids))
        variants: Dict[str, ShopifyVariant] = {}
        for batch in _chunks(ids, self.batch_size):
            data = await self.client.execute(VARIANT_TITLES_QUERY, {"ids": batch})
            for node in data.get("nodes") or []:
                if node and node.get("id"):
                    variant = ShopifyVariant.model_validate(node)
                    variants[variant.id] = variant
        return variants

    async def read_levels(self, location: LocationRef, item_ids: Iterable[str]) -> Dict[str, int]:
        """Available quantity per inventory item at a location.

        Items without a level at the location read as 0. Items the platform
        does not return at all are absent from the result. An empty input
        makes no call.

        Raises:
            TransportError: A response carried no nodes list (GraphQL errors,
                throttling); no partial result is returned
        """
        ids = list(dict.fromkeys(item_ids))
        if not ids:
            return {}

        levels: Dict[str, int] = {}
        for batch in _chunks(ids, self.batch_size):
            data = await self.client.execute(
                INVENTORY_LEVELS_QUERY,
                {"ids": batch, "locationId": location.gid},
            )

            nodes = data.get("nodes")
            if not isinstance(nodes, list):
                raise TransportError(f"Inventory level read returned no nodes for {len(batch)} items")

            for node in nodes:
                if not node or not node.get("id"):
                    continue
                item = ShopifyInventoryItem.model_validate(node)
                levels[item.id] = item.available

        return levels
