"""Relation store accessor.

The material -> canonical variant mapping lives in a JSON metafield on the
shop itself. It is re-read at the start of every sync pass and on every order
webhook; nothing here caches it.
"""

import json
from typing import Any, Dict

from pydantic import ValidationError

from connectors.shopify.shopify_client import ShopifyGraphQLClient
from connectors.shopify.shopify_models import ShopifyUserError
from connectors.shopify.shopify_queries import (
    METAFIELDS_SET_MUTATION,
    SHOP_ID_QUERY,
    SHOP_METAFIELD_QUERY,
)
from core.observability.logging import get_logger
from reconciliation.errors import ConfigWriteError
from reconciliation.models import Relations, is_valid_material_code, normalize_material_code

logger = get_logger(__name__)

DEFAULT_NAMESPACE = "material_sync"
DEFAULT_KEY = "relations"


def parse_relations(raw: Any) -> Relations:
    """Parse a stored metafield value leniently.

    Absent, unparseable or non-object values give an empty mapping. Entries
    whose value is not a string, or whose key is not a material code, are
    dropped.
    """
    if not raw:
        return Relations({})

    try:
        data = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as e:
        logger.warning(f"Relations metafield is not valid JSON, treating as empty: {e}")
        return Relations({})

    if not isinstance(data, dict):
        logger.warning(f"Relations metafield is not a JSON object ({type(data).__name__}), treating as empty")
        return Relations({})

    entries: Dict[str, str] = {}
    for code, ref in data.items():
        if not is_valid_material_code(normalize_material_code(str(code))):
            logger.warning(f"Dropping relation {code!r}: not a material code")
            continue
        if ref is None:
            ref = ""
        if not isinstance(ref, str):
            logger.warning(f"Dropping relation {code!r}: canonical reference is not a string")
            continue
        entries[code] = ref

    try:
        return Relations(entries)
    except ValidationError as e:
        logger.warning(f"Relations metafield failed validation, treating as empty: {e}")
        return Relations({})


class RelationStore:
    """Reads and writes the relations metafield.

    Usage:
        store = RelationStore(client)
        relations = await store.get_relations()
        await store.set_relations(Relations({"ALU": "gid://shopify/ProductVariant/1"}))
    """

    def __init__(
        self,
        client: ShopifyGraphQLClient,
        namespace: str = DEFAULT_NAMESPACE,
        key: str = DEFAULT_KEY,
    ):
        self.client = client
        self.namespace = namespace
        self.key = key

    async def get_relations(self) -> Relations:
        """Load the current mapping.

        Returns an empty mapping when the metafield is absent or corrupt.
        TransportError from the client propagates.
        """
        data = await self.client.execute(
            SHOP_METAFIELD_QUERY,
            {"namespace": self.namespace, "key": self.key},
        )
        metafield = (data.get("shop") or {}).get("metafield") or {}
        return parse_relations(metafield.get("value"))

    async def set_relations(self, relations: Relations) -> None:
        """Replace the stored mapping.

        Raises:
            ConfigWriteError: If the shop id is unavailable or the platform
                reports user errors
        """
        shop_data = await self.client.execute(SHOP_ID_QUERY)
        owner_id = (shop_data.get("shop") or {}).get("id")
        if not owner_id:
            raise ConfigWriteError("Unable to determine shop ID")

        result = await self.client.execute(METAFIELDS_SET_MUTATION, {
            "metafields": [{
                "ownerId": owner_id,
                "namespace": self.namespace,
                "key": self.key,
                "type": "json",
                "value": json.dumps(relations.root),
            }],
        })

        payload = result.get("metafieldsSet")
        if payload is None:
            raise ConfigWriteError("Missing metafieldsSet response")

        user_errors = [ShopifyUserError.model_validate(e).to_dict() for e in payload.get("userErrors") or []]
        if user_errors:
            logger.error("metafieldsSet userErrors", extra_fields={"user_errors": user_errors})
            raise ConfigWriteError("Relations metafield rejected", user_errors)

        logger.info(f"Relations saved ({len(relations)} materials)")
