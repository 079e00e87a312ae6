"""Dependent discovery.

Finds the sellable variants whose stock follows a material's canonical
variant. Dependents are never stored; every call re-runs the full search.
"""

from dataclasses import dataclass
from typing import AsyncIterator, List

from connectors.shopify.shopify_client import ShopifyGraphQLClient
from connectors.shopify.shopify_models import ShopifyVariant
from connectors.shopify.shopify_queries import VARIANT_SEARCH_QUERY
from core.observability.logging import get_logger
from reconciliation.models import DependentVariant, normalize_material_code

logger = get_logger(__name__)

SEARCH_PAGE_SIZE = 250


@dataclass(frozen=True)
class DependentFamily:
    """Naming conventions that identify dependents of a material.

    Attributes:
        search_marker: Term the product title must contain in the platform search
        title_marker: Exact substring the product title must contain client-side
        canonical_sku_prefix: SKU prefix of the material's own stock variant
    """
    search_marker: str = "color-run"
    title_marker: str = "Color Run"
    canonical_sku_prefix: str = "Color-"

    def canonical_sku(self, material: str) -> str:
        return f"{self.canonical_sku_prefix}{normalize_material_code(material)}"

    def search_query(self, material: str) -> str:
        """Platform search predicate for one material's dependents."""
        code = normalize_material_code(material)
        return (
            f"sku:*{code} "
            f"AND product_title:*{self.search_marker}* "
            f"AND NOT sku:{self.canonical_sku(code)}"
        )

    def is_member(self, product_title: str) -> bool:
        # The search matches substrings, so an unrelated product can slip through
        return self.title_marker in (product_title or "")


class DependentDiscovery:
    """Searches the platform for a material's dependent variants."""

    def __init__(
        self,
        client: ShopifyGraphQLClient,
        family: DependentFamily = DependentFamily(),
        page_size: int = SEARCH_PAGE_SIZE,
    ):
        self.client = client
        self.family = family
        self.page_size = page_size

    async def iter_dependents(self, material: str) -> AsyncIterator[DependentVariant]:
        """Lazily yield dependents across all result pages."""
        variables = {"query": self.family.search_query(material), "first": self.page_size}

        async for node in self.client.paginate(VARIANT_SEARCH_QUERY, variables, "productVariants"):
            variant = ShopifyVariant.model_validate(node)

            if not self.family.is_member(variant.product_title):
                continue
            if not variant.inventory_item_id:
                logger.warning(f"Variant {variant.id} has no inventory item, ignoring")
                continue

            yield DependentVariant(
                variant_id=variant.id,
                sku=variant.sku or "",
                inventory_item_id=variant.inventory_item_id,
                product_title=variant.product_title,
            )

    async def find_dependents(self, material: str) -> List[DependentVariant]:
        """Collect every dependent of a material."""
        dependents = [d async for d in self.iter_dependents(material)]
        logger.debug(
            f"Found {len(dependents)} dependents",
            extra_fields={"material_code": normalize_material_code(material)},
        )
        return dependents
