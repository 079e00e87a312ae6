"""Shopify data models.

These are Shopify-specific models that map to the Admin GraphQL schema.
They are separate from the reconciliation models in /reconciliation/models.py.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Shopify GraphQL Node Models
# =============================================================================

class ShopifyBaseModel(BaseModel):
    """Base model for GraphQL nodes; unknown fields are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ShopifyInventoryItemRef(ShopifyBaseModel):
    id: str


class ShopifyProductRef(ShopifyBaseModel):
    title: str = ""


class ShopifyVariant(ShopifyBaseModel):
    """ProductVariant node.

    Maps to: productVariants / node(id:) / nodes(ids:)
    """
    id: str
    sku: Optional[str] = None
    title: Optional[str] = None
    inventory_item: Optional[ShopifyInventoryItemRef] = Field(None, alias="inventoryItem")
    product: Optional[ShopifyProductRef] = None

    @property
    def inventory_item_id(self) -> Optional[str]:
        return self.inventory_item.id if self.inventory_item else None

    @property
    def product_title(self) -> str:
        return self.product.title if self.product else ""

    @property
    def display_title(self) -> str:
        """Product and variant title joined as shown in the config editor."""
        product_title = self.product.title if self.product and self.product.title else "Unknown product"
        return f"{product_title} - {self.title}"


class ShopifyQuantity(ShopifyBaseModel):
    name: Optional[str] = None
    quantity: int = 0


class ShopifyInventoryLevel(ShopifyBaseModel):
    quantities: List[ShopifyQuantity] = Field(default_factory=list)

    def quantity(self, name: str = "available") -> int:
        for q in self.quantities:
            if q.name is None or q.name == name:
                return q.quantity
        return 0


class ShopifyInventoryItem(ShopifyBaseModel):
    """InventoryItem node with its level at one location."""
    id: str
    inventory_level: Optional[ShopifyInventoryLevel] = Field(None, alias="inventoryLevel")

    @property
    def available(self) -> int:
        """Available quantity; 0 when the item is not stocked at the location."""
        if self.inventory_level is None:
            return 0
        return self.inventory_level.quantity("available")


class ShopifyUserError(ShopifyBaseModel):
    """userErrors entry returned by mutations."""
    field: Optional[List[str]] = None
    message: str = ""
    code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
