"""Batch adjuster.

Submits inventory deltas as one inventoryAdjustQuantities mutation. The
platform's atomicity across the changes in one call is best-effort; any
reported user error fails the whole batch from the caller's point of view.
"""

from typing import Optional, Sequence

from connectors.shopify.shopify_client import ShopifyGraphQLClient
from connectors.shopify.shopify_models import ShopifyUserError
from connectors.shopify.shopify_queries import INVENTORY_ADJUST_MUTATION
from core.observability.logging import get_logger
from reconciliation.errors import AdjustmentError
from reconciliation.models import AdjustmentDelta, LocationRef

logger = get_logger(__name__)

ADJUSTMENT_REASON = "correction"
QUANTITY_NAME = "available"


class BatchAdjuster:
    """Applies available-quantity deltas at one location."""

    def __init__(
        self,
        client: ShopifyGraphQLClient,
        reason: str = ADJUSTMENT_REASON,
        quantity_name: str = QUANTITY_NAME,
    ):
        self.client = client
        self.reason = reason
        self.quantity_name = quantity_name

    async def apply_batch(self, location: LocationRef, deltas: Sequence[AdjustmentDelta]) -> Optional[str]:
        """Submit all deltas in a single mutation.

        Returns:
            The inventory adjustment group id, when the platform returns one

        Raises:
            ValueError: If deltas is empty
            AdjustmentError: If the platform rejects the mutation
        """
        if not deltas:
            raise ValueError("apply_batch requires at least one delta")

        input_ = {
            "reason": self.reason,
            "name": self.quantity_name,
            "changes": [d.to_change(location.gid) for d in deltas],
        }

        result = await self.client.execute(INVENTORY_ADJUST_MUTATION, {"input": input_})

        payload = result.get("inventoryAdjustQuantities")
        if payload is None:
            raise AdjustmentError("Missing inventoryAdjustQuantities response")

        user_errors = [ShopifyUserError.model_validate(e).to_dict() for e in payload.get("userErrors") or []]
        if user_errors:
            logger.error(
                "Inventory adjustment rejected",
                extra_fields={"user_errors": user_errors, "changes": len(deltas)},
            )
            raise AdjustmentError(f"Inventory adjustment failed: {user_errors}", user_errors)

        group = payload.get("inventoryAdjustmentGroup") or {}
        return group.get("id")
