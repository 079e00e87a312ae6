"""Order webhook decrement path.

When an order is created, each sold SKU is classified to a material and the
material's canonical record is decremented by the quantity sold. Dependents
are left for the next periodic pass to pull into line.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, field_validator

from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics
from reconciliation.adjuster import BatchAdjuster
from reconciliation.levels import InventoryLevelReader
from reconciliation.locks import RecordLocks
from reconciliation.models import AdjustmentDelta, LocationRef, Relations
from reconciliation.relations import RelationStore

logger = get_logger(__name__)


# =============================================================================
# Order payload
# =============================================================================

class LineItem(BaseModel):
    """The part of an order line item the decrement path reads."""
    model_config = ConfigDict(extra="ignore")

    sku: Optional[str] = None
    quantity: int = 0

    @field_validator("quantity", mode="before")
    @classmethod
    def _none_is_zero(cls, value):
        return 0 if value is None else value


class OrderEvent(BaseModel):
    """orders/create webhook body."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[int, str]] = None
    line_items: List[LineItem] = []

    @field_validator("line_items", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return [] if value is None else value


# =============================================================================
# SKU classification
# =============================================================================

class SkuMatcher(ABC):
    """Maps a sold SKU to the material it consumes."""

    @abstractmethod
    def match(self, sku: str, codes: Sequence[str]) -> Optional[str]:
        """Return the matching material code, or None."""
        ...


class SubstringSkuMatcher(SkuMatcher):
    """First material code, in mapping order, contained in the uppercased SKU."""

    def match(self, sku: str, codes: Sequence[str]) -> Optional[str]:
        sku = (sku or "").upper()
        if not sku:
            return None
        for code in codes:
            if code.upper() in sku:
                return code
        return None


def collect_decrements(
    order: OrderEvent,
    relations: Relations,
    matcher: Optional[SkuMatcher] = None,
) -> Dict[str, int]:
    """Signed quantity per material sold in an order.

    Totals that net to zero are left out.
    """
    matcher = matcher or SubstringSkuMatcher()
    codes = relations.codes()

    totals: Dict[str, int] = {}
    for item in order.line_items:
        code = matcher.match(item.sku or "", codes)
        if code is None:
            continue
        totals[code] = totals.get(code, 0) - item.quantity

    return {code: delta for code, delta in totals.items() if delta != 0}


# =============================================================================
# Handler
# =============================================================================

@dataclass
class DecrementResult:
    """What one order did to canonical records."""
    order_id: Optional[str]
    matched: Dict[str, int] = field(default_factory=dict)
    applied: Dict[str, int] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)


class OrderDecrementHandler:
    """Applies an order's material consumption to canonical records.

    Usage:
        handler = OrderDecrementHandler(relation_store, reader, adjuster, location, locks)
        result = await handler.handle_order(OrderEvent.model_validate(body))
    """

    def __init__(
        self,
        relation_store: RelationStore,
        reader: InventoryLevelReader,
        adjuster: BatchAdjuster,
        location: LocationRef,
        locks: Optional[RecordLocks] = None,
        matcher: Optional[SkuMatcher] = None,
    ):
        self.relation_store = relation_store
        self.reader = reader
        self.adjuster = adjuster
        self.location = location
        self.locks = locks or RecordLocks()
        self.matcher = matcher or SubstringSkuMatcher()

    async def handle_order(self, order: OrderEvent) -> DecrementResult:
        """Decrement each matched material's canonical record.

        Raises:
            AdjustmentError: The platform rejected a decrement
            TransportError: The platform could not be reached
        """
        order_id = str(order.id) if order.id is not None else None
        result = DecrementResult(order_id=order_id)

        with with_correlation(order_id=order_id):
            logger.info(f"Order webhook received: {order_id}")

            relations = await self.relation_store.get_relations()
            result.matched = collect_decrements(order, relations, self.matcher)

            if not result.matched:
                logger.info("No matching materials in order")
                get_metrics().record_webhook_processed(decrements=0)
                return result

            for code, delta in result.matched.items():
                canonical_ref = relations.get(code)
                if not canonical_ref:
                    logger.warning(f"No canonical variant GID for material: {code}")
                    result.unresolved.append(code)
                    continue

                async with self.locks.lock_for(canonical_ref):
                    item_id = await self.reader.resolve_inventory_item(canonical_ref)
                    if not item_id:
                        logger.warning(f"Could not get inventoryItem for variant {canonical_ref}")
                        result.unresolved.append(code)
                        continue

                    logger.info(
                        f"Adjusting inventory item {item_id} by {delta}",
                        extra_fields={"material_code": code},
                    )
                    await self.adjuster.apply_batch(
                        self.location,
                        [AdjustmentDelta(inventory_item_id=item_id, delta=delta)],
                    )
                    result.applied[code] = delta

            get_metrics().record_webhook_processed(decrements=len(result.applied))

        return result
