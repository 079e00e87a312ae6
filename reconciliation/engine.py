"""Reconciliation engine for material-backed inventory.

Exposes:
- compute_deltas(canonical_qty, dependent_item_ids, dependent_levels) -> [AdjustmentDelta]
- MaterialSyncEngine.reconcile_material(code, canonical_ref) -> MaterialOutcome
- MaterialSyncEngine.sync_materials() -> SyncReport

Dependents are pulled to parity with the canonical record, never the reverse.
Each material's pass is independent of every other material's.
"""

import uuid
from datetime import datetime
from typing import Iterable, List, Mapping, Optional

from connectors.shopify.shopify_client import TransportError
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics
from reconciliation.adjuster import BatchAdjuster
from reconciliation.discovery import DependentDiscovery, DependentFamily
from reconciliation.errors import AdjustmentError, ResolutionError
from reconciliation.levels import InventoryLevelReader
from reconciliation.locks import RecordLocks
from reconciliation.models import (
    AdjustmentDelta,
    LocationRef,
    MaterialOutcome,
    SyncReport,
    normalize_material_code,
)
from reconciliation.relations import RelationStore

logger = get_logger(__name__)


# =============================================================================
# Delta computation
# =============================================================================

def compute_deltas(
    canonical_qty: int,
    dependent_item_ids: Iterable[str],
    dependent_levels: Mapping[str, int],
) -> List[AdjustmentDelta]:
    """Deltas that bring every dependent to the canonical quantity.

    A dependent missing from dependent_levels counts as 0. Zero deltas are
    dropped; a repeated item id is counted once. Output order follows the
    first occurrence of each id.
    """
    deltas = []
    for item_id in dict.fromkeys(dependent_item_ids):
        delta = canonical_qty - dependent_levels.get(item_id, 0)
        if delta != 0:
            deltas.append(AdjustmentDelta(inventory_item_id=item_id, delta=delta))
    return deltas


# =============================================================================
# Engine
# =============================================================================

class MaterialSyncEngine:
    """Reconciles dependents of every material against its canonical record.

    Usage:
        engine = MaterialSyncEngine(relation_store, discovery, reader, adjuster, location)
        report = await engine.sync_materials()
    """

    def __init__(
        self,
        relation_store: RelationStore,
        discovery: DependentDiscovery,
        reader: InventoryLevelReader,
        adjuster: BatchAdjuster,
        location: LocationRef,
        family: Optional[DependentFamily] = None,
        locks: Optional[RecordLocks] = None,
    ):
        self.relation_store = relation_store
        self.discovery = discovery
        self.reader = reader
        self.adjuster = adjuster
        self.location = location
        self.family = family or discovery.family
        self.locks = locks or RecordLocks()

    async def _reconcile(self, code: str, canonical_ref: str) -> List[AdjustmentDelta]:
        """Run one material's pass; returns the deltas applied.

        Raises:
            ResolutionError: Canonical variant or its quantity cannot be resolved
            AdjustmentError: The platform rejected the batch
            TransportError: The platform could not be reached or a level read failed
        """
        canonical_item_id = await self.reader.resolve_inventory_item(canonical_ref)
        if not canonical_item_id:
            raise ResolutionError(f"Canonical variant not found: {canonical_ref}", canonical_ref)

        levels = await self.reader.read_levels(self.location, [canonical_item_id])
        canonical_qty = levels.get(canonical_item_id)
        if canonical_qty is None:
            raise ResolutionError(f"Canonical quantity not found for {code}", canonical_item_id)

        logger.info(f"Available: {canonical_qty}")

        dependents = await self.discovery.find_dependents(code)
        dependent_items = [
            d.inventory_item_id for d in dependents
            if self.family.is_member(d.product_title)
        ]
        logger.info(f"Found dependents: {len(dependent_items)}")

        if not dependent_items:
            logger.info(f"No dependent variants to sync for {code}")
            return []

        dependent_levels = await self.reader.read_levels(self.location, dependent_items)
        changes = compute_deltas(canonical_qty, dependent_items, dependent_levels)

        if not changes:
            logger.info(f"All dependent variants already in sync for {code}")
            return []

        logger.info(f"Applying {len(changes)} inventory adjustments for {code}")
        await self.adjuster.apply_batch(self.location, changes)
        return changes

    async def reconcile_material(self, code: str, canonical_ref: str) -> MaterialOutcome:
        """Reconcile one material and classify the result.

        Never raises for resolution, adjustment or transport failures; those
        become SKIPPED or FAILED outcomes so the remaining materials still run.
        """
        code = normalize_material_code(code)

        with with_correlation(material_code=code):
            if not canonical_ref:
                logger.warning(f"No canonical variant GID for material: {code}")
                return MaterialOutcome.skipped(code, "No canonical variant configured")

            logger.info(f"Syncing material: {code}")

            try:
                async with self.locks.lock_for(canonical_ref):
                    changes = await self._reconcile(code, canonical_ref)
            except ResolutionError as e:
                logger.warning(str(e))
                return MaterialOutcome.skipped(code, str(e))
            except AdjustmentError as e:
                logger.error(
                    f"Adjustment failed for {code}: {e}",
                    extra_fields={"user_errors": e.user_errors},
                )
                return MaterialOutcome.failed(code, e)
            except TransportError as e:
                logger.error(f"Platform call failed for {code}: {e}")
                return MaterialOutcome.failed(code, e)

            logger.info(f"Material {code} synced")
            return MaterialOutcome.resolved(code, changes)

    async def sync_materials(self) -> SyncReport:
        """Full pass over every material in the relations mapping.

        Materials run sequentially. TransportError while reading the mapping
        itself propagates; the pass has nothing to work on.
        """
        report = SyncReport(run_id=f"sync-{uuid.uuid4().hex[:8]}")
        metrics = get_metrics()

        with with_correlation(sync_run_id=report.run_id):
            logger.info("Bulk inventory sync started")

            relations = await self.relation_store.get_relations()

            for code, canonical_ref in relations.items():
                outcome = await self.reconcile_material(code, canonical_ref)
                report.outcomes.append(outcome)
                metrics.record_material_outcome(
                    outcome.material_code,
                    outcome.status.value,
                    adjustments=len(outcome.adjustments),
                )

            report.finished_at = datetime.utcnow()
            logger.info(
                "All materials bulk-synced",
                extra_fields={
                    "materials": len(report.outcomes),
                    "resolved": report.resolved,
                    "skipped": report.skipped,
                    "failed": report.failed,
                    "adjustments": report.adjustment_count,
                },
            )

        return report
