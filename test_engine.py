"""
Reconciliation engine tests.

Pull-to-parity deltas, convergence, idempotence and per-material isolation,
run against the in-memory shop.
"""

import asyncio

from connectors.shopify.shopify_client import TransportError
from connectors.shopify.shopify_queries import INVENTORY_ADJUST_MUTATION, INVENTORY_LEVELS_QUERY, VARIANT_SEARCH_QUERY
from core.observability.metrics import get_metrics
from reconciliation.adjuster import BatchAdjuster
from reconciliation.discovery import DependentDiscovery
from reconciliation.engine import MaterialSyncEngine, compute_deltas
from reconciliation.levels import InventoryLevelReader
from reconciliation.locks import RecordLocks
from reconciliation.models import AdjustmentDelta, OutcomeStatus
from reconciliation.relations import RelationStore
from conftest import TEST_LOCATION, FakeShopify


def make_engine(shop, locks=None) -> MaterialSyncEngine:
    return MaterialSyncEngine(
        relation_store=RelationStore(shop),
        discovery=DependentDiscovery(shop),
        reader=InventoryLevelReader(shop),
        adjuster=BatchAdjuster(shop),
        location=TEST_LOCATION,
        locks=locks,
    )


def alu_shop():
    """Canonical ALU at 50 with dependents at 40, 50 and 60."""
    shop = FakeShopify()
    canonical = shop.add_variant("Color-ALU", "Aluminium", available=50)
    d1 = shop.add_variant("HOL-ALU", "Holster - Color Run", available=40)
    d2 = shop.add_variant("BLT-ALU", "Belt - Color Run", available=50)
    d3 = shop.add_variant("WAL-ALU", "Wallet - Color Run", available=60)
    shop.metafield_value = '{"ALU": "%s"}' % canonical["id"]
    return shop, canonical, (d1, d2, d3)


class TestComputeDeltas:
    """Test the pure delta function."""

    def test_alu_example(self):
        deltas = compute_deltas(50, ["d1", "d2", "d3"], {"d1": 40, "d2": 50, "d3": 60})
        assert deltas == [AdjustmentDelta("d1", 10), AdjustmentDelta("d3", -10)]

    def test_missing_dependent_counts_as_zero(self):
        assert compute_deltas(5, ["d1"], {}) == [AdjustmentDelta("d1", 5)]

    def test_no_drift_no_deltas(self):
        assert compute_deltas(7, ["d1", "d2"], {"d1": 7, "d2": 7}) == []

    def test_duplicates_counted_once(self):
        assert compute_deltas(3, ["d1", "d1"], {"d1": 1}) == [AdjustmentDelta("d1", 2)]

    def test_pure(self):
        """Same inputs give the same output and the inputs are not mutated."""
        ids = ["d1", "d2"]
        levels = {"d1": 1, "d2": 9}
        first = compute_deltas(4, ids, levels)
        second = compute_deltas(4, ids, levels)
        assert first == second
        assert ids == ["d1", "d2"]
        assert levels == {"d1": 1, "d2": 9}

    def test_negative_canonical(self):
        assert compute_deltas(-2, ["d1"], {"d1": 1}) == [AdjustmentDelta("d1", -3)]


class TestReconcileMaterial:
    """Test a single material's pass."""

    def test_alu_example_batch(self):
        shop, canonical, (d1, d2, d3) = alu_shop()

        outcome = asyncio.run(make_engine(shop).reconcile_material("ALU", canonical["id"]))

        assert outcome.status == OutcomeStatus.RESOLVED
        assert outcome.adjustments == [
            AdjustmentDelta(shop.item_of(d1), 10),
            AdjustmentDelta(shop.item_of(d3), -10),
        ]
        assert len(shop.adjustments) == 1
        assert [c["inventoryItemId"] for c in shop.adjustments[0]] == [shop.item_of(d1), shop.item_of(d3)]

    def test_convergence(self):
        shop, canonical, dependents = alu_shop()

        asyncio.run(make_engine(shop).reconcile_material("ALU", canonical["id"]))

        assert [shop.level_of(d) for d in dependents] == [50, 50, 50]
        assert shop.level_of(canonical) == 50

    def test_idempotent(self):
        """A second pass with no intervening change applies nothing."""
        shop, canonical, _ = alu_shop()
        engine = make_engine(shop)

        async def run():
            await engine.reconcile_material("ALU", canonical["id"])
            return await engine.reconcile_material("ALU", canonical["id"])

        second = asyncio.run(run())

        assert second.status == OutcomeStatus.RESOLVED
        assert second.adjustments == []
        assert len(shop.calls_for(INVENTORY_ADJUST_MUTATION)) == 1

    def test_no_drift_no_mutation(self):
        shop = FakeShopify()
        canonical = shop.add_variant("Color-ALU", "Aluminium", available=12)
        shop.add_variant("HOL-ALU", "Holster - Color Run", available=12)

        outcome = asyncio.run(make_engine(shop).reconcile_material("ALU", canonical["id"]))

        assert outcome.status == OutcomeStatus.RESOLVED
        assert shop.calls_for(INVENTORY_ADJUST_MUTATION) == []

    def test_dependent_without_level_raised_to_canonical(self):
        shop = FakeShopify()
        canonical = shop.add_variant("Color-ALU", "Aluminium", available=8)
        holster = shop.add_variant("HOL-ALU", "Holster - Color Run")

        asyncio.run(make_engine(shop).reconcile_material("ALU", canonical["id"]))

        assert shop.level_of(holster) == 8

    def test_unresolved_canonical_skipped(self):
        shop = FakeShopify()
        shop.add_variant("HOL-ALU", "Holster - Color Run", available=3)

        outcome = asyncio.run(make_engine(shop).reconcile_material("ALU", "gid://shopify/ProductVariant/404"))

        assert outcome.status == OutcomeStatus.SKIPPED
        assert shop.calls_for(VARIANT_SEARCH_QUERY) == []

    def test_canonical_without_level_skipped(self):
        """A canonical item the level read does not return cannot be used as the target."""
        shop = FakeShopify()
        canonical = shop.add_variant("Color-ALU", "Aluminium", available=5)
        shop.add_variant("HOL-ALU", "Holster - Color Run", available=3)

        original = shop._item_node
        shop._item_node = lambda item_id: None if item_id == shop.item_of(canonical) else original(item_id)

        outcome = asyncio.run(make_engine(shop).reconcile_material("ALU", canonical["id"]))

        assert outcome.status == OutcomeStatus.SKIPPED
        assert shop.calls_for(INVENTORY_ADJUST_MUTATION) == []

    def test_rejected_adjustment_failed(self):
        shop, canonical, _ = alu_shop()
        shop.adjust_user_errors = [{"message": "Inventory item not stocked"}]

        outcome = asyncio.run(make_engine(shop).reconcile_material("ALU", canonical["id"]))

        assert outcome.status == OutcomeStatus.FAILED
        assert "Inventory adjustment failed" in outcome.reason

    def test_failed_dependent_level_read_makes_no_adjustment(self):
        """A dependent read that comes back without nodes must not be taken as all zeros."""
        shop, canonical, dependents = alu_shop()
        original = shop.respond

        def throttled_bulk_read(query, variables):
            if query == INVENTORY_LEVELS_QUERY and len(variables["ids"]) > 1:
                return {}
            return original(query, variables)

        shop.respond = throttled_bulk_read

        outcome = asyncio.run(make_engine(shop).reconcile_material("ALU", canonical["id"]))

        assert outcome.status == OutcomeStatus.FAILED
        assert shop.calls_for(INVENTORY_ADJUST_MUTATION) == []
        assert [shop.level_of(d) for d in dependents] == [40, 50, 60]

    def test_lowercase_code_normalized(self):
        shop, canonical, _ = alu_shop()

        outcome = asyncio.run(make_engine(shop).reconcile_material("alu", canonical["id"]))

        assert outcome.material_code == "ALU"
        assert outcome.status == OutcomeStatus.RESOLVED

    def test_waits_for_record_lock(self):
        """The pass does not touch the canonical record while another holder has it."""
        shop, canonical, _ = alu_shop()
        locks = RecordLocks()
        engine = make_engine(shop, locks=locks)

        async def run():
            lock = locks.lock_for(canonical["id"])
            await lock.acquire()
            task = asyncio.create_task(engine.reconcile_material("ALU", canonical["id"]))
            await asyncio.sleep(0)
            calls_while_locked = len(shop.calls)
            lock.release()
            outcome = await task
            return calls_while_locked, outcome

        calls_while_locked, outcome = asyncio.run(run())

        assert calls_while_locked == 0
        assert outcome.status == OutcomeStatus.RESOLVED


class TestSyncMaterials:
    """Test the full pass over the relations mapping."""

    def test_dangling_reference_does_not_block_others(self):
        shop = FakeShopify()
        brs = shop.add_variant("Color-BRS", "Brass", available=9)
        brs_holster = shop.add_variant("HOL-BRS", "Holster - Color Run", available=1)
        shop.metafield_value = (
            '{"ALU": "gid://shopify/ProductVariant/404", "BRS": "%s", "CPR": ""}' % brs["id"]
        )

        report = asyncio.run(make_engine(shop).sync_materials())

        assert report.outcome_for("ALU").status == OutcomeStatus.SKIPPED
        assert report.outcome_for("BRS").status == OutcomeStatus.RESOLVED
        assert report.outcome_for("CPR").status == OutcomeStatus.SKIPPED
        assert shop.level_of(brs_holster) == 9
        assert (report.resolved, report.skipped, report.failed) == (1, 2, 0)
        assert report.finished_at is not None

    def test_failure_does_not_block_others(self):
        shop = FakeShopify()
        alu = shop.add_variant("Color-ALU", "Aluminium", available=4)
        shop.add_variant("HOL-ALU", "Holster - Color Run", available=1)
        brs = shop.add_variant("Color-BRS", "Brass", available=9)
        brs_holster = shop.add_variant("HOL-BRS", "Holster - Color Run", available=1)
        shop.metafield_value = '{"ALU": "%s", "BRS": "%s"}' % (alu["id"], brs["id"])

        original = shop._search

        def flaky_search(variables):
            if "ALU" in variables["query"]:
                raise TransportError("connection reset")
            return original(variables)

        shop._search = flaky_search

        report = asyncio.run(make_engine(shop).sync_materials())

        assert report.outcome_for("ALU").status == OutcomeStatus.FAILED
        assert report.outcome_for("BRS").status == OutcomeStatus.RESOLVED
        assert shop.level_of(brs_holster) == 9

    def test_empty_relations_is_noop(self):
        shop = FakeShopify()

        report = asyncio.run(make_engine(shop).sync_materials())

        assert report.outcomes == []
        assert len(shop.calls) == 1

    def test_outcomes_recorded_in_metrics(self):
        shop, _, _ = alu_shop()

        asyncio.run(make_engine(shop).sync_materials())

        summary = get_metrics().get_summary()
        assert summary["materials"]["resolved"] == 1
        assert summary["materials"]["adjustments"] == 2
        assert summary["materials"]["by_code"]["ALU"]["resolved"] == 1

    def test_report_serializes(self):
        shop, _, _ = alu_shop()

        report = asyncio.run(make_engine(shop).sync_materials())
        data = report.to_dict()

        assert data["summary"] == {"materials": 1, "resolved": 1, "skipped": 0, "failed": 0, "adjustments": 2}
        assert data["outcomes"][0]["status"] == "RESOLVED"
