"""
Tests for LedgerStore: provisioning, settings, deletion and the guarded
quantity UPDATE.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.enums import MovementType, ReferenceType
from inventory_kernel.domain.quantities import QuantityDelta, StockSnapshot
from inventory_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateItemError,
    InvalidItemError,
    InvalidQuantityError,
    InvariantViolationError,
    ItemNotFoundError,
    ItemReferencedError,
    LocationNotFoundError,
)
from inventory_kernel.invariants import LedgerInvariant
from inventory_kernel.selectors.movement_selector import MovementFilter


class TestProvision:
    def test_provision_without_stock(self, store, warehouse):
        item = store.provision(uuid4(), uuid4(), warehouse.id, " TSHIRT-M ")
        assert item.sku == "TSHIRT-M"
        assert item.quantities == StockSnapshot()
        assert item.version == 1
        assert item.low_stock_threshold == 10
        assert item.low_stock_alert and item.out_of_stock_alert
        assert store.count_movements(item.id) == 0

    def test_opening_quantity_writes_restock_movement(self, store, warehouse):
        item = store.provision(
            uuid4(), uuid4(), warehouse.id, "MUG-1",
            quantity=40, unit_cost=Decimal("2.50"),
        )
        assert item.quantities == StockSnapshot(available=40, on_hand=40)
        assert item.total_value == Decimal("100")
        assert item.version == 2
        assert not item.low_stock_alert

        page = store.list_movements(MovementFilter(inventory_item_id=item.id))
        assert page.total == 1
        movement = page.items[0]
        assert movement.movement_type == MovementType.RESTOCK.value
        assert movement.reference_type == ReferenceType.MANUAL.value
        assert movement.quantity == 40
        assert movement.quantity_before == StockSnapshot()
        assert movement.item_version == 2

    def test_duplicate_triple_rejected(self, store, warehouse):
        product, variant = uuid4(), uuid4()
        store.provision(product, variant, warehouse.id, "A")
        with pytest.raises(DuplicateItemError):
            store.provision(product, variant, warehouse.id, "A")

    def test_same_product_at_two_locations(self, store, warehouse, make_location):
        product, variant = uuid4(), uuid4()
        a = store.provision(product, variant, warehouse.id, "A")
        b = store.provision(product, variant, make_location().id, "A")
        assert a.id != b.id

    def test_unknown_location(self, store):
        with pytest.raises(LocationNotFoundError):
            store.provision(uuid4(), uuid4(), uuid4(), "A")

    def test_inactive_location(self, store, warehouse, locations):
        locations.deactivate_location(warehouse.id)
        with pytest.raises(LocationNotFoundError):
            store.provision(uuid4(), uuid4(), warehouse.id, "A")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"quantity": -1},
            {"quantity": 1.5},
            {"low_stock_threshold": -1},
            {"unit_cost": Decimal("-0.01")},
        ],
    )
    def test_invalid_arguments(self, store, warehouse, kwargs):
        with pytest.raises(InvalidQuantityError):
            store.provision(uuid4(), uuid4(), warehouse.id, "A", **kwargs)

    @pytest.mark.parametrize("sku", ["", "   "])
    def test_blank_sku(self, store, warehouse, sku):
        with pytest.raises(InvalidItemError) as exc_info:
            store.provision(uuid4(), uuid4(), warehouse.id, sku)
        assert exc_info.value.field == "sku"
        assert exc_info.value.code == "INVALID_ITEM"


class TestLookup:
    def test_get_by_triple(self, store, make_item):
        item = make_item(quantity=3)
        found = store.get(item.product_id, item.variant_id, item.location_id)
        assert found.id == item.id

    def test_get_missing_triple(self, store, warehouse):
        with pytest.raises(ItemNotFoundError):
            store.get(uuid4(), uuid4(), warehouse.id)

    def test_find_returns_none(self, store, warehouse):
        assert store.find(uuid4(), uuid4(), warehouse.id) is None

    def test_get_by_id_missing(self, store):
        with pytest.raises(ItemNotFoundError):
            store.get_by_id(uuid4())


class TestUpsertQuantities:
    def test_applies_delta_and_returns_snapshots(self, store, make_item):
        item = make_item(quantity=10)
        updated, before, after = store.upsert_quantities(
            item.id, QuantityDelta(available=-4, reserved=4)
        )
        assert before == StockSnapshot(available=10, on_hand=10)
        assert after == StockSnapshot(available=6, reserved=4, on_hand=10)
        assert updated.quantities == after

    def test_version_incremented(self, store, make_item):
        item = make_item(quantity=10)
        start = item.version
        updated, _, _ = store.upsert_quantities(item.id, QuantityDelta(available=1, on_hand=1))
        assert updated.version == start + 1

    def test_identity_breaking_delta_refused(self, store, make_item):
        item = make_item(quantity=10)
        with pytest.raises(InvariantViolationError) as exc_info:
            store.upsert_quantities(item.id, QuantityDelta(available=5))
        assert exc_info.value.invariant == LedgerInvariant.ACCOUNTING_IDENTITY.value
        assert store.get_by_id(item.id).available == 10

    def test_negative_result_refused_without_change(self, store, make_item):
        item = make_item(quantity=2)
        with pytest.raises(InvariantViolationError) as exc_info:
            store.upsert_quantities(item.id, QuantityDelta(available=-3, on_hand=-3))
        assert exc_info.value.invariant == LedgerInvariant.NON_NEGATIVE.value
        assert store.get_by_id(item.id).quantities == StockSnapshot(available=2, on_hand=2)

    def test_shortfall_factory_used(self, store, make_item):
        item = make_item(quantity=2)

        def shortfall(current):
            return LookupError(current.available)

        with pytest.raises(LookupError):
            store.upsert_quantities(
                item.id, QuantityDelta(available=-3, reserved=3), shortfall=shortfall
            )

    def test_stale_expectation_is_conflict(self, store, make_item):
        item = make_item(quantity=5)
        with pytest.raises(ConcurrentModificationError):
            store.upsert_quantities(
                item.id,
                QuantityDelta(available=1, on_hand=1),
                expected={"committed": 3},
            )
        assert store.get_by_id(item.id).available == 5

    def test_missing_row(self, store):
        with pytest.raises(ItemNotFoundError):
            store.upsert_quantities(uuid4(), QuantityDelta(available=1, on_hand=1))

    def test_zero_delta_refused(self, store, make_item):
        with pytest.raises(InvalidQuantityError):
            store.upsert_quantities(make_item().id, QuantityDelta())

    def test_alerts_and_value_recomputed(self, store, make_item, deterministic_clock):
        item = make_item(quantity=20, unit_cost=Decimal("1.25"))
        assert not item.low_stock_alert

        updated, _, _ = store.upsert_quantities(
            item.id, QuantityDelta(available=-15, on_hand=-15)
        )
        assert updated.low_stock_alert
        assert not updated.out_of_stock_alert
        assert updated.total_value == Decimal("6.25")
        assert updated.last_movement_date is not None

        updated, _, _ = store.upsert_quantities(
            item.id, QuantityDelta(available=-5, reserved=5)
        )
        assert updated.out_of_stock_alert


class TestUpdateSettings:
    def test_thresholds_recompute_alerts(self, store, make_item):
        item = make_item(quantity=8)
        assert item.low_stock_alert

        updated = store.update_settings(item.id, low_stock_threshold=5)
        assert updated.low_stock_threshold == 5
        assert not updated.low_stock_alert

    def test_unit_cost_recomputes_value(self, store, make_item):
        item = make_item(quantity=4)
        updated = store.update_settings(item.id, unit_cost=Decimal("3.00"), sku="NEW-SKU")
        assert updated.total_value == Decimal("12")
        assert updated.sku == "NEW-SKU"

    def test_settings_do_not_touch_quantities(self, store, make_item):
        item = make_item(quantity=4)
        start = item.version
        updated = store.update_settings(item.id, out_of_stock_threshold=4)
        assert updated.out_of_stock_alert
        assert updated.quantities == StockSnapshot(available=4, on_hand=4)
        assert updated.version == start
        assert store.count_movements(item.id) == 1

    def test_negative_threshold_refused(self, store, make_item):
        with pytest.raises(InvalidQuantityError):
            store.update_settings(make_item().id, low_stock_threshold=-1)

    @pytest.mark.parametrize("sku", ["", "  "])
    def test_blank_sku_refused(self, store, make_item, sku):
        item = make_item(sku="KEEP-ME")
        with pytest.raises(InvalidItemError):
            store.update_settings(item.id, sku=sku)
        assert store.get_by_id(item.id).sku == "KEEP-ME"

    def test_missing_item(self, store):
        with pytest.raises(ItemNotFoundError):
            store.update_settings(uuid4(), low_stock_threshold=1)


class TestDeleteItem:
    def test_unused_item_deleted(self, store, make_item):
        item = make_item()
        store.delete_item(item.id)
        with pytest.raises(ItemNotFoundError):
            store.get_by_id(item.id)

    def test_item_with_history_refused(self, store, make_item):
        item = make_item(quantity=1)
        with pytest.raises(ItemReferencedError) as exc_info:
            store.delete_item(item.id)
        assert exc_info.value.movement_count == 1
        assert store.get_by_id(item.id).id == item.id
