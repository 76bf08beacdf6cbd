"""
Tests for StockReconciliationService.

Tampered rows are produced with Core UPDATE statements, the one write path
the ORM listeners do not see.
"""

from datetime import timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from inventory_kernel.domain.enums import ReferenceType
from inventory_kernel.domain.quantities import StockSnapshot
from inventory_kernel.models.inventory import InventoryItem
from inventory_services import StockReconciliationService


@pytest.fixture
def reconciler(session, deterministic_clock, ledger_config):
    return StockReconciliationService(session, deterministic_clock, ledger_config)


def _tamper(session, item_id, **values):
    session.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item_id)
        .values(values)
        .execution_options(synchronize_session=False)
    )


class TestCleanLedger:
    def test_fresh_ledger_is_clean(self, reconciler, engine, make_item):
        item = make_item(quantity=10)
        make_item()
        engine.reserve_stock(item.id, 3, reference_id="ORD-1")
        engine.commit_fulfillment(item.id, 3, reference_id="ORD-1")

        report = reconciler.reconcile()

        assert report.is_clean
        assert report.items_checked == 2
        assert report.stale_quantity == 0

    def test_cutoff_uses_configured_hours(self, reconciler, deterministic_clock, make_item):
        make_item()
        report = reconciler.reconcile()
        assert report.checked_at - report.stale_cutoff == timedelta(hours=72)
        assert report.checked_at == deterministic_clock.now()


class TestStaleReservations:
    def test_old_reservation_reported(self, reconciler, engine, make_item, deterministic_clock):
        item = make_item(quantity=10)
        engine.reserve_stock(item.id, 4, reference_id="ORD-LEAK")
        deterministic_clock.advance(hours=73)

        report = reconciler.reconcile()

        assert not report.is_clean
        assert len(report.stale_reservations) == 1
        stale = report.stale_reservations[0]
        assert stale.item_id == item.id
        assert stale.reference_id == "ORD-LEAK"
        assert stale.outstanding == 4
        assert stale.reserved_at is not None
        assert report.stale_quantity == 4

    def test_recent_reservation_not_reported(self, reconciler, engine, make_item, deterministic_clock):
        item = make_item(quantity=10)
        engine.reserve_stock(item.id, 4, reference_id="ORD-FRESH")
        deterministic_clock.advance(hours=1)
        assert reconciler.find_stale_reservations(deterministic_clock.now() - timedelta(hours=24)) == []

    def test_partial_release_and_sale_reduce_outstanding(self, reconciler, engine, make_item, deterministic_clock):
        item = make_item(quantity=10)
        engine.reserve_stock(item.id, 6, reference_id="ORD-9")
        engine.release_reservation(item.id, 2, reference_id="ORD-9")
        engine.commit_fulfillment(item.id, 1, reference_id="ORD-9")
        deterministic_clock.advance(hours=100)

        (stale,) = reconciler.reconcile().stale_reservations
        assert stale.outstanding == 3

    def test_settled_reservations_not_reported(self, reconciler, engine, make_item, deterministic_clock):
        item = make_item(quantity=10)
        engine.reserve_stock(item.id, 2, reference_id="ORD-A")
        engine.release_reservation(item.id, 2, reference_id="ORD-A")
        engine.reserve_stock(item.id, 3, reference_id="ORD-B")
        engine.commit_fulfillment(item.id, 3, reference_id="ORD-B")
        deterministic_clock.advance(hours=100)

        assert reconciler.reconcile().is_clean

    def test_transfer_reservations_ignored(self, reconciler, engine, make_item, deterministic_clock):
        item = make_item(quantity=10)
        engine.reserve_stock(
            item.id, 2, reference_id="TRF-1", reference_type=ReferenceType.TRANSFER
        )
        deterministic_clock.advance(hours=100)

        assert reconciler.reconcile().stale_reservations == ()

    def test_stale_after_override(self, reconciler, engine, make_item, deterministic_clock):
        item = make_item(quantity=10)
        engine.reserve_stock(item.id, 1, reference_id="ORD-2")
        deterministic_clock.advance(hours=2)

        assert reconciler.reconcile().is_clean
        assert len(reconciler.reconcile(stale_after=timedelta(hours=1)).stale_reservations) == 1


class TestTamperedRows:
    def test_identity_break_refused_by_database(self, reconciler, session, make_item):
        item = make_item(quantity=10)
        with pytest.raises(IntegrityError):
            _tamper(session, item.id, available=InventoryItem.available + 1)
        session.rollback()
        assert reconciler.find_identity_violations() == []

    def test_snapshot_mismatch(self, reconciler, session, make_item):
        item = make_item(quantity=10)
        _tamper(
            session, item.id,
            available=InventoryItem.available + 5,
            on_hand=InventoryItem.on_hand + 5,
        )

        report = reconciler.reconcile()

        assert report.identity_violations == ()
        (mismatch,) = report.snapshot_mismatches
        assert mismatch.expected == StockSnapshot(available=10, on_hand=10)
        assert mismatch.row == StockSnapshot(available=15, on_hand=15)

    def test_version_mismatch(self, reconciler, session, make_item):
        item = make_item(quantity=10)
        _tamper(session, item.id, version=InventoryItem.version + 1)

        (mismatch,) = reconciler.find_version_mismatches()
        assert mismatch.item_id == item.id
        assert "version 3" in mismatch.detail

    def test_item_without_history_is_consistent(self, reconciler, make_item):
        make_item()
        assert reconciler.find_version_mismatches() == []
        assert reconciler.find_snapshot_mismatches() == []
