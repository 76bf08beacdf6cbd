"""Tests for TransferSelector."""

from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import TransferInfo, TransferLineSpec
from inventory_kernel.domain.enums import TransferStatus
from inventory_kernel.selectors.transfer_selector import TransferFilter, TransferSelector


@pytest.fixture
def selector(session):
    return TransferSelector(session)


@pytest.fixture
def two_transfers(transfers, make_item, make_location, warehouse):
    """One pending and one cancelled transfer out of the main warehouse."""
    store_a = make_location("Store A", "store")
    store_b = make_location("Store B", "store")
    first, second = make_item(quantity=10), make_item(quantity=10)

    pending = transfers.create_transfer(
        warehouse.id, store_a.id,
        [
            TransferLineSpec(first.product_id, first.variant_id, 2),
            TransferLineSpec(second.product_id, second.variant_id, 3),
        ],
        transfer_number="TRF-A",
    )
    cancelled = transfers.create_transfer(
        warehouse.id, store_b.id,
        [TransferLineSpec(first.product_id, first.variant_id, 1)],
        transfer_number="TRF-B",
    )
    transfers.cancel_transfer(cancelled.id)
    return pending, cancelled, store_a, store_b


class TestTransferSelector:
    def test_get_transfer(self, selector, two_transfers):
        pending = two_transfers[0]
        info = selector.get_transfer(pending.id)
        assert isinstance(info, TransferInfo)
        assert info.transfer_number == "TRF-A"
        assert [line.line_number for line in info.lines] == [1, 2]
        assert info.total_quantity == 5

    def test_get_by_number(self, selector, two_transfers):
        assert selector.get_by_number("TRF-B").status == TransferStatus.CANCELLED.value
        assert selector.get_by_number("TRF-Z") is None

    def test_get_missing(self, selector):
        assert selector.get_transfer(uuid4()) is None

    def test_filter_by_status(self, selector, two_transfers):
        page = selector.list_transfers(TransferFilter(status=TransferStatus.PENDING))
        assert [t.transfer_number for t in page.items] == ["TRF-A"]

    def test_filter_by_destination(self, selector, two_transfers):
        store_b = two_transfers[3]
        page = selector.list_transfers(TransferFilter(to_location_id=store_b.id))
        assert [t.transfer_number for t in page.items] == ["TRF-B"]

    def test_filter_by_source(self, selector, two_transfers, warehouse):
        page = selector.list_transfers(TransferFilter(from_location_id=warehouse.id))
        assert page.total == 2
