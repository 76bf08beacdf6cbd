"""
Tests for the typed exception hierarchy.

Every concrete error carries a unique machine-readable code and its
structured fields.
"""

import inspect

import pytest

from inventory_kernel import exceptions
from inventory_kernel.exceptions import (
    ConcurrencyError,
    ConcurrentModificationError,
    InsufficientStockError,
    InventoryKernelError,
    ItemNotFoundError,
    LedgerError,
    OverReleaseError,
    StockError,
)


def _all_error_classes():
    return [
        obj for _, obj in inspect.getmembers(exceptions, inspect.isclass)
        if issubclass(obj, InventoryKernelError)
    ]


class TestErrorCodes:
    def test_every_class_has_code(self):
        for cls in _all_error_classes():
            assert cls.code and cls.code.isupper(), cls.__name__

    def test_codes_are_unique(self):
        codes = [cls.code for cls in _all_error_classes()]
        assert len(codes) == len(set(codes))


class TestStructuredFields:
    def test_insufficient_stock(self):
        err = InsufficientStockError("item-1", requested=5, available=3)
        assert isinstance(err, StockError)
        assert err.code == "INSUFFICIENT_STOCK"
        assert (err.requested, err.available) == (5, 3)
        assert "requested 5, available 3" in str(err)

    def test_over_release(self):
        err = OverReleaseError("item-1", requested=4, reserved=1)
        assert err.code == "OVER_RELEASE"
        assert (err.requested, err.reserved) == (4, 1)

    def test_not_found_is_ledger_error(self):
        err = ItemNotFoundError("abc")
        assert isinstance(err, LedgerError)
        assert err.item_ref == "abc"

    def test_concurrent_modification(self):
        err = ConcurrentModificationError("InventoryItem", "abc")
        assert isinstance(err, ConcurrencyError)
        assert err.entity_id == "abc"

    def test_catch_by_base(self):
        with pytest.raises(InventoryKernelError):
            raise InsufficientStockError("x", 1, 0)
