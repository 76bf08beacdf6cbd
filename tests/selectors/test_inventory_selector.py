"""Tests for InventorySelector listings, search and alert views."""

from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import InventoryItemInfo, Pagination
from inventory_kernel.selectors.inventory_selector import ItemFilter


class TestGetItem:
    def test_returns_dto(self, inventory_selector, make_item):
        item = make_item(quantity=7)
        info = inventory_selector.get_item(item.id)
        assert isinstance(info, InventoryItemInfo)
        assert info.available == 7
        assert info.sku == item.sku

    def test_missing(self, inventory_selector):
        assert inventory_selector.get_item(uuid4()) is None

    def test_sees_engine_writes(self, inventory_selector, engine, make_item):
        item = make_item(quantity=7)
        inventory_selector.get_item(item.id)
        engine.reserve_stock(item.id, 3, reference_id="ORD-1")
        info = inventory_selector.get_item(item.id)
        assert info.available == 4
        assert info.reserved == 3

    def test_lookup_by_triple(self, inventory_selector, make_item):
        item = make_item(quantity=1)
        info = inventory_selector.get_item_for(item.product_id, item.variant_id, item.location_id)
        assert info.id == item.id
        assert inventory_selector.get_item_for(uuid4(), uuid4(), item.location_id) is None


class TestListItems:
    def test_filter_by_location(self, inventory_selector, make_item, make_location):
        other = make_location("Overflow")
        make_item(quantity=1)
        remote = make_item(quantity=2, location=other)

        page = inventory_selector.list_items(ItemFilter(location_id=other.id))
        assert [i.id for i in page.items] == [remote.id]
        assert page.total == 1

    def test_filter_by_alert_flags(self, inventory_selector, make_item):
        make_item(quantity=50)
        low = make_item(quantity=5)
        empty = make_item(quantity=0)

        low_page = inventory_selector.list_items(ItemFilter(low_stock=True), sort_by="sku", descending=False)
        assert [i.id for i in low_page.items] == [low.id, empty.id]

        out_page = inventory_selector.list_items(ItemFilter(out_of_stock=True))
        assert [i.id for i in out_page.items] == [empty.id]

    def test_search_is_case_insensitive(self, inventory_selector, make_item):
        shirt = make_item(sku="TSHIRT-RED-M")
        make_item(sku="MUG-BLUE")

        page = inventory_selector.list_items(ItemFilter(search="shirt"))
        assert [i.id for i in page.items] == [shirt.id]

    def test_search_wildcards_match_literally(self, inventory_selector, make_item):
        percent = make_item(sku="PROMO-50%-OFF")
        make_item(sku="PROMO-500-OFF")

        page = inventory_selector.list_items(ItemFilter(search="50%"))
        assert [i.id for i in page.items] == [percent.id]

    def test_sort_by_available(self, inventory_selector, make_item):
        items = [make_item(quantity=q) for q in (5, 20, 1)]
        page = inventory_selector.list_items(sort_by="available", descending=False)
        assert [i.available for i in page.items] == [1, 5, 20]
        assert {i.id for i in page.items} == {i.id for i in items}

    def test_unknown_sort_field(self, inventory_selector):
        with pytest.raises(ValueError, match="Unknown sort field"):
            inventory_selector.list_items(sort_by="price")

    def test_pagination(self, inventory_selector, make_item):
        for _ in range(5):
            make_item(quantity=1)

        first = inventory_selector.list_items(pagination=Pagination(page=1, limit=2), sort_by="sku", descending=False)
        third = inventory_selector.list_items(pagination=Pagination(page=3, limit=2), sort_by="sku", descending=False)

        assert first.total == 5
        assert first.total_pages == 3
        assert first.has_next and not first.has_prev
        assert [i.sku for i in first.items] == ["SKU-0001", "SKU-0002"]
        assert [i.sku for i in third.items] == ["SKU-0005"]
        assert not third.has_next


class TestAlerts:
    def test_alerted_items_lowest_first(self, inventory_selector, make_item):
        make_item(quantity=30)
        low = make_item(quantity=8)
        empty = make_item(quantity=0)

        page = inventory_selector.list_alerted_items()
        assert [i.id for i in page.items] == [empty.id, low.id]

    def test_alert_summary(self, inventory_selector, make_item, make_location):
        make_item(quantity=30)
        make_item(quantity=8)
        make_item(quantity=0)
        other = make_location()
        make_item(quantity=0, location=other)

        summary = inventory_selector.alert_summary()
        assert summary.low_stock_count == 3
        assert summary.out_of_stock_count == 2
        assert summary.total_alerts == 3

        scoped = inventory_selector.alert_summary(other.id)
        assert (scoped.low_stock_count, scoped.out_of_stock_count, scoped.total_alerts) == (1, 1, 1)

    def test_alert_summary_empty(self, inventory_selector, warehouse):
        summary = inventory_selector.alert_summary(warehouse.id)
        assert summary.total_alerts == 0
