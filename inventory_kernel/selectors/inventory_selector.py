"""
Module: inventory_kernel.selectors.inventory_selector
Responsibility: Read-only access to inventory ledger rows: lookups, filtered
    listings, and the alert views consumed by the notification service.
Architecture position: Kernel > Selectors.  May import from models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: no mutations performed on any queried data.
    - DTO convention: public methods return InventoryItemInfo / AlertSummary,
      never ORM instances.
    - Deterministic ordering: every sort has ``id`` as the final tie-breaker
      so pages do not overlap.

Failure modes:
    - get_item() returns None when the row does not exist.
    - ValueError for an unknown sort field.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import (
    AlertSummary,
    InventoryItemInfo,
    Page,
    Pagination,
)
from inventory_kernel.models.inventory import InventoryItem
from inventory_kernel.selectors.base import BaseSelector

ITEM_SORT_FIELDS = {
    "last_movement_date": InventoryItem.last_movement_date,
    "available": InventoryItem.available,
    "on_hand": InventoryItem.on_hand,
    "sku": InventoryItem.sku,
    "low_stock_threshold": InventoryItem.low_stock_threshold,
}


@dataclass(frozen=True)
class ItemFilter:
    """Optional filters for list_items(); ``None`` means "any"."""

    location_id: UUID | None = None
    product_id: UUID | None = None
    low_stock: bool | None = None
    out_of_stock: bool | None = None
    search: str | None = None


def item_to_dto(item: InventoryItem) -> InventoryItemInfo:
    return InventoryItemInfo(
        id=item.id,
        product_id=item.product_id,
        variant_id=item.variant_id,
        location_id=item.location_id,
        sku=item.sku,
        quantities=item.quantities,
        low_stock_threshold=item.low_stock_threshold,
        out_of_stock_threshold=item.out_of_stock_threshold,
        low_stock_alert=item.low_stock_alert,
        out_of_stock_alert=item.out_of_stock_alert,
        unit_cost=item.unit_cost,
        total_value=item.total_value,
        version=item.version,
        last_movement_date=item.last_movement_date,
        last_count_date=item.last_count_date,
    )


class InventorySelector(BaseSelector):
    """
    Selector for inventory ledger rows.

    Contract:
        Rows are always re-read from the database (populate_existing), so a
        selector sharing a session with the engine sees quantities written
        by the engine's Core UPDATE statements.

    Non-goals:
        - Does NOT aggregate across locations; callers sum per product.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def get_item(self, item_id: UUID) -> InventoryItemInfo | None:
        item = self.session.execute(
            select(InventoryItem)
            .where(InventoryItem.id == item_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return item_to_dto(item) if item is not None else None

    def get_item_for(
        self, product_id: UUID, variant_id: UUID, location_id: UUID
    ) -> InventoryItemInfo | None:
        item = self.session.execute(
            select(InventoryItem)
            .where(
                InventoryItem.product_id == product_id,
                InventoryItem.variant_id == variant_id,
                InventoryItem.location_id == location_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return item_to_dto(item) if item is not None else None

    def list_items(
        self,
        item_filter: ItemFilter | None = None,
        pagination: Pagination | None = None,
        *,
        sort_by: str = "last_movement_date",
        descending: bool = True,
    ) -> Page[InventoryItemInfo]:
        """
        List ledger rows matching ``item_filter``.

        ``search`` is a case-insensitive SKU substring match; ``%`` and ``_``
        in the search text match literally.

        Raises:
            ValueError: ``sort_by`` is not one of ITEM_SORT_FIELDS.
        """
        if sort_by not in ITEM_SORT_FIELDS:
            raise ValueError(
                f"Unknown sort field {sort_by!r}; expected one of {sorted(ITEM_SORT_FIELDS)}"
            )
        item_filter = item_filter or ItemFilter()

        stmt = select(InventoryItem).execution_options(populate_existing=True)
        if item_filter.location_id is not None:
            stmt = stmt.where(InventoryItem.location_id == item_filter.location_id)
        if item_filter.product_id is not None:
            stmt = stmt.where(InventoryItem.product_id == item_filter.product_id)
        if item_filter.low_stock is not None:
            stmt = stmt.where(InventoryItem.low_stock_alert.is_(item_filter.low_stock))
        if item_filter.out_of_stock is not None:
            stmt = stmt.where(InventoryItem.out_of_stock_alert.is_(item_filter.out_of_stock))
        if item_filter.search:
            stmt = stmt.where(
                func.lower(InventoryItem.sku).contains(
                    item_filter.search.lower(), autoescape=True
                )
            )

        column = ITEM_SORT_FIELDS[sort_by]
        order = column.desc() if descending else column.asc()
        stmt = stmt.order_by(order.nulls_last(), InventoryItem.id)

        return self._paginate(stmt, pagination or Pagination(), item_to_dto)

    def list_alerted_items(
        self,
        location_id: UUID | None = None,
        pagination: Pagination | None = None,
    ) -> Page[InventoryItemInfo]:
        """Rows with either alert flag set, lowest available first."""
        stmt = (
            select(InventoryItem)
            .where(
                or_(
                    InventoryItem.low_stock_alert.is_(True),
                    InventoryItem.out_of_stock_alert.is_(True),
                )
            )
            .order_by(InventoryItem.available.asc(), InventoryItem.sku, InventoryItem.id)
            .execution_options(populate_existing=True)
        )
        if location_id is not None:
            stmt = stmt.where(InventoryItem.location_id == location_id)
        return self._paginate(stmt, pagination or Pagination(), item_to_dto)

    def alert_summary(self, location_id: UUID | None = None) -> AlertSummary:
        stmt = select(
            func.count().filter(InventoryItem.low_stock_alert.is_(True)),
            func.count().filter(InventoryItem.out_of_stock_alert.is_(True)),
            func.count().filter(
                or_(
                    InventoryItem.low_stock_alert.is_(True),
                    InventoryItem.out_of_stock_alert.is_(True),
                )
            ),
        )
        if location_id is not None:
            stmt = stmt.where(InventoryItem.location_id == location_id)
        low, out, total = self.session.execute(stmt).one()
        return AlertSummary(
            low_stock_count=low or 0,
            out_of_stock_count=out or 0,
            total_alerts=total or 0,
        )
