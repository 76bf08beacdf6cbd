"""
Module: inventory_kernel.selectors.transfer_selector
Responsibility: Read-only access to transfers and their lines.
Architecture position: Kernel > Selectors.

Lines are eager-loaded (selectinload) and returned sorted by line_number.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from inventory_kernel.domain.dtos import (
    Page,
    Pagination,
    TransferInfo,
    TransferLineInfo,
)
from inventory_kernel.domain.enums import TransferStatus
from inventory_kernel.models.transfer import InventoryTransfer
from inventory_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TransferFilter:
    status: TransferStatus | None = None
    from_location_id: UUID | None = None
    to_location_id: UUID | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


def transfer_to_dto(transfer: InventoryTransfer) -> TransferInfo:
    lines = tuple(
        TransferLineInfo(
            line_number=line.line_number,
            product_id=line.product_id,
            variant_id=line.variant_id,
            sku=line.sku,
            quantity=line.quantity,
            unit_cost=line.unit_cost,
            source_item_id=line.source_item_id,
        )
        for line in sorted(transfer.lines, key=lambda x: x.line_number)
    )
    return TransferInfo(
        id=transfer.id,
        transfer_number=transfer.transfer_number,
        from_location_id=transfer.from_location_id,
        to_location_id=transfer.to_location_id,
        status=transfer.status,
        lines=lines,
        tracking_number=transfer.tracking_number,
        notes=transfer.notes,
        created_at=transfer.created_at,
        shipped_at=transfer.shipped_at,
        received_at=transfer.received_at,
        cancelled_at=transfer.cancelled_at,
        cancellation_reason=transfer.cancellation_reason,
    )


class TransferSelector(BaseSelector):
    """Selector for inventory transfers."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _base_query(self):
        return (
            select(InventoryTransfer)
            .options(selectinload(InventoryTransfer.lines))
            .execution_options(populate_existing=True)
        )

    def get_transfer(self, transfer_id: UUID) -> TransferInfo | None:
        transfer = self.session.execute(
            self._base_query().where(InventoryTransfer.id == transfer_id)
        ).scalar_one_or_none()
        return transfer_to_dto(transfer) if transfer is not None else None

    def get_by_number(self, transfer_number: str) -> TransferInfo | None:
        transfer = self.session.execute(
            self._base_query().where(InventoryTransfer.transfer_number == transfer_number)
        ).scalar_one_or_none()
        return transfer_to_dto(transfer) if transfer is not None else None

    def list_transfers(
        self,
        transfer_filter: TransferFilter | None = None,
        pagination: Pagination | None = None,
    ) -> Page[TransferInfo]:
        """Transfers matching ``transfer_filter``, newest first."""
        f = transfer_filter or TransferFilter()
        stmt = self._base_query()
        if f.status is not None:
            stmt = stmt.where(InventoryTransfer.status == TransferStatus(f.status).value)
        if f.from_location_id is not None:
            stmt = stmt.where(InventoryTransfer.from_location_id == f.from_location_id)
        if f.to_location_id is not None:
            stmt = stmt.where(InventoryTransfer.to_location_id == f.to_location_id)
        if f.created_from is not None:
            stmt = stmt.where(InventoryTransfer.created_at >= f.created_from)
        if f.created_to is not None:
            stmt = stmt.where(InventoryTransfer.created_at <= f.created_to)
        stmt = stmt.order_by(
            InventoryTransfer.created_at.desc(), InventoryTransfer.transfer_number
        )
        return self._paginate(stmt, pagination or Pagination(), transfer_to_dto)
