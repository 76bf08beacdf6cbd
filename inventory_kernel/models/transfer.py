"""
Module: inventory_kernel.models.transfer
Responsibility: ORM persistence for location-to-location stock transfers
    and their lines.
Architecture position: Kernel > Models.

The status column follows TRANSFER_TRANSITIONS (domain/enums.py); only
TransferService changes it.  Lines are written once at creation.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.domain.enums import TransferStatus


class InventoryTransfer(TrackedBase):
    """A batch of stock moving from one location to another."""

    __tablename__ = "inventory_transfers"

    __table_args__ = (
        UniqueConstraint("transfer_number", name="uq_transfer_number"),
        CheckConstraint(
            "from_location_id <> to_location_id",
            name="ck_transfer_distinct_locations",
        ),
        Index("idx_transfer_status", "status"),
        Index("idx_transfer_from", "from_location_id"),
        Index("idx_transfer_to", "to_location_id"),
        Index("idx_transfer_created", "created_at"),
    )

    transfer_number: Mapped[str] = mapped_column(String(40), nullable=False)

    from_location_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=False,
    )
    to_location_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=False,
    )

    status: Mapped[TransferStatus] = mapped_column(
        String(20),
        nullable=False,
        default=TransferStatus.PENDING.value,
    )

    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipped_at: Mapped[datetime | None] = mapped_column(nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["InventoryTransferLine"]] = relationship(
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="InventoryTransferLine.line_number",
    )

    def __repr__(self) -> str:
        return f"<InventoryTransfer {self.transfer_number} [{self.status}]>"


class InventoryTransferLine(Base):
    """One SKU variant and quantity within a transfer."""

    __tablename__ = "inventory_transfer_lines"

    __table_args__ = (
        UniqueConstraint("transfer_id", "line_number", name="uq_transfer_line_number"),
        CheckConstraint("quantity >= 1", name="ck_transfer_line_quantity"),
    )

    transfer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_transfers.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    variant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    source_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=False,
    )

    transfer: Mapped[InventoryTransfer] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<InventoryTransferLine {self.line_number}: {self.sku} x{self.quantity}>"
