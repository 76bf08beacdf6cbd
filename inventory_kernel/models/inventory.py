"""
Module: inventory_kernel.models.inventory
Responsibility: ORM persistence for inventory ledger rows and the
    append-only movement log.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    NON_NEGATIVE        -- CHECK constraints on all four quantity columns.
    ACCOUNTING_IDENTITY -- CHECK (on_hand = available + reserved).
    One row per (product_id, variant_id, location_id) via uq_inventory_item_triple.

Failure modes:
    - IntegrityError if a raw write breaks a CHECK or the unique triple.
    - ImmutabilityViolationError (db/immutability.py) on any ORM update or
      delete of an InventoryMovement.
    - DirectQuantityWriteError (db/immutability.py) on an ORM flush that
      changes a quantity column of an InventoryItem.

Audit relevance:
    InventoryMovement rows are the audit trail of every quantity change.
    Each row stores the full four-field state before and after the change,
    so the history of any item can be replayed without the ledger row.
    Movements reference their item with ON DELETE RESTRICT; an item with
    history cannot be deleted.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.domain.enums import MovementType, ReferenceType
from inventory_kernel.domain.quantities import StockSnapshot


class InventoryItem(TrackedBase):
    """
    Quantity state of one SKU variant at one location.

    Contract:
        Quantity columns are changed only by LedgerStore.upsert_quantities,
        which issues a guarded SQL UPDATE. ORM attribute writes to them are
        refused at flush time.

    Guarantees:
        - available, committed, on_hand, reserved >= 0.
        - on_hand == available + reserved.
        - low_stock_alert / out_of_stock_alert and total_value are recomputed
          in the same statement as every quantity change.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint(
            "product_id", "variant_id", "location_id",
            name="uq_inventory_item_triple",
        ),
        CheckConstraint("available >= 0", name="ck_inventory_item_available"),
        CheckConstraint("committed >= 0", name="ck_inventory_item_committed"),
        CheckConstraint("on_hand >= 0", name="ck_inventory_item_on_hand"),
        CheckConstraint("reserved >= 0", name="ck_inventory_item_reserved"),
        CheckConstraint(
            "on_hand = available + reserved",
            name="ck_inventory_item_identity",
        ),
        CheckConstraint(
            "low_stock_threshold >= 0 AND out_of_stock_threshold >= 0",
            name="ck_inventory_item_thresholds",
        ),
        Index("idx_inventory_item_location_sku", "location_id", "sku"),
        Index("idx_inventory_item_product", "product_id"),
        Index("idx_inventory_item_alerts", "low_stock_alert", "out_of_stock_alert"),
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    variant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    location_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=False,
    )
    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    # Quantities
    available: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    committed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    on_hand: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Alerts
    low_stock_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    out_of_stock_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    low_stock_alert: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    out_of_stock_alert: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Valuation
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    last_count_date: Mapped[datetime | None] = mapped_column(nullable=True)
    last_movement_date: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    @property
    def quantities(self) -> StockSnapshot:
        return StockSnapshot(
            available=self.available,
            committed=self.committed,
            on_hand=self.on_hand,
            reserved=self.reserved,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryItem {self.sku} @ {self.location_id}: "
            f"available={self.available} reserved={self.reserved} "
            f"committed={self.committed} on_hand={self.on_hand}>"
        )


class InventoryMovement(Base):
    """
    One immutable entry in the movement log.

    ``quantity`` is the signed primary delta: positive when stock enters the
    sellable or physical pool (release, restock, transfer_in), negative when
    it leaves (reservation, sale, transfer_out).
    Before/after snapshots are stored as flat columns.  ``item_version`` is the
    ledger row's version after the change; (item, version) is unique, so
    each quantity change has exactly one movement.
    """

    __tablename__ = "inventory_movements"

    __table_args__ = (
        UniqueConstraint(
            "inventory_item_id", "item_version",
            name="uq_movement_item_version",
        ),
        Index("idx_movement_item_created", "inventory_item_id", "created_at"),
        Index("idx_movement_product", "product_id"),
        Index("idx_movement_location_created", "location_id", "created_at"),
        Index("idx_movement_reference", "reference_type", "reference_id"),
        Index("idx_movement_type", "movement_type"),
    )

    inventory_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=False,
    )
    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    variant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    location_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Row version produced by this change; orders an item's history.
    item_version: Mapped[int] = mapped_column(Integer, nullable=False)

    movement_type: Mapped[MovementType] = mapped_column(String(32), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    before_available: Mapped[int] = mapped_column(Integer, nullable=False)
    before_committed: Mapped[int] = mapped_column(Integer, nullable=False)
    before_on_hand: Mapped[int] = mapped_column(Integer, nullable=False)
    before_reserved: Mapped[int] = mapped_column(Integer, nullable=False)
    after_available: Mapped[int] = mapped_column(Integer, nullable=False)
    after_committed: Mapped[int] = mapped_column(Integer, nullable=False)
    after_on_hand: Mapped[int] = mapped_column(Integer, nullable=False)
    after_reserved: Mapped[int] = mapped_column(Integer, nullable=False)

    reference_type: Mapped[ReferenceType] = mapped_column(String(32), nullable=False)
    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    @property
    def quantity_before(self) -> StockSnapshot:
        return StockSnapshot(
            available=self.before_available,
            committed=self.before_committed,
            on_hand=self.before_on_hand,
            reserved=self.before_reserved,
        )

    @property
    def quantity_after(self) -> StockSnapshot:
        return StockSnapshot(
            available=self.after_available,
            committed=self.after_committed,
            on_hand=self.after_on_hand,
            reserved=self.after_reserved,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryMovement {self.movement_type} {self.quantity:+d} "
            f"item={self.inventory_item_id} ref={self.reference_id}>"
        )
