"""
Data transfer objects for the inventory ledger.

Selectors return these frozen dataclasses instead of ORM instances so that
callers outside the kernel never hold a live, session-bound row.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Generic, TypeVar
from uuid import UUID

from inventory_kernel.domain.quantities import StockSnapshot

T = TypeVar("T")

MAX_PAGE_LIMIT = 100


@dataclass(frozen=True)
class Pagination:
    """Page request; ``page`` is 1-based."""

    page: int = 1
    limit: int = 20

    def __post_init__(self):
        if self.page < 1:
            raise ValueError("page must be at least 1")
        if not 1 <= self.limit <= MAX_PAGE_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_PAGE_LIMIT}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


@dataclass(frozen=True)
class LocationInfo:
    id: UUID
    name: str
    location_type: str
    is_active: bool
    street: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    zip_code: str | None = None


@dataclass(frozen=True)
class InventoryItemInfo:
    """Read model of one ledger row."""

    id: UUID
    product_id: UUID
    variant_id: UUID
    location_id: UUID
    sku: str
    quantities: StockSnapshot
    low_stock_threshold: int
    out_of_stock_threshold: int
    low_stock_alert: bool
    out_of_stock_alert: bool
    unit_cost: Decimal
    total_value: Decimal
    version: int
    last_movement_date: datetime | None = None
    last_count_date: datetime | None = None

    @property
    def available(self) -> int:
        return self.quantities.available

    @property
    def reserved(self) -> int:
        return self.quantities.reserved

    @property
    def committed(self) -> int:
        return self.quantities.committed

    @property
    def on_hand(self) -> int:
        return self.quantities.on_hand


@dataclass(frozen=True)
class MovementInfo:
    id: UUID
    inventory_item_id: UUID
    product_id: UUID
    variant_id: UUID
    location_id: UUID
    item_version: int
    movement_type: str
    quantity: int
    quantity_before: StockSnapshot
    quantity_after: StockSnapshot
    reference_type: str
    reference_id: str | None
    unit_cost: Decimal
    total_cost: Decimal
    reason: str | None
    notes: str | None
    user_id: UUID | None
    created_at: datetime


@dataclass(frozen=True)
class TransferLineSpec:
    """One requested line of a new transfer."""

    product_id: UUID
    variant_id: UUID
    quantity: int
    unit_cost: Decimal | None = None


@dataclass(frozen=True)
class TransferLineInfo:
    line_number: int
    product_id: UUID
    variant_id: UUID
    sku: str
    quantity: int
    unit_cost: Decimal
    source_item_id: UUID


@dataclass(frozen=True)
class TransferInfo:
    id: UUID
    transfer_number: str
    from_location_id: UUID
    to_location_id: UUID
    status: str
    lines: tuple[TransferLineInfo, ...] = field(default_factory=tuple)
    tracking_number: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    shipped_at: datetime | None = None
    received_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)


@dataclass(frozen=True)
class AlertSummary:
    low_stock_count: int
    out_of_stock_count: int
    total_alerts: int


@dataclass(frozen=True)
class MovementResult:
    """Outcome of one successful ledger mutation."""

    item_id: UUID
    movement_id: UUID
    movement_type: str
    quantity: int
    before: StockSnapshot
    after: StockSnapshot
