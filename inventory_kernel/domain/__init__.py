"""
Pure domain layer.

Value objects, enumerations and DTOs with no dependency on the ORM, the
database or the system clock (``SystemClock`` aside).
"""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    AlertSummary,
    InventoryItemInfo,
    LocationInfo,
    MovementInfo,
    MovementResult,
    Page,
    Pagination,
    TransferInfo,
    TransferLineInfo,
    TransferLineSpec,
)
from inventory_kernel.domain.enums import (
    LocationType,
    MovementType,
    ReferenceType,
    RestockType,
    TransferStatus,
)
from inventory_kernel.domain.quantities import (
    QUANTITY_FIELDS,
    QuantityDelta,
    StockSnapshot,
    alert_flags,
)

__all__ = [
    "AlertSummary",
    "Clock",
    "DeterministicClock",
    "InventoryItemInfo",
    "LocationInfo",
    "LocationType",
    "MovementInfo",
    "MovementResult",
    "MovementType",
    "Page",
    "Pagination",
    "QUANTITY_FIELDS",
    "QuantityDelta",
    "ReferenceType",
    "RestockType",
    "StockSnapshot",
    "SystemClock",
    "TransferInfo",
    "TransferLineInfo",
    "TransferLineSpec",
    "TransferStatus",
    "alert_flags",
]
