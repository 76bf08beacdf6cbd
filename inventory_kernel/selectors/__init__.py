"""Read-only selectors returning frozen DTOs."""

from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.inventory_selector import (
    ITEM_SORT_FIELDS,
    InventorySelector,
    ItemFilter,
)
from inventory_kernel.selectors.location_selector import LocationSelector
from inventory_kernel.selectors.movement_selector import (
    MOVEMENT_SORT_FIELDS,
    MovementFilter,
    MovementSelector,
)
from inventory_kernel.selectors.transfer_selector import TransferFilter, TransferSelector

__all__ = [
    "BaseSelector",
    "ITEM_SORT_FIELDS",
    "InventorySelector",
    "ItemFilter",
    "LocationSelector",
    "MOVEMENT_SORT_FIELDS",
    "MovementFilter",
    "MovementSelector",
    "TransferFilter",
    "TransferSelector",
]
