"""ORM models for the inventory kernel."""

from inventory_kernel.models.inventory import InventoryItem, InventoryMovement
from inventory_kernel.models.location import Location
from inventory_kernel.models.transfer import InventoryTransfer, InventoryTransferLine

__all__ = [
    "InventoryItem",
    "InventoryMovement",
    "InventoryTransfer",
    "InventoryTransferLine",
    "Location",
]
