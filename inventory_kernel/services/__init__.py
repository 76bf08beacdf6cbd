"""Kernel services - the only code paths that write to the ledger."""

from inventory_kernel.services.base import BaseService
from inventory_kernel.services.ledger_store import LedgerStore
from inventory_kernel.services.location_service import LocationService
from inventory_kernel.services.reservation_engine import ReservationEngine
from inventory_kernel.services.transfer_service import (
    TransferService,
    generate_transfer_number,
)

__all__ = [
    "BaseService",
    "LedgerStore",
    "LocationService",
    "ReservationEngine",
    "TransferService",
    "generate_transfer_number",
]
