"""
inventory_services -- Package init and public API.

Responsibility:
    Jobs and collaborators built on top of the inventory kernel.

Architecture position:
    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        inventory_services/ -> inventory_kernel/   (allowed)
        inventory_kernel/   -> inventory_services/ (FORBIDDEN)
"""

from inventory_services.reconciliation_service import (
    ItemDiscrepancy,
    ReconciliationReport,
    StaleReservation,
    StockReconciliationService,
)

__all__ = [
    "ItemDiscrepancy",
    "ReconciliationReport",
    "StaleReservation",
    "StockReconciliationService",
]
