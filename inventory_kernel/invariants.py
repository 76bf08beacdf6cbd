"""
Ledger Invariants Contract.

These invariants hold for every inventory row at every commit point. They
are enforced by the guarded UPDATE issued by the ledger store, by table
CHECK constraints, and by the immutability listeners and triggers. No
configuration value can switch them off.
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the inventory kernel."""

    NON_NEGATIVE = "non_negative"
    """available, committed, on_hand and reserved are never below zero.
    Enforced by the WHERE clause of every quantity UPDATE and by CHECK
    constraints on inventory_items."""

    ACCOUNTING_IDENTITY = "accounting_identity"
    """on_hand == available + reserved. Every quantity delta the engine
    applies preserves it; a CHECK constraint backs it up."""

    NO_OVERSELL = "no_oversell"
    """Concurrent reservations never take available below zero. The guard
    and the decrement are one statement."""

    MOVEMENT_PAIRING = "movement_pairing"
    """Each successful mutation writes exactly one movement whose
    quantity_after matches the row; a failed mutation writes none."""

    APPEND_ONLY_MOVEMENTS = "append_only_movements"
    """Movement rows are never updated or deleted. Enforced by ORM
    listeners and database triggers."""

    ALERT_CONSISTENCY = "alert_consistency"
    """low_stock_alert and out_of_stock_alert always reflect available
    against the row's thresholds. Recomputed in the same UPDATE."""


ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# The kernel package may not import from these packages.
# Enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "inventory_services",
)
