"""
Inventory Kernel

A multi-location inventory ledger with:
- Four-quantity rows (available, reserved, committed, on_hand) per SKU variant
  and location
- Atomic guarded updates that never oversell under concurrency
- An append-only movement log with before/after snapshots
- Reservation, fulfillment, restock and adjustment operations
- Transfers between locations, all lines or none
"""

__version__ = "0.1.0"
