"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (order creation, fulfillment, cancellation, admin
adjustment) must react to failures precisely: an order form shows "only 3
left", a retry loop re-runs on a lost race, an admin screen refuses a delete.
Parsing message strings for any of that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        engine.reserve_stock(item_id, 5, reference_id=order_number)
    except InsufficientStockError as e:
        return {"error": e.code, "requested": e.requested,
                "available": e.available}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- LedgerError
    |   +-- ItemNotFoundError
    |   +-- DuplicateItemError
    |   +-- ItemReferencedError
    |   +-- InvalidQuantityError
    |   +-- MissingReferenceError
    |   +-- InvalidItemError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- OverReleaseError
    |
    +-- InvariantError
    |   +-- InvariantViolationError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |   +-- DirectQuantityWriteError
    |
    +-- LocationError
    |   +-- LocationNotFoundError
    |   +-- InvalidLocationError
    |
    +-- TransferError
        +-- TransferNotFoundError
        +-- InvalidTransferError
        +-- InvalidTransferTransitionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Ledger          | ITEM_NOT_FOUND              | No ledger row for the item / triple
                | DUPLICATE_ITEM              | Triple already provisioned
                | ITEM_REFERENCED             | Delete refused, movements exist
                | INVALID_QUANTITY            | Zero / non-positive / bad restock or reference type
                | MISSING_REFERENCE           | reserve/release/fulfil/restock without reference
                | INVALID_ITEM                | Blank SKU on provision or settings update
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | available < requested
                | OVER_RELEASE                | reserved < requested
----------------|-----------------------------|-----------------------------------------
Invariant       | INVARIANT_VIOLATION         | Negative field or broken identity
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENT_MODIFICATION     | Guarded update lost a race
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of a movement record
                | DIRECT_QUANTITY_WRITE       | Quantity field written outside engine
----------------|-----------------------------|-----------------------------------------
Location        | LOCATION_NOT_FOUND          | Unknown or inactive location
                | INVALID_LOCATION            | Missing name / bad location type
----------------|-----------------------------|-----------------------------------------
Transfer        | TRANSFER_NOT_FOUND          | Unknown transfer
                | INVALID_TRANSFER            | Bad locations or lines
                | INVALID_TRANSFER_TRANSITION | Status change not allowed

===============================================================================
HANDLING PATTERNS
===============================================================================

1. StockError -> user-facing ("only N left", "nothing to release").
2. ConcurrencyError -> safe to retry the whole operation; nothing applied.
3. InvariantError / ImmutabilityError -> bug or tampering; log and alert.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Ledger-related exceptions


class LedgerError(InventoryKernelError):
    """Base exception for ledger row errors."""

    code: str = "LEDGER_ERROR"


class ItemNotFoundError(LedgerError):
    """No inventory item matches the given id or (product, variant, location)."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_ref: str):
        self.item_ref = item_ref
        super().__init__(f"Inventory item not found: {item_ref}")


class DuplicateItemError(LedgerError):
    """The (product, variant, location) triple already has a ledger row."""

    code: str = "DUPLICATE_ITEM"

    def __init__(self, product_id: str, variant_id: str, location_id: str):
        self.product_id = product_id
        self.variant_id = variant_id
        self.location_id = location_id
        super().__init__(
            f"Inventory item already exists for product {product_id}, "
            f"variant {variant_id} at location {location_id}"
        )


class ItemReferencedError(LedgerError):
    """Item cannot be deleted because movements reference it."""

    code: str = "ITEM_REFERENCED"

    def __init__(self, item_id: str, movement_count: int):
        self.item_id = item_id
        self.movement_count = movement_count
        super().__init__(
            f"Inventory item {item_id} cannot be deleted: "
            f"referenced by {movement_count} movement(s)"
        )


class InvalidQuantityError(LedgerError):
    """Quantity argument is not acceptable for the operation."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, operation: str, quantity: object, reason: str):
        self.operation = operation
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity!r} for {operation}: {reason}")


class MissingReferenceError(LedgerError):
    """Operation requires a reference_id (order number, transfer number, RMA)."""

    code: str = "MISSING_REFERENCE"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} requires a reference_id")


class InvalidItemError(LedgerError):
    """A non-quantity item attribute is invalid."""

    code: str = "INVALID_ITEM"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid item {field}: {reason}")


# Stock-related exceptions


class StockError(InventoryKernelError):
    """Base exception for stock precondition failures."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """
    Not enough available stock.

    Carries requested vs. available so callers can show "only N left".
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: str, requested: int, available: int):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for item {item_id}: "
            f"requested {requested}, available {available}"
        )


class OverReleaseError(StockError):
    """Release or fulfillment asked for more than is reserved."""

    code: str = "OVER_RELEASE"

    def __init__(self, item_id: str, requested: int, reserved: int):
        self.item_id = item_id
        self.requested = requested
        self.reserved = reserved
        super().__init__(
            f"Cannot release {requested} from item {item_id}: "
            f"only {reserved} reserved"
        )


# Invariant exceptions


class InvariantError(InventoryKernelError):
    """Base exception for ledger invariant failures."""

    code: str = "INVARIANT_ERROR"


class InvariantViolationError(InvariantError):
    """A mutation would leave the ledger in an invalid state."""

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, item_id: str, invariant: str, detail: str):
        self.item_id = item_id
        self.invariant = invariant
        self.detail = detail
        super().__init__(
            f"Invariant {invariant} violated on item {item_id}: {detail}"
        )


# Concurrency-related exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """Guarded update matched no row although its preconditions held."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}: "
            "row was changed by another transaction"
        )


# Immutability-related exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class DirectQuantityWriteError(ImmutabilityError):
    """Quantity fields were written through the ORM instead of the engine."""

    code: str = "DIRECT_QUANTITY_WRITE"

    def __init__(self, item_id: str, fields: list[str]):
        self.item_id = item_id
        self.fields = fields
        super().__init__(
            f"Direct write to quantity fields {', '.join(fields)} on item "
            f"{item_id}; use the reservation engine"
        )


# Location-related exceptions


class LocationError(InventoryKernelError):
    """Base exception for location errors."""

    code: str = "LOCATION_ERROR"


class LocationNotFoundError(LocationError):
    """Location does not exist or is inactive."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Location not found: {location_id}")


class InvalidLocationError(LocationError):
    """Location attributes are invalid."""

    code: str = "INVALID_LOCATION"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid location: {reason}")


# Transfer-related exceptions


class TransferError(InventoryKernelError):
    """Base exception for transfer errors."""

    code: str = "TRANSFER_ERROR"


class TransferNotFoundError(TransferError):
    """Transfer does not exist."""

    code: str = "TRANSFER_NOT_FOUND"

    def __init__(self, transfer_ref: str):
        self.transfer_ref = transfer_ref
        super().__init__(f"Transfer not found: {transfer_ref}")


class InvalidTransferError(TransferError):
    """Transfer request is malformed."""

    code: str = "INVALID_TRANSFER"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid transfer: {reason}")


class InvalidTransferTransitionError(TransferError):
    """Transfer status change is not allowed."""

    code: str = "INVALID_TRANSFER_TRANSITION"

    def __init__(self, transfer_id: str, from_status: str, to_status: str):
        self.transfer_id = transfer_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Transfer {transfer_id} cannot move from {from_status} to {to_status}"
        )
