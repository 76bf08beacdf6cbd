"""Enumerations shared by the ledger models, services and selectors."""

from enum import Enum, unique


@unique
class MovementType(str, Enum):
    """Kind of change recorded by an inventory movement."""

    ADJUSTMENT = "adjustment"
    SALE = "sale"
    RETURN = "return"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    RESTOCK = "restock"
    DAMAGE = "damage"
    THEFT = "theft"
    COUNT = "count"
    RESERVATION = "reservation"
    RELEASE = "release"


# Movement types an admin adjustment may be recorded under.
ADJUSTMENT_MOVEMENT_TYPES = frozenset({
    MovementType.ADJUSTMENT,
    MovementType.DAMAGE,
    MovementType.THEFT,
    MovementType.COUNT,
})


@unique
class ReferenceType(str, Enum):
    """What a movement's reference_id points at."""

    ORDER = "order"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"
    COUNT = "count"
    RETURN = "return"
    MANUAL = "manual"


@unique
class RestockType(str, Enum):
    """Why stock is coming back onto the shelf."""

    RETURN = "return"
    RESTOCK = "restock"


@unique
class TransferStatus(str, Enum):
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TRANSFER_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.PENDING: frozenset({
        TransferStatus.IN_TRANSIT,
        TransferStatus.COMPLETED,
        TransferStatus.CANCELLED,
    }),
    TransferStatus.IN_TRANSIT: frozenset({
        TransferStatus.COMPLETED,
        TransferStatus.CANCELLED,
    }),
    TransferStatus.COMPLETED: frozenset(),
    TransferStatus.CANCELLED: frozenset(),
}


@unique
class LocationType(str, Enum):
    WAREHOUSE = "warehouse"
    STORE = "store"
    SUPPLIER = "supplier"
    FULFILLMENT_CENTER = "fulfillment_center"
