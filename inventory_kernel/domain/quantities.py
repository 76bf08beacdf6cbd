"""
Quantity value objects for the inventory ledger.

Responsibility:
    ``StockSnapshot`` is the four-field quantity state of one ledger row at a
    point in time; ``QuantityDelta`` is the linear change an operation applies
    to it. Both are immutable and carry no I/O.

Architecture position:
    Kernel > Domain. Imported by the ledger store (to build the guarded
    UPDATE), the reservation engine, movement records and selectors.
"""

from dataclasses import dataclass, fields

QUANTITY_FIELDS: tuple[str, ...] = ("available", "committed", "on_hand", "reserved")


@dataclass(frozen=True)
class StockSnapshot:
    """Quantities of one inventory row."""

    available: int = 0
    committed: int = 0
    on_hand: int = 0
    reserved: int = 0

    def apply(self, delta: "QuantityDelta") -> "StockSnapshot":
        return StockSnapshot(
            available=self.available + delta.available,
            committed=self.committed + delta.committed,
            on_hand=self.on_hand + delta.on_hand,
            reserved=self.reserved + delta.reserved,
        )

    def revert(self, delta: "QuantityDelta") -> "StockSnapshot":
        return self.apply(delta.negate())

    def negative_fields(self) -> list[str]:
        return [name for name in QUANTITY_FIELDS if getattr(self, name) < 0]

    @property
    def identity_holds(self) -> bool:
        return self.on_hand == self.available + self.reserved

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class QuantityDelta:
    """
    Signed change to each quantity field.

    A delta preserves the accounting identity iff
    ``on_hand == available + reserved`` holds for the delta itself.
    """

    available: int = 0
    committed: int = 0
    on_hand: int = 0
    reserved: int = 0

    @property
    def is_zero(self) -> bool:
        return not any(getattr(self, name) for name in QUANTITY_FIELDS)

    @property
    def preserves_identity(self) -> bool:
        return self.on_hand == self.available + self.reserved

    def negate(self) -> "QuantityDelta":
        return QuantityDelta(
            available=-self.available,
            committed=-self.committed,
            on_hand=-self.on_hand,
            reserved=-self.reserved,
        )

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def alert_flags(
    available: int,
    low_stock_threshold: int,
    out_of_stock_threshold: int,
) -> tuple[bool, bool]:
    """Return (low_stock_alert, out_of_stock_alert) for a given available count."""
    return available <= low_stock_threshold, available <= out_of_stock_threshold
