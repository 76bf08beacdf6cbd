"""
ReservationEngine -- the sanctioned mutators of ledger quantities.

Responsibility:
    Adjust, reserve, release, fulfil, restock, count and move stock for
    transfers.  Each operation pairs exactly one guarded quantity UPDATE with
    exactly one movement INSERT inside the caller's transaction.

Architecture position:
    Kernel > Services.  Wraps LedgerStore; used directly by order, fulfillment,
    cancellation, refund and admin flows, and by TransferService.

Effects (available, reserved, committed, on_hand):

    adjust_stock(q)          +q   0   0        +q
    reserve_stock(q)         -q  +q   0         0
    release_reservation(q)   +q  -q   0         0
    commit_fulfillment(q)     0  -q  +q        -q
    restock(q, return)       +q   0  -min(c,q) +q
    restock(q, restock)      +q   0   0        +q
    dispatch_transfer(q)      0  -q   0        -q
    receive_transfer(q)      +q   0   0        +q

Movement ``quantity`` is positive when stock enters the sellable or physical
pool and negative when it leaves it.

Failure modes:
    - InvalidQuantityError: non-integer, zero or negative quantity where a
      positive one is required; unknown restock, movement or reference type.
    - MissingReferenceError: blank reference_id on reserve, release, fulfil
      or restock.
    - InsufficientStockError: available < requested (reserve, negative adjust).
    - OverReleaseError: reserved < requested (release, fulfil, dispatch).
    - ItemNotFoundError: rows are never created implicitly.
    - ConcurrentModificationError: a guarded update lost a race; nothing was
      applied and the whole operation may be retried (``retry_on_conflict``).
"""

from collections.abc import Callable
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from inventory_kernel.config import LedgerConfig
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import MovementResult
from inventory_kernel.domain.enums import (
    ADJUSTMENT_MOVEMENT_TYPES,
    MovementType,
    ReferenceType,
    RestockType,
)
from inventory_kernel.domain.quantities import QuantityDelta
from inventory_kernel.exceptions import (
    ConcurrentModificationError,
    InsufficientStockError,
    InvalidQuantityError,
    InventoryKernelError,
    MissingReferenceError,
    OverReleaseError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.inventory import InventoryItem
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.ledger_store import LedgerStore, ShortfallFactory

logger = get_logger("services.reservation_engine")

T = TypeVar("T")

DEFAULT_ADJUSTMENT_REASON = "Manual adjustment"


def _require_positive(operation: str, quantity: object) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(operation, quantity, "must be an integer")
    if quantity <= 0:
        raise InvalidQuantityError(operation, quantity, "must be greater than zero")
    return quantity


def _reference_type(operation: str, quantity: int, value: object) -> ReferenceType:
    try:
        return ReferenceType(value)
    except ValueError:
        raise InvalidQuantityError(
            operation, quantity,
            f"reference_type must be one of {[t.value for t in ReferenceType]}, got '{value}'",
        ) from None


def _insufficient(item_id: UUID, requested: int) -> ShortfallFactory:
    return lambda current: InsufficientStockError(str(item_id), requested, current.available)


def _over_release(item_id: UUID, requested: int) -> ShortfallFactory:
    return lambda current: OverReleaseError(str(item_id), requested, current.reserved)


class ReservationEngine(BaseService):
    """
    Quantity state machine of the inventory ledger.

    Contract:
        Every public mutator either applies its full effect and writes one
        movement, or raises and leaves the row untouched.  Nothing is
        committed here.

    Guarantees:
        - No overselling: the availability check and the decrement are one
          SQL statement.
        - on_hand == available + reserved after every operation.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        super().__init__(session, clock)
        self.config = config or LedgerConfig.with_defaults()
        self.store = LedgerStore(session, self.clock, self.config)

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def adjust_stock(
        self,
        item_id: UUID,
        quantity: int,
        *,
        reason: str | None = None,
        user_id: UUID | None = None,
        movement_type: MovementType = MovementType.ADJUSTMENT,
        reference_id: str | None = None,
        notes: str | None = None,
    ) -> MovementResult:
        """
        Add (positive) or remove (negative) physical stock.

        Removal may only take what is available; reserved units are spoken for.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidQuantityError("adjust_stock", quantity, "must be an integer")
        if quantity == 0:
            raise InvalidQuantityError("adjust_stock", quantity, "must not be zero")
        try:
            movement_type = MovementType(movement_type)
        except ValueError:
            raise InvalidQuantityError("adjust_stock", quantity, f"unknown movement type '{movement_type}'") from None
        if movement_type not in ADJUSTMENT_MOVEMENT_TYPES:
            raise InvalidQuantityError(
                "adjust_stock", quantity,
                f"movement type '{movement_type.value}' is not an adjustment",
            )

        reference_type = (
            ReferenceType.COUNT if movement_type is MovementType.COUNT else ReferenceType.ADJUSTMENT
        )
        return self._apply(
            operation="adjust_stock",
            event="stock_adjusted",
            item_id=item_id,
            delta=QuantityDelta(available=quantity, on_hand=quantity),
            movement_type=movement_type,
            movement_quantity=quantity,
            reference_type=reference_type,
            reference_id=reference_id or self._adjustment_reference(),
            user_id=user_id,
            reason=reason or DEFAULT_ADJUSTMENT_REASON,
            notes=notes,
            shortfall=_insufficient(item_id, -quantity),
        )

    def reserve_stock(
        self,
        item_id: UUID,
        quantity: int,
        reference_id: str,
        user_id: UUID | None = None,
        *,
        reference_type: ReferenceType = ReferenceType.ORDER,
    ) -> MovementResult:
        """Earmark available stock for an order or outbound transfer."""
        quantity = _require_positive("reserve_stock", quantity)
        self._require_reference("reserve_stock", quantity, reference_id)
        reference_type = _reference_type("reserve_stock", quantity, reference_type)
        return self._apply(
            operation="reserve_stock",
            event="stock_reserved",
            item_id=item_id,
            delta=QuantityDelta(available=-quantity, reserved=quantity),
            movement_type=MovementType.RESERVATION,
            movement_quantity=-quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            user_id=user_id,
            shortfall=_insufficient(item_id, quantity),
        )

    def release_reservation(
        self,
        item_id: UUID,
        quantity: int,
        reference_id: str,
        user_id: UUID | None = None,
        *,
        reference_type: ReferenceType = ReferenceType.ORDER,
    ) -> MovementResult:
        """Return reserved stock to available (order cancelled, transfer cancelled)."""
        quantity = _require_positive("release_reservation", quantity)
        self._require_reference("release_reservation", quantity, reference_id)
        reference_type = _reference_type("release_reservation", quantity, reference_type)
        return self._apply(
            operation="release_reservation",
            event="reservation_released",
            item_id=item_id,
            delta=QuantityDelta(available=quantity, reserved=-quantity),
            movement_type=MovementType.RELEASE,
            movement_quantity=quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            user_id=user_id,
            shortfall=_over_release(item_id, quantity),
        )

    def commit_fulfillment(
        self,
        item_id: UUID,
        quantity: int,
        reference_id: str,
        user_id: UUID | None = None,
    ) -> MovementResult:
        """Ship reserved stock: it leaves on_hand and is counted as committed."""
        quantity = _require_positive("commit_fulfillment", quantity)
        self._require_reference("commit_fulfillment", quantity, reference_id)
        return self._apply(
            operation="commit_fulfillment",
            event="fulfillment_committed",
            item_id=item_id,
            delta=QuantityDelta(reserved=-quantity, committed=quantity, on_hand=-quantity),
            movement_type=MovementType.SALE,
            movement_quantity=-quantity,
            reference_type=ReferenceType.ORDER,
            reference_id=reference_id,
            user_id=user_id,
            shortfall=_over_release(item_id, quantity),
        )

    def restock(
        self,
        item_id: UUID,
        quantity: int,
        reference_id: str,
        restock_type: RestockType | str = RestockType.RESTOCK,
        user_id: UUID | None = None,
        *,
        reference_type: ReferenceType | None = None,
    ) -> MovementResult:
        """
        Put stock back on the shelf.

        A ``return`` also reduces committed by up to ``quantity`` (never below
        zero); a plain ``restock`` leaves committed alone.
        """
        quantity = _require_positive("restock", quantity)
        self._require_reference("restock", quantity, reference_id)
        try:
            restock_type = RestockType(restock_type)
        except ValueError:
            raise InvalidQuantityError(
                "restock", quantity,
                f"restock_type must be one of {[t.value for t in RestockType]}, got '{restock_type}'",
            ) from None

        expected = None
        committed_decrement = 0
        if restock_type is RestockType.RETURN:
            # min(committed, q) is not linear; read committed under lock and
            # guard the update on it.
            observed = self.store.get_by_id(item_id, for_update=True).committed
            committed_decrement = min(observed, quantity)
            expected = {"committed": observed}

        if reference_type is None:
            reference_type = (
                ReferenceType.RETURN if restock_type is RestockType.RETURN else ReferenceType.MANUAL
            )
        else:
            reference_type = _reference_type("restock", quantity, reference_type)

        return self._apply(
            operation="restock",
            event="stock_restocked",
            item_id=item_id,
            delta=QuantityDelta(
                available=quantity,
                on_hand=quantity,
                committed=-committed_decrement,
            ),
            movement_type=(
                MovementType.RETURN if restock_type is RestockType.RETURN else MovementType.RESTOCK
            ),
            movement_quantity=quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            user_id=user_id,
            expected=expected,
        )

    def record_count(
        self,
        item_id: UUID,
        counted_on_hand: int,
        *,
        user_id: UUID | None = None,
        notes: str | None = None,
    ) -> MovementResult | None:
        """
        Reconcile the row with a physical count of on_hand.

        The difference is booked as a ``count`` adjustment against available.
        Returns None (and only stamps last_count_date) when the count matches.
        """
        if isinstance(counted_on_hand, bool) or not isinstance(counted_on_hand, int) or counted_on_hand < 0:
            raise InvalidQuantityError("record_count", counted_on_hand, "must be a non-negative integer")

        observed = self.store.get_by_id(item_id, for_update=True).on_hand
        difference = counted_on_hand - observed
        if difference == 0:
            self.session.execute(
                update(InventoryItem)
                .where(InventoryItem.id == item_id)
                .values({InventoryItem.last_count_date: self.clock.now()})
                .execution_options(synchronize_session=False)
            )
            self.store.get_by_id(item_id)
            logger.info("stock_count_matched", extra={"item_id": str(item_id), "on_hand": observed})
            return None

        return self._apply(
            operation="record_count",
            event="stock_counted",
            item_id=item_id,
            delta=QuantityDelta(available=difference, on_hand=difference),
            movement_type=MovementType.COUNT,
            movement_quantity=difference,
            reference_type=ReferenceType.COUNT,
            reference_id=f"CNT-{self._timestamp_ms()}",
            user_id=user_id,
            reason=f"Physical count {counted_on_hand} (was {observed})",
            notes=notes,
            expected={"on_hand": observed},
            shortfall=_insufficient(item_id, -difference),
            counted=True,
        )

    def dispatch_transfer_stock(
        self,
        item_id: UUID,
        quantity: int,
        reference_id: str,
        user_id: UUID | None = None,
        *,
        unit_cost: Decimal | None = None,
    ) -> MovementResult:
        """Source side of a completed transfer: reserved stock leaves the location."""
        quantity = _require_positive("dispatch_transfer_stock", quantity)
        return self._apply(
            operation="dispatch_transfer_stock",
            event="transfer_stock_dispatched",
            item_id=item_id,
            delta=QuantityDelta(reserved=-quantity, on_hand=-quantity),
            movement_type=MovementType.TRANSFER_OUT,
            movement_quantity=-quantity,
            reference_type=ReferenceType.TRANSFER,
            reference_id=reference_id,
            user_id=user_id,
            unit_cost=unit_cost,
            shortfall=_over_release(item_id, quantity),
        )

    def receive_transfer_stock(
        self,
        item_id: UUID,
        quantity: int,
        reference_id: str,
        user_id: UUID | None = None,
        *,
        unit_cost: Decimal | None = None,
    ) -> MovementResult:
        """Destination side of a completed transfer: stock becomes available."""
        quantity = _require_positive("receive_transfer_stock", quantity)
        return self._apply(
            operation="receive_transfer_stock",
            event="transfer_stock_received",
            item_id=item_id,
            delta=QuantityDelta(available=quantity, on_hand=quantity),
            movement_type=MovementType.TRANSFER_IN,
            movement_quantity=quantity,
            reference_type=ReferenceType.TRANSFER,
            reference_id=reference_id,
            user_id=user_id,
            unit_cost=unit_cost,
        )

    def retry_on_conflict(self, operation: Callable[[], T]) -> T:
        """
        Run ``operation``, re-running it on ConcurrentModificationError up to
        ``config.max_conflict_retries`` more times.

            engine.retry_on_conflict(
                lambda: engine.restock(item_id, 2, "RMA-7", RestockType.RETURN)
            )
        """
        attempts = self.config.max_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return operation()
            except ConcurrentModificationError as exc:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "conflict_retry",
                    extra={
                        "attempt": attempt,
                        "max_attempts": attempts,
                        "entity_id": exc.entity_id,
                    },
                )
        raise AssertionError("unreachable")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _apply(
        self,
        *,
        operation: str,
        event: str,
        item_id: UUID,
        delta: QuantityDelta,
        movement_type: MovementType,
        movement_quantity: int,
        reference_type: ReferenceType,
        reference_id: str | None,
        user_id: UUID | None,
        reason: str | None = None,
        notes: str | None = None,
        unit_cost: Decimal | None = None,
        expected: dict[str, int] | None = None,
        shortfall: ShortfallFactory | None = None,
        counted: bool = False,
    ) -> MovementResult:
        with LogContext.bind(item_id=item_id, reference_id=reference_id, actor_id=user_id):
            # The UPDATE and its movement row share one SAVEPOINT.
            try:
                with self.session.begin_nested():
                    item, before, after = self.store.upsert_quantities(
                        item_id,
                        delta,
                        expected=expected,
                        shortfall=shortfall,
                        counted=counted,
                    )
                    movement = self.store.append_movement(
                        item,
                        movement_type=movement_type,
                        quantity=movement_quantity,
                        before=before,
                        after=after,
                        reference_type=reference_type,
                        reference_id=reference_id,
                        unit_cost=unit_cost,
                        reason=reason,
                        notes=notes,
                        user_id=user_id,
                    )
            except InventoryKernelError as exc:
                logger.warning(
                    f"{operation}_rejected",
                    extra={"error_code": exc.code, "quantity": movement_quantity},
                )
                raise

            logger.info(
                event,
                extra={
                    "movement_id": str(movement.id),
                    "movement_type": movement_type.value,
                    "quantity": movement_quantity,
                    "before": before.as_dict(),
                    "after": after.as_dict(),
                    "low_stock_alert": item.low_stock_alert,
                    "out_of_stock_alert": item.out_of_stock_alert,
                },
            )
            return MovementResult(
                item_id=item.id,
                movement_id=movement.id,
                movement_type=movement_type.value,
                quantity=movement_quantity,
                before=before,
                after=after,
            )

    @staticmethod
    def _require_reference(operation: str, quantity: int, reference_id: str | None) -> None:
        if not reference_id or not str(reference_id).strip():
            raise MissingReferenceError(operation)

    def _timestamp_ms(self) -> int:
        return int(self.clock.now().timestamp() * 1000)

    def _adjustment_reference(self) -> str:
        return f"ADJ-{self._timestamp_ms()}"
