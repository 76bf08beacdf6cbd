"""
TransferService -- moving stock between locations.

Responsibility:
    Create, ship, complete and cancel multi-line transfers.  Creation
    reserves every line at the source; completion removes the reserved stock
    from the source and makes it available at the destination; cancellation
    releases the reservations.

Architecture position:
    Kernel > Services.  Drives ReservationEngine; never touches quantity
    columns itself.

Invariants enforced:
    - All-or-nothing per step: creation, completion and cancellation each run
      inside one SAVEPOINT, so a failing line leaves no line applied.
    - Status transitions follow TRANSFER_TRANSITIONS and are claimed with a
      conditional UPDATE, so two workers cannot both complete (or cancel)
      the same transfer.

Failure modes:
    - InvalidTransferError: same source and destination, no lines, bad line
      quantity, duplicate transfer number.
    - LocationNotFoundError: unknown or inactive location.
    - ItemNotFoundError / InsufficientStockError: a source line cannot be
      reserved; nothing is reserved.
    - TransferNotFoundError, InvalidTransferTransitionError.
"""

import secrets
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from inventory_kernel.config import LedgerConfig
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import TransferLineSpec
from inventory_kernel.domain.enums import (
    TRANSFER_TRANSITIONS,
    ReferenceType,
    TransferStatus,
)
from inventory_kernel.exceptions import (
    InvalidTransferError,
    InvalidTransferTransitionError,
    InventoryKernelError,
    TransferNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.transfer import InventoryTransfer, InventoryTransferLine
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.location_service import LocationService
from inventory_kernel.services.reservation_engine import ReservationEngine

logger = get_logger("services.transfer")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_transfer_number(now: datetime) -> str:
    """``TRF-<base36 epoch millis>-<5 random base36 chars>``, upper-cased."""
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"TRF-{_base36(millis)}-{suffix}".upper()


class TransferService(BaseService):
    """
    Transfer saga between two locations.

    Contract:
        Flushes within the caller's transaction.  Each public step is atomic
        on its own; the caller decides when to commit.

    Non-goals:
        - Partial completion: status is transfer-wide.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        super().__init__(session, clock)
        self.engine = ReservationEngine(session, self.clock, config)
        self.store = self.engine.store
        self.locations = LocationService(session, self.clock)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_transfer(
        self,
        from_location_id: UUID,
        to_location_id: UUID,
        lines: Sequence[TransferLineSpec],
        *,
        created_by_id: UUID | None = None,
        notes: str | None = None,
        transfer_number: str | None = None,
    ) -> InventoryTransfer:
        """Validate and create a pending transfer, reserving every line at the source."""
        if from_location_id == to_location_id:
            raise InvalidTransferError("source and destination locations must differ")
        if not lines:
            raise InvalidTransferError("at least one line is required")
        for n, line in enumerate(lines, start=1):
            qty = line.quantity
            if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
                raise InvalidTransferError(f"line {n}: quantity must be a positive integer")
            if line.unit_cost is not None and Decimal(line.unit_cost) < 0:
                raise InvalidTransferError(f"line {n}: unit_cost cannot be negative")

        self.locations.require_active(from_location_id)
        self.locations.require_active(to_location_id)

        number = transfer_number or generate_transfer_number(self.clock.now())
        exists = self.session.execute(
            select(InventoryTransfer.id).where(InventoryTransfer.transfer_number == number)
        ).first()
        if exists:
            raise InvalidTransferError(f"transfer number {number} already exists")

        with LogContext.bind(reference_id=number, actor_id=created_by_id):
            try:
                with self.session.begin_nested():
                    transfer = InventoryTransfer(
                        transfer_number=number,
                        from_location_id=from_location_id,
                        to_location_id=to_location_id,
                        status=TransferStatus.PENDING.value,
                        notes=notes,
                        created_by_id=created_by_id,
                    )
                    self.session.add(transfer)

                    for n, line in enumerate(lines, start=1):
                        item = self.store.get(line.product_id, line.variant_id, from_location_id)
                        self.engine.reserve_stock(
                            item.id,
                            line.quantity,
                            reference_id=number,
                            user_id=created_by_id,
                            reference_type=ReferenceType.TRANSFER,
                        )
                        transfer.lines.append(
                            InventoryTransferLine(
                                line_number=n,
                                product_id=line.product_id,
                                variant_id=line.variant_id,
                                sku=item.sku,
                                quantity=line.quantity,
                                unit_cost=(
                                    item.unit_cost if line.unit_cost is None
                                    else Decimal(line.unit_cost)
                                ),
                                source_item_id=item.id,
                            )
                        )
                    self.session.flush()
            except InventoryKernelError as exc:
                logger.warning(
                    "transfer_create_rejected",
                    extra={"error_code": exc.code, "line_count": len(lines)},
                )
                raise

            logger.info(
                "transfer_created",
                extra={
                    "transfer_id": str(transfer.id),
                    "from_location_id": str(from_location_id),
                    "to_location_id": str(to_location_id),
                    "line_count": len(transfer.lines),
                    "total_quantity": sum(line.quantity for line in transfer.lines),
                },
            )
        return transfer

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def get_transfer(self, transfer_id: UUID) -> InventoryTransfer:
        transfer = self.session.execute(
            select(InventoryTransfer)
            .where(InventoryTransfer.id == transfer_id)
            .options(selectinload(InventoryTransfer.lines))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if transfer is None:
            raise TransferNotFoundError(str(transfer_id))
        return transfer

    def mark_in_transit(
        self,
        transfer_id: UUID,
        *,
        tracking_number: str | None = None,
        user_id: UUID | None = None,
    ) -> InventoryTransfer:
        """pending -> in_transit; no ledger effect."""
        values: dict = {InventoryTransfer.shipped_at: self.clock.now()}
        if tracking_number is not None:
            values[InventoryTransfer.tracking_number] = tracking_number
        transfer = self._claim(transfer_id, TransferStatus.IN_TRANSIT, values, user_id)
        logger.info(
            "transfer_in_transit",
            extra={"transfer_id": str(transfer_id), "tracking_number": tracking_number},
        )
        return transfer

    def complete_transfer(
        self, transfer_id: UUID, *, user_id: UUID | None = None
    ) -> InventoryTransfer:
        """
        Receive the transfer at its destination.

        Source rows lose the reserved quantity from reserved and on_hand;
        destination rows gain it in available and on_hand, and are
        provisioned (zero stock, source SKU and cost) if missing.
        """
        with LogContext.bind(transfer_id=transfer_id, actor_id=user_id):
            with self.session.begin_nested():
                transfer = self._claim(
                    transfer_id,
                    TransferStatus.COMPLETED,
                    {InventoryTransfer.received_at: self.clock.now()},
                    user_id,
                )
                for line in transfer.lines:
                    self.engine.dispatch_transfer_stock(
                        line.source_item_id,
                        line.quantity,
                        reference_id=transfer.transfer_number,
                        user_id=user_id,
                        unit_cost=line.unit_cost,
                    )
                    destination = self.store.find(
                        line.product_id, line.variant_id, transfer.to_location_id
                    )
                    if destination is None:
                        destination = self.store.provision(
                            line.product_id,
                            line.variant_id,
                            transfer.to_location_id,
                            line.sku,
                            unit_cost=line.unit_cost,
                            created_by_id=user_id,
                        )
                    self.engine.receive_transfer_stock(
                        destination.id,
                        line.quantity,
                        reference_id=transfer.transfer_number,
                        user_id=user_id,
                        unit_cost=line.unit_cost,
                    )

            logger.info(
                "transfer_completed",
                extra={
                    "transfer_number": transfer.transfer_number,
                    "line_count": len(transfer.lines),
                },
            )
        return transfer

    def cancel_transfer(
        self,
        transfer_id: UUID,
        *,
        user_id: UUID | None = None,
        reason: str | None = None,
    ) -> InventoryTransfer:
        """pending | in_transit -> cancelled; every source reservation is released."""
        with LogContext.bind(transfer_id=transfer_id, actor_id=user_id):
            with self.session.begin_nested():
                values: dict = {InventoryTransfer.cancelled_at: self.clock.now()}
                if reason:
                    values[InventoryTransfer.cancellation_reason] = reason
                transfer = self._claim(transfer_id, TransferStatus.CANCELLED, values, user_id)
                for line in transfer.lines:
                    self.engine.release_reservation(
                        line.source_item_id,
                        line.quantity,
                        reference_id=transfer.transfer_number,
                        user_id=user_id,
                        reference_type=ReferenceType.TRANSFER,
                    )

            logger.info(
                "transfer_cancelled",
                extra={"transfer_number": transfer.transfer_number, "reason": reason},
            )
        return transfer

    def _claim(
        self,
        transfer_id: UUID,
        target: TransferStatus,
        values: dict,
        user_id: UUID | None,
    ) -> InventoryTransfer:
        """Move the transfer into ``target`` with a conditional UPDATE on its status."""
        allowed_from = [
            status.value for status, targets in TRANSFER_TRANSITIONS.items()
            if target in targets
        ]
        result = self.session.execute(
            update(InventoryTransfer)
            .where(
                InventoryTransfer.id == transfer_id,
                InventoryTransfer.status.in_(allowed_from),
            )
            .values({
                InventoryTransfer.status: target.value,
                InventoryTransfer.updated_by_id: user_id,
                **values,
            })
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = self.session.execute(
                select(InventoryTransfer.status).where(InventoryTransfer.id == transfer_id)
            ).scalar_one_or_none()
            if current is None:
                raise TransferNotFoundError(str(transfer_id))
            logger.warning(
                "transfer_transition_rejected",
                extra={
                    "transfer_id": str(transfer_id),
                    "from_status": current,
                    "to_status": target.value,
                },
            )
            raise InvalidTransferTransitionError(str(transfer_id), current, target.value)
        return self.get_transfer(transfer_id)
