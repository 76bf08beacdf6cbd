"""
inventory_services.reconciliation_service -- Ledger consistency and leaked-reservation report.

Responsibility:
    Cross-checks the ledger rows against the movement log and reports:
      - rows violating on_hand == available + reserved;
      - rows whose latest movement's after-snapshot differs from the row;
      - rows whose version does not match their movement count
        (each quantity change bumps the version and writes one movement);
      - order reservations older than a cutoff with stock still held
        (reserved, never released or sold).

Architecture position:
    Services -- external collaborator over the kernel.  Uses kernel models
    and selectors; the kernel never imports this package.

Invariants enforced:
    - Read-only: no ledger row or movement is written, and the session is
      never flushed or committed.

Audit relevance:
    Reservations never expire on their own.  This report is how leaked
    reservations (a crashed order flow that reserved and never released)
    are found and handed to an operator.

Usage:
    service = StockReconciliationService(session)
    report = service.reconcile(stale_after=timedelta(hours=24))
    if not report.is_clean:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session

from inventory_kernel.config import LedgerConfig
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.enums import MovementType, ReferenceType
from inventory_kernel.domain.quantities import StockSnapshot
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory import InventoryItem, InventoryMovement

logger = get_logger("services.reconciliation")


@dataclass(frozen=True)
class ItemDiscrepancy:
    """One ledger row that disagrees with itself or with its history."""

    item_id: UUID
    sku: str
    check: str
    row: StockSnapshot
    expected: StockSnapshot | None = None
    detail: str = ""


@dataclass(frozen=True)
class StaleReservation:
    """Stock still held for an order reference past the cutoff."""

    item_id: UUID
    reference_id: str
    outstanding: int
    reserved_at: datetime


@dataclass(frozen=True)
class ReconciliationReport:
    checked_at: datetime
    stale_cutoff: datetime
    items_checked: int
    identity_violations: tuple[ItemDiscrepancy, ...] = field(default_factory=tuple)
    snapshot_mismatches: tuple[ItemDiscrepancy, ...] = field(default_factory=tuple)
    version_mismatches: tuple[ItemDiscrepancy, ...] = field(default_factory=tuple)
    stale_reservations: tuple[StaleReservation, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        return not (
            self.identity_violations
            or self.snapshot_mismatches
            or self.version_mismatches
            or self.stale_reservations
        )

    @property
    def stale_quantity(self) -> int:
        return sum(r.outstanding for r in self.stale_reservations)


class StockReconciliationService:
    """Read-only consistency checks over the ledger and its movement log.

    Contract:
        - ``reconcile()`` runs every check and returns a frozen report.
        - Each check is also callable on its own.

    Non-goals:
        - Does NOT repair anything; releasing a leaked reservation is an
          operator decision made through ReservationEngine.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or LedgerConfig.with_defaults()

    def reconcile(self, stale_after: timedelta | None = None) -> ReconciliationReport:
        if stale_after is None:
            stale_after = timedelta(hours=self._config.stale_reservation_hours)
        now = self._clock.now()
        cutoff = now - stale_after

        logger.info("stock_reconciliation_started", extra={
            "stale_cutoff": cutoff.isoformat(),
        })

        items_checked = self._session.execute(
            select(func.count()).select_from(InventoryItem)
        ).scalar_one()

        report = ReconciliationReport(
            checked_at=now,
            stale_cutoff=cutoff,
            items_checked=items_checked,
            identity_violations=tuple(self.find_identity_violations()),
            snapshot_mismatches=tuple(self.find_snapshot_mismatches()),
            version_mismatches=tuple(self.find_version_mismatches()),
            stale_reservations=tuple(self.find_stale_reservations(cutoff)),
        )

        for d in report.identity_violations + report.snapshot_mismatches + report.version_mismatches:
            logger.warning("stock_reconciliation_discrepancy", extra={
                "item_id": str(d.item_id),
                "sku": d.sku,
                "check": d.check,
                "detail": d.detail,
            })
        for r in report.stale_reservations:
            logger.warning("stock_reconciliation_stale_reservation", extra={
                "item_id": str(r.item_id),
                "reference_id": r.reference_id,
                "outstanding": r.outstanding,
                "reserved_at": r.reserved_at.isoformat(),
            })

        logger.info("stock_reconciliation_completed", extra={
            "items_checked": items_checked,
            "identity_violations": len(report.identity_violations),
            "snapshot_mismatches": len(report.snapshot_mismatches),
            "version_mismatches": len(report.version_mismatches),
            "stale_reservations": len(report.stale_reservations),
            "stale_quantity": report.stale_quantity,
            "is_clean": report.is_clean,
        })
        return report

    # -----------------------------------------------------------------
    # Checks
    # -----------------------------------------------------------------

    def find_identity_violations(self) -> list[ItemDiscrepancy]:
        rows = self._session.execute(
            select(InventoryItem)
            .where(InventoryItem.on_hand != InventoryItem.available + InventoryItem.reserved)
            .order_by(InventoryItem.sku)
            .execution_options(populate_existing=True)
        ).scalars()
        return [
            ItemDiscrepancy(
                item_id=item.id,
                sku=item.sku,
                check="accounting_identity",
                row=item.quantities,
                detail=(
                    f"on_hand {item.on_hand} != available {item.available} "
                    f"+ reserved {item.reserved}"
                ),
            )
            for item in rows
        ]

    def find_snapshot_mismatches(self) -> list[ItemDiscrepancy]:
        """Rows whose current quantities differ from their latest movement's after-snapshot."""
        M = InventoryMovement
        rows = self._session.execute(
            select(InventoryItem, M)
            .join(
                M,
                and_(
                    M.inventory_item_id == InventoryItem.id,
                    M.item_version == InventoryItem.version,
                ),
            )
            .order_by(InventoryItem.sku)
            .execution_options(populate_existing=True)
        ).all()

        found = []
        for item, movement in rows:
            expected = movement.quantity_after
            if item.quantities != expected:
                found.append(ItemDiscrepancy(
                    item_id=item.id,
                    sku=item.sku,
                    check="latest_movement_snapshot",
                    row=item.quantities,
                    expected=expected,
                    detail=f"movement {movement.id} at version {movement.item_version}",
                ))
        return found

    def find_version_mismatches(self) -> list[ItemDiscrepancy]:
        """Rows where ``version - 1`` differs from the number of movements."""
        counts = (
            select(
                InventoryMovement.inventory_item_id.label("item_id"),
                func.count().label("movement_count"),
            )
            .group_by(InventoryMovement.inventory_item_id)
            .subquery()
        )
        movement_count = func.coalesce(counts.c.movement_count, 0)
        rows = self._session.execute(
            select(InventoryItem, movement_count)
            .outerjoin(counts, counts.c.item_id == InventoryItem.id)
            .where(InventoryItem.version - 1 != movement_count)
            .order_by(InventoryItem.sku)
            .execution_options(populate_existing=True)
        ).all()
        return [
            ItemDiscrepancy(
                item_id=item.id,
                sku=item.sku,
                check="version_movement_count",
                row=item.quantities,
                detail=f"version {item.version} but {count} movement(s)",
            )
            for item, count in rows
        ]

    def find_stale_reservations(self, cutoff: datetime) -> list[StaleReservation]:
        """
        Order references still holding stock whose first reservation predates ``cutoff``.

        Outstanding = reserved - released - sold, per (item, reference).
        Reservation and sale movements carry negative quantities.
        """
        M = InventoryMovement
        reserved = func.sum(case((M.movement_type == MovementType.RESERVATION.value, -M.quantity), else_=0))
        released = func.sum(case((M.movement_type == MovementType.RELEASE.value, M.quantity), else_=0))
        sold = func.sum(case((M.movement_type == MovementType.SALE.value, -M.quantity), else_=0))
        reserved_at = func.min(
            case((M.movement_type == MovementType.RESERVATION.value, M.created_at))
        )
        outstanding = (reserved - released - sold).label("outstanding")

        rows = self._session.execute(
            select(
                M.inventory_item_id,
                M.reference_id,
                outstanding,
                reserved_at.label("reserved_at"),
            )
            .where(
                M.reference_type == ReferenceType.ORDER.value,
                M.reference_id.is_not(None),
                M.movement_type.in_([
                    MovementType.RESERVATION.value,
                    MovementType.RELEASE.value,
                    MovementType.SALE.value,
                ]),
            )
            .group_by(M.inventory_item_id, M.reference_id)
            .having(reserved - released - sold > 0)
            .having(reserved_at < cutoff)
            .order_by(reserved_at, M.reference_id)
        ).all()

        return [
            StaleReservation(
                item_id=item_id,
                reference_id=reference_id,
                outstanding=int(held),
                reserved_at=first_reserved,
            )
            for item_id, reference_id, held, first_reserved in rows
        ]
