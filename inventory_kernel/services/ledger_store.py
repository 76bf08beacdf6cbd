"""
LedgerStore -- durable quantity rows and the movement log.

Responsibility:
    Owns every write to ``inventory_items`` and ``inventory_movements``.
    Quantities change only through ``upsert_quantities``, which issues one
    guarded SQL UPDATE; the movement log grows only through
    ``append_movement``.

Architecture position:
    Kernel > Services.  Used by ReservationEngine and TransferService;
    callers outside the kernel go through those.

Invariants enforced:
    NON_NEGATIVE        -- the UPDATE's WHERE clause requires every decreased
                           field to stay >= 0; zero matched rows means the
                           change was not applied.
    ACCOUNTING_IDENTITY -- deltas that do not preserve
                           on_hand == available + reserved are refused
                           before any SQL is issued.
    ALERT_CONSISTENCY   -- alerts, total_value, last_movement_date and
                           version are set in the same UPDATE.

Failure modes:
    - ItemNotFoundError: no row for the id or triple.
    - DuplicateItemError: provisioning an existing triple.
    - InvariantViolationError: a delta that breaks the identity, or drives a
      field negative when the caller supplied no specific error.
    - ConcurrentModificationError: the guards held on re-read but the
      UPDATE matched nothing (another transaction won).
    - ItemReferencedError: deleting an item with movement history.
    - InvalidItemError: a blank SKU on provision or settings update.

Audit relevance:
    Before/after snapshots are derived from the row as it stands after the
    UPDATE, which this transaction now holds locked: ``before`` is
    ``after - delta`` and is therefore exact.
"""

from collections.abc import Callable, Mapping
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.config import LedgerConfig
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import MovementInfo, Page, Pagination
from inventory_kernel.domain.enums import MovementType, ReferenceType
from inventory_kernel.domain.quantities import (
    QUANTITY_FIELDS,
    QuantityDelta,
    StockSnapshot,
    alert_flags,
)
from inventory_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateItemError,
    InvalidItemError,
    InvalidQuantityError,
    InvariantViolationError,
    ItemNotFoundError,
    ItemReferencedError,
)
from inventory_kernel.invariants import LedgerInvariant
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory import InventoryItem, InventoryMovement
from inventory_kernel.selectors.movement_selector import MovementFilter, MovementSelector
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.location_service import LocationService

logger = get_logger("services.ledger_store")

ShortfallFactory = Callable[[StockSnapshot], Exception]

_COLUMNS = {name: getattr(InventoryItem, name) for name in QUANTITY_FIELDS}


class LedgerStore(BaseService):
    """
    Storage boundary of the ledger.

    Contract:
        Flushes within the caller's transaction; never commits.

    Non-goals:
        - Business preconditions (reserve needs available >= qty, ...) are
          expressed by the engine as deltas and shortfall factories.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        super().__init__(session, clock)
        self.config = config or LedgerConfig.with_defaults()

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def find(
        self, product_id: UUID, variant_id: UUID, location_id: UUID
    ) -> InventoryItem | None:
        return self.session.execute(
            select(InventoryItem).where(
                InventoryItem.product_id == product_id,
                InventoryItem.variant_id == variant_id,
                InventoryItem.location_id == location_id,
            )
        ).scalar_one_or_none()

    def get(self, product_id: UUID, variant_id: UUID, location_id: UUID) -> InventoryItem:
        item = self.find(product_id, variant_id, location_id)
        if item is None:
            raise ItemNotFoundError(
                f"product={product_id} variant={variant_id} location={location_id}"
            )
        return item

    def get_by_id(self, item_id: UUID, *, for_update: bool = False) -> InventoryItem:
        """Load an item with fresh column values, optionally row-locked."""
        stmt = select(InventoryItem).where(InventoryItem.id == item_id)
        if for_update:
            stmt = stmt.with_for_update()
        item = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def count_movements(self, item_id: UUID) -> int:
        return self.session.execute(
            select(func.count(InventoryMovement.id)).where(
                InventoryMovement.inventory_item_id == item_id
            )
        ).scalar_one()

    def list_movements(
        self,
        movement_filter: MovementFilter | None = None,
        pagination: Pagination | None = None,
    ) -> Page[MovementInfo]:
        """Newest-first page of the movement log; see MovementSelector."""
        return MovementSelector(self.session).list_movements(movement_filter, pagination)

    # -------------------------------------------------------------------------
    # Provisioning and settings
    # -------------------------------------------------------------------------

    def provision(
        self,
        product_id: UUID,
        variant_id: UUID,
        location_id: UUID,
        sku: str,
        *,
        quantity: int = 0,
        low_stock_threshold: int | None = None,
        out_of_stock_threshold: int | None = None,
        unit_cost: Decimal = Decimal("0"),
        created_by_id: UUID | None = None,
    ) -> InventoryItem:
        """
        Create the ledger row for a (product, variant, location) triple.

        An opening quantity is applied as a ``restock`` movement so the
        row's history starts from zero.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise InvalidQuantityError("provision", quantity, "must be a non-negative integer")
        if not sku or not sku.strip():
            raise InvalidItemError("sku", "sku is required")

        low = self.config.default_low_stock_threshold if low_stock_threshold is None else low_stock_threshold
        out = self.config.default_out_of_stock_threshold if out_of_stock_threshold is None else out_of_stock_threshold
        if low < 0 or out < 0:
            raise InvalidQuantityError("provision", quantity, "thresholds cannot be negative")
        unit_cost = Decimal(unit_cost)
        if unit_cost < 0:
            raise InvalidQuantityError("provision", quantity, "unit_cost cannot be negative")

        LocationService(self.session, self.clock).require_active(location_id)
        if self.find(product_id, variant_id, location_id) is not None:
            raise DuplicateItemError(str(product_id), str(variant_id), str(location_id))

        low_alert, out_alert = alert_flags(0, low, out)
        item = InventoryItem(
            product_id=product_id,
            variant_id=variant_id,
            location_id=location_id,
            sku=sku.strip(),
            available=0,
            committed=0,
            on_hand=0,
            reserved=0,
            low_stock_threshold=low,
            out_of_stock_threshold=out,
            low_stock_alert=low_alert,
            out_of_stock_alert=out_alert,
            unit_cost=unit_cost,
            total_value=Decimal("0"),
            version=1,
            created_by_id=created_by_id,
        )

        # Savepoint so a concurrent provisioner's win leaves our transaction usable.
        try:
            with self.session.begin_nested():
                self.session.add(item)
                self.session.flush()
        except IntegrityError:
            logger.info(
                "item_provision_race_lost",
                extra={"product_id": str(product_id), "location_id": str(location_id)},
            )
            raise DuplicateItemError(str(product_id), str(variant_id), str(location_id)) from None

        logger.info(
            "item_provisioned",
            extra={
                "item_id": str(item.id),
                "sku": item.sku,
                "location_id": str(location_id),
                "opening_quantity": quantity,
            },
        )

        if quantity:
            item, before, after = self.upsert_quantities(
                item.id, QuantityDelta(available=quantity, on_hand=quantity)
            )
            self.append_movement(
                item,
                movement_type=MovementType.RESTOCK,
                quantity=quantity,
                before=before,
                after=after,
                reference_type=ReferenceType.MANUAL,
                reference_id=f"OPEN-{item.id}",
                reason="Opening balance",
                user_id=created_by_id,
            )
        return item

    def update_settings(
        self,
        item_id: UUID,
        *,
        sku: str | None = None,
        low_stock_threshold: int | None = None,
        out_of_stock_threshold: int | None = None,
        unit_cost: Decimal | None = None,
        updated_by_id: UUID | None = None,
    ) -> InventoryItem:
        """
        Change non-quantity fields; alerts and total_value are recomputed in
        SQL from the row's current quantities.
        """
        if sku is not None and not sku.strip():
            raise InvalidItemError("sku", "sku cannot be blank")
        for name, value in (
            ("low_stock_threshold", low_stock_threshold),
            ("out_of_stock_threshold", out_of_stock_threshold),
        ):
            if value is not None and value < 0:
                raise InvalidQuantityError("update_settings", value, f"{name} cannot be negative")
        if unit_cost is not None and Decimal(unit_cost) < 0:
            raise InvalidQuantityError("update_settings", unit_cost, "unit_cost cannot be negative")

        low_expr = InventoryItem.low_stock_threshold if low_stock_threshold is None else low_stock_threshold
        out_expr = InventoryItem.out_of_stock_threshold if out_of_stock_threshold is None else out_of_stock_threshold

        values: dict = {
            InventoryItem.low_stock_alert: InventoryItem.available <= low_expr,
            InventoryItem.out_of_stock_alert: InventoryItem.available <= out_expr,
            InventoryItem.updated_by_id: updated_by_id,
        }
        if sku is not None:
            values[InventoryItem.sku] = sku.strip()
        if low_stock_threshold is not None:
            values[InventoryItem.low_stock_threshold] = low_stock_threshold
        if out_of_stock_threshold is not None:
            values[InventoryItem.out_of_stock_threshold] = out_of_stock_threshold
        if unit_cost is not None:
            values[InventoryItem.unit_cost] = Decimal(unit_cost)
            values[InventoryItem.total_value] = InventoryItem.on_hand * Decimal(unit_cost)

        result = self.session.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item_id)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ItemNotFoundError(str(item_id))

        item = self.get_by_id(item_id)
        logger.info(
            "item_settings_updated",
            extra={
                "item_id": str(item_id),
                "low_stock_threshold": item.low_stock_threshold,
                "out_of_stock_threshold": item.out_of_stock_threshold,
                "unit_cost": item.unit_cost,
            },
        )
        return item

    def delete_item(self, item_id: UUID) -> None:
        """Delete an item that has never moved; refuse otherwise."""
        item = self.get_by_id(item_id)
        movement_count = self.count_movements(item_id)
        if movement_count:
            logger.warning(
                "item_delete_rejected",
                extra={"item_id": str(item_id), "movement_count": movement_count},
            )
            raise ItemReferencedError(str(item_id), movement_count)
        self.session.delete(item)
        self.session.flush()
        logger.info("item_deleted", extra={"item_id": str(item_id)})

    # -------------------------------------------------------------------------
    # Quantity mutation
    # -------------------------------------------------------------------------

    def upsert_quantities(
        self,
        item_id: UUID,
        delta: QuantityDelta,
        *,
        expected: Mapping[str, int] | None = None,
        shortfall: ShortfallFactory | None = None,
        counted: bool = False,
    ) -> tuple[InventoryItem, StockSnapshot, StockSnapshot]:
        """
        Apply ``delta`` to one row in a single guarded UPDATE.

        Args:
            item_id: Row to change.
            delta: Signed change per quantity field.
            expected: Optional exact values some fields must still have
                (used where the delta was computed from a prior read).
            shortfall: Builds the error to raise when a field would go
                negative; defaults to InvariantViolationError.
            counted: Also stamp last_count_date.

        Returns:
            (item refreshed from the database, before, after).
        """
        if delta.is_zero:
            raise InvalidQuantityError("upsert_quantities", 0, "delta is zero")
        if not delta.preserves_identity:
            raise InvariantViolationError(
                str(item_id),
                LedgerInvariant.ACCOUNTING_IDENTITY.value,
                f"delta {delta.as_dict()} does not preserve on_hand == available + reserved",
            )

        now = self.clock.now()
        new = {
            name: _COLUMNS[name] + getattr(delta, name)
            for name in QUANTITY_FIELDS
            if getattr(delta, name)
        }
        new_available = new.get("available", InventoryItem.available)
        new_on_hand = new.get("on_hand", InventoryItem.on_hand)

        values: dict = {_COLUMNS[name]: expr for name, expr in new.items()}
        values[InventoryItem.low_stock_alert] = new_available <= InventoryItem.low_stock_threshold
        values[InventoryItem.out_of_stock_alert] = new_available <= InventoryItem.out_of_stock_threshold
        values[InventoryItem.total_value] = new_on_hand * InventoryItem.unit_cost
        values[InventoryItem.last_movement_date] = now
        values[InventoryItem.version] = InventoryItem.version + 1
        if counted:
            values[InventoryItem.last_count_date] = now

        conditions = [InventoryItem.id == item_id]
        conditions.extend(
            new[name] >= 0 for name in QUANTITY_FIELDS if getattr(delta, name) < 0
        )
        for name, value in (expected or {}).items():
            conditions.append(_COLUMNS[name] == value)

        result = self.session.execute(
            update(InventoryItem)
            .where(*conditions)
            .values(values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            raise self._classify_rejection(item_id, delta, expected, shortfall)

        item = self.get_by_id(item_id)
        after = item.quantities
        before = after.revert(delta)
        return item, before, after

    def _classify_rejection(
        self,
        item_id: UUID,
        delta: QuantityDelta,
        expected: Mapping[str, int] | None,
        shortfall: ShortfallFactory | None,
    ) -> Exception:
        item = self.session.execute(
            select(InventoryItem)
            .where(InventoryItem.id == item_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            return ItemNotFoundError(str(item_id))

        current = item.quantities
        negative = current.apply(delta).negative_fields()
        if negative:
            if shortfall is not None:
                return shortfall(current)
            return InvariantViolationError(
                str(item_id),
                LedgerInvariant.NON_NEGATIVE.value,
                f"{', '.join(negative)} would go negative applying {delta.as_dict()} "
                f"to {current.as_dict()}",
            )

        stale = {
            name: value for name, value in (expected or {}).items()
            if getattr(current, name) != value
        }
        logger.warning(
            "quantity_update_conflict",
            extra={"item_id": str(item_id), "stale_fields": sorted(stale)},
        )
        return ConcurrentModificationError("InventoryItem", str(item_id))

    def append_movement(
        self,
        item: InventoryItem,
        *,
        movement_type: MovementType,
        quantity: int,
        before: StockSnapshot,
        after: StockSnapshot,
        reference_type: ReferenceType,
        reference_id: str | None,
        unit_cost: Decimal | None = None,
        reason: str | None = None,
        notes: str | None = None,
        user_id: UUID | None = None,
    ) -> InventoryMovement:
        """Insert one immutable movement row for a change already applied to ``item``."""
        cost = item.unit_cost if unit_cost is None else Decimal(unit_cost)
        movement = InventoryMovement(
            inventory_item_id=item.id,
            product_id=item.product_id,
            variant_id=item.variant_id,
            location_id=item.location_id,
            item_version=item.version,
            movement_type=MovementType(movement_type).value,
            quantity=quantity,
            before_available=before.available,
            before_committed=before.committed,
            before_on_hand=before.on_hand,
            before_reserved=before.reserved,
            after_available=after.available,
            after_committed=after.committed,
            after_on_hand=after.on_hand,
            after_reserved=after.reserved,
            reference_type=ReferenceType(reference_type).value,
            reference_id=reference_id,
            unit_cost=cost,
            total_cost=cost * abs(quantity),
            reason=reason,
            notes=notes,
            user_id=user_id,
            created_at=self.clock.now(),
        )
        self.session.add(movement)
        self.session.flush()
        return movement
