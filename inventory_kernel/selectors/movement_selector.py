"""
Module: inventory_kernel.selectors.movement_selector
Responsibility: Read-only query access to the movement log.
Architecture position: Kernel > Selectors.  May import from models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: movements are append-only and this module never writes.
    - history() is ordered by item_version, the order in which the row's
      quantities actually changed.

Audit relevance:
    Every quantity the ledger has ever held can be reconstructed from the
    before/after snapshots returned here.  find_movements() lets callers that
    retry an operation check whether the first attempt already landed.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import MovementInfo, Page, Pagination
from inventory_kernel.domain.enums import MovementType, ReferenceType
from inventory_kernel.models.inventory import InventoryMovement
from inventory_kernel.selectors.base import BaseSelector

MOVEMENT_SORT_FIELDS = {
    "created_at": InventoryMovement.created_at,
    "movement_type": InventoryMovement.movement_type,
    "quantity": InventoryMovement.quantity,
}


@dataclass(frozen=True)
class MovementFilter:
    inventory_item_id: UUID | None = None
    product_id: UUID | None = None
    location_id: UUID | None = None
    movement_type: MovementType | None = None
    reference_type: ReferenceType | None = None
    reference_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


def movement_to_dto(movement: InventoryMovement) -> MovementInfo:
    return MovementInfo(
        id=movement.id,
        inventory_item_id=movement.inventory_item_id,
        product_id=movement.product_id,
        variant_id=movement.variant_id,
        location_id=movement.location_id,
        item_version=movement.item_version,
        movement_type=movement.movement_type,
        quantity=movement.quantity,
        quantity_before=movement.quantity_before,
        quantity_after=movement.quantity_after,
        reference_type=movement.reference_type,
        reference_id=movement.reference_id,
        unit_cost=movement.unit_cost,
        total_cost=movement.total_cost,
        reason=movement.reason,
        notes=movement.notes,
        user_id=movement.user_id,
        created_at=movement.created_at,
    )


class MovementSelector(BaseSelector):
    """
    Selector for the movement log.

    Guarantees:
        - Read-only.
        - Results are DTOs; movement rows are never handed out.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def list_movements(
        self,
        movement_filter: MovementFilter | None = None,
        pagination: Pagination | None = None,
        *,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> Page[MovementInfo]:
        """
        List movements matching ``movement_filter``.

        ``date_from`` and ``date_to`` are both inclusive.

        Raises:
            ValueError: ``sort_by`` is not one of MOVEMENT_SORT_FIELDS.
        """
        if sort_by not in MOVEMENT_SORT_FIELDS:
            raise ValueError(
                f"Unknown sort field {sort_by!r}; expected one of {sorted(MOVEMENT_SORT_FIELDS)}"
            )
        f = movement_filter or MovementFilter()

        stmt = select(InventoryMovement)
        if f.inventory_item_id is not None:
            stmt = stmt.where(InventoryMovement.inventory_item_id == f.inventory_item_id)
        if f.product_id is not None:
            stmt = stmt.where(InventoryMovement.product_id == f.product_id)
        if f.location_id is not None:
            stmt = stmt.where(InventoryMovement.location_id == f.location_id)
        if f.movement_type is not None:
            stmt = stmt.where(
                InventoryMovement.movement_type == MovementType(f.movement_type).value
            )
        if f.reference_type is not None:
            stmt = stmt.where(
                InventoryMovement.reference_type == ReferenceType(f.reference_type).value
            )
        if f.reference_id is not None:
            stmt = stmt.where(InventoryMovement.reference_id == f.reference_id)
        if f.date_from is not None:
            stmt = stmt.where(InventoryMovement.created_at >= f.date_from)
        if f.date_to is not None:
            stmt = stmt.where(InventoryMovement.created_at <= f.date_to)

        column = MOVEMENT_SORT_FIELDS[sort_by]
        stmt = stmt.order_by(
            column.desc() if descending else column.asc(),
            InventoryMovement.inventory_item_id,
            InventoryMovement.item_version,
        )
        return self._paginate(stmt, pagination or Pagination(), movement_to_dto)

    def find_movements(
        self,
        reference_id: str,
        movement_type: MovementType | None = None,
        item_id: UUID | None = None,
    ) -> list[MovementInfo]:
        """All movements recorded against ``reference_id``, oldest first."""
        stmt = select(InventoryMovement).where(InventoryMovement.reference_id == reference_id)
        if movement_type is not None:
            stmt = stmt.where(
                InventoryMovement.movement_type == MovementType(movement_type).value
            )
        if item_id is not None:
            stmt = stmt.where(InventoryMovement.inventory_item_id == item_id)
        stmt = stmt.order_by(InventoryMovement.created_at, InventoryMovement.item_version)
        return [movement_to_dto(m) for m in self.session.execute(stmt).scalars()]

    def history(self, item_id: UUID) -> list[MovementInfo]:
        """Full history of one item in the order its quantities changed."""
        movements = self.session.execute(
            select(InventoryMovement)
            .where(InventoryMovement.inventory_item_id == item_id)
            .order_by(InventoryMovement.item_version)
        ).scalars()
        return [movement_to_dto(m) for m in movements]

    def latest_for_item(self, item_id: UUID) -> MovementInfo | None:
        movement = self.session.execute(
            select(InventoryMovement)
            .where(InventoryMovement.inventory_item_id == item_id)
            .order_by(InventoryMovement.item_version.desc())
            .limit(1)
        ).scalar_one_or_none()
        return movement_to_dto(movement) if movement is not None else None
