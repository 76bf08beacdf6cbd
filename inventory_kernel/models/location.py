"""
Module: inventory_kernel.models.location
Responsibility: ORM persistence for stocking locations (warehouses, stores,
    suppliers, fulfillment centers).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/enums.py only.

Locations are reference data: inventory rows and transfers point at them,
and they are deactivated rather than deleted.
"""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.domain.enums import LocationType


class Location(TrackedBase):
    """A place that holds stock."""

    __tablename__ = "locations"

    __table_args__ = (
        Index("idx_location_name", "name"),
        Index("idx_location_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    location_type: Mapped[LocationType] = mapped_column(
        String(32),
        nullable=False,
        default=LocationType.WAREHOUSE.value,
    )

    street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Location {self.name} ({self.location_type})>"
