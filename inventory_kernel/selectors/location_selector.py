"""Read-only access to locations."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import LocationInfo
from inventory_kernel.models.location import Location
from inventory_kernel.selectors.base import BaseSelector


def location_to_dto(location: Location) -> LocationInfo:
    return LocationInfo(
        id=location.id,
        name=location.name,
        location_type=location.location_type,
        is_active=location.is_active,
        street=location.street,
        city=location.city,
        state=location.state,
        country=location.country,
        zip_code=location.zip_code,
    )


class LocationSelector(BaseSelector):
    def __init__(self, session: Session):
        super().__init__(session)

    def get_location(self, location_id: UUID) -> LocationInfo | None:
        location = self.session.get(Location, location_id, populate_existing=True)
        return location_to_dto(location) if location is not None else None

    def list_locations(self, is_active: bool | None = None) -> list[LocationInfo]:
        stmt = select(Location).order_by(Location.name, Location.id)
        if is_active is not None:
            stmt = stmt.where(Location.is_active.is_(is_active))
        return [location_to_dto(loc) for loc in self.session.execute(stmt).scalars()]
