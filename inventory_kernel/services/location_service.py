"""
LocationService -- registry of stocking locations.

Responsibility:
    Create, edit and deactivate locations, and resolve a location id to an
    active row for the ledger store and transfer workflow.

Architecture position:
    Kernel > Services.

Failure modes:
    - InvalidLocationError for a blank name or unknown location type.
    - LocationNotFoundError for an unknown id, or an inactive one where an
      active location is required.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.enums import LocationType
from inventory_kernel.exceptions import InvalidLocationError, LocationNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.location import Location
from inventory_kernel.services.base import BaseService

logger = get_logger("services.location")

_ADDRESS_FIELDS = ("street", "city", "state", "country", "zip_code")
_EDITABLE_FIELDS = ("name", "location_type", "is_active", *_ADDRESS_FIELDS)


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidLocationError("name is required")
    return cleaned


def _location_type(value: str | LocationType) -> str:
    try:
        return LocationType(value).value
    except ValueError:
        raise InvalidLocationError(
            f"location_type must be one of {[t.value for t in LocationType]}, got '{value}'"
        ) from None


class LocationService(BaseService):
    """Location CRUD; locations are deactivated, never deleted."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def create_location(
        self,
        name: str,
        location_type: str | LocationType = LocationType.WAREHOUSE,
        *,
        created_by_id: UUID | None = None,
        **address: str | None,
    ) -> Location:
        unknown = set(address) - set(_ADDRESS_FIELDS)
        if unknown:
            raise InvalidLocationError(f"unknown address fields {sorted(unknown)}")

        location = Location(
            name=_clean_name(name),
            location_type=_location_type(location_type),
            is_active=True,
            created_by_id=created_by_id,
            **address,
        )
        self.session.add(location)
        self.session.flush()

        logger.info(
            "location_created",
            extra={
                "location_id": str(location.id),
                "location_name": location.name,
                "location_type": location.location_type,
            },
        )
        return location

    def get_location(self, location_id: UUID) -> Location:
        location = self.session.get(Location, location_id)
        if location is None:
            raise LocationNotFoundError(str(location_id))
        return location

    def require_active(self, location_id: UUID) -> Location:
        """Return the location, or raise LocationNotFoundError if missing or inactive."""
        location = self.session.get(Location, location_id)
        if location is None or not location.is_active:
            raise LocationNotFoundError(str(location_id))
        return location

    def update_location(
        self,
        location_id: UUID,
        *,
        updated_by_id: UUID | None = None,
        **changes: object,
    ) -> Location:
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise InvalidLocationError(f"cannot update fields {sorted(unknown)}")

        location = self.get_location(location_id)
        if "name" in changes:
            changes["name"] = _clean_name(changes["name"])
        if "location_type" in changes:
            changes["location_type"] = _location_type(changes["location_type"])

        for field_name, value in changes.items():
            setattr(location, field_name, value)
        location.updated_by_id = updated_by_id
        self.session.flush()

        logger.info(
            "location_updated",
            extra={"location_id": str(location.id), "fields": sorted(changes)},
        )
        return location

    def deactivate_location(
        self, location_id: UUID, *, updated_by_id: UUID | None = None
    ) -> Location:
        return self.update_location(
            location_id, is_active=False, updated_by_id=updated_by_id
        )
