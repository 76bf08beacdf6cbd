"""Database layer - engine handle, base classes, protection listeners and triggers."""

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.db.engine import Database, normalize_database_url
from inventory_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)

__all__ = [
    "Base",
    "Database",
    "TrackedBase",
    "UUIDString",
    "normalize_database_url",
    "register_immutability_listeners",
    "unregister_immutability_listeners",
]
