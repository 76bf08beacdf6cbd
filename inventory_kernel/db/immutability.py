"""
ORM-Level Ledger Protection (Layer 1 of 2).

===============================================================================
WHAT IS PROTECTED
===============================================================================

Entity             | Rule                                   | Error
-------------------|----------------------------------------|---------------------------
InventoryMovement  | never updated, never deleted           | ImmutabilityViolationError
InventoryItem      | quantity columns never written by ORM  | DirectQuantityWriteError
InventoryItem      | not deleted while movements exist      | ItemReferencedError

Layer 2 is db/triggers.py: database triggers refusing UPDATE/DELETE on the
movement log, which also catch raw SQL and bulk statements.

The reservation engine changes quantities with a Core UPDATE statement, so
the mapper events below never fire for it.  Anything that loads an item and
assigns ``item.available = ...`` is stopped at flush time.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that must break the rules call ``unregister_immutability_listeners()``
and re-register afterwards.
"""

from sqlalchemy import event, func, inspect, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.quantities import QUANTITY_FIELDS
from inventory_kernel.exceptions import (
    DirectQuantityWriteError,
    ImmutabilityViolationError,
    ItemReferencedError,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_item_deletion_before_flush(session, flush_context, instances):
    """
    Refuse deletion of an InventoryItem that has movement history.

    Runs in before_flush; mapper-level before_delete fires after the flush
    plan is fixed.
    """
    from inventory_kernel.models.inventory import InventoryItem, InventoryMovement

    for obj in list(session.deleted):
        if not isinstance(obj, InventoryItem):
            continue

        with session.no_autoflush:
            movement_count = session.execute(
                select(func.count(InventoryMovement.id)).where(
                    InventoryMovement.inventory_item_id == obj.id
                )
            ).scalar_one()

        if movement_count:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "InventoryItem",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "movement_count": movement_count,
                },
            )
            raise ItemReferencedError(
                item_id=str(obj.id), movement_count=movement_count
            )


def _check_movement_immutability(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "InventoryMovement",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="InventoryMovement",
        entity_id=str(target.id),
        reason="Movement records are append-only and cannot be modified",
    )


def _check_movement_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "InventoryMovement",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="InventoryMovement",
        entity_id=str(target.id),
        reason="Movement records are append-only and cannot be deleted",
    )


def _check_direct_quantity_write(mapper, connection, target):
    state = inspect(target)
    changed = [
        name for name in QUANTITY_FIELDS
        if state.attrs[name].history.has_changes()
    ]
    if not changed:
        return

    logger.error(
        "direct_quantity_write_blocked",
        extra={
            "entity_type": "InventoryItem",
            "entity_id": str(target.id),
            "fields": changed,
        },
    )
    raise DirectQuantityWriteError(item_id=str(target.id), fields=changed)


def register_immutability_listeners():
    """
    Register all ledger protection listeners (idempotent).

    Call after models are imported and before any session is used.
    """
    from inventory_kernel.models.inventory import InventoryItem, InventoryMovement

    _safe_add_listener(Session, "before_flush", _check_item_deletion_before_flush)
    _safe_add_listener(InventoryMovement, "before_update", _check_movement_immutability)
    _safe_add_listener(InventoryMovement, "before_delete", _check_movement_delete)
    _safe_add_listener(InventoryItem, "before_update", _check_direct_quantity_write)


def _safe_add_listener(target, event_name, listener_fn):
    if not event.contains(target, event_name, listener_fn):
        event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove ledger protection listeners.

    WARNING: only for tests that intentionally break the rules to verify
    the second (trigger) layer.
    """
    from inventory_kernel.models.inventory import InventoryItem, InventoryMovement

    _safe_remove_listener(Session, "before_flush", _check_item_deletion_before_flush)
    _safe_remove_listener(InventoryMovement, "before_update", _check_movement_immutability)
    _safe_remove_listener(InventoryMovement, "before_delete", _check_movement_delete)
    _safe_remove_listener(InventoryItem, "before_update", _check_direct_quantity_write)
