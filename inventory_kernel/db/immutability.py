"""
ORM-Level Immutability Enforcement.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | What is frozen                  | Reason
-----------------------|---------------------------------|---------------------------------
TransactionLine        | Every column, from creation     | Reversal trusts the stored ratio
InventoryTransaction   | transaction_type                | Effects of old lines depend on it

Edits never mutate a committed line.  The lifecycle coordinator deletes the
old lines (through the delete-orphan cascade) and inserts new ones, so a
line row always describes exactly the effect that was applied to stock.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

The error propagates out of flush; the unit of work rolls back.

===============================================================================
USAGE
===============================================================================

Registered by create_tables(); safe to call more than once:

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

Tests that need to write around the guard:

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_transaction_line_immutability(mapper, connection, target):
    """Committed transaction lines are never UPDATEd."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "TransactionLine",
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "reason": "line_is_immutable",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="TransactionLine",
        entity_id=str(target.id),
        reason="Committed lines are replaced, never edited",
    )


def _check_transaction_type_immutability(mapper, connection, target):
    """A transaction header may change anything except its type."""
    history = get_history(target, "transaction_type")
    if not history.deleted:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "InventoryTransaction",
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "reason": "transaction_type_changed",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="InventoryTransaction",
        entity_id=str(target.id),
        reason=f"transaction_type is fixed at {history.deleted[0]}",
    )


def _listeners():
    from inventory_kernel.models.transaction import (
        InventoryTransaction,
        TransactionLine,
    )

    return (
        (TransactionLine, "before_update", _check_transaction_line_immutability),
        (InventoryTransaction, "before_update", _check_transaction_type_immutability),
    )


def register_immutability_listeners():
    """
    Register the immutability event listeners.

    Call after models are imported and before any writes.  Idempotent.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """Remove the immutability listeners.  TESTS ONLY."""
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
