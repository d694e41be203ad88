"""
ORM-Level Immutability Enforcement.

Settled movements and commission records are the audit trail of the
ledger.  Once a movement is settled its running balance has been consumed
by later settlements, so changing it would silently corrupt every balance
after it.  Commission records are append-only.

We register mapper listeners that fire BEFORE the SQL is sent:

    StockMovement     before_update  -> block changes once status is settled
                      before_delete  -> block deletion of settled movements
    CommissionRecord  before_update  -> always blocked
                      before_delete  -> always blocked

Audit metadata (updated_at, updated_by) may still change.

Bulk ``UPDATE`` statements bypass mapper events; the services in this
package never issue bulk updates against settled rows.

Usage:
    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.domain.types import MovementStatus
from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by"})


def _was_settled_before(target) -> bool:
    """True if the row was already settled before the pending change."""
    status_history = get_history(target, "status")
    if status_history.deleted:
        return status_history.deleted[0] == MovementStatus.SETTLED.value
    if not status_history.added:
        return target.status == MovementStatus.SETTLED.value
    # Status is changing TO something from an unloaded value: the settle itself
    return False


def _check_stock_movement_immutability(mapper, connection, target):
    """
    Prevent updates to settled StockMovement records.

    Allows the settlement itself (created -> settled) but blocks every
    subsequent modification.
    """
    if not _was_settled_before(target):
        return

    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "StockMovement",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": attr.key,
                },
            )
            raise ImmutabilityViolationError(
                entity_type="StockMovement",
                entity_id=str(target.id),
                reason=f"Cannot modify field '{attr.key}' on settled movement",
            )


def _check_stock_movement_delete(mapper, connection, target):
    """Prevent deletion of settled StockMovement records."""
    if target.status != MovementStatus.SETTLED.value:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockMovement",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockMovement",
        entity_id=str(target.id),
        reason="Settled movements cannot be deleted",
    )


def _check_commission_record_immutability(mapper, connection, target):
    """Prevent any updates to CommissionRecord rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "CommissionRecord",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="CommissionRecord",
        entity_id=str(target.id),
        reason="Commission records are append-only and cannot be modified",
    )


def _check_commission_record_delete(mapper, connection, target):
    """Prevent deletion of CommissionRecord rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "CommissionRecord",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="CommissionRecord",
        entity_id=str(target.id),
        reason="Commission records cannot be deleted",
    )


_LISTENERS = (
    ("StockMovement", "before_update", _check_stock_movement_immutability),
    ("StockMovement", "before_delete", _check_stock_movement_delete),
    ("CommissionRecord", "before_update", _check_commission_record_immutability),
    ("CommissionRecord", "before_delete", _check_commission_record_delete),
)


def _models() -> dict:
    from ledger_kernel.models.commission import CommissionRecord
    from ledger_kernel.models.stock_movement import StockMovement

    return {"StockMovement": StockMovement, "CommissionRecord": CommissionRecord}


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners (idempotent).

    Call this after all models are imported but before any database
    operations begin.
    """
    models = _models()
    for model_name, event_name, listener in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, listener):
            event.listen(target, event_name, listener)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate
    immutability rules.
    """
    models = _models()
    for model_name, event_name, listener in _LISTENERS:
        target = models[model_name]
        if event.contains(target, event_name, listener):
            event.remove(target, event_name, listener)
