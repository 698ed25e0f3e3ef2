"""
ORM-level immutability enforcement for ledger records.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
Listeners registered here intercept them and check the append-only rules:

    session.flush()
         |
         v
    [before_flush]  --> _check_batch_deletion_before_flush() --+
         |                                                     |
    [before_update] --> _check_*_immutability() ---------------+--> ImmutabilityViolationError
         |                                                     |
    [before_delete] --> _check_*_delete() ---------------------+
         |
         v
    SQL sent to database (only if checks pass)

A failed check raises ImmutabilityViolationError; the unit of work rolls the
whole transaction back.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | When immutable                    | What is frozen
------------------|-----------------------------------|------------------------------
AuditLedgerEntry  | ALWAYS (from creation)            | every field, no delete
ReturnRequest     | After status leaves Pending       | every field, no delete
Dispatch          | ALWAYS (from creation)            | header fields, no delete
WorkAssignment    | ALWAYS (from creation)            | quantity, product, jobworker
InventoryBatch    | Once any line has been drawn from | no delete
BatchLine         | Once drawn from                   | no delete; quantity_received

updated_at / updated_by_id are tracking metadata and may always change.

===============================================================================
USAGE
===============================================================================

    from jobwork_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent, called at startup

Tests that need to violate a rule on purpose call
unregister_immutability_listeners() and re-register afterwards.
"""

from sqlalchemy import event, func, inspect, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from jobwork_kernel.exceptions import ImmutabilityViolationError
from jobwork_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_TRACKING_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _block(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    payload = {
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "operation": operation,
    }
    if field is not None:
        payload["field"] = field
    logger.error("immutability_violation_blocked", extra=payload)
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_fields(target, only: frozenset[str] | None = None) -> list[str]:
    """Names of attributes with pending changes, ignoring tracking metadata."""
    changed = []
    for attr in inspect(target).attrs:
        if attr.key in _TRACKING_FIELDS:
            continue
        if only is not None and attr.key not in only:
            continue
        if attr.history.has_changes():
            changed.append(attr.key)
    return changed


# =============================================================================
# Audit ledger: always immutable
# =============================================================================


def _check_audit_entry_immutability(mapper, connection, target):
    _block(
        "AuditLedgerEntry",
        target.id,
        "UPDATE",
        "Audit ledger entries are immutable and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    _block(
        "AuditLedgerEntry",
        target.id,
        "DELETE",
        "Audit ledger entries cannot be deleted",
    )


# =============================================================================
# Return requests: terminal once reviewed
# =============================================================================


def _check_return_request_immutability(mapper, connection, target):
    """
    Allow the single Pending -> Approved/Rejected review write; block
    everything after it.
    """
    from jobwork_kernel.models.return_request import ReturnRequestStatus

    status_history = get_history(target, "status")

    if status_history.deleted:
        was_reviewed = status_history.deleted[0] != ReturnRequestStatus.PENDING
    elif not status_history.added:
        was_reviewed = target.status != ReturnRequestStatus.PENDING
    else:
        was_reviewed = False

    if not was_reviewed:
        return

    changed = _changed_fields(target)
    if changed:
        _block(
            "ReturnRequest",
            target.id,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on a reviewed return request",
            field=changed[0],
        )


def _check_return_request_delete(mapper, connection, target):
    _block(
        "ReturnRequest",
        target.id,
        "DELETE",
        "Return requests are part of the assignment history and cannot be deleted",
    )


# =============================================================================
# Dispatch header and assignment identity
# =============================================================================


def _check_dispatch_immutability(mapper, connection, target):
    from jobwork_kernel.models.dispatch import DISPATCH_FROZEN_FIELDS

    changed = _changed_fields(target, only=DISPATCH_FROZEN_FIELDS)
    if changed:
        _block(
            "Dispatch",
            target.id,
            "UPDATE",
            f"Dispatch field '{changed[0]}' cannot change after creation",
            field=changed[0],
        )


def _check_dispatch_delete(mapper, connection, target):
    _block("Dispatch", target.id, "DELETE", "Dispatches cannot be deleted")


_ASSIGNMENT_FROZEN_FIELDS = frozenset(
    {"quantity", "product_id", "jobworker_id", "dispatch_id", "tenant_id"}
)


def _check_work_assignment_immutability(mapper, connection, target):
    changed = _changed_fields(target, only=_ASSIGNMENT_FROZEN_FIELDS)
    if changed:
        _block(
            "WorkAssignment",
            target.id,
            "UPDATE",
            f"Work assignment field '{changed[0]}' cannot change after creation",
            field=changed[0],
        )


def _check_work_assignment_delete(mapper, connection, target):
    _block("WorkAssignment", target.id, "DELETE", "Work assignments cannot be deleted")


# =============================================================================
# Batches: no delete once drawn from
# =============================================================================


def _check_batch_deletion_before_flush(session, flush_context, instances):
    """
    Reject deletion of a batch (or batch line) that has been drawn from.

    Runs in SessionEvents.before_flush because the delete must be refused
    before the flush plan cascades to the lines.
    """
    from jobwork_kernel.models.inventory_batch import BatchLine, InventoryBatch

    for obj in list(session.deleted):
        if isinstance(obj, BatchLine):
            if obj.quantity_remaining < obj.quantity_received:
                _block(
                    "BatchLine",
                    obj.id,
                    "DELETE",
                    "Batch lines that have been drawn from cannot be deleted",
                )
        elif isinstance(obj, InventoryBatch):
            with session.no_autoflush:
                drawn = session.execute(
                    select(func.count())
                    .select_from(BatchLine)
                    .where(
                        BatchLine.batch_id == obj.id,
                        BatchLine.quantity_remaining < BatchLine.quantity_received,
                    )
                ).scalar_one()
            if drawn:
                _block(
                    "InventoryBatch",
                    obj.id,
                    "DELETE",
                    "Batches with drawn-from lines cannot be deleted",
                )


def _check_batch_line_immutability(mapper, connection, target):
    changed = _changed_fields(
        target, only=frozenset({"quantity_received", "product_id", "batch_id"})
    )
    if changed:
        _block(
            "BatchLine",
            target.id,
            "UPDATE",
            f"Batch line field '{changed[0]}' cannot change after receipt",
            field=changed[0],
        )


def _listeners():
    from jobwork_kernel.models.audit_entry import AuditLedgerEntry
    from jobwork_kernel.models.dispatch import Dispatch
    from jobwork_kernel.models.inventory_batch import BatchLine
    from jobwork_kernel.models.return_request import ReturnRequest
    from jobwork_kernel.models.work_assignment import WorkAssignment

    return [
        (Session, "before_flush", _check_batch_deletion_before_flush),
        (AuditLedgerEntry, "before_update", _check_audit_entry_immutability),
        (AuditLedgerEntry, "before_delete", _check_audit_entry_delete),
        (ReturnRequest, "before_update", _check_return_request_immutability),
        (ReturnRequest, "before_delete", _check_return_request_delete),
        (Dispatch, "before_update", _check_dispatch_immutability),
        (Dispatch, "before_delete", _check_dispatch_delete),
        (WorkAssignment, "before_update", _check_work_assignment_immutability),
        (WorkAssignment, "before_delete", _check_work_assignment_delete),
        (BatchLine, "before_update", _check_batch_line_immutability),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; a listener already registered is skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that must violate a rule on purpose.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
