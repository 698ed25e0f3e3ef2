"""
AuditLedger -- append-only recording of stock-affecting events.

Responsibility:
    Creates AuditLedgerEntry rows with a monotonic seq and a human-readable
    log line.  One method per event kind so every caller writes the same
    wording for the same event.

Architecture position:
    Kernel > Services -- imperative shell.  Called by every write service.

Invariants enforced:
    - seq comes from SequenceService, never from max()+1.
    - Entries are only ever inserted (updates/deletes are blocked by
      db/immutability.py).
    - Audit entries are written last in each unit of work, so the audit
      counter is the last lock taken.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from jobwork_kernel.domain.clock import Clock
from jobwork_kernel.logging_config import get_logger
from jobwork_kernel.models.audit_entry import AuditLedgerEntry, LedgerAction
from jobwork_kernel.models.product import Product
from jobwork_kernel.models.return_request import ReturnRequest
from jobwork_kernel.models.work_assignment import WorkAssignment
from jobwork_kernel.services.base import BaseService
from jobwork_kernel.services.sequence_service import SequenceService

logger = get_logger("services.audit_ledger")


class AuditLedger(BaseService):
    """Writer for the stock audit ledger."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)

    def record(
        self,
        *,
        tenant_id: UUID,
        action: LedgerAction,
        log: str,
        product_id: UUID,
        performed_by: UUID,
        quantity_change: int = 0,
        related_batch_id: UUID | None = None,
        related_dispatch_id: UUID | None = None,
        related_assignment_id: UUID | None = None,
        related_return_request_id: UUID | None = None,
        related_sale_order_id: UUID | None = None,
        payload: dict | None = None,
    ) -> AuditLedgerEntry:
        seq = self._sequences.next_value(SequenceService.AUDIT_ENTRY)
        entry = AuditLedgerEntry(
            seq=seq,
            tenant_id=tenant_id,
            action=action.value,
            log=log,
            quantity_change=quantity_change,
            performed_by=performed_by,
            product_id=product_id,
            related_batch_id=related_batch_id,
            related_dispatch_id=related_dispatch_id,
            related_assignment_id=related_assignment_id,
            related_return_request_id=related_return_request_id,
            related_sale_order_id=related_sale_order_id,
            payload=payload,
            created_at=self.clock.now(),
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "audit_entry_recorded",
            extra={
                "seq": seq,
                "action": action.value,
                "product_id": str(product_id),
                "quantity_change": quantity_change,
            },
        )
        return entry

    # -----------------------------------------------------------------
    # Event-specific wording
    # -----------------------------------------------------------------

    def batch_received(
        self, product: Product, quantity: int, batch_id: UUID, challan_no: str, actor_id: UUID
    ) -> AuditLedgerEntry:
        return self.record(
            tenant_id=product.tenant_id,
            action=LedgerAction.BATCH_RECEIVED,
            log=(
                f"BATCH RECEIVED: {quantity} units of '{product.title}' received "
                f"on challan {challan_no}. (Stock added)"
            ),
            product_id=product.id,
            performed_by=actor_id,
            quantity_change=quantity,
            related_batch_id=batch_id,
        )

    def batch_deleted(
        self, product: Product, quantity: int, batch_id: UUID, challan_no: str, actor_id: UUID
    ) -> AuditLedgerEntry:
        return self.record(
            tenant_id=product.tenant_id,
            action=LedgerAction.BATCH_DELETED,
            log=(
                f"BATCH DELETED: challan {challan_no} removed; {quantity} units of "
                f"'{product.title}' withdrawn. (Stock deducted)"
            ),
            product_id=product.id,
            performed_by=actor_id,
            quantity_change=-quantity,
            related_batch_id=batch_id,
        )

    def stock_assigned(
        self, product: Product, assignment: WorkAssignment, dispatch_no: str
    ) -> AuditLedgerEntry:
        return self.record(
            tenant_id=product.tenant_id,
            action=LedgerAction.STOCK_ASSIGNED,
            log=(
                f"STOCK ASSIGNED: {assignment.quantity} units of '{product.title}' "
                f"sent to job worker {assignment.jobworker_id} on {dispatch_no}."
            ),
            product_id=product.id,
            performed_by=assignment.assigned_by,
            quantity_change=-assignment.quantity,
            related_dispatch_id=assignment.dispatch_id,
            related_assignment_id=assignment.id,
            payload={
                "sources": [
                    {
                        "batch_line_id": str(s.batch_line_id) if s.batch_line_id else None,
                        "quantity": s.quantity,
                    }
                    for s in assignment.sources
                ]
            },
        )

    def return_submitted(
        self, product: Product, assignment: WorkAssignment, request: ReturnRequest
    ) -> AuditLedgerEntry:
        return self.record(
            tenant_id=product.tenant_id,
            action=LedgerAction.RETURN_SUBMITTED,
            log=(
                f"RETURN SUBMITTED: job worker {assignment.jobworker_id} reported "
                f"{request.cleared} cleared, {request.shortage} short and "
                f"{request.seconds} seconds of '{product.title}'. (Awaiting review)"
            ),
            product_id=product.id,
            performed_by=request.submitted_by,
            related_dispatch_id=assignment.dispatch_id,
            related_assignment_id=assignment.id,
            related_return_request_id=request.id,
        )

    def return_rejected(
        self,
        product: Product,
        assignment: WorkAssignment,
        request: ReturnRequest,
        reviewer_id: UUID,
    ) -> AuditLedgerEntry:
        return self.record(
            tenant_id=product.tenant_id,
            action=LedgerAction.RETURN_REJECTED,
            log=(
                f"RETURN REJECTED: Request to return items for '{product.title}' from "
                f"job worker {assignment.jobworker_id} was rejected. "
                f"Reason: {request.rejection_reason}"
            ),
            product_id=product.id,
            performed_by=reviewer_id,
            related_dispatch_id=assignment.dispatch_id,
            related_assignment_id=assignment.id,
            related_return_request_id=request.id,
        )

    def return_committed(
        self,
        product: Product,
        assignment: WorkAssignment,
        request: ReturnRequest,
        reviewer_id: UUID,
    ) -> list[AuditLedgerEntry]:
        """One entry per non-zero category of an approved return."""
        worker = f"job worker {assignment.jobworker_id}"
        categories = (
            (
                LedgerAction.RETURN_CLEARED,
                request.cleared,
                f"RETURN CLEARED: {request.cleared} units of '{product.title}' "
                f"returned by {worker}. (Stock added back)",
                request.cleared,
            ),
            (
                LedgerAction.RETURN_LOST,
                request.shortage,
                f"RETURN LOST: {request.shortage} units of '{product.title}' "
                f"reported as LOST by {worker}.",
                0,
            ),
            (
                LedgerAction.RETURN_DAMAGED,
                request.seconds,
                f"RETURN DAMAGED: {request.seconds} units of '{product.title}' "
                f"reported as DAMAGED by {worker}.",
                0,
            ),
        )
        entries = []
        for action, qty, text, stock_change in categories:
            if qty <= 0:
                continue
            entries.append(
                self.record(
                    tenant_id=product.tenant_id,
                    action=action,
                    log=text,
                    product_id=product.id,
                    performed_by=reviewer_id,
                    quantity_change=stock_change,
                    related_dispatch_id=assignment.dispatch_id,
                    related_assignment_id=assignment.id,
                    related_return_request_id=request.id,
                    payload={"direct": request.is_direct} if request.is_direct else None,
                )
            )
        return entries

    def sale_fulfilled(
        self,
        product: Product,
        quantity: int,
        sale_order_id: UUID,
        invoice_no: str,
        actor_id: UUID,
        assignment_ids: list[UUID],
    ) -> AuditLedgerEntry:
        return self.record(
            tenant_id=product.tenant_id,
            action=LedgerAction.SALE_FULFILLED,
            log=(
                f"SALE: {quantity} units of '{product.title}' sold on invoice "
                f"{invoice_no}. (Stock deducted)"
            ),
            product_id=product.id,
            performed_by=actor_id,
            quantity_change=-quantity,
            related_sale_order_id=sale_order_id,
            payload={"assignments": [str(a) for a in assignment_ids]},
        )
