"""
ReturnService -- the two-phase return-request workflow.

Responsibility:
    Submit a proposed cleared/shortage/seconds split for a work assignment,
    review it (approve or reject), or commit a split directly without a
    pending window.

Architecture position:
    Kernel > Services -- imperative shell around
    domain/assignment_lifecycle.py.

Invariants enforced:
    - One outstanding request per assignment: the ReturnLock derived from
      active_return_request_id is set in the same transaction that creates
      the request and cleared in the same transaction that reviews it.
    - committed + pending never exceeds the assigned quantity.
    - Reject touches neither stock nor committed counters.
    - Approve credits product stock by exactly the cleared quantity, once;
      the request becomes terminal.
    - Lock order: product -> assignment -> return requests.  Rows needed
      only to discover which product to lock are read without a lock first
      and re-validated after locking.

Failure modes:
    - ValidationError: bad quantities or unknown review action.
    - NotFoundError: unknown assignment or request.
    - LockConflictError: a request is already outstanding.
    - OverAllocationError: proposal empty or larger than what is left.
    - AlreadyReviewedError: request no longer Pending.
"""

from uuid import UUID

from sqlalchemy import select

from jobwork_kernel.domain.assignment_lifecycle import (
    Locked,
    ReturnProposal,
    check_proposal_fits,
    derive_status,
    return_lock,
)
from jobwork_kernel.exceptions import (
    AlreadyReviewedError,
    LockConflictError,
    NotFoundError,
    ValidationError,
)
from jobwork_kernel.logging_config import LogContext, get_logger
from jobwork_kernel.models.product import Product
from jobwork_kernel.models.return_request import (
    ReturnRequest,
    ReturnRequestStatus,
    ReviewAction,
)
from jobwork_kernel.models.work_assignment import WorkAssignment
from jobwork_kernel.services.audit_ledger import AuditLedger
from jobwork_kernel.services.base import BaseService
from jobwork_kernel.services.product_service import ProductService

logger = get_logger("services.return")

DEFAULT_REJECTION_REASON = "no reason"


def _parse_action(action) -> ReviewAction:
    if isinstance(action, ReviewAction):
        return action
    try:
        return ReviewAction(str(action).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid action {action!r}; expected 'approve' or 'reject'",
            field="action",
        ) from None


class ReturnService(BaseService):
    def _product_for(self, assignment_id: UUID) -> Product:
        """Find and lock the product behind an assignment."""
        product_id = self.session.execute(
            select(WorkAssignment.product_id).where(WorkAssignment.id == assignment_id)
        ).scalar_one_or_none()
        if product_id is None:
            raise NotFoundError("WorkAssignment", str(assignment_id))
        return self._lock_required(Product, product_id)

    def _commit_counters(
        self,
        product: Product,
        assignment: WorkAssignment,
        cleared: int,
        lost: int,
        damaged: int,
        actor_id: UUID,
    ) -> None:
        assignment.cleared_quantity += cleared
        assignment.lost_quantity += lost
        assignment.damaged_quantity += damaged
        assignment.status = derive_status(
            assignment.quantity,
            assignment.cleared_quantity,
            assignment.lost_quantity,
            assignment.damaged_quantity,
            assignment_id=assignment.id,
        )
        assignment.updated_by_id = actor_id
        if cleared > 0:
            ProductService(self.session, self.clock).credit(product, cleared, actor_id)

    @staticmethod
    def _release_lock(assignment: WorkAssignment) -> None:
        assignment.pending_cleared_quantity = 0
        assignment.pending_lost_quantity = 0
        assignment.pending_damaged_quantity = 0
        assignment.active_return_request_id = None

    # -----------------------------------------------------------------
    # Submit
    # -----------------------------------------------------------------

    def submit_return(
        self,
        assignment_id: UUID,
        submitter_id: UUID,
        cleared,
        shortage,
        seconds,
    ) -> ReturnRequest:
        proposal = ReturnProposal.of(cleared, shortage, seconds)
        assignment = self._lock_required(WorkAssignment, assignment_id)

        lock = return_lock(assignment.active_return_request_id)
        if isinstance(lock, Locked):
            raise LockConflictError(
                assignment_id=str(assignment.id),
                active_request_id=str(lock.request_id),
            )

        remaining = assignment.remaining_quantity - assignment.pending_total
        check_proposal_fits(proposal, remaining, assignment_id=assignment.id)

        request = ReturnRequest(
            assignment_id=assignment.id,
            cleared=proposal.cleared,
            shortage=proposal.shortage,
            seconds=proposal.seconds,
            status=ReturnRequestStatus.PENDING,
            is_direct=False,
            submitted_by=submitter_id,
            submitted_at=self.clock.now(),
            created_by_id=submitter_id,
        )
        self.session.add(request)
        self.session.flush()

        assignment.pending_cleared_quantity = proposal.cleared
        assignment.pending_lost_quantity = proposal.shortage
        assignment.pending_damaged_quantity = proposal.seconds
        assignment.active_return_request_id = request.id
        assignment.updated_by_id = submitter_id
        self.session.flush()

        product = self.session.get(Product, assignment.product_id)
        AuditLedger(self.session, self.clock).return_submitted(product, assignment, request)

        with LogContext.bind(
            assignment_id=assignment.id, request_id=request.id, product_id=assignment.product_id
        ):
            logger.info(
                "return_submitted",
                extra={
                    "cleared": proposal.cleared,
                    "shortage": proposal.shortage,
                    "seconds": proposal.seconds,
                },
            )
        return request

    # -----------------------------------------------------------------
    # Review
    # -----------------------------------------------------------------

    def review_return(
        self,
        request_id: UUID,
        action,
        reviewer_id: UUID,
        rejection_reason: str | None = None,
    ) -> WorkAssignment:
        review_action = _parse_action(action)

        assignment_id = self.session.execute(
            select(ReturnRequest.assignment_id).where(ReturnRequest.id == request_id)
        ).scalar_one_or_none()
        if assignment_id is None:
            raise NotFoundError("ReturnRequest", str(request_id))

        product = self._product_for(assignment_id)
        assignment = self._lock_required(WorkAssignment, assignment_id)
        request = self._lock_required(ReturnRequest, request_id)

        if request.status != ReturnRequestStatus.PENDING:
            raise AlreadyReviewedError(
                request_id=str(request.id),
                status=request.status.value.lower(),
            )

        now = self.clock.now()
        request.reviewed_by = reviewer_id
        request.reviewed_at = now
        request.updated_by_id = reviewer_id
        audit = AuditLedger(self.session, self.clock)

        if review_action is ReviewAction.REJECT:
            request.status = ReturnRequestStatus.REJECTED
            request.rejection_reason = (rejection_reason or "").strip() or DEFAULT_REJECTION_REASON
            self._release_lock(assignment)
            assignment.updated_by_id = reviewer_id
            self.session.flush()
            audit.return_rejected(product, assignment, request, reviewer_id)
        else:
            cleared = assignment.pending_cleared_quantity
            lost = assignment.pending_lost_quantity
            damaged = assignment.pending_damaged_quantity
            request.status = ReturnRequestStatus.APPROVED
            self._release_lock(assignment)
            self._commit_counters(product, assignment, cleared, lost, damaged, reviewer_id)
            self.session.flush()
            audit.return_committed(product, assignment, request, reviewer_id)

        with LogContext.bind(
            assignment_id=assignment.id, request_id=request.id, product_id=assignment.product_id
        ):
            logger.info(
                "return_reviewed",
                extra={
                    "action": review_action.value,
                    "assignment_status": assignment.status.value,
                },
            )
        return assignment

    # -----------------------------------------------------------------
    # Direct processing
    # -----------------------------------------------------------------

    def direct_process_return(
        self,
        assignment_id: UUID,
        reviewer_id: UUID,
        cleared,
        shortage,
        seconds,
    ) -> WorkAssignment:
        """
        Submit and approve in one step.

        Capacity is the unaccounted quantity minus whatever Pending requests
        for the assignment already propose, so the two paths can never
        commit more than was assigned.
        """
        proposal = ReturnProposal.of(cleared, shortage, seconds)

        product = self._product_for(assignment_id)
        assignment = self._lock_required(WorkAssignment, assignment_id)

        pending = self.session.execute(
            select(ReturnRequest)
            .where(
                ReturnRequest.assignment_id == assignment.id,
                ReturnRequest.status == ReturnRequestStatus.PENDING,
            )
            .order_by(ReturnRequest.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        reserved = sum(r.total for r in pending)

        check_proposal_fits(
            proposal,
            assignment.remaining_quantity - reserved,
            assignment_id=assignment.id,
        )

        now = self.clock.now()
        request = ReturnRequest(
            assignment_id=assignment.id,
            cleared=proposal.cleared,
            shortage=proposal.shortage,
            seconds=proposal.seconds,
            status=ReturnRequestStatus.APPROVED,
            is_direct=True,
            submitted_by=reviewer_id,
            submitted_at=now,
            reviewed_by=reviewer_id,
            reviewed_at=now,
            created_by_id=reviewer_id,
        )
        self.session.add(request)

        self._commit_counters(
            product,
            assignment,
            proposal.cleared,
            proposal.shortage,
            proposal.seconds,
            reviewer_id,
        )
        self.session.flush()
        AuditLedger(self.session, self.clock).return_committed(
            product, assignment, request, reviewer_id
        )

        with LogContext.bind(
            assignment_id=assignment.id, request_id=request.id, product_id=assignment.product_id
        ):
            logger.info(
                "return_direct_processed",
                extra={
                    "cleared": proposal.cleared,
                    "shortage": proposal.shortage,
                    "seconds": proposal.seconds,
                    "reserved_by_pending": reserved,
                    "assignment_status": assignment.status.value,
                },
            )
        return assignment
