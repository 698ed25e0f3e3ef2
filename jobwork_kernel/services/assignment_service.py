"""
AssignmentService -- issue stock to a job worker under one dispatch.

Responsibility:
    ``assign_to_workers`` allocates every requested (product, quantity)
    pair FIFO from the batches, creates the Dispatch with the next
    per-tenant dispatch number and one WorkAssignment per item.

Architecture position:
    Kernel > Services -- imperative shell.  Orchestrates ProductService,
    AllocationService, SequenceService and AuditLedger inside one unit of
    work.

Invariants enforced:
    - Lock order: all products (ascending id), then each product's batch
      lines (FIFO), then the dispatch / assignment / audit counters.
    - The whole multi-product dispatch is atomic: a failure on any item
      rolls back every draw, the dispatch and all assignments.
    - New assignments start Pending with all counters at zero.

Failure modes:
    - ValidationError: empty items, non-positive or non-integer quantity.
    - NotFoundError: unknown or other-tenant product.
    - InsufficientStockError: combined request for a product exceeds its
      available stock.  Checked for every product before any draw.
"""

from collections import defaultdict
from dataclasses import dataclass
from uuid import UUID

from jobwork_kernel.domain.assignment_lifecycle import AssignmentStatus
from jobwork_kernel.domain.dtos import AssignmentItem, coerce_uuid
from jobwork_kernel.exceptions import InsufficientStockError, ValidationError
from jobwork_kernel.logging_config import LogContext, get_logger
from jobwork_kernel.models.dispatch import Dispatch
from jobwork_kernel.models.work_assignment import WorkAssignment
from jobwork_kernel.services.allocation_service import AllocationService
from jobwork_kernel.services.audit_ledger import AuditLedger
from jobwork_kernel.services.base import BaseService
from jobwork_kernel.services.product_service import ProductService
from jobwork_kernel.services.sequence_service import SequenceService

logger = get_logger("services.assignment")


@dataclass(frozen=True)
class AssignmentResult:
    dispatch: Dispatch
    assignments: list[WorkAssignment]


class AssignmentService(BaseService):
    def assign_to_workers(
        self,
        tenant_id: UUID,
        jobworker_id: UUID,
        assigned_by: UUID,
        items,
        notes: str | None = None,
    ) -> AssignmentResult:
        if not items:
            raise ValidationError("At least one item is required", field="items")
        jobworker_id = coerce_uuid(jobworker_id, "jobworker_id")
        specs = [AssignmentItem.coerce(raw) for raw in items]

        locked = ProductService(self.session, self.clock).lock_for_tenant(
            tenant_id, [s.product_id for s in specs]
        )

        requested: dict[UUID, int] = defaultdict(int)
        for spec in specs:
            requested[spec.product_id] += spec.quantity
        for product_id, quantity in requested.items():
            product = locked[product_id]
            if product.total_available_stock < quantity:
                raise InsufficientStockError(
                    product_id=str(product_id),
                    available=product.total_available_stock,
                    requested=quantity,
                )

        allocator = AllocationService(self.session, self.clock)
        drawn = [
            (spec, allocator.allocate(locked[spec.product_id], spec.quantity, assigned_by)[1])
            for spec in specs
        ]

        sequences = SequenceService(self.session)
        now = self.clock.now()
        dispatch = Dispatch(
            tenant_id=tenant_id,
            dispatch_no=sequences.next_dispatch_no(tenant_id),
            jobworker_id=jobworker_id,
            dispatched_by=assigned_by,
            dispatch_date=now,
            notes=notes,
            created_by_id=assigned_by,
        )
        self.session.add(dispatch)

        assignments: list[WorkAssignment] = []
        for spec, sources in drawn:
            assignment = WorkAssignment(
                tenant_id=tenant_id,
                assignment_seq=sequences.next_value(SequenceService.WORK_ASSIGNMENT),
                product_id=spec.product_id,
                jobworker_id=jobworker_id,
                assigned_by=assigned_by,
                price=spec.price,
                quantity=spec.quantity,
                cleared_quantity=0,
                lost_quantity=0,
                damaged_quantity=0,
                pending_cleared_quantity=0,
                pending_lost_quantity=0,
                pending_damaged_quantity=0,
                sold_quantity=0,
                status=AssignmentStatus.PENDING,
                assigned_at=now,
                created_by_id=assigned_by,
            )
            assignment.sources.extend(sources)
            dispatch.assignments.append(assignment)
            assignments.append(assignment)

        self.session.flush()

        with LogContext.bind(dispatch_no=dispatch.dispatch_no):
            audit = AuditLedger(self.session, self.clock)
            for assignment in assignments:
                audit.stock_assigned(
                    locked[assignment.product_id], assignment, dispatch.dispatch_no
                )

            logger.info(
                "stock_assigned",
                extra={
                    "dispatch_id": str(dispatch.id),
                    "jobworker_id": str(jobworker_id),
                    "assignment_count": len(assignments),
                },
            )
        return AssignmentResult(dispatch=dispatch, assignments=assignments)
