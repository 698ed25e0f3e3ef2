"""
Module: jobwork_kernel.selectors.return_selector
Responsibility: Read-only views of return requests: the review queue and a
    submitter's own history.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from jobwork_kernel.domain.dtos import ReturnRequestDTO
from jobwork_kernel.models.return_request import ReturnRequest, ReturnRequestStatus
from jobwork_kernel.models.work_assignment import WorkAssignment
from jobwork_kernel.selectors.base import BaseSelector


class ReturnSelector(BaseSelector):
    def pending(self, tenant_id: UUID) -> list[ReturnRequestDTO]:
        """Review queue, oldest submission first."""
        rows = self.session.execute(
            select(ReturnRequest)
            .join(WorkAssignment, ReturnRequest.assignment_id == WorkAssignment.id)
            .where(
                WorkAssignment.tenant_id == tenant_id,
                ReturnRequest.status == ReturnRequestStatus.PENDING,
            )
            .order_by(ReturnRequest.submitted_at, ReturnRequest.id)
        ).scalars()
        return [ReturnRequestDTO.from_model(r) for r in rows]

    def by_submitter(self, submitter_id: UUID) -> list[ReturnRequestDTO]:
        """Everything a user has submitted, newest first."""
        rows = self.session.execute(
            select(ReturnRequest)
            .where(ReturnRequest.submitted_by == submitter_id)
            .order_by(ReturnRequest.submitted_at.desc(), ReturnRequest.id)
        ).scalars()
        return [ReturnRequestDTO.from_model(r) for r in rows]

    def for_assignment(self, assignment_id: UUID) -> list[ReturnRequestDTO]:
        rows = self.session.execute(
            select(ReturnRequest)
            .where(ReturnRequest.assignment_id == assignment_id)
            .order_by(ReturnRequest.submitted_at, ReturnRequest.id)
        ).scalars()
        return [ReturnRequestDTO.from_model(r) for r in rows]
