"""
Module: jobwork_kernel.selectors.assignment_selector
Responsibility: Read-only views of dispatches and work assignments per job
    worker: challans grouped by worker, status counts, assigned totals.
Architecture position: Kernel > Selectors.
"""

from collections import defaultdict
from uuid import UUID

from sqlalchemy import func, select

from jobwork_kernel.domain.assignment_lifecycle import AssignmentStatus
from jobwork_kernel.domain.dtos import (
    AssignmentDTO,
    DispatchDTO,
    JobworkerDispatchesDTO,
    StatusCountsDTO,
)
from jobwork_kernel.models.dispatch import Dispatch
from jobwork_kernel.models.work_assignment import WorkAssignment
from jobwork_kernel.selectors.base import BaseSelector


class AssignmentSelector(BaseSelector):
    def get(self, assignment_id: UUID) -> AssignmentDTO | None:
        wa = self.session.get(WorkAssignment, assignment_id)
        return AssignmentDTO.from_model(wa) if wa is not None else None

    def dispatches_by_jobworker(
        self,
        tenant_id: UUID,
        jobworker_id: UUID | None = None,
    ) -> list[JobworkerDispatchesDTO]:
        """
        Dispatches grouped by job worker, newest dispatch first within each
        group.  Groups are ordered by their most recent dispatch.
        """
        query = select(Dispatch).where(Dispatch.tenant_id == tenant_id)
        if jobworker_id is not None:
            query = query.where(Dispatch.jobworker_id == jobworker_id)
        query = query.order_by(Dispatch.dispatch_date.desc(), Dispatch.dispatch_no.desc())

        grouped: dict[UUID, list[DispatchDTO]] = defaultdict(list)
        for dispatch in self.session.execute(query).scalars():
            grouped[dispatch.jobworker_id].append(
                DispatchDTO(
                    dispatch_id=dispatch.id,
                    dispatch_no=dispatch.dispatch_no,
                    jobworker_id=dispatch.jobworker_id,
                    dispatch_date=dispatch.dispatch_date,
                    notes=dispatch.notes,
                    assignments=tuple(
                        AssignmentDTO.from_model(wa) for wa in dispatch.assignments
                    ),
                )
            )
        return [
            JobworkerDispatchesDTO(jobworker_id=worker, dispatches=tuple(items))
            for worker, items in grouped.items()
        ]

    def status_counts(self, jobworker_id: UUID) -> StatusCountsDTO:
        rows = self.session.execute(
            select(WorkAssignment.status, func.count())
            .where(WorkAssignment.jobworker_id == jobworker_id)
            .group_by(WorkAssignment.status)
        ).all()
        counts = {status: count for status, count in rows}
        return StatusCountsDTO(
            jobworker_id=jobworker_id,
            pending=counts.get(AssignmentStatus.PENDING, 0),
            in_progress=counts.get(AssignmentStatus.IN_PROGRESS, 0),
            cleared=counts.get(AssignmentStatus.CLEARED, 0),
        )

    def assigned_total(self, jobworker_id: UUID) -> int:
        """Total pieces ever issued to the job worker."""
        return self.session.execute(
            select(func.coalesce(func.sum(WorkAssignment.quantity), 0)).where(
                WorkAssignment.jobworker_id == jobworker_id
            )
        ).scalar_one()
