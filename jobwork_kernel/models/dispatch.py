"""
Module: jobwork_kernel.models.dispatch
Responsibility: ORM persistence for dispatch challans: a group of work
    assignments sent to one job worker at one time.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - dispatch_no is unique per tenant and allocated from a locked counter
      row (SequenceService), never from max()+1.
    - Header fields are frozen after creation (db/immutability.py); only the
      assignments collection grows, inside the creating transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jobwork_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from jobwork_kernel.models.work_assignment import WorkAssignment


# Header fields that may never change once the dispatch exists.
DISPATCH_FROZEN_FIELDS = frozenset(
    {"tenant_id", "dispatch_no", "jobworker_id", "dispatched_by", "dispatch_date"}
)


class Dispatch(TrackedBase):
    """Outbound challan to a job worker."""

    __tablename__ = "dispatches"

    __table_args__ = (
        UniqueConstraint("tenant_id", "dispatch_no", name="uq_dispatches_tenant_no"),
        Index("idx_dispatches_jobworker", "jobworker_id", "dispatch_date"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    dispatch_no: Mapped[str] = mapped_column(String(30), nullable=False)

    jobworker_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    dispatched_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    dispatch_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    assignments: Mapped[list[WorkAssignment]] = relationship(
        "WorkAssignment",
        back_populates="dispatch",
        order_by="WorkAssignment.assignment_seq",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Dispatch {self.dispatch_no} -> {self.jobworker_id}>"
