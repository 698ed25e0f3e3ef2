"""
Module: jobwork_kernel.models.work_assignment
Responsibility: ORM persistence for work assignments (stock issued to a job
    worker) and the batch-line provenance of each assignment.
Architecture position: Kernel > Models.  May import from db/base.py and the
    AssignmentStatus enum of domain/assignment_lifecycle.py.

Invariants enforced:
    - cleared + lost + damaged + pending_* <= quantity (DB check and
      domain/assignment_lifecycle.py).
    - sold_quantity <= cleared_quantity (DB check and SaleService).
    - At most one Pending return request per assignment:
      active_return_request_id is the lock token (see ReturnLock).
    - status is always derived from the counters, never set freely.
    - quantity never changes after creation.
    - version is an optimistic concurrency counter.

Audit relevance:
    AssignmentSource rows record exactly which batch lines (or the returned
    stock pool, batch_line_id NULL) funded the assignment.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jobwork_kernel.db.base import TrackedBase, UUIDString
from jobwork_kernel.domain.assignment_lifecycle import AssignmentStatus

if TYPE_CHECKING:
    from jobwork_kernel.models.dispatch import Dispatch


class WorkAssignment(TrackedBase):
    """
    Stock issued to one job worker under one dispatch.

    The pending_* counters hold the quantities of the single outstanding
    return request; they return to zero when that request is reviewed.
    """

    __tablename__ = "work_assignments"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_work_assignments_quantity_positive"),
        CheckConstraint(
            "cleared_quantity >= 0 AND lost_quantity >= 0 AND damaged_quantity >= 0"
            " AND pending_cleared_quantity >= 0 AND pending_lost_quantity >= 0"
            " AND pending_damaged_quantity >= 0",
            name="ck_work_assignments_counters_non_negative",
        ),
        CheckConstraint(
            "cleared_quantity + lost_quantity + damaged_quantity"
            " + pending_cleared_quantity + pending_lost_quantity"
            " + pending_damaged_quantity <= quantity",
            name="ck_work_assignments_conservation",
        ),
        CheckConstraint(
            "sold_quantity >= 0 AND sold_quantity <= cleared_quantity",
            name="ck_work_assignments_sold_within_cleared",
        ),
        Index("idx_work_assignments_jobworker", "jobworker_id", "status"),
        Index("idx_work_assignments_product", "product_id", "status"),
        Index("idx_work_assignments_dispatch", "dispatch_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    dispatch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("dispatches.id"),
        nullable=False,
    )

    assignment_seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    jobworker_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    assigned_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    cleared_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    lost_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    damaged_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    pending_cleared_quantity: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    pending_lost_quantity: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    pending_damaged_quantity: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    sold_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    status: Mapped[AssignmentStatus] = mapped_column(
        SQLEnum(
            AssignmentStatus,
            name="assignment_status",
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
            length=20,
        ),
        nullable=False,
        default=AssignmentStatus.PENDING,
    )

    active_return_request_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1)

    dispatch: Mapped[Dispatch] = relationship(
        "Dispatch",
        back_populates="assignments",
    )

    sources: Mapped[list[AssignmentSource]] = relationship(
        "AssignmentSource",
        back_populates="assignment",
        order_by="AssignmentSource.draw_order",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def pending_total(self) -> int:
        return (
            self.pending_cleared_quantity
            + self.pending_lost_quantity
            + self.pending_damaged_quantity
        )

    @property
    def accounted_total(self) -> int:
        return self.cleared_quantity + self.lost_quantity + self.damaged_quantity

    @property
    def remaining_quantity(self) -> int:
        """Quantity not yet accounted for by an approved return."""
        return self.quantity - self.accounted_total

    @property
    def unsold_cleared_quantity(self) -> int:
        return self.cleared_quantity - self.sold_quantity

    def __repr__(self) -> str:
        return (
            f"<WorkAssignment {self.id}: product={self.product_id} "
            f"qty={self.quantity} status={self.status.value}>"
        )


class AssignmentSource(TrackedBase):
    """
    One draw that funded a work assignment.

    ``batch_line_id`` is NULL when the quantity came from the returned-stock
    pool rather than from an inbound batch line.
    """

    __tablename__ = "assignment_sources"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_assignment_sources_quantity_positive"),
        Index("idx_assignment_sources_assignment", "assignment_id"),
        Index("idx_assignment_sources_batch_line", "batch_line_id"),
    )

    assignment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("work_assignments.id"),
        nullable=False,
    )

    batch_line_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("batch_lines.id"),
        nullable=True,
    )

    batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    draw_order: Mapped[int] = mapped_column(BigInteger, nullable=False)

    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    assignment: Mapped[WorkAssignment] = relationship(
        "WorkAssignment",
        back_populates="sources",
    )

    @property
    def is_return_pool(self) -> bool:
        return self.batch_line_id is None
