"""
Module: jobwork_kernel.models.return_request
Responsibility: ORM persistence for return requests: proposed
    cleared/shortage/seconds reclassifications of a work assignment.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - cleared, shortage, seconds >= 0 and their sum > 0 (DB check).
    - status moves Pending -> Approved | Rejected exactly once; a reviewed
      request is terminal (db/immutability.py).
    - Direct-processed requests are created already Approved (is_direct).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from jobwork_kernel.db.base import TrackedBase, UUIDString


class ReturnRequestStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ReturnRequest(TrackedBase):
    """
    A job worker's report of how an assignment's outstanding quantity ended up.

    ``shortage`` maps onto the assignment's lost quantity and ``seconds``
    onto its damaged quantity.
    """

    __tablename__ = "return_requests"

    __table_args__ = (
        CheckConstraint(
            "cleared >= 0 AND shortage >= 0 AND seconds >= 0",
            name="ck_return_requests_non_negative",
        ),
        CheckConstraint(
            "cleared + shortage + seconds > 0",
            name="ck_return_requests_positive_total",
        ),
        Index("idx_return_requests_assignment", "assignment_id", "status"),
        Index("idx_return_requests_status", "status", "submitted_at"),
        Index("idx_return_requests_submitter", "submitted_by", "submitted_at"),
    )

    assignment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("work_assignments.id"),
        nullable=False,
    )

    cleared: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    shortage: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    seconds: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    status: Mapped[ReturnRequestStatus] = mapped_column(
        SQLEnum(
            ReturnRequestStatus,
            name="return_request_status",
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
            length=20,
        ),
        nullable=False,
        default=ReturnRequestStatus.PENDING,
    )

    is_direct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    submitted_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    reviewed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def total(self) -> int:
        return self.cleared + self.shortage + self.seconds

    @property
    def is_pending(self) -> bool:
        return self.status == ReturnRequestStatus.PENDING

    def __repr__(self) -> str:
        return (
            f"<ReturnRequest {self.id}: {self.status.value} "
            f"c={self.cleared} s={self.shortage} d={self.seconds}>"
        )
