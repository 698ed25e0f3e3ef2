"""
Module: jobwork_kernel.models.audit_entry
Responsibility: ORM persistence for the append-only stock audit ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit entries are append-only; no UPDATE or DELETE (ORM listener in
      db/immutability.py).
    - seq is monotonically increasing, allocated by SequenceService.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.

Audit relevance:
    AuditLedgerEntry IS the audit trail.  Every stock-affecting action
    produces at least one entry:
    - BATCH_RECEIVED, BATCH_DELETED (one per batch line)
    - STOCK_ASSIGNED (one per work assignment)
    - RETURN_SUBMITTED, RETURN_REJECTED
    - RETURN_CLEARED, RETURN_LOST, RETURN_DAMAGED (one per non-zero category)
    - SALE_FULFILLED (one per sale line)
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jobwork_kernel.db.base import Base, UUIDString


class LedgerAction(str, Enum):
    """Classes of stock-affecting events recorded in the ledger."""

    BATCH_RECEIVED = "batch_received"
    BATCH_DELETED = "batch_deleted"
    STOCK_ASSIGNED = "stock_assigned"

    # Return workflow
    RETURN_SUBMITTED = "return_submitted"
    RETURN_REJECTED = "return_rejected"
    RETURN_CLEARED = "return_cleared"
    RETURN_LOST = "return_lost"
    RETURN_DAMAGED = "return_damaged"

    SALE_FULFILLED = "sale_fulfilled"


class AuditLedgerEntry(Base):
    """
    One human-readable, machine-linked record of a stock event.

    Contract:
        Rows are append-only.  ``quantity_change`` is the signed effect on
        the product's available stock (0 for events that do not move it).
    """

    __tablename__ = "audit_ledger_entries"

    __table_args__ = (
        Index("idx_audit_ledger_product", "product_id", "seq"),
        Index("idx_audit_ledger_assignment", "related_assignment_id", "seq"),
        Index("idx_audit_ledger_tenant", "tenant_id", "seq"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    action: Mapped[LedgerAction] = mapped_column(String(30), nullable=False)

    log: Mapped[str] = mapped_column(Text, nullable=False)

    quantity_change: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    performed_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    related_batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    related_dispatch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    related_assignment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True
    )

    related_return_request_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True
    )

    related_sale_order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True
    )

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AuditLedgerEntry #{self.seq} {self.action} product={self.product_id}>"
