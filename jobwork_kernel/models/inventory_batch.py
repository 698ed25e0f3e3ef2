"""
Module: jobwork_kernel.models.inventory_batch
Responsibility: ORM persistence for received stock lots ("challans" from a
    vendor) and their per-product lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - 0 <= quantity_remaining <= quantity_received on every line (DB check).
    - quantity_received > 0 (DB check).
    - (challan_date, receipt_seq) gives a total FIFO order over batches.
    - A batch with any drawn-from line cannot be deleted
      (db/immutability.py).

Audit relevance:
    Lines are the source of every WorkAssignment's stock; AssignmentSource
    rows point back at them.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jobwork_kernel.db.base import TrackedBase, UUIDString


class InventoryBatch(TrackedBase):
    """
    A lot of goods received from a vendor on one date.

    Guarantees:
        - receipt_seq is strictly monotonic (SequenceService) and breaks
          ties between batches with the same challan_date.
    """

    __tablename__ = "inventory_batches"

    __table_args__ = (
        Index("idx_inventory_batches_tenant", "tenant_id"),
        Index("idx_inventory_batches_fifo", "challan_date", "receipt_seq"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    vendor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    firm_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    challan_no: Mapped[str] = mapped_column(String(50), nullable=False)

    challan_date: Mapped[date] = mapped_column(Date, nullable=False)

    receipt_seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    lines: Mapped[list[BatchLine]] = relationship(
        "BatchLine",
        back_populates="batch",
        order_by="BatchLine.line_no",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<InventoryBatch {self.id}: {self.challan_no} {self.challan_date}>"


class BatchLine(TrackedBase):
    """
    One product line in a batch with its independently tracked remaining stock.

    ``version`` is an optimistic concurrency counter: a draw computed from a
    stale quantity_remaining fails at flush time.
    """

    __tablename__ = "batch_lines"

    __table_args__ = (
        CheckConstraint(
            "quantity_received > 0",
            name="ck_batch_lines_received_positive",
        ),
        CheckConstraint(
            "quantity_remaining >= 0 AND quantity_remaining <= quantity_received",
            name="ck_batch_lines_remaining_bounds",
        ),
        Index("idx_batch_lines_product", "product_id", "quantity_remaining"),
        Index("idx_batch_lines_batch", "batch_id"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_batches.id"),
        nullable=False,
    )

    line_no: Mapped[int] = mapped_column(BigInteger, nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    quantity_received: Mapped[int] = mapped_column(BigInteger, nullable=False)

    quantity_remaining: Mapped[int] = mapped_column(BigInteger, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    discount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1)

    batch: Mapped[InventoryBatch] = relationship(
        "InventoryBatch",
        back_populates="lines",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_drawn_from(self) -> bool:
        return self.quantity_remaining < self.quantity_received

    def __repr__(self) -> str:
        return (
            f"<BatchLine {self.id}: product={self.product_id} "
            f"{self.quantity_remaining}/{self.quantity_received}>"
        )
