"""
Module: jobwork_kernel.models.sale_order
Responsibility: ORM persistence for onward sales of cleared stock.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - invoice_no is unique per tenant.
    - Sum of fulfilment quantities for a line equals the line quantity
      (SaleService).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jobwork_kernel.db.base import TrackedBase, UUIDString


class SaleOrder(TrackedBase):
    """Sale invoice header."""

    __tablename__ = "sale_orders"

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_no", name="uq_sale_orders_tenant_invoice"),
        Index("idx_sale_orders_tenant_date", "tenant_id", "invoice_date"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    invoice_no: Mapped[str] = mapped_column(String(50), nullable=False)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)

    customer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list[SaleOrderLine]] = relationship(
        "SaleOrderLine",
        back_populates="sale_order",
        order_by="SaleOrderLine.line_no",
        lazy="selectin",
    )

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0"))


class SaleOrderLine(TrackedBase):
    __tablename__ = "sale_order_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_order_lines_quantity_positive"),
        Index("idx_sale_order_lines_order", "sale_order_id"),
    )

    sale_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sale_orders.id"),
        nullable=False,
    )

    line_no: Mapped[int] = mapped_column(BigInteger, nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    discount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    sale_order: Mapped[SaleOrder] = relationship("SaleOrder", back_populates="lines")

    fulfillments: Mapped[list[SaleFulfillment]] = relationship(
        "SaleFulfillment",
        back_populates="line",
        lazy="selectin",
    )

    @property
    def amount(self) -> Decimal:
        return self.price * self.quantity - self.discount


class SaleFulfillment(TrackedBase):
    """Which work assignment supplied how many units of a sale line."""

    __tablename__ = "sale_fulfillments"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_fulfillments_quantity_positive"),
        Index("idx_sale_fulfillments_assignment", "assignment_id"),
    )

    sale_order_line_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sale_order_lines.id"),
        nullable=False,
    )

    assignment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("work_assignments.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    line: Mapped[SaleOrderLine] = relationship(
        "SaleOrderLine",
        back_populates="fulfillments",
    )
