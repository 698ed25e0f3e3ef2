"""
Module: jobwork_kernel.models.product
Responsibility: ORM persistence for products and their authoritative
    "currently available" stock counter (the Product Stock Registry).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - total_available_stock >= 0 (DB check constraint).
    - version is an optimistic concurrency counter (SQLAlchemy version_id_col);
      a write based on a stale read raises StaleDataError and the unit of
      work retries.

Audit relevance:
    Every change to total_available_stock is accompanied by an
    AuditLedgerEntry naming the product.
"""

from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from jobwork_kernel.db.base import TrackedBase, UUIDString


class Product(TrackedBase):
    """
    A stock-keeping product owned by one tenant.

    Contract:
        ``total_available_stock`` is mutated only by the receipt, allocation,
        return-approval and sale services.  Clients never set it directly.
    """

    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint(
            "total_available_stock >= 0",
            name="ck_products_stock_non_negative",
        ),
        UniqueConstraint("tenant_id", "sku", name="uq_products_tenant_sku"),
        Index("idx_products_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)

    total_available_stock: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Product {self.id}: {self.title} stock={self.total_available_stock}>"
