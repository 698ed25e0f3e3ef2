"""
Module: jobwork_kernel.selectors.stock_selector
Responsibility: Read-only views of product stock and inbound batches.
Architecture position: Kernel > Selectors.

Audit relevance:
    fifo_availability() lists lines in exactly the order the allocation
    engine will draw from them, so an operator can predict a draw.
"""

from uuid import UUID

from sqlalchemy import select

from jobwork_kernel.domain.dtos import BatchDTO, FifoAvailabilityDTO, ProductStockDTO
from jobwork_kernel.models.inventory_batch import BatchLine, InventoryBatch
from jobwork_kernel.models.product import Product
from jobwork_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector):
    def stock_summary(self, tenant_id: UUID) -> list[ProductStockDTO]:
        """Every product of the tenant with its available stock, by title."""
        rows = self.session.execute(
            select(Product)
            .where(Product.tenant_id == tenant_id)
            .order_by(Product.title, Product.id)
        ).scalars()
        return [
            ProductStockDTO(
                product_id=p.id,
                title=p.title,
                sku=p.sku,
                total_available_stock=p.total_available_stock,
            )
            for p in rows
        ]

    def batches(self, tenant_id: UUID) -> list[BatchDTO]:
        """Received batches, newest first."""
        rows = self.session.execute(
            select(InventoryBatch)
            .where(InventoryBatch.tenant_id == tenant_id)
            .order_by(InventoryBatch.challan_date.desc(), InventoryBatch.receipt_seq.desc())
        ).scalars()
        return [BatchDTO.from_model(batch) for batch in rows]

    def fifo_availability(self, product_id: UUID) -> list[FifoAvailabilityDTO]:
        """Lines that can still supply the product, in draw order."""
        rows = self.session.execute(
            select(BatchLine, InventoryBatch)
            .join(InventoryBatch, BatchLine.batch_id == InventoryBatch.id)
            .where(
                BatchLine.product_id == product_id,
                BatchLine.quantity_remaining > 0,
            )
            .order_by(
                InventoryBatch.challan_date,
                InventoryBatch.receipt_seq,
                BatchLine.line_no,
            )
        ).all()
        return [
            FifoAvailabilityDTO(
                batch_line_id=line.id,
                batch_id=batch.id,
                challan_no=batch.challan_no,
                challan_date=batch.challan_date,
                quantity_remaining=line.quantity_remaining,
            )
            for line, batch in rows
        ]
