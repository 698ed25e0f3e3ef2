"""
Module: jobwork_kernel.selectors.ledger_selector
Responsibility: Read-only access to the audit ledger, ordered by seq.
Architecture position: Kernel > Selectors.

Audit relevance:
    stock_movement() re-derives a product's net stock change from the
    ledger alone, which lets a reconciliation compare it with
    Product.total_available_stock.
"""

from uuid import UUID

from sqlalchemy import func, select

from jobwork_kernel.domain.dtos import LedgerEntryDTO
from jobwork_kernel.models.audit_entry import AuditLedgerEntry
from jobwork_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector):
    def for_product(self, product_id: UUID) -> list[LedgerEntryDTO]:
        rows = self.session.execute(
            select(AuditLedgerEntry)
            .where(AuditLedgerEntry.product_id == product_id)
            .order_by(AuditLedgerEntry.seq)
        ).scalars()
        return [LedgerEntryDTO.from_model(e) for e in rows]

    def for_assignment(self, assignment_id: UUID) -> list[LedgerEntryDTO]:
        rows = self.session.execute(
            select(AuditLedgerEntry)
            .where(AuditLedgerEntry.related_assignment_id == assignment_id)
            .order_by(AuditLedgerEntry.seq)
        ).scalars()
        return [LedgerEntryDTO.from_model(e) for e in rows]

    def stock_movement(self, product_id: UUID) -> int:
        """Sum of quantity_change over every entry for the product."""
        return self.session.execute(
            select(func.coalesce(func.sum(AuditLedgerEntry.quantity_change), 0)).where(
                AuditLedgerEntry.product_id == product_id
            )
        ).scalar_one()
