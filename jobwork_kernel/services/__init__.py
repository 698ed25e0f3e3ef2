"""Kernel services: every write path of the stock ledger."""

from jobwork_kernel.services.allocation_service import AllocationService
from jobwork_kernel.services.assignment_service import AssignmentResult, AssignmentService
from jobwork_kernel.services.audit_ledger import AuditLedger
from jobwork_kernel.services.product_service import ProductService
from jobwork_kernel.services.receipt_service import ReceiptService
from jobwork_kernel.services.return_service import ReturnService
from jobwork_kernel.services.sale_service import SaleService
from jobwork_kernel.services.sequence_service import SequenceCounter, SequenceService
from jobwork_kernel.services.stock_ledger import StockLedger
from jobwork_kernel.services.unit_of_work import UnitOfWork

__all__ = [
    "AllocationService",
    "AssignmentResult",
    "AssignmentService",
    "AuditLedger",
    "ProductService",
    "ReceiptService",
    "ReturnService",
    "SaleService",
    "SequenceCounter",
    "SequenceService",
    "StockLedger",
    "UnitOfWork",
]
