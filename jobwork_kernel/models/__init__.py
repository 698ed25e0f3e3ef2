"""ORM models for the job-work stock ledger."""

from jobwork_kernel.models.audit_entry import AuditLedgerEntry, LedgerAction
from jobwork_kernel.models.dispatch import Dispatch
from jobwork_kernel.models.inventory_batch import BatchLine, InventoryBatch
from jobwork_kernel.models.product import Product
from jobwork_kernel.models.return_request import (
    ReturnRequest,
    ReturnRequestStatus,
    ReviewAction,
)
from jobwork_kernel.models.sale_order import SaleFulfillment, SaleOrder, SaleOrderLine
from jobwork_kernel.models.work_assignment import (
    AssignmentSource,
    AssignmentStatus,
    WorkAssignment,
)

__all__ = [
    "AssignmentSource",
    "AssignmentStatus",
    "AuditLedgerEntry",
    "BatchLine",
    "Dispatch",
    "InventoryBatch",
    "LedgerAction",
    "Product",
    "ReturnRequest",
    "ReturnRequestStatus",
    "ReviewAction",
    "SaleFulfillment",
    "SaleOrder",
    "SaleOrderLine",
    "WorkAssignment",
]
