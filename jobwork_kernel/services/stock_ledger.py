"""
StockLedger -- public synchronous operations of the job-work kernel.

Responsibility:
    One method per external operation.  Each runs as exactly one unit of
    work (fresh session, commit or rollback) and returns the mutated
    entities or raises a typed JobworkKernelError.

Architecture position:
    Kernel > Services -- outermost kernel seam.  The routing layer (not part
    of this package) calls these methods with validated identifiers.
    jobwork_config.bridges builds a configured instance.

Invariants enforced:
    - No operation has a side effect outside its unit of work.
    - Request-scoped log context (actor, tenant) is bound for the duration
      of each call.
"""

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from jobwork_kernel.domain.clock import Clock, SystemClock
from jobwork_kernel.domain.dtos import BatchDTO, ProductStockDTO
from jobwork_kernel.logging_config import LogContext, get_logger
from jobwork_kernel.models.inventory_batch import InventoryBatch
from jobwork_kernel.models.product import Product
from jobwork_kernel.models.return_request import ReturnRequest
from jobwork_kernel.models.sale_order import SaleOrder
from jobwork_kernel.models.work_assignment import WorkAssignment
from jobwork_kernel.selectors.stock_selector import StockSelector
from jobwork_kernel.services.assignment_service import AssignmentResult, AssignmentService
from jobwork_kernel.services.product_service import ProductService
from jobwork_kernel.services.receipt_service import ReceiptService
from jobwork_kernel.services.return_service import ReturnService
from jobwork_kernel.services.sale_service import SaleService
from jobwork_kernel.services.unit_of_work import UnitOfWork

logger = get_logger("services.stock_ledger")


class StockLedger:
    """Facade over the stock ledger services."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
    ):
        self.clock = clock or SystemClock()
        self.unit_of_work = UnitOfWork(
            session_factory,
            max_attempts=max_attempts,
            retry_backoff_seconds=retry_backoff_seconds,
        )

    def register_product(
        self,
        tenant_id: UUID,
        title: str,
        actor_id: UUID,
        sku: str | None = None,
    ) -> Product:
        with LogContext.bind(actor_id=actor_id, tenant_id=tenant_id):
            return self.unit_of_work.run(
                "register_product",
                lambda s: ProductService(s, self.clock).register(tenant_id, title, actor_id, sku),
            )

    def receive_batch(
        self,
        tenant_id: UUID,
        vendor_id: UUID | None,
        lines,
        dispatch_meta,
        actor_id: UUID,
    ) -> InventoryBatch:
        with LogContext.bind(actor_id=actor_id, tenant_id=tenant_id):
            return self.unit_of_work.run(
                "receive_batch",
                lambda s: ReceiptService(s, self.clock).receive_batch(
                    tenant_id, vendor_id, lines, dispatch_meta, actor_id
                ),
            )

    def delete_batch(self, tenant_id: UUID, batch_id: UUID, actor_id: UUID) -> BatchDTO:
        with LogContext.bind(actor_id=actor_id, tenant_id=tenant_id):
            return self.unit_of_work.run(
                "delete_batch",
                lambda s: ReceiptService(s, self.clock).delete_batch(tenant_id, batch_id, actor_id),
            )

    def assign_to_workers(
        self,
        tenant_id: UUID,
        jobworker_id: UUID,
        assigned_by: UUID,
        items,
        notes: str | None = None,
    ) -> AssignmentResult:
        with LogContext.bind(actor_id=assigned_by, tenant_id=tenant_id):
            return self.unit_of_work.run(
                "assign_to_workers",
                lambda s: AssignmentService(s, self.clock).assign_to_workers(
                    tenant_id, jobworker_id, assigned_by, items, notes
                ),
            )

    def submit_return(
        self,
        assignment_id: UUID,
        submitter_id: UUID,
        cleared: int,
        shortage: int,
        seconds: int,
    ) -> ReturnRequest:
        with LogContext.bind(actor_id=submitter_id, assignment_id=assignment_id):
            return self.unit_of_work.run(
                "submit_return",
                lambda s: ReturnService(s, self.clock).submit_return(
                    assignment_id, submitter_id, cleared, shortage, seconds
                ),
            )

    def review_return(
        self,
        request_id: UUID,
        action,
        reviewer_id: UUID,
        rejection_reason: str | None = None,
    ) -> WorkAssignment:
        with LogContext.bind(actor_id=reviewer_id, request_id=request_id):
            return self.unit_of_work.run(
                "review_return",
                lambda s: ReturnService(s, self.clock).review_return(
                    request_id, action, reviewer_id, rejection_reason
                ),
            )

    def direct_process_return(
        self,
        assignment_id: UUID,
        reviewer_id: UUID,
        cleared: int,
        shortage: int,
        seconds: int,
    ) -> WorkAssignment:
        with LogContext.bind(actor_id=reviewer_id, assignment_id=assignment_id):
            return self.unit_of_work.run(
                "direct_process_return",
                lambda s: ReturnService(s, self.clock).direct_process_return(
                    assignment_id, reviewer_id, cleared, shortage, seconds
                ),
            )

    def create_sale_order(
        self,
        tenant_id: UUID,
        lines,
        actor_id: UUID,
        invoice_no: str | None = None,
        invoice_date: date | None = None,
        customer_id: UUID | None = None,
        notes: str | None = None,
    ) -> SaleOrder:
        with LogContext.bind(actor_id=actor_id, tenant_id=tenant_id):
            return self.unit_of_work.run(
                "create_sale_order",
                lambda s: SaleService(s, self.clock).create_sale_order(
                    tenant_id,
                    lines,
                    actor_id,
                    invoice_no=invoice_no,
                    invoice_date=invoice_date,
                    customer_id=customer_id,
                    notes=notes,
                ),
            )

    def get_product_stock_summary(self, tenant_id: UUID) -> list[ProductStockDTO]:
        with LogContext.bind(tenant_id=tenant_id):
            return self.unit_of_work.run(
                "get_product_stock_summary",
                lambda s: StockSelector(s).stock_summary(tenant_id),
                write=False,
            )
