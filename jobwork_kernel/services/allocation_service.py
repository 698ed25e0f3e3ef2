"""
AllocationService -- applies FIFO draw plans to batch lines and products.

Responsibility:
    For one (product, quantity) pair: check the product's available stock,
    lock the product's open batch lines in FIFO order, plan the draw with
    the pure ``plan_allocation`` and apply it.  The returned sources are
    attached to the work assignment being created.

Architecture position:
    Kernel > Services -- imperative shell around domain/allocation.py.

Invariants enforced:
    - The stock check precedes any mutation; InsufficientStockError leaves
      every row untouched.
    - Batch lines are locked (SELECT ... FOR UPDATE) in FIFO order after
      the product lock, and their version counters catch any stale write.
    - 0 <= quantity_remaining on every line after the draw.

Failure modes:
    - InsufficientStockError: product stock below the requested quantity.
    - StaleDataError (from flush): a line changed under us; the unit of
      work retries the whole operation.
"""

from uuid import UUID

from sqlalchemy import select

from jobwork_kernel.domain.allocation import BatchLineSnapshot, DrawPlan, plan_allocation
from jobwork_kernel.exceptions import InsufficientStockError
from jobwork_kernel.logging_config import LogContext, get_logger
from jobwork_kernel.models.inventory_batch import BatchLine, InventoryBatch
from jobwork_kernel.models.product import Product
from jobwork_kernel.models.work_assignment import AssignmentSource
from jobwork_kernel.services.base import BaseService
from jobwork_kernel.services.product_service import ProductService

logger = get_logger("services.allocation")


class AllocationService(BaseService):
    def lock_open_lines(self, product: Product) -> list[BatchLine]:
        """Lock every line of this product with stock left, oldest first."""
        return list(
            self.session.execute(
                select(BatchLine)
                .join(InventoryBatch, BatchLine.batch_id == InventoryBatch.id)
                .where(
                    BatchLine.product_id == product.id,
                    BatchLine.quantity_remaining > 0,
                    InventoryBatch.tenant_id == product.tenant_id,
                )
                .order_by(
                    InventoryBatch.challan_date,
                    InventoryBatch.receipt_seq,
                    BatchLine.line_no,
                )
                .with_for_update(of=BatchLine)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def allocate(self, product: Product, need: int, actor_id: UUID) -> tuple[DrawPlan, list[AssignmentSource]]:
        """
        Draw ``need`` units of an already-locked product.

        Returns the plan and unsaved AssignmentSource rows, one per draw
        plus one for any quantity taken from the returned-stock pool.
        """
        if product.total_available_stock < need:
            raise InsufficientStockError(
                product_id=str(product.id),
                available=product.total_available_stock,
                requested=need,
            )

        lines = self.lock_open_lines(product)
        by_id = {line.id: line for line in lines}
        snapshots = [
            BatchLineSnapshot(
                batch_line_id=line.id,
                batch_id=line.batch_id,
                challan_date=line.batch.challan_date,
                receipt_seq=line.batch.receipt_seq,
                line_no=line.line_no,
                quantity_remaining=line.quantity_remaining,
            )
            for line in lines
        ]
        plan = plan_allocation(snapshots, need)

        with LogContext.bind(product_id=product.id):
            logger.info(
                "allocation_planned",
                extra={
                    "need": need,
                    "draws": [(str(d.batch_line_id), d.quantity) for d in plan.draws],
                    "from_pool": plan.from_pool,
                },
            )

        sources: list[AssignmentSource] = []
        for order, draw in enumerate(plan.draws, start=1):
            line = by_id[draw.batch_line_id]
            line.quantity_remaining -= draw.quantity
            line.updated_by_id = actor_id
            assert 0 <= line.quantity_remaining <= line.quantity_received
            sources.append(
                AssignmentSource(
                    batch_line_id=line.id,
                    batch_id=line.batch_id,
                    draw_order=order,
                    quantity=draw.quantity,
                    created_by_id=actor_id,
                )
            )

        if plan.from_pool:
            sources.append(
                AssignmentSource(
                    batch_line_id=None,
                    batch_id=None,
                    draw_order=len(plan.draws) + 1,
                    quantity=plan.from_pool,
                    created_by_id=actor_id,
                )
            )

        ProductService(self.session, self.clock).debit(product, need, actor_id)
        return plan, sources
