"""
SaleService -- onward sale of cleared stock.

Responsibility:
    Create a sale order whose lines are fulfilled from Cleared work
    assignments, oldest first, and deduct the sold quantity from the
    product's available stock.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - A sale increments an assignment's sold_quantity; quantity and the
      cleared/lost/damaged counters are never touched, so the lifecycle
      status stays valid.
    - sold_quantity <= cleared_quantity is re-checked after each deduction.
    - Lock order: products (ascending id) -> eligible assignments
      (per product, ascending product id, oldest assignment first) ->
      invoice / audit counters.
    - Order, lines, fulfilments, assignment updates and product debits are
      one atomic unit.

Failure modes:
    - ValidationError: empty or malformed lines, duplicate invoice number.
    - NotFoundError: unknown or other-tenant product.
    - InsufficientStockError: cleared-and-unsold quantity, or product stock,
      below the requested total.  Checked for every product before writing.
"""

from collections import defaultdict
from datetime import date
from uuid import UUID

from sqlalchemy import select

from jobwork_kernel.domain.assignment_lifecycle import AssignmentStatus
from jobwork_kernel.domain.dtos import SaleLine, coerce_uuid
from jobwork_kernel.exceptions import InsufficientStockError, ValidationError
from jobwork_kernel.logging_config import get_logger
from jobwork_kernel.models.product import Product
from jobwork_kernel.models.sale_order import SaleFulfillment, SaleOrder, SaleOrderLine
from jobwork_kernel.models.work_assignment import WorkAssignment
from jobwork_kernel.services.audit_ledger import AuditLedger
from jobwork_kernel.services.base import BaseService
from jobwork_kernel.services.product_service import ProductService
from jobwork_kernel.services.sequence_service import SequenceService

logger = get_logger("services.sale")


class SaleService(BaseService):
    def lock_eligible_assignments(self, product: Product) -> list[WorkAssignment]:
        """Cleared assignments of this product with unsold units, oldest first."""
        return list(
            self.session.execute(
                select(WorkAssignment)
                .where(
                    WorkAssignment.tenant_id == product.tenant_id,
                    WorkAssignment.product_id == product.id,
                    WorkAssignment.status == AssignmentStatus.CLEARED,
                    WorkAssignment.cleared_quantity > WorkAssignment.sold_quantity,
                )
                .order_by(WorkAssignment.assignment_seq)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
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
        if not lines:
            raise ValidationError("At least one sale line is required", field="lines")
        specs = [SaleLine.coerce(raw) for raw in lines]
        if customer_id is not None:
            customer_id = coerce_uuid(customer_id, "customer_id")

        products = ProductService(self.session, self.clock)
        locked = products.lock_for_tenant(tenant_id, [s.product_id for s in specs])

        requested: dict[UUID, int] = defaultdict(int)
        for spec in specs:
            requested[spec.product_id] += spec.quantity

        queues: dict[UUID, list[WorkAssignment]] = {}
        for product_id in sorted(requested, key=str):
            product = locked[product_id]
            eligible = self.lock_eligible_assignments(product)
            available = sum(wa.unsold_cleared_quantity for wa in eligible)
            if available < requested[product_id]:
                raise InsufficientStockError(
                    product_id=str(product_id),
                    available=available,
                    requested=requested[product_id],
                )
            if product.total_available_stock < requested[product_id]:
                raise InsufficientStockError(
                    product_id=str(product_id),
                    available=product.total_available_stock,
                    requested=requested[product_id],
                )
            queues[product_id] = eligible

        sequences = SequenceService(self.session)
        if invoice_no is None or not str(invoice_no).strip():
            invoice_no = sequences.next_invoice_no(tenant_id)
        else:
            invoice_no = str(invoice_no).strip()
            taken = self.session.execute(
                select(SaleOrder.id).where(
                    SaleOrder.tenant_id == tenant_id,
                    SaleOrder.invoice_no == invoice_no,
                )
            ).scalar_one_or_none()
            if taken is not None:
                raise ValidationError(
                    f"Invoice number {invoice_no} already exists", field="invoice_no"
                )

        order = SaleOrder(
            tenant_id=tenant_id,
            invoice_no=invoice_no,
            invoice_date=invoice_date or self.clock.today(),
            customer_id=customer_id,
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(order)

        fulfilled_by: list[tuple[SaleLine, list[UUID]]] = []
        for line_no, spec in enumerate(specs, start=1):
            line = SaleOrderLine(
                line_no=line_no,
                product_id=spec.product_id,
                quantity=spec.quantity,
                price=spec.price,
                discount=spec.discount,
                created_by_id=actor_id,
            )
            order.lines.append(line)

            need = spec.quantity
            used: list[UUID] = []
            for wa in queues[spec.product_id]:
                if need == 0:
                    break
                take = min(need, wa.unsold_cleared_quantity)
                if take <= 0:
                    continue
                wa.sold_quantity += take
                wa.updated_by_id = actor_id
                if wa.sold_quantity > wa.cleared_quantity:
                    raise InsufficientStockError(
                        product_id=str(spec.product_id),
                        available=wa.cleared_quantity - (wa.sold_quantity - take),
                        requested=take,
                    )
                line.fulfillments.append(
                    SaleFulfillment(
                        assignment_id=wa.id,
                        quantity=take,
                        created_by_id=actor_id,
                    )
                )
                used.append(wa.id)
                need -= take

            products.debit(locked[spec.product_id], spec.quantity, actor_id)
            fulfilled_by.append((spec, used))

        self.session.flush()

        audit = AuditLedger(self.session, self.clock)
        for spec, used in fulfilled_by:
            audit.sale_fulfilled(
                locked[spec.product_id], spec.quantity, order.id, order.invoice_no, actor_id, used
            )

        logger.info(
            "sale_order_created",
            extra={
                "sale_order_id": str(order.id),
                "invoice_no": order.invoice_no,
                "line_count": len(specs),
                "total_quantity": sum(s.quantity for s in specs),
            },
        )
        return order
