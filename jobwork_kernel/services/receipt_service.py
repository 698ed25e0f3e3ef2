"""
ReceiptService -- inbound stock from vendors.

Responsibility:
    Persist a received batch (vendor challan) with one line per product and
    credit each product's available stock by the received quantity.
    Delete a batch again while none of its lines has been drawn from.

Architecture position:
    Kernel > Services -- imperative shell.  Runs inside one unit of work.

Invariants enforced:
    - Every line starts with quantity_remaining == quantity_received.
    - Batch creation and all product credits are one atomic unit; the
      unit of work commits both or neither.
    - Deletion locks products, then batch lines, and is refused once any
      line has supplied an assignment.

Failure modes:
    - ValidationError: no lines, malformed line, missing challan details.
    - NotFoundError: a product is missing or belongs to another tenant.
      Raised before anything is written.
"""

from uuid import UUID

from jobwork_kernel.domain.dtos import BatchDTO, DispatchMeta, ReceiptLine, coerce_uuid
from jobwork_kernel.exceptions import NotFoundError, ValidationError
from jobwork_kernel.logging_config import get_logger
from jobwork_kernel.models.inventory_batch import BatchLine, InventoryBatch
from jobwork_kernel.services.audit_ledger import AuditLedger
from jobwork_kernel.services.base import BaseService
from jobwork_kernel.services.product_service import ProductService
from jobwork_kernel.services.sequence_service import SequenceService

logger = get_logger("services.receipt")


class ReceiptService(BaseService):
    def receive_batch(
        self,
        tenant_id: UUID,
        vendor_id: UUID | None,
        lines,
        dispatch_meta,
        actor_id: UUID,
    ) -> InventoryBatch:
        if not lines:
            raise ValidationError("At least one product line is required", field="lines")
        specs = [ReceiptLine.coerce(raw) for raw in lines]
        meta = DispatchMeta.coerce(dispatch_meta)
        if vendor_id is not None:
            vendor_id = coerce_uuid(vendor_id, "vendor_id")

        products = ProductService(self.session, self.clock)
        locked = products.lock_for_tenant(tenant_id, [s.product_id for s in specs])

        batch = InventoryBatch(
            tenant_id=tenant_id,
            vendor_id=vendor_id,
            firm_id=meta.firm_id,
            challan_no=meta.challan_no,
            challan_date=meta.challan_date,
            receipt_seq=SequenceService(self.session).next_value(SequenceService.BATCH_RECEIPT),
            notes=meta.notes,
            created_by_id=actor_id,
        )
        self.session.add(batch)

        for line_no, spec in enumerate(specs, start=1):
            batch.lines.append(
                BatchLine(
                    line_no=line_no,
                    product_id=spec.product_id,
                    quantity_received=spec.quantity,
                    quantity_remaining=spec.quantity,
                    unit_price=spec.unit_price,
                    discount=spec.discount,
                    created_by_id=actor_id,
                )
            )
            products.credit(locked[spec.product_id], spec.quantity, actor_id)

        self.session.flush()

        audit = AuditLedger(self.session, self.clock)
        for spec in specs:
            audit.batch_received(
                locked[spec.product_id], spec.quantity, batch.id, batch.challan_no, actor_id
            )

        logger.info(
            "batch_received",
            extra={
                "batch_id": str(batch.id),
                "challan_no": batch.challan_no,
                "line_count": len(specs),
                "total_quantity": sum(s.quantity for s in specs),
            },
        )
        return batch

    def delete_batch(self, tenant_id: UUID, batch_id: UUID, actor_id: UUID) -> BatchDTO:
        """
        Remove a received batch that nothing has been drawn from.

        Each product's stock is debited by the line's received quantity and
        a BATCH_DELETED entry is written per line.  Returns a snapshot of the
        batch as it was before deletion.

        Raises:
            NotFoundError: unknown batch, or one owned by another tenant.
            ValidationError: a line has already supplied an assignment.
            InsufficientStockError: a product's stock no longer covers the
                line (the units were sold or reassigned from returns).
        """
        batch_id = coerce_uuid(batch_id, "batch_id")
        batch = self.session.get(InventoryBatch, batch_id)
        if batch is None or batch.tenant_id != tenant_id:
            raise NotFoundError("InventoryBatch", str(batch_id))

        products = ProductService(self.session, self.clock)
        locked = products.lock_for_tenant(tenant_id, [line.product_id for line in batch.lines])
        lines = self._lock_many(BatchLine, [line.id for line in batch.lines])

        drawn = [line for line in lines.values() if line.is_drawn_from]
        if drawn:
            raise ValidationError(
                f"Batch {batch.challan_no} has supplied {len(drawn)} line(s) "
                "to assignments and cannot be deleted",
                field="batch_id",
            )

        snapshot = BatchDTO.from_model(batch)
        for line in batch.lines:
            products.debit(locked[line.product_id], line.quantity_received, actor_id)
            self.session.delete(line)
        self.session.delete(batch)
        self.session.flush()

        audit = AuditLedger(self.session, self.clock)
        for line in snapshot.lines:
            audit.batch_deleted(
                locked[line.product_id],
                line.quantity_received,
                batch_id,
                snapshot.challan_no,
                actor_id,
            )

        logger.info(
            "batch_deleted",
            extra={
                "batch_id": str(batch_id),
                "challan_no": snapshot.challan_no,
                "line_count": len(snapshot.lines),
            },
        )
        return snapshot
