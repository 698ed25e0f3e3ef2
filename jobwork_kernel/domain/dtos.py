"""
DTOs -- Pure data transfer objects for the stock ledger.

Responsibility:
    Immutable input specs handed to the public operations (receipt lines,
    dispatch metadata, assignment items, sale lines) and the read-side DTOs
    returned by selectors.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  from_model() class
    methods are boundary converters invoked only by selectors and services.

Failure modes:
    - ValidationError when raw input cannot be coerced into a spec
      (missing product, non-integer or non-positive quantity, negative price).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from jobwork_kernel.exceptions import ValidationError

if TYPE_CHECKING:
    from jobwork_kernel.models.audit_entry import AuditLedgerEntry
    from jobwork_kernel.models.inventory_batch import BatchLine, InventoryBatch
    from jobwork_kernel.models.return_request import ReturnRequest
    from jobwork_kernel.models.work_assignment import WorkAssignment


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def coerce_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field} is not a valid id: {value!r}", field=field) from None


def coerce_positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer, got {value!r}", field=field)
    if value <= 0:
        raise ValidationError(f"{field} must be greater than zero", field=field)
    return value


def coerce_amount(value: Any, field: str) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, bool) or isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field) from None
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return amount


def _get(raw: Any, key: str, default: Any = None) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(key, default)
    return getattr(raw, key, default)


# ---------------------------------------------------------------------------
# Input specs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReceiptLine:
    product_id: UUID
    quantity: int
    unit_price: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")

    @classmethod
    def coerce(cls, raw: Any) -> ReceiptLine:
        if isinstance(raw, cls):
            return raw
        return cls(
            product_id=coerce_uuid(_get(raw, "product_id"), "product_id"),
            quantity=coerce_positive_int(_get(raw, "quantity"), "quantity"),
            unit_price=coerce_amount(_get(raw, "unit_price"), "unit_price"),
            discount=coerce_amount(_get(raw, "discount"), "discount"),
        )


@dataclass(frozen=True)
class DispatchMeta:
    """Vendor challan header that accompanies a received batch."""

    challan_no: str
    challan_date: date
    firm_id: UUID | None = None
    notes: str = ""

    @classmethod
    def coerce(cls, raw: Any) -> DispatchMeta:
        if isinstance(raw, cls):
            return raw
        if raw is None:
            raise ValidationError("Challan details are required", field="dispatch_meta")
        challan_no = _get(raw, "challan_no")
        if not challan_no or not str(challan_no).strip():
            raise ValidationError("challan_no is required", field="challan_no")
        challan_date = _get(raw, "challan_date")
        if isinstance(challan_date, datetime):
            challan_date = challan_date.date()
        elif isinstance(challan_date, str):
            try:
                challan_date = date.fromisoformat(challan_date)
            except ValueError:
                raise ValidationError(
                    f"challan_date is not an ISO date: {challan_date!r}",
                    field="challan_date",
                ) from None
        if not isinstance(challan_date, date):
            raise ValidationError("challan_date is required", field="challan_date")
        firm_id = _get(raw, "firm_id")
        return cls(
            challan_no=str(challan_no).strip(),
            challan_date=challan_date,
            firm_id=coerce_uuid(firm_id, "firm_id") if firm_id is not None else None,
            notes=_get(raw, "notes") or "",
        )


@dataclass(frozen=True)
class AssignmentItem:
    product_id: UUID
    quantity: int
    price: Decimal = Decimal("0")

    @classmethod
    def coerce(cls, raw: Any) -> AssignmentItem:
        if isinstance(raw, cls):
            return raw
        return cls(
            product_id=coerce_uuid(_get(raw, "product_id"), "product_id"),
            quantity=coerce_positive_int(_get(raw, "quantity"), "quantity"),
            price=coerce_amount(_get(raw, "price"), "price"),
        )


@dataclass(frozen=True)
class SaleLine:
    product_id: UUID
    quantity: int
    price: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")

    @classmethod
    def coerce(cls, raw: Any) -> SaleLine:
        if isinstance(raw, cls):
            return raw
        return cls(
            product_id=coerce_uuid(_get(raw, "product_id"), "product_id"),
            quantity=coerce_positive_int(_get(raw, "quantity"), "quantity"),
            price=coerce_amount(_get(raw, "price"), "price"),
            discount=coerce_amount(_get(raw, "discount"), "discount"),
        )


# ---------------------------------------------------------------------------
# Read-side DTOs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProductStockDTO:
    product_id: UUID
    title: str
    sku: str | None
    total_available_stock: int


@dataclass(frozen=True)
class BatchLineDTO:
    batch_line_id: UUID
    product_id: UUID
    quantity_received: int
    quantity_remaining: int
    unit_price: Decimal
    discount: Decimal

    @classmethod
    def from_model(cls, line: BatchLine) -> BatchLineDTO:
        return cls(
            batch_line_id=line.id,
            product_id=line.product_id,
            quantity_received=line.quantity_received,
            quantity_remaining=line.quantity_remaining,
            unit_price=line.unit_price,
            discount=line.discount,
        )


@dataclass(frozen=True)
class BatchDTO:
    batch_id: UUID
    vendor_id: UUID | None
    challan_no: str
    challan_date: date
    notes: str
    lines: tuple[BatchLineDTO, ...]

    @classmethod
    def from_model(cls, batch: InventoryBatch) -> BatchDTO:
        return cls(
            batch_id=batch.id,
            vendor_id=batch.vendor_id,
            challan_no=batch.challan_no,
            challan_date=batch.challan_date,
            notes=batch.notes,
            lines=tuple(BatchLineDTO.from_model(line) for line in batch.lines),
        )


@dataclass(frozen=True)
class FifoAvailabilityDTO:
    """One batch line still able to supply a product, in draw order."""

    batch_line_id: UUID
    batch_id: UUID
    challan_no: str
    challan_date: date
    quantity_remaining: int


@dataclass(frozen=True)
class AssignmentDTO:
    assignment_id: UUID
    dispatch_id: UUID
    product_id: UUID
    jobworker_id: UUID
    quantity: int
    cleared_quantity: int
    lost_quantity: int
    damaged_quantity: int
    pending_cleared_quantity: int
    pending_lost_quantity: int
    pending_damaged_quantity: int
    sold_quantity: int
    status: str
    active_return_request_id: UUID | None
    assigned_at: datetime

    @classmethod
    def from_model(cls, wa: WorkAssignment) -> AssignmentDTO:
        return cls(
            assignment_id=wa.id,
            dispatch_id=wa.dispatch_id,
            product_id=wa.product_id,
            jobworker_id=wa.jobworker_id,
            quantity=wa.quantity,
            cleared_quantity=wa.cleared_quantity,
            lost_quantity=wa.lost_quantity,
            damaged_quantity=wa.damaged_quantity,
            pending_cleared_quantity=wa.pending_cleared_quantity,
            pending_lost_quantity=wa.pending_lost_quantity,
            pending_damaged_quantity=wa.pending_damaged_quantity,
            sold_quantity=wa.sold_quantity,
            status=wa.status.value,
            active_return_request_id=wa.active_return_request_id,
            assigned_at=wa.assigned_at,
        )


@dataclass(frozen=True)
class DispatchDTO:
    dispatch_id: UUID
    dispatch_no: str
    jobworker_id: UUID
    dispatch_date: datetime
    notes: str | None
    assignments: tuple[AssignmentDTO, ...]


@dataclass(frozen=True)
class JobworkerDispatchesDTO:
    """All dispatches sent to one job worker, newest first."""

    jobworker_id: UUID
    dispatches: tuple[DispatchDTO, ...]


@dataclass(frozen=True)
class StatusCountsDTO:
    jobworker_id: UUID
    pending: int
    in_progress: int
    cleared: int

    @property
    def total(self) -> int:
        return self.pending + self.in_progress + self.cleared


@dataclass(frozen=True)
class ReturnRequestDTO:
    request_id: UUID
    assignment_id: UUID
    cleared: int
    shortage: int
    seconds: int
    status: str
    is_direct: bool
    submitted_by: UUID
    submitted_at: datetime
    reviewed_by: UUID | None
    reviewed_at: datetime | None
    rejection_reason: str | None

    @classmethod
    def from_model(cls, req: ReturnRequest) -> ReturnRequestDTO:
        return cls(
            request_id=req.id,
            assignment_id=req.assignment_id,
            cleared=req.cleared,
            shortage=req.shortage,
            seconds=req.seconds,
            status=req.status.value,
            is_direct=req.is_direct,
            submitted_by=req.submitted_by,
            submitted_at=req.submitted_at,
            reviewed_by=req.reviewed_by,
            reviewed_at=req.reviewed_at,
            rejection_reason=req.rejection_reason,
        )


@dataclass(frozen=True)
class LedgerEntryDTO:
    seq: int
    action: str
    log: str
    quantity_change: int
    performed_by: UUID
    product_id: UUID
    related_dispatch_id: UUID | None
    related_assignment_id: UUID | None
    related_return_request_id: UUID | None
    created_at: datetime

    @classmethod
    def from_model(cls, entry: AuditLedgerEntry) -> LedgerEntryDTO:
        return cls(
            seq=entry.seq,
            action=str(entry.action.value if hasattr(entry.action, "value") else entry.action),
            log=entry.log,
            quantity_change=entry.quantity_change,
            performed_by=entry.performed_by,
            product_id=entry.product_id,
            related_dispatch_id=entry.related_dispatch_id,
            related_assignment_id=entry.related_assignment_id,
            related_return_request_id=entry.related_return_request_id,
            created_at=entry.created_at,
        )
