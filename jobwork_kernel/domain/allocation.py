"""
Allocation -- Pure FIFO draw planning.

Responsibility:
    Decide which batch lines supply a requested quantity of one product,
    oldest stock first, without touching the database.  Applying the plan is
    the job of services/allocation_service.py.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Lines are consumed in FIFO order: challan date ascending, ties broken by
      the batch receipt sequence and then by line number.
    - No line is drawn beyond its quantity_remaining.
    - sum(draws) + from_pool == need.

Failure modes:
    - ValidationError if need is not a positive integer.

Audit relevance:
    A DrawPlan is what the AssignmentSource rows of a work assignment record,
    so the provenance of every issued piece is traceable to a batch line or
    to the returned-stock pool.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable
from uuid import UUID

from jobwork_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class BatchLineSnapshot:
    """Point-in-time view of one batch line that can supply a product."""

    batch_line_id: UUID
    batch_id: UUID
    challan_date: date
    receipt_seq: int
    line_no: int
    quantity_remaining: int

    @property
    def fifo_key(self) -> tuple:
        return (self.challan_date, self.receipt_seq, self.line_no, str(self.batch_line_id))


@dataclass(frozen=True)
class Draw:
    batch_line_id: UUID
    batch_id: UUID
    quantity: int


@dataclass(frozen=True)
class DrawPlan:
    """
    Result of planning one (product, quantity) allocation.

    ``from_pool`` is the part of ``need`` the batches could not cover; it is
    taken from stock credited back by approved returns, which belongs to no
    batch.
    """

    need: int
    draws: tuple[Draw, ...]
    from_pool: int = 0

    @property
    def from_batches(self) -> int:
        return sum(d.quantity for d in self.draws)

    @property
    def is_fully_batched(self) -> bool:
        return self.from_pool == 0


def fifo_order(lines: Iterable[BatchLineSnapshot]) -> list[BatchLineSnapshot]:
    """Oldest receipt first."""
    return sorted(lines, key=lambda line: line.fifo_key)


def plan_allocation(lines: Iterable[BatchLineSnapshot], need: int) -> DrawPlan:
    """
    Walk the batch lines oldest first, drawing min(outstanding, remaining)
    from each until ``need`` is satisfied or the lines are exhausted.

    Lines with nothing remaining are skipped.  Whatever the lines cannot
    cover is reported as ``from_pool``; the caller has already checked the
    product's total available stock, which includes that pool.
    """
    if isinstance(need, bool) or not isinstance(need, int) or need <= 0:
        raise ValidationError(f"Quantity must be a positive integer, got {need!r}", field="quantity")

    outstanding = need
    draws: list[Draw] = []
    for line in fifo_order(lines):
        if outstanding == 0:
            break
        if line.quantity_remaining <= 0:
            continue
        take = min(outstanding, line.quantity_remaining)
        draws.append(Draw(line.batch_line_id, line.batch_id, take))
        outstanding -= take

    return DrawPlan(need=need, draws=tuple(draws), from_pool=outstanding)
