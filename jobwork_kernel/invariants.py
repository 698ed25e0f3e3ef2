"""
Kernel Invariants Contract.

These invariants are structural law for the stock ledger. No configuration
value may switch them off. This module declares them explicitly; enforcement
is distributed across the services, DB check constraints and the ORM
immutability listeners.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    BATCH_LINE_BOUNDS = "batch_line_bounds"
    """0 <= quantity_remaining <= quantity_received on every batch line.
    Enforced by AllocationService and a DB check constraint."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """Product.total_available_stock never drops below zero. Enforced by the
    stock checks in AllocationService / SaleService and a DB check."""

    ASSIGNMENT_CONSERVATION = "assignment_conservation"
    """committed + pending counters never exceed the assigned quantity.
    Enforced by ReturnService and assignment_lifecycle."""

    SINGLE_OUTSTANDING_RETURN = "single_outstanding_return"
    """At most one pending return request per assignment, tracked by the
    ReturnLock on active_return_request_id."""

    SOLD_WITHIN_CLEARED = "sold_within_cleared"
    """sold_quantity <= cleared_quantity on every assignment. Enforced by
    SaleService and a DB check."""

    AUDIT_APPEND_ONLY = "audit_append_only"
    """Audit ledger entries are never updated or deleted. Enforced by
    jobwork_kernel.db.immutability listeners."""

    ATOMIC_UNIT_OF_WORK = "atomic_unit_of_work"
    """Every public operation commits all of its writes or none of them.
    Enforced by UnitOfWork."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# Row locks are always acquired in this order to rule out deadlock cycles.
LOCK_ORDER: tuple[str, ...] = (
    "products",
    "batch_lines",
    "work_assignments",
    "return_requests",
    "sequence_counters",
)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "jobwork_config",
)
