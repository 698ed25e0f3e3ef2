"""
Pure domain layer.

Data transfer objects and domain rules with NO dependencies on the ORM,
the database, or I/O (apart from SystemClock).  Everything here is
immutable and deterministic.
"""

from jobwork_kernel.domain.allocation import (
    BatchLineSnapshot,
    Draw,
    DrawPlan,
    fifo_order,
    plan_allocation,
)
from jobwork_kernel.domain.assignment_lifecycle import (
    AssignmentStatus,
    Free,
    Locked,
    ReturnLock,
    ReturnProposal,
    check_proposal_fits,
    derive_status,
    return_lock,
)
from jobwork_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = [
    "AssignmentStatus",
    "BatchLineSnapshot",
    "Clock",
    "DeterministicClock",
    "Draw",
    "DrawPlan",
    "Free",
    "Locked",
    "ReturnLock",
    "ReturnProposal",
    "SystemClock",
    "check_proposal_fits",
    "derive_status",
    "fifo_order",
    "plan_allocation",
    "return_lock",
]
