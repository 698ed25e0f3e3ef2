"""
Assignment lifecycle -- the work-assignment state machine and return lock.

Responsibility:
    Pure rules for a work assignment's accounting: status derivation from
    the committed counters, validation of a proposed return, and the
    explicit ``ReturnLock`` state that guards the two-phase return workflow.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  models/ imports the
    AssignmentStatus enum from here.

Invariants enforced:
    - status == Cleared iff cleared + lost + damaged == quantity;
      InProgress iff 0 < sum < quantity; Pending iff sum == 0.
    - cleared + lost + damaged (+ any staged proposal) never exceeds quantity.
    - At most one outstanding proposal per assignment (ReturnLock).

Failure modes:
    - OverAllocationError when an accounted sum would exceed quantity.
    - ValidationError for negative or non-integer proposal quantities.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from jobwork_kernel.exceptions import OverAllocationError, ValidationError


class AssignmentStatus(str, Enum):
    """Lifecycle status of a work assignment."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    CLEARED = "Cleared"


def derive_status(
    quantity: int,
    cleared: int,
    lost: int,
    damaged: int,
    assignment_id: UUID | str | None = None,
) -> AssignmentStatus:
    """
    Compute the status from the committed counters.

    Recomputed on every commit, never cached on the side.
    """
    accounted = cleared + lost + damaged
    if accounted > quantity:
        raise OverAllocationError(
            assignment_id=str(assignment_id),
            proposed=accounted,
            remaining=quantity,
        )
    if accounted == 0:
        return AssignmentStatus.PENDING
    if accounted == quantity:
        return AssignmentStatus.CLEARED
    return AssignmentStatus.IN_PROGRESS


# ---------------------------------------------------------------------------
# Return proposals
# ---------------------------------------------------------------------------


def _non_negative_int(value, field: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer, got {value!r}", field=field)
    if value < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return value


@dataclass(frozen=True)
class ReturnProposal:
    """
    A proposed split of outstanding quantity.

    ``shortage`` becomes lost quantity and ``seconds`` becomes damaged
    quantity once approved.
    """

    cleared: int
    shortage: int
    seconds: int

    @classmethod
    def of(cls, cleared, shortage, seconds) -> ReturnProposal:
        """Build a proposal from raw input; None counts as zero."""
        return cls(
            cleared=_non_negative_int(cleared, "cleared"),
            shortage=_non_negative_int(shortage, "shortage"),
            seconds=_non_negative_int(seconds, "seconds"),
        )

    @property
    def total(self) -> int:
        return self.cleared + self.shortage + self.seconds


def check_proposal_fits(
    proposal: ReturnProposal,
    remaining: int,
    assignment_id: UUID | str | None = None,
) -> None:
    """
    Reject a proposal that is empty or larger than what is left to account for.

    ``remaining`` is quantity minus committed counters, minus whatever other
    proposals already hold.
    """
    if proposal.total <= 0 or proposal.total > remaining:
        raise OverAllocationError(
            assignment_id=str(assignment_id),
            proposed=proposal.total,
            remaining=remaining,
        )


# ---------------------------------------------------------------------------
# Return lock
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Free:
    """No return request is outstanding."""

    @property
    def is_locked(self) -> bool:
        return False


@dataclass(frozen=True)
class Locked:
    """A return request is outstanding and blocks new proposals."""

    request_id: UUID

    @property
    def is_locked(self) -> bool:
        return True


ReturnLock = Free | Locked


def return_lock(active_return_request_id: UUID | None) -> ReturnLock:
    """Lift the nullable column into the explicit lock state."""
    if active_return_request_id is None:
        return Free()
    return Locked(active_return_request_id)
