"""
Typed Exception Hierarchy for the Job-Work Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock and assignment operations fail for a small number of well-understood
reasons. Callers (the HTTP layer, batch tooling, tests) must be able to tell
them apart without parsing messages:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)
  4. ``to_dict()`` gives the user-visible shape: code + human message,
     never a stack trace or storage-engine detail

Example - WRONG way to handle errors:
    try:
        ledger.submit_return(...)
    except Exception as e:
        if "already pending" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        ledger.submit_return(...)
    except LockConflictError as e:
        respond(409, e.to_dict())

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    JobworkKernelError (base)
    |
    +-- ValidationError
    +-- NotFoundError
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- OverAllocationError
    |
    +-- ReturnWorkflowError
    |   +-- LockConflictError
    |   +-- AlreadyReviewedError
    |
    +-- ConcurrencyError
    |   +-- ContentionError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                   | When Raised
-----------------------|--------------------------------------------------
VALIDATION_ERROR       | Malformed or missing input (no mutation attempted)
NOT_FOUND              | Referenced product/assignment/request absent
INSUFFICIENT_STOCK     | Requested quantity exceeds available/cleared stock
OVER_ALLOCATION        | Return proposal exceeds remaining unaccounted qty
RETURN_LOCK_CONFLICT   | A return request is already outstanding
ALREADY_REVIEWED       | Review attempted on a non-pending request
CONTENTION             | Transaction could not be serialized (retryable)
IMMUTABILITY_VIOLATION | Update/delete of an append-only record

===============================================================================
PROPAGATION
===============================================================================

All errors are raised before any mutation is flushed, or inside the unit of
work so the whole transaction rolls back. ContentionError is the ONLY kind a
caller should retry blindly; ``retryable`` is True only there.
"""


class JobworkKernelError(Exception):
    """
    Base exception for all job-work kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "JOBWORK_KERNEL_ERROR"
    retryable: bool = False

    def to_dict(self) -> dict[str, str]:
        """User-visible representation: stable code plus human message."""
        return {"code": self.code, "message": str(self)}


class ValidationError(JobworkKernelError):
    """Malformed or missing input. Caller error."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NotFoundError(JobworkKernelError):
    """A referenced entity does not exist (or is outside the tenant)."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Stock-related exceptions


class StockError(JobworkKernelError):
    """Base exception for stock quantity errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Requested quantity exceeds available (or cleared) stock."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Not enough stock for product {product_id}. "
            f"Available: {available}, Required: {requested}"
        )


class OverAllocationError(StockError):
    """Return proposal exceeds the assignment's remaining unaccounted quantity."""

    code: str = "OVER_ALLOCATION"

    def __init__(self, assignment_id: str, proposed: int, remaining: int):
        self.assignment_id = assignment_id
        self.proposed = proposed
        self.remaining = remaining
        super().__init__(
            f"Cannot account for {proposed} items on assignment {assignment_id}: "
            f"only {remaining} are left"
        )


# Return workflow exceptions


class ReturnWorkflowError(JobworkKernelError):
    """Base exception for return-request workflow errors."""

    code: str = "RETURN_WORKFLOW_ERROR"


class LockConflictError(ReturnWorkflowError):
    """An outstanding return request already exists for the assignment."""

    code: str = "RETURN_LOCK_CONFLICT"

    def __init__(self, assignment_id: str, active_request_id: str):
        self.assignment_id = assignment_id
        self.active_request_id = active_request_id
        super().__init__(
            f"Assignment {assignment_id} already has a pending return request "
            f"({active_request_id}); wait for it to be reviewed"
        )


class AlreadyReviewedError(ReturnWorkflowError):
    """Review attempted on a request that is no longer pending."""

    code: str = "ALREADY_REVIEWED"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(f"Return request {request_id} has already been {status}")


# Concurrency-related exceptions


class ConcurrencyError(JobworkKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ContentionError(ConcurrencyError):
    """
    The transaction could not be serialized within bounds.

    Raised when a row lock cannot be acquired before the configured lock
    timeout, or when every retry attempt hit a stale version, deadlock or
    serialization failure. Safe for the caller to retry.
    """

    code: str = "CONTENTION"
    retryable: bool = True

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Operation {operation} could not be serialized after "
            f"{attempts} attempt(s); retry the request"
        )


# Immutability-related exceptions


class ImmutabilityError(JobworkKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Audit ledger entries are append-only; reviewed return requests, dispatch
    headers, and drawn-from batches are frozen.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
