"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing numbers for batch receipt
    order, work assignment order, audit ledger entries, and the per-tenant
    human-readable dispatch (``CH-00001``) and invoice (``INV-00001``)
    numbers.  A dedicated counter table with row-level locking
    (``SELECT ... FOR UPDATE``) guarantees uniqueness under concurrency.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Sequences are strictly monotonic.  Aggregate max()+1 is never used;
      the locked counter row is the sole source of truth.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.
    - Counter rows are locked after every domain row, and the audit
      counter is always the last counter a unit of work touches.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and a locked re-read).
"""

from uuid import UUID

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from jobwork_kernel.db.base import Base
from jobwork_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    # e.g. "audit_entry", "dispatch:<tenant uuid>"
    name: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Usage:
        seq = SequenceService(session).next_value(SequenceService.AUDIT_ENTRY)
        # If the transaction rolls back, seq is not consumed.
    """

    # Well-known sequence names
    BATCH_RECEIPT = "batch_receipt"
    WORK_ASSIGNMENT = "work_assignment"
    AUDIT_ENTRY = "audit_entry"

    DISPATCH_PREFIX = "CH"
    INVOICE_PREFIX = "INV"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the named counter (creating it on first use), increment it and
        return the new value.

        Postconditions:
            - The returned value is > 0 and strictly greater than any value
              previously returned for this name.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use. Another transaction may create it at the same time;
            # the savepoint keeps the rest of our work intact if it does.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def next_dispatch_no(self, tenant_id: UUID) -> str:
        value = self.next_value(f"dispatch:{tenant_id}")
        return f"{self.DISPATCH_PREFIX}-{value:05d}"

    def next_invoice_no(self, tenant_id: UUID) -> str:
        value = self.next_value(f"invoice:{tenant_id}")
        return f"{self.INVOICE_PREFIX}-{value:05d}"
