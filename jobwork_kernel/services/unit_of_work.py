"""
UnitOfWork -- explicit transaction boundary for every public operation.

Responsibility:
    Run an operation against a fresh session, commit on success and roll
    back on any exception.  Storage failures that mean "another transaction
    got there first" are retried a bounded number of times; everything else
    propagates unchanged.

Architecture position:
    Kernel > Services -- the only place in the kernel that commits.

Invariants enforced:
    - All writes of one operation commit together or not at all.
    - A new session per attempt: nothing read in a failed attempt is reused.
    - Domain errors (JobworkKernelError) are never retried.

Failure modes:
    - ContentionError: a lock wait timed out, or every attempt hit a stale
      version, deadlock, serialization failure or busy database.
    - Any other exception from the operation, after rollback.
"""

import time
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from jobwork_kernel.db.engine import WRITE_TRANSACTION
from jobwork_kernel.exceptions import ContentionError, JobworkKernelError
from jobwork_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.unit_of_work")

T = TypeVar("T")

# PostgreSQL SQLSTATEs
_PG_RETRYABLE = frozenset({"40001", "40P01"})  # serialization_failure, deadlock_detected
_PG_LOCK_TIMEOUT = frozenset({"55P03"})  # lock_not_available

_SQLITE_BUSY_MARKERS = ("database is locked", "database is busy", "database table is locked")

RETRY = "retry"
TIMEOUT = "timeout"


def classify_failure(exc: BaseException) -> str | None:
    """
    Map a storage exception to RETRY, TIMEOUT or None (not a contention
    failure).
    """
    if isinstance(exc, StaleDataError):
        return RETRY
    if isinstance(exc, DBAPIError):
        pgcode = getattr(exc.orig, "pgcode", None)
        if pgcode in _PG_RETRYABLE:
            return RETRY
        if pgcode in _PG_LOCK_TIMEOUT:
            return TIMEOUT
        if isinstance(exc, OperationalError):
            message = str(exc.orig).lower()
            if any(marker in message for marker in _SQLITE_BUSY_MARKERS):
                return RETRY
    return None


class UnitOfWork:
    """
    Transaction runner.

    Usage:
        uow = UnitOfWork(get_session_factory(), max_attempts=3)
        batch = uow.run("receive_batch", lambda s: ReceiptService(s).receive_batch(...))
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._session_factory = session_factory
        self.max_attempts = max_attempts
        self.retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep

    def run(self, operation: str, fn: Callable[[Session], T], write: bool = True) -> T:
        """
        Run ``fn`` in its own transaction.

        ``write=False`` marks a pure read: on SQLite it begins a deferred
        transaction instead of taking the database write lock.
        """
        with LogContext.bind(operation=operation):
            return self._run(operation, fn, write)

    def _run(self, operation: str, fn: Callable[[Session], T], write: bool) -> T:
        for attempt in range(1, self.max_attempts + 1):
            session = self._session_factory()
            try:
                if write:
                    session.connection(execution_options={WRITE_TRANSACTION: True})
                result = fn(session)
                session.commit()
                logger.debug(
                    "transaction_committed",
                    extra={"attempt": attempt},
                )
                return result
            except JobworkKernelError:
                session.rollback()
                raise
            except Exception as exc:
                session.rollback()
                kind = classify_failure(exc)
                if kind is None:
                    logger.warning(
                        "transaction_rolled_back",
                        extra={"operation": operation, "attempt": attempt},
                        exc_info=True,
                    )
                    raise
                if kind == TIMEOUT or attempt == self.max_attempts:
                    logger.warning(
                        "transaction_contention",
                        extra={
                            "operation": operation,
                            "attempt": attempt,
                            "reason": type(exc).__name__,
                        },
                    )
                    raise ContentionError(operation, attempt) from exc
                logger.info(
                    "transaction_retry",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "reason": type(exc).__name__,
                    },
                )
                self._sleep(self.retry_backoff_seconds * attempt)
            finally:
                session.close()

        # Unreachable: the last attempt either returns or raises.
        raise ContentionError(operation, self.max_attempts)
