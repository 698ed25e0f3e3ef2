"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every write
    service.  Services receive a SQLAlchemy ``Session`` and persist with
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back themselves.  UnitOfWork
      owns commit/rollback.
    - Row locks are taken in the global order declared in
      ``jobwork_kernel.invariants.LOCK_ORDER``.
"""

from abc import ABC
from typing import Iterable, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from jobwork_kernel.db.base import Base
from jobwork_kernel.domain.clock import Clock, SystemClock
from jobwork_kernel.exceptions import NotFoundError

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
        - ``_lock`` reads rows with SELECT ... FOR UPDATE and refreshes any
          copy already in the identity map, so decisions are made on
          transaction-fresh data.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    def _lock(self, model: type[ModelType], entity_id: UUID) -> ModelType | None:
        return self.session.execute(
            select(model)
            .where(model.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_required(self, model: type[ModelType], entity_id: UUID) -> ModelType:
        row = self._lock(model, entity_id)
        if row is None:
            raise NotFoundError(model.__name__, str(entity_id))
        return row

    def _lock_many(self, model: type[ModelType], ids: Iterable[UUID]) -> dict[UUID, ModelType]:
        """Lock rows in ascending id order and return them keyed by id."""
        ordered = sorted(set(ids), key=str)
        if not ordered:
            return {}
        rows = self.session.execute(
            select(model)
            .where(model.id.in_(ordered))
            .order_by(model.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {row.id: row for row in rows}
