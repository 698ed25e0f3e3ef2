"""
Concurrent operations against one database.

Threads are released together by a Barrier; every thread runs its own unit
of work through the shared StockLedger.  Runs on SQLite by default (writers
serialized by BEGIN IMMEDIATE) and on PostgreSQL when DATABASE_URL is set
(row locks).
"""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from threading import Barrier
from uuid import uuid4

import pytest

from jobwork_kernel.exceptions import (
    AlreadyReviewedError,
    InsufficientStockError,
    LockConflictError,
    OverAllocationError,
)
from jobwork_kernel.selectors.assignment_selector import AssignmentSelector
from jobwork_kernel.selectors.ledger_selector import LedgerSelector

pytestmark = pytest.mark.slow_locks

THREADS = 8


def _race(fn, count=THREADS):
    """Run fn(i) in ``count`` threads started together; return outcomes."""
    barrier = Barrier(count)

    def _run(i):
        barrier.wait()
        try:
            return ("ok", fn(i))
        except Exception as exc:
            return ("error", exc)

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_run, range(count)))


def _kinds(outcomes):
    return Counter(
        "ok" if status == "ok" else type(value).__name__ for status, value in outcomes
    )


class TestConcurrentAssignment:
    def test_never_oversells_stock(self, ledger, tenant_id, actor_id, stocked_product, read_stock, session_factory):
        workers = [uuid4() for _ in range(THREADS)]

        outcomes = _race(
            lambda i: ledger.assign_to_workers(
                tenant_id, workers[i], actor_id,
                [{"product_id": stocked_product.id, "quantity": 30}],
            )
        )

        kinds = _kinds(outcomes)
        assert kinds == Counter({"ok": 3, "InsufficientStockError": THREADS - 3})
        assert all(
            isinstance(v, InsufficientStockError) for s, v in outcomes if s == "error"
        )
        assert read_stock(stocked_product.id) == 10

        with session_factory() as session:
            issued = sum(AssignmentSelector(session).assigned_total(w) for w in workers)
            movement = LedgerSelector(session).stock_movement(stocked_product.id)
        assert issued == 90
        assert movement == 10

    def test_dispatch_numbers_unique(self, ledger, tenant_id, actor_id, jobworker_id, stocked_product):
        outcomes = _race(
            lambda i: ledger.assign_to_workers(
                tenant_id, jobworker_id, actor_id,
                [{"product_id": stocked_product.id, "quantity": 1}],
            )
        )
        numbers = sorted(v.dispatch.dispatch_no for s, v in outcomes if s == "ok")
        assert numbers == [f"CH-{n:05d}" for n in range(1, THREADS + 1)]


class TestConcurrentReturns:
    def test_one_submission_wins_the_lock(self, ledger, stocked_product, assign):
        wa = assign(stocked_product, 10)

        outcomes = _race(lambda i: ledger.submit_return(wa.id, uuid4(), 1, 0, 0))

        assert _kinds(outcomes) == Counter({"ok": 1, "LockConflictError": THREADS - 1})
        assert all(isinstance(v, LockConflictError) for s, v in outcomes if s == "error")

    def test_request_approved_exactly_once(self, ledger, stocked_product, assign, actor_id, read_stock):
        wa = assign(stocked_product, 10)
        request = ledger.submit_return(wa.id, actor_id, 7, 0, 0)

        outcomes = _race(lambda i: ledger.review_return(request.id, "approve", uuid4()))

        assert _kinds(outcomes) == Counter({"ok": 1, "AlreadyReviewedError": THREADS - 1})
        assert all(isinstance(v, AlreadyReviewedError) for s, v in outcomes if s == "error")
        assert read_stock(stocked_product.id) == 97

    def test_direct_processing_never_over_accounts(
        self, ledger, stocked_product, assign, actor_id, read_assignment
    ):
        wa = assign(stocked_product, 10)

        outcomes = _race(lambda i: ledger.direct_process_return(wa.id, actor_id, 3, 0, 0))

        assert _kinds(outcomes) == Counter({"ok": 3, "OverAllocationError": THREADS - 3})
        assert all(isinstance(v, OverAllocationError) for s, v in outcomes if s == "error")
        assert read_assignment(wa.id).cleared_quantity == 9


class TestConcurrentSales:
    def test_cleared_units_sold_once(self, ledger, tenant_id, stocked_product, assign, actor_id, read_assignment):
        wa = assign(stocked_product, 10)
        ledger.direct_process_return(wa.id, actor_id, 10, 0, 0)

        outcomes = _race(
            lambda i: ledger.create_sale_order(
                tenant_id, [{"product_id": stocked_product.id, "quantity": 4}], actor_id
            )
        )

        assert _kinds(outcomes) == Counter({"ok": 2, "InsufficientStockError": THREADS - 2})
        assert read_assignment(wa.id).sold_quantity == 8
        invoices = sorted(v.invoice_no for s, v in outcomes if s == "ok")
        assert invoices == ["INV-00001", "INV-00002"]
