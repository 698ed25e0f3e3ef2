"""
Assigning stock to job workers.

Covers FIFO draws across batches, the per-tenant dispatch number, the
returned-stock pool, and that a failed dispatch changes nothing.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from jobwork_kernel.domain.assignment_lifecycle import AssignmentStatus
from jobwork_kernel.exceptions import InsufficientStockError, NotFoundError, ValidationError
from jobwork_kernel.models.audit_entry import LedgerAction
from jobwork_kernel.models.dispatch import Dispatch
from jobwork_kernel.selectors.assignment_selector import AssignmentSelector
from jobwork_kernel.selectors.ledger_selector import LedgerSelector
from jobwork_kernel.selectors.stock_selector import StockSelector


class TestFifoDraw:
    def test_draw_spans_batches_oldest_first(self, make_product, receive, assign, read_stock, read):
        product = make_product()
        older = receive(product, 5, challan_date=date(2024, 1, 1))
        newer = receive(product, 10, challan_date=date(2024, 1, 5))

        assignment = assign(product, 8)

        assert [(s.batch_id, s.quantity) for s in assignment.sources] == [
            (older.id, 5),
            (newer.id, 3),
        ]
        assert read_stock(product.id) == 7

        available = read(lambda s: StockSelector(s).fifo_availability(product.id))
        assert [(a.batch_id, a.quantity_remaining) for a in available] == [(newer.id, 7)]

    def test_back_dated_receipt_is_drawn_first(self, make_product, receive, assign):
        product = make_product()
        later_received = receive(product, 10, challan_date=date(2024, 3, 1))
        back_dated = receive(product, 10, challan_date=date(2024, 2, 1))

        assignment = assign(product, 4)
        assert [s.batch_id for s in assignment.sources] == [back_dated.id]
        assert later_received.id not in {s.batch_id for s in assignment.sources}

    def test_new_assignment_is_pending_with_zero_counters(self, stocked_product, assign, jobworker_id):
        wa = assign(stocked_product, 12, price="18.50")
        assert wa.status is AssignmentStatus.PENDING
        assert wa.quantity == 12
        assert wa.price == Decimal("18.50")
        assert wa.jobworker_id == jobworker_id
        assert (wa.cleared_quantity, wa.lost_quantity, wa.damaged_quantity) == (0, 0, 0)
        assert wa.active_return_request_id is None


class TestDispatch:
    def test_multi_product_dispatch(self, ledger, tenant_id, actor_id, jobworker_id, make_product, receive, read_stock):
        kurta = make_product("Kurta")
        saree = make_product("Saree")
        receive(kurta, 20)
        receive(saree, 20)

        result = ledger.assign_to_workers(
            tenant_id,
            jobworker_id,
            actor_id,
            [
                {"product_id": kurta.id, "quantity": 5, "price": "10"},
                {"product_id": saree.id, "quantity": 7, "price": "30"},
            ],
            notes="embroidery",
        )

        assert result.dispatch.dispatch_no == "CH-00001"
        assert result.dispatch.notes == "embroidery"
        assert [wa.product_id for wa in result.assignments] == [kurta.id, saree.id]
        assert {wa.dispatch_id for wa in result.assignments} == {result.dispatch.id}
        assert read_stock(kurta.id) == 15
        assert read_stock(saree.id) == 13

    def test_dispatch_numbers_are_per_tenant(self, ledger, actor_id, jobworker_id, stocked_product):
        first = ledger.assign_to_workers(
            stocked_product.tenant_id, jobworker_id, actor_id,
            [{"product_id": stocked_product.id, "quantity": 1}],
        )
        second = ledger.assign_to_workers(
            stocked_product.tenant_id, jobworker_id, actor_id,
            [{"product_id": stocked_product.id, "quantity": 1}],
        )
        assert (first.dispatch.dispatch_no, second.dispatch.dispatch_no) == ("CH-00001", "CH-00002")

        other_tenant = uuid4()
        other = ledger.register_product(other_tenant, "Kurta", actor_id)
        ledger.receive_batch(
            other_tenant, None, [{"product_id": other.id, "quantity": 3}],
            {"challan_no": "VC-1", "challan_date": date(2024, 1, 1)}, actor_id,
        )
        third = ledger.assign_to_workers(
            other_tenant, jobworker_id, actor_id, [{"product_id": other.id, "quantity": 1}]
        )
        assert third.dispatch.dispatch_no == "CH-00001"

    def test_audit_entry_per_assignment(self, stocked_product, assign, read):
        wa = assign(stocked_product, 9)
        entries = read(lambda s: LedgerSelector(s).for_assignment(wa.id))
        assert len(entries) == 1
        assert entries[0].action == LedgerAction.STOCK_ASSIGNED.value
        assert entries[0].quantity_change == -9
        assert "CH-00001" in entries[0].log

    def test_grouped_by_jobworker(self, stocked_product, assign, tenant_id, jobworker_id, read):
        other_worker = uuid4()
        assign(stocked_product, 2)
        assign(stocked_product, 3, worker=other_worker)
        assign(stocked_product, 4)

        groups = read(lambda s: AssignmentSelector(s).dispatches_by_jobworker(tenant_id))
        by_worker = {g.jobworker_id: g for g in groups}
        assert len(by_worker[jobworker_id].dispatches) == 2
        assert len(by_worker[other_worker].dispatches) == 1

        selected = read(
            lambda s: AssignmentSelector(s).dispatches_by_jobworker(tenant_id, other_worker)
        )
        assert [g.jobworker_id for g in selected] == [other_worker]
        assert selected[0].dispatches[0].assignments[0].quantity == 3


class TestInsufficientStock:
    def test_rejected_without_mutation(
        self, ledger, tenant_id, actor_id, jobworker_id, make_product, receive, read_stock, session_factory
    ):
        kurta = make_product("Kurta")
        saree = make_product("Saree")
        receive(kurta, 10)
        receive(saree, 2)

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.assign_to_workers(
                tenant_id,
                jobworker_id,
                actor_id,
                [
                    {"product_id": kurta.id, "quantity": 5},
                    {"product_id": saree.id, "quantity": 3},
                ],
            )

        assert exc_info.value.available == 2
        assert exc_info.value.requested == 3
        assert read_stock(kurta.id) == 10
        assert read_stock(saree.id) == 2
        with session_factory() as session:
            assert session.query(Dispatch).count() == 0
            available = StockSelector(session).fifo_availability(kurta.id)
        assert [a.quantity_remaining for a in available] == [10]

    def test_same_product_twice_checked_in_aggregate(
        self, ledger, tenant_id, actor_id, jobworker_id, stocked_product, read_stock
    ):
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.assign_to_workers(
                tenant_id,
                jobworker_id,
                actor_id,
                [
                    {"product_id": stocked_product.id, "quantity": 60},
                    {"product_id": stocked_product.id, "quantity": 60},
                ],
            )
        assert exc_info.value.requested == 120
        assert read_stock(stocked_product.id) == 100

    def test_failed_dispatch_does_not_consume_number(
        self, ledger, tenant_id, actor_id, jobworker_id, stocked_product
    ):
        with pytest.raises(InsufficientStockError):
            ledger.assign_to_workers(
                tenant_id, jobworker_id, actor_id, [{"product_id": stocked_product.id, "quantity": 101}]
            )
        result = ledger.assign_to_workers(
            tenant_id, jobworker_id, actor_id, [{"product_id": stocked_product.id, "quantity": 1}]
        )
        assert result.dispatch.dispatch_no == "CH-00001"


class TestValidation:
    def test_empty_items(self, ledger, tenant_id, actor_id, jobworker_id):
        with pytest.raises(ValidationError):
            ledger.assign_to_workers(tenant_id, jobworker_id, actor_id, [])

    @pytest.mark.parametrize("quantity", [0, -5, 2.5])
    def test_bad_quantity(self, ledger, tenant_id, actor_id, jobworker_id, stocked_product, quantity):
        with pytest.raises(ValidationError):
            ledger.assign_to_workers(
                tenant_id, jobworker_id, actor_id,
                [{"product_id": stocked_product.id, "quantity": quantity}],
            )

    def test_unknown_product(self, ledger, tenant_id, actor_id, jobworker_id):
        with pytest.raises(NotFoundError):
            ledger.assign_to_workers(
                tenant_id, jobworker_id, actor_id, [{"product_id": uuid4(), "quantity": 1}]
            )


class TestReturnedStockPool:
    def test_returned_units_are_reassignable(
        self, ledger, make_product, receive, assign, actor_id, read_stock
    ):
        product = make_product()
        receive(product, 10)
        first = assign(product, 10)
        ledger.direct_process_return(first.id, actor_id, cleared=4, shortage=0, seconds=0)
        assert read_stock(product.id) == 4

        second = assign(product, 4)

        assert len(second.sources) == 1
        assert second.sources[0].is_return_pool
        assert second.sources[0].quantity == 4
        assert read_stock(product.id) == 0

    def test_batches_before_pool(self, ledger, make_product, receive, assign, actor_id):
        product = make_product()
        receive(product, 10)
        first = assign(product, 10)
        ledger.direct_process_return(first.id, actor_id, cleared=3, shortage=0, seconds=0)
        fresh = receive(product, 2)

        second = assign(product, 5)
        assert [(s.batch_id, s.quantity, s.is_return_pool) for s in second.sources] == [
            (fresh.id, 2, False),
            (None, 3, True),
        ]
