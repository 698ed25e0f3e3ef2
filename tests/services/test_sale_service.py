"""Sale orders fulfilled from cleared work assignments."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from jobwork_kernel.domain.assignment_lifecycle import AssignmentStatus
from jobwork_kernel.exceptions import InsufficientStockError, NotFoundError, ValidationError
from jobwork_kernel.models.audit_entry import LedgerAction
from jobwork_kernel.models.sale_order import SaleOrder
from jobwork_kernel.selectors.ledger_selector import LedgerSelector


@pytest.fixture
def cleared_assignment(ledger, stocked_product, assign, actor_id):
    """10 assigned, 8 cleared and 2 damaged: Cleared with 8 sellable units."""
    wa = assign(stocked_product, 10)
    return ledger.direct_process_return(wa.id, actor_id, cleared=8, shortage=0, seconds=2)


class TestCreateSaleOrder:
    def test_fulfils_from_cleared_assignment(
        self, ledger, tenant_id, actor_id, stocked_product, cleared_assignment, read_stock, read_assignment
    ):
        assert read_stock(stocked_product.id) == 98

        order = ledger.create_sale_order(
            tenant_id,
            [{"product_id": stocked_product.id, "quantity": 5, "price": "450.00"}],
            actor_id,
        )

        assert order.invoice_no == "INV-00001"
        assert order.invoice_date == date(2024, 1, 1)
        [line] = order.lines
        assert line.quantity == 5
        assert line.amount == Decimal("2250.00")
        assert [(f.assignment_id, f.quantity) for f in line.fulfillments] == [
            (cleared_assignment.id, 5)
        ]

        wa = read_assignment(cleared_assignment.id)
        assert wa.sold_quantity == 5
        assert wa.cleared_quantity == 8
        assert wa.status is AssignmentStatus.CLEARED
        assert read_stock(stocked_product.id) == 93

    def test_oldest_assignment_first(self, ledger, tenant_id, actor_id, stocked_product, assign):
        first = assign(stocked_product, 3)
        second = assign(stocked_product, 4)
        ledger.direct_process_return(second.id, actor_id, 4, 0, 0)
        ledger.direct_process_return(first.id, actor_id, 3, 0, 0)

        order = ledger.create_sale_order(
            tenant_id, [{"product_id": stocked_product.id, "quantity": 5}], actor_id
        )

        assert [(f.assignment_id, f.quantity) for f in order.lines[0].fulfillments] == [
            (first.id, 3),
            (second.id, 2),
        ]

    def test_in_progress_assignment_not_eligible(
        self, ledger, tenant_id, actor_id, stocked_product, assign, read_stock
    ):
        wa = assign(stocked_product, 10)
        ledger.direct_process_return(wa.id, actor_id, 6, 0, 0)
        assert read_stock(stocked_product.id) == 96

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.create_sale_order(
                tenant_id, [{"product_id": stocked_product.id, "quantity": 1}], actor_id
            )
        assert exc_info.value.available == 0

    def test_cannot_sell_more_than_cleared_unsold(
        self, ledger, tenant_id, actor_id, stocked_product, cleared_assignment, read_stock
    ):
        ledger.create_sale_order(
            tenant_id, [{"product_id": stocked_product.id, "quantity": 6}], actor_id
        )
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.create_sale_order(
                tenant_id, [{"product_id": stocked_product.id, "quantity": 3}], actor_id
            )
        assert exc_info.value.available == 2
        assert read_stock(stocked_product.id) == 92

    def test_explicit_invoice_number(self, ledger, tenant_id, actor_id, stocked_product, cleared_assignment):
        order = ledger.create_sale_order(
            tenant_id,
            [{"product_id": stocked_product.id, "quantity": 1}],
            actor_id,
            invoice_no=" B2B-77 ",
            invoice_date=date(2024, 2, 10),
        )
        assert order.invoice_no == "B2B-77"
        assert order.invoice_date == date(2024, 2, 10)

        with pytest.raises(ValidationError) as exc_info:
            ledger.create_sale_order(
                tenant_id,
                [{"product_id": stocked_product.id, "quantity": 1}],
                actor_id,
                invoice_no="B2B-77",
            )
        assert exc_info.value.field == "invoice_no"

    def test_failed_order_writes_nothing(
        self, ledger, tenant_id, actor_id, make_product, stocked_product, cleared_assignment,
        read_stock, read_assignment, read,
    ):
        unsold = make_product("Unsold Lehenga")
        with pytest.raises(InsufficientStockError):
            ledger.create_sale_order(
                tenant_id,
                [
                    {"product_id": stocked_product.id, "quantity": 2},
                    {"product_id": unsold.id, "quantity": 1},
                ],
                actor_id,
            )
        assert read_assignment(cleared_assignment.id).sold_quantity == 0
        assert read_stock(stocked_product.id) == 98
        assert read(lambda s: s.query(SaleOrder).count()) == 0

    def test_audit_entry_per_line(self, ledger, tenant_id, actor_id, stocked_product, cleared_assignment, read):
        order = ledger.create_sale_order(
            tenant_id, [{"product_id": stocked_product.id, "quantity": 4}], actor_id
        )
        entries = read(lambda s: LedgerSelector(s).for_product(stocked_product.id))
        sale = entries[-1]
        assert sale.action == LedgerAction.SALE_FULFILLED.value
        assert sale.quantity_change == -4
        assert order.invoice_no in sale.log

    def test_rejections(self, ledger, tenant_id, actor_id):
        with pytest.raises(ValidationError):
            ledger.create_sale_order(tenant_id, [], actor_id)
        with pytest.raises(NotFoundError):
            ledger.create_sale_order(tenant_id, [{"product_id": uuid4(), "quantity": 1}], actor_id)

    def test_invoice_numbers_increase(self, ledger, tenant_id, actor_id, stocked_product, cleared_assignment):
        numbers = [
            ledger.create_sale_order(
                tenant_id, [{"product_id": stocked_product.id, "quantity": 1}], actor_id
            ).invoice_no
            for _ in range(3)
        ]
        assert numbers == ["INV-00001", "INV-00002", "INV-00003"]
