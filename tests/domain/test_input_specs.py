"""Coercion of raw operation input into immutable specs."""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from jobwork_kernel.domain.dtos import (
    AssignmentItem,
    DispatchMeta,
    ReceiptLine,
    SaleLine,
    StatusCountsDTO,
)
from jobwork_kernel.exceptions import ValidationError


class TestReceiptLine:
    def test_from_mapping(self):
        pid = uuid4()
        line = ReceiptLine.coerce({"product_id": str(pid), "quantity": 12, "unit_price": "99.50"})
        assert line.product_id == pid
        assert line.quantity == 12
        assert line.unit_price == Decimal("99.50")
        assert line.discount == Decimal("0")

    @pytest.mark.parametrize("quantity", [0, -3, 1.5, "4", None])
    def test_quantity_must_be_positive_integer(self, quantity):
        with pytest.raises(ValidationError) as exc_info:
            ReceiptLine.coerce({"product_id": uuid4(), "quantity": quantity})
        assert exc_info.value.field == "quantity"

    def test_missing_product(self):
        with pytest.raises(ValidationError) as exc_info:
            ReceiptLine.coerce({"quantity": 1})
        assert exc_info.value.field == "product_id"

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            ReceiptLine.coerce({"product_id": uuid4(), "quantity": 1, "unit_price": "-1"})


class TestDispatchMeta:
    def test_iso_string_date(self):
        meta = DispatchMeta.coerce({"challan_no": " VC-1 ", "challan_date": "2024-03-05"})
        assert meta.challan_no == "VC-1"
        assert meta.challan_date == date(2024, 3, 5)

    def test_datetime_truncated_to_date(self):
        meta = DispatchMeta.coerce(
            {"challan_no": "VC-2", "challan_date": datetime(2024, 3, 5, 14, 30)}
        )
        assert meta.challan_date == date(2024, 3, 5)

    def test_missing_meta(self):
        with pytest.raises(ValidationError):
            DispatchMeta.coerce(None)

    def test_blank_challan_no(self):
        with pytest.raises(ValidationError) as exc_info:
            DispatchMeta.coerce({"challan_no": "  ", "challan_date": date(2024, 1, 1)})
        assert exc_info.value.field == "challan_no"

    def test_bad_date(self):
        with pytest.raises(ValidationError) as exc_info:
            DispatchMeta.coerce({"challan_no": "VC", "challan_date": "05/03/2024"})
        assert exc_info.value.field == "challan_date"


def test_assignment_item_and_sale_line_pass_through_instances():
    item = AssignmentItem(product_id=uuid4(), quantity=3)
    line = SaleLine(product_id=uuid4(), quantity=2, price=Decimal("10"))
    assert AssignmentItem.coerce(item) is item
    assert SaleLine.coerce(line) is line


def test_status_counts_total():
    counts = StatusCountsDTO(jobworker_id=uuid4(), pending=2, in_progress=1, cleared=4)
    assert counts.total == 7
