"""
Pure FIFO draw planning (jobwork_kernel/domain/allocation.py).

No database.  Covers ordering, partial draws, the returned-stock pool and
property-based checks of the draw arithmetic.
"""

from datetime import date, timedelta
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from jobwork_kernel.domain.allocation import (
    BatchLineSnapshot,
    DrawPlan,
    fifo_order,
    plan_allocation,
)
from jobwork_kernel.exceptions import ValidationError


def _line(remaining, challan_date=date(2024, 1, 1), receipt_seq=1, line_no=1):
    return BatchLineSnapshot(
        batch_line_id=uuid4(),
        batch_id=uuid4(),
        challan_date=challan_date,
        receipt_seq=receipt_seq,
        line_no=line_no,
        quantity_remaining=remaining,
    )


class TestFifoOrder:
    def test_older_challan_first(self):
        newer = _line(10, challan_date=date(2024, 2, 1), receipt_seq=1)
        older = _line(10, challan_date=date(2024, 1, 1), receipt_seq=2)
        assert fifo_order([newer, older]) == [older, newer]

    def test_same_date_ordered_by_receipt_then_line(self):
        b2 = _line(5, receipt_seq=2, line_no=1)
        b1_l2 = _line(5, receipt_seq=1, line_no=2)
        b1_l1 = _line(5, receipt_seq=1, line_no=1)
        assert fifo_order([b2, b1_l2, b1_l1]) == [b1_l1, b1_l2, b2]


class TestPlanAllocation:
    def test_draw_spans_two_batches_oldest_first(self):
        """Batch A (older, 5 left) and batch B (newer, 10 left); draw 8."""
        a = _line(5, challan_date=date(2024, 1, 1), receipt_seq=1)
        b = _line(10, challan_date=date(2024, 1, 5), receipt_seq=2)

        plan = plan_allocation([b, a], 8)

        assert [(d.batch_line_id, d.quantity) for d in plan.draws] == [
            (a.batch_line_id, 5),
            (b.batch_line_id, 3),
        ]
        assert plan.from_pool == 0
        assert plan.is_fully_batched

    def test_exact_fit_single_line(self):
        a = _line(7)
        plan = plan_allocation([a], 7)
        assert len(plan.draws) == 1
        assert plan.draws[0].quantity == 7

    def test_stops_once_satisfied(self):
        a = _line(10, receipt_seq=1)
        b = _line(10, receipt_seq=2)
        plan = plan_allocation([a, b], 4)
        assert [d.batch_line_id for d in plan.draws] == [a.batch_line_id]

    def test_exhausted_lines_are_skipped(self):
        empty = _line(0, receipt_seq=1)
        live = _line(6, receipt_seq=2)
        plan = plan_allocation([empty, live], 6)
        assert [d.batch_line_id for d in plan.draws] == [live.batch_line_id]

    def test_shortfall_reported_as_pool(self):
        a = _line(3)
        plan = plan_allocation([a], 10)
        assert plan.from_batches == 3
        assert plan.from_pool == 7
        assert not plan.is_fully_batched

    def test_no_lines_draws_everything_from_pool(self):
        plan = plan_allocation([], 4)
        assert plan == DrawPlan(need=4, draws=(), from_pool=4)

    @pytest.mark.parametrize("need", [0, -1, 2.5, "3", True, None])
    def test_need_must_be_positive_integer(self, need):
        with pytest.raises(ValidationError) as exc_info:
            plan_allocation([_line(5)], need)
        assert exc_info.value.field == "quantity"


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@st.composite
def batch_lines(draw):
    count = draw(st.integers(min_value=0, max_value=8))
    base = date(2024, 1, 1)
    lines = []
    for seq in range(1, count + 1):
        lines.append(
            _line(
                draw(st.integers(min_value=0, max_value=50)),
                challan_date=base + timedelta(days=draw(st.integers(min_value=0, max_value=5))),
                receipt_seq=seq,
            )
        )
    return lines


class TestAllocationProperties:
    @settings(max_examples=200)
    @given(lines=batch_lines(), need=st.integers(min_value=1, max_value=300))
    def test_draws_plus_pool_equal_need(self, lines, need):
        plan = plan_allocation(lines, need)
        assert plan.from_batches + plan.from_pool == need
        assert plan.from_pool >= 0

    @settings(max_examples=200)
    @given(lines=batch_lines(), need=st.integers(min_value=1, max_value=300))
    def test_no_line_overdrawn(self, lines, need):
        plan = plan_allocation(lines, need)
        remaining = {line.batch_line_id: line.quantity_remaining for line in lines}
        for d in plan.draws:
            assert 0 < d.quantity <= remaining[d.batch_line_id]

    @settings(max_examples=200)
    @given(lines=batch_lines(), need=st.integers(min_value=1, max_value=300))
    def test_only_last_draw_may_be_partial(self, lines, need):
        """Every draw but the last empties its line: strict FIFO."""
        plan = plan_allocation(lines, need)
        remaining = {line.batch_line_id: line.quantity_remaining for line in lines}
        for d in plan.draws[:-1]:
            assert d.quantity == remaining[d.batch_line_id]
        if plan.from_pool:
            assert plan.from_batches == sum(line.quantity_remaining for line in lines)

    @settings(max_examples=100)
    @given(lines=batch_lines(), need=st.integers(min_value=1, max_value=300))
    def test_draws_follow_fifo_order(self, lines, need):
        plan = plan_allocation(lines, need)
        order = [line.batch_line_id for line in fifo_order(lines)]
        positions = [order.index(d.batch_line_id) for d in plan.draws]
        assert positions == sorted(positions)
