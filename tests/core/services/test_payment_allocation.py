"""Tests for oldest-first payment allocation."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from stockledger.core.entities.billing import Invoice, InvoiceStatus
from stockledger.core.exceptions import InvalidAmountError
from stockledger.core.services.payment_allocation import (
    allocation_order,
    plan_allocation,
    reduce_debt,
)


def invoice(
    invoice_id: int,
    total: str,
    issued: date,
    paid: str = "0",
    status: InvoiceStatus | None = None,
) -> Invoice:
    if status is None:
        status = InvoiceStatus.PARTIAL if Decimal(paid) > 0 else InvoiceStatus.UNPAID
    return Invoice(
        id=invoice_id,
        customer_id=1,
        invoice_number=f"INV-{invoice_id}",
        total=Decimal(total),
        amount_paid=Decimal(paid),
        status=status,
        issue_date=issued,
    )


class TestPlanAllocation:
    def test_oldest_paid_in_full_then_partial(self):
        invoices = [
            invoice(2, "50", date(2024, 2, 1)),
            invoice(1, "100", date(2024, 1, 1)),
        ]
        plan = plan_allocation(invoices, Decimal("120"))

        assert [(a.invoice_id, a.applied, a.new_status) for a in plan.allocations] == [
            (1, Decimal("100"), InvoiceStatus.PAID),
            (2, Decimal("20"), InvoiceStatus.PARTIAL),
        ]
        assert plan.unallocated == Decimal("0")
        assert plan.allocated == Decimal("120")
        updated = {inv.id: inv for inv in plan.updated_invoices}
        assert updated[1].amount_paid == Decimal("100")
        assert updated[2].amount_paid == Decimal("20")

    def test_does_not_mutate_inputs(self):
        original = invoice(1, "100", date(2024, 1, 1))
        plan_allocation([original], Decimal("40"))
        assert original.amount_paid == Decimal("0")
        assert original.status == InvoiceStatus.UNPAID

    def test_partial_invoice_completed(self):
        plan = plan_allocation([invoice(1, "100", date(2024, 1, 1), paid="70")], Decimal("30"))
        assert plan.allocations[0].previous_status == InvoiceStatus.PARTIAL
        assert plan.allocations[0].new_status == InvoiceStatus.PAID

    def test_overpayment_is_unallocated(self):
        plan = plan_allocation([invoice(1, "100", date(2024, 1, 1))], Decimal("150"))
        assert plan.allocations[0].applied == Decimal("100")
        assert plan.unallocated == Decimal("50")

    def test_stops_when_payment_used_up(self):
        invoices = [
            invoice(1, "10", date(2024, 1, 1)),
            invoice(2, "10", date(2024, 1, 2)),
            invoice(3, "10", date(2024, 1, 3)),
        ]
        plan = plan_allocation(invoices, Decimal("10"))
        assert [a.invoice_id for a in plan.allocations] == [1]
        assert [inv.id for inv in plan.updated_invoices] == [1]

    def test_zero_due_invoice_recorded_without_change(self):
        stale = invoice(1, "50", date(2024, 1, 1), paid="50", status=InvoiceStatus.PARTIAL)
        plan = plan_allocation([stale, invoice(2, "20", date(2024, 1, 2))], Decimal("5"))
        assert plan.allocations[0].invoice_id == 1
        assert plan.allocations[0].applied == Decimal("0")
        assert plan.allocations[0].new_status == InvoiceStatus.PARTIAL
        assert [inv.id for inv in plan.updated_invoices] == [2]

    def test_paid_invoices_ignored(self):
        paid = invoice(1, "50", date(2024, 1, 1), paid="50", status=InvoiceStatus.PAID)
        plan = plan_allocation([paid], Decimal("10"))
        assert plan.allocations == []
        assert plan.unallocated == Decimal("10")

    def test_same_day_ordered_by_id(self):
        day = date(2024, 3, 1)
        order = allocation_order([invoice(5, "1", day), invoice(3, "1", day)])
        assert [inv.id for inv in order] == [3, 5]

    @pytest.mark.parametrize("total", [Decimal("0"), Decimal("-5")])
    def test_rejects_non_positive_total(self, total):
        with pytest.raises(InvalidAmountError):
            plan_allocation([invoice(1, "10", date(2024, 1, 1))], total)


class TestReduceDebt:
    def test_reduces_by_payment(self):
        assert reduce_debt(Decimal("150"), Decimal("120")) == Decimal("30")

    def test_floors_at_zero(self):
        assert reduce_debt(Decimal("80"), Decimal("120")) == Decimal("0")


invoice_specs = st.lists(
    st.tuples(
        st.integers(min_value=1, max_value=50_000),  # total in cents
        st.integers(min_value=0, max_value=100),  # percent already paid
        st.integers(min_value=0, max_value=400),  # days after epoch
    ),
    max_size=10,
)


class TestAllocationProperties:
    @given(invoice_specs, st.integers(min_value=1, max_value=200_000))
    @settings(max_examples=150, deadline=None)
    def test_caps_and_order(self, specs, cents):
        start = date(2024, 1, 1)
        invoices = []
        for index, (total_cents, percent, days) in enumerate(specs, start=1):
            total = Decimal(total_cents) / 100
            paid = (total * percent / 100).quantize(Decimal("0.01"))
            status = (
                InvoiceStatus.UNPAID if paid == 0
                else InvoiceStatus.PAID if paid >= total
                else InvoiceStatus.PARTIAL
            )
            invoices.append(
                Invoice(
                    id=index,
                    customer_id=1,
                    invoice_number=f"INV-{index}",
                    total=total,
                    amount_paid=paid,
                    status=status,
                    issue_date=start + timedelta(days=days),
                )
            )
        by_id = {inv.id: inv for inv in invoices}
        tendered = Decimal(cents) / 100

        plan = plan_allocation(list(reversed(invoices)), tendered)

        for allocation in plan.allocations:
            assert Decimal("0") <= allocation.applied <= by_id[allocation.invoice_id].amount_due
        assert sum((a.applied for a in plan.allocations), Decimal("0")) <= tendered
        assert plan.allocated + plan.unallocated == tendered
        assert Decimal("0") <= plan.allocated <= tendered
        keys = [
            (by_id[a.invoice_id].issue_date, a.invoice_id) for a in plan.allocations
        ]
        assert keys == sorted(keys)
