"""Tests for billing, job and purchase order entities."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from stockledger.core.entities.billing import (
    Customer,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentAllocation,
    TenderLine,
    TenderMethod,
)
from stockledger.core.entities.job import JobPart, JobStatus, RepairJob
from stockledger.core.entities.purchase_order import PurchaseOrder, PurchaseOrderLine


class TestInvoice:
    def test_amount_due(self):
        invoice = Invoice(
            customer_id=1,
            invoice_number="INV-1",
            total=Decimal("100"),
            amount_paid=Decimal("30"),
            issue_date=date(2024, 1, 1),
        )
        assert invoice.amount_due == Decimal("70")
        assert invoice.status == InvoiceStatus.UNPAID

    def test_outstanding_statuses(self):
        assert InvoiceStatus.UNPAID.is_outstanding
        assert InvoiceStatus.PARTIAL.is_outstanding
        assert not InvoiceStatus.PAID.is_outstanding


class TestCustomer:
    def test_debt_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            Customer(name="Ann", debt=Decimal("-1"))


class TestTenderLine:
    def test_amount_must_be_positive(self):
        with pytest.raises(ValidationError):
            TenderLine(method=TenderMethod.CASH, amount=Decimal("0"))


class TestPayment:
    def test_invoice_ids_skip_zero_allocations(self):
        payment = Payment(
            customer_id=1,
            amount=Decimal("30"),
            allocations=[
                PaymentAllocation(
                    invoice_id=1,
                    applied=Decimal("0"),
                    previous_status=InvoiceStatus.PAID,
                    new_status=InvoiceStatus.PAID,
                ),
                PaymentAllocation(
                    invoice_id=2,
                    applied=Decimal("30"),
                    previous_status=InvoiceStatus.UNPAID,
                    new_status=InvoiceStatus.PARTIAL,
                ),
            ],
        )
        assert payment.invoice_ids == [2]


class TestRepairJob:
    def test_closed_statuses(self):
        closed = {s for s in JobStatus if s.is_closed}
        assert closed == {JobStatus.COMPLETED, JobStatus.PAID, JobStatus.CANCELLED}

    def test_parts_totals(self):
        job = RepairJob(
            title="Brakes",
            parts=[
                JobPart(
                    id=1,
                    item_id=1,
                    batch_id="A",
                    quantity=2,
                    unit_cost=Decimal("5"),
                    unit_price=Decimal("8"),
                ),
                JobPart(
                    id=2,
                    item_id=2,
                    batch_id="B",
                    quantity=1,
                    unit_cost=Decimal("7"),
                    unit_price=Decimal("12"),
                ),
            ],
        )
        assert job.parts_cost == Decimal("17")
        assert job.parts_total == Decimal("28")
        assert job.get_part(2).batch_id == "B"
        assert job.get_part(3) is None


class TestPurchaseOrder:
    def test_total_cost(self):
        order = PurchaseOrder(
            lines=[
                PurchaseOrderLine(item_id=1, quantity=3, cost_per_unit=Decimal("2.50")),
                PurchaseOrderLine(item_id=2, quantity=1, cost_per_unit=Decimal("4")),
            ]
        )
        assert order.total_cost == Decimal("11.50")
