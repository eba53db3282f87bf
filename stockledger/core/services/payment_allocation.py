"""
Payment allocation: pure oldest-first distribution of a payment.

Layer-pure module - produces a plan; persisting it is the caller's job.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from stockledger.core.entities.billing import Invoice, InvoiceStatus, PaymentAllocation
from stockledger.core.exceptions import InvalidAmountError

ZERO = Decimal("0")


@dataclass
class AllocationPlan:
    """How a tendered total is spread over invoices."""

    total: Decimal
    allocations: list[PaymentAllocation] = field(default_factory=list)
    updated_invoices: list[Invoice] = field(default_factory=list)
    unallocated: Decimal = ZERO

    @property
    def allocated(self) -> Decimal:
        return self.total - self.unallocated


def allocation_order(invoices: list[Invoice]) -> list[Invoice]:
    """Outstanding invoices, oldest issue date first, then lowest id."""
    outstanding = [inv for inv in invoices if inv.status.is_outstanding]
    return sorted(outstanding, key=lambda inv: (inv.issue_date, inv.id or 0))


def plan_allocation(invoices: list[Invoice], total: Decimal) -> AllocationPlan:
    """
    Walk outstanding invoices oldest-first, applying up to each one's due.

    Invoices with nothing due are recorded with zero applied. Once the
    payment is used up the remaining invoices are left untouched.
    """
    if total <= 0:
        raise InvalidAmountError("amount", total, "total tendered must be positive")

    plan = AllocationPlan(total=total)
    remaining = total

    for invoice in allocation_order(invoices):
        if remaining <= 0:
            break

        due = invoice.amount_due
        if due <= 0:
            plan.allocations.append(
                PaymentAllocation(
                    invoice_id=invoice.id,  # type: ignore[arg-type]
                    applied=ZERO,
                    previous_status=invoice.status,
                    new_status=invoice.status,
                )
            )
            continue

        applied = min(remaining, due)
        paid = invoice.amount_paid + applied
        status = InvoiceStatus.PAID if paid >= invoice.total else InvoiceStatus.PARTIAL

        plan.allocations.append(
            PaymentAllocation(
                invoice_id=invoice.id,  # type: ignore[arg-type]
                applied=applied,
                previous_status=invoice.status,
                new_status=status,
            )
        )
        plan.updated_invoices.append(
            invoice.model_copy(update={"amount_paid": paid, "status": status})
        )
        remaining -= applied

    plan.unallocated = remaining
    return plan


def reduce_debt(debt: Decimal, total: Decimal) -> Decimal:
    """Debt after a payment: reduced by at most itself, never below zero."""
    return max(ZERO, debt - min(total, debt))
