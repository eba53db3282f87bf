"""
Customer billing entities consumed by the payment allocator.

All money is Decimal; amounts never pass through binary floats.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from stockledger.core.entities.stock import utcnow


class InvoiceStatus(str, Enum):
    """Invoice payment status."""

    UNPAID = "Unpaid"
    PARTIAL = "Partial"
    PAID = "Paid"

    @property
    def is_outstanding(self) -> bool:
        return self in (InvoiceStatus.UNPAID, InvoiceStatus.PARTIAL)


class TenderMethod(str, Enum):
    """How a payment was tendered."""

    CASH = "Cash"
    CHECK = "Check"
    CARD = "Card"


class Customer(BaseModel):
    """Customer with an aggregate outstanding balance."""

    id: int | None = None
    name: str
    phone: str | None = None
    email: str | None = None
    debt: Decimal = Field(default=Decimal("0"), ge=0)
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class Invoice(BaseModel):
    """Customer invoice; issue date defines payment allocation order."""

    id: int | None = None
    customer_id: int
    invoice_number: str
    total: Decimal = Field(ge=0)
    amount_paid: Decimal = Field(default=Decimal("0"), ge=0)
    status: InvoiceStatus = InvoiceStatus.UNPAID
    issue_date: date
    job_id: int | None = None
    notes: str | None = None
    payment_ids: list[int] = Field(default_factory=list)
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def amount_due(self) -> Decimal:
        return self.total - self.amount_paid


class TenderLine(BaseModel):
    """One `{method, amount}` part of a payment."""

    model_config = ConfigDict(frozen=True)

    method: TenderMethod
    amount: Decimal = Field(gt=0)


class PaymentAllocation(BaseModel):
    """Amount of a payment applied to one invoice."""

    model_config = ConfigDict(frozen=True)

    invoice_id: int
    applied: Decimal
    previous_status: InvoiceStatus
    new_status: InvoiceStatus


class Payment(BaseModel):
    """Immutable record of one payment event."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    customer_id: int
    amount: Decimal
    tenders: list[TenderLine] = Field(default_factory=list)
    allocations: list[PaymentAllocation] = Field(default_factory=list)
    unallocated: Decimal = Decimal("0")
    notes: str | None = None
    idempotency_key: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def invoice_ids(self) -> list[int]:
        return [a.invoice_id for a in self.allocations if a.applied > 0]
