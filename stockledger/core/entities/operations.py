"""
Typed ledger commands and their results.

Commands validate amounts on construction, so an invalid request is
rejected before any transaction starts. Results are pydantic models so
they can be stored verbatim against an idempotency key and replayed.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, Field

from stockledger.core.entities.billing import PaymentAllocation, TenderLine, TenderMethod
from stockledger.core.entities.job import JobPart
from stockledger.core.entities.purchase_order import PurchaseOrderStatus
from stockledger.core.exceptions import InvalidAmountError


def to_money(value: Any, field: str) -> Decimal:
    """Coerce a money input to a finite, non-negative Decimal."""
    if isinstance(value, bool):
        raise InvalidAmountError(field, value, "must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(field, value, "must be a number") from None
    if not amount.is_finite():
        raise InvalidAmountError(field, value, "must be finite")
    if amount < 0:
        raise InvalidAmountError(field, value, "must not be negative")
    return amount


def require_quantity(value: Any, field: str = "quantity", allow_zero: bool = False) -> int:
    """Quantities are whole units; zero only where explicitly allowed."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(field, value, "must be a whole number")
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidAmountError(
            field, value, "must not be negative" if allow_zero else "must be positive"
        )
    return value


@dataclass(frozen=True)
class RestockCommand:
    """Append one batch to a stock item."""

    item_id: int
    quantity: int
    cost_per_unit: Decimal
    source: str | None = None
    notes: str | None = None
    purchase_order_id: int | None = None
    reference_number: str | None = None
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        require_quantity(self.quantity)
        object.__setattr__(
            self, "cost_per_unit", to_money(self.cost_per_unit, "cost_per_unit")
        )


@dataclass(frozen=True)
class ConsumeCommand:
    """Draw stock oldest-first; `split=None` defers to configuration."""

    item_id: int
    quantity: int
    job_id: int | None = None
    notes: str | None = None
    split: bool | None = None
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        require_quantity(self.quantity)


@dataclass(frozen=True)
class ApplyPaymentCommand:
    """Tender a payment against a customer's outstanding invoices."""

    customer_id: int
    cash: Decimal = Decimal("0")
    check: Decimal = Decimal("0")
    card: Decimal = Decimal("0")
    notes: str | None = None
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        for name in ("cash", "check", "card"):
            object.__setattr__(self, name, to_money(getattr(self, name), name))
        if self.total <= 0:
            raise InvalidAmountError("amount", self.total, "total tendered must be positive")

    @property
    def total(self) -> Decimal:
        return self.cash + self.check + self.card

    def tenders(self) -> list[TenderLine]:
        """Tender lines for each positive amount."""
        pairs = [
            (TenderMethod.CASH, self.cash),
            (TenderMethod.CHECK, self.check),
            (TenderMethod.CARD, self.card),
        ]
        return [TenderLine(method=m, amount=a) for m, a in pairs if a > 0]


class BatchDraw(BaseModel):
    """Quantity taken from one batch at that batch's cost."""

    batch_id: str
    quantity: int
    cost_per_unit: Decimal
    history_id: int | None = None


class ConsumeResult(BaseModel):
    """Outcome of a consumption; single-batch mode yields exactly one draw."""

    item_id: int
    quantity: int
    draws: list[BatchDraw]
    remaining_total: int
    average_cost: Decimal

    @property
    def batch_id(self) -> str:
        return self.draws[0].batch_id

    @property
    def total_cost(self) -> Decimal:
        return sum((d.quantity * d.cost_per_unit for d in self.draws), Decimal("0"))

    @property
    def cost_per_unit(self) -> Decimal:
        """The drawn batch's cost; blended only when a split drew several batches."""
        if len(self.draws) == 1:
            return self.draws[0].cost_per_unit
        return self.total_cost / self.quantity


class RestockResult(BaseModel):
    """Outcome of appending a batch."""

    item_id: int
    batch_id: str
    quantity: int
    cost_per_unit: Decimal
    total_quantity: int
    average_cost: Decimal
    history_id: int | None = None


class PaymentResult(BaseModel):
    """Outcome of allocating a payment."""

    payment_id: int
    customer_id: int
    total_tendered: Decimal
    allocations: list[PaymentAllocation] = Field(default_factory=list)
    unallocated: Decimal = Decimal("0")
    previous_debt: Decimal
    new_debt: Decimal


class AddPartResult(BaseModel):
    """Outcome of attaching stock to a repair job."""

    job_id: int
    lines: list[JobPart]
    consumption: ConsumeResult


class ReturnPartResult(BaseModel):
    """Outcome of removing (part of) a job line back into stock."""

    job_id: int
    line_id: int
    quantity: int
    restock: RestockResult
    line_removed: bool


class CommittedLine(BaseModel):
    """Batch created for one purchase order line."""

    line_id: int
    item_id: int
    quantity: int
    cost_per_unit: Decimal
    batch_id: str


class PurchaseOrderCommitResult(BaseModel):
    """Outcome of committing a purchase order."""

    order_id: int
    status: PurchaseOrderStatus
    lines: list[CommittedLine]
