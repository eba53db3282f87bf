"""Purchase order domain entities."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from stockledger.core.entities.stock import utcnow


class PurchaseOrderStatus(str, Enum):
    """Purchase order lifecycle."""

    DRAFT = "draft"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class PurchaseOrderLine(BaseModel):
    """Quantity received for one stock item at a given unit cost."""

    id: int | None = None
    order_id: int | None = None
    item_id: int
    quantity: int
    cost_per_unit: Decimal
    batch_id: str | None = None  # set on commit

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.cost_per_unit


class PurchaseOrder(BaseModel):
    """Supplier order restocking one batch per line when committed."""

    id: int | None = None
    supplier: str | None = None
    reference_number: str | None = None
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT
    notes: str | None = None
    lines: list[PurchaseOrderLine] = Field(default_factory=list)
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    committed_at: datetime | None = None

    @property
    def total_cost(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))
