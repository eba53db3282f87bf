"""
Stock domain entities.

A stock item owns an ordered set of acquisition batches. Quantity and
average cost on the item are derived from those batches and are
recomputed on every mutation; they are never adjusted independently.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current time used for every ledger timestamp."""
    return datetime.now(UTC)


class StockKind(str, Enum):
    """Kinds of stock-keeping entity sharing the ledger."""

    PART = "part"
    GENERAL_ITEM = "general_item"


class StockStatus(str, Enum):
    """Soft status of a stock item (items are never hard-deleted)."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class HistoryType(str, Enum):
    """Types of ledger mutation recorded in history."""

    PURCHASE = "purchase"
    USE = "use"
    RETURN = "return"


class Batch(BaseModel):
    """
    One acquisition lot of a stock item.

    Identity, ordering and cost are fixed once the batch exists; only the
    remaining quantity changes, and never below zero.
    """

    model_config = ConfigDict(validate_assignment=True)

    batch_id: str = Field(frozen=True)
    item_id: int | None = None
    sequence: int = Field(default=0, ge=0, frozen=True)
    quantity: int = Field(ge=0)
    cost_per_unit: Decimal = Field(ge=0, frozen=True)
    acquired_at: datetime = Field(default_factory=utcnow, frozen=True)

    # Informational metadata
    source: str | None = None
    notes: str | None = None
    purchase_order_id: int | None = None
    reference_number: str | None = None
    is_legacy: bool = False

    @property
    def is_exhausted(self) -> bool:
        return self.quantity == 0

    @property
    def fifo_key(self) -> tuple[datetime, int]:
        """Sort key: acquisition time, then creation sequence."""
        return (self.acquired_at, self.sequence)


class StockItem(BaseModel):
    """A part or general item tracked by the batch ledger."""

    id: int | None = None
    kind: StockKind = StockKind.PART
    name: str
    sku: str | None = None
    min_quantity: int = Field(default=0, ge=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    location: str | None = None
    notes: str | None = None
    status: StockStatus = StockStatus.ACTIVE

    # Derived from batches
    total_quantity: int = Field(default=0, ge=0)
    average_cost: Decimal = Decimal("0")
    # Flat quantity as stored on a row that has no batches yet, unclamped
    recorded_quantity: int | None = Field(default=None, exclude=True)

    batches: list[Batch] = Field(default_factory=list)

    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_legacy(self) -> bool:
        """Rows written before batches existed carry only flat totals."""
        return not self.batches

    @property
    def is_low_stock(self) -> bool:
        return self.total_quantity <= self.min_quantity

    @property
    def is_out_of_stock(self) -> bool:
        return self.total_quantity == 0

    @property
    def total_value(self) -> Decimal:
        return self.total_quantity * self.average_cost

    @property
    def next_sequence(self) -> int:
        return max((b.sequence for b in self.batches), default=0) + 1


class HistoryEntry(BaseModel):
    """Immutable audit record of one ledger mutation."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    item_id: int
    entry_type: HistoryType
    quantity_delta: int  # positive for purchase/return, negative for use
    batch_id: str
    unit_cost: Decimal
    job_id: int | None = None
    purchase_order_id: int | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class InventorySummary(BaseModel):
    """Aggregate figures over active stock items."""

    item_count: int = 0
    total_quantity: int = 0
    total_value: Decimal = Decimal("0")
    low_stock_count: int = 0
    out_of_stock_count: int = 0
    by_kind: dict[str, int] = Field(default_factory=dict)
