"""Response DTOs for API endpoints.

Pydantic v2 models for API response serialization.
These are the ONLY contracts between use cases and API layer.
Models read entity attributes directly (`from_attributes`), including
derived properties such as `total_value` or `cost_per_unit`.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from stockledger.core.entities.billing import InvoiceStatus, TenderMethod
from stockledger.core.entities.job import JobStatus
from stockledger.core.entities.purchase_order import PurchaseOrderStatus
from stockledger.core.entities.stock import HistoryType, StockKind, StockStatus


class EntityResponse(BaseModel):
    """Base for responses built from domain entities."""

    model_config = ConfigDict(from_attributes=True)


# --- Stock ---


class BatchResponse(EntityResponse):
    """One acquisition batch."""

    batch_id: str
    sequence: int
    quantity: int = Field(..., description="Remaining units")
    cost_per_unit: Decimal
    acquired_at: datetime
    source: str | None = None
    notes: str | None = None
    purchase_order_id: int | None = None
    reference_number: str | None = None
    is_legacy: bool = False


class StockItemResponse(EntityResponse):
    """Stock item with its batches."""

    id: int
    kind: StockKind
    name: str
    sku: str | None = None
    min_quantity: int
    price: Decimal
    location: str | None = None
    notes: str | None = None
    status: StockStatus
    total_quantity: int
    average_cost: Decimal
    total_value: Decimal
    is_low_stock: bool
    batches: list[BatchResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class StockItemListResponse(BaseModel):
    """List of stock items (batches omitted)."""

    items: list[StockItemResponse]
    total: int


class InventorySummaryResponse(EntityResponse):
    """Counts and valuation over active items."""

    item_count: int
    total_quantity: int
    total_value: Decimal
    low_stock_count: int
    out_of_stock_count: int
    by_kind: dict[str, int]


class HistoryEntryResponse(EntityResponse):
    """One ledger history entry."""

    id: int
    item_id: int
    entry_type: HistoryType
    quantity_delta: int
    batch_id: str
    unit_cost: Decimal
    job_id: int | None = None
    purchase_order_id: int | None = None
    notes: str | None = None
    created_at: datetime


class BatchDrawResponse(EntityResponse):
    """Units taken from one batch."""

    batch_id: str
    quantity: int
    cost_per_unit: Decimal
    history_id: int | None = None


class ConsumeResponse(EntityResponse):
    """Result of consuming stock."""

    item_id: int
    quantity: int
    batch_id: str = Field(..., description="Oldest batch drawn from")
    cost_per_unit: Decimal = Field(..., description="Cost of the drawn batch")
    total_cost: Decimal
    remaining_total: int
    average_cost: Decimal
    draws: list[BatchDrawResponse]


class RestockResponse(EntityResponse):
    """Result of appending a batch."""

    item_id: int
    batch_id: str
    quantity: int
    cost_per_unit: Decimal
    total_quantity: int
    average_cost: Decimal
    history_id: int | None = None


# --- Jobs ---


class JobPartResponse(EntityResponse):
    """A part line on a job."""

    id: int
    item_id: int
    item_name: str
    batch_id: str
    quantity: int
    unit_cost: Decimal
    unit_price: Decimal
    total_cost: Decimal
    total_price: Decimal
    created_at: datetime


class RepairJobResponse(EntityResponse):
    """Repair job with its part lines."""

    id: int
    customer_id: int | None = None
    title: str
    description: str | None = None
    status: JobStatus
    parts: list[JobPartResponse] = Field(default_factory=list)
    parts_cost: Decimal
    parts_total: Decimal
    created_at: datetime
    updated_at: datetime


class AddJobPartResponse(EntityResponse):
    """Result of taking stock onto a job."""

    job_id: int
    lines: list[JobPartResponse]
    consumption: ConsumeResponse


class ReturnJobPartResponse(EntityResponse):
    """Result of returning a job line to stock."""

    job_id: int
    line_id: int
    quantity: int
    line_removed: bool
    restock: RestockResponse


# --- Purchase orders ---


class PurchaseOrderLineResponse(EntityResponse):
    id: int
    item_id: int
    quantity: int
    cost_per_unit: Decimal
    line_total: Decimal
    batch_id: str | None = None


class PurchaseOrderResponse(EntityResponse):
    """Purchase order with lines."""

    id: int
    supplier: str | None = None
    reference_number: str | None = None
    status: PurchaseOrderStatus
    notes: str | None = None
    lines: list[PurchaseOrderLineResponse]
    total_cost: Decimal
    created_at: datetime
    committed_at: datetime | None = None


class CommittedLineResponse(EntityResponse):
    line_id: int
    item_id: int
    quantity: int
    cost_per_unit: Decimal
    batch_id: str


class CommitPurchaseOrderResponse(EntityResponse):
    """Batches created by committing an order."""

    order_id: int
    status: PurchaseOrderStatus
    lines: list[CommittedLineResponse]


# --- Billing ---


class CustomerResponse(EntityResponse):
    id: int
    name: str
    phone: str | None = None
    email: str | None = None
    debt: Decimal
    created_at: datetime


class InvoiceResponse(EntityResponse):
    id: int
    customer_id: int
    invoice_number: str
    total: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    status: InvoiceStatus
    issue_date: date
    job_id: int | None = None
    payment_ids: list[int] = Field(default_factory=list)


class AllocationResponse(EntityResponse):
    """Amount of a payment applied to one invoice."""

    invoice_id: int
    applied: Decimal
    previous_status: InvoiceStatus
    new_status: InvoiceStatus


class PaymentResponse(EntityResponse):
    """Result of applying a payment."""

    payment_id: int
    customer_id: int
    total_tendered: Decimal
    allocations: list[AllocationResponse]
    unallocated: Decimal = Field(..., description="Overpayment not applied to any invoice")
    previous_debt: Decimal
    new_debt: Decimal


class TenderResponse(EntityResponse):
    method: TenderMethod
    amount: Decimal


class PaymentRecordResponse(EntityResponse):
    """Stored payment with tenders and per-invoice allocations."""

    id: int
    customer_id: int
    amount: Decimal
    tenders: list[TenderResponse]
    allocations: list[AllocationResponse]
    unallocated: Decimal
    notes: str | None = None
    created_at: datetime


# --- Common ---


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Overall status")
    version: str
    uptime_seconds: float
    database: str | None = Field(default=None, description="Database status")
    schema_version: str | None = Field(default=None, description="Latest applied migration")
    latency_ms: float | None = None


class ErrorResponse(BaseModel):
    """Body of every non-2xx response, domain or framework."""

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error description")
    hint: str | None = Field(default=None, description="Suggested recovery action")
    detail: str | None = Field(default=None, description="Additional details")
    details: dict | None = Field(default=None, description="Structured error fields")
    path: str | None = Field(default=None, description="Request path")
    timestamp: datetime = Field(default_factory=datetime.now)
