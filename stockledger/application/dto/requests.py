"""Request DTOs for API endpoints.

Pydantic v2 models for API request validation.
These are the ONLY contracts between API and use cases.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from stockledger.core.entities.job import JobStatus
from stockledger.core.entities.stock import StockKind

# --- Stock items ---


class CreateStockItemRequest(BaseModel):
    """Request to create a stock item with its initial batch."""

    name: str = Field(..., min_length=1, description="Item name")
    kind: StockKind = Field(default=StockKind.PART, description="Part or general item")
    sku: str | None = Field(default=None, description="SKU or part number")
    initial_quantity: int = Field(default=0, ge=0, description="Units in the initial batch")
    initial_cost: Decimal = Field(default=Decimal("0"), ge=0, description="Cost per unit of the initial batch")
    min_quantity: int = Field(default=0, ge=0, description="Reorder threshold")
    price: Decimal = Field(default=Decimal("0"), ge=0, description="Sell price per unit")
    location: str | None = Field(default=None, description="Storage location")
    notes: str | None = Field(default=None, description="Additional notes")
    source: str | None = Field(default=None, description="Supplier of the initial batch")


class RestockRequest(BaseModel):
    """Request to append a batch to a stock item."""

    quantity: int = Field(..., gt=0, description="Units received")
    cost_per_unit: Decimal = Field(..., ge=0, description="Cost per unit of this batch")
    source: str | None = Field(default=None, description="Supplier or origin")
    notes: str | None = Field(default=None, description="Additional notes")
    reference_number: str | None = Field(default=None, description="Supplier reference")
    purchase_order_id: int | None = Field(default=None, description="Originating purchase order")
    idempotency_key: str | None = Field(
        default=None,
        max_length=200,
        description="Repeat-safe token; a retried request returns the first result",
    )


class ConsumeRequest(BaseModel):
    """Request to consume stock oldest batch first."""

    quantity: int = Field(..., gt=0, description="Units to consume")
    job_id: int | None = Field(default=None, description="Job the stock is used on")
    notes: str | None = Field(default=None, description="Additional notes")
    split: bool | None = Field(
        default=None,
        description="Draw across batches when the oldest is short (default from settings)",
    )
    idempotency_key: str | None = Field(default=None, max_length=200)


# --- Repair jobs ---


class CreateJobRequest(BaseModel):
    """Request to open a repair job."""

    title: str = Field(..., min_length=1, description="Short job description")
    customer_id: int | None = Field(default=None, description="Customer the job is for")
    description: str | None = Field(default=None, description="Details")


class AddJobPartRequest(BaseModel):
    """Request to take stock onto a job."""

    item_id: int = Field(..., description="Stock item ID")
    quantity: int = Field(..., gt=0, description="Units used")
    unit_price: Decimal | None = Field(
        default=None, ge=0, description="Sell price per unit (defaults to item price)"
    )
    split: bool | None = Field(default=None, description="Allow drawing across batches")
    idempotency_key: str | None = Field(default=None, max_length=200)


class RemoveJobPartRequest(BaseModel):
    """Request to return (part of) a job line to stock."""

    quantity: int | None = Field(
        default=None, gt=0, description="Units to return (default: whole line)"
    )


class UpdateJobStatusRequest(BaseModel):
    """Request to move a job to a new status."""

    status: JobStatus = Field(..., description="New status")


# --- Purchase orders ---


class PurchaseOrderLineRequest(BaseModel):
    """One received line of a purchase order."""

    item_id: int = Field(..., description="Stock item ID")
    quantity: int = Field(..., gt=0, description="Units received")
    cost_per_unit: Decimal = Field(..., ge=0, description="Cost per unit")


class CreatePurchaseOrderRequest(BaseModel):
    """Request to create a draft purchase order."""

    supplier: str | None = Field(default=None, description="Supplier name")
    reference_number: str | None = Field(default=None, description="Supplier reference")
    notes: str | None = Field(default=None, description="Additional notes")
    lines: list[PurchaseOrderLineRequest] = Field(..., min_length=1)


# --- Customers, invoices, payments ---


class CreateCustomerRequest(BaseModel):
    """Request to create a customer."""

    name: str = Field(..., min_length=1)
    phone: str | None = None
    email: str | None = None


class IssueInvoiceRequest(BaseModel):
    """Request to issue an invoice to a customer."""

    invoice_number: str = Field(..., min_length=1, examples=["INV-1001"])
    total: Decimal = Field(..., gt=0, description="Invoice total")
    issue_date: date | None = Field(default=None, description="Issue date (defaults to today)")
    job_id: int | None = Field(default=None, description="Job being invoiced")
    notes: str | None = None


class ApplyPaymentRequest(BaseModel):
    """Request to tender a payment; at least one amount must be positive."""

    cash: Decimal = Field(default=Decimal("0"), ge=0)
    check: Decimal = Field(default=Decimal("0"), ge=0)
    card: Decimal = Field(default=Decimal("0"), ge=0)
    notes: str | None = None
    idempotency_key: str | None = Field(default=None, max_length=200)
