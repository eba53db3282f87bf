"""Data Transfer Objects for API layer.

Request DTOs: Validate and parse incoming API requests.
Response DTOs: Structure and serialize API responses.

These are the ONLY contracts between API handlers and use cases.
"""

from stockledger.application.dto.requests import (
    AddJobPartRequest,
    ApplyPaymentRequest,
    ConsumeRequest,
    CreateCustomerRequest,
    CreateJobRequest,
    CreatePurchaseOrderRequest,
    CreateStockItemRequest,
    IssueInvoiceRequest,
    PurchaseOrderLineRequest,
    RemoveJobPartRequest,
    RestockRequest,
    UpdateJobStatusRequest,
)
from stockledger.application.dto.responses import (
    AddJobPartResponse,
    CommitPurchaseOrderResponse,
    ConsumeResponse,
    CustomerResponse,
    ErrorResponse,
    HealthResponse,
    HistoryEntryResponse,
    InventorySummaryResponse,
    InvoiceResponse,
    PaymentRecordResponse,
    PaymentResponse,
    PurchaseOrderResponse,
    RepairJobResponse,
    RestockResponse,
    ReturnJobPartResponse,
    StockItemListResponse,
    StockItemResponse,
)

__all__ = [
    # Requests
    "AddJobPartRequest",
    "ApplyPaymentRequest",
    "ConsumeRequest",
    "CreateCustomerRequest",
    "CreateJobRequest",
    "CreatePurchaseOrderRequest",
    "CreateStockItemRequest",
    "IssueInvoiceRequest",
    "PurchaseOrderLineRequest",
    "RemoveJobPartRequest",
    "RestockRequest",
    "UpdateJobStatusRequest",
    # Responses
    "AddJobPartResponse",
    "CommitPurchaseOrderResponse",
    "ConsumeResponse",
    "CustomerResponse",
    "ErrorResponse",
    "HealthResponse",
    "HistoryEntryResponse",
    "InventorySummaryResponse",
    "InvoiceResponse",
    "PaymentRecordResponse",
    "PaymentResponse",
    "PurchaseOrderResponse",
    "RepairJobResponse",
    "RestockResponse",
    "ReturnJobPartResponse",
    "StockItemListResponse",
    "StockItemResponse",
]
