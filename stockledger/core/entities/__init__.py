"""Core domain entities."""

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
from stockledger.core.entities.operations import (
    AddPartResult,
    ApplyPaymentCommand,
    BatchDraw,
    CommittedLine,
    ConsumeCommand,
    ConsumeResult,
    PaymentResult,
    PurchaseOrderCommitResult,
    RestockCommand,
    RestockResult,
    ReturnPartResult,
)
from stockledger.core.entities.purchase_order import (
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
)
from stockledger.core.entities.stock import (
    Batch,
    HistoryEntry,
    HistoryType,
    InventorySummary,
    StockItem,
    StockKind,
    StockStatus,
)

__all__ = [
    # Stock
    "Batch",
    "HistoryEntry",
    "HistoryType",
    "InventorySummary",
    "StockItem",
    "StockKind",
    "StockStatus",
    # Jobs
    "JobPart",
    "JobStatus",
    "RepairJob",
    # Purchase orders
    "PurchaseOrder",
    "PurchaseOrderLine",
    "PurchaseOrderStatus",
    # Billing
    "Customer",
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "PaymentAllocation",
    "TenderLine",
    "TenderMethod",
    # Commands and results
    "AddPartResult",
    "ApplyPaymentCommand",
    "BatchDraw",
    "CommittedLine",
    "ConsumeCommand",
    "ConsumeResult",
    "PaymentResult",
    "PurchaseOrderCommitResult",
    "RestockCommand",
    "RestockResult",
    "ReturnPartResult",
]
