"""
Domain exceptions for the stock ledger.

Provides specific exception types for different error scenarios.
"""

from typing import Any


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Lookup Exceptions
class NotFoundError(LedgerError):
    """Referenced record does not exist."""

    def __init__(self, entity: str, entity_id: Any, code: str | None = None):
        super().__init__(
            f"{entity} not found: {entity_id}",
            code=code or "NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )
        self.entity_id = entity_id


class StockItemNotFoundError(NotFoundError):
    """Stock item not found in storage."""

    def __init__(self, item_id: int):
        super().__init__("Stock item", item_id, code="STOCK_ITEM_NOT_FOUND")


class CustomerNotFoundError(NotFoundError):
    """Customer not found in storage."""

    def __init__(self, customer_id: int):
        super().__init__("Customer", customer_id, code="CUSTOMER_NOT_FOUND")


class InvoiceNotFoundError(NotFoundError):
    """Invoice not found in storage."""

    def __init__(self, invoice_id: int):
        super().__init__("Invoice", invoice_id, code="INVOICE_NOT_FOUND")


class RepairJobNotFoundError(NotFoundError):
    """Repair job not found in storage."""

    def __init__(self, job_id: int):
        super().__init__("Repair job", job_id, code="REPAIR_JOB_NOT_FOUND")


class JobPartNotFoundError(NotFoundError):
    """Part line not found on a repair job."""

    def __init__(self, job_id: int, line_id: int):
        super().__init__("Job part line", line_id, code="JOB_PART_NOT_FOUND")
        self.details["job_id"] = job_id


class PurchaseOrderNotFoundError(NotFoundError):
    """Purchase order not found in storage."""

    def __init__(self, order_id: int):
        super().__init__("Purchase order", order_id, code="PURCHASE_ORDER_NOT_FOUND")


# Stock Exceptions
class StockError(LedgerError):
    """Base exception for stock availability failures."""

    pass


class InsufficientStockError(StockError):
    """Requested quantity exceeds the total on hand."""

    def __init__(self, item_id: int | None, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for item {item_id}: requested {requested}, available {available}",
            code="INSUFFICIENT_STOCK",
            details={
                "item_id": item_id,
                "requested": requested,
                "available": available,
            },
        )
        self.requested = requested
        self.available = available


class OldestBatchTooSmallError(StockError):
    """Requested quantity exceeds what the oldest batch still holds."""

    def __init__(
        self,
        item_id: int | None,
        batch_id: str,
        batch_quantity: int,
        requested: int,
        total_available: int,
    ):
        super().__init__(
            f"Oldest batch {batch_id} of item {item_id} holds {batch_quantity}, "
            f"requested {requested}; multi-batch consumption needs split mode",
            code="OLDEST_BATCH_TOO_SMALL",
            details={
                "item_id": item_id,
                "batch_id": batch_id,
                "batch_quantity": batch_quantity,
                "requested": requested,
                "total_available": total_available,
            },
        )
        self.batch_id = batch_id
        self.batch_quantity = batch_quantity
        self.requested = requested
        self.total_available = total_available


# Validation Exceptions
class ValidationError(LedgerError):
    """Input validation failed."""

    def __init__(self, field: str, message: str, value: Any = None):
        super().__init__(
            f"Validation error for '{field}': {message}",
            code="VALIDATION_ERROR",
            details={
                "field": field,
                "message": message,
                "value": str(value)[:100] if value is not None else None,
            },
        )


class InvalidAmountError(ValidationError):
    """Quantity, cost or payment amount is out of range."""

    def __init__(self, field: str, value: Any, message: str = "must be positive"):
        super().__init__(field=field, message=message, value=value)
        self.code = "INVALID_AMOUNT"


# Concurrency Exceptions
class ConcurrencyError(LedgerError):
    """Base exception for transaction contention and deadlines."""

    pass


class ConcurrentUpdateError(ConcurrencyError):
    """A versioned row changed underneath the current transaction."""

    def __init__(self, entity: str, entity_id: Any, expected_version: int):
        super().__init__(
            f"{entity} {entity_id} was modified concurrently",
            code="CONCURRENT_UPDATE",
            details={
                "entity": entity,
                "id": entity_id,
                "expected_version": expected_version,
            },
        )


class TransactionConflictError(ConcurrencyError):
    """Retry budget exhausted while contending for the same records."""

    def __init__(self, keys: list[str], attempts: int, error: str | None = None):
        super().__init__(
            f"Transaction on {', '.join(keys) or 'ledger'} failed after {attempts} attempts",
            code="TRANSACTION_CONFLICT",
            details={"keys": keys, "attempts": attempts, "error": error},
        )
        self.keys = keys
        self.attempts = attempts


class OperationTimeoutError(ConcurrencyError):
    """Operation exceeded its deadline and was rolled back."""

    def __init__(self, keys: list[str], timeout: float):
        super().__init__(
            f"Operation on {', '.join(keys) or 'ledger'} timed out after {timeout}s",
            code="OPERATION_TIMEOUT",
            details={"keys": keys, "timeout": timeout},
        )
        self.keys = keys
        self.timeout = timeout


# Workflow Exceptions
class WorkflowError(LedgerError):
    """Base exception for state-machine violations."""

    pass


class InvalidJobStateError(WorkflowError):
    """Repair job is in a status that forbids the requested change."""

    def __init__(self, job_id: int, status: str, action: str):
        super().__init__(
            f"Cannot {action} on job {job_id} with status '{status}'",
            code="INVALID_JOB_STATE",
            details={"job_id": job_id, "status": status, "action": action},
        )


class PurchaseOrderStateError(WorkflowError):
    """Purchase order cannot be committed in its current status."""

    def __init__(self, order_id: int, status: str, reason: str | None = None):
        super().__init__(
            reason or f"Purchase order {order_id} is already {status}",
            code="PURCHASE_ORDER_STATE",
            details={"order_id": order_id, "status": status},
        )


class IdempotencyKeyConflictError(WorkflowError):
    """Idempotency key was already used by a different operation."""

    def __init__(self, key: str, operation: str, existing_operation: str):
        super().__init__(
            f"Idempotency key '{key}' already used for {existing_operation}",
            code="IDEMPOTENCY_KEY_CONFLICT",
            details={
                "key": key,
                "operation": operation,
                "existing_operation": existing_operation,
            },
        )


# Storage Exceptions
class StorageError(LedgerError):
    """Base exception for storage operations."""

    pass


class DatabaseError(StorageError):
    """Database operation failed."""

    def __init__(self, operation: str, error: str):
        super().__init__(
            f"Database error during {operation}: {error}",
            code="DATABASE_ERROR",
            details={"operation": operation, "error": error},
        )


class ConfigurationError(LedgerError):
    """Configuration error."""

    pass
