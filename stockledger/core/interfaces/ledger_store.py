"""Abstract interfaces for the ledger transaction boundary."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from stockledger.core.entities.billing import Customer, Invoice, Payment
from stockledger.core.entities.job import JobPart, RepairJob
from stockledger.core.entities.purchase_order import PurchaseOrder
from stockledger.core.entities.stock import HistoryEntry, StockItem, StockKind

T = TypeVar("T")


class ILedgerSession(ABC):
    """
    Reads and writes available inside one ledger transaction.

    `save_*` methods are compare-and-set on the record's version and
    raise ConcurrentUpdateError when the stored version moved on.
    `get_*` methods raise the matching NotFoundError subclass.
    """

    # Stock items
    @abstractmethod
    async def insert_item(self, item: StockItem) -> StockItem:
        """Insert an item row (batches are saved separately)."""
        pass

    @abstractmethod
    async def get_item(self, item_id: int) -> StockItem:
        """Get item with all its batches."""
        pass

    @abstractmethod
    async def save_item(self, item: StockItem) -> StockItem:
        """Persist derived totals and every batch; bumps the version."""
        pass

    @abstractmethod
    async def list_items(
        self,
        kind: StockKind | None = None,
        include_inactive: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[StockItem]:
        """List items (without batches) ordered by id."""
        pass

    @abstractmethod
    async def list_low_stock(self, limit: int = 100) -> list[StockItem]:
        """Active items with total quantity at or below min quantity."""
        pass

    @abstractmethod
    async def list_legacy_item_ids(self) -> list[int]:
        """Ids of items that have no batch rows."""
        pass

    # History
    @abstractmethod
    async def add_history(self, entry: HistoryEntry) -> HistoryEntry:
        """Append a history entry; returns it with its id."""
        pass

    @abstractmethod
    async def list_history(
        self, item_id: int, limit: int = 100, offset: int = 0
    ) -> list[HistoryEntry]:
        """History for an item, newest first."""
        pass

    # Repair jobs
    @abstractmethod
    async def insert_job(self, job: RepairJob) -> RepairJob:
        pass

    @abstractmethod
    async def get_job(self, job_id: int) -> RepairJob:
        """Get job with its part lines."""
        pass

    @abstractmethod
    async def save_job(self, job: RepairJob) -> RepairJob:
        pass

    @abstractmethod
    async def add_job_part(self, part: JobPart) -> JobPart:
        pass

    @abstractmethod
    async def update_job_part(self, part: JobPart) -> JobPart:
        pass

    @abstractmethod
    async def delete_job_part(self, line_id: int) -> None:
        pass

    # Purchase orders
    @abstractmethod
    async def insert_purchase_order(self, order: PurchaseOrder) -> PurchaseOrder:
        pass

    @abstractmethod
    async def get_purchase_order(self, order_id: int) -> PurchaseOrder:
        pass

    @abstractmethod
    async def save_purchase_order(self, order: PurchaseOrder) -> PurchaseOrder:
        """Persist status, commit time and line batch ids."""
        pass

    # Customers, invoices, payments
    @abstractmethod
    async def insert_customer(self, customer: Customer) -> Customer:
        pass

    @abstractmethod
    async def get_customer(self, customer_id: int) -> Customer:
        pass

    @abstractmethod
    async def save_customer(self, customer: Customer) -> Customer:
        pass

    @abstractmethod
    async def insert_invoice(self, invoice: Invoice) -> Invoice:
        pass

    @abstractmethod
    async def get_invoice(self, invoice_id: int) -> Invoice:
        pass

    @abstractmethod
    async def list_outstanding_invoices(self, customer_id: int) -> list[Invoice]:
        """Unpaid and Partial invoices of a customer, in storage order."""
        pass

    @abstractmethod
    async def save_invoice(self, invoice: Invoice) -> Invoice:
        pass

    @abstractmethod
    async def insert_payment(self, payment: Payment) -> Payment:
        """Insert a payment with its tenders and allocations."""
        pass

    @abstractmethod
    async def list_payments(self, customer_id: int) -> list[Payment]:
        """Payments of a customer, newest first."""
        pass

    # Idempotency
    @abstractmethod
    async def get_idempotent(self, key: str) -> tuple[str, str] | None:
        """Return `(operation, response_json)` stored under key, if any."""
        pass

    @abstractmethod
    async def put_idempotent(self, key: str, operation: str, response: str) -> None:
        pass


class ILedgerStore(ABC):
    """Runs ledger work as atomic, retried transactions."""

    @abstractmethod
    async def run(
        self,
        fn: Callable[[ILedgerSession], Awaitable[T]],
        *,
        keys: Iterable[str] = (),
        timeout: float | None = None,
    ) -> T:
        """
        Run `fn` inside one write transaction.

        All reads `fn` performs through the session happen inside the
        transaction. Contention is retried with backoff; exhausting the
        retry budget raises TransactionConflictError. An expired
        `timeout` rolls back and raises OperationTimeoutError.

        Args:
            fn: Coroutine function receiving the session
            keys: Names of the records touched, e.g. "stock_item:7"
            timeout: Deadline in seconds for the whole operation
        """
        pass

    @abstractmethod
    async def read(
        self,
        fn: Callable[[ILedgerSession], Awaitable[T]],
        *,
        timeout: float | None = None,
    ) -> T:
        """Run read-only `fn` against a consistent snapshot."""
        pass
