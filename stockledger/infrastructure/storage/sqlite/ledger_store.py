"""
SQLite implementation of the ledger transaction boundary.

Every write operation runs in a BEGIN IMMEDIATE transaction, so the
read-modify-write of an operation holds SQLite's write lock from its
first read. Lock granularity is the whole database file; operations on
different records serialize on commit but never interleave.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar

import aiosqlite
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from stockledger.config import get_logger, get_settings
from stockledger.config.settings import LedgerSettings
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
from stockledger.core.entities.purchase_order import (
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
)
from stockledger.core.entities.stock import (
    Batch,
    HistoryEntry,
    HistoryType,
    StockItem,
    StockKind,
    StockStatus,
    utcnow,
)
from stockledger.core.exceptions import (
    ConcurrentUpdateError,
    CustomerNotFoundError,
    DatabaseError,
    InvoiceNotFoundError,
    OperationTimeoutError,
    PurchaseOrderNotFoundError,
    RepairJobNotFoundError,
    StockItemNotFoundError,
    TransactionConflictError,
)
from stockledger.core.interfaces.ledger_store import ILedgerSession, ILedgerStore
from stockledger.infrastructure.storage.sqlite.connection import ConnectionPool, get_pool

logger = get_logger(__name__)

T = TypeVar("T")

_BUSY_MARKERS = ("database is locked", "database is busy", "database table is locked")


def _is_busy(error: aiosqlite.OperationalError) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _BUSY_MARKERS)


def _is_contention(error: BaseException) -> bool:
    """Write conflicts worth another attempt: stale versions and a busy database."""
    if isinstance(error, ConcurrentUpdateError):
        return True
    return isinstance(error, aiosqlite.OperationalError) and _is_busy(error)


def _parse_datetime(value: str | None) -> datetime:
    if value:
        try:
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            pass
    return utcnow()


def _money(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


class SQLiteLedgerSession(ILedgerSession):
    """Ledger reads and writes bound to one open transaction."""

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def _fetchone(self, sql: str, params: tuple = ()) -> aiosqlite.Row | None:
        cursor = await self._conn.execute(sql, params)
        return await cursor.fetchone()

    async def _fetchall(self, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        cursor = await self._conn.execute(sql, params)
        return list(await cursor.fetchall())

    async def _compare_and_set(
        self, entity: str, entity_id: int, version: int, sql: str, params: tuple
    ) -> None:
        cursor = await self._conn.execute(sql, params)
        if cursor.rowcount == 0:
            raise ConcurrentUpdateError(entity, entity_id, version)

    # ---------------------------------------------------------------- stock

    async def insert_item(self, item: StockItem) -> StockItem:
        cursor = await self._conn.execute(
            """
            INSERT INTO stock_items (
                kind, name, sku, min_quantity, price, location, notes, status,
                total_quantity, average_cost, version, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
            """,
            (
                item.kind.value,
                item.name,
                item.sku,
                item.min_quantity,
                str(item.price),
                item.location,
                item.notes,
                item.status.value,
                item.total_quantity,
                str(item.average_cost),
                item.created_at.isoformat(),
                item.updated_at.isoformat(),
            ),
        )
        item.id = cursor.lastrowid
        item.version = 0
        return item

    async def get_item(self, item_id: int) -> StockItem:
        row = await self._fetchone("SELECT * FROM stock_items WHERE id = ?", (item_id,))
        if row is None:
            raise StockItemNotFoundError(item_id)
        batch_rows = await self._fetchall(
            "SELECT * FROM stock_batches WHERE item_id = ? ORDER BY sequence",
            (item_id,),
        )
        item = self._row_to_item(row)
        item.batches = [self._row_to_batch(r) for r in batch_rows]
        if not batch_rows:
            item.recorded_quantity = row["total_quantity"]
        return item

    async def save_item(self, item: StockItem) -> StockItem:
        await self._compare_and_set(
            "stock_item",
            item.id,  # type: ignore[arg-type]
            item.version,
            """
            UPDATE stock_items SET
                kind = ?, name = ?, sku = ?, min_quantity = ?, price = ?,
                location = ?, notes = ?, status = ?,
                total_quantity = ?, average_cost = ?,
                version = version + 1, updated_at = ?
            WHERE id = ? AND version = ?
            """,
            (
                item.kind.value,
                item.name,
                item.sku,
                item.min_quantity,
                str(item.price),
                item.location,
                item.notes,
                item.status.value,
                item.total_quantity,
                str(item.average_cost),
                item.updated_at.isoformat(),
                item.id,
                item.version,
            ),
        )
        item.version += 1

        for batch in item.batches:
            await self._upsert_batch(item.id, batch)  # type: ignore[arg-type]
        return item

    async def _upsert_batch(self, item_id: int, batch: Batch) -> None:
        # Only quantity is ever updated; cost and ordering are fixed at insert
        await self._conn.execute(
            """
            INSERT INTO stock_batches (
                batch_id, item_id, sequence, quantity, cost_per_unit, acquired_at,
                source, notes, purchase_order_id, reference_number, is_legacy
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(batch_id) DO UPDATE SET quantity = excluded.quantity
            """,
            (
                batch.batch_id,
                item_id,
                batch.sequence,
                batch.quantity,
                str(batch.cost_per_unit),
                batch.acquired_at.isoformat(),
                batch.source,
                batch.notes,
                batch.purchase_order_id,
                batch.reference_number,
                1 if batch.is_legacy else 0,
            ),
        )

    async def list_items(
        self,
        kind: StockKind | None = None,
        include_inactive: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[StockItem]:
        conditions: list[str] = []
        params: list[Any] = []
        if kind is not None:
            conditions.append("kind = ?")
            params.append(kind.value)
        if not include_inactive:
            conditions.append("status = 'active'")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await self._fetchall(
            f"SELECT * FROM stock_items {where} ORDER BY id LIMIT ? OFFSET ?",
            (*params, limit, offset),
        )
        return [self._row_to_item(row) for row in rows]

    async def list_low_stock(self, limit: int = 100) -> list[StockItem]:
        rows = await self._fetchall(
            """
            SELECT * FROM stock_items
            WHERE status = 'active' AND total_quantity <= min_quantity
            ORDER BY total_quantity, id
            LIMIT ?
            """,
            (limit,),
        )
        return [self._row_to_item(row) for row in rows]

    async def list_legacy_item_ids(self) -> list[int]:
        rows = await self._fetchall(
            """
            SELECT i.id FROM stock_items i
            WHERE NOT EXISTS (SELECT 1 FROM stock_batches b WHERE b.item_id = i.id)
            ORDER BY i.id
            """
        )
        return [row["id"] for row in rows]

    # -------------------------------------------------------------- history

    async def add_history(self, entry: HistoryEntry) -> HistoryEntry:
        cursor = await self._conn.execute(
            """
            INSERT INTO stock_history (
                item_id, entry_type, quantity_delta, batch_id, unit_cost,
                job_id, purchase_order_id, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.item_id,
                entry.entry_type.value,
                entry.quantity_delta,
                entry.batch_id,
                str(entry.unit_cost),
                entry.job_id,
                entry.purchase_order_id,
                entry.notes,
                entry.created_at.isoformat(),
            ),
        )
        return entry.model_copy(update={"id": cursor.lastrowid})

    async def list_history(
        self, item_id: int, limit: int = 100, offset: int = 0
    ) -> list[HistoryEntry]:
        rows = await self._fetchall(
            """
            SELECT * FROM stock_history
            WHERE item_id = ?
            ORDER BY id DESC
            LIMIT ? OFFSET ?
            """,
            (item_id, limit, offset),
        )
        return [self._row_to_history(row) for row in rows]

    # ----------------------------------------------------------------- jobs

    async def insert_job(self, job: RepairJob) -> RepairJob:
        cursor = await self._conn.execute(
            """
            INSERT INTO repair_jobs (
                customer_id, title, description, status, version, created_at, updated_at
            ) VALUES (?, ?, ?, ?, 0, ?, ?)
            """,
            (
                job.customer_id,
                job.title,
                job.description,
                job.status.value,
                job.created_at.isoformat(),
                job.updated_at.isoformat(),
            ),
        )
        job.id = cursor.lastrowid
        job.version = 0
        return job

    async def get_job(self, job_id: int) -> RepairJob:
        row = await self._fetchone("SELECT * FROM repair_jobs WHERE id = ?", (job_id,))
        if row is None:
            raise RepairJobNotFoundError(job_id)
        part_rows = await self._fetchall(
            "SELECT * FROM job_parts WHERE job_id = ? ORDER BY id", (job_id,)
        )
        job = self._row_to_job(row)
        job.parts = [self._row_to_job_part(r) for r in part_rows]
        return job

    async def save_job(self, job: RepairJob) -> RepairJob:
        job.updated_at = utcnow()
        await self._compare_and_set(
            "repair_job",
            job.id,  # type: ignore[arg-type]
            job.version,
            """
            UPDATE repair_jobs SET
                customer_id = ?, title = ?, description = ?, status = ?,
                version = version + 1, updated_at = ?
            WHERE id = ? AND version = ?
            """,
            (
                job.customer_id,
                job.title,
                job.description,
                job.status.value,
                job.updated_at.isoformat(),
                job.id,
                job.version,
            ),
        )
        job.version += 1
        return job

    async def add_job_part(self, part: JobPart) -> JobPart:
        cursor = await self._conn.execute(
            """
            INSERT INTO job_parts (
                job_id, item_id, item_name, batch_id, quantity,
                unit_cost, unit_price, history_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                part.job_id,
                part.item_id,
                part.item_name,
                part.batch_id,
                part.quantity,
                str(part.unit_cost),
                str(part.unit_price),
                part.history_id,
                part.created_at.isoformat(),
            ),
        )
        part.id = cursor.lastrowid
        return part

    async def update_job_part(self, part: JobPart) -> JobPart:
        await self._conn.execute(
            "UPDATE job_parts SET quantity = ? WHERE id = ?",
            (part.quantity, part.id),
        )
        return part

    async def delete_job_part(self, line_id: int) -> None:
        await self._conn.execute("DELETE FROM job_parts WHERE id = ?", (line_id,))

    # ------------------------------------------------------ purchase orders

    async def insert_purchase_order(self, order: PurchaseOrder) -> PurchaseOrder:
        cursor = await self._conn.execute(
            """
            INSERT INTO purchase_orders (
                supplier, reference_number, status, notes, version, created_at
            ) VALUES (?, ?, ?, ?, 0, ?)
            """,
            (
                order.supplier,
                order.reference_number,
                order.status.value,
                order.notes,
                order.created_at.isoformat(),
            ),
        )
        order.id = cursor.lastrowid
        order.version = 0
        for line in order.lines:
            line.order_id = order.id
            cursor = await self._conn.execute(
                """
                INSERT INTO purchase_order_lines (
                    order_id, item_id, quantity, cost_per_unit, batch_id
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (order.id, line.item_id, line.quantity, str(line.cost_per_unit), line.batch_id),
            )
            line.id = cursor.lastrowid
        return order

    async def get_purchase_order(self, order_id: int) -> PurchaseOrder:
        row = await self._fetchone("SELECT * FROM purchase_orders WHERE id = ?", (order_id,))
        if row is None:
            raise PurchaseOrderNotFoundError(order_id)
        line_rows = await self._fetchall(
            "SELECT * FROM purchase_order_lines WHERE order_id = ? ORDER BY id",
            (order_id,),
        )
        order = PurchaseOrder(
            id=row["id"],
            supplier=row["supplier"],
            reference_number=row["reference_number"],
            status=PurchaseOrderStatus(row["status"]),
            notes=row["notes"],
            version=row["version"],
            created_at=_parse_datetime(row["created_at"]),
            committed_at=_parse_datetime(row["committed_at"]) if row["committed_at"] else None,
        )
        order.lines = [
            PurchaseOrderLine(
                id=r["id"],
                order_id=r["order_id"],
                item_id=r["item_id"],
                quantity=r["quantity"],
                cost_per_unit=_money(r["cost_per_unit"]),
                batch_id=r["batch_id"],
            )
            for r in line_rows
        ]
        return order

    async def save_purchase_order(self, order: PurchaseOrder) -> PurchaseOrder:
        await self._compare_and_set(
            "purchase_order",
            order.id,  # type: ignore[arg-type]
            order.version,
            """
            UPDATE purchase_orders SET
                status = ?, notes = ?, committed_at = ?, version = version + 1
            WHERE id = ? AND version = ?
            """,
            (
                order.status.value,
                order.notes,
                order.committed_at.isoformat() if order.committed_at else None,
                order.id,
                order.version,
            ),
        )
        order.version += 1
        for line in order.lines:
            await self._conn.execute(
                "UPDATE purchase_order_lines SET batch_id = ? WHERE id = ?",
                (line.batch_id, line.id),
            )
        return order

    # ------------------------------------------------------------- billing

    async def insert_customer(self, customer: Customer) -> Customer:
        cursor = await self._conn.execute(
            """
            INSERT INTO customers (name, phone, email, debt, version, created_at)
            VALUES (?, ?, ?, ?, 0, ?)
            """,
            (
                customer.name,
                customer.phone,
                customer.email,
                str(customer.debt),
                customer.created_at.isoformat(),
            ),
        )
        customer.id = cursor.lastrowid
        customer.version = 0
        return customer

    async def get_customer(self, customer_id: int) -> Customer:
        row = await self._fetchone("SELECT * FROM customers WHERE id = ?", (customer_id,))
        if row is None:
            raise CustomerNotFoundError(customer_id)
        return Customer(
            id=row["id"],
            name=row["name"],
            phone=row["phone"],
            email=row["email"],
            debt=_money(row["debt"]),
            version=row["version"],
            created_at=_parse_datetime(row["created_at"]),
        )

    async def save_customer(self, customer: Customer) -> Customer:
        await self._compare_and_set(
            "customer",
            customer.id,  # type: ignore[arg-type]
            customer.version,
            """
            UPDATE customers SET
                name = ?, phone = ?, email = ?, debt = ?, version = version + 1
            WHERE id = ? AND version = ?
            """,
            (
                customer.name,
                customer.phone,
                customer.email,
                str(customer.debt),
                customer.id,
                customer.version,
            ),
        )
        customer.version += 1
        return customer

    async def insert_invoice(self, invoice: Invoice) -> Invoice:
        cursor = await self._conn.execute(
            """
            INSERT INTO invoices (
                customer_id, invoice_number, total, amount_paid, status,
                issue_date, job_id, notes, version, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
            """,
            (
                invoice.customer_id,
                invoice.invoice_number,
                str(invoice.total),
                str(invoice.amount_paid),
                invoice.status.value,
                invoice.issue_date.isoformat(),
                invoice.job_id,
                invoice.notes,
                invoice.created_at.isoformat(),
            ),
        )
        invoice.id = cursor.lastrowid
        invoice.version = 0
        return invoice

    async def get_invoice(self, invoice_id: int) -> Invoice:
        row = await self._fetchone("SELECT * FROM invoices WHERE id = ?", (invoice_id,))
        if row is None:
            raise InvoiceNotFoundError(invoice_id)
        invoice = self._row_to_invoice(row)
        invoice.payment_ids = await self._payment_ids(invoice_id)
        return invoice

    async def _payment_ids(self, invoice_id: int) -> list[int]:
        rows = await self._fetchall(
            "SELECT payment_id, applied FROM payment_allocations WHERE invoice_id = ? ORDER BY id",
            (invoice_id,),
        )
        return [r["payment_id"] for r in rows if _money(r["applied"]) > 0]

    async def list_outstanding_invoices(self, customer_id: int) -> list[Invoice]:
        rows = await self._fetchall(
            """
            SELECT * FROM invoices
            WHERE customer_id = ? AND status IN ('Unpaid', 'Partial')
            ORDER BY id
            """,
            (customer_id,),
        )
        return [self._row_to_invoice(row) for row in rows]

    async def save_invoice(self, invoice: Invoice) -> Invoice:
        await self._compare_and_set(
            "invoice",
            invoice.id,  # type: ignore[arg-type]
            invoice.version,
            """
            UPDATE invoices SET
                amount_paid = ?, status = ?, notes = ?, version = version + 1
            WHERE id = ? AND version = ?
            """,
            (
                str(invoice.amount_paid),
                invoice.status.value,
                invoice.notes,
                invoice.id,
                invoice.version,
            ),
        )
        invoice.version += 1
        return invoice

    async def insert_payment(self, payment: Payment) -> Payment:
        cursor = await self._conn.execute(
            """
            INSERT INTO payments (
                customer_id, amount, unallocated, notes, idempotency_key, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                payment.customer_id,
                str(payment.amount),
                str(payment.unallocated),
                payment.notes,
                payment.idempotency_key,
                payment.created_at.isoformat(),
            ),
        )
        payment_id = cursor.lastrowid
        await self._conn.executemany(
            "INSERT INTO payment_tenders (payment_id, method, amount) VALUES (?, ?, ?)",
            [(payment_id, t.method.value, str(t.amount)) for t in payment.tenders],
        )
        await self._conn.executemany(
            """
            INSERT INTO payment_allocations (
                payment_id, invoice_id, applied, previous_status, new_status
            ) VALUES (?, ?, ?, ?, ?)
            """,
            [
                (
                    payment_id,
                    a.invoice_id,
                    str(a.applied),
                    a.previous_status.value,
                    a.new_status.value,
                )
                for a in payment.allocations
            ],
        )
        return payment.model_copy(update={"id": payment_id})

    async def list_payments(self, customer_id: int) -> list[Payment]:
        rows = await self._fetchall(
            "SELECT * FROM payments WHERE customer_id = ? ORDER BY id DESC",
            (customer_id,),
        )
        payments = []
        for row in rows:
            tender_rows = await self._fetchall(
                "SELECT * FROM payment_tenders WHERE payment_id = ? ORDER BY id",
                (row["id"],),
            )
            allocation_rows = await self._fetchall(
                "SELECT * FROM payment_allocations WHERE payment_id = ? ORDER BY id",
                (row["id"],),
            )
            payments.append(
                Payment(
                    id=row["id"],
                    customer_id=row["customer_id"],
                    amount=_money(row["amount"]),
                    unallocated=_money(row["unallocated"]),
                    notes=row["notes"],
                    idempotency_key=row["idempotency_key"],
                    created_at=_parse_datetime(row["created_at"]),
                    tenders=[
                        TenderLine(method=TenderMethod(t["method"]), amount=_money(t["amount"]))
                        for t in tender_rows
                    ],
                    allocations=[
                        PaymentAllocation(
                            invoice_id=a["invoice_id"],
                            applied=_money(a["applied"]),
                            previous_status=InvoiceStatus(a["previous_status"]),
                            new_status=InvoiceStatus(a["new_status"]),
                        )
                        for a in allocation_rows
                    ],
                )
            )
        return payments

    # ---------------------------------------------------------- idempotency

    async def get_idempotent(self, key: str) -> tuple[str, str] | None:
        row = await self._fetchone(
            "SELECT operation, response FROM idempotency_keys WHERE key = ?", (key,)
        )
        return (row["operation"], row["response"]) if row else None

    async def put_idempotent(self, key: str, operation: str, response: str) -> None:
        await self._conn.execute(
            """
            INSERT INTO idempotency_keys (key, operation, response, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (key, operation, response, utcnow().isoformat()),
        )

    # ---------------------------------------------------------- converters

    @staticmethod
    def _row_to_item(row: aiosqlite.Row) -> StockItem:
        """Convert a database row to a StockItem (batches loaded separately)."""
        return StockItem(
            id=row["id"],
            kind=StockKind(row["kind"]),
            name=row["name"],
            sku=row["sku"],
            min_quantity=row["min_quantity"],
            price=_money(row["price"]),
            location=row["location"],
            notes=row["notes"],
            status=StockStatus(row["status"]),
            total_quantity=max(row["total_quantity"], 0),
            average_cost=_money(row["average_cost"]),
            version=row["version"],
            created_at=_parse_datetime(row["created_at"]),
            updated_at=_parse_datetime(row["updated_at"]),
        )

    @staticmethod
    def _row_to_batch(row: aiosqlite.Row) -> Batch:
        return Batch(
            batch_id=row["batch_id"],
            item_id=row["item_id"],
            sequence=row["sequence"],
            quantity=row["quantity"],
            cost_per_unit=_money(row["cost_per_unit"]),
            acquired_at=_parse_datetime(row["acquired_at"]),
            source=row["source"],
            notes=row["notes"],
            purchase_order_id=row["purchase_order_id"],
            reference_number=row["reference_number"],
            is_legacy=bool(row["is_legacy"]),
        )

    @staticmethod
    def _row_to_history(row: aiosqlite.Row) -> HistoryEntry:
        return HistoryEntry(
            id=row["id"],
            item_id=row["item_id"],
            entry_type=HistoryType(row["entry_type"]),
            quantity_delta=row["quantity_delta"],
            batch_id=row["batch_id"],
            unit_cost=_money(row["unit_cost"]),
            job_id=row["job_id"],
            purchase_order_id=row["purchase_order_id"],
            notes=row["notes"],
            created_at=_parse_datetime(row["created_at"]),
        )

    @staticmethod
    def _row_to_job(row: aiosqlite.Row) -> RepairJob:
        return RepairJob(
            id=row["id"],
            customer_id=row["customer_id"],
            title=row["title"],
            description=row["description"],
            status=JobStatus(row["status"]),
            version=row["version"],
            created_at=_parse_datetime(row["created_at"]),
            updated_at=_parse_datetime(row["updated_at"]),
        )

    @staticmethod
    def _row_to_job_part(row: aiosqlite.Row) -> JobPart:
        return JobPart(
            id=row["id"],
            job_id=row["job_id"],
            item_id=row["item_id"],
            item_name=row["item_name"],
            batch_id=row["batch_id"],
            quantity=row["quantity"],
            unit_cost=_money(row["unit_cost"]),
            unit_price=_money(row["unit_price"]),
            history_id=row["history_id"],
            created_at=_parse_datetime(row["created_at"]),
        )

    @staticmethod
    def _row_to_invoice(row: aiosqlite.Row) -> Invoice:
        issue_date = date.today()
        if row["issue_date"]:
            try:
                issue_date = date.fromisoformat(row["issue_date"])
            except (ValueError, TypeError):
                pass
        return Invoice(
            id=row["id"],
            customer_id=row["customer_id"],
            invoice_number=row["invoice_number"],
            total=_money(row["total"]),
            amount_paid=_money(row["amount_paid"]),
            status=InvoiceStatus(row["status"]),
            issue_date=issue_date,
            job_id=row["job_id"],
            notes=row["notes"],
            version=row["version"],
            created_at=_parse_datetime(row["created_at"]),
        )


class SQLiteLedgerStore(ILedgerStore):
    """
    Retrying transaction runner over the SQLite connection pool.

    Write contention (a busy/locked database or a version mismatch) is
    retried with exponential backoff. The deadline covers every attempt,
    including time spent waiting for the write lock.
    """

    def __init__(
        self,
        pool: ConnectionPool | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._pool = pool
        self._settings = settings or get_settings().ledger

    async def _get_pool(self) -> ConnectionPool:
        if self._pool is None:
            self._pool = await get_pool()
        return self._pool

    async def run(
        self,
        fn: Callable[[ILedgerSession], Awaitable[T]],
        *,
        keys: Iterable[str] = (),
        timeout: float | None = None,
    ) -> T:
        key_list = list(keys)
        deadline = timeout if timeout is not None else self._settings.operation_timeout
        try:
            async with asyncio.timeout(deadline):
                return await self._run_with_retry(fn, key_list)
        except TimeoutError:
            if deadline is None:
                raise
            logger.warning("transaction_timeout", keys=key_list, timeout=deadline)
            raise OperationTimeoutError(key_list, deadline) from None

    def _retrying(self, keys: list[str]) -> AsyncRetrying:
        settings = self._settings

        def log_retry(state: RetryCallState) -> None:
            logger.warning(
                "transaction_retry",
                keys=keys,
                attempt=state.attempt_number,
                delay=state.next_action.sleep if state.next_action else None,
                error=str(state.outcome.exception()) if state.outcome else None,
            )

        return AsyncRetrying(
            stop=stop_after_attempt(settings.max_transaction_attempts),
            wait=wait_exponential(
                multiplier=settings.retry_delay,
                exp_base=settings.retry_multiplier,
            ),
            retry=retry_if_exception(_is_contention),
            before_sleep=log_retry,
        )

    async def _run_with_retry(
        self,
        fn: Callable[[ILedgerSession], Awaitable[T]],
        keys: list[str],
    ) -> T:
        pool = await self._get_pool()
        try:
            async for attempt in self._retrying(keys):
                with attempt:
                    try:
                        async with pool.transaction(immediate=True) as conn:
                            return await fn(SQLiteLedgerSession(conn))
                    except aiosqlite.OperationalError as e:
                        if _is_busy(e):
                            raise
                        raise DatabaseError("transaction", str(e)) from e
                    except aiosqlite.IntegrityError as e:
                        raise DatabaseError("transaction", str(e)) from e
        except RetryError as e:
            attempts = e.last_attempt.attempt_number
            error = str(e.last_attempt.exception())
            logger.error("transaction_conflict", keys=keys, attempts=attempts, error=error)
            raise TransactionConflictError(keys, attempts, error) from None

    async def read(
        self,
        fn: Callable[[ILedgerSession], Awaitable[T]],
        *,
        timeout: float | None = None,
    ) -> T:
        pool = await self._get_pool()
        deadline = timeout if timeout is not None else self._settings.operation_timeout
        try:
            async with asyncio.timeout(deadline):
                async with pool.transaction() as conn:
                    return await fn(SQLiteLedgerSession(conn))
        except TimeoutError:
            if deadline is None:
                raise
            raise OperationTimeoutError([], deadline) from None
        except aiosqlite.Error as e:
            raise DatabaseError("read", str(e)) from e
