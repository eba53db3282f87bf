"""
Consumption orchestrator.

Maps repair-job and purchase-order events onto batch ledger operations.
Stock is deducted once, when a part is attached to a job; job status
changes never touch inventory.
"""

from decimal import Decimal

from stockledger.config import get_logger, get_settings
from stockledger.config.settings import LedgerSettings
from stockledger.core.entities.job import JobPart, JobStatus, RepairJob
from stockledger.core.entities.operations import (
    AddPartResult,
    CommittedLine,
    PurchaseOrderCommitResult,
    ReturnPartResult,
    require_quantity,
    to_money,
)
from stockledger.core.entities.purchase_order import (
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
)
from stockledger.core.entities.stock import HistoryType, StockItem, utcnow
from stockledger.core.exceptions import (
    InvalidAmountError,
    InvalidJobStateError,
    JobPartNotFoundError,
    PurchaseOrderStateError,
)
from stockledger.core.interfaces.ledger_store import ILedgerSession, ILedgerStore
from stockledger.core.services.batch_ledger import JOB_RETURN_SOURCE
from stockledger.core.services.idempotency import remember, replay
from stockledger.core.services.inventory_ledger import InventoryLedgerService, item_key

logger = get_logger(__name__)


def job_key(job_id: int | None) -> str:
    return f"repair_job:{job_id if job_id is not None else 'new'}"


def order_key(order_id: int | None) -> str:
    return f"purchase_order:{order_id if order_id is not None else 'new'}"


class ConsumptionOrchestrator:
    """
    Repair jobs and purchase orders over the inventory ledger.

    Each operation runs as one transaction covering the job or order and
    every stock item it moves, so a failure leaves all of them unchanged.
    """

    def __init__(
        self,
        store: ILedgerStore,
        inventory: InventoryLedgerService | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._store = store
        self._settings = settings or get_settings().ledger
        self._inventory = inventory or InventoryLedgerService(store, self._settings)

    def _key(self, idempotency_key: str | None) -> str | None:
        return idempotency_key if self._settings.idempotency_enabled else None

    # -------------------------------------------------------------- jobs

    async def create_job(
        self,
        title: str,
        customer_id: int | None = None,
        description: str | None = None,
    ) -> RepairJob:
        async def work(session: ILedgerSession) -> RepairJob:
            if customer_id is not None:
                await session.get_customer(customer_id)
            return await session.insert_job(
                RepairJob(title=title, customer_id=customer_id, description=description)
            )

        job = await self._store.run(work, keys=[job_key(None)])
        logger.info("repair_job_created", job_id=job.id, customer_id=customer_id)
        return job

    async def get_job(self, job_id: int) -> RepairJob:
        async def work(session: ILedgerSession) -> RepairJob:
            return await session.get_job(job_id)

        return await self._store.read(work)

    async def add_part_to_job(
        self,
        job_id: int,
        item_id: int,
        quantity: int,
        *,
        unit_price: Decimal | float | str | None = None,
        split: bool | None = None,
        idempotency_key: str | None = None,
        timeout: float | None = None,
    ) -> AddPartResult:
        """
        Consume stock onto a job.

        One job line is recorded per batch drawn, at that batch's cost. Any
        failure (stock or job state) aborts the whole operation.
        """
        require_quantity(quantity)
        price = to_money(unit_price, "unit_price") if unit_price is not None else None
        key = self._key(idempotency_key)

        async def work(session: ILedgerSession) -> AddPartResult:
            previous = await replay(session, key, "add_part_to_job", AddPartResult)
            if previous is not None:
                return previous

            job = await session.get_job(job_id)
            if job.status.is_closed:
                raise InvalidJobStateError(job_id, job.status.value, "add parts")

            item = await self._inventory.load_item(session, item_id)
            consumption = await self._inventory.apply_consume(
                session,
                item,
                quantity,
                split=split,
                job_id=job_id,
                notes=f"Used on job {job_id}",
            )

            lines = []
            for draw in consumption.draws:
                part = JobPart(
                    job_id=job_id,
                    item_id=item_id,
                    item_name=item.name,
                    batch_id=draw.batch_id,
                    quantity=draw.quantity,
                    unit_cost=draw.cost_per_unit,
                    unit_price=price if price is not None else item.price,
                    history_id=draw.history_id,
                )
                lines.append(await session.add_job_part(part))

            await session.save_job(job)
            result = AddPartResult(job_id=job_id, lines=lines, consumption=consumption)
            await remember(session, key, "add_part_to_job", result)
            return result

        result = await self._store.run(
            work, keys=[job_key(job_id), item_key(item_id)], timeout=timeout
        )
        logger.info(
            "job_part_added",
            job_id=job_id,
            item_id=item_id,
            quantity=quantity,
            lines=[line.id for line in result.lines],
            remaining_total=result.consumption.remaining_total,
        )
        return result

    async def remove_part_from_job(
        self,
        job_id: int,
        line_id: int,
        quantity: int | None = None,
        timeout: float | None = None,
    ) -> ReturnPartResult:
        """
        Return a job line (or part of it) to stock at the cost it left with.

        The returned units form a new "Job Return" batch carrying the
        line's recorded unit cost, never the item's current average.
        """
        if quantity is not None:
            require_quantity(quantity)

        async def work(session: ILedgerSession) -> tuple[ReturnPartResult, StockItem]:
            job = await session.get_job(job_id)
            if job.status.is_closed:
                raise InvalidJobStateError(job_id, job.status.value, "remove parts")

            line = job.get_part(line_id)
            if line is None:
                raise JobPartNotFoundError(job_id, line_id)

            returned = quantity if quantity is not None else line.quantity
            if returned > line.quantity:
                raise InvalidAmountError(
                    "quantity", returned, f"exceeds line quantity {line.quantity}"
                )

            item = await self._inventory.load_item(session, line.item_id)
            restock = await self._inventory.apply_restock(
                session,
                item,
                returned,
                line.unit_cost,
                JOB_RETURN_SOURCE,
                entry_type=HistoryType.RETURN,
                job_id=job_id,
                notes=f"Returned from job {job_id}",
            )

            removed = returned == line.quantity
            if removed:
                await session.delete_job_part(line_id)
            else:
                line.quantity -= returned
                await session.update_job_part(line)

            await session.save_job(job)
            result = ReturnPartResult(
                job_id=job_id,
                line_id=line_id,
                quantity=returned,
                restock=restock,
                line_removed=removed,
            )
            return result, item

        result, item = await self._store.run(
            work, keys=[job_key(job_id)], timeout=timeout
        )
        logger.info(
            "job_part_returned",
            job_id=job_id,
            line_id=line_id,
            item_id=item.id,
            quantity=result.quantity,
            unit_cost=str(result.restock.cost_per_unit),
            batch_id=result.restock.batch_id,
        )
        return result

    async def update_job_status(self, job_id: int, status: JobStatus) -> RepairJob:
        """Move a job to a new status. Inventory is not touched."""

        async def work(session: ILedgerSession) -> tuple[RepairJob, JobStatus]:
            job = await session.get_job(job_id)
            previous = job.status
            if previous == JobStatus.CANCELLED and status != JobStatus.CANCELLED:
                raise InvalidJobStateError(job_id, previous.value, "reopen")
            job.status = status
            return await session.save_job(job), previous

        job, previous = await self._store.run(work, keys=[job_key(job_id)])
        logger.info(
            "job_status_changed",
            job_id=job_id,
            from_status=previous.value,
            to_status=status.value,
        )
        return job

    # --------------------------------------------------- purchase orders

    async def create_purchase_order(
        self,
        lines: list[PurchaseOrderLine],
        supplier: str | None = None,
        reference_number: str | None = None,
        notes: str | None = None,
    ) -> PurchaseOrder:
        """Create a draft order. Lines are validated now, items at commit."""
        if not lines:
            raise InvalidAmountError("lines", 0, "order needs at least one line")
        for line in lines:
            require_quantity(line.quantity)
            line.cost_per_unit = to_money(line.cost_per_unit, "cost_per_unit")

        async def work(session: ILedgerSession) -> PurchaseOrder:
            return await session.insert_purchase_order(
                PurchaseOrder(
                    supplier=supplier,
                    reference_number=reference_number,
                    notes=notes,
                    lines=lines,
                )
            )

        order = await self._store.run(work, keys=[order_key(None)])
        logger.info("purchase_order_created", order_id=order.id, lines=len(order.lines))
        return order

    async def get_purchase_order(self, order_id: int) -> PurchaseOrder:
        async def work(session: ILedgerSession) -> PurchaseOrder:
            return await session.get_purchase_order(order_id)

        return await self._store.read(work)

    async def commit_purchase_order(
        self, order_id: int, timeout: float | None = None
    ) -> PurchaseOrderCommitResult:
        """
        Restock one batch per line, all-or-nothing.

        A missing item or invalid line aborts the commit and leaves the
        order in draft with no stock moved.
        """

        async def work(session: ILedgerSession) -> PurchaseOrderCommitResult:
            order = await session.get_purchase_order(order_id)
            if order.status == PurchaseOrderStatus.COMMITTED:
                raise PurchaseOrderStateError(order_id, order.status.value)
            if order.status == PurchaseOrderStatus.CANCELLED:
                raise PurchaseOrderStateError(
                    order_id,
                    order.status.value,
                    f"Purchase order {order_id} is cancelled",
                )

            # Lines for the same item share one loaded copy
            items: dict[int, StockItem] = {}
            committed = []
            for line in order.lines:
                if line.item_id not in items:
                    items[line.item_id] = await self._inventory.load_item(
                        session, line.item_id
                    )
                restock = await self._inventory.apply_restock(
                    session,
                    items[line.item_id],
                    line.quantity,
                    line.cost_per_unit,
                    order.supplier or f"PO {order_id}",
                    purchase_order_id=order_id,
                    reference_number=order.reference_number,
                    notes=f"Purchase order {order_id}",
                )
                line.batch_id = restock.batch_id
                committed.append(
                    CommittedLine(
                        line_id=line.id,  # type: ignore[arg-type]
                        item_id=line.item_id,
                        quantity=line.quantity,
                        cost_per_unit=line.cost_per_unit,
                        batch_id=restock.batch_id,
                    )
                )

            order.status = PurchaseOrderStatus.COMMITTED
            order.committed_at = utcnow()
            await session.save_purchase_order(order)
            return PurchaseOrderCommitResult(
                order_id=order_id, status=order.status, lines=committed
            )

        result = await self._store.run(work, keys=[order_key(order_id)], timeout=timeout)
        logger.info(
            "purchase_order_committed",
            order_id=order_id,
            lines=len(result.lines),
            batches=[line.batch_id for line in result.lines],
        )
        return result

    async def cancel_purchase_order(self, order_id: int) -> PurchaseOrder:
        """Cancel a draft order; committed orders stay committed."""

        async def work(session: ILedgerSession) -> PurchaseOrder:
            order = await session.get_purchase_order(order_id)
            if order.status != PurchaseOrderStatus.DRAFT:
                raise PurchaseOrderStateError(
                    order_id,
                    order.status.value,
                    f"Only draft orders can be cancelled (order {order_id} is {order.status.value})",
                )
            order.status = PurchaseOrderStatus.CANCELLED
            return await session.save_purchase_order(order)

        order = await self._store.run(work, keys=[order_key(order_id)])
        logger.info("purchase_order_cancelled", order_id=order_id)
        return order
