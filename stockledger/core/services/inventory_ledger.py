"""
Inventory ledger service.

Layer-pure service over the ILedgerStore port. Every mutation is one
transaction scoped to the stock item it touches: the item and its
batches are read, changed and written back inside that transaction.
"""

from decimal import Decimal

from stockledger.config import get_logger, get_settings
from stockledger.config.settings import LedgerSettings
from stockledger.core.entities.operations import (
    BatchDraw,
    ConsumeCommand,
    ConsumeResult,
    RestockCommand,
    RestockResult,
    require_quantity,
    to_money,
)
from stockledger.core.entities.stock import (
    HistoryEntry,
    HistoryType,
    InventorySummary,
    StockItem,
    StockKind,
)
from stockledger.core.interfaces.ledger_store import ILedgerSession, ILedgerStore
from stockledger.core.services import batch_ledger
from stockledger.core.services.idempotency import remember, replay

logger = get_logger(__name__)

INITIAL_STOCK_SOURCE = "Initial Stock"
SUMMARY_PAGE_SIZE = 500


def item_key(item_id: int | None) -> str:
    return f"stock_item:{item_id if item_id is not None else 'new'}"


class InventoryLedgerService:
    """
    Stock items and their batch ledgers.

    Also exposes the session-level primitives (`load_item`,
    `apply_restock`, `apply_consume`) that other services compose into
    larger transactions.
    """

    def __init__(self, store: ILedgerStore, settings: LedgerSettings | None = None):
        self._store = store
        self._settings = settings or get_settings().ledger

    def _key(self, idempotency_key: str | None) -> str | None:
        return idempotency_key if self._settings.idempotency_enabled else None

    # ----------------------------------------------------- session primitives

    async def load_item(self, session: ILedgerSession, item_id: int) -> StockItem:
        """Load an item, migrating a flat legacy row into one batch on first read."""
        item = await session.get_item(item_id)
        batch = batch_ledger.migrate_legacy(item)
        if batch is not None:
            await session.save_item(item)
            if batch_ledger.legacy_shortfall(item):
                logger.warning(
                    "legacy_negative_quantity",
                    item_id=item.id,
                    recorded_quantity=item.recorded_quantity,
                )
            logger.info(
                "legacy_item_migrated",
                item_id=item.id,
                batch_id=batch.batch_id,
                quantity=batch.quantity,
            )
        return item

    async def apply_restock(
        self,
        session: ILedgerSession,
        item: StockItem,
        quantity: int,
        cost_per_unit: Decimal,
        source: str | None = None,
        *,
        entry_type: HistoryType = HistoryType.PURCHASE,
        job_id: int | None = None,
        purchase_order_id: int | None = None,
        reference_number: str | None = None,
        notes: str | None = None,
    ) -> RestockResult:
        posting = batch_ledger.append_batch(
            item,
            quantity,
            cost_per_unit,
            source,
            entry_type=entry_type,
            job_id=job_id,
            purchase_order_id=purchase_order_id,
            reference_number=reference_number,
            notes=notes,
        )
        await session.save_item(item)
        history = await session.add_history(posting.history)
        return RestockResult(
            item_id=item.id,  # type: ignore[arg-type]
            batch_id=posting.batch.batch_id,
            quantity=quantity,
            cost_per_unit=posting.batch.cost_per_unit,
            total_quantity=item.total_quantity,
            average_cost=item.average_cost,
            history_id=history.id,
        )

    async def apply_consume(
        self,
        session: ILedgerSession,
        item: StockItem,
        quantity: int,
        *,
        split: bool | None = None,
        job_id: int | None = None,
        notes: str | None = None,
    ) -> ConsumeResult:
        if split is None:
            split = self._settings.split_consumption_default
        take = batch_ledger.consume_across_batches if split else batch_ledger.consume
        outcome = take(item, quantity, job_id=job_id, notes=notes)

        await session.save_item(item)
        draws = []
        for draw in outcome.draws:
            history = await session.add_history(draw.history)
            draws.append(
                BatchDraw(
                    batch_id=draw.batch.batch_id,
                    quantity=draw.quantity,
                    cost_per_unit=draw.batch.cost_per_unit,
                    history_id=history.id,
                )
            )
        return ConsumeResult(
            item_id=item.id,  # type: ignore[arg-type]
            quantity=quantity,
            draws=draws,
            remaining_total=item.total_quantity,
            average_cost=item.average_cost,
        )

    # ------------------------------------------------------------ operations

    async def create_item(
        self,
        name: str,
        initial_quantity: int = 0,
        initial_cost: Decimal | float | str = Decimal("0"),
        *,
        kind: StockKind = StockKind.PART,
        sku: str | None = None,
        min_quantity: int = 0,
        price: Decimal | float | str = Decimal("0"),
        location: str | None = None,
        notes: str | None = None,
        source: str | None = None,
        timeout: float | None = None,
    ) -> StockItem:
        """Create an item with exactly one initial batch (zero quantity allowed)."""
        require_quantity(initial_quantity, "initial_quantity", allow_zero=True)
        require_quantity(min_quantity, "min_quantity", allow_zero=True)
        cost = to_money(initial_cost, "initial_cost")
        sell_price = to_money(price, "price")

        async def work(session: ILedgerSession) -> StockItem:
            item = await session.insert_item(
                StockItem(
                    kind=kind,
                    name=name,
                    sku=sku,
                    min_quantity=min_quantity,
                    price=sell_price,
                    location=location,
                    notes=notes,
                )
            )
            await self.apply_restock(
                session,
                item,
                initial_quantity,
                cost,
                source or INITIAL_STOCK_SOURCE,
                notes="Initial stock",
            )
            return item

        item = await self._store.run(work, keys=[item_key(None)], timeout=timeout)
        logger.info(
            "stock_item_created",
            item_id=item.id,
            kind=item.kind.value,
            quantity=item.total_quantity,
            average_cost=str(item.average_cost),
        )
        return item

    async def get_item(self, item_id: int, timeout: float | None = None) -> StockItem:
        """Get an item with its batches; raises StockItemNotFoundError."""

        async def work(session: ILedgerSession) -> StockItem:
            return await self.load_item(session, item_id)

        return await self._store.run(work, keys=[item_key(item_id)], timeout=timeout)

    async def restock(
        self, command: RestockCommand, timeout: float | None = None
    ) -> RestockResult:
        """Append a batch to an item."""
        key = self._key(command.idempotency_key)

        async def work(session: ILedgerSession) -> RestockResult:
            previous = await replay(session, key, "restock", RestockResult)
            if previous is not None:
                return previous
            item = await self.load_item(session, command.item_id)
            result = await self.apply_restock(
                session,
                item,
                command.quantity,
                command.cost_per_unit,
                command.source,
                purchase_order_id=command.purchase_order_id,
                reference_number=command.reference_number,
                notes=command.notes,
            )
            await remember(session, key, "restock", result)
            return result

        result = await self._store.run(
            work, keys=[item_key(command.item_id)], timeout=timeout
        )
        logger.info(
            "batch_appended",
            item_id=result.item_id,
            batch_id=result.batch_id,
            quantity=result.quantity,
            cost_per_unit=str(result.cost_per_unit),
            total_quantity=result.total_quantity,
        )
        return result

    async def consume(
        self, command: ConsumeCommand, timeout: float | None = None
    ) -> ConsumeResult:
        """
        Consume stock oldest batch first.

        Raises:
            StockItemNotFoundError: unknown item
            InsufficientStockError: not enough stock in total
            OldestBatchTooSmallError: single-batch mode and the oldest batch is short
        """
        key = self._key(command.idempotency_key)

        async def work(session: ILedgerSession) -> ConsumeResult:
            previous = await replay(session, key, "consume", ConsumeResult)
            if previous is not None:
                return previous
            item = await self.load_item(session, command.item_id)
            result = await self.apply_consume(
                session,
                item,
                command.quantity,
                split=command.split,
                job_id=command.job_id,
                notes=command.notes,
            )
            await remember(session, key, "consume", result)
            return result

        result = await self._store.run(
            work, keys=[item_key(command.item_id)], timeout=timeout
        )
        logger.info(
            "stock_consumed",
            item_id=result.item_id,
            quantity=result.quantity,
            batches=[d.batch_id for d in result.draws],
            cost_per_unit=str(result.cost_per_unit),
            remaining_total=result.remaining_total,
        )
        return result

    async def list_items(
        self,
        kind: StockKind | None = None,
        include_inactive: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[StockItem]:
        async def work(session: ILedgerSession) -> list[StockItem]:
            return await session.list_items(kind, include_inactive, limit, offset)

        return await self._store.read(work)

    async def list_low_stock(self, limit: int = 100) -> list[StockItem]:
        """Active items at or below their reorder threshold."""

        async def work(session: ILedgerSession) -> list[StockItem]:
            return await session.list_low_stock(limit)

        return await self._store.read(work)

    async def get_history(
        self, item_id: int, limit: int = 100, offset: int = 0
    ) -> list[HistoryEntry]:
        """History of an item, newest first."""

        async def work(session: ILedgerSession) -> list[HistoryEntry]:
            await session.get_item(item_id)
            return await session.list_history(item_id, limit, offset)

        return await self._store.read(work)

    async def summary(self) -> InventorySummary:
        """Counts and valuation over active items."""

        async def work(session: ILedgerSession) -> InventorySummary:
            summary = InventorySummary()
            offset = 0
            while True:
                page = await session.list_items(limit=SUMMARY_PAGE_SIZE, offset=offset)
                for item in page:
                    summary.item_count += 1
                    summary.total_quantity += item.total_quantity
                    summary.total_value += item.total_value
                    if item.is_out_of_stock:
                        summary.out_of_stock_count += 1
                    if item.is_low_stock:
                        summary.low_stock_count += 1
                    kind = item.kind.value
                    summary.by_kind[kind] = summary.by_kind.get(kind, 0) + 1
                if len(page) < SUMMARY_PAGE_SIZE:
                    return summary
                offset += SUMMARY_PAGE_SIZE

        return await self._store.read(work)

    async def migrate_legacy_items(self) -> list[int]:
        """Migrate every batchless item, one transaction per item."""

        async def find(session: ILedgerSession) -> list[int]:
            return await session.list_legacy_item_ids()

        migrated = []
        for item_id in await self._store.read(find):

            async def work(session: ILedgerSession, item_id: int = item_id) -> StockItem:
                return await self.load_item(session, item_id)

            await self._store.run(work, keys=[item_key(item_id)])
            migrated.append(item_id)

        logger.info("legacy_migration_complete", migrated=len(migrated))
        return migrated
