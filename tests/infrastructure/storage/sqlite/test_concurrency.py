"""Contention, retry and deadline behaviour of the ledger store."""

import asyncio
from decimal import Decimal

import aiosqlite
import pytest

from stockledger.core.entities.operations import ConsumeCommand, RestockCommand
from stockledger.core.exceptions import (
    ConcurrentUpdateError,
    InsufficientStockError,
    OperationTimeoutError,
    TransactionConflictError,
)
from stockledger.infrastructure.storage.sqlite import SQLiteLedgerStore


class TestConcurrentConsumption:
    async def test_two_consumers_cannot_both_take_last_stock(self, inventory):
        item = await inventory.create_item("Gasket", 5, Decimal("2.00"))

        results = await asyncio.gather(
            inventory.consume(ConsumeCommand(item_id=item.id, quantity=5)),
            inventory.consume(ConsumeCommand(item_id=item.id, quantity=5)),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], InsufficientStockError)

        final = await inventory.get_item(item.id)
        assert final.total_quantity == 0
        assert sum(b.quantity for b in final.batches) == 0

    async def test_interleaved_restock_and_consume_keep_totals(self, inventory):
        item = await inventory.create_item("Washer", 10, Decimal("1.00"))

        await asyncio.gather(
            *(inventory.consume(ConsumeCommand(item_id=item.id, quantity=1, split=True))
              for _ in range(4)),
            *(inventory.restock(RestockCommand(item_id=item.id, quantity=2,
                                               cost_per_unit=Decimal("1.50")))
              for _ in range(3)),
        )

        final = await inventory.get_item(item.id)
        assert final.total_quantity == 10 - 4 + 6
        assert final.total_quantity == sum(b.quantity for b in final.batches)
        history = await inventory.get_history(item.id)
        assert sum(h.quantity_delta for h in history) == final.total_quantity


class TestRetries:
    async def test_version_conflicts_exhaust_retry_budget(self, store: SQLiteLedgerStore):
        calls = 0

        async def always_stale(session):
            nonlocal calls
            calls += 1
            raise ConcurrentUpdateError("stock_item", 1, 0)

        with pytest.raises(TransactionConflictError) as exc_info:
            await store.run(always_stale, keys=["stock_item:1"])

        assert calls == 5
        assert exc_info.value.attempts == 5
        assert exc_info.value.keys == ["stock_item:1"]

    async def test_busy_database_is_retried(self, store: SQLiteLedgerStore):
        calls = 0

        async def busy_once(session):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise aiosqlite.OperationalError("database is locked")
            return "done"

        assert await store.run(busy_once) == "done"
        assert calls == 2

    async def test_failed_attempt_is_rolled_back(self, store: SQLiteLedgerStore, inventory):
        item = await inventory.create_item("Hose", 3, Decimal("5.00"))
        calls = 0

        async def write_then_conflict(session):
            nonlocal calls
            calls += 1
            loaded = await inventory.load_item(session, item.id)
            await inventory.apply_consume(session, loaded, 1)
            if calls == 1:
                raise ConcurrentUpdateError("stock_item", item.id, loaded.version)

        await store.run(write_then_conflict)

        final = await inventory.get_item(item.id)
        assert final.total_quantity == 2
        assert len(await inventory.get_history(item.id)) == 2


class TestDeadlines:
    async def test_timeout_rolls_back(self, store: SQLiteLedgerStore, inventory):
        item = await inventory.create_item("Clamp", 4, Decimal("0.75"))

        async def slow_consume(session):
            loaded = await inventory.load_item(session, item.id)
            await inventory.apply_consume(session, loaded, 4)
            await asyncio.sleep(5)

        with pytest.raises(OperationTimeoutError) as exc_info:
            await store.run(slow_consume, keys=["stock_item:x"], timeout=0.05)
        assert exc_info.value.timeout == 0.05

        final = await inventory.get_item(item.id)
        assert final.total_quantity == 4
        assert len(await inventory.get_history(item.id)) == 1

    async def test_timeout_waiting_for_write_lock_keeps_store_writable(
        self, store: SQLiteLedgerStore, inventory
    ):
        item = await inventory.create_item("Gasket", 10, Decimal("1.50"))
        holding = asyncio.Event()
        release = asyncio.Event()

        async def hold_lock(session):
            await session.get_item(item.id)
            holding.set()
            await release.wait()

        holder = asyncio.create_task(store.run(hold_lock, keys=["stock_item:hold"]))
        await holding.wait()

        with pytest.raises(OperationTimeoutError):
            await inventory.consume(ConsumeCommand(item_id=item.id, quantity=1), timeout=0.2)

        release.set()
        await holder
        await asyncio.sleep(0.3)

        for _ in range(4):
            await inventory.consume(ConsumeCommand(item_id=item.id, quantity=1), timeout=2)

        final = await inventory.get_item(item.id)
        assert final.total_quantity == 6

    async def test_timeout_is_optional(self, store: SQLiteLedgerStore):
        async def quick(session):
            return 42

        assert await store.run(quick, timeout=None) == 42
