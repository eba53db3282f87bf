"""Tests for the SQLite ledger session and store."""

from decimal import Decimal

import pytest

from stockledger.core.entities.stock import Batch, HistoryEntry, HistoryType, StockItem
from stockledger.core.exceptions import (
    ConcurrentUpdateError,
    DatabaseError,
    StockItemNotFoundError,
)
from stockledger.infrastructure.storage.sqlite import SQLiteLedgerStore
from stockledger.infrastructure.storage.sqlite.ledger_store import SQLiteLedgerSession


async def _insert(store: SQLiteLedgerStore, **fields) -> StockItem:
    async def work(session):
        return await session.insert_item(StockItem(name="Spark plug", **fields))

    return await store.run(work)


class TestItems:
    async def test_insert_and_get(self, store: SQLiteLedgerStore):
        item = await _insert(store, sku="SP-1", price=Decimal("7.50"), min_quantity=2)
        assert item.id is not None
        assert item.version == 0

        loaded = await store.read(lambda s: s.get_item(item.id))
        assert loaded.name == "Spark plug"
        assert loaded.price == Decimal("7.50")
        assert loaded.min_quantity == 2
        assert loaded.batches == []

    async def test_get_missing_item(self, store: SQLiteLedgerStore):
        with pytest.raises(StockItemNotFoundError):
            await store.read(lambda s: s.get_item(999))

    async def test_save_persists_batches_and_bumps_version(self, store: SQLiteLedgerStore):
        item = await _insert(store)

        async def work(session):
            loaded = await session.get_item(item.id)
            loaded.batches.append(
                Batch(
                    batch_id="B-1",
                    item_id=loaded.id,
                    sequence=1,
                    quantity=4,
                    cost_per_unit=Decimal("1.25"),
                )
            )
            loaded.total_quantity = 4
            loaded.average_cost = Decimal("1.25")
            return await session.save_item(loaded)

        saved = await store.run(work)
        assert saved.version == 1

        loaded = await store.read(lambda s: s.get_item(item.id))
        assert loaded.version == 1
        assert loaded.total_quantity == 4
        assert [(b.batch_id, b.quantity, b.cost_per_unit) for b in loaded.batches] == [
            ("B-1", 4, Decimal("1.25"))
        ]

    async def test_stale_version_is_rejected(self, store: SQLiteLedgerStore, pool):
        item = await _insert(store)

        async with pool.transaction(immediate=True) as conn:
            await conn.execute("UPDATE stock_items SET version = 3 WHERE id = ?", (item.id,))

        async with pool.transaction(immediate=True) as conn:
            with pytest.raises(ConcurrentUpdateError):
                await SQLiteLedgerSession(conn).save_item(item.model_copy())

    async def test_list_legacy_item_ids(self, store: SQLiteLedgerStore, inventory):
        legacy = await _insert(store)
        await inventory.create_item("Filter", 3, Decimal("4.00"))

        assert await store.read(lambda s: s.list_legacy_item_ids()) == [legacy.id]

    async def test_list_items_filters_inactive(self, store: SQLiteLedgerStore, pool):
        active = await _insert(store)
        inactive = await _insert(store)
        async with pool.transaction() as conn:
            await conn.execute(
                "UPDATE stock_items SET status = 'inactive' WHERE id = ?", (inactive.id,)
            )

        ids = [i.id for i in await store.read(lambda s: s.list_items())]
        assert ids == [active.id]
        ids = [i.id for i in await store.read(lambda s: s.list_items(include_inactive=True))]
        assert ids == [active.id, inactive.id]


class TestHistory:
    async def test_history_newest_first(self, inventory, store: SQLiteLedgerStore):
        item = await inventory.create_item("Belt", 5, Decimal("3.00"))
        batch_id = item.batches[0].batch_id

        async def work(session):
            return await session.add_history(
                HistoryEntry(
                    item_id=item.id,
                    entry_type=HistoryType.USE,
                    quantity_delta=-1,
                    batch_id=batch_id,
                    unit_cost=Decimal("3.00"),
                )
            )

        entry = await store.run(work)
        assert entry.id is not None

        history = await store.read(lambda s: s.list_history(item.id))
        assert [h.entry_type for h in history] == [HistoryType.USE, HistoryType.PURCHASE]
        assert history[0].unit_cost == Decimal("3.00")

    async def test_history_requires_existing_batch(self, inventory, store: SQLiteLedgerStore):
        item = await inventory.create_item("Belt", 1, Decimal("3.00"))

        async def work(session):
            await session.add_history(
                HistoryEntry(
                    item_id=item.id,
                    entry_type=HistoryType.USE,
                    quantity_delta=-1,
                    batch_id="no-such-batch",
                    unit_cost=Decimal("3.00"),
                )
            )

        with pytest.raises(DatabaseError):
            await store.run(work)


class TestIdempotencyKeys:
    async def test_put_then_get(self, store: SQLiteLedgerStore):
        async def put(session):
            await session.put_idempotent("key-1", "consume", '{"ok": true}')

        await store.run(put)

        assert await store.read(lambda s: s.get_idempotent("key-1")) == (
            "consume",
            '{"ok": true}',
        )
        assert await store.read(lambda s: s.get_idempotent("key-2")) is None
