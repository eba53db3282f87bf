"""Tests for the SQLite connection pool."""

import asyncio
from pathlib import Path

import aiosqlite
import pytest

from stockledger.infrastructure.storage.sqlite import ConnectionPool


@pytest.fixture
async def raw_pool(tmp_path: Path):
    pool = ConnectionPool(tmp_path / "nested" / "pool.db", pool_size=2, busy_timeout=1000)
    await pool.initialize()
    async with pool.acquire() as conn:
        await conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, value TEXT)")
    yield pool
    await pool.close()


class TestConnectionPool:
    async def test_initialize_creates_parent_directory(self, raw_pool: ConnectionPool):
        assert raw_pool.db_path.parent.exists()
        assert raw_pool.available == 2

    async def test_acquire_returns_connection_to_pool(self, raw_pool: ConnectionPool):
        async with raw_pool.acquire():
            assert raw_pool.available == 1
        assert raw_pool.available == 2

    async def test_connection_pragmas(self, raw_pool: ConnectionPool):
        async with raw_pool.acquire() as conn:
            cursor = await conn.execute("PRAGMA foreign_keys")
            assert (await cursor.fetchone())[0] == 1
            cursor = await conn.execute("PRAGMA journal_mode")
            assert (await cursor.fetchone())[0].lower() == "wal"

    async def test_rows_support_key_access(self, raw_pool: ConnectionPool):
        async with raw_pool.acquire() as conn:
            cursor = await conn.execute("SELECT 7 AS answer")
            row = await cursor.fetchone()
        assert row["answer"] == 7

    async def test_transaction_commits(self, raw_pool: ConnectionPool):
        async with raw_pool.transaction(immediate=True) as conn:
            await conn.execute("INSERT INTO t (value) VALUES ('kept')")

        async with raw_pool.acquire() as conn:
            cursor = await conn.execute("SELECT value FROM t")
            rows = await cursor.fetchall()
        assert [r["value"] for r in rows] == ["kept"]

    async def test_transaction_rolls_back_on_error(self, raw_pool: ConnectionPool):
        with pytest.raises(RuntimeError):
            async with raw_pool.transaction() as conn:
                await conn.execute("INSERT INTO t (value) VALUES ('lost')")
                raise RuntimeError("boom")

        async with raw_pool.acquire() as conn:
            cursor = await conn.execute("SELECT COUNT(*) FROM t")
            assert (await cursor.fetchone())[0] == 0
        assert raw_pool.available == 2

    async def test_immediate_transaction_holds_write_lock(self, raw_pool: ConnectionPool):
        async with raw_pool.transaction(immediate=True):
            async with raw_pool.acquire() as other:
                await other.execute("PRAGMA busy_timeout=0")
                with pytest.raises(aiosqlite.OperationalError):
                    await other.execute("BEGIN IMMEDIATE")

    async def test_cancelled_begin_does_not_leak_write_lock(self, raw_pool: ConnectionPool):
        async with raw_pool.transaction(immediate=True) as conn:
            await conn.execute("INSERT INTO t (value) VALUES ('first')")
            with pytest.raises(TimeoutError):
                async with asyncio.timeout(0.1):
                    async with raw_pool.transaction(immediate=True):
                        pass
            # Held back until its pending BEGIN is rolled back
            assert raw_pool.available == 0

        for _ in range(50):
            if raw_pool.available == 2:
                break
            await asyncio.sleep(0.05)
        assert raw_pool.available == 2

        async with raw_pool.transaction(immediate=True) as conn:
            await conn.execute("INSERT INTO t (value) VALUES ('second')")

        async with raw_pool.acquire() as conn:
            cursor = await conn.execute("SELECT value FROM t ORDER BY id")
            assert [row[0] for row in await cursor.fetchall()] == ["first", "second"]

    async def test_close_and_reinitialize(self, raw_pool: ConnectionPool):
        await raw_pool.close()
        assert raw_pool.available == 0

        async with raw_pool.acquire() as conn:
            cursor = await conn.execute("SELECT COUNT(*) FROM t")
            assert (await cursor.fetchone())[0] == 0
