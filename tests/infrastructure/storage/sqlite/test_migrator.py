"""Tests for the schema migrator."""

from pathlib import Path

import aiosqlite
import pytest

from stockledger.infrastructure.storage.sqlite.migrations import (
    get_migration_status,
    initialize_database,
    verify_schema_integrity,
)
from stockledger.infrastructure.storage.sqlite.migrations.migrator import (
    LEDGER_TABLES,
    MigrationInfo,
    discover_migrations,
)


class TestDiscovery:
    def test_discovers_versioned_files_in_order(self):
        migrations = discover_migrations()
        assert migrations
        assert migrations[0].version == "001"
        versions = [m.version for m in migrations]
        assert versions == sorted(versions)

    def test_rejects_bad_filename(self, tmp_path: Path):
        bad = tmp_path / "schema.sql"
        bad.write_text("SELECT 1;")
        with pytest.raises(ValueError):
            MigrationInfo.from_file(bad)

    def test_checksum_tracks_content(self, tmp_path: Path):
        path = tmp_path / "v009_extra.sql"
        path.write_text("SELECT 1;")
        first = MigrationInfo.from_file(path)
        path.write_text("SELECT 2;")
        second = MigrationInfo.from_file(path)
        assert first.name == "extra"
        assert first.checksum != second.checksum


class TestInitializeDatabase:
    async def test_applies_all_migrations(self, temp_db_path: Path):
        results = await initialize_database(temp_db_path, create_backup_before=False)
        assert results
        assert all(r.success for r in results)

        async with aiosqlite.connect(temp_db_path) as conn:
            cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            tables = {row[0] for row in await cursor.fetchall()}
        assert set(LEDGER_TABLES) <= tables

    async def test_second_run_is_noop(self, initialized_db: Path):
        assert await initialize_database(initialized_db, create_backup_before=False) == []

    async def test_status(self, initialized_db: Path):
        status = await get_migration_status(initialized_db)
        assert status["exists"] is True
        assert status["current_version"] == "001"
        assert status["pending_migrations"] == []

    async def test_status_of_missing_database(self, tmp_path: Path):
        status = await get_migration_status(tmp_path / "absent.db")
        assert status["exists"] is False
        assert status["pending_migrations"]

    async def test_integrity_checks_pass(self, initialized_db: Path):
        checks = await verify_schema_integrity(initialized_db)
        names = {c["check"] for c in checks}
        assert {"foreign_keys", "integrity", "required_tables", "append_only_history"} <= names
        assert all(c["status"] == "PASS" for c in checks)


class TestSchemaGuards:
    async def _seed(self, conn: aiosqlite.Connection) -> None:
        await conn.execute(
            "INSERT INTO stock_items (id, name, created_at, updated_at) "
            "VALUES (1, 'Bolt', '2024-01-01', '2024-01-01')"
        )
        await conn.execute(
            "INSERT INTO stock_batches (batch_id, item_id, sequence, quantity, "
            "cost_per_unit, acquired_at) VALUES ('B1', 1, 1, 5, '2.00', '2024-01-01')"
        )
        await conn.execute(
            "INSERT INTO stock_history (item_id, entry_type, quantity_delta, batch_id, "
            "unit_cost, created_at) VALUES (1, 'purchase', 5, 'B1', '2.00', '2024-01-01')"
        )
        await conn.commit()

    async def test_history_is_append_only(self, initialized_db: Path):
        async with aiosqlite.connect(initialized_db) as conn:
            await self._seed(conn)
            with pytest.raises(aiosqlite.Error, match="append-only"):
                await conn.execute("UPDATE stock_history SET quantity_delta = 1")
            with pytest.raises(aiosqlite.Error, match="append-only"):
                await conn.execute("DELETE FROM stock_history")

    async def test_batch_cost_is_immutable(self, initialized_db: Path):
        async with aiosqlite.connect(initialized_db) as conn:
            await self._seed(conn)
            with pytest.raises(aiosqlite.Error, match="immutable"):
                await conn.execute("UPDATE stock_batches SET cost_per_unit = '9.00'")
            with pytest.raises(aiosqlite.Error, match="retained"):
                await conn.execute("DELETE FROM stock_batches")

            await conn.execute("UPDATE stock_batches SET quantity = 2 WHERE batch_id = 'B1'")
            cursor = await conn.execute("SELECT quantity FROM stock_batches")
            assert (await cursor.fetchone())[0] == 2

    async def test_integrity_flags_total_drift(self, initialized_db: Path):
        async with aiosqlite.connect(initialized_db) as conn:
            # stored total stays 0 while the batch holds 5
            await self._seed(conn)

        checks = {c["check"]: c for c in await verify_schema_integrity(initialized_db)}
        assert checks["batch_totals"]["status"] == "FAIL"
        assert checks["batch_totals"]["items"] == [1]
        assert checks["append_only_history"]["status"] == "PASS"
