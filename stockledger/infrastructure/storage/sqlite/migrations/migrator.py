"""
Versioned schema migrations for the ledger database.

Migration files are named vNNN_name.sql and applied in version order.
Each applied version is recorded in schema_migrations with a checksum of
the file, so an edited migration is detected on the next run. An existing
database file is copied aside first and restored if any migration fails.
"""

import hashlib
import re
import shutil
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from stockledger.config import get_logger, get_settings

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent
MIGRATION_FILE = re.compile(r"^v(\d+)_(\w+)\.sql$")

LEDGER_TABLES = (
    "schema_migrations",
    "stock_items",
    "stock_batches",
    "stock_history",
    "repair_jobs",
    "job_parts",
    "purchase_orders",
    "purchase_order_lines",
    "customers",
    "invoices",
    "payments",
    "payment_tenders",
    "payment_allocations",
    "idempotency_keys",
)

# Triggers that keep history append-only and batch cost fixed
LEDGER_GUARDS = (
    "stock_history_no_update",
    "stock_history_no_delete",
    "stock_batches_cost_fixed",
    "stock_batches_no_delete",
)


@dataclass(frozen=True)
class MigrationInfo:
    """One migration file on disk."""

    version: str
    name: str
    path: Path
    checksum: str

    @classmethod
    def from_file(cls, path: Path) -> "MigrationInfo":
        match = MIGRATION_FILE.match(path.name)
        if match is None:
            raise ValueError(f"Invalid migration filename: {path.name}")
        checksum = hashlib.sha256(path.read_bytes()).hexdigest()[:16]
        return cls(version=match.group(1), name=match.group(2), path=path, checksum=checksum)


@dataclass
class MigrationResult:
    version: str
    name: str
    success: bool
    execution_time_ms: int
    error: str | None = None


def _resolve_db_path(db_path: Path | None) -> Path:
    return Path(db_path) if db_path is not None else get_settings().storage.db_path


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def discover_migrations(directory: Path = MIGRATIONS_DIR) -> list[MigrationInfo]:
    """Migration files in `directory`, lowest version first."""
    migrations = []
    for path in directory.glob("v*.sql"):
        try:
            migrations.append(MigrationInfo.from_file(path))
        except ValueError as e:
            logger.warning("skipping_invalid_migration", path=str(path), error=str(e))
    return sorted(migrations, key=lambda m: int(m.version))


async def get_applied_migrations(conn: aiosqlite.Connection) -> dict[str, str]:
    """Applied version -> checksum; empty before the first migration."""
    try:
        cursor = await conn.execute("SELECT version, checksum FROM schema_migrations")
    except aiosqlite.OperationalError:
        return {}
    return {version: checksum for version, checksum in await cursor.fetchall()}


async def apply_migration(conn: aiosqlite.Connection, migration: MigrationInfo) -> MigrationResult:
    """Run one migration script and record it. Failures are returned, not raised."""
    logger.info("applying_migration", version=migration.version, name=migration.name)
    start = time.perf_counter()

    try:
        await conn.executescript(migration.path.read_text(encoding="utf-8"))
        await conn.execute(
            """
            INSERT OR REPLACE INTO schema_migrations (version, name, checksum, execution_time_ms)
            VALUES (?, ?, ?, ?)
            """,
            (migration.version, migration.name, migration.checksum, _elapsed_ms(start)),
        )
        await conn.commit()
    except aiosqlite.Error as e:
        await conn.rollback()
        logger.error("migration_failed", version=migration.version, error=str(e))
        return MigrationResult(
            migration.version, migration.name, False, _elapsed_ms(start), str(e)
        )

    elapsed = _elapsed_ms(start)
    logger.info("migration_applied", version=migration.version, execution_time_ms=elapsed)
    return MigrationResult(migration.version, migration.name, True, elapsed)


async def _foreign_key_violations(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("PRAGMA foreign_key_check")
    return len(await cursor.fetchall())


@contextmanager
def _backup(db_path: Path, enabled: bool) -> Iterator[list[MigrationResult]]:
    """
    Copy the database aside for the duration of a migration run.

    The caller appends its results to the yielded list; the copy is put
    back if any result failed or the block raised, and deleted otherwise.
    """
    results: list[MigrationResult] = []
    if not (enabled and db_path.exists()):
        yield results
        return

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    backup_path = db_path.with_suffix(f".backup_{stamp}.db")
    shutil.copy2(db_path, backup_path)
    logger.info("database_backup_created", backup_path=str(backup_path))
    try:
        yield results
    except BaseException:
        shutil.copy2(backup_path, db_path)
        logger.warning("database_restored_from_backup", backup_path=str(backup_path))
        raise
    if any(not r.success for r in results):
        shutil.copy2(backup_path, db_path)
        logger.warning("database_restored_from_backup", backup_path=str(backup_path))
    else:
        backup_path.unlink()


async def initialize_database(
    db_path: Path | None = None,
    create_backup_before: bool = True,
) -> list[MigrationResult]:
    """
    Apply every pending migration, stopping at the first failure.

    Returns:
        Results for the migrations attempted; empty when already current
    """
    db_path = _resolve_db_path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("initializing_database", db_path=str(db_path))

    with _backup(db_path, create_backup_before) as results:
        async with aiosqlite.connect(db_path) as conn:
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA foreign_keys=ON")
            applied = await get_applied_migrations(conn)

            for migration in discover_migrations():
                if migration.version in applied:
                    if applied[migration.version] != migration.checksum:
                        logger.warning("migration_checksum_changed", version=migration.version)
                    continue

                result = await apply_migration(conn, migration)
                results.append(result)
                if not result.success:
                    break

                violations = await _foreign_key_violations(conn)
                if violations:
                    result.success = False
                    result.error = f"{violations} foreign key violation(s) after migration"
                    logger.error("post_migration_validation_failed", version=migration.version)
                    break

    return results


# Used by the CLI and the app lifespan
run_migrations = initialize_database


async def get_migration_status(db_path: Path | None = None) -> dict:
    """Applied and pending versions for a database file."""
    db_path = _resolve_db_path(db_path)
    discovered = discover_migrations()

    if not db_path.exists():
        return {
            "exists": False,
            "current_version": None,
            "applied_migrations": [],
            "pending_migrations": [m.version for m in discovered],
            "total_migrations": len(discovered),
        }

    async with aiosqlite.connect(db_path) as conn:
        applied = await get_applied_migrations(conn)

    return {
        "exists": True,
        "current_version": max(applied, key=int) if applied else None,
        "applied_migrations": sorted(applied, key=int),
        "pending_migrations": [m.version for m in discovered if m.version not in applied],
        "total_migrations": len(discovered),
    }


def _check(name: str, passed: bool, **info) -> dict:
    return {"check": name, "status": "PASS" if passed else "FAIL", **info}


async def verify_schema_integrity(db_path: Path | None = None) -> list[dict]:
    """
    Check the database file and the ledger's stored invariants.

    `batch_totals` compares each item's stored total with the sum of its
    batch quantities; items not yet migrated to batches are skipped.
    """
    db_path = _resolve_db_path(db_path)

    async with aiosqlite.connect(db_path) as conn:
        violations = await _foreign_key_violations(conn)

        cursor = await conn.execute("PRAGMA integrity_check")
        (integrity,) = await cursor.fetchone()

        cursor = await conn.execute("SELECT type, name FROM sqlite_master")
        objects = await cursor.fetchall()
        tables = {name for kind, name in objects if kind == "table"}
        triggers = {name for kind, name in objects if kind == "trigger"}

        drifted: list[int] = []
        if "stock_batches" in tables:
            cursor = await conn.execute(
                """
                SELECT i.id FROM stock_items i
                JOIN stock_batches b ON b.item_id = i.id
                GROUP BY i.id
                HAVING i.total_quantity != SUM(b.quantity)
                """
            )
            drifted = [row[0] for row in await cursor.fetchall()]

    return [
        _check("foreign_keys", violations == 0, violations=violations),
        _check("integrity", integrity == "ok", result=integrity),
        _check("required_tables", tables.issuperset(LEDGER_TABLES),
               missing=[t for t in LEDGER_TABLES if t not in tables]),
        _check("append_only_history", triggers.issuperset(LEDGER_GUARDS),
               missing=[t for t in LEDGER_GUARDS if t not in triggers]),
        _check("batch_totals", not drifted, items=drifted),
    ]
