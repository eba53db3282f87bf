#!/usr/bin/env python3
"""
Stock ledger management CLI.

Usage:
    python manage.py migrate          Apply pending schema migrations
    python manage.py status           Show applied and pending migrations
    python manage.py verify           Run schema integrity checks
    python manage.py migrate-legacy   Convert batchless items to one batch each
    python manage.py serve            Start the API server
"""

import argparse
import asyncio
import subprocess
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent


def _db_path(args: argparse.Namespace) -> Path | None:
    return Path(args.db) if getattr(args, "db", None) else None


async def _migrate(db_path: Path | None) -> int:
    from stockledger.infrastructure.storage.sqlite.migrations import run_migrations

    results = await run_migrations(db_path)
    if not results:
        print("Database is up to date.")
        return 0
    for result in results:
        state = "ok" if result.success else f"FAILED: {result.error}"
        print(f"  {result.version} {result.name} ({result.execution_time_ms}ms) {state}")
    return 0 if all(r.success for r in results) else 1


async def _status(db_path: Path | None) -> int:
    from stockledger.infrastructure.storage.sqlite.migrations import get_migration_status

    status = await get_migration_status(db_path)
    if not status["exists"]:
        print("Database does not exist yet.")
    else:
        print(f"Current version: {status['current_version']}")
        print(f"Applied: {status['applied_migrations']}")
    print(f"Pending: {status['pending_migrations']}")
    return 0


async def _verify(db_path: Path | None) -> int:
    from stockledger.infrastructure.storage.sqlite.migrations import verify_schema_integrity

    checks = await verify_schema_integrity(db_path)
    for check in checks:
        print(f"  {check['check']:<22} {check['status']}")
    return 0 if all(c["status"] == "PASS" for c in checks) else 1


async def _migrate_legacy(db_path: Path | None) -> int:
    from stockledger.config import get_settings
    from stockledger.core.services import InventoryLedgerService
    from stockledger.infrastructure.storage.sqlite import ConnectionPool, SQLiteLedgerStore
    from stockledger.infrastructure.storage.sqlite.migrations import run_migrations

    await run_migrations(db_path)
    pool = ConnectionPool.from_settings(get_settings().storage, db_path=db_path, pool_size=1)
    await pool.initialize()
    try:
        service = InventoryLedgerService(SQLiteLedgerStore(pool=pool))
        migrated = await service.migrate_legacy_items()
    finally:
        await pool.close()
    print(f"Migrated {len(migrated)} legacy item(s).")
    return 0


def cmd_migrate(args: argparse.Namespace) -> int:
    """Apply pending migrations."""
    return asyncio.run(_migrate(_db_path(args)))


def cmd_status(args: argparse.Namespace) -> int:
    """Show migration status."""
    return asyncio.run(_status(_db_path(args)))


def cmd_verify(args: argparse.Namespace) -> int:
    """Run schema integrity checks."""
    return asyncio.run(_verify(_db_path(args)))


def cmd_migrate_legacy(args: argparse.Namespace) -> int:
    """Migrate every item that has no batch rows."""
    return asyncio.run(_migrate_legacy(_db_path(args)))


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the API under uvicorn."""
    uvicorn_cmd = [
        sys.executable, "-m", "uvicorn",
        "stockledger.api.main:app",
        "--host", args.host,
        "--port", str(args.port),
    ]
    if args.reload:
        uvicorn_cmd.append("--reload")

    print(f"Starting server on {args.host}:{args.port}...")
    try:
        return subprocess.call(uvicorn_cmd, cwd=str(ROOT_DIR))
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stock ledger management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    for name, func, help_text in (
        ("migrate", cmd_migrate, "Apply pending migrations"),
        ("status", cmd_status, "Show migration status"),
        ("verify", cmd_verify, "Run schema integrity checks"),
        ("migrate-legacy", cmd_migrate_legacy, "Migrate batchless items"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--db", help="Database file (default from settings)")
        p.set_defaults(func=func)

    p_serve = sub.add_parser("serve", help="Start the API server")
    p_serve.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    p_serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    p_serve.add_argument("--reload", action="store_true", help="Reload on code changes")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
