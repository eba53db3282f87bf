"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from stockledger.config.settings import LedgerSettings
from stockledger.core.services import (
    ConsumptionOrchestrator,
    InventoryLedgerService,
    PaymentAllocatorService,
)
from stockledger.infrastructure.storage.sqlite import ConnectionPool, SQLiteLedgerStore
from stockledger.infrastructure.storage.sqlite.migrations import initialize_database


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "ledger.db"


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    """Fast retries so conflict tests finish quickly."""
    return LedgerSettings(
        max_transaction_attempts=5,
        retry_delay=0.001,
        retry_multiplier=2.0,
        split_consumption_default=False,
        idempotency_enabled=True,
    )


@pytest.fixture
async def initialized_db(temp_db_path: Path) -> Path:
    """Temporary database with every migration applied."""
    await initialize_database(temp_db_path, create_backup_before=False)
    return temp_db_path


@pytest.fixture
async def pool(initialized_db: Path) -> AsyncGenerator[ConnectionPool, None]:
    pool = ConnectionPool(initialized_db, pool_size=3, busy_timeout=5000)
    await pool.initialize()
    yield pool
    await pool.close()


@pytest.fixture
def store(pool: ConnectionPool, ledger_settings: LedgerSettings) -> SQLiteLedgerStore:
    return SQLiteLedgerStore(pool=pool, settings=ledger_settings)


@pytest.fixture
def inventory(store, ledger_settings) -> InventoryLedgerService:
    return InventoryLedgerService(store, ledger_settings)


@pytest.fixture
def orchestrator(store, inventory, ledger_settings) -> ConsumptionOrchestrator:
    return ConsumptionOrchestrator(store, inventory=inventory, settings=ledger_settings)


@pytest.fixture
def payments(store, ledger_settings) -> PaymentAllocatorService:
    return PaymentAllocatorService(store, ledger_settings)


@pytest.fixture
async def api_client(inventory, orchestrator, payments) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose services run against the temporary database."""
    from stockledger.api import dependencies as deps
    from stockledger.api.main import app
    from stockledger.application.use_cases import (
        AddPartToJobUseCase,
        ApplyPaymentUseCase,
        CommitPurchaseOrderUseCase,
        ConsumeStockUseCase,
        RemovePartFromJobUseCase,
        RestockItemUseCase,
    )

    overrides = {
        deps.get_inventory: lambda: inventory,
        deps.get_orchestrator: lambda: orchestrator,
        deps.get_payments: lambda: payments,
        deps.get_consume_stock_use_case: lambda: ConsumeStockUseCase(inventory),
        deps.get_restock_item_use_case: lambda: RestockItemUseCase(inventory),
        deps.get_add_part_use_case: lambda: AddPartToJobUseCase(orchestrator),
        deps.get_remove_part_use_case: lambda: RemovePartFromJobUseCase(orchestrator),
        deps.get_commit_purchase_order_use_case: lambda: CommitPurchaseOrderUseCase(orchestrator),
        deps.get_apply_payment_use_case: lambda: ApplyPaymentUseCase(payments),
    }
    app.dependency_overrides.update(overrides)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    for dependency in overrides:
        app.dependency_overrides.pop(dependency, None)
