"""
Dependency injection container for FastAPI.

Provides service and use case instances to route handlers.
"""

from stockledger.application.services import (
    get_consumption_orchestrator,
    get_inventory_ledger_service,
    get_payment_allocator_service,
)
from stockledger.application.use_cases import (
    AddPartToJobUseCase,
    ApplyPaymentUseCase,
    CommitPurchaseOrderUseCase,
    ConsumeStockUseCase,
    RemovePartFromJobUseCase,
    RestockItemUseCase,
)
from stockledger.core.services import (
    ConsumptionOrchestrator,
    InventoryLedgerService,
    PaymentAllocatorService,
)


# Service dependencies
async def get_inventory() -> InventoryLedgerService:
    """Get inventory ledger service."""
    return await get_inventory_ledger_service()


async def get_orchestrator() -> ConsumptionOrchestrator:
    """Get job and purchase order orchestrator."""
    return await get_consumption_orchestrator()


async def get_payments() -> PaymentAllocatorService:
    """Get payment allocator service."""
    return await get_payment_allocator_service()


# Use case dependencies
def get_consume_stock_use_case() -> ConsumeStockUseCase:
    return ConsumeStockUseCase()


def get_restock_item_use_case() -> RestockItemUseCase:
    return RestockItemUseCase()


def get_add_part_use_case() -> AddPartToJobUseCase:
    return AddPartToJobUseCase()


def get_remove_part_use_case() -> RemovePartFromJobUseCase:
    return RemovePartFromJobUseCase()


def get_commit_purchase_order_use_case() -> CommitPurchaseOrderUseCase:
    return CommitPurchaseOrderUseCase()


def get_apply_payment_use_case() -> ApplyPaymentUseCase:
    return ApplyPaymentUseCase()
