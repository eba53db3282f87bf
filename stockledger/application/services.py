"""
Service factory functions for dependency injection.

This module provides factory functions that wire infrastructure
implementations to core services. Use cases should import from here.

Clean Architecture: Application layer orchestrates DI, not core layer.
"""

from typing import TYPE_CHECKING

from stockledger.core.services import (
    ConsumptionOrchestrator,
    InventoryLedgerService,
    PaymentAllocatorService,
)

if TYPE_CHECKING:
    from stockledger.core.interfaces import ILedgerStore


# Singleton service instances
_inventory_ledger_service: InventoryLedgerService | None = None
_consumption_orchestrator: ConsumptionOrchestrator | None = None
_payment_allocator_service: PaymentAllocatorService | None = None


async def get_ledger_store() -> "ILedgerStore":
    """Get the configured ledger store (SQLite)."""
    # Lazy import infrastructure to avoid circular imports
    from stockledger.infrastructure.storage.sqlite import get_ledger_store as get_sqlite_store

    return await get_sqlite_store()


async def get_inventory_ledger_service(
    store: "ILedgerStore | None" = None,
) -> InventoryLedgerService:
    """
    Get or create InventoryLedgerService instance.

    Args:
        store: Optional ledger store override (not cached)

    Returns:
        Configured InventoryLedgerService
    """
    global _inventory_ledger_service

    if store is not None:
        return InventoryLedgerService(store)

    if _inventory_ledger_service is None:
        _inventory_ledger_service = InventoryLedgerService(await get_ledger_store())
    return _inventory_ledger_service


async def get_consumption_orchestrator(
    store: "ILedgerStore | None" = None,
) -> ConsumptionOrchestrator:
    """
    Get or create ConsumptionOrchestrator instance.

    Shares the inventory service singleton when no store override is given.
    """
    global _consumption_orchestrator

    if store is not None:
        return ConsumptionOrchestrator(store)

    if _consumption_orchestrator is None:
        inventory = await get_inventory_ledger_service()
        _consumption_orchestrator = ConsumptionOrchestrator(
            await get_ledger_store(), inventory=inventory
        )
    return _consumption_orchestrator


async def get_payment_allocator_service(
    store: "ILedgerStore | None" = None,
) -> PaymentAllocatorService:
    """Get or create PaymentAllocatorService instance."""
    global _payment_allocator_service

    if store is not None:
        return PaymentAllocatorService(store)

    if _payment_allocator_service is None:
        _payment_allocator_service = PaymentAllocatorService(await get_ledger_store())
    return _payment_allocator_service


def reset_services() -> None:
    """Reset all service singletons (for testing)."""
    global _inventory_ledger_service, _consumption_orchestrator, _payment_allocator_service
    _inventory_ledger_service = None
    _consumption_orchestrator = None
    _payment_allocator_service = None
