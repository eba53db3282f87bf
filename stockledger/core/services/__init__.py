"""
Core domain services.

Layer-pure: depend only on core entities, interfaces and exceptions.
"""

from stockledger.core.services.consumption_orchestrator import ConsumptionOrchestrator
from stockledger.core.services.inventory_ledger import InventoryLedgerService
from stockledger.core.services.payment_allocator import PaymentAllocatorService

__all__ = [
    "InventoryLedgerService",
    "ConsumptionOrchestrator",
    "PaymentAllocatorService",
]
