"""
Application layer - Use cases, DTOs, and service factories.

This layer orchestrates business logic by:
1. Defining request/response DTOs for API contracts
2. Implementing use cases that coordinate core services
3. Providing factory functions for dependency injection
"""

from stockledger.application.services import (
    get_consumption_orchestrator,
    get_inventory_ledger_service,
    get_payment_allocator_service,
    reset_services,
)

__all__ = [
    "get_inventory_ledger_service",
    "get_consumption_orchestrator",
    "get_payment_allocator_service",
    "reset_services",
]
