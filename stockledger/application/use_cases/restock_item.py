"""Restock Item Use Case - append a new batch."""

from stockledger.application.dto.requests import RestockRequest
from stockledger.application.dto.responses import RestockResponse
from stockledger.config import get_logger
from stockledger.core.entities.operations import RestockCommand, RestockResult
from stockledger.core.services import InventoryLedgerService

logger = get_logger(__name__)


class RestockItemUseCase:
    """Append an acquisition batch to an item."""

    def __init__(self, inventory_service: InventoryLedgerService | None = None):
        self._inventory_service = inventory_service

    async def _get_inventory_service(self) -> InventoryLedgerService:
        if self._inventory_service is None:
            from stockledger.application.services import get_inventory_ledger_service

            self._inventory_service = await get_inventory_ledger_service()
        return self._inventory_service

    async def execute(self, item_id: int, request: RestockRequest) -> RestockResult:
        """Execute restock use case."""
        logger.info(
            "restock_started",
            item_id=item_id,
            quantity=request.quantity,
            cost_per_unit=str(request.cost_per_unit),
        )

        command = RestockCommand(
            item_id=item_id,
            quantity=request.quantity,
            cost_per_unit=request.cost_per_unit,
            source=request.source,
            notes=request.notes,
            purchase_order_id=request.purchase_order_id,
            reference_number=request.reference_number,
            idempotency_key=request.idempotency_key,
        )
        service = await self._get_inventory_service()
        return await service.restock(command)

    def to_response(self, result: RestockResult) -> RestockResponse:
        """Convert result to API response."""
        return RestockResponse.model_validate(result)
