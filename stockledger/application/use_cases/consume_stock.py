"""Consume Stock Use Case - FIFO draw from the oldest batch."""

from stockledger.application.dto.requests import ConsumeRequest
from stockledger.application.dto.responses import ConsumeResponse
from stockledger.config import get_logger
from stockledger.core.entities.operations import ConsumeCommand, ConsumeResult
from stockledger.core.services import InventoryLedgerService

logger = get_logger(__name__)


class ConsumeStockUseCase:
    """Consume stock from an item, oldest batch first."""

    def __init__(self, inventory_service: InventoryLedgerService | None = None):
        self._inventory_service = inventory_service

    async def _get_inventory_service(self) -> InventoryLedgerService:
        if self._inventory_service is None:
            from stockledger.application.services import get_inventory_ledger_service

            self._inventory_service = await get_inventory_ledger_service()
        return self._inventory_service

    async def execute(self, item_id: int, request: ConsumeRequest) -> ConsumeResult:
        """Execute consume stock use case."""
        logger.info(
            "consume_stock_started",
            item_id=item_id,
            quantity=request.quantity,
            job_id=request.job_id,
        )

        command = ConsumeCommand(
            item_id=item_id,
            quantity=request.quantity,
            job_id=request.job_id,
            notes=request.notes,
            split=request.split,
            idempotency_key=request.idempotency_key,
        )
        service = await self._get_inventory_service()
        return await service.consume(command)

    def to_response(self, result: ConsumeResult) -> ConsumeResponse:
        """Convert result to API response."""
        return ConsumeResponse.model_validate(result)
