"""Commit Purchase Order Use Case - all-or-nothing restock of every line."""

from stockledger.application.dto.responses import CommitPurchaseOrderResponse
from stockledger.config import get_logger
from stockledger.core.entities.operations import PurchaseOrderCommitResult
from stockledger.core.services import ConsumptionOrchestrator

logger = get_logger(__name__)


class CommitPurchaseOrderUseCase:
    """Commit a draft purchase order."""

    def __init__(self, orchestrator: ConsumptionOrchestrator | None = None):
        self._orchestrator = orchestrator

    async def _get_orchestrator(self) -> ConsumptionOrchestrator:
        if self._orchestrator is None:
            from stockledger.application.services import get_consumption_orchestrator

            self._orchestrator = await get_consumption_orchestrator()
        return self._orchestrator

    async def execute(self, order_id: int) -> PurchaseOrderCommitResult:
        """Execute commit use case."""
        logger.info("commit_purchase_order_started", order_id=order_id)
        orchestrator = await self._get_orchestrator()
        return await orchestrator.commit_purchase_order(order_id)

    def to_response(self, result: PurchaseOrderCommitResult) -> CommitPurchaseOrderResponse:
        """Convert result to API response."""
        return CommitPurchaseOrderResponse.model_validate(result)
