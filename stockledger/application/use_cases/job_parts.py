"""
Job part use cases.

Adding a part deducts stock immediately; removing it restocks at the
cost recorded on the job line.
"""

from stockledger.application.dto.requests import AddJobPartRequest, RemoveJobPartRequest
from stockledger.application.dto.responses import AddJobPartResponse, ReturnJobPartResponse
from stockledger.config import get_logger
from stockledger.core.entities.operations import AddPartResult, ReturnPartResult
from stockledger.core.services import ConsumptionOrchestrator

logger = get_logger(__name__)


class _JobPartsUseCase:
    def __init__(self, orchestrator: ConsumptionOrchestrator | None = None):
        self._orchestrator = orchestrator

    async def _get_orchestrator(self) -> ConsumptionOrchestrator:
        if self._orchestrator is None:
            from stockledger.application.services import get_consumption_orchestrator

            self._orchestrator = await get_consumption_orchestrator()
        return self._orchestrator


class AddPartToJobUseCase(_JobPartsUseCase):
    """Take stock onto a repair job; fails without side effects."""

    async def execute(self, job_id: int, request: AddJobPartRequest) -> AddPartResult:
        """Execute add part use case."""
        logger.info(
            "add_job_part_started",
            job_id=job_id,
            item_id=request.item_id,
            quantity=request.quantity,
        )
        orchestrator = await self._get_orchestrator()
        return await orchestrator.add_part_to_job(
            job_id,
            request.item_id,
            request.quantity,
            unit_price=request.unit_price,
            split=request.split,
            idempotency_key=request.idempotency_key,
        )

    def to_response(self, result: AddPartResult) -> AddJobPartResponse:
        """Convert result to API response."""
        return AddJobPartResponse.model_validate(result)


class RemovePartFromJobUseCase(_JobPartsUseCase):
    """Return a job line to stock at its recorded cost."""

    async def execute(
        self,
        job_id: int,
        line_id: int,
        request: RemoveJobPartRequest | None = None,
    ) -> ReturnPartResult:
        """Execute remove part use case."""
        quantity = request.quantity if request else None
        logger.info(
            "remove_job_part_started",
            job_id=job_id,
            line_id=line_id,
            quantity=quantity,
        )
        orchestrator = await self._get_orchestrator()
        return await orchestrator.remove_part_from_job(job_id, line_id, quantity)

    def to_response(self, result: ReturnPartResult) -> ReturnJobPartResponse:
        """Convert result to API response."""
        return ReturnJobPartResponse.model_validate(result)
