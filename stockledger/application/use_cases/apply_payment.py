"""Apply Payment Use Case - oldest-first allocation over open invoices."""

from stockledger.application.dto.requests import ApplyPaymentRequest
from stockledger.application.dto.responses import PaymentResponse
from stockledger.config import get_logger
from stockledger.core.entities.operations import ApplyPaymentCommand, PaymentResult
from stockledger.core.services import PaymentAllocatorService

logger = get_logger(__name__)


class ApplyPaymentUseCase:
    """Apply a tendered payment to a customer's invoices."""

    def __init__(self, payment_service: PaymentAllocatorService | None = None):
        self._payment_service = payment_service

    async def _get_payment_service(self) -> PaymentAllocatorService:
        if self._payment_service is None:
            from stockledger.application.services import get_payment_allocator_service

            self._payment_service = await get_payment_allocator_service()
        return self._payment_service

    async def execute(self, customer_id: int, request: ApplyPaymentRequest) -> PaymentResult:
        """Execute apply payment use case."""
        # Rejects a non-positive total before any transaction starts
        command = ApplyPaymentCommand(
            customer_id=customer_id,
            cash=request.cash,
            check=request.check,
            card=request.card,
            notes=request.notes,
            idempotency_key=request.idempotency_key,
        )
        logger.info(
            "apply_payment_started",
            customer_id=customer_id,
            total=str(command.total),
        )
        service = await self._get_payment_service()
        return await service.apply_payment(command)

    def to_response(self, result: PaymentResult) -> PaymentResponse:
        """Convert result to API response."""
        return PaymentResponse.model_validate(result)
