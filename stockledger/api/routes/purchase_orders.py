"""Purchase order endpoints."""

from fastapi import APIRouter, Depends, status

from stockledger.api.dependencies import (
    get_commit_purchase_order_use_case,
    get_orchestrator,
)
from stockledger.application.dto.requests import CreatePurchaseOrderRequest
from stockledger.application.dto.responses import (
    CommitPurchaseOrderResponse,
    ErrorResponse,
    PurchaseOrderResponse,
)
from stockledger.application.use_cases import CommitPurchaseOrderUseCase
from stockledger.core.entities.purchase_order import PurchaseOrderLine
from stockledger.core.services import ConsumptionOrchestrator

router = APIRouter(prefix="/api/purchase-orders", tags=["purchase-orders"])


@router.post(
    "",
    response_model=PurchaseOrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_purchase_order(
    request: CreatePurchaseOrderRequest,
    orchestrator: ConsumptionOrchestrator = Depends(get_orchestrator),
) -> PurchaseOrderResponse:
    """Create a draft order."""
    lines = [
        PurchaseOrderLine(
            item_id=line.item_id,
            quantity=line.quantity,
            cost_per_unit=line.cost_per_unit,
        )
        for line in request.lines
    ]
    order = await orchestrator.create_purchase_order(
        lines,
        supplier=request.supplier,
        reference_number=request.reference_number,
        notes=request.notes,
    )
    return PurchaseOrderResponse.model_validate(order)


@router.get(
    "/{order_id}",
    response_model=PurchaseOrderResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_purchase_order(
    order_id: int,
    orchestrator: ConsumptionOrchestrator = Depends(get_orchestrator),
) -> PurchaseOrderResponse:
    return PurchaseOrderResponse.model_validate(
        await orchestrator.get_purchase_order(order_id)
    )


@router.post(
    "/{order_id}/commit",
    response_model=CommitPurchaseOrderResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def commit_purchase_order(
    order_id: int,
    use_case: CommitPurchaseOrderUseCase = Depends(get_commit_purchase_order_use_case),
) -> CommitPurchaseOrderResponse:
    """Restock every line as one batch each, all-or-nothing."""
    result = await use_case.execute(order_id)
    return use_case.to_response(result)


@router.post(
    "/{order_id}/cancel",
    response_model=PurchaseOrderResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_purchase_order(
    order_id: int,
    orchestrator: ConsumptionOrchestrator = Depends(get_orchestrator),
) -> PurchaseOrderResponse:
    """Cancel a draft order."""
    order = await orchestrator.cancel_purchase_order(order_id)
    return PurchaseOrderResponse.model_validate(order)
