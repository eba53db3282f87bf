"""Stock item and batch ledger endpoints."""

from fastapi import APIRouter, Depends, Query, status

from stockledger.api.dependencies import (
    get_consume_stock_use_case,
    get_inventory,
    get_restock_item_use_case,
)
from stockledger.application.dto.requests import (
    ConsumeRequest,
    CreateStockItemRequest,
    RestockRequest,
)
from stockledger.application.dto.responses import (
    ConsumeResponse,
    ErrorResponse,
    HistoryEntryResponse,
    InventorySummaryResponse,
    RestockResponse,
    StockItemListResponse,
    StockItemResponse,
)
from stockledger.application.use_cases import ConsumeStockUseCase, RestockItemUseCase
from stockledger.core.entities.stock import StockKind
from stockledger.core.services import InventoryLedgerService

router = APIRouter(prefix="/api/stock-items", tags=["inventory"])


@router.post(
    "",
    response_model=StockItemResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_stock_item(
    request: CreateStockItemRequest,
    service: InventoryLedgerService = Depends(get_inventory),
) -> StockItemResponse:
    """Create an item with its initial batch."""
    item = await service.create_item(
        request.name,
        request.initial_quantity,
        request.initial_cost,
        kind=request.kind,
        sku=request.sku,
        min_quantity=request.min_quantity,
        price=request.price,
        location=request.location,
        notes=request.notes,
        source=request.source,
    )
    return StockItemResponse.model_validate(item)


@router.get("", response_model=StockItemListResponse)
async def list_stock_items(
    kind: StockKind | None = None,
    include_inactive: bool = False,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    service: InventoryLedgerService = Depends(get_inventory),
) -> StockItemListResponse:
    """List stock items."""
    items = await service.list_items(kind, include_inactive, limit, offset)
    return StockItemListResponse(
        items=[StockItemResponse.model_validate(item) for item in items],
        total=len(items),
    )


@router.get("/low-stock", response_model=StockItemListResponse)
async def list_low_stock(
    limit: int = Query(default=100, ge=1, le=1000),
    service: InventoryLedgerService = Depends(get_inventory),
) -> StockItemListResponse:
    """Items at or below their reorder threshold."""
    items = await service.list_low_stock(limit)
    return StockItemListResponse(
        items=[StockItemResponse.model_validate(item) for item in items],
        total=len(items),
    )


@router.get("/summary", response_model=InventorySummaryResponse)
async def inventory_summary(
    service: InventoryLedgerService = Depends(get_inventory),
) -> InventorySummaryResponse:
    """Counts and valuation over active items."""
    return InventorySummaryResponse.model_validate(await service.summary())


@router.get(
    "/{item_id}",
    response_model=StockItemResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_stock_item(
    item_id: int,
    service: InventoryLedgerService = Depends(get_inventory),
) -> StockItemResponse:
    """Get an item with its batches."""
    return StockItemResponse.model_validate(await service.get_item(item_id))


@router.post(
    "/{item_id}/restock",
    response_model=RestockResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def restock_item(
    item_id: int,
    request: RestockRequest,
    use_case: RestockItemUseCase = Depends(get_restock_item_use_case),
) -> RestockResponse:
    """Append an acquisition batch."""
    result = await use_case.execute(item_id, request)
    return use_case.to_response(result)


@router.post(
    "/{item_id}/consume",
    response_model=ConsumeResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def consume_stock(
    item_id: int,
    request: ConsumeRequest,
    use_case: ConsumeStockUseCase = Depends(get_consume_stock_use_case),
) -> ConsumeResponse:
    """Consume stock from the oldest batch."""
    result = await use_case.execute(item_id, request)
    return use_case.to_response(result)


@router.get(
    "/{item_id}/history",
    response_model=list[HistoryEntryResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_history(
    item_id: int,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    service: InventoryLedgerService = Depends(get_inventory),
) -> list[HistoryEntryResponse]:
    """Ledger history of an item, newest first."""
    entries = await service.get_history(item_id, limit, offset)
    return [HistoryEntryResponse.model_validate(e) for e in entries]
