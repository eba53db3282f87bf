"""
Ledger errors rendered as ErrorResponse bodies.

Domain errors keep their code and structured details (requested and
available quantities, batch ids, conflicting keys) so a client can
explain a refusal without parsing the message.
"""

import traceback
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from stockledger.application.dto.responses import ErrorResponse
from stockledger.config import get_logger
from stockledger.core.exceptions import (
    ConcurrentUpdateError,
    ConfigurationError,
    LedgerError,
    NotFoundError,
    OperationTimeoutError,
    StockError,
    StorageError,
    TransactionConflictError,
    ValidationError,
    WorkflowError,
)

logger = get_logger(__name__)


# Checked in order; first isinstance match wins
EXCEPTION_STATUS_MAP: dict[type[Exception], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StockError: status.HTTP_409_CONFLICT,
    WorkflowError: status.HTTP_409_CONFLICT,
    TransactionConflictError: status.HTTP_409_CONFLICT,
    ConcurrentUpdateError: status.HTTP_409_CONFLICT,
    OperationTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
    StorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

HINT_MAP: dict[str, str] = {
    "STOCK_ITEM_NOT_FOUND": "Check the item ID and try GET /api/stock-items to list items.",
    "CUSTOMER_NOT_FOUND": "Check the customer ID.",
    "INVOICE_NOT_FOUND": "Check the invoice ID and try GET /api/customers/{id}/invoices.",
    "REPAIR_JOB_NOT_FOUND": "Check the job ID.",
    "JOB_PART_NOT_FOUND": "Check the line ID against GET /api/jobs/{id}.",
    "PURCHASE_ORDER_NOT_FOUND": "Check the purchase order ID.",
    "INSUFFICIENT_STOCK": "Restock the item or request a smaller quantity.",
    "OLDEST_BATCH_TOO_SMALL": "Request at most the oldest batch's quantity, or retry with split=true.",
    "INVALID_AMOUNT": "Amounts and quantities must be positive.",
    "INVALID_JOB_STATE": "Parts can only change on open jobs; cancelled jobs cannot be reopened.",
    "PURCHASE_ORDER_STATE": "Only draft purchase orders can be committed or cancelled.",
    "IDEMPOTENCY_KEY_CONFLICT": "Use a fresh idempotency key for a different operation.",
    "CONCURRENT_UPDATE": "The record changed underneath this request. Retry it.",
    "TRANSACTION_CONFLICT": "Too many concurrent writers. Retry later.",
    "OPERATION_TIMEOUT": "The operation was rolled back. Retry it.",
    "VALIDATION_ERROR": "Compare the body with the endpoint request schema.",
    "DATABASE_ERROR": "The transaction was rolled back. See server logs.",
}

STATUS_HINTS: dict[int, str] = {
    400: "Fix the request and send it again.",
    404: "Nothing exists under that ID.",
    409: "The ledger state changed or forbids this. Reload and retry.",
    422: "The body does not match the endpoint schema.",
    500: "The ledger could not complete the operation. See server logs.",
    504: "Nothing was applied before the deadline. Retry with the same idempotency key.",
}

HTTP_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


def _hint_for(error_code: str, status_code: int) -> str:
    return HINT_MAP.get(error_code) or STATUS_HINTS.get(status_code, "")


def _status_for(exc: Exception) -> int:
    for exc_type, code in EXCEPTION_STATUS_MAP.items():
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(request: Request, exc: Exception) -> JSONResponse:
    """Convert an exception to a standardized JSON response."""
    status_code = _status_for(exc)
    if isinstance(exc, LedgerError):
        error_code = exc.code
        message = exc.message
        details = exc.details or None
    else:
        error_code = exc.__class__.__name__
        message = str(exc)
        details = None

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "request_error",
        request_id=getattr(request.state, "request_id", None),
        path=request.url.path,
        error_code=error_code,
        error=message,
        traceback=traceback.format_exc() if status_code >= 500 else None,
    )

    body = ErrorResponse(
        error_code=error_code,
        message=message,
        hint=_hint_for(error_code, status_code),
        details=details,
        path=request.url.path,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catches anything the exception handlers did not and renders it."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            return error_response(request, e)


def setup_exception_handlers(app: FastAPI) -> None:
    """Set up FastAPI exception handlers."""

    @app.exception_handler(LedgerError)
    async def ledger_exception_handler(request: Request, exc: LedgerError) -> JSONResponse:
        """Render domain errors with their code and details."""
        return error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        body = ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Invalid request",
            hint=_hint_for("VALIDATION_ERROR", 422),
            detail=problems,
            path=request.url.path,
        )
        return JSONResponse(status_code=422, content=body.model_dump(mode="json"))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Routing errors (unknown path, wrong method) in the same shape."""
        error_code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        body = ErrorResponse(
            error_code=error_code,
            message=str(exc.detail or error_code),
            hint=_hint_for(error_code, exc.status_code),
            path=request.url.path,
        )
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))
