"""Customer, invoice and payment endpoints."""

from fastapi import APIRouter, Depends, status

from stockledger.api.dependencies import get_apply_payment_use_case, get_payments
from stockledger.application.dto.requests import (
    ApplyPaymentRequest,
    CreateCustomerRequest,
    IssueInvoiceRequest,
)
from stockledger.application.dto.responses import (
    CustomerResponse,
    ErrorResponse,
    InvoiceResponse,
    PaymentRecordResponse,
    PaymentResponse,
)
from stockledger.application.use_cases import ApplyPaymentUseCase
from stockledger.core.services import PaymentAllocatorService

router = APIRouter(prefix="/api/customers", tags=["customers"])


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    request: CreateCustomerRequest,
    service: PaymentAllocatorService = Depends(get_payments),
) -> CustomerResponse:
    customer = await service.create_customer(request.name, request.phone, request.email)
    return CustomerResponse.model_validate(customer)


@router.get(
    "/{customer_id}",
    response_model=CustomerResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_customer(
    customer_id: int,
    service: PaymentAllocatorService = Depends(get_payments),
) -> CustomerResponse:
    return CustomerResponse.model_validate(await service.get_customer(customer_id))


@router.post(
    "/{customer_id}/invoices",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def issue_invoice(
    customer_id: int,
    request: IssueInvoiceRequest,
    service: PaymentAllocatorService = Depends(get_payments),
) -> InvoiceResponse:
    """Issue an invoice; the customer's debt grows by its total."""
    invoice = await service.issue_invoice(
        customer_id,
        request.invoice_number,
        request.total,
        issue_date=request.issue_date,
        job_id=request.job_id,
        notes=request.notes,
    )
    return InvoiceResponse.model_validate(invoice)


@router.get(
    "/{customer_id}/invoices",
    response_model=list[InvoiceResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_outstanding_invoices(
    customer_id: int,
    service: PaymentAllocatorService = Depends(get_payments),
) -> list[InvoiceResponse]:
    """Unpaid and partially paid invoices, oldest first."""
    invoices = await service.list_outstanding_invoices(customer_id)
    return [InvoiceResponse.model_validate(i) for i in invoices]


@router.post(
    "/{customer_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def apply_payment(
    customer_id: int,
    request: ApplyPaymentRequest,
    use_case: ApplyPaymentUseCase = Depends(get_apply_payment_use_case),
) -> PaymentResponse:
    """Apply a payment to outstanding invoices, oldest first."""
    result = await use_case.execute(customer_id, request)
    return use_case.to_response(result)


@router.get(
    "/{customer_id}/payments",
    response_model=list[PaymentRecordResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_payments(
    customer_id: int,
    service: PaymentAllocatorService = Depends(get_payments),
) -> list[PaymentRecordResponse]:
    payments = await service.list_payments(customer_id)
    return [PaymentRecordResponse.model_validate(p) for p in payments]
