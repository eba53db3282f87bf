"""Repair job endpoints."""

from fastapi import APIRouter, Body, Depends, status

from stockledger.api.dependencies import (
    get_add_part_use_case,
    get_orchestrator,
    get_remove_part_use_case,
)
from stockledger.application.dto.requests import (
    AddJobPartRequest,
    CreateJobRequest,
    RemoveJobPartRequest,
    UpdateJobStatusRequest,
)
from stockledger.application.dto.responses import (
    AddJobPartResponse,
    ErrorResponse,
    RepairJobResponse,
    ReturnJobPartResponse,
)
from stockledger.application.use_cases import AddPartToJobUseCase, RemovePartFromJobUseCase
from stockledger.core.services import ConsumptionOrchestrator

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post(
    "",
    response_model=RepairJobResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def create_job(
    request: CreateJobRequest,
    orchestrator: ConsumptionOrchestrator = Depends(get_orchestrator),
) -> RepairJobResponse:
    """Open a repair job."""
    job = await orchestrator.create_job(
        request.title, customer_id=request.customer_id, description=request.description
    )
    return RepairJobResponse.model_validate(job)


@router.get(
    "/{job_id}",
    response_model=RepairJobResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_job(
    job_id: int,
    orchestrator: ConsumptionOrchestrator = Depends(get_orchestrator),
) -> RepairJobResponse:
    """Get a job with its part lines."""
    return RepairJobResponse.model_validate(await orchestrator.get_job(job_id))


@router.post(
    "/{job_id}/parts",
    response_model=AddJobPartResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def add_part(
    job_id: int,
    request: AddJobPartRequest,
    use_case: AddPartToJobUseCase = Depends(get_add_part_use_case),
) -> AddJobPartResponse:
    """Take stock onto a job. Stock is deducted now, not at completion."""
    result = await use_case.execute(job_id, request)
    return use_case.to_response(result)


@router.post(
    "/{job_id}/parts/{line_id}/return",
    response_model=ReturnJobPartResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def return_part(
    job_id: int,
    line_id: int,
    request: RemoveJobPartRequest | None = Body(default=None),
    use_case: RemovePartFromJobUseCase = Depends(get_remove_part_use_case),
) -> ReturnJobPartResponse:
    """Return a job line to stock at its recorded cost."""
    result = await use_case.execute(job_id, line_id, request)
    return use_case.to_response(result)


@router.patch(
    "/{job_id}/status",
    response_model=RepairJobResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_status(
    job_id: int,
    request: UpdateJobStatusRequest,
    orchestrator: ConsumptionOrchestrator = Depends(get_orchestrator),
) -> RepairJobResponse:
    """Move a job to a new status. Inventory is not touched."""
    job = await orchestrator.update_job_status(job_id, request.status)
    return RepairJobResponse.model_validate(job)
