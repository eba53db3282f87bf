"""Unit tests for the job part and purchase order use cases."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from stockledger.application.dto.requests import AddJobPartRequest, RemoveJobPartRequest
from stockledger.application.use_cases import (
    AddPartToJobUseCase,
    CommitPurchaseOrderUseCase,
    RemovePartFromJobUseCase,
)
from stockledger.core.entities.job import JobPart
from stockledger.core.entities.operations import (
    AddPartResult,
    BatchDraw,
    CommittedLine,
    ConsumeResult,
    PurchaseOrderCommitResult,
    RestockResult,
    ReturnPartResult,
)
from stockledger.core.entities.purchase_order import PurchaseOrderStatus
from stockledger.core.exceptions import InvalidJobStateError


@pytest.fixture
def add_result() -> AddPartResult:
    return AddPartResult(
        job_id=7,
        lines=[
            JobPart(
                id=1,
                job_id=7,
                item_id=2,
                item_name="Belt",
                batch_id="B-1",
                quantity=2,
                unit_cost=Decimal("4"),
                unit_price=Decimal("9"),
            )
        ],
        consumption=ConsumeResult(
            item_id=2,
            quantity=2,
            draws=[BatchDraw(batch_id="B-1", quantity=2, cost_per_unit=Decimal("4"))],
            remaining_total=1,
            average_cost=Decimal("4"),
        ),
    )


@pytest.fixture
def return_result() -> ReturnPartResult:
    return ReturnPartResult(
        job_id=7,
        line_id=1,
        quantity=1,
        line_removed=False,
        restock=RestockResult(
            item_id=2,
            batch_id="B-9",
            quantity=1,
            cost_per_unit=Decimal("4"),
            total_quantity=2,
            average_cost=Decimal("4"),
        ),
    )


@pytest.fixture
def mock_orchestrator(add_result, return_result):
    mock = MagicMock()
    mock.add_part_to_job = AsyncMock(return_value=add_result)
    mock.remove_part_from_job = AsyncMock(return_value=return_result)
    mock.commit_purchase_order = AsyncMock(
        return_value=PurchaseOrderCommitResult(
            order_id=3,
            status=PurchaseOrderStatus.COMMITTED,
            lines=[
                CommittedLine(
                    line_id=1, item_id=2, quantity=4, cost_per_unit=Decimal("3"), batch_id="B-5"
                )
            ],
        )
    )
    return mock


class TestAddPartToJobUseCase:
    async def test_passes_request_through(self, mock_orchestrator, add_result):
        use_case = AddPartToJobUseCase(orchestrator=mock_orchestrator)

        result = await use_case.execute(
            7, AddJobPartRequest(item_id=2, quantity=2, unit_price=Decimal("9"))
        )

        assert result is add_result
        mock_orchestrator.add_part_to_job.assert_awaited_once_with(
            7, 2, 2, unit_price=Decimal("9"), split=None, idempotency_key=None
        )

    async def test_closed_job_error_propagates(self, mock_orchestrator):
        mock_orchestrator.add_part_to_job.side_effect = InvalidJobStateError(
            7, "Completed", "add parts"
        )
        use_case = AddPartToJobUseCase(orchestrator=mock_orchestrator)

        with pytest.raises(InvalidJobStateError):
            await use_case.execute(7, AddJobPartRequest(item_id=2, quantity=1))

    def test_to_response_includes_line_totals(self, add_result):
        response = AddPartToJobUseCase().to_response(add_result)

        assert response.lines[0].total_cost == Decimal("8")
        assert response.lines[0].total_price == Decimal("18")
        assert response.consumption.cost_per_unit == Decimal("4")


class TestRemovePartFromJobUseCase:
    async def test_whole_line_without_body(self, mock_orchestrator):
        use_case = RemovePartFromJobUseCase(orchestrator=mock_orchestrator)

        await use_case.execute(7, 1)

        mock_orchestrator.remove_part_from_job.assert_awaited_once_with(7, 1, None)

    async def test_partial_quantity(self, mock_orchestrator, return_result):
        use_case = RemovePartFromJobUseCase(orchestrator=mock_orchestrator)

        result = await use_case.execute(7, 1, RemoveJobPartRequest(quantity=1))

        assert result is return_result
        mock_orchestrator.remove_part_from_job.assert_awaited_once_with(7, 1, 1)
        assert use_case.to_response(result).restock.batch_id == "B-9"


class TestCommitPurchaseOrderUseCase:
    async def test_commit(self, mock_orchestrator):
        use_case = CommitPurchaseOrderUseCase(orchestrator=mock_orchestrator)

        result = await use_case.execute(3)
        response = use_case.to_response(result)

        mock_orchestrator.commit_purchase_order.assert_awaited_once_with(3)
        assert response.status == PurchaseOrderStatus.COMMITTED
        assert response.lines[0].batch_id == "B-5"
