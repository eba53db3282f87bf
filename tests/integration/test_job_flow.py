"""Repair job parts flowing through the inventory ledger."""

from decimal import Decimal

import pytest

from stockledger.core.entities.job import JobStatus
from stockledger.core.entities.operations import RestockCommand
from stockledger.core.entities.stock import HistoryType
from stockledger.core.exceptions import (
    InsufficientStockError,
    InvalidAmountError,
    InvalidJobStateError,
    JobPartNotFoundError,
    RepairJobNotFoundError,
)
from stockledger.core.services.batch_ledger import JOB_RETURN_SOURCE


@pytest.fixture
async def stocked_item(inventory):
    return await inventory.create_item("Compressor", 5, Decimal("40.00"), price=Decimal("65"))


@pytest.fixture
async def job(orchestrator):
    return await orchestrator.create_job("Fridge not cooling")


class TestAddPart:
    async def test_deducts_stock_and_records_line(self, orchestrator, inventory, stocked_item, job):
        result = await orchestrator.add_part_to_job(job.id, stocked_item.id, 2)

        assert len(result.lines) == 1
        line = result.lines[0]
        assert (line.quantity, line.unit_cost, line.unit_price) == (
            2,
            Decimal("40.00"),
            Decimal("65"),
        )
        assert result.consumption.remaining_total == 3

        loaded = await orchestrator.get_job(job.id)
        assert [p.id for p in loaded.parts] == [line.id]
        assert loaded.parts_cost == Decimal("80.00")

        history = await inventory.get_history(stocked_item.id)
        assert history[0].entry_type == HistoryType.USE
        assert history[0].job_id == job.id

    async def test_completing_job_does_not_deduct_again(
        self, orchestrator, inventory, stocked_item, job
    ):
        await orchestrator.add_part_to_job(job.id, stocked_item.id, 2)

        await orchestrator.update_job_status(job.id, JobStatus.IN_PROGRESS)
        completed = await orchestrator.update_job_status(job.id, JobStatus.COMPLETED)

        assert completed.status == JobStatus.COMPLETED
        assert (await inventory.get_item(stocked_item.id)).total_quantity == 3
        assert len(await inventory.get_history(stocked_item.id)) == 2

    async def test_closed_job_rejects_parts(self, orchestrator, stocked_item, job):
        await orchestrator.update_job_status(job.id, JobStatus.PAID)

        with pytest.raises(InvalidJobStateError):
            await orchestrator.add_part_to_job(job.id, stocked_item.id, 1)

    async def test_failed_add_changes_nothing(self, orchestrator, inventory, stocked_item, job):
        with pytest.raises(InsufficientStockError):
            await orchestrator.add_part_to_job(job.id, stocked_item.id, 6)

        assert (await orchestrator.get_job(job.id)).parts == []
        item = await inventory.get_item(stocked_item.id)
        assert item.total_quantity == 5
        assert len(await inventory.get_history(stocked_item.id)) == 1

    async def test_split_add_records_one_line_per_batch(
        self, orchestrator, inventory, stocked_item, job
    ):
        await inventory.restock(
            RestockCommand(item_id=stocked_item.id, quantity=5, cost_per_unit=Decimal("50"))
        )

        result = await orchestrator.add_part_to_job(job.id, stocked_item.id, 7, split=True)

        assert [(l.quantity, l.unit_cost) for l in result.lines] == [
            (5, Decimal("40.00")),
            (2, Decimal("50")),
        ]
        assert len({l.batch_id for l in result.lines}) == 2

    async def test_idempotent_add(self, orchestrator, inventory, stocked_item, job):
        first = await orchestrator.add_part_to_job(
            job.id, stocked_item.id, 1, idempotency_key="add-1"
        )
        second = await orchestrator.add_part_to_job(
            job.id, stocked_item.id, 1, idempotency_key="add-1"
        )

        assert first.lines[0].id == second.lines[0].id
        assert (await inventory.get_item(stocked_item.id)).total_quantity == 4

    async def test_unknown_job(self, orchestrator, stocked_item):
        with pytest.raises(RepairJobNotFoundError):
            await orchestrator.add_part_to_job(999, stocked_item.id, 1)


class TestReturnPart:
    async def test_full_return_restocks_at_line_cost(
        self, orchestrator, inventory, stocked_item, job
    ):
        added = await orchestrator.add_part_to_job(job.id, stocked_item.id, 2)
        line = added.lines[0]
        # Average moves away from the line cost before the return
        await inventory.restock(
            RestockCommand(item_id=stocked_item.id, quantity=3, cost_per_unit=Decimal("60"))
        )

        result = await orchestrator.remove_part_from_job(job.id, line.id)

        assert result.line_removed is True
        assert result.quantity == 2
        assert result.restock.cost_per_unit == Decimal("40.00")

        item = await inventory.get_item(stocked_item.id)
        (returned,) = [b for b in item.batches if b.batch_id == result.restock.batch_id]
        assert returned.source == JOB_RETURN_SOURCE
        assert item.total_quantity == 8
        assert (await orchestrator.get_job(job.id)).parts == []

        history = await inventory.get_history(stocked_item.id)
        assert history[0].entry_type == HistoryType.RETURN
        assert history[0].quantity_delta == 2

    async def test_partial_return_shrinks_line(self, orchestrator, inventory, stocked_item, job):
        added = await orchestrator.add_part_to_job(job.id, stocked_item.id, 4)
        line = added.lines[0]

        result = await orchestrator.remove_part_from_job(job.id, line.id, quantity=1)

        assert result.line_removed is False
        loaded = await orchestrator.get_job(job.id)
        assert loaded.get_part(line.id).quantity == 3
        assert (await inventory.get_item(stocked_item.id)).total_quantity == 2

    async def test_return_more_than_line(self, orchestrator, stocked_item, job):
        added = await orchestrator.add_part_to_job(job.id, stocked_item.id, 1)

        with pytest.raises(InvalidAmountError):
            await orchestrator.remove_part_from_job(job.id, added.lines[0].id, quantity=2)

    async def test_unknown_line(self, orchestrator, job):
        with pytest.raises(JobPartNotFoundError):
            await orchestrator.remove_part_from_job(job.id, 12345)

    async def test_closed_job_rejects_return(self, orchestrator, stocked_item, job):
        added = await orchestrator.add_part_to_job(job.id, stocked_item.id, 1)
        await orchestrator.update_job_status(job.id, JobStatus.COMPLETED)

        with pytest.raises(InvalidJobStateError):
            await orchestrator.remove_part_from_job(job.id, added.lines[0].id)


class TestJobStatus:
    async def test_cancelled_job_cannot_reopen(self, orchestrator, job):
        await orchestrator.update_job_status(job.id, JobStatus.CANCELLED)

        with pytest.raises(InvalidJobStateError):
            await orchestrator.update_job_status(job.id, JobStatus.IN_PROGRESS)
