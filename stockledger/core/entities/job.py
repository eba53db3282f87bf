"""Repair job domain entities."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from stockledger.core.entities.stock import utcnow


class JobStatus(str, Enum):
    """Repair job workflow states."""

    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    WAITING_FOR_PARTS = "Waiting for Parts"
    READY_FOR_PICKUP = "Ready for Pickup"
    COMPLETED = "Completed"
    PAID = "Paid"
    CANCELLED = "Cancelled"

    @property
    def is_closed(self) -> bool:
        """Closed jobs accept no part changes."""
        return self in (JobStatus.COMPLETED, JobStatus.PAID, JobStatus.CANCELLED)


class JobPart(BaseModel):
    """
    One part line on a job, drawn from exactly one batch.

    `unit_cost` is the drawn batch's cost and is what a return restocks at.
    """

    id: int | None = None
    job_id: int | None = None
    item_id: int
    item_name: str = ""
    batch_id: str
    quantity: int = Field(gt=0)
    unit_cost: Decimal
    unit_price: Decimal = Decimal("0")
    history_id: int | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def total_cost(self) -> Decimal:
        return self.quantity * self.unit_cost

    @property
    def total_price(self) -> Decimal:
        return self.quantity * self.unit_price


class RepairJob(BaseModel):
    """A repair job consuming parts from inventory."""

    id: int | None = None
    customer_id: int | None = None
    title: str
    description: str | None = None
    status: JobStatus = JobStatus.PENDING
    parts: list[JobPart] = Field(default_factory=list)
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def parts_cost(self) -> Decimal:
        return sum((p.total_cost for p in self.parts), Decimal("0"))

    @property
    def parts_total(self) -> Decimal:
        return sum((p.total_price for p in self.parts), Decimal("0"))

    def get_part(self, line_id: int) -> JobPart | None:
        for part in self.parts:
            if part.id == line_id:
                return part
        return None
