"""
Batch ledger: pure FIFO batch arithmetic.

Layer-pure module - no storage, no I/O. Functions mutate the StockItem
they are given and return the history entries to persist. Every function
validates fully before its first mutation, so a raised error leaves the
item untouched.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from stockledger.core.entities.operations import require_quantity, to_money
from stockledger.core.entities.stock import (
    Batch,
    HistoryEntry,
    HistoryType,
    StockItem,
    utcnow,
)
from stockledger.core.exceptions import InsufficientStockError, OldestBatchTooSmallError

LEGACY_SOURCE = "Legacy Stock"
JOB_RETURN_SOURCE = "Job Return"


@dataclass
class LedgerPosting:
    """A batch appended to an item and the history entry describing it."""

    batch: Batch
    history: HistoryEntry


@dataclass
class Draw:
    """Units taken from one batch during a consumption."""

    batch: Batch
    quantity: int
    history: HistoryEntry


@dataclass
class ConsumeOutcome:
    """Draws made by one consumption, oldest batch first."""

    item: StockItem
    draws: list[Draw] = field(default_factory=list)

    @property
    def remaining_total(self) -> int:
        return self.item.total_quantity

    @property
    def batch_id(self) -> str:
        return self.draws[0].batch.batch_id

    @property
    def cost_per_unit(self) -> Decimal:
        return self.draws[0].batch.cost_per_unit


def generate_batch_id() -> str:
    """Unique batch id of the form BATCH-<millis>-<random>."""
    millis = int(utcnow().timestamp() * 1000)
    return f"BATCH-{millis}-{uuid.uuid4().hex[:8].upper()}"


def create_batch(
    quantity: int,
    cost_per_unit: Decimal,
    source: str | None = None,
    *,
    sequence: int = 0,
    item_id: int | None = None,
    acquired_at: datetime | None = None,
    notes: str | None = None,
    purchase_order_id: int | None = None,
    reference_number: str | None = None,
    is_legacy: bool = False,
) -> Batch:
    """Build a new batch. Zero quantity is valid; negatives are not."""
    require_quantity(quantity, allow_zero=True)
    cost = to_money(cost_per_unit, "cost_per_unit")
    return Batch(
        batch_id=generate_batch_id(),
        item_id=item_id,
        sequence=sequence,
        quantity=quantity,
        cost_per_unit=cost,
        acquired_at=acquired_at or utcnow(),
        source=source,
        notes=notes,
        purchase_order_id=purchase_order_id,
        reference_number=reference_number,
        is_legacy=is_legacy,
    )


def calculate_total_quantity(batches: list[Batch]) -> int:
    return sum(b.quantity for b in batches)


def calculate_average_cost(
    batches: list[Batch], fallback: Decimal = Decimal("0")
) -> Decimal:
    """
    Quantity-weighted mean cost over batches holding stock.

    When nothing is in stock the previous average (`fallback`) is kept,
    so a fully consumed item reports its last non-empty cost.
    """
    available = [b for b in batches if b.quantity > 0]
    units = sum(b.quantity for b in available)
    if units == 0:
        return fallback
    value = sum((b.quantity * b.cost_per_unit for b in available), Decimal("0"))
    return value / units


def available_batches(batches: list[Batch]) -> list[Batch]:
    """Batches with stock in FIFO order (acquired_at, then sequence)."""
    return sorted((b for b in batches if not b.is_exhausted), key=lambda b: b.fifo_key)


def find_oldest_available(item: StockItem) -> Batch | None:
    """The batch the next consumption draws from, or None when empty."""
    batches = available_batches(item.batches)
    return batches[0] if batches else None


def recompute(item: StockItem) -> StockItem:
    """Rederive total quantity and average cost from the batch list."""
    item.total_quantity = calculate_total_quantity(item.batches)
    item.average_cost = calculate_average_cost(item.batches, fallback=item.average_cost)
    item.updated_at = utcnow()
    return item


def append_batch(
    item: StockItem,
    quantity: int,
    cost_per_unit: Decimal,
    source: str | None = None,
    *,
    entry_type: HistoryType = HistoryType.PURCHASE,
    job_id: int | None = None,
    purchase_order_id: int | None = None,
    reference_number: str | None = None,
    notes: str | None = None,
) -> LedgerPosting:
    """Restock primitive: add a batch and recompute derived totals."""
    batch = create_batch(
        quantity,
        cost_per_unit,
        source,
        sequence=item.next_sequence,
        item_id=item.id,
        notes=notes,
        purchase_order_id=purchase_order_id,
        reference_number=reference_number,
    )
    if not item.batches and item.total_quantity == 0:
        # First real batch: seed the fallback average with its cost
        item.average_cost = batch.cost_per_unit
    item.batches.append(batch)
    recompute(item)

    history = HistoryEntry(
        item_id=item.id,  # type: ignore[arg-type]
        entry_type=entry_type,
        quantity_delta=quantity,
        batch_id=batch.batch_id,
        unit_cost=batch.cost_per_unit,
        job_id=job_id,
        purchase_order_id=purchase_order_id,
        notes=notes,
    )
    return LedgerPosting(batch=batch, history=history)


def _check_available(item: StockItem, quantity: int) -> int:
    require_quantity(quantity)
    total = calculate_total_quantity(item.batches)
    if total < quantity:
        raise InsufficientStockError(item_id=item.id, requested=quantity, available=total)
    return total


def _draw(
    item: StockItem,
    batch: Batch,
    quantity: int,
    job_id: int | None,
    notes: str | None,
) -> Draw:
    batch.quantity -= quantity
    history = HistoryEntry(
        item_id=item.id,  # type: ignore[arg-type]
        entry_type=HistoryType.USE,
        quantity_delta=-quantity,
        batch_id=batch.batch_id,
        unit_cost=batch.cost_per_unit,
        job_id=job_id,
        notes=notes,
    )
    return Draw(batch=batch, quantity=quantity, history=history)


def consume(
    item: StockItem,
    quantity: int,
    *,
    job_id: int | None = None,
    notes: str | None = None,
) -> ConsumeOutcome:
    """
    Draw `quantity` units from the oldest batch holding stock.

    A single call draws from exactly one batch, so the cost of the
    consumption is that batch's original cost.

    Raises:
        InvalidAmountError: quantity is not a positive whole number
        InsufficientStockError: total on hand is below `quantity`
        OldestBatchTooSmallError: the oldest batch alone cannot cover it
    """
    total = _check_available(item, quantity)
    oldest = find_oldest_available(item)
    if oldest is None:
        raise InsufficientStockError(item_id=item.id, requested=quantity, available=0)
    if oldest.quantity < quantity:
        raise OldestBatchTooSmallError(
            item_id=item.id,
            batch_id=oldest.batch_id,
            batch_quantity=oldest.quantity,
            requested=quantity,
            total_available=total,
        )

    draw = _draw(item, oldest, quantity, job_id, notes)
    recompute(item)
    return ConsumeOutcome(item=item, draws=[draw])


def consume_across_batches(
    item: StockItem,
    quantity: int,
    *,
    job_id: int | None = None,
    notes: str | None = None,
) -> ConsumeOutcome:
    """
    Split mode: draw oldest-first across as many batches as needed.

    Each draw carries its own batch cost and history entry.
    """
    _check_available(item, quantity)
    outcome = ConsumeOutcome(item=item)
    remaining = quantity
    for batch in available_batches(item.batches):
        if remaining == 0:
            break
        take = min(remaining, batch.quantity)
        outcome.draws.append(_draw(item, batch, take, job_id, notes))
        remaining -= take
    recompute(item)
    return outcome


def legacy_shortfall(item: StockItem) -> int:
    """Units below zero on a flat legacy row; they cannot become a batch."""
    if item.recorded_quantity is None or item.recorded_quantity >= 0:
        return 0
    return -item.recorded_quantity


def migrate_legacy(item: StockItem) -> Batch | None:
    """
    Convert a flat-quantity item into one synthetic legacy batch.

    Returns the new batch, or None if the item already has batches.
    """
    if item.batches:
        return None
    notes = "Migrated from flat quantity"
    if legacy_shortfall(item):
        notes += f"; stored quantity {item.recorded_quantity} written off to 0"
    batch = create_batch(
        max(item.total_quantity, 0),
        item.average_cost,
        LEGACY_SOURCE,
        sequence=1,
        item_id=item.id,
        notes=notes,
        is_legacy=True,
    )
    item.batches.append(batch)
    recompute(item)
    return batch
