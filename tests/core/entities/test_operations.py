"""Tests for ledger commands and results."""

from decimal import Decimal

import pytest

from stockledger.core.entities.billing import TenderMethod
from stockledger.core.entities.operations import (
    ApplyPaymentCommand,
    BatchDraw,
    ConsumeCommand,
    ConsumeResult,
    RestockCommand,
    require_quantity,
    to_money,
)
from stockledger.core.exceptions import InvalidAmountError


class TestToMoney:
    @pytest.mark.parametrize("value", [5, "5.25", 5.25, Decimal("0")])
    def test_accepts_numbers(self, value):
        assert to_money(value, "amount") == Decimal(str(value))

    @pytest.mark.parametrize("value", [-1, "abc", "NaN", "Infinity", True, None])
    def test_rejects_invalid(self, value):
        with pytest.raises(InvalidAmountError) as exc_info:
            to_money(value, "amount")
        assert exc_info.value.code == "INVALID_AMOUNT"


class TestRequireQuantity:
    def test_positive(self):
        assert require_quantity(3) == 3

    @pytest.mark.parametrize("value", [0, -2, 1.5, "3", True])
    def test_rejects(self, value):
        with pytest.raises(InvalidAmountError):
            require_quantity(value)

    def test_zero_allowed_when_asked(self):
        assert require_quantity(0, allow_zero=True) == 0


class TestCommands:
    def test_restock_coerces_cost(self):
        command = RestockCommand(item_id=1, quantity=2, cost_per_unit="4.10")
        assert command.cost_per_unit == Decimal("4.10")

    def test_restock_rejects_zero_quantity(self):
        with pytest.raises(InvalidAmountError):
            RestockCommand(item_id=1, quantity=0, cost_per_unit=Decimal("1"))

    def test_consume_rejects_negative_quantity(self):
        with pytest.raises(InvalidAmountError):
            ConsumeCommand(item_id=1, quantity=-1)

    def test_payment_total_and_tenders(self):
        command = ApplyPaymentCommand(customer_id=1, cash=Decimal("20"), card="5")
        assert command.total == Decimal("25")
        assert [t.method for t in command.tenders()] == [TenderMethod.CASH, TenderMethod.CARD]

    def test_payment_rejects_zero_total(self):
        with pytest.raises(InvalidAmountError):
            ApplyPaymentCommand(customer_id=1)

    def test_payment_rejects_negative_tender(self):
        with pytest.raises(InvalidAmountError):
            ApplyPaymentCommand(customer_id=1, cash=Decimal("10"), check=Decimal("-5"))


class TestConsumeResult:
    def test_single_draw_cost_is_batch_cost(self):
        result = ConsumeResult(
            item_id=1,
            quantity=3,
            draws=[BatchDraw(batch_id="A", quantity=3, cost_per_unit=Decimal("5"))],
            remaining_total=0,
            average_cost=Decimal("5"),
        )
        assert result.batch_id == "A"
        assert result.cost_per_unit == Decimal("5")
        assert result.total_cost == Decimal("15")

    def test_split_draw_cost_is_blended(self):
        result = ConsumeResult(
            item_id=1,
            quantity=4,
            draws=[
                BatchDraw(batch_id="A", quantity=2, cost_per_unit=Decimal("5")),
                BatchDraw(batch_id="B", quantity=2, cost_per_unit=Decimal("7")),
            ],
            remaining_total=0,
            average_cost=Decimal("7"),
        )
        assert result.batch_id == "A"
        assert result.total_cost == Decimal("24")
        assert result.cost_per_unit == Decimal("6")

    def test_round_trips_through_json(self):
        result = ConsumeResult(
            item_id=1,
            quantity=1,
            draws=[BatchDraw(batch_id="A", quantity=1, cost_per_unit=Decimal("1.10"))],
            remaining_total=4,
            average_cost=Decimal("1.10"),
        )
        assert ConsumeResult.model_validate_json(result.model_dump_json()) == result
