"""
Tests for the period consumption formula.

    consumption = opening + receipts + transfers_in - transfers_out
                  - issues - closing
                  + back_charges - credits + condemnations + other
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from stock_engines.reconciliation import (
    Adjustments,
    LedgerComponents,
    ReconciliationCalculator,
)
from stock_kernel.exceptions import ValidationError

money = st.decimals(
    min_value=Decimal("-100000"), max_value=Decimal("100000"), places=2,
    allow_nan=False, allow_infinity=False,
)


@pytest.fixture
def calculator():
    return ReconciliationCalculator()


def _components(**overrides) -> LedgerComponents:
    values = {
        "opening_stock": Decimal("1000.00"),
        "receipts": Decimal("500.00"),
        "transfers_in": Decimal("120.00"),
        "transfers_out": Decimal("80.00"),
        "issues": Decimal("300.00"),
        "closing_stock": Decimal("900.00"),
    }
    values.update(overrides)
    return LedgerComponents(**values)


class TestFormula:
    def test_base_consumption(self, calculator):
        figures = calculator.calculate(_components(), Adjustments())

        assert figures.base_consumption == Decimal("340.00")
        assert figures.total_adjustments == Decimal("0")
        assert figures.consumption == Decimal("340.00")

    def test_adjustments_signs(self, calculator):
        adjustments = Adjustments.of(
            back_charges="25.00", credits="10.00", condemnations="5.50", other="-0.50"
        )
        figures = calculator.calculate(_components(), adjustments)

        assert adjustments.total == Decimal("20.00")
        assert figures.consumption == Decimal("360.00")

    def test_manday_cost(self, calculator):
        figures = calculator.calculate(_components(), Adjustments(), total_mandays=40)

        assert figures.manday_cost == Decimal("8.5")
        assert figures.manday_cost_applicable is True

    def test_zero_mandays_is_not_applicable(self, calculator):
        figures = calculator.calculate(_components(), Adjustments(), total_mandays=0)

        assert figures.manday_cost is None
        assert figures.manday_cost_applicable is False

    def test_negative_mandays_rejected(self, calculator):
        with pytest.raises(ValidationError, match="total_mandays"):
            calculator.calculate(_components(), Adjustments(), total_mandays=-1)

    def test_empty_period_consumes_nothing(self, calculator):
        figures = calculator.calculate(LedgerComponents(), Adjustments())
        assert figures.consumption == Decimal("0")

    def test_adjustments_reject_garbage(self):
        with pytest.raises(ValidationError, match="credits"):
            Adjustments.of(credits="lots")


class TestFormulaProperties:
    @given(money, money, money, money, money, money, money, money, money, money)
    def test_reconciles_to_the_cent(
        self, opening, receipts, t_in, t_out, issues, closing, bc, cr, cond, other
    ):
        components = LedgerComponents(opening, receipts, t_in, t_out, issues, closing)
        adjustments = Adjustments(bc, cr, cond, other)

        figures = ReconciliationCalculator().calculate(components, adjustments)

        assert figures.consumption == figures.base_consumption + figures.total_adjustments
        assert figures.consumption == (
            opening + receipts + t_in - t_out - issues - closing + bc - cr + cond + other
        )
        assert figures.consumption.as_tuple().exponent >= -2
