"""
Tests for the WAC engine.

Covers:
- First receipt sets WAC to the receipt price
- Re-averaging against existing stock
- Equivalence with the direct weighted average over all receipts
- Input validation
- ENGINE_TRACE emission
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from stock_engines.wac import Receipt, WacCalculator
from stock_kernel.domain.values import ZERO, round_price
from stock_kernel.exceptions import ValidationError

quantities = st.decimals(
    min_value=Decimal("0.0001"), max_value=Decimal("10000"), places=4,
    allow_nan=False, allow_infinity=False,
)
prices = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("1000"), places=4,
    allow_nan=False, allow_infinity=False,
)


class TestApplyReceipt:
    def setup_method(self):
        self.calculator = WacCalculator()

    def test_first_receipt_sets_wac(self):
        result = self.calculator.apply_receipt(ZERO, ZERO, Decimal("100"), Decimal("1.50"))

        assert result.on_hand == Decimal("100")
        assert result.wac == Decimal("1.50")
        assert result.wac_changed is True

    def test_second_receipt_reaverages(self):
        result = self.calculator.apply_receipt(
            Decimal("100"), Decimal("1.50"), Decimal("50"), Decimal("1.80")
        )

        assert result.on_hand == Decimal("150")
        assert result.wac == Decimal("1.6")
        assert result.previous_wac == Decimal("1.50")

    def test_same_price_keeps_wac(self):
        result = self.calculator.apply_receipt(
            Decimal("10"), Decimal("2.00"), Decimal("5"), Decimal("2.00")
        )
        assert result.wac == Decimal("2.00")
        assert result.wac_changed is False

    def test_zero_price_receipt_lowers_wac(self):
        result = self.calculator.apply_receipt(
            Decimal("10"), Decimal("3.00"), Decimal("10"), Decimal("0")
        )
        assert result.wac == Decimal("1.5")

    def test_stale_wac_on_empty_row_is_ignored(self):
        """A row emptied by issues keeps its old WAC; the next receipt replaces it."""
        result = self.calculator.apply_receipt(ZERO, Decimal("9.99"), Decimal("4"), Decimal("2.50"))
        assert result.wac == Decimal("2.50")

    def test_repeating_third_stays_exact_at_display(self):
        result = self.calculator.apply_receipt(
            Decimal("1"), Decimal("1"), Decimal("2"), Decimal("2")
        )
        assert round_price(result.wac) == Decimal("1.6667")

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_non_positive_quantity_rejected(self, quantity):
        with pytest.raises(ValidationError):
            self.calculator.apply_receipt(ZERO, ZERO, Decimal(quantity), Decimal("1"))

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError, match="unit_price"):
            self.calculator.apply_receipt(ZERO, ZERO, Decimal("1"), Decimal("-0.01"))


class TestConsumptionValue:
    def test_value_at_wac(self):
        assert WacCalculator().consumption_value(Decimal("30"), Decimal("1.6")) == Decimal("48.0")


class TestWacProperties:
    @settings(max_examples=200)
    @given(st.lists(st.tuples(quantities, prices), min_size=1, max_size=12))
    def test_incremental_matches_direct_average(self, receipts):
        calculator = WacCalculator()
        on_hand, wac = ZERO, ZERO
        for quantity, price in receipts:
            result = calculator.apply_receipt(on_hand, wac, quantity, price)
            on_hand, wac = result.on_hand, result.wac

        direct = calculator.average(Receipt(q, p) for q, p in receipts)
        assert on_hand == sum((q for q, _ in receipts), ZERO)
        assert abs(wac - direct) < Decimal("1E-20")

    @given(quantities, prices, quantities, prices)
    def test_wac_between_old_wac_and_receipt_price(self, on_hand, wac, quantity, price):
        result = WacCalculator().apply_receipt(on_hand, wac, quantity, price)
        low, high = min(wac, price), max(wac, price)
        assert low - Decimal("1E-25") <= result.wac <= high + Decimal("1E-25")


class TestEngineTrace:
    def test_trace_emitted(self, captured_logs):
        WacCalculator().apply_receipt(ZERO, ZERO, Decimal("1"), Decimal("1"))

        traces = [r for r in captured_logs() if r["message"] == "ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "wac"
        assert len(traces[0]["input_fingerprint"]) == 16

    def test_fingerprint_is_deterministic(self, captured_logs):
        calculator = WacCalculator()
        calculator.apply_receipt(ZERO, ZERO, Decimal("2.50"), Decimal("1"))
        calculator.apply_receipt(ZERO, ZERO, Decimal("2.5"), Decimal("1.0"))

        fingerprints = [
            r["input_fingerprint"] for r in captured_logs() if r["message"] == "ENGINE_TRACE"
        ]
        assert fingerprints[0] == fingerprints[1]
