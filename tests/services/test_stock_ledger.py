"""
Tests for the per-location stock ledger.

The ledger is flush-only; these tests read back through the same session.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.dtos import StockLine
from stock_kernel.exceptions import (
    InsufficientStockError,
    ItemNotFoundError,
    LocationNotFoundError,
    ValidationError,
)


class TestRead:
    def test_missing_row_reads_as_zero(self, ledger, kitchen, flour):
        state = ledger.read(kitchen.id, flour.id)

        assert state.exists is False
        assert state.on_hand == Decimal("0")
        assert state.wac == Decimal("0")

    def test_display_rounding(self, ledger, receive, kitchen, flour):
        receive(kitchen, flour, "3", "0.33333")
        display = ledger.read(kitchen.id, flour.id).display()

        assert display == {"on_hand": "3.0000", "wac": "0.3333", "value": "1.00"}


class TestReceive:
    def test_first_receipt_sets_wac_to_price(self, ledger, kitchen, flour):
        state = ledger.receive(kitchen.id, flour.id, Decimal("100"), Decimal("1.50"))

        assert state.exists is True
        assert state.on_hand == Decimal("100")
        assert state.wac == Decimal("1.50")

    def test_second_receipt_reaverages(self, ledger, receive, kitchen, flour):
        receive(kitchen, flour, "100", "1.50")
        state = ledger.receive(kitchen.id, flour.id, Decimal("50"), Decimal("1.80"))

        assert state.on_hand == Decimal("150")
        assert state.wac == Decimal("1.60")

    def test_locations_are_independent(self, ledger, receive, kitchen, store, flour):
        receive(kitchen, flour, "10", "2.00")
        receive(store, flour, "10", "4.00")

        assert ledger.read(kitchen.id, flour.id).wac == Decimal("2.00")
        assert ledger.read(store.id, flour.id).wac == Decimal("4.00")

    def test_over_precise_quantity_rejected(self, ledger, kitchen, flour):
        with pytest.raises(ValidationError, match="decimal places"):
            ledger.receive(kitchen.id, flour.id, Decimal("1.00001"), Decimal("1"))

    def test_unknown_location(self, ledger, flour):
        with pytest.raises(LocationNotFoundError):
            ledger.receive(uuid4(), flour.id, Decimal("1"), Decimal("1"))

    def test_unknown_item(self, ledger, kitchen):
        with pytest.raises(ItemNotFoundError):
            ledger.receive(kitchen.id, uuid4(), Decimal("1"), Decimal("1"))

    def test_receipt_logged(self, ledger, kitchen, flour, captured_logs):
        ledger.receive(kitchen.id, flour.id, Decimal("5"), Decimal("2"))

        records = [r for r in captured_logs() if r["message"] == "stock_received"]
        assert len(records) == 1
        assert Decimal(records[0]["previous_on_hand"]) == 0
        assert Decimal(records[0]["on_hand"]) == Decimal("5")


class TestConsume:
    def test_consumption_keeps_wac(self, ledger, receive, kitchen, flour):
        receive(kitchen, flour, "150", "1.60")
        state = ledger.consume(kitchen.id, flour.id, Decimal("30"))

        assert state.on_hand == Decimal("120")
        assert state.wac == Decimal("1.60")

    def test_consume_everything(self, ledger, receive, kitchen, flour):
        receive(kitchen, flour, "10", "1")
        assert ledger.consume(kitchen.id, flour.id, Decimal("10")).on_hand == Decimal("0")

    def test_shortage_leaves_row_untouched(self, ledger, receive, kitchen, flour):
        receive(kitchen, flour, "70", "1.50")

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.consume(kitchen.id, flour.id, Decimal("100"))

        assert exc_info.value.requested == Decimal("100")
        assert exc_info.value.available == Decimal("70")
        assert exc_info.value.item_names == ["Flour"]
        assert ledger.read(kitchen.id, flour.id).on_hand == Decimal("70")

    def test_consume_from_empty_location(self, ledger, kitchen, flour):
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.consume(kitchen.id, flour.id, Decimal("1"))
        assert exc_info.value.available == Decimal("0")


class TestAvailability:
    def test_lines_for_same_item_are_added(self, ledger, receive, kitchen, flour):
        receive(kitchen, flour, "50", "1")

        shortages = ledger.check_availability(
            kitchen.id,
            [StockLine(flour.id, Decimal("30")), StockLine(flour.id, Decimal("30"))],
        )

        assert len(shortages) == 1
        assert shortages[0].requested == Decimal("60")
        assert shortages[0].available == Decimal("50")

    def test_every_deficient_item_is_named(self, ledger, receive, kitchen, flour, sugar):
        receive(kitchen, flour, "5", "1")

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.require_available(
                kitchen.id,
                [StockLine(flour.id, Decimal("10")), StockLine(sugar.id, Decimal("1"))],
            )

        assert sorted(exc_info.value.item_names) == ["Flour", "Sugar"]
        assert "Flour" in str(exc_info.value)
        assert "Sugar" in str(exc_info.value)

    def test_satisfiable_request_passes(self, ledger, receive, kitchen, flour):
        receive(kitchen, flour, "5", "1")
        assert ledger.check_availability(kitchen.id, [StockLine(flour.id, Decimal("5"))]) == []


class TestValuation:
    def test_sorted_by_name_and_totalled(self, ledger, receive, kitchen, flour, sugar):
        receive(kitchen, sugar, "10", "2.00")
        receive(kitchen, flour, "100", "1.50")

        valuation = ledger.valuation(kitchen.id)

        assert [line.item_name for line in valuation.lines] == ["Flour", "Sugar"]
        assert valuation.total_value == Decimal("170.00")

    def test_empty_rows_excluded_by_default(self, ledger, receive, kitchen, flour, sugar):
        receive(kitchen, flour, "10", "1")
        receive(kitchen, sugar, "10", "1")
        ledger.consume(kitchen.id, sugar.id, Decimal("10"))

        assert [line.item_name for line in ledger.valuation(kitchen.id).lines] == ["Flour"]
        assert len(ledger.valuation(kitchen.id, include_empty=True).lines) == 2

    def test_snapshot_format(self, ledger, receive, kitchen, flour, deterministic_clock):
        receive(kitchen, flour, "3", "0.3333")
        snapshot = ledger.valuation(kitchen.id).to_snapshot(deterministic_clock.now_utc())

        assert snapshot["captured_at"].startswith("2024-01-15T12:00:00")
        assert snapshot["total_value"] == "1.00"
        assert snapshot["items"][0]["item_code"] == "FLR-001"
