"""
Tests for non-conformance reports.

Covers manual creation, the OPEN -> SENT -> terminal lifecycle and the
per-period summary buckets.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.exceptions import (
    InvalidStatusTransitionError,
    LocationNotFoundError,
    NCRNotFoundError,
    ValidationError,
)
from stock_modules.ncr.models import FinancialImpact, NCRItemInput, NCRStatus, NCRType
from stock_modules.transactions.models import DeliveryLineInput


@pytest.fixture
def damaged(ncrs, kitchen, flour, test_actor_id):
    """A single-item manual NCR worth 12.50."""

    def _create(value="12.50"):
        return ncrs.create_manual_ncr(
            kitchen.id,
            "Bags split in transit",
            [NCRItemInput(flour.id, Decimal("5"), Decimal(value))],
            test_actor_id,
        )

    return _create


class TestManualNCR:
    def test_single_item(self, damaged, flour):
        ncr = damaged()

        assert ncr.ncr_no == "NCR-2024-001"
        assert ncr.type == NCRType.MANUAL
        assert ncr.auto_generated is False
        assert ncr.status == NCRStatus.OPEN
        assert ncr.value == Decimal("12.50")
        assert ncr.item_id == flour.id
        assert ncr.quantity == Decimal("5")

    def test_reason_carries_item_rows(self, damaged, flour):
        ncr = damaged()

        text, rows = ncr.reason.split("\n\n[ITEMS] ")
        assert text == "Bags split in transit"
        assert json.loads(rows) == [
            {"item_id": str(flour.id), "quantity": "5", "value": "12.50"}
        ]

    def test_several_items(self, ncrs, kitchen, flour, sugar, test_actor_id):
        ncr = ncrs.create_manual_ncr(
            kitchen.id,
            "Short delivery",
            [
                NCRItemInput(flour.id, Decimal("2"), Decimal("3.00")),
                NCRItemInput(sugar.id, Decimal("1"), Decimal("2.00")),
            ],
            test_actor_id,
        )

        assert ncr.value == Decimal("5.00")
        assert ncr.item_id is None
        assert ncr.quantity is None

    def test_blank_reason(self, ncrs, kitchen, flour, test_actor_id):
        with pytest.raises(ValidationError, match="reason"):
            ncrs.create_manual_ncr(
                kitchen.id, " ", [NCRItemInput(flour.id, Decimal("1"), Decimal("1"))], test_actor_id
            )

    def test_items_required(self, ncrs, kitchen, test_actor_id):
        with pytest.raises(ValidationError, match="items"):
            ncrs.create_manual_ncr(kitchen.id, "Broken", [], test_actor_id)

    def test_negative_value(self, ncrs, kitchen, flour, test_actor_id):
        with pytest.raises(ValidationError, match="value"):
            ncrs.create_manual_ncr(
                kitchen.id, "Broken",
                [NCRItemInput(flour.id, Decimal("1"), Decimal("-1"))],
                test_actor_id,
            )

    def test_unknown_location(self, ncrs, flour, test_actor_id):
        with pytest.raises(LocationNotFoundError):
            ncrs.create_manual_ncr(
                uuid4(), "Broken", [NCRItemInput(flour.id, Decimal("1"), Decimal("1"))], test_actor_id
            )


class TestLifecycle:
    def test_send_then_credit(self, ncrs, damaged, supervisor_id):
        ncr = damaged()
        sent = ncrs.update_status(ncr.id, NCRStatus.SENT, actor_id=supervisor_id)
        assert sent.status == NCRStatus.SENT
        assert sent.resolved_at is None

        credited = ncrs.update_status(ncr.id, "CREDITED", notes="credit note CN-7")
        assert credited.status == NCRStatus.CREDITED
        assert credited.resolved_at is not None
        assert credited.resolution_notes == "credit note CN-7"

    def test_cannot_skip_sent(self, ncrs, damaged):
        ncr = damaged()
        with pytest.raises(InvalidStatusTransitionError):
            ncrs.update_status(ncr.id, NCRStatus.CREDITED)
        assert ncrs.get_ncr(ncr.id).status == NCRStatus.OPEN

    def test_terminal_is_final(self, ncrs, damaged):
        ncr = damaged()
        ncrs.update_status(ncr.id, NCRStatus.SENT)
        ncrs.update_status(ncr.id, NCRStatus.REJECTED)

        with pytest.raises(InvalidStatusTransitionError):
            ncrs.update_status(ncr.id, NCRStatus.SENT)

    def test_resolve_with_impact(self, ncrs, damaged):
        ncr = damaged()
        ncrs.update_status(ncr.id, NCRStatus.SENT)
        resolved = ncrs.update_status(
            ncr.id, NCRStatus.RESOLVED, financial_impact=FinancialImpact.LOSS
        )
        assert resolved.financial_impact == FinancialImpact.LOSS

    def test_impact_only_when_resolving(self, ncrs, damaged):
        ncr = damaged()
        ncrs.update_status(ncr.id, NCRStatus.SENT)
        with pytest.raises(ValidationError, match="financial_impact"):
            ncrs.update_status(ncr.id, NCRStatus.CREDITED, financial_impact="CREDIT")

    def test_unknown_status(self, ncrs, damaged):
        ncr = damaged()
        with pytest.raises(ValidationError) as exc_info:
            ncrs.update_status(ncr.id, "LOST")
        assert exc_info.value.field == "new_status"
        assert ncrs.get_ncr(ncr.id).status == NCRStatus.OPEN

    def test_unknown_financial_impact(self, ncrs, damaged):
        ncr = damaged()
        ncrs.update_status(ncr.id, NCRStatus.SENT)
        with pytest.raises(ValidationError) as exc_info:
            ncrs.update_status(ncr.id, NCRStatus.RESOLVED, financial_impact="MAYBE")
        assert exc_info.value.field == "financial_impact"
        assert ncrs.get_ncr(ncr.id).status == NCRStatus.SENT

    def test_unknown_ncr(self, ncrs):
        with pytest.raises(NCRNotFoundError):
            ncrs.update_status(uuid4(), NCRStatus.SENT)

    def test_status_change_logged(self, ncrs, damaged, captured_logs):
        ncr = damaged()
        ncrs.update_status(ncr.id, NCRStatus.SENT)

        records = [r for r in captured_logs() if r["message"] == "ncr_status_changed"]
        assert records[0]["from_status"] == "OPEN"
        assert records[0]["to_status"] == "SENT"


class TestSummary:
    def _walk(self, ncrs, ncr, *steps):
        for status, impact in steps:
            ncrs.update_status(ncr.id, status, financial_impact=impact)

    def test_buckets(self, ncrs, damaged, january, kitchen):
        still_open = damaged("1.00")
        sent = damaged("2.00")
        credited = damaged("4.00")
        rejected = damaged("8.00")
        resolved_loss = damaged("16.00")
        resolved_credit = damaged("32.00")
        resolved_none = damaged("64.00")

        sent_step = (NCRStatus.SENT, None)
        self._walk(ncrs, sent, sent_step)
        self._walk(ncrs, credited, sent_step, (NCRStatus.CREDITED, None))
        self._walk(ncrs, rejected, sent_step, (NCRStatus.REJECTED, None))
        self._walk(ncrs, resolved_loss, sent_step, (NCRStatus.RESOLVED, FinancialImpact.LOSS))
        self._walk(ncrs, resolved_credit, sent_step, (NCRStatus.RESOLVED, FinancialImpact.CREDIT))
        self._walk(ncrs, resolved_none, sent_step, (NCRStatus.RESOLVED, FinancialImpact.NONE))
        assert still_open.status == NCRStatus.OPEN

        summary = ncrs.summary(january.id, kitchen.id)

        assert (summary.open.count, summary.open.total) == (1, Decimal("1.00"))
        assert (summary.pending.count, summary.pending.total) == (1, Decimal("2.00"))
        assert (summary.credited.count, summary.credited.total) == (2, Decimal("36.00"))
        assert (summary.losses.count, summary.losses.total) == (2, Decimal("24.00"))
        assert summary.credited.display_total == Decimal("36.00")

    def test_variance_ncrs_belong_to_delivery_period(
        self, ncrs, processor, january, kitchen, flour, test_actor_id
    ):
        processor.post_delivery(
            kitchen.id, january.id, "Mill & Co",
            [DeliveryLineInput(flour.id, Decimal("50"), Decimal("1.80"))],
            test_actor_id,
        )

        summary = ncrs.summary(january.id, kitchen.id)
        assert summary.open.count == 1
        assert summary.open.total == Decimal("15.00")

    def test_manual_ncr_outside_period_excluded(
        self, ncrs, damaged, january, kitchen, deterministic_clock
    ):
        damaged()
        deterministic_clock.set_time(datetime(2024, 2, 3, 9, 0, tzinfo=UTC))
        damaged()

        summary = ncrs.summary(january.id, kitchen.id)
        assert summary.open.count == 1

    def test_other_location_excluded(self, ncrs, damaged, january, store):
        damaged()
        assert ncrs.summary(january.id, store.id).open.count == 0
