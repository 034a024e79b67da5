"""
Tests for reconciliation and POB capture.

The components come from posted documents and the ledger; adjustments are
entered by a supervisor and the first save freezes the components.
"""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from stock_kernel.exceptions import PeriodClosedError, ValidationError
from stock_modules.reconciliation.models import POBEntryInput
from stock_modules.transactions.models import DeliveryLineInput, IssueLineInput
from stock_modules.transfers.models import TransferLineInput


@pytest.fixture
def month_of_activity(
    processor, transfers, january, kitchen, store, flour, sugar, test_actor_id, supervisor_id
):
    """
    Kitchen: 100 flour @ 1.50 delivered, 30 issued, 5 sugar in from Store.
    Store: 10 sugar @ 2.00 delivered, 5 out to Kitchen.
    """
    processor.post_delivery(
        kitchen.id, january.id, "Mill & Co",
        [DeliveryLineInput(flour.id, Decimal("100"), Decimal("1.50"))], test_actor_id,
    )
    processor.post_delivery(
        store.id, january.id, "Sweet Ltd",
        [DeliveryLineInput(sugar.id, Decimal("10"), Decimal("2.00"))], test_actor_id,
    )
    processor.post_issue(
        kitchen.id, january.id, "FOOD", [IssueLineInput(flour.id, Decimal("30"))], test_actor_id
    )
    requested = transfers.create_transfer(
        store.id, kitchen.id, [TransferLineInput(sugar.id, Decimal("5"))], test_actor_id
    )
    transfers.approve_transfer(requested.transfer.id, supervisor_id)
    return january


class TestComponents:
    def test_kitchen_components(self, reconciliations, month_of_activity, kitchen):
        result = reconciliations.get_or_compute(month_of_activity.id, kitchen.id)

        assert result.auto_calculated is True
        r = result.reconciliation
        assert r.opening_stock == Decimal("0.00")
        assert r.receipts == Decimal("150.00")
        assert r.issues == Decimal("45.00")
        assert r.transfers_in == Decimal("10.00")
        assert r.transfers_out == Decimal("0.00")
        assert r.closing_stock == Decimal("115.00")
        assert r.base_consumption == Decimal("0.00")
        assert r.manday_cost is None

    def test_store_components(self, reconciliations, month_of_activity, store):
        r = reconciliations.get_or_compute(month_of_activity.id, store.id).reconciliation

        assert r.receipts == Decimal("20.00")
        assert r.transfers_out == Decimal("10.00")
        assert r.closing_stock == Decimal("10.00")

    def test_transfer_completed_after_period_end_excluded(
        self, reconciliations, transfers, receive, deterministic_clock,
        january, kitchen, store, flour, test_actor_id, supervisor_id,
    ):
        receive(store, flour, "10", "1.00")
        requested = transfers.create_transfer(
            store.id, kitchen.id, [TransferLineInput(flour.id, Decimal("4"))], test_actor_id
        )
        deterministic_clock.set_time(datetime(2024, 2, 2, 8, 0, tzinfo=UTC))
        transfers.approve_transfer(requested.transfer.id, supervisor_id)

        r = reconciliations.get_or_compute(january.id, kitchen.id).reconciliation
        assert r.transfers_in == Decimal("0.00")

    def test_closed_location_uses_snapshot(
        self, reconciliations, period_service, period_manager, make_ready, receive,
        january, kitchen, store, flour,
    ):
        receive(kitchen, flour, "10", "2.00")
        make_ready(january, kitchen, store)
        period_manager.close_period(january.id)
        receive(kitchen, flour, "10", "2.00")

        period = period_service.get_period_orm(january.id)
        components = reconciliations.compute_components(period, kitchen.id)
        assert components.closing_stock == Decimal("20.00")


class TestSaveAdjustments:
    def test_save_and_read_back(self, reconciliations, month_of_activity, kitchen, supervisor_id):
        saved = reconciliations.save_adjustments(
            month_of_activity.id, kitchen.id,
            back_charges="12.00", credits="2.00", condemnations="3.50", other="-0.50",
            saved_by_id=supervisor_id,
        )

        assert saved.adjustments == Decimal("13.00")
        assert saved.consumption == Decimal("13.00")
        assert saved.saved_by_id == supervisor_id

        result = reconciliations.get_or_compute(month_of_activity.id, kitchen.id)
        assert result.auto_calculated is False
        assert result.reconciliation.consumption == Decimal("13.00")
        assert result.reconciliation.credits == Decimal("2.00")

    def test_first_save_freezes_components(
        self, reconciliations, processor, month_of_activity, kitchen, flour,
        test_actor_id, supervisor_id,
    ):
        reconciliations.save_adjustments(month_of_activity.id, kitchen.id, saved_by_id=supervisor_id)
        processor.post_delivery(
            kitchen.id, month_of_activity.id, "Mill & Co",
            [DeliveryLineInput(flour.id, Decimal("10"), Decimal("1.50"))], test_actor_id,
        )

        again = reconciliations.save_adjustments(
            month_of_activity.id, kitchen.id, back_charges="5", saved_by_id=supervisor_id
        )

        assert again.receipts == Decimal("150.00")
        assert again.closing_stock == Decimal("115.00")
        assert again.consumption == Decimal("5.00")

    def test_saver_required(self, reconciliations, january, kitchen):
        with pytest.raises(ValidationError, match="saved_by"):
            reconciliations.save_adjustments(january.id, kitchen.id)

    def test_garbage_adjustment(self, reconciliations, january, kitchen, supervisor_id):
        with pytest.raises(ValidationError, match="other"):
            reconciliations.save_adjustments(
                january.id, kitchen.id, other="n/a", saved_by_id=supervisor_id
            )

    def test_ready_location_cannot_be_resaved(
        self, reconciliations, make_ready, january, kitchen, supervisor_id
    ):
        make_ready(january, kitchen)
        with pytest.raises(PeriodClosedError):
            reconciliations.save_adjustments(january.id, kitchen.id, saved_by_id=supervisor_id)

    def test_manday_cost(self, reconciliations, january, kitchen, supervisor_id, test_actor_id):
        reconciliations.record_pob(
            january.id, kitchen.id,
            [POBEntryInput(date(2024, 1, d), crew_count=10, extra_count=2) for d in (1, 2, 3)],
            test_actor_id,
        )
        saved = reconciliations.save_adjustments(
            january.id, kitchen.id, back_charges="72.00", saved_by_id=supervisor_id
        )

        assert saved.total_mandays == 36
        assert saved.manday_cost == Decimal("2")
        assert saved.display()["manday_cost"] == "2.0000"

    def test_zero_mandays_does_not_block(self, reconciliations, january, kitchen, supervisor_id):
        saved = reconciliations.save_adjustments(january.id, kitchen.id, saved_by_id=supervisor_id)

        assert saved.total_mandays == 0
        assert saved.manday_cost_applicable is False
        assert saved.display()["manday_cost"] is None


class TestPOB:
    def test_upsert_per_date(self, reconciliations, january, kitchen, test_actor_id):
        reconciliations.record_pob(
            january.id, kitchen.id, [POBEntryInput(date(2024, 1, 5), 20, 1)], test_actor_id
        )
        entries = reconciliations.record_pob(
            january.id, kitchen.id, [POBEntryInput(date(2024, 1, 5), 18)], test_actor_id
        )

        assert entries[0].mandays == 18
        assert reconciliations.total_mandays(january.id, kitchen.id) == 18

    def test_date_outside_period(self, reconciliations, january, kitchen, test_actor_id):
        with pytest.raises(ValidationError, match="entry_date"):
            reconciliations.record_pob(
                january.id, kitchen.id, [POBEntryInput(date(2024, 2, 1), 5)], test_actor_id
            )

    @pytest.mark.parametrize("crew", [-1, True, 2.5])
    def test_counts_are_whole_non_negative(
        self, reconciliations, january, kitchen, test_actor_id, crew
    ):
        with pytest.raises(ValidationError, match="crew_count"):
            reconciliations.record_pob(
                january.id, kitchen.id, [POBEntryInput(date(2024, 1, 5), crew)], test_actor_id
            )

    def test_entries_required(self, reconciliations, january, kitchen, test_actor_id):
        with pytest.raises(ValidationError, match="entries"):
            reconciliations.record_pob(january.id, kitchen.id, [], test_actor_id)

    def test_locations_counted_separately(
        self, reconciliations, january, kitchen, store, test_actor_id
    ):
        reconciliations.record_pob(
            january.id, kitchen.id, [POBEntryInput(date(2024, 1, 5), 7)], test_actor_id
        )
        assert reconciliations.total_mandays(january.id, store.id) == 0
