"""
Reconciliation Module Service (``stock_modules.reconciliation.service``).

Responsibility
--------------
Gathers the ledger components of a (period, location), applies manual
adjustments through ``ReconciliationCalculator``, and saves the result.
Also records the daily persons-on-board counts that give the manday
denominator.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

- opening:        the location's opening value in the period.
- receipts:       sum of posted delivery totals.
- issues:         sum of posted issue totals.
- transfers in/out: COMPLETED transfers whose transfer_date lies within
                  the period dates.
- closing:        the snapshot value once the location is CLOSED,
                  otherwise the live ledger valuation.

Invariants
----------
- A saved reconciliation is authoritative: reads return it unchanged.
- The first save freezes the components computed at that moment; later
  saves change only the adjustments and what derives from them.
- Saving and POB entry require an OPEN period and an OPEN location.

Failure Modes
-------------
- ``PeriodClosedError`` -- period or location not OPEN.
- ``ValidationError`` -- bad adjustment, negative POB count, POB date
  outside the period.
- ``PeriodNotFoundError`` / ``LocationNotFoundError``.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from stock_engines.reconciliation import (
    Adjustments,
    LedgerComponents,
    ReconciliationCalculator,
    ReconciliationFigures,
)
from stock_kernel.db.base import quantize_storage
from stock_kernel.db.unit_of_work import UnitOfWork
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.values import ZERO, round_money, sum_decimals
from stock_kernel.exceptions import LocationNotFoundError, ValidationError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.location import Location
from stock_kernel.models.period import Period, PeriodLocation, PeriodLocationStatus
from stock_kernel.models.reconciliation import POBEntry, Reconciliation
from stock_kernel.services.period_service import PeriodService
from stock_modules.reconciliation.models import (
    POBEntryInfo,
    POBEntryInput,
    ReconciliationInfo,
    ReconciliationResult,
)
from stock_modules.transactions.orm import DeliveryModel, IssueModel
from stock_modules.transfers.models import TransferStatus
from stock_modules.transfers.orm import TransferModel
from stock_services.stock_ledger import StockLedger

logger = get_logger("modules.reconciliation.service")


class ReconciliationService:
    """
    Computes, saves and reads reconciliations.

    Contract
    --------
    Writes commit on success and roll back on failure unless
    ``auto_commit=False``.  The saver's supervisor capability is checked
    by the caller.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._uow = UnitOfWork(session, auto_commit=auto_commit)
        self._periods = PeriodService(session, self._clock)
        self._ledger = StockLedger(session, self._clock)
        self._calculator = ReconciliationCalculator()

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def get_or_compute(self, period_id: UUID, location_id: UUID) -> ReconciliationResult:
        """The saved reconciliation, or a fresh computation with no adjustments."""
        period = self._periods.get_period_orm(period_id)
        self._require_location(location_id)

        saved = self._find_saved(period_id, location_id)
        if saved is not None:
            return ReconciliationResult(reconciliation=self._to_info(saved), auto_calculated=False)

        figures = self._calculator.calculate(
            self.compute_components(period, location_id),
            Adjustments(),
            self.total_mandays(period_id, location_id),
        )
        return ReconciliationResult(
            reconciliation=ReconciliationInfo.from_figures(period_id, location_id, figures),
            auto_calculated=True,
        )

    def save_adjustments(
        self,
        period_id: UUID,
        location_id: UUID,
        back_charges: Decimal | int | str = ZERO,
        credits: Decimal | int | str = ZERO,
        condemnations: Decimal | int | str = ZERO,
        other: Decimal | int | str = ZERO,
        saved_by_id: UUID | None = None,
    ) -> ReconciliationInfo:
        """
        Save the manual adjustments and the resulting consumption.

        Postconditions:
            - consumption = opening + receipts + transfers_in
              - transfers_out - issues - closing
              + back_charges - credits + condemnations + other
            - manday_cost is consumption / mandays, or None with no mandays.
        """
        if saved_by_id is None:
            raise ValidationError("saved_by", "is required")
        adjustments = Adjustments.of(back_charges, credits, condemnations, other)

        with LogContext.bind(period_id=period_id, location_id=location_id, actor_id=saved_by_id), \
                self._uow.atomic():
            period = self._periods.require_open_for_posting(period_id, location_id)
            saved = self._find_saved(period_id, location_id, for_update=True)

            if saved is None:
                components = self.compute_components(period, location_id)
            else:
                components = LedgerComponents(
                    opening_stock=saved.opening_stock,
                    receipts=saved.receipts,
                    transfers_in=saved.transfers_in,
                    transfers_out=saved.transfers_out,
                    issues=saved.issues,
                    closing_stock=saved.closing_stock,
                )

            figures = self._calculator.calculate(
                components, adjustments, self.total_mandays(period_id, location_id)
            )

            now = self._clock.now_utc()
            first_save = saved is None
            if first_save:
                saved = Reconciliation(
                    period_id=period_id,
                    location_id=location_id,
                    created_at=now,
                )
                self._session.add(saved)
                self._apply_components(saved, components)
            self._apply_figures(saved, figures)
            saved.saved_by_id = saved_by_id
            saved.last_updated = now
            self._session.flush()
            info = self._to_info(saved)

        logger.info("reconciliation_saved", extra={
            "first_save": first_save,
            "consumption": info.consumption,
            "adjustments": info.adjustments,
            "total_mandays": info.total_mandays,
        })
        return info

    def compute_components(self, period: Period, location_id: UUID) -> LedgerComponents:
        """Ledger-derived components of a (period, location), as money amounts."""
        period_location = self._session.execute(
            select(PeriodLocation).where(
                PeriodLocation.period_id == period.id,
                PeriodLocation.location_id == location_id,
            )
        ).scalar_one_or_none()

        opening = period_location.opening_value if period_location is not None else ZERO

        receipts = sum_decimals(self._session.execute(
            select(DeliveryModel.total_amount).where(
                DeliveryModel.period_id == period.id,
                DeliveryModel.location_id == location_id,
            )
        ).scalars())
        issues = sum_decimals(self._session.execute(
            select(IssueModel.total_value).where(
                IssueModel.period_id == period.id,
                IssueModel.location_id == location_id,
            )
        ).scalars())

        transfers_in = ZERO
        transfers_out = ZERO
        rows = self._session.execute(
            select(TransferModel).where(
                TransferModel.status == TransferStatus.COMPLETED.value,
                TransferModel.transfer_date >= period.start_date,
                TransferModel.transfer_date <= period.end_date,
                or_(
                    TransferModel.from_location_id == location_id,
                    TransferModel.to_location_id == location_id,
                ),
            )
        ).scalars()
        for transfer in rows:
            if transfer.to_location_id == location_id:
                transfers_in += transfer.total_value
            else:
                transfers_out += transfer.total_value

        if (
            period_location is not None
            and period_location.status == PeriodLocationStatus.CLOSED.value
            and period_location.closing_value is not None
        ):
            closing = period_location.closing_value
        else:
            closing = self._ledger.valuation(location_id).total_value

        return LedgerComponents(
            opening_stock=round_money(opening),
            receipts=round_money(receipts),
            transfers_in=round_money(transfers_in),
            transfers_out=round_money(transfers_out),
            issues=round_money(issues),
            closing_stock=round_money(closing),
        )

    # =========================================================================
    # POB / mandays
    # =========================================================================

    def record_pob(
        self,
        period_id: UUID,
        location_id: UUID,
        entries: Sequence[POBEntryInput],
        entered_by_id: UUID,
    ) -> list[POBEntryInfo]:
        """Upsert daily persons-on-board counts, one row per date."""
        if not entries:
            raise ValidationError("entries", "at least one entry is required")

        with LogContext.bind(period_id=period_id, location_id=location_id, actor_id=entered_by_id), \
                self._uow.atomic():
            period = self._periods.require_open_for_posting(period_id, location_id)
            now = self._clock.now_utc()

            rows = []
            for entry in entries:
                crew = self._require_count(entry.crew_count, "crew_count")
                extra = self._require_count(entry.extra_count, "extra_count")
                if not period.contains(entry.entry_date):
                    raise ValidationError(
                        "entry_date",
                        f"{entry.entry_date} is outside {period.start_date}..{period.end_date}",
                    )

                row = self._session.execute(
                    select(POBEntry).where(
                        POBEntry.period_id == period_id,
                        POBEntry.location_id == location_id,
                        POBEntry.entry_date == entry.entry_date,
                    )
                ).scalar_one_or_none()
                if row is None:
                    row = POBEntry(
                        period_id=period_id,
                        location_id=location_id,
                        entry_date=entry.entry_date,
                        entered_by_id=entered_by_id,
                        entered_at=now,
                    )
                    self._session.add(row)
                else:
                    row.updated_at = now
                row.crew_count = crew
                row.extra_count = extra
                rows.append(row)
            self._session.flush()

        logger.info("pob_recorded", extra={"entry_count": len(rows)})
        return [
            POBEntryInfo(
                period_id=row.period_id,
                location_id=row.location_id,
                entry_date=row.entry_date,
                crew_count=row.crew_count,
                extra_count=row.extra_count,
            )
            for row in rows
        ]

    def total_mandays(self, period_id: UUID, location_id: UUID) -> int:
        """Sum of crew and extra counts over the period."""
        rows = self._session.execute(
            select(POBEntry.crew_count, POBEntry.extra_count).where(
                POBEntry.period_id == period_id,
                POBEntry.location_id == location_id,
            )
        ).all()
        return sum(crew + extra for crew, extra in rows)

    # =========================================================================
    # Internals
    # =========================================================================

    def _find_saved(
        self,
        period_id: UUID,
        location_id: UUID,
        for_update: bool = False,
    ) -> Reconciliation | None:
        stmt = select(Reconciliation).where(
            Reconciliation.period_id == period_id,
            Reconciliation.location_id == location_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self._session.execute(stmt).scalar_one_or_none()

    def _require_location(self, location_id: UUID) -> Location:
        location = self._session.get(Location, location_id)
        if location is None:
            raise LocationNotFoundError(str(location_id))
        return location

    @staticmethod
    def _require_count(value: int, field: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(field, f"must be a whole number, got {value!r}")
        if value < 0:
            raise ValidationError(field, f"must not be negative, got {value}")
        return value

    @staticmethod
    def _apply_components(row: Reconciliation, components: LedgerComponents) -> None:
        row.opening_stock = quantize_storage(components.opening_stock)
        row.receipts = quantize_storage(components.receipts)
        row.transfers_in = quantize_storage(components.transfers_in)
        row.transfers_out = quantize_storage(components.transfers_out)
        row.issues = quantize_storage(components.issues)
        row.closing_stock = quantize_storage(components.closing_stock)

    @staticmethod
    def _apply_figures(row: Reconciliation, figures: ReconciliationFigures) -> None:
        a = figures.adjustments
        row.back_charges = quantize_storage(a.back_charges)
        row.credits = quantize_storage(a.credits)
        row.condemnations = quantize_storage(a.condemnations)
        row.other = quantize_storage(a.other)
        row.adjustments = quantize_storage(figures.total_adjustments)
        row.consumption = quantize_storage(figures.consumption)
        row.total_mandays = figures.total_mandays
        row.manday_cost = (
            quantize_storage(figures.manday_cost) if figures.manday_cost is not None else None
        )

    @staticmethod
    def _to_info(row: Reconciliation) -> ReconciliationInfo:
        return ReconciliationInfo(
            period_id=row.period_id,
            location_id=row.location_id,
            opening_stock=row.opening_stock,
            receipts=row.receipts,
            transfers_in=row.transfers_in,
            transfers_out=row.transfers_out,
            issues=row.issues,
            closing_stock=row.closing_stock,
            back_charges=row.back_charges,
            credits=row.credits,
            condemnations=row.condemnations,
            other=row.other,
            adjustments=row.adjustments,
            consumption=row.consumption,
            total_mandays=row.total_mandays,
            manday_cost=row.manday_cost,
            saved_by_id=row.saved_by_id,
            last_updated=row.last_updated,
        )
