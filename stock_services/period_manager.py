"""
stock_services.period_manager -- Period readiness, close and roll-forward.

Responsibility:
    Drives an accounting period through its life: open it, collect each
    location's readiness, close it by snapshotting every location's stock,
    and roll it forward into the next period.  Every public method is one
    unit of work.

Architecture position:
    Services -- stateful orchestration over kernel services.
    Composes ``PeriodService`` (status and lifecycle), ``StockLedger``
    (closing valuation) and ``PriceBookService`` (price carry-over).

Invariants enforced:
    - A location becomes READY only while the period is OPEN and only once
      its reconciliation has been saved.  Zero mandays does not block.
    - Close is all-or-nothing: if any location is not READY the error names
      every such location and nothing changes.
    - A closed location's snapshot and closing value are written once and
      never touched again.
    - Roll-forward starts the day after the closed period ends and seeds
      each location's opening value from its closing value.

Failure modes:
    - PeriodClosedError: readiness change on a period that is not OPEN.
    - ReconciliationNotCompletedError: READY requested before a
      reconciliation was saved.
    - LocationsNotReadyError: close with locations not READY.
    - PeriodNotClosedError: roll-forward from a period that is not CLOSED.
    - InvalidStatusTransitionError: any status change outside the workflows.

Audit relevance:
    ``period_closed`` is logged with the per-location closing values and
    the total; ``period_rolled_forward`` links source and new period.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.db.unit_of_work import UnitOfWork
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import PeriodCloseResult, PeriodInfo, PeriodLocationInfo
from stock_kernel.domain.values import ZERO, round_money
from stock_kernel.domain.workflow import require_transition
from stock_kernel.domain.period_workflows import PERIOD_WORKFLOW
from stock_kernel.exceptions import (
    InvalidStatusTransitionError,
    PeriodClosedError,
    PeriodNotClosedError,
    ReconciliationNotCompletedError,
    ValidationError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.period import PeriodLocationStatus, PeriodStatus
from stock_kernel.models.reconciliation import Reconciliation
from stock_kernel.services.period_service import PeriodService
from stock_kernel.services.price_book_service import PriceBookService
from stock_services.stock_ledger import StockLedger

logger = get_logger("services.period_manager")

# Statuses from which a single close_period call can reach CLOSED
_CLOSABLE = (
    PeriodStatus.OPEN.value,
    PeriodStatus.PENDING_CLOSE.value,
    PeriodStatus.APPROVED.value,
)


def _month_end(day: date) -> date:
    return date(day.year, day.month, calendar.monthrange(day.year, day.month)[1])


class PeriodManager:
    """
    Period lifecycle orchestration.

    Contract:
        Each public method commits on success and rolls back on any
        failure (``auto_commit=True``).  Pass ``auto_commit=False`` to
        compose it inside a caller's unit of work.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: StockLedger | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._uow = UnitOfWork(session, auto_commit=auto_commit)
        self._periods = PeriodService(session, self._clock)
        self._prices = PriceBookService(session, self._clock)
        self._ledger = ledger or StockLedger(session, self._clock)

    # =========================================================================
    # Open
    # =========================================================================

    def create_period(self, name: str, start_date: date, end_date: date) -> PeriodInfo:
        """Create a DRAFT period so its prices can be set before opening."""
        with self._uow.atomic():
            return self._periods.create_period(name, start_date, end_date)

    def open_period(self, name: str, start_date: date, end_date: date) -> PeriodInfo:
        """
        Create a period and open it in one step.

        Postconditions:
            - The period is OPEN with ``prices_locked_at`` set.
            - Every active location has an OPEN row whose opening value is
              its closing value from the previous period (0 if none).
        """
        with self._uow.atomic():
            created = self._periods.create_period(name, start_date, end_date)
            return self._periods.open_period(created.id)

    def activate_period(self, period_id: UUID) -> PeriodInfo:
        """Open an existing DRAFT period (e.g. one created by roll-forward)."""
        with self._uow.atomic():
            return self._periods.open_period(period_id)

    # =========================================================================
    # Readiness
    # =========================================================================

    def mark_location_ready(self, period_id: UUID, location_id: UUID) -> PeriodLocationInfo:
        """OPEN -> READY for one location; requires a saved reconciliation."""
        with LogContext.bind(period_id=period_id, location_id=location_id), self._uow.atomic():
            period = self._periods.get_period_for_update(period_id)
            if not period.is_open:
                raise PeriodClosedError(period.name, period.status)

            period_location = self._periods.get_period_location_for_update(period_id, location_id)

            saved = self._session.execute(
                select(Reconciliation.id).where(
                    Reconciliation.period_id == period_id,
                    Reconciliation.location_id == location_id,
                )
            ).scalar_one_or_none()
            if saved is None:
                raise ReconciliationNotCompletedError(period.name, period_location.location.name)

            self._periods.transition_location(period_location, PeriodLocationStatus.READY)
            period_location.ready_at = self._clock.now_utc()
            self._session.flush()

            logger.info("period_location_ready", extra={
                "location_name": period_location.location.name,
            })
            return period_location.to_dto()

    def mark_location_unready(self, period_id: UUID, location_id: UUID) -> PeriodLocationInfo:
        """READY -> OPEN while the period is still OPEN."""
        with LogContext.bind(period_id=period_id, location_id=location_id), self._uow.atomic():
            period = self._periods.get_period_for_update(period_id)
            if not period.is_open:
                raise PeriodClosedError(period.name, period.status)

            period_location = self._periods.get_period_location_for_update(period_id, location_id)
            self._periods.transition_location(period_location, PeriodLocationStatus.OPEN)
            period_location.ready_at = None
            self._session.flush()

            logger.info("period_location_unready", extra={
                "location_name": period_location.location.name,
            })
            return period_location.to_dto()

    def request_close(self, period_id: UUID) -> PeriodInfo:
        with self._uow.atomic():
            return self._periods.request_close(period_id)

    def reject_close(self, period_id: UUID) -> PeriodInfo:
        with self._uow.atomic():
            return self._periods.reject_close(period_id)

    # =========================================================================
    # Close
    # =========================================================================

    def close_period(self, period_id: UUID) -> PeriodCloseResult:
        """
        Close a period in one atomic step.

        Accepts an OPEN, PENDING_CLOSE or APPROVED period and walks it
        through the remaining workflow steps to CLOSED.

        Postconditions:
            - Every location row holds its stock snapshot, closing value
              and closed_at, and is CLOSED.
            - The period is CLOSED with closed_at set.

        Raises:
            LocationsNotReadyError: some locations are not READY; nothing
                is changed.
            InvalidStatusTransitionError: the period is DRAFT or CLOSED.
        """
        with LogContext.bind(period_id=period_id), self._uow.atomic():
            period = self._periods.get_period_for_update(period_id)
            if period.status not in _CLOSABLE:
                raise InvalidStatusTransitionError(
                    f"period {period.name}", period.status, PeriodStatus.CLOSED.value
                )
            if period.status == PeriodStatus.OPEN.value:
                require_transition(
                    PERIOD_WORKFLOW, period.status, PeriodStatus.PENDING_CLOSE,
                    f"period {period.name}",
                )
            self._periods.require_all_ready(period)

            now = self._clock.now_utc()
            closed_locations = []
            for summary in self._periods.get_period_locations(period_id):
                period_location = self._periods.get_period_location_for_update(
                    period_id, summary.location_id
                )
                valuation = self._ledger.valuation(period_location.location_id)
                period_location.snapshot = valuation.to_snapshot(now)
                period_location.closing_value = valuation.total_value
                self._periods.transition_location(period_location, PeriodLocationStatus.CLOSED)
                period_location.closed_at = now
                closed_locations.append(period_location)

            if period.status == PeriodStatus.OPEN.value:
                self._periods.transition(period, PeriodStatus.PENDING_CLOSE)
                period.close_requested_at = now
            if period.status == PeriodStatus.PENDING_CLOSE.value:
                self._periods.transition(period, PeriodStatus.APPROVED)
            self._periods.transition(period, PeriodStatus.CLOSED)
            period.closed_at = now
            self._session.flush()

            total = round_money(sum((pl.closing_value for pl in closed_locations), ZERO))
            logger.info("period_closed", extra={
                "period_name": period.name,
                "locations": {
                    pl.location.name: pl.closing_value for pl in closed_locations
                },
                "total_closing_value": total,
            })
            return PeriodCloseResult(
                period=period.to_dto(),
                period_locations=tuple(pl.to_dto() for pl in closed_locations),
            )

    # =========================================================================
    # Roll forward
    # =========================================================================

    def roll_forward(
        self,
        period_id: UUID,
        name: str | None = None,
        end_date: date | None = None,
        copy_prices: bool = True,
        actor_id: UUID | None = None,
    ) -> PeriodInfo:
        """
        Create the DRAFT period that follows a CLOSED one.

        The new period starts the day after the source ends and, unless
        told otherwise, ends on the last day of that month and is named
        after it ("February 2024").  A source ending the day before a month
        end rolls into a period that runs to the end of the following month
        and is named after that month.  Each active location starts with the
        source's closing value; prices of active items are copied over
        when ``copy_prices`` is set.
        """
        with LogContext.bind(period_id=period_id, actor_id=actor_id), self._uow.atomic():
            source = self._periods.get_period_for_update(period_id)
            if not source.is_closed:
                raise PeriodNotClosedError(source.name, source.status)

            start = source.end_date + timedelta(days=1)
            named_after = start
            if end_date is None:
                end_date = _month_end(start)
                if end_date <= start:
                    # source ended the day before a month end
                    end_date = _month_end(end_date + timedelta(days=1))
                    named_after = end_date
            if end_date <= start:
                raise ValidationError(
                    "end_date", f"must be after start_date ({start}), got {end_date}"
                )
            if name is None:
                name = f"{calendar.month_name[named_after.month]} {named_after.year}"

            created = self._periods.create_period(
                name,
                start,
                end_date,
                opening_values=self._periods.closing_values(source.id),
                seed_locations=True,
            )
            copied = 0
            if copy_prices:
                copied = self._prices.copy_prices(created.id, source.id, actor_id)

            logger.info("period_rolled_forward", extra={
                "source_period_name": source.name,
                "new_period_id": str(created.id),
                "new_period_name": created.name,
                "prices_copied": copied,
            })
            return created

    # =========================================================================
    # Reads
    # =========================================================================

    def get_current_period(self) -> PeriodInfo | None:
        return self._periods.get_current_period()

    def get_period(self, period_id: UUID) -> PeriodInfo:
        return self._periods.get_period(period_id)

    def get_period_locations(self, period_id: UUID) -> list[PeriodLocationInfo]:
        return self._periods.get_period_locations(period_id)
