"""
PeriodService -- accounting period lifecycle and posting validation.

Responsibility:
    Creates periods, moves them through
    DRAFT -> OPEN -> PENDING_CLOSE -> APPROVED -> CLOSED, maintains the
    per-location rows of each period, and validates that postings target
    an OPEN period at an OPEN location.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the transaction processor and transfer service to validate
    postings, and by ``stock_services.period_manager`` to drive readiness,
    close and roll-forward.

Invariants enforced:
    - Date ranges never overlap (start1 <= end2 AND start2 <= end1).
    - At most one period is OPEN at any time.
    - Every status change goes through ``require_transition`` against
      ``PERIOD_WORKFLOW`` / ``PERIOD_LOCATION_WORKFLOW``.
    - Opening a period stamps ``prices_locked_at``; the price book is
      read-only from then on.
    - A location's opening value is the previous period's closing value
      for that location, or 0.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - PeriodNotFoundError: unknown period id.
    - PeriodOverlapError: new date range intersects an existing period.
    - PeriodAlreadyOpenError: another period is OPEN.
    - PeriodClosedError: posting into a period or location that is not OPEN.
    - LocationsNotReadyError: close requested with locations not READY.
    - InvalidStatusTransitionError: status change not in the workflow.
    - ValidationError: blank name or end_date not after start_date.

Audit relevance:
    Creation, opening and close requests are logged with period_id,
    period name and timestamps.  Posting rejections are logged at WARNING.
"""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import PeriodInfo, PeriodLocationInfo
from stock_kernel.domain.period_workflows import PERIOD_LOCATION_WORKFLOW, PERIOD_WORKFLOW
from stock_kernel.domain.values import ZERO
from stock_kernel.domain.workflow import require_transition
from stock_kernel.exceptions import (
    LocationNotFoundError,
    LocationsNotReadyError,
    PeriodAlreadyOpenError,
    PeriodClosedError,
    PeriodNotFoundError,
    PeriodOverlapError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.location import Location
from stock_kernel.models.period import (
    Period,
    PeriodLocation,
    PeriodLocationStatus,
    PeriodStatus,
)
from stock_kernel.services.base import BaseService

logger = get_logger("services.period")

# Status reported when a location has no row in the period
NOT_OPENED = "NOT_OPENED"


class PeriodService(BaseService):
    """
    Manages accounting periods and their locations.

    Contract:
        Public read methods return frozen DTOs.  ``get_period_for_update``
        and ``get_period_location_for_update`` return locked ORM rows for
        callers in the same unit of work.

    Non-goals:
        - Does NOT snapshot stock or compute reconciliations; that is the
          period manager in ``stock_services``.
    """

    # =========================================================================
    # Creation
    # =========================================================================

    def create_period(
        self,
        name: str,
        start_date: date,
        end_date: date,
        opening_values: Mapping[UUID, Decimal] | None = None,
        seed_locations: bool = False,
    ) -> PeriodInfo:
        """
        Create a DRAFT period.

        With ``seed_locations`` the period's location rows are created
        immediately, using ``opening_values`` where given.  Otherwise they
        are created when the period opens.

        Raises:
            ValidationError: blank name or ``end_date <= start_date``.
            PeriodOverlapError: the range intersects an existing period.
        """
        if not name or not name.strip():
            raise ValidationError("name", "must not be blank")
        if end_date <= start_date:
            raise ValidationError(
                "end_date", f"must be after start_date ({start_date}), got {end_date}"
            )

        self._validate_no_overlap(name, start_date, end_date)

        period = Period(
            name=name.strip(),
            start_date=start_date,
            end_date=end_date,
            status=PeriodStatus.DRAFT.value,
            created_at=self.clock.now_utc(),
        )
        self.session.add(period)
        self.session.flush()

        if seed_locations:
            self.ensure_period_locations(period, opening_values)

        logger.info(
            "period_created",
            extra={
                "period_id": str(period.id),
                "period_name": period.name,
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )
        return period.to_dto()

    def _validate_no_overlap(self, name: str, start_date: date, end_date: date) -> None:
        overlapping = self.session.execute(
            select(Period)
            .where(
                Period.start_date <= end_date,
                Period.end_date >= start_date,
            )
            .limit(1)
        ).scalar_one_or_none()

        if overlapping is not None:
            raise PeriodOverlapError(
                new_period_name=name,
                existing_period_name=overlapping.name,
                overlap_start=str(max(start_date, overlapping.start_date)),
                overlap_end=str(min(end_date, overlapping.end_date)),
            )

    def ensure_period_locations(
        self,
        period: Period,
        opening_values: Mapping[UUID, Decimal] | None = None,
    ) -> list[PeriodLocation]:
        """
        Create an OPEN row for every active location that lacks one.

        Existing rows are left alone, so values seeded at roll-forward
        survive the later open.
        """
        if opening_values is None:
            opening_values = self.previous_closing_values(period.start_date)

        existing = {
            pl.location_id
            for pl in self.session.execute(
                select(PeriodLocation).where(PeriodLocation.period_id == period.id)
            ).scalars()
        }
        locations = self.session.execute(
            select(Location).where(Location.is_active.is_(True)).order_by(Location.code)
        ).scalars().all()

        created = []
        for location in locations:
            if location.id in existing:
                continue
            row = PeriodLocation(
                period_id=period.id,
                location_id=location.id,
                status=PeriodLocationStatus.OPEN.value,
                opening_value=opening_values.get(location.id, ZERO),
            )
            self.session.add(row)
            created.append(row)
        self.session.flush()
        return created

    def previous_closing_values(self, before: date) -> dict[UUID, Decimal]:
        """Closing value per location of the latest CLOSED period ending before ``before``."""
        previous = self.session.execute(
            select(Period)
            .where(
                Period.status == PeriodStatus.CLOSED.value,
                Period.end_date < before,
            )
            .order_by(Period.end_date.desc())
            .limit(1)
        ).scalar_one_or_none()
        if previous is None:
            return {}
        return self.closing_values(previous.id)

    def closing_values(self, period_id: UUID) -> dict[UUID, Decimal]:
        rows = self.session.execute(
            select(PeriodLocation.location_id, PeriodLocation.closing_value).where(
                PeriodLocation.period_id == period_id
            )
        ).all()
        return {
            location_id: value for location_id, value in rows if value is not None
        }

    # =========================================================================
    # Transitions
    # =========================================================================

    def open_period(self, period_id: UUID) -> PeriodInfo:
        """
        DRAFT -> OPEN.  Creates missing location rows and locks the prices.

        Raises:
            PeriodAlreadyOpenError: another period is OPEN.
            InvalidStatusTransitionError: the period is not DRAFT.
        """
        period = self.get_period_for_update(period_id)
        require_transition(PERIOD_WORKFLOW, period.status, PeriodStatus.OPEN, self._entity(period))

        already_open = self.session.execute(
            select(Period)
            .where(Period.status == PeriodStatus.OPEN.value, Period.id != period.id)
            .limit(1)
        ).scalar_one_or_none()
        if already_open is not None:
            raise PeriodAlreadyOpenError(already_open.name)

        self.ensure_period_locations(period)
        now = self.clock.now_utc()
        period.status = PeriodStatus.OPEN.value
        period.prices_locked_at = now
        self.session.flush()

        logger.info("period_opened", extra={
            "period_id": str(period.id),
            "period_name": period.name,
            "prices_locked_at": now,
        })
        return period.to_dto()

    def request_close(self, period_id: UUID) -> PeriodInfo:
        """OPEN -> PENDING_CLOSE, once every location is READY."""
        period = self.get_period_for_update(period_id)
        require_transition(
            PERIOD_WORKFLOW, period.status, PeriodStatus.PENDING_CLOSE, self._entity(period)
        )
        self.require_all_ready(period)

        period.status = PeriodStatus.PENDING_CLOSE.value
        period.close_requested_at = self.clock.now_utc()
        self.session.flush()

        logger.info("period_close_requested", extra={
            "period_id": str(period.id),
            "period_name": period.name,
        })
        return period.to_dto()

    def reject_close(self, period_id: UUID) -> PeriodInfo:
        """PENDING_CLOSE -> OPEN."""
        period = self.get_period_for_update(period_id)
        require_transition(PERIOD_WORKFLOW, period.status, PeriodStatus.OPEN, self._entity(period))

        period.status = PeriodStatus.OPEN.value
        period.close_requested_at = None
        self.session.flush()

        logger.info("period_close_rejected", extra={
            "period_id": str(period.id),
            "period_name": period.name,
        })
        return period.to_dto()

    def transition(self, period: Period, target: PeriodStatus) -> None:
        """Move a locked period one step along the workflow."""
        require_transition(PERIOD_WORKFLOW, period.status, target, self._entity(period))
        period.status = target.value
        self.session.flush()

    def transition_location(
        self,
        period_location: PeriodLocation,
        target: PeriodLocationStatus,
    ) -> None:
        """Move a locked period location one step along its workflow."""
        require_transition(
            PERIOD_LOCATION_WORKFLOW,
            period_location.status,
            target,
            f"period location {period_location.location.name}",
        )
        period_location.status = target.value
        self.session.flush()

    def not_ready_locations(self, period: Period) -> list[str]:
        """Names of the period's locations that are not READY, by name."""
        rows = self.session.execute(
            select(PeriodLocation, Location)
            .join(Location, Location.id == PeriodLocation.location_id)
            .where(PeriodLocation.period_id == period.id)
        ).all()
        return sorted(
            location.name
            for pl, location in rows
            if pl.status != PeriodLocationStatus.READY.value
        )

    def require_all_ready(self, period: Period) -> None:
        not_ready = self.not_ready_locations(period)
        if not_ready:
            logger.warning("period_locations_not_ready", extra={
                "period_id": str(period.id),
                "locations": not_ready,
            })
            raise LocationsNotReadyError(period.name, not_ready)

    # =========================================================================
    # Posting validation
    # =========================================================================

    def require_open_for_posting(self, period_id: UUID, location_id: UUID) -> Period:
        """
        Return the period if postings at ``location_id`` are allowed.

        Raises:
            PeriodClosedError: the period is not OPEN, or the location's row
                in it is not OPEN (READY or CLOSED locations take no
                further postings).
        """
        period = self.get_period_orm(period_id)
        if not period.is_open:
            logger.warning("posting_rejected_period_not_open", extra={
                "period_id": str(period_id),
                "status": period.status,
            })
            raise PeriodClosedError(period.name, period.status)

        location = self.session.get(Location, location_id)
        if location is None:
            raise LocationNotFoundError(str(location_id))

        period_location = self._find_period_location(period_id, location_id)
        status = period_location.status if period_location is not None else NOT_OPENED
        if status != PeriodLocationStatus.OPEN.value:
            logger.warning("posting_rejected_location_not_open", extra={
                "period_id": str(period_id),
                "location_id": str(location_id),
                "status": status,
            })
            raise PeriodClosedError(period.name, status, location.name)
        return period

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_period(self, period_id: UUID) -> PeriodInfo:
        return self.get_period_orm(period_id).to_dto()

    def get_current_period(self) -> PeriodInfo | None:
        """The OPEN period, if any."""
        period = self.session.execute(
            select(Period).where(Period.status == PeriodStatus.OPEN.value).limit(1)
        ).scalar_one_or_none()
        return period.to_dto() if period is not None else None

    def list_periods(self) -> list[PeriodInfo]:
        periods = self.session.execute(
            select(Period).order_by(Period.start_date)
        ).scalars().all()
        return [p.to_dto() for p in periods]

    def get_period_locations(self, period_id: UUID) -> list[PeriodLocationInfo]:
        self.get_period_orm(period_id)
        rows = self.session.execute(
            select(PeriodLocation)
            .join(Location, Location.id == PeriodLocation.location_id)
            .where(PeriodLocation.period_id == period_id)
            .order_by(Location.name)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def get_period_orm(self, period_id: UUID) -> Period:
        period = self.session.get(Period, period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def get_period_for_update(self, period_id: UUID) -> Period:
        """Period row with a lock for concurrent mutation."""
        period = self.session.execute(
            select(Period)
            .where(Period.id == period_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def get_period_location_for_update(
        self,
        period_id: UUID,
        location_id: UUID,
    ) -> PeriodLocation:
        row = self.session.execute(
            select(PeriodLocation)
            .where(
                PeriodLocation.period_id == period_id,
                PeriodLocation.location_id == location_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise LocationNotFoundError(str(location_id))
        return row

    def _find_period_location(self, period_id: UUID, location_id: UUID) -> PeriodLocation | None:
        return self.session.execute(
            select(PeriodLocation).where(
                PeriodLocation.period_id == period_id,
                PeriodLocation.location_id == location_id,
            )
        ).scalar_one_or_none()

    @staticmethod
    def _entity(period: Period) -> str:
        return f"period {period.name}"
