"""
Module: stock_kernel.models.period
Responsibility: ORM models for accounting periods and each location's
    standing within a period (readiness, opening/closing valuation, and the
    closing stock snapshot).
Architecture position: Kernel > Models.  Mutated through
    stock_kernel.services.period_service.PeriodService and the period
    manager; status changes are checked against the tables in
    stock_kernel.domain.period_workflows.

Invariants enforced:
    - end_date > start_date (CHECK constraint and service validation).
    - One PeriodLocation per (period, location).
    - snapshot and closing_value are written once, at close, and never
      change afterwards.

Failure modes:
    - IntegrityError on a duplicate (period, location) row.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base
from stock_kernel.domain.dtos import PeriodInfo, PeriodLocationInfo
from stock_kernel.domain.values import ZERO
from stock_kernel.models.location import Location


class PeriodStatus(str, Enum):
    """Accounting period lifecycle."""

    DRAFT = "DRAFT"
    OPEN = "OPEN"
    PENDING_CLOSE = "PENDING_CLOSE"
    APPROVED = "APPROVED"
    CLOSED = "CLOSED"


class PeriodLocationStatus(str, Enum):
    """A location's readiness within a period."""

    OPEN = "OPEN"
    READY = "READY"
    CLOSED = "CLOSED"


class Period(Base):
    """A bounded accounting interval, typically one month."""

    __tablename__ = "periods"

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="chk_period_dates"),
        Index("idx_period_status", "status"),
        Index("idx_period_dates", "start_date", "end_date"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PeriodStatus.DRAFT.value
    )
    prices_locked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    close_requested_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(nullable=True)

    period_locations: Mapped[list["PeriodLocation"]] = relationship(
        back_populates="period",
        order_by="PeriodLocation.id",
    )

    @property
    def is_open(self) -> bool:
        return self.status == PeriodStatus.OPEN.value

    @property
    def is_closed(self) -> bool:
        return self.status == PeriodStatus.CLOSED.value

    @property
    def prices_locked(self) -> bool:
        """Prices lock when the period first opens and stay locked."""
        return self.status != PeriodStatus.DRAFT.value

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def to_dto(self) -> PeriodInfo:
        return PeriodInfo(
            id=self.id,
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            status=self.status,
            prices_locked_at=self.prices_locked_at,
            closed_at=self.closed_at,
        )

    def __repr__(self) -> str:
        return f"<Period {self.name} [{self.status}]>"


class PeriodLocation(Base):
    """One location's status and valuation within one period."""

    __tablename__ = "period_locations"

    __table_args__ = (
        UniqueConstraint("period_id", "location_id", name="uq_period_location"),
        Index("idx_period_location_status", "status"),
    )

    period_id: Mapped[UUID] = mapped_column(ForeignKey("periods.id"), nullable=False)
    location_id: Mapped[UUID] = mapped_column(ForeignKey("locations.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PeriodLocationStatus.OPEN.value
    )
    opening_value: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    closing_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ready_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    period: Mapped[Period] = relationship(back_populates="period_locations")
    location: Mapped[Location] = relationship()

    def to_dto(self) -> PeriodLocationInfo:
        return PeriodLocationInfo(
            period_id=self.period_id,
            location_id=self.location_id,
            location_name=self.location.name,
            status=self.status,
            opening_value=self.opening_value,
            closing_value=self.closing_value,
            snapshot=self.snapshot,
            ready_at=self.ready_at,
            closed_at=self.closed_at,
        )

    def __repr__(self) -> str:
        return f"<PeriodLocation {self.period_id}/{self.location_id} [{self.status}]>"
