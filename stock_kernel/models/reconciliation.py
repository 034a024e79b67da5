"""
Module: stock_kernel.models.reconciliation
Responsibility: ORM models for period-end artifacts owned by a
    (period, location): the saved reconciliation and the daily
    persons-on-board (POB) counts that give the manday denominator.
Architecture position: Kernel > Models.  Written by
    stock_modules.reconciliation.service; read by the period manager to
    gate location readiness.

Invariants enforced:
    - One Reconciliation per (period, location).
    - A saved reconciliation satisfies
      consumption = opening + receipts + transfers_in - transfers_out
                    - issues - closing + adjustments
      exactly; components are stored as money amounts.
    - One POB row per (period, location, date); counts are non-negative.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base
from stock_kernel.domain.values import ZERO
from stock_kernel.models.location import Location


class Reconciliation(Base):
    """Saved consumption reconciliation for one location in one period."""

    __tablename__ = "reconciliations"

    __table_args__ = (
        UniqueConstraint("period_id", "location_id", name="uq_reconciliation_period_location"),
        Index("idx_reconciliation_location", "location_id"),
    )

    period_id: Mapped[UUID] = mapped_column(ForeignKey("periods.id"), nullable=False)
    location_id: Mapped[UUID] = mapped_column(ForeignKey("locations.id"), nullable=False)

    # Ledger components, frozen on first save
    opening_stock: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    receipts: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    transfers_in: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    transfers_out: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    issues: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    closing_stock: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Manual adjustments; adjustments = back_charges - credits + condemnations + other
    adjustments: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    back_charges: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    credits: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    condemnations: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    other: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Derived
    consumption: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_mandays: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    manday_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    saved_by_id: Mapped[UUID] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    last_updated: Mapped[datetime] = mapped_column(nullable=False)

    location: Mapped[Location] = relationship()

    def __repr__(self) -> str:
        return f"<Reconciliation {self.period_id}/{self.location_id}: {self.consumption}>"


class POBEntry(Base):
    """Persons on board at a location on one day."""

    __tablename__ = "pob_entries"

    __table_args__ = (
        UniqueConstraint("period_id", "location_id", "entry_date", name="uq_pob_period_location_date"),
        CheckConstraint("crew_count >= 0", name="chk_pob_crew_count"),
        CheckConstraint("extra_count >= 0", name="chk_pob_extra_count"),
        Index("idx_pob_period_location", "period_id", "location_id"),
    )

    period_id: Mapped[UUID] = mapped_column(ForeignKey("periods.id"), nullable=False)
    location_id: Mapped[UUID] = mapped_column(ForeignKey("locations.id"), nullable=False)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    crew_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    extra_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    entered_by_id: Mapped[UUID] = mapped_column(nullable=False)
    entered_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def mandays(self) -> int:
        return self.crew_count + self.extra_count
