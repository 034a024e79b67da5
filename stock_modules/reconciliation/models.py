"""
Reconciliation Domain Models (``stock_modules.reconciliation.models``).

Frozen read models for a (period, location) consumption reconciliation and
the persons-on-board (POB) counts behind its manday figure.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from stock_engines.reconciliation import ReconciliationFigures
from stock_kernel.domain.values import round_money, round_price


@dataclass(frozen=True)
class POBEntryInput:
    entry_date: date
    crew_count: int
    extra_count: int = 0


@dataclass(frozen=True)
class POBEntryInfo:
    period_id: UUID
    location_id: UUID
    entry_date: date
    crew_count: int
    extra_count: int

    @property
    def mandays(self) -> int:
        return self.crew_count + self.extra_count


@dataclass(frozen=True)
class ReconciliationInfo:
    """Every figure of a reconciliation, saved or computed on the fly."""

    period_id: UUID
    location_id: UUID
    opening_stock: Decimal
    receipts: Decimal
    transfers_in: Decimal
    transfers_out: Decimal
    issues: Decimal
    closing_stock: Decimal
    back_charges: Decimal
    credits: Decimal
    condemnations: Decimal
    other: Decimal
    adjustments: Decimal
    consumption: Decimal
    total_mandays: int
    manday_cost: Decimal | None
    saved_by_id: UUID | None = None
    last_updated: datetime | None = None

    @property
    def base_consumption(self) -> Decimal:
        return self.consumption - self.adjustments

    @property
    def manday_cost_applicable(self) -> bool:
        return self.manday_cost is not None

    @classmethod
    def from_figures(
        cls,
        period_id: UUID,
        location_id: UUID,
        figures: ReconciliationFigures,
        saved_by_id: UUID | None = None,
        last_updated: datetime | None = None,
    ) -> ReconciliationInfo:
        c = figures.components
        a = figures.adjustments
        return cls(
            period_id=period_id,
            location_id=location_id,
            opening_stock=c.opening_stock,
            receipts=c.receipts,
            transfers_in=c.transfers_in,
            transfers_out=c.transfers_out,
            issues=c.issues,
            closing_stock=c.closing_stock,
            back_charges=a.back_charges,
            credits=a.credits,
            condemnations=a.condemnations,
            other=a.other,
            adjustments=figures.total_adjustments,
            consumption=figures.consumption,
            total_mandays=figures.total_mandays,
            manday_cost=figures.manday_cost,
            saved_by_id=saved_by_id,
            last_updated=last_updated,
        )

    def display(self) -> dict[str, str | int | None]:
        return {
            "opening_stock": str(round_money(self.opening_stock)),
            "receipts": str(round_money(self.receipts)),
            "transfers_in": str(round_money(self.transfers_in)),
            "transfers_out": str(round_money(self.transfers_out)),
            "issues": str(round_money(self.issues)),
            "closing_stock": str(round_money(self.closing_stock)),
            "adjustments": str(round_money(self.adjustments)),
            "consumption": str(round_money(self.consumption)),
            "total_mandays": self.total_mandays,
            "manday_cost": (
                str(round_price(self.manday_cost)) if self.manday_cost is not None else None
            ),
        }


@dataclass(frozen=True)
class ReconciliationResult:
    """``auto_calculated`` is True when nothing has been saved yet."""

    reconciliation: ReconciliationInfo
    auto_calculated: bool
