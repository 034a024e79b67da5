"""
Kernel DTOs (``stock_kernel.domain.dtos``).

Frozen value objects returned by kernel services.  They carry no database
identity beyond plain UUIDs and never hold a live ORM object, so callers
can keep them after the session is closed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from stock_kernel.domain.values import ZERO, round_money, round_price, round_quantity


@dataclass(frozen=True)
class StockState:
    """Quantity on hand and WAC for one (location, item)."""

    location_id: UUID
    item_id: UUID
    on_hand: Decimal = ZERO
    wac: Decimal = ZERO
    exists: bool = True

    @property
    def value(self) -> Decimal:
        """Unrounded stock value ``on_hand x wac``."""
        return self.on_hand * self.wac

    def display(self) -> dict[str, str]:
        return {
            "on_hand": str(round_quantity(self.on_hand)),
            "wac": str(round_price(self.wac)),
            "value": str(round_money(self.value)),
        }


@dataclass(frozen=True)
class StockLine:
    """A requested movement line: item and quantity."""

    item_id: UUID
    quantity: Decimal


@dataclass(frozen=True)
class ValuationLine:
    """One item row of a location valuation or closing snapshot."""

    item_id: UUID
    item_code: str
    item_name: str
    unit: str
    quantity: Decimal
    wac: Decimal
    value: Decimal

    def to_snapshot(self) -> dict[str, str]:
        return {
            "item_id": str(self.item_id),
            "item_code": self.item_code,
            "item_name": self.item_name,
            "unit": self.unit,
            "quantity": str(self.quantity),
            "wac": str(self.wac),
            "value": str(round_money(self.value)),
        }


@dataclass(frozen=True)
class LocationValuation:
    """Live valuation of all stock at a location."""

    location_id: UUID
    lines: tuple[ValuationLine, ...] = ()

    @property
    def total_value(self) -> Decimal:
        """Money total, rounded once at the end."""
        return round_money(sum((line.value for line in self.lines), ZERO))

    def to_snapshot(self, captured_at: datetime) -> dict[str, Any]:
        return {
            "captured_at": captured_at.isoformat(),
            "items": [line.to_snapshot() for line in self.lines],
            "total_value": str(self.total_value),
        }


@dataclass(frozen=True)
class PeriodInfo:
    """Read model of a period."""

    id: UUID
    name: str
    start_date: date
    end_date: date
    status: str
    prices_locked_at: datetime | None = None
    closed_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == "OPEN"

    @property
    def is_closed(self) -> bool:
        return self.status == "CLOSED"


@dataclass(frozen=True)
class PeriodLocationInfo:
    """Read model of a location's standing within a period."""

    period_id: UUID
    location_id: UUID
    location_name: str
    status: str
    opening_value: Decimal
    closing_value: Decimal | None = None
    snapshot: dict[str, Any] | None = None
    ready_at: datetime | None = None
    closed_at: datetime | None = None


@dataclass(frozen=True)
class PriceEntryInfo:
    """A locked unit price for (item, period)."""

    item_id: UUID
    period_id: UUID
    price: Decimal
    set_by_id: UUID | None = None
    set_at: datetime | None = None


@dataclass(frozen=True)
class PeriodCloseResult:
    """Outcome of a successful period close."""

    period: PeriodInfo
    period_locations: tuple[PeriodLocationInfo, ...] = field(default_factory=tuple)
