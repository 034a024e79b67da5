"""
Transaction Domain Models (``stock_modules.transactions.models``).

Responsibility
--------------
Frozen value objects for goods receipts (deliveries) and consumption
(issues): the line inputs callers pass in and the read models the
processor returns.  No database identity beyond plain UUIDs, no I/O.

Invariants
----------
- Line inputs carry caller values as given; the processor validates them
  (positive quantity with at most 4 decimals, non-negative price).
- All monetary fields use ``Decimal``, never float.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_modules.ncr.models import NCRInfo


class CostCentre(str, Enum):
    """Where issued stock is charged."""

    FOOD = "FOOD"
    CLEAN = "CLEAN"
    OTHER = "OTHER"


@dataclass(frozen=True)
class DeliveryLineInput:
    item_id: UUID
    quantity: Decimal
    unit_price: Decimal


@dataclass(frozen=True)
class IssueLineInput:
    item_id: UUID
    quantity: Decimal


@dataclass(frozen=True)
class DeliveryLineInfo:
    id: UUID
    item_id: UUID
    quantity: Decimal
    unit_price: Decimal
    period_price: Decimal | None
    price_variance: Decimal
    line_value: Decimal
    ncr_id: UUID | None = None


@dataclass(frozen=True)
class DeliveryInfo:
    id: UUID
    delivery_no: str
    location_id: UUID
    period_id: UUID
    supplier: str
    delivery_date: date
    total_amount: Decimal
    has_variance: bool
    lines: tuple[DeliveryLineInfo, ...]
    invoice_no: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class IssueLineInfo:
    id: UUID
    item_id: UUID
    quantity: Decimal
    wac_at_issue: Decimal
    line_value: Decimal


@dataclass(frozen=True)
class IssueInfo:
    id: UUID
    issue_no: str
    location_id: UUID
    period_id: UUID
    cost_centre: CostCentre
    issue_date: date
    total_value: Decimal
    lines: tuple[IssueLineInfo, ...]
    notes: str | None = None


@dataclass(frozen=True)
class DeliveryResult:
    """A posted delivery and the price-variance NCRs it raised."""

    delivery: DeliveryInfo
    ncrs_created: tuple[NCRInfo, ...] = ()

    @property
    def has_variance(self) -> bool:
        return self.delivery.has_variance


@dataclass(frozen=True)
class IssueResult:
    issue: IssueInfo
