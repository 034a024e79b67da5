"""
NCR Domain Models (``stock_modules.ncr.models``).

Frozen value objects for non-conformance reports: supplier price
deviations raised automatically at delivery, and manual reports of
damaged, short or rejected goods.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_kernel.domain.values import ZERO, round_money


class NCRType(str, Enum):
    MANUAL = "MANUAL"
    PRICE_VARIANCE = "PRICE_VARIANCE"


class NCRStatus(str, Enum):
    """NCR lifecycle; CREDITED, REJECTED and RESOLVED are terminal."""

    OPEN = "OPEN"
    SENT = "SENT"
    CREDITED = "CREDITED"
    REJECTED = "REJECTED"
    RESOLVED = "RESOLVED"


class FinancialImpact(str, Enum):
    """How a RESOLVED NCR ended up affecting cost."""

    CREDIT = "CREDIT"
    LOSS = "LOSS"
    NONE = "NONE"


@dataclass(frozen=True)
class NCRItemInput:
    """One item row of a manual NCR."""

    item_id: UUID
    quantity: Decimal
    value: Decimal


@dataclass(frozen=True)
class NCRInfo:
    id: UUID
    ncr_no: str
    location_id: UUID
    type: NCRType
    auto_generated: bool
    reason: str
    value: Decimal
    status: NCRStatus
    created_at: datetime
    item_id: UUID | None = None
    quantity: Decimal | None = None
    delivery_id: UUID | None = None
    delivery_line_id: UUID | None = None
    financial_impact: FinancialImpact | None = None
    resolved_at: datetime | None = None
    resolution_notes: str | None = None


@dataclass(frozen=True)
class NCRBucket:
    """Count and total value of one NCR category."""

    count: int = 0
    total: Decimal = ZERO

    def add(self, value: Decimal) -> NCRBucket:
        return NCRBucket(count=self.count + 1, total=self.total + value)

    @property
    def display_total(self) -> Decimal:
        return round_money(self.total)


@dataclass(frozen=True)
class NCRSummary:
    """
    NCRs of a (period, location) by outcome.

    credited: CREDITED, or RESOLVED with a CREDIT impact.
    losses:   REJECTED, or RESOLVED with a LOSS impact.
    pending:  SENT to the supplier and awaiting an answer.
    open:     not yet sent.
    """

    period_id: UUID
    location_id: UUID
    credited: NCRBucket = NCRBucket()
    losses: NCRBucket = NCRBucket()
    pending: NCRBucket = NCRBucket()
    open: NCRBucket = NCRBucket()
