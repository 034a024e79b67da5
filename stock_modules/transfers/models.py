"""
Transfer Domain Models (``stock_modules.transfers.models``).

Frozen value objects for inter-location stock transfers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class TransferStatus(str, Enum):
    """Transfer lifecycle; COMPLETED and REJECTED are terminal."""

    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class TransferLineInput:
    item_id: UUID
    quantity: Decimal


@dataclass(frozen=True)
class TransferLineInfo:
    id: UUID
    item_id: UUID
    quantity: Decimal
    wac_at_transfer: Decimal
    line_value: Decimal


@dataclass(frozen=True)
class TransferInfo:
    id: UUID
    transfer_no: str
    from_location_id: UUID
    to_location_id: UUID
    status: TransferStatus
    requested_by_id: UUID
    request_date: datetime
    total_value: Decimal
    lines: tuple[TransferLineInfo, ...]
    approved_by_id: UUID | None = None
    approval_date: datetime | None = None
    transfer_date: date | None = None
    notes: str | None = None
    comment: str | None = None


@dataclass(frozen=True)
class TransferResult:
    transfer: TransferInfo

    @property
    def status(self) -> TransferStatus:
        return self.transfer.status
