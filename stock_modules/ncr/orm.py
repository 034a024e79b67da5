"""
Module: stock_modules.ncr.orm
Responsibility: SQLAlchemy ORM persistence model for non-conformance
    reports.

Architecture position: Modules > NCR > ORM.  Inherits from TrackedBase
    (stock_kernel.db.base).  Deliveries and delivery lines are referenced
    by UUID with NO foreign key, since they belong to the transactions
    module.

Invariants enforced:
    - ncr_no is unique (``NCR-YYYY-NNN``).
    - value >= 0; it is always a magnitude.
    - Enum fields stored as String(20).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase
from stock_modules.ncr.models import FinancialImpact, NCRInfo, NCRStatus, NCRType


class NCRModel(TrackedBase):
    """ORM model for a non-conformance report."""

    __tablename__ = "ncrs"

    __table_args__ = (
        CheckConstraint("value >= 0", name="chk_ncr_value"),
        Index("idx_ncr_location", "location_id"),
        Index("idx_ncr_status", "status"),
        Index("idx_ncr_delivery", "delivery_id"),
    )

    ncr_no: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    location_id: Mapped[UUID] = mapped_column(ForeignKey("locations.id"), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    auto_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Delivery traceability (no FK)
    delivery_id: Mapped[UUID | None] = mapped_column(nullable=True)
    delivery_line_id: Mapped[UUID | None] = mapped_column(nullable=True)
    item_id: Mapped[UUID | None] = mapped_column(ForeignKey("items.id"), nullable=True)

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    value: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=NCRStatus.OPEN.value)
    financial_impact: Mapped[str | None] = mapped_column(String(20), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> NCRInfo:
        return NCRInfo(
            id=self.id,
            ncr_no=self.ncr_no,
            location_id=self.location_id,
            type=NCRType(self.type),
            auto_generated=self.auto_generated,
            reason=self.reason,
            value=self.value,
            status=NCRStatus(self.status),
            created_at=self.created_at,
            item_id=self.item_id,
            quantity=self.quantity,
            delivery_id=self.delivery_id,
            delivery_line_id=self.delivery_line_id,
            financial_impact=(
                FinancialImpact(self.financial_impact) if self.financial_impact else None
            ),
            resolved_at=self.resolved_at,
            resolution_notes=self.resolution_notes,
        )

    def __repr__(self) -> str:
        return f"<NCR {self.ncr_no} [{self.status}] {self.value}>"
