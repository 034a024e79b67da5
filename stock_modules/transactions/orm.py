"""
Module: stock_modules.transactions.orm
Responsibility: SQLAlchemy ORM persistence models for deliveries and
    issues with their lines.

Architecture position: Modules > Transactions > ORM.  Documents inherit
    from TrackedBase (stock_kernel.db.base); lines are plain Base rows owned
    by their document.

Invariants enforced:
    - delivery_no / issue_no unique (``DEL-YYYY-NNN`` / ``ISS-YYYY-NNN``).
    - Line quantities are positive; prices and values are non-negative.
    - A delivery line's ncr_id references the NCR raised for its price
      variance (no FK; the NCR module owns that table).
    - Enum fields stored as String(20).

Audit relevance:
    Posted documents are never edited.  Reconciliation sums receipts and
    issues from these tables per (period, location).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase
from stock_modules.transactions.models import (
    CostCentre,
    DeliveryInfo,
    DeliveryLineInfo,
    IssueInfo,
    IssueLineInfo,
)


# =============================================================================
# Deliveries
# =============================================================================

class DeliveryModel(TrackedBase):
    """A goods receipt at one location."""

    __tablename__ = "deliveries"

    __table_args__ = (
        Index("idx_delivery_period_location", "period_id", "location_id"),
        Index("idx_delivery_date", "delivery_date"),
    )

    delivery_no: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    location_id: Mapped[UUID] = mapped_column(ForeignKey("locations.id"), nullable=False)
    period_id: Mapped[UUID] = mapped_column(ForeignKey("periods.id"), nullable=False)
    supplier: Mapped[str] = mapped_column(String(200), nullable=False)
    invoice_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    has_variance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["DeliveryLineModel"]] = relationship(
        back_populates="delivery",
        order_by="DeliveryLineModel.line_no",
    )

    def to_dto(self) -> DeliveryInfo:
        return DeliveryInfo(
            id=self.id,
            delivery_no=self.delivery_no,
            location_id=self.location_id,
            period_id=self.period_id,
            supplier=self.supplier,
            delivery_date=self.delivery_date,
            total_amount=self.total_amount,
            has_variance=self.has_variance,
            lines=tuple(line.to_dto() for line in self.lines),
            invoice_no=self.invoice_no,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<Delivery {self.delivery_no}: {self.total_amount}>"


class DeliveryLineModel(Base):
    __tablename__ = "delivery_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_delivery_line_quantity"),
        CheckConstraint("unit_price >= 0", name="chk_delivery_line_price"),
        Index("idx_delivery_line_delivery", "delivery_id"),
        Index("idx_delivery_line_item", "item_id"),
    )

    delivery_id: Mapped[UUID] = mapped_column(ForeignKey("deliveries.id"), nullable=False)
    line_no: Mapped[int] = mapped_column(nullable=False)
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    period_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    price_variance: Mapped[Decimal] = mapped_column(nullable=False)
    line_value: Mapped[Decimal] = mapped_column(nullable=False)
    ncr_id: Mapped[UUID | None] = mapped_column(nullable=True)

    delivery: Mapped[DeliveryModel] = relationship(back_populates="lines")

    def to_dto(self) -> DeliveryLineInfo:
        return DeliveryLineInfo(
            id=self.id,
            item_id=self.item_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            period_price=self.period_price,
            price_variance=self.price_variance,
            line_value=self.line_value,
            ncr_id=self.ncr_id,
        )


# =============================================================================
# Issues
# =============================================================================

class IssueModel(TrackedBase):
    """Stock consumed at one location and charged to a cost centre."""

    __tablename__ = "issues"

    __table_args__ = (
        Index("idx_issue_period_location", "period_id", "location_id"),
        Index("idx_issue_date", "issue_date"),
    )

    issue_no: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    location_id: Mapped[UUID] = mapped_column(ForeignKey("locations.id"), nullable=False)
    period_id: Mapped[UUID] = mapped_column(ForeignKey("periods.id"), nullable=False)
    cost_centre: Mapped[str] = mapped_column(String(20), nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_value: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["IssueLineModel"]] = relationship(
        back_populates="issue",
        order_by="IssueLineModel.line_no",
    )

    def to_dto(self) -> IssueInfo:
        return IssueInfo(
            id=self.id,
            issue_no=self.issue_no,
            location_id=self.location_id,
            period_id=self.period_id,
            cost_centre=CostCentre(self.cost_centre),
            issue_date=self.issue_date,
            total_value=self.total_value,
            lines=tuple(line.to_dto() for line in self.lines),
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<Issue {self.issue_no}: {self.total_value}>"


class IssueLineModel(Base):
    __tablename__ = "issue_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_issue_line_quantity"),
        Index("idx_issue_line_issue", "issue_id"),
        Index("idx_issue_line_item", "item_id"),
    )

    issue_id: Mapped[UUID] = mapped_column(ForeignKey("issues.id"), nullable=False)
    line_no: Mapped[int] = mapped_column(nullable=False)
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    wac_at_issue: Mapped[Decimal] = mapped_column(nullable=False)
    line_value: Mapped[Decimal] = mapped_column(nullable=False)

    issue: Mapped[IssueModel] = relationship(back_populates="lines")

    def to_dto(self) -> IssueLineInfo:
        return IssueLineInfo(
            id=self.id,
            item_id=self.item_id,
            quantity=self.quantity,
            wac_at_issue=self.wac_at_issue,
            line_value=self.line_value,
        )
