"""
Module: stock_modules.transfers.orm
Responsibility: SQLAlchemy ORM persistence models for inter-location
    transfers and their lines.

Architecture position: Modules > Transfers > ORM.  Transfer inherits from
    TrackedBase (stock_kernel.db.base); lines are plain Base rows.

Invariants enforced:
    - transfer_no unique (``TRF-YYYY-NNN``).
    - from_location_id <> to_location_id (CHECK constraint, and the
      service rejects it before anything is written).
    - wac_at_transfer is frozen at request time and used when the stock
      lands at the destination.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase
from stock_modules.transfers.models import TransferInfo, TransferLineInfo, TransferStatus


class TransferModel(TrackedBase):
    """A stock movement between two locations, subject to approval."""

    __tablename__ = "transfers"

    __table_args__ = (
        CheckConstraint("from_location_id <> to_location_id", name="chk_transfer_locations"),
        Index("idx_transfer_status", "status"),
        Index("idx_transfer_from", "from_location_id"),
        Index("idx_transfer_to", "to_location_id"),
        Index("idx_transfer_date", "transfer_date"),
    )

    transfer_no: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    from_location_id: Mapped[UUID] = mapped_column(ForeignKey("locations.id"), nullable=False)
    to_location_id: Mapped[UUID] = mapped_column(ForeignKey("locations.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransferStatus.PENDING_APPROVAL.value
    )
    requested_by_id: Mapped[UUID] = mapped_column(nullable=False)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    request_date: Mapped[datetime] = mapped_column(nullable=False)
    approval_date: Mapped[datetime | None] = mapped_column(nullable=True)
    transfer_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_value: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["TransferLineModel"]] = relationship(
        back_populates="transfer",
        order_by="TransferLineModel.line_no",
    )

    def to_dto(self) -> TransferInfo:
        return TransferInfo(
            id=self.id,
            transfer_no=self.transfer_no,
            from_location_id=self.from_location_id,
            to_location_id=self.to_location_id,
            status=TransferStatus(self.status),
            requested_by_id=self.requested_by_id,
            request_date=self.request_date,
            total_value=self.total_value,
            lines=tuple(line.to_dto() for line in self.lines),
            approved_by_id=self.approved_by_id,
            approval_date=self.approval_date,
            transfer_date=self.transfer_date,
            notes=self.notes,
            comment=self.comment,
        )

    def __repr__(self) -> str:
        return f"<Transfer {self.transfer_no} [{self.status}]>"


class TransferLineModel(Base):
    __tablename__ = "transfer_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_transfer_line_quantity"),
        Index("idx_transfer_line_transfer", "transfer_id"),
    )

    transfer_id: Mapped[UUID] = mapped_column(ForeignKey("transfers.id"), nullable=False)
    line_no: Mapped[int] = mapped_column(nullable=False)
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    wac_at_transfer: Mapped[Decimal] = mapped_column(nullable=False)
    line_value: Mapped[Decimal] = mapped_column(nullable=False)

    transfer: Mapped[TransferModel] = relationship(back_populates="lines")

    def to_dto(self) -> TransferLineInfo:
        return TransferLineInfo(
            id=self.id,
            item_id=self.item_id,
            quantity=self.quantity,
            wac_at_transfer=self.wac_at_transfer,
            line_value=self.line_value,
        )
