"""
Locked per-period item prices.

Each entry is the price a delivery is compared against when the period is
open.  Entries are editable only while their period is DRAFT; the period
service enforces that, not this table.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base
from stock_kernel.domain.dtos import PriceEntryInfo
from stock_kernel.models.location import Item


class PriceBookEntry(Base):
    """Unit price of an item, fixed for one period."""

    __tablename__ = "price_book_entries"

    __table_args__ = (
        UniqueConstraint("item_id", "period_id", name="uq_price_book_item_period"),
        Index("idx_price_book_period", "period_id"),
    )

    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    period_id: Mapped[UUID] = mapped_column(ForeignKey("periods.id"), nullable=False)
    price: Mapped[Decimal] = mapped_column(nullable=False)
    set_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    set_at: Mapped[datetime | None] = mapped_column(nullable=True)

    item: Mapped[Item] = relationship()

    def to_dto(self) -> PriceEntryInfo:
        return PriceEntryInfo(
            item_id=self.item_id,
            period_id=self.period_id,
            price=self.price,
            set_by_id=self.set_by_id,
            set_at=self.set_at,
        )
