"""
Module: stock_kernel.models.location_stock
Responsibility: ORM model for the per-(location, item) ledger row holding
    quantity on hand and weighted average cost.
Architecture position: Kernel > Models.  Written only through
    stock_services.stock_ledger.StockLedger.

Invariants enforced:
    - One row per (location, item) -- unique constraint.
    - on_hand >= 0 and wac >= 0 -- checked by the ledger before every
      debit and backed by CHECK constraints.
    - Rows are created lazily on first receipt and never deleted.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base
from stock_kernel.domain.dtos import StockState
from stock_kernel.domain.values import ZERO
from stock_kernel.models.location import Item, Location


class LocationStock(Base):
    """Quantity on hand and WAC for one item at one location."""

    __tablename__ = "location_stock"

    __table_args__ = (
        UniqueConstraint("location_id", "item_id", name="uq_location_stock_location_item"),
        CheckConstraint("on_hand >= 0", name="chk_location_stock_on_hand"),
        CheckConstraint("wac >= 0", name="chk_location_stock_wac"),
    )

    location_id: Mapped[UUID] = mapped_column(ForeignKey("locations.id"), nullable=False)
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    on_hand: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    wac: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    item: Mapped[Item] = relationship()
    location: Mapped[Location] = relationship()

    def to_dto(self) -> StockState:
        return StockState(
            location_id=self.location_id,
            item_id=self.item_id,
            on_hand=self.on_hand,
            wac=self.wac,
        )

    def __repr__(self) -> str:
        return f"<LocationStock {self.location_id}/{self.item_id}: {self.on_hand} @ {self.wac}>"
