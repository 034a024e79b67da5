"""
Location and Item master data, as read by the ledger.

General CRUD for master data lives outside this package; these models
carry only the fields the ledger, reconciliation and error messages use.
"""

from enum import Enum

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base


class LocationType(str, Enum):
    """Site role of a physical location."""

    KITCHEN = "KITCHEN"
    STORE = "STORE"
    CENTRAL = "CENTRAL"
    WAREHOUSE = "WAREHOUSE"


class ItemUnit(str, Enum):
    """Unit of measure for an item."""

    KG = "KG"
    EA = "EA"
    LTR = "LTR"
    BOX = "BOX"
    CASE = "CASE"
    PACK = "PACK"


class Location(Base):
    """A physical site that holds stock."""

    __tablename__ = "locations"

    __table_args__ = (
        Index("idx_location_active", "is_active"),
    )

    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def location_type(self) -> LocationType:
        return LocationType(self.type)

    def __repr__(self) -> str:
        return f"<Location {self.code}: {self.name}>"


class Item(Base):
    """A stock item; global across locations."""

    __tablename__ = "items"

    __table_args__ = (
        Index("idx_item_category", "category"),
    )

    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit: Mapped[str] = mapped_column(String(10), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Item {self.code}: {self.name} ({self.unit})>"
