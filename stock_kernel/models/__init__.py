"""ORM models for the stock kernel."""

from stock_kernel.models.location import Item, ItemUnit, Location, LocationType
from stock_kernel.models.location_stock import LocationStock
from stock_kernel.models.period import (
    Period,
    PeriodLocation,
    PeriodLocationStatus,
    PeriodStatus,
)
from stock_kernel.models.price_book import PriceBookEntry
from stock_kernel.models.reconciliation import POBEntry, Reconciliation
from stock_kernel.services.sequence_service import SequenceCounter

__all__ = [
    "Item",
    "ItemUnit",
    "Location",
    "LocationType",
    "LocationStock",
    "Period",
    "PeriodLocation",
    "PeriodLocationStatus",
    "PeriodStatus",
    "PriceBookEntry",
    "POBEntry",
    "Reconciliation",
    "SequenceCounter",
]
