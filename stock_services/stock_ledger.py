"""
stock_services.stock_ledger -- Quantity on hand and WAC per (location, item).

Responsibility:
    The only code that mutates ``LocationStock`` rows.  Receipts re-average
    the cost through ``WacCalculator``; consumption lowers the quantity and
    leaves the cost alone.  Also answers availability and valuation
    questions for issues, transfers and period close.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Used by the transaction processor, the transfer service, the
    reconciliation service and the period manager.  Never commits: callers
    own the unit of work.

Invariants enforced:
    - on_hand >= 0 at all times.  ``consume`` checks before it writes, and a
      shortage leaves the row untouched.
    - Every row read that precedes a write is taken with
      ``SELECT ... FOR UPDATE``.
    - Rows are created lazily on first receipt (wac = receipt price) and
      are never deleted.
    - Stored values are quantized to the column scale before assignment, so
      the in-memory row and the database row never disagree.

Failure modes:
    - ValidationError on non-positive or over-precise quantities, or a
      negative unit price.
    - InsufficientStockError when consumption exceeds on hand.
    - LocationNotFoundError / ItemNotFoundError for unknown identifiers.

Audit relevance:
    Every receipt and consumption logs ``stock_received`` /
    ``stock_consumed`` with before and after quantities and WAC.

Usage:
    ledger = StockLedger(session, clock)
    ledger.receive(kitchen_id, flour_id, Decimal("100"), Decimal("1.50"))
    shortages = ledger.check_availability(kitchen_id, [StockLine(flour_id, Decimal("30"))])
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_engines.wac import WacCalculator
from stock_kernel.db.base import quantize_storage
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    LocationValuation,
    StockLine,
    StockState,
    ValuationLine,
)
from stock_kernel.domain.values import ZERO, require_non_negative, require_quantity
from stock_kernel.exceptions import (
    InsufficientStockError,
    ItemNotFoundError,
    LocationNotFoundError,
    StockShortage,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.location import Item, Location
from stock_kernel.models.location_stock import LocationStock

logger = get_logger("services.stock_ledger")


class StockLedger:
    """
    Per-location stock ledger.

    Contract:
        Receives a Session via constructor injection and only flushes.
        All quantities and prices are ``Decimal``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        calculator: WacCalculator | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._calculator = calculator or WacCalculator()

    # =========================================================================
    # Reads
    # =========================================================================

    def read(self, location_id: UUID, item_id: UUID) -> StockState:
        """Current state, or a zero state if the row was never populated."""
        row = self._session.execute(
            select(LocationStock).where(
                LocationStock.location_id == location_id,
                LocationStock.item_id == item_id,
            )
        ).scalar_one_or_none()
        if row is None:
            return StockState(location_id=location_id, item_id=item_id, exists=False)
        return row.to_dto()

    def valuation(self, location_id: UUID, include_empty: bool = False) -> LocationValuation:
        """
        Per-item valuation of a location, sorted by item name.

        Rows with nothing on hand are left out unless ``include_empty``.
        The total is summed here rather than in SQL so that it stays exact
        on every backend.
        """
        self._require_location(location_id)
        rows = self._session.execute(
            select(LocationStock, Item)
            .join(Item, Item.id == LocationStock.item_id)
            .where(LocationStock.location_id == location_id)
        ).all()

        lines = []
        for stock, item in rows:
            if stock.on_hand <= ZERO and not include_empty:
                continue
            lines.append(
                ValuationLine(
                    item_id=item.id,
                    item_code=item.code,
                    item_name=item.name,
                    unit=item.unit,
                    quantity=stock.on_hand,
                    wac=stock.wac,
                    value=stock.on_hand * stock.wac,
                )
            )
        lines.sort(key=lambda line: (line.item_name, line.item_code))
        return LocationValuation(location_id=location_id, lines=tuple(lines))

    # =========================================================================
    # Availability
    # =========================================================================

    def check_availability(
        self,
        location_id: UUID,
        lines: Sequence[StockLine],
    ) -> list[StockShortage]:
        """
        Every line that cannot be satisfied from stock at ``location_id``.

        Lines for the same item are added together first.  Rows are read
        under lock so that the answer holds until the caller's transaction
        ends.  Nothing is mutated.
        """
        requested: dict[UUID, Decimal] = {}
        for line in lines:
            quantity = require_quantity(line.quantity)
            requested[line.item_id] = requested.get(line.item_id, ZERO) + quantity

        shortages = []
        for item_id, quantity in requested.items():
            row = self._lock_row(location_id, item_id)
            available = row.on_hand if row is not None else ZERO
            if quantity > available:
                shortages.append(
                    StockShortage(
                        item_id=str(item_id),
                        item_name=self._item_name(item_id),
                        requested=quantity,
                        available=available,
                    )
                )
        return shortages

    def require_available(self, location_id: UUID, lines: Sequence[StockLine]) -> None:
        """Raise InsufficientStockError naming every deficient item."""
        shortages = self.check_availability(location_id, lines)
        if shortages:
            logger.info("stock_shortage", extra={
                "location_id": str(location_id),
                "items": [s.item_name for s in shortages],
            })
            raise InsufficientStockError(shortages)

    # =========================================================================
    # Mutations
    # =========================================================================

    def receive(
        self,
        location_id: UUID,
        item_id: UUID,
        quantity: Decimal,
        unit_price: Decimal,
    ) -> StockState:
        """
        Add ``quantity`` at ``unit_price`` and re-average the WAC.

        Postconditions:
            - on_hand grows by exactly ``quantity``.
            - wac = (old_qty * old_wac + qty * price) / (old_qty + qty),
              or ``unit_price`` when nothing was on hand.
        """
        quantity = require_quantity(quantity)
        unit_price = require_non_negative(unit_price, "unit_price")
        self._require_location(location_id)
        self._require_item(item_id)

        row = self._lock_or_create_row(location_id, item_id)
        result = self._calculator.apply_receipt(
            on_hand=row.on_hand,
            wac=row.wac,
            quantity=quantity,
            unit_price=unit_price,
        )

        row.on_hand = quantize_storage(result.on_hand)
        row.wac = quantize_storage(result.wac)
        row.updated_at = self._clock.now_utc()
        self._session.flush()

        logger.info("stock_received", extra={
            "location_id": str(location_id),
            "item_id": str(item_id),
            "quantity": str(quantity),
            "unit_price": str(unit_price),
            "previous_on_hand": str(result.previous_on_hand),
            "previous_wac": str(result.previous_wac),
            "on_hand": str(row.on_hand),
            "wac": str(row.wac),
        })
        return row.to_dto()

    def consume(self, location_id: UUID, item_id: UUID, quantity: Decimal) -> StockState:
        """
        Take ``quantity`` out of stock.  WAC is unchanged.

        Raises:
            InsufficientStockError: if ``quantity`` exceeds on hand; the row
                is left as it was.
        """
        quantity = require_quantity(quantity)
        row = self._lock_row(location_id, item_id)
        available = row.on_hand if row is not None else ZERO

        if row is None or quantity > available:
            raise InsufficientStockError([
                StockShortage(
                    item_id=str(item_id),
                    item_name=self._item_name(item_id),
                    requested=quantity,
                    available=available,
                )
            ])

        previous = row.on_hand
        row.on_hand = quantize_storage(previous - quantity)
        row.updated_at = self._clock.now_utc()
        self._session.flush()

        logger.info("stock_consumed", extra={
            "location_id": str(location_id),
            "item_id": str(item_id),
            "quantity": str(quantity),
            "previous_on_hand": str(previous),
            "on_hand": str(row.on_hand),
            "wac": str(row.wac),
        })
        return row.to_dto()

    # =========================================================================
    # Internals
    # =========================================================================

    def _lock_row(self, location_id: UUID, item_id: UUID) -> LocationStock | None:
        return self._session.execute(
            select(LocationStock)
            .where(
                LocationStock.location_id == location_id,
                LocationStock.item_id == item_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_or_create_row(self, location_id: UUID, item_id: UUID) -> LocationStock:
        row = self._lock_row(location_id, item_id)
        if row is not None:
            return row

        # Another transaction may be creating the same row right now.
        savepoint = self._session.begin_nested()
        try:
            row = LocationStock(
                location_id=location_id,
                item_id=item_id,
                on_hand=ZERO,
                wac=ZERO,
            )
            self._session.add(row)
            self._session.flush()
            savepoint.commit()
            return row
        except IntegrityError:
            logger.debug("location_stock_race_retry", extra={
                "location_id": str(location_id),
                "item_id": str(item_id),
            })
            savepoint.rollback()
            row = self._lock_row(location_id, item_id)
            if row is None:
                raise
            return row

    def _item_name(self, item_id: UUID) -> str:
        item = self._session.get(Item, item_id)
        return item.name if item is not None else str(item_id)

    def _require_location(self, location_id: UUID) -> Location:
        location = self._session.get(Location, location_id)
        if location is None:
            raise LocationNotFoundError(str(location_id))
        return location

    def _require_item(self, item_id: UUID) -> Item:
        item = self._session.get(Item, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item
