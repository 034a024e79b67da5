"""
PriceBookService -- locked per-period item prices.

Responsibility:
    Maintains the price each item is expected to cost in a period.  The
    transaction processor compares delivery prices against these entries
    to detect supplier price deviations.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - One entry per (item, period); setting a price again updates it.
    - Prices are editable only while the period is DRAFT.  Opening the
      period locks them for good.
    - Prices are strictly positive.

Failure modes:
    - PeriodNotFoundError / ItemNotFoundError for unknown identifiers.
    - PeriodClosedError when the period is CLOSED.
    - PriceBookLockedError when the period is OPEN or later.
    - ValidationError for a non-positive price.
"""

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from stock_kernel.db.base import quantize_storage
from stock_kernel.domain.dtos import PriceEntryInfo
from stock_kernel.domain.values import require_positive
from stock_kernel.exceptions import (
    ItemNotFoundError,
    PeriodClosedError,
    PeriodNotFoundError,
    PriceBookLockedError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.location import Item
from stock_kernel.models.period import Period, PeriodStatus
from stock_kernel.models.price_book import PriceBookEntry
from stock_kernel.services.base import BaseService

logger = get_logger("services.price_book")


class PriceBookService(BaseService):
    """
    Reads and edits the price book.

    Contract:
        Flush-only.  Callers wrap edits in a UnitOfWork.
    """

    def get_price(self, item_id: UUID, period_id: UUID) -> Decimal | None:
        """Locked price of ``item_id`` in ``period_id``, or None if unset."""
        return self.session.execute(
            select(PriceBookEntry.price).where(
                PriceBookEntry.item_id == item_id,
                PriceBookEntry.period_id == period_id,
            )
        ).scalar_one_or_none()

    def prices_for_period(self, period_id: UUID) -> dict[UUID, Decimal]:
        rows = self.session.execute(
            select(PriceBookEntry.item_id, PriceBookEntry.price).where(
                PriceBookEntry.period_id == period_id
            )
        ).all()
        return {item_id: price for item_id, price in rows}

    def set_prices(
        self,
        period_id: UUID,
        prices: Sequence[tuple[UUID, Decimal]],
        actor_id: UUID,
    ) -> list[PriceEntryInfo]:
        """
        Upsert ``(item_id, price)`` pairs for a DRAFT period.

        Raises:
            PeriodClosedError: the period is CLOSED.
            PriceBookLockedError: the period has been opened.
        """
        period = self._require_editable(period_id)

        entries = []
        for item_id, price in prices:
            price = require_positive(price, "price")
            if self.session.get(Item, item_id) is None:
                raise ItemNotFoundError(str(item_id))
            entries.append(self._upsert(item_id, period.id, price, actor_id))

        self.session.flush()
        logger.info("prices_set", extra={
            "period_id": str(period_id),
            "count": len(entries),
        })
        return [entry.to_dto() for entry in entries]

    def copy_prices(
        self,
        target_period_id: UUID,
        source_period_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> int:
        """
        Copy prices of active items into a DRAFT period.

        The default source is the latest CLOSED period ending before the
        target starts.  Returns the number of entries written; 0 when
        there is no source.
        """
        target = self._require_editable(target_period_id)

        if source_period_id is None:
            source = self.session.execute(
                select(Period)
                .where(
                    Period.status == PeriodStatus.CLOSED.value,
                    Period.end_date < target.start_date,
                )
                .order_by(Period.end_date.desc())
                .limit(1)
            ).scalar_one_or_none()
            if source is None:
                logger.info("price_copy_no_source", extra={
                    "period_id": str(target_period_id),
                })
                return 0
        else:
            source = self.session.get(Period, source_period_id)
            if source is None:
                raise PeriodNotFoundError(str(source_period_id))

        rows = self.session.execute(
            select(PriceBookEntry)
            .join(Item, Item.id == PriceBookEntry.item_id)
            .where(
                PriceBookEntry.period_id == source.id,
                Item.is_active.is_(True),
            )
        ).scalars().all()

        for entry in rows:
            self._upsert(entry.item_id, target.id, entry.price, actor_id)
        self.session.flush()

        logger.info("prices_copied", extra={
            "source_period_id": str(source.id),
            "target_period_id": str(target.id),
            "count": len(rows),
        })
        return len(rows)

    def _upsert(
        self,
        item_id: UUID,
        period_id: UUID,
        price: Decimal,
        actor_id: UUID | None,
    ) -> PriceBookEntry:
        entry = self.session.execute(
            select(PriceBookEntry).where(
                PriceBookEntry.item_id == item_id,
                PriceBookEntry.period_id == period_id,
            )
        ).scalar_one_or_none()
        if entry is None:
            entry = PriceBookEntry(item_id=item_id, period_id=period_id)
            self.session.add(entry)
        entry.price = quantize_storage(price)
        entry.set_by_id = actor_id
        entry.set_at = self.clock.now_utc()
        return entry

    def _require_editable(self, period_id: UUID) -> Period:
        period = self.session.get(Period, period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        if period.is_closed:
            raise PeriodClosedError(period.name, period.status)
        if period.prices_locked:
            raise PriceBookLockedError(period.name, period.status)
        return period
