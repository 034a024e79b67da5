"""
Transaction Processor (``stock_modules.transactions.service``).

Responsibility
--------------
Posts deliveries (goods receipts) and issues (consumption) against a
location in an open period.  A thin glue layer: WAC lives in the stock
ledger, variance detection in ``stock_engines.variance``, NCRs in the NCR
module.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. ``PeriodService`` validates that the period and the location are OPEN.
2. ``PriceBookService`` supplies the locked period price for each line.
3. ``PriceVarianceDetector`` compares delivered and locked prices.
4. ``NCRService`` (``auto_commit=False``) raises one NCR per variant line.
5. ``StockLedger`` applies the stock movement.

Invariants
----------
- Each public method is one unit of work: the document, its lines, its
  NCRs and the ledger updates commit together or not at all.
- Delivery: NCRs are raised before any stock changes; ``has_variance`` is
  set iff at least one line raised an NCR.
- Issue: every line is checked for stock before any line is applied, and
  the error names every deficient item.  Line value is quantity x WAC as
  read before consumption.
- Money totals are rounded to 2 places once, when the document is saved.

Failure Modes
-------------
- ``PeriodClosedError`` -- period or location not OPEN.
- ``InsufficientStockError`` -- issue exceeds stock on hand.
- ``ValidationError`` -- no lines, blank supplier, bad quantity or price.
- ``LocationNotFoundError`` / ``ItemNotFoundError`` / ``PeriodNotFoundError``.

Audit Relevance
---------------
``delivery_posted`` and ``issue_posted`` are logged with the document
number, line count and totals.  A line without a price book entry is
logged as ``price_book_entry_missing``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_config.schema import NumberingConfig
from stock_engines.variance import PriceVarianceDetector
from stock_kernel.db.base import quantize_storage
from stock_kernel.db.unit_of_work import UnitOfWork
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import StockLine
from stock_kernel.domain.values import (
    extend,
    require_non_negative,
    require_quantity,
    round_money,
    sum_decimals,
)
from stock_kernel.exceptions import ItemNotFoundError, ValidationError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.location import Item
from stock_kernel.services.period_service import PeriodService
from stock_kernel.services.price_book_service import PriceBookService
from stock_kernel.services.sequence_service import SequenceService
from stock_modules.ncr.service import NCRService
from stock_modules.transactions.models import (
    CostCentre,
    DeliveryInfo,
    DeliveryLineInput,
    DeliveryResult,
    IssueInfo,
    IssueLineInput,
    IssueResult,
)
from stock_modules.transactions.orm import (
    DeliveryLineModel,
    DeliveryModel,
    IssueLineModel,
    IssueModel,
)
from stock_services.stock_ledger import StockLedger

logger = get_logger("modules.transactions.service")


class TransactionProcessor:
    """
    Posts deliveries and issues.

    Contract
    --------
    Commits on success and rolls back on failure unless constructed with
    ``auto_commit=False``.  Returns frozen DTOs.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        numbering: NumberingConfig | None = None,
        variance_tolerance_percent: Decimal = Decimal("0"),
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._numbering = numbering or NumberingConfig()
        self._uow = UnitOfWork(session, auto_commit=auto_commit)

        self._periods = PeriodService(session, self._clock)
        self._prices = PriceBookService(session, self._clock)
        self._sequences = SequenceService(session)
        self._ledger = StockLedger(session, self._clock)
        self._ncrs = NCRService(session, self._clock, self._numbering, auto_commit=False)

        # Stateless engine
        self._detector = PriceVarianceDetector(variance_tolerance_percent)

    # =========================================================================
    # Deliveries
    # =========================================================================

    def post_delivery(
        self,
        location_id: UUID,
        period_id: UUID,
        supplier: str,
        lines: Sequence[DeliveryLineInput],
        actor_id: UUID,
        delivery_date: date | None = None,
        invoice_no: str | None = None,
        notes: str | None = None,
    ) -> DeliveryResult:
        """
        Receive goods at ``location_id``.

        Postconditions:
            - A delivery numbered ``DEL-YYYY-NNN`` exists with one line per
              input line.
            - Every line whose price differs from its locked period price
              has an automatic NCR linked from the line.
            - Stock on hand and WAC reflect every line.
        """
        if not supplier or not supplier.strip():
            raise ValidationError("supplier", "must not be blank")
        if not lines:
            raise ValidationError("lines", "at least one line is required")
        validated = [
            (
                line.item_id,
                require_quantity(line.quantity),
                require_non_negative(line.unit_price, "unit_price"),
            )
            for line in lines
        ]
        delivery_date = delivery_date or self._clock.today()

        with LogContext.bind(location_id=location_id, period_id=period_id, actor_id=actor_id), \
                self._uow.atomic():
            self._periods.require_open_for_posting(period_id, location_id)

            delivery_no = self._sequences.next_document_number(
                self._numbering.delivery_prefix, delivery_date.year, self._numbering.padding
            )
            delivery = DeliveryModel(
                delivery_no=delivery_no,
                location_id=location_id,
                period_id=period_id,
                supplier=supplier.strip(),
                invoice_no=invoice_no,
                delivery_date=delivery_date,
                total_amount=Decimal("0"),
                has_variance=False,
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(delivery)
            self._session.flush()

            line_rows = []
            ncrs = []
            for line_no, (item_id, quantity, unit_price) in enumerate(validated, start=1):
                item = self._require_item(item_id)
                period_price = self._prices.get_price(item_id, period_id)
                if period_price is None:
                    logger.warning("price_book_entry_missing", extra={
                        "item_id": str(item_id),
                        "item_name": item.name,
                        "delivery_no": delivery_no,
                    })

                variance = self._detector.detect(unit_price, period_price, quantity)
                row = DeliveryLineModel(
                    delivery_id=delivery.id,
                    line_no=line_no,
                    item_id=item_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    period_price=period_price,
                    price_variance=quantize_storage(variance.variance),
                    line_value=quantize_storage(extend(quantity, unit_price)),
                )
                self._session.add(row)
                self._session.flush()

                if variance.has_variance:
                    ncr = self._ncrs.create_price_variance_ncr(
                        location_id=location_id,
                        delivery_id=delivery.id,
                        delivery_line_id=row.id,
                        item=item,
                        variance=variance,
                        actor_id=actor_id,
                        delivery_no=delivery_no,
                    )
                    row.ncr_id = ncr.id
                    ncrs.append(ncr)
                line_rows.append(row)

            # Stock moves only after every NCR exists
            for item_id, quantity, unit_price in validated:
                self._ledger.receive(location_id, item_id, quantity, unit_price)

            delivery.total_amount = round_money(
                sum_decimals(extend(q, p) for _, q, p in validated)
            )
            delivery.has_variance = bool(ncrs)
            self._session.flush()
            self._session.refresh(delivery, attribute_names=["lines"])
            info = delivery.to_dto()

        logger.info("delivery_posted", extra={
            "delivery_no": info.delivery_no,
            "line_count": len(info.lines),
            "total_amount": info.total_amount,
            "ncr_count": len(ncrs),
        })
        return DeliveryResult(delivery=info, ncrs_created=tuple(ncrs))

    # =========================================================================
    # Issues
    # =========================================================================

    def post_issue(
        self,
        location_id: UUID,
        period_id: UUID,
        cost_centre: CostCentre | str,
        lines: Sequence[IssueLineInput],
        actor_id: UUID,
        issue_date: date | None = None,
        notes: str | None = None,
    ) -> IssueResult:
        """
        Consume stock at ``location_id``.

        Raises:
            InsufficientStockError: any line exceeds stock on hand; nothing
                is written and every deficient item is named.
        """
        try:
            cost_centre = CostCentre(cost_centre)
        except ValueError:
            raise ValidationError("cost_centre", f"unknown cost centre {cost_centre!r}") from None
        if not lines:
            raise ValidationError("lines", "at least one line is required")
        validated = [(line.item_id, require_quantity(line.quantity)) for line in lines]
        issue_date = issue_date or self._clock.today()

        with LogContext.bind(location_id=location_id, period_id=period_id, actor_id=actor_id), \
                self._uow.atomic():
            self._periods.require_open_for_posting(period_id, location_id)
            for item_id, _ in validated:
                self._require_item(item_id)

            self._ledger.require_available(
                location_id, [StockLine(item_id, quantity) for item_id, quantity in validated]
            )

            issue_no = self._sequences.next_document_number(
                self._numbering.issue_prefix, issue_date.year, self._numbering.padding
            )
            issue = IssueModel(
                issue_no=issue_no,
                location_id=location_id,
                period_id=period_id,
                cost_centre=cost_centre.value,
                issue_date=issue_date,
                total_value=Decimal("0"),
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(issue)
            self._session.flush()

            values = []
            for line_no, (item_id, quantity) in enumerate(validated, start=1):
                wac = self._ledger.read(location_id, item_id).wac
                self._ledger.consume(location_id, item_id, quantity)
                line_value = extend(quantity, wac)
                values.append(line_value)
                self._session.add(IssueLineModel(
                    issue_id=issue.id,
                    line_no=line_no,
                    item_id=item_id,
                    quantity=quantity,
                    wac_at_issue=wac,
                    line_value=quantize_storage(line_value),
                ))

            issue.total_value = round_money(sum_decimals(values))
            self._session.flush()
            self._session.refresh(issue, attribute_names=["lines"])
            info = issue.to_dto()

        logger.info("issue_posted", extra={
            "issue_no": info.issue_no,
            "cost_centre": info.cost_centre,
            "line_count": len(info.lines),
            "total_value": info.total_value,
        })
        return IssueResult(issue=info)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_delivery(self, delivery_id: UUID) -> DeliveryInfo | None:
        delivery = self._session.get(DeliveryModel, delivery_id)
        return delivery.to_dto() if delivery is not None else None

    def get_issue(self, issue_id: UUID) -> IssueInfo | None:
        issue = self._session.get(IssueModel, issue_id)
        return issue.to_dto() if issue is not None else None

    def list_deliveries(self, period_id: UUID, location_id: UUID) -> list[DeliveryInfo]:
        rows = self._session.execute(
            select(DeliveryModel)
            .where(DeliveryModel.period_id == period_id, DeliveryModel.location_id == location_id)
            .order_by(DeliveryModel.delivery_no)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def _require_item(self, item_id: UUID) -> Item:
        item = self._session.get(Item, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item
