"""
NCR Module Service (``stock_modules.ncr.service``).

Responsibility
--------------
Raises and tracks non-conformance reports.  Price-variance NCRs are
raised by the transaction processor inside its own unit of work; manual
NCRs and status changes are separate operations.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. Uses ``SequenceService`` for ``NCR-YYYY-NNN`` numbers.
2. Validates every status change against ``NCR_WORKFLOW``.
3. Reads deliveries (transactions module) to attribute NCRs to a period.

Invariants
----------
- Each public method owns its transaction boundary unless constructed
  with ``auto_commit=False`` (the transaction processor does this).
- An NCR value is a non-negative magnitude; for a price variance it is
  ``|unit_price - period_price| x quantity``.
- A manual NCR's reason ends with a machine-readable ``[ITEMS]`` block
  and its value is the sum of the item rows.
- Entering a terminal status stamps ``resolved_at``; a terminal NCR never
  changes again.

Failure Modes
-------------
- ``ValidationError`` for a blank reason, no item rows, bad quantities or
  values, or a financial impact on anything but RESOLVED.
- ``InvalidStatusTransitionError`` for backward moves, skipping SENT, or
  leaving a terminal status.
- ``NCRNotFoundError`` / ``LocationNotFoundError`` / ``ItemNotFoundError``.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_config.schema import NumberingConfig
from stock_engines.variance import PriceVarianceResult
from stock_kernel.db.base import quantize_storage
from stock_kernel.db.unit_of_work import UnitOfWork
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.values import require_non_negative, require_quantity, sum_decimals
from stock_kernel.domain.workflow import require_transition
from stock_kernel.exceptions import (
    ItemNotFoundError,
    LocationNotFoundError,
    NCRNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.location import Item, Location
from stock_kernel.services.period_service import PeriodService
from stock_kernel.services.sequence_service import SequenceService
from stock_modules.ncr.models import (
    FinancialImpact,
    NCRInfo,
    NCRItemInput,
    NCRStatus,
    NCRSummary,
    NCRType,
)
from stock_modules.ncr.orm import NCRModel
from stock_modules.ncr.workflows import NCR_WORKFLOW
from stock_modules.transactions.orm import DeliveryModel

logger = get_logger("modules.ncr.service")

ITEMS_MARKER = "[ITEMS]"


class NCRService:
    """
    Creates NCRs and moves them through their lifecycle.

    Contract
    --------
    Returns frozen ``NCRInfo`` DTOs.  Commits on success and rolls back on
    failure unless ``auto_commit=False``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        numbering: NumberingConfig | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._numbering = numbering or NumberingConfig()
        self._uow = UnitOfWork(session, auto_commit=auto_commit)
        self._sequences = SequenceService(session)

    # =========================================================================
    # Creation
    # =========================================================================

    def create_price_variance_ncr(
        self,
        location_id: UUID,
        delivery_id: UUID,
        delivery_line_id: UUID,
        item: Item,
        variance: PriceVarianceResult,
        actor_id: UUID,
        delivery_no: str | None = None,
    ) -> NCRInfo:
        """Automatic NCR for a delivery line priced off the price book."""
        reason = variance.describe(item.name)
        if delivery_no:
            reason = f"{reason} (delivery {delivery_no})"

        with self._uow.atomic():
            ncr = self._new_ncr(
                location_id=location_id,
                ncr_type=NCRType.PRICE_VARIANCE,
                auto_generated=True,
                reason=reason,
                value=variance.variance_value,
                actor_id=actor_id,
                delivery_id=delivery_id,
                delivery_line_id=delivery_line_id,
                item_id=item.id,
                quantity=variance.quantity,
            )

        logger.info("ncr_created", extra={
            "ncr_no": ncr.ncr_no,
            "type": ncr.type,
            "item_id": str(item.id),
            "delivery_id": str(delivery_id),
            "value": str(ncr.value),
        })
        return ncr.to_dto()

    def create_manual_ncr(
        self,
        location_id: UUID,
        reason: str,
        items: Sequence[NCRItemInput],
        actor_id: UUID,
        delivery_id: UUID | None = None,
    ) -> NCRInfo:
        """
        Manual NCR for one or more item rows.

        The reason keeps the operator's text and gets the rows appended as
        ``[ITEMS] [{"item_id": ..., "quantity": ..., "value": ...}]``.
        """
        if not reason or not reason.strip():
            raise ValidationError("reason", "must not be blank")
        if not items:
            raise ValidationError("items", "at least one item row is required")

        rows = []
        for row in items:
            quantity = require_quantity(row.quantity)
            value = require_non_negative(row.value, "value")
            rows.append((row.item_id, quantity, value))

        with self._uow.atomic():
            if self._session.get(Location, location_id) is None:
                raise LocationNotFoundError(str(location_id))
            for item_id, _, _ in rows:
                if self._session.get(Item, item_id) is None:
                    raise ItemNotFoundError(str(item_id))

            breakdown = json.dumps([
                {"item_id": str(item_id), "quantity": str(quantity), "value": str(value)}
                for item_id, quantity, value in rows
            ])
            single_item = rows[0][0] if len(rows) == 1 else None
            ncr = self._new_ncr(
                location_id=location_id,
                ncr_type=NCRType.MANUAL,
                auto_generated=False,
                reason=f"{reason.strip()}\n\n{ITEMS_MARKER} {breakdown}",
                value=sum_decimals(value for _, _, value in rows),
                actor_id=actor_id,
                delivery_id=delivery_id,
                item_id=single_item,
                quantity=rows[0][1] if single_item is not None else None,
            )

        logger.info("ncr_created", extra={
            "ncr_no": ncr.ncr_no,
            "type": ncr.type,
            "item_count": len(rows),
            "value": str(ncr.value),
        })
        return ncr.to_dto()

    def _new_ncr(
        self,
        location_id: UUID,
        ncr_type: NCRType,
        auto_generated: bool,
        reason: str,
        value: Decimal,
        actor_id: UUID,
        delivery_id: UUID | None = None,
        delivery_line_id: UUID | None = None,
        item_id: UUID | None = None,
        quantity: Decimal | None = None,
    ) -> NCRModel:
        now = self._clock.now_utc()
        ncr_no = self._sequences.next_document_number(
            self._numbering.ncr_prefix, now.year, self._numbering.padding
        )
        ncr = NCRModel(
            ncr_no=ncr_no,
            location_id=location_id,
            type=ncr_type.value,
            auto_generated=auto_generated,
            delivery_id=delivery_id,
            delivery_line_id=delivery_line_id,
            item_id=item_id,
            reason=reason,
            quantity=quantity,
            value=quantize_storage(value),
            status=NCRStatus.OPEN.value,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self._session.add(ncr)
        self._session.flush()
        return ncr

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def update_status(
        self,
        ncr_id: UUID,
        new_status: NCRStatus | str,
        notes: str | None = None,
        financial_impact: FinancialImpact | str | None = None,
        actor_id: UUID | None = None,
    ) -> NCRInfo:
        """
        Move an NCR one step along ``OPEN -> SENT -> terminal``.

        ``financial_impact`` is accepted only with RESOLVED.
        """
        try:
            target = NCRStatus(new_status)
        except ValueError:
            raise ValidationError("new_status", f"unknown NCR status {new_status!r}") from None
        impact = None
        if financial_impact is not None:
            try:
                impact = FinancialImpact(financial_impact)
            except ValueError:
                raise ValidationError(
                    "financial_impact", f"unknown financial impact {financial_impact!r}"
                ) from None
        if impact is not None and target is not NCRStatus.RESOLVED:
            raise ValidationError(
                "financial_impact", f"only allowed when resolving, not {target.value}"
            )

        with self._uow.atomic():
            ncr = self._session.execute(
                select(NCRModel)
                .where(NCRModel.id == ncr_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if ncr is None:
                raise NCRNotFoundError(str(ncr_id))

            previous = ncr.status
            require_transition(NCR_WORKFLOW, ncr.status, target, f"NCR {ncr.ncr_no}")

            now = self._clock.now_utc()
            ncr.status = target.value
            ncr.updated_at = now
            ncr.updated_by_id = actor_id
            if target is NCRStatus.SENT:
                ncr.sent_at = now
            if target.value in NCR_WORKFLOW.terminal_states:
                ncr.resolved_at = now
                ncr.resolution_notes = notes
                ncr.financial_impact = impact.value if impact is not None else None
            self._session.flush()

        logger.info("ncr_status_changed", extra={
            "ncr_no": ncr.ncr_no,
            "from_status": previous,
            "to_status": ncr.status,
            "financial_impact": ncr.financial_impact,
        })
        return ncr.to_dto()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_ncr(self, ncr_id: UUID) -> NCRInfo:
        ncr = self._session.get(NCRModel, ncr_id)
        if ncr is None:
            raise NCRNotFoundError(str(ncr_id))
        return ncr.to_dto()

    def list_for_delivery(self, delivery_id: UUID) -> list[NCRInfo]:
        rows = self._session.execute(
            select(NCRModel)
            .where(NCRModel.delivery_id == delivery_id)
            .order_by(NCRModel.ncr_no)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def summary(self, period_id: UUID, location_id: UUID) -> NCRSummary:
        """
        NCR counts and totals of a (period, location) by outcome.

        An NCR belongs to the period of its delivery; one without a
        delivery belongs to the period containing its creation date.
        """
        period = PeriodService(self._session, self._clock).get_period_orm(period_id)

        rows = self._session.execute(
            select(NCRModel, DeliveryModel.period_id)
            .outerjoin(DeliveryModel, DeliveryModel.id == NCRModel.delivery_id)
            .where(NCRModel.location_id == location_id)
        ).all()

        summary = NCRSummary(period_id=period_id, location_id=location_id)
        buckets = {"credited": summary.credited, "losses": summary.losses,
                   "pending": summary.pending, "open": summary.open}
        for ncr, delivery_period_id in rows:
            if delivery_period_id is not None:
                if delivery_period_id != period_id:
                    continue
            elif not self._created_within(ncr, period.start_date, period.end_date):
                continue

            category = self._category(ncr)
            if category is not None:
                buckets[category] = buckets[category].add(ncr.value)

        return NCRSummary(period_id=period_id, location_id=location_id, **buckets)

    @staticmethod
    def _created_within(ncr: NCRModel, start: date, end: date) -> bool:
        return start <= ncr.created_at.date() <= end

    @staticmethod
    def _category(ncr: NCRModel) -> str | None:
        status = ncr.status
        impact = ncr.financial_impact
        if status == NCRStatus.CREDITED.value:
            return "credited"
        if status == NCRStatus.REJECTED.value:
            return "losses"
        if status == NCRStatus.RESOLVED.value:
            if impact == FinancialImpact.CREDIT.value:
                return "credited"
            if impact == FinancialImpact.LOSS.value:
                return "losses"
            return None
        if status == NCRStatus.SENT.value:
            return "pending"
        return "open"

