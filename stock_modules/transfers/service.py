"""
Transfer Module Service (``stock_modules.transfers.service``).

Responsibility
--------------
Moves stock between locations in two steps: a request that freezes the
source WAC, and a supervisor approval that moves the stock.  Rejection
is a status change only.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper over ``StockLedger``.

Invariants
----------
- Source and destination differ; checked before anything is written.
- Stock at request time is advisory.  Approval re-checks it under row
  locks and, on a shortage, leaves the transfer PENDING_APPROVAL.
- Approval is one unit of work: lock transfer, check transition, check
  stock, consume at source, receive at destination at
  ``wac_at_transfer``, then APPROVED -> COMPLETED.  Two competing approvals
  serialise on the transfer row lock; the loser sees COMPLETED and gets
  ``InvalidStatusTransitionError``.
- Only PENDING_APPROVAL transfers can be approved or rejected.

Failure Modes
-------------
- ``SameLocationError``, ``InsufficientStockError``,
  ``InvalidStatusTransitionError``, ``ValidationError`` (no lines, blank
  rejection comment), ``TransferNotFoundError``,
  ``LocationNotFoundError`` / ``ItemNotFoundError``.

Audit Relevance
---------------
``transfer_requested``, ``transfer_completed`` and ``transfer_rejected``
are logged with the transfer number and the acting user.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_config.schema import NumberingConfig
from stock_kernel.db.base import quantize_storage
from stock_kernel.db.unit_of_work import UnitOfWork
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import StockLine
from stock_kernel.domain.values import extend, require_quantity, round_money, sum_decimals
from stock_kernel.domain.workflow import require_transition
from stock_kernel.exceptions import (
    ItemNotFoundError,
    LocationNotFoundError,
    SameLocationError,
    TransferNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.location import Item, Location
from stock_kernel.services.sequence_service import SequenceService
from stock_modules.transfers.models import (
    TransferInfo,
    TransferLineInput,
    TransferResult,
    TransferStatus,
)
from stock_modules.transfers.orm import TransferLineModel, TransferModel
from stock_modules.transfers.workflows import TRANSFER_WORKFLOW
from stock_services.stock_ledger import StockLedger

logger = get_logger("modules.transfers.service")


class TransferService:
    """
    Creates, approves and rejects transfers.

    Contract
    --------
    Each public method commits on success and rolls back on failure
    unless ``auto_commit=False``.  The approver's supervisor capability is
    checked by the caller.
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
        self._ledger = StockLedger(session, self._clock)

    def create_transfer(
        self,
        from_location_id: UUID,
        to_location_id: UUID,
        lines: Sequence[TransferLineInput],
        requested_by_id: UUID,
        notes: str | None = None,
    ) -> TransferResult:
        """
        Request a transfer; it waits in PENDING_APPROVAL.

        Each line freezes the source location's current WAC.
        """
        if from_location_id == to_location_id:
            raise SameLocationError(str(from_location_id))
        if not lines:
            raise ValidationError("lines", "at least one line is required")
        validated = [(line.item_id, require_quantity(line.quantity)) for line in lines]

        with LogContext.bind(location_id=from_location_id, actor_id=requested_by_id), \
                self._uow.atomic():
            for location_id in (from_location_id, to_location_id):
                if self._session.get(Location, location_id) is None:
                    raise LocationNotFoundError(str(location_id))
            for item_id, _ in validated:
                if self._session.get(Item, item_id) is None:
                    raise ItemNotFoundError(str(item_id))

            self._ledger.require_available(
                from_location_id,
                [StockLine(item_id, quantity) for item_id, quantity in validated],
            )

            now = self._clock.now_utc()
            transfer = TransferModel(
                transfer_no=self._sequences.next_document_number(
                    self._numbering.transfer_prefix, now.year, self._numbering.padding
                ),
                from_location_id=from_location_id,
                to_location_id=to_location_id,
                status=TRANSFER_WORKFLOW.initial_state,
                requested_by_id=requested_by_id,
                request_date=now,
                total_value=quantize_storage(0),
                notes=notes,
                created_by_id=requested_by_id,
            )
            self._session.add(transfer)
            self._session.flush()

            values = []
            for line_no, (item_id, quantity) in enumerate(validated, start=1):
                wac = self._ledger.read(from_location_id, item_id).wac
                line_value = extend(quantity, wac)
                values.append(line_value)
                self._session.add(TransferLineModel(
                    transfer_id=transfer.id,
                    line_no=line_no,
                    item_id=item_id,
                    quantity=quantity,
                    wac_at_transfer=wac,
                    line_value=quantize_storage(line_value),
                ))

            require_transition(
                TRANSFER_WORKFLOW, transfer.status, TransferStatus.PENDING_APPROVAL,
                f"transfer {transfer.transfer_no}",
            )
            transfer.status = TransferStatus.PENDING_APPROVAL.value
            transfer.total_value = round_money(sum_decimals(values))
            self._session.flush()
            info = self._to_info(transfer)

        logger.info("transfer_requested", extra={
            "transfer_no": info.transfer_no,
            "to_location_id": str(to_location_id),
            "total_value": info.total_value,
        })
        return TransferResult(transfer=info)

    def approve_transfer(self, transfer_id: UUID, approver_id: UUID) -> TransferResult:
        """
        Approve and execute a pending transfer.

        Raises:
            InsufficientStockError: the source no longer holds enough; the
                transfer stays PENDING_APPROVAL.
            InvalidStatusTransitionError: not PENDING_APPROVAL.
        """
        with LogContext.bind(actor_id=approver_id), self._uow.atomic():
            transfer = self._lock_transfer(transfer_id)
            entity = f"transfer {transfer.transfer_no}"
            require_transition(TRANSFER_WORKFLOW, transfer.status, TransferStatus.APPROVED, entity)

            self._ledger.require_available(
                transfer.from_location_id,
                [StockLine(line.item_id, line.quantity) for line in transfer.lines],
            )

            for line in transfer.lines:
                self._ledger.consume(transfer.from_location_id, line.item_id, line.quantity)
                self._ledger.receive(
                    transfer.to_location_id, line.item_id, line.quantity, line.wac_at_transfer
                )

            now = self._clock.now_utc()
            transfer.status = TransferStatus.APPROVED.value
            transfer.approved_by_id = approver_id
            transfer.approval_date = now

            require_transition(TRANSFER_WORKFLOW, transfer.status, TransferStatus.COMPLETED, entity)
            transfer.status = TransferStatus.COMPLETED.value
            transfer.transfer_date = now.date()
            transfer.updated_by_id = approver_id
            self._session.flush()
            info = self._to_info(transfer)

        logger.info("transfer_completed", extra={
            "transfer_no": info.transfer_no,
            "from_location_id": str(info.from_location_id),
            "to_location_id": str(info.to_location_id),
            "total_value": info.total_value,
        })
        return TransferResult(transfer=info)

    def reject_transfer(self, transfer_id: UUID, approver_id: UUID, comment: str) -> TransferResult:
        """Reject a pending transfer; no stock moves."""
        if not comment or not comment.strip():
            raise ValidationError("comment", "a rejection needs a comment")

        with LogContext.bind(actor_id=approver_id), self._uow.atomic():
            transfer = self._lock_transfer(transfer_id)
            require_transition(
                TRANSFER_WORKFLOW, transfer.status, TransferStatus.REJECTED,
                f"transfer {transfer.transfer_no}",
            )
            transfer.status = TransferStatus.REJECTED.value
            transfer.approved_by_id = approver_id
            transfer.approval_date = self._clock.now_utc()
            transfer.comment = comment.strip()
            transfer.updated_by_id = approver_id
            self._session.flush()
            info = self._to_info(transfer)

        logger.info("transfer_rejected", extra={"transfer_no": info.transfer_no})
        return TransferResult(transfer=info)

    def get_transfer(self, transfer_id: UUID) -> TransferInfo:
        transfer = self._session.get(TransferModel, transfer_id)
        if transfer is None:
            raise TransferNotFoundError(str(transfer_id))
        return self._to_info(transfer)

    def _lock_transfer(self, transfer_id: UUID) -> TransferModel:
        transfer = self._session.execute(
            select(TransferModel)
            .where(TransferModel.id == transfer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if transfer is None:
            raise TransferNotFoundError(str(transfer_id))
        return transfer

    def _to_info(self, transfer: TransferModel) -> TransferInfo:
        self._session.refresh(transfer, attribute_names=["lines"])
        return transfer.to_dto()
