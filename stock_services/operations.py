"""
stock_services.operations -- Operation interface of the stock ledger.

Responsibility:
    One entry point per externally visible operation.  Each call opens a
    session from the configured factory, builds the services it needs
    against that session, runs, and commits or rolls back as one unit.

Architecture position:
    Services -- outermost surface.  Composes the module services
    (transactions, transfers, NCR, reconciliation) with the period manager
    and the stock ledger.  Services inside a call share the session and
    run with ``auto_commit=False``; ``session_scope`` owns the transaction.

Invariants enforced:
    - One session and one transaction per operation.
    - A failed operation leaves the store unchanged; the error propagates.
    - Identities and capabilities arrive pre-validated.  Operations that
      need an elevated (supervisor or admin) capability are marked
      ``Requires elevated capability`` below; the caller checks it.

Failure modes:
    Whatever the composed service raises, unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from stock_config import get_config
from stock_config.schema import StockLedgerConfig
from stock_kernel.db.engine import get_session_factory, init_engine_from_url, session_scope
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    LocationValuation,
    PeriodCloseResult,
    PeriodInfo,
    PeriodLocationInfo,
    PriceEntryInfo,
)
from stock_kernel.logging_config import configure_logging, get_logger
from stock_kernel.services.price_book_service import PriceBookService
from stock_modules.ncr.models import FinancialImpact, NCRInfo, NCRItemInput, NCRStatus, NCRSummary
from stock_modules.ncr.service import NCRService
from stock_modules.reconciliation.models import (
    POBEntryInfo,
    POBEntryInput,
    ReconciliationInfo,
    ReconciliationResult,
)
from stock_modules.reconciliation.service import ReconciliationService
from stock_modules.transactions.models import (
    CostCentre,
    DeliveryLineInput,
    DeliveryResult,
    IssueLineInput,
    IssueResult,
)
from stock_modules.transactions.service import TransactionProcessor
from stock_modules.transfers.models import TransferInfo, TransferLineInput, TransferResult
from stock_modules.transfers.service import TransferService
from stock_services.period_manager import PeriodManager
from stock_services.stock_ledger import StockLedger

logger = get_logger("services.operations")


class StockOperations:
    """
    Session-per-call facade over the stock ledger services.

    Contract:
        Every method is one atomic operation.  Returned values are frozen
        DTOs, safe to use after the session has closed.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        config: StockLedgerConfig | None = None,
    ):
        self._factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or get_config()

    @classmethod
    def from_config(
        cls,
        config: StockLedgerConfig | None = None,
        clock: Clock | None = None,
    ) -> StockOperations:
        """Initialise logging and the module-level engine from configuration."""
        config = config or get_config()
        configure_logging(level=logging.getLevelName(config.logging.level.upper()))
        init_engine_from_url(
            config.database.url,
            echo=config.database.echo,
            **config.database.pool_options,
        )
        logger.info("stock_operations_ready", extra={
            "database_dialect": config.database.url.split(":", 1)[0],
        })
        return cls(get_session_factory(), clock=clock, config=config)

    # =========================================================================
    # Service construction
    # =========================================================================

    def _transactions(self, session: Session) -> TransactionProcessor:
        return TransactionProcessor(
            session,
            self._clock,
            numbering=self._config.numbering,
            variance_tolerance_percent=self._config.variance.tolerance_percent,
            auto_commit=False,
        )

    def _transfers(self, session: Session) -> TransferService:
        return TransferService(
            session, self._clock, numbering=self._config.numbering, auto_commit=False
        )

    def _ncrs(self, session: Session) -> NCRService:
        return NCRService(session, self._clock, numbering=self._config.numbering, auto_commit=False)

    def _periods(self, session: Session) -> PeriodManager:
        return PeriodManager(session, self._clock, auto_commit=False)

    def _reconciliations(self, session: Session) -> ReconciliationService:
        return ReconciliationService(session, self._clock, auto_commit=False)

    # =========================================================================
    # Transactions
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
        with session_scope(self._factory) as session:
            return self._transactions(session).post_delivery(
                location_id, period_id, supplier, lines, actor_id,
                delivery_date=delivery_date, invoice_no=invoice_no, notes=notes,
            )

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
        with session_scope(self._factory) as session:
            return self._transactions(session).post_issue(
                location_id, period_id, cost_centre, lines, actor_id,
                issue_date=issue_date, notes=notes,
            )

    # =========================================================================
    # Transfers
    # =========================================================================

    def create_transfer(
        self,
        from_location_id: UUID,
        to_location_id: UUID,
        lines: Sequence[TransferLineInput],
        requested_by_id: UUID,
        notes: str | None = None,
    ) -> TransferResult:
        with session_scope(self._factory) as session:
            return self._transfers(session).create_transfer(
                from_location_id, to_location_id, lines, requested_by_id, notes=notes
            )

    def approve_transfer(self, transfer_id: UUID, approver_id: UUID) -> TransferResult:
        """Requires elevated capability."""
        with session_scope(self._factory) as session:
            return self._transfers(session).approve_transfer(transfer_id, approver_id)

    def reject_transfer(self, transfer_id: UUID, approver_id: UUID, comment: str) -> TransferResult:
        """Requires elevated capability."""
        with session_scope(self._factory) as session:
            return self._transfers(session).reject_transfer(transfer_id, approver_id, comment)

    def get_transfer(self, transfer_id: UUID) -> TransferInfo:
        with session_scope(self._factory) as session:
            return self._transfers(session).get_transfer(transfer_id)

    # =========================================================================
    # Periods
    # =========================================================================

    def create_period(self, name: str, start_date: date, end_date: date) -> PeriodInfo:
        """Requires elevated capability."""
        with session_scope(self._factory) as session:
            return self._periods(session).create_period(name, start_date, end_date)

    def open_period(self, name: str, start_date: date, end_date: date) -> PeriodInfo:
        """Create a period and open it at once.  Requires elevated capability."""
        with session_scope(self._factory) as session:
            return self._periods(session).open_period(name, start_date, end_date)

    def activate_period(self, period_id: UUID) -> PeriodInfo:
        """Open an existing DRAFT period.  Requires elevated capability."""
        with session_scope(self._factory) as session:
            return self._periods(session).activate_period(period_id)

    def mark_location_ready(self, period_id: UUID, location_id: UUID) -> PeriodLocationInfo:
        with session_scope(self._factory) as session:
            return self._periods(session).mark_location_ready(period_id, location_id)

    def mark_location_unready(self, period_id: UUID, location_id: UUID) -> PeriodLocationInfo:
        with session_scope(self._factory) as session:
            return self._periods(session).mark_location_unready(period_id, location_id)

    def request_close(self, period_id: UUID) -> PeriodInfo:
        with session_scope(self._factory) as session:
            return self._periods(session).request_close(period_id)

    def reject_close(self, period_id: UUID) -> PeriodInfo:
        """Requires elevated capability."""
        with session_scope(self._factory) as session:
            return self._periods(session).reject_close(period_id)

    def close_period(self, period_id: UUID) -> PeriodCloseResult:
        """Requires elevated capability."""
        with session_scope(self._factory) as session:
            return self._periods(session).close_period(period_id)

    def roll_forward(
        self,
        period_id: UUID,
        name: str | None = None,
        end_date: date | None = None,
        copy_prices: bool = True,
        actor_id: UUID | None = None,
    ) -> PeriodInfo:
        """Requires elevated capability."""
        with session_scope(self._factory) as session:
            return self._periods(session).roll_forward(
                period_id, name=name, end_date=end_date,
                copy_prices=copy_prices, actor_id=actor_id,
            )

    def get_current_period(self) -> PeriodInfo | None:
        with session_scope(self._factory) as session:
            return self._periods(session).get_current_period()

    def get_period_locations(self, period_id: UUID) -> list[PeriodLocationInfo]:
        with session_scope(self._factory) as session:
            return self._periods(session).get_period_locations(period_id)

    # =========================================================================
    # Price book
    # =========================================================================

    def set_prices(
        self,
        period_id: UUID,
        prices: Sequence[tuple[UUID, Decimal]],
        actor_id: UUID,
    ) -> list[PriceEntryInfo]:
        """Requires elevated capability."""
        with session_scope(self._factory) as session:
            return PriceBookService(session, self._clock).set_prices(period_id, prices, actor_id)

    def copy_prices(
        self,
        target_period_id: UUID,
        source_period_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> int:
        """Requires elevated capability."""
        with session_scope(self._factory) as session:
            return PriceBookService(session, self._clock).copy_prices(
                target_period_id, source_period_id, actor_id
            )

    def get_price(self, item_id: UUID, period_id: UUID) -> Decimal | None:
        with session_scope(self._factory) as session:
            return PriceBookService(session, self._clock).get_price(item_id, period_id)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def get_or_compute_reconciliation(
        self, period_id: UUID, location_id: UUID
    ) -> ReconciliationResult:
        with session_scope(self._factory) as session:
            return self._reconciliations(session).get_or_compute(period_id, location_id)

    def save_reconciliation_adjustments(
        self,
        period_id: UUID,
        location_id: UUID,
        back_charges: Decimal | int | str = Decimal("0"),
        credits: Decimal | int | str = Decimal("0"),
        condemnations: Decimal | int | str = Decimal("0"),
        other: Decimal | int | str = Decimal("0"),
        saved_by_id: UUID | None = None,
    ) -> ReconciliationInfo:
        """Requires elevated capability."""
        with session_scope(self._factory) as session:
            return self._reconciliations(session).save_adjustments(
                period_id, location_id,
                back_charges=back_charges, credits=credits,
                condemnations=condemnations, other=other,
                saved_by_id=saved_by_id,
            )

    def record_pob(
        self,
        period_id: UUID,
        location_id: UUID,
        entries: Sequence[POBEntryInput],
        entered_by_id: UUID,
    ) -> list[POBEntryInfo]:
        with session_scope(self._factory) as session:
            return self._reconciliations(session).record_pob(
                period_id, location_id, entries, entered_by_id
            )

    def total_mandays(self, period_id: UUID, location_id: UUID) -> int:
        with session_scope(self._factory) as session:
            return self._reconciliations(session).total_mandays(period_id, location_id)

    # =========================================================================
    # NCRs
    # =========================================================================

    def create_manual_ncr(
        self,
        location_id: UUID,
        reason: str,
        items: Sequence[NCRItemInput],
        actor_id: UUID,
        delivery_id: UUID | None = None,
    ) -> NCRInfo:
        with session_scope(self._factory) as session:
            return self._ncrs(session).create_manual_ncr(
                location_id, reason, items, actor_id, delivery_id=delivery_id
            )

    def update_ncr_status(
        self,
        ncr_id: UUID,
        new_status: NCRStatus | str,
        notes: str | None = None,
        financial_impact: FinancialImpact | str | None = None,
        actor_id: UUID | None = None,
    ) -> NCRInfo:
        with session_scope(self._factory) as session:
            return self._ncrs(session).update_status(
                ncr_id, new_status, notes=notes,
                financial_impact=financial_impact, actor_id=actor_id,
            )

    def ncr_summary(self, period_id: UUID, location_id: UUID) -> NCRSummary:
        with session_scope(self._factory) as session:
            return self._ncrs(session).summary(period_id, location_id)

    # =========================================================================
    # Stock
    # =========================================================================

    def read_stock(self, location_id: UUID, include_empty: bool = False) -> LocationValuation:
        with session_scope(self._factory) as session:
            return StockLedger(session, self._clock).valuation(location_id, include_empty)
