"""
stock_engines.reconciliation -- Period consumption formula.

Responsibility:
    Turn the ledger components of one (period, location) plus manual
    adjustments into a consumption figure and a per-manday cost.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by ``stock_modules.reconciliation.service``, which gathers the
    components from committed transactions and the live ledger.

Invariants enforced:
    base_consumption  = opening + receipts + transfers_in
                        - transfers_out - issues - closing
    total_adjustments = back_charges - credits + condemnations + other
    consumption       = base_consumption + total_adjustments
    manday_cost       = consumption / total_mandays, or None when there
                        are no mandays (reported as not applicable,
                        never an error)

    Components arrive as money amounts; the arithmetic above is exact, so
    consumption reconciles to the cent.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from stock_engines.tracer import traced_engine
from stock_kernel.domain.values import ZERO, divide, to_decimal
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")


@dataclass(frozen=True)
class LedgerComponents:
    """The six ledger-derived figures for a (period, location)."""

    opening_stock: Decimal = ZERO
    receipts: Decimal = ZERO
    transfers_in: Decimal = ZERO
    transfers_out: Decimal = ZERO
    issues: Decimal = ZERO
    closing_stock: Decimal = ZERO


@dataclass(frozen=True)
class Adjustments:
    """Manual adjustments entered at reconciliation time."""

    back_charges: Decimal = ZERO
    credits: Decimal = ZERO
    condemnations: Decimal = ZERO
    other: Decimal = ZERO

    @classmethod
    def of(
        cls,
        back_charges: Decimal | int | str = ZERO,
        credits: Decimal | int | str = ZERO,
        condemnations: Decimal | int | str = ZERO,
        other: Decimal | int | str = ZERO,
    ) -> "Adjustments":
        return cls(
            back_charges=to_decimal(back_charges, "back_charges"),
            credits=to_decimal(credits, "credits"),
            condemnations=to_decimal(condemnations, "condemnations"),
            other=to_decimal(other, "other"),
        )

    @property
    def total(self) -> Decimal:
        return self.back_charges - self.credits + self.condemnations + self.other


@dataclass(frozen=True)
class ReconciliationFigures:
    """Everything a reconciliation reports."""

    components: LedgerComponents
    adjustments: Adjustments
    base_consumption: Decimal
    total_adjustments: Decimal
    consumption: Decimal
    total_mandays: int
    manday_cost: Decimal | None

    @property
    def manday_cost_applicable(self) -> bool:
        return self.manday_cost is not None


class ReconciliationCalculator:
    """
    Pure calculator for period consumption.

    Contract:
        No I/O, no database access, fully deterministic.
    """

    @traced_engine("reconciliation", "1.0", fingerprint_fields=("components", "adjustments", "total_mandays"))
    def calculate(
        self,
        components: LedgerComponents,
        adjustments: Adjustments,
        total_mandays: int = 0,
    ) -> ReconciliationFigures:
        if total_mandays < 0:
            raise ValidationError("total_mandays", f"must not be negative, got {total_mandays}")

        c = components
        base = (
            c.opening_stock
            + c.receipts
            + c.transfers_in
            - c.transfers_out
            - c.issues
            - c.closing_stock
        )
        total_adjustments = adjustments.total
        consumption = base + total_adjustments

        manday_cost = None
        if total_mandays > 0:
            manday_cost = divide(consumption, Decimal(total_mandays))

        return ReconciliationFigures(
            components=components,
            adjustments=adjustments,
            base_consumption=base,
            total_adjustments=total_adjustments,
            consumption=consumption,
            total_mandays=total_mandays,
            manday_cost=manday_cost,
        )
