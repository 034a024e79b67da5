"""
stock_engines.wac -- Weighted Average Cost calculation.

Responsibility:
    Compute the new quantity on hand and WAC of a (location, item) after a
    receipt, and the value of a consumption at the current WAC.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by ``stock_services.stock_ledger.StockLedger``.

Invariants enforced:
    - new_wac = (on_hand * wac + quantity * unit_price) / (on_hand + quantity)
    - When nothing is on hand the prior WAC carries no weight, so the new
      WAC is exactly the receipt price.
    - Consumption never changes WAC.
    - Intermediate values are unrounded; division runs at 34 significant
      digits so that a chain of receipts matches the direct
      sum(q_i * p_i) / sum(q_i) average.

Failure modes:
    - ValidationError if quantity <= 0, unit price < 0, or current state is
      negative.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from stock_engines.tracer import traced_engine
from stock_kernel.domain.values import (
    ZERO,
    divide,
    require_non_negative,
    require_positive,
)
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.wac")


@dataclass(frozen=True)
class WacResult:
    """State of a ledger row before and after a receipt."""

    previous_on_hand: Decimal
    previous_wac: Decimal
    received_quantity: Decimal
    unit_price: Decimal
    on_hand: Decimal
    wac: Decimal

    @property
    def wac_changed(self) -> bool:
        return self.wac != self.previous_wac


@dataclass(frozen=True)
class Receipt:
    """A quantity received at a unit price."""

    quantity: Decimal
    unit_price: Decimal


class WacCalculator:
    """
    Pure calculator for weighted average cost.

    Contract:
        No I/O, no database access, fully deterministic.
    """

    @traced_engine(
        "wac", "1.0",
        fingerprint_fields=("on_hand", "wac", "quantity", "unit_price"),
    )
    def apply_receipt(
        self,
        on_hand: Decimal,
        wac: Decimal,
        quantity: Decimal,
        unit_price: Decimal,
    ) -> WacResult:
        """
        Re-average the cost after receiving ``quantity`` at ``unit_price``.

        Raises:
            ValidationError: on non-positive quantity, negative price, or a
                negative current state.
        """
        quantity = require_positive(quantity, "quantity")
        unit_price = require_non_negative(unit_price, "unit_price")
        on_hand = require_non_negative(on_hand, "on_hand")
        wac = require_non_negative(wac, "wac")

        new_on_hand = on_hand + quantity
        if on_hand == ZERO:
            new_wac = unit_price
        else:
            new_wac = divide(on_hand * wac + quantity * unit_price, new_on_hand)

        return WacResult(
            previous_on_hand=on_hand,
            previous_wac=wac,
            received_quantity=quantity,
            unit_price=unit_price,
            on_hand=new_on_hand,
            wac=new_wac,
        )

    def consumption_value(self, quantity: Decimal, wac: Decimal) -> Decimal:
        """Value of consuming ``quantity`` at the WAC captured before consumption."""
        quantity = require_positive(quantity, "quantity")
        return quantity * require_non_negative(wac, "wac")

    def average(self, receipts: Iterable[Receipt]) -> Decimal:
        """Direct weighted average sum(q_i * p_i) / sum(q_i) over receipts."""
        total_quantity = ZERO
        total_value = ZERO
        for receipt in receipts:
            total_quantity += receipt.quantity
            total_value += receipt.quantity * receipt.unit_price
        if total_quantity == ZERO:
            raise ValidationError("receipts", "total quantity must be positive")
        return divide(total_value, total_quantity)
