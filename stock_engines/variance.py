"""
stock_engines.variance -- Delivery price variance detection.

Responsibility:
    Compare a delivery line's actual unit price with the price locked for
    the period and describe the difference.  Stateless; invoked inline by
    the transaction processor for every delivery line.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - variance = unit_price - period_price (signed; positive means the
      supplier charged more than the locked price).
    - variance_value = |variance| x quantity -- the NCR value.
    - A line with no locked price has no variance (``has_expected_price``
      is False) and never yields an NCR.
    - Favorable when the supplier charged less than the locked price.
    - variance_percent is 0 when the period price is zero.

Failure modes:
    - ValidationError on non-positive quantity or negative prices.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from stock_engines.tracer import traced_engine
from stock_kernel.domain.values import (
    ZERO,
    divide,
    require_non_negative,
    require_positive,
    round_money,
    round_price,
)
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.variance")


@dataclass(frozen=True)
class PriceVarianceResult:
    """
    Result of comparing one delivery line to the price book.

    All fields are immutable. Use properties for derived values.
    """

    quantity: Decimal
    unit_price: Decimal
    period_price: Decimal | None
    variance: Decimal
    exceeds_tolerance: bool

    @property
    def has_expected_price(self) -> bool:
        return self.period_price is not None

    @property
    def has_variance(self) -> bool:
        """True when the line must raise a price-variance NCR."""
        return self.has_expected_price and self.variance != ZERO and self.exceeds_tolerance

    @property
    def absolute_variance(self) -> Decimal:
        return abs(self.variance)

    @property
    def variance_value(self) -> Decimal:
        """``|variance| x quantity``, unrounded."""
        return self.absolute_variance * self.quantity

    @property
    def is_favorable(self) -> bool:
        return self.variance < ZERO

    @property
    def variance_percent(self) -> Decimal:
        """Variance as a percentage of the period price."""
        if not self.period_price:
            return ZERO
        return divide(self.variance * Decimal("100"), self.period_price)

    def describe(self, item_name: str) -> str:
        """Human-readable NCR reason for the line."""
        direction = "above" if self.variance > ZERO else "below"
        return (
            f"Price variance for {item_name}: delivered at "
            f"{round_price(self.unit_price)} vs period price "
            f"{round_price(self.period_price)} "
            f"({round_price(self.absolute_variance)} {direction}, "
            f"{round_money(self.variance_percent)}%) "
            f"on quantity {self.quantity}; value {round_money(self.variance_value)}"
        )


class PriceVarianceDetector:
    """
    Pure detector for delivery price deviations.

    Contract:
        No I/O, no database access, fully deterministic.

    ``tolerance_percent`` lets deployments ignore tiny deviations; the
    default of 0 treats every non-zero difference as a variance.
    """

    def __init__(self, tolerance_percent: Decimal = ZERO):
        self._tolerance_percent = require_non_negative(tolerance_percent, "tolerance_percent")

    @traced_engine(
        "price_variance", "1.0",
        fingerprint_fields=("unit_price", "period_price", "quantity"),
    )
    def detect(
        self,
        unit_price: Decimal,
        period_price: Decimal | None,
        quantity: Decimal,
    ) -> PriceVarianceResult:
        """
        Compare ``unit_price`` against ``period_price``.

        ``period_price`` of None means the item has no price book entry for
        the period; the result then reports no variance.
        """
        quantity = require_positive(quantity, "quantity")
        unit_price = require_non_negative(unit_price, "unit_price")

        if period_price is None:
            return PriceVarianceResult(
                quantity=quantity,
                unit_price=unit_price,
                period_price=None,
                variance=ZERO,
                exceeds_tolerance=False,
            )

        period_price = require_non_negative(period_price, "period_price")
        variance = unit_price - period_price

        exceeds = variance != ZERO
        if exceeds and self._tolerance_percent > ZERO and period_price > ZERO:
            percent = abs(divide(variance * Decimal("100"), period_price))
            exceeds = percent > self._tolerance_percent

        if variance != ZERO:
            logger.info("price_variance_detected", extra={
                "unit_price": str(unit_price),
                "period_price": str(period_price),
                "variance": str(variance),
                "quantity": str(quantity),
                "exceeds_tolerance": exceeds,
            })

        return PriceVarianceResult(
            quantity=quantity,
            unit_price=unit_price,
            period_price=period_price,
            variance=variance,
            exceeds_tolerance=exceeds,
        )
