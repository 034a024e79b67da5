"""
Decimal arithmetic for quantities, unit costs and money.

Responsibility:
    The single place where numeric input is coerced to ``Decimal`` and where
    display rounding happens.  Every calculation in the ledger, the engines
    and the reconciliation goes through these helpers.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - No floats: ``to_decimal`` converts floats through ``str`` so that
      ``0.1`` becomes ``Decimal("0.1")``, never its binary expansion.
    - Quantities display to 4 places, money to 2, unit prices to 4.
    - Intermediate results are NOT rounded.  ``round_*`` is called only when
      a value is shown or frozen into a money total, so that many small
      receipts do not accumulate rounding error in the WAC.

Failure modes:
    - ValidationError for values that are not numbers, are NaN/infinite,
      or violate a sign requirement.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext

from stock_kernel.exceptions import ValidationError

QUANTITY_DECIMAL_PLACES = 4
PRICE_DECIMAL_PLACES = 4
MONEY_DECIMAL_PLACES = 2

DEFAULT_ROUNDING = ROUND_HALF_UP

# Working precision for division (WAC, manday cost)
ARITHMETIC_CONTEXT = Context(prec=34, rounding=ROUND_HALF_UP)

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | str | float, field: str = "value") -> Decimal:
    """Coerce caller input to a finite Decimal."""
    if isinstance(value, bool):
        raise ValidationError(field, "must be a number, got a boolean")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(field, f"not a number: {value!r}") from None
    if not result.is_finite():
        raise ValidationError(field, f"must be finite, got {result}")
    return result


def require_positive(value: Decimal | int | str | float, field: str) -> Decimal:
    """Coerce and require ``value > 0``."""
    result = to_decimal(value, field)
    if result <= ZERO:
        raise ValidationError(field, f"must be positive, got {result}")
    return result


def require_non_negative(value: Decimal | int | str | float, field: str) -> Decimal:
    """Coerce and require ``value >= 0``."""
    result = to_decimal(value, field)
    if result < ZERO:
        raise ValidationError(field, f"must not be negative, got {result}")
    return result


def require_quantity(value: Decimal | int | str | float, field: str = "quantity") -> Decimal:
    """A positive quantity with at most 4 decimal places."""
    result = require_positive(value, field)
    if result.normalize().as_tuple().exponent < -QUANTITY_DECIMAL_PLACES:
        raise ValidationError(
            field, f"at most {QUANTITY_DECIMAL_PLACES} decimal places allowed, got {result}"
        )
    return result


def _quantize(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=DEFAULT_ROUNDING)


def round_quantity(value: Decimal) -> Decimal:
    """Round a quantity for display (4 places)."""
    return _quantize(value, QUANTITY_DECIMAL_PLACES)


def round_price(value: Decimal) -> Decimal:
    """Round a unit price or WAC for display (4 places)."""
    return _quantize(value, PRICE_DECIMAL_PLACES)


def round_money(value: Decimal) -> Decimal:
    """Round a monetary amount (2 places)."""
    return _quantize(value, MONEY_DECIMAL_PLACES)


def extend(quantity: Decimal, unit_price: Decimal) -> Decimal:
    """Line value ``quantity x unit_price``, unrounded."""
    return quantity * unit_price


def divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Exact-as-possible division at the working precision."""
    with localcontext(ARITHMETIC_CONTEXT):
        return numerator / denominator


def sum_decimals(values: Iterable[Decimal]) -> Decimal:
    """Sum that stays Decimal for empty input."""
    total = ZERO
    for value in values:
        total += value
    return total
