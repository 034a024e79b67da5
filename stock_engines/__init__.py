"""
Module: stock_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines: weighted
    average cost, delivery price variance, and the reconciliation formula.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel.domain, stock_kernel.exceptions and the
    kernel logging facade.  MUST NOT import stock_services or stock_modules.

Invariants enforced:
    - Purity: engines never read the clock or touch the database.
    - Decimal-only arithmetic; floats are converted at the boundary.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine``
    (see ``stock_engines.tracer``).
"""

from stock_engines.reconciliation import (
    Adjustments,
    LedgerComponents,
    ReconciliationCalculator,
    ReconciliationFigures,
)
from stock_engines.variance import PriceVarianceDetector, PriceVarianceResult
from stock_engines.wac import Receipt, WacCalculator, WacResult

__all__ = [
    "Adjustments",
    "LedgerComponents",
    "ReconciliationCalculator",
    "ReconciliationFigures",
    "PriceVarianceDetector",
    "PriceVarianceResult",
    "Receipt",
    "WacCalculator",
    "WacResult",
]
