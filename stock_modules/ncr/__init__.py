"""
NCR Module (``stock_modules.ncr``).

Non-conformance reports: raised automatically when a delivery line's price
differs from the period price, or manually against a delivery's items.
``NCRService`` lives in ``stock_modules.ncr.service``.
"""

from stock_modules.ncr.models import (
    FinancialImpact,
    NCRBucket,
    NCRInfo,
    NCRItemInput,
    NCRStatus,
    NCRSummary,
    NCRType,
)
from stock_modules.ncr.workflows import NCR_WORKFLOW

__all__ = [
    "FinancialImpact",
    "NCRBucket",
    "NCRInfo",
    "NCRItemInput",
    "NCRStatus",
    "NCRSummary",
    "NCRType",
    "NCR_WORKFLOW",
]
