"""
Transactions Module (``stock_modules.transactions``).

Deliveries raise stock at the period price check; issues lower it at the
current WAC.  ``TransactionProcessor`` lives in
``stock_modules.transactions.service``.
"""

from stock_modules.transactions.models import (
    CostCentre,
    DeliveryInfo,
    DeliveryLineInfo,
    DeliveryLineInput,
    DeliveryResult,
    IssueInfo,
    IssueLineInfo,
    IssueLineInput,
    IssueResult,
)

__all__ = [
    "CostCentre",
    "DeliveryInfo",
    "DeliveryLineInfo",
    "DeliveryLineInput",
    "DeliveryResult",
    "IssueInfo",
    "IssueLineInfo",
    "IssueLineInput",
    "IssueResult",
]
