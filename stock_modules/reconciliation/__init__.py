"""
Reconciliation Module (``stock_modules.reconciliation``).

Period consumption per location and the persons-on-board counts behind
the manday cost.  ``ReconciliationService`` lives in
``stock_modules.reconciliation.service``.
"""

from stock_modules.reconciliation.models import (
    POBEntryInfo,
    POBEntryInput,
    ReconciliationInfo,
    ReconciliationResult,
)

__all__ = [
    "POBEntryInfo",
    "POBEntryInput",
    "ReconciliationInfo",
    "ReconciliationResult",
]
