"""
Transfers Module (``stock_modules.transfers``).

Two-step inter-location movements: request, then supervisor approval.
``TransferService`` lives in ``stock_modules.transfers.service``.
"""

from stock_modules.transfers.models import (
    TransferInfo,
    TransferLineInfo,
    TransferLineInput,
    TransferResult,
    TransferStatus,
)
from stock_modules.transfers.workflows import TRANSFER_WORKFLOW

__all__ = [
    "TransferInfo",
    "TransferLineInfo",
    "TransferLineInput",
    "TransferResult",
    "TransferStatus",
    "TRANSFER_WORKFLOW",
]
