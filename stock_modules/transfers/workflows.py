"""
Transfer Workflows.

State machine for inter-location transfers:

    DRAFT -> PENDING_APPROVAL -> APPROVED -> COMPLETED
                             \\-> REJECTED
"""

from stock_kernel.domain.workflow import Guard, Transition, Workflow
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.transfers.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

STOCK_AVAILABLE = Guard(
    name="stock_available",
    description="Source location holds every line's quantity",
)

COMMENT_PROVIDED = Guard(
    name="comment_provided",
    description="A rejection carries a non-blank comment",
)


TRANSFER_WORKFLOW = Workflow(
    name="transfer",
    description="Inter-location stock transfer",
    initial_state="DRAFT",
    states=("DRAFT", "PENDING_APPROVAL", "APPROVED", "REJECTED", "COMPLETED"),
    transitions=(
        Transition("DRAFT", "PENDING_APPROVAL", action="submit", guard=STOCK_AVAILABLE),
        Transition("PENDING_APPROVAL", "APPROVED", action="approve",
                   guard=STOCK_AVAILABLE, requires_approval=True),
        Transition("PENDING_APPROVAL", "REJECTED", action="reject",
                   guard=COMMENT_PROVIDED, requires_approval=True),
        Transition("APPROVED", "COMPLETED", action="complete", moves_stock=True),
    ),
    terminal_states=("REJECTED", "COMPLETED"),
)

logger.debug("transfer_workflow_defined", extra={"workflow": TRANSFER_WORKFLOW.name})
