"""
NCR Workflows.

    OPEN -> SENT -> CREDITED | REJECTED | RESOLVED

Resolution notes are optional on every terminal step.
"""

from stock_kernel.domain.workflow import Transition, Workflow
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.ncr.workflows")


NCR_WORKFLOW = Workflow(
    name="ncr",
    description="Non-conformance report lifecycle",
    initial_state="OPEN",
    states=("OPEN", "SENT", "CREDITED", "REJECTED", "RESOLVED"),
    transitions=(
        Transition("OPEN", "SENT", action="send"),
        Transition("SENT", "CREDITED", action="credit"),
        Transition("SENT", "REJECTED", action="reject"),
        Transition("SENT", "RESOLVED", action="resolve"),
    ),
    terminal_states=("CREDITED", "REJECTED", "RESOLVED"),
)

logger.debug("ncr_workflow_defined", extra={"workflow": NCR_WORKFLOW.name})
