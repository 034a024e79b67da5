"""
Period and period-location state machines.

    Period:          DRAFT -> OPEN -> PENDING_CLOSE -> APPROVED -> CLOSED
                                 ^          |
                                 +----------+  (close rejected)

    PeriodLocation:  OPEN <-> READY -> CLOSED
"""

from stock_kernel.domain.workflow import Guard, Transition, Workflow
from stock_kernel.logging_config import get_logger

logger = get_logger("domain.period_workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

NO_OTHER_OPEN_PERIOD = Guard(
    name="no_other_open_period",
    description="No other period is currently OPEN",
)

ALL_LOCATIONS_READY = Guard(
    name="all_locations_ready",
    description="Every period location is READY",
)

RECONCILIATION_SAVED = Guard(
    name="reconciliation_saved",
    description="A reconciliation has been saved for the location",
)


# -----------------------------------------------------------------------------
# Period Workflow
# -----------------------------------------------------------------------------

PERIOD_WORKFLOW = Workflow(
    name="period",
    description="Accounting period lifecycle",
    initial_state="DRAFT",
    states=(
        "DRAFT",
        "OPEN",
        "PENDING_CLOSE",
        "APPROVED",
        "CLOSED",
    ),
    transitions=(
        Transition("DRAFT", "OPEN", action="open", guard=NO_OTHER_OPEN_PERIOD,
                   requires_approval=True),
        Transition("OPEN", "PENDING_CLOSE", action="request_close",
                   guard=ALL_LOCATIONS_READY),
        Transition("PENDING_CLOSE", "OPEN", action="reject_close",
                   requires_approval=True),
        Transition("PENDING_CLOSE", "APPROVED", action="approve_close",
                   guard=ALL_LOCATIONS_READY, requires_approval=True),
        Transition("APPROVED", "CLOSED", action="close"),
    ),
    terminal_states=("CLOSED",),
)


# -----------------------------------------------------------------------------
# Period Location Workflow
# -----------------------------------------------------------------------------

PERIOD_LOCATION_WORKFLOW = Workflow(
    name="period_location",
    description="Per-location readiness within a period",
    initial_state="OPEN",
    states=("OPEN", "READY", "CLOSED"),
    transitions=(
        Transition("OPEN", "READY", action="mark_ready", guard=RECONCILIATION_SAVED),
        Transition("READY", "OPEN", action="mark_unready"),
        Transition("READY", "CLOSED", action="close"),
    ),
    terminal_states=("CLOSED",),
)

logger.debug(
    "period_workflows_defined",
    extra={"workflows": [PERIOD_WORKFLOW.name, PERIOD_LOCATION_WORKFLOW.name]},
)
