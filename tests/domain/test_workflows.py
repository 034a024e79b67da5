"""
Tests for the workflow tables and the central transition check.

Every status change in the ledger goes through ``require_transition``;
these tests pin the declared state machines.
"""

import pytest

from stock_kernel.domain.period_workflows import PERIOD_LOCATION_WORKFLOW, PERIOD_WORKFLOW
from stock_kernel.domain.workflow import Transition, Workflow, require_transition
from stock_kernel.exceptions import InvalidStatusTransitionError
from stock_kernel.models.period import PeriodStatus
from stock_modules.ncr.models import NCRStatus
from stock_modules.ncr.workflows import NCR_WORKFLOW
from stock_modules.transfers.models import TransferStatus
from stock_modules.transfers.workflows import TRANSFER_WORKFLOW


class TestRequireTransition:
    def test_declared_transition_is_returned(self):
        transition = require_transition(
            TRANSFER_WORKFLOW, TransferStatus.PENDING_APPROVAL, TransferStatus.APPROVED
        )
        assert transition.action == "approve"
        assert transition.requires_approval is True

    def test_undeclared_transition_raises_with_context(self):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            require_transition(
                TRANSFER_WORKFLOW, "COMPLETED", "APPROVED", "transfer TRF-2024-001"
            )
        err = exc_info.value
        assert err.code == "INVALID_STATUS_TRANSITION"
        assert err.entity == "transfer TRF-2024-001"
        assert err.current_status == "COMPLETED"
        assert err.requested_status == "APPROVED"

    def test_entity_defaults_to_workflow_name(self):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            require_transition(NCR_WORKFLOW, "OPEN", "CREDITED")
        assert exc_info.value.entity == "ncr"


class TestWorkflowValidation:
    def test_unknown_initial_state_rejected(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow(
                name="broken", description="", initial_state="NOPE",
                states=("A",), transitions=(),
            )

    def test_transition_to_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="broken", description="", initial_state="A",
                states=("A",), transitions=(Transition("A", "B", action="go"),),
            )


class TestDeclaredMachines:
    def test_transfer_terminals_have_no_exits(self):
        for state in TRANSFER_WORKFLOW.terminal_states:
            assert TRANSFER_WORKFLOW.targets(state) == ()

    def test_ncr_cannot_skip_sent(self):
        assert NCR_WORKFLOW.targets(NCRStatus.OPEN.value) == (NCRStatus.SENT.value,)

    def test_ncr_terminal_statuses(self):
        assert set(NCR_WORKFLOW.terminal_states) == {
            NCRStatus.CREDITED.value, NCRStatus.REJECTED.value, NCRStatus.RESOLVED.value,
        }

    def test_ncr_settlement_does_not_require_notes(self):
        assert all(t.guard is None for t in NCR_WORKFLOW.transitions)

    def test_period_close_can_be_rejected(self):
        assert PERIOD_WORKFLOW.find(PeriodStatus.PENDING_CLOSE.value, PeriodStatus.OPEN.value)

    def test_period_cannot_reopen_after_close(self):
        assert PERIOD_WORKFLOW.targets(PeriodStatus.CLOSED.value) == ()

    def test_period_location_ready_is_reversible(self):
        assert PERIOD_LOCATION_WORKFLOW.find("OPEN", "READY") is not None
        assert PERIOD_LOCATION_WORKFLOW.find("READY", "OPEN") is not None
        assert PERIOD_LOCATION_WORKFLOW.find("OPEN", "CLOSED") is None
