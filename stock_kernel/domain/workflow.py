"""
Canonical workflow types (``stock_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for status state machines, plus the one central check
every status change goes through.  Periods, period locations, transfers
and NCRs each declare a ``Workflow`` table; services never compare status
strings ad hoc.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* ``require_transition`` is the only way a service validates a status
  change; a miss raises ``InvalidStatusTransitionError`` and the caller
  leaves the status untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from stock_kernel.exceptions import InvalidStatusTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only; the owning service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``requires_approval=True`` marks transitions gated on the caller's
    supervisor-or-admin capability.  ``moves_stock=True`` marks transitions
    that mutate the stock ledger.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    requires_approval: bool = False
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"{self.name}: initial state {self.initial_state} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"{self.name}: transition {t.from_state}->{t.to_state} "
                    "references an unknown state"
                )

    def find(self, from_state: str, to_state: str) -> Transition | None:
        """Return the transition between two states, if declared."""
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def targets(self, from_state: str) -> tuple[str, ...]:
        """States reachable in one step from ``from_state``."""
        return tuple(t.to_state for t in self.transitions if t.from_state == from_state)


def _state(value: str | Enum) -> str:
    return value.value if isinstance(value, Enum) else value


def require_transition(
    workflow: Workflow,
    current: str | Enum,
    requested: str | Enum,
    entity: str | None = None,
) -> Transition:
    """Return the declared transition or raise InvalidStatusTransitionError."""
    current_state = _state(current)
    requested_state = _state(requested)
    transition = workflow.find(current_state, requested_state)
    if transition is None:
        raise InvalidStatusTransitionError(
            entity or workflow.name, current_state, requested_state
        )
    return transition
