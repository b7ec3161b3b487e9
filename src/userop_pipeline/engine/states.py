"""
Submission State Machine

    BUILT ──> SUBMITTED ──┬──> CONFIRMED
                          ├──> FAILED
                          └──> TIMED_OUT

CONFIRMED, FAILED and TIMED_OUT are terminal. TIMED_OUT means the polling
budget ran out; the operation may still be included later.
"""

from enum import Enum
from typing import Dict, FrozenSet, List, Tuple

from .exceptions import InvalidTransition


class OperationState(str, Enum):
    BUILT = "built"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: FrozenSet[OperationState] = frozenset({
    OperationState.CONFIRMED,
    OperationState.FAILED,
    OperationState.TIMED_OUT,
})

ALLOWED_TRANSITIONS: Dict[OperationState, FrozenSet[OperationState]] = {
    OperationState.BUILT: frozenset({OperationState.SUBMITTED}),
    OperationState.SUBMITTED: TERMINAL_STATES,
    OperationState.CONFIRMED: frozenset(),
    OperationState.FAILED: frozenset(),
    OperationState.TIMED_OUT: frozenset(),
}


class OperationLifecycle:
    """
    Tracks the state of one submission and enforces legal transitions.

    Attributes:
        state: Current state
        history: Every (from, to) transition taken, in order
    """

    def __init__(self, state: OperationState = OperationState.BUILT):
        self.state = state
        self.history: List[Tuple[OperationState, OperationState]] = []

    def can_transition(self, target: OperationState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.state]

    def transition(self, target: OperationState) -> OperationState:
        """
        Move to ``target``.

        Raises:
            InvalidTransition: If the move is not allowed from the current state
        """
        if not self.can_transition(target):
            raise InvalidTransition(self.state.value, target.value)
        self.history.append((self.state, target))
        self.state = target
        return target

    def __repr__(self) -> str:
        return f"OperationLifecycle(state={self.state.value})"
