"""
Submission State Machine Test Suite
"""

import pytest

from userop_pipeline.engine.exceptions import InvalidTransition
from userop_pipeline.engine.states import OperationLifecycle, OperationState


class TestOperationLifecycle:

    @pytest.mark.parametrize(
        "terminal",
        [OperationState.CONFIRMED, OperationState.FAILED, OperationState.TIMED_OUT],
    )
    def test_built_submitted_terminal(self, terminal):
        lifecycle = OperationLifecycle()
        lifecycle.transition(OperationState.SUBMITTED)
        lifecycle.transition(terminal)
        assert lifecycle.state == terminal
        assert lifecycle.state.is_terminal
        assert lifecycle.history == [
            (OperationState.BUILT, OperationState.SUBMITTED),
            (OperationState.SUBMITTED, terminal),
        ]

    def test_cannot_skip_submission(self):
        lifecycle = OperationLifecycle()
        with pytest.raises(InvalidTransition) as exc_info:
            lifecycle.transition(OperationState.CONFIRMED)
        assert exc_info.value.current_state == "built"
        assert exc_info.value.target_state == "confirmed"
        assert lifecycle.state == OperationState.BUILT

    @pytest.mark.parametrize("target", list(OperationState))
    def test_terminal_states_are_final(self, target):
        lifecycle = OperationLifecycle(OperationState.TIMED_OUT)
        assert not lifecycle.can_transition(target)
        with pytest.raises(InvalidTransition):
            lifecycle.transition(target)

    def test_non_terminal_states(self):
        assert not OperationState.BUILT.is_terminal
        assert not OperationState.SUBMITTED.is_terminal
