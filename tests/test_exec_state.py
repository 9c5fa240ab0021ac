"""
Unit tests for executor/exec_state.py -- order execution state machine.
"""

import pytest

from executor.exec_state import (
    TERMINAL_STATES,
    ExecState,
    can_transition_to,
    is_terminal_state,
    transition_to,
)


class TestExecStateEnum:
    def test_all_states_defined(self):
        assert {s.name for s in ExecState} == {
            "UNAUTHENTICATED", "SIGNING", "SUBMITTED", "RETRYING",
            "FILLED", "REJECTED", "EXHAUSTED", "NO_CREDENTIALS", "SIGNING_FAILED",
        }

    def test_values_are_strings(self):
        for state in ExecState:
            assert isinstance(state.value, str)


class TestTransitions:
    def test_happy_path(self):
        state = ExecState.UNAUTHENTICATED
        for target in (ExecState.SIGNING, ExecState.SUBMITTED, ExecState.FILLED):
            state = transition_to(state, target)
        assert state is ExecState.FILLED

    def test_retry_loop(self):
        state = ExecState.SUBMITTED
        state = transition_to(state, ExecState.RETRYING)
        state = transition_to(state, ExecState.SIGNING)
        assert state is ExecState.SIGNING

    def test_no_credentials_from_start_only(self):
        assert can_transition_to(ExecState.UNAUTHENTICATED, ExecState.NO_CREDENTIALS)
        assert not can_transition_to(ExecState.SUBMITTED, ExecState.NO_CREDENTIALS)

    def test_signing_failure_only_from_signing(self):
        assert can_transition_to(ExecState.SIGNING, ExecState.SIGNING_FAILED)
        assert not can_transition_to(ExecState.SUBMITTED, ExecState.SIGNING_FAILED)

    def test_cannot_skip_signing(self):
        with pytest.raises(ValueError):
            transition_to(ExecState.UNAUTHENTICATED, ExecState.SUBMITTED)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATES, key=lambda s: s.value))
    def test_terminal_states_are_final(self, terminal):
        assert is_terminal_state(terminal)
        for target in ExecState:
            assert not can_transition_to(terminal, target)

    def test_invalid_types_raise(self):
        with pytest.raises(ValueError):
            can_transition_to("filled", ExecState.SIGNING)

    def test_terminal_set(self):
        assert TERMINAL_STATES == {
            ExecState.FILLED, ExecState.REJECTED, ExecState.EXHAUSTED,
            ExecState.NO_CREDENTIALS, ExecState.SIGNING_FAILED,
        }
