"""
Order execution state machine.

Defines the states of a single order submission and the valid transitions
between them. Used by executor/engine.py to track one order through
signing, submission and bounded retries.
"""

from __future__ import annotations

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class ExecState(str, Enum):
    """
    State flow:
    - UNAUTHENTICATED: initial; credentials not yet checked
    - SIGNING: building and signing the request
    - SUBMITTED: request in flight
    - RETRYING: last attempt failed, waiting out the backoff
    - FILLED: venue accepted the order (terminal)
    - REJECTED: venue accepted the request but refused the order (terminal)
    - EXHAUSTED: retry ceiling reached (terminal)
    - NO_CREDENTIALS: observe-only, nothing submitted (terminal)
    - SIGNING_FAILED: request could not be signed (terminal)
    """
    UNAUTHENTICATED = "unauthenticated"
    SIGNING = "signing"
    SUBMITTED = "submitted"
    RETRYING = "retrying"
    FILLED = "filled"
    REJECTED = "rejected"
    EXHAUSTED = "exhausted"
    NO_CREDENTIALS = "no_credentials"
    SIGNING_FAILED = "signing_failed"


# Valid state transitions: {from_state: set[valid_to_states]}
_VALID_TRANSITIONS: dict[ExecState, set[ExecState]] = {
    ExecState.UNAUTHENTICATED: {ExecState.SIGNING, ExecState.NO_CREDENTIALS},
    ExecState.SIGNING: {ExecState.SUBMITTED, ExecState.SIGNING_FAILED},
    ExecState.SUBMITTED: {ExecState.FILLED, ExecState.REJECTED, ExecState.RETRYING, ExecState.EXHAUSTED},
    ExecState.RETRYING: {ExecState.SIGNING},
    ExecState.FILLED: set(),
    ExecState.REJECTED: set(),
    ExecState.EXHAUSTED: set(),
    ExecState.NO_CREDENTIALS: set(),
    ExecState.SIGNING_FAILED: set(),
}

TERMINAL_STATES = frozenset(s for s, targets in _VALID_TRANSITIONS.items() if not targets)


def can_transition_to(from_state: ExecState, to_state: ExecState) -> bool:
    """
    Check if a state transition is valid.

    Raises:
        ValueError: If from_state or to_state is not an ExecState
    """
    if not isinstance(from_state, ExecState):
        raise ValueError(f"Invalid from_state: {from_state}")
    if not isinstance(to_state, ExecState):
        raise ValueError(f"Invalid to_state: {to_state}")
    return to_state in _VALID_TRANSITIONS.get(from_state, set())


def transition_to(from_state: ExecState, to_state: ExecState) -> ExecState:
    """
    Perform a state transition, returning the new state.

    Raises:
        ValueError: If transition is invalid
    """
    if not can_transition_to(from_state, to_state):
        raise ValueError(f"Invalid state transition: {from_state.value} -> {to_state.value}")
    logger.debug("State transition: %s -> %s", from_state.value, to_state.value)
    return to_state


def is_terminal_state(state: ExecState) -> bool:
    return state in TERMINAL_STATES
