"""Async operation convergence poller.

- ConvergencePolicy / ConvergenceTracker: pure classification and state machine
- wait_for_state: blocking poll loop
- ConvergenceResult: terminal outcome with ``raise_for_state()``
"""

from arm_convergence.convergence.tracker import (
    ConvergencePolicy,
    ConvergenceTracker,
    OutcomeKind,
    PollOutcome,
    UnexpectedStatusError,
)
from arm_convergence.convergence.waiter import (
    ConvergenceFailedError,
    ConvergenceResult,
    ConvergenceTimeoutError,
    wait_for_state,
)

__all__ = [
    "ConvergenceFailedError",
    "ConvergencePolicy",
    "ConvergenceResult",
    "ConvergenceTimeoutError",
    "ConvergenceTracker",
    "OutcomeKind",
    "PollOutcome",
    "UnexpectedStatusError",
    "wait_for_state",
]
