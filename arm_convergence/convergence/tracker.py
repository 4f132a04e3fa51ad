"""Convergence policy and state machine.

``ConvergencePolicy`` classifies a single poll observation into a
``PollOutcome``; ``ConvergenceTracker`` folds outcomes into the
``Polling → Converged | TimedOut | Failed`` state machine.  Neither
performs I/O or reads a clock, so the blocking waiter and the Durable
Functions orchestration share exactly the same semantics.

Classification rules:
    status in ``target``                → TARGET
    status in ``pending``               → PENDING
    any other status                    → FATAL (``UnexpectedStatusError``)
    not found, delete                   → TARGET (absence proves deletion)
    not found, create / update          → PENDING (read path lags the write)
    ``DependencyViolationError``        → TRANSIENT
    other error with ``retryable=True`` → TRANSIENT
    anything else                       → FATAL
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from arm_convergence.clients.base import DependencyViolationError
from arm_convergence.core.constants import (
    DEFAULT_CONTINUOUS_TARGET_OCCURRENCE,
    DEFAULT_MAX_TRANSIENT_ERRORS,
    NOT_FOUND_STATUS,
)
from arm_convergence.core.exceptions import ContractError, ConvergenceError, PermanentError
from arm_convergence.models.status import (
    ConvergenceState,
    DependencyRetryPolicy,
    Operation,
    WireStatus,
)


class UnexpectedStatusError(PermanentError):
    """Raised when a recognised status is neither pending nor target.

    Attributes:
        status: The observed status label.
    """

    default_stage = "poller"
    default_code = "UNEXPECTED_STATUS"

    def __init__(self, status: str, pending: list[str], target: list[str]) -> None:
        self.status = status
        super().__init__(
            f"unexpected state {status!r}, wanted target {target!r} (pending {pending!r})"
        )


class OutcomeKind(enum.Enum):
    """Classification of one poll attempt."""

    PENDING = "pending"
    TARGET = "target"
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass(frozen=True, slots=True)
class PollOutcome:
    """Result of a single poll attempt.

    Attributes:
        kind: Classification of the observation.
        status: Status label observed (``"NotFound"`` for absence,
            ``""`` when the read itself failed).
        error: The exception behind TRANSIENT / FATAL outcomes.
        dependency_violation: ``True`` when the error was a nested-resource
            conflict (drives ``DependencyRetryPolicy``).
    """

    kind: OutcomeKind
    status: str = ""
    error: BaseException | None = None
    dependency_violation: bool = False


@dataclass(frozen=True, slots=True)
class ConvergencePolicy:
    """What counts as pending, done and retryable for one convergence.

    Attributes:
        operation: The mutating call being converged.
        pending: Statuses that mean "keep polling".
        target: Statuses that mean "done" (subject to the threshold).
        continuous_target_occurrence: Consecutive target observations
            required before converging.
        max_transient_errors: Consecutive transient errors tolerated;
            ``0`` leaves only the timeout to stop retries.
        dependency_retry: Reaction to nested-resource delete conflicts.
    """

    operation: Operation
    pending: frozenset[WireStatus] = frozenset()
    target: frozenset[WireStatus] = frozenset()
    continuous_target_occurrence: int = DEFAULT_CONTINUOUS_TARGET_OCCURRENCE
    max_transient_errors: int = DEFAULT_MAX_TRANSIENT_ERRORS
    dependency_retry: DependencyRetryPolicy = DependencyRetryPolicy.REPOLL

    def __post_init__(self) -> None:
        if self.continuous_target_occurrence < 1:
            threshold = self.continuous_target_occurrence
            msg = f"continuous_target_occurrence must be >= 1, got {threshold}"
            raise ValueError(msg)
        if self.max_transient_errors < 0:
            msg = f"max_transient_errors must be >= 0, got {self.max_transient_errors}"
            raise ValueError(msg)
        if self.pending & self.target:
            overlap = sorted(str(s.value) for s in self.pending & self.target)
            msg = f"statuses cannot be both pending and target: {overlap}"
            raise ValueError(msg)
        if not self.target and self.operation is not Operation.DELETE:
            msg = f"{self.operation.value} convergence needs at least one target status"
            raise ValueError(msg)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify_status(self, status: WireStatus) -> PollOutcome:
        label = str(status.value)
        if status in self.target:
            return PollOutcome(OutcomeKind.TARGET, label)
        if status in self.pending:
            return PollOutcome(OutcomeKind.PENDING, label)
        error = UnexpectedStatusError(
            label,
            sorted(str(s.value) for s in self.pending),
            sorted(str(s.value) for s in self.target),
        )
        return PollOutcome(OutcomeKind.FATAL, label, error)

    def classify_not_found(self) -> PollOutcome:
        if self.operation is Operation.DELETE:
            return PollOutcome(OutcomeKind.TARGET, NOT_FOUND_STATUS)
        return PollOutcome(OutcomeKind.PENDING, NOT_FOUND_STATUS)

    def classify_error(self, error: BaseException) -> PollOutcome:
        if isinstance(error, DependencyViolationError):
            return PollOutcome(OutcomeKind.TRANSIENT, error=error, dependency_violation=True)
        if getattr(error, "retryable", False):
            return PollOutcome(OutcomeKind.TRANSIENT, error=error)
        return PollOutcome(OutcomeKind.FATAL, error=error)

    def classify_payload(
        self, payload: dict[str, Any], status_type: type[WireStatus]
    ) -> PollOutcome:
        """Classify a serialised observation from the ``fetch_resource_status`` activity.

        The payload carries ``observation`` (``"status"``, ``"not_found"``
        or ``"error"``) plus ``status`` or ``error`` fields.
        """
        observation = str(payload.get("observation", ""))
        if observation == "status":
            try:
                status = status_type.from_wire(payload.get("status"))
            except ConvergenceError as exc:
                return PollOutcome(OutcomeKind.FATAL, str(payload.get("status", "")), exc)
            return self.classify_status(status)
        if observation == "not_found":
            return self.classify_not_found()
        if observation == "error":
            return self.classify_error(error_from_payload(payload))
        msg = f"unknown observation kind {observation!r}"
        return PollOutcome(OutcomeKind.FATAL, error=ContractError(msg, stage="poller"))


def error_from_payload(payload: dict[str, Any]) -> ConvergenceError:
    """Rebuild a classifiable error from its ``to_error_dict()`` form."""
    raw = payload.get("error")
    error: dict[str, Any] = raw if isinstance(raw, dict) else {}
    if error.get("code") == DependencyViolationError.default_code:
        message = str(error.get("message", "")) or "nested resources exist"
        return DependencyViolationError(str(payload.get("resource_id", "")), message)
    return ConvergenceError.from_error_dict(error, message="status read failed")


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ConvergenceTracker:
    """Fold poll outcomes into a ``ConvergenceState``.

    Each poll loop owns one tracker; nothing here is shared.

    Attributes:
        policy: Classification and threshold settings.
        state: Current state (``POLLING`` until a terminal transition).
        poll_count: Observations recorded so far.
        consecutive_targets: Current run of TARGET observations.
        consecutive_transient: Current run of TRANSIENT observations.
        last_status: Most recent status label observed.
        last_error: Error behind the most recent TRANSIENT / FATAL outcome.
    """

    policy: ConvergencePolicy
    state: ConvergenceState = ConvergenceState.POLLING
    poll_count: int = 0
    consecutive_targets: int = 0
    consecutive_transient: int = 0
    last_status: str = ""
    last_error: BaseException | None = field(default=None)

    def record(self, outcome: PollOutcome) -> ConvergenceState:
        """Apply one outcome and return the resulting state.

        Raises:
            RuntimeError: If the tracker is already terminal.
        """
        if self.state.is_terminal:
            msg = f"cannot record an outcome after reaching {self.state.value}"
            raise RuntimeError(msg)

        self.poll_count += 1
        if outcome.status:
            self.last_status = outcome.status

        if outcome.kind is OutcomeKind.TARGET:
            self.consecutive_targets += 1
            self.consecutive_transient = 0
            if self.consecutive_targets >= self.policy.continuous_target_occurrence:
                self.state = ConvergenceState.CONVERGED
            return self.state

        self.consecutive_targets = 0

        if outcome.kind is OutcomeKind.PENDING:
            self.consecutive_transient = 0
            return self.state

        self.last_error = outcome.error
        if outcome.kind is OutcomeKind.TRANSIENT:
            self.consecutive_transient += 1
            limit = self.policy.max_transient_errors
            if limit and self.consecutive_transient > limit:
                self.state = ConvergenceState.FAILED
            return self.state

        self.state = ConvergenceState.FAILED
        return self.state

    def expire(self) -> ConvergenceState:
        """Mark the loop as timed out (no-op once terminal)."""
        if not self.state.is_terminal:
            self.state = ConvergenceState.TIMED_OUT
        return self.state

    def fail(self, error: BaseException) -> ConvergenceState:
        """Mark the loop as failed by an error raised outside a poll (no-op once terminal)."""
        if not self.state.is_terminal:
            self.last_error = error
            self.state = ConvergenceState.FAILED
        return self.state

    def should_reissue_delete(self, outcome: PollOutcome) -> bool:
        """Whether the delete call should be re-sent after *outcome*."""
        return (
            outcome.dependency_violation
            and self.policy.operation is Operation.DELETE
            and self.policy.dependency_retry is DependencyRetryPolicy.REISSUE_DELETE
            and not self.state.is_terminal
        )
