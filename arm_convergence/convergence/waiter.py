"""Blocking convergence loop.

``wait_for_state`` repeatedly reads a resource's status and blocks the
caller until the status converges, the timeout expires, or a fatal
error occurs.  The first read fires immediately; later reads wait at
least ``poll_interval`` seconds but never sleep past the deadline.
Once the deadline is observed no further reads are issued.

The loop never raises for TIMED_OUT or FAILED: it returns a
``ConvergenceResult`` whose ``raise_for_state()`` turns those into
``ConvergenceTimeoutError`` / ``ConvergenceFailedError``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from arm_convergence.clients.base import ResourceNotFoundError
from arm_convergence.convergence.tracker import ConvergenceTracker, OutcomeKind, PollOutcome
from arm_convergence.core.exceptions import PermanentError, TransientError
from arm_convergence.models.status import ConvergenceState

if TYPE_CHECKING:
    from collections.abc import Callable

    from arm_convergence.convergence.tracker import ConvergencePolicy
    from arm_convergence.models.resource_id import ResourceDescriptor
    from arm_convergence.models.status import Operation, WireStatus

logger = logging.getLogger("arm_convergence.convergence.waiter")


# ---------------------------------------------------------------------------
# Failure types
# ---------------------------------------------------------------------------


class ConvergenceTimeoutError(TransientError):
    """The resource was still pending when the timeout expired.

    Attributes:
        resource: Label of the resource being converged.
        last_status: Last status observed before giving up.
        elapsed_seconds: Wall-clock time spent polling.
        poll_count: Number of status reads issued.
    """

    default_stage = "poller"
    default_code = "CONVERGENCE_TIMEOUT"

    def __init__(
        self,
        resource: str,
        *,
        last_status: str,
        elapsed_seconds: float,
        poll_count: int,
        operation: str,
    ) -> None:
        self.resource = resource
        self.last_status = last_status
        self.elapsed_seconds = elapsed_seconds
        self.poll_count = poll_count
        super().__init__(
            f"timed out waiting for {operation} of {resource} after "
            f"{elapsed_seconds:.1f}s ({poll_count} polls, last status {last_status or '<none>'!r})"
        )


class ConvergenceFailedError(PermanentError):
    """A fatal error (or exhausted transient retries) stopped the poll.

    Attributes:
        resource: Label of the resource being converged.
        last_status: Last status observed before the failure.
        elapsed_seconds: Wall-clock time spent polling.
        poll_count: Number of status reads issued.
        cause_code: ``code`` of the underlying error, if it had one.
    """

    default_stage = "poller"
    default_code = "CONVERGENCE_FAILED"

    def __init__(
        self,
        resource: str,
        reason: str,
        *,
        last_status: str,
        elapsed_seconds: float,
        poll_count: int,
        operation: str,
        cause_code: str = "",
    ) -> None:
        self.resource = resource
        self.last_status = last_status
        self.elapsed_seconds = elapsed_seconds
        self.poll_count = poll_count
        self.cause_code = cause_code
        super().__init__(
            f"{operation} of {resource} failed after {elapsed_seconds:.1f}s "
            f"({poll_count} polls, last status {last_status or '<none>'!r}): {reason}"
        )


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConvergenceResult:
    """Final outcome of one convergence loop.

    Attributes:
        state: Terminal state reached.
        resource: Human-readable resource label.
        resource_id: ARM ID of the resource.
        operation: The operation that was converged.
        last_status: Last status observed (``"NotFound"`` for absence).
        poll_count: Number of status reads issued.
        consecutive_targets: Run of target observations at the end.
        elapsed_seconds: Wall-clock time spent polling.
        error: Message of the error behind FAILED / TIMED_OUT.
        error_code: ``code`` of that error, when it had one.
    """

    state: ConvergenceState
    resource: str
    resource_id: str
    operation: str
    last_status: str = ""
    poll_count: int = 0
    consecutive_targets: int = 0
    elapsed_seconds: float = 0.0
    error: str = ""
    error_code: str = ""

    @property
    def converged(self) -> bool:
        return self.state is ConvergenceState.CONVERGED

    def raise_for_state(self) -> ConvergenceResult:
        """Return ``self`` when converged, otherwise raise the matching error.

        Raises:
            ConvergenceTimeoutError: If the loop timed out.
            ConvergenceFailedError: If the loop failed.
        """
        if self.state is ConvergenceState.TIMED_OUT:
            raise ConvergenceTimeoutError(
                self.resource,
                last_status=self.last_status,
                elapsed_seconds=self.elapsed_seconds,
                poll_count=self.poll_count,
                operation=self.operation,
            )
        if self.state is ConvergenceState.FAILED:
            raise ConvergenceFailedError(
                self.resource,
                self.error,
                last_status=self.last_status,
                elapsed_seconds=self.elapsed_seconds,
                poll_count=self.poll_count,
                operation=self.operation,
                cause_code=self.error_code,
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialise for Durable Functions history."""
        return {
            "state": self.state.value,
            "resource": self.resource,
            "resource_id": self.resource_id,
            "operation": self.operation,
            "last_status": self.last_status,
            "poll_count": self.poll_count,
            "consecutive_targets": self.consecutive_targets,
            "elapsed_seconds": self.elapsed_seconds,
            "error": self.error,
            "error_code": self.error_code,
        }

    @classmethod
    def from_tracker(
        cls,
        tracker: ConvergenceTracker,
        descriptor: ResourceDescriptor,
        operation: Operation,
        *,
        elapsed_seconds: float,
        timeout_seconds: float = 0.0,
    ) -> ConvergenceResult:
        error = ""
        error_code = ""
        if tracker.state is ConvergenceState.FAILED:
            cause = tracker.last_error
            error = str(cause) if cause is not None else "poll failed"
            error_code = str(getattr(cause, "code", ""))
            if tracker.consecutive_transient > tracker.policy.max_transient_errors > 0:
                limit = tracker.policy.max_transient_errors
                error = f"transient retries exhausted ({limit}): {error}"
        elif tracker.state is ConvergenceState.TIMED_OUT:
            error = f"polling timed out after {timeout_seconds:g}s ({tracker.poll_count} polls)"
        return cls(
            state=tracker.state,
            resource=str(descriptor),
            resource_id=descriptor.id,
            operation=operation.value,
            last_status=tracker.last_status,
            poll_count=tracker.poll_count,
            consecutive_targets=tracker.consecutive_targets,
            elapsed_seconds=elapsed_seconds,
            error=error,
            error_code=error_code,
        )


# ---------------------------------------------------------------------------
# Blocking loop
# ---------------------------------------------------------------------------


def wait_for_state(
    fetch_status: Callable[[], WireStatus],
    policy: ConvergencePolicy,
    *,
    descriptor: ResourceDescriptor,
    timeout: float,
    poll_interval: float,
    reissue_delete: Callable[[], None] | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> ConvergenceResult:
    """Poll *fetch_status* until the resource converges, times out or fails.

    Args:
        fetch_status: Reads the current status.  Raises
            ``ResourceNotFoundError`` when the resource is absent and any
            other exception when the read fails.
        policy: Pending / target sets, threshold and retry settings.
        descriptor: Identity of the resource (for logs and errors).
        timeout: Overall budget in seconds.
        poll_interval: Minimum delay between two reads.
        reissue_delete: Re-sends the delete call; used when the policy is
            ``REISSUE_DELETE`` and a dependency violation is observed.
        clock: Monotonic clock (injectable for tests).
        sleep: Sleep function (injectable for tests).

    Returns:
        A ``ConvergenceResult`` in a terminal state.
    """
    tracker = ConvergenceTracker(policy)
    operation = policy.operation
    started = clock()
    deadline = started + timeout

    logger.info(
        "Convergence started | resource=%s | operation=%s | timeout=%gs | interval=%gs"
        " | threshold=%d",
        descriptor,
        operation.value,
        timeout,
        poll_interval,
        policy.continuous_target_occurrence,
    )

    first = True
    while True:
        if not first:
            remaining = deadline - clock()
            if remaining > 0:
                sleep(min(poll_interval, remaining))
        first = False

        if clock() >= deadline:
            tracker.expire()
            break

        outcome = _fetch_once(fetch_status, policy)
        state = tracker.record(outcome)
        _log_outcome(descriptor, tracker, outcome)

        if state.is_terminal:
            break

        if reissue_delete is not None and tracker.should_reissue_delete(outcome):
            state = _reissue(reissue_delete, descriptor, tracker, policy)
            if state.is_terminal:
                break

    elapsed = clock() - started
    result = ConvergenceResult.from_tracker(
        tracker, descriptor, operation, elapsed_seconds=elapsed, timeout_seconds=timeout
    )

    if result.state is ConvergenceState.CONVERGED:
        logger.info(
            "Convergence reached | resource=%s | operation=%s | status=%s | polls=%d"
            " | elapsed=%.1fs",
            descriptor,
            operation.value,
            result.last_status,
            result.poll_count,
            elapsed,
        )
    elif result.state is ConvergenceState.TIMED_OUT:
        logger.warning(
            "Convergence timeout | resource=%s | operation=%s | status=%s | polls=%d | timeout=%gs",
            descriptor,
            operation.value,
            result.last_status,
            result.poll_count,
            timeout,
        )
    else:
        logger.error(
            "Convergence failed | resource=%s | operation=%s | status=%s | polls=%d | error=%s",
            descriptor,
            operation.value,
            result.last_status,
            result.poll_count,
            result.error,
        )
    return result


def _fetch_once(
    fetch_status: Callable[[], WireStatus],
    policy: ConvergencePolicy,
) -> PollOutcome:
    try:
        status = fetch_status()
    except ResourceNotFoundError:
        return policy.classify_not_found()
    except Exception as exc:  # noqa: BLE001 - every read failure is classified
        return policy.classify_error(exc)
    return policy.classify_status(status)


def _reissue(
    reissue_delete: Callable[[], None],
    descriptor: ResourceDescriptor,
    tracker: ConvergenceTracker,
    policy: ConvergencePolicy,
) -> ConvergenceState:
    """Re-send the delete after a dependency violation."""
    logger.info("Re-issuing delete after dependency violation | resource=%s", descriptor)
    try:
        reissue_delete()
    except ResourceNotFoundError:
        logger.debug("Re-issued delete found nothing to delete | resource=%s", descriptor)
    except Exception as exc:  # noqa: BLE001 - classified like a read failure
        outcome = policy.classify_error(exc)
        if outcome.kind is OutcomeKind.FATAL:
            tracker.fail(exc)
        else:
            logger.warning(
                "Re-issued delete failed, continuing to poll | resource=%s | error=%s",
                descriptor,
                exc,
            )
    return tracker.state


def _log_outcome(
    descriptor: ResourceDescriptor,
    tracker: ConvergenceTracker,
    outcome: PollOutcome,
) -> None:
    if outcome.kind is OutcomeKind.TRANSIENT:
        logger.warning(
            "Poll error (transient %d/%s) | resource=%s | error=%s",
            tracker.consecutive_transient,
            tracker.policy.max_transient_errors or "unbounded",
            descriptor,
            outcome.error,
        )
        return
    logger.debug(
        "Poll result | resource=%s | kind=%s | status=%s | poll_count=%d | consecutive_targets=%d",
        descriptor,
        outcome.kind.value,
        outcome.status,
        tracker.poll_count,
        tracker.consecutive_targets,
    )
