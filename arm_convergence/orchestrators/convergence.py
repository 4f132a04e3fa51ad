"""Durable Functions orchestration for async operation convergence.

Drives the same ``ConvergenceTracker`` as the blocking ``wait_for_state``
loop, but waits with ``context.create_timer()`` (zero compute cost
between polls) and reads time from ``context.current_utc_datetime`` so
that replays are deterministic.

Each status read is one ``fetch_resource_status`` activity call.  When a
delete poll reports a nested-resource dependency violation and the
request's policy is ``reissue_delete``, a ``reissue_delete`` activity is
called before the next poll.

Input (via ``context.get_input``):
    A ``ConvergenceInput`` dict built by ``build_convergence_input``.

Output:
    A ``ConvergenceOutcome`` dict (``ConvergenceResult.to_dict()`` plus
    ``instance_id``).
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from arm_convergence.convergence.tracker import (
    ConvergenceTracker,
    OutcomeKind,
    PollOutcome,
    error_from_payload,
)
from arm_convergence.convergence.waiter import ConvergenceResult
from arm_convergence.core.ingress import deserialize_activity_input
from arm_convergence.models.payloads import ConvergenceInput, validate_payload
from arm_convergence.models.status import ConvergenceState, DependencyRetryPolicy, Operation
from arm_convergence.resources.registry import get_resource_kind

if TYPE_CHECKING:
    from collections.abc import Generator

    import azure.durable_functions as df

    from arm_convergence.convergence.tracker import ConvergencePolicy
    from arm_convergence.models.resource_id import ResourceDescriptor

logger = logging.getLogger("arm_convergence.orchestrators.convergence")


def orchestrator_function(
    context: df.DurableOrchestrationContext,
) -> Generator[Any, Any, dict[str, Any]]:
    """Entry point registered as ``convergence_orchestrator``."""
    request = deserialize_activity_input(context.get_input())
    result = yield from converge(context, request)
    return result


def converge(
    context: df.DurableOrchestrationContext,
    request: dict[str, Any],
) -> Generator[Any, Any, dict[str, Any]]:
    """Poll a resource until it converges, times out or fails.

    The first status read fires immediately.  Later reads wait
    ``poll_interval_seconds`` on a durable timer, never past the
    deadline.  Once the deadline has passed no further reads are issued.

    A failed activity (unexpected exception in the worker) counts as a
    transient error; ``max_transient_errors`` consecutive ones fail the
    orchestration's result.

    Args:
        context: Durable Functions orchestration context.
        request: ``ConvergenceInput`` dict.

    Returns:
        ``ConvergenceOutcome`` dict.

    Raises:
        ContractError: If *request* is missing required keys.
        ValidationError: If the kind, operation or resource ID is invalid.

    Yields:
        Durable Functions tasks (activities and timers).
    """
    validate_payload(request, ConvergenceInput, activity="convergence_orchestrator")

    kind = get_resource_kind(str(request["kind"]))
    descriptor = kind.parse_id(str(request["resource_id"]))
    operation = Operation(str(request["operation"]))
    policy = kind.policy_for(
        operation,
        continuous_target_occurrence=int(request["continuous_target_occurrence"]),
        max_transient_errors=int(request["max_transient_errors"]),
        dependency_retry=DependencyRetryPolicy(str(request["dependency_retry_policy"])),
    )
    poll_interval = float(request["poll_interval_seconds"])
    timeout = float(request["timeout_seconds"])
    correlation_id = str(request.get("correlation_id", ""))
    instance_id = str(getattr(context, "instance_id", ""))

    activity_input = {
        "resource_id": descriptor.id,
        "kind": kind.name,
        "correlation_id": correlation_id,
    }
    status_input = {**activity_input, "operation": operation.value}

    started = context.current_utc_datetime
    deadline = started + timedelta(seconds=timeout)
    tracker = ConvergenceTracker(policy)

    if not context.is_replaying:
        logger.info(
            "Convergence started | instance=%s | resource=%s | operation=%s | "
            "timeout=%gs | interval=%gs | threshold=%d",
            instance_id,
            descriptor,
            operation.value,
            timeout,
            poll_interval,
            policy.continuous_target_occurrence,
        )

    first = True
    while True:
        if not first:
            remaining = (deadline - context.current_utc_datetime).total_seconds()
            if remaining > 0:
                wait = min(poll_interval, remaining)
                yield context.create_timer(context.current_utc_datetime + timedelta(seconds=wait))
        first = False

        if context.current_utc_datetime >= deadline:
            tracker.expire()
            break

        try:
            observation = yield context.call_activity("fetch_resource_status", status_input)
        except Exception as exc:  # noqa: BLE001 - a failed activity is a transient poll error
            outcome = PollOutcome(OutcomeKind.TRANSIENT, error=exc)
        else:
            payload = observation if isinstance(observation, dict) else {}
            outcome = policy.classify_payload(payload, kind.status_type)

        state = tracker.record(outcome)
        _log_outcome(context, instance_id, descriptor, tracker, outcome)
        if state.is_terminal:
            break

        if tracker.should_reissue_delete(outcome):
            yield from _reissue_delete(
                context, instance_id, descriptor, tracker, policy, activity_input
            )
            if tracker.state.is_terminal:
                break

    elapsed = (context.current_utc_datetime - started).total_seconds()
    result = ConvergenceResult.from_tracker(
        tracker, descriptor, operation, elapsed_seconds=elapsed, timeout_seconds=timeout
    )

    if not context.is_replaying:
        if result.state is ConvergenceState.CONVERGED:
            logger.info(
                "Convergence reached | instance=%s | resource=%s | status=%s | polls=%d"
                " | elapsed=%.1fs",
                instance_id,
                descriptor,
                result.last_status,
                result.poll_count,
                elapsed,
            )
        elif result.state is ConvergenceState.TIMED_OUT:
            logger.warning(
                "Convergence timeout | instance=%s | resource=%s | status=%s | polls=%d"
                " | timeout=%gs",
                instance_id,
                descriptor,
                result.last_status,
                result.poll_count,
                timeout,
            )
        else:
            logger.error(
                "Convergence failed | instance=%s | resource=%s | status=%s | polls=%d | error=%s",
                instance_id,
                descriptor,
                result.last_status,
                result.poll_count,
                result.error,
            )

    outcome_dict = result.to_dict()
    outcome_dict["instance_id"] = instance_id
    return outcome_dict


def _reissue_delete(
    context: df.DurableOrchestrationContext,
    instance_id: str,
    descriptor: ResourceDescriptor,
    tracker: ConvergenceTracker,
    policy: ConvergencePolicy,
    activity_input: dict[str, Any],
) -> Generator[Any, Any, None]:
    if not context.is_replaying:
        logger.info(
            "Re-issuing delete after dependency violation | instance=%s | resource=%s",
            instance_id,
            descriptor,
        )
    try:
        response = yield context.call_activity("reissue_delete", activity_input)
    except Exception as exc:  # noqa: BLE001 - polling continues after a failed re-issue
        if not context.is_replaying:
            logger.warning(
                "reissue_delete activity failed, continuing to poll | instance=%s | error=%s",
                instance_id,
                exc,
            )
        return

    error = response.get("error") if isinstance(response, dict) else None
    if not error:
        return
    outcome = policy.classify_error(
        error_from_payload({"error": error, "resource_id": descriptor.id})
    )
    if outcome.kind is OutcomeKind.FATAL:
        tracker.fail(outcome.error)  # type: ignore[arg-type]
    elif not context.is_replaying:
        logger.warning(
            "Re-issued delete failed, continuing to poll | instance=%s | resource=%s | error=%s",
            instance_id,
            descriptor,
            error.get("message", "") if isinstance(error, dict) else error,
        )


def _log_outcome(
    context: df.DurableOrchestrationContext,
    instance_id: str,
    descriptor: ResourceDescriptor,
    tracker: ConvergenceTracker,
    outcome: PollOutcome,
) -> None:
    if context.is_replaying:
        return
    if outcome.kind is OutcomeKind.TRANSIENT:
        logger.warning(
            "Poll error (transient %d/%s) | instance=%s | resource=%s | error=%s",
            tracker.consecutive_transient,
            tracker.policy.max_transient_errors or "unbounded",
            instance_id,
            descriptor,
            outcome.error,
        )
        return
    logger.info(
        "Poll result | instance=%s | resource=%s | kind=%s | status=%s | poll_count=%d",
        instance_id,
        descriptor,
        outcome.kind.value,
        outcome.status,
        tracker.poll_count,
    )
