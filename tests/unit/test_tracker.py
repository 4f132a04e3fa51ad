"""Tests for ConvergencePolicy classification and the ConvergenceTracker state machine."""

from __future__ import annotations

import pytest

from arm_convergence.clients.base import (
    ClientAuthError,
    DependencyViolationError,
    ManagementApiError,
)
from arm_convergence.convergence.tracker import (
    ConvergencePolicy,
    ConvergenceTracker,
    OutcomeKind,
    PollOutcome,
    UnexpectedStatusError,
    error_from_payload,
)
from arm_convergence.core.exceptions import ContractError, PermanentError, TransientError
from arm_convergence.models.status import (
    ConvergenceState,
    DependencyRetryPolicy,
    GatewayStatus,
    Operation,
    ProvisioningState,
)

CREATE_POLICY = ConvergencePolicy(
    operation=Operation.CREATE,
    pending=frozenset({GatewayStatus.CREATING, GatewayStatus.UPGRADING, GatewayStatus.UNKNOWN}),
    target=frozenset({GatewayStatus.READY}),
)
DELETE_POLICY = ConvergencePolicy(
    operation=Operation.DELETE,
    pending=frozenset(GatewayStatus),
    dependency_retry=DependencyRetryPolicy.REISSUE_DELETE,
)


# ---------------------------------------------------------------------------
# Policy validation
# ---------------------------------------------------------------------------


class TestPolicyValidation:
    def test_threshold_below_one_rejected(self) -> None:
        with pytest.raises(ValueError, match="continuous_target_occurrence"):
            ConvergencePolicy(
                operation=Operation.CREATE,
                target=frozenset({GatewayStatus.READY}),
                continuous_target_occurrence=0,
            )

    def test_negative_transient_bound_rejected(self) -> None:
        with pytest.raises(ValueError, match="max_transient_errors"):
            ConvergencePolicy(
                operation=Operation.CREATE,
                target=frozenset({GatewayStatus.READY}),
                max_transient_errors=-1,
            )

    def test_overlapping_sets_rejected(self) -> None:
        with pytest.raises(ValueError, match="both pending and target"):
            ConvergencePolicy(
                operation=Operation.CREATE,
                pending=frozenset({GatewayStatus.READY}),
                target=frozenset({GatewayStatus.READY}),
            )

    def test_create_without_target_rejected(self) -> None:
        with pytest.raises(ValueError, match="at least one target"):
            ConvergencePolicy(
                operation=Operation.CREATE, pending=frozenset({GatewayStatus.CREATING})
            )

    def test_delete_without_target_allowed(self) -> None:
        assert DELETE_POLICY.target == frozenset()


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassifyStatus:
    def test_target(self) -> None:
        outcome = CREATE_POLICY.classify_status(GatewayStatus.READY)
        assert outcome.kind is OutcomeKind.TARGET
        assert outcome.status == "Ready"

    def test_pending(self) -> None:
        assert CREATE_POLICY.classify_status(GatewayStatus.CREATING).kind is OutcomeKind.PENDING

    def test_other_status_is_fatal(self) -> None:
        outcome = CREATE_POLICY.classify_status(GatewayStatus.FAILED)
        assert outcome.kind is OutcomeKind.FATAL
        assert isinstance(outcome.error, UnexpectedStatusError)
        assert isinstance(outcome.error, PermanentError)
        assert "Failed" in str(outcome.error)

    def test_every_status_pending_while_deleting(self) -> None:
        for status in GatewayStatus:
            assert DELETE_POLICY.classify_status(status).kind is OutcomeKind.PENDING


class TestClassifyNotFound:
    def test_delete_is_target(self) -> None:
        outcome = DELETE_POLICY.classify_not_found()
        assert outcome.kind is OutcomeKind.TARGET
        assert outcome.status == "NotFound"

    def test_create_is_pending(self) -> None:
        assert CREATE_POLICY.classify_not_found().kind is OutcomeKind.PENDING


class TestClassifyError:
    def test_dependency_violation_is_transient(self) -> None:
        outcome = DELETE_POLICY.classify_error(DependencyViolationError("/x", "nested"))
        assert outcome.kind is OutcomeKind.TRANSIENT
        assert outcome.dependency_violation is True

    def test_retryable_is_transient(self) -> None:
        err = ManagementApiError("/x", "throttled", status_code=429, retryable=True)
        outcome = CREATE_POLICY.classify_error(err)
        assert outcome.kind is OutcomeKind.TRANSIENT
        assert outcome.dependency_violation is False

    def test_non_retryable_is_fatal(self) -> None:
        err = ClientAuthError("/x", "forbidden", status_code=403)
        assert CREATE_POLICY.classify_error(err).kind is OutcomeKind.FATAL

    def test_plain_exception_is_fatal(self) -> None:
        assert CREATE_POLICY.classify_error(RuntimeError("boom")).kind is OutcomeKind.FATAL


class TestClassifyPayload:
    def test_status_observation(self) -> None:
        outcome = CREATE_POLICY.classify_payload(
            {"observation": "status", "status": "Ready"}, GatewayStatus
        )
        assert outcome.kind is OutcomeKind.TARGET

    def test_status_observation_case_insensitive(self) -> None:
        outcome = CREATE_POLICY.classify_payload(
            {"observation": "status", "status": "creating"}, GatewayStatus
        )
        assert outcome.kind is OutcomeKind.PENDING

    def test_unrecognised_status_is_fatal(self) -> None:
        outcome = CREATE_POLICY.classify_payload(
            {"observation": "status", "status": "Exploding"}, GatewayStatus
        )
        assert outcome.kind is OutcomeKind.FATAL
        assert isinstance(outcome.error, ContractError)
        assert outcome.status == "Exploding"

    def test_not_found_observation(self) -> None:
        outcome = DELETE_POLICY.classify_payload({"observation": "not_found"}, GatewayStatus)
        assert outcome.kind is OutcomeKind.TARGET

    def test_retryable_error_observation(self) -> None:
        payload = {
            "observation": "error",
            "resource_id": "/x",
            "error": {"code": "MANAGEMENT_API_ERROR", "message": "503", "retryable": True},
        }
        assert CREATE_POLICY.classify_payload(payload, GatewayStatus).kind is OutcomeKind.TRANSIENT

    def test_dependency_error_observation(self) -> None:
        payload = {
            "observation": "error",
            "resource_id": "/x",
            "error": {"code": "DEPENDENCY_VIOLATION", "message": "nested", "retryable": True},
        }
        outcome = DELETE_POLICY.classify_payload(payload, GatewayStatus)
        assert outcome.kind is OutcomeKind.TRANSIENT
        assert outcome.dependency_violation is True

    def test_non_retryable_error_observation(self) -> None:
        payload = {
            "observation": "error",
            "error": {"code": "MANAGEMENT_AUTH_FAILED", "message": "403", "retryable": False},
        }
        outcome = CREATE_POLICY.classify_payload(payload, GatewayStatus)
        assert outcome.kind is OutcomeKind.FATAL
        assert getattr(outcome.error, "code", "") == "MANAGEMENT_AUTH_FAILED"

    def test_unknown_observation_is_fatal(self) -> None:
        outcome = CREATE_POLICY.classify_payload({"observation": "maybe"}, GatewayStatus)
        assert outcome.kind is OutcomeKind.FATAL


class TestErrorFromPayload:
    def test_rebuilds_dependency_violation(self) -> None:
        err = error_from_payload(
            {"resource_id": "/x", "error": {"code": "DEPENDENCY_VIOLATION", "message": "nested"}}
        )
        assert isinstance(err, DependencyViolationError)
        assert err.resource_id == "/x"

    def test_missing_error_dict(self) -> None:
        err = error_from_payload({})
        assert err.retryable is False
        assert err.message == "status read failed"

    def test_category_restored(self) -> None:
        err = error_from_payload(
            {"error": {"category": "transient", "code": "MANAGEMENT_API_ERROR", "retryable": True}}
        )
        assert isinstance(err, TransientError)
        assert err.retryable is True


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class TestTracker:
    def test_initial_state(self) -> None:
        tracker = ConvergenceTracker(CREATE_POLICY)
        assert tracker.state is ConvergenceState.POLLING
        assert tracker.poll_count == 0

    def test_pending_stays_polling(self) -> None:
        tracker = ConvergenceTracker(CREATE_POLICY)
        state = tracker.record(PollOutcome(OutcomeKind.PENDING, "Creating"))
        assert state is ConvergenceState.POLLING
        assert tracker.last_status == "Creating"

    def test_target_converges(self) -> None:
        tracker = ConvergenceTracker(CREATE_POLICY)
        state = tracker.record(PollOutcome(OutcomeKind.TARGET, "Ready"))
        assert state is ConvergenceState.CONVERGED

    def test_fatal_fails(self) -> None:
        tracker = ConvergenceTracker(CREATE_POLICY)
        err = RuntimeError("boom")
        assert tracker.record(PollOutcome(OutcomeKind.FATAL, error=err)) is ConvergenceState.FAILED
        assert tracker.last_error is err

    def test_transient_keeps_last_status(self) -> None:
        tracker = ConvergenceTracker(CREATE_POLICY)
        tracker.record(PollOutcome(OutcomeKind.PENDING, "Creating"))
        tracker.record(PollOutcome(OutcomeKind.TRANSIENT, error=RuntimeError("x")))
        assert tracker.last_status == "Creating"
        assert tracker.consecutive_transient == 1

    def test_record_after_terminal_raises(self) -> None:
        tracker = ConvergenceTracker(CREATE_POLICY)
        tracker.record(PollOutcome(OutcomeKind.TARGET, "Ready"))
        with pytest.raises(RuntimeError, match="converged"):
            tracker.record(PollOutcome(OutcomeKind.PENDING, "Creating"))

    def test_expire(self) -> None:
        tracker = ConvergenceTracker(CREATE_POLICY)
        assert tracker.expire() is ConvergenceState.TIMED_OUT

    def test_expire_is_noop_once_terminal(self) -> None:
        tracker = ConvergenceTracker(CREATE_POLICY)
        tracker.record(PollOutcome(OutcomeKind.TARGET, "Ready"))
        assert tracker.expire() is ConvergenceState.CONVERGED

    def test_fail(self) -> None:
        tracker = ConvergenceTracker(CREATE_POLICY)
        err = RuntimeError("reissue failed")
        assert tracker.fail(err) is ConvergenceState.FAILED
        assert tracker.last_error is err


class TestShouldReissueDelete:
    def _violation(self) -> PollOutcome:
        return PollOutcome(
            OutcomeKind.TRANSIENT,
            error=DependencyViolationError("/x", "nested"),
            dependency_violation=True,
        )

    def test_reissue_policy(self) -> None:
        tracker = ConvergenceTracker(DELETE_POLICY)
        outcome = self._violation()
        tracker.record(outcome)
        assert tracker.should_reissue_delete(outcome) is True

    def test_repoll_policy(self) -> None:
        policy = ConvergencePolicy(
            operation=Operation.DELETE,
            pending=frozenset(ProvisioningState),
            dependency_retry=DependencyRetryPolicy.REPOLL,
        )
        tracker = ConvergenceTracker(policy)
        outcome = self._violation()
        tracker.record(outcome)
        assert tracker.should_reissue_delete(outcome) is False

    def test_not_for_create(self) -> None:
        policy = ConvergencePolicy(
            operation=Operation.CREATE,
            target=frozenset({GatewayStatus.READY}),
            dependency_retry=DependencyRetryPolicy.REISSUE_DELETE,
        )
        tracker = ConvergenceTracker(policy)
        outcome = self._violation()
        tracker.record(outcome)
        assert tracker.should_reissue_delete(outcome) is False

    def test_not_after_terminal(self) -> None:
        policy = ConvergencePolicy(
            operation=Operation.DELETE,
            max_transient_errors=1,
            dependency_retry=DependencyRetryPolicy.REISSUE_DELETE,
        )
        tracker = ConvergenceTracker(policy)
        outcome = self._violation()
        tracker.record(outcome)
        tracker.record(outcome)
        assert tracker.state is ConvergenceState.FAILED
        assert tracker.should_reissue_delete(outcome) is False
