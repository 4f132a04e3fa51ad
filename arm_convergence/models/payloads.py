"""Typed payload schemas for Durable Functions activity contracts.

Every activity receives and returns a JSON-serialisable dict.  These
``TypedDict`` definitions make the contracts explicit so that pyright
catches key mismatches at analysis time and ``validate_payload``
catches them at runtime.

Usage::

    from arm_convergence.models.payloads import FetchStatusInput, validate_payload

    def fetch_resource_status(raw: dict) -> ...:
        validate_payload(raw, FetchStatusInput, activity="fetch_resource_status")
"""

from __future__ import annotations

from typing import Any, NotRequired, TypedDict

from arm_convergence.core.exceptions import ContractError

# ---------------------------------------------------------------------------
# Orchestration input
# ---------------------------------------------------------------------------


class ConvergenceInput(TypedDict):
    """HTTP starter → ``convergence_orchestrator``.

    Built by ``build_convergence_input`` with every tunable resolved, so
    the orchestrator never reads configuration itself.
    """

    resource_id: str
    kind: str
    operation: str
    poll_interval_seconds: float
    timeout_seconds: float
    continuous_target_occurrence: int
    max_transient_errors: int
    dependency_retry_policy: str
    correlation_id: NotRequired[str]


# ---------------------------------------------------------------------------
# Fetch status
# ---------------------------------------------------------------------------


class FetchStatusInput(TypedDict):
    """Orchestrator → ``fetch_resource_status`` activity.

    ``operation`` selects how the body is read: while deleting, any
    successful read counts as the resource still being present.
    """

    resource_id: str
    kind: str
    operation: NotRequired[str]
    correlation_id: NotRequired[str]


class FetchStatusOutput(TypedDict):
    """``fetch_resource_status`` activity → orchestrator.

    ``observation`` is ``"status"``, ``"not_found"`` or ``"error"``.
    """

    observation: str
    resource_id: str
    status: NotRequired[str]
    error: NotRequired[dict[str, Any]]


# ---------------------------------------------------------------------------
# Re-issue delete
# ---------------------------------------------------------------------------


class ReissueDeleteInput(TypedDict):
    """Orchestrator → ``reissue_delete`` activity."""

    resource_id: str
    kind: str
    correlation_id: NotRequired[str]


class ReissueDeleteOutput(TypedDict):
    """``reissue_delete`` activity → orchestrator."""

    resource_id: str
    issued: bool
    error: NotRequired[dict[str, Any]]


# ---------------------------------------------------------------------------
# Orchestration output
# ---------------------------------------------------------------------------


class ConvergenceOutcome(TypedDict):
    """``convergence_orchestrator`` output — see ``ConvergenceResult.to_dict()``."""

    state: str
    resource: str
    resource_id: str
    operation: str
    last_status: str
    poll_count: int
    consecutive_targets: int
    elapsed_seconds: float
    error: str
    error_code: str
    instance_id: NotRequired[str]


# ---------------------------------------------------------------------------
# Required-key registrations (used by validate_payload)
# ---------------------------------------------------------------------------

_REQUIRED_KEYS: dict[type, frozenset[str]] = {
    ConvergenceInput: frozenset(
        {
            "resource_id",
            "kind",
            "operation",
            "poll_interval_seconds",
            "timeout_seconds",
            "continuous_target_occurrence",
            "max_transient_errors",
            "dependency_retry_policy",
        }
    ),
    FetchStatusInput: frozenset({"resource_id", "kind"}),
    FetchStatusOutput: frozenset({"observation", "resource_id"}),
    ReissueDeleteInput: frozenset({"resource_id", "kind"}),
}


# ---------------------------------------------------------------------------
# Runtime validation
# ---------------------------------------------------------------------------


def validate_payload(
    raw: dict[str, Any],
    schema: type,
    *,
    activity: str,
) -> None:
    """Validate that *raw* contains the required keys for *schema*.

    Raises:
        ContractError: If required keys are missing from the payload.
    """
    required = _REQUIRED_KEYS.get(schema)
    if required is None:
        return

    missing = required - raw.keys()
    if missing:
        msg = f"{activity}: missing required payload key(s): {', '.join(sorted(missing))}"
        raise ContractError(msg, stage=activity, code="PAYLOAD_MISSING_KEYS")
