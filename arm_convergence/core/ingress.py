"""Thin ingress boundary helpers for Azure Functions entrypoints.

Centralises the transport concerns so that ``function_app.py`` contains
only trigger bindings and handoff:

- **deserialize_activity_input** — normalises the JSON-string-or-dict
  payload that Durable Functions passes to activities (idempotent on
  replays).
- **build_convergence_input** — validates an HTTP request body and
  resolves every tunable against ``ConvergenceConfig`` so the
  orchestrator input is complete and deterministic.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from arm_convergence.core.exceptions import ContractError, ValidationError

if TYPE_CHECKING:
    from arm_convergence.core.config import ConvergenceConfig
    from arm_convergence.models.payloads import ConvergenceInput

logger = logging.getLogger("arm_convergence.core.ingress")


# ---------------------------------------------------------------------------
# Activity input deserialisation
# ---------------------------------------------------------------------------


def deserialize_activity_input(raw: str | dict[str, Any] | object) -> dict[str, Any]:
    """Normalise Durable Functions activity input to a plain dict.

    During initial execution the activity input arrives as a JSON
    string; on orchestrator replay it may already be a ``dict``.

    Args:
        raw: The ``activityInput`` value from the binding.

    Returns:
        Parsed dict payload.

    Raises:
        ContractError: If *raw* is neither a JSON string nor a dict.
    """
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, ValueError) as exc:
            msg = f"Activity input is not valid JSON: {exc}"
            raise ContractError(msg, stage="ingress", code="INVALID_JSON") from exc
        if not isinstance(parsed, dict):
            msg = f"Activity input JSON must be an object, got {type(parsed).__name__}"
            raise ContractError(msg, stage="ingress", code="INVALID_INPUT_TYPE")
        return parsed
    if isinstance(raw, dict):
        return raw
    msg = f"Unexpected activity input type: {type(raw).__name__}"
    raise ContractError(msg, stage="ingress", code="INVALID_INPUT_TYPE")


# ---------------------------------------------------------------------------
# Orchestration input builder
# ---------------------------------------------------------------------------


def build_convergence_input(
    body: dict[str, Any],
    config: ConvergenceConfig,
    *,
    correlation_id: str = "",
) -> ConvergenceInput:
    """Build a ``ConvergenceInput`` from a ``POST /convergence`` body.

    Optional overrides (``poll_interval_seconds``, ``timeout_seconds``,
    ``continuous_target_occurrence``) fall back to *config*.  The kind's
    own floors still apply: a shared image delete never polls faster
    than every 10 s nor needs fewer than 10 consecutive NotFound reads.

    Raises:
        ValidationError: If a field is missing, malformed or out of range.
        UnknownResourceKindError: If ``kind`` is not registered.
        ResourceIdError: If ``resource_id`` does not match the kind.
    """
    from arm_convergence.models.status import Operation
    from arm_convergence.resources.registry import get_resource_kind

    resource_id = _required_str(body, "resource_id")
    kind = get_resource_kind(_required_str(body, "kind"))

    raw_operation = _required_str(body, "operation").lower()
    try:
        operation = Operation(raw_operation)
    except ValueError:
        allowed = ", ".join(op.value for op in Operation)
        msg = f"operation must be one of {allowed}, got {raw_operation!r}"
        raise ValidationError(msg, stage="ingress", code="INVALID_OPERATION") from None

    descriptor = kind.parse_id(resource_id)

    interval = _optional_number(body, "poll_interval_seconds", config.poll_interval_seconds)
    timeout = _optional_number(body, "timeout_seconds", config.timeout_for(operation))
    threshold = _optional_int(
        body, "continuous_target_occurrence", config.continuous_target_occurrence
    )

    policy = kind.policy_for(
        operation,
        continuous_target_occurrence=threshold,
        max_transient_errors=config.max_transient_errors,
        dependency_retry=config.dependency_retry_policy,
    )

    payload: ConvergenceInput = {
        "resource_id": descriptor.id,
        "kind": kind.name,
        "operation": operation.value,
        "poll_interval_seconds": kind.poll_interval(operation, interval),
        "timeout_seconds": timeout,
        "continuous_target_occurrence": policy.continuous_target_occurrence,
        "max_transient_errors": policy.max_transient_errors,
        "dependency_retry_policy": policy.dependency_retry.value,
        "correlation_id": correlation_id,
    }

    logger.debug(
        "Built convergence input | resource=%s | kind=%s | operation=%s | correlation_id=%s",
        descriptor,
        kind.name,
        operation.value,
        correlation_id,
    )
    return payload


def _required_str(body: dict[str, Any], key: str) -> str:
    value = body.get(key)
    if not isinstance(value, str) or not value.strip():
        msg = f"{key} is required and must be a non-empty string"
        raise ValidationError(msg, stage="ingress", code="MISSING_FIELD")
    return value.strip()


def _optional_number(body: dict[str, Any], key: str, default: float) -> float:
    value = body.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        msg = f"{key} must be a positive number, got {value!r}"
        raise ValidationError(msg, stage="ingress", code="INVALID_FIELD")
    return float(value)


def _optional_int(body: dict[str, Any], key: str, default: int) -> int:
    value = body.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        msg = f"{key} must be an integer >= 1, got {value!r}"
        raise ValidationError(msg, stage="ingress", code="INVALID_FIELD")
    return value
