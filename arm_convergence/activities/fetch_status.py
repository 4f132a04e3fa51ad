"""Status activities — one status read or one re-issued delete per call.

These activities are called by the convergence orchestration's
timer-based polling loop.  They never raise for expected management-API
outcomes: absence becomes a ``"not_found"`` observation and any
``ConvergenceError`` becomes an ``"error"`` observation carrying
``to_error_dict()``, so classification (pending / target / transient /
fatal) happens in exactly one place, the orchestration's tracker.
Unexpected exceptions propagate and fail the activity; the orchestration
treats that as a transient error.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from arm_convergence.clients.base import ResourceNotFoundError
from arm_convergence.core.exceptions import ConvergenceError, ValidationError
from arm_convergence.models.payloads import (
    FetchStatusInput,
    FetchStatusOutput,
    ReissueDeleteInput,
    ReissueDeleteOutput,
    validate_payload,
)
from arm_convergence.models.status import Operation
from arm_convergence.resources.registry import get_resource_kind

if TYPE_CHECKING:
    from arm_convergence.clients.factory import ClientContext

logger = logging.getLogger("arm_convergence.activities.fetch_status")


def fetch_resource_status(
    payload: dict[str, Any],
    *,
    ctx: ClientContext | None = None,
) -> FetchStatusOutput:
    """Read a resource's current status once.

    Args:
        payload: ``FetchStatusInput`` dict (``resource_id``, ``kind`` and
            optionally the ``operation`` being converged).
        ctx: Client context; built from ``ConvergenceConfig.from_env()``
            when omitted and closed again before returning.

    Returns:
        A ``FetchStatusOutput`` dict whose ``observation`` is
        ``"status"`` (with ``status``), ``"not_found"``, or ``"error"``
        (with ``error``).
    """
    resource_id = str(payload.get("resource_id", ""))
    correlation_id = str(payload.get("correlation_id", ""))

    try:
        validate_payload(payload, FetchStatusInput, activity="fetch_resource_status")
        kind = get_resource_kind(str(payload["kind"]))
        descriptor = kind.parse_id(resource_id)
        operation = _operation(payload)
    except ConvergenceError as exc:
        exc.correlation_id = exc.correlation_id or correlation_id
        logger.error(
            "fetch_resource_status rejected payload | resource=%s | error=%s", resource_id, exc
        )
        return {"observation": "error", "resource_id": resource_id, "error": exc.to_error_dict()}

    owned = ctx is None
    if ctx is None:
        ctx = _context_from_env(correlation_id)

    try:
        body = ctx.client.get(descriptor.id, kind.api_version)
        status = kind.read_status(body, operation)
    except ResourceNotFoundError:
        logger.info("fetch_resource_status | resource=%s | observation=not_found", descriptor)
        return {"observation": "not_found", "resource_id": descriptor.id}
    except ConvergenceError as exc:
        exc.correlation_id = exc.correlation_id or correlation_id
        logger.warning(
            "fetch_resource_status failed | resource=%s | code=%s | retryable=%s | error=%s",
            descriptor,
            exc.code,
            exc.retryable,
            exc,
        )
        return {"observation": "error", "resource_id": descriptor.id, "error": exc.to_error_dict()}
    finally:
        if owned:
            ctx.client.close()

    logger.info("fetch_resource_status | resource=%s | status=%s", descriptor, status.value)
    return {"observation": "status", "resource_id": descriptor.id, "status": str(status.value)}


def reissue_delete(
    payload: dict[str, Any],
    *,
    ctx: ClientContext | None = None,
) -> ReissueDeleteOutput:
    """Re-send the delete call for a resource blocked by a dependency violation.

    Returns:
        A ``ReissueDeleteOutput`` dict.  ``issued`` is ``False`` when the
        resource was already gone or the call failed (``error`` is then set).
    """
    resource_id = str(payload.get("resource_id", ""))
    correlation_id = str(payload.get("correlation_id", ""))

    try:
        validate_payload(payload, ReissueDeleteInput, activity="reissue_delete")
        kind = get_resource_kind(str(payload["kind"]))
        descriptor = kind.parse_id(resource_id)
    except ConvergenceError as exc:
        exc.correlation_id = exc.correlation_id or correlation_id
        return {"resource_id": resource_id, "issued": False, "error": exc.to_error_dict()}

    owned = ctx is None
    if ctx is None:
        ctx = _context_from_env(correlation_id)

    try:
        ctx.client.delete(descriptor.id, kind.api_version)
    except ResourceNotFoundError:
        logger.info("reissue_delete found nothing to delete | resource=%s", descriptor)
        return {"resource_id": descriptor.id, "issued": False}
    except ConvergenceError as exc:
        exc.correlation_id = exc.correlation_id or correlation_id
        logger.warning("reissue_delete failed | resource=%s | error=%s", descriptor, exc)
        return {"resource_id": descriptor.id, "issued": False, "error": exc.to_error_dict()}
    finally:
        if owned:
            ctx.client.close()

    logger.info("reissue_delete sent | resource=%s", descriptor)
    return {"resource_id": descriptor.id, "issued": True}


def _context_from_env(correlation_id: str) -> ClientContext:
    from arm_convergence.clients.factory import build_client_context
    from arm_convergence.core.config import ConvergenceConfig

    return build_client_context(ConvergenceConfig.from_env(), correlation_id=correlation_id)


def _operation(payload: dict[str, Any]) -> Operation | None:
    raw = payload.get("operation")
    if raw is None:
        return None
    try:
        return Operation(str(raw).lower())
    except ValueError:
        msg = f"fetch_resource_status: unknown operation {raw!r}"
        raise ValidationError(
            msg, stage="fetch_resource_status", code="INVALID_OPERATION"
        ) from None
