"""Azure Functions entry point — ARM convergence service.

This module registers all Azure Functions (HTTP triggers, orchestrator,
activities) using the Python v2 programming model.

All business logic lives in the arm_convergence package. This file is
purely the wiring layer between Azure Functions bindings and application
code.
"""

from __future__ import annotations

import json
import logging
import uuid

import azure.durable_functions as df
import azure.functions as func

from arm_convergence.core.config import ConfigValidationError, ConvergenceConfig
from arm_convergence.core.exceptions import ConvergenceError
from arm_convergence.core.ingress import build_convergence_input, deserialize_activity_input

app = func.FunctionApp()

logger = logging.getLogger("arm_convergence.function_app")


def _error_response(exc: ConvergenceError, status_code: int) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps({"error": exc.to_error_dict()}),
        status_code=status_code,
        mimetype="application/json",
    )


# ---------------------------------------------------------------------------
# HTTP: Start Convergence
# ---------------------------------------------------------------------------


@app.function_name("start_convergence")
@app.route(route="convergence", methods=["POST"])
@app.durable_client_input(client_name="client")
async def start_convergence(
    req: func.HttpRequest,
    client: df.DurableOrchestrationClient,
) -> func.HttpResponse:
    """Start ``convergence_orchestrator`` for one resource.

    Body::

        {"resource_id": "...", "kind": "shared_image", "operation": "delete",
         "poll_interval_seconds": 10, "timeout_seconds": 1800,
         "continuous_target_occurrence": 10}

    The three tunables are optional and default to app settings.

    Returns:
        202 with the Durable Functions check-status payload, 400 for an
        invalid body, 500 for invalid app settings.
    """
    try:
        body = req.get_json()
    except ValueError:
        return func.HttpResponse("Request body must be JSON", status_code=400)
    if not isinstance(body, dict):
        return func.HttpResponse("Request body must be a JSON object", status_code=400)

    correlation_id = req.headers.get("x-correlation-id") or str(uuid.uuid4())

    try:
        config = ConvergenceConfig.from_env()
    except (ConfigValidationError, ValueError):
        logger.exception("Invalid convergence configuration | correlation_id=%s", correlation_id)
        return func.HttpResponse("Service configuration is invalid", status_code=500)

    try:
        orchestrator_input = build_convergence_input(body, config, correlation_id=correlation_id)
    except ConvergenceError as exc:
        exc.correlation_id = correlation_id
        logger.warning(
            "Rejected convergence request | code=%s | correlation_id=%s | error=%s",
            exc.code,
            correlation_id,
            exc,
        )
        return _error_response(exc, 400)

    try:
        instance_id = await client.start_new(
            "convergence_orchestrator",
            client_input=orchestrator_input,
        )
    except Exception:
        logger.exception(
            "Failed to start orchestrator for resource=%s",
            orchestrator_input["resource_id"],
        )
        raise

    logger.info(
        "Orchestrator started | instance_id=%s | resource=%s | kind=%s | operation=%s | "
        "correlation_id=%s",
        instance_id,
        orchestrator_input["resource_id"],
        orchestrator_input["kind"],
        orchestrator_input["operation"],
        correlation_id,
    )
    return client.create_check_status_response(req, instance_id)


# ---------------------------------------------------------------------------
# Orchestrator: Convergence
# ---------------------------------------------------------------------------


@app.function_name("convergence_orchestrator")
@app.orchestration_trigger(context_name="context")
def convergence_orchestrator(context: df.DurableOrchestrationContext) -> object:
    """Durable Functions orchestrator that polls one resource to convergence.

    See ``arm_convergence.orchestrators.convergence`` for implementation.
    """
    from arm_convergence.orchestrators.convergence import orchestrator_function

    return orchestrator_function(context)


# ---------------------------------------------------------------------------
# HTTP: Orchestrator Status Endpoint
# ---------------------------------------------------------------------------


@app.function_name("convergence_status")
@app.route(route="convergence/{instance_id}", methods=["GET"])
@app.durable_client_input(client_name="client")
async def convergence_status(
    req: func.HttpRequest,
    client: df.DurableOrchestrationClient,
) -> func.HttpResponse:
    """Return the status of a specific convergence instance."""
    instance_id = req.route_params.get("instance_id", "")
    if not instance_id:
        return func.HttpResponse("Missing instance_id", status_code=400)

    status = await client.get_status(instance_id)
    if not status:
        return func.HttpResponse("Instance not found", status_code=404)

    return client.create_check_status_response(req, instance_id)


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


@app.function_name("fetch_resource_status")
@app.activity_trigger(input_name="activityInput")
def fetch_resource_status_activity(activityInput: str) -> dict[str, object]:  # noqa: N803
    """Durable Functions activity: read a resource's status once.

    Input:
        JSON string (or dict when replaying) with ``resource_id``,
        ``kind`` and optionally ``correlation_id``.

    Returns:
        ``FetchStatusOutput`` dict (``observation`` = ``status`` /
        ``not_found`` / ``error``).
    """
    from arm_convergence.activities.fetch_status import fetch_resource_status

    payload = deserialize_activity_input(activityInput)
    return dict(fetch_resource_status(payload))


@app.function_name("reissue_delete")
@app.activity_trigger(input_name="activityInput")
def reissue_delete_activity(activityInput: str) -> dict[str, object]:  # noqa: N803
    """Durable Functions activity: re-send a delete blocked by nested resources.

    Returns:
        ``ReissueDeleteOutput`` dict.
    """
    from arm_convergence.activities.fetch_status import reissue_delete

    payload = deserialize_activity_input(activityInput)
    return dict(reissue_delete(payload))
