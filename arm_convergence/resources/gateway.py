"""Service Fabric Mesh gateway handler.

Lifecycle:
    create_or_update — import check (create only) → PUT → poll
                       ``properties.status`` until ``Ready`` → read back.
    read             — GET and flatten; ``None`` when the gateway is gone.
    delete           — DELETE (absence tolerated, re-sent while nested
                       resources block it) → poll every 10 s or slower
                       until NotFound.

A gateway that reports ``Failed`` while being created is a fatal
outcome, not a pending one.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from arm_convergence.clients.base import ResourceNotFoundError
from arm_convergence.core.exceptions import ContractError
from arm_convergence.models.gateway import GatewaySpec, expand_gateway, flatten_gateway
from arm_convergence.models.resource_id import gateway_id, new_gateway_id
from arm_convergence.models.status import GatewayStatus, Operation
from arm_convergence.resources.base import (
    OperationPolicy,
    ResourceKind,
    converge,
    delete_and_wait,
    ensure_absent,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from arm_convergence.clients.factory import ClientContext
    from arm_convergence.convergence.waiter import ConvergenceResult

logger = logging.getLogger("arm_convergence.resources.gateway")

API_VERSION = "2018-09-01-preview"
RESOURCE_TYPE = "azurerm_service_fabric_mesh_gateway"

DELETE_MIN_POLL_INTERVAL_SECONDS = 10.0

_CREATE_POLICY = OperationPolicy(
    pending=frozenset({GatewayStatus.CREATING, GatewayStatus.UPGRADING, GatewayStatus.UNKNOWN}),
    target=frozenset({GatewayStatus.READY}),
)

KIND = ResourceKind(
    name="service_fabric_mesh_gateway",
    resource_type=RESOURCE_TYPE,
    api_version=API_VERSION,
    status_type=GatewayStatus,
    status_path=("properties", "status"),
    parse_id=gateway_id,
    operations={
        Operation.CREATE: _CREATE_POLICY,
        Operation.UPDATE: _CREATE_POLICY,
        # any successful read while deleting means the gateway still exists
        Operation.DELETE: OperationPolicy(
            pending=frozenset(GatewayStatus),
            min_poll_interval=DELETE_MIN_POLL_INTERVAL_SECONDS,
            presence_status=GatewayStatus.DELETING,
        ),
    },
)


def create_or_update(
    ctx: ClientContext,
    spec: GatewaySpec,
    *,
    is_new: bool = True,
    subscription_id: str | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[str, GatewaySpec]:
    """Create or update a gateway and wait until it is ``Ready``.

    Args:
        ctx: Client context.
        spec: Declared gateway state.
        is_new: Run the import-safety check before creating.
        subscription_id: Overrides ``ctx.config.subscription_id``.

    Returns:
        ``(resource_id, spec)`` as read back after convergence.

    Raises:
        ImportAsExistsError: If *is_new* and the gateway already exists.
        ConvergenceTimeoutError / ConvergenceFailedError: If polling fails.
        ContractError: If the gateway vanished right after converging.
    """
    descriptor = new_gateway_id(
        subscription_id or ctx.config.subscription_id, spec.resource_group_name, spec.name
    )
    operation = Operation.CREATE if is_new else Operation.UPDATE

    if is_new:
        ensure_absent(ctx, KIND, descriptor)

    logger.info(
        "Gateway %s started | resource=%s | location=%s",
        operation.value,
        descriptor,
        spec.location,
    )
    ctx.client.put(descriptor.id, API_VERSION, expand_gateway(spec))
    converge(ctx, KIND, descriptor, operation, clock=clock, sleep=sleep)

    state = read(ctx, descriptor.id)
    if state is None:
        msg = f"Gateway {descriptor} disappeared after {operation.value}"
        raise ContractError(msg, stage="gateway", code="RESOURCE_VANISHED")
    return descriptor.id, state


def read(ctx: ClientContext, resource_id: str) -> GatewaySpec | None:
    """Read a gateway's current state, or ``None`` if it no longer exists."""
    descriptor = gateway_id(resource_id)
    try:
        body = ctx.client.get(descriptor.id, API_VERSION)
    except ResourceNotFoundError:
        logger.info("Gateway not found, removing from state | resource=%s", descriptor)
        return None
    return flatten_gateway(body, name=descriptor.name, resource_group=descriptor.resource_group)


def delete(
    ctx: ClientContext,
    resource_id: str,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> ConvergenceResult:
    """Delete a gateway and wait until reads report it absent."""
    descriptor = gateway_id(resource_id)
    logger.info("Gateway delete started | resource=%s", descriptor)
    return delete_and_wait(ctx, KIND, descriptor, clock=clock, sleep=sleep)
