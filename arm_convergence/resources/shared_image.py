"""Shared Image handler.

Lifecycle:
    create_or_update — import check (create only) → PUT → poll
                       ``properties.provisioningState`` until ``Succeeded``.
    read             — GET and flatten; ``None`` when the image is gone.
    delete           — DELETE (absence tolerated) → poll until NotFound has
                       been read ten times in a row.

The image lives inside a gallery.  Right after the image reads as
NotFound, deleting the gallery can still fail with "Can not delete
resource before nested resources are deleted", and the image can
briefly read as existing again.  Hence the ten consecutive NotFound
reads, and under ``DependencyRetryPolicy.REISSUE_DELETE`` the image
delete is re-sent whenever that conflict is observed.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from arm_convergence.clients.base import ResourceNotFoundError
from arm_convergence.core.exceptions import ContractError
from arm_convergence.models.resource_id import new_shared_image_id, shared_image_id
from arm_convergence.models.shared_image import (
    SharedImageSpec,
    expand_shared_image,
    flatten_shared_image,
)
from arm_convergence.models.status import Operation, ProvisioningState
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

logger = logging.getLogger("arm_convergence.resources.shared_image")

API_VERSION = "2019-07-01"
RESOURCE_TYPE = "azurerm_shared_image"

DELETE_CONTINUOUS_TARGET_OCCURRENCE = 10
DELETE_MIN_POLL_INTERVAL_SECONDS = 10.0

_WRITE_POLICY = OperationPolicy(
    pending=frozenset(
        {ProvisioningState.CREATING, ProvisioningState.UPDATING, ProvisioningState.MIGRATING}
    ),
    target=frozenset({ProvisioningState.SUCCEEDED}),
)

KIND = ResourceKind(
    name="shared_image",
    resource_type=RESOURCE_TYPE,
    api_version=API_VERSION,
    status_type=ProvisioningState,
    status_path=("properties", "provisioningState"),
    parse_id=shared_image_id,
    operations={
        Operation.CREATE: _WRITE_POLICY,
        Operation.UPDATE: _WRITE_POLICY,
        Operation.DELETE: OperationPolicy(
            pending=frozenset(ProvisioningState),
            continuous_target_occurrence=DELETE_CONTINUOUS_TARGET_OCCURRENCE,
            min_poll_interval=DELETE_MIN_POLL_INTERVAL_SECONDS,
            presence_status=ProvisioningState.DELETING,
        ),
    },
)


def create_or_update(
    ctx: ClientContext,
    spec: SharedImageSpec,
    *,
    is_new: bool = True,
    subscription_id: str | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[str, SharedImageSpec]:
    """Create or update a Shared Image and wait for ``Succeeded``.

    Returns:
        ``(resource_id, spec)`` as read back after convergence.

    Raises:
        ImportAsExistsError: If *is_new* and the image already exists.
        ConvergenceTimeoutError / ConvergenceFailedError: If polling fails.
        ContractError: If the image cannot be read back.
    """
    descriptor = new_shared_image_id(
        subscription_id or ctx.config.subscription_id,
        spec.resource_group_name,
        spec.gallery_name,
        spec.name,
    )
    operation = Operation.CREATE if is_new else Operation.UPDATE

    if is_new:
        ensure_absent(ctx, KIND, descriptor)

    logger.info("Shared Image %s started | resource=%s", operation.value, descriptor)
    ctx.client.put(descriptor.id, API_VERSION, expand_shared_image(spec))
    converge(ctx, KIND, descriptor, operation, clock=clock, sleep=sleep)

    state = read(ctx, descriptor.id)
    if state is None:
        msg = f"Cannot read Shared Image {descriptor} after {operation.value}"
        raise ContractError(msg, stage="shared_image", code="RESOURCE_VANISHED")
    return descriptor.id, state


def read(ctx: ClientContext, resource_id: str) -> SharedImageSpec | None:
    """Read a Shared Image's current state, or ``None`` if it no longer exists."""
    descriptor = shared_image_id(resource_id)
    try:
        body = ctx.client.get(descriptor.id, API_VERSION)
    except ResourceNotFoundError:
        logger.debug("Shared Image was not found, removing from state | resource=%s", descriptor)
        return None
    return flatten_shared_image(
        body,
        name=descriptor.name,
        gallery_name=descriptor.parent_name,
        resource_group=descriptor.resource_group,
    )


def delete(
    ctx: ClientContext,
    resource_id: str,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> ConvergenceResult:
    """Delete a Shared Image and wait until it is consistently absent."""
    descriptor = shared_image_id(resource_id)
    logger.debug("Waiting for Shared Image to be eventually deleted | resource=%s", descriptor)
    return delete_and_wait(ctx, KIND, descriptor, clock=clock, sleep=sleep)
