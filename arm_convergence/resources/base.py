"""Shared plumbing for resource handlers.

``ResourceKind`` describes one supported resource type: where its status
lives in the ARM body, which closed enum maps it, and how each operation
converges.  Handlers use it to build status fetchers and policies; the
Durable Functions activity uses it to read status by kind name.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from arm_convergence.clients.base import DependencyViolationError, ResourceNotFoundError
from arm_convergence.convergence.tracker import ConvergencePolicy
from arm_convergence.convergence.waiter import ConvergenceResult, wait_for_state
from arm_convergence.core.constants import DEFAULT_MAX_TRANSIENT_ERRORS
from arm_convergence.core.exceptions import ContractError, ValidationError
from arm_convergence.models.status import DependencyRetryPolicy, Operation, WireStatus
from arm_convergence.utils.helpers import dig

if TYPE_CHECKING:
    from collections.abc import Callable

    from arm_convergence.clients.base import ManagementClient
    from arm_convergence.clients.factory import ClientContext
    from arm_convergence.models.resource_id import ResourceDescriptor

logger = logging.getLogger(__name__)


class ImportAsExistsError(ValidationError):
    """A resource being created already exists and must be imported instead.

    Attributes:
        resource_type: Declared resource type (e.g. ``"azurerm_shared_image"``).
        resource_id: ID of the existing resource.
    """

    default_stage = "create"
    default_code = "RESOURCE_ALREADY_EXISTS"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"A resource with the ID {resource_id!r} already exists - to be managed "
            f"it needs to be imported into the state as {resource_type!r}"
        )


@dataclass(frozen=True, slots=True)
class OperationPolicy:
    """Per-operation defaults a ``ResourceKind`` declares.

    Attributes:
        pending: Statuses that keep the loop polling.
        target: Statuses that end it (absence also ends a delete).
        continuous_target_occurrence: Default consecutive-target threshold.
        min_poll_interval: Floor applied to the configured poll interval.
        presence_status: Status reported for a successful read whose body
            carries no recognised status.  Set for deletes, where only
            presence matters; ``None`` keeps unknown statuses fatal.
    """

    pending: frozenset[WireStatus]
    target: frozenset[WireStatus] = frozenset()
    continuous_target_occurrence: int = 1
    min_poll_interval: float = 0.0
    presence_status: WireStatus | None = None


@dataclass(frozen=True, slots=True)
class ResourceKind:
    """Static description of one resource type.

    Attributes:
        name: Registry key (e.g. ``"shared_image"``).
        resource_type: Declared type label used in messages.
        api_version: ARM API version used for every call.
        status_type: Closed enum that maps the wire status.
        status_path: Keys leading to the status inside the ARM body.
        parse_id: Parser turning a raw ID into a ``ResourceDescriptor``.
        operations: Convergence defaults per operation.
    """

    name: str
    resource_type: str
    api_version: str
    status_type: type[WireStatus]
    status_path: tuple[str, ...]
    parse_id: Callable[[str], ResourceDescriptor]
    operations: dict[Operation, OperationPolicy]

    def status_from_body(self, body: dict[str, Any]) -> WireStatus:
        """Extract and map the status from an ARM body.

        Raises:
            ContractError: If the body carries no status.
            UnrecognizedStatusError: If the status is not in the enum.
        """
        raw = dig(body, self.status_path)
        if raw is None:
            path = ".".join(self.status_path)
            msg = f"{self.resource_type} response has no `{path}` field"
            raise ContractError(msg, stage="status", code="MISSING_STATUS")
        return self.status_type.from_wire(raw)

    def read_status(self, body: dict[str, Any], operation: Operation | None = None) -> WireStatus:
        """Map *body* to a status as seen while converging *operation*.

        Outside operations that declare a ``presence_status`` this is
        ``status_from_body``.  For those (deletes) any successful read
        means the resource still exists, so a missing or unmapped status
        becomes the presence status instead of an error.
        """
        defaults = self.operations.get(operation) if operation is not None else None
        fallback = defaults.presence_status if defaults is not None else None
        if fallback is None:
            return self.status_from_body(body)
        try:
            return self.status_from_body(body)
        except ContractError as exc:
            logger.debug("Status unreadable, resource still present | error=%s", exc)
            return fallback

    def fetcher(
        self,
        client: ManagementClient,
        descriptor: ResourceDescriptor,
        operation: Operation | None = None,
    ) -> Callable[[], WireStatus]:
        """Return a zero-argument status read for *descriptor*."""

        def _fetch() -> WireStatus:
            body = client.get(descriptor.id, self.api_version)
            return self.read_status(body, operation)

        return _fetch

    def policy_for(
        self,
        operation: Operation,
        *,
        continuous_target_occurrence: int | None = None,
        max_transient_errors: int = DEFAULT_MAX_TRANSIENT_ERRORS,
        dependency_retry: DependencyRetryPolicy = DependencyRetryPolicy.REPOLL,
    ) -> ConvergencePolicy:
        """Build the convergence policy for *operation*.

        ``continuous_target_occurrence=None`` keeps the kind's default,
        which may be higher than the configured one (deletes that are
        known to flap back into existence).
        """
        defaults = self.operations.get(operation)
        if defaults is None:
            msg = f"{self.resource_type} does not support {operation.value} convergence"
            raise ValidationError(msg, stage="policy", code="UNSUPPORTED_OPERATION")
        threshold = defaults.continuous_target_occurrence
        if continuous_target_occurrence is not None:
            threshold = max(threshold, continuous_target_occurrence)
        return ConvergencePolicy(
            operation=operation,
            pending=defaults.pending,
            target=defaults.target,
            continuous_target_occurrence=threshold,
            max_transient_errors=max_transient_errors,
            dependency_retry=dependency_retry,
        )

    def poll_interval(self, operation: Operation, configured: float) -> float:
        defaults = self.operations.get(operation)
        floor = defaults.min_poll_interval if defaults is not None else 0.0
        return max(configured, floor)


# ---------------------------------------------------------------------------
# Handler helpers
# ---------------------------------------------------------------------------


def ensure_absent(ctx: ClientContext, kind: ResourceKind, descriptor: ResourceDescriptor) -> None:
    """Refuse to create over an existing resource.

    Raises:
        ImportAsExistsError: If the resource already exists.
    """
    try:
        existing = ctx.client.get(descriptor.id, kind.api_version)
    except ResourceNotFoundError:
        return
    existing_id = str(existing.get("id") or "")
    if existing_id:
        raise ImportAsExistsError(kind.resource_type, existing_id)


def converge(
    ctx: ClientContext,
    kind: ResourceKind,
    descriptor: ResourceDescriptor,
    operation: Operation,
    *,
    fetch_status: Callable[[], WireStatus] | None = None,
    reissue_delete: Callable[[], None] | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> ConvergenceResult:
    """Run ``wait_for_state`` for *descriptor* using the context's config.

    Raises:
        ConvergenceTimeoutError: If the resource did not converge in time.
        ConvergenceFailedError: If polling failed.
    """
    config = ctx.config
    policy = kind.policy_for(
        operation,
        continuous_target_occurrence=config.continuous_target_occurrence,
        max_transient_errors=config.max_transient_errors,
        dependency_retry=config.dependency_retry_policy,
    )
    result = wait_for_state(
        fetch_status or kind.fetcher(ctx.client, descriptor, operation),
        policy,
        descriptor=descriptor,
        timeout=config.timeout_for(operation),
        poll_interval=kind.poll_interval(operation, config.poll_interval_seconds),
        reissue_delete=reissue_delete,
        clock=clock,
        sleep=sleep,
    )
    return result.raise_for_state()


class DeleteRequest:
    """The delete call for one resource, re-sendable while it is rejected.

    ARM answers a delete with 409 while nested resources still exist.
    The rejection is kept instead of raised: under
    ``DependencyRetryPolicy.REISSUE_DELETE`` every poll reports it as a
    dependency violation until a re-sent delete is accepted, so it is
    bounded by the loop's transient budget and timeout.  Under ``REPOLL``
    polling reads the resource as usual.
    """

    def __init__(
        self, ctx: ClientContext, kind: ResourceKind, descriptor: ResourceDescriptor
    ) -> None:
        self._ctx = ctx
        self._kind = kind
        self._descriptor = descriptor
        self._fetch = kind.fetcher(ctx.client, descriptor, Operation.DELETE)
        self._reissue = ctx.config.dependency_retry_policy is DependencyRetryPolicy.REISSUE_DELETE
        self.rejection: DependencyViolationError | None = None

    def send(self) -> None:
        """Send the delete; absence counts as accepted.

        Raises:
            ClientError: For failures other than absence or a dependency violation.
        """
        try:
            self._ctx.client.delete(self._descriptor.id, self._kind.api_version)
        except ResourceNotFoundError:
            logger.info("Delete found nothing to delete | resource=%s", self._descriptor)
        except DependencyViolationError as exc:
            logger.warning(
                "Delete rejected while nested resources exist | resource=%s | error=%s",
                self._descriptor,
                exc,
            )
            self.rejection = exc
            return
        self.rejection = None

    def fetch(self) -> WireStatus:
        """Read the status, or report the pending rejection when re-issuing."""
        if self.rejection is not None and self._reissue:
            raise self.rejection
        return self._fetch()


def delete_and_wait(
    ctx: ClientContext,
    kind: ResourceKind,
    descriptor: ResourceDescriptor,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> ConvergenceResult:
    """Delete *descriptor* and poll until it reads as absent.

    Raises:
        ClientError: If the first delete call fails for another reason.
        ConvergenceTimeoutError / ConvergenceFailedError: If polling fails.
    """
    request = DeleteRequest(ctx, kind, descriptor)
    request.send()
    return converge(
        ctx,
        kind,
        descriptor,
        Operation.DELETE,
        fetch_status=request.fetch,
        reissue_delete=request.send,
        clock=clock,
        sleep=sleep,
    )
